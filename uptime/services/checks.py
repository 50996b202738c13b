"""
Check lifecycle operations used by the API layer.

Each operation keeps the job registry in step with the stored check:
create schedules (with an immediate first run), update re-registers,
pause and delete remove the recurring job.
"""
import logging
from functools import partial

from django.db import transaction

from uptime.exceptions import RegistryError
from uptime.models import Check
from uptime.services import plans
from uptime.services.scheduler import CheckScheduler

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"url", "name", "interval", "regions", "timeout", "expected_status_code", "status"}


class CheckService:
    def __init__(self, scheduler: CheckScheduler):
        self.scheduler = scheduler

    def create_check(
        self,
        owner,
        url: str,
        interval: str = "5min",
        name: str = "",
        regions: list[str] | None = None,
        timeout: int = 30,
        expected_status_code: int = 200,
    ) -> Check:
        """
        Create an active check and schedule it, running it once right away.

        The immediate run is enqueued only after the check is committed, so
        a worker never picks up a job for a row it cannot see yet.

        Raises:
            PlanLimitError: the owner's plan does not allow this check
            RegistryError: the job could not be registered; nothing is saved
        """
        regions = regions or []
        profile = plans.get_user_profile(owner.pk)
        plans.ensure_can_create_check(profile)
        plans.ensure_interval_allowed(profile, interval)
        plans.ensure_regions_allowed(profile, regions)

        with transaction.atomic():
            check = Check.objects.create(
                owner=owner,
                url=url,
                name=name,
                interval=interval,
                regions=regions,
                timeout=timeout,
                expected_status_code=expected_status_code,
                status=Check.STATUS_ACTIVE,
            )
            self.scheduler.schedule_check(check)
            transaction.on_commit(partial(self._queue_first_run, check))

        logger.info(f"Check {check.pk} created for {url}")
        return check

    def _queue_first_run(self, check: Check) -> None:
        try:
            self.scheduler.run_now(check)
        except RegistryError:
            logger.exception(f"Could not queue first run of check {check.pk}, it runs on its next tick")

    def update_check(self, check: Check, **changes) -> Check:
        """
        Apply changes to a check and re-register its job.

        Interval or target changes take effect on the next natural tick.
        Setting status to paused or deleted removes the job instead.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        profile = plans.get_user_profile(check.owner_id)
        if "interval" in changes:
            plans.ensure_interval_allowed(profile, changes["interval"])
        if "regions" in changes:
            plans.ensure_regions_allowed(profile, changes["regions"])
        if changes.get("status") == Check.STATUS_ACTIVE and not check.is_active:
            plans.ensure_can_create_check(profile)

        for field_name, value in changes.items():
            setattr(check, field_name, value)

        with transaction.atomic():
            check.save()
            if check.is_active:
                self.scheduler.update_check(check)
            else:
                self.scheduler.remove_check(check.pk)

        return check

    def pause_check(self, check: Check) -> Check:
        """Stop probing a check but keep it for later reactivation."""
        with transaction.atomic():
            check.status = Check.STATUS_PAUSED
            check.save(update_fields=["status", "updated_at"])
            self.scheduler.remove_check(check.pk)
        logger.info(f"Check {check.pk} paused")
        return check

    def resume_check(self, check: Check) -> Check:
        """Reactivate a paused check if the owner's plan still has room."""
        profile = plans.get_user_profile(check.owner_id)
        plans.ensure_can_create_check(profile)
        plans.ensure_interval_allowed(profile, check.interval)

        with transaction.atomic():
            check.status = Check.STATUS_ACTIVE
            check.save(update_fields=["status", "updated_at"])
            self.scheduler.schedule_check(check, run_immediately=False)
        logger.info(f"Check {check.pk} resumed")
        return check

    def delete_check(self, check: Check, hard: bool = False) -> None:
        """Remove a check's job, then soft- or hard-delete the check."""
        check_id = check.pk
        self.scheduler.remove_check(check_id)

        if hard:
            check.delete()
        else:
            check.status = Check.STATUS_DELETED
            check.save(update_fields=["status", "updated_at"])

        logger.info(f"Check {check_id} {'deleted' if hard else 'marked as deleted'}")
