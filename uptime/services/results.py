"""
Result store: persists probe outcomes and keeps the check's health
snapshot in step with them.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from uptime.exceptions import CheckGone
from uptime.models import Check, CheckResult, Profile
from uptime.services.prober import ProbeResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredResult:
    """A persisted probe outcome."""

    check_result_id: int
    success: bool


class ResultStore:
    """Writes check results and the check health snapshot as one unit."""

    def record(self, check_id, region: str, probe: ProbeResult) -> StoredResult:
        """
        Persist a probe outcome for a check.

        The result insert and the check update share one transaction.
        failure_count is incremented in the database so concurrent workers
        never lose updates.

        Raises:
            CheckGone: the check was deleted before the result landed.
        """
        now = timezone.now()

        with transaction.atomic():
            updated = Check.objects.filter(pk=check_id).update(
                last_check_at=now,
                last_status=probe.last_status,
                failure_count=0 if probe.success else F("failure_count") + 1,
                updated_at=now,
            )
            if not updated:
                raise CheckGone(f"Check {check_id} no longer exists")

            result = CheckResult.objects.create(
                monitored_check_id=check_id,
                region=region,
                status_code=probe.status_code,
                latency_ms=probe.latency_ms,
                success=probe.success,
                error_message=probe.error_message,
                timestamp=now,
            )

        logger.info(
            f"Result saved for check {check_id}: "
            f"{'up' if probe.success else 'down'} {probe.latency_ms}ms"
        )
        return StoredResult(check_result_id=result.pk, success=probe.success)


def purge_expired_results(days: int | None = None, dry_run: bool = False) -> int:
    """
    Delete check results older than their owner's retention window.

    Args:
        days: Retention override applied to every owner
        dry_run: Count the expired results without deleting them

    Owners without a profile fall back to RESULT_RETENTION_DAYS.

    Returns:
        Number of deleted (or, on a dry run, deletable) results
    """
    now = timezone.now()
    default_days = getattr(settings, "RESULT_RETENTION_DAYS", 7)
    total = 0

    retention_by_owner = dict(
        Profile.objects.values_list("user_id", "data_retention_days")
    )
    owner_ids = Check.objects.order_by().values_list("owner_id", flat=True).distinct()

    for owner_id in owner_ids:
        owner_days = days if days is not None else retention_by_owner.get(owner_id, default_days)
        cutoff = now - timedelta(days=owner_days)
        expired = CheckResult.objects.filter(
            monitored_check__owner_id=owner_id,
            timestamp__lt=cutoff,
        )
        if dry_run:
            total += expired.count()
        else:
            deleted, _ = expired.delete()
            total += deleted

    if dry_run:
        logger.info(f"Purge dry run: {total} expired check results")
    elif total:
        logger.info(f"Purged {total} expired check results")
    else:
        logger.info("Purge complete: no expired check results")

    return total
