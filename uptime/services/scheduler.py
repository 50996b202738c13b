"""
Check scheduler: keeps exactly one recurring probe job per active check.

Every operation is idempotent with respect to the check id, so duplicate
API calls and restart-triggered resyncs never create duplicate jobs.
"""
import logging
from dataclasses import dataclass, field

from uptime.exceptions import RegistryError
from uptime.models import Check
from uptime.services.queue import JobKey, ProbeJob, ProbeQueue, RecurrenceRule

logger = logging.getLogger(__name__)

INTERVAL_RULES: dict[str, RecurrenceRule] = {
    "1min": RecurrenceRule("* * * * *"),
    "5min": RecurrenceRule("*/5 * * * *"),
    "15min": RecurrenceRule("*/15 * * * *"),
    "30min": RecurrenceRule("*/30 * * * *"),
    "1hour": RecurrenceRule("0 * * * *"),
    "1day": RecurrenceRule("0 0 * * *"),
}
# Older clients send the short forms.
INTERVAL_RULES["1h"] = INTERVAL_RULES["1hour"]
INTERVAL_RULES["1d"] = INTERVAL_RULES["1day"]

DEFAULT_RULE = INTERVAL_RULES["30min"]


def recurrence_for(interval: str) -> RecurrenceRule:
    """
    Map a check interval to its recurrence rule.

    Unknown intervals fall back to every 30 minutes instead of failing, so a
    bad value never leaves a check unmonitored.
    """
    rule = INTERVAL_RULES.get(interval)
    if rule is None:
        logger.warning(f"Unknown interval {interval!r}, falling back to every 30 minutes")
        return DEFAULT_RULE
    return rule


@dataclass
class SyncSummary:
    """What a registry sync did."""

    scheduled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)


class CheckScheduler:
    """Registers, replaces and removes recurring probe jobs for checks."""

    def __init__(self, queue: ProbeQueue):
        self.queue = queue

    def schedule_check(self, check: Check, run_immediately: bool = False) -> None:
        """
        Register the recurring job for a check, replacing any previous one.

        Raises:
            InvalidJobPayload: the check cannot be turned into a probe job
            RegistryError: the job store rejected the change; a recurring job
                added by this call is removed again
        """
        payload = ProbeJob.from_check(check)
        key = JobKey(check.pk)
        rule = recurrence_for(check.interval)

        self.queue.add_recurring_job(key, payload, rule)

        if run_immediately:
            try:
                self.queue.add_one_shot_job(key.one_shot_id(), payload)
            except RegistryError:
                # Leave no half-registered check behind.
                self.queue.remove_recurring_job(key)
                raise

        logger.info(f"Check {key} scheduled with interval {check.interval} ({rule.cron})")

    def run_now(self, check: Check) -> None:
        """Enqueue a single immediate run of a check."""
        key = JobKey(check.pk)
        self.queue.add_one_shot_job(key.one_shot_id(), ProbeJob.from_check(check))
        logger.info(f"Check {key} queued for an immediate run")

    def remove_check(self, check_id) -> bool:
        """
        Cancel the recurring job of a check. Missing jobs are not an error.

        Jobs already running are left to finish.
        """
        key = JobKey(check_id)
        removed = self.queue.remove_recurring_job(key)
        if removed:
            logger.info(f"Check {key} removed from queue")
        else:
            logger.debug(f"No recurring job for check {key}")
        return removed

    def update_check(self, check: Check) -> None:
        """Re-register a changed check; the new schedule applies from its next tick."""
        self.remove_check(check.pk)
        self.schedule_check(check, run_immediately=False)

    def sync_checks(self) -> SyncSummary:
        """
        Reconcile the job registry with the active checks in the database.

        One failing check is logged and skipped; it never aborts the sync.
        Recurring jobs of checks that are no longer active are removed.
        """
        summary = SyncSummary()
        active_checks = list(Check.objects.filter(status=Check.STATUS_ACTIVE))
        logger.info(f"Syncing {len(active_checks)} active checks...")

        for check in active_checks:
            try:
                self.schedule_check(check, run_immediately=False)
            except Exception:
                logger.exception(f"Error scheduling check {check.pk} during sync")
                summary.failed.append(str(check.pk))
            else:
                summary.scheduled.append(str(check.pk))

        active_ids = {str(check.pk) for check in active_checks}
        for job in self.queue.list_recurring_jobs():
            if job.id in active_ids:
                continue
            try:
                self.queue.remove_recurring_job(JobKey(job.id))
            except Exception:
                logger.exception(f"Error removing orphaned job {job.id} during sync")
            else:
                summary.pruned.append(job.id)

        logger.info(
            f"Sync complete: {len(summary.scheduled)} scheduled, "
            f"{len(summary.failed)} failed, {len(summary.pruned)} pruned"
        )
        return summary
