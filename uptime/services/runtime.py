"""
Monitoring runtime: builds the pipeline services and owns their lifecycle.

Everything is constructed explicitly at process start and handed to its
consumers; nothing is created on import.
"""
import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings

from uptime.services.alerts import AlertDispatcher
from uptime.services.notifiers import EmailSender, TelegramSender
from uptime.services.prober import HttpProber
from uptime.services.queue import ProbeQueue
from uptime.services.results import ResultStore
from uptime.services.scheduler import CheckScheduler, SyncSummary
from uptime.services.worker import ProbeWorker, bind_worker, unbind_worker

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "housekeeping:purge_results"
REFRESH_JOB_ID = "housekeeping:registry_refresh"


def refresh_registry() -> None:
    """
    No-op tick. Each run makes the scheduler re-read the job store, which
    picks up jobs registered by other processes.
    """
    logger.debug("Registry refresh tick")


class MonitoringRuntime:
    """The queue, scheduler and worker of one process, wired together."""

    def __init__(self, queue: ProbeQueue, scheduler: CheckScheduler, worker: ProbeWorker):
        self.queue = queue
        self.scheduler = scheduler
        self.worker = worker
        self.queue.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    @classmethod
    def from_settings(cls, queue: ProbeQueue | None = None) -> "MonitoringRuntime":
        queue = queue or ProbeQueue.from_settings()
        worker = ProbeWorker(
            prober=HttpProber(),
            result_store=ResultStore(),
            dispatcher=AlertDispatcher(
                email_sender=EmailSender(),
                telegram_sender=TelegramSender(),
            ),
        )
        return cls(queue=queue, scheduler=CheckScheduler(queue), worker=worker)

    def start(self, sync: bool = True, paused: bool = False) -> SyncSummary | None:
        """
        Start processing jobs.

        Args:
            sync: reconcile the job registry with the active checks first
            paused: keep the registry without executing jobs
        """
        bind_worker(self.worker)
        self.queue.start(paused=paused)
        self._add_housekeeping_jobs()

        summary = self.scheduler.sync_checks() if sync else None
        logger.info(f"Monitoring runtime started in region {self.worker.region}")
        return summary

    def shutdown(self, wait: bool = True) -> None:
        """Stop the queue. Running jobs finish when wait is True."""
        self.queue.shutdown(wait=wait)
        unbind_worker()
        logger.info("Monitoring runtime stopped")

    def _add_housekeeping_jobs(self) -> None:
        # Daily at 3:00 AM UTC
        self.queue.add_housekeeping_job(
            "uptime.services.results:purge_expired_results",
            trigger=CronTrigger(hour=3, minute=0, timezone="UTC"),
            job_id=PURGE_JOB_ID,
            name="Daily Result Purge",
        )
        poll_seconds = getattr(settings, "REGISTRY_POLL_SECONDS", 15)
        self.queue.add_housekeeping_job(
            "uptime.services.runtime:refresh_registry",
            trigger=IntervalTrigger(seconds=poll_seconds),
            job_id=REFRESH_JOB_ID,
            name="Registry Refresh",
        )

    def _on_job_event(self, event) -> None:
        if event.code == EVENT_JOB_MISSED:
            logger.warning(f"Job {event.job_id} missed its run time ({event.scheduled_run_time})")
            return
        logger.error(f"Job {event.job_id} failed after retries: {event.exception}")
