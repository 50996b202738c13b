"""
Probe worker: the pipeline every probe job runs through.

    probe -> store -> alert (failures only)

A store failure fails the job, which is retried with exponential backoff.
An alert failure is logged and never fails the job.
"""
import logging
import threading
from dataclasses import dataclass

from django.conf import settings
from django.db import close_old_connections
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from uptime.exceptions import AlertDispatchError, CheckGone, InvalidJobPayload
from uptime.services.alerts import AlertDispatcher
from uptime.services.prober import HttpProber, ProbeResult
from uptime.services.queue import ProbeJob
from uptime.services.results import ResultStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeOutcome:
    """What one job execution produced."""

    check_id: str
    probe: ProbeResult
    check_result_id: int | None = None
    alerts_created: int = 0
    alert_error: str = ""
    skipped: bool = False


class ProbeWorker:
    """Runs the probe pipeline for a single job."""

    def __init__(
        self,
        prober: HttpProber,
        result_store: ResultStore,
        dispatcher: AlertDispatcher,
        region: str | None = None,
    ):
        self.prober = prober
        self.result_store = result_store
        self.dispatcher = dispatcher
        self.region = region or getattr(settings, "WORKER_REGION", "us-east")

    def process(self, job: ProbeJob) -> ProbeOutcome:
        logger.info(f"Processing check {job.check_id} for URL: {job.url}")

        probe = self.prober.probe(job.url, job.timeout, job.expected_status_code)

        try:
            stored = self.result_store.record(job.check_id, self.region, probe)
        except CheckGone:
            logger.warning(f"Check {job.check_id} was removed before its result was saved")
            return ProbeOutcome(check_id=job.check_id, probe=probe, skipped=True)

        if stored.success:
            return ProbeOutcome(
                check_id=job.check_id,
                probe=probe,
                check_result_id=stored.check_result_id,
            )

        try:
            alerts = self.dispatcher.handle_failure(job.check_id, stored.check_result_id)
        except AlertDispatchError as e:
            logger.error(f"Alerting failed for check {job.check_id}: {e}")
            return ProbeOutcome(
                check_id=job.check_id,
                probe=probe,
                check_result_id=stored.check_result_id,
                alert_error=str(e),
            )

        return ProbeOutcome(
            check_id=job.check_id,
            probe=probe,
            check_result_id=stored.check_result_id,
            alerts_created=len(alerts),
        )

    def retrying(self) -> Retrying:
        """Retry policy for failed job executions."""
        return Retrying(
            stop=stop_after_attempt(getattr(settings, "JOB_MAX_ATTEMPTS", 3)),
            wait=wait_exponential(multiplier=getattr(settings, "JOB_RETRY_BACKOFF", 2), max=60),
            retry=retry_if_not_exception_type(InvalidJobPayload),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


# The worker bound to this process. Job stores persist a textual reference
# to run_probe_job, so jobs reach their worker through this binding.
_bound_worker: ProbeWorker | None = None
_bind_lock = threading.Lock()


def bind_worker(worker: ProbeWorker) -> None:
    global _bound_worker
    with _bind_lock:
        _bound_worker = worker


def unbind_worker() -> None:
    global _bound_worker
    with _bind_lock:
        _bound_worker = None


def get_bound_worker() -> ProbeWorker:
    worker = _bound_worker
    if worker is None:
        raise RuntimeError("No probe worker is bound to this process")
    return worker


def run_probe_job(**payload) -> ProbeOutcome:
    """
    Entry point of every probe job.

    Args:
        payload: ProbeJob fields as stored with the job
    """
    job = ProbeJob(**payload)
    worker = get_bound_worker()

    close_old_connections()
    try:
        return worker.retrying()(worker.process, job)
    finally:
        close_old_connections()
