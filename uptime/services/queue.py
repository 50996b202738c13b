"""
Durable probe job queue built on APScheduler.

Recurring probe jobs are stored under the id of their check (see JobKey),
so the job store doubles as the registry of checks being probed. Jobs are
persisted with a SQLAlchemy job store and executed by a bounded thread pool.
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import timezone as dt_timezone

import httpx
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from django.conf import settings

from uptime.exceptions import InvalidJobPayload, RegistryError

logger = logging.getLogger(__name__)

# Textual reference so persistent job stores can serialize the callable
PROBE_JOB_REF = "uptime.services.worker:run_probe_job"


@dataclass(frozen=True)
class JobKey:
    """
    Registry key of a check's recurring job. The key is the check id.
    """

    check_id: str

    def __post_init__(self):
        object.__setattr__(self, "check_id", str(self.check_id).strip())
        if not self.check_id:
            raise InvalidJobPayload("Job key requires a check id")

    def __str__(self):
        return self.check_id

    def one_shot_id(self) -> str:
        """A disposable id that never collides with the recurring slot."""
        return f"{self.check_id}:once:{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ProbeJob:
    """Payload carried by every probe job."""

    check_id: str
    url: str
    owner_id: int
    timeout: int
    expected_status_code: int

    def __post_init__(self):
        object.__setattr__(self, "check_id", str(self.check_id))
        try:
            scheme = httpx.URL(self.url).scheme
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidJobPayload(f"Invalid URL {self.url!r}: {e}") from e
        if scheme not in ("http", "https"):
            raise InvalidJobPayload(f"Unsupported URL scheme in {self.url!r}")
        if not isinstance(self.timeout, int) or self.timeout <= 0:
            raise InvalidJobPayload(f"Timeout must be a positive integer, got {self.timeout!r}")
        if not isinstance(self.expected_status_code, int) or not 100 <= self.expected_status_code <= 599:
            raise InvalidJobPayload(
                f"Expected status must be an HTTP status code, got {self.expected_status_code!r}"
            )

    @classmethod
    def from_check(cls, check) -> "ProbeJob":
        return cls(
            check_id=str(check.pk),
            url=check.url,
            owner_id=check.owner_id,
            timeout=check.timeout,
            expected_status_code=check.expected_status_code,
        )

    @property
    def key(self) -> JobKey:
        return JobKey(self.check_id)

    def as_kwargs(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RecurrenceRule:
    """A fixed cron schedule, evaluated in UTC."""

    cron: str

    def trigger(self) -> CronTrigger:
        return CronTrigger.from_crontab(self.cron, timezone=dt_timezone.utc)


class ProbeQueue:
    """
    Job queue primitives used by the scheduler and the worker runtime.

    A queue started with paused=True only maintains the registry; it never
    executes jobs. Worker processes start it unpaused.
    """

    def __init__(
        self,
        jobstore=None,
        concurrency: int | None = None,
        misfire_grace_time: int | None = None,
    ):
        if concurrency is None:
            concurrency = getattr(settings, "WORKER_CONCURRENCY", 5)
        if misfire_grace_time is None:
            misfire_grace_time = getattr(settings, "JOB_MISFIRE_GRACE_TIME", 60)

        self.concurrency = concurrency
        self.scheduler = BackgroundScheduler(
            jobstores={"default": jobstore if jobstore is not None else MemoryJobStore()},
            executors={"default": ThreadPoolExecutor(max_workers=concurrency)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": misfire_grace_time,
            },
            timezone=dt_timezone.utc,
        )

    @classmethod
    def from_settings(cls) -> "ProbeQueue":
        url = getattr(settings, "JOB_STORE_URL", "")
        jobstore = SQLAlchemyJobStore(url=url) if url else MemoryJobStore()
        return cls(jobstore=jobstore)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, paused: bool = False) -> None:
        self.scheduler.start(paused=paused)
        logger.info(
            f"Probe queue started ({'registry only' if paused else f'{self.concurrency} workers'})"
        )

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Probe queue stopped")

    def add_listener(self, callback, mask) -> None:
        self.scheduler.add_listener(callback, mask)

    def add_recurring_job(self, key: JobKey, payload: ProbeJob, rule: RecurrenceRule):
        """Register (or replace) the recurring job stored under key."""
        if str(payload.key) != str(key):
            raise InvalidJobPayload(f"Payload for check {payload.check_id} cannot use key {key}")
        try:
            return self.scheduler.add_job(
                PROBE_JOB_REF,
                trigger=rule.trigger(),
                id=str(key),
                name=f"check-{key}",
                kwargs=payload.as_kwargs(),
                replace_existing=True,
            )
        except Exception as e:
            raise RegistryError(f"Could not register recurring job {key}: {e}") from e

    def add_one_shot_job(self, job_id: str, payload: ProbeJob):
        """Enqueue a single execution that runs as soon as a worker is free."""
        try:
            return self.scheduler.add_job(
                PROBE_JOB_REF,
                trigger="date",
                id=job_id,
                name=f"check-once-{payload.check_id}",
                kwargs=payload.as_kwargs(),
                misfire_grace_time=None,
            )
        except Exception as e:
            raise RegistryError(f"Could not enqueue job {job_id}: {e}") from e

    def remove_recurring_job(self, key: JobKey) -> bool:
        """Cancel the recurring job under key. Returns False if none existed."""
        try:
            self.scheduler.remove_job(str(key))
        except JobLookupError:
            return False
        except Exception as e:
            raise RegistryError(f"Could not remove recurring job {key}: {e}") from e
        return True

    def get_recurring_job(self, key: JobKey):
        job = self.scheduler.get_job(str(key))
        if job is not None and _is_recurring_probe(job):
            return job
        return None

    def list_recurring_jobs(self) -> list:
        return [job for job in self.scheduler.get_jobs() if _is_recurring_probe(job)]

    def add_housekeeping_job(self, func, trigger, job_id: str, name: str):
        return self.scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            name=name,
            replace_existing=True,
        )


def _is_recurring_probe(job) -> bool:
    return job.func_ref == PROBE_JOB_REF and isinstance(job.trigger, CronTrigger)
