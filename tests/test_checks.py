"""
Tests for the check lifecycle service.
"""
import pytest

from tests.factories import CheckFactory, ProfileFactory


pytestmark = pytest.mark.django_db


@pytest.fixture
def service(check_scheduler):
    from uptime.services.checks import CheckService

    return CheckService(check_scheduler)


@pytest.fixture
def starter():
    return ProfileFactory(starter=True)


class TestCreateCheck:
    """Tests for CheckService.create_check."""

    def test_creates_and_schedules(self, service, starter, probe_queue, django_capture_on_commit_callbacks):
        """A new check is active, registered, and queued for an immediate run."""
        from uptime.models import Check

        with django_capture_on_commit_callbacks(execute=True):
            check = service.create_check(starter.user, "https://example.com", interval="1min")

        assert check.status == Check.STATUS_ACTIVE
        assert [job.id for job in probe_queue.list_recurring_jobs()] == [str(check.pk)]
        assert len(probe_queue.scheduler.get_jobs()) == 2

    def test_plan_limit_blocks_creation(self, service):
        """Plan violations raise before anything is saved or scheduled."""
        from uptime.exceptions import PlanLimitError
        from uptime.models import Check

        profile = ProfileFactory()

        with pytest.raises(PlanLimitError):
            service.create_check(profile.user, "https://example.com", interval="5min")

        assert Check.objects.count() == 0

    def test_registry_failure_rolls_back(self, service, starter, probe_queue):
        """A check that cannot be scheduled is not saved."""
        from unittest.mock import patch
        from uptime.exceptions import RegistryError
        from uptime.models import Check

        with patch.object(probe_queue, "add_recurring_job", side_effect=RegistryError("down")):
            with pytest.raises(RegistryError):
                service.create_check(starter.user, "https://example.com")

        assert Check.objects.count() == 0

    def test_first_run_waits_for_commit(self, service, starter, probe_queue, django_capture_on_commit_callbacks):
        """The immediate run is only enqueued once the check is committed."""
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            check = service.create_check(starter.user, "https://example.com")

        assert len(probe_queue.scheduler.get_jobs()) == 1
        assert len(callbacks) == 1

        callbacks[0]()

        one_shots = [job for job in probe_queue.scheduler.get_jobs() if job.id.startswith(f"{check.pk}:once:")]
        assert len(one_shots) == 1

    def test_first_run_failure_keeps_check(self, service, starter, probe_queue, django_capture_on_commit_callbacks):
        """A committed check stays scheduled when its first run cannot be queued."""
        from unittest.mock import patch
        from uptime.exceptions import RegistryError
        from uptime.models import Check

        with patch.object(probe_queue, "add_one_shot_job", side_effect=RegistryError("down")):
            with django_capture_on_commit_callbacks(execute=True):
                check = service.create_check(starter.user, "https://example.com")

        assert Check.objects.filter(pk=check.pk).exists()
        assert [job.id for job in probe_queue.list_recurring_jobs()] == [str(check.pk)]

    def test_rolled_back_create_queues_nothing(self, service, starter, probe_queue, django_capture_on_commit_callbacks):
        """No immediate run is queued for a check whose transaction never commits."""
        from django.db import transaction
        from uptime.models import Check

        class Abort(Exception):
            pass

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(Abort):
                with transaction.atomic():
                    service.create_check(starter.user, "https://example.com")
                    raise Abort

        assert callbacks == []
        assert all(":once:" not in job.id for job in probe_queue.scheduler.get_jobs())
        assert Check.objects.count() == 0


class TestCheckLifecycle:
    """Tests for update, pause, resume and delete."""

    def test_update_reschedules(self, service, starter, probe_queue):
        from uptime.services.queue import JobKey

        check = service.create_check(starter.user, "https://example.com", interval="5min")

        service.update_check(check, interval="1hour", url="https://example.org")

        job = probe_queue.get_recurring_job(JobKey(check.pk))
        assert job.kwargs["url"] == "https://example.org"
        assert len(probe_queue.list_recurring_jobs()) == 1

    def test_update_rejects_unknown_fields(self, service, starter):
        check = CheckFactory(owner=starter.user)

        with pytest.raises(ValueError):
            service.update_check(check, owner_id=99)

    def test_update_to_paused_removes_job(self, service, starter, probe_queue):
        from uptime.models import Check

        check = service.create_check(starter.user, "https://example.com")

        service.update_check(check, status=Check.STATUS_PAUSED)

        assert probe_queue.list_recurring_jobs() == []

    def test_pause_and_resume(self, service, starter, probe_queue):
        """Pausing removes the job, resuming registers it again."""
        from uptime.models import Check

        check = service.create_check(starter.user, "https://example.com")

        service.pause_check(check)
        check.refresh_from_db()
        assert check.status == Check.STATUS_PAUSED
        assert probe_queue.list_recurring_jobs() == []

        service.resume_check(check)
        check.refresh_from_db()
        assert check.status == Check.STATUS_ACTIVE
        assert [job.id for job in probe_queue.list_recurring_jobs()] == [str(check.pk)]

    def test_resume_respects_check_limit(self, service):
        from uptime.exceptions import PlanLimitError
        from uptime.models import Check

        profile = ProfileFactory(max_checks=1)
        CheckFactory(owner=profile.user, interval="30min")
        paused = CheckFactory(owner=profile.user, interval="30min", status=Check.STATUS_PAUSED)

        with pytest.raises(PlanLimitError):
            service.resume_check(paused)

    def test_soft_delete(self, service, starter, probe_queue):
        from uptime.models import Check

        check = service.create_check(starter.user, "https://example.com")

        service.delete_check(check)

        check.refresh_from_db()
        assert check.status == Check.STATUS_DELETED
        assert probe_queue.list_recurring_jobs() == []

    def test_hard_delete(self, service, starter, probe_queue):
        from uptime.models import Check

        check = service.create_check(starter.user, "https://example.com")

        service.delete_check(check, hard=True)

        assert not Check.objects.exists()
        assert probe_queue.list_recurring_jobs() == []
