"""
Tests for the cleanup_old_results management command.
"""
import pytest
from django.utils import timezone
from datetime import timedelta

from tests.factories import CheckResultFactory


pytestmark = pytest.mark.django_db


class TestCleanupOldResults:
    """Tests for the cleanup_old_results management command."""

    def test_deletes_expired_results(self, check):
        """Deletes results older than the owner's retention period."""
        from django.core.management import call_command
        from uptime.models import CheckResult

        now = timezone.now()
        old_result = CheckResultFactory(monitored_check=check, timestamp=now - timedelta(days=10))
        new_result = CheckResultFactory(monitored_check=check, timestamp=now - timedelta(days=1))

        call_command("cleanup_old_results")

        assert not CheckResult.objects.filter(pk=old_result.pk).exists()
        assert CheckResult.objects.filter(pk=new_result.pk).exists()

    def test_days_option(self, check):
        """--days overrides the plan retention."""
        from django.core.management import call_command
        from uptime.models import CheckResult

        result = CheckResultFactory(monitored_check=check, timestamp=timezone.now() - timedelta(days=3))

        call_command("cleanup_old_results", days=2)

        assert not CheckResult.objects.filter(pk=result.pk).exists()

    def test_dry_run_does_not_delete(self, check, capsys):
        """Dry run shows what would be deleted without deleting."""
        from django.core.management import call_command
        from uptime.models import CheckResult

        old_result = CheckResultFactory(monitored_check=check, timestamp=timezone.now() - timedelta(days=10))

        call_command("cleanup_old_results", dry_run=True)

        captured = capsys.readouterr()
        assert "[DRY RUN] Would delete 1 check results" in captured.out
        assert CheckResult.objects.filter(pk=old_result.pk).exists()

    def test_reports_deleted_count(self, check, capsys):
        """Command reports how many records were deleted."""
        from django.core.management import call_command

        now = timezone.now()
        for days in (8, 9, 10):
            CheckResultFactory(monitored_check=check, timestamp=now - timedelta(days=days))

        call_command("cleanup_old_results", days=7)

        captured = capsys.readouterr()
        assert "Deleted 3 check results older than 7 days" in captured.out
