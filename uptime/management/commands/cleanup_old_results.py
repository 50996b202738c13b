"""
Management command to purge expired check results.

Usage:
    python manage.py cleanup_old_results
    python manage.py cleanup_old_results --dry-run
    python manage.py cleanup_old_results --days 14

Each owner's results are kept for their plan's retention period unless
--days overrides it for everyone.
"""
from django.core.management.base import BaseCommand

from uptime.services.results import purge_expired_results


class Command(BaseCommand):
    help = "Delete check results older than their owner's retention period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Retention period in days (overrides plan retention)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        days = options["days"]
        dry_run = options["dry_run"]
        period = f"older than {days} days" if days is not None else "past their retention period"

        count = purge_expired_results(days=days, dry_run=dry_run)

        if dry_run:
            self.stdout.write(
                f"[DRY RUN] Would delete {count} check results {period}"
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f"Deleted {count} check results {period}")
            )
