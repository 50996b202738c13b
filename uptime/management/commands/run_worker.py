"""
Management command to run the probe worker.

Usage:
    python manage.py run_worker
    python manage.py run_worker --no-sync
    python manage.py run_worker --registry-only

Starts the APScheduler-backed probe queue, reconciles it with the active
checks and processes jobs until interrupted (Ctrl+C or SIGTERM).
"""
import signal
import threading

from django.core.management.base import BaseCommand

from uptime.services.runtime import MonitoringRuntime


class Command(BaseCommand):
    help = "Run the probe worker"

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-sync",
            action="store_true",
            help="Skip reconciling the job registry with active checks on start",
        )
        parser.add_argument(
            "--registry-only",
            action="store_true",
            help="Sync the job registry and exit without processing jobs",
        )

    def handle(self, *args, **options):
        runtime = MonitoringRuntime.from_settings()

        if options["registry_only"]:
            summary = runtime.start(sync=True, paused=True)
            runtime.shutdown()
            self.stdout.write(
                self.style.SUCCESS(
                    f"Registry synced: {len(summary.scheduled)} scheduled, "
                    f"{len(summary.failed)} failed, {len(summary.pruned)} pruned"
                )
            )
            return

        self.stdout.write(self.style.SUCCESS("Starting probe worker..."))

        stop_event = threading.Event()

        def signal_handler(signum, frame):
            stop_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        runtime.start(sync=not options["no_sync"])

        self.stdout.write(
            self.style.SUCCESS("Worker running. Press Ctrl+C to stop.")
        )

        # Keep the main thread alive until a signal arrives
        while not stop_event.wait(1):
            pass

        self.stdout.write("\nShutting down worker...")
        runtime.shutdown(wait=True)
