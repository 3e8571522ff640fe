from __future__ import annotations

import signal
import threading

from django.core.management.base import BaseCommand

from modules.orders.deadlines import build_deadline_enforcer


class Command(BaseCommand):
    help = "Cancel negotiations past their deadline and warn those close to it."

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run a single sweep and exit.",
        )

    def handle(self, *args, **options):
        enforcer = build_deadline_enforcer()

        if options["once"]:
            report = enforcer.tick()
            self.stdout.write(
                self.style.SUCCESS(
                    "Sweep completed: "
                    f"cancelled={len(report.cancelled)}, "
                    f"warned={len(report.warned)}, "
                    f"failed={len(report.failed)}"
                )
            )
            return

        stop_event = threading.Event()
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, lambda *_: stop_event.set())

        self.stdout.write(
            f"Enforcing deadlines every {enforcer.interval_seconds}s (Ctrl+C to stop)..."
        )
        enforcer.run(stop_event)
