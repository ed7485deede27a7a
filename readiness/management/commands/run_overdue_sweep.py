from django.core.management.base import BaseCommand, CommandError

from readiness.conf import readiness_setting
from readiness.exceptions import ReadinessError
from readiness.sweep import OverdueSweepService


class Command(BaseCommand):
    help = "Mark pending work-readiness assignments past their deadline as overdue."

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep running, sweeping once per interval.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=None,
            help="Seconds between sweeps with --loop (default: READINESS SWEEP_INTERVAL_SECONDS).",
        )
        parser.add_argument(
            "--salt",
            default=None,
            help="Job id prefix; a new salt forces a second run within the same hour.",
        )

    def handle(self, *args, **options):
        if options["loop"]:
            interval = options["interval"] or readiness_setting("SWEEP_INTERVAL_SECONDS")
            self.stdout.write(f"Sweeping every {interval}s…")
            OverdueSweepService.run_forever(interval=interval, salt=options["salt"])
            return

        try:
            result = OverdueSweepService.run_once(salt=options["salt"])
        except ReadinessError as e:
            raise CommandError(f"Overdue sweep failed: {e}") from e

        if result.skipped:
            self.stdout.write(f"Job {result.job_id} already ran this hour, nothing to do.")
            return
        message = (
            f"Job {result.job_id}: {result.processed_count} marked overdue, "
            f"{result.conflict_count} already moved on, {len(result.failed_ids)} failed"
        )
        if result.failed_ids:
            self.stdout.write(self.style.WARNING(message))
        else:
            self.stdout.write(self.style.SUCCESS(message))
