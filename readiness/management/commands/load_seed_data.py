import json
from datetime import timedelta
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from readiness.conf import readiness_setting
from readiness.models import (
    Assignment, AssignmentStatus, JobRun, Notification, Submission, TeamMember, UnselectedWorker,
)
from readiness.timeutils import local_date


class Command(BaseCommand):
    help = "Load demo team members, assignments and submissions from JSON files in seed_data/."

    def add_arguments(self, parser):
        parser.add_argument(
            "--truncate",
            action="store_true",
            help="Delete existing data before loading.",
        )
        parser.add_argument(
            "--dir",
            default="seed_data",
            help="Directory containing JSON files (default: seed_data).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        base_dir = Path(options["dir"]).resolve()

        # 1. optional clean
        if options["truncate"]:
            self.stdout.write("Deleting existing records…")
            Notification.objects.all().delete()
            JobRun.objects.all().delete()
            UnselectedWorker.objects.all().delete()
            Submission.objects.all().delete()
            Assignment.objects.all().delete()
            TeamMember.objects.all().delete()

        # 2. load json helpers
        def load_json(name, required=True):
            path = base_dir / f"{name}.json"
            if not path.exists():
                if not required:
                    return []
                raise CommandError(f"{path} not found")
            with open(path) as f:
                return json.load(f)

        def instant(raw, field):
            value = parse_datetime(raw) if raw else None
            if value is None or timezone.is_naive(value):
                raise CommandError(f"{field} must be an ISO timestamp with offset, got {raw!r}")
            return value

        members     = load_json("team_members", required=False)
        assigns     = load_json("assignments")
        submissions = load_json("submissions")
        now = timezone.now()
        due_offset = timedelta(hours=readiness_setting("DUE_OFFSET_HOURS"))

        # 3. create records (bulk for speed; rows already present are skipped)
        before = (TeamMember.objects.count(), Assignment.objects.count(), Submission.objects.count())

        TeamMember.objects.bulk_create(
            [
                TeamMember(
                    worker_id=m["worker_id"],
                    team=m["team"],
                    team_leader_id=m.get("team_leader_id"),
                    is_active=m.get("is_active", True),
                )
                for m in members
            ],
            ignore_conflicts=True,
        )

        rows = []
        for a in assigns:
            created_at = instant(a["created_at"], "created_at") if a.get("created_at") else now
            status = a.get("status", AssignmentStatus.PENDING)
            if status not in AssignmentStatus.values:
                raise CommandError(f"Unknown status {status!r}")
            completed_at = instant(a.get("completed_at"), "completed_at") if status == AssignmentStatus.COMPLETED else None
            rows.append(Assignment(
                worker_id=a["worker_id"],
                team_leader_id=a["team_leader_id"],
                team=a["team"],
                assigned_date=parse_date(a["assigned_date"]),
                due_time=instant(a["due_time"], "due_time") if a.get("due_time") else created_at + due_offset,
                status=status,
                notes=a.get("notes"),
                completed_at=completed_at,
                linked_submission_id=a.get("linked_submission_id"),
                created_at=created_at,
                updated_at=created_at,
            ))
        Assignment.objects.bulk_create(rows, ignore_conflicts=True)

        Submission.objects.bulk_create(
            [
                Submission(
                    worker_id=s["worker_id"],
                    team_leader_id=s.get("team_leader_id"),
                    team=s["team"],
                    readiness_level=s["readiness_level"],
                    fatigue_level=s.get("fatigue_level"),
                    pain_discomfort=s.get("pain_discomfort", False),
                    mood=s.get("mood"),
                    notes=s.get("notes"),
                    submitted_at=instant(s["submitted_at"], "submitted_at"),
                    submitted_date=local_date(instant(s["submitted_at"], "submitted_at")),
                )
                for s in submissions
            ],
            ignore_conflicts=True,
        )

        after = (TeamMember.objects.count(), Assignment.objects.count(), Submission.objects.count())
        inserted = [a - b for a, b in zip(after, before)]
        skipped = len(members) + len(rows) + len(submissions) - sum(inserted)

        self.stdout.write(self.style.SUCCESS(
            f"✅  Seed data loaded: {inserted[0]} team member(s), {inserted[1]} assignment(s), "
            f"{inserted[2]} submission(s); {skipped} duplicate(s) skipped"
        ))
