import json
import tempfile
import threading
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from io import StringIO
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, transaction
from django.test import TestCase, override_settings

from .exceptions import (
    AssignmentNotFound, ConflictError, DuplicateAssignmentError, InvariantViolation,
    OperationCancelled, StoreUnavailableError, UnknownWorkerError, UnselectedCaseNotFound,
    ValidationError,
)
from .models import (
    Assignment, AssignmentStatus, JobRun, Notification, Submission, TeamMember, UnselectedReason,
    UnselectedWorker,
)
from .notifications import (
    ASSIGNMENT_CREATED, ASSIGNMENT_OVERDUE, NotificationDispatcher, build_assignment_created,
)
from .operations import (
    close_unselected_worker_case, compute_compliance_score, compute_trend, list_unselected_workers,
    run_overdue_sweep,
)
from .schemas import ComplianceCounts, DateWindow, TrendBucketSchema, UnselectedWorkerIn
from .scoring import (
    ComplianceService, completion_points, grace_period_bonus, improvement_bonus,
    late_rate_points, letter_grade, on_time_points, score_compliance, volume_bonus,
)
from .services import AssignmentLifecycleService, AssignmentStatsService
from .store import AssignmentStore
from .sweep import OverdueSweepService
from .timeutils import day_bounds, resolve_due_time
from .trends import TrendService, aggregate_trend, validate_trend

UTC = dt_timezone.utc

TEST_READINESS = {
    "UTC_OFFSET_HOURS": 8,
    "DUE_OFFSET_HOURS": 24,
    "SWEEP_JOB_SALT": "mark-overdue",
    "SWEEP_INTERVAL_SECONDS": 3600,
    "SWEEP_MAX_RETRIES": 3,
    "SWEEP_BACKOFF_SECONDS": 0.5,
    "NOTIFICATION_BACKEND": "readiness.notifications.DatabaseNotificationBackend",
    "ON_TIME_BASIS": "completion",
    "MAX_WINDOW_DAYS": 366,
}


class FailingNotificationBackend:
    def send(self, payload):
        raise ConnectionError("messaging service down")


@override_settings(READINESS=TEST_READINESS)
class ReadinessTestBase(TestCase):
    """Base test class with common setup and helper methods."""

    def setUp(self):
        self.base_date = date(2024, 6, 1)
        self.team = "A"
        self.team_leader = "tl1"
        # 08:00 local on the base date; default deadline is 24h later
        self.created_at = datetime(2024, 6, 1, 0, 0, tzinfo=UTC)
        self.due_time = self.created_at + timedelta(hours=24)
        self.after_due = self.due_time + timedelta(hours=1)
        for n in range(1, 10):
            AssignmentStore.register_team_member(f"w{n}", self.team, self.team_leader)

    def create(self, worker_ids, assigned_date=None, **kwargs):
        """Helper to create assignments as the team leader at ``created_at``."""
        kwargs.setdefault("now", self.created_at)
        return AssignmentLifecycleService.create_assignments(
            worker_ids, assigned_date or self.base_date, self.team, self.team_leader, **kwargs
        )

    def make_assignment(self, worker_id, status=AssignmentStatus.PENDING, assigned_date=None,
                        team=None, on_time=True):
        """Insert a row directly in a given state (for scoring fixtures)."""
        completed_at = None
        if status == AssignmentStatus.COMPLETED:
            offset = timedelta(hours=-2) if on_time else timedelta(hours=2)
            completed_at = self.due_time + offset
        return Assignment.objects.create(
            worker_id=worker_id,
            team_leader_id=self.team_leader,
            team=team or self.team,
            assigned_date=assigned_date or self.base_date,
            due_time=self.due_time,
            status=status,
            completed_at=completed_at,
            linked_submission_id="s-" + worker_id if completed_at else None,
            created_at=self.created_at,
            updated_at=self.created_at,
        )

    def notifications(self, notification_type):
        return Notification.objects.filter(type=notification_type)

    def assert_completed_at_invariant(self):
        for assignment in Assignment.objects.all():
            self.assertEqual(
                assignment.status == AssignmentStatus.COMPLETED,
                assignment.completed_at is not None,
                f"{assignment} breaks completed_at invariant",
            )


class AssignmentCreationTest(ReadinessTestBase):
    """Test creation of daily assignments."""

    def test_creates_pending_assignments_with_default_deadline(self):
        created = self.create(["w1", "w2"], notes="Before shift")

        self.assertEqual(len(created), 2)
        for assignment in Assignment.objects.all():
            self.assertEqual(assignment.status, AssignmentStatus.PENDING)
            self.assertEqual(assignment.due_time, self.due_time)
            self.assertEqual(assignment.team, "A")
            self.assertEqual(assignment.team_leader_id, "tl1")
            self.assertIsNone(assignment.completed_at)

    def test_one_notification_per_created_assignment(self):
        self.create(["w1", "w2"])

        sent = self.notifications(ASSIGNMENT_CREATED)
        self.assertEqual(sent.count(), 2)
        self.assertEqual(set(sent.values_list("recipient_id", flat=True)), {"w1", "w2"})
        for notification in sent:
            self.assertEqual(notification.sender_id, "tl1")
            self.assertEqual(notification.priority, "high")
            self.assertIn("assignment_id", notification.metadata)

    def test_local_time_of_day_deadline(self):
        # 17:00 at UTC+8 is 09:00 UTC on the same day
        created = self.create(["w1"], due_time=time(17, 0))

        self.assertEqual(created[0].due_time, datetime(2024, 6, 1, 9, 0, tzinfo=UTC))

    def test_second_identical_call_is_rejected(self):
        self.create(["w1"])

        with self.assertRaises(ValidationError):
            self.create(["w1"])

        self.assertEqual(Assignment.objects.filter(worker_id="w1").count(), 1)
        self.assertEqual(self.notifications(ASSIGNMENT_CREATED).count(), 1)

    def test_batch_with_one_duplicate_writes_nothing(self):
        self.create(["w1"])

        with self.assertRaises(DuplicateAssignmentError) as ctx:
            self.create(["w2", "w1"])

        self.assertEqual(ctx.exception.worker_ids, ["w1"])
        self.assertFalse(Assignment.objects.filter(worker_id="w2").exists())

    def test_worker_listed_twice_is_rejected(self):
        with self.assertRaises(DuplicateAssignmentError):
            self.create(["w1", "w1"])
        self.assertEqual(Assignment.objects.count(), 0)

    def test_cancelled_assignment_does_not_block_new_one(self):
        first = self.create(["w1"])[0]
        AssignmentLifecycleService.cancel_assignment(first.id)

        second = self.create(["w1"])[0]

        self.assertNotEqual(first.id, second.id)
        self.assertEqual(Assignment.objects.filter(worker_id="w1").count(), 2)

    def test_other_day_is_independent(self):
        self.create(["w1"])
        self.create(["w1"], assigned_date=date(2024, 6, 2))
        self.assertEqual(Assignment.objects.filter(worker_id="w1").count(), 2)

    def test_invalid_requests(self):
        with self.assertRaises(ValidationError):
            self.create([])
        with self.assertRaises(ValidationError):
            self.create(["  "])
        with self.assertRaises(ValidationError):
            AssignmentLifecycleService.create_assignments(
                ["w1"], self.base_date, "", self.team_leader, now=self.created_at
            )
        # A deadline already behind us
        with self.assertRaises(ValidationError):
            self.create(["w1"], due_time=time(7, 0))
        with self.assertRaises(ValidationError):
            self.create(["w1"], due_time=datetime(2024, 6, 2, 9, 0))

    def test_unique_constraint_backs_up_the_check(self):
        self.create(["w1"])

        # Simulate a concurrent creator that passed the pre-check
        with patch.object(AssignmentStore, "find_active_for_workers", return_value=[]):
            with self.assertRaises(DuplicateAssignmentError):
                self.create(["w1"])
        self.assertEqual(Assignment.objects.filter(worker_id="w1").count(), 1)

    def test_notification_failure_does_not_roll_back(self):
        with patch.object(NotificationDispatcher, "get_backend", return_value=FailingNotificationBackend()):
            with self.assertLogs("readiness.notifications", level="WARNING"):
                created = self.create(["w1"])

        self.assertEqual(len(created), 1)
        self.assertTrue(Assignment.objects.filter(worker_id="w1").exists())

    def test_logging_backend(self):
        settings = {**TEST_READINESS, "NOTIFICATION_BACKEND": "readiness.notifications.LoggingNotificationBackend"}
        with override_settings(READINESS=settings):
            with self.assertLogs("readiness.notifications", level="INFO") as logs:
                self.create(["w1"])

        self.assertEqual(self.notifications(ASSIGNMENT_CREATED).count(), 0)
        self.assertIn("w1", "\n".join(logs.output))

    def test_cancel_signal_stops_before_store_call(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(OperationCancelled):
            self.create(["w1"], cancel_event=cancel)
        self.assertEqual(Assignment.objects.count(), 0)

    def test_workers_must_belong_to_the_team(self):
        AssignmentStore.register_team_member("b1", "B", "tl2")
        AssignmentStore.register_team_member("a-other", self.team, "tl2")
        AssignmentStore.register_team_member("gone", self.team, self.team_leader, is_active=False)

        for outsider in ("nobody", "b1", "a-other", "gone"):
            with self.assertRaises(UnknownWorkerError) as ctx:
                self.create(["w1", outsider])
            self.assertEqual(ctx.exception.worker_ids, [outsider])
            self.assertIsInstance(ctx.exception, ValidationError)

        self.assertEqual(Assignment.objects.count(), 0)
        self.assertEqual(self.notifications(ASSIGNMENT_CREATED).count(), 0)

    def test_member_without_a_team_leader_can_be_assigned(self):
        AssignmentStore.register_team_member("floater", self.team)
        created = self.create(["floater"])
        self.assertEqual(created[0].worker_id, "floater")


class AssignmentTransitionTest(ReadinessTestBase):
    """Test completion and cancellation of assignments."""

    def setUp(self):
        super().setUp()
        self.assignment = self.create(["w1"])[0]

    def test_complete_on_time(self):
        done = AssignmentLifecycleService.complete_assignment(
            self.assignment.id, "sub-1", completed_at=self.due_time - timedelta(hours=3)
        )

        self.assertEqual(done.status, AssignmentStatus.COMPLETED)
        self.assertEqual(done.linked_submission_id, "sub-1")
        self.assertTrue(done.is_on_time)
        self.assert_completed_at_invariant()

    def test_late_completion_while_still_pending_is_accepted(self):
        completed_at = self.due_time + timedelta(hours=2)

        done = AssignmentLifecycleService.complete_assignment(
            self.assignment.id, "sub-1", completed_at=completed_at
        )

        self.assertEqual(done.status, AssignmentStatus.COMPLETED)
        self.assertGreater(done.completed_at, done.due_time)
        self.assertFalse(done.is_on_time)

    def test_overdue_can_still_be_completed(self):
        OverdueSweepService.run_once(now=self.after_due)

        done = AssignmentLifecycleService.complete_assignment(
            self.assignment.id, "sub-1", completed_at=self.after_due + timedelta(minutes=5)
        )

        self.assertEqual(done.status, AssignmentStatus.COMPLETED)
        self.assertFalse(done.is_on_time)

    def test_completion_survives_race_with_sweep(self):
        real_transition = AssignmentStore.transition
        calls = []

        def sweep_wins_first(assignment_id, from_status, to_status, extra=None, now=None, cancel_event=None):
            if not calls:
                Assignment.objects.filter(pk=assignment_id).update(status=AssignmentStatus.OVERDUE)
            calls.append(from_status)
            return real_transition(assignment_id, from_status, to_status, extra=extra, now=now, cancel_event=cancel_event)

        with patch.object(AssignmentStore, "transition", side_effect=sweep_wins_first):
            done = AssignmentLifecycleService.complete_assignment(
                self.assignment.id, "sub-1", completed_at=self.after_due
            )

        self.assertEqual(calls, [AssignmentStatus.PENDING, AssignmentStatus.OVERDUE])
        self.assertEqual(done.status, AssignmentStatus.COMPLETED)

    def test_repeat_completion_with_same_submission_is_idempotent(self):
        first = AssignmentLifecycleService.complete_assignment(self.assignment.id, "sub-1")
        again = AssignmentLifecycleService.complete_assignment(self.assignment.id, "sub-1")

        self.assertEqual(first.completed_at, again.completed_at)
        with self.assertRaises(ConflictError):
            AssignmentLifecycleService.complete_assignment(self.assignment.id, "sub-2")

    def test_cancelled_cannot_be_completed(self):
        AssignmentLifecycleService.cancel_assignment(self.assignment.id)

        with self.assertRaises(ConflictError):
            AssignmentLifecycleService.complete_assignment(self.assignment.id, "sub-1")

    def test_cancel_pending_and_overdue(self):
        cancelled = AssignmentLifecycleService.cancel_assignment(self.assignment.id)
        self.assertEqual(cancelled.status, AssignmentStatus.CANCELLED)

        other = self.create(["w2"])[0]
        OverdueSweepService.run_once(now=self.after_due)
        cancelled = AssignmentLifecycleService.cancel_assignment(other.id)
        self.assertEqual(cancelled.status, AssignmentStatus.CANCELLED)
        self.assertIsNone(cancelled.completed_at)

    def test_cancel_completed_or_cancelled_raises_conflict(self):
        AssignmentLifecycleService.complete_assignment(self.assignment.id, "sub-1")
        with self.assertRaises(ConflictError) as ctx:
            AssignmentLifecycleService.cancel_assignment(self.assignment.id)
        self.assertEqual(ctx.exception.actual, AssignmentStatus.COMPLETED)

        other = self.create(["w2"])[0]
        AssignmentLifecycleService.cancel_assignment(other.id)
        with self.assertRaises(ConflictError):
            AssignmentLifecycleService.cancel_assignment(other.id)

    def test_store_transition_is_compare_and_swap(self):
        with self.assertRaises(ConflictError) as ctx:
            AssignmentStore.transition(self.assignment.id, AssignmentStatus.OVERDUE, AssignmentStatus.CANCELLED)

        self.assertEqual(ctx.exception.expected, AssignmentStatus.OVERDUE)
        self.assertEqual(ctx.exception.actual, AssignmentStatus.PENDING)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.PENDING)

    def test_unknown_assignment(self):
        with self.assertRaises(AssignmentNotFound):
            AssignmentLifecycleService.cancel_assignment("not-a-uuid")
        with self.assertRaises(AssignmentNotFound):
            AssignmentStore.transition(
                "6f1c1c64-8d3a-4a53-a8a4-0e0f3b1de001", AssignmentStatus.PENDING, AssignmentStatus.CANCELLED
            )

    def test_database_rejects_completed_without_timestamp(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Assignment.objects.filter(pk=self.assignment.id).update(status=AssignmentStatus.COMPLETED)

    def test_complete_for_submission(self):
        submitted_at = datetime(2024, 6, 1, 3, 0, tzinfo=UTC)
        submission = AssignmentStore.create_submission(
            "w1", self.team, "fit", submitted_at=submitted_at, team_leader_id=self.team_leader
        )

        done = AssignmentLifecycleService.complete_for_submission(submission)

        self.assertEqual(done.linked_submission_id, str(submission.id))
        self.assertEqual(done.completed_at, submitted_at)

        loner = AssignmentStore.create_submission("w9", self.team, "minor", submitted_at=submitted_at)
        self.assertIsNone(AssignmentLifecycleService.complete_for_submission(loner))


class AssignmentQueryTest(ReadinessTestBase):
    """Test read-side lookups."""

    def test_get_worker_assignment_and_can_submit(self):
        assignment = self.create(["w1"])[0]

        found = AssignmentLifecycleService.get_worker_assignment("w1", self.base_date)
        self.assertEqual(found.id, assignment.id)
        self.assertTrue(AssignmentLifecycleService.can_submit("w1", self.base_date))
        self.assertIsNone(AssignmentLifecycleService.get_worker_assignment("w2", self.base_date))
        self.assertFalse(AssignmentLifecycleService.can_submit("w2", self.base_date))

        AssignmentLifecycleService.complete_assignment(assignment.id, "sub-1")
        self.assertFalse(AssignmentLifecycleService.can_submit("w1", self.base_date))

    def test_overdue_assignment_closes_submission(self):
        self.create(["w1"])
        OverdueSweepService.run_once(now=self.after_due)

        self.assertIsNotNone(AssignmentLifecycleService.get_worker_assignment("w1", self.base_date))
        self.assertFalse(AssignmentLifecycleService.can_submit("w1", self.base_date))

    def test_cancelled_assignment_is_not_the_worker_assignment(self):
        assignment = self.create(["w1"])[0]
        AssignmentLifecycleService.cancel_assignment(assignment.id)

        self.assertIsNone(AssignmentLifecycleService.get_worker_assignment("w1", self.base_date))

    def test_team_leader_listing_filters(self):
        a1, a2 = self.create(["w1", "w2"])
        self.create(["w1"], assigned_date=date(2024, 6, 2))
        AssignmentLifecycleService.cancel_assignment(a2.id)

        everything = AssignmentLifecycleService.list_team_leader_assignments("tl1", status="all")
        self.assertEqual(len(everything), 3)
        on_day = AssignmentLifecycleService.list_team_leader_assignments("tl1", assigned_date=self.base_date)
        self.assertEqual(len(on_day), 2)
        cancelled = AssignmentLifecycleService.list_team_leader_assignments("tl1", status="cancelled")
        self.assertEqual([a.id for a in cancelled], [a2.id])
        with self.assertRaises(ValidationError):
            AssignmentLifecycleService.list_team_leader_assignments("tl1", status="lost")

    def test_list_by_worker_range(self):
        self.create(["w1"])
        self.create(["w1"], assigned_date=date(2024, 6, 3))

        rows = AssignmentStore.list_by_worker("w1", date(2024, 6, 1), date(2024, 6, 2))
        self.assertEqual([a.assigned_date for a in rows], [date(2024, 6, 1)])

    def test_stats_summary(self):
        a1, a2, a3 = self.create(["w1", "w2", "w3"])
        AssignmentLifecycleService.complete_assignment(a1.id, "sub-1")
        AssignmentLifecycleService.cancel_assignment(a3.id)

        stats = AssignmentStatsService.summarize("tl1", self.base_date, self.base_date)

        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.completed, 1)
        self.assertEqual(stats.pending, 1)
        self.assertEqual(stats.cancelled, 1)
        self.assertEqual(stats.completion_rate, 33)
        with self.assertRaises(ValidationError):
            AssignmentStatsService.summarize("tl1", date(2024, 6, 5), date(2024, 6, 1))


class UnselectedWorkerTest(ReadinessTestBase):
    """Test recording and closing cases for workers left out of a day."""

    def test_create_records_unselected_workers_with_reason(self):
        created = self.create(
            ["w1"],
            unselected=[
                {"worker_id": "w2", "reason": "sick", "notes": "Flu"},
                UnselectedWorkerIn(worker_id="w3", reason="not_rostered"),
            ],
        )

        self.assertEqual(len(created), 1)
        cases = {u.worker_id: u for u in UnselectedWorker.objects.all()}
        self.assertEqual(set(cases), {"w2", "w3"})
        self.assertEqual(cases["w2"].reason, UnselectedReason.SICK)
        self.assertEqual(cases["w2"].notes, "Flu")
        self.assertEqual(cases["w2"].assignment_date, self.base_date)
        self.assertEqual(cases["w2"].team_leader_id, "tl1")
        self.assertEqual(cases["w3"].case_status, UnselectedWorker.CaseStatus.OPEN)
        # Only the selected worker is notified
        self.assertEqual(
            list(self.notifications(ASSIGNMENT_CREATED).values_list("recipient_id", flat=True)), ["w1"]
        )

    def test_invalid_unselected_entries_write_nothing(self):
        bad_batches = [
            [{"worker_id": "w2", "reason": "bored"}],
            [{"worker_id": "w1", "reason": "sick"}],
            [{"worker_id": "w2", "reason": "sick"}, {"worker_id": "w2", "reason": "on_leave_rdo"}],
        ]
        for unselected in bad_batches:
            with self.assertRaises(ValidationError):
                self.create(["w1"], unselected=unselected)
        with self.assertRaises(UnknownWorkerError):
            self.create(["w1"], unselected=[{"worker_id": "w99", "reason": "transferred"}])

        self.assertEqual(Assignment.objects.count(), 0)
        self.assertEqual(UnselectedWorker.objects.count(), 0)

    def test_worker_cannot_be_unselected_twice_or_after_assignment(self):
        self.create(["w1"], unselected=[{"worker_id": "w2", "reason": "sick"}])

        with self.assertRaises(ValidationError):
            self.create(["w3"], unselected=[{"worker_id": "w2", "reason": "injured_medical"}])
        with self.assertRaises(ValidationError):
            self.create(["w4"], unselected=[{"worker_id": "w1", "reason": "sick"}])

        self.assertFalse(Assignment.objects.filter(worker_id__in=["w3", "w4"]).exists())
        self.assertEqual(UnselectedWorker.objects.count(), 1)

    def test_clash_on_unselected_insert_rolls_back_assignments(self):
        self.create(["w1"], unselected=[{"worker_id": "w2", "reason": "sick"}])

        with patch.object(AssignmentStore, "find_unselected_for_workers", return_value=[]):
            with self.assertRaises(ValidationError):
                self.create(["w3"], unselected=[{"worker_id": "w2", "reason": "sick"}])

        self.assertFalse(Assignment.objects.filter(worker_id="w3").exists())

    def test_list_and_close_cases(self):
        self.create(["w1"], unselected=[{"worker_id": "w2", "reason": "sick"}])
        self.create(["w1"], assigned_date=date(2024, 6, 2),
                    unselected=[{"worker_id": "w3", "reason": "on_leave_rdo"}])

        cases = list_unselected_workers("tl1")
        self.assertEqual([c.worker_id for c in cases], ["w3", "w2"])
        self.assertEqual(
            [c.worker_id for c in AssignmentLifecycleService.list_unselected_workers("tl1", self.base_date)],
            ["w2"],
        )
        self.assertEqual(AssignmentLifecycleService.list_unselected_workers("tl2"), [])

        closed = close_unselected_worker_case(cases[1].id, "tl1")
        self.assertEqual(closed.case_status, UnselectedWorker.CaseStatus.CLOSED)
        still_open = AssignmentLifecycleService.list_unselected_workers("tl1", case_status="open")
        self.assertEqual([c.worker_id for c in still_open], ["w3"])
        # Closing again is harmless
        again = AssignmentLifecycleService.close_unselected_worker_case(cases[1].id, "tl1")
        self.assertEqual(again.case_status, UnselectedWorker.CaseStatus.CLOSED)

    def test_close_requires_owning_team_leader(self):
        self.create(["w1"], unselected=[{"worker_id": "w2", "reason": "sick"}])
        case = UnselectedWorker.objects.get()

        with self.assertRaises(UnselectedCaseNotFound):
            AssignmentLifecycleService.close_unselected_worker_case(case.id, "tl2")
        with self.assertRaises(UnselectedCaseNotFound):
            AssignmentLifecycleService.close_unselected_worker_case("not-a-uuid", "tl1")
        with self.assertRaises(ValidationError):
            AssignmentLifecycleService.list_unselected_workers("tl1", case_status="pending")
        case.refresh_from_db()
        self.assertEqual(case.case_status, UnselectedWorker.CaseStatus.OPEN)


class OverdueSweepTest(ReadinessTestBase):
    """Test the hourly overdue sweep."""

    def setUp(self):
        super().setUp()
        self.assignment = self.create(["w1"])[0]
        self.sleeps = []

    def sweep(self, now=None, **kwargs):
        kwargs.setdefault("sleep", self.sleeps.append)
        return OverdueSweepService.run_once(now=now or self.after_due, **kwargs)

    def test_job_id_uses_local_date_and_hour(self):
        # 01:00 UTC on 2 June is 09:00 at UTC+8
        self.assertEqual(OverdueSweepService.job_id_for(self.after_due), "mark-overdue-2024-06-02-09")
        self.assertEqual(
            OverdueSweepService.job_id_for(datetime(2024, 6, 1, 17, 30, tzinfo=UTC), salt="manual"),
            "manual-2024-06-02-01",
        )

    def test_pending_past_due_becomes_overdue(self):
        result = self.sweep()

        self.assertFalse(result.skipped)
        self.assertEqual(result.processed_count, 1)
        self.assertEqual(result.status, "completed")
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.OVERDUE)

        notices = self.notifications(ASSIGNMENT_OVERDUE)
        self.assertEqual(notices.count(), 1)
        self.assertEqual(notices.first().recipient_id, "tl1")

        job = JobRun.objects.get(job_id=result.job_id)
        self.assertEqual(job.status, JobRun.Status.COMPLETED)
        self.assertEqual(job.processed_count, 1)
        self.assertIsNotNone(job.finished_at)

    def test_not_yet_due_is_left_alone(self):
        result = self.sweep(now=self.due_time - timedelta(minutes=1))

        self.assertEqual(result.processed_count, 0)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.PENDING)

    def test_deadline_itself_is_not_overdue(self):
        self.sweep(now=self.due_time)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.PENDING)

    def test_duplicate_trigger_in_same_hour_is_skipped(self):
        first = self.sweep()
        second = self.sweep(now=self.after_due + timedelta(minutes=10))

        self.assertEqual(first.job_id, second.job_id)
        self.assertTrue(second.skipped)
        self.assertEqual(second.processed_count, 0)
        self.assertEqual(JobRun.objects.filter(job_id=first.job_id).count(), 1)
        self.assertEqual(self.notifications(ASSIGNMENT_OVERDUE).count(), 1)

    def test_next_hour_does_not_notify_twice(self):
        self.sweep()
        later = self.sweep(now=self.after_due + timedelta(hours=1))

        self.assertFalse(later.skipped)
        self.assertEqual(later.processed_count, 0)
        self.assertEqual(self.notifications(ASSIGNMENT_OVERDUE).count(), 1)

    def test_concurrent_completion_is_a_quiet_no_op(self):
        real_transition = AssignmentStore.transition

        def worker_completes_first(assignment_id, from_status, to_status, extra=None, now=None, cancel_event=None):
            Assignment.objects.filter(pk=assignment_id).update(
                status=AssignmentStatus.COMPLETED, completed_at=now, linked_submission_id="sub-1"
            )
            return real_transition(assignment_id, from_status, to_status, extra=extra, now=now, cancel_event=cancel_event)

        with patch.object(AssignmentStore, "transition", side_effect=worker_completes_first):
            result = self.sweep()

        self.assertEqual(result.processed_count, 0)
        self.assertEqual(result.conflict_count, 1)
        self.assertEqual(result.failed_ids, [])
        self.assertEqual(result.status, "completed")
        self.assertEqual(self.notifications(ASSIGNMENT_OVERDUE).count(), 0)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.COMPLETED)

    def test_store_outage_is_retried_with_backoff(self):
        real_transition = AssignmentStore.transition
        attempts = []

        def flaky(*args, **kwargs):
            attempts.append(1)
            if len(attempts) < 3:
                raise StoreUnavailableError("connection reset")
            return real_transition(*args, **kwargs)

        with patch.object(AssignmentStore, "transition", side_effect=flaky):
            result = self.sweep()

        self.assertEqual(len(attempts), 3)
        self.assertEqual(self.sleeps, [0.5, 1.0])
        self.assertEqual(result.processed_count, 1)
        self.assertEqual(self.notifications(ASSIGNMENT_OVERDUE).count(), 1)

    def test_persistent_failure_does_not_block_the_cohort(self):
        broken = self.create(["w2"])[0]
        healthy = self.create(["w3"])[0]
        real_transition = AssignmentStore.transition

        def broken_row(assignment_id, *args, **kwargs):
            if assignment_id == broken.id:
                raise StoreUnavailableError("row lock timeout")
            return real_transition(assignment_id, *args, **kwargs)

        with patch.object(AssignmentStore, "transition", side_effect=broken_row):
            with self.assertLogs("readiness.sweep", level="ERROR"):
                result = self.sweep()

        self.assertEqual(result.failed_ids, [str(broken.id)])
        self.assertEqual(result.processed_count, 2)
        self.assertEqual(result.status, "partial")
        self.assertEqual(self.sleeps, [0.5, 1.0])
        healthy.refresh_from_db()
        self.assertEqual(healthy.status, AssignmentStatus.OVERDUE)
        job = JobRun.objects.get(job_id=result.job_id)
        self.assertEqual(job.status, JobRun.Status.PARTIAL)
        self.assertEqual(job.failed_count, 1)

    def test_vanished_row_does_not_abort_the_sweep(self):
        gone = self.create(["w2"])[0]
        healthy = self.create(["w3"])[0]
        real_transition = AssignmentStore.transition

        def deleted_mid_sweep(assignment_id, *args, **kwargs):
            if assignment_id == gone.id:
                raise AssignmentNotFound(assignment_id)
            return real_transition(assignment_id, *args, **kwargs)

        with patch.object(AssignmentStore, "transition", side_effect=deleted_mid_sweep):
            with self.assertLogs("readiness.sweep", level="ERROR"):
                result = self.sweep()

        self.assertEqual(result.failed_ids, [str(gone.id)])
        self.assertEqual(result.processed_count, 2)
        self.assertEqual(self.sleeps, [])
        healthy.refresh_from_db()
        self.assertEqual(healthy.status, AssignmentStatus.OVERDUE)
        job = JobRun.objects.get(job_id=result.job_id)
        self.assertEqual(job.status, JobRun.Status.PARTIAL)
        self.assertIsNotNone(job.finished_at)

    def test_unexpected_error_still_closes_the_job(self):
        with patch.object(AssignmentLifecycleService, "mark_overdue", side_effect=RuntimeError("bug")):
            with self.assertRaises(RuntimeError):
                self.sweep()

        job = JobRun.objects.get()
        self.assertEqual(job.status, JobRun.Status.FAILED)
        self.assertIsNotNone(job.finished_at)

    def test_failed_reread_after_update_is_rolled_back_and_retried(self):
        real_get = Assignment.objects.get
        calls = []

        def connection_drops_once(*args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise DatabaseError("connection lost")
            return real_get(*args, **kwargs)

        with patch.object(Assignment.objects, "get", side_effect=connection_drops_once):
            result = self.sweep()

        self.assertEqual(result.processed_count, 1)
        self.assertEqual(result.conflict_count, 0)
        self.assertEqual(self.sleeps, [0.5])
        self.assertEqual(self.notifications(ASSIGNMENT_OVERDUE).count(), 1)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.OVERDUE)

    def test_listing_failure_marks_job_failed(self):
        with patch.object(AssignmentStore, "list_overdue_candidates", side_effect=StoreUnavailableError("down")):
            with self.assertRaises(StoreUnavailableError):
                self.sweep()

        job = JobRun.objects.get()
        self.assertEqual(job.status, JobRun.Status.FAILED)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.PENDING)

    def test_loop_keeps_ticking_after_failure(self):
        outcomes = [RuntimeError("boom"), None, None]

        def tick(**kwargs):
            outcome = outcomes.pop(0)
            if outcome:
                raise outcome

        with patch.object(OverdueSweepService, "run_once", side_effect=tick):
            with self.assertLogs("readiness.sweep", level="ERROR"):
                ticks = OverdueSweepService.run_forever(interval=60, sleep=self.sleeps.append, max_ticks=3)

        self.assertEqual(ticks, 3)
        self.assertEqual(self.sleeps, [60, 60])

    def test_operation_entry_point(self):
        result = run_overdue_sweep(now=self.after_due)
        self.assertEqual(result.processed_count, 1)
        self.assertTrue(run_overdue_sweep(now=self.after_due).skipped)

    def test_management_command(self):
        out = StringIO()
        call_command("run_overdue_sweep", stdout=out)

        self.assertIn("1 marked overdue", out.getvalue())
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, AssignmentStatus.OVERDUE)

        out = StringIO()
        call_command("run_overdue_sweep", stdout=out)
        self.assertIn("already ran", out.getvalue())
        self.assert_completed_at_invariant()


class ScoringComponentTest(TestCase):
    """Test each scoring component on its own."""

    def test_completion_bands(self):
        self.assertEqual(completion_points(19, 20), 35)  # exactly 95%
        self.assertEqual(completion_points(18, 20), 32)
        self.assertEqual(completion_points(17, 20), 28)
        self.assertEqual(completion_points(8, 9), 28)    # 88.9%
        self.assertEqual(completion_points(16, 20), 25)
        self.assertEqual(completion_points(1, 20), 0)
        self.assertEqual(completion_points(0, 0), 0)

    def test_on_time_bands(self):
        self.assertEqual(on_time_points(20, 20), 25)
        self.assertEqual(on_time_points(8, 9), 19)
        self.assertEqual(on_time_points(6, 9), 8)        # 66.7%
        self.assertEqual(on_time_points(4, 20), 1)
        self.assertEqual(on_time_points(3, 20), 0)

    def test_late_rate_bands(self):
        self.assertEqual(late_rate_points(0, 0), 15)
        self.assertEqual(late_rate_points(1, 20), 15)    # 5%
        self.assertEqual(late_rate_points(1, 9), 9)      # 11.1%
        self.assertEqual(late_rate_points(4, 10), 0)     # 40%
        self.assertEqual(late_rate_points(5, 10), -5)    # chronic lateness

    def test_volume_grace_and_improvement(self):
        self.assertEqual(volume_bonus(9), 0)
        self.assertEqual(volume_bonus(20), 2)
        self.assertEqual(volume_bonus(150), 10)
        self.assertEqual(grace_period_bonus(49), 5)
        self.assertEqual(grace_period_bonus(50), 0)
        self.assertEqual(improvement_bonus(8, 8, 10), 10)
        self.assertEqual(improvement_bonus(8, 6, 10), 7)
        self.assertEqual(improvement_bonus(4, 3, 10), 4)
        self.assertEqual(improvement_bonus(2, 2, 10), 2)
        self.assertEqual(improvement_bonus(1, 1, 10), 0)

    def test_grade_bands(self):
        self.assertEqual(letter_grade(100), ("A+", "Outstanding Performance"))
        self.assertEqual(letter_grade(95)[0], "A+")
        self.assertEqual(letter_grade(94)[0], "A")
        self.assertEqual(letter_grade(71)[0], "B-")
        self.assertEqual(letter_grade(57)[0], "C-")
        self.assertEqual(letter_grade(50)[0], "D")
        self.assertEqual(letter_grade(49), ("F", "Critical Performance Issues"))


class ComplianceScoreTest(TestCase):
    """Test the full score for known count sets."""

    def scenario_counts(self):
        # 10 assignments: 8 completed (6 on time, 2 late), 1 overdue, 1 pending
        return ComplianceCounts(total=10, completed=8, overdue=1, pending=1, on_time_completed=6)

    def test_documented_scenario_with_completion_basis(self):
        rating = score_compliance(self.scenario_counts(), on_time_basis="completion")
        breakdown = rating.breakdown
        fair = breakdown.fair_calculation

        self.assertEqual(fair.decided_assignments, 9)
        self.assertEqual(fair.fair_completion_rate, 88.89)
        self.assertEqual(fair.fair_on_time_rate, 88.89)
        self.assertEqual(fair.strict_on_time_rate, 66.67)
        self.assertEqual(fair.late_rate, 11.11)
        self.assertEqual(breakdown.completion_score, 28)
        self.assertEqual(breakdown.on_time_score, 19)
        self.assertEqual(breakdown.late_penalty, 9)
        self.assertEqual(breakdown.volume_bonus, 0)
        self.assertEqual(breakdown.improvement_bonus, 10)
        self.assertEqual(breakdown.grace_period_bonus, 5)
        self.assertEqual(rating.score, 71)
        self.assertEqual(rating.grade, "B-")

    def test_documented_scenario_with_strict_basis(self):
        rating = score_compliance(self.scenario_counts(), on_time_basis="strict")

        self.assertEqual(rating.breakdown.completion_score, 28)
        self.assertEqual(rating.breakdown.on_time_score, 8)
        self.assertEqual(rating.breakdown.improvement_bonus, 7)
        self.assertEqual(rating.breakdown.fair_calculation.fair_on_time_rate, 66.67)
        self.assertEqual(rating.score, 57)
        self.assertEqual(rating.grade, "C-")

    @override_settings(READINESS={"ON_TIME_BASIS": "strict"})
    def test_basis_comes_from_settings(self):
        rating = score_compliance(self.scenario_counts())
        self.assertEqual(rating.breakdown.fair_calculation.on_time_basis, "strict")

    def test_empty_team(self):
        rating = score_compliance(ComplianceCounts(total=0, completed=0, overdue=0, pending=0))

        self.assertEqual(rating.breakdown.fair_calculation.decided_assignments, 0)
        self.assertEqual(rating.breakdown.fair_calculation.fair_completion_rate, 0.0)
        self.assertEqual(rating.breakdown.late_penalty, 15)
        self.assertEqual(rating.score, 20)
        self.assertEqual(rating.grade, "F")

    def test_perfect_large_team(self):
        rating = score_compliance(
            ComplianceCounts(total=120, completed=120, overdue=0, pending=0, on_time_completed=120)
        )
        self.assertEqual(rating.score, 95)
        self.assertEqual(rating.grade, "A+")

    def test_negative_sum_is_clamped_to_zero(self):
        rating = score_compliance(ComplianceCounts(total=60, completed=0, overdue=10, pending=50))

        self.assertEqual(rating.breakdown.raw_score, -5)
        self.assertEqual(rating.score, 0)
        self.assertEqual(rating.grade, "F")

    def test_score_is_bounded_and_monotonic_in_completion(self):
        for basis in ("completion", "strict"):
            for decided in (0, 1, 5, 9, 20, 49, 100):
                for pending in (0, 3, 60):
                    previous = None
                    for completed in range(decided + 1):
                        counts = ComplianceCounts(
                            total=decided + pending,
                            completed=completed,
                            overdue=decided - completed,
                            pending=pending,
                            on_time_completed=completed,
                        )
                        score = score_compliance(counts, on_time_basis=basis).score
                        self.assertGreaterEqual(score, 0)
                        self.assertLessEqual(score, 100)
                        if previous is not None:
                            self.assertGreaterEqual(score, previous)
                        previous = score

    def test_malformed_counts_fail_fast(self):
        bad = [
            ComplianceCounts(total=5, completed=6, overdue=0, pending=0),
            ComplianceCounts(total=5, completed=2, overdue=1, pending=1),
            ComplianceCounts(total=1, completed=-1, overdue=2, pending=0),
            ComplianceCounts(total=3, completed=1, overdue=1, pending=1, on_time_completed=2),
        ]
        for counts in bad:
            with self.assertRaises(InvariantViolation):
                score_compliance(counts)

    def test_unknown_basis(self):
        with self.assertRaises(ValidationError):
            score_compliance(self.scenario_counts(), on_time_basis="lenient")


class ComplianceServiceTest(ReadinessTestBase):
    """Test scoring a team from stored assignments."""

    def test_scores_team_window_from_store(self):
        for worker in ("w1", "w2", "w3", "w4", "w5", "w6"):
            self.make_assignment(worker, AssignmentStatus.COMPLETED)
        self.make_assignment("w7", AssignmentStatus.COMPLETED, on_time=False)
        self.make_assignment("w8", AssignmentStatus.COMPLETED, on_time=False)
        self.make_assignment("w9", AssignmentStatus.OVERDUE)
        self.make_assignment("w10", AssignmentStatus.PENDING)
        # Not counted: cancelled, other team, outside the window
        self.make_assignment("w11", AssignmentStatus.CANCELLED)
        self.make_assignment("w12", AssignmentStatus.OVERDUE, team="B")
        self.make_assignment("w13", AssignmentStatus.OVERDUE, assigned_date=date(2024, 6, 10))

        result = compute_compliance_score("A", DateWindow(start_date=self.base_date, end_date=date(2024, 6, 7)))

        self.assertEqual(result.counts.total, 10)
        self.assertEqual(result.counts.completed, 8)
        self.assertEqual(result.counts.on_time_completed, 6)
        self.assertEqual(result.counts.overdue, 1)
        self.assertEqual(result.counts.pending, 1)
        self.assertEqual(result.breakdown.completion_score, 28)
        self.assertEqual(result.score, 71)
        self.assertEqual(result.grade, "B-")

    def test_completion_gini(self):
        self.make_assignment("w1", AssignmentStatus.COMPLETED)
        self.make_assignment("w2", AssignmentStatus.COMPLETED)
        even = ComplianceService.compute_compliance_score("A", self.base_date, self.base_date)
        self.assertEqual(even.completion_gini, 0.0)

        self.make_assignment("w3", AssignmentStatus.OVERDUE)
        uneven = ComplianceService.compute_compliance_score("A", self.base_date, self.base_date)
        self.assertGreater(uneven.completion_gini, 0.0)

    def test_reversed_window(self):
        with self.assertRaises(ValidationError):
            ComplianceService.compute_compliance_score("A", date(2024, 6, 2), date(2024, 6, 1))

    def test_store_outage_surfaces_immediately(self):
        with patch.object(AssignmentStore, "list_by_team", side_effect=StoreUnavailableError("down")) as listing:
            with self.assertRaises(StoreUnavailableError):
                ComplianceService.compute_compliance_score("A", self.base_date, self.base_date)
        self.assertEqual(listing.call_count, 1)

    def test_respects_cancel_signal(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(OperationCancelled):
            ComplianceService.compute_compliance_score("A", self.base_date, self.base_date, cancel_event=cancel)


class TrendAggregationTest(ReadinessTestBase):
    """Test readiness trend buckets."""

    def submit(self, worker_id, level, submitted_at, team=None):
        return AssignmentStore.create_submission(worker_id, team or self.team, level, submitted_at=submitted_at)

    def test_buckets_by_local_day_without_zero_fill(self):
        # 2 June local
        self.submit("w1", "fit", datetime(2024, 6, 2, 1, 0, tzinfo=UTC))
        self.submit("w2", "not_fit", datetime(2024, 6, 2, 2, 0, tzinfo=UTC))
        # 17:30 UTC on 1 June is already 01:30 on 2 June locally
        self.submit("w3", "minor", datetime(2024, 6, 1, 17, 30, tzinfo=UTC))
        # 4 June local; 3 June has no submissions
        self.submit("w1", "minor", datetime(2024, 6, 4, 3, 0, tzinfo=UTC))
        # Other team
        self.submit("w9", "fit", datetime(2024, 6, 2, 1, 0, tzinfo=UTC), team="B")

        report = compute_trend("A", DateWindow(start_date=date(2024, 6, 1), end_date=date(2024, 6, 5)))

        self.assertEqual([b.day for b in report.buckets], [date(2024, 6, 2), date(2024, 6, 4)])
        first = report.buckets[0]
        self.assertEqual((first.not_fit, first.minor, first.fit, first.total), (1, 1, 1, 3))
        self.assertEqual(report.total_submissions, 4)
        for bucket in report.buckets:
            self.assertEqual(bucket.not_fit + bucket.minor + bucket.fit, bucket.total)

    def test_window_edges_follow_local_days(self):
        # 23:59 local on 3 June, then 00:30 local on 4 June
        self.submit("w1", "fit", datetime(2024, 6, 3, 15, 59, tzinfo=UTC))
        self.submit("w2", "fit", datetime(2024, 6, 3, 16, 30, tzinfo=UTC))

        report = TrendService.compute_trend("A", date(2024, 6, 3), date(2024, 6, 3))

        self.assertEqual(len(report.buckets), 1)
        self.assertEqual(report.buckets[0].total, 1)

    def test_empty_window(self):
        report = TrendService.compute_trend("A", date(2024, 6, 1), date(2024, 6, 30))
        self.assertEqual(report.buckets, [])
        self.assertEqual(report.total_submissions, 0)

    def test_day_bounds_are_local(self):
        start, end = day_bounds(date(2024, 6, 3))
        self.assertEqual(start, datetime(2024, 6, 2, 16, 0, tzinfo=UTC))
        self.assertEqual(end, datetime(2024, 6, 3, 16, 0, tzinfo=UTC))

    def test_validation_catches_broken_buckets(self):
        start, end = date(2024, 6, 1), date(2024, 6, 3)
        broken = [
            [TrendBucketSchema(day=date(2024, 6, 2), not_fit=1, minor=1, fit=0, total=3)],
            [TrendBucketSchema(day=date(2024, 6, 9), not_fit=0, minor=0, fit=1, total=1)],
            [TrendBucketSchema(day=date(2024, 6, 2), not_fit=0, minor=0, fit=0, total=0)],
            [
                TrendBucketSchema(day=date(2024, 6, 2), not_fit=0, minor=0, fit=1, total=1),
                TrendBucketSchema(day=date(2024, 6, 2), not_fit=0, minor=1, fit=0, total=1),
            ],
        ]
        for buckets in broken:
            with self.assertRaises(InvariantViolation):
                validate_trend(buckets, start, end)

    def test_unknown_level_is_an_invariant_violation(self):
        stray = SimpleNamespace(id="x", readiness_level="tired", submitted_at=datetime(2024, 6, 2, tzinfo=UTC))
        with self.assertRaises(InvariantViolation):
            aggregate_trend([stray], date(2024, 6, 1), date(2024, 6, 3))

    def test_submission_validation(self):
        with self.assertRaises(ValidationError):
            self.submit("w1", "tired", datetime(2024, 6, 2, tzinfo=UTC))
        self.submit("w1", "fit", datetime(2024, 6, 2, 1, 0, tzinfo=UTC))
        with self.assertRaises(ValidationError):
            self.submit("w1", "minor", datetime(2024, 6, 2, 5, 0, tzinfo=UTC))


class NotificationPayloadTest(ReadinessTestBase):
    """Test payload construction."""

    def test_created_payload_uses_local_deadline(self):
        assignment = self.make_assignment("w1")
        assignment.notes = "Bring PPE"

        payload = build_assignment_created(assignment)

        self.assertEqual(payload.recipient_id, "w1")
        self.assertEqual(payload.sender_id, "tl1")
        # 00:00 UTC on 2 June is 08:00 local
        self.assertIn("Due by 2024-06-02 08:00", payload.message)
        self.assertIn("Bring PPE", payload.message)
        self.assertEqual(payload.metadata["assignment_id"], str(assignment.id))

    def test_due_time_resolution(self):
        self.assertEqual(resolve_due_time(self.base_date, None, self.created_at), self.due_time)
        with self.assertRaises(ValueError):
            resolve_due_time(self.base_date, datetime(2024, 6, 2, 9, 0), self.created_at)
        with self.assertRaises(TypeError):
            resolve_due_time(self.base_date, "17:00", self.created_at)


class SeedDataCommandTest(ReadinessTestBase):
    """Test the demo seed loader."""

    def write_seed(self, directory, assignments, submissions, members=None):
        Path(directory, "assignments.json").write_text(json.dumps(assignments))
        Path(directory, "submissions.json").write_text(json.dumps(submissions))
        if members is not None:
            Path(directory, "team_members.json").write_text(json.dumps(members))

    def seed(self, directory):
        self.write_seed(
            directory,
            [
                {"worker_id": "w1", "team_leader_id": "tl1", "team": "A",
                 "assigned_date": "2024-06-01", "created_at": "2024-06-01T00:00:00+00:00"},
                {"worker_id": "w2", "team_leader_id": "tl1", "team": "A",
                 "assigned_date": "2024-06-01", "created_at": "2024-06-01T00:00:00+00:00",
                 "status": "completed", "completed_at": "2024-06-01T03:00:00+00:00"},
            ],
            [
                {"worker_id": "w2", "team": "A", "readiness_level": "fit",
                 "submitted_at": "2024-06-01T03:00:00+00:00"},
            ],
            members=[
                {"worker_id": "w20", "team": "A", "team_leader_id": "tl1"},
                {"worker_id": "w21", "team": "B"},
            ],
        )

    def test_loads_members_assignments_and_submissions(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.seed(tmp)
            out = StringIO()
            call_command("load_seed_data", dir=tmp, stdout=out)

        self.assertIn("2 team member(s), 2 assignment(s), 1 submission(s); 0 duplicate(s) skipped", out.getvalue())
        self.assertEqual(Assignment.objects.count(), 2)
        self.assertEqual(Assignment.objects.get(worker_id="w1").due_time, self.due_time)
        self.assertEqual(Submission.objects.get().submitted_date, date(2024, 6, 1))
        self.assertEqual(TeamMember.objects.get(worker_id="w21").team, "B")
        self.assert_completed_at_invariant()

    def test_reloading_reports_skipped_duplicates(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.seed(tmp)
            call_command("load_seed_data", dir=tmp, stdout=StringIO())
            out = StringIO()
            call_command("load_seed_data", dir=tmp, stdout=out)

        self.assertIn("0 team member(s), 0 assignment(s), 0 submission(s); 5 duplicate(s) skipped", out.getvalue())
        self.assertEqual(Assignment.objects.count(), 2)
        self.assertEqual(Submission.objects.count(), 1)

    def test_roster_file_is_optional(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.write_seed(tmp, [], [])
            out = StringIO()
            call_command("load_seed_data", dir=tmp, stdout=out)
        self.assertIn("0 team member(s)", out.getvalue())

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(Exception) as ctx:
                call_command("load_seed_data", dir=tmp, stdout=StringIO())
        self.assertIn("not found", str(ctx.exception))
