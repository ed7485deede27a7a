import logging
from datetime import date, datetime, timedelta

from django.utils import timezone

from .exceptions import ConflictError, DuplicateAssignmentError, UnknownWorkerError, ValidationError
from .models import Assignment, AssignmentStatus, Submission, UnselectedReason, UnselectedWorker
from .notifications import NotificationDispatcher, build_assignment_created, build_assignment_overdue
from .schemas import AssignmentStatsSchema, UnselectedWorkerIn
from .store import AssignmentStore
from .timeutils import check_window, local_today, resolve_due_time

logger = logging.getLogger(__name__)

PENDING   = AssignmentStatus.PENDING
COMPLETED = AssignmentStatus.COMPLETED
OVERDUE   = AssignmentStatus.OVERDUE
CANCELLED = AssignmentStatus.CANCELLED

ALLOWED_TRANSITIONS = {
    PENDING:   {COMPLETED, OVERDUE, CANCELLED},
    OVERDUE:   {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}

# pending -> overdue -> completed is the longest chain a completion can race through
_MAX_COMPLETION_ATTEMPTS = 3


class AssignmentLifecycleService:
    """Service class for creating assignments and moving them through their lifecycle."""

    store = AssignmentStore
    dispatcher = NotificationDispatcher

    @classmethod
    def create_assignments(cls, worker_ids: list[str], assigned_date: date, team: str,
                           team_leader_id: str, due_time=None, notes: str | None = None,
                           now: datetime | None = None, unselected=None,
                           cancel_event=None) -> list[Assignment]:
        """
        Issue one assignment per worker for ``assigned_date``.

        Every worker, selected or not, must be an active member of ``team``
        under ``team_leader_id``. The whole batch is rejected with
        ``DuplicateAssignmentError`` if any worker already holds a
        non-cancelled assignment for that day, or is listed twice.
        ``unselected`` records the team members left out, each with a reason;
        they are written in the same transaction. Each created assignment
        triggers one notification to its worker.
        """
        worker_ids = [str(w).strip() for w in worker_ids or []]
        if not worker_ids or not all(worker_ids):
            raise ValidationError("At least one worker id is required")
        if not team or not team.strip():
            raise ValidationError("team is required")
        if not team_leader_id:
            raise ValidationError("team_leader_id is required")

        repeated = {w for w in worker_ids if worker_ids.count(w) > 1}
        if repeated:
            raise DuplicateAssignmentError(repeated, assigned_date)
        unselected = cls._clean_unselected(unselected, worker_ids)

        now = now or timezone.now()
        try:
            due = resolve_due_time(assigned_date, due_time, now)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e
        if due <= now:
            raise ValidationError(f"due_time {due.isoformat()} is not in the future")

        unselected_ids = [u.worker_id for u in unselected]
        cls._check_membership(worker_ids + unselected_ids, team, team_leader_id, cancel_event)

        existing = cls.store.find_active_for_workers(worker_ids, assigned_date, cancel_event=cancel_event)
        if existing:
            raise DuplicateAssignmentError({a.worker_id for a in existing}, assigned_date)
        if unselected_ids:
            clashing = cls.store.find_active_for_workers(unselected_ids, assigned_date, cancel_event=cancel_event)
            clashing += cls.store.find_unselected_for_workers(unselected_ids, assigned_date, cancel_event=cancel_event)
            if clashing:
                raise ValidationError(
                    f"Already assigned or unselected on {assigned_date}: "
                    f"{', '.join(sorted({c.worker_id for c in clashing}))}"
                )

        created = cls.store.create_assignments(
            worker_ids, assigned_date, due, team, team_leader_id, notes,
            now=now, unselected=unselected, cancel_event=cancel_event,
        )
        logger.info(
            "Team leader %s created %d assignment(s) for %s on %s (due %s), %d unselected",
            team_leader_id, len(created), team, assigned_date, due.isoformat(), len(unselected),
        )

        for assignment in created:
            cls.dispatcher.dispatch(build_assignment_created(assignment))
        return created

    @staticmethod
    def _clean_unselected(unselected, worker_ids: list[str]) -> list[UnselectedWorkerIn]:
        cleaned = [u if isinstance(u, UnselectedWorkerIn) else UnselectedWorkerIn(**u) for u in unselected or []]
        ids = [u.worker_id for u in cleaned]
        if len(set(ids)) != len(ids):
            raise ValidationError("A worker is listed as unselected more than once")
        both = set(ids) & set(worker_ids)
        if both:
            raise ValidationError(f"Workers both selected and unselected: {', '.join(sorted(both))}")
        for u in cleaned:
            if u.reason not in UnselectedReason.values:
                raise ValidationError(f"Invalid reason {u.reason!r} for unselected worker {u.worker_id}")
        return cleaned

    @classmethod
    def _check_membership(cls, worker_ids: list[str], team: str, team_leader_id: str, cancel_event=None):
        members = {m.worker_id: m for m in cls.store.find_team_members(worker_ids, cancel_event=cancel_event)}
        invalid = [
            w for w in worker_ids
            if w not in members
            or not members[w].is_active
            or members[w].team != team
            or (members[w].team_leader_id and members[w].team_leader_id != team_leader_id)
        ]
        if invalid:
            raise UnknownWorkerError(invalid, team)

    @classmethod
    def get_worker_assignment(cls, worker_id: str, assigned_date: date | None = None,
                              cancel_event=None) -> Assignment | None:
        """The worker's non-cancelled assignment for the day (local today by default)."""
        assigned_date = assigned_date or local_today()
        found = cls.store.find_active_for_workers([worker_id], assigned_date, cancel_event=cancel_event)
        return found[0] if found else None

    @classmethod
    def can_submit(cls, worker_id: str, assigned_date: date | None = None, cancel_event=None) -> bool:
        """Only a pending assignment opens the check; an overdue one is closed to the worker."""
        assignment = cls.get_worker_assignment(worker_id, assigned_date, cancel_event=cancel_event)
        return assignment is not None and assignment.status == PENDING

    @classmethod
    def list_team_leader_assignments(cls, team_leader_id: str, assigned_date: date | None = None,
                                     status: str | None = None, cancel_event=None) -> list[Assignment]:
        if status and status != "all" and status not in AssignmentStatus.values:
            raise ValidationError(f"Invalid status filter: {status!r}")
        return cls.store.list_by_team_leader(
            team_leader_id, assigned_date=assigned_date, status=status, cancel_event=cancel_event,
        )

    @classmethod
    def list_unselected_workers(cls, team_leader_id: str, assigned_date: date | None = None,
                                case_status: str | None = None, cancel_event=None) -> list[UnselectedWorker]:
        if case_status and case_status not in UnselectedWorker.CaseStatus.values:
            raise ValidationError(f"Invalid case status filter: {case_status!r}")
        return cls.store.list_unselected_workers(
            team_leader_id, assignment_date=assigned_date, case_status=case_status,
            cancel_event=cancel_event,
        )

    @classmethod
    def close_unselected_worker_case(cls, case_id, team_leader_id: str, now: datetime | None = None,
                                     cancel_event=None) -> UnselectedWorker:
        closed = cls.store.close_unselected_case(case_id, team_leader_id, now=now, cancel_event=cancel_event)
        logger.info("Unselected worker case %s closed by team leader %s", closed.id, team_leader_id)
        return closed

    @classmethod
    def complete_assignment(cls, assignment_id, submission_id, completed_at: datetime | None = None,
                            cancel_event=None) -> Assignment:
        """
        Mark an assignment completed by a submission.

        Accepted from ``pending`` or ``overdue``, before or after the deadline;
        lateness shows up through ``completed_at > due_time``. Re-completing
        with the same submission returns the stored row unchanged.
        """
        completed_at = completed_at or timezone.now()
        submission_id = str(submission_id)
        assignment = cls.store.get_assignment(assignment_id, cancel_event=cancel_event)

        for _ in range(_MAX_COMPLETION_ATTEMPTS):
            if assignment.status == COMPLETED and assignment.linked_submission_id == submission_id:
                return assignment
            if COMPLETED not in ALLOWED_TRANSITIONS[assignment.status]:
                raise ConflictError(assignment.id, "pending|overdue", assignment.status)
            try:
                done = cls.store.transition(
                    assignment.id, assignment.status, COMPLETED,
                    extra={"completed_at": completed_at, "linked_submission_id": submission_id},
                    now=completed_at, cancel_event=cancel_event,
                )
            except ConflictError:
                # The sweep may have just moved it to overdue; look again
                assignment = cls.store.get_assignment(assignment_id, cancel_event=cancel_event)
                continue
            logger.info(
                "Assignment %s completed by submission %s (%s)",
                done.id, submission_id, "on time" if done.is_on_time else "late",
            )
            return done

        raise ConflictError(assignment.id, "pending|overdue", assignment.status)

    @classmethod
    def complete_for_submission(cls, submission: Submission, cancel_event=None) -> Assignment | None:
        """Complete the worker's assignment for the submission's day, if there is one."""
        assignment = cls.get_worker_assignment(
            submission.worker_id, submission.submitted_date, cancel_event=cancel_event,
        )
        if assignment is None:
            return None
        return cls.complete_assignment(
            assignment.id, submission.id, completed_at=submission.submitted_at,
            cancel_event=cancel_event,
        )

    @classmethod
    def cancel_assignment(cls, assignment_id, now: datetime | None = None,
                          cancel_event=None) -> Assignment:
        """Administrative cancel; a completed or cancelled row raises ``ConflictError``."""
        assignment = cls.store.get_assignment(assignment_id, cancel_event=cancel_event)
        if CANCELLED not in ALLOWED_TRANSITIONS[assignment.status]:
            raise ConflictError(assignment.id, "pending|overdue", assignment.status)
        cancelled = cls.store.transition(
            assignment.id, assignment.status, CANCELLED, now=now, cancel_event=cancel_event,
        )
        logger.info("Assignment %s cancelled (was %s)", cancelled.id, assignment.status)
        return cancelled

    @classmethod
    def mark_overdue(cls, assignment: Assignment, now: datetime) -> Assignment:
        """pending -> overdue once the deadline has passed; notifies the team leader."""
        if not now > assignment.due_time:
            raise ValidationError(f"Assignment {assignment.id} is not due until {assignment.due_time}")
        overdue = cls.store.transition(assignment.id, PENDING, OVERDUE, now=now)
        logger.info("Assignment %s for worker %s marked overdue", overdue.id, overdue.worker_id)
        cls.dispatcher.dispatch(build_assignment_overdue(overdue))
        return overdue


class AssignmentStatsService:
    """Service class for raw assignment statistics of a team leader."""

    store = AssignmentStore

    @classmethod
    def summarize(cls, team_leader_id: str, start_date: date | None = None,
                  end_date: date | None = None, cancel_event=None) -> AssignmentStatsSchema:
        """Counts per status over a window (the last 7 days by default)."""
        end_date = end_date or local_today()
        start_date = start_date or end_date - timedelta(days=7)
        check_window(start_date, end_date)

        assignments = cls.store.list_by_team_leader(
            team_leader_id, start_date=start_date, end_date=end_date, cancel_event=cancel_event,
        )
        by_status = {status: 0 for status in AssignmentStatus.values}
        for assignment in assignments:
            by_status[assignment.status] += 1

        total = len(assignments)
        # Round half up to a whole percentage
        completion_rate = (by_status[COMPLETED] * 200 + total) // (2 * total) if total else 0

        return AssignmentStatsSchema(
            start_date=start_date,
            end_date=end_date,
            total=total,
            pending=by_status[PENDING],
            completed=by_status[COMPLETED],
            overdue=by_status[OVERDUE],
            cancelled=by_status[CANCELLED],
            completion_rate=completion_rate,
        )
