import uuid
from datetime import date, datetime
from functools import wraps

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import (
    AssignmentNotFound, ConflictError, DuplicateAssignmentError,
    OperationCancelled, StoreUnavailableError, UnselectedCaseNotFound, ValidationError,
)
from .models import (
    Assignment, AssignmentStatus, JobRun, ReadinessLevel, Submission, TeamMember, UnselectedWorker,
)
from .timeutils import local_date


def _store_call(func):
    """Honour the caller's cancel signal and map connectivity errors."""
    @wraps(func)
    def wrapper(*args, cancel_event=None, **kwargs):
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled(f"{func.__name__} cancelled before querying the store")
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            raise
        except DatabaseError as e:
            raise StoreUnavailableError(f"{func.__name__} failed: {e}") from e
    return wrapper


def _as_uuid(value, not_found=AssignmentNotFound) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise not_found(value) from None


class AssignmentStore:
    """Typed read/write access to assignment, roster, submission and job-run rows."""

    @staticmethod
    @_store_call
    def create_assignments(worker_ids: list[str], assigned_date: date, due_time: datetime,
                           team: str, team_leader_id: str, notes: str | None = None,
                           now: datetime | None = None, unselected=None) -> list[Assignment]:
        """
        Insert the day's assignments and any unselected-worker records.

        Both land in one transaction: a clash on either table writes nothing.
        """
        now = now or timezone.now()
        rows = [
            Assignment(
                worker_id=worker_id,
                team_leader_id=team_leader_id,
                team=team,
                assigned_date=assigned_date,
                due_time=due_time,
                status=AssignmentStatus.PENDING,
                notes=notes or None,
                created_at=now,
                updated_at=now,
            )
            for worker_id in worker_ids
        ]
        unselected_rows = [
            UnselectedWorker(
                team_leader_id=team_leader_id,
                worker_id=u.worker_id,
                assignment_date=assigned_date,
                reason=u.reason,
                notes=u.notes or None,
                created_at=now,
                updated_at=now,
            )
            for u in unselected or []
        ]
        with transaction.atomic():
            try:
                with transaction.atomic():
                    created = Assignment.objects.bulk_create(rows)
            except IntegrityError as e:
                # Lost a race against another creator for the same worker/day
                raise DuplicateAssignmentError(worker_ids, assigned_date) from e
            if unselected_rows:
                try:
                    with transaction.atomic():
                        UnselectedWorker.objects.bulk_create(unselected_rows)
                except IntegrityError as e:
                    raise ValidationError(
                        f"Unselected worker already recorded for {assigned_date}"
                    ) from e
        return created

    @staticmethod
    @_store_call
    def find_team_members(worker_ids: list[str]) -> list[TeamMember]:
        return list(TeamMember.objects.filter(worker_id__in=worker_ids))

    @staticmethod
    @_store_call
    def register_team_member(worker_id: str, team: str, team_leader_id: str | None = None,
                             is_active: bool = True) -> TeamMember:
        member, _ = TeamMember.objects.update_or_create(
            worker_id=worker_id,
            defaults={"team": team, "team_leader_id": team_leader_id, "is_active": is_active},
        )
        return member

    @staticmethod
    @_store_call
    def find_unselected_for_workers(worker_ids: list[str], assignment_date: date) -> list[UnselectedWorker]:
        return list(
            UnselectedWorker.objects.filter(worker_id__in=worker_ids, assignment_date=assignment_date)
        )

    @staticmethod
    @_store_call
    def list_unselected_workers(team_leader_id: str, assignment_date: date | None = None,
                                case_status: str | None = None) -> list[UnselectedWorker]:
        qs = UnselectedWorker.objects.filter(team_leader_id=team_leader_id)
        if assignment_date:
            qs = qs.filter(assignment_date=assignment_date)
        if case_status:
            qs = qs.filter(case_status=case_status)
        return list(qs.order_by("-assignment_date", "worker_id"))

    @staticmethod
    @_store_call
    def close_unselected_case(case_id, team_leader_id: str, now: datetime | None = None) -> UnselectedWorker:
        """Close a case owned by ``team_leader_id``; closing twice is harmless."""
        pk = _as_uuid(case_id, not_found=UnselectedCaseNotFound)
        with transaction.atomic():
            updated = UnselectedWorker.objects.filter(pk=pk, team_leader_id=team_leader_id).update(
                case_status=UnselectedWorker.CaseStatus.CLOSED,
                updated_at=now or timezone.now(),
            )
            if not updated:
                raise UnselectedCaseNotFound(case_id)
            return UnselectedWorker.objects.get(pk=pk)

    @staticmethod
    @_store_call
    def get_assignment(assignment_id) -> Assignment:
        try:
            return Assignment.objects.get(pk=_as_uuid(assignment_id))
        except Assignment.DoesNotExist:
            raise AssignmentNotFound(assignment_id) from None

    @staticmethod
    @_store_call
    def find_active_for_workers(worker_ids: list[str], assigned_date: date) -> list[Assignment]:
        """Non-cancelled assignments held by any of ``worker_ids`` on ``assigned_date``."""
        return list(
            Assignment.objects.filter(worker_id__in=worker_ids, assigned_date=assigned_date)
            .exclude(status=AssignmentStatus.CANCELLED)
        )

    @staticmethod
    @_store_call
    def list_by_worker(worker_id: str, start_date: date, end_date: date) -> list[Assignment]:
        return list(
            Assignment.objects.filter(
                worker_id=worker_id,
                assigned_date__gte=start_date,
                assigned_date__lte=end_date,
            ).order_by("-assigned_date", "-created_at")
        )

    @staticmethod
    @_store_call
    def list_by_team_leader(team_leader_id: str, assigned_date: date | None = None,
                            status: str | None = None,
                            start_date: date | None = None,
                            end_date: date | None = None) -> list[Assignment]:
        qs = Assignment.objects.filter(team_leader_id=team_leader_id)
        if assigned_date:
            qs = qs.filter(assigned_date=assigned_date)
        if start_date:
            qs = qs.filter(assigned_date__gte=start_date)
        if end_date:
            qs = qs.filter(assigned_date__lte=end_date)
        # 'all' keeps cancelled rows too
        if status and status != "all":
            qs = qs.filter(status=status)
        return list(qs.order_by("-assigned_date", "worker_id"))

    @staticmethod
    @_store_call
    def list_by_team(team: str, start_date: date, end_date: date) -> list[Assignment]:
        return list(
            Assignment.objects.filter(
                team=team,
                assigned_date__gte=start_date,
                assigned_date__lte=end_date,
            ).order_by("assigned_date", "worker_id")
        )

    @staticmethod
    @_store_call
    def list_overdue_candidates(now: datetime) -> list[Assignment]:
        return list(
            Assignment.objects.filter(status=AssignmentStatus.PENDING, due_time__lt=now)
            .order_by("due_time")
        )

    @staticmethod
    @_store_call
    def transition(assignment_id, from_status: str, to_status: str,
                   extra: dict | None = None, now: datetime | None = None) -> Assignment:
        """
        Move an assignment from ``from_status`` to ``to_status`` atomically.

        The update only applies while the stored status still equals
        ``from_status``; otherwise ``ConflictError`` carries the status found.
        """
        pk = _as_uuid(assignment_id)
        fields = {"status": to_status, "updated_at": now or timezone.now(), **(extra or {})}
        # Update and re-read commit together; a failed read rolls the update back
        with transaction.atomic():
            updated = Assignment.objects.filter(pk=pk, status=from_status).update(**fields)
            if updated:
                return Assignment.objects.get(pk=pk)
        current = Assignment.objects.filter(pk=pk).values_list("status", flat=True).first()
        if current is None:
            raise AssignmentNotFound(assignment_id)
        raise ConflictError(assignment_id, from_status, current)

    @staticmethod
    @_store_call
    def claim_job_run(job_id: str, job_type: str, started_at: datetime) -> JobRun | None:
        """Insert the job-run row; ``None`` means this job id already ran."""
        try:
            with transaction.atomic():
                return JobRun.objects.create(job_id=job_id, job_type=job_type, started_at=started_at)
        except IntegrityError:
            return None

    @staticmethod
    @_store_call
    def finish_job_run(job_run: JobRun, status: str, processed: int = 0, conflicts: int = 0,
                       failures: int = 0, finished_at: datetime | None = None) -> JobRun:
        job_run.status = status
        job_run.processed_count = processed
        job_run.conflict_count = conflicts
        job_run.failed_count = failures
        job_run.finished_at = finished_at or timezone.now()
        job_run.save(update_fields=[
            "status", "processed_count", "conflict_count", "failed_count", "finished_at",
        ])
        return job_run

    @staticmethod
    @_store_call
    def create_submission(worker_id: str, team: str, readiness_level: str,
                          submitted_at: datetime | None = None, team_leader_id: str | None = None,
                          fatigue_level: int | None = None, pain_discomfort: bool = False,
                          mood: str | None = None, notes: str | None = None) -> Submission:
        if readiness_level not in ReadinessLevel.values:
            raise ValidationError(f"Unknown readiness level: {readiness_level!r}")
        if fatigue_level is not None and not 1 <= fatigue_level <= 10:
            raise ValidationError("fatigue_level must be between 1 and 10")
        submitted_at = submitted_at or timezone.now()
        submitted_date = local_date(submitted_at)
        try:
            with transaction.atomic():
                return Submission.objects.create(
                    worker_id=worker_id,
                    team_leader_id=team_leader_id,
                    team=team,
                    readiness_level=readiness_level,
                    fatigue_level=fatigue_level,
                    pain_discomfort=pain_discomfort,
                    mood=mood,
                    notes=notes,
                    submitted_at=submitted_at,
                    submitted_date=submitted_date,
                )
        except IntegrityError as e:
            raise ValidationError(
                f"Worker {worker_id} already submitted an assessment for {submitted_date}"
            ) from e

    @staticmethod
    @_store_call
    def list_submissions_for_team(team: str, start: datetime, end: datetime) -> list[Submission]:
        """Submissions with ``start <= submitted_at < end``."""
        return list(
            Submission.objects.filter(team=team, submitted_at__gte=start, submitted_at__lt=end)
            .order_by("submitted_at")
        )
