import uuid

from django.db import models
from django.db.models import Q


class AssignmentStatus(models.TextChoices):
    PENDING   = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    OVERDUE   = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class ReadinessLevel(models.TextChoices):
    NOT_FIT = "not_fit", "Not fit for work"
    MINOR   = "minor", "Minor concerns, fit for work"
    FIT     = "fit", "Fit for work"


class Assignment(models.Model):
    id                   = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    worker_id            = models.CharField(max_length=64)
    team_leader_id       = models.CharField(max_length=64, db_index=True)
    team                 = models.CharField(max_length=100, db_index=True)
    assigned_date        = models.DateField()
    due_time             = models.DateTimeField()
    status               = models.CharField(
        max_length=16,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.PENDING,
    )
    notes                = models.TextField(null=True, blank=True)
    completed_at         = models.DateTimeField(null=True, blank=True)
    linked_submission_id = models.CharField(max_length=64, null=True, blank=True)
    created_at           = models.DateTimeField()
    updated_at           = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["worker_id", "assigned_date"],
                condition=~Q(status="cancelled"),
                name="one_active_assignment_per_worker_day",
            ),
            models.CheckConstraint(
                condition=(
                    Q(status="completed", completed_at__isnull=False)
                    | (~Q(status="completed") & Q(completed_at__isnull=True))
                ),
                name="completed_at_iff_completed",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "due_time"], name="readiness_a_status_6b1f0e_idx"),
            models.Index(fields=["worker_id", "assigned_date"], name="readiness_a_worker__2c7d4a_idx"),
            models.Index(fields=["team", "assigned_date"], name="readiness_a_team_9e3b51_idx"),
        ]

    def __str__(self):
        return f"{self.worker_id} {self.assigned_date} ({self.status})"

    @property
    def is_on_time(self) -> bool | None:
        if self.completed_at is None:
            return None
        return self.completed_at <= self.due_time


class Submission(models.Model):
    id              = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    worker_id       = models.CharField(max_length=64)
    team_leader_id  = models.CharField(max_length=64, null=True, blank=True)
    team            = models.CharField(max_length=100)
    readiness_level = models.CharField(max_length=16, choices=ReadinessLevel.choices)
    fatigue_level   = models.PositiveSmallIntegerField(null=True, blank=True)
    pain_discomfort = models.BooleanField(default=False)
    mood            = models.CharField(max_length=32, null=True, blank=True)
    notes           = models.TextField(null=True, blank=True)
    submitted_at    = models.DateTimeField()
    submitted_date  = models.DateField()

    class Meta:
        unique_together = ("worker_id", "submitted_date")
        indexes = [
            models.Index(fields=["team", "submitted_at"], name="readiness_s_team_4d8c2f_idx"),
        ]


class JobRun(models.Model):
    class Status(models.TextChoices):
        RUNNING   = "running", "Running"
        COMPLETED = "completed", "Completed"
        PARTIAL   = "partial", "Completed with failures"
        FAILED    = "failed", "Failed"

    id              = models.BigAutoField(primary_key=True)
    job_id          = models.CharField(max_length=128, unique=True)
    job_type        = models.CharField(max_length=64)
    status          = models.CharField(max_length=16, choices=Status.choices, default=Status.RUNNING)
    processed_count = models.PositiveIntegerField(default=0)
    conflict_count  = models.PositiveIntegerField(default=0)
    failed_count    = models.PositiveIntegerField(default=0)
    started_at      = models.DateTimeField()
    finished_at     = models.DateTimeField(null=True, blank=True)


class Notification(models.Model):
    id           = models.BigAutoField(primary_key=True)
    recipient_id = models.CharField(max_length=64, db_index=True)
    sender_id    = models.CharField(max_length=64, null=True, blank=True)
    type         = models.CharField(max_length=64)
    title        = models.CharField(max_length=200)
    message      = models.TextField()
    priority     = models.CharField(max_length=16, default="medium")
    metadata     = models.JSONField(default=dict, blank=True)
    is_read      = models.BooleanField(default=False)
    created_at   = models.DateTimeField(auto_now_add=True)


class TeamMember(models.Model):
    worker_id      = models.CharField(max_length=64, unique=True)
    team           = models.CharField(max_length=100, db_index=True)
    team_leader_id = models.CharField(max_length=64, null=True, blank=True)
    is_active      = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.worker_id} ({self.team})"


class UnselectedReason(models.TextChoices):
    SICK            = "sick", "Sick"
    ON_LEAVE_RDO    = "on_leave_rdo", "On leave / RDO"
    TRANSFERRED     = "transferred", "Transferred to another site"
    INJURED_MEDICAL = "injured_medical", "Injured / Medical"
    NOT_ROSTERED    = "not_rostered", "Not rostered"


class UnselectedWorker(models.Model):
    """A team member left out of a day's assignments, with the reason why."""

    class CaseStatus(models.TextChoices):
        OPEN   = "open", "Open"
        CLOSED = "closed", "Closed"

    id              = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team_leader_id  = models.CharField(max_length=64, db_index=True)
    worker_id       = models.CharField(max_length=64)
    assignment_date = models.DateField()
    reason          = models.CharField(max_length=32, choices=UnselectedReason.choices)
    notes           = models.TextField(null=True, blank=True)
    case_status     = models.CharField(max_length=16, choices=CaseStatus.choices, default=CaseStatus.OPEN)
    created_at      = models.DateTimeField()
    updated_at      = models.DateTimeField()

    class Meta:
        unique_together = ("worker_id", "assignment_date")

    def __str__(self):
        return f"{self.worker_id} {self.assignment_date} ({self.reason}, {self.case_status})"
