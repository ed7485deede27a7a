from datetime import date

from ninja import Schema


class DateWindow(Schema):
    """Inclusive range of organization-local calendar dates."""
    start_date: date
    end_date: date


class NotificationPayload(Schema):
    """Structured event handed to the notification collaborator."""
    recipient_id: str
    sender_id: str | None = None
    type: str
    title: str
    message: str
    priority: str = "medium"  # 'low', 'medium' or 'high'
    metadata: dict = {}


class UnselectedWorkerIn(Schema):
    """A team member deliberately left out of the day's assignments."""
    worker_id: str
    reason: str  # sick, on_leave_rdo, transferred, injured_medical or not_rostered
    notes: str | None = None


class ComplianceCounts(Schema):
    """Assignment counts for one team over one window (cancelled excluded)."""
    total: int
    completed: int
    overdue: int
    pending: int
    on_time_completed: int = 0


class FairCalculationSchema(Schema):
    decided_assignments: int
    fair_completion_rate: float
    fair_on_time_rate: float
    strict_on_time_rate: float
    late_rate: float
    on_time_basis: str  # 'completion' or 'strict'


class ComplianceBreakdownSchema(Schema):
    """Points awarded by each scoring component."""
    completion_score: int
    on_time_score: int
    late_penalty: int
    volume_bonus: int
    improvement_bonus: int
    grace_period_bonus: int
    raw_score: int
    fair_calculation: FairCalculationSchema


class ComplianceRatingSchema(Schema):
    score: int
    grade: str
    description: str
    breakdown: ComplianceBreakdownSchema


class ComplianceScoreSchema(Schema):
    """Compliance score of a team over a window."""
    team: str
    start_date: date
    end_date: date
    counts: ComplianceCounts
    score: int
    grade: str
    description: str
    breakdown: ComplianceBreakdownSchema
    completion_gini: float  # spread of per-worker completion rates (0 = even)


class TrendBucketSchema(Schema):
    """Submissions of one local date, counted per readiness level."""
    day: date
    not_fit: int
    minor: int
    fit: int
    total: int


class TrendReportSchema(Schema):
    team: str
    start_date: date
    end_date: date
    buckets: list[TrendBucketSchema]
    total_submissions: int


class SweepResultSchema(Schema):
    """Outcome of one overdue sweep run."""
    job_id: str
    skipped: bool
    status: str
    processed_count: int = 0
    conflict_count: int = 0
    failed_ids: list[str] = []


class AssignmentStatsSchema(Schema):
    start_date: date
    end_date: date
    total: int
    pending: int
    completed: int
    overdue: int
    cancelled: int
    completion_rate: int  # rounded percentage of all assignments
