import logging
from collections import defaultdict
from datetime import date

from .exceptions import InvariantViolation
from .models import ReadinessLevel, Submission
from .schemas import TrendBucketSchema, TrendReportSchema
from .store import AssignmentStore
from .timeutils import check_window, local_date, window_bounds

logger = logging.getLogger(__name__)

LEVELS = [ReadinessLevel.NOT_FIT, ReadinessLevel.MINOR, ReadinessLevel.FIT]


def aggregate_trend(submissions, start_date: date, end_date: date) -> list[TrendBucketSchema]:
    """
    Bucket submissions by local submission date.

    Only dates with at least one submission get a bucket; quiet days are
    left out rather than zero-filled so charts do not flatten.
    """
    daily_counts: dict[date, dict[str, int]] = defaultdict(lambda: {level: 0 for level in LEVELS})
    for submission in submissions:
        level = submission.readiness_level
        if level not in ReadinessLevel.values:
            raise InvariantViolation(f"Submission {submission.id} has unknown readiness level {level!r}")
        daily_counts[local_date(submission.submitted_at)][level] += 1

    buckets = [
        TrendBucketSchema(
            day=day,
            not_fit=counts[ReadinessLevel.NOT_FIT],
            minor=counts[ReadinessLevel.MINOR],
            fit=counts[ReadinessLevel.FIT],
            total=sum(counts.values()),
        )
        for day, counts in sorted(daily_counts.items())
    ]
    validate_trend(buckets, start_date, end_date)
    return buckets


def validate_trend(buckets: list[TrendBucketSchema], start_date: date, end_date: date) -> None:
    """Raise ``InvariantViolation`` if the buckets are not a consistent report."""
    seen = set()
    for bucket in buckets:
        if not start_date <= bucket.day <= end_date:
            raise InvariantViolation(f"Bucket {bucket.day} outside {start_date}..{end_date}")
        if bucket.day in seen:
            raise InvariantViolation(f"Duplicate bucket for {bucket.day}")
        seen.add(bucket.day)
        levels = (bucket.not_fit, bucket.minor, bucket.fit)
        if min(levels) < 0:
            raise InvariantViolation(f"Negative level count in bucket {bucket.day}")
        if sum(levels) != bucket.total:
            raise InvariantViolation(
                f"Bucket {bucket.day}: level counts {sum(levels)} != total {bucket.total}"
            )
        if bucket.total == 0:
            raise InvariantViolation(f"Empty bucket for {bucket.day}")


class TrendService:
    """Service class for readiness trend charts."""

    store = AssignmentStore

    @classmethod
    def compute_trend(cls, team: str, start_date: date, end_date: date,
                      cancel_event=None) -> TrendReportSchema:
        check_window(start_date, end_date)
        start, end = window_bounds(start_date, end_date)
        submissions: list[Submission] = cls.store.list_submissions_for_team(
            team, start, end, cancel_event=cancel_event,
        )
        buckets = aggregate_trend(submissions, start_date, end_date)
        logger.debug("Trend for %s %s..%s: %d bucket(s)", team, start_date, end_date, len(buckets))
        return TrendReportSchema(
            team=team,
            start_date=start_date,
            end_date=end_date,
            buckets=buckets,
            total_submissions=sum(b.total for b in buckets),
        )
