from datetime import date, datetime, time, timedelta, timezone as dt_timezone

from django.utils import timezone

from .conf import readiness_setting
from .exceptions import ValidationError


def organization_tz() -> dt_timezone:
    """Fixed-offset timezone of the organization (no DST)."""
    return dt_timezone(timedelta(hours=readiness_setting("UTC_OFFSET_HOURS")))


def to_local(instant: datetime) -> datetime:
    return instant.astimezone(organization_tz())


def local_date(instant: datetime) -> date:
    return to_local(instant).date()


def local_today(now: datetime | None = None) -> date:
    return local_date(now or timezone.now())


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC instants for [start of day, start of next day) in local time."""
    start = datetime.combine(day, time.min, tzinfo=organization_tz())
    end = start + timedelta(days=1)
    return start.astimezone(dt_timezone.utc), end.astimezone(dt_timezone.utc)


def window_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    start, _ = day_bounds(start_date)
    _, end = day_bounds(end_date)
    return start, end


def resolve_due_time(assigned_date: date, due_time, created_at: datetime) -> datetime:
    """
    Work out the absolute deadline for an assignment.

    A ``time`` is read as a local time of day on ``assigned_date``, an aware
    ``datetime`` is taken as is, and ``None`` falls back to ``created_at`` plus
    the configured due offset.
    """
    if due_time is None:
        due = created_at + timedelta(hours=readiness_setting("DUE_OFFSET_HOURS"))
    elif isinstance(due_time, datetime):
        if timezone.is_naive(due_time):
            raise ValueError("due_time datetime must be timezone-aware")
        due = due_time
    elif isinstance(due_time, time):
        due = datetime.combine(assigned_date, due_time.replace(tzinfo=None), tzinfo=organization_tz())
    else:
        raise TypeError(f"Unsupported due_time: {due_time!r}")
    return due.astimezone(dt_timezone.utc)


def check_window(start_date: date, end_date: date) -> None:
    """Reject reversed or oversized date windows."""
    if start_date > end_date:
        raise ValidationError(f"start_date {start_date} is after end_date {end_date}")
    max_days = readiness_setting("MAX_WINDOW_DAYS")
    if (end_date - start_date).days + 1 > max_days:
        raise ValidationError(f"Date window longer than {max_days} days")
