from django.conf import settings

DEFAULTS = {
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


def readiness_setting(name: str):
    """Look up an engine setting, falling back to the packaged default."""
    overrides = getattr(settings, "READINESS", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
