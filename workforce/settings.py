# workforce/settings.py
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _as_bool(val: str | None, default=False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(val: str | None, default: int) -> int:
    if val is None or not str(val).strip():
        return default
    return int(val)


def _as_float(val: str | None, default: float) -> float:
    if val is None or not str(val).strip():
        return default
    return float(val)


# --- Core ---
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
DEBUG = _as_bool(os.getenv("DEBUG"), default=False)
ALLOWED_HOSTS = [h for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "readiness",
]

MIDDLEWARE = []

# --- DB ---
DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "readiness.db")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# All stored instants are UTC; the organization's local offset lives in READINESS.
USE_TZ = True
TIME_ZONE = "UTC"

# --- Readiness engine ---
READINESS = {
    "UTC_OFFSET_HOURS": _as_float(os.getenv("READINESS_UTC_OFFSET_HOURS"), 8.0),
    "DUE_OFFSET_HOURS": _as_int(os.getenv("READINESS_DUE_OFFSET_HOURS"), 24),
    "SWEEP_JOB_SALT": os.getenv("READINESS_SWEEP_JOB_SALT", "mark-overdue"),
    "SWEEP_INTERVAL_SECONDS": _as_int(os.getenv("READINESS_SWEEP_INTERVAL_SECONDS"), 3600),
    "SWEEP_MAX_RETRIES": _as_int(os.getenv("READINESS_SWEEP_MAX_RETRIES"), 3),
    "SWEEP_BACKOFF_SECONDS": _as_float(os.getenv("READINESS_SWEEP_BACKOFF_SECONDS"), 0.5),
    "NOTIFICATION_BACKEND": os.getenv(
        "READINESS_NOTIFICATION_BACKEND",
        "readiness.notifications.DatabaseNotificationBackend",
    ),
    "ON_TIME_BASIS": os.getenv("READINESS_ON_TIME_BASIS", "completion"),
    "MAX_WINDOW_DAYS": _as_int(os.getenv("READINESS_MAX_WINDOW_DAYS"), 366),
}

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR")
LOG_FILENAME = os.getenv("LOG_FILENAME", "readiness.log")

_log_handlers = {
    "console": {
        "class": "logging.StreamHandler",
        "formatter": "default",
        "level": LOG_LEVEL,
    },
}
if LOG_DIR:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    # Rotating file handler (5MB x 5)
    _log_handlers["file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "level": LOG_LEVEL,
        "filename": str(Path(LOG_DIR) / LOG_FILENAME),
        "maxBytes": 5_000_000,
        "backupCount": 5,
        "encoding": "utf-8",
    }

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
        },
    },
    "handlers": _log_handlers,
    "loggers": {
        "readiness": {
            "handlers": list(_log_handlers),
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
