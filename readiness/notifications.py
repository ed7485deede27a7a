import logging

from django.db import transaction
from django.utils.module_loading import import_string

from .conf import readiness_setting
from .exceptions import NotificationDeliveryError
from .models import Assignment, Notification
from .schemas import NotificationPayload
from .timeutils import to_local

logger = logging.getLogger(__name__)

ASSIGNMENT_CREATED = "work_readiness_assignment"
ASSIGNMENT_OVERDUE = "work_readiness_overdue"


def build_assignment_created(assignment: Assignment) -> NotificationPayload:
    """Tell the worker they have a readiness check to complete."""
    due_local = to_local(assignment.due_time)
    message = (
        "You have been assigned to complete a work readiness assessment. "
        f"Due by {due_local:%Y-%m-%d %H:%M}."
    )
    if assignment.notes:
        message += f" Note: {assignment.notes}"
    return NotificationPayload(
        recipient_id=assignment.worker_id,
        sender_id=assignment.team_leader_id,
        type=ASSIGNMENT_CREATED,
        title="New Work Readiness Assignment",
        message=message,
        priority="high",
        metadata={
            "assignment_id": str(assignment.id),
            "assigned_date": assignment.assigned_date.isoformat(),
            "due_time": assignment.due_time.isoformat(),
            "task_type": "work_readiness",
        },
    )


def build_assignment_overdue(assignment: Assignment) -> NotificationPayload:
    """Tell the team leader a worker missed the deadline."""
    due_local = to_local(assignment.due_time)
    return NotificationPayload(
        recipient_id=assignment.team_leader_id,
        sender_id=None,
        type=ASSIGNMENT_OVERDUE,
        title="Work Readiness Assignment Overdue",
        message=(
            f"Worker {assignment.worker_id} did not complete the work readiness "
            f"assessment for {assignment.assigned_date:%Y-%m-%d} "
            f"(due {due_local:%Y-%m-%d %H:%M})."
        ),
        priority="medium",
        metadata={
            "assignment_id": str(assignment.id),
            "worker_id": assignment.worker_id,
            "assigned_date": assignment.assigned_date.isoformat(),
            "due_time": assignment.due_time.isoformat(),
            "task_type": "work_readiness",
        },
    )


class DatabaseNotificationBackend:
    """Writes each notification as a ``Notification`` row."""

    def send(self, payload: NotificationPayload) -> None:
        # Savepoint keeps a failed insert from poisoning the caller's transaction
        with transaction.atomic():
            Notification.objects.create(
                recipient_id=payload.recipient_id,
                sender_id=payload.sender_id,
                type=payload.type,
                title=payload.title,
                message=payload.message,
                priority=payload.priority,
                metadata=payload.metadata,
            )


class LoggingNotificationBackend:
    def send(self, payload: NotificationPayload) -> None:
        logger.info(
            "Notification %s to %s: %s", payload.type, payload.recipient_id, payload.title
        )


class NotificationDispatcher:
    """Fire-and-forget delivery through the configured backend."""

    @staticmethod
    def get_backend():
        return import_string(readiness_setting("NOTIFICATION_BACKEND"))()

    @classmethod
    def dispatch(cls, payload: NotificationPayload) -> bool:
        """Send ``payload``; failures are logged and reported as ``False``."""
        try:
            cls.get_backend().send(payload)
        except Exception as e:
            error = e if isinstance(e, NotificationDeliveryError) else NotificationDeliveryError(
                f"{payload.type} to {payload.recipient_id} failed: {e}"
            )
            logger.warning("Notification not delivered: %s", error)
            return False
        return True
