"""ProcureFlow: fire-and-forget notification dispatcher (Celery)."""
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from procureflow.config import get_settings

logger = logging.getLogger(__name__)

# Notification kinds
MATERIAL_REQUEST_CREATED = "material_request_created"
VENDOR_ASSIGNED = "vendor_assigned"
VENDOR_ACCEPTED = "vendor_accepted"


@dataclass(frozen=True)
class Notification:
    kind: str
    recipient_id: UUID
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher:
    """
    Enqueues ``deliver_notification`` for background delivery.
    A broker outage is logged and swallowed: notifications never abort the
    operation that triggered them.
    """

    def __init__(self, enabled: bool | None = None):
        settings = get_settings()
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    def dispatch_all(self, notifications: list[Notification]) -> None:
        for n in notifications:
            self.dispatch(n.kind, n.recipient_id, n.payload)

    def dispatch(self, kind: str, recipient_id: UUID, payload: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            from procureflow.tasks.notification_tasks import deliver_notification

            deliver_notification.delay(kind, str(recipient_id), payload)
        except Exception as exc:
            logger.error("Failed to enqueue %s notification for %s: %s", kind, recipient_id, exc)
