"""
ProcureFlow: domain events.

Mutating service operations return an ``Outcome`` carrying the events they
produced instead of broadcasting them. The API layer commits first and then
hands the events to ``EventPublisher``, which fans them out on Redis pub/sub.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar
from uuid import UUID

from procureflow.config import get_settings
from procureflow.core.notifications import Notification
from procureflow.core.redis import get_redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Event names
MATERIAL_REQUEST_CREATED = "materialRequest.created"
MATERIAL_REQUEST_APPROVED = "materialRequest.approved"
MATERIAL_REQUEST_REJECTED = "materialRequest.rejected"
MATERIAL_REQUEST_VENDOR_ASSIGNED = "materialRequest.vendorAssigned"
MATERIAL_REQUEST_VENDOR_ACCEPTED = "materialRequest.vendorAccepted"
PURCHASE_ORDER_CREATED = "purchaseOrder.created"
PURCHASE_ORDER_CANCELLED = "purchaseOrder.cancelled"
PURCHASE_ORDER_COMPLETED = "purchaseOrder.completed"
MESSAGE_POSTED = "message.posted"
QUOTATION_SUBMITTED = "quotation.submitted"
QUOTATION_ACCEPTED = "quotation.accepted"
QUOTATION_REJECTED = "quotation.rejected"
DELIVERY_DETAILS_SUBMITTED = "delivery.detailsSubmitted"
DELIVERY_STATUS_UPDATED = "delivery.statusUpdated"
INVOICE_GENERATED = "invoice.generated"


@dataclass(frozen=True)
class DomainEvent:
    event: str
    entity_type: str
    entity_id: UUID
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return json.dumps(
            {
                "event": self.event,
                "entity_type": self.entity_type,
                "entity_id": str(self.entity_id),
                "data": self.data,
                "occurred_at": self.occurred_at.isoformat(),
            },
            default=str,
        )


@dataclass
class Outcome(Generic[T]):
    """Result of a mutating operation plus the events to publish after commit."""

    value: T
    events: list[DomainEvent] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)

    def names(self) -> list[str]:
        return [e.event for e in self.events]


class EventPublisher:
    """Publishes committed domain events. Never raises into the request."""

    def __init__(self, channel: str | None = None, enabled: bool | None = None):
        settings = get_settings()
        self.channel = channel or settings.EVENTS_CHANNEL
        self.enabled = settings.EVENTS_ENABLED if enabled is None else enabled

    async def publish(self, events: list[DomainEvent]) -> None:
        if not self.enabled or not events:
            return
        try:
            client = await get_redis()
            for event in events:
                await client.publish(self.channel, event.to_json())
        except Exception as exc:
            logger.error("Failed to publish %d event(s) on %s: %s", len(events), self.channel, exc)
