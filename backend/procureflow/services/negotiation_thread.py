"""
ProcureFlow: NegotiationThread.

Append-only, typed message log attached to a purchase order. Messages are
totally ordered by ``seq``, which is allocated from ``order.message_count``;
appending touches the order row, so the order's version serializes writers.
"""
import logging
import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.core import events
from procureflow.core.capabilities import Capabilities
from procureflow.core.events import DomainEvent, Outcome
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, ValidationError
from procureflow.db.base import utcnow
from procureflow.models.message import MessageRead, MessageType, NegotiationMessage, Quotation
from procureflow.models.purchase_order import PurchaseOrder
from procureflow.services.concurrency import retry_on_conflict
from procureflow.services.order_store import OrderStore

logger = logging.getLogger(__name__)

DELIVERY_PAYLOAD_KEYS = {"estimated_delivery_date"}
INVOICE_PAYLOAD_KEYS = {"invoice_number", "amount"}


def _validate_payload(message_type: str, payload: dict[str, Any] | None, quotation: Quotation | None) -> None:
    """A message carries exactly the structured payload its type calls for."""
    if message_type not in {t.value for t in MessageType}:
        raise ValidationError(f"Unknown message type '{message_type}'")
    if message_type == MessageType.QUOTATION.value:
        if quotation is None or payload is not None:
            raise ValidationError("A quotation message must carry a quotation and nothing else")
        return
    if quotation is not None:
        raise ValidationError(f"A {message_type} message cannot carry a quotation")
    if message_type in (MessageType.TEXT.value, MessageType.SYSTEM.value):
        if payload is not None:
            raise ValidationError(f"A {message_type} message cannot carry a payload")
        return
    required = DELIVERY_PAYLOAD_KEYS if message_type == MessageType.DELIVERY.value else INVOICE_PAYLOAD_KEYS
    if not payload or not required <= payload.keys():
        raise ValidationError(f"A {message_type} message requires {', '.join(sorted(required))}")


def append_message(
    db: AsyncSession,
    order: PurchaseOrder,
    *,
    sender_id: UUID | None,
    sender_role: str,
    message_type: str,
    content: str = "",
    system_event: str | None = None,
    payload: dict[str, Any] | None = None,
    quotation: Quotation | None = None,
) -> NegotiationMessage:
    """Append one message. Access and chat-closed checks belong to the caller."""
    _validate_payload(message_type, payload, quotation)
    now = utcnow()
    if quotation is not None:
        quotation.po_id = order.id
    order.message_count += 1
    order.last_message_at = now
    order.updated_at = now
    message = NegotiationMessage(
        id=uuid.uuid4(),
        po_id=order.id,
        seq=order.message_count,
        sender_id=sender_id,
        sender_role=sender_role,
        message_type=message_type,
        content=content,
        system_event=system_event,
        payload=payload,
        quotation=quotation,
        created_at=now,
    )
    db.add(message)
    return message


class NegotiationThread:
    @staticmethod
    @retry_on_conflict
    async def post_message(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        message_type: str,
        content: str,
        payload: dict[str, Any] | None = None,
    ) -> Outcome[NegotiationMessage]:
        """Post a chat message. Quotations go through QuotationProtocol instead."""
        if message_type == MessageType.QUOTATION.value:
            raise ValidationError("Quotations must be submitted through the quotation endpoint")
        if message_type == MessageType.TEXT.value and not (content or "").strip():
            raise ValidationError("Message content is required")

        order = await OrderStore.load_order(db, order_id)
        if not caps.can_view_order(order):
            raise Forbidden("Access denied to this purchase order")
        if order.chat_closed and message_type != MessageType.SYSTEM.value:
            raise InvalidStateTransition("Chat is closed for this order", order.status)

        message = append_message(
            db, order,
            sender_id=caps.user_id,
            sender_role=caps.role,
            message_type=message_type,
            content=(content or "").strip(),
            payload=payload,
        )
        return Outcome(
            message,
            [DomainEvent(events.MESSAGE_POSTED, "purchase_order", order.id, {"message_id": str(message.id), "message_type": message_type})],
        )

    @staticmethod
    async def list_messages(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
    ) -> list[tuple[NegotiationMessage, bool]]:
        """Messages oldest-first, each paired with whether the requester has read it."""
        await OrderStore.get_order(db, order_id, caps)
        result = await db.execute(
            select(NegotiationMessage)
            .where(NegotiationMessage.po_id == order_id)
            .order_by(NegotiationMessage.seq)
        )
        messages = list(result.scalars().all())
        read_ids = set(
            (
                await db.execute(
                    select(MessageRead.message_id)
                    .join(NegotiationMessage, NegotiationMessage.id == MessageRead.message_id)
                    .where(NegotiationMessage.po_id == order_id, MessageRead.user_id == caps.user_id)
                )
            ).scalars()
        )
        return [(m, m.sender_id == caps.user_id or m.id in read_ids) for m in messages]

    @staticmethod
    @retry_on_conflict
    async def mark_read(db: AsyncSession, order_id: UUID, caps: Capabilities) -> int:
        """Mark every message not authored by the requester as read. Returns how many changed."""
        await OrderStore.get_order(db, order_id, caps)
        result = await db.execute(
            select(NegotiationMessage.id).where(
                NegotiationMessage.po_id == order_id,
                _not_authored_by(caps.user_id),
                ~_read_by(caps.user_id),
            )
        )
        unread_ids = list(result.scalars())
        now = utcnow()
        for message_id in unread_ids:
            db.add(MessageRead(message_id=message_id, user_id=caps.user_id, read_at=now))
        if unread_ids:
            logger.debug("User %s read %d message(s) on order %s", caps.user_id, len(unread_ids), order_id)
        return len(unread_ids)

    @staticmethod
    async def unread_count(db: AsyncSession, caps: Capabilities) -> int:
        """Unread messages across every order the requester can see."""
        q = select(func.count(NegotiationMessage.id)).where(
            _not_authored_by(caps.user_id),
            ~_read_by(caps.user_id),
        )
        if not caps.can_view_all_orders:
            q = q.join(PurchaseOrder, PurchaseOrder.id == NegotiationMessage.po_id).where(
                PurchaseOrder.vendor_id == caps.user_id
            )
        return (await db.execute(q)).scalar_one()


def _not_authored_by(user_id: UUID):
    return or_(NegotiationMessage.sender_id.is_(None), NegotiationMessage.sender_id != user_id)


def _read_by(user_id: UUID):
    return exists().where(
        MessageRead.message_id == NegotiationMessage.id,
        MessageRead.user_id == user_id,
    )
