"""
ProcureFlow: QuotationProtocol.

Propose / accept / reject cycle over quotation messages. Acceptance happens
at most once per order: the winning accept bumps the order version, a racing
accept is re-run by ``retry_on_conflict`` and lands on the idempotent path.
Accepting a quotation rejects every other pending quotation on the order.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.config import get_settings
from procureflow.core import events
from procureflow.core.capabilities import Capabilities
from procureflow.core.events import DomainEvent, Outcome
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, NotFound, ValidationError
from procureflow.db.base import as_utc, utcnow
from procureflow.models.message import (
    SENDER_SYSTEM,
    Currency,
    MessageType,
    NegotiationMessage,
    Quotation,
    QuotationStatus,
    SystemEvent,
)
from procureflow.models.purchase_order import POStatus, PurchaseOrder
from procureflow.services import audit_service
from procureflow.services.concurrency import retry_on_conflict
from procureflow.services.negotiation_thread import append_message
from procureflow.services.order_state_machine import transition_order, validate_transition
from procureflow.services.order_store import OrderStore

logger = logging.getLogger(__name__)

QUOTATION_VALIDITY_DAYS = 7
SUPERSEDED_REASON = "Superseded by accepted quotation"
NEGOTIABLE_STATUSES = (POStatus.SENT.value, POStatus.IN_NEGOTIATION.value)


@dataclass
class QuotationDecision:
    order: PurchaseOrder
    message: NegotiationMessage
    changed: bool = True


def _to_decimal(value: Any, label: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{label} must be a number")
    return result


def _normalize_items(items: list[dict] | None) -> list[dict[str, Any]]:
    """Priced items stored as JSON: name, quantity, unit, unit_price, total."""
    normalized = []
    for index, item in enumerate(items or [], start=1):
        name = str(item.get("name") or "").strip()
        if not name:
            raise ValidationError(f"Quotation item {index}: name is required")
        quantity = _to_decimal(item.get("quantity", 0), f"Quotation item {index} quantity")
        unit_price = _to_decimal(item.get("unit_price", 0), f"Quotation item {index} unit price")
        if quantity < 0 or unit_price < 0:
            raise ValidationError(f"Quotation item {index}: quantity and unit price cannot be negative")
        total = item.get("total")
        total = _to_decimal(total, f"Quotation item {index} total") if total is not None else quantity * unit_price
        normalized.append(
            {
                "name": name,
                "quantity": str(quantity),
                "unit": item.get("unit"),
                "unit_price": str(unit_price),
                "total": str(total),
            }
        )
    return normalized


async def _load_quotation_message(db: AsyncSession, order_id: UUID, message_id: UUID) -> NegotiationMessage:
    result = await db.execute(
        select(NegotiationMessage)
        .where(NegotiationMessage.id == message_id, NegotiationMessage.po_id == order_id)
        .execution_options(populate_existing=True)
    )
    message = result.scalar_one_or_none()
    if message is None or message.message_type != MessageType.QUOTATION.value or message.quotation is None:
        raise NotFound("Quotation", message_id)
    return message


def _require_pending(quotation: Quotation) -> None:
    if quotation.status != QuotationStatus.PENDING.value:
        raise InvalidStateTransition(
            f"Quotation has already been {quotation.status}", quotation.status
        )


def _apply_priced_items(order: PurchaseOrder, items: list[dict[str, Any]]) -> None:
    """Copy accepted unit prices onto order lines with the same name."""
    by_name = {item["name"].casefold(): item for item in items}
    for line in order.lines:
        item = by_name.get(line.name.casefold())
        if item is None:
            continue
        line.unit_price = Decimal(item["unit_price"])
        line.total_price = (line.unit_price * line.quantity).quantize(Decimal("0.01"))


class QuotationProtocol:
    @staticmethod
    @retry_on_conflict
    async def submit_quotation(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        amount: Any,
        currency: str | None = None,
        valid_until: datetime | None = None,
        note: str | None = None,
        items: list[dict] | None = None,
        payment_terms: str | None = None,
        delivery_terms: str | None = None,
        in_response_to: UUID | None = None,
    ) -> Outcome[NegotiationMessage]:
        amount = _to_decimal(amount, "Amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        now = utcnow()
        valid_until = as_utc(valid_until) if valid_until else now + timedelta(days=QUOTATION_VALIDITY_DAYS)
        if valid_until < now:
            raise ValidationError("Valid-until date cannot be in the past")
        currency = currency or get_settings().DEFAULT_CURRENCY
        if currency not in {c.value for c in Currency}:
            raise ValidationError(f"Unsupported currency '{currency}'")
        priced_items = _normalize_items(items)

        order = await OrderStore.load_order(db, order_id)
        if not caps.can_mutate_order(order):
            raise Forbidden("Only the order's vendor can submit quotations")
        if order.chat_closed:
            raise InvalidStateTransition("Negotiation is closed for this order", order.status)
        if order.status not in NEGOTIABLE_STATUSES:
            raise InvalidStateTransition(f"Cannot submit a quotation while the order is {order.status}", order.status)
        if in_response_to is not None:
            found = await db.execute(
                select(NegotiationMessage.id).where(
                    NegotiationMessage.id == in_response_to, NegotiationMessage.po_id == order.id
                )
            )
            if found.scalar_one_or_none() is None:
                raise ValidationError("in_response_to must reference a message on this order")

        quotation = Quotation(
            id=uuid.uuid4(),
            amount=amount,
            currency=currency,
            valid_until=valid_until,
            note=note,
            items=priced_items,
            payment_terms=payment_terms,
            delivery_terms=delivery_terms,
            in_response_to=in_response_to,
            status=QuotationStatus.PENDING.value,
        )
        message = append_message(
            db, order,
            sender_id=caps.user_id,
            sender_role=caps.role,
            message_type=MessageType.QUOTATION.value,
            content=note or f"Quotation: {currency} {amount}",
            quotation=quotation,
        )
        if order.status == POStatus.SENT.value:
            transition_order(order, POStatus.IN_NEGOTIATION.value)

        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_QUOTATION_SUBMITTED, "purchase_order", order.id,
            {"message_id": str(message.id), "amount": str(amount), "currency": currency},
        )
        return Outcome(
            message,
            [DomainEvent(events.QUOTATION_SUBMITTED, "purchase_order", order.id, {"message_id": str(message.id), "amount": str(amount)})],
        )

    @staticmethod
    @retry_on_conflict
    async def accept_quotation(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        message_id: UUID,
    ) -> Outcome[QuotationDecision]:
        """Accept a pending quotation. Accepting the already-accepted quotation again is a no-op success."""
        if not caps.can_approve:
            raise Forbidden("Only owners can accept quotations")
        order = await OrderStore.load_order(db, order_id)
        message = await _load_quotation_message(db, order.id, message_id)
        quotation = message.quotation

        if quotation.status == QuotationStatus.ACCEPTED.value:
            logger.info("Quotation %s on order %s already accepted", message_id, order.order_number)
            return Outcome(QuotationDecision(order, message, changed=False))
        _require_pending(quotation)
        validate_transition(order.status, POStatus.ACCEPTED.value)

        now = utcnow()
        quotation.status = QuotationStatus.ACCEPTED.value
        quotation.resolved_at = now
        quotation.resolved_by = caps.user_id

        siblings = await db.execute(
            select(Quotation).where(
                Quotation.po_id == order.id,
                Quotation.status == QuotationStatus.PENDING.value,
                Quotation.id != quotation.id,
            )
        )
        superseded = 0
        for sibling in siblings.scalars():
            sibling.status = QuotationStatus.REJECTED.value
            sibling.resolved_at = now
            sibling.resolved_by = caps.user_id
            sibling.rejection_reason = SUPERSEDED_REASON
            superseded += 1

        transition_order(order, POStatus.ACCEPTED.value)
        order.chat_closed = True
        order.chat_closed_at = now
        order.negotiation_active = False
        order.accepted_message_id = message.id
        order.final_amount = quotation.amount
        order.total_amount = quotation.amount
        order.currency = quotation.currency
        _apply_priced_items(order, quotation.items or [])

        append_message(
            db, order,
            sender_id=None,
            sender_role=SENDER_SYSTEM,
            message_type=MessageType.SYSTEM.value,
            system_event=SystemEvent.QUOTATION_ACCEPTED.value,
            content=f"Quotation of {quotation.currency} {quotation.amount} accepted. Negotiation is closed.",
        )
        append_message(
            db, order,
            sender_id=None,
            sender_role=SENDER_SYSTEM,
            message_type=MessageType.SYSTEM.value,
            system_event=SystemEvent.DELIVERY_DETAILS_REQUIRED.value,
            content="Please submit delivery details to proceed.",
        )
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_QUOTATION_ACCEPTED, "purchase_order", order.id,
            {"message_id": str(message.id), "amount": str(quotation.amount), "superseded": superseded},
        )
        return Outcome(
            QuotationDecision(order, message),
            [
                DomainEvent(
                    events.QUOTATION_ACCEPTED, "purchase_order", order.id,
                    {"message_id": str(message.id), "amount": str(quotation.amount)},
                )
            ],
        )

    @staticmethod
    @retry_on_conflict
    async def reject_quotation(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        message_id: UUID,
        reason: str | None = None,
    ) -> Outcome[QuotationDecision]:
        """Reject a pending quotation. The order stays open for another proposal."""
        if not caps.can_approve:
            raise Forbidden("Only owners can reject quotations")
        order = await OrderStore.load_order(db, order_id)
        message = await _load_quotation_message(db, order.id, message_id)
        quotation = message.quotation
        _require_pending(quotation)

        quotation.status = QuotationStatus.REJECTED.value
        quotation.resolved_at = utcnow()
        quotation.resolved_by = caps.user_id
        quotation.rejection_reason = reason

        append_message(
            db, order,
            sender_id=None,
            sender_role=SENDER_SYSTEM,
            message_type=MessageType.SYSTEM.value,
            system_event=SystemEvent.QUOTATION_REJECTED.value,
            content=f"Quotation rejected: {reason}" if reason else "Quotation rejected",
        )
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_QUOTATION_REJECTED, "purchase_order", order.id,
            {"message_id": str(message.id), "reason": reason},
        )
        return Outcome(
            QuotationDecision(order, message),
            [DomainEvent(events.QUOTATION_REJECTED, "purchase_order", order.id, {"message_id": str(message.id), "reason": reason})],
        )
