"""
ProcureFlow: DeliveryTracker.

Post-acceptance fulfillment: delivery-detail submission (which generates the
invoice), delivery progression and the tracking read model. Every guard runs
before the first write, so a rejected call leaves the order untouched.
"""
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.core import events
from procureflow.core.capabilities import Capabilities
from procureflow.core.events import DomainEvent, Outcome
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, ServerError, ValidationError
from procureflow.db.base import as_utc, utcnow
from procureflow.models.invoice import InvoiceStatus, VendorInvoice
from procureflow.models.material_request import RequestStatus
from procureflow.models.message import SENDER_SYSTEM, MessageType, NegotiationMessage, SystemEvent
from procureflow.models.purchase_order import (
    DeliveryStatus,
    DeliveryUpdate,
    LineDeliveryStatus,
    POStatus,
    PurchaseOrder,
)
from procureflow.services import audit_service
from procureflow.services.concurrency import retry_on_conflict
from procureflow.services.negotiation_thread import append_message
from procureflow.services.order_state_machine import transition_order, validate_transition
from procureflow.services.order_store import OrderStore
from procureflow.services.request_ledger import RequestLedger

logger = logging.getLogger(__name__)

UPDATABLE_STATUSES = (POStatus.IN_PROGRESS.value, POStatus.PARTIALLY_DELIVERED.value)
DELIVERY_STATUS_UPDATES = (
    DeliveryStatus.IN_TRANSIT.value,
    DeliveryStatus.DELIVERED.value,
    DeliveryStatus.PARTIALLY_DELIVERED.value,
)


def generate_invoice_number() -> str:
    """INV-YYYYMMDD-XXXXXX"""
    return f"INV-{utcnow():%Y%m%d}-{secrets.token_hex(3).upper()}"


@dataclass
class DeliverySubmission:
    order: PurchaseOrder
    invoice: VendorInvoice
    delivery_message: NegotiationMessage
    invoice_message: NegotiationMessage


@dataclass
class DeliveryTracking:
    order: PurchaseOrder
    history: list[DeliveryUpdate]
    invoice: VendorInvoice | None


def _require_vendor(order: PurchaseOrder, caps: Capabilities) -> None:
    if not caps.can_mutate_order(order):
        raise Forbidden("Only the order's vendor can update delivery")


class DeliveryTracker:
    @staticmethod
    @retry_on_conflict
    async def submit_delivery_details(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        estimated_delivery_date: datetime,
        tracking_number: str | None = None,
        carrier: str | None = None,
        notes: str | None = None,
    ) -> Outcome[DeliverySubmission]:
        """
        One unit: fill delivery tracking, create the invoice for the accepted
        quotation, post a delivery and an invoice message, move to in_progress.
        """
        order = await OrderStore.load_order(db, order_id)
        _require_vendor(order, caps)
        if order.status != POStatus.ACCEPTED.value:
            raise InvalidStateTransition(
                f"Delivery details can only be submitted for accepted orders; this one is {order.status}",
                order.status,
                POStatus.IN_PROGRESS.value,
            )
        if estimated_delivery_date is None:
            raise ValidationError("Estimated delivery date is required")
        if order.accepted_message_id is None or order.final_amount is None:
            # accepted status without an accepted quotation is a corrupted row
            logger.error("Order %s is accepted but has no accepted quotation", order.order_number)
            raise ServerError()
        accepted = await db.execute(
            select(NegotiationMessage).where(NegotiationMessage.id == order.accepted_message_id)
        )
        accepted_message = accepted.scalar_one()

        now = utcnow()
        estimated = as_utc(estimated_delivery_date)
        order.delivery_status = DeliveryStatus.PROCESSING.value
        order.estimated_delivery_date = estimated
        order.tracking_number = tracking_number
        order.carrier = carrier
        order.delivery_notes = notes
        order.delivery_updated_at = now
        order.delivery_updated_by = caps.user_id

        invoice = VendorInvoice(
            id=uuid.uuid4(),
            invoice_number=generate_invoice_number(),
            po_id=order.id,
            vendor_id=order.vendor_id,
            accepted_message_id=order.accepted_message_id,
            amount=order.final_amount,
            currency=order.currency,
            items=list(accepted_message.quotation.items or []) if accepted_message.quotation else [],
            status=InvoiceStatus.PENDING.value,
            created_at=now,
        )
        db.add(invoice)

        delivery_message = append_message(
            db, order,
            sender_id=caps.user_id,
            sender_role=caps.role,
            message_type=MessageType.DELIVERY.value,
            system_event=SystemEvent.DELIVERY_SUBMITTED.value,
            content=f"Delivery details submitted. Estimated delivery: {estimated:%Y-%m-%d}",
            payload={
                "estimated_delivery_date": estimated.isoformat(),
                "tracking_number": tracking_number,
                "carrier": carrier,
                "notes": notes,
            },
        )
        invoice_message = append_message(
            db, order,
            sender_id=caps.user_id,
            sender_role=caps.role,
            message_type=MessageType.INVOICE.value,
            system_event=SystemEvent.INVOICE_GENERATED.value,
            content=f"Invoice {invoice.invoice_number} generated for {invoice.currency} {invoice.amount}",
            payload={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "amount": str(invoice.amount),
                "currency": invoice.currency,
            },
        )
        transition_order(order, POStatus.IN_PROGRESS.value)

        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_DELIVERY_SUBMITTED, "purchase_order", order.id,
            {"estimated_delivery_date": estimated.isoformat(), "tracking_number": tracking_number},
        )
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_INVOICE_GENERATED, "vendor_invoice", invoice.id,
            {"invoice_number": invoice.invoice_number, "amount": str(invoice.amount)},
        )
        logger.info("Invoice %s generated for order %s", invoice.invoice_number, order.order_number)
        return Outcome(
            DeliverySubmission(order, invoice, delivery_message, invoice_message),
            [
                DomainEvent(events.DELIVERY_DETAILS_SUBMITTED, "purchase_order", order.id, {"estimated_delivery_date": estimated.isoformat()}),
                DomainEvent(events.INVOICE_GENERATED, "vendor_invoice", invoice.id, {"order_id": str(order.id), "invoice_number": invoice.invoice_number}),
            ],
        )

    @staticmethod
    @retry_on_conflict
    async def update_delivery_status(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        new_status: str,
        notes: str | None = None,
        tracking_number: str | None = None,
        carrier: str | None = None,
        items: list[dict[str, Any]] | None = None,
        estimated_delivery_date: datetime | None = None,
    ) -> Outcome[PurchaseOrder]:
        """
        Progress delivery. ``items`` carries per-line delivered quantities
        ``{line_id, delivered_quantity}`` and is only accepted with
        ``partially_delivered``; ``delivered`` always covers every line.
        ``estimated_delivery_date`` reschedules the expected arrival.
        """
        if new_status not in DELIVERY_STATUS_UPDATES:
            raise ValidationError(f"Delivery status must be one of: {', '.join(DELIVERY_STATUS_UPDATES)}")
        if items and new_status != DeliveryStatus.PARTIALLY_DELIVERED.value:
            raise ValidationError("Delivered items can only be reported with partially_delivered")
        order = await OrderStore.load_order(db, order_id)
        _require_vendor(order, caps)
        if order.status not in UPDATABLE_STATUSES:
            raise InvalidStateTransition(
                f"Delivery status cannot be updated while the order is {order.status}",
                order.status,
            )
        line_quantities = _line_quantities(order, items) if new_status == DeliveryStatus.PARTIALLY_DELIVERED.value else {}

        target_status = order.status
        if new_status == DeliveryStatus.DELIVERED.value:
            target_status = POStatus.COMPLETED.value
        elif new_status == DeliveryStatus.PARTIALLY_DELIVERED.value:
            fully = all(line_quantities.get(line.id, line.delivered_quantity) >= line.quantity for line in order.lines)
            target_status = POStatus.COMPLETED.value if fully else POStatus.PARTIALLY_DELIVERED.value
        moves = target_status != order.status or new_status == DeliveryStatus.PARTIALLY_DELIVERED.value
        if moves:
            validate_transition(order.status, target_status)

        now = utcnow()
        if target_status == POStatus.COMPLETED.value:
            for line in order.lines:
                line.delivered_quantity = line.quantity
                line.delivery_status = LineDeliveryStatus.DELIVERED.value
                line.delivered_at = line.delivered_at or now
        else:
            for line in order.lines:
                if line.id not in line_quantities:
                    continue
                line.delivered_quantity = line_quantities[line.id]
                if line.delivered_quantity >= line.quantity:
                    line.delivery_status = LineDeliveryStatus.DELIVERED.value
                    line.delivered_at = line.delivered_at or now
                elif line.delivered_quantity > 0:
                    line.delivery_status = LineDeliveryStatus.PARTIAL.value

        order.delivery_status = (
            DeliveryStatus.DELIVERED.value if target_status == POStatus.COMPLETED.value else new_status
        )
        if tracking_number:
            order.tracking_number = tracking_number
        if carrier:
            order.carrier = carrier
        if notes:
            order.delivery_notes = notes
        if estimated_delivery_date is not None:
            order.estimated_delivery_date = as_utc(estimated_delivery_date)
        order.delivery_updated_at = now
        order.delivery_updated_by = caps.user_id
        if target_status == POStatus.COMPLETED.value:
            order.actual_delivery_date = now
        order.delivery_updates.append(
            DeliveryUpdate(
                status=order.delivery_status,
                notes=notes,
                tracking_number=tracking_number,
                carrier=carrier,
                estimated_delivery_date=as_utc(estimated_delivery_date),
                updated_by=caps.user_id,
                created_at=now,
            )
        )

        outcome: Outcome[PurchaseOrder] = Outcome(order)
        if moves:
            transition_order(order, target_status)
        if target_status == POStatus.COMPLETED.value:
            await RequestLedger.set_fulfillment(db, order.material_request_id, RequestStatus.FULFILLED)
            outcome.events.append(DomainEvent(events.PURCHASE_ORDER_COMPLETED, "purchase_order", order.id))
        elif target_status == POStatus.PARTIALLY_DELIVERED.value:
            await RequestLedger.set_fulfillment(db, order.material_request_id, RequestStatus.PARTIALLY_FULFILLED)

        append_message(
            db, order,
            sender_id=None,
            sender_role=SENDER_SYSTEM,
            message_type=MessageType.SYSTEM.value,
            system_event=SystemEvent.DELIVERY_UPDATE.value,
            content=f"Delivery status updated to {order.delivery_status.replace('_', ' ')}"
            + (f": {notes}" if notes else ""),
        )
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_DELIVERY_UPDATED, "purchase_order", order.id,
            {"delivery_status": order.delivery_status, "order_status": order.status},
        )
        outcome.events.insert(
            0,
            DomainEvent(
                events.DELIVERY_STATUS_UPDATED, "purchase_order", order.id,
                {"delivery_status": order.delivery_status, "order_status": order.status},
            ),
        )
        return outcome

    @staticmethod
    async def get_delivery_tracking(db: AsyncSession, order_id: UUID, caps: Capabilities) -> DeliveryTracking:
        order = await OrderStore.get_order(db, order_id, caps)
        invoice = (
            await db.execute(select(VendorInvoice).where(VendorInvoice.po_id == order.id))
        ).scalar_one_or_none()
        return DeliveryTracking(order, list(order.delivery_updates), invoice)


def _line_quantities(order: PurchaseOrder, items: list[dict[str, Any]] | None) -> dict[UUID, Decimal]:
    """Validate per-line delivered quantities against the ordered quantities."""
    lines = {line.id: line for line in order.lines}
    quantities: dict[UUID, Decimal] = {}
    for entry in items or []:
        try:
            line_id = UUID(str(entry["line_id"]))
            quantity = Decimal(str(entry["delivered_quantity"]))
        except (KeyError, ValueError, ArithmeticError):
            raise ValidationError("Each delivered item needs a line_id and a delivered_quantity")
        line = lines.get(line_id)
        if line is None:
            raise ValidationError(f"Line {line_id} is not on this order")
        if not quantity.is_finite() or quantity < 0:
            raise ValidationError(f"Delivered quantity for '{line.name}' must be a non-negative number")
        if quantity > line.quantity:
            raise ValidationError(
                f"Delivered quantity for '{line.name}' ({quantity}) exceeds ordered quantity ({line.quantity})"
            )
        if quantity < line.delivered_quantity:
            raise ValidationError(f"Delivered quantity for '{line.name}' cannot decrease")
        quantities[line_id] = quantity
    return quantities
