"""ProcureFlow: OrderStore. PurchaseOrder records, idempotent creation and cancellation."""
import logging
import secrets
import uuid
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.config import get_settings
from procureflow.core import events
from procureflow.core.capabilities import Capabilities
from procureflow.core.events import DomainEvent, Outcome
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, NotFound
from procureflow.db.base import utcnow
from procureflow.models.material_request import MaterialRequest
from procureflow.models.message import SENDER_SYSTEM, MessageType, Quotation, QuotationStatus, SystemEvent
from procureflow.models.purchase_order import (
    DeliveryStatus,
    LineDeliveryStatus,
    POStatus,
    PurchaseOrder,
    PurchaseOrderLine,
)
from procureflow.services import audit_service
from procureflow.services.concurrency import retry_on_conflict
from procureflow.services.order_state_machine import transition_order

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    """PO-YYYYMMDD-XXXXXX"""
    return f"PO-{utcnow():%Y%m%d}-{secrets.token_hex(3).upper()}"


class OrderStore:
    """Owns PurchaseOrder rows and every write to their status."""

    @staticmethod
    async def load_order(db: AsyncSession, order_id: UUID) -> PurchaseOrder:
        """Fresh read of the order and its lines. Raises NotFound."""
        result = await db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Purchase order", order_id)
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: UUID, caps: Capabilities) -> PurchaseOrder:
        order = await OrderStore.load_order(db, order_id)
        if not caps.can_view_order(order):
            raise Forbidden("Access denied to this purchase order")
        return order

    @staticmethod
    async def find_order(db: AsyncSession, material_request_id: UUID, vendor_id: UUID) -> PurchaseOrder | None:
        result = await db.execute(
            select(PurchaseOrder)
            .where(
                PurchaseOrder.material_request_id == material_request_id,
                PurchaseOrder.vendor_id == vendor_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_order(
        db: AsyncSession,
        request: MaterialRequest,
        vendor_id: UUID,
        created_by: UUID,
    ) -> tuple[PurchaseOrder, bool]:
        """
        Get-or-create keyed by (material_request_id, vendor_id).

        Returns ``(order, created)``. An existing order is returned unchanged.
        A concurrent create of the same pair fails the flush on the unique
        constraint; the caller's retry then finds the winner's order here.
        """
        existing = await OrderStore.find_order(db, request.id, vendor_id)
        if existing is not None:
            logger.info("Order %s already exists for request %s / vendor %s", existing.order_number, request.id, vendor_id)
            return existing, False

        now = utcnow()
        order = PurchaseOrder(
            id=uuid.uuid4(),
            order_number=generate_order_number(),
            material_request_id=request.id,
            project_id=request.project_id,
            vendor_id=vendor_id,
            created_by=created_by,
            title=request.title,
            description=request.description,
            currency=request.currency or get_settings().DEFAULT_CURRENCY,
            total_amount=Decimal("0"),
            status=POStatus.SENT.value,
            negotiation_active=True,
            negotiation_started_at=now,
            chat_closed=False,
            message_count=0,
            delivery_status=DeliveryStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            lines=[
                PurchaseOrderLine(
                    position=item.position,
                    name=item.name,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    category=item.category,
                    unit_price=Decimal("0"),
                    total_price=Decimal("0"),
                    delivered_quantity=Decimal("0"),
                    delivery_status=LineDeliveryStatus.PENDING.value,
                )
                for item in request.items
            ],
            delivery_updates=[],
        )
        db.add(order)
        audit_service.log_audit(
            db, created_by, audit_service.ACTION_ORDER_CREATED, "purchase_order", order.id,
            {"order_number": order.order_number, "material_request_id": str(request.id)},
        )
        logger.info("Created order %s for request %s / vendor %s", order.order_number, request.id, vendor_id)
        return order, True

    @staticmethod
    @retry_on_conflict
    async def cancel_order(
        db: AsyncSession,
        order_id: UUID,
        caps: Capabilities,
        reason: str | None = None,
    ) -> Outcome[PurchaseOrder]:
        """Cancel from any non-terminal status. Buyer approvers and the order's own vendor may cancel."""
        from procureflow.services.negotiation_thread import append_message

        order = await OrderStore.load_order(db, order_id)
        if not (caps.can_approve or caps.can_mutate_order(order)):
            raise Forbidden("Only the buyer or the order's vendor can cancel this order")
        if order.is_terminal:
            raise InvalidStateTransition(
                f"Order in '{order.status}' status cannot be cancelled", order.status, POStatus.CANCELLED.value
            )

        now = utcnow()
        transition_order(order, POStatus.CANCELLED.value)
        order.cancelled_at = now
        order.cancel_reason = reason
        order.negotiation_active = False
        order.chat_closed = True
        order.chat_closed_at = order.chat_closed_at or now
        order.delivery_status = DeliveryStatus.CANCELLED.value
        for line in order.lines:
            if line.delivery_status != LineDeliveryStatus.DELIVERED.value:
                line.delivery_status = LineDeliveryStatus.CANCELLED.value

        pending = await db.execute(
            select(Quotation).where(
                Quotation.po_id == order.id,
                Quotation.status == QuotationStatus.PENDING.value,
            )
        )
        for quotation in pending.scalars():
            quotation.status = QuotationStatus.REJECTED.value
            quotation.resolved_at = now
            quotation.resolved_by = caps.user_id
            quotation.rejection_reason = "Order cancelled"

        append_message(
            db, order,
            sender_id=None,
            sender_role=SENDER_SYSTEM,
            message_type=MessageType.SYSTEM.value,
            system_event=SystemEvent.ORDER_CANCELLED.value,
            content=f"Order cancelled: {reason}" if reason else "Order cancelled",
        )
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_ORDER_CANCELLED, "purchase_order", order.id, {"reason": reason},
        )
        return Outcome(
            order,
            [DomainEvent(events.PURCHASE_ORDER_CANCELLED, "purchase_order", order.id, {"reason": reason})],
        )
