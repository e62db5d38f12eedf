"""ProcureFlow: PurchaseOrder, its line items and delivery update history."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db.base import Base, utcnow
from procureflow.db.types import UUIDType


class POStatus(str, Enum):
    SENT = "sent"
    IN_NEGOTIATION = "in_negotiation"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    PARTIALLY_DELIVERED = "partially_delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    """Status of the order-level delivery tracking sub-object."""

    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    PARTIALLY_DELIVERED = "partially_delivered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class LineDeliveryStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PurchaseOrder(Base):
    """
    Vendor-specific commercial record created when a vendor accepts a material request.

    The ``version`` column guards every write: all order mutations touch this row,
    so two concurrent writers cannot both commit against the same version.
    """

    __tablename__ = "purchase_orders"
    __table_args__ = (
        UniqueConstraint("material_request_id", "vendor_id", name="uq_purchase_orders_request_vendor"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    material_request_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    vendor_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    created_by: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(24), nullable=False, default=POStatus.SENT.value, index=True)

    # Negotiation
    negotiation_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    negotiation_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    chat_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    chat_closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_message_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    final_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Delivery tracking
    delivery_status: Mapped[str] = mapped_column(String(24), nullable=False, default=DeliveryStatus.PENDING.value)
    estimated_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivery_updated_by: Mapped[uuid.UUID | None] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(300), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    lines: Mapped[list["PurchaseOrderLine"]] = relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
        lazy="selectin",
    )
    delivery_updates: Mapped[list["DeliveryUpdate"]] = relationship(
        "DeliveryUpdate",
        cascade="all, delete-orphan",
        order_by="DeliveryUpdate.created_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in (POStatus.COMPLETED.value, POStatus.CANCELLED.value)


class PurchaseOrderLine(Base):
    """A single line item on a Purchase Order, copied 1:1 from the request."""

    __tablename__ = "purchase_order_lines"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    po_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    delivered_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    delivery_status: Mapped[str] = mapped_column(String(12), nullable=False, default=LineDeliveryStatus.PENDING.value)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    purchase_order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="lines")


class DeliveryUpdate(Base):
    """One row per delivery status update posted by the vendor."""

    __tablename__ = "delivery_updates"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    po_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(24), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    estimated_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
