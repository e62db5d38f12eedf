"""ProcureFlow: negotiation thread messages, quotation payloads and read receipts."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db.base import Base, utcnow
from procureflow.db.types import JSONType, UUIDType


class MessageType(str, Enum):
    TEXT = "text"
    QUOTATION = "quotation"
    DELIVERY = "delivery"
    INVOICE = "invoice"
    SYSTEM = "system"


class SystemEvent(str, Enum):
    QUOTATION_ACCEPTED = "quotation_accepted"
    QUOTATION_REJECTED = "quotation_rejected"
    DELIVERY_DETAILS_REQUIRED = "delivery_details_required"
    DELIVERY_SUBMITTED = "delivery_submitted"
    INVOICE_GENERATED = "invoice_generated"
    DELIVERY_UPDATE = "delivery_update"
    ORDER_CANCELLED = "order_cancelled"


class QuotationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Currency(str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


SENDER_SYSTEM = "system"


class NegotiationMessage(Base):
    """
    Append-only thread entry. ``seq`` is allocated from the order's message_count
    and gives the total order of the thread.
    """

    __tablename__ = "negotiation_messages"
    __table_args__ = (UniqueConstraint("po_id", "seq", name="uq_negotiation_messages_po_seq"),)

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    po_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    sender_role: Mapped[str] = mapped_column(String(10), nullable=False)
    message_type: Mapped[str] = mapped_column(String(10), nullable=False)
    content: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    system_event: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    quotation: Mapped[Optional["Quotation"]] = relationship(
        "Quotation", back_populates="message", uselist=False, lazy="selectin"
    )


class Quotation(Base):
    """Priced proposal attached 1:1 to a message of type ``quotation``."""

    __tablename__ = "quotations"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("negotiation_messages.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    po_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    in_response_to: Mapped[uuid.UUID | None] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=QuotationStatus.PENDING.value)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(300), nullable=True)

    message: Mapped["NegotiationMessage"] = relationship("NegotiationMessage", back_populates="quotation")


class MessageRead(Base):
    __tablename__ = "message_reads"
    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),)

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("negotiation_messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
