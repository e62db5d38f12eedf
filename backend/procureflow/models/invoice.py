"""ProcureFlow: VendorInvoice, generated once per order at delivery-detail submission."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from procureflow.db.base import Base, utcnow
from procureflow.db.types import JSONType, UUIDType


class InvoiceStatus(str, Enum):
    PENDING = "pending"


class VendorInvoice(Base):
    __tablename__ = "vendor_invoices"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    po_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, unique=True)
    vendor_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    accepted_message_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=InvoiceStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
