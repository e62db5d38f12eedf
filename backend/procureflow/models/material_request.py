"""ProcureFlow: MaterialRequest, its line items, vendor assignments and approval history."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db.base import Base, utcnow
from procureflow.db.types import UUIDType


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"


class RequestPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MaterialUnit(str, Enum):
    PCS = "pcs"
    KG = "kg"
    LBS = "lbs"
    SQFT = "sqft"
    SQM = "sqm"
    CUBIC_FT = "cubic_ft"
    CUBIC_M = "cubic_m"
    LITERS = "liters"
    GALLONS = "gallons"
    METERS = "meters"
    FEET = "feet"


class MaterialCategory(str, Enum):
    CEMENT = "cement"
    STEEL = "steel"
    WOOD = "wood"
    TILES = "tiles"
    PAINT = "paint"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    HARDWARE = "hardware"
    OTHER = "other"


class MaterialRequest(Base):
    """A buyer-side need for materials; the origin of every purchase order."""

    __tablename__ = "material_requests"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    requested_by: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default=RequestPriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)
    required_by: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    items: Mapped[list["MaterialRequestItem"]] = relationship(
        "MaterialRequestItem",
        cascade="all, delete-orphan",
        order_by="MaterialRequestItem.position",
        lazy="selectin",
    )
    assignments: Mapped[list["VendorAssignment"]] = relationship(
        "VendorAssignment",
        cascade="all, delete-orphan",
        order_by="VendorAssignment.assigned_at",
        lazy="selectin",
    )
    approvals: Mapped[list["RequestApproval"]] = relationship(
        "RequestApproval",
        cascade="all, delete-orphan",
        order_by="RequestApproval.decided_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def assigned_vendor_ids(self) -> list[uuid.UUID]:
        return [a.vendor_id for a in self.assignments]


class MaterialRequestItem(Base):
    __tablename__ = "material_request_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    material_request_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("material_requests.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default=MaterialCategory.OTHER.value)
    required_by: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class VendorAssignment(Base):
    """A vendor attached to a request, either by the owner or by self-assignment."""

    __tablename__ = "vendor_assignments"
    __table_args__ = (
        UniqueConstraint("material_request_id", "vendor_id", name="uq_vendor_assignments_request_vendor"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    material_request_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("material_requests.id", ondelete="CASCADE"), nullable=False
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    assigned_by: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RequestApproval(Base):
    __tablename__ = "material_request_approvals"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)
    material_request_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), ForeignKey("material_requests.id", ondelete="CASCADE"), nullable=False
    )
    decided_by: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    decision: Mapped[str] = mapped_column(String(10), nullable=False)
    comments: Mapped[str | None] = mapped_column(String(300), nullable=True)
    decided_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
