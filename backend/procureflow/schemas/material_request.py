"""ProcureFlow: Material request schemas."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from procureflow.models.material_request import MaterialCategory, MaterialUnit, RequestPriority
from procureflow.models.message import Currency
from procureflow.schemas.purchase_order import POResponse


class MaterialRequestItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    quantity: Decimal = Field(..., gt=0)
    unit: MaterialUnit = MaterialUnit.PCS
    category: MaterialCategory = MaterialCategory.OTHER
    required_by: datetime | None = None


class MaterialRequestCreate(BaseModel):
    project_id: UUID
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    items: list[MaterialRequestItemCreate] = Field(..., min_length=1)
    required_by: datetime
    priority: RequestPriority = RequestPriority.MEDIUM
    currency: Currency | None = None
    vendor_id: UUID | None = None


class RequestDecision(BaseModel):
    comments: str | None = Field(None, max_length=300)


class AssignVendorRequest(BaseModel):
    vendor_id: UUID


class MaterialRequestItemResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    quantity: Decimal
    unit: str
    category: str
    required_by: datetime | None

    class Config:
        from_attributes = True


class VendorAssignmentResponse(BaseModel):
    vendor_id: UUID
    assigned_by: UUID
    assigned_at: datetime

    class Config:
        from_attributes = True


class ApprovalResponse(BaseModel):
    decided_by: UUID
    decision: str
    comments: str | None
    decided_at: datetime

    class Config:
        from_attributes = True


class MaterialRequestResponse(BaseModel):
    id: UUID
    project_id: UUID
    requested_by: UUID
    title: str
    description: str | None
    priority: str
    status: str
    required_by: datetime
    currency: str
    items: list[MaterialRequestItemResponse]
    assignments: list[VendorAssignmentResponse]
    approvals: list[ApprovalResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AcceptRequestResponse(BaseModel):
    material_request: MaterialRequestResponse
    purchase_order: POResponse
    created: bool
