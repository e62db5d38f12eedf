"""ProcureFlow: Purchase order, negotiation and delivery schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from procureflow.models.message import Currency


# ── Requests ──────────────────────────────────────────────────────────────────

class QuotationItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(..., ge=0)
    unit: str | None = None
    unit_price: Decimal = Field(..., ge=0)
    total: Decimal | None = Field(None, ge=0)


class QuotationCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    currency: Currency | None = None
    valid_until: datetime | None = None
    note: str | None = Field(None, max_length=500)
    items: list[QuotationItem] = Field(default_factory=list)
    payment_terms: str | None = Field(None, max_length=500)
    delivery_terms: str | None = Field(None, max_length=500)
    in_response_to: UUID | None = None


class QuotationRejection(BaseModel):
    reason: str | None = Field(None, max_length=300)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    message_type: Literal["text"] = "text"


class OrderCancellation(BaseModel):
    reason: str | None = Field(None, max_length=300)


class DeliveryDetailsCreate(BaseModel):
    estimated_delivery_date: datetime
    tracking_number: str | None = Field(None, max_length=100)
    carrier: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class DeliveredItem(BaseModel):
    line_id: UUID
    delivered_quantity: Decimal = Field(..., ge=0)


class DeliveryStatusUpdate(BaseModel):
    status: Literal["in_transit", "delivered", "partially_delivered"]
    notes: str | None = Field(None, max_length=1000)
    tracking_number: str | None = Field(None, max_length=100)
    carrier: str | None = Field(None, max_length=100)
    items: list[DeliveredItem] | None = None
    estimated_delivery_date: datetime | None = None


# ── Responses ─────────────────────────────────────────────────────────────────

class POLineResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    quantity: Decimal
    unit: str
    category: str | None
    unit_price: Decimal
    total_price: Decimal
    delivered_quantity: Decimal
    delivery_status: str
    delivered_at: datetime | None


class NegotiationResponse(BaseModel):
    is_active: bool
    started_at: datetime | None
    chat_closed: bool
    chat_closed_at: datetime | None
    accepted_message_id: UUID | None
    final_amount: Decimal | None
    last_message_at: datetime | None


class DeliveryTrackingResponse(BaseModel):
    status: str
    estimated_delivery_date: datetime | None
    actual_delivery_date: datetime | None
    tracking_number: str | None
    carrier: str | None
    notes: str | None
    updated_at: datetime | None
    updated_by: UUID | None


class POResponse(BaseModel):
    id: UUID
    order_number: str
    material_request_id: UUID
    project_id: UUID
    vendor_id: UUID
    created_by: UUID
    title: str
    description: str | None
    currency: str
    total_amount: Decimal
    status: str
    lines: list[POLineResponse]
    negotiation: NegotiationResponse
    delivery_tracking: DeliveryTrackingResponse
    message_count: int
    cancelled_at: datetime | None
    cancel_reason: str | None
    created_at: datetime
    updated_at: datetime


class QuotationResponse(BaseModel):
    amount: Decimal
    currency: str
    valid_until: datetime
    note: str | None
    items: list[dict[str, Any]]
    payment_terms: str | None
    delivery_terms: str | None
    in_response_to: UUID | None
    status: str
    resolved_at: datetime | None
    resolved_by: UUID | None
    rejection_reason: str | None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: UUID
    seq: int
    sender_id: UUID | None
    sender_role: str
    message_type: str
    content: str
    system_event: str | None
    payload: dict[str, Any] | None
    quotation: QuotationResponse | None
    is_read: bool
    created_at: datetime


class QuotationDecisionResponse(BaseModel):
    purchase_order: POResponse
    message: MessageResponse
    changed: bool


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    po_id: UUID
    vendor_id: UUID
    accepted_message_id: UUID
    amount: Decimal
    currency: str
    items: list[dict[str, Any]]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class DeliverySubmissionResponse(BaseModel):
    purchase_order: POResponse
    invoice: InvoiceResponse
    messages: list[MessageResponse]


class DeliveryUpdateResponse(BaseModel):
    status: str
    notes: str | None
    tracking_number: str | None
    carrier: str | None
    estimated_delivery_date: datetime | None = None
    updated_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class DeliveryTrackingDetail(BaseModel):
    order_id: UUID
    order_number: str
    order_status: str
    tracking: DeliveryTrackingResponse
    history: list[DeliveryUpdateResponse]
    invoice: InvoiceResponse | None


class OrderSummary(BaseModel):
    id: UUID
    order_number: str
    title: str
    vendor_id: UUID
    status: str
    currency: str
    total_amount: Decimal
    delivery_tracking: DeliveryTrackingResponse
    updated_at: datetime


class DeliveryOverviewResponse(BaseModel):
    active_deliveries: list[OrderSummary]
    delivered: list[OrderSummary]
    total: int


class MarkReadResponse(BaseModel):
    marked: int


class UnreadCountResponse(BaseModel):
    unread: int
