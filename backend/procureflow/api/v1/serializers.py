"""ProcureFlow: ORM -> response schema conversion shared by the v1 endpoints."""
from procureflow.models.invoice import VendorInvoice
from procureflow.models.material_request import MaterialRequest
from procureflow.models.message import NegotiationMessage
from procureflow.models.purchase_order import PurchaseOrder
from procureflow.schemas.material_request import MaterialRequestResponse
from procureflow.schemas.purchase_order import (
    DeliveryTrackingResponse,
    InvoiceResponse,
    MessageResponse,
    NegotiationResponse,
    OrderSummary,
    POLineResponse,
    POResponse,
    QuotationResponse,
)


def request_to_response(request: MaterialRequest) -> MaterialRequestResponse:
    return MaterialRequestResponse.model_validate(request)


def tracking_to_response(po: PurchaseOrder) -> DeliveryTrackingResponse:
    return DeliveryTrackingResponse(
        status=po.delivery_status,
        estimated_delivery_date=po.estimated_delivery_date,
        actual_delivery_date=po.actual_delivery_date,
        tracking_number=po.tracking_number,
        carrier=po.carrier,
        notes=po.delivery_notes,
        updated_at=po.delivery_updated_at,
        updated_by=po.delivery_updated_by,
    )


def po_to_response(po: PurchaseOrder) -> POResponse:
    return POResponse(
        id=po.id,
        order_number=po.order_number,
        material_request_id=po.material_request_id,
        project_id=po.project_id,
        vendor_id=po.vendor_id,
        created_by=po.created_by,
        title=po.title,
        description=po.description,
        currency=po.currency,
        total_amount=po.total_amount,
        status=po.status,
        lines=[
            POLineResponse(
                id=line.id,
                name=line.name,
                description=line.description,
                quantity=line.quantity,
                unit=line.unit,
                category=line.category,
                unit_price=line.unit_price,
                total_price=line.total_price,
                delivered_quantity=line.delivered_quantity,
                delivery_status=line.delivery_status,
                delivered_at=line.delivered_at,
            )
            for line in po.lines
        ],
        negotiation=NegotiationResponse(
            is_active=po.negotiation_active,
            started_at=po.negotiation_started_at,
            chat_closed=po.chat_closed,
            chat_closed_at=po.chat_closed_at,
            accepted_message_id=po.accepted_message_id,
            final_amount=po.final_amount,
            last_message_at=po.last_message_at,
        ),
        delivery_tracking=tracking_to_response(po),
        message_count=po.message_count,
        cancelled_at=po.cancelled_at,
        cancel_reason=po.cancel_reason,
        created_at=po.created_at,
        updated_at=po.updated_at,
    )


def po_to_summary(po: PurchaseOrder) -> OrderSummary:
    return OrderSummary(
        id=po.id,
        order_number=po.order_number,
        title=po.title,
        vendor_id=po.vendor_id,
        status=po.status,
        currency=po.currency,
        total_amount=po.total_amount,
        delivery_tracking=tracking_to_response(po),
        updated_at=po.updated_at,
    )


def message_to_response(message: NegotiationMessage, is_read: bool = True) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        seq=message.seq,
        sender_id=message.sender_id,
        sender_role=message.sender_role,
        message_type=message.message_type,
        content=message.content,
        system_event=message.system_event,
        payload=message.payload,
        quotation=QuotationResponse.model_validate(message.quotation) if message.quotation else None,
        is_read=is_read,
        created_at=message.created_at,
    )


def invoice_to_response(invoice: VendorInvoice) -> InvoiceResponse:
    return InvoiceResponse.model_validate(invoice)
