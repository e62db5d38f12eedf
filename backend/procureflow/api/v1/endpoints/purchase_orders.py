"""ProcureFlow: Purchase order, negotiation and delivery endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.api.deps import OutcomeCommitter, get_capabilities, get_committer, get_db
from procureflow.api.v1.serializers import (
    invoice_to_response,
    message_to_response,
    po_to_response,
    po_to_summary,
    tracking_to_response,
)
from procureflow.core.capabilities import Capabilities
from procureflow.schemas.common import ApiResponse
from procureflow.schemas.purchase_order import (
    DeliveryDetailsCreate,
    DeliveryOverviewResponse,
    DeliveryStatusUpdate,
    DeliverySubmissionResponse,
    DeliveryTrackingDetail,
    DeliveryUpdateResponse,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    OrderCancellation,
    POResponse,
    QuotationCreate,
    QuotationDecisionResponse,
    QuotationRejection,
    UnreadCountResponse,
)
from procureflow.services.delivery_tracker import DeliveryTracker
from procureflow.services.negotiation_thread import NegotiationThread
from procureflow.services.order_store import OrderStore
from procureflow.services.overview_projector import OverviewProjector
from procureflow.services.quotation_protocol import QuotationDecision, QuotationProtocol

router = APIRouter()


def _decision_response(decision: QuotationDecision) -> QuotationDecisionResponse:
    return QuotationDecisionResponse(
        purchase_order=po_to_response(decision.order),
        message=message_to_response(decision.message),
        changed=decision.changed,
    )


# Fixed paths are declared before "/{po_id}" so they are not captured as ids.

@router.get("/delivery-overview", response_model=ApiResponse[DeliveryOverviewResponse])
async def delivery_overview(
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    """Orders in flight vs delivered, for the buying side."""
    overview = await OverviewProjector.delivery_overview(db, caps)
    return ApiResponse(
        data=DeliveryOverviewResponse(
            active_deliveries=[po_to_summary(po) for po in overview.active_deliveries],
            delivered=[po_to_summary(po) for po in overview.delivered],
            total=overview.total,
        )
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCountResponse])
async def unread_count(
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=UnreadCountResponse(unread=await NegotiationThread.unread_count(db, caps)))


@router.get("/{po_id}", response_model=ApiResponse[POResponse])
async def get_purchase_order(
    po_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    """Get a single Purchase Order with all lines."""
    return ApiResponse(data=po_to_response(await OrderStore.get_order(db, po_id, caps)))


@router.put("/{po_id}/cancel", response_model=ApiResponse[POResponse])
async def cancel_purchase_order(
    po_id: UUID,
    body: OrderCancellation | None = None,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Cancel from any non-terminal status."""
    po = await commit(await OrderStore.cancel_order(db, po_id, caps, body.reason if body else None))
    return ApiResponse(data=po_to_response(po), message="Purchase order cancelled")


@router.get("/{po_id}/messages", response_model=ApiResponse[list[MessageResponse]])
async def list_messages(
    po_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    """Negotiation thread, oldest first."""
    messages = await NegotiationThread.list_messages(db, po_id, caps)
    return ApiResponse(data=[message_to_response(m, is_read) for m, is_read in messages])


@router.post("/{po_id}/messages", response_model=ApiResponse[MessageResponse], status_code=status.HTTP_201_CREATED)
async def post_message(
    po_id: UUID,
    body: MessageCreate,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    message = await commit(await NegotiationThread.post_message(db, po_id, caps, body.message_type, body.content))
    return ApiResponse(data=message_to_response(message), message="Message sent")


@router.put("/{po_id}/mark-read", response_model=ApiResponse[MarkReadResponse])
async def mark_read(
    po_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    marked = await NegotiationThread.mark_read(db, po_id, caps)
    await db.commit()
    return ApiResponse(data=MarkReadResponse(marked=marked), message="Messages marked as read")


@router.post("/{po_id}/quotation", response_model=ApiResponse[MessageResponse], status_code=status.HTTP_201_CREATED)
async def submit_quotation(
    po_id: UUID,
    body: QuotationCreate,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Vendor proposes a price. The first quotation moves the order into negotiation."""
    message = await commit(
        await QuotationProtocol.submit_quotation(
            db,
            po_id,
            caps,
            amount=body.amount,
            currency=body.currency.value if body.currency else None,
            valid_until=body.valid_until,
            note=body.note,
            items=[item.model_dump() for item in body.items],
            payment_terms=body.payment_terms,
            delivery_terms=body.delivery_terms,
            in_response_to=body.in_response_to,
        )
    )
    return ApiResponse(data=message_to_response(message), message="Quotation submitted successfully")


@router.put("/{po_id}/quotation/{message_id}/accept", response_model=ApiResponse[QuotationDecisionResponse])
async def accept_quotation(
    po_id: UUID,
    message_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Accept a quotation. Safe to retry: a repeat returns success without changes."""
    decision = await commit(await QuotationProtocol.accept_quotation(db, po_id, caps, message_id))
    return ApiResponse(
        data=_decision_response(decision),
        message="Quotation accepted successfully" if decision.changed else "Quotation already accepted",
    )


@router.put("/{po_id}/quotation/{message_id}/reject", response_model=ApiResponse[QuotationDecisionResponse])
async def reject_quotation(
    po_id: UUID,
    message_id: UUID,
    body: QuotationRejection | None = None,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    decision = await commit(
        await QuotationProtocol.reject_quotation(db, po_id, caps, message_id, body.reason if body else None)
    )
    return ApiResponse(data=_decision_response(decision), message="Quotation rejected")


@router.post(
    "/{po_id}/delivery-details",
    response_model=ApiResponse[DeliverySubmissionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_delivery_details(
    po_id: UUID,
    body: DeliveryDetailsCreate,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Vendor commits to delivery; generates the invoice and starts fulfillment."""
    submission = await commit(
        await DeliveryTracker.submit_delivery_details(
            db,
            po_id,
            caps,
            estimated_delivery_date=body.estimated_delivery_date,
            tracking_number=body.tracking_number,
            carrier=body.carrier,
            notes=body.notes,
        )
    )
    return ApiResponse(
        data=DeliverySubmissionResponse(
            purchase_order=po_to_response(submission.order),
            invoice=invoice_to_response(submission.invoice),
            messages=[
                message_to_response(submission.delivery_message),
                message_to_response(submission.invoice_message),
            ],
        ),
        message="Delivery details submitted and invoice generated",
    )


@router.put("/{po_id}/delivery-status", response_model=ApiResponse[POResponse])
async def update_delivery_status(
    po_id: UUID,
    body: DeliveryStatusUpdate,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    po = await commit(
        await DeliveryTracker.update_delivery_status(
            db,
            po_id,
            caps,
            new_status=body.status,
            notes=body.notes,
            tracking_number=body.tracking_number,
            carrier=body.carrier,
            items=[item.model_dump() for item in body.items] if body.items else None,
            estimated_delivery_date=body.estimated_delivery_date,
        )
    )
    return ApiResponse(data=po_to_response(po), message="Delivery status updated")


@router.get("/{po_id}/delivery-tracking", response_model=ApiResponse[DeliveryTrackingDetail])
async def get_delivery_tracking(
    po_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    tracking = await DeliveryTracker.get_delivery_tracking(db, po_id, caps)
    return ApiResponse(
        data=DeliveryTrackingDetail(
            order_id=tracking.order.id,
            order_number=tracking.order.order_number,
            order_status=tracking.order.status,
            tracking=tracking_to_response(tracking.order),
            history=[DeliveryUpdateResponse.model_validate(u) for u in tracking.history],
            invoice=invoice_to_response(tracking.invoice) if tracking.invoice else None,
        )
    )
