"""ProcureFlow: Material request endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.api.deps import OutcomeCommitter, get_capabilities, get_committer, get_db
from procureflow.api.v1.serializers import po_to_response, request_to_response
from procureflow.core.capabilities import Capabilities
from procureflow.schemas.common import ApiResponse
from procureflow.schemas.material_request import (
    AcceptRequestResponse,
    AssignVendorRequest,
    MaterialRequestCreate,
    MaterialRequestResponse,
    RequestDecision,
)
from procureflow.services.request_ledger import RequestLedger

router = APIRouter()


@router.post("", response_model=ApiResponse[MaterialRequestResponse], status_code=status.HTTP_201_CREATED)
async def create_material_request(
    body: MaterialRequestCreate,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Raise a material need. Starts in ``pending``."""
    request = await commit(
        await RequestLedger.create_request(
            db,
            caps,
            project_id=body.project_id,
            title=body.title,
            description=body.description,
            items=[
                {
                    "name": item.name,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit": item.unit.value,
                    "category": item.category.value,
                    "required_by": item.required_by,
                }
                for item in body.items
            ],
            required_by=body.required_by,
            priority=body.priority.value,
            currency=body.currency.value if body.currency else None,
            vendor_id=body.vendor_id,
        )
    )
    return ApiResponse(data=request_to_response(request), message="Material request created successfully")


@router.get("/{request_id}", response_model=ApiResponse[MaterialRequestResponse])
async def get_material_request(
    request_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    request = await RequestLedger.get_request(db, request_id, caps)
    return ApiResponse(data=request_to_response(request))


@router.put("/{request_id}/approve", response_model=ApiResponse[MaterialRequestResponse])
async def approve_material_request(
    request_id: UUID,
    body: RequestDecision | None = None,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    request = await commit(await RequestLedger.approve(db, request_id, caps, body.comments if body else None))
    return ApiResponse(data=request_to_response(request), message="Material request approved")


@router.put("/{request_id}/reject", response_model=ApiResponse[MaterialRequestResponse])
async def reject_material_request(
    request_id: UUID,
    body: RequestDecision | None = None,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    request = await commit(await RequestLedger.reject(db, request_id, caps, body.comments if body else None))
    return ApiResponse(data=request_to_response(request), message="Material request rejected")


@router.put("/{request_id}/assign-vendor", response_model=ApiResponse[MaterialRequestResponse])
async def assign_vendor(
    request_id: UUID,
    body: AssignVendorRequest,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    request = await commit(await RequestLedger.assign_vendor(db, request_id, caps, body.vendor_id))
    return ApiResponse(data=request_to_response(request), message="Vendor assigned")


@router.put("/{request_id}/self-assign", response_model=ApiResponse[MaterialRequestResponse])
async def self_assign_material_request(
    request_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """Vendor claims the request. Only one vendor may hold a request."""
    request = await commit(await RequestLedger.vendor_self_assign(db, request_id, caps))
    return ApiResponse(data=request_to_response(request), message="Vendor assigned")


@router.post("/{request_id}/accept", response_model=ApiResponse[AcceptRequestResponse])
async def accept_material_request(
    request_id: UUID,
    caps: Capabilities = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
    commit: OutcomeCommitter = Depends(get_committer),
):
    """
    Vendor accepts the request. Creates the purchase order on first call;
    repeated calls return the same order.
    """
    request, order, created = await commit(await RequestLedger.accept_request(db, request_id, caps))
    return ApiResponse(
        data=AcceptRequestResponse(
            material_request=request_to_response(request),
            purchase_order=po_to_response(order),
            created=created,
        ),
        message="Material request accepted and purchase order created" if created else "Purchase order already exists",
    )
