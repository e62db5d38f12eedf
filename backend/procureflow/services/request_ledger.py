"""
ProcureFlow: RequestLedger.

Owns the MaterialRequest lifecycle: creation, approval/rejection, vendor
assignment and vendor acceptance (which creates the purchase order through
OrderStore). Assignment writes always touch the request row so the request's
``version`` serializes vendors racing for the same request.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.config import get_settings
from procureflow.core import events, notifications
from procureflow.core.capabilities import Capabilities
from procureflow.core.events import DomainEvent, Outcome
from procureflow.core.exceptions import Conflict, Forbidden, InvalidStateTransition, NotFound, ValidationError
from procureflow.core.notifications import Notification
from procureflow.db.base import as_utc, utcnow
from procureflow.models.material_request import (
    MaterialCategory,
    MaterialRequest,
    MaterialRequestItem,
    MaterialUnit,
    RequestApproval,
    RequestPriority,
    RequestStatus,
    VendorAssignment,
)
from procureflow.models.purchase_order import PurchaseOrder
from procureflow.services import audit_service
from procureflow.services.concurrency import retry_on_conflict
from procureflow.services.order_store import OrderStore

logger = logging.getLogger(__name__)

ASSIGNABLE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


class RequestLedger:
    """Material request lifecycle."""

    @staticmethod
    async def load_request(db: AsyncSession, request_id: UUID) -> MaterialRequest:
        result = await db.execute(
            select(MaterialRequest)
            .where(MaterialRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFound("Material request", request_id)
        return request

    @staticmethod
    async def get_request(db: AsyncSession, request_id: UUID, caps: Capabilities) -> MaterialRequest:
        """Buyers see every request; a vendor sees requests it is assigned to or that are open for acceptance."""
        request = await RequestLedger.load_request(db, request_id)
        if caps.is_vendor:
            assigned = request.assigned_vendor_ids()
            if caps.user_id not in assigned and (assigned or request.status not in ASSIGNABLE_STATUSES):
                raise Forbidden("Access denied to this material request")
        return request

    @staticmethod
    @retry_on_conflict
    async def create_request(
        db: AsyncSession,
        caps: Capabilities,
        project_id: UUID,
        title: str,
        items: list[dict],
        required_by: datetime,
        priority: str = RequestPriority.MEDIUM.value,
        description: str | None = None,
        currency: str | None = None,
        vendor_id: UUID | None = None,
    ) -> Outcome[MaterialRequest]:
        if not caps.can_create_requests:
            raise Forbidden("Only owners and staff can create material requests")
        _validate_new_request(title, items, required_by, priority)

        now = utcnow()
        request = MaterialRequest(
            id=uuid.uuid4(),
            project_id=project_id,
            requested_by=caps.user_id,
            title=title.strip(),
            description=description,
            priority=priority,
            status=RequestStatus.PENDING.value,
            required_by=required_by,
            currency=currency or get_settings().DEFAULT_CURRENCY,
            created_at=now,
            updated_at=now,
            items=[
                MaterialRequestItem(
                    position=position,
                    name=item["name"].strip(),
                    description=item.get("description"),
                    quantity=Decimal(str(item["quantity"])),
                    unit=item.get("unit") or MaterialUnit.PCS.value,
                    category=item.get("category") or MaterialCategory.OTHER.value,
                    required_by=item.get("required_by"),
                )
                for position, item in enumerate(items, start=1)
            ],
            assignments=(
                [VendorAssignment(vendor_id=vendor_id, assigned_by=caps.user_id, assigned_at=now)]
                if vendor_id else []
            ),
            approvals=[],
        )
        db.add(request)
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_REQUEST_CREATED, "material_request", request.id,
            {"title": request.title, "items": len(items)},
        )
        logger.info("Material request %s created by %s with %d item(s)", request.id, caps.user_id, len(items))
        return Outcome(
            request,
            [DomainEvent(events.MATERIAL_REQUEST_CREATED, "material_request", request.id, {"project_id": str(project_id)})],
            [
                Notification(notifications.MATERIAL_REQUEST_CREATED, a.vendor_id, {"material_request_id": str(request.id), "title": request.title})
                for a in request.assignments
            ],
        )

    @staticmethod
    @retry_on_conflict
    async def approve(
        db: AsyncSession, request_id: UUID, caps: Capabilities, comments: str | None = None
    ) -> Outcome[MaterialRequest]:
        return _decide(await _load_for_decision(db, request_id, caps), caps, RequestStatus.APPROVED, comments, db)

    @staticmethod
    @retry_on_conflict
    async def reject(
        db: AsyncSession, request_id: UUID, caps: Capabilities, comments: str | None = None
    ) -> Outcome[MaterialRequest]:
        return _decide(await _load_for_decision(db, request_id, caps), caps, RequestStatus.REJECTED, comments, db)

    @staticmethod
    @retry_on_conflict
    async def assign_vendor(
        db: AsyncSession, request_id: UUID, caps: Capabilities, vendor_id: UUID
    ) -> Outcome[MaterialRequest]:
        """Owner attaches a vendor; the vendor is then expected to accept."""
        if not caps.can_approve:
            raise Forbidden("Only owners can assign vendors")
        request = await RequestLedger.load_request(db, request_id)
        added = _add_assignment(request, vendor_id, assigned_by=caps.user_id)
        if not added:
            return Outcome(request)
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_VENDOR_ASSIGNED, "material_request", request.id,
            {"vendor_id": str(vendor_id)},
        )
        return Outcome(
            request,
            [DomainEvent(events.MATERIAL_REQUEST_VENDOR_ASSIGNED, "material_request", request.id, {"vendor_id": str(vendor_id)})],
            [Notification(notifications.VENDOR_ASSIGNED, vendor_id, {"material_request_id": str(request.id), "title": request.title})],
        )

    @staticmethod
    @retry_on_conflict
    async def vendor_self_assign(db: AsyncSession, request_id: UUID, caps: Capabilities) -> Outcome[MaterialRequest]:
        """Vendor claims an open request without creating the order yet."""
        if not caps.can_self_assign:
            raise Forbidden("Only vendors can self-assign material requests")
        request = await RequestLedger.load_request(db, request_id)
        if not _self_assign(db, request, caps):
            return Outcome(request)
        return Outcome(
            request,
            [DomainEvent(events.MATERIAL_REQUEST_VENDOR_ASSIGNED, "material_request", request.id, {"vendor_id": str(caps.user_id)})],
        )

    @staticmethod
    @retry_on_conflict
    async def accept_request(
        db: AsyncSession, request_id: UUID, caps: Capabilities
    ) -> Outcome[tuple[MaterialRequest, PurchaseOrder, bool]]:
        """
        Vendor acceptance: self-assign, then get-or-create the purchase order.
        Accepting again returns the existing order as a success.
        """
        if not caps.can_self_assign:
            raise Forbidden("Only vendors can accept material requests")
        request = await RequestLedger.load_request(db, request_id)

        existing = await OrderStore.find_order(db, request.id, caps.user_id)
        if existing is not None:
            logger.info("Vendor %s re-accepted request %s; returning order %s", caps.user_id, request.id, existing.order_number)
            return Outcome((request, existing, False))

        _self_assign(db, request, caps)
        request.updated_at = utcnow()
        order, created = await OrderStore.create_order(db, request, caps.user_id, created_by=request.requested_by)

        outcome: Outcome[tuple[MaterialRequest, PurchaseOrder, bool]] = Outcome(
            (request, order, created),
            [DomainEvent(events.MATERIAL_REQUEST_VENDOR_ACCEPTED, "material_request", request.id, {"vendor_id": str(caps.user_id)})],
            [Notification(notifications.VENDOR_ACCEPTED, request.requested_by, {"material_request_id": str(request.id), "order_id": str(order.id)})],
        )
        if created:
            outcome.events.append(
                DomainEvent(events.PURCHASE_ORDER_CREATED, "purchase_order", order.id, {"order_number": order.order_number})
            )
        return outcome

    @staticmethod
    async def set_fulfillment(db: AsyncSession, request_id: UUID, status: RequestStatus) -> None:
        """Follow the derived order's delivery progress. Never moves a fulfilled request back."""
        request = await RequestLedger.load_request(db, request_id)
        if request.status == RequestStatus.FULFILLED.value or request.status == status.value:
            return
        request.status = status.value
        request.updated_at = utcnow()
        logger.info("Material request %s is now %s", request.id, status.value)


def _validate_new_request(title: str, items: list[dict], required_by: datetime, priority: str) -> None:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if not items:
        raise ValidationError("At least one item is required")
    for index, item in enumerate(items, start=1):
        if not str(item.get("name") or "").strip():
            raise ValidationError(f"Item {index}: name is required")
        try:
            quantity = Decimal(str(item.get("quantity")))
        except ArithmeticError:
            raise ValidationError(f"Item {index}: quantity must be a number")
        if not quantity.is_finite() or quantity <= 0:
            raise ValidationError(f"Item {index}: quantity must be greater than 0")
        if item.get("unit") and item["unit"] not in {u.value for u in MaterialUnit}:
            raise ValidationError(f"Item {index}: unknown unit '{item['unit']}'")
        if item.get("category") and item["category"] not in {c.value for c in MaterialCategory}:
            raise ValidationError(f"Item {index}: unknown category '{item['category']}'")
    if priority not in {p.value for p in RequestPriority}:
        raise ValidationError(f"Unknown priority '{priority}'")
    if required_by is None or as_utc(required_by) <= utcnow():
        raise ValidationError("Required-by date must be in the future")


async def _load_for_decision(db: AsyncSession, request_id: UUID, caps: Capabilities) -> MaterialRequest:
    if not caps.can_approve:
        raise Forbidden("Only owners can approve or reject material requests")
    return await RequestLedger.load_request(db, request_id)


def _decide(
    request: MaterialRequest,
    caps: Capabilities,
    decision: RequestStatus,
    comments: str | None,
    db: AsyncSession,
) -> Outcome[MaterialRequest]:
    if request.status != RequestStatus.PENDING.value:
        raise InvalidStateTransition(
            f"Only pending requests can be {decision.value}; this one is {request.status}",
            request.status,
            decision.value,
        )
    now = utcnow()
    request.status = decision.value
    request.updated_at = now
    request.approvals.append(
        RequestApproval(decided_by=caps.user_id, decision=decision.value, comments=comments, decided_at=now)
    )
    approved = decision == RequestStatus.APPROVED
    audit_service.log_audit(
        db, caps.user_id,
        audit_service.ACTION_REQUEST_APPROVED if approved else audit_service.ACTION_REQUEST_REJECTED,
        "material_request", request.id, {"comments": comments},
    )
    logger.info("Material request %s %s by %s", request.id, decision.value, caps.user_id)
    return Outcome(
        request,
        [
            DomainEvent(
                events.MATERIAL_REQUEST_APPROVED if approved else events.MATERIAL_REQUEST_REJECTED,
                "material_request",
                request.id,
                {"comments": comments},
            )
        ],
    )


def _self_assign(db: AsyncSession, request: MaterialRequest, caps: Capabilities) -> bool:
    """Record the vendor on the request. Returns False when it was already there."""
    added = _add_assignment(request, caps.user_id, assigned_by=caps.user_id)
    if added:
        audit_service.log_audit(
            db, caps.user_id, audit_service.ACTION_VENDOR_SELF_ASSIGNED, "material_request", request.id,
        )
    return added


def _add_assignment(request: MaterialRequest, vendor_id: UUID, assigned_by: UUID) -> bool:
    """Single-vendor policy: a request carries at most one vendor."""
    if request.status not in ASSIGNABLE_STATUSES:
        raise Forbidden(f"Material request is {request.status} and no longer open for vendors")
    assigned = request.assigned_vendor_ids()
    if vendor_id in assigned:
        return False
    if assigned:
        raise Conflict("Another vendor is already assigned to this material request")
    now = utcnow()
    request.assignments.append(VendorAssignment(vendor_id=vendor_id, assigned_by=assigned_by, assigned_at=now))
    request.updated_at = now
    return True
