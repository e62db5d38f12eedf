"""ProcureFlow: audit trail writer."""
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.models.audit import AuditLog

logger = logging.getLogger(__name__)

# ── Audit action constants ────────────────────────────────────────────────────
ACTION_REQUEST_CREATED = "material_request.created"
ACTION_REQUEST_APPROVED = "material_request.approved"
ACTION_REQUEST_REJECTED = "material_request.rejected"
ACTION_VENDOR_ASSIGNED = "material_request.vendor_assigned"
ACTION_VENDOR_SELF_ASSIGNED = "material_request.vendor_self_assigned"
ACTION_ORDER_CREATED = "purchase_order.created"
ACTION_ORDER_CANCELLED = "purchase_order.cancelled"
ACTION_QUOTATION_SUBMITTED = "quotation.submitted"
ACTION_QUOTATION_ACCEPTED = "quotation.accepted"
ACTION_QUOTATION_REJECTED = "quotation.rejected"
ACTION_DELIVERY_SUBMITTED = "delivery.details_submitted"
ACTION_DELIVERY_UPDATED = "delivery.status_updated"
ACTION_INVOICE_GENERATED = "invoice.generated"


def log_audit(
    db: AsyncSession,
    actor_id: UUID | None,
    action: str,
    target_type: str | None = None,
    target_id: UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Add an audit row to the current transaction. It commits or rolls back with the action."""
    try:
        db.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                payload=payload,
            )
        )
    except Exception as exc:
        # Never allow audit failure to break the main request
        logger.error("Audit log write failed: %s", exc, exc_info=True)
