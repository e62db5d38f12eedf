"""
ProcureFlow: purchase order status state machine.

Every status write on a PurchaseOrder goes through ``transition_order``.
No other code assigns ``PurchaseOrder.status``.
"""
import logging

from procureflow.core.exceptions import InvalidStateTransition
from procureflow.db.base import utcnow
from procureflow.models.purchase_order import POStatus, PurchaseOrder

logger = logging.getLogger(__name__)

# current_status -> allowed next statuses
ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    POStatus.SENT.value: frozenset({
        POStatus.IN_NEGOTIATION.value,       # first quotation submitted
        POStatus.CANCELLED.value,
    }),
    POStatus.IN_NEGOTIATION.value: frozenset({
        POStatus.ACCEPTED.value,             # quotation accepted
        POStatus.CANCELLED.value,
    }),
    POStatus.ACCEPTED.value: frozenset({
        POStatus.IN_PROGRESS.value,          # delivery details submitted
        POStatus.CANCELLED.value,
    }),
    POStatus.IN_PROGRESS.value: frozenset({
        POStatus.COMPLETED.value,            # all items delivered
        POStatus.PARTIALLY_DELIVERED.value,  # subset delivered
        POStatus.CANCELLED.value,
    }),
    POStatus.PARTIALLY_DELIVERED.value: frozenset({
        POStatus.PARTIALLY_DELIVERED.value,  # further partial delivery
        POStatus.COMPLETED.value,            # remaining items delivered
        POStatus.CANCELLED.value,
    }),
    POStatus.COMPLETED.value: frozenset(),
    POStatus.CANCELLED.value: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, allowed in ORDER_TRANSITIONS.items() if not allowed)

TRANSITION_ACTIONS: dict[tuple[str, str], str] = {
    (POStatus.SENT.value, POStatus.IN_NEGOTIATION.value): "Submit Quotation",
    (POStatus.IN_NEGOTIATION.value, POStatus.ACCEPTED.value): "Accept Quotation",
    (POStatus.ACCEPTED.value, POStatus.IN_PROGRESS.value): "Submit Delivery Details",
    (POStatus.IN_PROGRESS.value, POStatus.COMPLETED.value): "Mark Delivered",
    (POStatus.IN_PROGRESS.value, POStatus.PARTIALLY_DELIVERED.value): "Mark Partially Delivered",
    (POStatus.PARTIALLY_DELIVERED.value, POStatus.PARTIALLY_DELIVERED.value): "Mark Partially Delivered",
    (POStatus.PARTIALLY_DELIVERED.value, POStatus.COMPLETED.value): "Mark Delivered",
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ORDER_TRANSITIONS.get(current_status, frozenset())


def get_allowed_transitions(current_status: str) -> list[str]:
    return sorted(ORDER_TRANSITIONS.get(current_status, frozenset()))


def get_transition_action(current_status: str, new_status: str) -> str:
    if new_status == POStatus.CANCELLED.value:
        return "Cancel"
    return TRANSITION_ACTIONS.get((current_status, new_status), f"{current_status} -> {new_status}")


def validate_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidStateTransition unless current -> new is an edge of the graph."""
    if new_status not in ORDER_TRANSITIONS:
        raise InvalidStateTransition(f"Unknown order status '{new_status}'", current_status, new_status)
    if can_transition(current_status, new_status):
        return
    if current_status in TERMINAL_STATUSES:
        raise InvalidStateTransition(
            f"Order in '{current_status}' status cannot be modified. This is a terminal state.",
            current_status,
            new_status,
        )
    raise InvalidStateTransition(
        f"Cannot change order from '{current_status}' to '{new_status}'. "
        f"Allowed transitions: {', '.join(get_allowed_transitions(current_status))}",
        current_status,
        new_status,
    )


def transition_order(order: PurchaseOrder, new_status: str) -> str:
    """Apply a validated status change. Returns the previous status."""
    previous = order.status
    validate_transition(previous, new_status)
    order.status = new_status
    order.updated_at = utcnow()
    logger.info(
        "Order %s: %s (%s -> %s)",
        order.order_number, get_transition_action(previous, new_status), previous, new_status,
    )
    return previous
