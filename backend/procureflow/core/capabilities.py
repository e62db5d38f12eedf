"""
ProcureFlow: capability resolution.

Role checks are resolved once per request into a ``Capabilities`` value that is
passed into every service operation. Services never look at raw role strings.
"""
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from procureflow.core.auth_middleware import CurrentUser

# ── Capability keys ─────────────────────────────────────────────────────────
CAP_VIEW_ALL_ORDERS = "orders:view_all"
CAP_APPROVE = "requests:approve"
CAP_CREATE_REQUESTS = "requests:create"
CAP_SELF_ASSIGN = "requests:self_assign"

# ── Role → capabilities matrix ───────────────────────────────────────────────
CAPABILITY_MATRIX: dict[str, frozenset[str]] = {
    "owner": frozenset({CAP_VIEW_ALL_ORDERS, CAP_APPROVE, CAP_CREATE_REQUESTS}),
    "admin": frozenset({CAP_VIEW_ALL_ORDERS, CAP_APPROVE, CAP_CREATE_REQUESTS}),
    "staff": frozenset({CAP_VIEW_ALL_ORDERS, CAP_CREATE_REQUESTS}),
    "vendor": frozenset({CAP_SELF_ASSIGN}),
}


class _VendorOwned(Protocol):
    vendor_id: UUID


@dataclass(frozen=True)
class Capabilities:
    user_id: UUID
    role: str
    granted: frozenset[str]

    @property
    def can_approve(self) -> bool:
        return CAP_APPROVE in self.granted

    @property
    def can_create_requests(self) -> bool:
        return CAP_CREATE_REQUESTS in self.granted

    @property
    def can_self_assign(self) -> bool:
        return CAP_SELF_ASSIGN in self.granted

    @property
    def can_view_all_orders(self) -> bool:
        return CAP_VIEW_ALL_ORDERS in self.granted

    @property
    def is_vendor(self) -> bool:
        return self.role == "vendor"

    def can_view_order(self, order: _VendorOwned) -> bool:
        if self.can_view_all_orders:
            return True
        return order.vendor_id == self.user_id

    def can_mutate_order(self, order: _VendorOwned) -> bool:
        """Vendor-side writes (quotation, delivery) belong to the order's own vendor."""
        return self.is_vendor and order.vendor_id == self.user_id


def resolve_capabilities(user: CurrentUser) -> Capabilities:
    return Capabilities(
        user_id=user.id,
        role=user.role,
        granted=CAPABILITY_MATRIX.get(user.role, frozenset()),
    )
