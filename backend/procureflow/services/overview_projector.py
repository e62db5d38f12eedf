"""ProcureFlow: OverviewProjector. Read-only delivery overview for the buying side."""
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.core.capabilities import Capabilities
from procureflow.core.exceptions import Forbidden
from procureflow.models.purchase_order import POStatus, PurchaseOrder

ACTIVE_STATUSES = (
    POStatus.ACCEPTED.value,
    POStatus.IN_PROGRESS.value,
    POStatus.PARTIALLY_DELIVERED.value,
)
DELIVERED_STATUSES = (POStatus.COMPLETED.value,)


@dataclass
class DeliveryOverview:
    active_deliveries: list[PurchaseOrder] = field(default_factory=list)
    delivered: list[PurchaseOrder] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.active_deliveries) + len(self.delivered)


class OverviewProjector:
    @staticmethod
    async def delivery_overview(db: AsyncSession, caps: Capabilities) -> DeliveryOverview:
        """
        Classify orders into active deliveries and delivered. Reads committed
        state on every call; nothing is cached or written.
        """
        if not caps.can_approve:
            raise Forbidden("Only owners can view the delivery overview")
        result = await db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.status.in_(ACTIVE_STATUSES + DELIVERED_STATUSES))
            .order_by(
                func.coalesce(PurchaseOrder.delivery_updated_at, PurchaseOrder.updated_at).desc(),
                PurchaseOrder.updated_at.desc(),
            )
            .execution_options(populate_existing=True)
        )
        overview = DeliveryOverview()
        for order in result.scalars():
            if order.status in DELIVERED_STATUSES:
                overview.delivered.append(order)
            else:
                overview.active_deliveries.append(order)
        return overview
