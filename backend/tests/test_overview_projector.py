from datetime import timedelta

import pytest

from procureflow.core.exceptions import Forbidden
from procureflow.db.base import utcnow
from procureflow.services.delivery_tracker import DeliveryTracker
from procureflow.services.overview_projector import OverviewProjector
from procureflow.services.quotation_protocol import QuotationProtocol


async def _accept(db, owner, vendor, order):
    message = (await QuotationProtocol.submit_quotation(db, order.id, vendor, amount=1000)).value
    await db.commit()
    await QuotationProtocol.accept_quotation(db, order.id, owner, message.id)
    await db.commit()


async def test_overview_classifies_orders(db, owner, vendor, make_order):
    untouched = await make_order()
    accepted = await make_order()
    delivered = await make_order()
    await _accept(db, owner, vendor, accepted)
    await _accept(db, owner, vendor, delivered)
    await DeliveryTracker.submit_delivery_details(
        db, delivered.id, vendor, estimated_delivery_date=utcnow() + timedelta(days=2)
    )
    await db.commit()
    await DeliveryTracker.update_delivery_status(db, delivered.id, vendor, "delivered")
    await db.commit()

    overview = await OverviewProjector.delivery_overview(db, owner)
    assert [o.id for o in overview.active_deliveries] == [accepted.id]
    assert [o.id for o in overview.delivered] == [delivered.id]
    assert overview.total == 2
    assert untouched.id not in {o.id for o in overview.active_deliveries + overview.delivered}


async def test_overview_requires_owner(db, staff, vendor):
    for caps in (staff, vendor):
        with pytest.raises(Forbidden):
            await OverviewProjector.delivery_overview(db, caps)
