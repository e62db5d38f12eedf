import uuid

import pytest

from procureflow.core import events
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, NotFound
from procureflow.models.message import SENDER_SYSTEM
from procureflow.services.negotiation_thread import NegotiationThread
from procureflow.services.order_store import OrderStore, generate_order_number
from procureflow.services.quotation_protocol import QuotationProtocol
from procureflow.services.request_ledger import RequestLedger


def test_order_number_format():
    number = generate_order_number()
    prefix, day, suffix = number.split("-")
    assert prefix == "PO"
    assert len(day) == 8 and day.isdigit()
    assert len(suffix) == 6


async def test_create_order_is_get_or_create(db, owner, vendor, make_request):
    request = await make_request()
    loaded = await RequestLedger.load_request(db, request.id)
    first, created = await OrderStore.create_order(db, loaded, vendor.user_id, created_by=owner.user_id)
    await db.commit()
    second, created_again = await OrderStore.create_order(db, loaded, vendor.user_id, created_by=owner.user_id)
    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert await OrderStore.find_order(db, request.id, vendor.user_id) is not None


async def test_get_order_access(db, owner, staff, vendor, other_vendor, make_order):
    order = await make_order()
    for caps in (owner, staff, vendor):
        assert (await OrderStore.get_order(db, order.id, caps)).id == order.id
    with pytest.raises(Forbidden):
        await OrderStore.get_order(db, order.id, other_vendor)
    with pytest.raises(NotFound):
        await OrderStore.get_order(db, uuid.uuid4(), owner)


async def test_owner_cancels_order(db, owner, vendor, make_order):
    order = await make_order()
    await QuotationProtocol.submit_quotation(db, order.id, vendor, amount="1000")
    await db.commit()

    outcome = await OrderStore.cancel_order(db, order.id, owner, "Project paused")
    await db.commit()
    cancelled = outcome.value
    assert cancelled.status == "cancelled"
    assert cancelled.cancel_reason == "Project paused"
    assert cancelled.chat_closed is True
    assert cancelled.delivery_status == "cancelled"
    assert {line.delivery_status for line in cancelled.lines} == {"cancelled"}
    assert outcome.names() == [events.PURCHASE_ORDER_CANCELLED]

    messages = [m for m, _ in await NegotiationThread.list_messages(db, order.id, owner)]
    assert messages[0].quotation.status == "rejected"
    assert messages[0].quotation.rejection_reason == "Order cancelled"
    assert (messages[-1].sender_role, messages[-1].system_event) == (SENDER_SYSTEM, "order_cancelled")
    assert messages[-1].content == "Order cancelled: Project paused"


async def test_vendor_cancels_own_order(db, vendor, make_order):
    order = await make_order()
    outcome = await OrderStore.cancel_order(db, order.id, vendor)
    await db.commit()
    assert outcome.value.status == "cancelled"


async def test_cancel_permissions(db, staff, other_vendor, make_order):
    order = await make_order()
    for caps in (staff, other_vendor):
        with pytest.raises(Forbidden):
            await OrderStore.cancel_order(db, order.id, caps)


async def test_cancelled_order_is_terminal(db, owner, make_order):
    order = await make_order()
    await OrderStore.cancel_order(db, order.id, owner)
    await db.commit()
    with pytest.raises(InvalidStateTransition):
        await OrderStore.cancel_order(db, order.id, owner)
