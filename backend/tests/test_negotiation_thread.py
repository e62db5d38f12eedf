import pytest

from procureflow.core import events
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, ValidationError
from procureflow.services.negotiation_thread import NegotiationThread
from procureflow.services.order_store import OrderStore
from procureflow.services.quotation_protocol import QuotationProtocol


async def test_post_and_list_messages(db, owner, vendor, make_order):
    order = await make_order()
    outcome = await NegotiationThread.post_message(db, order.id, owner, "text", "  Can you deliver by Friday?  ")
    await db.commit()
    await NegotiationThread.post_message(db, order.id, vendor, "text", "Yes")
    await db.commit()

    assert outcome.value.content == "Can you deliver by Friday?"
    assert outcome.value.seq == 1
    assert outcome.names() == [events.MESSAGE_POSTED]

    listed = await NegotiationThread.list_messages(db, order.id, vendor)
    assert [(m.seq, m.sender_role, m.content) for m, _ in listed] == [
        (1, "owner", "Can you deliver by Friday?"),
        (2, "vendor", "Yes"),
    ]
    # own messages count as read
    assert [is_read for _, is_read in listed] == [False, True]

    refreshed = await OrderStore.load_order(db, order.id)
    assert refreshed.message_count == 2
    assert refreshed.last_message_at is not None


async def test_post_message_rejects_blank_and_quotation(db, owner, make_order):
    order = await make_order()
    with pytest.raises(ValidationError):
        await NegotiationThread.post_message(db, order.id, owner, "text", "   ")
    with pytest.raises(ValidationError):
        await NegotiationThread.post_message(db, order.id, owner, "quotation", "1000")


async def test_other_vendor_cannot_post(db, other_vendor, make_order):
    order = await make_order()
    with pytest.raises(Forbidden):
        await NegotiationThread.post_message(db, order.id, other_vendor, "text", "Hello")


async def test_closed_chat_rejects_messages(db, owner, vendor, make_order):
    order = await make_order()
    message = (await QuotationProtocol.submit_quotation(db, order.id, vendor, amount=500)).value
    await db.commit()
    await QuotationProtocol.accept_quotation(db, order.id, owner, message.id)
    await db.commit()
    with pytest.raises(InvalidStateTransition):
        await NegotiationThread.post_message(db, order.id, vendor, "text", "One more thing")


async def test_mark_read_and_unread_count(db, owner, vendor, make_order):
    order = await make_order()
    await NegotiationThread.post_message(db, order.id, owner, "text", "First")
    await db.commit()
    await NegotiationThread.post_message(db, order.id, owner, "text", "Second")
    await db.commit()

    assert await NegotiationThread.unread_count(db, vendor) == 2
    assert await NegotiationThread.unread_count(db, owner) == 0

    assert await NegotiationThread.mark_read(db, order.id, vendor) == 2
    await db.commit()
    assert await NegotiationThread.mark_read(db, order.id, vendor) == 0
    await db.commit()
    assert await NegotiationThread.unread_count(db, vendor) == 0
    assert all(is_read for _, is_read in await NegotiationThread.list_messages(db, order.id, vendor))


async def test_unread_count_is_scoped_to_vendor_orders(db, owner, vendor, other_vendor, make_order):
    order = await make_order()
    await NegotiationThread.post_message(db, order.id, owner, "text", "Ping")
    await db.commit()
    assert await NegotiationThread.unread_count(db, other_vendor) == 0
