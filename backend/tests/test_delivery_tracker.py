from datetime import timedelta
from decimal import Decimal

import pytest

from procureflow.core import events
from procureflow.core.exceptions import Forbidden, InvalidStateTransition, ValidationError
from procureflow.db.base import utcnow
from procureflow.services.delivery_tracker import DeliveryTracker, generate_invoice_number
from procureflow.services.negotiation_thread import NegotiationThread
from procureflow.services.order_store import OrderStore
from procureflow.services.quotation_protocol import QuotationProtocol
from procureflow.services.request_ledger import RequestLedger


@pytest.fixture
def accepted_order(db, owner, vendor, make_order):
    async def _make():
        order = await make_order()
        message = (
            await QuotationProtocol.submit_quotation(
                db, order.id, vendor, amount="75000",
                items=[{"name": "Cement", "quantity": 50, "unit_price": 300}],
            )
        ).value
        await db.commit()
        await QuotationProtocol.accept_quotation(db, order.id, owner, message.id)
        await db.commit()
        return order

    return _make


@pytest.fixture
def in_progress_order(db, vendor, accepted_order):
    async def _make():
        order = await accepted_order()
        await DeliveryTracker.submit_delivery_details(
            db, order.id, vendor, estimated_delivery_date=utcnow() + timedelta(days=5)
        )
        await db.commit()
        return order

    return _make


def test_invoice_number_format():
    assert generate_invoice_number().startswith("INV-")


async def test_submit_delivery_details_generates_invoice(db, owner, vendor, accepted_order):
    order = await accepted_order()
    eta = utcnow() + timedelta(days=5)
    outcome = await DeliveryTracker.submit_delivery_details(
        db, order.id, vendor, estimated_delivery_date=eta, tracking_number="TRK-1", carrier="BlueDart",
    )
    await db.commit()
    submission = outcome.value
    assert submission.order.status == "in_progress"
    assert submission.order.delivery_status == "processing"
    assert submission.order.tracking_number == "TRK-1"
    assert submission.invoice.amount == Decimal("75000")
    assert submission.invoice.vendor_id == vendor.user_id
    assert submission.invoice.accepted_message_id == order.accepted_message_id
    assert submission.invoice.items[0]["name"] == "Cement"
    assert submission.delivery_message.message_type == "delivery"
    assert submission.delivery_message.system_event == "delivery_submitted"
    assert submission.invoice_message.system_event == "invoice_generated"
    assert submission.invoice_message.payload["invoice_number"] == submission.invoice.invoice_number
    assert outcome.names() == [events.DELIVERY_DETAILS_SUBMITTED, events.INVOICE_GENERATED]

    tracking = await DeliveryTracker.get_delivery_tracking(db, order.id, owner)
    assert tracking.invoice.id == submission.invoice.id


async def test_delivery_details_outside_accepted_leave_tracking_unchanged(db, vendor, make_order):
    order_id = (await make_order()).id
    with pytest.raises(InvalidStateTransition):
        await DeliveryTracker.submit_delivery_details(
            db, order_id, vendor, estimated_delivery_date=utcnow() + timedelta(days=3), tracking_number="TRK-9",
        )
    await db.rollback()
    unchanged = await OrderStore.load_order(db, order_id)
    assert unchanged.status == "sent"
    assert unchanged.delivery_status == "pending"
    assert unchanged.tracking_number is None
    assert unchanged.estimated_delivery_date is None


async def test_delivery_details_only_by_order_vendor(db, owner, other_vendor, accepted_order):
    order = await accepted_order()
    for caps in (owner, other_vendor):
        with pytest.raises(Forbidden):
            await DeliveryTracker.submit_delivery_details(
                db, order.id, caps, estimated_delivery_date=utcnow() + timedelta(days=3)
            )


async def test_delivered_completes_order_and_request(db, owner, vendor, in_progress_order):
    order = await in_progress_order()
    outcome = await DeliveryTracker.update_delivery_status(db, order.id, vendor, "delivered", notes="All unloaded")
    await db.commit()
    completed = outcome.value
    assert completed.status == "completed"
    assert completed.delivery_status == "delivered"
    assert completed.actual_delivery_date is not None
    assert all(line.delivered_quantity == line.quantity for line in completed.lines)
    assert {line.delivery_status for line in completed.lines} == {"delivered"}
    assert outcome.names() == [events.DELIVERY_STATUS_UPDATED, events.PURCHASE_ORDER_COMPLETED]

    request = await RequestLedger.load_request(db, completed.material_request_id)
    assert request.status == "fulfilled"

    tracking = await DeliveryTracker.get_delivery_tracking(db, order.id, owner)
    assert [u.status for u in tracking.history] == ["delivered"]
    thread = [m for m, _ in await NegotiationThread.list_messages(db, order.id, owner)]
    assert thread[-1].system_event == "delivery_update"

    with pytest.raises(InvalidStateTransition):
        await DeliveryTracker.update_delivery_status(db, order.id, vendor, "in_transit")


async def test_in_transit_keeps_order_status(db, vendor, in_progress_order):
    order = await in_progress_order()
    outcome = await DeliveryTracker.update_delivery_status(
        db, order.id, vendor, "in_transit", tracking_number="TRK-2", carrier="DTDC"
    )
    await db.commit()
    assert outcome.value.status == "in_progress"
    assert outcome.value.delivery_status == "in_transit"
    assert outcome.value.carrier == "DTDC"
    assert outcome.names() == [events.DELIVERY_STATUS_UPDATED]


async def test_partial_delivery_then_completion(db, vendor, in_progress_order):
    order = await in_progress_order()
    cement, steel = order.lines

    outcome = await DeliveryTracker.update_delivery_status(
        db, order.id, vendor, "partially_delivered",
        items=[{"line_id": cement.id, "delivered_quantity": 50}, {"line_id": steel.id, "delivered_quantity": 40}],
    )
    await db.commit()
    partial = outcome.value
    assert partial.status == "partially_delivered"
    by_name = {line.name: line for line in partial.lines}
    assert by_name["Cement"].delivery_status == "delivered"
    assert by_name["Steel Rod"].delivery_status == "partial"
    request = await RequestLedger.load_request(db, partial.material_request_id)
    assert request.status == "partially_fulfilled"

    with pytest.raises(ValidationError):
        await DeliveryTracker.update_delivery_status(
            db, order.id, vendor, "partially_delivered",
            items=[{"line_id": steel.id, "delivered_quantity": 10}],
        )

    outcome = await DeliveryTracker.update_delivery_status(
        db, order.id, vendor, "partially_delivered",
        items=[{"line_id": steel.id, "delivered_quantity": 100}],
    )
    await db.commit()
    assert outcome.value.status == "completed"
    request = await RequestLedger.load_request(db, partial.material_request_id)
    assert request.status == "fulfilled"


async def test_delivery_update_validation(db, vendor, other_vendor, in_progress_order):
    order = await in_progress_order()
    with pytest.raises(ValidationError):
        await DeliveryTracker.update_delivery_status(db, order.id, vendor, "returned")
    with pytest.raises(ValidationError):
        await DeliveryTracker.update_delivery_status(
            db, order.id, vendor, "partially_delivered",
            items=[{"line_id": order.lines[0].id, "delivered_quantity": 51}],
        )
    with pytest.raises(Forbidden):
        await DeliveryTracker.update_delivery_status(db, order.id, other_vendor, "in_transit")


async def test_delivery_update_requires_in_progress(db, vendor, accepted_order):
    order = await accepted_order()
    with pytest.raises(InvalidStateTransition):
        await DeliveryTracker.update_delivery_status(db, order.id, vendor, "delivered")


async def test_items_only_reported_with_partial_delivery(db, vendor, in_progress_order):
    order = await in_progress_order()
    order_id = order.id
    items = [{"line_id": order.lines[0].id, "delivered_quantity": 10}]
    for status in ("in_transit", "delivered"):
        with pytest.raises(ValidationError):
            await DeliveryTracker.update_delivery_status(db, order_id, vendor, status, items=items)

    unchanged = await OrderStore.load_order(db, order_id)
    assert unchanged.status == "in_progress"
    assert all(line.delivered_quantity == 0 for line in unchanged.lines)
    assert len(unchanged.delivery_updates) == 0


async def test_status_update_reschedules_delivery(db, owner, vendor, in_progress_order):
    order = await in_progress_order()
    new_eta = utcnow() + timedelta(days=10)
    outcome = await DeliveryTracker.update_delivery_status(
        db, order.id, vendor, "in_transit", notes="Held at depot", estimated_delivery_date=new_eta
    )
    await db.commit()
    assert outcome.value.estimated_delivery_date == new_eta
    assert outcome.value.delivery_updates[-1].estimated_delivery_date == new_eta

    tracking = await DeliveryTracker.get_delivery_tracking(db, order.id, owner)
    assert tracking.history[-1].notes == "Held at depot"
    assert tracking.history[-1].estimated_delivery_date is not None
