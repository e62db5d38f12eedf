import uuid
from datetime import timedelta

import pytest

from procureflow.core import events, notifications
from procureflow.core.exceptions import Conflict, Forbidden, InvalidStateTransition, NotFound, ValidationError
from procureflow.db.base import utcnow
from procureflow.services.request_ledger import RequestLedger


def _fields(**overrides):
    fields = {
        "project_id": uuid.uuid4(),
        "title": "Slab pour",
        "items": [{"name": "Cement", "quantity": 20, "unit": "kg"}],
        "required_by": utcnow() + timedelta(days=7),
    }
    fields.update(overrides)
    return fields


async def test_create_request_defaults(db, owner):
    outcome = await RequestLedger.create_request(db, owner, **_fields())
    await db.commit()
    request = outcome.value
    assert request.status == "pending"
    assert request.priority == "medium"
    assert request.currency == "INR"
    assert request.requested_by == owner.user_id
    assert [i.category for i in request.items] == ["other"]
    assert outcome.names() == [events.MATERIAL_REQUEST_CREATED]
    assert outcome.notifications == []


async def test_create_request_with_vendor_notifies_vendor(db, owner, vendor):
    outcome = await RequestLedger.create_request(db, owner, **_fields(vendor_id=vendor.user_id))
    await db.commit()
    assert outcome.value.assigned_vendor_ids() == [vendor.user_id]
    assert [(n.kind, n.recipient_id) for n in outcome.notifications] == [
        (notifications.MATERIAL_REQUEST_CREATED, vendor.user_id)
    ]


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"title": "   "}, "Title is required"),
        ({"items": []}, "At least one item is required"),
        ({"items": [{"name": "Sand", "quantity": 0}]}, "greater than 0"),
        ({"items": [{"name": "", "quantity": 1}]}, "name is required"),
        ({"items": [{"name": "Sand", "quantity": 1, "unit": "bags"}]}, "unknown unit"),
        ({"priority": "asap"}, "Unknown priority"),
        ({"required_by": utcnow() - timedelta(days=1)}, "in the future"),
    ],
)
async def test_create_request_validation(db, owner, overrides, message):
    with pytest.raises(ValidationError) as exc:
        await RequestLedger.create_request(db, owner, **_fields(**overrides))
    assert message in exc.value.message


async def test_vendor_cannot_create_request(db, vendor):
    with pytest.raises(Forbidden):
        await RequestLedger.create_request(db, vendor, **_fields())


async def test_approve_records_decision(db, owner, make_request):
    request = await make_request(approve=False)
    outcome = await RequestLedger.approve(db, request.id, owner, "Go ahead")
    await db.commit()
    assert outcome.value.status == "approved"
    assert [(a.decision, a.comments) for a in outcome.value.approvals] == [("approved", "Go ahead")]
    assert outcome.names() == [events.MATERIAL_REQUEST_APPROVED]


async def test_only_pending_requests_can_be_decided(db, owner, make_request):
    request = await make_request()
    with pytest.raises(InvalidStateTransition):
        await RequestLedger.reject(db, request.id, owner, "Too late")


async def test_staff_cannot_approve(db, staff, make_request):
    request = await make_request(approve=False)
    with pytest.raises(Forbidden):
        await RequestLedger.approve(db, request.id, staff)


async def test_reject(db, owner, make_request):
    request = await make_request(approve=False)
    outcome = await RequestLedger.reject(db, request.id, owner, "Over budget")
    await db.commit()
    assert outcome.value.status == "rejected"
    assert outcome.names() == [events.MATERIAL_REQUEST_REJECTED]


async def test_unknown_request(db, owner):
    with pytest.raises(NotFound) as exc:
        await RequestLedger.get_request(db, uuid.uuid4(), owner)
    assert exc.value.message == "Material request not found"


async def test_assign_vendor_is_idempotent_and_single_vendor(db, owner, vendor, other_vendor, make_request):
    request = await make_request()
    first = await RequestLedger.assign_vendor(db, request.id, owner, vendor.user_id)
    await db.commit()
    assert first.names() == [events.MATERIAL_REQUEST_VENDOR_ASSIGNED]
    assert first.notifications[0].recipient_id == vendor.user_id

    again = await RequestLedger.assign_vendor(db, request.id, owner, vendor.user_id)
    await db.commit()
    assert again.events == []
    assert again.value.assigned_vendor_ids() == [vendor.user_id]

    with pytest.raises(Conflict):
        await RequestLedger.assign_vendor(db, request.id, owner, other_vendor.user_id)


async def test_vendor_cannot_assign(db, vendor, make_request):
    request = await make_request()
    with pytest.raises(Forbidden):
        await RequestLedger.assign_vendor(db, request.id, vendor, vendor.user_id)


async def test_accept_request_creates_order(db, owner, vendor, make_request):
    request = await make_request()
    outcome = await RequestLedger.accept_request(db, request.id, vendor)
    await db.commit()
    accepted, order, created = outcome.value
    assert created is True
    assert accepted.assigned_vendor_ids() == [vendor.user_id]
    assert order.vendor_id == vendor.user_id
    assert order.created_by == owner.user_id
    assert order.status == "sent"
    assert order.order_number.startswith("PO-")
    assert [(line.name, line.quantity, line.unit_price) for line in order.lines] == [
        ("Cement", 50, 0),
        ("Steel Rod", 100, 0),
    ]
    assert outcome.names() == [events.MATERIAL_REQUEST_VENDOR_ACCEPTED, events.PURCHASE_ORDER_CREATED]
    assert outcome.notifications[0].recipient_id == owner.user_id


async def test_accept_request_twice_returns_same_order(db, vendor, make_request):
    request = await make_request()
    _, first, _ = (await RequestLedger.accept_request(db, request.id, vendor)).value
    await db.commit()
    outcome = await RequestLedger.accept_request(db, request.id, vendor)
    await db.commit()
    _, second, created = outcome.value
    assert created is False
    assert second.id == first.id
    assert outcome.events == []


async def test_second_vendor_cannot_accept(db, vendor, other_vendor, make_request):
    request = await make_request()
    await RequestLedger.accept_request(db, request.id, vendor)
    await db.commit()
    with pytest.raises(Conflict):
        await RequestLedger.accept_request(db, request.id, other_vendor)


async def test_rejected_request_cannot_be_accepted(db, owner, vendor, make_request):
    request = await make_request(approve=False)
    await RequestLedger.reject(db, request.id, owner)
    await db.commit()
    with pytest.raises(Forbidden):
        await RequestLedger.accept_request(db, request.id, vendor)


async def test_owner_cannot_accept(db, owner, make_request):
    request = await make_request()
    with pytest.raises(Forbidden):
        await RequestLedger.accept_request(db, request.id, owner)


async def test_vendor_visibility(db, owner, vendor, other_vendor, make_request):
    request = await make_request()
    # open request: any vendor may look
    assert (await RequestLedger.get_request(db, request.id, other_vendor)).id == request.id
    await RequestLedger.assign_vendor(db, request.id, owner, vendor.user_id)
    await db.commit()
    assert (await RequestLedger.get_request(db, request.id, vendor)).id == request.id
    with pytest.raises(Forbidden):
        await RequestLedger.get_request(db, request.id, other_vendor)


async def test_vendor_self_assign(db, owner, vendor, other_vendor, make_request):
    request = await make_request()
    outcome = await RequestLedger.vendor_self_assign(db, request.id, vendor)
    await db.commit()
    assert outcome.value.assigned_vendor_ids() == [vendor.user_id]
    assert outcome.names() == [events.MATERIAL_REQUEST_VENDOR_ASSIGNED]

    again = await RequestLedger.vendor_self_assign(db, request.id, vendor)
    await db.commit()
    assert again.events == []

    with pytest.raises(Conflict):
        await RequestLedger.vendor_self_assign(db, request.id, other_vendor)
    with pytest.raises(Forbidden):
        await RequestLedger.vendor_self_assign(db, request.id, owner)

    _, order, created = (await RequestLedger.accept_request(db, request.id, vendor)).value
    await db.commit()
    assert created is True
    assert order.vendor_id == vendor.user_id
