import uuid
from datetime import timedelta
from decimal import Decimal

from procureflow.core import events, notifications
from procureflow.db.base import utcnow


def _request_body(**overrides):
    body = {
        "project_id": str(uuid.uuid4()),
        "title": "Tower B foundation",
        "required_by": (utcnow() + timedelta(days=14)).isoformat(),
        "items": [
            {"name": "Cement", "quantity": 50, "unit": "kg", "category": "cement"},
            {"name": "Steel Rod", "quantity": 100, "unit": "pcs", "category": "steel"},
        ],
    }
    body.update(overrides)
    return body


async def test_request_to_completed_delivery(client, auth, owner, vendor, publisher, dispatcher):
    resp = await client.post("/api/v1/material-requests", json=_request_body(), headers=auth(owner))
    assert resp.status_code == 201
    request = resp.json()["data"]
    assert request["status"] == "pending"

    resp = await client.put(f"/api/v1/material-requests/{request['id']}/approve", headers=auth(owner))
    assert resp.json()["data"]["status"] == "approved"

    resp = await client.post(f"/api/v1/material-requests/{request['id']}/accept", headers=auth(vendor))
    assert resp.status_code == 200
    accepted = resp.json()["data"]
    assert accepted["created"] is True
    po = accepted["purchase_order"]
    assert po["status"] == "sent"
    assert [(line["name"], Decimal(line["quantity"]), Decimal(line["unit_price"])) for line in po["lines"]] == [
        ("Cement", Decimal("50"), Decimal("0")),
        ("Steel Rod", Decimal("100"), Decimal("0")),
    ]

    resp = await client.post(f"/api/v1/material-requests/{request['id']}/accept", headers=auth(vendor))
    assert resp.json()["data"]["created"] is False
    assert resp.json()["data"]["purchase_order"]["id"] == po["id"]

    resp = await client.post(
        f"/api/v1/purchase-orders/{po['id']}/quotation", json={"amount": "75000"}, headers=auth(vendor)
    )
    assert resp.status_code == 201
    quotation_message = resp.json()["data"]
    assert quotation_message["quotation"]["status"] == "pending"

    resp = await client.get(f"/api/v1/purchase-orders/{po['id']}", headers=auth(owner))
    assert resp.json()["data"]["status"] == "in_negotiation"

    accept_url = f"/api/v1/purchase-orders/{po['id']}/quotation/{quotation_message['id']}/accept"
    resp = await client.put(accept_url, headers=auth(owner))
    decision = resp.json()["data"]
    assert decision["changed"] is True
    assert decision["purchase_order"]["status"] == "accepted"
    assert decision["purchase_order"]["negotiation"]["chat_closed"] is True
    assert Decimal(decision["purchase_order"]["negotiation"]["final_amount"]) == Decimal("75000")

    resp = await client.put(accept_url, headers=auth(owner))
    assert resp.status_code == 200
    assert resp.json()["data"]["changed"] is False
    assert resp.json()["message"] == "Quotation already accepted"

    resp = await client.post(
        f"/api/v1/purchase-orders/{po['id']}/delivery-details",
        json={"estimated_delivery_date": (utcnow() + timedelta(days=5)).isoformat(), "carrier": "BlueDart"},
        headers=auth(vendor),
    )
    assert resp.status_code == 201
    submission = resp.json()["data"]
    assert submission["purchase_order"]["status"] == "in_progress"
    assert Decimal(submission["invoice"]["amount"]) == Decimal("75000")
    assert [m["message_type"] for m in submission["messages"]] == ["delivery", "invoice"]

    resp = await client.put(
        f"/api/v1/purchase-orders/{po['id']}/delivery-status", json={"status": "delivered"}, headers=auth(vendor)
    )
    assert resp.json()["data"]["status"] == "completed"

    resp = await client.get("/api/v1/purchase-orders/delivery-overview", headers=auth(owner))
    overview = resp.json()["data"]
    assert [o["id"] for o in overview["delivered"]] == [po["id"]]
    assert overview["active_deliveries"] == []
    assert overview["total"] == 1

    resp = await client.get(f"/api/v1/purchase-orders/{po['id']}/delivery-tracking", headers=auth(owner))
    tracking = resp.json()["data"]
    assert tracking["tracking"]["status"] == "delivered"
    assert tracking["invoice"]["invoice_number"].startswith("INV-")

    resp = await client.get(f"/api/v1/material-requests/{request['id']}", headers=auth(owner))
    assert resp.json()["data"]["status"] == "fulfilled"

    names = [e.event for e in publisher.published]
    assert names.count(events.QUOTATION_ACCEPTED) == 1
    assert names.count(events.PURCHASE_ORDER_CREATED) == 1
    assert events.PURCHASE_ORDER_COMPLETED in names
    assert [(n.kind, n.recipient_id) for n in dispatcher.sent] == [(notifications.VENDOR_ACCEPTED, owner.user_id)]


async def test_messages_and_unread_count(client, auth, owner, vendor):
    resp = await client.post(
        "/api/v1/material-requests", json=_request_body(vendor_id=str(vendor.user_id)), headers=auth(owner)
    )
    request_id = resp.json()["data"]["id"]
    resp = await client.post(f"/api/v1/material-requests/{request_id}/accept", headers=auth(vendor))
    po_id = resp.json()["data"]["purchase_order"]["id"]

    resp = await client.post(
        f"/api/v1/purchase-orders/{po_id}/messages", json={"content": "Need it by Monday"}, headers=auth(owner)
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["quotation"] is None

    resp = await client.get("/api/v1/purchase-orders/unread-count", headers=auth(vendor))
    assert resp.json()["data"]["unread"] == 1

    resp = await client.get(f"/api/v1/purchase-orders/{po_id}/messages", headers=auth(vendor))
    assert [(m["content"], m["is_read"]) for m in resp.json()["data"]] == [("Need it by Monday", False)]

    resp = await client.put(f"/api/v1/purchase-orders/{po_id}/mark-read", headers=auth(vendor))
    assert resp.json()["data"]["marked"] == 1
    resp = await client.get("/api/v1/purchase-orders/unread-count", headers=auth(vendor))
    assert resp.json()["data"]["unread"] == 0


async def test_missing_token_is_unauthorized(client):
    resp = await client.get(f"/api/v1/purchase-orders/{uuid.uuid4()}")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"
    assert body["data"] is None


async def test_error_envelopes(client, auth, owner, vendor):
    resp = await client.post("/api/v1/material-requests", json=_request_body(), headers=auth(vendor))
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"

    resp = await client.post("/api/v1/material-requests", json=_request_body(items=[]), headers=auth(owner))
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"][0]["field"] == "items"

    resp = await client.get(f"/api/v1/purchase-orders/{uuid.uuid4()}", headers=auth(owner))
    assert resp.status_code == 404
    assert resp.json() == {
        "success": False,
        "message": "Purchase order not found",
        "data": None,
        "code": "NOT_FOUND",
    }

    resp = await client.put(
        f"/api/v1/purchase-orders/{uuid.uuid4()}/delivery-status", json={"status": "lost"}, headers=auth(vendor)
    )
    assert resp.status_code == 400


async def test_health_is_public(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "procureflow"}
