from datetime import timedelta

import pytest
from httpx import AsyncClient

from delivery_api.models.order import OrderStatus
from delivery_api.repositories.history import OrderHistoryRepository
from delivery_api.repositories.order import OrderRepository


@pytest.mark.asyncio
async def test_place_order_success(client: AsyncClient, gateway, auth_headers, order_payload, customer, db_session):
    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["payment_url"] == "https://mp.test/checkout/pref-1"

    preference = gateway.preferences[0]
    order = await OrderRepository(db_session).get_by_id(preference.external_reference)
    assert order.user_id == customer.id
    assert order.status == "Pending"
    assert order.payment is False
    assert order.mercado_pago_id == "pref-1"
    assert order.address["number"] == "120"


@pytest.mark.asyncio
async def test_place_order_stores_amount_as_given(client: AsyncClient, gateway, auth_headers, order_payload, db_session):
    # items add up to 40, the client-sent amount wins
    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 200
    order = await OrderRepository(db_session).get_by_id(gateway.preferences[0].external_reference)
    assert float(order.amount) == 42.0


@pytest.mark.asyncio
async def test_place_order_preference_contents(client: AsyncClient, gateway, auth_headers, order_payload):
    await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    preference = gateway.preferences[0]
    order_id = preference.external_reference
    titles = [item.title for item in preference.items]
    assert titles == ["Pizza Margherita", "Delivery Charges"]
    assert preference.items[-1].unit_price == 2.0
    assert preference.items[-1].quantity == 1
    assert preference.back_urls.success == f"http://localhost:5173/verify?success=true&orderId={order_id}"
    assert preference.back_urls.failure == f"http://localhost:5173/verify?success=false&orderId={order_id}"
    assert preference.back_urls.pending == f"http://localhost:5173/verify?success=pending&orderId={order_id}"
    assert preference.notification_url == "http://localhost:4000/api/order/webhook"
    assert preference.statement_descriptor == "DELIVERY FOOD"


@pytest.mark.asyncio
async def test_place_order_clears_cart(client: AsyncClient, auth_headers, order_payload, customer, db_session):
    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 200
    await db_session.refresh(customer)
    assert customer.cart_data == {}


@pytest.mark.asyncio
async def test_place_order_phone_fallback(client: AsyncClient, gateway, auth_headers, order_payload, db_session):
    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)
    assert response.status_code == 200
    order = await OrderRepository(db_session).get_by_id(gateway.preferences[0].external_reference)
    assert order.phone == "11999999999"


@pytest.mark.asyncio
async def test_place_order_uses_address_phone(client: AsyncClient, gateway, auth_headers, order_payload, db_session):
    order_payload["address"]["phone"] = "11988887777"

    await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    order = await OrderRepository(db_session).get_by_id(gateway.preferences[0].external_reference)
    assert order.phone == "11988887777"


@pytest.mark.asyncio
async def test_place_order_missing_address_fields(client: AsyncClient, gateway, auth_headers, order_payload, customer, db_session):
    del order_payload["address"]["street"]
    order_payload["address"]["zone"] = "  "

    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Complete address information is required"
    assert data["details"]["missing"] == ["street", "zone"]
    assert gateway.preferences == []
    assert await OrderRepository(db_session).list_by_user(customer.id) == []


@pytest.mark.asyncio
async def test_place_order_empty_items(client: AsyncClient, auth_headers, order_payload):
    order_payload["items"] = []

    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_place_order_requires_token(client: AsyncClient, order_payload):
    response = await client.post("/api/order/place", json=order_payload)

    assert response.status_code == 401
    assert response.json()["code"] == "NO_TOKEN"


@pytest.mark.asyncio
async def test_place_order_invalid_token(client: AsyncClient, order_payload):
    response = await client.post("/api/order/place", json=order_payload, headers={"token": "not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_place_order_expired_token(client: AsyncClient, order_payload, customer, token_for):
    token = token_for(customer.id, expires_in=timedelta(minutes=-5))

    response = await client.post("/api/order/place", json=order_payload, headers={"token": token})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_place_order_gateway_not_configured(client: AsyncClient, gateway, auth_headers, order_payload, customer, db_session):
    gateway.configured = False

    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 503
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Payment system not configured. Please contact support."

    orders = await OrderRepository(db_session).list_by_user(customer.id)
    assert len(orders) == 1
    assert orders[0].status == "Pending"


@pytest.mark.asyncio
async def test_place_order_preference_failure_keeps_order(client: AsyncClient, gateway, auth_headers, order_payload, customer, db_session):
    gateway.fail_preference = True

    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["message"] == "Error creating payment preference"

    orders = await OrderRepository(db_session).list_by_user(customer.id)
    assert len(orders) == 1
    assert orders[0].status == "Pending"
    assert orders[0].mercado_pago_id is None

    history = await OrderHistoryRepository(db_session).list_for_order(orders[0].id)
    assert [entry.applied for entry in history] == [True, False]
    assert history[1].note.startswith("preference_failed")


@pytest.mark.asyncio
async def test_user_orders(client: AsyncClient, placed_order, auth_headers, other_customer, token_for):
    response = await client.post("/api/order/userorders", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [order["id"] for order in data["data"]] == [placed_order]
    assert data["data"][0]["amount"] == 42.0
    assert data["data"][0]["status"] == "Pending"

    other = await client.post(
        "/api/order/userorders",
        headers={"token": token_for(other_customer.id)},
    )
    assert other.json()["data"] == []


@pytest.mark.asyncio
async def test_list_orders_backfills_customer_name(client: AsyncClient, placed_order, admin_headers):
    response = await client.get("/api/order/list", headers=admin_headers)

    assert response.status_code == 200
    orders = response.json()["data"]
    assert len(orders) == 1
    assert orders[0]["address"]["customerName"] == "alice"


@pytest.mark.asyncio
async def test_list_orders_keeps_given_customer_name(client: AsyncClient, auth_headers, admin_headers, order_payload):
    order_payload["address"]["customerName"] = "Alice Souza"
    await client.post("/api/order/place", json=order_payload, headers=auth_headers)

    response = await client.get("/api/order/list", headers=admin_headers)

    assert response.json()["data"][0]["address"]["customerName"] == "Alice Souza"


@pytest.mark.asyncio
async def test_list_orders_requires_admin(client: AsyncClient, placed_order, auth_headers):
    response = await client.get("/api/order/list", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "You are not admin"


@pytest.mark.asyncio
async def test_get_order_owner_and_admin(client: AsyncClient, placed_order, auth_headers, admin_headers, other_customer, token_for):
    own = await client.get(f"/api/order/{placed_order}", headers=auth_headers)
    assert own.status_code == 200
    assert own.json()["data"]["id"] == placed_order

    as_admin = await client.get(f"/api/order/{placed_order}", headers=admin_headers)
    assert as_admin.status_code == 200

    stranger = await client.get(
        f"/api/order/{placed_order}",
        headers={"token": token_for(other_customer.id)},
    )
    assert stranger.status_code == 403


@pytest.mark.asyncio
async def test_get_order_not_found(client: AsyncClient, auth_headers):
    response = await client.get("/api/order/missing-order", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_cancels_pending_order(client: AsyncClient, placed_order, admin_headers, db_session):
    response = await client.post(
        "/api/order/status",
        json={"orderId": placed_order, "status": "Cancelled"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Status Updated Successfully"}
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Cancelled"


@pytest.mark.asyncio
async def test_admin_walks_paid_order_to_delivered(client: AsyncClient, placed_order, gateway, admin_headers, db_session):
    gateway.add_payment("9001", "approved", placed_order)
    await client.post("/api/order/webhook", json={"type": "payment", "data": {"id": "9001"}})

    for status in ("Confirmed", "Preparing", "Ready", "OutForDelivery", "Delivered"):
        response = await client.post(
            "/api/order/status",
            json={"orderId": placed_order, "status": status},
            headers=admin_headers,
        )
        assert response.status_code == 200, status

    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Delivered"
    assert order.payment is True


@pytest.mark.asyncio
async def test_admin_status_refused(client: AsyncClient, placed_order, admin_headers, db_session):
    response = await client.post(
        "/api/order/status",
        json={"orderId": placed_order, "status": "Preparing"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"

    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Pending"
    history = await OrderHistoryRepository(db_session).list_for_order(placed_order)
    assert history[-1].source == "admin"
    assert history[-1].applied is False


@pytest.mark.asyncio
async def test_admin_status_unknown_value(client: AsyncClient, placed_order, admin_headers):
    response = await client.post(
        "/api/order/status",
        json={"orderId": placed_order, "status": "Teleported"},
        headers=admin_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_admin_status_requires_admin(client: AsyncClient, placed_order, auth_headers):
    response = await client.post(
        "/api/order/status",
        json={"orderId": placed_order, "status": "Cancelled"},
        headers=auth_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_status_order_not_found(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/order/status",
        json={"orderId": "missing-order", "status": "Cancelled"},
        headers=admin_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_order_history(client: AsyncClient, placed_order, gateway, admin_headers):
    gateway.add_payment("9001", "approved", placed_order)
    await client.post("/api/order/webhook", json={"type": "payment", "data": {"id": "9001"}})

    response = await client.get(f"/api/order/{placed_order}/history", headers=admin_headers)

    assert response.status_code == 200
    entries = response.json()["data"]
    assert [(e["source"], e["fromStatus"], e["toStatus"]) for e in entries] == [
        ("placement", None, "Pending"),
        ("webhook", "Pending", "Paid"),
    ]
    assert entries[1]["paymentId"] == "9001"
    assert entries[1]["providerStatus"] == "approved"


@pytest.mark.asyncio
async def test_admin_status_loses_race(client: AsyncClient, placed_order, admin_headers, db_session, monkeypatch):
    original = OrderRepository.compare_and_set_status

    async def declined_in_between(self, order_id, expected_status, status, payment, mercado_pago_id=None):
        await original(self, order_id, expected_status, OrderStatus.FAILED.value, False)
        return await original(self, order_id, expected_status, status, payment, mercado_pago_id=mercado_pago_id)

    monkeypatch.setattr(OrderRepository, "compare_and_set_status", declined_in_between)

    response = await client.post(
        "/api/order/status",
        json={"orderId": placed_order, "status": "Cancelled"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert "modified concurrently" in response.json()["message"]
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Failed"
    history = await OrderHistoryRepository(db_session).list_for_order(placed_order)
    assert [entry.source for entry in history if entry.applied] == ["placement"]
