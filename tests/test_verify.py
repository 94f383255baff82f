import pytest
from httpx import AsyncClient

from delivery_api.repositories.history import OrderHistoryRepository
from delivery_api.repositories.order import OrderRepository


@pytest.mark.asyncio
async def test_verify_success_marks_paid(client: AsyncClient, placed_order, db_session):
    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "true"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Paid"}
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Paid"
    assert order.payment is True


@pytest.mark.asyncio
async def test_verify_success_after_webhook(client: AsyncClient, gateway, placed_order, db_session):
    gateway.add_payment("9001", "approved", placed_order)
    await client.post("/api/order/webhook", json={"type": "payment", "data": {"id": "9001"}})

    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "true"})

    assert response.status_code == 200
    assert response.json()["message"] == "Paid"
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.mercado_pago_id == "9001"


@pytest.mark.asyncio
async def test_verify_failure_deletes_pending_order(client: AsyncClient, placed_order, db_session):
    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "false"})

    assert response.status_code == 200
    assert response.json() == {"success": False, "message": "Not Paid"}
    assert await OrderRepository(db_session).get_by_id(placed_order) is None

    history = await OrderHistoryRepository(db_session).list_for_order(placed_order)
    assert history[-1].source == "verify"
    assert history[-1].to_status is None


@pytest.mark.asyncio
async def test_verify_failure_keeps_paid_order(client: AsyncClient, gateway, placed_order, db_session):
    gateway.add_payment("9001", "approved", placed_order)
    await client.post("/api/order/webhook", json={"type": "payment", "data": {"id": "9001"}})

    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "false"})

    assert response.status_code == 409
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Paid"


@pytest.mark.asyncio
async def test_verify_pending_leaves_order(client: AsyncClient, placed_order, db_session):
    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "pending"})

    assert response.status_code == 200
    assert response.json() == {"success": False, "message": "Payment pending"}
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Pending"


@pytest.mark.asyncio
async def test_verify_success_on_failed_order_refused(client: AsyncClient, gateway, placed_order, db_session):
    gateway.add_payment("9001", "rejected", placed_order)
    await client.post("/api/order/webhook", json={"type": "payment", "data": {"id": "9001"}})

    response = await client.post("/api/order/verify", json={"orderId": placed_order, "success": "true"})

    assert response.status_code == 409
    order = await OrderRepository(db_session).get_by_id(placed_order)
    assert order.status == "Failed"


@pytest.mark.asyncio
async def test_verify_unknown_order(client: AsyncClient):
    response = await client.post("/api/order/verify", json={"orderId": "missing-order", "success": "true"})

    assert response.status_code == 404
    assert response.json()["success"] is False
