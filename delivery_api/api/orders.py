import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from delivery_api.api.dependencies import (
    get_admin_user,
    get_current_user_id,
    get_order_service,
    get_reconciliation_service,
    get_driver_service,
)
from delivery_api.models.user import User
from delivery_api.schemas.order import (
    AssignDriverRequest,
    HistoryListResponse,
    MessageResponse,
    OrderDetailResponse,
    OrderListResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    UpdateStatusRequest,
    VerifyOrderRequest,
)
from delivery_api.schemas.payment import WebhookEvent
from delivery_api.services.driver import DriverService
from delivery_api.services.order import OrderService
from delivery_api.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/order", tags=["orders"])


@router.post("/place", response_model=PlaceOrderResponse)
async def place_order(
    order_data: PlaceOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service),
) -> PlaceOrderResponse:
    payment_url = await service.place_order(
        user_id=user_id,
        items=order_data.items,
        amount=order_data.amount,
        address=order_data.address,
        phone=order_data.phone,
    )
    return PlaceOrderResponse(success=True, payment_url=payment_url)


@router.post("/verify", response_model=MessageResponse)
async def verify_order(
    data: VerifyOrderRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> MessageResponse:
    result = await service.verify_order(data.order_id, data.success)
    return MessageResponse(success=result.success, message=result.message)


@router.post("/webhook", response_class=PlainTextResponse)
async def mercadopago_webhook(
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> PlainTextResponse:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    payload = _with_query_fallback(body, dict(request.query_params))
    logger.info(
        f"MercadoPago webhook received: type={payload.get('type')} "
        f"action={payload.get('action')} data={payload.get('data')}"
    )

    if payload.get("type") != "payment":
        logger.info(f"Ignoring webhook type: {payload.get('type')}")
        return PlainTextResponse("OK")

    try:
        event = WebhookEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Malformed webhook payload: {e}")
        return PlainTextResponse("Invalid webhook data", status_code=400)

    result = await service.handle_webhook(event)
    return PlainTextResponse(result.detail, status_code=result.status_code)


def _with_query_fallback(body: Dict[str, Any], query: Dict[str, str]) -> Dict[str, Any]:
    """Fill ``type`` and ``data.id`` from IPN-style query parameters."""
    payload = dict(body)
    if not payload.get("type"):
        notification_type = query.get("type") or query.get("topic")
        if notification_type:
            payload["type"] = notification_type

    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    if not data.get("id"):
        payment_id = query.get("data.id") or query.get("id")
        if payment_id:
            data = {**data, "id": payment_id}
    payload["data"] = data or None
    return payload


@router.post("/status", response_model=MessageResponse)
async def update_status(
    data: UpdateStatusRequest,
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service),
) -> MessageResponse:
    await service.update_status(data.order_id, data.status)
    return MessageResponse(success=True, message="Status Updated Successfully")


@router.post("/assign-driver", response_model=MessageResponse)
async def assign_driver(
    data: AssignDriverRequest,
    admin: User = Depends(get_admin_user),
    service: DriverService = Depends(get_driver_service),
) -> MessageResponse:
    await service.assign_driver(data.order_id, data.driver_id)
    return MessageResponse(success=True, message="Driver Assigned Successfully")


@router.get("/list", response_model=OrderListResponse)
async def list_orders(
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    orders = await service.list_all_orders()
    return OrderListResponse(success=True, data=orders)


@router.post("/userorders", response_model=OrderListResponse)
async def user_orders(
    user_id: str = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    orders = await service.list_orders_for_user(user_id)
    return OrderListResponse(success=True, data=orders)


@router.get("/{order_id}/history", response_model=HistoryListResponse)
async def order_history(
    order_id: str,
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service),
) -> HistoryListResponse:
    entries = await service.order_history(order_id)
    return HistoryListResponse(success=True, data=entries)


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service),
) -> OrderDetailResponse:
    order = await service.get_order(order_id, user_id)
    return OrderDetailResponse(success=True, data=order)
