from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.core.config import Settings, settings
from delivery_api.core.database import get_db
from delivery_api.core.exceptions import ForbiddenError, UnauthorizedError
from delivery_api.core.security import decode_access_token
from delivery_api.models.user import User
from delivery_api.repositories.driver import DriverRepository
from delivery_api.repositories.history import OrderHistoryRepository
from delivery_api.repositories.order import OrderRepository
from delivery_api.repositories.user import UserRepository
from delivery_api.services.driver import DriverService
from delivery_api.services.order import OrderService
from delivery_api.services.payment_gateway import PaymentGateway, build_payment_gateway
from delivery_api.services.reconciliation import ReconciliationService


def get_settings() -> Settings:
    return settings


def get_payment_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = build_payment_gateway(settings)
        request.app.state.payment_gateway = gateway
    return gateway


def get_order_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    app_settings: Settings = Depends(get_settings),
) -> OrderService:
    return OrderService(
        OrderRepository(db),
        OrderHistoryRepository(db),
        UserRepository(db),
        gateway,
        app_settings,
    )


def get_reconciliation_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> ReconciliationService:
    return ReconciliationService(OrderRepository(db), OrderHistoryRepository(db), gateway)


def get_driver_service(db: AsyncSession = Depends(get_db)) -> DriverService:
    return DriverService(DriverRepository(db), OrderRepository(db))


async def get_current_user_id(token: str | None = Header(default=None)) -> str:
    claims = decode_access_token(token or "")
    return str(claims["id"])


async def get_admin_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise UnauthorizedError("User not found, login again", code="USER_NOT_FOUND")
    if not user.is_admin:
        raise ForbiddenError("You are not admin")
    return user
