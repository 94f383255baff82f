import copy
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from delivery_api.main import app
from delivery_api.api.dependencies import get_payment_gateway
from delivery_api.core.database import Base, get_db
from delivery_api.core.exceptions import PaymentGatewayError
from delivery_api.core.config import settings
from delivery_api.models.user import User
from delivery_api.schemas.payment import PaymentRecord, Preference, PreferenceRequest
from delivery_api.services.payment_gateway import PaymentGateway


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def issue_token(user_id: str, expires_in: timedelta = timedelta(days=7)) -> str:
    """Sign a token the way the user service does at login."""
    payload = {"id": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


class FakePaymentGateway(PaymentGateway):
    def __init__(self) -> None:
        self.configured = True
        self.preferences: list[PreferenceRequest] = []
        self.payments: dict[str, PaymentRecord] = {}
        self.fail_preference = False
        self.fail_lookup = False

    async def create_preference(self, request: PreferenceRequest) -> Preference:
        if self.fail_preference:
            raise PaymentGatewayError("Preference request returned 500")
        self.preferences.append(request)
        number = len(self.preferences)
        return Preference(id=f"pref-{number}", init_point=f"https://mp.test/checkout/pref-{number}")

    async def get_payment(self, payment_id: str) -> PaymentRecord | None:
        if self.fail_lookup:
            raise PaymentGatewayError(f"Timed out fetching payment {payment_id}")
        return self.payments.get(payment_id)

    def add_payment(self, payment_id: str, status: str, order_id: str | None) -> None:
        self.payments[payment_id] = PaymentRecord(
            id=payment_id, status=status, external_reference=order_id
        )


@pytest_asyncio.fixture
async def db_session():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    test_async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_async_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def gateway():
    return FakePaymentGateway()


@pytest_asyncio.fixture
async def client(db_session, gateway):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, name: str, role: str = "user") -> User:
    user = User(id=str(uuid.uuid4()), name=name, role=role, cart_data={"pizza-1": 2})
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def customer(db_session):
    return await _create_user(db_session, "alice")


@pytest_asyncio.fixture
async def other_customer(db_session):
    return await _create_user(db_session, "bob")


@pytest_asyncio.fixture
async def admin(db_session):
    return await _create_user(db_session, "admin", role="admin")


@pytest_asyncio.fixture
async def auth_headers(customer):
    return {"token": issue_token(customer.id)}


@pytest_asyncio.fixture
async def admin_headers(admin):
    return {"token": issue_token(admin.id)}


ORDER_PAYLOAD = {
    "items": [
        {"name": "Pizza Margherita", "price": 20.0, "quantity": 2},
    ],
    "amount": 42.0,
    "address": {
        "street": "Rua das Flores",
        "number": 120,
        "neighborhood": "Centro",
        "zone": "Sul",
        "cep": "01000-000",
    },
}


@pytest_asyncio.fixture
async def order_payload():
    return copy.deepcopy(ORDER_PAYLOAD)


@pytest_asyncio.fixture
async def placed_order(client, gateway, auth_headers, order_payload):
    """Place an order through the API and return its id."""
    response = await client.post("/api/order/place", json=order_payload, headers=auth_headers)
    assert response.status_code == 200
    return gateway.preferences[-1].external_reference


@pytest_asyncio.fixture
async def token_for():
    return issue_token
