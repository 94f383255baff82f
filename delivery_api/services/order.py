import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from delivery_api.core.config import Settings
from delivery_api.core.exceptions import (
    ConflictError,
    ForbiddenError,
    GatewayUnconfiguredError,
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from delivery_api.models.history import HistorySource, OrderStatusHistory
from delivery_api.models.order import Order, OrderStatus
from delivery_api.repositories.history import OrderHistoryRepository
from delivery_api.repositories.order import OrderRepository
from delivery_api.repositories.user import UserRepository
from delivery_api.schemas.order import Address, HistoryEntryResponse, OrderItem, OrderResponse
from delivery_api.schemas.payment import BackUrls, PreferenceItem, PreferenceRequest
from delivery_api.services.payment_gateway import PaymentGateway
from delivery_api.services.transitions import OrderEvent, OrderState, transition

logger = logging.getLogger(__name__)


def to_response(order: Order, address: Optional[dict] = None) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        items=[OrderItem(**item) for item in order.items],
        amount=float(order.amount),
        address=address if address is not None else dict(order.address),
        phone=order.phone,
        status=order.status,
        payment=order.payment,
        mercado_pago_id=order.mercado_pago_id,
        driver_id=order.driver_id,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class OrderService:
    def __init__(
        self,
        repository: OrderRepository,
        history_repository: OrderHistoryRepository,
        user_repository: UserRepository,
        gateway: PaymentGateway,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.history_repository = history_repository
        self.user_repository = user_repository
        self.gateway = gateway
        self.settings = settings

    async def place_order(
        self,
        user_id: str,
        items: List[OrderItem],
        amount: float,
        address: Address,
        phone: Optional[str] = None,
    ) -> str:
        """Persist a Pending order and return the hosted checkout URL.

        ``amount`` is stored as given; it is not recomputed from ``items``.
        The order stays persisted when the preference cannot be created.
        """
        missing = address.missing_fields()
        if missing:
            raise ValidationError(
                "Complete address information is required",
                details={"missing": missing},
            )

        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid.uuid4()),
            user_id=user_id,
            items=[item.model_dump() for item in items],
            amount=amount,
            address=address.model_dump(by_alias=True, exclude_none=True),
            phone=phone or address.phone or self.settings.fallback_phone,
            status=OrderStatus.PENDING.value,
            payment=False,
            created_at=now,
            updated_at=now,
        )
        order = await self.repository.create(order)
        order_id = order.id
        pending = OrderStatus.PENDING.value
        await self._record(order_id, None, pending, False, note="order placed")
        logger.info(f"Order created: {order_id} for user {user_id}")

        await self._clear_cart(user_id)

        if not self.gateway.configured:
            logger.warning(f"Order {order_id} left pending, payment gateway not configured")
            raise GatewayUnconfiguredError("Payment system not configured. Please contact support.")

        try:
            preference = await self.gateway.create_preference(self._preference_for(order_id, items))
        except PaymentGatewayError as e:
            logger.error(f"Preference creation failed for order {order_id}: {e}")
            await self._record(
                order_id, pending, pending, False,
                applied=False, note=f"preference_failed: {e.message}"[:500],
            )
            raise PaymentGatewayError("Error creating payment preference") from e

        await self.repository.set_payment_reference(order_id, preference.id)
        logger.info(f"Preference {preference.id} created for order {order_id}")

        return preference.init_point

    def _preference_for(self, order_id: str, items: List[OrderItem]) -> PreferenceRequest:
        lines = [
            PreferenceItem(title=item.name, unit_price=item.price, quantity=item.quantity)
            for item in items
        ]
        lines.append(PreferenceItem(title="Delivery Charges", unit_price=self.settings.delivery_fee, quantity=1))

        verify_url = f"{self.settings.frontend_url.rstrip('/')}/verify"
        return PreferenceRequest(
            items=lines,
            back_urls=BackUrls(
                success=f"{verify_url}?success=true&orderId={order_id}",
                failure=f"{verify_url}?success=false&orderId={order_id}",
                pending=f"{verify_url}?success=pending&orderId={order_id}",
            ),
            external_reference=order_id,
            notification_url=f"{self.settings.backend_url.rstrip('/')}/api/order/webhook",
        )

    async def _clear_cart(self, user_id: str) -> None:
        try:
            await self.user_repository.clear_cart(user_id)
        except Exception as e:
            logger.warning(f"Could not clear cart for user {user_id}: {e}", exc_info=True)

    async def get_order(self, order_id: str, user_id: str) -> OrderResponse:
        """Single order, visible to its owner and to admins."""
        order = await self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        if order.user_id != user_id:
            user = await self.user_repository.get_by_id(user_id)
            if not user or not user.is_admin:
                raise ForbiddenError("You are not allowed to view this order")
        return to_response(order)

    async def list_orders_for_user(self, user_id: str) -> List[OrderResponse]:
        orders = await self.repository.list_by_user(user_id)
        return [to_response(order) for order in orders]

    async def list_all_orders(self) -> List[OrderResponse]:
        orders = await self.repository.list_all()
        names: Dict[str, Optional[str]] = {}
        responses = []

        for order in orders:
            address = dict(order.address or {})
            if not address.get("customerName"):
                if order.user_id not in names:
                    names[order.user_id] = await self._customer_name(order.user_id)
                if names[order.user_id]:
                    address["customerName"] = names[order.user_id]
            responses.append(to_response(order, address))

        return responses

    async def _customer_name(self, user_id: str) -> Optional[str]:
        try:
            user = await self.user_repository.get_by_id(user_id)
        except Exception as e:
            logger.error(f"Error fetching customer name for user {user_id}: {e}")
            return None
        return user.name if user else None

    async def update_status(self, order_id: str, new_status: OrderStatus) -> OrderResponse:
        order = await self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        current = OrderState.of(order)
        try:
            target = transition(current, OrderEvent.admin(new_status))
        except InvalidTransitionError:
            await self._record(
                order.id, current.status.value, new_status.value, current.payment,
                source=HistorySource.ADMIN, applied=False, note="refused",
            )
            raise

        if target != current:
            updated = await self.repository.compare_and_set_status(
                order.id, current.status.value, target.status.value, target.payment
            )
            if not updated:
                raise ConflictError(f"Order {order.id} was modified concurrently, retry the request")
            await self._record(
                order.id, current.status.value, target.status.value, target.payment,
                source=HistorySource.ADMIN,
            )
            logger.info(f"Order {order.id} status updated by admin: {current.status.value} -> {target.status.value}")

        order = await self.repository.get_by_id(order_id)
        return to_response(order)

    async def order_history(self, order_id: str) -> List[HistoryEntryResponse]:
        entries = await self.history_repository.list_for_order(order_id)
        return [
            HistoryEntryResponse(
                id=entry.id,
                order_id=entry.order_id,
                source=entry.source,
                from_status=entry.from_status,
                to_status=entry.to_status,
                payment=entry.payment,
                payment_id=entry.payment_id,
                provider_status=entry.provider_status,
                applied=entry.applied,
                note=entry.note,
                created_at=entry.created_at,
            )
            for entry in entries
        ]

    async def _record(
        self,
        order_id: str,
        from_status: Optional[str],
        to_status: Optional[str],
        payment: bool,
        *,
        source: HistorySource = HistorySource.PLACEMENT,
        applied: bool = True,
        note: Optional[str] = None,
    ) -> None:
        await self.history_repository.record(OrderStatusHistory(
            order_id=order_id,
            source=source.value,
            from_status=from_status,
            to_status=to_status,
            payment=payment,
            applied=applied,
            note=note,
        ))

