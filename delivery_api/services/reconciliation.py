"""Payment reconciliation.

Aligns local orders with MercadoPago's record of the payment. The webhook
is the authoritative path: payment facts are always re-fetched from the
provider, never read from the notification body. The verify path trusts the
client's redirect result and is kept for the storefront's return page.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from delivery_api.core.exceptions import (
    ConflictError,
    GatewayUnconfiguredError,
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
)
from delivery_api.models.history import HistorySource, OrderStatusHistory
from delivery_api.models.order import Order, OrderStatus
from delivery_api.repositories.history import OrderHistoryRepository
from delivery_api.repositories.order import OrderRepository
from delivery_api.schemas.payment import WebhookEvent
from delivery_api.services.payment_gateway import PaymentGateway
from delivery_api.services.transitions import (
    APPROVED,
    OrderEvent,
    OrderState,
    event_for_provider_status,
    transition,
)

logger = logging.getLogger(__name__)

MAX_APPLY_ATTEMPTS = 3


@dataclass(frozen=True)
class WebhookResult:
    status_code: int
    detail: str


@dataclass(frozen=True)
class VerifyResult:
    success: bool
    message: str


OK = WebhookResult(200, "OK")


class ReconciliationService:
    def __init__(
        self,
        repository: OrderRepository,
        history_repository: OrderHistoryRepository,
        gateway: PaymentGateway,
    ) -> None:
        self.repository = repository
        self.history_repository = history_repository
        self.gateway = gateway

    async def verify_order(self, order_id: str, success: str) -> VerifyResult:
        order = await self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        if success == "true":
            await self._apply(order, APPROVED, HistorySource.VERIFY)
            return VerifyResult(True, "Paid")

        if success == "false":
            await self._delete_abandoned(order)
            return VerifyResult(False, "Not Paid")

        logger.info(f"Verify for order {order_id} with result {success!r}, leaving order untouched")
        return VerifyResult(False, "Payment pending")

    async def _delete_abandoned(self, order: Order) -> None:
        order_id = order.id
        state = OrderState.of(order)
        if state.status is not OrderStatus.PENDING or state.payment:
            raise InvalidTransitionError(state.status.value, "deleted", "verify_declined")

        deleted = await self.repository.delete_pending(order_id, OrderStatus.PENDING.value)
        if not deleted:
            raise ConflictError(f"Order {order_id} is no longer pending")

        await self._record(
            order_id, HistorySource.VERIFY, state.status.value, None, False,
            note="checkout abandoned, order deleted",
        )
        logger.info(f"Order {order_id} deleted after declined checkout")

    async def handle_webhook(self, event: WebhookEvent) -> WebhookResult:
        if event.type != "payment":
            logger.info(f"Ignoring webhook type: {event.type}")
            return OK

        payment_id = event.payment_id
        if not payment_id:
            logger.warning(f"Webhook without payment id: action={event.action}")
            return WebhookResult(400, "Invalid webhook data")
        if not (payment_id.isascii() and payment_id.isdigit()):
            logger.warning(f"Webhook with non-numeric payment id: {payment_id!r}")
            return WebhookResult(400, "Invalid webhook data")

        if not self.gateway.configured:
            logger.warning("Payment gateway not configured, ignoring webhook")
            return OK

        try:
            payment = await self.gateway.get_payment(payment_id)
        except (PaymentGatewayError, GatewayUnconfiguredError) as e:
            logger.error(f"Error verifying payment {payment_id} with MercadoPago: {e}")
            return WebhookResult(500, "Error verifying payment")

        if payment is None:
            logger.warning(f"Payment {payment_id} not found in MercadoPago")
            return WebhookResult(404, "Payment not found")

        order_id = payment.external_reference
        order = await self.repository.get_by_id(order_id) if order_id else None
        if not order:
            logger.warning(f"Order {order_id} not found for payment {payment_id}")
            return WebhookResult(404, "Order not found")

        order_event = event_for_provider_status(payment.status)
        if order_event is None:
            logger.warning(f"Unknown payment status {payment.status} for payment {payment_id}")
            await self._record(
                order.id, HistorySource.WEBHOOK, order.status, None, order.payment,
                payment_id=payment_id, provider_status=payment.status,
                applied=False, note="unknown provider status",
            )
            return OK

        try:
            await self._apply(
                order, order_event, HistorySource.WEBHOOK,
                payment_id=payment_id, provider_status=payment.status,
            )
        except InvalidTransitionError as e:
            # Stale or conflicting notification; acknowledged so it is not redelivered.
            logger.warning(f"Webhook for payment {payment_id} not applied to order {order.id}: {e}")
        except NotFoundError:
            return WebhookResult(404, "Order not found")
        except ConflictError as e:
            logger.error(f"Webhook for payment {payment_id} lost repeated races on order {order.id}: {e}")
            return WebhookResult(500, "Error processing webhook")

        return OK

    async def _apply(
        self,
        order: Order,
        event: OrderEvent,
        source: HistorySource,
        payment_id: Optional[str] = None,
        provider_status: Optional[str] = None,
    ) -> OrderState:
        """Run ``event`` through the state machine and persist the result.

        The write is conditional on the status that was read; when another
        request changed the order in between, it is re-read and the event
        re-evaluated against the fresh state.
        """
        order_id = order.id
        for _ in range(MAX_APPLY_ATTEMPTS):
            current = OrderState.of(order)
            try:
                target = transition(current, event)
            except InvalidTransitionError as e:
                await self._record(
                    order_id, source, current.status.value, e.target, current.payment,
                    payment_id=payment_id, provider_status=provider_status,
                    applied=False, note="refused",
                )
                raise

            if target == current and payment_id in (None, order.mercado_pago_id):
                await self._record(
                    order_id, source, current.status.value, current.status.value, current.payment,
                    payment_id=payment_id, provider_status=provider_status,
                    applied=False, note="already applied",
                )
                logger.info(f"Order {order_id} already reflects {event.kind.value}")
                return current

            updated = await self.repository.compare_and_set_status(
                order_id,
                current.status.value,
                target.status.value,
                target.payment,
                mercado_pago_id=payment_id,
            )
            if updated:
                await self._record(
                    order_id, source, current.status.value, target.status.value, target.payment,
                    payment_id=payment_id, provider_status=provider_status,
                )
                logger.info(
                    f"Order {order_id} updated: status={target.status.value}, payment={target.payment}"
                )
                return target

            order = await self.repository.get_by_id(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

        raise ConflictError(f"Order {order_id} kept changing while applying {event.kind.value}")

    async def _record(
        self,
        order_id: str,
        source: HistorySource,
        from_status: Optional[str],
        to_status: Optional[str],
        payment: bool,
        *,
        payment_id: Optional[str] = None,
        provider_status: Optional[str] = None,
        applied: bool = True,
        note: Optional[str] = None,
    ) -> None:
        await self.history_repository.record(OrderStatusHistory(
            order_id=order_id,
            source=source.value,
            from_status=from_status,
            to_status=to_status,
            payment=payment,
            payment_id=payment_id,
            provider_status=provider_status,
            applied=applied,
            note=note,
        ))
