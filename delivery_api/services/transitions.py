"""Order status state machine.

Every status change (webhook reconciliation, client verification, admin
update) goes through :func:`transition`. Payment events can only move an
order forward out of ``Pending``; admin events walk the operational
lifecycle. Terminal statuses never change.
"""
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn, Optional

from delivery_api.core.exceptions import InvalidTransitionError
from delivery_api.models.order import OrderStatus, TERMINAL_STATUSES


class EventKind(str, Enum):
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_DECLINED = "payment_declined"
    PAYMENT_PENDING = "payment_pending"
    ADMIN_STATUS = "admin_status"


@dataclass(frozen=True)
class OrderState:
    status: OrderStatus
    payment: bool

    @classmethod
    def of(cls, order) -> "OrderState":
        return cls(status=OrderStatus(order.status), payment=bool(order.payment))


@dataclass(frozen=True)
class OrderEvent:
    kind: EventKind
    target: Optional[OrderStatus] = None

    @classmethod
    def admin(cls, target: OrderStatus) -> "OrderEvent":
        return cls(EventKind.ADMIN_STATUS, target)


APPROVED = OrderEvent(EventKind.PAYMENT_APPROVED)
DECLINED = OrderEvent(EventKind.PAYMENT_DECLINED)
PENDING = OrderEvent(EventKind.PAYMENT_PENDING)

PROVIDER_STATUS_EVENTS = {
    "approved": APPROVED,
    "rejected": DECLINED,
    "cancelled": DECLINED,
    "pending": PENDING,
    "in_process": PENDING,
}

ADMIN_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
}


def event_for_provider_status(provider_status: Optional[str]) -> Optional[OrderEvent]:
    """Map a MercadoPago payment status to an event; None for unknown values."""
    if provider_status is None:
        return None
    return PROVIDER_STATUS_EVENTS.get(provider_status.lower())


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def transition(state: OrderState, event: OrderEvent) -> OrderState:
    """Return the state after applying ``event``.

    Re-applying an event the order already reflects returns the state
    unchanged, so redelivered webhooks converge. Anything that would move
    the order backwards or out of a terminal status raises
    :class:`InvalidTransitionError`.
    """
    if event.kind is EventKind.ADMIN_STATUS:
        return _admin_transition(state, event)

    current = state.status

    if event.kind is EventKind.PAYMENT_APPROVED:
        if current is OrderStatus.PENDING:
            return OrderState(OrderStatus.PAID, True)
        if state.payment and current is not OrderStatus.CANCELLED:
            return state
        _refuse(state, OrderStatus.PAID, event)

    if event.kind is EventKind.PAYMENT_DECLINED:
        if current is OrderStatus.PENDING:
            return OrderState(OrderStatus.FAILED, False)
        if current is OrderStatus.FAILED:
            return state
        _refuse(state, OrderStatus.FAILED, event)

    if event.kind is EventKind.PAYMENT_PENDING:
        if current is OrderStatus.PENDING:
            return state
        _refuse(state, OrderStatus.PENDING, event)

    raise ValueError(f"Unsupported event {event.kind}")


def _admin_transition(state: OrderState, event: OrderEvent) -> OrderState:
    target = event.target
    if target is None:
        raise ValueError("Admin status event requires a target status")
    if target is state.status:
        return state
    if target not in ADMIN_TRANSITIONS.get(state.status, frozenset()):
        _refuse(state, target, event)
    return OrderState(target, state.payment)


def _refuse(state: OrderState, target: OrderStatus, event: OrderEvent) -> NoReturn:
    raise InvalidTransitionError(state.status.value, target.value, event.kind.value)
