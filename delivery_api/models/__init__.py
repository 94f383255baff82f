from delivery_api.core.database import Base
from delivery_api.models.driver import Driver, DriverStatus
from delivery_api.models.history import HistorySource, OrderStatusHistory
from delivery_api.models.order import ACTIVE_STATUSES, TERMINAL_STATUSES, Order, OrderStatus
from delivery_api.models.user import User

__all__ = [
    "Base",
    "Driver",
    "DriverStatus",
    "HistorySource",
    "OrderStatusHistory",
    "Order",
    "OrderStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "User",
]
