from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import String, Numeric, DateTime, JSON, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from delivery_api.core.database import Base


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    CONFIRMED = "Confirmed"
    PREPARING = "Preparing"
    READY = "Ready"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.FAILED,
})

# Orders in these statuses still need their driver
ACTIVE_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
})


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    address: Mapped[dict] = mapped_column(JSON, nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mercado_pago_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    driver_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
