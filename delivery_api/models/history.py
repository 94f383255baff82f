from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import String, DateTime, Integer, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column

from delivery_api.core.database import Base


class HistorySource(str, Enum):
    PLACEMENT = "placement"
    WEBHOOK = "webhook"
    VERIFY = "verify"
    ADMIN = "admin"


class OrderStatusHistory(Base):
    """Append-only audit trail of order status changes.

    No foreign key to ``orders``: entries outlive the compensating delete of
    an abandoned checkout.
    """

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    provider_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_order_status_history_order_created", "order_id", "created_at"),
    )
