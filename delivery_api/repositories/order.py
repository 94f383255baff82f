from datetime import datetime, timezone
from typing import Iterable, List, Optional
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.models.order import Order


class OrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, order: Order) -> Order:
        self.session.add(order)
        await self.session.commit()
        await self.session.refresh(order)
        return order

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str) -> List[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[Order]:
        result = await self.session.execute(
            select(Order).order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def set_payment_reference(self, order_id: str, mercado_pago_id: str) -> None:
        await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(mercado_pago_id=mercado_pago_id, updated_at=datetime.now(timezone.utc))
        )
        await self.session.commit()

    async def compare_and_set_status(
        self,
        order_id: str,
        expected_status: str,
        status: str,
        payment: bool,
        mercado_pago_id: Optional[str] = None,
    ) -> bool:
        """Write status, payment and payment reference in one statement.

        The row is only touched while it still has ``expected_status``;
        returns False when another writer got there first.
        """
        values = {
            "status": status,
            "payment": payment,
            "updated_at": datetime.now(timezone.utc),
        }
        if mercado_pago_id is not None:
            values["mercado_pago_id"] = mercado_pago_id

        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status == expected_status)
            .values(**values)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def delete_pending(self, order_id: str, pending_status: str) -> bool:
        result = await self.session.execute(
            delete(Order)
            .where(Order.id == order_id)
            .where(Order.status == pending_status)
            .where(Order.payment.is_(False))
        )
        await self.session.commit()
        return result.rowcount == 1

    async def count_for_driver(self, driver_id: str, statuses: Iterable[str]) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Order)
            .where(Order.driver_id == driver_id)
            .where(Order.status.in_(list(statuses)))
        )
        return result.scalar_one()

    async def assign_driver(self, order_id: str, driver_id: str, excluded_statuses: Iterable[str]) -> bool:
        """Set the driver unless the order has moved into ``excluded_statuses``."""
        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status.not_in(list(excluded_statuses)))
            .values(driver_id=driver_id, updated_at=datetime.now(timezone.utc))
        )
        await self.session.commit()
        return result.rowcount == 1
