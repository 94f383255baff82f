from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.models.history import OrderStatusHistory


class OrderHistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(self, entry: OrderStatusHistory) -> OrderStatusHistory:
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        return entry

    async def list_for_order(self, order_id: str) -> List[OrderStatusHistory]:
        result = await self.session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.id)
        )
        return list(result.scalars().all())
