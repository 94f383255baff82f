from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.models.driver import Driver, DriverStatus


class DriverRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, driver: Driver) -> Driver:
        self.session.add(driver)
        await self.session.commit()
        await self.session.refresh(driver)
        return driver

    async def get_by_id(self, driver_id: str) -> Optional[Driver]:
        result = await self.session.execute(
            select(Driver).where(Driver.id == driver_id)
        )
        return result.scalar_one_or_none()

    async def list(self, include_inactive: bool = False) -> List[Driver]:
        query = select(Driver).order_by(Driver.name)
        if not include_inactive:
            query = query.where(Driver.status == DriverStatus.ACTIVE.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete(self, driver: Driver) -> None:
        await self.session.delete(driver)
        await self.session.commit()
