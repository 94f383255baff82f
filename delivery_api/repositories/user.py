from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.models.user import User


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def clear_cart(self, user_id: str) -> None:
        try:
            await self.session.execute(
                update(User).where(User.id == user_id).values(cart_data={})
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
