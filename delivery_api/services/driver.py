import logging
import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy.exc import IntegrityError

from delivery_api.core.exceptions import ConflictError, NotFoundError
from delivery_api.models.driver import Driver, DriverStatus
from delivery_api.models.order import ACTIVE_STATUSES, TERMINAL_STATUSES, OrderStatus
from delivery_api.repositories.driver import DriverRepository
from delivery_api.repositories.order import OrderRepository
from delivery_api.schemas.driver import DriverCreate
from delivery_api.services.transitions import is_terminal

logger = logging.getLogger(__name__)


class DriverService:
    def __init__(self, repository: DriverRepository, order_repository: OrderRepository) -> None:
        self.repository = repository
        self.order_repository = order_repository

    async def create_driver(self, data: DriverCreate) -> Driver:
        now = datetime.now(timezone.utc)
        driver = Driver(
            id=str(uuid.uuid4()),
            name=data.name.strip(),
            phone=data.phone,
            whatsapp=data.whatsapp,
            status=data.status.value,
            created_at=now,
            updated_at=now,
        )
        try:
            driver = await self.repository.create(driver)
        except IntegrityError as e:
            await self.repository.session.rollback()
            raise ConflictError("Driver name already exists") from e

        logger.info(f"Driver created: {driver.id} ({driver.name})")
        return driver

    async def list_drivers(self, include_inactive: bool = False) -> List[Driver]:
        return await self.repository.list(include_inactive=include_inactive)

    async def get_driver(self, driver_id: str) -> Driver:
        driver = await self.repository.get_by_id(driver_id)
        if not driver:
            raise NotFoundError("Driver not found")
        return driver

    async def delete_driver(self, driver_id: str) -> None:
        active_orders = await self.order_repository.count_for_driver(
            driver_id, [status.value for status in ACTIVE_STATUSES]
        )
        if active_orders > 0:
            logger.info(f"Refusing to delete driver {driver_id}: {active_orders} active orders")
            raise ConflictError("Cannot delete driver - assigned to active orders")

        driver = await self.get_driver(driver_id)
        await self.repository.delete(driver)
        logger.info(f"Driver deleted: {driver_id}")

    async def assign_driver(self, order_id: str, driver_id: str) -> None:
        order = await self.order_repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        driver = await self.get_driver(driver_id)

        if is_terminal(OrderStatus(order.status)):
            raise ConflictError(f"Cannot assign a driver to a {order.status} order")
        if driver.status != DriverStatus.ACTIVE.value:
            raise ConflictError("Driver is inactive")

        assigned = await self.order_repository.assign_driver(
            order_id, driver.id, [status.value for status in TERMINAL_STATUSES]
        )
        if not assigned:
            raise ConflictError(f"Order {order_id} was closed while assigning a driver")
        logger.info(f"Driver {driver.id} assigned to order {order_id}")
