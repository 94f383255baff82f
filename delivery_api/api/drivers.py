from fastapi import APIRouter, Depends, Query, status

from delivery_api.api.dependencies import get_admin_user, get_driver_service
from delivery_api.models.user import User
from delivery_api.schemas.driver import (
    DriverCreate,
    DriverDetailResponse,
    DriverListResponse,
    DriverResponse,
)
from delivery_api.schemas.order import MessageResponse
from delivery_api.services.driver import DriverService

router = APIRouter(prefix="/api/admin/drivers", tags=["drivers"])


@router.post("", response_model=DriverDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    admin: User = Depends(get_admin_user),
    service: DriverService = Depends(get_driver_service),
) -> DriverDetailResponse:
    driver = await service.create_driver(driver_data)
    return DriverDetailResponse(success=True, data=DriverResponse.model_validate(driver))


@router.get("", response_model=DriverListResponse)
async def list_drivers(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    admin: User = Depends(get_admin_user),
    service: DriverService = Depends(get_driver_service),
) -> DriverListResponse:
    drivers = await service.list_drivers(include_inactive=include_inactive)
    return DriverListResponse(
        success=True,
        data=[DriverResponse.model_validate(driver) for driver in drivers],
    )


@router.get("/{driver_id}", response_model=DriverDetailResponse)
async def get_driver(
    driver_id: str,
    admin: User = Depends(get_admin_user),
    service: DriverService = Depends(get_driver_service),
) -> DriverDetailResponse:
    driver = await service.get_driver(driver_id)
    return DriverDetailResponse(success=True, data=DriverResponse.model_validate(driver))


@router.delete("/{driver_id}", response_model=MessageResponse)
async def delete_driver(
    driver_id: str,
    admin: User = Depends(get_admin_user),
    service: DriverService = Depends(get_driver_service),
) -> MessageResponse:
    await service.delete_driver(driver_id)
    return MessageResponse(success=True, message="Driver Deleted")
