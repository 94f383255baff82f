from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from delivery_api.models.driver import DriverStatus


class DriverCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=1)
    whatsapp: str = Field(min_length=1)
    status: DriverStatus = DriverStatus.ACTIVE


class DriverResponse(BaseModel):
    id: str
    name: str
    phone: str
    whatsapp: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DriverListResponse(BaseModel):
    success: bool
    data: List[DriverResponse]


class DriverDetailResponse(BaseModel):
    success: bool
    data: DriverResponse
