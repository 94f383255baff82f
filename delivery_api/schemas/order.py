from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from delivery_api.models.order import OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(CamelModel):
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(gt=0)


class Address(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    street: Optional[str] = None
    number: Optional[str] = None
    neighborhood: Optional[str] = None
    zone: Optional[str] = None
    phone: Optional[str] = None
    cep: Optional[str] = None
    customer_name: Optional[str] = None

    @field_validator("number", "cep", "phone", mode="before")
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def missing_fields(self) -> List[str]:
        required = ("street", "number", "neighborhood", "zone")
        return [name for name in required if not (getattr(self, name) or "").strip()]


class PlaceOrderRequest(CamelModel):
    user_id: Optional[str] = None
    items: List[OrderItem] = Field(min_length=1)
    amount: float = Field(ge=0)
    address: Address
    phone: Optional[str] = None


class VerifyOrderRequest(CamelModel):
    order_id: str
    success: str


class UpdateStatusRequest(CamelModel):
    order_id: str
    status: OrderStatus


class AssignDriverRequest(CamelModel):
    order_id: str
    driver_id: str


class OrderResponse(CamelModel):
    id: str
    user_id: str
    items: List[OrderItem]
    amount: float
    address: dict[str, Any]
    phone: str
    status: str
    payment: bool
    mercado_pago_id: Optional[str] = None
    driver_id: Optional[str] = Field(default=None, alias="driver")
    created_at: datetime
    updated_at: datetime


class HistoryEntryResponse(CamelModel):
    id: int
    order_id: str
    source: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    payment: bool
    payment_id: Optional[str] = None
    provider_status: Optional[str] = None
    applied: bool
    note: Optional[str] = None
    created_at: datetime


class MessageResponse(BaseModel):
    success: bool
    message: str


class PlaceOrderResponse(BaseModel):
    success: bool
    payment_url: str


class OrderListResponse(BaseModel):
    success: bool
    data: List[OrderResponse]


class HistoryListResponse(BaseModel):
    success: bool
    data: List[HistoryEntryResponse]


class OrderDetailResponse(BaseModel):
    success: bool
    data: OrderResponse
