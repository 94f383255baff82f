from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, field_validator


class PreferenceItem(BaseModel):
    title: str
    unit_price: float
    quantity: int


class BackUrls(BaseModel):
    success: str
    failure: str
    pending: str


class PreferenceRequest(BaseModel):
    items: List[PreferenceItem]
    back_urls: BackUrls
    external_reference: str
    notification_url: str
    statement_descriptor: str = "DELIVERY FOOD"


class Preference(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    init_point: str


class PaymentRecord(BaseModel):
    """Authoritative payment details as reported by the provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    external_reference: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    action: Optional[str] = None
    data: Optional[WebhookData] = None

    @property
    def payment_id(self) -> Optional[str]:
        if self.data is None or not self.data.id:
            return None
        return self.data.id
