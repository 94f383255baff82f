"""Payment gateway clients.

The order and reconciliation services only see the :class:`PaymentGateway`
contract. ``MercadoPagoGateway`` talks to the MercadoPago REST API;
``DisabledPaymentGateway`` stands in when no access token is configured.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaError

from delivery_api.core.config import Settings
from delivery_api.core.exceptions import GatewayUnconfiguredError, PaymentGatewayError
from delivery_api.schemas.payment import PaymentRecord, Preference, PreferenceRequest

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    configured: bool = True

    @abstractmethod
    async def create_preference(self, request: PreferenceRequest) -> Preference:
        ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        """Return the payment, or None when the provider does not know it."""


class DisabledPaymentGateway(PaymentGateway):
    configured = False

    async def create_preference(self, request: PreferenceRequest) -> Preference:
        raise GatewayUnconfiguredError("Payment system not configured. Please contact support.")

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        raise GatewayUnconfiguredError("Payment system not configured. Please contact support.")


class MercadoPagoGateway(PaymentGateway):
    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def create_preference(self, request: PreferenceRequest) -> Preference:
        try:
            async with self._client() as client:
                resp = await client.post(
                    "/checkout/preferences",
                    json=request.model_dump(),
                    headers={"X-Idempotency-Key": request.external_reference},
                )
        except httpx.TimeoutException as e:
            raise PaymentGatewayError(f"Timed out creating preference: {e}") from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Preference request failed: {e}") from e

        if resp.status_code not in (200, 201):
            logger.warning(
                f"MercadoPago preference creation failed "
                f"(order={request.external_reference} status={resp.status_code}): {resp.text}"
            )
            raise PaymentGatewayError(
                f"Preference request returned {resp.status_code}",
                details={"status_code": resp.status_code},
            )

        try:
            return Preference.model_validate(resp.json())
        except (ValueError, SchemaError) as e:
            raise PaymentGatewayError(f"Unexpected preference response: {e}") from e

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        try:
            async with self._client() as client:
                resp = await client.get(f"/v1/payments/{quote(payment_id, safe='')}")
        except httpx.TimeoutException as e:
            raise PaymentGatewayError(f"Timed out fetching payment {payment_id}: {e}") from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Payment lookup failed: {e}") from e

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.warning(
                f"MercadoPago payment lookup failed "
                f"(payment={payment_id} status={resp.status_code}): {resp.text}"
            )
            raise PaymentGatewayError(
                f"Payment lookup returned {resp.status_code}",
                details={"status_code": resp.status_code},
            )

        try:
            return PaymentRecord.model_validate(resp.json())
        except (ValueError, SchemaError) as e:
            raise PaymentGatewayError(f"Unexpected payment response: {e}") from e


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if not settings.mercadopago_access_token:
        logger.warning("MERCADOPAGO_ACCESS_TOKEN not set, payments are disabled")
        return DisabledPaymentGateway()

    return MercadoPagoGateway(
        settings.mercadopago_access_token,
        base_url=settings.mercadopago_api_url,
        timeout=settings.payment_gateway_timeout,
    )
