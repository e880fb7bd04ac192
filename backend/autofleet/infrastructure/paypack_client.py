"""
Paypack payment gateway client.
Only transaction lookup is used: the booking core confirms a payment once
Paypack reports the referenced transaction as completed.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from autofleet.core.config import get_settings
from autofleet.core.exceptions import PaymentVerificationFailed
from autofleet.core.logging import get_logger
from autofleet.services.interfaces.payment_gateway import GatewayTransaction, PaymentGateway

logger = get_logger(__name__)

DEFAULT_CURRENCY = "RWF"


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class PaypackGateway(PaymentGateway):
    name = "paypack"

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def verify_transaction(self, reference: str) -> GatewayTransaction:
        async with self._client() as client:
            try:
                response = await client.get(f"/api/transactions/{reference}")
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                logger.warning(
                    "paypack_verify_rejected",
                    reference=reference,
                    status_code=exc.response.status_code,
                )
                raise PaymentVerificationFailed("Failed to verify payment with Paypack")
            except (httpx.RequestError, ValueError) as exc:
                logger.warning("paypack_verify_error", reference=reference, error=str(exc))
                raise PaymentVerificationFailed("Failed to verify payment with Paypack")

        if not isinstance(data, dict):
            raise PaymentVerificationFailed("Unexpected response from Paypack")

        return GatewayTransaction(
            reference=str(data.get("ref") or reference),
            status=str(data.get("status") or "unknown"),
            amount_paid=_to_decimal(data.get("amount")),
            currency=str(data.get("currency") or DEFAULT_CURRENCY),
            raw=data,
        )


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Configured payment gateway singleton."""
    global _gateway
    if _gateway is None:
        settings = get_settings()
        _gateway = PaypackGateway(
            base_url=settings.PAYPACK_API_URL,
            secret_key=settings.PAYPACK_APPLICATION_SECRET_KEY,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
        )
    return _gateway
