"""
Tests for the Paypack gateway adapter using httpx's mock transport.
"""

from decimal import Decimal

import httpx
import pytest

from autofleet.core.exceptions import PaymentVerificationFailed
from autofleet.infrastructure.paypack_client import PaypackGateway


def gateway_with(handler) -> PaypackGateway:
    return PaypackGateway(
        base_url="https://payments.example.test/",
        secret_key="secret",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_completed_transaction_is_parsed():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"ref": "PP-1", "status": "successful", "amount": 295})

    transaction = await gateway_with(handler).verify_transaction("PP-1")

    assert seen == {"path": "/api/transactions/PP-1", "auth": "Bearer secret"}
    assert transaction.succeeded
    assert transaction.amount_paid == Decimal("295")
    assert transaction.currency == "RWF"


@pytest.mark.asyncio
async def test_pending_transaction_is_not_successful():
    gateway = gateway_with(lambda request: httpx.Response(200, json={"status": "pending", "amount": 100}))
    transaction = await gateway.verify_transaction("PP-2")
    assert not transaction.succeeded


@pytest.mark.asyncio
async def test_unknown_reference_fails_verification():
    gateway = gateway_with(lambda request: httpx.Response(404, json={"message": "not found"}))
    with pytest.raises(PaymentVerificationFailed):
        await gateway.verify_transaction("PP-3")


@pytest.mark.asyncio
async def test_transport_error_fails_verification():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentVerificationFailed):
        await gateway_with(handler).verify_transaction("PP-4")
