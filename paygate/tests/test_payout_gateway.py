"""
Tests for the unpay payout gateway client.

Uses httpx.MockTransport in place of the remote API.
"""

import json
from decimal import Decimal

import httpx
import pytest

from paygate.app.services.payout_gateway import (
    GatewayRegistry,
    GatewayTransportError,
    PayoutInstruction,
    UnpayPayoutGateway,
)

AES_KEY = "k" * 32
AES_IV = "v" * 16


def make_gateway(handler) -> UnpayPayoutGateway:
    return UnpayPayoutGateway(
        base_url="https://gateway.test/tech/api",
        api_key="test-api-key",
        partner_id="PARTNER01",
        aes_key=AES_KEY,
        aes_iv=AES_IV,
        webhook_url="https://paygate.test/webhooks/unpay",
        default_mobile="9999999999",
        transport=httpx.MockTransport(handler),
    )


def make_instruction() -> PayoutInstruction:
    return PayoutInstruction(
        reference_id="REF000000001",
        amount=Decimal("500.00"),
        account_number="123456789012",
        ifsc="HDFC0001234",
        bank_name="HDFC Bank",
        beneficiary_name="Ravi Kumar",
    )


@pytest.mark.asyncio
async def test_request_is_encrypted_order():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["api_key"] = request.headers["api-key"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "TXN", "message": "Success", "txnid": "UNP1", "refno": "UTR42"})

    gateway = make_gateway(handler)
    result = await gateway.send_payout(make_instruction())

    assert captured["url"] == "https://gateway.test/tech/api/payout/order/create"
    assert captured["api_key"] == "test-api-key"

    payload = gateway.decrypt(captured["body"]["body"])
    assert payload["apitxnid"] == "REF000000001"
    assert payload["amount"] == "500.00"
    assert payload["account"] == "123456789012"
    assert payload["ifsc"] == "HDFC0001234"
    assert payload["mobile"] == "9999999999"
    assert payload["partner_id"] == "PARTNER01"

    assert result.success is True
    assert result.utr == "UTR42"
    assert result.txn_id == "UNP1"


@pytest.mark.asyncio
async def test_non_txn_status_is_a_rejection():
    def handler(request):
        return httpx.Response(200, json={"status": "ERR", "message": "Invalid IFSC"})

    result = await make_gateway(handler).send_payout(make_instruction())

    assert result.success is False
    assert result.status == "ERR"
    assert result.message == "Invalid IFSC"
    assert result.raw == {"status": "ERR", "message": "Invalid IFSC"}


@pytest.mark.asyncio
async def test_server_error_is_a_transport_error():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(GatewayTransportError):
        await make_gateway(handler).send_payout(make_instruction())


@pytest.mark.asyncio
async def test_network_failure_is_a_transport_error():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(GatewayTransportError):
        await make_gateway(handler).send_payout(make_instruction())


@pytest.mark.asyncio
async def test_unreadable_response_is_a_transport_error():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayTransportError):
        await make_gateway(handler).send_payout(make_instruction())


def test_ciphertext_is_hex_of_whole_blocks():
    gateway = make_gateway(lambda request: httpx.Response(200))

    body = gateway.encrypt({"apitxnid": "REF000000001"})

    assert len(body) % 32 == 0
    bytes.fromhex(body)
    assert gateway.decrypt(body) == {"apitxnid": "REF000000001"}


def test_registry_lookup_is_case_insensitive():
    gateway = make_gateway(lambda request: httpx.Response(200))
    registry = GatewayRegistry()
    registry.register(gateway)

    assert registry.get("UNPAY") is gateway
    assert registry.get("razorpay") is None
    assert registry.get(None) is None


@pytest.mark.asyncio
async def test_json_that_is_not_an_object_is_a_transport_error():
    def handler(request):
        return httpx.Response(200, json=["queued"])

    with pytest.raises(GatewayTransportError):
        await make_gateway(handler).send_payout(make_instruction())
