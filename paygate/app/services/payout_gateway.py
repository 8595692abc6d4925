"""
Payout Gateway Client.

Sends bank payouts to the third-party "unpay" API. The JSON payload is
encrypted with AES-256-CBC (PKCS7) and posted hex-encoded as {"body": ...}.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from paygate.app.core.config import settings

logger = logging.getLogger("paygate.gateway")

UNPAY_SUCCESS_STATUS = "TXN"


class GatewayTransportError(Exception):
    """The gateway could not be reached or answered with a server error.

    The payout outcome is unknown when this is raised.
    """


@dataclass
class PayoutInstruction:
    reference_id: str
    amount: Decimal
    account_number: str
    ifsc: str
    bank_name: str
    beneficiary_name: str
    mobile: Optional[str] = None


@dataclass
class GatewayResult:
    success: bool
    status: str
    message: Optional[str] = None
    txn_id: Optional[str] = None
    utr: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class UnpayPayoutGateway:
    """HTTP client for the unpay payout order API."""

    name = "unpay"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        partner_id: str,
        aes_key: str,
        aes_iv: str,
        webhook_url: str = "",
        default_mobile: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.partner_id = partner_id
        self.webhook_url = webhook_url
        self.default_mobile = default_mobile
        self.timeout = timeout
        self.transport = transport
        self._key = aes_key.encode("utf-8")
        self._iv = aes_iv.encode("utf-8")

    def encrypt(self, payload: Dict[str, Any]) -> str:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(json.dumps(payload).encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).encryptor()
        return (encryptor.update(data) + encryptor.finalize()).hex()

    def decrypt(self, body: str) -> Dict[str, Any]:
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).decryptor()
        data = decryptor.update(bytes.fromhex(body)) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return json.loads(unpadder.update(data) + unpadder.finalize())

    def build_payload(self, instruction: PayoutInstruction) -> Dict[str, Any]:
        return {
            "partner_id": self.partner_id,
            "mode": "IMPS",
            "mobile": instruction.mobile or self.default_mobile,
            "name": instruction.beneficiary_name,
            "account": instruction.account_number,
            "ifsc": instruction.ifsc,
            "bank": instruction.bank_name,
            "amount": str(instruction.amount),
            "webhook": self.webhook_url,
            "latitude": "11.2222",
            "longitude": "11.2222",
            "apitxnid": instruction.reference_id,
        }

    async def send_payout(self, instruction: PayoutInstruction) -> GatewayResult:
        """
        Create a payout order.

        Returns:
            GatewayResult with success=True when the gateway answers status TXN,
            success=False with the gateway message for any other answer.

        Raises:
            GatewayTransportError: On network errors, timeouts, 5xx or unreadable responses.
        """
        body = {"body": self.encrypt(self.build_payload(instruction))}
        headers = {"Content-Type": "application/json", "api-key": self.api_key}

        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post("/payout/order/create", json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(
                "Payout gateway request failed",
                extra={"gateway": self.name, "reference_id": instruction.reference_id, "error": str(exc)},
            )
            raise GatewayTransportError(str(exc)) from exc

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        if response.status_code >= 500:
            logger.error(
                "Payout gateway server error",
                extra={"gateway": self.name, "reference_id": instruction.reference_id,
                       "status_code": response.status_code, "elapsed_ms": elapsed_ms},
            )
            raise GatewayTransportError(f"Gateway returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayTransportError("Gateway returned an unreadable response") from exc
        if not isinstance(data, dict):
            raise GatewayTransportError("Gateway returned an unreadable response")

        status = str(data.get("status", ""))
        result = GatewayResult(
            success=status == UNPAY_SUCCESS_STATUS,
            status=status,
            message=data.get("message"),
            txn_id=data.get("txnid"),
            utr=data.get("refno"),
            raw=data,
        )

        logger.info(
            "Payout gateway responded",
            extra={"gateway": self.name, "reference_id": instruction.reference_id,
                   "gateway_status": status, "elapsed_ms": elapsed_ms},
        )
        return result


class GatewayRegistry:
    """Payout gateways by the name stored in MerchantDetails.payout_gateway."""

    def __init__(self, gateways: Optional[Dict[str, Any]] = None):
        self._gateways = dict(gateways or {})

    def register(self, gateway) -> None:
        self._gateways[gateway.name] = gateway

    def get(self, name: Optional[str]):
        if not name:
            return None
        return self._gateways.get(name.lower())


def build_unpay_gateway() -> UnpayPayoutGateway:
    return UnpayPayoutGateway(
        base_url=settings.unpay_base_url,
        api_key=settings.unpay_api_key,
        partner_id=settings.unpay_partner_id,
        aes_key=settings.unpay_aes_key,
        aes_iv=settings.unpay_aes_iv,
        webhook_url=settings.unpay_webhook_url or "",
        default_mobile=settings.unpay_default_mobile,
        timeout=settings.gateway_timeout_seconds,
    )


@lru_cache()
def get_gateway_registry() -> GatewayRegistry:
    """FastAPI dependency returning the configured gateways."""
    return GatewayRegistry({UnpayPayoutGateway.name: build_unpay_gateway()})
