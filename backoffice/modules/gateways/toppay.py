"""TopPay bank payouts (RSA-signed)."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from backoffice.modules.transactions.models import TransactionStatus

from .base import Acknowledgement, CallbackStatus, GatewayAcceptance, PayoutGateway, PayoutRequest, RawCallback
from .exceptions import GatewayError, SignatureError
from .signing import SIGNATURE_FIELD, RsaBlockCipher, sorted_query

logger = logging.getLogger(__name__)

CALLBACK_STATUS_MAP = {
    "SUCCESS": TransactionStatus.COMPLETED,
    "FAIL": TransactionStatus.FAILED,
    "FAILED": TransactionStatus.FAILED,
}


class TopPayGateway(PayoutGateway):
    name = "toppay"
    supports_bank = True
    supports_upi = False

    def __init__(
        self,
        *,
        base_url: str,
        merchant_code: str,
        cipher: RsaBlockCipher,
        notify_url: Optional[str] = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.merchant_code = merchant_code
        self.cipher = cipher
        self.notify_url = notify_url

    def validate(self, request: PayoutRequest) -> None:
        super().validate(request)
        self._whole_amount(request, "TopPay")

    def build_params(self, request: PayoutRequest, timestamp: Optional[int] = None) -> dict[str, Any]:
        payee = request.payee
        params: dict[str, Any] = {
            "merchantCode": self.merchant_code,
            "orderNum": request.order_number,
            "bankCode": (payee.ifsc_code or payee.bank_code or "").strip(),
            "bankAccount": (payee.account_number or "").strip(),
            "bankUsername": (payee.account_name or "User").strip(),
            "orderAmount": self._whole_amount(request, "TopPay"),
            "callback": request.notify_url or self.notify_url,
            "timestamp": timestamp if timestamp is not None else int(time.time()),
        }
        params[SIGNATURE_FIELD] = self.cipher.private_encrypt(sorted_query(params))
        return params

    async def initiate(self, request: PayoutRequest) -> GatewayAcceptance:
        params = self.build_params(request)
        logger.info("Sending TopPay payout %s amount=%s", request.order_number, params["orderAmount"])
        data = await self._post(
            f"{self.base_url}/cash/newOrder",
            json_body=params,
            headers={"Content-Type": "application/json"},
        )
        if data.get("code") != 0:
            raise GatewayError(data.get("message") or data.get("msg") or "TopPay payout failed", response=data)
        provider_data = data.get("data") if isinstance(data.get("data"), dict) else {}
        return GatewayAcceptance(
            accepted=True,
            gateway_reference=request.order_number,
            provider_reference=provider_data.get("platOrderNum"),
            response=data,
        )

    def verify_callback(self, callback: RawCallback) -> CallbackStatus:
        payload = callback.parse()
        signature = payload.get(SIGNATURE_FIELD)
        if not signature:
            raise SignatureError("TopPay callback is missing its signature")
        if str(payload.get("merchantCode", "")) != self.merchant_code:
            raise SignatureError("TopPay callback merchant does not match")
        if self.cipher.public_decrypt(str(signature)) != sorted_query(payload):
            raise SignatureError("TopPay callback signature mismatch")

        order_reference = str(payload.get("orderNum") or "")
        if not order_reference:
            raise SignatureError("TopPay callback has no order number")
        status = CALLBACK_STATUS_MAP.get(str(payload.get("status", "")).upper(), TransactionStatus.PROCESSING)
        return CallbackStatus(
            gateway=self.name,
            order_reference=order_reference,
            status=status,
            amount=self._parse_amount(payload.get("orderAmount") or payload.get("money")),
            provider_reference=payload.get("platOrderNum"),
            payload=payload,
        )

    def acknowledge(self) -> Acknowledgement:
        return Acknowledgement("SUCCESS")
