"""WDDPay bank payouts (MD5 signed, form encoded)."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from backoffice.modules.transactions.models import TransactionStatus

from .base import CallbackStatus, GatewayAcceptance, PayoutGateway, PayoutRequest, RawCallback
from .exceptions import GatewayError, SignatureError
from .signing import SIGNATURE_FIELD, constant_time_equals, md5_hex, sorted_query

logger = logging.getLogger(__name__)

CALLBACK_STATUS_MAP = {
    "1": TransactionStatus.COMPLETED,
    "2": TransactionStatus.FAILED,
}


class WddPayGateway(PayoutGateway):
    name = "wddpay"
    supports_bank = True
    supports_upi = False

    def __init__(
        self,
        *,
        base_url: str,
        merchant_id: str,
        secret_key: str,
        notify_url: str | None = None,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.merchant_id = merchant_id
        self.secret_key = secret_key
        self.notify_url = notify_url

    def sign(self, params: Mapping[str, Any]) -> str:
        return md5_hex(f"{sorted_query(params)}&key={self.secret_key}")

    def build_form(self, request: PayoutRequest) -> dict[str, Any]:
        payee = request.payee
        form: dict[str, Any] = {
            "mchId": self.merchant_id,
            "orderNo": request.order_number,
            "amount": f"{request.amount:.2f}",
            "accountName": payee.account_name or "User",
            "accountNo": (payee.account_number or "").strip(),
            "ifsc": (payee.ifsc_code or payee.bank_code or "").strip(),
            "notifyUrl": request.notify_url or self.notify_url,
        }
        form[SIGNATURE_FIELD] = self.sign(form)
        return form

    async def initiate(self, request: PayoutRequest) -> GatewayAcceptance:
        form = self.build_form(request)
        logger.info("Sending WDDPay payout %s amount=%s", request.order_number, form["amount"])
        data = await self._post(f"{self.base_url}/api/payout/create", form_body=form)
        if data.get("code") != 0:
            raise GatewayError(data.get("msg") or data.get("message") or "WDDPay payout failed", response=data)
        provider_data = data.get("data") if isinstance(data.get("data"), dict) else {}
        return GatewayAcceptance(
            accepted=True,
            gateway_reference=request.order_number,
            provider_reference=provider_data.get("tradeNo"),
            response=data,
        )

    def verify_callback(self, callback: RawCallback) -> CallbackStatus:
        payload = callback.parse()
        if not constant_time_equals(self.sign(payload), str(payload.get(SIGNATURE_FIELD) or "")):
            raise SignatureError("WDDPay callback signature mismatch")
        if str(payload.get("mchId", "")) != self.merchant_id:
            raise SignatureError("WDDPay callback merchant does not match")

        order_reference = str(payload.get("orderNo") or "")
        if not order_reference:
            raise SignatureError("WDDPay callback has no order number")
        status = CALLBACK_STATUS_MAP.get(str(payload.get("status", "")), TransactionStatus.PROCESSING)
        return CallbackStatus(
            gateway=self.name,
            order_reference=order_reference,
            status=status,
            amount=self._parse_amount(payload.get("amount")),
            provider_reference=payload.get("tradeNo"),
            payload=payload,
        )
