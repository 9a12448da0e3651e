"""CloudPay UPI/bank payouts (HMAC-SHA256 signed)."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from backoffice.modules.transactions.exceptions import ValidationError
from backoffice.modules.transactions.models import TransactionStatus

from .base import Acknowledgement, CallbackStatus, GatewayAcceptance, PayoutGateway, PayoutRequest, RawCallback
from .exceptions import GatewayError, SignatureError
from .signing import canonical_value, constant_time_equals, hmac_sha256_hex

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Verify"
ACCOUNT_TYPE = "PERSONAL_BANK"

CALLBACK_STATUS_MAP = {
    "SUCCESS": TransactionStatus.COMPLETED,
    "COMPLETED": TransactionStatus.COMPLETED,
    "FAILED": TransactionStatus.FAILED,
    "FAIL": TransactionStatus.FAILED,
    "REJECTED": TransactionStatus.FAILED,
}


def payout_canonical(body: Mapping[str, Any]) -> str:
    return (
        f"merch_id={body['merch_id']}|amount={body['amount']}|acc_no={body['acc_no']}"
        f"|account_name={body['account_name']}|payment_method={str(body['payment_method']).upper()}"
        f"|account_type={body['account_type']}"
    )


def callback_canonical(payload: Mapping[str, Any]) -> str:
    fields = ("merch_id", "order_id", "amount", "status")
    return "|".join(f"{name}={canonical_value(payload.get(name, ''))}" for name in fields)


class CloudPayGateway(PayoutGateway):
    name = "cloudpay"
    supports_bank = True
    supports_upi = True

    def __init__(
        self,
        *,
        base_url: str,
        merchant_id: str,
        api_token: str,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.merchant_id = merchant_id
        self.api_token = api_token

    def validate(self, request: PayoutRequest) -> None:
        super().validate(request)
        self._whole_amount(request, "CloudPay")
        if not request.payee.has_upi_fields and not request.payee.account_number:
            raise ValidationError("CloudPay payout needs a UPI id or an account number")

    def build_body(self, request: PayoutRequest) -> dict[str, Any]:
        payee = request.payee
        use_upi = payee.has_upi_fields
        return {
            "merch_id": self.merchant_id,
            "amount": self._whole_amount(request, "CloudPay"),
            "account_name": payee.account_name or "User",
            "payment_method": "UPI" if use_upi else "BANK",
            "acc_no": payee.upi_id.strip() if use_upi else payee.account_number,
            "account_type": ACCOUNT_TYPE,
            "order_id": request.order_number,
        }

    def sign(self, canonical: str) -> str:
        return hmac_sha256_hex(self.api_token, canonical)

    async def initiate(self, request: PayoutRequest) -> GatewayAcceptance:
        body = self.build_body(request)
        logger.info("Sending CloudPay payout %s via %s", request.order_number, body["payment_method"])
        data = await self._post(
            f"{self.base_url}/payout/php",
            json_body=body,
            headers={"Content-Type": "application/json", SIGNATURE_HEADER: self.sign(payout_canonical(body))},
        )
        if not data.get("status"):
            raise GatewayError(data.get("message") or "CloudPay payout failed", response=data)
        provider_data = data.get("data") if isinstance(data.get("data"), dict) else {}
        return GatewayAcceptance(
            accepted=True,
            gateway_reference=request.order_number,
            provider_reference=provider_data.get("payout_id") or provider_data.get("id"),
            response=data,
        )

    def verify_callback(self, callback: RawCallback) -> CallbackStatus:
        payload = callback.parse()
        expected = self.sign(callback_canonical(payload))
        if not constant_time_equals(expected, callback.header(SIGNATURE_HEADER)):
            raise SignatureError("CloudPay callback signature mismatch")
        if str(payload.get("merch_id", "")) != self.merchant_id:
            raise SignatureError("CloudPay callback merchant does not match")

        order_reference = str(payload.get("order_id") or "")
        if not order_reference:
            raise SignatureError("CloudPay callback has no order id")
        status = CALLBACK_STATUS_MAP.get(str(payload.get("status", "")).upper(), TransactionStatus.PROCESSING)
        return CallbackStatus(
            gateway=self.name,
            order_reference=order_reference,
            status=status,
            amount=self._parse_amount(payload.get("amount")),
            provider_reference=payload.get("utr") or payload.get("payout_id"),
            payload=payload,
        )

    def acknowledge(self) -> Acknowledgement:
        return Acknowledgement('{"status":true}', media_type="application/json")
