"""Payout gateway adapter interface."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl

import httpx

from backoffice.modules.transactions.exceptions import ValidationError
from backoffice.modules.transactions.models import PayeeDetails, TransactionStatus

from .exceptions import GatewayError, SignatureError

logger = logging.getLogger(__name__)

MIN_PAYOUT_AMOUNT = Decimal("100")


@dataclass(slots=True)
class PayoutRequest:
    """Value object handed to an adapter; never persisted on its own."""

    transaction_id: str
    reference: str
    order_number: str
    amount: Decimal
    payee: PayeeDetails
    notify_url: Optional[str] = None


@dataclass(slots=True)
class GatewayAcceptance:
    accepted: bool
    gateway_reference: str
    provider_reference: Optional[str] = None
    response: Any = None


@dataclass(slots=True)
class RawCallback:
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    content_type: str = ""

    def parse(self) -> dict[str, Any]:
        """Decode a JSON or form-encoded body into a flat dict."""
        try:
            text = self.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SignatureError("Callback body is not UTF-8") from exc
        if "json" in self.content_type.lower() or text.lstrip().startswith("{"):
            try:
                data = json.loads(text)
            except ValueError as exc:
                raise SignatureError("Callback body is not valid JSON") from exc
            if not isinstance(data, dict):
                raise SignatureError("Callback body must be a JSON object")
            return data
        return dict(parse_qsl(text, keep_blank_values=True))

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass(slots=True)
class CallbackStatus:
    gateway: str
    order_reference: str
    status: TransactionStatus
    amount: Optional[Decimal]
    provider_reference: Optional[str]
    payload: dict[str, Any]


@dataclass(slots=True)
class Acknowledgement:
    content: str
    media_type: str = "text/plain"


class PayoutGateway(ABC):
    """Capabilities every payout route exposes: validate, initiate, verify callbacks."""

    name: str = ""
    external: bool = True
    supports_bank: bool = True
    supports_upi: bool = False

    def __init__(self, *, timeout: float = 20.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self._transport = transport

    def order_number(self, reference: str) -> str:
        return f"{reference}-{int(time.time() * 1000)}"

    def validate(self, request: PayoutRequest) -> None:
        if request.amount < MIN_PAYOUT_AMOUNT:
            raise ValidationError(f"Minimum payout via {self.name} is {MIN_PAYOUT_AMOUNT}")

    @abstractmethod
    async def initiate(self, request: PayoutRequest) -> GatewayAcceptance:
        ...

    @abstractmethod
    def verify_callback(self, callback: RawCallback) -> CallbackStatus:
        ...

    def acknowledge(self) -> Acknowledgement:
        return Acknowledgement("success")

    @staticmethod
    def _whole_amount(request: PayoutRequest, gateway: str) -> int:
        if request.amount != request.amount.to_integral_value():
            raise ValidationError(f"{gateway} does not support decimal amounts")
        return int(request.amount)

    @staticmethod
    def _parse_amount(value: Any) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        try:
            return Decimal(str(value))
        except ArithmeticError as exc:
            raise SignatureError(f"Callback amount is not a number: {value!r}") from exc

    async def _post(
        self,
        url: str,
        *,
        json_body: Optional[dict[str, Any]] = None,
        form_body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=json_body, data=form_body, headers=headers)
        except httpx.TimeoutException as exc:
            raise GatewayError(f"{self.name} request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(f"{self.name} request failed: {exc}") from exc

        logger.info("%s responded with HTTP %s", self.name, response.status_code)
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400:
            raise GatewayError(
                f"{self.name} returned HTTP {response.status_code}",
                response=data if data is not None else response.text,
            )
        if not isinstance(data, dict):
            raise GatewayError(f"{self.name} returned a non-JSON response", response=response.text)
        return data
