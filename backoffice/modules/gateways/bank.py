"""Manual bank transfer: no provider call, settled inside the approving DB transaction."""

from __future__ import annotations

from .base import CallbackStatus, GatewayAcceptance, PayoutGateway, PayoutRequest, RawCallback
from .exceptions import GatewayError, SignatureError


class BankTransferGateway(PayoutGateway):
    name = "bank"
    external = False
    supports_bank = True
    supports_upi = True

    def validate(self, request: PayoutRequest) -> None:
        # operators move the money by hand, so no provider limits apply
        return None

    async def initiate(self, request: PayoutRequest) -> GatewayAcceptance:
        raise GatewayError("Bank transfers are settled internally and have no provider call")

    def verify_callback(self, callback: RawCallback) -> CallbackStatus:
        raise SignatureError("Bank transfers do not receive callbacks")
