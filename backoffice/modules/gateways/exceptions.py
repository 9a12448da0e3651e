"""Gateway adapter exceptions."""

from typing import Any

from backoffice.modules.transactions.exceptions import PayoutError


class GatewayError(PayoutError):
    """Network failure, timeout or non-success answer from a payout provider."""

    def __init__(self, message: str, *, response: Any = None) -> None:
        super().__init__(message)
        self.response = response


class SignatureError(PayoutError):
    """Webhook payload failed signature verification; never processed."""
