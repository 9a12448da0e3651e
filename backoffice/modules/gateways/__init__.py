"""Payout gateway adapters"""

from .base import (
    Acknowledgement,
    CallbackStatus,
    GatewayAcceptance,
    PayoutGateway,
    PayoutRequest,
    RawCallback,
)
from .exceptions import GatewayError, SignatureError
from .registry import GatewayRegistry
from .routing import select_gateway

__all__ = [
    "Acknowledgement",
    "CallbackStatus",
    "GatewayAcceptance",
    "GatewayError",
    "GatewayRegistry",
    "PayoutGateway",
    "PayoutRequest",
    "RawCallback",
    "SignatureError",
    "select_gateway",
]
