"""Builds the configured gateway adapters from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx
from pydantic import SecretStr

from backoffice.core.config import Settings

from .bank import BankTransferGateway
from .base import PayoutGateway
from .cloudpay import CloudPayGateway
from .exceptions import SignatureError
from .routing import BANK, CLOUDPAY, TOPPAY, WDDPAY
from .signing import RsaBlockCipher
from .toppay import TopPayGateway
from .wddpay import WddPayGateway

logger = logging.getLogger(__name__)


def _read_secret(value: Optional[SecretStr], path: Optional[Path]) -> Optional[str]:
    if value is not None and value.get_secret_value().strip():
        return value.get_secret_value()
    if path is not None:
        return path.read_text(encoding="utf-8")
    return None


@dataclass(slots=True)
class GatewayRegistry:
    gateways: dict[str, PayoutGateway] = field(default_factory=dict)

    def register(self, gateway: PayoutGateway) -> None:
        self.gateways[gateway.name] = gateway

    def get(self, name: str) -> PayoutGateway:
        try:
            return self.gateways[name]
        except KeyError as exc:
            raise KeyError(f"Gateway {name} is not configured") from exc

    def for_callback(self, name: str) -> PayoutGateway:
        gateway = self.gateways.get(name)
        if gateway is None or not gateway.external:
            raise SignatureError(f"No callback endpoint for gateway {name!r}")
        return gateway

    def available(self) -> frozenset[str]:
        return frozenset(self.gateways)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "GatewayRegistry":
        registry = cls()
        registry.register(BankTransferGateway())
        gateways = settings.gateways

        toppay = gateways.toppay
        private_pem = _read_secret(toppay.private_key, toppay.private_key_file)
        public_pem = _read_secret(toppay.platform_public_key, toppay.platform_public_key_file)
        if toppay.base_url and toppay.merchant_code and private_pem:
            registry.register(
                TopPayGateway(
                    base_url=toppay.base_url,
                    merchant_code=toppay.merchant_code,
                    cipher=RsaBlockCipher.from_pem(private_pem, public_pem),
                    notify_url=toppay.notify_url or settings.webhook_url(TOPPAY),
                    timeout=toppay.timeout,
                    transport=transport,
                )
            )

        cloudpay = gateways.cloudpay
        if cloudpay.merchant_id and cloudpay.api_token:
            registry.register(
                CloudPayGateway(
                    base_url=cloudpay.base_url,
                    merchant_id=cloudpay.merchant_id,
                    api_token=cloudpay.api_token.get_secret_value(),
                    timeout=cloudpay.timeout,
                    transport=transport,
                )
            )

        wddpay = gateways.wddpay
        if wddpay.base_url and wddpay.merchant_id and wddpay.secret_key:
            registry.register(
                WddPayGateway(
                    base_url=wddpay.base_url,
                    merchant_id=wddpay.merchant_id,
                    secret_key=wddpay.secret_key.get_secret_value(),
                    notify_url=wddpay.notify_url or settings.webhook_url(WDDPAY),
                    timeout=wddpay.timeout,
                    transport=transport,
                )
            )

        missing = sorted({TOPPAY, CLOUDPAY, WDDPAY} - set(registry.gateways))
        if missing:
            logger.warning("Payout gateways without credentials, disabled: %s", ", ".join(missing))
        logger.info("Payout routes enabled: %s", ", ".join(sorted(registry.gateways)))
        return registry


__all__ = ["BANK", "GatewayRegistry"]
