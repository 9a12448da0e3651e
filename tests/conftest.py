"""Shared fixtures: a throwaway sqlite database, RSA keys and mocked payment providers."""

from __future__ import annotations

import json
import os
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# settings are loaded at import time and the token key has no default
os.environ.setdefault("SECURITY__SECRET_KEY", "backoffice-test-signing-key")
os.environ.setdefault("ENVIRONMENT", "test")

from backoffice.infrastructure.database import init_db
from backoffice.modules.gateways import GatewayRegistry
from backoffice.modules.gateways.bank import BankTransferGateway
from backoffice.modules.gateways.cloudpay import CloudPayGateway
from backoffice.modules.gateways.signing import RsaBlockCipher
from backoffice.modules.gateways.toppay import TopPayGateway
from backoffice.modules.gateways.wddpay import WddPayGateway
from backoffice.modules.transactions import PayeeDetails, TransactionCreateInput
from backoffice.modules.transactions.service import ReconciliationService
from backoffice.modules.wallets import WalletService

TOPPAY_MERCHANT = "TP10001"
CLOUDPAY_MERCHANT = "CP-778"
CLOUDPAY_TOKEN = "cloudpay-test-token"
WDDPAY_MERCHANT = "WDD-42"
WDDPAY_SECRET = "wddpay-test-secret"

BANK_PAYEE = PayeeDetails(account_name="Ravi Kumar", account_number="001122334455", ifsc_code="HDFC0001234")
UPI_PAYEE = PayeeDetails(account_name="Ravi Kumar", upi_id="ravi@okaxis")


class FakeProvider:
    """Answers every provider call with ``responder(request)``; keeps what it was sent."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], Any] = lambda request: httpx.Response(200, json={"code": 0})

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.responder(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def reply(self, status_code: int = 200, **body: Any) -> None:
        self.responder = lambda request: httpx.Response(status_code, json=body)

    def timeout(self) -> None:
        def raise_timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("provider too slow", request=request)

        self.responder = raise_timeout

    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture(scope="session")
def merchant_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def platform_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def platform_cipher(platform_key) -> RsaBlockCipher:
    """Signs callbacks the way TopPay does."""
    return RsaBlockCipher(private_key=platform_key)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry(provider, merchant_key, platform_key) -> GatewayRegistry:
    transport = httpx.MockTransport(provider.handler)
    registry = GatewayRegistry()
    registry.register(BankTransferGateway())
    registry.register(
        TopPayGateway(
            base_url="https://toppay.test",
            merchant_code=TOPPAY_MERCHANT,
            cipher=RsaBlockCipher(private_key=merchant_key, public_key=platform_key.public_key()),
            notify_url="https://backoffice.test/api/webhooks/toppay",
            transport=transport,
        )
    )
    registry.register(
        CloudPayGateway(
            base_url="https://cloudpay.test",
            merchant_id=CLOUDPAY_MERCHANT,
            api_token=CLOUDPAY_TOKEN,
            transport=transport,
        )
    )
    registry.register(
        WddPayGateway(
            base_url="https://wddpay.test",
            merchant_id=WDDPAY_MERCHANT,
            secret_key=WDDPAY_SECRET,
            notify_url="https://backoffice.test/api/webhooks/wddpay",
            transport=transport,
        )
    )
    return registry


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'backoffice-test.db'}")
    await init_db(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def service(session_factory, registry) -> ReconciliationService:
    return ReconciliationService(session_factory, registry)


@pytest.fixture
def fund(service):
    """Credit a wallet through an approved deposit."""

    async def _fund(user_id: str, amount: int | str) -> None:
        deposit = await service.create_request(
            TransactionCreateInput(user_id=user_id, type="deposit", amount=Decimal(str(amount)), payment_method="bank")
        )
        await service.approve(deposit.id)

    return _fund


@pytest.fixture
def withdraw(service):
    """Record a pending withdrawal."""

    async def _withdraw(
        user_id: str,
        amount: int | str,
        payment_method: str = "toppay",
        payee: Optional[PayeeDetails] = None,
    ):
        return await service.create_request(
            TransactionCreateInput(
                user_id=user_id,
                type="withdraw",
                amount=Decimal(str(amount)),
                payment_method=payment_method,
                payee=payee or BANK_PAYEE,
            )
        )

    return _withdraw


@pytest.fixture
def balance(session_factory):
    async def _balance(user_id: str) -> Decimal:
        async with session_factory() as session:
            snapshot = await WalletService.with_session(session).get_snapshot(user_id)
            return snapshot.balance if snapshot else Decimal("0.00")

    return _balance


@pytest.fixture
def ledger(session_factory):
    async def _ledger(user_id: str, transaction_id: Optional[str] = None):
        async with session_factory() as session:
            return await WalletService.with_session(session).list_entries(user_id, transaction_id=transaction_id)

    return _ledger
