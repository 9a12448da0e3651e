"""Repository protocol for wallet operations."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, Sequence

from backoffice.db.models import PayoutRefund, Wallet as WalletModel, WalletLedgerEntry as LedgerEntryModel


class WalletRepository(Protocol):
    async def get_wallet(self, user_id: str, *, for_update: bool = False) -> WalletModel | None:
        ...

    async def create_wallet(self, user_id: str, currency: str) -> WalletModel:
        ...

    async def update_balance(self, user_id: str, delta: Decimal) -> Decimal | None:
        ...

    async def get_entry(self, transaction_id: str, entry_type: str) -> LedgerEntryModel | None:
        ...

    async def add_entry(
        self,
        *,
        user_id: str,
        transaction_id: str,
        entry_type: str,
        amount: Decimal,
        balance_after: Decimal,
        description: str | None,
    ) -> LedgerEntryModel:
        ...

    async def list_entries(
        self, user_id: str, limit: int, offset: int, transaction_id: str | None = None
    ) -> Sequence[LedgerEntryModel]:
        ...

    async def get_refund(self, transaction_id: str) -> PayoutRefund | None:
        ...

    async def add_refund(self, *, transaction_id: str, amount: Decimal, reason: str | None) -> PayoutRefund:
        ...
