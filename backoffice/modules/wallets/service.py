"""Wallet domain service"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.models import Wallet as WalletModel, WalletLedgerEntry as LedgerEntryModel
from backoffice.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from backoffice.modules.transactions.exceptions import InsufficientFundsError

from .models import LedgerEntryType, LedgerRecord, WalletSnapshot
from .repository import WalletRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WalletService:
    """Balance mutations; callers run these inside the DB transaction that writes the status."""

    repository: WalletRepository
    currency: str = "INR"

    @classmethod
    def with_session(cls, session: AsyncSession, currency: str = "INR") -> "WalletService":
        return cls(SqlWalletRepository(session), currency)

    async def ensure_wallet(self, user_id: str) -> WalletSnapshot:
        wallet = await self.repository.get_wallet(user_id)
        if wallet is None:
            wallet = await self.repository.create_wallet(user_id, self.currency)
        return self._to_snapshot(wallet)

    async def debit(
        self,
        *,
        user_id: str,
        transaction_id: str,
        amount: Decimal,
        description: Optional[str] = None,
    ) -> LedgerRecord | None:
        """Take ``amount`` out of the wallet once per transaction. Returns None on a repeat."""
        existing = await self.repository.get_entry(transaction_id, LedgerEntryType.DEBIT.value)
        if existing is not None:
            logger.warning("Debit for transaction %s already applied, skipping", transaction_id)
            return None
        await self.ensure_wallet(user_id)
        balance = await self.repository.update_balance(user_id, -amount)
        if balance is None:
            raise InsufficientFundsError(f"Insufficient wallet balance for user {user_id}")
        entry = await self.repository.add_entry(
            user_id=user_id,
            transaction_id=transaction_id,
            entry_type=LedgerEntryType.DEBIT.value,
            amount=-amount,
            balance_after=balance,
            description=description or "Withdrawal debited",
        )
        return self._to_record(entry)

    async def credit(
        self,
        *,
        user_id: str,
        transaction_id: str,
        amount: Decimal,
        description: Optional[str] = None,
    ) -> LedgerRecord | None:
        existing = await self.repository.get_entry(transaction_id, LedgerEntryType.CREDIT.value)
        if existing is not None:
            logger.warning("Credit for transaction %s already applied, skipping", transaction_id)
            return None
        await self.ensure_wallet(user_id)
        balance = await self.repository.update_balance(user_id, amount)
        entry = await self.repository.add_entry(
            user_id=user_id,
            transaction_id=transaction_id,
            entry_type=LedgerEntryType.CREDIT.value,
            amount=amount,
            balance_after=balance,
            description=description or "Deposit credited",
        )
        return self._to_record(entry)

    async def refund(
        self,
        *,
        user_id: str,
        transaction_id: str,
        amount: Decimal,
        reason: Optional[str] = None,
    ) -> LedgerRecord | None:
        """Credit back a failed payout. The refund log row makes this happen at most once."""
        if await self.repository.get_refund(transaction_id) is not None:
            logger.warning("Refund for transaction %s already recorded, skipping", transaction_id)
            return None
        if await self.repository.get_entry(transaction_id, LedgerEntryType.DEBIT.value) is None:
            # nothing was taken out, so nothing goes back
            logger.info("No debit recorded for transaction %s, refund not needed", transaction_id)
            return None
        await self.repository.add_refund(transaction_id=transaction_id, amount=amount, reason=reason)
        balance = await self.repository.update_balance(user_id, amount)
        entry = await self.repository.add_entry(
            user_id=user_id,
            transaction_id=transaction_id,
            entry_type=LedgerEntryType.REFUND.value,
            amount=amount,
            balance_after=balance,
            description=reason or "Payout failed, refunded",
        )
        return self._to_record(entry)

    async def get_snapshot(self, user_id: str) -> WalletSnapshot | None:
        wallet = await self.repository.get_wallet(user_id)
        return self._to_snapshot(wallet) if wallet else None

    async def list_entries(
        self, user_id: str, limit: int = 50, offset: int = 0, transaction_id: str | None = None
    ) -> list[LedgerRecord]:
        rows = await self.repository.list_entries(user_id, limit, offset, transaction_id)
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_snapshot(model: WalletModel) -> WalletSnapshot:
        return WalletSnapshot(
            user_id=model.user_id,
            balance=Decimal(model.balance).quantize(Decimal("0.01")),
            currency=model.currency,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_record(model: LedgerEntryModel) -> LedgerRecord:
        return LedgerRecord(
            id=model.id,
            user_id=model.user_id,
            transaction_id=model.transaction_id,
            entry_type=LedgerEntryType(model.entry_type),
            amount=Decimal(model.amount).quantize(Decimal("0.01")),
            balance_after=Decimal(model.balance_after).quantize(Decimal("0.01")),
            description=model.description,
            created_at=model.created_at,
        )
