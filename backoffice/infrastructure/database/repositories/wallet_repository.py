"""SQLAlchemy implementation for wallet balances and the ledger"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.models import PayoutRefund, Wallet, WalletLedgerEntry


class SqlWalletRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_wallet(self, user_id: str, *, for_update: bool = False) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_wallet(self, user_id: str, currency: str) -> Wallet:
        wallet = Wallet(user_id=user_id, currency=currency, balance=Decimal("0"))
        self.session.add(wallet)
        await self.session.flush()
        return wallet

    async def update_balance(self, user_id: str, delta: Decimal) -> Decimal | None:
        """Apply ``delta``; returns the new balance, or None if it would go negative."""
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .where(Wallet.balance + delta >= 0)
            .values(balance=Wallet.balance + delta)
            .execution_options(synchronize_session="fetch")
            .returning(Wallet.balance)
        )
        result = await self.session.execute(stmt)
        balance = result.scalar_one_or_none()
        return Decimal(balance).quantize(Decimal("0.01")) if balance is not None else None

    async def get_entry(self, transaction_id: str, entry_type: str) -> WalletLedgerEntry | None:
        stmt = select(WalletLedgerEntry).where(
            WalletLedgerEntry.transaction_id == transaction_id,
            WalletLedgerEntry.entry_type == entry_type,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def add_entry(
        self,
        *,
        user_id: str,
        transaction_id: str,
        entry_type: str,
        amount: Decimal,
        balance_after: Decimal,
        description: str | None,
    ) -> WalletLedgerEntry:
        entry = WalletLedgerEntry(
            user_id=user_id,
            transaction_id=transaction_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
            description=description,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_entries(
        self, user_id: str, limit: int, offset: int, transaction_id: str | None = None
    ) -> list[WalletLedgerEntry]:
        stmt = select(WalletLedgerEntry).where(WalletLedgerEntry.user_id == user_id)
        if transaction_id:
            stmt = stmt.where(WalletLedgerEntry.transaction_id == transaction_id)
        stmt = stmt.order_by(desc(WalletLedgerEntry.id)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_refund(self, transaction_id: str) -> PayoutRefund | None:
        return await self.session.get(PayoutRefund, transaction_id)

    async def add_refund(self, *, transaction_id: str, amount: Decimal, reason: str | None) -> PayoutRefund:
        refund = PayoutRefund(transaction_id=transaction_id, amount=amount, reason=reason)
        self.session.add(refund)
        await self.session.flush()
        return refund
