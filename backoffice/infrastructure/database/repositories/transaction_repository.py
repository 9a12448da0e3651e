"""SQLAlchemy implementation for payment transactions"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import Select, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.models import PaymentTransaction


def _filtered(stmt: Select, *, type: str | None, status: str | None) -> Select:
    if type:
        stmt = stmt.where(PaymentTransaction.type == type)
    if status:
        stmt = stmt.where(PaymentTransaction.status == status)
    return stmt


class SqlTransactionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, **fields: Any) -> PaymentTransaction:
        tx = PaymentTransaction(**fields)
        self.session.add(tx)
        await self.session.flush()
        await self.session.refresh(tx)
        return tx

    async def get(self, transaction_id: str, *, for_update: bool = False) -> PaymentTransaction | None:
        stmt = select(PaymentTransaction).where(PaymentTransaction.id == transaction_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_gateway_reference(
        self, gateway_reference: str, *, for_update: bool = False
    ) -> PaymentTransaction | None:
        stmt = select(PaymentTransaction).where(PaymentTransaction.gateway_reference == gateway_reference)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update(self, model: PaymentTransaction, **fields: Any) -> PaymentTransaction:
        for key, value in fields.items():
            setattr(model, key, value)
        await self.session.flush()
        await self.session.refresh(model)
        return model

    async def list_transactions(
        self,
        *,
        type: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> Sequence[PaymentTransaction]:
        stmt = _filtered(select(PaymentTransaction), type=type, status=status)
        stmt = stmt.order_by(desc(PaymentTransaction.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_transactions(self, *, type: str | None, status: str | None) -> int:
        stmt = _filtered(select(func.count()).select_from(PaymentTransaction), type=type, status=status)
        return (await self.session.execute(stmt)).scalar_one()

    async def count_by_status(self, status: str) -> int:
        stmt = select(func.count()).select_from(PaymentTransaction).where(PaymentTransaction.status == status)
        return (await self.session.execute(stmt)).scalar_one()

    async def list_stale_processing(self, started_before: datetime, limit: int) -> Sequence[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.status == "processing")
            .where(PaymentTransaction.processing_started_at < started_before)
            .order_by(PaymentTransaction.processing_started_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
