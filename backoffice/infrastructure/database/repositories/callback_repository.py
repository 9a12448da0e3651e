"""SQLAlchemy implementation for recorded gateway callbacks"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.models import GatewayCallback


class SqlCallbackRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        *,
        gateway: str,
        order_reference: str,
        status: str,
        amount: Decimal | None,
        payload: str,
    ) -> GatewayCallback:
        callback = GatewayCallback(
            gateway=gateway,
            order_reference=order_reference,
            status=status,
            amount=amount,
            payload=payload,
        )
        self.session.add(callback)
        await self.session.flush()
        await self.session.refresh(callback)
        return callback

    async def get(self, callback_id: int) -> GatewayCallback | None:
        return await self.session.get(GatewayCallback, callback_id)

    async def mark_processed(self, callback_id: int, *, outcome: str, processed_at: datetime) -> None:
        stmt = (
            update(GatewayCallback)
            .where(GatewayCallback.id == callback_id)
            .values(outcome=outcome, processed_at=processed_at)
        )
        await self.session.execute(stmt)

    async def record_failure(self, callback_id: int, *, error: str) -> int:
        """Count one failed processing attempt and return the new total."""
        stmt = (
            update(GatewayCallback)
            .where(GatewayCallback.id == callback_id)
            .values(attempts=GatewayCallback.attempts + 1, last_error=error)
            .returning(GatewayCallback.attempts)
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def list_unprocessed(self, limit: int) -> Sequence[GatewayCallback]:
        stmt = (
            select(GatewayCallback)
            .where(GatewayCallback.processed_at.is_(None))
            .order_by(GatewayCallback.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
