"""Repository protocol for payment transactions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from backoffice.db.models import PaymentTransaction as TransactionModel


class TransactionRepository(Protocol):
    async def create(self, **fields: Any) -> TransactionModel:
        ...

    async def get(self, transaction_id: str, *, for_update: bool = False) -> TransactionModel | None:
        ...

    async def get_by_gateway_reference(
        self, gateway_reference: str, *, for_update: bool = False
    ) -> TransactionModel | None:
        ...

    async def update(self, model: TransactionModel, **fields: Any) -> TransactionModel:
        ...

    async def list_transactions(
        self, *, type: str | None, status: str | None, limit: int, offset: int
    ) -> Sequence[TransactionModel]:
        ...

    async def count_transactions(self, *, type: str | None, status: str | None) -> int:
        ...

    async def count_by_status(self, status: str) -> int:
        ...

    async def list_stale_processing(self, started_before: datetime, limit: int) -> Sequence[TransactionModel]:
        ...
