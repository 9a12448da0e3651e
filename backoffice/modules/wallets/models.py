"""Domain models for wallet operations."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


class LedgerEntryType(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"
    REFUND = "refund"


@dataclass(slots=True)
class WalletSnapshot:
    user_id: str
    balance: Decimal
    currency: str
    updated_at: Optional[datetime]


@dataclass(slots=True)
class LedgerRecord:
    id: int
    user_id: str
    transaction_id: str
    entry_type: LedgerEntryType
    amount: Decimal
    balance_after: Decimal
    description: Optional[str]
    created_at: Optional[datetime]
