"""Domain models for payment transactions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .exceptions import InvalidTransitionError, ValidationError


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"

    @classmethod
    def parse(cls, value: str) -> "TransactionType":
        normalized = (value or "").strip().lower()
        if normalized == "withdrawal":
            normalized = cls.WITHDRAW.value
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValidationError(f"Unsupported transaction type: {value!r}") from exc


TERMINAL_STATUSES = frozenset(
    {TransactionStatus.COMPLETED, TransactionStatus.FAILED, TransactionStatus.REJECTED}
)

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.PROCESSING, TransactionStatus.REJECTED}),
    TransactionStatus.PROCESSING: frozenset({TransactionStatus.COMPLETED, TransactionStatus.FAILED}),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
}


def ensure_transition(current: TransactionStatus | str, target: TransactionStatus) -> None:
    current = TransactionStatus(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move transaction from {current.value} to {target.value}")


@dataclass(slots=True)
class PayeeDetails:
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_code: Optional[str] = None
    upi_id: Optional[str] = None

    @property
    def has_bank_fields(self) -> bool:
        return bool(self.account_number and (self.ifsc_code or self.bank_code))

    @property
    def has_upi_fields(self) -> bool:
        return bool(self.upi_id and self.upi_id.strip())


@dataclass(slots=True)
class Transaction:
    id: str
    reference: str
    user_id: str
    type: TransactionType
    amount: Decimal
    payment_method: Optional[str]
    status: TransactionStatus
    gateway: Optional[str]
    gateway_reference: Optional[str]
    gateway_response: Optional[str]
    remarks: Optional[str]
    payee: PayeeDetails
    processing_started_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@dataclass(slots=True)
class TransactionCreateInput:
    user_id: str
    type: str
    amount: Decimal
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    payee: Optional[PayeeDetails] = None


@dataclass(slots=True)
class ApprovalResult:
    transaction: Transaction
    message: str


@dataclass(slots=True)
class SweepReport:
    expired: list[str]
    awaiting_callback: list[str]
    replayed: int
