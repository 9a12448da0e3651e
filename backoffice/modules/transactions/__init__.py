"""Payment transaction exports"""

from .exceptions import (
    ConsistencyError,
    InsufficientFundsError,
    InvalidTransitionError,
    PayoutError,
    TransactionNotFoundError,
    ValidationError,
)
from .models import (
    ALLOWED_TRANSITIONS,
    ApprovalResult,
    PayeeDetails,
    SweepReport,
    Transaction,
    TransactionCreateInput,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ApprovalResult",
    "ConsistencyError",
    "InsufficientFundsError",
    "InvalidTransitionError",
    "PayeeDetails",
    "PayoutError",
    "SweepReport",
    "Transaction",
    "TransactionCreateInput",
    "TransactionNotFoundError",
    "TransactionStatus",
    "TransactionType",
    "ValidationError",
]
