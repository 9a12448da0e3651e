"""SQLAlchemy repository implementations."""

from .callback_repository import SqlCallbackRepository
from .transaction_repository import SqlTransactionRepository
from .wallet_repository import SqlWalletRepository

__all__ = [
    "SqlCallbackRepository",
    "SqlTransactionRepository",
    "SqlWalletRepository",
]
