"""Wallet exports"""

from .models import LedgerEntryType, LedgerRecord, WalletSnapshot
from .service import WalletService

__all__ = [
    "LedgerEntryType",
    "LedgerRecord",
    "WalletService",
    "WalletSnapshot",
]
