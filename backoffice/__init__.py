"""Back office payout reconciliation service."""

__version__ = "0.3.0"
