"""Payout workflow exceptions."""


class PayoutError(Exception):
    """Base class for payout workflow errors."""


class ValidationError(PayoutError):
    """Raised when a request is malformed or not allowed; surfaced as 4xx."""


class InsufficientFundsError(ValidationError):
    """Raised when a debit would take the wallet balance below zero."""


class InvalidTransitionError(ValidationError):
    """Raised when the requested status change is not an allowed transition."""


class ConsistencyError(PayoutError):
    """Raised when stored state does not allow the operation; treated as a no-op."""


class TransactionNotFoundError(ConsistencyError):
    """Raised when the transaction row cannot be found."""
