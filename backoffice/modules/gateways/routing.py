"""Gateway selection policy.

The route is decided once, when a transaction leaves ``pending``, and stored
on the row. Precedence, first match wins:

1. deposits always settle internally (``bank``);
2. an explicit gateway chosen by the approving admin;
3. a payment method that names a gateway (``toppay``, ``cloudpay``, ``wddpay``);
4. ``upi`` goes to CloudPay, ``bank`` / ``bank transfer`` is a manual transfer;
5. the generic ``gateway`` method picks by payee fields: a UPI id goes to
   CloudPay, bank account fields go to TopPay.

The chosen route must support the payee fields on the transaction, otherwise
the approval is refused rather than silently rerouted.
"""

from __future__ import annotations

from typing import Container, Optional

from backoffice.modules.transactions.exceptions import ValidationError
from backoffice.modules.transactions.models import PayeeDetails, TransactionType

BANK = "bank"
TOPPAY = "toppay"
CLOUDPAY = "cloudpay"
WDDPAY = "wddpay"

EXTERNAL_GATEWAYS = frozenset({TOPPAY, CLOUDPAY, WDDPAY})
ALL_GATEWAYS = EXTERNAL_GATEWAYS | {BANK}

# payee kinds each route can pay out to
_BANK_CAPABLE = frozenset({BANK, TOPPAY, CLOUDPAY, WDDPAY})
_UPI_CAPABLE = frozenset({BANK, CLOUDPAY})

_BANK_METHODS = frozenset({"bank", "banktransfer", "manual"})


def _normalize(value: Optional[str]) -> str:
    return "".join((value or "").lower().replace("_", " ").replace("-", " ").split())


def select_gateway(
    tx_type: TransactionType,
    payment_method: Optional[str],
    payee: PayeeDetails,
    explicit: Optional[str] = None,
    available: Optional[Container[str]] = None,
) -> str:
    explicit_key = _normalize(explicit)
    if tx_type is TransactionType.DEPOSIT:
        if explicit_key and explicit_key != BANK:
            raise ValidationError("Deposits are credited internally and cannot use a payout gateway")
        return BANK

    method = _normalize(payment_method)
    if explicit_key:
        if explicit_key not in ALL_GATEWAYS:
            raise ValidationError(f"Unknown gateway: {explicit!r}")
        gateway = explicit_key
    elif method in ALL_GATEWAYS:
        gateway = method
    elif method == "upi":
        gateway = CLOUDPAY
    elif method in _BANK_METHODS:
        gateway = BANK
    elif method == "gateway":
        if payee.has_upi_fields:
            gateway = CLOUDPAY
        elif payee.has_bank_fields:
            gateway = TOPPAY
        else:
            raise ValidationError("Gateway withdrawal needs either a UPI id or bank account details")
    else:
        raise ValidationError(f"Unsupported payment method for withdrawal: {payment_method!r}")

    _check_payee(gateway, payee)
    if available is not None and gateway not in available:
        raise ValidationError(f"Gateway {gateway} is not configured")
    return gateway


def _check_payee(gateway: str, payee: PayeeDetails) -> None:
    if gateway == BANK:
        return
    if payee.has_bank_fields and gateway in _BANK_CAPABLE:
        return
    if payee.has_upi_fields and gateway in _UPI_CAPABLE:
        return
    raise ValidationError(f"Gateway {gateway} cannot pay out to the payee details on this transaction")
