"""Unit tests for gateway selection."""

import pytest

from backoffice.modules.gateways.routing import BANK, CLOUDPAY, TOPPAY, WDDPAY, select_gateway
from backoffice.modules.transactions import PayeeDetails, TransactionType, ValidationError

BANK_FIELDS = PayeeDetails(account_number="001122334455", ifsc_code="HDFC0001234")
UPI_FIELDS = PayeeDetails(upi_id="ravi@okaxis")
BOTH = PayeeDetails(account_number="001122334455", bank_code="HDFC", upi_id="ravi@okaxis")
NOTHING = PayeeDetails()

WITHDRAW = TransactionType.WITHDRAW


def test_deposits_always_settle_internally():
    assert select_gateway(TransactionType.DEPOSIT, "toppay", BANK_FIELDS) == BANK
    assert select_gateway(TransactionType.DEPOSIT, None, NOTHING) == BANK


def test_deposit_cannot_be_sent_to_a_payout_gateway():
    with pytest.raises(ValidationError):
        select_gateway(TransactionType.DEPOSIT, "bank", BANK_FIELDS, explicit="cloudpay")


@pytest.mark.parametrize(
    "method, payee, expected",
    [
        ("toppay", BANK_FIELDS, TOPPAY),
        ("TopPay", BANK_FIELDS, TOPPAY),
        ("cloudpay", UPI_FIELDS, CLOUDPAY),
        ("wddpay", BANK_FIELDS, WDDPAY),
        ("upi", UPI_FIELDS, CLOUDPAY),
        ("UPI", BOTH, CLOUDPAY),
        ("bank", NOTHING, BANK),
        ("Bank Transfer", BANK_FIELDS, BANK),
        ("bank_transfer", UPI_FIELDS, BANK),
        ("manual", NOTHING, BANK),
        ("gateway", UPI_FIELDS, CLOUDPAY),
        ("gateway", BOTH, CLOUDPAY),
        ("gateway", BANK_FIELDS, TOPPAY),
    ],
)
def test_method_based_selection(method, payee, expected):
    assert select_gateway(WITHDRAW, method, payee) == expected


def test_explicit_gateway_wins_over_method():
    assert select_gateway(WITHDRAW, "upi", BOTH, explicit="wddpay") == WDDPAY
    assert select_gateway(WITHDRAW, "toppay", BANK_FIELDS, explicit="bank") == BANK


def test_incompatible_payee_is_refused_not_rerouted():
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, "toppay", UPI_FIELDS)
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, "upi", UPI_FIELDS, explicit="wddpay")


@pytest.mark.parametrize("method", [None, "", "crypto", "paypal"])
def test_unknown_methods_raise(method):
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, method, BANK_FIELDS)


def test_generic_gateway_needs_payee_fields():
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, "gateway", NOTHING)


def test_unknown_explicit_gateway_raises():
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, "bank", BANK_FIELDS, explicit="paytm")


def test_unconfigured_gateway_is_unavailable():
    with pytest.raises(ValidationError):
        select_gateway(WITHDRAW, "toppay", BANK_FIELDS, available={BANK, CLOUDPAY})
    assert select_gateway(WITHDRAW, "bank", BANK_FIELDS, available={BANK}) == BANK
