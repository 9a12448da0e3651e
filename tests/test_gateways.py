"""Gateway adapter tests against mocked provider endpoints."""

import json
from decimal import Decimal
from urllib.parse import parse_qsl, urlencode

import httpx
import pytest
from cryptography.hazmat.primitives import serialization

from backoffice.core.config import CloudPaySettings, GatewaySettings, Settings, TopPaySettings, WddPaySettings
from backoffice.modules.gateways import GatewayError, GatewayRegistry, PayoutRequest, RawCallback, SignatureError
from backoffice.modules.gateways.cloudpay import SIGNATURE_HEADER, payout_canonical
from backoffice.modules.gateways.signing import RsaBlockCipher, hmac_sha256_hex, md5_hex, sorted_query
from backoffice.modules.transactions import TransactionStatus, ValidationError
from tests.callbacks import (
    cloudpay_callback,
    cloudpay_payload,
    toppay_callback,
    toppay_payload,
    wddpay_callback,
    wddpay_form,
)
from tests.conftest import BANK_PAYEE, CLOUDPAY_MERCHANT, CLOUDPAY_TOKEN, TOPPAY_MERCHANT, UPI_PAYEE, WDDPAY_SECRET


def payout(amount="500", payee=BANK_PAYEE, order_number="TXABC-1700000000000"):
    return PayoutRequest(
        transaction_id="tx-1",
        reference="TXABC",
        order_number=order_number,
        amount=Decimal(amount),
        payee=payee,
    )


# -- TopPay ------------------------------------------------------------------


def test_toppay_params_are_signed_with_merchant_key(registry, merchant_key):
    toppay = registry.get("toppay")

    params = toppay.build_params(payout(), timestamp=1700000000)

    assert params["merchantCode"] == TOPPAY_MERCHANT
    assert params["orderNum"] == "TXABC-1700000000000"
    assert params["bankCode"] == "HDFC0001234"
    assert params["bankAccount"] == "001122334455"
    assert params["bankUsername"] == "Ravi Kumar"
    assert params["orderAmount"] == 500
    assert params["callback"] == "https://backoffice.test/api/webhooks/toppay"
    verifier = RsaBlockCipher(public_key=merchant_key.public_key())
    assert verifier.public_decrypt(params["sign"]) == sorted_query(params)


async def test_toppay_initiate_accepts_code_zero(registry, provider):
    provider.reply(code=0, data={"platOrderNum": "PLT-77"})

    acceptance = await registry.get("toppay").initiate(payout())

    assert acceptance.accepted
    assert acceptance.gateway_reference == "TXABC-1700000000000"
    assert acceptance.provider_reference == "PLT-77"
    assert provider.requests[-1].url == httpx.URL("https://toppay.test/cash/newOrder")
    assert provider.last_json()["orderNum"] == "TXABC-1700000000000"


async def test_toppay_non_zero_code_is_a_gateway_error(registry, provider):
    provider.reply(code=1001, message="insufficient merchant balance")

    with pytest.raises(GatewayError) as excinfo:
        await registry.get("toppay").initiate(payout())

    assert "insufficient merchant balance" in str(excinfo.value)
    assert excinfo.value.response["code"] == 1001


async def test_toppay_timeout_is_a_gateway_error(registry, provider):
    provider.timeout()

    with pytest.raises(GatewayError, match="timed out"):
        await registry.get("toppay").initiate(payout())


async def test_http_error_status_is_a_gateway_error(registry, provider):
    provider.reply(502, error="bad gateway")

    with pytest.raises(GatewayError, match="HTTP 502"):
        await registry.get("toppay").initiate(payout())


async def test_non_json_response_is_a_gateway_error(registry, provider):
    provider.responder = lambda request: httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayError):
        await registry.get("toppay").initiate(payout())


@pytest.mark.parametrize("amount", ["500.50", "99"])
def test_toppay_rejects_decimal_and_small_amounts(registry, amount):
    with pytest.raises(ValidationError):
        registry.get("toppay").validate(payout(amount))


def test_toppay_callback_is_verified_with_platform_key(registry, platform_cipher):
    status = registry.get("toppay").verify_callback(toppay_callback(platform_cipher, "TXABC-1", "SUCCESS", "500"))

    assert status.gateway == "toppay"
    assert status.order_reference == "TXABC-1"
    assert status.status is TransactionStatus.COMPLETED
    assert status.amount == Decimal("500")


def test_toppay_callback_with_numeric_amount_verifies(registry, platform_cipher):
    payload = {"merchantCode": TOPPAY_MERCHANT, "orderNum": "TXABC-1", "orderAmount": 500, "status": "SUCCESS"}
    # the provider signs the integer form, the JSON body carries 500.00
    payload["sign"] = platform_cipher.private_encrypt(sorted_query(payload))
    body = json.dumps(payload).replace('"orderAmount": 500', '"orderAmount": 500.00').encode()

    status = registry.get("toppay").verify_callback(RawCallback(body=body, content_type="application/json"))

    assert status.amount == Decimal("500")
    assert status.status is TransactionStatus.COMPLETED


@pytest.mark.parametrize(
    "provider_status, expected",
    [("FAIL", TransactionStatus.FAILED), ("failed", TransactionStatus.FAILED), ("PAYING", TransactionStatus.PROCESSING)],
)
def test_toppay_callback_status_mapping(registry, platform_cipher, provider_status, expected):
    callback = toppay_callback(platform_cipher, "TXABC-1", provider_status)
    assert registry.get("toppay").verify_callback(callback).status is expected


def test_toppay_callback_tampering_is_detected(registry, platform_cipher):
    payload = toppay_payload(platform_cipher, "TXABC-1", "FAIL")
    payload["status"] = "SUCCESS"
    callback = RawCallback(body=json.dumps(payload).encode(), content_type="application/json")

    with pytest.raises(SignatureError):
        registry.get("toppay").verify_callback(callback)


def test_toppay_callback_signed_by_merchant_key_is_rejected(registry, merchant_key):
    forged = toppay_callback(RsaBlockCipher(private_key=merchant_key), "TXABC-1")

    with pytest.raises(SignatureError):
        registry.get("toppay").verify_callback(forged)


def test_toppay_callback_for_another_merchant_is_rejected(registry, platform_cipher):
    payload = toppay_payload(platform_cipher, "TXABC-1", merchantCode="OTHER")
    callback = RawCallback(body=json.dumps(payload).encode(), content_type="application/json")

    with pytest.raises(SignatureError):
        registry.get("toppay").verify_callback(callback)


def test_toppay_acknowledges_with_plain_success(registry):
    ack = registry.get("toppay").acknowledge()
    assert (ack.content, ack.media_type) == ("SUCCESS", "text/plain")


# -- CloudPay ----------------------------------------------------------------


def test_cloudpay_canonical_string_layout():
    body = {
        "merch_id": "CP-778",
        "amount": 500,
        "acc_no": "ravi@okaxis",
        "account_name": "Ravi Kumar",
        "payment_method": "upi",
        "account_type": "PERSONAL_BANK",
        "order_id": "ignored",
    }
    assert payout_canonical(body) == (
        "merch_id=CP-778|amount=500|acc_no=ravi@okaxis|account_name=Ravi Kumar"
        "|payment_method=UPI|account_type=PERSONAL_BANK"
    )


async def test_cloudpay_upi_payout_is_signed_in_header(registry, provider):
    provider.reply(status=True, data={"payout_id": "CPO-1"})

    acceptance = await registry.get("cloudpay").initiate(payout(payee=UPI_PAYEE))

    request = provider.requests[-1]
    body = json.loads(request.content)
    assert request.url == httpx.URL("https://cloudpay.test/payout/php")
    assert body["payment_method"] == "UPI"
    assert body["acc_no"] == "ravi@okaxis"
    assert body["amount"] == 500
    assert body["order_id"] == "TXABC-1700000000000"
    assert request.headers[SIGNATURE_HEADER] == hmac_sha256_hex(CLOUDPAY_TOKEN, payout_canonical(body))
    assert acceptance.provider_reference == "CPO-1"


async def test_cloudpay_bank_payout_uses_account_number(registry, provider):
    provider.reply(status=True)

    await registry.get("cloudpay").initiate(payout(payee=BANK_PAYEE))

    body = provider.last_json()
    assert body["payment_method"] == "BANK"
    assert body["acc_no"] == "001122334455"


async def test_cloudpay_false_status_is_a_gateway_error(registry, provider):
    provider.reply(status=False, message="invalid account")

    with pytest.raises(GatewayError, match="invalid account"):
        await registry.get("cloudpay").initiate(payout(payee=UPI_PAYEE))


def test_cloudpay_callback_verification(registry):
    status = registry.get("cloudpay").verify_callback(cloudpay_callback("TXABC-1", "REJECTED"))

    assert status.status is TransactionStatus.FAILED
    assert status.provider_reference == "UTR998877"


def test_cloudpay_callback_with_wrong_token_is_rejected(registry):
    payload = cloudpay_payload("TXABC-1")
    callback = RawCallback(
        body=json.dumps(payload).encode(),
        headers={SIGNATURE_HEADER: hmac_sha256_hex("guessed-token", "anything")},
        content_type="application/json",
    )
    with pytest.raises(SignatureError):
        registry.get("cloudpay").verify_callback(callback)


def test_cloudpay_callback_without_header_is_rejected(registry):
    payload = cloudpay_payload("TXABC-1")
    callback = RawCallback(body=json.dumps(payload).encode(), content_type="application/json")
    with pytest.raises(SignatureError):
        registry.get("cloudpay").verify_callback(callback)


def test_cloudpay_acknowledges_with_json(registry):
    ack = registry.get("cloudpay").acknowledge()
    assert json.loads(ack.content) == {"status": True}
    assert ack.media_type == "application/json"


# -- WDDPay ------------------------------------------------------------------


async def test_wddpay_posts_md5_signed_form(registry, provider):
    provider.reply(code=0, data={"tradeNo": "WDD-9"})

    acceptance = await registry.get("wddpay").initiate(payout("750"))

    form = dict(parse_qsl(provider.requests[-1].content.decode()))
    assert provider.requests[-1].url == httpx.URL("https://wddpay.test/api/payout/create")
    assert form["amount"] == "750.00"
    assert form["ifsc"] == "HDFC0001234"
    assert form["sign"] == md5_hex(f"{sorted_query(form)}&key={WDDPAY_SECRET}")
    assert acceptance.provider_reference == "WDD-9"


def test_wddpay_callback_verification(registry):
    status = registry.get("wddpay").verify_callback(wddpay_callback("TXABC-1", "2", "750.00"))

    assert status.status is TransactionStatus.FAILED
    assert status.amount == Decimal("750.00")


def test_wddpay_callback_with_wrong_secret_is_rejected(registry):
    form = wddpay_form("TXABC-1", secret="not-the-secret")
    callback = RawCallback(body=urlencode(form).encode(), content_type="application/x-www-form-urlencoded")
    with pytest.raises(SignatureError):
        registry.get("wddpay").verify_callback(callback)


# -- bank and registry -------------------------------------------------------


async def test_bank_has_no_provider_side(registry):
    bank = registry.get("bank")
    assert not bank.external
    with pytest.raises(GatewayError):
        await bank.initiate(payout())
    with pytest.raises(SignatureError):
        registry.for_callback("bank")


def test_unknown_callback_gateway_is_rejected(registry):
    with pytest.raises(SignatureError):
        registry.for_callback("paytm")


def test_malformed_callback_body_is_a_signature_error(registry):
    callback = RawCallback(body=b"{not json", content_type="application/json")
    with pytest.raises(SignatureError):
        registry.get("cloudpay").verify_callback(callback)


def test_registry_without_credentials_only_has_bank():
    registry = GatewayRegistry.from_settings(Settings(gateways=GatewaySettings()))
    assert registry.available() == frozenset({"bank"})


def test_registry_builds_configured_gateways(tmp_path, merchant_key, platform_key):
    key_file = tmp_path / "toppay.pem"
    key_file.write_text(
        merchant_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
    )
    platform_pem = platform_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()
    settings = Settings(
        server={"public_base_url": "https://ops.example.com"},
        gateways=GatewaySettings(
            toppay=TopPaySettings(
                base_url="https://toppay.test",
                merchant_code=TOPPAY_MERCHANT,
                private_key_file=key_file,
                platform_public_key=platform_pem,
            ),
            cloudpay=CloudPaySettings(merchant_id=CLOUDPAY_MERCHANT, api_token=CLOUDPAY_TOKEN),
            wddpay=WddPaySettings(base_url="https://wddpay.test", merchant_id="WDD-42", secret_key=WDDPAY_SECRET),
        ),
    )

    registry = GatewayRegistry.from_settings(settings)

    assert registry.available() == frozenset({"bank", "toppay", "cloudpay", "wddpay"})
    assert registry.get("toppay").notify_url == "https://ops.example.com/api/webhooks/toppay"
    assert registry.get("cloudpay").base_url == "https://api.cloudpay.space"
