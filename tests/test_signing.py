"""Unit tests for canonical strings and signature primitives."""

import base64

import pytest
from cryptography.hazmat.primitives.asymmetric import padding

from backoffice.modules.gateways import SignatureError
from backoffice.modules.gateways.signing import (
    RsaBlockCipher,
    canonical_value,
    constant_time_equals,
    hmac_sha256_hex,
    md5_hex,
    sorted_query,
)


def test_sorted_query_sorts_keys_and_drops_sign_and_empty_values():
    params = {"orderNum": "TX1-1", "bankCode": "", "merchantCode": "M1", "sign": "abc", "callback": None, "amount": 500}
    assert sorted_query(params) == "amount=500&merchantCode=M1&orderNum=TX1-1"


def test_sorted_query_custom_exclusions():
    assert sorted_query({"b": "2", "a": "1", "key": "x"}, exclude=("key",)) == "a=1&b=2"


@pytest.mark.parametrize(
    "value, expected",
    [(500.0, "500"), (500.5, "500.5"), (0.1, "0.1"), (500, "500"), ("500.00", "500.00"), (True, "true")],
)
def test_canonical_value_renders_numbers_like_json_signers(value, expected):
    assert canonical_value(value) == expected


def test_digest_helpers_match_reference_vectors():
    assert md5_hex("abc") == "900150983cd24fb0d6963f7d28e17f72"
    # RFC 4231 test case 2
    assert (
        hmac_sha256_hex("Jefe", "what do ya want for nothing?")
        == "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"
    )


def test_constant_time_equals():
    assert constant_time_equals("abc", "abc")
    assert not constant_time_equals("abc", "abd")
    assert not constant_time_equals("abc", None)
    assert not constant_time_equals("abc", "")


def test_private_encrypt_is_standard_pkcs1_type1(merchant_key):
    cipher = RsaBlockCipher(private_key=merchant_key)
    signature = base64.b64decode(cipher.private_encrypt("amount=500&merchantCode=M1"))

    recovered = merchant_key.public_key().recover_data_from_signature(signature, padding.PKCS1v15(), None)
    assert recovered == b"amount=500&merchantCode=M1"


def test_long_payload_is_split_into_245_byte_blocks(merchant_key):
    cipher = RsaBlockCipher(private_key=merchant_key)
    data = "x" * 300

    signature = cipher.private_encrypt(data)

    assert len(base64.b64decode(signature)) == 2 * 256
    assert cipher.public_decrypt(signature) == data


def test_public_decrypt_uses_configured_public_key(merchant_key, platform_key):
    signer = RsaBlockCipher(private_key=platform_key)
    verifier = RsaBlockCipher(private_key=merchant_key, public_key=platform_key.public_key())

    assert verifier.public_decrypt(signer.private_encrypt("status=SUCCESS")) == "status=SUCCESS"


def test_signature_from_another_key_is_rejected(merchant_key, platform_key):
    forged = RsaBlockCipher(private_key=merchant_key).private_encrypt("status=SUCCESS")
    verifier = RsaBlockCipher(public_key=platform_key.public_key())

    with pytest.raises(SignatureError):
        verifier.public_decrypt(forged)


@pytest.mark.parametrize("signature", ["not base64!!", "", base64.b64encode(b"short").decode()])
def test_malformed_signatures_are_rejected(platform_key, signature):
    verifier = RsaBlockCipher(public_key=platform_key.public_key())
    with pytest.raises(SignatureError):
        verifier.public_decrypt(signature)


def test_cipher_needs_a_key():
    with pytest.raises(ValueError):
        RsaBlockCipher()
