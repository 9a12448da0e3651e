"""Canonical strings and signature primitives shared by the gateway adapters.

Each provider signs a canonical string built from the request fields. The
field order, separators and hash algorithm are part of the provider's wire
contract, so the builders here only do exactly what a provider expects:

* ``sorted_query`` - keys sorted, ``sign`` and empty values dropped,
  ``key=value`` pairs joined with ``&`` (TopPay, WDDPay).
* ``md5_hex`` / ``hmac_sha256_hex`` - digest helpers.
* ``RsaBlockCipher`` - PKCS#1 v1.5 (block type 1) private-key encryption in
  ``k - 11`` byte blocks, base64 of the concatenated blocks, plus the
  matching public-key decryption used to check callbacks (TopPay).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any, Iterable, Mapping, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .exceptions import SignatureError

SIGNATURE_FIELD = "sign"


def canonical_value(value: Any) -> str:
    """Render a field the way a JavaScript signer would (500.0 -> "500", True -> "true")."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def sorted_query(params: Mapping[str, Any], exclude: Iterable[str] = (SIGNATURE_FIELD,)) -> str:
    excluded = set(exclude)
    return "&".join(
        f"{key}={canonical_value(params[key])}"
        for key in sorted(params)
        if key not in excluded and params[key] is not None and params[key] != ""
    )


def md5_hex(data: str) -> str:
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def hmac_sha256_hex(secret: str, data: str) -> str:
    return hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha256).hexdigest()


def constant_time_equals(expected: str, received: Optional[str]) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class RsaBlockCipher:
    """Raw PKCS#1 v1.5 type-1 block operations on keys loaded with ``cryptography``."""

    def __init__(
        self,
        private_key: Optional[rsa.RSAPrivateKey] = None,
        public_key: Optional[rsa.RSAPublicKey] = None,
    ) -> None:
        if private_key is None and public_key is None:
            raise ValueError("At least one RSA key is required")
        self._private_key = private_key
        self._public_key = public_key

    @classmethod
    def from_pem(cls, private_pem: Optional[str] = None, public_pem: Optional[str] = None) -> "RsaBlockCipher":
        private_key = None
        public_key = None
        if private_pem:
            loaded = serialization.load_pem_private_key(private_pem.strip().encode("utf-8"), password=None)
            if not isinstance(loaded, rsa.RSAPrivateKey):
                raise ValueError("Private key is not an RSA key")
            private_key = loaded
        if public_pem:
            loaded_public = serialization.load_pem_public_key(public_pem.strip().encode("utf-8"))
            if not isinstance(loaded_public, rsa.RSAPublicKey):
                raise ValueError("Public key is not an RSA key")
            public_key = loaded_public
        return cls(private_key, public_key)

    @staticmethod
    def _key_bytes(modulus: int) -> int:
        return (modulus.bit_length() + 7) // 8

    def private_encrypt(self, data: str) -> str:
        if self._private_key is None:
            raise ValueError("No private key configured")
        numbers = self._private_key.private_numbers()
        n = numbers.public_numbers.n
        k = self._key_bytes(n)
        max_block = k - 11
        raw = data.encode("utf-8")
        blocks = []
        for offset in range(0, len(raw), max_block):
            chunk = raw[offset : offset + max_block]
            padded = b"\x00\x01" + b"\xff" * (k - 3 - len(chunk)) + b"\x00" + chunk
            encrypted = pow(int.from_bytes(padded, "big"), numbers.d, n)
            blocks.append(encrypted.to_bytes(k, "big"))
        return base64.b64encode(b"".join(blocks)).decode("ascii")

    def public_decrypt(self, signature: str) -> str:
        public_key = self._public_key
        if public_key is None and self._private_key is not None:
            public_key = self._private_key.public_key()
        if public_key is None:
            raise ValueError("No public key configured")
        numbers = public_key.public_numbers()
        k = self._key_bytes(numbers.n)
        try:
            raw = base64.b64decode(signature, validate=True)
        except (ValueError, TypeError) as exc:
            raise SignatureError("Signature is not valid base64") from exc
        if not raw or len(raw) % k:
            raise SignatureError("Signature length does not match the key size")
        message = bytearray()
        for offset in range(0, len(raw), k):
            block = int.from_bytes(raw[offset : offset + k], "big")
            if block >= numbers.n:
                raise SignatureError("Signature block out of range")
            padded = pow(block, numbers.e, numbers.n).to_bytes(k, "big")
            separator = padded.find(b"\x00", 2)
            if padded[:2] != b"\x00\x01" or separator < 10 or set(padded[2:separator]) != {0xFF}:
                raise SignatureError("Signature padding is invalid")
            message.extend(padded[separator + 1 :])
        try:
            return message.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SignatureError("Signature payload is not UTF-8") from exc
