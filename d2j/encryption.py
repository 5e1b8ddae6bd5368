"""Authenticated encryption of serialized credentials.

Ciphertext layout (hex encoded):

    nonce (12 bytes) || AES-GCM ciphertext || tag (16 bytes)

The secret is supplied by the caller on every call and is used directly as
the AES key, so it must encode to 16, 24 or 32 bytes of UTF-8.
"""

from __future__ import annotations

import os
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailure, EncryptionFailure

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZES = (16, 24, 32)


@runtime_checkable
class CredentialCodec(Protocol):
    """Protocol implemented by credential encryptors."""

    def encrypt(self, plaintext: bytes, secret: str) -> str:
        """Encrypt *plaintext* under *secret* and return printable ciphertext."""

    def decrypt(self, ciphertext: str, secret: str) -> bytes:
        """Reverse :meth:`encrypt`, failing on any tampering or wrong secret."""


class AesGcmCodec:
    """AES-GCM codec with a random nonce per message."""

    def encrypt(self, plaintext: bytes, secret: str) -> str:
        try:
            aesgcm = _cipher(secret)
        except ValueError as exc:
            raise EncryptionFailure(f"create cipher: {exc}") from exc
        nonce = os.urandom(NONCE_SIZE)
        sealed = aesgcm.encrypt(nonce, plaintext, None)
        return (nonce + sealed).hex()

    def decrypt(self, ciphertext: str, secret: str) -> bytes:
        try:
            raw = bytes.fromhex(ciphertext)
        except (ValueError, TypeError) as exc:
            raise DecryptionFailure(f"decode hex encrypted data: {exc}") from exc
        try:
            aesgcm = _cipher(secret)
        except ValueError as exc:
            raise DecryptionFailure(f"create cipher: {exc}") from exc
        if len(raw) < NONCE_SIZE:
            raise DecryptionFailure("invalid encrypted data size")
        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            return aesgcm.decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise DecryptionFailure("decrypt data: authentication failed") from exc


def _cipher(secret: str) -> AESGCM:
    key = secret.encode("utf-8")
    if len(key) not in KEY_SIZES:
        raise ValueError(
            f"secret must be {', '.join(str(size) for size in KEY_SIZES)} bytes, got {len(key)}"
        )
    return AESGCM(key)


def is_valid_secret(secret: str) -> bool:
    """Whether *secret* can key the codec."""

    return len(secret.encode("utf-8")) in KEY_SIZES


__all__ = [
    "AesGcmCodec",
    "CredentialCodec",
    "KEY_SIZES",
    "NONCE_SIZE",
    "TAG_SIZE",
    "is_valid_secret",
]
