"""
Token encryption — seal / open OAuth refresh tokens at rest.

Uses AES-256-GCM (``AESGCM``) from the ``cryptography`` library.  The key is
passed in explicitly; ``main.py`` builds the envelope once at startup from
``config.encryption_key_base64`` (env var: ``ENCRYPTION_KEY_BASE64``) and the
application refuses to start without a valid 32-byte key.  Generate one with::

    python -c "import base64, os; print(base64.b64encode(os.urandom(32)).decode())"
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from utils.errors import DecryptionError, IntegrityError

logger = logging.getLogger(__name__)

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16


class EncryptionKeyError(ValueError):
    """The configured key is missing or is not a 256-bit key."""


@dataclass(frozen=True)
class SealedSecret:
    ciphertext: bytes
    nonce: bytes
    auth_tag: bytes


class CryptoEnvelope:
    """Authenticated symmetric encryption for secrets stored in the vault."""

    def __init__(self, key: bytes):
        if not key:
            raise EncryptionKeyError("Encryption key is missing")
        if len(key) != KEY_BYTES:
            raise EncryptionKeyError(
                f"Encryption key must be exactly {KEY_BYTES} bytes (AES-256), got {len(key)}"
            )
        self._aead = AESGCM(key)

    @classmethod
    def from_base64(cls, key_b64: Optional[str]) -> "CryptoEnvelope":
        if not key_b64:
            raise EncryptionKeyError(
                "ENCRYPTION_KEY_BASE64 not set. Generate a key: "
                "python -c \"import base64, os; print(base64.b64encode(os.urandom(32)).decode())\""
            )
        try:
            key = base64.b64decode(key_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise EncryptionKeyError(f"ENCRYPTION_KEY_BASE64 is not valid base64: {exc}") from exc
        envelope = cls(key)
        logger.info("Token encryption enabled (AES-256-GCM)")
        return envelope

    def encrypt(self, plaintext: str) -> SealedSecret:
        """Seal ``plaintext`` under a fresh random 96-bit nonce."""
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return SealedSecret(
            ciphertext=sealed[:-TAG_BYTES],
            nonce=nonce,
            auth_tag=sealed[-TAG_BYTES:],
        )

    def decrypt(
        self,
        ciphertext: Union[bytes, bytearray, memoryview],
        nonce: Union[bytes, bytearray, memoryview],
        auth_tag: Union[bytes, bytearray, memoryview],
    ) -> str:
        """
        Open a sealed secret.

        Raises
        ------
        IntegrityError
            If the authentication tag does not verify.
        DecryptionError
            If any part is not bytes, has the wrong length, or the plaintext
            is not UTF-8.
        """
        for name, part in (("ciphertext", ciphertext), ("nonce", nonce), ("auth_tag", auth_tag)):
            if not isinstance(part, (bytes, bytearray, memoryview)):
                raise DecryptionError(f"Sealed secret {name} must be bytes, got {type(part).__name__}")
        if len(nonce) != NONCE_BYTES:
            raise DecryptionError(f"Nonce must be {NONCE_BYTES} bytes, got {len(nonce)}")
        if len(auth_tag) != TAG_BYTES:
            raise DecryptionError(f"Auth tag must be {TAG_BYTES} bytes, got {len(auth_tag)}")

        try:
            plaintext = self._aead.decrypt(bytes(nonce), bytes(ciphertext) + bytes(auth_tag), None)
        except InvalidTag as exc:
            raise IntegrityError("Stored secret failed integrity verification") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Stored secret is not valid UTF-8") from exc

    def open(self, sealed: SealedSecret) -> str:
        return self.decrypt(sealed.ciphertext, sealed.nonce, sealed.auth_tag)
