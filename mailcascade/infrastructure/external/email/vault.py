"""Credential vault: AES-256-GCM at-rest encryption for SMTP passwords and OAuth tokens.

Ciphertext layout: base64(nonce(12) || tag(16) || ciphertext).

When EMAIL_ENCRYPTION_KEY is missing or malformed the vault runs in
passthrough mode: values are stored as-is and a warning is logged once.
decrypt() never raises; anything it cannot decrypt (legacy cleartext,
foreign ciphertext, wrong key) is handed back unchanged.
"""

from __future__ import annotations

import base64
import binascii
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mailcascade.core.config import get_settings
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16


def _load_key(raw: str | None) -> bytes | None:
    """Decode a base64 key; None unless it is exactly 32 bytes."""
    if not raw:
        return None
    try:
        key = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(key) != KEY_LENGTH:
        return None
    return key


class CredentialVault:
    """Symmetric encryption of credential strings with a single active key."""

    def __init__(self, key_b64: str | None) -> None:
        key = _load_key(key_b64)
        self._aesgcm = AESGCM(key) if key is not None else None
        if self._aesgcm is None:
            if key_b64:
                logger.warning(
                    "EMAIL_ENCRYPTION_KEY is not base64 of %d bytes; credential encryption disabled",
                    KEY_LENGTH,
                )
            else:
                logger.warning(
                    "EMAIL_ENCRYPTION_KEY not set; credentials will be stored unencrypted"
                )

    @property
    def is_enabled(self) -> bool:
        return self._aesgcm is not None

    def encrypt(self, plaintext: str | None) -> str | None:
        """Encrypt plaintext; passthrough when disabled or input is empty."""
        if not plaintext or self._aesgcm is None:
            return plaintext
        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM returns ciphertext || tag
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, value: str | None) -> str | None:
        """Decrypt a vault ciphertext; return the input unchanged when it is not one."""
        if not value or self._aesgcm is None:
            return value
        try:
            blob = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("Value is not base64; treating as cleartext")
            return value
        if len(blob) < NONCE_LENGTH + TAG_LENGTH:
            logger.debug("Value too short for vault ciphertext; treating as cleartext")
            return value
        nonce = blob[:NONCE_LENGTH]
        tag = blob[NONCE_LENGTH : NONCE_LENGTH + TAG_LENGTH]
        ciphertext = blob[NONCE_LENGTH + TAG_LENGTH :]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            logger.warning("Credential failed authentication; returning stored value unchanged")
            return value
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Decrypted credential is not UTF-8; returning stored value unchanged")
            return value


@lru_cache
def get_vault() -> CredentialVault:
    """Process-wide vault built from settings (cache_clear() in tests)."""
    settings = get_settings()
    key = (
        settings.email_encryption_key.get_secret_value()
        if settings.email_encryption_key
        else None
    )
    return CredentialVault(key)
