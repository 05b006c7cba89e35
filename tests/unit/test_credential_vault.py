"""Tests for CredentialVault (AES-256-GCM at rest, passthrough fallback)."""

import base64

import pytest

from mailcascade.infrastructure.external.email.vault import (
    NONCE_LENGTH,
    TAG_LENGTH,
    CredentialVault,
)

KEY = base64.b64encode(b"k" * 32).decode("ascii")
OTHER_KEY = base64.b64encode(b"o" * 32).decode("ascii")


def test_encrypt_then_decrypt_returns_plaintext() -> None:
    vault = CredentialVault(KEY)
    ciphertext = vault.encrypt("app-password-123")
    assert ciphertext != "app-password-123"
    assert vault.decrypt(ciphertext) == "app-password-123"


def test_ciphertext_layout_is_nonce_tag_ciphertext() -> None:
    """Decoded blob is 12-byte nonce + 16-byte tag + ciphertext of plaintext length."""
    vault = CredentialVault(KEY)
    blob = base64.b64decode(vault.encrypt("secret"))
    assert len(blob) == NONCE_LENGTH + TAG_LENGTH + len("secret")


def test_encrypt_uses_fresh_nonce_each_time() -> None:
    vault = CredentialVault(KEY)
    assert vault.encrypt("same") != vault.encrypt("same")


def test_decrypt_legacy_cleartext_returns_input() -> None:
    """Values written before encryption was enabled are handed back unchanged."""
    vault = CredentialVault(KEY)
    assert vault.decrypt("plain password!") == "plain password!"


def test_decrypt_short_base64_returns_input() -> None:
    vault = CredentialVault(KEY)
    short = base64.b64encode(b"tiny").decode("ascii")
    assert vault.decrypt(short) == short


def test_decrypt_with_wrong_key_returns_input() -> None:
    ciphertext = CredentialVault(KEY).encrypt("secret")
    assert CredentialVault(OTHER_KEY).decrypt(ciphertext) == ciphertext


@pytest.mark.parametrize(
    "offset",
    [
        0,
        NONCE_LENGTH - 1,
        NONCE_LENGTH,
        NONCE_LENGTH + TAG_LENGTH - 1,
        NONCE_LENGTH + TAG_LENGTH,
        -1,
    ],
    ids=["nonce-first", "nonce-last", "tag-first", "tag-last", "ciphertext-first", "ciphertext-last"],
)
def test_decrypt_tampered_blob_returns_input(offset: int) -> None:
    """Any flipped byte (nonce, tag or ciphertext) fails authentication."""
    vault = CredentialVault(KEY)
    blob = bytearray(base64.b64decode(vault.encrypt("secret")))
    blob[offset] ^= 0x01
    tampered = base64.b64encode(bytes(blob)).decode("ascii")
    assert vault.decrypt(tampered) == tampered


def test_missing_key_is_passthrough() -> None:
    vault = CredentialVault(None)
    assert vault.is_enabled is False
    assert vault.encrypt("secret") == "secret"
    assert vault.decrypt("secret") == "secret"


def test_wrong_length_key_disables_encryption() -> None:
    vault = CredentialVault(base64.b64encode(b"short-key").decode("ascii"))
    assert vault.is_enabled is False
    assert vault.encrypt("secret") == "secret"


def test_empty_and_none_values_pass_through() -> None:
    vault = CredentialVault(KEY)
    assert vault.encrypt(None) is None
    assert vault.encrypt("") == ""
    assert vault.decrypt(None) is None
