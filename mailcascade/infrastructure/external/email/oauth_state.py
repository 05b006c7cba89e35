"""Signed, single-use, time-boxed OAuth state tokens (CSRF protection for the connect flow).

Token format: ``{signature}:{base64(user_id:nonce:timestamp_ms)}`` where the
signature is the first 16 hex chars of HMAC-SHA256 over the payload.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
from dataclasses import dataclass

from mailcascade.core.config import Settings, get_settings
from mailcascade.domain.exceptions import ConfigurationError
from mailcascade.infrastructure.external.email.state_store import StateEntry, StateStore
from mailcascade.shared.telemetry.logging import get_logger
from mailcascade.shared.utils.datetime import utc_now_ms

logger = get_logger(__name__)

SIGNATURE_LENGTH = 16


@dataclass(frozen=True)
class StateValidation:
    """Outcome of validating a state token."""

    valid: bool
    user_id: str | None = None


class OAuthStateManager:
    """Issue and validate state tokens bound to a user id."""

    def __init__(self, store: StateStore, settings: Settings | None = None) -> None:
        self._store = store
        self.settings = settings or get_settings()
        self.ttl_seconds = self.settings.oauth_state_ttl_seconds

    def _secret(self) -> bytes:
        if self.settings.oauth_state_secret:
            return self.settings.oauth_state_secret.get_secret_value().encode()
        if self.settings.microsoft_client_secret:
            logger.warning(
                "OAUTH_STATE_SECRET not set; signing OAuth state with the Microsoft client secret"
            )
            return self.settings.microsoft_client_secret.get_secret_value().encode()
        raise ConfigurationError(
            "No secret available to sign OAuth state (set OAUTH_STATE_SECRET)",
            setting="oauth_state_secret",
        )

    def _sign(self, payload: str, secret: bytes) -> str:
        digest = hmac.new(secret, payload.encode(), hashlib.sha256).hexdigest()
        return digest[:SIGNATURE_LENGTH]

    async def issue(self, user_id: str) -> str:
        """Create a state token for user_id and remember it until it expires or is used."""
        secret = self._secret()
        await self._store.sweep(self.ttl_seconds)
        timestamp_ms = utc_now_ms()
        payload = f"{user_id}:{secrets.token_hex(16)}:{timestamp_ms}"
        signature = self._sign(payload, secret)
        encoded = base64.b64encode(payload.encode()).decode("ascii")
        await self._store.set(
            signature,
            StateEntry(user_id=user_id, created_at_ms=timestamp_ms),
            self.ttl_seconds,
        )
        return f"{signature}:{encoded}"

    async def validate(self, state: str | None) -> StateValidation:
        """Check a returned state token; consumes it on success. Never raises on bad input."""
        if not state:
            return StateValidation(valid=False)
        signature, sep, encoded = state.partition(":")
        if not sep or not signature or not encoded:
            return StateValidation(valid=False)

        try:
            payload = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, ValueError):
            return StateValidation(valid=False)

        try:
            secret = self._secret()
        except ConfigurationError:
            logger.error("Cannot validate OAuth state: no signing secret configured")
            return StateValidation(valid=False)
        if not hmac.compare_digest(self._sign(payload, secret), signature):
            return StateValidation(valid=False)

        # Single atomic consume: of two concurrent callbacks only one gets the entry.
        entry = await self._store.pop(signature)
        if entry is None:
            return StateValidation(valid=False)
        if utc_now_ms() - entry.created_at_ms > self.ttl_seconds * 1000:
            return StateValidation(valid=False)
        return StateValidation(valid=True, user_id=entry.user_id)
