"""Client for the managed Gmail connector: access token from the connection broker, then Gmail REST."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from mailcascade.core.config import Settings
from mailcascade.domain.exceptions import (
    ConfigurationError,
    NotConnectedError,
    TransientNetworkError,
)
from mailcascade.shared.telemetry.logging import get_logger
from mailcascade.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"
CONNECTOR_NAME = "google-mail"


class GmailConnectorClient:
    """Broker-issued Gmail access; the access token is cached until its expires_at."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self.settings = settings
        self._http = http_client
        self._access_token: str | None = None
        self._expires_at: datetime | None = None

    def _identity_header(self) -> str:
        if self.settings.repl_identity:
            return f"repl {self.settings.repl_identity.get_secret_value()}"
        if self.settings.web_repl_renewal:
            return f"depl {self.settings.web_repl_renewal.get_secret_value()}"
        raise ConfigurationError(
            "X_REPLIT_TOKEN not found for repl/depl", setting="repl_identity"
        )

    @property
    def is_configured(self) -> bool:
        return bool(
            self.settings.replit_connectors_hostname
            and (self.settings.repl_identity or self.settings.web_repl_renewal)
        )

    async def get_access_token(self) -> str:
        """Return the connector's access token, asking the broker when the cache is stale."""
        if (
            self._access_token
            and self._expires_at is not None
            and self._expires_at > utc_now()
        ):
            return self._access_token

        hostname = self.settings.replit_connectors_hostname
        if not hostname:
            raise ConfigurationError(
                "REPLIT_CONNECTORS_HOSTNAME not set", setting="replit_connectors_hostname"
            )
        try:
            response = await self._http.get(
                f"https://{hostname}/api/v2/connection",
                params={"include_secrets": "true", "connector_names": CONNECTOR_NAME},
                headers={
                    "Accept": "application/json",
                    "X_REPLIT_TOKEN": self._identity_header(),
                },
            )
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"Connection broker unreachable: {e}") from e
        if response.status_code != 200:
            raise TransientNetworkError(
                f"Connection broker returned status {response.status_code}"
            )

        items = response.json().get("items") or []
        connection: dict[str, Any] = items[0] if items else {}
        conn_settings = connection.get("settings") or {}
        access_token = conn_settings.get("access_token") or (
            ((conn_settings.get("oauth") or {}).get("credentials") or {}).get("access_token")
        )
        if not access_token:
            self._access_token = None
            self._expires_at = None
            raise NotConnectedError("gmail_connector")

        self._access_token = access_token
        self._expires_at = _parse_expiry(conn_settings.get("expires_at"))
        return access_token

    async def is_connected(self) -> bool:
        """True when the broker hands out a token. Never raises."""
        if not self.is_configured:
            return False
        try:
            await self.get_access_token()
        except (ConfigurationError, NotConnectedError, TransientNetworkError) as e:
            logger.info("Gmail connector not connected: %s", e)
            return False
        return True

    async def get_profile_email(self) -> str | None:
        """Sender address from the Gmail profile; None when the scope does not allow it."""
        token = await self.get_access_token()
        try:
            response = await self._http.get(
                f"{GMAIL_API_BASE}/profile",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"Gmail profile request failed: {e}") from e
        if response.status_code == 403:
            logger.info("Gmail profile access not permitted (send-only connector scope)")
            return None
        if response.status_code != 200:
            raise TransientNetworkError(
                f"Gmail profile request failed with status {response.status_code}"
            )
        return response.json().get("emailAddress") or None

    async def send_raw(self, raw: str) -> str | None:
        """POST a base64url MIME document to messages/send; returns the Gmail message id."""
        token = await self.get_access_token()
        response = await self._http.post(
            f"{GMAIL_API_BASE}/messages/send",
            headers={"Authorization": f"Bearer {token}"},
            json={"raw": raw},
        )
        if response.status_code >= 300:
            raise TransientNetworkError(
                _gmail_error_message(response),
                details={"status_code": response.status_code},
            )
        return response.json().get("id")


def _parse_expiry(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def _gmail_error_message(response: httpx.Response) -> str:
    try:
        message = (response.json().get("error") or {}).get("message")
    except ValueError:
        message = None
    return message or f"Gmail send failed with status {response.status_code}"
