"""Microsoft identity platform OAuth driver: authorization URL, code exchange, refresh, profile."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, ClassVar
from urllib.parse import urlencode

import httpx

from mailcascade.core.config import Settings
from mailcascade.domain.exceptions import (
    AuthenticationException,
    ConfigurationError,
    ReauthRequiredError,
    TransientNetworkError,
)
from mailcascade.shared.telemetry.logging import get_logger
from mailcascade.shared.utils.datetime import utc_now

logger = get_logger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
OUTLOOK_SCOPES = [
    "openid",
    "profile",
    "email",
    "Mail.Send",
    "Mail.ReadWrite",
    "offline_access",
]


@dataclass
class OAuthTokens:
    """Normalized OAuth token response."""

    access_token: str
    refresh_token: str | None
    token_type: str
    expires_in: int
    expires_at: datetime
    scope: str


@dataclass
class OAuthUserInfo:
    """Normalized user info from provider."""

    email: str
    name: str | None = None
    provider_user_id: str | None = None


class OutlookDriver:
    """Microsoft Outlook / Office 365 OAuth driver (authorization code flow)."""

    PROVIDER_NAME: ClassVar[str] = "Microsoft 365"
    PROVIDER_TYPE: ClassVar[str] = "outlook"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        authority: str,
        http_client: httpx.AsyncClient,
        scopes: list[str] | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authority = authority.rstrip("/")
        self.scopes = scopes or list(OUTLOOK_SCOPES)
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> OutlookDriver:
        """Build from settings; ConfigurationError when client id/secret are missing."""
        if not settings.microsoft_client_id or not settings.microsoft_client_secret:
            raise ConfigurationError(
                "Microsoft/Outlook credentials not configured",
                setting="microsoft_client_id",
            )
        return cls(
            client_id=settings.microsoft_client_id,
            client_secret=settings.microsoft_client_secret.get_secret_value(),
            redirect_uri=settings.outlook_redirect_uri,
            authority=settings.microsoft_authority,
            http_client=http_client,
        )

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.authority}/oauth2/v2.0/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority}/oauth2/v2.0/token"

    def build_authorization_url(self, state: str) -> str:
        """Build the consent URL carrying the signed state."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "response_mode": "query",
            "state": state,
            "prompt": "consent",
        }
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """Exchange authorization code for tokens."""
        try:
            response = await self._http.post(
                self.token_endpoint,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"Token exchange request failed: {e}") from e
        if response.status_code != 200:
            logger.error(
                "%s token exchange failed: status=%d",
                self.PROVIDER_NAME,
                response.status_code,
            )
            raise AuthenticationException("Failed to exchange authorization code")
        token_data: dict[str, Any] = response.json()
        if not token_data.get("access_token"):
            raise AuthenticationException("No access token returned from code exchange")
        return self._normalize_token_response(token_data)

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """Refresh the access token.

        Raises:
            ReauthRequiredError: The provider answered invalid_grant (revoked/expired grant).
            TransientNetworkError: Anything else (network, non-2xx, missing access_token).
        """
        try:
            response = await self._http.post(
                self.token_endpoint,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"Token refresh request failed: {e}") from e

        if response.status_code != 200:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if error_data.get("error") == "invalid_grant":
                raise ReauthRequiredError(
                    "outlook",
                    "Outlook access was revoked. Please reconnect your account in Settings.",
                )
            logger.warning(
                "%s token refresh failed: status=%d",
                self.PROVIDER_NAME,
                response.status_code,
            )
            raise TransientNetworkError(
                error_data.get("error_description")
                or f"Token refresh failed with status {response.status_code}",
                details={"status_code": response.status_code},
            )

        token_data = response.json()
        if not token_data.get("access_token"):
            raise TransientNetworkError("No access token returned from refresh")
        tokens = self._normalize_token_response(token_data)
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    async def get_user_info(self, access_token: str) -> OAuthUserInfo:
        """Fetch the signed-in user's profile from Graph /me."""
        response = await self._http.get(
            f"{GRAPH_API_BASE}/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code != 200:
            logger.error(
                "%s get user info failed: status=%d",
                self.PROVIDER_NAME,
                response.status_code,
            )
            raise ValueError(f"Failed to get user info with status {response.status_code}")
        data = response.json()
        email = data.get("mail") or data.get("userPrincipalName")
        if not email:
            raise ValueError("Microsoft account has no email")
        return OAuthUserInfo(
            email=email,
            name=data.get("displayName"),
            provider_user_id=data.get("id"),
        )

    def _normalize_token_response(self, token_data: dict[str, Any]) -> OAuthTokens:
        """Normalize provider response to OAuthTokens."""
        expires_in = int(token_data.get("expires_in") or 3600)
        return OAuthTokens(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=expires_in,
            expires_at=utc_now() + timedelta(seconds=expires_in),
            scope=token_data.get("scope", " ".join(self.scopes)),
        )
