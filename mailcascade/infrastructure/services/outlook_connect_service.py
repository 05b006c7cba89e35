"""Outlook connect flow: authorization URL, OAuth callback, disconnect, status."""

from __future__ import annotations

from typing import Callable

from mailcascade.application.dtos.integration import OAuthConnectResult, OutlookConnectionInfo
from mailcascade.core.config import Settings
from mailcascade.domain.exceptions import AuthenticationException, OAuthStateError
from mailcascade.infrastructure.external.email.oauth_drivers import OutlookDriver
from mailcascade.infrastructure.external.email.oauth_state import OAuthStateManager
from mailcascade.infrastructure.external.email.vault import CredentialVault
from mailcascade.infrastructure.persistence.repositories.email_integration_repo import (
    EmailIntegrationRepository,
)
from mailcascade.shared.enums import EmailProvider, IntegrationStatus
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

PROVIDER = EmailProvider.OUTLOOK.value


class OutlookConnectService:
    """disconnected -> authorizing -> connected; disconnect from any state."""

    def __init__(
        self,
        repo: EmailIntegrationRepository,
        state_manager: OAuthStateManager,
        vault: CredentialVault,
        settings: Settings,
        driver_factory: Callable[[], OutlookDriver],
    ) -> None:
        self._repo = repo
        self._states = state_manager
        self._vault = vault
        self.settings = settings
        self._driver_factory = driver_factory

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.microsoft_client_id and self.settings.microsoft_client_secret)

    async def build_authorize_url(self, user_id: str) -> str:
        """Consent URL bound to user_id by a fresh state token.

        Raises:
            ConfigurationError: Microsoft credentials or the state secret are missing.
        """
        driver = self._driver_factory()
        state = await self._states.issue(user_id)
        return driver.build_authorization_url(state)

    async def handle_callback(self, code: str | None, state: str | None) -> OAuthConnectResult:
        """Validate state, exchange the code and store the grant as connected.

        Raises:
            OAuthStateError: State missing, unknown, expired, reused or tampered.
            AuthenticationException: Code exchange failed or returned no refresh token.
        """
        validation = await self._states.validate(state)
        if not validation.valid or validation.user_id is None:
            raise OAuthStateError("Authorization denied: invalid or expired state")
        if not code:
            raise AuthenticationException("Authorization code missing from callback")
        user_id = validation.user_id
        logger.info("Processing Outlook OAuth callback for user %s", user_id)

        driver = self._driver_factory()
        tokens = await driver.exchange_code_for_tokens(code)
        if not tokens.refresh_token:
            raise AuthenticationException(
                "No refresh token received. Please try connecting again."
            )

        email: str | None = None
        try:
            email = (await driver.get_user_info(tokens.access_token)).email
        except Exception as e:
            # Profile email is optional metadata
            logger.warning("Could not fetch Outlook profile for user %s: %s", user_id, e)

        await self._repo.upsert(
            user_id,
            PROVIDER,
            status=IntegrationStatus.CONNECTED.value,
            access_token=self._vault.encrypt(tokens.access_token),
            refresh_token=self._vault.encrypt(tokens.refresh_token),
            token_expires_at=tokens.expires_at,
            email_address=email,
            last_error=None,
        )
        logger.info("Outlook connected for user %s: %s", user_id, email)
        return OAuthConnectResult(user_id=user_id, email=email)

    async def disconnect(self, user_id: str) -> bool:
        """Clear tokens and email; no-op when the user never connected."""
        removed = await self._repo.disconnect_provider(user_id, PROVIDER)
        if removed:
            logger.info("Outlook disconnected for user %s", user_id)
        return removed

    async def get_connection_info(self, user_id: str) -> OutlookConnectionInfo:
        integration = await self._repo.get_connected(user_id, PROVIDER)
        if integration is None:
            return OutlookConnectionInfo(configured=self.is_configured, connected=False)
        return OutlookConnectionInfo(
            configured=self.is_configured,
            connected=True,
            email=integration.email_address,
        )
