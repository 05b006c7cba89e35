"""Outlook access-token freshness and refresh, serialized per user."""

from __future__ import annotations

import asyncio
import weakref
from datetime import timedelta
from typing import Awaitable, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mailcascade.application.services.retry import RetryExhaustedError, retry_with_backoff
from mailcascade.core.config import Settings, get_settings
from mailcascade.domain.exceptions import (
    NotConnectedError,
    ReauthRequiredError,
    RefreshFailedError,
)
from mailcascade.infrastructure.external.email.oauth_drivers import OutlookDriver
from mailcascade.infrastructure.external.email.vault import CredentialVault, get_vault
from mailcascade.infrastructure.persistence.models.email_integration import EmailIntegration
from mailcascade.infrastructure.persistence.repositories.email_integration_repo import (
    EmailIntegrationRepository,
)
from mailcascade.shared.enums import EmailProvider, IntegrationStatus
from mailcascade.shared.telemetry.logging import get_logger
from mailcascade.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)

PROVIDER = EmailProvider.OUTLOOK.value

# One lock per user while anyone holds it; entries vanish when unused.
_refresh_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


def _lock_for(user_id: str) -> asyncio.Lock:
    lock = _refresh_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _refresh_locks[user_id] = lock
    return lock


class OutlookTokenManager:
    """Returns a usable Outlook access token for a user, refreshing when close to expiry."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient,
        *,
        vault: CredentialVault | None = None,
        settings: Settings | None = None,
        driver: OutlookDriver | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._http = http_client
        self._vault = vault or get_vault()
        self.settings = settings or get_settings()
        self._driver = driver
        self._sleep = sleep

    def _get_driver(self) -> OutlookDriver:
        if self._driver is None:
            self._driver = OutlookDriver.from_settings(self.settings, self._http)
        return self._driver

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return a decrypted access token valid for at least the refresh buffer.

        Raises:
            NotConnectedError: No connected Outlook integration.
            ReauthRequiredError: Grant missing or revoked; integration is now disconnected.
            RefreshFailedError: Refresh kept failing with retryable errors.
            ConfigurationError: Microsoft client credentials are not configured.
        """
        integration = await self._load_connected(user_id)
        token = self._fresh_access_token(integration)
        if token is not None:
            return token

        lock = _lock_for(user_id)
        async with lock:
            # Another caller may have refreshed while we waited
            integration = await self._load_connected(user_id)
            token = self._fresh_access_token(integration)
            if token is not None:
                return token
            logger.info("Outlook token expiring soon for user %s, refreshing", user_id)
            return await self._refresh(integration)

    async def _load_connected(self, user_id: str) -> EmailIntegration:
        async with self._session_factory() as session, session.begin():
            repo = EmailIntegrationRepository(session)
            integration = await repo.get_by_user_and_provider(user_id, PROVIDER)
            if (
                integration is None
                or integration.status != IntegrationStatus.CONNECTED.value
            ):
                raise NotConnectedError(PROVIDER, user_id)
            if integration.refresh_token:
                return integration
            logger.warning("No Outlook refresh token stored for user %s", user_id)
            await repo.mark_disconnected(
                integration, reason="Outlook authorization incomplete"
            )
        # Raised after commit so the disconnect sticks
        raise ReauthRequiredError(
            PROVIDER,
            "Outlook authorization incomplete. Please reconnect your account.",
        )

    def _fresh_access_token(self, integration: EmailIntegration) -> str | None:
        if not integration.access_token:
            return None
        expires_at = ensure_utc(integration.token_expires_at)
        buffer = timedelta(seconds=self.settings.token_refresh_buffer_seconds)
        if expires_at is None or expires_at <= utc_now() + buffer:
            return None
        return self._vault.decrypt(integration.access_token)

    async def _refresh(self, integration: EmailIntegration) -> str:
        driver = self._get_driver()
        refresh_token = self._vault.decrypt(integration.refresh_token)
        if not refresh_token:
            raise ReauthRequiredError(
                PROVIDER,
                "Outlook authorization incomplete. Please reconnect your account.",
            )

        try:
            tokens = await retry_with_backoff(
                lambda: driver.refresh_access_token(refresh_token),
                max_attempts=self.settings.token_refresh_max_attempts,
                is_terminal=lambda exc: isinstance(exc, ReauthRequiredError),
                sleep=self._sleep,
            )
        except ReauthRequiredError as exc:
            logger.warning(
                "Outlook grant revoked for user %s; marking integration disconnected",
                integration.user_id,
            )
            async with self._session_factory() as session, session.begin():
                repo = EmailIntegrationRepository(session)
                current = await repo.get_by_id(integration.id)
                if current is not None:
                    await repo.mark_disconnected(current, reason=exc.message)
            raise
        except RetryExhaustedError as exc:
            logger.error(
                "Outlook token refresh failed for user %s after %d attempts",
                integration.user_id,
                exc.attempts,
            )
            raise RefreshFailedError(PROVIDER, str(exc.last_error)) from exc

        async with self._session_factory() as session, session.begin():
            repo = EmailIntegrationRepository(session)
            current = await repo.get_by_id(integration.id)
            if current is not None:
                await repo.update_tokens(
                    current,
                    access_token=self._vault.encrypt(tokens.access_token) or "",
                    refresh_token=self._vault.encrypt(tokens.refresh_token),
                    expires_at=tokens.expires_at,
                )
        logger.info("Refreshed Outlook token for user %s", integration.user_id)
        return tokens.access_token
