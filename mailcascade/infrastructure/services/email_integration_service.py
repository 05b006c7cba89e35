"""Email integration service: SMTP connect/verify/test, disconnect, listing, connector status.

Keeps credential encryption and ORM updates out of the API layer.
"""

from __future__ import annotations

from typing import Awaitable, Callable

import aiosmtplib

from mailcascade.application.dtos.integration import (
    ConnectionTestResult,
    GmailConnectorStatus,
    SmtpConfig,
)
from mailcascade.domain.exceptions import MailCascadeException, SmtpVerificationError
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.external.email.smtp_transport import verify_smtp
from mailcascade.infrastructure.external.email.vault import CredentialVault
from mailcascade.infrastructure.persistence.models.email_integration import EmailIntegration
from mailcascade.infrastructure.persistence.repositories.email_integration_repo import (
    EmailIntegrationRepository,
)
from mailcascade.shared.enums import EmailProvider, IntegrationStatus
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SmtpVerifier = Callable[..., Awaitable[None]]


class EmailIntegrationService:
    """Manage a user's email integrations (SMTP credentials, disconnect, status)."""

    def __init__(
        self,
        repo: EmailIntegrationRepository,
        vault: CredentialVault,
        gmail_connector: GmailConnectorClient | None = None,
        smtp_verifier: SmtpVerifier = verify_smtp,
    ) -> None:
        self._repo = repo
        self._vault = vault
        self._gmail = gmail_connector
        self._verify = smtp_verifier

    async def connect_smtp(self, user_id: str, config: SmtpConfig) -> EmailIntegration:
        """Verify the server accepts the credentials, then store them encrypted.

        Raises:
            SmtpVerificationError: Connect or login failed; nothing is written.
        """
        try:
            await self._verify(
                host=config.host,
                port=config.port,
                username=config.user,
                password=config.password,
                secure=config.secure,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning("SMTP verification for user %s failed: %s", user_id, e)
            raise SmtpVerificationError(str(e) or type(e).__name__) from e

        integration = await self._repo.upsert(
            user_id,
            EmailProvider.SMTP.value,
            status=IntegrationStatus.CONNECTED.value,
            smtp_host=config.host,
            smtp_port=config.port,
            smtp_user=config.user,
            smtp_password=self._vault.encrypt(config.password),
            smtp_secure=config.secure,
            email_address=config.email_address,
            display_name=config.display_name,
            last_error=None,
        )
        if self._vault.is_enabled:
            logger.info("SMTP password encrypted for user %s", user_id)
        logger.info("SMTP email connected for user %s: %s", user_id, config.email_address)
        return integration

    async def disconnect(self, user_id: str) -> int:
        """Null secrets on all of the user's integrations and mark them disconnected. Idempotent."""
        count = await self._repo.disconnect_all(user_id)
        logger.info("Email disconnected for user %s (%d integration(s))", user_id, count)
        return count

    async def list_integrations(self, user_id: str) -> list[EmailIntegration]:
        return await self._repo.list_by_user(user_id)

    async def test_connection(self, user_id: str) -> ConnectionTestResult:
        """Re-verify the connected SMTP integration; marks it error on failure."""
        integration = await self._repo.get_by_user_and_provider(user_id, EmailProvider.SMTP.value)
        if integration is None or integration.status == IntegrationStatus.DISCONNECTED.value:
            return ConnectionTestResult(
                success=False,
                message="No email integration found. Please connect your email first.",
            )
        try:
            await self._verify(
                host=integration.smtp_host or "",
                port=integration.smtp_port or 0,
                username=integration.smtp_user or "",
                password=self._vault.decrypt(integration.smtp_password),
                secure=integration.smtp_secure,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            reason = str(e) or type(e).__name__
            await self._repo.mark_error(integration.id, reason)
            return ConnectionTestResult(success=False, message=f"Connection failed: {reason}")

        if integration.status != IntegrationStatus.CONNECTED.value:
            integration.status = IntegrationStatus.CONNECTED.value
            integration.last_error = None
            await self._repo.update(integration)
        return ConnectionTestResult(success=True, message="SMTP connection verified successfully!")

    async def get_gmail_connector_status(self) -> GmailConnectorStatus:
        """Platform-level connector status; profile email is best-effort."""
        if self._gmail is None or not await self._gmail.is_connected():
            return GmailConnectorStatus(connected=False)
        try:
            email = await self._gmail.get_profile_email()
        except MailCascadeException as e:
            logger.info("Gmail profile fetch failed, connector still usable for sending: %s", e)
            email = None
        if email:
            return GmailConnectorStatus(
                connected=True, email=email, display_name=email.split("@")[0]
            )
        return GmailConnectorStatus(connected=True, display_name="Gmail Connector")
