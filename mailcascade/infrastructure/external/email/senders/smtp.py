"""SMTP channel: the user's own mail server."""

from __future__ import annotations

import aiosmtplib

from mailcascade.application.dtos.email import (
    MarkIntegrationError,
    OutgoingMessage,
    SendContext,
    SenderResult,
)
from mailcascade.infrastructure.external.email.smtp_transport import (
    build_email_message,
    send_via_smtp,
)
from mailcascade.infrastructure.external.email.vault import CredentialVault, get_vault
from mailcascade.shared.enums import DeliveryChannel
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SMTP_AUTH_FAILED_REASON = "Authentication failed. Please reconnect your email."
DEFAULT_DISPLAY_NAME = "Business"


class SmtpSender:
    """Sends through the connected SMTP integration carried in the context."""

    channel = DeliveryChannel.SMTP.value

    def __init__(self, vault: CredentialVault | None = None) -> None:
        self._vault = vault or get_vault()

    async def is_available(self, context: SendContext) -> bool:
        return context.smtp_account is not None

    async def send(self, message: OutgoingMessage, context: SendContext) -> SenderResult:
        account = context.smtp_account
        if account is None:
            return SenderResult.failed("No connected SMTP integration")
        try:
            mime = build_email_message(
                from_email=account.email_address,
                from_name=account.display_name or DEFAULT_DISPLAY_NAME,
                to=message.to,
                subject=message.subject,
                html=message.html,
                text=message.text,
                reply_to=context.reply_to,
                attachments=message.attachments,
            )
            await send_via_smtp(
                mime,
                host=account.host,
                port=account.port,
                username=account.username,
                password=self._vault.decrypt(account.encrypted_password),
                secure=account.secure,
            )
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.warning(
                "SMTP authentication failed for integration %s: %s",
                account.integration_id,
                e,
            )
            return SenderResult.failed(
                str(e),
                MarkIntegrationError(account.integration_id, SMTP_AUTH_FAILED_REASON),
            )
        except Exception as e:
            logger.warning("SMTP send via %s failed: %s", account.host, e)
            return SenderResult.failed(str(e) or type(e).__name__)

        logger.info("Email sent via SMTP (%s) to %s", account.email_address, message.to)
        return SenderResult.ok(mime["Message-ID"])
