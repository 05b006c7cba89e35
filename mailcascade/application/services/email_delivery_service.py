"""Delivery orchestrator: ordered fallback across channels with a durable audit log.

One call writes exactly one delivery log row (pending, then sent or failed)
and attempts channels strictly one after another, stopping at the first
success so at most one channel delivers the message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mailcascade.application.dtos.email import (
    EmailResult,
    OutgoingMessage,
    SendContext,
    SendEmailRequest,
    SenderResult,
    SideEffect,
    SmtpAccount,
)
from mailcascade.application.interfaces.services import IEmailSender
from mailcascade.core.config import Settings, get_settings
from mailcascade.domain.exceptions import ValidationException
from mailcascade.infrastructure.persistence.models.email_integration import EmailIntegration
from mailcascade.infrastructure.persistence.repositories.email_delivery_log_repo import (
    EmailDeliveryLogRepository,
)
from mailcascade.infrastructure.persistence.repositories.email_integration_repo import (
    EmailIntegrationRepository,
)
from mailcascade.shared.enums import (
    DeliveryChannel,
    EmailProvider,
    EmailType,
    IntegrationStatus,
)
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

ALL_FAILED_PREFIX = "All email sending methods failed"


def order_senders(
    senders: Sequence[IEmailSender], priority: Sequence[str]
) -> list[IEmailSender]:
    """Arrange senders by channel priority; channels left out of priority are dropped."""
    by_channel = {sender.channel: sender for sender in senders}
    return [by_channel[channel] for channel in priority if channel in by_channel]


class EmailDeliveryService:
    """Runs the channel cascade for one message and records the outcome."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        senders: Sequence[IEmailSender],
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.settings = settings or get_settings()
        self.senders = order_senders(senders, self.settings.channel_priority)

    async def send_email(self, request: SendEmailRequest) -> EmailResult:
        """Deliver through the first channel that succeeds.

        Raises:
            ValidationException: Malformed recipient or empty content; nothing is logged or sent.
        """
        self._validate(request)
        message = OutgoingMessage.from_request(request)
        context = await self._load_context(request)
        smtp_integration_id = (
            context.smtp_account.integration_id if context.smtp_account else None
        )
        logger.info(
            "Sending %s email to %s for user %s (%d attachment(s))",
            request.email_type,
            request.to,
            request.user_id,
            len(request.attachments),
        )

        async with self._session_factory() as session, session.begin():
            entry = await EmailDeliveryLogRepository(session).create_pending(
                user_id=request.user_id,
                recipient_email=request.to,
                subject=request.subject,
                email_type=EmailType(request.email_type).value,
                related_id=request.related_id,
                email_integration_id=smtp_integration_id,
            )
            log_id = entry.id

        try:
            result = await self._run_cascade(message, context)
        except Exception as e:
            logger.exception("Email delivery for log %s aborted: %s", log_id, e)
            error = str(e) or type(e).__name__
            async with self._session_factory() as session, session.begin():
                await EmailDeliveryLogRepository(session).mark_failed(log_id, error)
            return EmailResult(success=False, error=error, delivery_log_id=log_id)

        result.delivery_log_id = log_id
        await self._record_outcome(log_id, result, smtp_integration_id)
        return result

    async def _record_outcome(
        self, log_id: str, result: EmailResult, smtp_integration_id: str | None
    ) -> None:
        """Write the terminal log status; a failed write is logged and the cascade result stands."""
        try:
            async with self._session_factory() as session, session.begin():
                logs = EmailDeliveryLogRepository(session)
                if not result.success:
                    await logs.mark_failed(log_id, result.error or ALL_FAILED_PREFIX)
                    return
                await logs.mark_sent(
                    log_id, sent_via=result.sent_via or "", message_id=result.message_id
                )
                if (
                    result.sent_via == DeliveryChannel.SMTP.value
                    and smtp_integration_id is not None
                ):
                    await EmailIntegrationRepository(session).touch_last_used(
                        smtp_integration_id
                    )
        except Exception:
            logger.exception(
                "Could not record outcome for delivery log %s (success=%s, via=%s)",
                log_id,
                result.success,
                result.sent_via,
            )

    def _validate(self, request: SendEmailRequest) -> None:
        try:
            validate_email(request.to, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationException(f"Invalid recipient address: {e}", field="to") from e
        if not request.subject or not request.subject.strip():
            raise ValidationException("Subject must not be empty", field="subject")
        if not request.html or not request.html.strip():
            raise ValidationException("HTML body must not be empty", field="html")
        if str(getattr(request.email_type, "value", request.email_type)) not in EmailType.values():
            raise ValidationException(
                f"Unknown email type: {request.email_type}", field="email_type"
            )
        if request.reply_to:
            try:
                validate_email(request.reply_to, check_deliverability=False)
            except EmailNotValidError as e:
                raise ValidationException(
                    f"Invalid reply-to address: {e}", field="reply_to"
                ) from e

    async def _load_context(self, request: SendEmailRequest) -> SendContext:
        async with self._session_factory() as session:
            rows = await EmailIntegrationRepository(session).list_by_user(request.user_id)

        smtp_account: SmtpAccount | None = None
        connected: set[str] = set()
        for row in rows:
            if row.status != IntegrationStatus.CONNECTED.value:
                continue
            if row.provider == EmailProvider.SMTP.value:
                smtp_account = _smtp_account(row)
                if smtp_account is not None:
                    connected.add(row.provider)
            elif row.provider == EmailProvider.OUTLOOK.value:
                if row.refresh_token:
                    connected.add(row.provider)
            else:
                connected.add(row.provider)

        return SendContext(
            user_id=request.user_id,
            smtp_account=smtp_account,
            connected_providers=frozenset(connected),
            from_name=request.from_name,
            reply_to=request.reply_to,
        )

    async def _run_cascade(self, message: OutgoingMessage, context: SendContext) -> EmailResult:
        timeout = self.settings.email_send_timeout_seconds
        attempted: list[str] = []
        errors: list[str] = []

        for sender in self.senders:
            if not await self._is_available(sender, context):
                continue
            attempted.append(sender.channel)
            try:
                result = await asyncio.wait_for(sender.send(message, context), timeout)
            except TimeoutError:
                result = SenderResult.failed(f"timed out after {timeout:g}s")

            await self._apply_side_effects(result.side_effects)

            if result.success:
                logger.info("Email to %s delivered via %s", message.to, sender.channel)
                return EmailResult(
                    success=True,
                    message_id=result.message_id,
                    sent_via=sender.channel,
                    attempts=attempted,
                )
            error = result.error or "unknown error"
            logger.warning("%s sending failed, trying next channel: %s", sender.channel, error)
            errors.append(f"{sender.channel}: {error}")

        detail = "; ".join(errors) if errors else "no channel available"
        return EmailResult(
            success=False,
            error=f"{ALL_FAILED_PREFIX}: {detail}",
            attempts=attempted,
        )

    async def _is_available(self, sender: IEmailSender, context: SendContext) -> bool:
        try:
            return await sender.is_available(context)
        except Exception as e:
            logger.warning("Availability check for %s failed: %s", sender.channel, e)
            return False

    async def _apply_side_effects(self, effects: Sequence[SideEffect]) -> None:
        if not effects:
            return
        async with self._session_factory() as session, session.begin():
            repo = EmailIntegrationRepository(session)
            for effect in effects:
                logger.warning(
                    "Marking integration %s as error: %s", effect.integration_id, effect.reason
                )
                await repo.mark_error(effect.integration_id, effect.reason)


def _smtp_account(row: EmailIntegration) -> SmtpAccount | None:
    """SmtpAccount for a connected SMTP row; None when required fields are missing."""
    if not (row.smtp_host and row.smtp_port and row.smtp_user and row.email_address):
        logger.warning("SMTP integration %s is connected but incomplete; skipping", row.id)
        return None
    return SmtpAccount(
        integration_id=row.id,
        host=row.smtp_host,
        port=row.smtp_port,
        username=row.smtp_user,
        encrypted_password=row.smtp_password,
        secure=row.smtp_secure,
        email_address=row.email_address,
        display_name=row.display_name,
    )
