"""Gmail channel through the platform-managed connector (raw MIME upload)."""

from __future__ import annotations

from mailcascade.application.dtos.email import OutgoingMessage, SendContext, SenderResult
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.external.email.mime import (
    build_mime_message,
    encode_raw_message,
)
from mailcascade.shared.enums import DeliveryChannel
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class GmailConnectorSender:
    """Last-resort channel; the connector cannot show a custom From display name reliably."""

    channel = DeliveryChannel.GMAIL_CONNECTOR.value

    def __init__(self, client: GmailConnectorClient) -> None:
        self._client = client

    async def is_available(self, context: SendContext) -> bool:
        return await self._client.is_connected()

    async def send(self, message: OutgoingMessage, context: SendContext) -> SenderResult:
        try:
            from_email = await self._client.get_profile_email()
            if not from_email:
                return SenderResult.failed("Could not get Gmail email address")
            mime = build_mime_message(
                to=message.to,
                subject=message.subject,
                html=message.html,
                text=message.text,
                from_email=from_email,
                from_name=context.from_name,
                reply_to=context.reply_to,
                attachments=message.attachments,
            )
            message_id = await self._client.send_raw(encode_raw_message(mime))
        except Exception as e:
            logger.warning("Gmail connector send failed: %s", e)
            return SenderResult.failed(str(e) or "Failed to send via Gmail")

        logger.info("Email sent via Gmail connector to %s, messageId=%s", message.to, message_id)
        return SenderResult.ok(message_id)
