"""Platform fallback channel: SendGrid v3 mail/send with the server-held API key."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from mailcascade.application.dtos.email import OutgoingMessage, SendContext, SenderResult
from mailcascade.core.config import Settings
from mailcascade.shared.enums import DeliveryChannel
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_ATTACHMENT_TYPE = "application/pdf"


class SendGridSender:
    """Always available; needs no per-user connection and supports a custom From name."""

    channel = DeliveryChannel.SENDGRID.value

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self.settings = settings
        self._http = http_client

    async def is_available(self, context: SendContext) -> bool:
        return True

    def build_payload(self, message: OutgoingMessage, context: SendContext) -> dict[str, Any]:
        """JSON body for /v3/mail/send."""
        content = []
        if message.text:
            content.append({"type": "text/plain", "value": message.text})
        content.append({"type": "text/html", "value": message.html})
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {
                "email": self.settings.platform_from_email,
                "name": context.from_name or self.settings.platform_from_name,
            },
            "subject": message.subject,
            "content": content,
        }
        reply_to = context.reply_to or self.settings.platform_reply_to_email
        if reply_to:
            payload["reply_to"] = {"email": reply_to}
        if message.attachments:
            payload["attachments"] = [
                {
                    "content": base64.b64encode(att.content).decode("ascii"),
                    "filename": att.filename,
                    "type": att.content_type or DEFAULT_ATTACHMENT_TYPE,
                    "disposition": "attachment",
                }
                for att in message.attachments
            ]
        return payload

    async def send(self, message: OutgoingMessage, context: SendContext) -> SenderResult:
        if not self.settings.sendgrid_api_key:
            return SenderResult.failed("SendGrid API key not configured")
        try:
            response = await self._http.post(
                SENDGRID_SEND_URL,
                headers={
                    "Authorization": f"Bearer {self.settings.sendgrid_api_key.get_secret_value()}"
                },
                json=self.build_payload(message, context),
            )
        except httpx.HTTPError as e:
            logger.warning("SendGrid request failed: %s", e)
            return SenderResult.failed(str(e) or type(e).__name__)

        if not response.is_success:
            error = _sendgrid_error_message(response)
            logger.warning("SendGrid send failed: status=%d %s", response.status_code, error)
            return SenderResult.failed(error)

        message_id = response.headers.get("X-Message-Id")
        logger.info("Email sent via SendGrid to %s (%d attachment(s))", message.to, len(message.attachments))
        return SenderResult.ok(message_id)


def _sendgrid_error_message(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        errors = []
    messages = [e.get("message") for e in errors if isinstance(e, dict) and e.get("message")]
    return "; ".join(messages) or f"SendGrid returned status {response.status_code}"
