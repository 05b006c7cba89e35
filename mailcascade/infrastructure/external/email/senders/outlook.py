"""Outlook channel: Microsoft Graph /me/sendMail with the user's own OAuth grant."""

from __future__ import annotations

import base64
import time
from typing import Any

import httpx

from mailcascade.application.dtos.email import OutgoingMessage, SendContext, SenderResult
from mailcascade.application.interfaces.services import IAccessTokenProvider
from mailcascade.domain.exceptions import MailCascadeException
from mailcascade.infrastructure.external.email.oauth_drivers import GRAPH_API_BASE
from mailcascade.shared.enums import DeliveryChannel, EmailProvider
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


def build_graph_message(message: OutgoingMessage) -> dict[str, Any]:
    """JSON body for POST /me/sendMail."""
    graph_message: dict[str, Any] = {
        "subject": message.subject,
        "body": {"contentType": "HTML", "content": message.html},
        "toRecipients": [{"emailAddress": {"address": message.to}}],
    }
    if message.attachments:
        graph_message["attachments"] = [
            {
                "@odata.type": "#microsoft.graph.fileAttachment",
                "name": att.filename,
                "contentType": att.content_type or DEFAULT_ATTACHMENT_TYPE,
                "contentBytes": base64.b64encode(att.content).decode("ascii"),
            }
            for att in message.attachments
        ]
    return {"message": graph_message, "saveToSentItems": True}


class OutlookSender:
    """Sends as the user's connected Microsoft account."""

    channel = DeliveryChannel.OUTLOOK.value

    def __init__(
        self, token_provider: IAccessTokenProvider, http_client: httpx.AsyncClient
    ) -> None:
        self._tokens = token_provider
        self._http = http_client

    async def is_available(self, context: SendContext) -> bool:
        return EmailProvider.OUTLOOK.value in context.connected_providers

    async def send(self, message: OutgoingMessage, context: SendContext) -> SenderResult:
        try:
            access_token = await self._tokens.get_valid_access_token(context.user_id)
        except MailCascadeException as e:
            logger.warning("Outlook token unavailable for user %s: %s", context.user_id, e.message)
            return SenderResult.failed(e.message)
        except Exception as e:
            logger.warning("Outlook token lookup failed for user %s: %s", context.user_id, e)
            return SenderResult.failed(str(e) or type(e).__name__)

        try:
            response = await self._http.post(
                f"{GRAPH_API_BASE}/me/sendMail",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_graph_message(message),
            )
        except httpx.HTTPError as e:
            logger.warning("Outlook sendMail request failed: %s", e)
            return SenderResult.failed(str(e) or type(e).__name__)

        if not response.is_success:
            error = _graph_error_message(response)
            logger.warning("Outlook sendMail failed: status=%d %s", response.status_code, error)
            return SenderResult.failed(error)

        logger.info("Email sent via Outlook to %s", message.to)
        # Graph answers 202 with no body, so there is no provider message id
        return SenderResult.ok(f"outlook_{int(time.time() * 1000)}")


def _graph_error_message(response: httpx.Response) -> str:
    try:
        message = (response.json().get("error") or {}).get("message")
    except ValueError:
        message = None
    return message or "Failed to send email via Outlook"
