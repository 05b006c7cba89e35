"""Service interfaces (ports) for the application layer.

Protocols define contracts the delivery orchestrator depends on; the
infrastructure senders and token manager implement them.
"""

from __future__ import annotations

from typing import Protocol

from mailcascade.application.dtos.email import OutgoingMessage, SendContext, SenderResult


class IEmailSender(Protocol):
    """One delivery channel in the cascade."""

    channel: str

    async def is_available(self, context: SendContext) -> bool:
        """Whether this channel should be attempted for the request (cheap, never raises)."""

    async def send(self, message: OutgoingMessage, context: SendContext) -> SenderResult:
        """Attempt delivery; failures come back as SenderResult(success=False), never raised."""


class IAccessTokenProvider(Protocol):
    """Source of a valid OAuth access token for a user."""

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return an access token, refreshing it if needed."""
