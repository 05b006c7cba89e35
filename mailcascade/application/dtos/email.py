"""DTOs for sending email and reporting outcomes (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass, field

from mailcascade.shared.enums import EmailType


@dataclass(frozen=True)
class EmailAttachment:
    """Binary attachment carried by every channel."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class SendEmailRequest:
    """Input of EmailDeliveryService.send_email."""

    user_id: str
    to: str
    subject: str
    html: str
    email_type: EmailType | str
    text: str | None = None
    attachments: tuple[EmailAttachment, ...] = ()
    related_id: str | None = None
    from_name: str | None = None
    reply_to: str | None = None


@dataclass(frozen=True)
class OutgoingMessage:
    """The channel-independent message handed to senders."""

    to: str
    subject: str
    html: str
    text: str | None = None
    attachments: tuple[EmailAttachment, ...] = ()

    @classmethod
    def from_request(cls, request: SendEmailRequest) -> OutgoingMessage:
        return cls(
            to=request.to,
            subject=request.subject,
            html=request.html,
            text=request.text,
            attachments=tuple(request.attachments),
        )


@dataclass(frozen=True)
class SmtpAccount:
    """A connected SMTP integration as seen by the SMTP sender (password still encrypted)."""

    integration_id: str
    host: str
    port: int
    username: str
    encrypted_password: str | None
    secure: bool
    email_address: str
    display_name: str | None = None


@dataclass(frozen=True)
class SendContext:
    """Per-request data senders may need besides the message."""

    user_id: str
    smtp_account: SmtpAccount | None = None
    connected_providers: frozenset[str] = frozenset()
    from_name: str | None = None
    reply_to: str | None = None


@dataclass(frozen=True)
class MarkIntegrationError:
    """Side effect: set an integration to status=error with a reason."""

    integration_id: str
    reason: str


SideEffect = MarkIntegrationError


@dataclass(frozen=True)
class SenderResult:
    """Outcome of one channel attempt. Senders return this instead of raising."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    side_effects: tuple[SideEffect, ...] = ()

    @classmethod
    def ok(cls, message_id: str | None) -> SenderResult:
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error: str, *side_effects: SideEffect) -> SenderResult:
        return cls(success=False, error=error, side_effects=side_effects)


@dataclass
class EmailResult:
    """Single outcome returned to the caller of send_email."""

    success: bool
    message_id: str | None = None
    sent_via: str | None = None
    error: str | None = None
    delivery_log_id: str | None = None
    attempts: list[str] = field(default_factory=list)
