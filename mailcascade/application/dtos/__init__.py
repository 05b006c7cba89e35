"""Application DTOs."""

from mailcascade.application.dtos.email import (
    EmailAttachment,
    EmailResult,
    MarkIntegrationError,
    OutgoingMessage,
    SendContext,
    SendEmailRequest,
    SenderResult,
    SideEffect,
    SmtpAccount,
)
from mailcascade.application.dtos.integration import (
    ConnectionTestResult,
    GmailConnectorStatus,
    OAuthConnectResult,
    OutlookConnectionInfo,
    SmtpConfig,
)

__all__ = [
    "ConnectionTestResult",
    "EmailAttachment",
    "EmailResult",
    "GmailConnectorStatus",
    "MarkIntegrationError",
    "OAuthConnectResult",
    "OutgoingMessage",
    "OutlookConnectionInfo",
    "SendContext",
    "SendEmailRequest",
    "SenderResult",
    "SideEffect",
    "SmtpAccount",
    "SmtpConfig",
]
