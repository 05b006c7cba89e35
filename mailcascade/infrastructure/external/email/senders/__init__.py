"""Delivery channels. Each implements IEmailSender and never raises from send()."""

from mailcascade.infrastructure.external.email.senders.gmail_connector import (
    GmailConnectorSender,
)
from mailcascade.infrastructure.external.email.senders.outlook import OutlookSender
from mailcascade.infrastructure.external.email.senders.sendgrid import SendGridSender
from mailcascade.infrastructure.external.email.senders.smtp import (
    SMTP_AUTH_FAILED_REASON,
    SmtpSender,
)

__all__ = [
    "GmailConnectorSender",
    "OutlookSender",
    "SMTP_AUTH_FAILED_REASON",
    "SendGridSender",
    "SmtpSender",
]
