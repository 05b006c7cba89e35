"""Shared enumerations for mailcascade.

Values are stored as plain strings in the database so rows stay readable
from SQL and from other services sharing the tables.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class EmailProvider(_ValuesMixin, str, Enum):
    """Provider of a per-user email integration row."""

    SMTP = "smtp"
    OUTLOOK = "outlook"
    GMAIL = "gmail"


class IntegrationStatus(_ValuesMixin, str, Enum):
    """Lifecycle status of an email integration."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class EmailType(_ValuesMixin, str, Enum):
    """Business category of an outgoing email (for the delivery log)."""

    QUOTE = "quote"
    INVOICE = "invoice"
    RECEIPT = "receipt"
    REMINDER = "reminder"
    PAYMENT_LINK = "payment_link"


class DeliveryStatus(_ValuesMixin, str, Enum):
    """Status of a delivery log entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class DeliveryChannel(_ValuesMixin, str, Enum):
    """Channel that carried (or attempted) a message."""

    SMTP = "smtp"
    OUTLOOK = "outlook"
    SENDGRID = "sendgrid"
    GMAIL_CONNECTOR = "gmail_connector"
