"""DTOs for integration management (SMTP connect, OAuth connect, status)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SmtpConfig:
    """SMTP settings submitted by the user when connecting."""

    host: str
    port: int
    user: str
    password: str
    secure: bool
    email_address: str
    display_name: str


@dataclass(frozen=True)
class OAuthConnectResult:
    """Result of a completed OAuth callback."""

    user_id: str
    email: str | None = None


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    message: str


@dataclass(frozen=True)
class GmailConnectorStatus:
    connected: bool
    email: str | None = None
    display_name: str | None = None


@dataclass(frozen=True)
class OutlookConnectionInfo:
    configured: bool
    connected: bool
    email: str | None = None
