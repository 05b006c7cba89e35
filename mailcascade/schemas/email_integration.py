"""Email integration API schemas. Responses never carry passwords or tokens."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mailcascade.application.dtos.integration import SmtpConfig


class SmtpConnectBody(BaseModel):
    """Request body for POST /email-integrations/smtp."""

    smtp_host: str = Field(..., min_length=1)
    smtp_port: int = Field(..., ge=1, le=65535)
    smtp_user: str = Field(..., min_length=1)
    smtp_password: str = Field(..., min_length=1)
    smtp_secure: bool = True
    email_address: EmailStr
    display_name: str = Field(..., min_length=1)

    def to_config(self) -> SmtpConfig:
        return SmtpConfig(
            host=self.smtp_host,
            port=self.smtp_port,
            user=self.smtp_user,
            password=self.smtp_password,
            secure=self.smtp_secure,
            email_address=str(self.email_address),
            display_name=self.display_name,
        )


class IntegrationResponse(BaseModel):
    """Public view of an email_integration row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    status: str
    email_address: str | None = None
    display_name: str | None = None
    smtp_host: str | None = None
    smtp_port: int | None = None
    smtp_user: str | None = None
    smtp_secure: bool = True
    token_expires_at: datetime | None = None
    last_used_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str


class DisconnectResponse(BaseModel):
    success: bool = True
    message: str


class GmailStatusResponse(BaseModel):
    connected: bool
    email: str | None = None
    display_name: str | None = None


class OutlookStatusResponse(BaseModel):
    configured: bool
    connected: bool
    email: str | None = None


class OutlookAuthorizeResponse(BaseModel):
    """Frontend redirects the user to authorization_url."""

    authorization_url: str
