"""Email send and delivery log API schemas."""

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from mailcascade.application.dtos.email import EmailAttachment, SendEmailRequest
from mailcascade.shared.enums import EmailType


class AttachmentBody(BaseModel):
    """Attachment carried as base64 in JSON."""

    filename: str = Field(..., min_length=1)
    content: str = Field(..., description="Base64-encoded file content")
    content_type: str | None = Field(default=None, description="Defaults per channel (PDF)")

    @field_validator("content")
    @classmethod
    def content_is_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("content must be base64") from e
        return v

    def to_dto(self) -> EmailAttachment:
        return EmailAttachment(
            filename=self.filename,
            content=base64.b64decode(self.content),
            content_type=self.content_type,
        )


class SendEmailBody(BaseModel):
    """Request body for POST /emails/send."""

    to: EmailStr
    subject: str = Field(..., min_length=1, max_length=998)
    html: str = Field(..., min_length=1)
    text: str | None = None
    email_type: EmailType
    attachments: list[AttachmentBody] = Field(default_factory=list)
    related_id: str | None = None
    from_name: str | None = None
    reply_to: EmailStr | None = None

    def to_request(self, user_id: str) -> SendEmailRequest:
        return SendEmailRequest(
            user_id=user_id,
            to=str(self.to),
            subject=self.subject,
            html=self.html,
            text=self.text,
            email_type=self.email_type,
            attachments=tuple(a.to_dto() for a in self.attachments),
            related_id=self.related_id,
            from_name=self.from_name,
            reply_to=str(self.reply_to) if self.reply_to else None,
        )


class EmailResultResponse(BaseModel):
    """Outcome of one send: which channel delivered, or why all failed."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    message_id: str | None = None
    sent_via: str | None = None
    error: str | None = None
    delivery_log_id: str | None = None
    attempts: list[str] = Field(default_factory=list)


class DeliveryLogResponse(BaseModel):
    """One email_delivery_log row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    recipient_email: str
    subject: str
    type: str
    related_id: str | None = None
    status: str
    sent_via: str | None = None
    message_id: str | None = None
    error_message: str | None = None
    email_integration_id: str | None = None
    sent_at: datetime | None = None
    created_at: datetime
