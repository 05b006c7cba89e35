"""EmailIntegration ORM model. Per-user connection to an email provider (SMTP, Outlook, Gmail)."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mailcascade.infrastructure.persistence.database import Base
from mailcascade.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin
from mailcascade.shared.enums import IntegrationStatus


class EmailIntegration(CuidMixin, TimestampMixin, Base):
    """Email integration row. Table: email_integration.

    At most one row per (user_id, provider). smtp_password, access_token and
    refresh_token hold vault ciphertext (or cleartext when the vault is off).
    """

    __tablename__ = "email_integration"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_email_integration_user_provider"),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IntegrationStatus.DISCONNECTED.value
    )

    smtp_host: Mapped[str | None] = mapped_column(String, nullable=True)
    smtp_port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    smtp_user: Mapped[str | None] = mapped_column(String, nullable=True)
    smtp_password: Mapped[str | None] = mapped_column(Text, nullable=True)
    smtp_secure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    email_address: Mapped[str | None] = mapped_column(String, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
