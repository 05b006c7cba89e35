"""EmailDeliveryLog ORM model. One row per send request; append then one terminal update."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mailcascade.infrastructure.persistence.database import Base
from mailcascade.infrastructure.persistence.models.mixins import CreatedAtMixin, CuidMixin
from mailcascade.shared.enums import DeliveryStatus


class EmailDeliveryLog(CuidMixin, CreatedAtMixin, Base):
    """Delivery audit row. Table: email_delivery_log."""

    __tablename__ = "email_delivery_log"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    email_integration_id: Mapped[str | None] = mapped_column(String, nullable=True)
    recipient_email: Mapped[str] = mapped_column(String, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    related_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeliveryStatus.PENDING.value
    )
    sent_via: Mapped[str | None] = mapped_column(String(20), nullable=True)
    message_id: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
