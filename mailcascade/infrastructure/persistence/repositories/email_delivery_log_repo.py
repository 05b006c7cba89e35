"""Email delivery log repository. Insert pending, then exactly one terminal update."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mailcascade.infrastructure.persistence.models.email_delivery_log import EmailDeliveryLog
from mailcascade.infrastructure.persistence.repositories.base import BaseRepository
from mailcascade.shared.enums import DeliveryStatus
from mailcascade.shared.utils.datetime import utc_now


class EmailDeliveryLogRepository(BaseRepository[EmailDeliveryLog]):
    """Delivery audit trail."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, EmailDeliveryLog)

    async def create_pending(
        self,
        *,
        user_id: str,
        recipient_email: str,
        subject: str,
        email_type: str,
        related_id: str | None = None,
        email_integration_id: str | None = None,
    ) -> EmailDeliveryLog:
        """Insert a pending entry before any channel is attempted."""
        entry = EmailDeliveryLog(
            user_id=user_id,
            email_integration_id=email_integration_id,
            recipient_email=recipient_email,
            subject=subject,
            type=email_type,
            related_id=related_id,
            status=DeliveryStatus.PENDING.value,
        )
        return await self.create(entry)

    async def mark_sent(
        self, log_id: str, *, sent_via: str, message_id: str | None
    ) -> EmailDeliveryLog | None:
        entry = await self.get_by_id(log_id)
        if entry is None:
            return None
        entry.status = DeliveryStatus.SENT.value
        entry.sent_via = sent_via
        entry.message_id = message_id
        entry.sent_at = utc_now()
        return await self.update(entry)

    async def mark_failed(self, log_id: str, error_message: str) -> EmailDeliveryLog | None:
        entry = await self.get_by_id(log_id)
        if entry is None:
            return None
        entry.status = DeliveryStatus.FAILED.value
        entry.error_message = error_message
        return await self.update(entry)

    async def list_by_user(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> list[EmailDeliveryLog]:
        """Return the user's entries, newest first (paginated)."""
        result = await self.db.execute(
            select(EmailDeliveryLog)
            .where(EmailDeliveryLog.user_id == user_id)
            .order_by(EmailDeliveryLog.created_at.desc(), EmailDeliveryLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
