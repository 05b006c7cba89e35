"""Email integration repository. One row per (user, provider); never hard-deleted."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mailcascade.infrastructure.persistence.models.email_integration import EmailIntegration
from mailcascade.infrastructure.persistence.repositories.base import BaseRepository
from mailcascade.shared.enums import IntegrationStatus
from mailcascade.shared.utils.datetime import utc_now


class EmailIntegrationRepository(BaseRepository[EmailIntegration]):
    """Integration store for SMTP, Outlook and Gmail rows."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, EmailIntegration)

    async def get_by_user_and_provider(
        self, user_id: str, provider: str
    ) -> EmailIntegration | None:
        """Return the user's row for provider (any status), or None."""
        result = await self.db.execute(
            select(EmailIntegration).where(
                EmailIntegration.user_id == user_id,
                EmailIntegration.provider == provider,
            )
        )
        return result.scalar_one_or_none()

    async def get_connected(self, user_id: str, provider: str) -> EmailIntegration | None:
        """Return the user's row for provider only when status is connected."""
        result = await self.db.execute(
            select(EmailIntegration).where(
                EmailIntegration.user_id == user_id,
                EmailIntegration.provider == provider,
                EmailIntegration.status == IntegrationStatus.CONNECTED.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str) -> list[EmailIntegration]:
        """Return all of the user's integration rows, oldest first."""
        result = await self.db.execute(
            select(EmailIntegration)
            .where(EmailIntegration.user_id == user_id)
            .order_by(EmailIntegration.created_at.asc())
        )
        return list(result.scalars().all())

    async def upsert(
        self, user_id: str, provider: str, **fields: Any
    ) -> EmailIntegration:
        """Create or update the (user_id, provider) row with the given column values."""
        existing = await self.get_by_user_and_provider(user_id, provider)
        if existing is None:
            return await self.create(
                EmailIntegration(user_id=user_id, provider=provider, **fields)
            )
        for key, value in fields.items():
            setattr(existing, key, value)
        return await self.update(existing)

    async def mark_error(self, integration_id: str, reason: str) -> EmailIntegration | None:
        """Set status=error with last_error. No-op when the row is gone."""
        integration = await self.get_by_id(integration_id)
        if integration is None:
            return None
        integration.status = IntegrationStatus.ERROR.value
        integration.last_error = reason
        return await self.update(integration)

    async def mark_disconnected(
        self,
        integration: EmailIntegration,
        *,
        reason: str | None = None,
        clear_refresh_token: bool = False,
    ) -> EmailIntegration:
        """Set status=disconnected and drop the access token (revoked or incomplete auth)."""
        integration.status = IntegrationStatus.DISCONNECTED.value
        integration.access_token = None
        if clear_refresh_token:
            integration.refresh_token = None
        if reason is not None:
            integration.last_error = reason
        return await self.update(integration)

    async def update_tokens(
        self,
        integration: EmailIntegration,
        *,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime,
    ) -> EmailIntegration:
        """Persist refreshed (already encrypted) tokens; keeps old refresh token when None."""
        integration.access_token = access_token
        if refresh_token:
            integration.refresh_token = refresh_token
        integration.token_expires_at = expires_at
        integration.last_error = None
        return await self.update(integration)

    async def touch_last_used(self, integration_id: str) -> None:
        """Record that the integration just delivered a message."""
        integration = await self.get_by_id(integration_id)
        if integration is None:
            return
        integration.last_used_at = utc_now()
        await self.update(integration)

    async def disconnect_provider(self, user_id: str, provider: str) -> bool:
        """Clear tokens and email for one provider row. Returns False when no row exists."""
        integration = await self.get_by_user_and_provider(user_id, provider)
        if integration is None:
            return False
        integration.access_token = None
        integration.refresh_token = None
        integration.token_expires_at = None
        integration.email_address = None
        integration.status = IntegrationStatus.DISCONNECTED.value
        await self.update(integration)
        return True

    async def disconnect_all(self, user_id: str) -> int:
        """Null secrets on every row of the user and mark them disconnected."""
        rows = await self.list_by_user(user_id)
        for integration in rows:
            integration.access_token = None
            integration.refresh_token = None
            integration.smtp_password = None
            integration.status = IntegrationStatus.DISCONNECTED.value
            await self.update(integration)
        return len(rows)
