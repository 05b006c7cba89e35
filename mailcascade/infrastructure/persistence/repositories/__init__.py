"""Repositories over the email integration and delivery log tables."""

from mailcascade.infrastructure.persistence.repositories.base import BaseRepository
from mailcascade.infrastructure.persistence.repositories.email_delivery_log_repo import (
    EmailDeliveryLogRepository,
)
from mailcascade.infrastructure.persistence.repositories.email_integration_repo import (
    EmailIntegrationRepository,
)

__all__ = [
    "BaseRepository",
    "EmailDeliveryLogRepository",
    "EmailIntegrationRepository",
]
