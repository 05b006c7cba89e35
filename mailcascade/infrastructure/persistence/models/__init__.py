"""Persistence models: ORM entities and mixins."""

from mailcascade.infrastructure.persistence.models.email_delivery_log import EmailDeliveryLog
from mailcascade.infrastructure.persistence.models.email_integration import EmailIntegration
from mailcascade.infrastructure.persistence.models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    TimestampMixin,
)

__all__ = [
    "CreatedAtMixin",
    "CuidMixin",
    "EmailDeliveryLog",
    "EmailIntegration",
    "TimestampMixin",
]
