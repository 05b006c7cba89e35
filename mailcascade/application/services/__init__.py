"""Application services: delivery orchestrator and retry helper."""

from mailcascade.application.services.email_delivery_service import EmailDeliveryService
from mailcascade.application.services.retry import RetryExhaustedError, retry_with_backoff

__all__ = ["EmailDeliveryService", "RetryExhaustedError", "retry_with_backoff"]
