"""Infrastructure services: integration management and the Outlook connect flow."""

from mailcascade.infrastructure.services.email_integration_service import (
    EmailIntegrationService,
)
from mailcascade.infrastructure.services.outlook_connect_service import (
    OutlookConnectService,
)

__all__ = ["EmailIntegrationService", "OutlookConnectService"]
