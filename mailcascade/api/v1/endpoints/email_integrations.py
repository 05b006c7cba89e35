"""Email integrations API: SMTP connect/test, disconnect, Gmail connector and Outlook OAuth.

Credentials go in, never come out: responses carry no passwords or tokens.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from mailcascade.api.v1.dependencies import (
    get_current_user_id,
    get_email_integration_service,
    get_outlook_connect_service,
)
from mailcascade.core.limiter import limit_oauth, limit_writes
from mailcascade.domain.exceptions import MailCascadeException
from mailcascade.infrastructure.services import EmailIntegrationService, OutlookConnectService
from mailcascade.schemas.email_integration import (
    ConnectionTestResponse,
    DisconnectResponse,
    GmailStatusResponse,
    IntegrationResponse,
    OutlookAuthorizeResponse,
    OutlookStatusResponse,
    SmtpConnectBody,
)
from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=list[IntegrationResponse])
async def list_integrations(
    user_id: Annotated[str, Depends(get_current_user_id)],
    integration_service: Annotated[
        EmailIntegrationService, Depends(get_email_integration_service)
    ],
):
    """List the caller's integrations (secrets omitted)."""
    integrations = await integration_service.list_integrations(user_id)
    return [IntegrationResponse.model_validate(i) for i in integrations]


@router.post("/smtp", response_model=IntegrationResponse, status_code=201)
@limit_writes
async def connect_smtp(
    request: Request,
    body: SmtpConnectBody,
    user_id: Annotated[str, Depends(get_current_user_id)],
    integration_service: Annotated[
        EmailIntegrationService, Depends(get_email_integration_service)
    ],
):
    """Verify SMTP credentials against the server, then store them (password encrypted)."""
    integration = await integration_service.connect_smtp(user_id, body.to_config())
    return IntegrationResponse.model_validate(integration)


@router.post("/test", response_model=ConnectionTestResponse)
@limit_writes
async def test_smtp_connection(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    integration_service: Annotated[
        EmailIntegrationService, Depends(get_email_integration_service)
    ],
):
    result = await integration_service.test_connection(user_id)
    return ConnectionTestResponse(success=result.success, message=result.message)


@router.delete("", response_model=DisconnectResponse)
@limit_writes
async def disconnect_all(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    integration_service: Annotated[
        EmailIntegrationService, Depends(get_email_integration_service)
    ],
):
    """Disconnect every integration of the caller and drop stored secrets."""
    await integration_service.disconnect(user_id)
    return DisconnectResponse(message="Email disconnected")


@router.get("/gmail/status", response_model=GmailStatusResponse)
async def gmail_connector_status(
    _user_id: Annotated[str, Depends(get_current_user_id)],
    integration_service: Annotated[
        EmailIntegrationService, Depends(get_email_integration_service)
    ],
):
    status = await integration_service.get_gmail_connector_status()
    return GmailStatusResponse(
        connected=status.connected, email=status.email, display_name=status.display_name
    )


@router.get("/outlook/status", response_model=OutlookStatusResponse)
async def outlook_status(
    user_id: Annotated[str, Depends(get_current_user_id)],
    outlook_service: Annotated[OutlookConnectService, Depends(get_outlook_connect_service)],
):
    info = await outlook_service.get_connection_info(user_id)
    return OutlookStatusResponse(
        configured=info.configured, connected=info.connected, email=info.email
    )


@router.post("/outlook/authorize", response_model=OutlookAuthorizeResponse)
@limit_oauth
async def outlook_authorize(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    outlook_service: Annotated[OutlookConnectService, Depends(get_outlook_connect_service)],
):
    """Build the Microsoft consent URL; the frontend redirects the user there."""
    url = await outlook_service.build_authorize_url(user_id)
    return OutlookAuthorizeResponse(authorization_url=url)


@router.get("/outlook/callback", response_class=RedirectResponse)
async def outlook_callback(
    outlook_service: Annotated[OutlookConnectService, Depends(get_outlook_connect_service)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """Microsoft redirects here after consent. The state token identifies the user."""
    settings = outlook_service.settings
    if error:
        logger.warning("Outlook authorization returned error: %s", error)
        return RedirectResponse(settings.oauth_error_redirect, status_code=302)
    try:
        await outlook_service.handle_callback(code, state)
    except MailCascadeException as e:
        logger.warning("Outlook OAuth callback rejected: %s", e.message)
        return RedirectResponse(settings.oauth_error_redirect, status_code=302)
    except Exception as e:
        # Browser-facing: always land back in the app
        logger.exception("Outlook OAuth callback failed: %s", e)
        return RedirectResponse(settings.oauth_error_redirect, status_code=302)
    return RedirectResponse(settings.oauth_success_redirect, status_code=302)


@router.delete("/outlook", response_model=DisconnectResponse)
@limit_writes
async def disconnect_outlook(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    outlook_service: Annotated[OutlookConnectService, Depends(get_outlook_connect_service)],
):
    await outlook_service.disconnect(user_id)
    return DisconnectResponse(message="Outlook disconnected")
