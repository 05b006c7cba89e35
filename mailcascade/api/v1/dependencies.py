"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for the caller's identity, DB sessions and
services. Routes depend only on these, never on infrastructure directly.
Process-wide clients (HTTP client, OAuth state store, Gmail connector)
live on app.state and are created in the lifespan.
"""

from __future__ import annotations

from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mailcascade.application.services.email_delivery_service import EmailDeliveryService
from mailcascade.core.config import Settings, get_settings
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.external.email.oauth_drivers import OutlookDriver
from mailcascade.infrastructure.external.email.oauth_state import OAuthStateManager
from mailcascade.infrastructure.external.email.senders import (
    GmailConnectorSender,
    OutlookSender,
    SendGridSender,
    SmtpSender,
)
from mailcascade.infrastructure.external.email.state_store import StateStore
from mailcascade.infrastructure.external.email.token_manager import OutlookTokenManager
from mailcascade.infrastructure.external.email.vault import CredentialVault, get_vault
from mailcascade.infrastructure.persistence.database import (
    get_db,
    get_db_transactional,
    get_session_factory,
)
from mailcascade.infrastructure.persistence.repositories import (
    EmailDeliveryLogRepository,
    EmailIntegrationRepository,
)
from mailcascade.infrastructure.services import (
    EmailIntegrationService,
    OutlookConnectService,
)


def get_current_user_id(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Caller identity from the trusted user header set by the fronting auth layer."""
    user_id = (request.headers.get(settings.user_header_name) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


def get_credential_vault() -> CredentialVault:
    """Credential vault for SMTP passwords and OAuth tokens (composition root)."""
    return get_vault()


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that open their own short transactions."""
    return get_session_factory()


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_oauth_state_store(request: Request) -> StateStore:
    return request.app.state.oauth_state_store


def get_gmail_connector(request: Request) -> GmailConnectorClient:
    return request.app.state.gmail_connector


def get_oauth_state_manager(
    store: Annotated[StateStore, Depends(get_oauth_state_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OAuthStateManager:
    """OAuth state signing/verification (composition root)."""
    return OAuthStateManager(store, settings)


async def get_email_integration_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> EmailIntegrationRepository:
    """Integration repository for read paths."""
    return EmailIntegrationRepository(db)


async def get_email_integration_repo_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> EmailIntegrationRepository:
    """Integration repository for write paths (commits when the request succeeds)."""
    return EmailIntegrationRepository(db)


async def get_email_delivery_log_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> EmailDeliveryLogRepository:
    return EmailDeliveryLogRepository(db)


def get_email_delivery_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_db_session_factory)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    gmail_connector: Annotated[GmailConnectorClient, Depends(get_gmail_connector)],
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> EmailDeliveryService:
    """Delivery orchestrator with every channel wired in; ordering comes from settings."""
    token_manager = OutlookTokenManager(
        session_factory, http_client, vault=vault, settings=settings
    )
    senders = [
        SmtpSender(vault),
        OutlookSender(token_manager, http_client),
        SendGridSender(settings, http_client),
        GmailConnectorSender(gmail_connector),
    ]
    return EmailDeliveryService(session_factory, senders, settings)


def get_email_integration_service(
    repo: Annotated[EmailIntegrationRepository, Depends(get_email_integration_repo_for_write)],
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
    gmail_connector: Annotated[GmailConnectorClient, Depends(get_gmail_connector)],
) -> EmailIntegrationService:
    return EmailIntegrationService(repo, vault, gmail_connector)


def get_outlook_connect_service(
    repo: Annotated[EmailIntegrationRepository, Depends(get_email_integration_repo_for_write)],
    state_manager: Annotated[OAuthStateManager, Depends(get_oauth_state_manager)],
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OutlookConnectService:
    """Outlook connect flow; the driver is built lazily so status works unconfigured."""
    return OutlookConnectService(
        repo,
        state_manager,
        vault,
        settings,
        driver_factory=lambda: OutlookDriver.from_settings(settings, http_client),
    )
