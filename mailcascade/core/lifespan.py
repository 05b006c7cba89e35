"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic. No business logic here, only
wiring of infrastructure: shared HTTP client, OAuth state store, vault
check, table creation, DB engine dispose.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from mailcascade.core.config import get_settings
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.external.email.state_store import build_state_store
from mailcascade.infrastructure.external.email.vault import get_vault

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: shared HTTP client, state store, Gmail connector client,
    vault check, create_all when DATABASE_AUTO_CREATE (otherwise alembic owns the schema).
    Shutdown order: HTTP client close, state store close, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    # Shared HTTP client for OAuth, Graph, Gmail and SendGrid calls (connection reuse).
    app.state.http_client = httpx.AsyncClient(timeout=30.0)
    app.state.oauth_state_store = build_state_store(settings)
    app.state.gmail_connector = GmailConnectorClient(settings, app.state.http_client)

    if not get_vault().is_enabled:
        logger.warning(
            "EMAIL_ENCRYPTION_KEY not set or invalid; email credentials will be stored unencrypted"
        )

    if settings.database_auto_create:
        from mailcascade.infrastructure.persistence.database import create_all_tables

        await create_all_tables()

    yield

    # ---- Shutdown ----
    if getattr(app.state, "http_client", None) is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTP client closed")

    store = getattr(app.state, "oauth_state_store", None)
    if store is not None:
        await store.close()
        app.state.oauth_state_store = None

    from mailcascade.infrastructure.persistence import database

    if getattr(database, "engine", None) is not None:
        await database.engine.dispose()
        logger.info("Database engine disposed")
