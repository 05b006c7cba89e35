"""Pytest configuration and fixtures for mailcascade.

DB fixtures use an in-memory SQLite database (aiosqlite, StaticPool) so the
suite runs without Postgres. HTTP tests build the app with create_app() and
replace the DB, settings and vault dependencies; outbound HTTP goes through
an httpx.MockTransport routed by the ``http_routes`` fixture.
"""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mailcascade.api.v1.dependencies import (
    get_credential_vault,
    get_db_session_factory,
)
from mailcascade.core.config import Settings, get_settings
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.external.email.state_store import InMemoryStateStore
from mailcascade.infrastructure.external.email.vault import CredentialVault, get_vault
from mailcascade.infrastructure.persistence.database import (
    Base,
    get_db,
    get_db_transactional,
)
from mailcascade.infrastructure.persistence.models import EmailIntegration
from mailcascade.main import create_app

TEST_ENCRYPTION_KEY = base64.b64encode(bytes(range(32))).decode("ascii")
TEST_USER_ID = "user_test_1"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _clear_cached_singletons() -> None:
    """Settings and vault are lru_cached; start every test from env."""
    get_settings.cache_clear()
    get_vault.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Fully configured settings that never read .env."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        email_encryption_key=TEST_ENCRYPTION_KEY,
        oauth_state_secret="test-oauth-state-secret",
        microsoft_client_id="test-client-id",
        microsoft_client_secret="test-client-secret",
        app_url="https://app.example.test",
        sendgrid_api_key="SG.test-key",
        platform_from_email="noreply@platform.example.test",
        platform_from_name="Platform",
    )


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory over a fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    yield factory
    await engine.dispose()


@pytest.fixture
def add_integration(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Any]:
    """Insert an email_integration row and return it (detached)."""

    async def _add(**fields: Any) -> EmailIntegration:
        fields.setdefault("user_id", TEST_USER_ID)
        async with session_factory() as session, session.begin():
            integration = EmailIntegration(**fields)
            session.add(integration)
            await session.flush()
            await session.refresh(integration)
        return integration

    return _add


@pytest.fixture
def http_routes() -> dict[str, Handler]:
    """Map of ``"METHOD host/path"`` to handler; tests fill it in."""
    return {}


@pytest.fixture
def http_client(http_routes: dict[str, Handler]) -> httpx.AsyncClient:
    """httpx client whose transport answers from http_routes (404 for anything else)."""

    def dispatch(request: httpx.Request) -> httpx.Response:
        key = f"{request.method} {request.url.host}{request.url.path}"
        handler = http_routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": f"no route for {key}"})
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(dispatch))


@pytest.fixture
def app(
    settings: Settings,
    vault: CredentialVault,
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
) -> FastAPI:
    """Freshly built app wired to the test database, settings and mock HTTP transport.

    The lifespan does not run under ASGITransport, so app.state is filled here.
    """
    app = create_app()

    async def _get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    async def _get_db_transactional() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session, session.begin():
            yield session

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_credential_vault] = lambda: vault
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_db_transactional] = _get_db_transactional

    app.state.http_client = http_client
    app.state.oauth_state_store = InMemoryStateStore()
    app.state.gmail_connector = GmailConnectorClient(settings, http_client)
    return app


@pytest.fixture
async def client(app: FastAPI, http_client: httpx.AsyncClient) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against the test app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await http_client.aclose()


@pytest.fixture
def user_id() -> str:
    """Id of the user every DB fixture writes rows for."""
    return TEST_USER_ID


@pytest.fixture
def auth_headers(settings: Settings) -> dict[str, str]:
    """Headers identifying the test user to the API."""
    return {settings.user_header_name: TEST_USER_ID}
