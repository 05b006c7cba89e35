"""Tests for OutlookConnectService: consent URL, callback, disconnect, status."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from mailcascade.core.config import Settings
from mailcascade.domain.exceptions import (
    AuthenticationException,
    ConfigurationError,
    OAuthStateError,
)
from mailcascade.infrastructure.external.email.oauth_drivers import OutlookDriver
from mailcascade.infrastructure.external.email.oauth_state import OAuthStateManager
from mailcascade.infrastructure.external.email.state_store import InMemoryStateStore
from mailcascade.infrastructure.persistence.repositories import EmailIntegrationRepository
from mailcascade.infrastructure.services import OutlookConnectService

TOKEN_ROUTE = "POST login.microsoftonline.com/common/oauth2/v2.0/token"
ME_ROUTE = "GET graph.microsoft.com/v1.0/me"


@pytest.fixture
def state_manager(settings) -> OAuthStateManager:
    return OAuthStateManager(InMemoryStateStore(), settings)


@pytest.fixture
def run_service(session_factory, state_manager, vault, settings, http_client):
    async def _run(fn, service_settings: Settings | None = None):
        active = service_settings or settings
        async with session_factory() as session, session.begin():
            service = OutlookConnectService(
                EmailIntegrationRepository(session),
                state_manager,
                vault,
                active,
                driver_factory=lambda: OutlookDriver.from_settings(active, http_client),
            )
            return await fn(service)

    return _run


async def _outlook_row(session_factory, user_id):
    async with session_factory() as session:
        return await EmailIntegrationRepository(session).get_by_user_and_provider(
            user_id, "outlook"
        )


async def test_authorize_url_carries_client_scopes_and_state(run_service, user_id) -> None:
    url = await run_service(lambda s: s.build_authorize_url(user_id))

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.netloc == "login.microsoftonline.com"
    assert parsed.path == "/common/oauth2/v2.0/authorize"
    assert query["client_id"] == ["test-client-id"]
    assert query["response_type"] == ["code"]
    assert query["response_mode"] == ["query"]
    assert query["prompt"] == ["consent"]
    assert query["redirect_uri"] == [
        "https://app.example.test/api/v1/email-integrations/outlook/callback"
    ]
    assert query["scope"] == ["openid profile email Mail.Send Mail.ReadWrite offline_access"]
    assert query["state"][0]


async def test_authorize_without_microsoft_app_raises(run_service, user_id) -> None:
    unconfigured = Settings(_env_file=None, oauth_state_secret="s")
    with pytest.raises(ConfigurationError):
        await run_service(lambda s: s.build_authorize_url(user_id), unconfigured)


async def test_callback_connects_with_encrypted_tokens(
    run_service, state_manager, http_routes, session_factory, vault, user_id
) -> None:
    exchanged: list[dict] = []

    def token_handler(request: httpx.Request) -> httpx.Response:
        exchanged.append(parse_qs(request.content.decode()))
        return httpx.Response(
            200,
            json={"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3600},
        )

    http_routes[TOKEN_ROUTE] = token_handler
    http_routes[ME_ROUTE] = lambda r: httpx.Response(
        200, json={"userPrincipalName": "owner@contoso.com", "displayName": "Owner"}
    )
    state = await state_manager.issue(user_id)

    result = await run_service(lambda s: s.handle_callback("auth-code", state))

    assert result.user_id == user_id
    assert result.email == "owner@contoso.com"
    assert exchanged[0]["grant_type"] == ["authorization_code"]
    assert exchanged[0]["code"] == ["auth-code"]
    row = await _outlook_row(session_factory, user_id)
    assert row.status == "connected"
    assert vault.decrypt(row.access_token) == "at-1"
    assert vault.decrypt(row.refresh_token) == "rt-1"
    assert row.refresh_token != "rt-1"
    assert row.token_expires_at is not None


async def test_callback_with_invalid_state_raises(run_service) -> None:
    with pytest.raises(OAuthStateError):
        await run_service(lambda s: s.handle_callback("auth-code", "forged:c3RhdGU="))


async def test_callback_state_cannot_be_replayed(
    run_service, state_manager, http_routes, user_id
) -> None:
    http_routes[TOKEN_ROUTE] = lambda r: httpx.Response(
        200, json={"access_token": "at", "refresh_token": "rt"}
    )
    http_routes[ME_ROUTE] = lambda r: httpx.Response(200, json={"mail": "owner@contoso.com"})
    state = await state_manager.issue(user_id)
    await run_service(lambda s: s.handle_callback("code", state))
    with pytest.raises(OAuthStateError):
        await run_service(lambda s: s.handle_callback("code", state))


async def test_callback_without_refresh_token_fails(
    run_service, state_manager, http_routes, session_factory, user_id
) -> None:
    http_routes[TOKEN_ROUTE] = lambda r: httpx.Response(200, json={"access_token": "at"})
    state = await state_manager.issue(user_id)

    with pytest.raises(AuthenticationException, match="No refresh token received"):
        await run_service(lambda s: s.handle_callback("code", state))
    assert await _outlook_row(session_factory, user_id) is None


async def test_callback_profile_failure_still_connects(
    run_service, state_manager, http_routes, session_factory, user_id
) -> None:
    http_routes[TOKEN_ROUTE] = lambda r: httpx.Response(
        200, json={"access_token": "at", "refresh_token": "rt"}
    )
    http_routes[ME_ROUTE] = lambda r: httpx.Response(500)
    state = await state_manager.issue(user_id)

    result = await run_service(lambda s: s.handle_callback("code", state))

    assert result.email is None
    row = await _outlook_row(session_factory, user_id)
    assert row.status == "connected"


async def test_disconnect_clears_tokens_and_is_idempotent(
    run_service, add_integration, session_factory, user_id
) -> None:
    assert await run_service(lambda s: s.disconnect(user_id)) is False
    await add_integration(
        provider="outlook",
        status="connected",
        access_token="a",
        refresh_token="r",
        email_address="owner@contoso.com",
    )

    assert await run_service(lambda s: s.disconnect(user_id)) is True

    row = await _outlook_row(session_factory, user_id)
    assert row.status == "disconnected"
    assert row.access_token is None and row.refresh_token is None
    assert row.email_address is None
    assert await run_service(lambda s: s.disconnect(user_id)) is True


async def test_connection_info(run_service, add_integration, user_id) -> None:
    info = await run_service(lambda s: s.get_connection_info(user_id))
    assert (info.configured, info.connected, info.email) == (True, False, None)

    await add_integration(provider="outlook", status="connected", email_address="o@contoso.com")
    info = await run_service(lambda s: s.get_connection_info(user_id))
    assert (info.configured, info.connected, info.email) == (True, True, "o@contoso.com")
