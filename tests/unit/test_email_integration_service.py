"""Tests for EmailIntegrationService (SMTP connect/test, disconnect, Gmail connector status)."""

import aiosmtplib
import httpx
import pytest

from mailcascade.application.dtos.integration import SmtpConfig
from mailcascade.core.config import Settings
from mailcascade.domain.exceptions import SmtpVerificationError
from mailcascade.infrastructure.external.email.connector_client import GmailConnectorClient
from mailcascade.infrastructure.persistence.models import EmailIntegration
from mailcascade.infrastructure.persistence.repositories import EmailIntegrationRepository
from mailcascade.infrastructure.services import EmailIntegrationService

CONFIG = SmtpConfig(
    host="smtp.acme.example.com",
    port=465,
    user="owner@acme.example.com",
    password="app-password",
    secure=True,
    email_address="owner@acme.example.com",
    display_name="Acme Plumbing",
)


class FakeVerifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict] = []

    async def __call__(self, **kwargs) -> None:
        self.calls.append(kwargs)
        if self.error:
            raise self.error


@pytest.fixture
def run_service(session_factory, vault):
    """Run fn(service) inside one committed transaction, like a write request."""

    async def _run(fn, verifier=None, gmail_connector=None):
        async with session_factory() as session, session.begin():
            service = EmailIntegrationService(
                EmailIntegrationRepository(session),
                vault,
                gmail_connector,
                smtp_verifier=verifier or FakeVerifier(),
            )
            return await fn(service)

    return _run


async def _rows(session_factory, user_id) -> list[EmailIntegration]:
    async with session_factory() as session:
        return await EmailIntegrationRepository(session).list_by_user(user_id)


async def test_connect_smtp_verifies_then_stores_encrypted(
    run_service, session_factory, vault, user_id
) -> None:
    verifier = FakeVerifier()
    await run_service(lambda s: s.connect_smtp(user_id, CONFIG), verifier)

    assert verifier.calls == [
        {
            "host": "smtp.acme.example.com",
            "port": 465,
            "username": "owner@acme.example.com",
            "password": "app-password",
            "secure": True,
        }
    ]
    [row] = await _rows(session_factory, user_id)
    assert row.provider == "smtp"
    assert row.status == "connected"
    assert row.smtp_password != "app-password"
    assert vault.decrypt(row.smtp_password) == "app-password"
    assert row.display_name == "Acme Plumbing"
    assert row.last_error is None


async def test_connect_smtp_updates_existing_row(
    run_service, session_factory, add_integration, user_id
) -> None:
    existing = await add_integration(
        provider="smtp", status="error", smtp_host="old.example.com", last_error="auth failed"
    )
    await run_service(lambda s: s.connect_smtp(user_id, CONFIG))

    [row] = await _rows(session_factory, user_id)
    assert row.id == existing.id
    assert row.status == "connected"
    assert row.smtp_host == "smtp.acme.example.com"
    assert row.last_error is None


async def test_connect_smtp_verification_failure_writes_nothing(
    run_service, session_factory, user_id
) -> None:
    verifier = FakeVerifier(aiosmtplib.SMTPAuthenticationError(535, "bad credentials"))
    with pytest.raises(SmtpVerificationError):
        await run_service(lambda s: s.connect_smtp(user_id, CONFIG), verifier)
    assert await _rows(session_factory, user_id) == []


async def test_disconnect_drops_all_secrets(
    run_service, session_factory, add_integration, user_id
) -> None:
    await add_integration(provider="smtp", status="connected", smtp_password="enc-pw")
    await add_integration(
        provider="outlook", status="connected", access_token="enc-a", refresh_token="enc-r"
    )

    count = await run_service(lambda s: s.disconnect(user_id))

    assert count == 2
    for row in await _rows(session_factory, user_id):
        assert row.status == "disconnected"
        assert row.smtp_password is None
        assert row.access_token is None
        assert row.refresh_token is None


async def test_disconnect_is_idempotent(run_service, user_id) -> None:
    assert await run_service(lambda s: s.disconnect(user_id)) == 0
    assert await run_service(lambda s: s.disconnect(user_id)) == 0


async def test_test_connection_success(run_service, add_integration, vault, user_id) -> None:
    await add_integration(
        provider="smtp",
        status="connected",
        smtp_host="smtp.acme.example.com",
        smtp_port=587,
        smtp_user="owner",
        smtp_password=vault.encrypt("pw"),
        smtp_secure=False,
    )
    verifier = FakeVerifier()
    result = await run_service(lambda s: s.test_connection(user_id), verifier)
    assert result.success is True
    assert verifier.calls[0]["password"] == "pw"
    assert verifier.calls[0]["secure"] is False


async def test_test_connection_failure_marks_error(
    run_service, session_factory, add_integration, user_id
) -> None:
    await add_integration(
        provider="smtp",
        status="connected",
        smtp_host="smtp.acme.example.com",
        smtp_port=587,
        smtp_user="owner",
        smtp_password="pw",
    )
    verifier = FakeVerifier(aiosmtplib.SMTPConnectError("Connection refused"))

    result = await run_service(lambda s: s.test_connection(user_id), verifier)

    assert result.success is False
    assert "Connection refused" in result.message
    [row] = await _rows(session_factory, user_id)
    assert row.status == "error"
    assert "Connection refused" in row.last_error


async def test_test_connection_without_integration(run_service, user_id) -> None:
    result = await run_service(lambda s: s.test_connection(user_id))
    assert result.success is False
    assert "connect your email" in result.message


async def test_gmail_status_without_connector(run_service) -> None:
    status = await run_service(lambda s: s.get_gmail_connector_status())
    assert status.connected is False


async def test_gmail_status_uses_profile_local_part(run_service, http_client, http_routes) -> None:
    http_routes["GET connectors.example.com/api/v2/connection"] = lambda r: httpx.Response(
        200, json={"items": [{"settings": {"access_token": "t"}}]}
    )
    http_routes["GET gmail.googleapis.com/gmail/v1/users/me/profile"] = lambda r: httpx.Response(
        200, json={"emailAddress": "acme.plumbing@gmail.com"}
    )
    connector = GmailConnectorClient(
        Settings(
            _env_file=None,
            replit_connectors_hostname="connectors.example.com",
            web_repl_renewal="renewal-token",
        ),
        http_client,
    )

    status = await run_service(lambda s: s.get_gmail_connector_status(), gmail_connector=connector)

    assert status.connected is True
    assert status.email == "acme.plumbing@gmail.com"
    assert status.display_name == "acme.plumbing"


async def test_gmail_status_connected_without_profile(
    run_service, http_client, http_routes
) -> None:
    http_routes["GET connectors.example.com/api/v2/connection"] = lambda r: httpx.Response(
        200, json={"items": [{"settings": {"oauth": {"credentials": {"access_token": "t"}}}}]}
    )
    http_routes["GET gmail.googleapis.com/gmail/v1/users/me/profile"] = lambda r: httpx.Response(403)
    connector = GmailConnectorClient(
        Settings(
            _env_file=None,
            replit_connectors_hostname="connectors.example.com",
            repl_identity="identity",
        ),
        http_client,
    )

    status = await run_service(lambda s: s.get_gmail_connector_status(), gmail_connector=connector)

    assert status.connected is True
    assert status.email is None
    assert status.display_name == "Gmail Connector"
