"""Repository tests against an in-memory SQLite database."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from mailcascade.infrastructure.persistence.models import EmailIntegration
from mailcascade.infrastructure.persistence.repositories import (
    EmailDeliveryLogRepository,
    EmailIntegrationRepository,
)
from mailcascade.shared.utils.datetime import utc_now


async def test_upsert_creates_then_updates_single_row(session_factory, user_id) -> None:
    async with session_factory() as session, session.begin():
        repo = EmailIntegrationRepository(session)
        created = await repo.upsert(user_id, "smtp", status="connected", smtp_host="a.example.com")
        updated = await repo.upsert(user_id, "smtp", smtp_host="b.example.com")
        rows = await repo.list_by_user(user_id)

    assert created.id == updated.id
    assert len(rows) == 1
    assert rows[0].smtp_host == "b.example.com"
    assert rows[0].status == "connected"


async def test_one_row_per_user_and_provider(session_factory, user_id) -> None:
    with pytest.raises(IntegrityError):
        async with session_factory() as session, session.begin():
            session.add(EmailIntegration(user_id=user_id, provider="outlook"))
            session.add(EmailIntegration(user_id=user_id, provider="outlook"))
            await session.flush()


async def test_get_connected_ignores_other_statuses(
    session_factory, add_integration, user_id
) -> None:
    await add_integration(provider="outlook", status="error")
    async with session_factory() as session:
        repo = EmailIntegrationRepository(session)
        assert await repo.get_connected(user_id, "outlook") is None
        assert await repo.get_by_user_and_provider(user_id, "outlook") is not None


async def test_new_integration_defaults(session_factory, user_id) -> None:
    async with session_factory() as session, session.begin():
        row = await EmailIntegrationRepository(session).create(
            EmailIntegration(user_id=user_id, provider="smtp")
        )
    assert row.status == "disconnected"
    assert row.smtp_secure is True
    assert row.id
    assert row.created_at is not None


async def test_update_tokens_keeps_refresh_token_when_none(
    session_factory, add_integration
) -> None:
    integration = await add_integration(
        provider="outlook", status="connected", refresh_token="rt-old", last_error="x"
    )
    expires = utc_now() + timedelta(hours=1)
    async with session_factory() as session, session.begin():
        repo = EmailIntegrationRepository(session)
        current = await repo.get_by_id(integration.id)
        row = await repo.update_tokens(
            current, access_token="at-new", refresh_token=None, expires_at=expires
        )
    assert row.access_token == "at-new"
    assert row.refresh_token == "rt-old"
    assert row.last_error is None


async def test_mark_disconnected_keeps_refresh_token_by_default(
    session_factory, add_integration
) -> None:
    integration = await add_integration(
        provider="outlook", status="connected", access_token="at", refresh_token="rt"
    )
    async with session_factory() as session, session.begin():
        repo = EmailIntegrationRepository(session)
        row = await repo.mark_disconnected(
            await repo.get_by_id(integration.id), reason="revoked"
        )
    assert row.status == "disconnected"
    assert row.access_token is None
    assert row.refresh_token == "rt"
    assert row.last_error == "revoked"


async def test_mark_error_on_missing_row_is_noop(session_factory) -> None:
    async with session_factory() as session, session.begin():
        assert await EmailIntegrationRepository(session).mark_error("missing", "x") is None


async def test_touch_last_used(session_factory, add_integration) -> None:
    integration = await add_integration(provider="smtp", status="connected")
    async with session_factory() as session, session.begin():
        await EmailIntegrationRepository(session).touch_last_used(integration.id)
    async with session_factory() as session:
        row = await session.get(EmailIntegration, integration.id)
    assert row.last_used_at is not None


async def test_delivery_log_pending_then_sent(session_factory, user_id) -> None:
    async with session_factory() as session, session.begin():
        repo = EmailDeliveryLogRepository(session)
        entry = await repo.create_pending(
            user_id=user_id,
            recipient_email="client@example.com",
            subject="Receipt",
            email_type="receipt",
        )
        assert entry.status == "pending"
        sent = await repo.mark_sent(entry.id, sent_via="sendgrid", message_id="sg-1")
    assert sent.status == "sent"
    assert sent.sent_via == "sendgrid"
    assert sent.sent_at is not None


async def test_delivery_log_list_is_scoped_to_user(session_factory, user_id) -> None:
    async with session_factory() as session, session.begin():
        repo = EmailDeliveryLogRepository(session)
        for i in range(3):
            await repo.create_pending(
                user_id=user_id,
                recipient_email=f"c{i}@example.com",
                subject=f"Quote {i}",
                email_type="quote",
            )
        await repo.create_pending(
            user_id="someone_else",
            recipient_email="x@example.com",
            subject="Other",
            email_type="quote",
        )
    async with session_factory() as session:
        repo = EmailDeliveryLogRepository(session)
        mine = await repo.list_by_user(user_id)
        page = await repo.list_by_user(user_id, skip=1, limit=1)
    assert len(mine) == 3
    assert {e.user_id for e in mine} == {user_id}
    assert len(page) == 1
