"""Diagnose a user's email setup: integration rows and recent delivery attempts.

Prints each integration (provider, status, address, token expiry, last error)
and the latest delivery log entries. Never prints passwords or tokens.

Usage:
    uv run python -m scripts.diagnose_email_integration <user_id> [limit]

Requires: DATABASE_URL (reads .env from the project root).
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_* when run as script."""
    load_dotenv(_project_root() / ".env", override=True)


async def _diagnose(user_id: str, limit: int) -> None:
    from mailcascade.infrastructure.external.email.vault import get_vault
    from mailcascade.infrastructure.persistence.database import get_session_factory
    from mailcascade.infrastructure.persistence.repositories import (
        EmailDeliveryLogRepository,
        EmailIntegrationRepository,
    )

    print(f"Vault enabled: {get_vault().is_enabled}")
    factory = get_session_factory()
    async with factory() as session:
        integrations = await EmailIntegrationRepository(session).list_by_user(user_id)
        logs = await EmailDeliveryLogRepository(session).list_by_user(user_id, limit=limit)

    if not integrations:
        print(f"No email integrations for user {user_id}")
    for i in integrations:
        print(
            f"[{i.provider}] status={i.status} email={i.email_address or '-'} "
            f"has_password={i.smtp_password is not None} "
            f"has_refresh_token={i.refresh_token is not None} "
            f"expires_at={i.token_expires_at or '-'} last_used={i.last_used_at or '-'}"
        )
        if i.last_error:
            print(f"    last_error: {i.last_error}")

    print(f"\nLast {len(logs)} delivery attempt(s):")
    for entry in logs:
        print(
            f"{entry.created_at:%Y-%m-%d %H:%M:%S} {entry.status:<7} "
            f"via={entry.sent_via or '-':<15} to={entry.recipient_email} type={entry.type}"
        )
        if entry.error_message:
            print(f"    error: {entry.error_message}")


def main() -> None:
    if len(sys.argv) < 2:
        print(
            "Usage: uv run python -m scripts.diagnose_email_integration <user_id> [limit]",
            file=sys.stderr,
        )
        sys.exit(1)
    _load_env()
    limit = int(sys.argv[2]) if len(sys.argv) > 2 else 10
    asyncio.run(_diagnose(sys.argv[1], limit))


if __name__ == "__main__":
    main()
