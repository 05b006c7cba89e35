"""Tests for Settings parsing and validation."""

import pytest
from pydantic import ValidationError

from mailcascade.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.channel_priority == ["smtp", "outlook", "sendgrid", "gmail_connector"]
    assert settings.oauth_state_ttl_seconds == 600
    assert settings.token_refresh_max_attempts == 3
    assert settings.database_auto_create is False
    assert settings.microsoft_authority == "https://login.microsoftonline.com/common"


def test_channel_priority_is_normalized() -> None:
    settings = Settings(_env_file=None, email_channel_priority=" SendGrid , smtp,, ")
    assert settings.channel_priority == ["sendgrid", "smtp"]


def test_unknown_channel_is_rejected() -> None:
    with pytest.raises(ValidationError, match="unknown channels"):
        Settings(_env_file=None, email_channel_priority="smtp,carrier_pigeon")


def test_unknown_state_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, oauth_state_backend="memcached")


def test_refresh_attempts_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, token_refresh_max_attempts=0)


@pytest.mark.parametrize(
    ("app_url", "expected"),
    [
        ("https://app.example.com", "https://app.example.com/api/v1/email-integrations/outlook/callback"),
        ("app.example.com/", "https://app.example.com/api/v1/email-integrations/outlook/callback"),
    ],
)
def test_outlook_redirect_uri(app_url: str, expected: str) -> None:
    assert Settings(_env_file=None, app_url=app_url).outlook_redirect_uri == expected


def test_secrets_are_not_in_repr() -> None:
    settings = Settings(_env_file=None, sendgrid_api_key="SG.super-secret")
    assert "SG.super-secret" not in repr(settings)
