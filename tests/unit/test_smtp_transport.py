"""Tests for SMTP transport setup (TLS mode per secure flag and port)."""

import pytest

from mailcascade.infrastructure.external.email import smtp_transport


@pytest.fixture
def smtp_kwargs(monkeypatch: pytest.MonkeyPatch) -> dict:
    captured: dict = {}

    class RecordingSMTP:
        def __init__(self, **kwargs) -> None:
            captured.update(kwargs)

    monkeypatch.setattr(smtp_transport.aiosmtplib, "SMTP", RecordingSMTP)
    return captured


@pytest.mark.parametrize(
    ("port", "secure", "use_tls", "start_tls"),
    [
        (465, True, True, False),
        (587, True, False, True),
        (587, False, False, None),
        (25, False, False, None),
    ],
)
def test_tls_mode_follows_secure_flag(
    smtp_kwargs: dict, port: int, secure: bool, use_tls: bool, start_tls: bool | None
) -> None:
    smtp_transport.create_smtp_client("smtp.acme.example.com", port, secure)

    assert smtp_kwargs["hostname"] == "smtp.acme.example.com"
    assert smtp_kwargs["port"] == port
    assert smtp_kwargs["use_tls"] is use_tls
    assert smtp_kwargs["start_tls"] is start_tls


def test_insecure_flag_never_disables_starttls(smtp_kwargs: dict) -> None:
    """secure=False still upgrades when the server offers STARTTLS, so AUTH is not sent in clear."""
    smtp_transport.create_smtp_client("smtp.acme.example.com", 587, secure=False)
    assert smtp_kwargs["start_tls"] is not False
