"""API tests for POST /emails/send and GET /emails/logs."""

import base64
import json

import httpx
from httpx import AsyncClient

SENDGRID_ROUTE = "POST api.sendgrid.com/v3/mail/send"


def _body(**overrides) -> dict:
    body = {
        "to": "client@example.com",
        "subject": "Your receipt",
        "html": "<p>Thanks for your payment</p>",
        "email_type": "receipt",
        "related_id": "pay_77",
    }
    body.update(overrides)
    return body


async def test_send_requires_user_header(client: AsyncClient) -> None:
    response = await client.post("/api/v1/emails/send", json=_body())
    assert response.status_code == 401


async def test_send_falls_back_to_platform_channel(
    client: AsyncClient, auth_headers, http_routes
) -> None:
    seen: list[httpx.Request] = []
    http_routes[SENDGRID_ROUTE] = lambda r: seen.append(r) or httpx.Response(
        202, headers={"X-Message-Id": "sg-abc"}
    )
    pdf = base64.b64encode(b"%PDF-1.4 receipt").decode()

    response = await client.post(
        "/api/v1/emails/send",
        json=_body(
            from_name="Acme Plumbing",
            attachments=[{"filename": "receipt.pdf", "content": pdf}],
        ),
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["sent_via"] == "sendgrid"
    assert data["message_id"] == "sg-abc"
    assert data["delivery_log_id"]
    payload = json.loads(seen[0].content)
    assert payload["attachments"][0]["filename"] == "receipt.pdf"
    assert payload["from"]["name"] == "Acme Plumbing"


async def test_failed_delivery_is_reported_not_raised(
    client: AsyncClient, auth_headers, http_routes
) -> None:
    http_routes[SENDGRID_ROUTE] = lambda r: httpx.Response(
        401, json={"errors": [{"message": "Permission denied, wrong credentials"}]}
    )

    response = await client.post("/api/v1/emails/send", json=_body(), headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["error"].startswith("All email sending methods failed")
    assert "sendgrid: Permission denied" in data["error"]


async def test_invalid_body_returns_422(client: AsyncClient, auth_headers) -> None:
    response = await client.post(
        "/api/v1/emails/send",
        json=_body(to="not-an-email", email_type="newsletter"),
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_attachment_must_be_base64(client: AsyncClient, auth_headers) -> None:
    response = await client.post(
        "/api/v1/emails/send",
        json=_body(attachments=[{"filename": "a.pdf", "content": "%%% not base64"}]),
        headers=auth_headers,
    )
    assert response.status_code == 422


async def test_logs_list_callers_entries(client: AsyncClient, auth_headers, http_routes) -> None:
    http_routes[SENDGRID_ROUTE] = lambda r: httpx.Response(202)
    await client.post("/api/v1/emails/send", json=_body(), headers=auth_headers)
    await client.post(
        "/api/v1/emails/send", json=_body(), headers={"X-User-ID": "another_user"}
    )

    response = await client.get("/api/v1/emails/logs", headers=auth_headers)

    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 1
    assert entries[0]["status"] == "sent"
    assert entries[0]["sent_via"] == "sendgrid"
    assert entries[0]["type"] == "receipt"
    assert entries[0]["related_id"] == "pay_77"
