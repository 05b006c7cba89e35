"""Hand-built RFC 822 / MIME documents for raw-message APIs (Gmail messages.send).

Line endings are CRLF. With attachments the document is multipart/mixed whose
first part is a nested multipart/alternative; without attachments it is a
single multipart/alternative.
"""

from __future__ import annotations

import base64
import secrets
from collections.abc import Sequence

from mailcascade.application.dtos.email import EmailAttachment

CRLF = "\r\n"
DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


def encode_header_word(value: str) -> str:
    """RFC 2047 B-encoded word (always UTF-8)."""
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return f"=?UTF-8?B?{encoded}?="


def format_address(email: str, name: str | None = None) -> str:
    """``"Name" <email>``; non-ASCII names are encoded."""
    if not name:
        return email
    if name.isascii():
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}" <{email}>'
    return f"{encode_header_word(name)} <{email}>"


def _wrap_base64(data: bytes) -> list[str]:
    encoded = base64.b64encode(data).decode("ascii")
    return [encoded[i : i + 76] for i in range(0, len(encoded), 76)] or [""]


def _alternative_part(boundary: str, html: str, text: str | None) -> list[str]:
    lines: list[str] = []
    if text:
        lines += [
            f"--{boundary}",
            'Content-Type: text/plain; charset="UTF-8"',
            "",
            text,
        ]
    lines += [
        f"--{boundary}",
        'Content-Type: text/html; charset="UTF-8"',
        "",
        html,
        f"--{boundary}--",
    ]
    return lines


def build_mime_message(
    *,
    to: str,
    subject: str,
    html: str,
    from_email: str,
    from_name: str | None = None,
    text: str | None = None,
    reply_to: str | None = None,
    attachments: Sequence[EmailAttachment] = (),
    boundary: str | None = None,
) -> str:
    """Return the MIME document as a str with CRLF line endings."""
    mixed_boundary = boundary or f"mixed_{secrets.token_hex(12)}"
    alt_boundary = f"alt_{mixed_boundary}"

    lines = [
        f"From: {format_address(from_email, from_name)}",
        f"To: {to}",
        f"Subject: {encode_header_word(subject)}",
    ]
    if reply_to:
        lines.append(f"Reply-To: {reply_to}")
    lines.append("MIME-Version: 1.0")

    if attachments:
        lines += [
            f'Content-Type: multipart/mixed; boundary="{mixed_boundary}"',
            "",
            f"--{mixed_boundary}",
            f'Content-Type: multipart/alternative; boundary="{alt_boundary}"',
            "",
        ]
        lines += _alternative_part(alt_boundary, html, text)
        for attachment in attachments:
            lines += [
                f"--{mixed_boundary}",
                f"Content-Type: {attachment.content_type or DEFAULT_ATTACHMENT_TYPE}",
                "Content-Transfer-Encoding: base64",
                f'Content-Disposition: attachment; filename="{attachment.filename}"',
                "",
            ]
            lines += _wrap_base64(attachment.content)
        lines.append(f"--{mixed_boundary}--")
    else:
        lines += [
            f'Content-Type: multipart/alternative; boundary="{alt_boundary}"',
            "",
        ]
        lines += _alternative_part(alt_boundary, html, text)

    return CRLF.join(lines)


def encode_raw_message(mime: str) -> str:
    """URL-safe base64 without padding, as expected by the Gmail API ``raw`` field."""
    return base64.urlsafe_b64encode(mime.encode("utf-8")).decode("ascii").rstrip("=")
