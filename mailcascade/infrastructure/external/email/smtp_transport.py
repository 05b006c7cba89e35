"""SMTP submission with aiosmtplib: TLS mode selection, login, send, verify."""

from __future__ import annotations

from collections.abc import Sequence
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

import aiosmtplib

from mailcascade.application.dtos.email import EmailAttachment

SMTP_TIMEOUT_SECONDS = 10.0
DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


def create_smtp_client(host: str, port: int, secure: bool) -> aiosmtplib.SMTP:
    """TLS mode from the secure flag; AUTH never goes out before TLS when the server offers it.

    - secure on 465: implicit TLS
    - secure on any other port: STARTTLS, required
    - not secure: STARTTLS when the server advertises it (start_tls=None)
    """
    if secure and port == 465:
        use_tls, start_tls = True, False
    elif secure:
        use_tls, start_tls = False, True
    else:
        use_tls, start_tls = False, None
    return aiosmtplib.SMTP(
        hostname=host,
        port=port,
        use_tls=use_tls,
        start_tls=start_tls,
        timeout=SMTP_TIMEOUT_SECONDS,
    )


def build_email_message(
    *,
    from_email: str,
    from_name: str | None,
    to: str,
    subject: str,
    html: str,
    text: str | None = None,
    reply_to: str | None = None,
    attachments: Sequence[EmailAttachment] = (),
) -> EmailMessage:
    """Build an EmailMessage with a generated Message-ID (text + html alternative, attachments)."""
    message = EmailMessage()
    message["From"] = formataddr((from_name, from_email)) if from_name else from_email
    message["To"] = to
    message["Subject"] = subject
    if reply_to:
        message["Reply-To"] = reply_to
    domain = from_email.rsplit("@", 1)[-1] if "@" in from_email else None
    message["Message-ID"] = make_msgid(domain=domain)

    message.set_content(text or "")
    message.add_alternative(html, subtype="html")
    for attachment in attachments:
        maintype, _, subtype = (attachment.content_type or DEFAULT_ATTACHMENT_TYPE).partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return message


async def send_via_smtp(
    message: EmailMessage,
    *,
    host: str,
    port: int,
    username: str,
    password: str | None,
    secure: bool,
) -> None:
    """Connect, authenticate, send, quit. aiosmtplib errors propagate."""
    smtp = create_smtp_client(host, port, secure)
    await smtp.connect()
    try:
        if username and password:
            await smtp.login(username, password)
        await smtp.send_message(message)
    finally:
        try:
            await smtp.quit()
        except aiosmtplib.SMTPException:
            smtp.close()


async def verify_smtp(
    *,
    host: str,
    port: int,
    username: str,
    password: str | None,
    secure: bool,
) -> None:
    """Connect and log in without sending. aiosmtplib errors propagate."""
    smtp = create_smtp_client(host, port, secure)
    await smtp.connect()
    try:
        if username and password:
            await smtp.login(username, password)
    finally:
        try:
            await smtp.quit()
        except aiosmtplib.SMTPException:
            smtp.close()
