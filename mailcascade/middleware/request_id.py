"""Request id middleware (raw ASGI).

Forwards the caller's request id when it looks sane, otherwise mints a
UUID4. The id is stored on ``scope["state"]`` and echoed on the response.
"""

import re
import uuid
from typing import Callable

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def sanitize_request_id(raw: str | None) -> str:
    """Return raw (stripped) if it is 1-64 chars of [A-Za-z0-9_-]; else a new UUID4."""
    candidate = (raw or "").strip()
    if _VALID_REQUEST_ID.match(candidate):
        return candidate
    return str(uuid.uuid4())


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    header_key = header_name.lower().encode("latin-1")

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        incoming = next(
            (v.decode("latin-1") for k, v in scope.get("headers", []) if k.lower() == header_key),
            None,
        )
        request_id = sanitize_request_id(incoming)
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (header_key, request_id.encode("latin-1")),
                ]
            await send(message)

        await app(scope, receive, send_with_request_id)

    return asgi_app
