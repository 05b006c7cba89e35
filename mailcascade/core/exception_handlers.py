"""FastAPI exception handlers: every error leaves as ``{"error", "message", ...}`` JSON.

Register once with register_exception_handlers(app).
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mailcascade.core.config import get_settings
from mailcascade.domain.exceptions import MailCascadeException

logger = logging.getLogger(__name__)

# error_code -> HTTP status; unlisted codes map to 400
_ERROR_CODE_STATUS: dict[str, int] = {
    "CONFIGURATION_ERROR": 503,
    "VALIDATION_ERROR": 400,
    "AUTHENTICATION_ERROR": 401,
    "REAUTH_REQUIRED": 401,
    "OAUTH_STATE_INVALID": 400,
    "SMTP_VERIFICATION_FAILED": 400,
    "NOT_CONNECTED": 404,
    "RESOURCE_NOT_FOUND": 404,
    "TRANSIENT_NETWORK_ERROR": 502,
    "REFRESH_FAILED": 502,
}


def _status_for(exc: MailCascadeException) -> int:
    return _ERROR_CODE_STATUS.get(exc.error_code, 400)


def _request_id(request: Request) -> str | None:
    return request.scope.get("state", {}).get("request_id")


def _domain_exception_handler(request: Request, exc: MailCascadeException) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.warning(
            "%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message
        )
    return JSONResponse(status_code=status, content=exc.to_dict())


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 with pydantic's error list; ctx values are stringified so they serialize."""
    details: list[dict[str, Any]] = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k != "ctx"}
        if "ctx" in err:
            item["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        details.append(item)
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": details,
        },
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500; the exception text is exposed only in debug mode."""
    request_id = _request_id(request)
    logger.exception("Unhandled exception (request_id=%s): %s", request_id, exc)
    message = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": message, "request_id": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MailCascadeException, _domain_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
