"""HTTP middleware. Applied in main; first added = outermost."""

from mailcascade.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
