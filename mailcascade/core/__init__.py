"""Core: config, lifespan, exception handlers, rate limiter."""

from mailcascade.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
