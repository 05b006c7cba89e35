"""Shared utilities: UTC datetimes, id generation."""

from mailcascade.shared.utils.datetime import ensure_utc, utc_now, utc_now_ms
from mailcascade.shared.utils.generators import generate_cuid

__all__ = [
    "generate_cuid",
    "utc_now",
    "utc_now_ms",
    "ensure_utc",
]
