"""Storage for pending OAuth state entries (signature -> user_id, created_at).

InMemoryStateStore keeps entries in the process; RedisStateStore shares them
across workers and lets Redis expire them.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from mailcascade.core.config import Settings
from mailcascade.shared.telemetry.logging import get_logger
from mailcascade.shared.utils.datetime import utc_now_ms

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "oauth_state:"


@dataclass(frozen=True)
class StateEntry:
    """A pending OAuth state bound to a user."""

    user_id: str
    created_at_ms: int


class StateStore(Protocol):
    """Async key-value store for pending OAuth states."""

    async def get(self, signature: str) -> StateEntry | None: ...

    async def set(self, signature: str, entry: StateEntry, ttl_seconds: int) -> None: ...

    async def pop(self, signature: str) -> StateEntry | None:
        """Remove and return the entry in one step; None when absent."""
        ...

    async def delete(self, signature: str) -> None: ...

    async def sweep(self, max_age_seconds: int) -> int: ...

    async def close(self) -> None: ...


class InMemoryStateStore:
    """Process-local store guarded by an asyncio.Lock."""

    def __init__(self) -> None:
        self._entries: dict[str, StateEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, signature: str) -> StateEntry | None:
        async with self._lock:
            return self._entries.get(signature)

    async def set(self, signature: str, entry: StateEntry, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[signature] = entry

    async def delete(self, signature: str) -> None:
        async with self._lock:
            self._entries.pop(signature, None)

    async def pop(self, signature: str) -> StateEntry | None:
        async with self._lock:
            return self._entries.pop(signature, None)

    async def sweep(self, max_age_seconds: int) -> int:
        """Drop entries older than max_age_seconds; returns how many were removed."""
        cutoff = utc_now_ms() - max_age_seconds * 1000
        async with self._lock:
            expired = [k for k, v in self._entries.items() if v.created_at_ms < cutoff]
            for key in expired:
                del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisStateStore:
    """Redis-backed store; keys expire server-side so sweep is a no-op."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisStateStore:
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=(
                settings.redis_password.get_secret_value()
                if settings.redis_password
                else None
            ),
            decode_responses=True,
        )
        return cls(client)

    async def get(self, signature: str) -> StateEntry | None:
        return self._decode(await self._redis.get(f"{REDIS_KEY_PREFIX}{signature}"))

    async def pop(self, signature: str) -> StateEntry | None:
        """GETDEL, so two workers racing on one state cannot both read it."""
        return self._decode(await self._redis.getdel(f"{REDIS_KEY_PREFIX}{signature}"))

    @staticmethod
    def _decode(raw: str | None) -> StateEntry | None:
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return StateEntry(user_id=data["user_id"], created_at_ms=int(data["created_at_ms"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding malformed OAuth state entry in Redis")
            return None

    async def set(self, signature: str, entry: StateEntry, ttl_seconds: int) -> None:
        payload = json.dumps({"user_id": entry.user_id, "created_at_ms": entry.created_at_ms})
        await self._redis.set(f"{REDIS_KEY_PREFIX}{signature}", payload, ex=ttl_seconds)

    async def delete(self, signature: str) -> None:
        await self._redis.delete(f"{REDIS_KEY_PREFIX}{signature}")

    async def sweep(self, max_age_seconds: int) -> int:
        return 0

    async def close(self) -> None:
        await self._redis.aclose()


def build_state_store(settings: Settings) -> StateStore:
    """Return the store selected by settings.oauth_state_backend."""
    if settings.oauth_state_backend == "redis":
        logger.info(
            "OAuth state store: redis at %s:%s/%s",
            settings.redis_host,
            settings.redis_port,
            settings.redis_db,
        )
        return RedisStateStore.from_settings(settings)
    logger.info("OAuth state store: in-memory (single process only)")
    return InMemoryStateStore()
