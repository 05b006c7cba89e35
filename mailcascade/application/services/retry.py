"""Bounded retry with exponential backoff and a terminal-error predicate."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from mailcascade.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Every attempt failed with a retryable error; last_error holds the final one."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    is_terminal: Callable[[BaseException], bool] = lambda exc: False,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run operation until it succeeds, a terminal error occurs, or attempts run out.

    Between attempt n and n+1 (1-based) waits ``base_delay * 2 ** n`` seconds,
    i.e. 2s then 4s with the default base_delay.

    Args:
        operation: Zero-arg coroutine factory; called once per attempt.
        max_attempts: Total attempts including the first.
        is_terminal: Return True for errors that must not be retried; they are re-raised as-is.
        base_delay: Multiplier for the exponential delay.
        sleep: Injected for tests.

    Returns:
        The operation's result.

    Raises:
        The terminal exception, or RetryExhaustedError wrapping the last error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if is_terminal(exc):
                raise
            if attempt >= max_attempts:
                raise RetryExhaustedError(max_attempts, exc) from exc
            delay = base_delay * (2**attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.1fs",
                attempt,
                max_attempts,
                exc,
                delay,
            )
        await sleep(delay)
        attempt += 1
