"""
Bounded Retry Module
====================

A small retry wrapper for calls to external services (content fetch,
LLM extraction, geocoding). Each collaborator gets its own policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Maximum attempts and fixed delay between them."""

    max_attempts: int = 3
    backoff_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds cannot be negative, got {self.backoff_seconds}")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, default: RetryPolicy | None = None) -> RetryPolicy:
        """Create from dictionary, using defaults for missing values."""
        base = default or cls()
        if data is None:
            return base
        return cls(
            max_attempts=int(data.get("max_attempts", base.max_attempts)),
            backoff_seconds=float(data.get("backoff_seconds", base.backoff_seconds)),
        )


NO_RETRY = RetryPolicy(max_attempts=1, backoff_seconds=0.0)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "call",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await ``fn`` until it succeeds or the policy's attempts run out.

    Exceptions outside ``retry_on`` propagate immediately. After the last
    attempt the final exception propagates.

    Args:
        fn: Zero-argument coroutine factory
        policy: Attempts and backoff
        retry_on: Exception types that trigger another attempt
        label: Name used in log messages
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The value returned by ``fn``
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.warning(f"{label} failed after {attempt} attempt(s): {e}")
                raise
            logger.warning(
                f"{label} failed (attempt {attempt}/{policy.max_attempts}): {e}; "
                f"retrying in {policy.backoff_seconds}s"
            )
            await sleep(policy.backoff_seconds)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{label}: retry loop exited without a result")
