"""Retry policy and the generic send-with-retry wrapper for upstream calls."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from common.constants import (
    UPSTREAM_BACKOFF_MULTIPLIER,
    UPSTREAM_BASE_DELAY_SECONDS,
    UPSTREAM_MAX_ATTEMPTS,
    UPSTREAM_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from server.exceptions import UpstreamTransientError

logger = get_logger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamTransientError)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently an upstream call is retried.

    With the defaults a call is attempted 3 times, sleeping 0.6s and 1.2s
    between attempts, each attempt bounded at 60s.
    """
    max_attempts: int = UPSTREAM_MAX_ATTEMPTS
    base_delay_seconds: float = UPSTREAM_BASE_DELAY_SECONDS
    backoff_multiplier: float = UPSTREAM_BACKOFF_MULTIPLIER
    timeout_seconds: float = UPSTREAM_TIMEOUT_SECONDS
    is_retryable: Callable[[BaseException], bool] = field(default=is_transient)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        return self.base_delay_seconds * (self.backoff_multiplier ** attempt)


async def send_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str,
) -> T:
    """
    Run operation, retrying retryable failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Retry policy to apply
        label: Operation name used in log lines

    Returns:
        Result of the first successful attempt

    Raises:
        The last error once attempts are exhausted, or any non-retryable
        error immediately
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not policy.is_retryable(e) or attempt >= policy.max_attempts - 1:
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"[retry] {label} failed ({e}), retrying in {delay * 1000:.0f}ms "
                f"(attempt {attempt + 1}/{policy.max_attempts})"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{label}: retry policy allows no attempts")
