"""Retry with exponential backoff for stage attempts.

An attempt reports its result as a ``StageOutcome`` instead of raising, and
whether to try again is decided from the outcome alone: provider errors and
schema violations are retryable, unparseable responses and configuration
errors are not.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import httpx
from rich.markup import escape

from ..config import RetryConfig
from ..errors import AIAgentError
from ..utils import console

T = TypeVar("T")


def classify_error(error: BaseException) -> bool:
    """Return ``True`` if *error* is worth another attempt."""
    if isinstance(error, AIAgentError):
        return error.retryable
    return isinstance(error, (httpx.TransportError, asyncio.TimeoutError, ConnectionError))


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Result of one attempt: either a value or the error that prevented it."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: T) -> "StageOutcome[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, error: BaseException) -> "StageOutcome[T]":
        return cls(error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return self.error is not None and classify_error(self.error)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt an operation and how long to wait in between."""

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            backoff_factor=config.backoff_factor,
            max_delay=config.max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number *attempt* (1-based)."""
        return min(self.max_delay, self.base_delay * self.backoff_factor ** (attempt - 1))


async def with_retry(
    operation: Callable[[], Awaitable[StageOutcome[T]]],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *operation* until it succeeds, fails fatally, or attempts run out.

    Only the calling task sleeps between attempts.

    Returns:
        The value of the first successful outcome.

    Raises:
        The error of the last failed outcome. Pipeline errors are annotated
        with the number of attempts made.
    """
    last: Optional[StageOutcome[T]] = None
    attempt = 0
    for attempt in range(1, policy.max_attempts + 1):
        outcome = await operation()
        if outcome.succeeded:
            return outcome.value  # type: ignore[return-value]
        last = outcome
        if not outcome.retryable or attempt == policy.max_attempts:
            break
        delay = policy.delay_for(attempt)
        console.print(
            f"  [yellow]{escape(label)}: attempt {attempt}/{policy.max_attempts} failed "
            f"({escape(str(outcome.error))}); retrying in {delay:.1f}s[/yellow]"
        )
        await sleep(delay)

    assert last is not None and last.error is not None
    error = last.error
    if isinstance(error, AIAgentError):
        raise error.with_attempts(attempt)
    raise error
