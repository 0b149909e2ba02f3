"""
Retry policy for dispatch operations.

Only TransientDispatchFailure is retried; every other error propagates on the
first occurrence.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import structlog

from txsubmit.config import SubmitterConfig
from txsubmit.core.errors import TransientDispatchFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for transient dispatch failures.

    Attributes:
        max_attempts: Total attempts, including the first one
        delay_seconds: Delay before the first retry
        backoff_factor: Multiplier applied to the delay after each attempt
        max_delay_seconds: Upper bound for a single delay
    """
    max_attempts: int = 3
    delay_seconds: float = 2.0
    backoff_factor: float = 2.0
    max_delay_seconds: float = 30.0

    @classmethod
    def from_config(cls, config: SubmitterConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            delay_seconds=config.retry_delay_seconds,
            backoff_factor=config.retry_backoff_factor,
            max_delay_seconds=config.retry_max_delay_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Delay after the given 0-based failed attempt."""
        return min(self.delay_seconds * self.backoff_factor ** attempt, self.max_delay_seconds)

    async def run(self, operation: Callable[[], Awaitable[T]], **log_context) -> T:
        """
        Run an operation, retrying transient failures.

        Args:
            operation: Zero-argument coroutine function
            **log_context: Extra fields for retry log events

        Returns:
            The operation's result

        Raises:
            TransientDispatchFailure: If every attempt failed transiently
        """
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except TransientDispatchFailure as e:
                if attempt == self.max_attempts - 1:
                    logger.error(
                        "dispatch_retries_exhausted",
                        attempts=self.max_attempts,
                        error=str(e),
                        **log_context,
                    )
                    raise

                delay = self.delay(attempt)
                logger.warning(
                    "dispatch_retry",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay=delay,
                    error=str(e),
                    **log_context,
                )
                await asyncio.sleep(delay)

        raise RuntimeError("retry policy requires at least one attempt")
