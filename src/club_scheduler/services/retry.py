"""Retry with exponential backoff for remote calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import TypeVar

from club_scheduler.domain.errors import ClassifiedError
from club_scheduler.domain.results import Err, Ok, Outcome
from club_scheduler.services.errors import classify_error

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ceiling and backoff parameters."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10_000

    def delay_seconds(self, retry_number: int) -> float:
        """Return the wait before the given retry (1-based)."""
        delay_ms = min(self.base_delay_ms * 2 ** (retry_number - 1), self.max_delay_ms)
        return delay_ms / 1000


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    *,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Outcome[T]:
    """Run an async operation, retrying transient failures.

    Non-retryable failures are returned on first occurrence. When every
    attempt fails with a retryable error the last classified error is
    returned with ``final_attempt`` set in its context.
    """
    resolved = policy or RetryPolicy()
    attempt = 0
    while True:
        if attempt > 0:
            delay = resolved.delay_seconds(attempt)
            _logger.info(
                "Retrying %s (attempt %s/%s) after %.1fs",
                operation_name,
                attempt,
                resolved.max_retries,
                delay,
            )
            await sleep(delay)
        try:
            value = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = classify_error(exc, operation_name, {"retry_count": attempt})
            if not error.retryable:
                return Err(error)
            if attempt >= resolved.max_retries:
                _logger.warning(
                    "%s failed after %s retries", operation_name, resolved.max_retries
                )
                return Err(_mark_final(error, resolved.max_retries))
            attempt += 1
            continue
        if attempt > 0:
            _logger.info("%s succeeded after %s retries", operation_name, attempt)
        return Ok(value)


@dataclass
class Retrier:
    """Retry wrapper bound to a policy, shared by the scheduling components."""

    policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Sleep = asyncio.sleep

    async def run(
        self, operation: Callable[[], Awaitable[T]], operation_name: str
    ) -> Outcome[T]:
        """Run ``operation`` under this retrier's policy."""
        return await retry_operation(
            operation, operation_name, policy=self.policy, sleep=self.sleep
        )


def _mark_final(error: ClassifiedError, retry_count: int) -> ClassifiedError:
    context = dict(error.context)
    context["retry_count"] = retry_count
    context["final_attempt"] = True
    return replace(error, context=context)
