"""
Retry Mechanisms with Exponential Backoff

Bounded retries for ledger writes that collide with concurrent writers.
Only errors flagged as retryable are retried; everything else propagates
on the first failure.
"""

import functools
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..domain.shared.exceptions import LedgerConflictError, LockTimeoutError
from .config import settings
from .observability import LEDGER_CONFLICTS, get_logger

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    exponential_base: float = 2.0
    jitter: bool = True

    retry_on_exceptions: tuple[type[Exception], ...] = (
        LedgerConflictError,
        LockTimeoutError,
    )

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_attempts=settings.LEDGER_MAX_RETRY_ATTEMPTS,
            base_delay_seconds=settings.LEDGER_RETRY_BASE_DELAY,
            max_delay_seconds=settings.LEDGER_RETRY_MAX_DELAY,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the next attempt, 1-based."""
        delay = self.base_delay_seconds * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay_seconds)
        if self.jitter and delay > 0:
            delay = random.uniform(delay / 2, delay)
        return delay


def run_with_retry(
    func: Callable[..., T],
    *args: Any,
    config: RetryConfig | None = None,
    operation_name: str | None = None,
    **kwargs: Any,
) -> T:
    """
    Call func, retrying on retryable concurrency errors.

    Raises the last error once max_attempts is exhausted.
    """
    config = config or RetryConfig.from_settings()
    name = operation_name or getattr(func, "__name__", "operation")

    attempt = 1
    while True:
        try:
            return func(*args, **kwargs)
        except config.retry_on_exceptions as exc:
            LEDGER_CONFLICTS.labels(operation=name).inc()
            if attempt >= config.max_attempts:
                logger.error(
                    "Retries exhausted",
                    operation=name,
                    attempts=attempt,
                    error=str(exc),
                )
                raise
            delay = config.calculate_delay(attempt)
            logger.warning(
                "Retrying after conflict",
                operation=name,
                attempt=attempt,
                delay_seconds=round(delay, 4),
                error=str(exc),
            )
            time.sleep(delay)
            attempt += 1


def retry_on_conflict(
    config: RetryConfig | None = None, operation_name: str | None = None
) -> Callable[[F], F]:
    """Decorator form of run_with_retry."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return run_with_retry(
                func,
                *args,
                config=config,
                operation_name=operation_name or func.__name__,
                **kwargs,
            )

        return wrapper  # type: ignore[return-value]

    return decorator
