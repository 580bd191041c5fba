"""
Retry engine for transport-level failures.

A :class:`RetryPolicy` runs an operation until it succeeds, fails with an
error its predicate rejects, or runs out of attempts. Semantic failures
(4xx responses, failed tasks, cancellation) are never retried.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import httpx

from .cancellation import CancellationToken
from .config import get_logger
from .core.utils import apply_jitter, calculate_retry_delay
from .exceptions import (
    HttpError,
    NetworkError,
    OperationInterruptedError,
    RetryExhaustedError,
)

T = TypeVar("T")

logger = get_logger("retry")


def default_retry_predicate(error: BaseException) -> bool:
    """True for errors that a later attempt may not hit again."""
    if isinstance(error, OperationInterruptedError):
        return False
    if isinstance(error, HttpError):
        return error.is_server_error
    return isinstance(
        error, (NetworkError, httpx.TransportError, ConnectionError, OSError)
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff configuration plus the loop that applies it.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Seconds to wait before the first retry
        max_delay: Upper bound for any single wait
        backoff_multiplier: Factor applied to the delay after each retry
        jitter_factor: Maximum relative deviation applied to each wait
        retry_predicate: Decides whether an error is worth another attempt
    """

    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.2
    retry_predicate: Callable[[BaseException], bool] = field(
        default=default_retry_predicate, compare=False, repr=False
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def default(cls) -> "RetryPolicy":
        return cls()

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        """Single attempt, for operations whose input cannot be replayed."""
        return cls(max_attempts=1, initial_delay=0.0, max_delay=0.0)

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, OperationInterruptedError):
            return False
        return bool(self.retry_predicate(error))

    def execute(
        self,
        operation: Callable[[], T],
        *,
        token: Optional[CancellationToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
        description: str = "operation",
    ) -> T:
        """Run ``operation`` under this policy.

        Args:
            operation: Zero-argument callable performing one attempt
            token: Cancellation token; backoff waits abort when it is set
            sleep: Replaces the token-based wait, mainly for tests
            description: Name used in log lines and error messages

        Returns:
            Whatever ``operation`` returns on its first successful attempt

        Raises:
            RetryExhaustedError: Every attempt failed with a retryable error
            OperationInterruptedError: The token was cancelled
            Exception: The first non-retryable error, or any error of a
                single-attempt policy, unchanged
        """
        token = token or CancellationToken()
        delay = self.initial_delay

        for attempt in range(1, self.max_attempts + 1):
            token.raise_if_cancelled(description)
            if attempt > 1:
                logger.debug("Retrying %s (attempt %d/%d)", description, attempt, self.max_attempts)
            try:
                return operation()
            except Exception as e:
                if not self.is_retryable(e) or token.is_cancelled():
                    raise
                # Single-attempt policies surface the original error
                if self.max_attempts == 1:
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", description, attempt, e
                    )
                    raise RetryExhaustedError(
                        f"{description} failed after {attempt} attempts",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                wait = apply_jitter(delay, self.jitter_factor)
                logger.warning(
                    "%s attempt %d failed, retrying in %.2fs: %s",
                    description,
                    attempt,
                    wait,
                    e,
                )
                if sleep is not None:
                    sleep(wait)
                else:
                    token.sleep(wait, operation=description)
                delay = calculate_retry_delay(delay, self.backoff_multiplier, self.max_delay)

        # Only reachable if the loop body stops returning or raising
        raise RuntimeError("Retry loop exited without a result")
