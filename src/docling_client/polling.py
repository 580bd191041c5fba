"""
Poll loop that drives a submitted task to a terminal state.

Elapsed time is the sum of poll intervals actually waited, not wall-clock
time, so the budget is independent of how long each status request takes.
Pauses after a failed poll do not count against the budget.
"""

from enum import Enum
from typing import Any, Optional

from .cancellation import CancellationToken
from .config import get_logger
from .core.status import describe_task
from .exceptions import (
    ClientError,
    InvalidInputError,
    RetryExhaustedError,
    TaskFailureError,
    TimeoutError,
)
from .models import PollOutcome, Task, TaskStatus
from .retry import RetryPolicy


logger = get_logger("polling")

MAX_CONSECUTIVE_ERRORS = 3


class PollState(str, Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class TaskPoller:
    """
    Polls one task until it succeeds, fails, or runs out of time.

    Args:
        api: Object exposing ``poll_status(task_id, wait_seconds)`` and
            ``fetch_result(task_id)``
        retry_policy: Wraps each status request; also classifies poll errors
        max_seconds: Total poll budget
        wait_seconds: Interval between polls, also sent as the server-side wait
        error_retry_delay: Pause after a failed poll
    """

    def __init__(
        self,
        api: Any,
        retry_policy: Optional[RetryPolicy] = None,
        max_seconds: float = 900.0,
        wait_seconds: float = 10.0,
        error_retry_delay: float = 2.0,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
    ):
        if max_seconds <= 0:
            raise InvalidInputError("max_seconds must be positive")
        if wait_seconds <= 0:
            raise InvalidInputError("wait_seconds must be positive")
        self.api = api
        self.retry_policy = retry_policy or RetryPolicy.default()
        self.max_seconds = max_seconds
        self.wait_seconds = wait_seconds
        self.error_retry_delay = error_retry_delay
        self.max_consecutive_errors = max_consecutive_errors

    def run(self, task_id: str, token: Optional[CancellationToken] = None) -> PollOutcome:
        """Poll ``task_id`` to completion and fetch its result.

        Raises:
            TaskFailureError: The service reported the task as failed
            TimeoutError: The budget ran out while the task was still running
            ClientError: Status polls failed too many times in a row
            OperationInterruptedError: ``token`` was cancelled
        """
        if not task_id or not str(task_id).strip():
            raise InvalidInputError("task_id must not be empty")
        token = token or CancellationToken()

        state = PollState.POLLING
        elapsed = 0.0
        consecutive_errors = 0
        poll_count = 0

        logger.info(
            "Waiting for task %s (budget=%ss, interval=%ss)",
            task_id,
            self.max_seconds,
            self.wait_seconds,
        )

        while state is PollState.POLLING:
            token.raise_if_cancelled("wait_for_result", task_id)
            try:
                task = self._poll_once(task_id, token)
            except Exception as e:
                if not self._is_transport_error(e):
                    raise
                consecutive_errors += 1
                if consecutive_errors >= self.max_consecutive_errors:
                    logger.error(
                        "Giving up on task %s after %d consecutive poll errors: %s",
                        task_id,
                        consecutive_errors,
                        e,
                    )
                    raise ClientError(
                        f"Failed to poll task status for task {task_id} "
                        f"after {consecutive_errors} attempts",
                        {"task_id": task_id, "attempts": consecutive_errors},
                    ) from e
                logger.warning(
                    "Poll %d for task %s failed (%d/%d): %s",
                    poll_count + 1,
                    task_id,
                    consecutive_errors,
                    self.max_consecutive_errors,
                    e,
                )
                token.sleep(self.error_retry_delay, "wait_for_result", task_id)
                continue

            consecutive_errors = 0
            poll_count += 1
            state = self._next_state(task, elapsed)

            if state is PollState.SUCCEEDED:
                logger.info(
                    "Task %s succeeded after %d polls (%.1fs)", task_id, poll_count, elapsed
                )
                result = self.api.fetch_result(task_id)
                return PollOutcome(task, result, elapsed, poll_count)

            if state is PollState.FAILED:
                logger.error("Task %s failed: %s", task_id, describe_task(task))
                raise TaskFailureError(
                    "Task failed", task_id, status=task.status, metadata=task.metadata
                )

            if state is PollState.TIMED_OUT:
                logger.error(
                    "Task %s still %s after %.1fs", task_id, task.status, elapsed
                )
                raise TimeoutError(
                    f"Task {task_id} did not finish within {self.max_seconds}s",
                    operation="wait_for_result",
                    timeout_seconds=self.max_seconds,
                    task_id=task_id,
                )

            logger.info(
                "Task %s status=%s position=%s elapsed=%.1fs",
                task_id,
                task.status,
                task.position,
                elapsed,
            )
            token.sleep(self.wait_seconds, "wait_for_result", task_id)
            elapsed += self.wait_seconds

        raise RuntimeError(f"Poll loop left POLLING in state {state}")

    def _poll_once(self, task_id: str, token: CancellationToken) -> Task:
        return self.retry_policy.execute(
            lambda: self.api.poll_status(task_id, self.wait_seconds),
            token=token,
            description=f"poll_status({task_id})",
        )

    def _next_state(self, task: Task, elapsed: float) -> PollState:
        status = task.state
        if status is TaskStatus.SUCCEEDED:
            return PollState.SUCCEEDED
        if status is TaskStatus.FAILED:
            return PollState.FAILED
        if status is TaskStatus.UNKNOWN:
            logger.debug("Unrecognized status %r for task %s", task.status, task.task_id)
        if elapsed >= self.max_seconds:
            return PollState.TIMED_OUT
        return PollState.POLLING

    def _is_transport_error(self, error: BaseException) -> bool:
        if isinstance(error, RetryExhaustedError):
            return True
        return self.retry_policy.is_retryable(error)


def poll_until_complete(
    api: Any,
    task_id: str,
    max_seconds: float = 900.0,
    wait_seconds: float = 10.0,
    *,
    retry_policy: Optional[RetryPolicy] = None,
    token: Optional[CancellationToken] = None,
    error_retry_delay: float = 2.0,
) -> Any:
    """Convenience wrapper returning only the fetched result."""
    poller = TaskPoller(
        api,
        retry_policy=retry_policy,
        max_seconds=max_seconds,
        wait_seconds=wait_seconds,
        error_retry_delay=error_retry_delay,
    )
    return poller.run(task_id, token).result
