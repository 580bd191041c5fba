"""
Non-blocking completion handles for blocking waits.

The poll loop blocks its thread, so asynchronous callers run it on a worker
pool and get a :class:`TaskHandle` back. A handle owns its own future: the
worker's outcome is copied into it, and a cancelled handle ignores whatever
the worker eventually produces.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Callable, Optional

from .cancellation import CancellationToken, interrupted
from .config import get_logger
from .exceptions import TimeoutError


logger = get_logger("handles")

_default_executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
_default_executor_lock = threading.Lock()


def get_default_executor() -> concurrent.futures.ThreadPoolExecutor:
    """Return the shared worker pool, creating it on first use."""
    global _default_executor
    with _default_executor_lock:
        if _default_executor is None:
            _default_executor = concurrent.futures.ThreadPoolExecutor(
                thread_name_prefix="docling-poll"
            )
        return _default_executor


def shutdown_default_executor(wait: bool = True) -> None:
    """Drain and discard the shared pool; the next submission creates a new one."""
    global _default_executor
    with _default_executor_lock:
        executor, _default_executor = _default_executor, None
    if executor is not None:
        logger.debug("Shutting down default worker pool")
        executor.shutdown(wait=wait)


class TaskHandle:
    """
    Completion handle for work running on a worker thread.

    Supports blocking access (:meth:`result`), callbacks, chaining with
    :meth:`then` and :meth:`exceptionally`, and ``await`` from asyncio code.
    Completes exactly once, with a value or an error.
    """

    def __init__(
        self,
        operation: str = "task",
        task_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.operation = operation
        self.task_id = task_id
        self.token = token or CancellationToken()
        self._future: concurrent.futures.Future = concurrent.futures.Future()
        self._lock = threading.RLock()
        self._future.add_done_callback(self._on_done)

    def __repr__(self) -> str:
        if self._future.cancelled():
            state = "cancelled"
        elif self._future.done():
            state = "done"
        else:
            state = "pending"
        return f"<TaskHandle operation={self.operation} task_id={self.task_id} {state}>"

    def _on_done(self, future: concurrent.futures.Future) -> None:
        # Cancelling through the future (e.g. an awaiting coroutine) must wake the worker too
        if future.cancelled():
            self.token.cancel()

    def set_result(self, value: Any) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(value)
            return True

    def set_exception(self, error: BaseException) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_exception(error)
            return True

    def _adopt(self, worker: concurrent.futures.Future) -> None:
        """Copy a worker future's outcome into this handle."""
        if worker.cancelled():
            self.set_exception(interrupted(self.operation, self.task_id))
            return
        error = worker.exception()
        if error is not None:
            if not self.set_exception(error):
                logger.debug("Dropping error from cancelled %s: %s", self.operation, error)
            return
        if not self.set_result(worker.result()):
            logger.debug("Dropping result from cancelled %s", self.operation)

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block until the handle completes and return its value.

        Raises:
            TimeoutError: Nothing arrived within ``timeout``; the work keeps running
            concurrent.futures.CancelledError: The handle was cancelled
            Exception: Whatever the work raised
        """
        try:
            return self._future.result(timeout)
        except concurrent.futures.TimeoutError as e:
            raise self._timeout_error(timeout) from e

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        try:
            return self._future.exception(timeout)
        except concurrent.futures.TimeoutError as e:
            raise self._timeout_error(timeout) from e

    def _timeout_error(self, timeout: Optional[float]) -> TimeoutError:
        return TimeoutError(
            f"{self.operation} did not complete within {timeout}s",
            operation=self.operation,
            timeout_seconds=timeout,
            task_id=self.task_id,
        )

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def cancel(self) -> bool:
        """Cancel the handle and ask the worker to stop at its next wait.

        An HTTP request already in flight is not aborted; its outcome is dropped.
        """
        self.token.cancel()
        with self._lock:
            return self._future.cancel()

    def add_done_callback(self, callback: Callable[["TaskHandle"], Any]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))

    def then(self, fn: Callable[[Any], Any]) -> "TaskHandle":
        """Return a handle completing with ``fn(value)`` once this one succeeds."""
        chained = TaskHandle(self.operation, self.task_id)

        def forward(source: "TaskHandle") -> None:
            if source.cancelled():
                chained.cancel()
                return
            error = source.exception()
            if error is not None:
                chained.set_exception(error)
                return
            try:
                chained.set_result(fn(source.result()))
            except Exception as e:
                chained.set_exception(e)

        self.add_done_callback(forward)
        return chained

    def exceptionally(self, fn: Callable[[BaseException], Any]) -> "TaskHandle":
        """Return a handle that recovers from an error with ``fn(error)``."""
        chained = TaskHandle(self.operation, self.task_id)

        def forward(source: "TaskHandle") -> None:
            if source.cancelled():
                chained.cancel()
                return
            error = source.exception()
            if error is None:
                chained.set_result(source.result())
                return
            try:
                chained.set_result(fn(error))
            except Exception as e:
                chained.set_exception(e)

        self.add_done_callback(forward)
        return chained

    def __await__(self):
        return asyncio.wrap_future(self._future).__await__()


def submit_blocking(
    fn: Callable[..., Any],
    *args: Any,
    executor: Optional[concurrent.futures.Executor] = None,
    operation: str = "task",
    task_id: Optional[str] = None,
    token: Optional[CancellationToken] = None,
    **kwargs: Any,
) -> TaskHandle:
    """Run ``fn(*args, token=..., **kwargs)`` on a worker and return its handle.

    ``fn`` receives the handle's cancellation token as the ``token`` keyword.
    Errors raised while submitting, such as a shut-down executor, complete the
    handle exceptionally instead of propagating.
    """
    handle = TaskHandle(operation, task_id, token)
    pool = executor or get_default_executor()
    try:
        worker = pool.submit(fn, *args, token=handle.token, **kwargs)
    except Exception as e:
        logger.error("Could not start %s for task %s: %s", operation, task_id, e)
        handle.set_exception(e)
        return handle
    worker.add_done_callback(handle._adopt)
    return handle
