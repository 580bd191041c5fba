"""Cooperative cancellation for blocking waits.

Poll loops and retry backoffs never sleep with :func:`time.sleep`; they wait
on a :class:`CancellationToken` so that another thread (usually a
:class:`~docling_client.handles.TaskHandle` being cancelled, or the client
shutting down) can wake them immediately.
"""

import threading
from typing import Optional

from .exceptions import OperationInterruptedError


class CancellationToken:
    """Thread-safe cancellation flag with an interruptible sleep.

    Examples:
        >>> token = CancellationToken()
        >>> token.sleep(0.01)  # returns normally
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def sleep(self, seconds: float, operation: str = "wait", task_id: Optional[str] = None) -> None:
        """Block for ``seconds`` unless cancelled first.

        Raises:
            OperationInterruptedError: If the token is or becomes cancelled.
        """
        if self._event.wait(max(0.0, seconds)):
            raise interrupted(operation, task_id)

    def raise_if_cancelled(self, operation: str = "wait", task_id: Optional[str] = None) -> None:
        if self._event.is_set():
            raise interrupted(operation, task_id)


def interrupted(operation: str, task_id: Optional[str] = None) -> OperationInterruptedError:
    message = f"Interrupted during {operation}"
    if task_id:
        message += f" for task {task_id}"
    return OperationInterruptedError(message, {"operation": operation, "task_id": task_id})
