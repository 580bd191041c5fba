"""
Custom exceptions for the Docling client.
"""

from pathlib import Path
from typing import Dict, Any, Optional


class ClientError(Exception):
    """Base exception for all Docling client errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(ClientError):
    """Raised when the caller passes invalid arguments."""

    pass


class NetworkError(ClientError):
    """Raised when a request fails below the HTTP layer (connect, read, DNS)."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.method = method
        self.url = url

    def __str__(self) -> str:
        if self.method and self.url:
            return f"{self.message} [{self.method} {self.url}]"
        return self.message


class HttpError(ClientError):
    """Raised when the service answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        method: Optional[str] = None,
        url: Optional[str] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code
        self.method = method
        self.url = url
        self.response_body = response_body

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def __str__(self) -> str:
        text = self.message
        if self.method and self.url:
            text += f" [{self.method} {self.url}]"
        text += f" status={self.status_code}"
        if self.response_body:
            body = self.response_body
            if len(body) > 200:
                body = body[:200] + "..."
            text += f" response={body}"
        return text


class RetryExhaustedError(ClientError):
    """Raised when every attempt allowed by a retry policy has failed."""

    def __init__(self, message: str, attempts: int, last_error: BaseException):
        super().__init__(message, {"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        return f"{self.message}: {self.last_error}"


class TaskFailureError(ClientError):
    """Raised when the server reports that the task itself failed."""

    def __init__(
        self,
        message: str,
        task_id: str,
        status: Optional[str] = None,
        metadata: Optional[Any] = None,
    ):
        super().__init__(message, {"task_id": task_id, "status": status})
        self.task_id = task_id
        self.status = status
        self.metadata = metadata

    def __str__(self) -> str:
        text = f"{self.message} task_id={self.task_id}"
        if self.status is not None:
            text += f" status={self.status}"
        if self.metadata is not None:
            text += f" meta={self.metadata}"
        return text


class TimeoutError(ClientError):
    """Raised when an operation exceeds its time budget."""

    def __init__(
        self,
        message: str,
        operation: str,
        timeout_seconds: float,
        task_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            {"operation": operation, "timeout_seconds": timeout_seconds, "task_id": task_id},
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.task_id = task_id

    def __str__(self) -> str:
        text = f"{self.message} [operation={self.operation} timeout={self.timeout_seconds}s"
        if self.task_id:
            text += f" task_id={self.task_id}"
        return text + "]"


class MaterializationError(ClientError):
    """Raised when a result exists but cannot be written as the requested format."""

    def __init__(
        self,
        message: str,
        diagnostic_path: Optional[Path] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.diagnostic_path = diagnostic_path


class OperationInterruptedError(ClientError):
    """Raised when a wait is cancelled; never treated as retryable."""

    pass
