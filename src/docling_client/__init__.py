"""
Docling Client

Resilient client for the Docling document-conversion task API.
"""

from .api import TaskApi, TaskKind, TaskSpec
from .cancellation import CancellationToken
from .client import DoclingClient
from .config import ClientSettings, get_settings, setup_logging
from .exceptions import (
    ClientError,
    HttpError,
    InvalidInputError,
    MaterializationError,
    NetworkError,
    OperationInterruptedError,
    RetryExhaustedError,
    TaskFailureError,
    TimeoutError,
)
from .formats import OutputFormat
from .handles import TaskHandle, shutdown_default_executor, submit_blocking
from .materializer import ResultMaterializer
from .models import (
    PayloadKind,
    PollOutcome,
    ResultKind,
    ResultPayload,
    Task,
    TaskResult,
    TaskStatus,
)
from .polling import PollState, TaskPoller
from .retry import RetryPolicy

__version__ = "1.0.0"

__all__ = [
    "DoclingClient",
    "TaskApi",
    "TaskKind",
    "TaskSpec",
    "ClientSettings",
    "get_settings",
    "setup_logging",
    "CancellationToken",
    "RetryPolicy",
    "TaskPoller",
    "PollState",
    "TaskHandle",
    "submit_blocking",
    "shutdown_default_executor",
    "ResultMaterializer",
    "OutputFormat",
    "Task",
    "TaskStatus",
    "TaskResult",
    "ResultKind",
    "ResultPayload",
    "PayloadKind",
    "PollOutcome",
    "ClientError",
    "InvalidInputError",
    "NetworkError",
    "HttpError",
    "RetryExhaustedError",
    "TaskFailureError",
    "TimeoutError",
    "MaterializationError",
    "OperationInterruptedError",
]
