"""
Data models for tasks, task results and downloaded payloads.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


ZIP_MAGIC = b"PK\x03\x04"


class TaskStatus(str, Enum):
    """Normalized task lifecycle state."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, raw: Optional[str]) -> "TaskStatus":
        """Map a wire status token to a TaskStatus, case-insensitively.

        Tokens the service is not known to send map to ``UNKNOWN``, which the
        poll loop treats as non-terminal.
        """
        if raw is None:
            return cls.UNKNOWN
        return _STATUS_TOKENS.get(raw.strip().lower(), cls.UNKNOWN)

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)


_STATUS_TOKENS = {
    "pending": TaskStatus.QUEUED,
    "queued": TaskStatus.QUEUED,
    "submitted": TaskStatus.QUEUED,
    "started": TaskStatus.RUNNING,
    "running": TaskStatus.RUNNING,
    "processing": TaskStatus.RUNNING,
    "in_progress": TaskStatus.RUNNING,
    "success": TaskStatus.SUCCEEDED,
    "succeeded": TaskStatus.SUCCEEDED,
    "done": TaskStatus.SUCCEEDED,
    "completed": TaskStatus.SUCCEEDED,
    "failure": TaskStatus.FAILED,
    "failed": TaskStatus.FAILED,
    "error": TaskStatus.FAILED,
}


@dataclass(frozen=True)
class Task:
    """
    Snapshot of a server-side task as returned by submit or poll calls.

    Attributes:
        task_id: Opaque task identifier
        status: Raw status token as sent by the server
        position: Queue position hint, if the server provides one
        metadata: Opaque task metadata, surfaced when the task fails
    """

    task_id: str
    status: Optional[str] = None
    position: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> TaskStatus:
        return TaskStatus.normalize(self.status)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "Task":
        """Build a Task from a ``TaskStatusResponse`` JSON object."""
        return cls(
            task_id=str(data.get("task_id", "")),
            status=data.get("task_status"),
            position=data.get("task_position"),
            metadata=data.get("task_meta"),
        )


class PayloadKind(str, Enum):
    ARCHIVE = "archive"
    DOCUMENT = "document"


@dataclass(frozen=True)
class ResultPayload:
    """
    Raw task result bytes plus the declared content type.

    The payload is classified as archive or single document once, at
    construction, and never reclassified.
    """

    body: bytes = field(repr=False)
    content_type: str = ""
    kind: PayloadKind = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "body", self.body or b"")
        object.__setattr__(self, "content_type", self.content_type or "")
        object.__setattr__(self, "kind", self.classify(self.body, self.content_type))

    @staticmethod
    def classify(body: bytes, content_type: str) -> PayloadKind:
        if "zip" in (content_type or "").lower():
            return PayloadKind.ARCHIVE
        if body[:4] == ZIP_MAGIC:
            return PayloadKind.ARCHIVE
        return PayloadKind.DOCUMENT

    @property
    def is_archive(self) -> bool:
        return self.kind is PayloadKind.ARCHIVE


class ResultKind(str, Enum):
    """Variants of the JSON body returned by the result endpoint."""

    DOCUMENT = "document"
    PRESIGNED = "presigned"
    CHUNKS = "chunks"


@dataclass(frozen=True)
class TaskResult:
    """
    Result of a finished task, tagged by the shape the server returned.

    Attributes:
        kind: Which response variant ``data`` holds
        data: The decoded JSON object
        task_id: Task the result belongs to
    """

    kind: ResultKind
    data: Dict[str, Any]
    task_id: Optional[str] = None


@dataclass(frozen=True)
class PollOutcome:
    """What the poll loop reports once a task succeeds."""

    task: Task
    result: Any
    elapsed_seconds: float
    poll_count: int
