"""
Request correlation for log lines and the ``X-Docling-Correlation-Id`` header.
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Optional


CORRELATION_HEADER = "X-Docling-Correlation-Id"


class CorrelationSequence:
    """Monotonic id generator shared by every call made through one client."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self, endpoint: str) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{endpoint}-{value}"


@dataclass(frozen=True)
class RequestContext:
    """Per-call context passed explicitly down to the transport layer."""

    correlation_id: str
    endpoint: str
    task_id: Optional[str] = None

    def headers(self) -> dict:
        return {CORRELATION_HEADER: self.correlation_id}

    @classmethod
    def create(
        cls, sequence: CorrelationSequence, endpoint: str, task_id: Optional[str] = None
    ) -> "RequestContext":
        return cls(sequence.next_id(endpoint), endpoint, task_id)
