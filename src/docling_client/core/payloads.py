"""
Pure functions for decoding task result bodies.

Functions for classifying result JSON into its response variant and
summarizing results for logs, without I/O dependencies.
"""

import json
from typing import Any, Dict, Optional

from ..exceptions import ClientError
from ..models import ResultKind, ResultPayload, TaskResult
from .documents import available_formats, find_document


PRESIGNED_FIELDS = ("num_converted", "num_succeeded", "num_failed")


def decode_json(body: bytes, context: str) -> Any:
    """Decode a JSON body or raise ClientError naming ``context``."""
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ClientError(f"Failed to parse JSON from {context}: {e}", {"context": context})
    except RecursionError as e:
        raise ClientError(
            f"JSON from {context} is nested too deeply to parse", {"context": context}
        ) from e


def classify_result(data: Dict[str, Any]) -> ResultKind:
    """Decide which response variant a result object is."""
    if isinstance(data.get("chunks"), list):
        return ResultKind.CHUNKS
    if any(field in data for field in PRESIGNED_FIELDS) and find_document(data) is None:
        return ResultKind.PRESIGNED
    return ResultKind.DOCUMENT


def parse_task_result(data: Any, task_id: Optional[str] = None) -> TaskResult:
    """Wrap a decoded result body as a tagged TaskResult."""
    if not isinstance(data, dict):
        raise ClientError(
            "Invalid result format: expected JSON object",
            {"task_id": task_id, "type": type(data).__name__},
        )
    return TaskResult(kind=classify_result(data), data=data, task_id=task_id)


def describe_task_result(result: Optional[TaskResult]) -> str:
    """One-line summary of a task result for log output."""
    if result is None:
        return "taskResult=<null>"
    data = result.data
    if result.kind is ResultKind.DOCUMENT:
        document = find_document(data)
        filename = document.get("filename", "<unknown>") if document else "<unknown>"
        errors = data.get("errors") or []
        return (
            f"convertResponse[type=inline, filename={filename}, "
            f"status={data.get('status')}, processingTime={data.get('processing_time')}, "
            f"formats={available_formats(document)}, errors={len(errors)}]"
        )
    if result.kind is ResultKind.PRESIGNED:
        return (
            f"convertResponse[type=presigned, converted={data.get('num_converted')}, "
            f"succeeded={data.get('num_succeeded')}, failed={data.get('num_failed')}, "
            f"processingTime={data.get('processing_time')}]"
        )
    if result.kind is ResultKind.CHUNKS:
        documents = data.get("documents") or []
        return (
            f"chunkResponse[chunks={len(data.get('chunks') or [])}, "
            f"documents={len(documents)}, processingTime={data.get('processing_time')}]"
        )
    raise ValueError(f"Unhandled result kind: {result.kind}")


def describe_payload(payload: Optional[ResultPayload]) -> str:
    if payload is None:
        return "payload=<null>"
    return (
        f"payload[kind={payload.kind.value}, contentType={payload.content_type or '<none>'}, "
        f"bytes={len(payload.body)}]"
    )
