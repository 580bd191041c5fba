"""
HTTP transport for the Docling task endpoints.

:class:`TaskApi` is the collaborator the poll loop and the client drive. Any
object with ``submit_task``, ``poll_status``, ``fetch_result`` and
``download_raw_payload`` can stand in for it.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence

import httpx

from .config import get_logger
from .context import CorrelationSequence, RequestContext
from .core.payloads import decode_json, describe_payload, describe_task_result, parse_task_result
from .core.status import describe_task
from .core.utils import build_auth_headers, classify_request_exception
from .exceptions import ClientError, HttpError, InvalidInputError, NetworkError
from .formats import OutputFormat
from .models import ResultPayload, Task, TaskResult
from .retry import RetryPolicy


logger = get_logger("api")

CONVERT_SOURCE_PATH = "/v1/convert/source/async"
CONVERT_FILE_PATH = "/v1/convert/file/async"
CHUNK_SOURCE_PATH = "/v1/chunk/hybrid/source/async"
STATUS_PATH = "/v1/status/poll/{task_id}"
RESULT_PATH = "/v1/result/{task_id}"
HEALTH_PATH = "/health"
CLEAR_RESULTS_PATH = "/v1/clear/results"

MAX_ERROR_BODY = 200


class TaskKind(str, Enum):
    CONVERT_SOURCE = "convert_source"
    CONVERT_FILE = "convert_file"
    CHUNK_SOURCE = "chunk_source"


@dataclass(frozen=True)
class TaskSpec:
    """
    Description of a job to submit.

    Attributes:
        kind: Which async endpoint receives the job
        urls: Source URLs for ``CONVERT_SOURCE`` and ``CHUNK_SOURCE``
        content: File bytes for ``CONVERT_FILE``
        filename: Upload name for ``CONVERT_FILE``
        output_formats: Formats the service should produce
        options: Extra conversion or chunking options merged into the request
        target: ``inbody`` or ``zip``
        include_converted_doc: Ask the chunker to return the converted document
    """

    kind: TaskKind
    urls: Sequence[str] = ()
    content: Optional[bytes] = field(default=None, repr=False)
    filename: Optional[str] = None
    output_formats: Sequence[OutputFormat] = (OutputFormat.MARKDOWN,)
    options: Optional[Dict[str, Any]] = None
    target: str = "inbody"
    include_converted_doc: bool = False


def build_http_sources(urls: Sequence[str]) -> list:
    if not urls:
        raise InvalidInputError("At least one source URL is required")
    sources = []
    for url in urls:
        if not url or not url.startswith(("http://", "https://")):
            raise InvalidInputError(f"Source URL must be http(s): {url!r}")
        sources.append({"kind": "http", "url": url})
    return sources


def build_convert_options(
    output_formats: Sequence[OutputFormat], options: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    merged = {"to_formats": [fmt.wire_value for fmt in output_formats]}
    if options:
        merged.update(options)
    return merged


def validate_task_id(task_id: Optional[str]) -> str:
    if not task_id or not str(task_id).strip():
        raise InvalidInputError("task_id must not be empty")
    return str(task_id).strip()


class TaskApi:
    """Synchronous client for the Docling async-task endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 600.0,
        *,
        http_client: Optional[httpx.Client] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sequence: Optional[CorrelationSequence] = None,
        trace_http: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy.default()
        self.sequence = sequence or CorrelationSequence()
        self.trace_http = trace_http
        self._headers = build_auth_headers(api_key)
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Submission

    def submit_source(
        self,
        urls: Sequence[str],
        output_formats: Sequence[OutputFormat] = (OutputFormat.MARKDOWN,),
        options: Optional[Dict[str, Any]] = None,
        target: str = "inbody",
    ) -> Task:
        """Submit URL sources for conversion and return the queued task."""
        body = {
            "sources": build_http_sources(urls),
            "options": build_convert_options(output_formats, options),
            "target": {"kind": target},
        }
        ctx = self._context("convertSourceAsync")
        self._log_request(ctx, f"sources={len(urls)} formats={[f.value for f in output_formats]}")
        data = self._request_json("POST", CONVERT_SOURCE_PATH, ctx, json=body)
        task = Task.from_response(data)
        self._log_response(ctx, describe_task(task))
        return task

    def submit_file(
        self,
        content: bytes,
        filename: str,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        target: str = "inbody",
    ) -> Task:
        """Upload file bytes as multipart form data.

        Never retried: callers often pass bytes read once from a stream.
        """
        if not content:
            raise InvalidInputError("File content cannot be empty")
        if not filename:
            raise InvalidInputError("filename is required for file uploads")

        files = {"files": (filename, content, "application/octet-stream")}
        data = {"target_type": target, "to_formats": [output_format.wire_value]}
        ctx = self._context("convertFileAsync")
        self._log_request(ctx, f"filename={filename} bytes={len(content)} format={output_format.value}")
        payload = self._request_json(
            "POST",
            CONVERT_FILE_PATH,
            ctx,
            policy=RetryPolicy.no_retry(),
            files=files,
            data=data,
        )
        task = Task.from_response(payload)
        self._log_response(ctx, describe_task(task))
        return task

    def submit_chunk_sources(
        self,
        urls: Sequence[str],
        chunk_options: Optional[Dict[str, Any]] = None,
        include_converted_doc: bool = False,
        target: str = "inbody",
    ) -> Task:
        """Submit URL sources to the hybrid chunker."""
        body: Dict[str, Any] = {
            "sources": build_http_sources(urls),
            "include_converted_doc": include_converted_doc,
            "target": {"kind": target},
        }
        if chunk_options:
            body["chunking_options"] = dict(chunk_options)
        ctx = self._context("chunkHybridSourcesAsync")
        self._log_request(
            ctx, f"sources={len(urls)} includeConvertedDoc={include_converted_doc}"
        )
        data = self._request_json("POST", CHUNK_SOURCE_PATH, ctx, json=body)
        task = Task.from_response(data)
        self._log_response(ctx, describe_task(task))
        return task

    def submit_task(self, spec: TaskSpec) -> Task:
        """Submit whatever job ``spec`` describes."""
        if spec.kind is TaskKind.CONVERT_SOURCE:
            return self.submit_source(spec.urls, spec.output_formats, spec.options, spec.target)
        if spec.kind is TaskKind.CONVERT_FILE:
            fmt = spec.output_formats[0] if spec.output_formats else OutputFormat.MARKDOWN
            return self.submit_file(spec.content, spec.filename, fmt, spec.target)
        if spec.kind is TaskKind.CHUNK_SOURCE:
            return self.submit_chunk_sources(
                spec.urls, spec.options, spec.include_converted_doc, spec.target
            )
        raise InvalidInputError(f"Unsupported task kind: {spec.kind}")

    # Task lifecycle

    def poll_status(self, task_id: str, wait_seconds: float = 0) -> Task:
        """One status poll; retries are left to the poll loop."""
        task_id = validate_task_id(task_id)
        ctx = self._context("pollTaskStatus", task_id)
        self._log_request(ctx, f"taskId={task_id} wait={wait_seconds}")
        data = self._request_json(
            "GET",
            STATUS_PATH.format(task_id=task_id),
            ctx,
            policy=RetryPolicy.no_retry(),
            params={"wait": wait_seconds},
        )
        task = Task.from_response(data)
        self._log_response(ctx, describe_task(task))
        return task

    def fetch_result(self, task_id: str) -> TaskResult:
        """Fetch and classify the JSON result of a finished task."""
        task_id = validate_task_id(task_id)
        ctx = self._context("taskResult", task_id)
        self._log_request(ctx, f"taskId={task_id}")
        data = self._request_json("GET", RESULT_PATH.format(task_id=task_id), ctx)
        result = parse_task_result(data, task_id)
        self._log_response(ctx, describe_task_result(result))
        return result

    def download_raw_payload(self, task_id: str) -> ResultPayload:
        """Download the result body as bytes, archive or JSON alike."""
        task_id = validate_task_id(task_id)
        ctx = self._context("downloadResult", task_id)
        self._log_request(ctx, f"taskId={task_id}")
        response = self._request(
            "GET",
            RESULT_PATH.format(task_id=task_id),
            ctx,
            headers={"Accept": "application/zip, application/json"},
        )
        payload = ResultPayload(response.content, response.headers.get("content-type", ""))
        self._log_response(ctx, describe_payload(payload))
        return payload

    # Service maintenance

    def health(self) -> Dict[str, Any]:
        ctx = self._context("health")
        self._log_request(ctx, f"baseUrl={self.base_url}")
        data = self._request_json("GET", HEALTH_PATH, ctx)
        self._log_response(ctx, f"healthStatus={data.get('status')}")
        return data

    def clear_results(self, older_than: Optional[float] = None) -> Dict[str, Any]:
        """Ask the service to drop stored results, optionally only older ones."""
        params = {}
        if older_than is not None:
            # Query parameter name as spelled by the service
            params["older_then"] = older_than
        ctx = self._context("clearResults")
        self._log_request(ctx, f"olderThan={older_than}")
        data = self._request_json("GET", CLEAR_RESULTS_PATH, ctx, params=params)
        self._log_response(ctx, f"clearStatus={data.get('status')}")
        return data

    # Plumbing

    def _context(self, endpoint: str, task_id: Optional[str] = None) -> RequestContext:
        return RequestContext.create(self.sequence, endpoint, task_id)

    def _log_request(self, ctx: RequestContext, summary: str) -> None:
        logger.debug("[endpoint-request] %s correlationId=%s %s", ctx.endpoint, ctx.correlation_id, summary)

    def _log_response(self, ctx: RequestContext, summary: str) -> None:
        logger.debug("[endpoint-response] %s correlationId=%s %s", ctx.endpoint, ctx.correlation_id, summary)

    def _request_json(
        self,
        method: str,
        path: str,
        ctx: RequestContext,
        *,
        policy: Optional[RetryPolicy] = None,
        **kwargs,
    ) -> Any:
        response = self._request(method, path, ctx, policy=policy, **kwargs)
        data = decode_json(response.content, f"{method} {path}")
        if not isinstance(data, dict):
            raise ClientError(
                f"Invalid response from {path}: expected JSON object",
                {"endpoint": ctx.endpoint, "task_id": ctx.task_id},
            )
        return data

    def _request(
        self,
        method: str,
        path: str,
        ctx: RequestContext,
        *,
        policy: Optional[RetryPolicy] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        merged = {**self._headers, **ctx.headers(), **(headers or {})}
        policy = policy or self.retry_policy

        def attempt() -> httpx.Response:
            return self._send(method, url, merged, **kwargs)

        return policy.execute(attempt, description=f"{ctx.endpoint}")

    def _send(self, method: str, url: str, headers: Dict[str, str], **kwargs) -> httpx.Response:
        start = time.monotonic()
        try:
            response = self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            kind = classify_request_exception(e)
            raise NetworkError(
                f"Request failed ({kind}): {e}", method=method, url=url, details={"kind": kind}
            ) from e

        if self.trace_http:
            logger.info(
                "[http] %s %s -> %d in %.0fms",
                method,
                url,
                response.status_code,
                (time.monotonic() - start) * 1000,
            )

        if not response.is_success:
            body = response.text
            if len(body) > MAX_ERROR_BODY:
                body = body[:MAX_ERROR_BODY]
            raise HttpError(
                f"HTTP {response.status_code} from {method} {url}",
                status_code=response.status_code,
                method=method,
                url=url,
                response_body=body,
            )
        return response
