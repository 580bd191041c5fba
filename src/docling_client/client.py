"""
Main client for the Docling async-task API.

Provides the DoclingClient class: submit conversion and chunking jobs, wait
for them (blocking or through a :class:`~docling_client.handles.TaskHandle`),
and write their results to disk.
"""

import concurrent.futures
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import httpx

from .api import TaskApi, TaskSpec
from .cancellation import CancellationToken
from .config import ClientSettings, get_logger
from .context import CorrelationSequence
from .exceptions import InvalidInputError
from .formats import OutputFormat
from .handles import TaskHandle, submit_blocking
from .materializer import ResultMaterializer
from .models import PollOutcome, ResultPayload, Task, TaskResult
from .polling import TaskPoller
from .retry import RetryPolicy


FormatLike = Union[OutputFormat, str]


def _as_url_list(urls: Union[str, Iterable[str]]) -> list:
    if isinstance(urls, str):
        return [urls]
    return list(urls)


def _as_formats(formats: Optional[Union[FormatLike, Sequence[FormatLike]]]) -> list:
    if formats is None:
        return [OutputFormat.MARKDOWN]
    if isinstance(formats, (OutputFormat, str)):
        formats = [formats]
    return [fmt if isinstance(fmt, OutputFormat) else OutputFormat.parse(fmt) for fmt in formats]


class DoclingClient:
    """
    Client for a remote Docling service.

    Wraps the async-task endpoints with retries for transient failures, a
    bounded poll loop, and result materialization.

    Example:
        >>> with DoclingClient("http://localhost:5001") as client:
        ...     task = client.convert_source_async("https://arxiv.org/pdf/2501.17887")
        ...     result = client.wait_for_result(task.task_id)
        ...     client.materialize(result, "md", "out/paper.md")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        *,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.Client] = None,
        retry_policy: Optional[RetryPolicy] = None,
        poll_retry_policy: Optional[RetryPolicy] = None,
        executor: Optional[concurrent.futures.Executor] = None,
        api: Optional[Any] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service base URL; defaults to ``settings.base_url``
            api_key: Value for the ``X-Api-Key`` header
            timeout: HTTP timeout in seconds; defaults to ``settings.timeout_seconds``
            settings: Loaded settings; read from the environment when omitted
            http_client: Pre-configured httpx client; the caller keeps ownership
            retry_policy: Policy for transport retries on submit, result and download calls
            poll_retry_policy: Policy wrapping each status poll; a single attempt by
                default, so every failed request counts toward the poll error limit
            executor: Worker pool for :meth:`wait_for_result_async`; shut down by :meth:`close`
            api: Replacement task API object, mainly for tests
        """
        self.settings = settings or ClientSettings()
        self.logger = get_logger("client")

        self.base_url = (base_url or self.settings.base_url).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise InvalidInputError(f"base_url must be an http(s) URL: {self.base_url}")

        self.retry_policy = retry_policy or RetryPolicy.default()
        self.poll_retry_policy = poll_retry_policy or RetryPolicy.no_retry()
        self.sequence = CorrelationSequence()
        self.api = api or TaskApi(
            self.base_url,
            api_key if api_key is not None else self.settings.api_key,
            timeout if timeout is not None else self.settings.timeout_seconds,
            http_client=http_client,
            retry_policy=self.retry_policy,
            sequence=self.sequence,
            trace_http=self.settings.trace_http,
        )
        self.materializer = ResultMaterializer()

        self._executor = executor
        if self._executor is None and self.settings.max_workers:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.settings.max_workers, thread_name_prefix="docling-poll"
            )
        self._closed = False

        self.logger.debug(
            "DoclingClient initialized (base_url=%s, poll_max=%ss, poll_wait=%ss)",
            self.base_url,
            self.settings.poll_max_seconds,
            self.settings.poll_wait_seconds,
        )

    @classmethod
    def from_env(cls, **kwargs) -> "DoclingClient":
        """Create a client configured entirely from ``DOCLING_*`` variables."""
        settings = ClientSettings()
        settings.setup_logging()
        return cls(settings=settings, **kwargs)

    # Submission

    def convert_source_async(
        self,
        urls: Union[str, Iterable[str]],
        output_formats: Optional[Union[FormatLike, Sequence[FormatLike]]] = None,
        options: Optional[Dict[str, Any]] = None,
        target: str = "inbody",
    ) -> Task:
        """Submit one or more URLs for conversion."""
        return self.api.submit_source(
            _as_url_list(urls), _as_formats(output_formats), options, target
        )

    def convert_file_async(
        self,
        source: Union[str, Path, bytes],
        filename: Optional[str] = None,
        output_format: FormatLike = OutputFormat.MARKDOWN,
    ) -> Task:
        """
        Upload a local file (or raw bytes) for conversion.

        Args:
            source: Path to the file, or its content
            filename: Upload name; required when ``source`` is bytes
            output_format: Format the service should produce

        Raises:
            InvalidInputError: File missing or no filename for raw bytes
        """
        if isinstance(source, bytes):
            content = source
        else:
            path = Path(source)
            if not path.is_file():
                raise InvalidInputError(f"File not found: {source}")
            content = path.read_bytes()
            filename = filename or path.name
        if not filename:
            raise InvalidInputError("filename is required when uploading raw bytes")
        return self.api.submit_file(content, filename, _as_formats(output_format)[0])

    def chunk_sources_async(
        self,
        urls: Union[str, Iterable[str]],
        chunk_options: Optional[Dict[str, Any]] = None,
        include_converted_doc: bool = False,
    ) -> Task:
        """Submit URLs to the hybrid chunker."""
        return self.api.submit_chunk_sources(
            _as_url_list(urls), chunk_options, include_converted_doc
        )

    def submit_task(self, spec: TaskSpec) -> Task:
        return self.api.submit_task(spec)

    # Task lifecycle

    def poll_status(self, task_id: str, wait_seconds: float = 0) -> Task:
        return self.api.poll_status(task_id, wait_seconds)

    def fetch_result(self, task_id: str) -> TaskResult:
        return self.api.fetch_result(task_id)

    def download_raw_payload(self, task_id: str) -> ResultPayload:
        return self.api.download_raw_payload(task_id)

    def health(self) -> Dict[str, Any]:
        return self.api.health()

    def clear_results(self, older_than: Optional[float] = None) -> Dict[str, Any]:
        return self.api.clear_results(older_than)

    def _poller(self, max_seconds: Optional[float], wait_seconds: Optional[float]) -> TaskPoller:
        return TaskPoller(
            self.api,
            retry_policy=self.poll_retry_policy,
            max_seconds=max_seconds if max_seconds is not None else self.settings.poll_max_seconds,
            wait_seconds=wait_seconds if wait_seconds is not None else self.settings.poll_wait_seconds,
            error_retry_delay=self.settings.poll_error_retry_delay,
        )

    def wait_for_outcome(
        self,
        task_id: str,
        max_seconds: Optional[float] = None,
        wait_seconds: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> PollOutcome:
        """Block until ``task_id`` finishes; report the result with poll statistics."""
        return self._poller(max_seconds, wait_seconds).run(task_id, token)

    def wait_for_result(
        self,
        task_id: str,
        max_seconds: Optional[float] = None,
        wait_seconds: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> TaskResult:
        """
        Block until ``task_id`` finishes and return its result.

        Args:
            task_id: Task returned by one of the ``*_async`` submissions
            max_seconds: Total poll budget; defaults to ``POLL_MAX_SECONDS``
            wait_seconds: Poll interval; defaults to ``POLL_WAIT_SECONDS``
            token: Cancels the wait from another thread

        Raises:
            TaskFailureError: The service reported the task as failed
            TimeoutError: The task was still running when the budget ran out
            ClientError: Status polls kept failing
            OperationInterruptedError: The wait was cancelled
        """
        return self.wait_for_outcome(task_id, max_seconds, wait_seconds, token).result

    def wait_for_result_async(
        self,
        task_id: str,
        max_seconds: Optional[float] = None,
        wait_seconds: Optional[float] = None,
    ) -> TaskHandle:
        """Run :meth:`wait_for_result` on a worker thread and return its handle.

        Every failure, including an invalid ``task_id``, arrives through the handle.
        """
        return submit_blocking(
            self.wait_for_result,
            task_id,
            max_seconds,
            wait_seconds,
            executor=self._executor,
            operation="wait_for_result",
            task_id=task_id,
        )

    # Results

    def materialize(
        self,
        result: Union[ResultPayload, TaskResult],
        output_format: FormatLike,
        destination: Union[str, Path],
    ) -> Path:
        """Write ``result`` to ``destination`` in ``output_format``."""
        return self.materializer.materialize(result, output_format, destination)

    def materialize_task(
        self,
        task_id: str,
        output_format: FormatLike,
        destination: Union[str, Path],
    ) -> Path:
        """Download the raw result of a finished task and materialize it."""
        payload = self.api.download_raw_payload(task_id)
        return self.materializer.materialize(payload, output_format, destination)

    def write_chunks(self, result: TaskResult, destination: Union[str, Path]) -> Path:
        return self.materializer.write_chunks(result, destination)

    # Lifecycle

    def close(self) -> None:
        """Release the HTTP client and any worker pool this client was given.

        The shared default pool is left running for other clients.
        """
        if self._closed:
            return
        self._closed = True
        close_api = getattr(self.api, "close", None)
        if callable(close_api):
            close_api()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        self.logger.debug("DoclingClient closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
