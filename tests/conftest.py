import json

import pytest

from docling_client.config import ClientSettings
from docling_client.models import ResultKind, ResultPayload, Task, TaskResult
from docling_client.retry import RetryPolicy


DOCUMENT_RESULT = {
    "document": {
        "filename": "paper.pdf",
        "md_content": "# Paper\n\nBody text",
        "html_content": "<h1>Paper</h1>",
        "text_content": "Paper Body text",
    },
    "status": "success",
    "processing_time": 1.5,
    "errors": [],
}


class FakeTaskApi:
    """Scripted stand-in for TaskApi.

    ``statuses`` is consumed one entry per poll: a string is returned as the
    task status, an exception instance is raised.
    """

    def __init__(self, statuses=(), result=None, payload=None, default_status=None):
        self.script = list(statuses)
        self.default_status = default_status
        self.result = result or TaskResult(ResultKind.DOCUMENT, DOCUMENT_RESULT)
        self.payload = payload or ResultPayload(
            json.dumps(DOCUMENT_RESULT).encode("utf-8"), "application/json"
        )
        self.poll_calls = []
        self.fetch_calls = []
        self.download_calls = []
        self.submissions = []
        self.closed = False
        self._next_task = 0

    def _new_task(self, kind, **fields):
        self._next_task += 1
        self.submissions.append((kind, fields))
        return Task(task_id=f"task-{self._next_task}", status="pending", position=1)

    def submit_source(self, urls, output_formats, options=None, target="inbody"):
        return self._new_task("source", urls=urls, output_formats=output_formats, options=options)

    def submit_file(self, content, filename, output_format, target="inbody"):
        return self._new_task("file", content=content, filename=filename, output_format=output_format)

    def submit_chunk_sources(self, urls, chunk_options=None, include_converted_doc=False, target="inbody"):
        return self._new_task("chunk", urls=urls, include_converted_doc=include_converted_doc)

    def poll_status(self, task_id, wait_seconds=0):
        self.poll_calls.append((task_id, wait_seconds))
        if self.script:
            step = self.script.pop(0)
        elif self.default_status is not None:
            step = self.default_status
        else:
            raise AssertionError(f"Unexpected poll #{len(self.poll_calls)} for {task_id}")
        if isinstance(step, BaseException):
            raise step
        return Task(task_id=task_id, status=step, metadata={"poll": len(self.poll_calls)})

    def fetch_result(self, task_id):
        self.fetch_calls.append(task_id)
        return self.result

    def download_raw_payload(self, task_id):
        self.download_calls.append(task_id)
        return self.payload

    def close(self):
        self.closed = True


@pytest.fixture
def fake_api_factory():
    return FakeTaskApi


@pytest.fixture
def quick_retry():
    """Retries without real waiting."""
    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0, jitter_factor=0.0)


@pytest.fixture
def fast_settings(monkeypatch):
    for var in ("POLL_MAX_SECONDS", "POLL_WAIT_SECONDS"):
        monkeypatch.delenv(var, raising=False)
    return ClientSettings(
        base_url="http://docling.test",
        poll_max_seconds=5,
        poll_wait_seconds=0.01,
        poll_error_retry_delay=0,
    )


@pytest.fixture
def document_result():
    return json.loads(json.dumps(DOCUMENT_RESULT))
