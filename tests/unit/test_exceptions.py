import pytest
from pathlib import Path

from docling_client.exceptions import (
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


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class",
        [
            InvalidInputError,
            NetworkError,
            HttpError,
            RetryExhaustedError,
            TaskFailureError,
            TimeoutError,
            MaterializationError,
            OperationInterruptedError,
        ],
    )
    def test_inherits_from_client_error(self, error_class):
        assert issubclass(error_class, ClientError)

    def test_timeout_error_is_not_builtin(self):
        """Test our TimeoutError is not classified as an OSError"""
        assert not issubclass(TimeoutError, OSError)

    def test_client_error_details(self):
        error = ClientError("boom", {"key": "value"})
        assert error.message == "boom"
        assert error.details == {"key": "value"}
        assert str(error) == "boom"
        assert ClientError("plain").details == {}


class TestNetworkError:
    def test_str_includes_request(self):
        error = NetworkError("Connection refused", method="GET", url="http://x/health")
        assert str(error) == "Connection refused [GET http://x/health]"

    def test_str_without_request(self):
        assert str(NetworkError("Connection refused")) == "Connection refused"


class TestHttpError:
    def test_server_and_client_flags(self):
        assert HttpError("x", 503).is_server_error
        assert not HttpError("x", 503).is_client_error
        assert HttpError("x", 404).is_client_error
        assert not HttpError("x", 404).is_server_error

    def test_str_truncates_body(self):
        error = HttpError("Bad", 500, "POST", "http://x/v1", "e" * 500)
        text = str(error)
        assert "status=500" in text
        assert "[POST http://x/v1]" in text
        assert "e" * 200 + "..." in text
        assert "e" * 201 not in text

    def test_details_carry_status(self):
        assert HttpError("Bad", 502).details == {"status_code": 502}


class TestTaskErrors:
    def test_task_failure_fields(self):
        error = TaskFailureError("Task failed", "t-1", status="failure", metadata={"reason": "ocr"})
        assert error.task_id == "t-1"
        assert error.status == "failure"
        assert error.metadata == {"reason": "ocr"}
        assert "task_id=t-1" in str(error)
        assert "status=failure" in str(error)

    def test_timeout_fields(self):
        error = TimeoutError("Too slow", "wait_for_result", 900, task_id="t-2")
        assert error.operation == "wait_for_result"
        assert error.timeout_seconds == 900
        assert "operation=wait_for_result" in str(error)
        assert "task_id=t-2" in str(error)

    def test_retry_exhausted_fields(self):
        last = NetworkError("reset")
        error = RetryExhaustedError("poll failed after 4 attempts", 4, last)
        assert error.attempts == 4
        assert error.last_error is last
        assert str(error) == "poll failed after 4 attempts: reset"

    def test_materialization_error_path(self):
        error = MaterializationError("no content", diagnostic_path=Path("out.md.raw"))
        assert error.diagnostic_path == Path("out.md.raw")
