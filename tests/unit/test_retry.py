"""
Test the retry engine.

Tests attempt counting, backoff delays, jitter bounds, error classification,
and cancellation during backoff.
"""

import threading
from dataclasses import FrozenInstanceError
from unittest.mock import patch

import httpx
import pytest

from docling_client.cancellation import CancellationToken
from docling_client.exceptions import (
    HttpError,
    NetworkError,
    OperationInterruptedError,
    RetryExhaustedError,
    TaskFailureError,
)
from docling_client.retry import RetryPolicy, default_retry_predicate


def no_jitter(**kwargs):
    params = dict(initial_delay=1.0, max_delay=30.0, backoff_multiplier=2.0, jitter_factor=0.0)
    params.update(kwargs)
    return RetryPolicy(**params)


def raising(error):
    def operation():
        raise error

    return operation


class TestRetryAttempts:
    """Test how many times an operation runs."""

    def test_success_on_first_attempt(self):
        """Test a successful operation runs once and never sleeps."""
        sleeps = []
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1
            return "ok"

        assert no_jitter().execute(operation, sleep=sleeps.append) == "ok"
        assert call_count["value"] == 1
        assert sleeps == []

    @pytest.mark.parametrize("max_attempts", [2, 3, 4, 6])
    def test_always_retryable_runs_n_attempts_with_n_minus_one_sleeps(self, max_attempts):
        """Test exhaustion after exactly max_attempts attempts."""
        sleeps = []
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1
            raise NetworkError(f"connection refused #{call_count['value']}")

        with pytest.raises(RetryExhaustedError) as exc_info:
            no_jitter(max_attempts=max_attempts).execute(operation, sleep=sleeps.append)

        assert call_count["value"] == max_attempts
        assert len(sleeps) == max_attempts - 1
        assert exc_info.value.attempts == max_attempts
        assert isinstance(exc_info.value.last_error, NetworkError)
        assert f"#{max_attempts}" in str(exc_info.value.last_error)
        assert exc_info.value.__cause__ is exc_info.value.last_error

    def test_non_retryable_error_runs_once(self):
        """Test 4xx errors are raised unchanged after one attempt."""
        sleeps = []
        call_count = {"value": 0}
        error = HttpError("Not found", 404, "GET", "http://x/v1/result/t")

        def operation():
            call_count["value"] += 1
            raise error

        with pytest.raises(HttpError) as exc_info:
            no_jitter().execute(operation, sleep=sleeps.append)

        assert exc_info.value is error
        assert call_count["value"] == 1
        assert sleeps == []

    def test_server_error_then_success(self):
        """Test a 5xx is retried and a later success is returned."""
        sleeps = []
        responses = [HttpError("Unavailable", 503), HttpError("Bad gateway", 502), "done"]

        def operation():
            step = responses.pop(0)
            if isinstance(step, Exception):
                raise step
            return step

        assert no_jitter().execute(operation, sleep=sleeps.append) == "done"
        assert len(sleeps) == 2

    def test_no_retry_policy_surfaces_original_error(self):
        """Test a single-attempt policy does not wrap errors."""
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1
            raise NetworkError("reset by peer")

        with pytest.raises(NetworkError):
            RetryPolicy.no_retry().execute(operation, sleep=lambda _: None)

        assert call_count["value"] == 1

    def test_custom_predicate(self):
        """Test a caller-supplied predicate decides retryability."""
        sleeps = []
        policy = RetryPolicy(
            max_attempts=3,
            initial_delay=0.0,
            max_delay=0.0,
            jitter_factor=0.0,
            retry_predicate=lambda e: isinstance(e, KeyError),
        )

        with pytest.raises(RetryExhaustedError):
            policy.execute(lambda: {}["missing"], sleep=sleeps.append)
        assert len(sleeps) == 2

        with pytest.raises(NetworkError):
            policy.execute(raising(NetworkError("x")), sleep=sleeps.append)
        assert len(sleeps) == 2


class TestBackoffDelays:
    """Test the delay schedule between attempts."""

    def test_exponential_growth_capped_at_max_delay(self):
        """Test delays double and then stay at max_delay."""
        sleeps = []
        policy = no_jitter(max_attempts=6, initial_delay=1.0, max_delay=5.0)

        def operation():
            raise ConnectionError("refused")

        with pytest.raises(RetryExhaustedError):
            policy.execute(operation, sleep=sleeps.append)

        assert sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_upper_bound(self):
        """Test jitter never exceeds +jitter_factor of the delay."""
        sleeps = []
        policy = RetryPolicy(max_attempts=2, initial_delay=10.0, max_delay=10.0, jitter_factor=0.2)

        with patch("docling_client.core.utils.random.random", return_value=1.0):
            with pytest.raises(RetryExhaustedError):
                policy.execute(raising(OSError("io")), sleep=sleeps.append)

        assert sleeps == [pytest.approx(12.0)]

    def test_jitter_lower_bound(self):
        """Test jitter never goes below -jitter_factor of the delay."""
        sleeps = []
        policy = RetryPolicy(max_attempts=2, initial_delay=10.0, max_delay=10.0, jitter_factor=0.2)

        with patch("docling_client.core.utils.random.random", return_value=0.0):
            with pytest.raises(RetryExhaustedError):
                policy.execute(raising(OSError("io")), sleep=sleeps.append)

        assert sleeps == [pytest.approx(8.0)]

    def test_default_policy_values(self):
        """Test default policy configuration."""
        policy = RetryPolicy.default()
        assert policy.max_attempts == 4
        assert policy.initial_delay == 1.0
        assert policy.max_delay == 30.0
        assert policy.backoff_multiplier == 2.0
        assert policy.jitter_factor == 0.2


class TestPolicyValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"initial_delay": -1.0},
            {"initial_delay": 5.0, "max_delay": 1.0},
            {"backoff_multiplier": 0.5},
            {"jitter_factor": 1.5},
            {"jitter_factor": -0.1},
        ],
    )
    def test_invalid_configuration_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_policy_is_frozen(self):
        policy = RetryPolicy.default()
        with pytest.raises(FrozenInstanceError):
            policy.max_attempts = 10


class TestRetryPredicate:
    """Test which errors the default predicate treats as transient."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (NetworkError("connect failed"), True),
            (httpx.ConnectError("refused"), True),
            (httpx.ReadTimeout("slow"), True),
            (ConnectionError("reset"), True),
            (OSError("broken pipe"), True),
            (HttpError("server", 500), True),
            (HttpError("unavailable", 503), True),
            (HttpError("bad request", 400), False),
            (HttpError("not found", 404), False),
            (OperationInterruptedError("cancelled"), False),
            (TaskFailureError("failed", "t-1"), False),
            (ValueError("bad"), False),
        ],
    )
    def test_default_predicate(self, error, expected):
        assert default_retry_predicate(error) is expected


class TestRetryCancellation:
    """Test interaction with the cancellation token."""

    def test_cancelled_token_prevents_first_attempt(self):
        """Test nothing runs once the token is cancelled."""
        token = CancellationToken()
        token.cancel()
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1

        with pytest.raises(OperationInterruptedError):
            no_jitter().execute(operation, token=token)
        assert call_count["value"] == 0

    def test_interruption_is_never_retried(self):
        """Test an interruption raised by the operation propagates at once."""
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1
            raise OperationInterruptedError("stopped")

        with pytest.raises(OperationInterruptedError):
            no_jitter().execute(operation, sleep=lambda _: None)
        assert call_count["value"] == 1

    def test_cancel_during_attempt_stops_retrying(self):
        """Test a token cancelled mid-attempt surfaces the attempt's error."""
        token = CancellationToken()
        call_count = {"value": 0}

        def operation():
            call_count["value"] += 1
            token.cancel()
            raise NetworkError("dropped")

        with pytest.raises(NetworkError):
            no_jitter().execute(operation, token=token)
        assert call_count["value"] == 1

    def test_token_sleep_raises_when_cancelled_while_waiting(self):
        """Test a real backoff wait aborts with OperationInterruptedError."""
        token = CancellationToken()
        policy = no_jitter(max_attempts=3, initial_delay=30.0, max_delay=30.0)
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            with pytest.raises(OperationInterruptedError):
                policy.execute(raising(NetworkError("flaky")), token=token)
        finally:
            timer.cancel()
