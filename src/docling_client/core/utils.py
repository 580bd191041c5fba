"""
Utility functions for remote client operations.
"""

import random
from typing import Dict, Optional

import httpx


def build_auth_headers(api_key: Optional[str]) -> Dict[str, str]:
    """Build default request headers."""
    headers = {"User-Agent": "docling-client/1.0", "Accept": "application/json"}
    if api_key:
        headers["X-Api-Key"] = api_key
    return headers


def classify_request_exception(exception: Exception) -> str:
    """Classify exception type for error handling logic."""
    if isinstance(exception, httpx.TimeoutException):
        return "timeout"
    elif isinstance(
        exception, (httpx.NetworkError, httpx.TransportError, ConnectionError, OSError)
    ):
        return "network"
    else:
        return "unknown"


def calculate_retry_delay(
    previous_delay: float, multiplier: float, max_delay: float
) -> float:
    """Calculate the next exponential backoff delay, capped at ``max_delay``."""
    return min(previous_delay * multiplier, max_delay)


def apply_jitter(delay: float, jitter_factor: float) -> float:
    """Randomize ``delay`` by up to +/- ``jitter_factor`` of itself."""
    if jitter_factor <= 0:
        return delay
    jitter = (random.random() * 2 - 1) * jitter_factor
    return max(0.0, delay * (1 + jitter))
