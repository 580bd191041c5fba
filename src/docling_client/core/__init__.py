"""
Core pure functions for the client.

This package contains I/O-free functions for status interpretation,
document lookup, result parsing and request helpers.
"""

from .documents import (
    MAX_SEARCH_DEPTH,
    available_formats,
    extract_content,
    find_document,
    locate_document_node,
    looks_like_document,
)

from .payloads import (
    classify_result,
    decode_json,
    describe_payload,
    describe_task_result,
    parse_task_result,
)

from .status import (
    describe_task,
    is_failure_status,
    is_success_status,
    is_terminal_status,
)

from .utils import (
    apply_jitter,
    build_auth_headers,
    calculate_retry_delay,
    classify_request_exception,
)

__all__ = [
    # Document functions
    "MAX_SEARCH_DEPTH",
    "available_formats",
    "extract_content",
    "find_document",
    "locate_document_node",
    "looks_like_document",
    # Payload functions
    "classify_result",
    "decode_json",
    "describe_payload",
    "describe_task_result",
    "parse_task_result",
    # Status functions
    "describe_task",
    "is_failure_status",
    "is_success_status",
    "is_terminal_status",
    # Request helpers
    "apply_jitter",
    "build_auth_headers",
    "calculate_retry_delay",
    "classify_request_exception",
]
