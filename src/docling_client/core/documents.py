"""
Pure functions for locating converted documents inside result JSON.

The result endpoint is not consistent about where it puts the exported
document: older servers return it under ``document``, newer ones nest it under
``documents[i].content`` or other wrappers, and some send a content field as a
bare string where an object was documented. These helpers find the
document-shaped object structurally and pull the requested content out of it.
"""

import json
from collections import deque
from typing import Any, Dict, Optional

from ..formats import CONTENT_KEYS, OutputFormat


# Nodes deeper than this are never inspected
MAX_SEARCH_DEPTH = 100

# Keys under which a content wrapper object may carry its string
STRING_WRAPPER_KEYS = ("string", "content", "text", "value")


def looks_like_document(node: Any) -> bool:
    """True for an object exposing at least one known content field."""
    if not isinstance(node, dict):
        return False
    return any(key in node for key in CONTENT_KEYS)


def locate_document_node(
    root: Any, max_depth: int = MAX_SEARCH_DEPTH
) -> Optional[Dict[str, Any]]:
    """Breadth-first search for the first document-shaped object.

    Uses an explicit queue with a per-node depth so the bound holds regardless
    of how deeply the input nests. The root is depth 0; nodes past
    ``max_depth`` are dropped without being inspected or expanded.
    """
    if root is None:
        return None

    queue = deque([(root, 0)])
    while queue:
        node, depth = queue.popleft()
        if depth > max_depth:
            continue
        if looks_like_document(node):
            return node
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        for child in children:
            if isinstance(child, (dict, list)):
                queue.append((child, depth + 1))
    return None


def find_document(root: Any, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Dict[str, Any]]:
    """Return the exported document, preferring the documented ``document`` field.

    Falls back to the breadth-first search when ``document`` is missing or
    carries no content field.
    """
    if isinstance(root, dict):
        document = root.get("document")
        if looks_like_document(document):
            return document
    return locate_document_node(root, max_depth)


def extract_content(document: Dict[str, Any], output_format: OutputFormat) -> Optional[str]:
    """Pull ``output_format``'s content out of a document object.

    Returns None when the field is missing or null, or when its shape cannot
    be turned into text. Docling JSON objects are serialized compactly, as
    the service sends them.
    """
    value = document.get(output_format.content_key)
    if value is None:
        return None

    if output_format is OutputFormat.DOCLING_JSON:
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        if isinstance(value, str):
            return value
        return None

    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in STRING_WRAPPER_KEYS:
            wrapped = value.get(key)
            if isinstance(wrapped, str):
                return wrapped
    return None


def available_formats(document: Optional[Dict[str, Any]]) -> list:
    """Content fields present with a non-null value, for diagnostics."""
    if not document:
        return []
    return [key for key in CONTENT_KEYS if document.get(key) is not None]
