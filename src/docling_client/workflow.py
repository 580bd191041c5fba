"""
Batch helpers chaining submit, wait and materialize.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from .config import get_logger
from .exceptions import InvalidInputError
from .formats import OutputFormat
from .models import Task


logger = get_logger("workflow")


@dataclass(frozen=True)
class TaskCompletion:
    """A finished task and the file it produced."""

    label: str
    task: Task
    destination: Path


def safe_name(raw: Optional[str]) -> str:
    """Lower-case slug usable as a file name stem."""
    if raw is None or not raw.strip():
        return "unnamed"
    slug = re.sub(r"[^A-Za-z0-9]+", "-", raw).strip("-").lower()
    return slug or "unnamed"


def output_filename(stem: str, output_format: OutputFormat) -> str:
    return f"{safe_name(stem)}-{output_format.primary_token}{output_format.file_extension}"


def _normalize_urls(urls: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(urls, str):
        urls = [urls]
    sources = [url.strip() for url in urls if url and url.strip()]
    if not sources:
        raise InvalidInputError("At least one source URL is required")
    return sources


def _normalize_formats(formats: Optional[Sequence[Union[OutputFormat, str]]]) -> List[OutputFormat]:
    if not formats:
        return [OutputFormat.MARKDOWN]
    parsed = [fmt if isinstance(fmt, OutputFormat) else OutputFormat.parse(fmt) for fmt in formats]
    return list(dict.fromkeys(parsed))


def convert_sources_to_files(
    client,
    urls: Union[str, Iterable[str]],
    destination_dir: Union[str, Path],
    formats: Optional[Sequence[Union[OutputFormat, str]]] = None,
) -> List[TaskCompletion]:
    """
    Convert every URL into every requested format, one task per pair.

    Files are named ``<slug>-<format><extension>`` inside ``destination_dir``.

    Args:
        client: A :class:`~docling_client.client.DoclingClient`
        urls: One URL or several
        destination_dir: Created if missing
        formats: Output formats; Markdown when omitted

    Returns:
        One TaskCompletion per written file, in submission order
    """
    sources = _normalize_urls(urls)
    output_formats = _normalize_formats(formats)
    destination_dir = Path(destination_dir)
    destination_dir.mkdir(parents=True, exist_ok=True)

    completions = []
    for url in sources:
        for fmt in output_formats:
            task = client.convert_source_async(url, [fmt])
            logger.info("Queued conversion of %s as %s (task %s)", url, fmt.value, task.task_id)
            client.wait_for_result(task.task_id)
            dest = destination_dir / output_filename(url, fmt)
            client.materialize_task(task.task_id, fmt, dest)
            logger.info("Task %s complete -> %s", task.task_id, dest)
            completions.append(TaskCompletion("url-async-convert", task, dest))
    return completions


def convert_file_to_files(
    client,
    path: Union[str, Path],
    destination_dir: Union[str, Path],
    formats: Optional[Sequence[Union[OutputFormat, str]]] = None,
) -> List[TaskCompletion]:
    """Upload a local file once per requested format and write each result."""
    path = Path(path)
    if not path.is_file():
        raise InvalidInputError(f"File not found: {path}")
    destination_dir = Path(destination_dir)
    destination_dir.mkdir(parents=True, exist_ok=True)

    completions = []
    for fmt in _normalize_formats(formats):
        task = client.convert_file_async(path, output_format=fmt)
        logger.info("Queued conversion of %s as %s (task %s)", path.name, fmt.value, task.task_id)
        client.wait_for_result(task.task_id)
        dest = destination_dir / output_filename(path.name, fmt)
        client.materialize_task(task.task_id, fmt, dest)
        completions.append(TaskCompletion("file-async-convert", task, dest))
    return completions


def chunk_sources_to_file(
    client,
    urls: Union[str, Iterable[str]],
    destination: Union[str, Path],
    include_converted_doc: bool = False,
) -> TaskCompletion:
    """Chunk the given URLs in one task and write the chunks as JSON."""
    sources = _normalize_urls(urls)
    task = client.chunk_sources_async(sources, include_converted_doc=include_converted_doc)
    logger.info("Queued chunking of %d sources (task %s)", len(sources), task.task_id)
    result = client.wait_for_result(task.task_id)
    dest = client.write_chunks(result, destination)
    return TaskCompletion("url-async-chunk", task, dest)
