"""
Turns a finished task's result into the requested file on disk.

Handles the three shapes a result arrives in: a ZIP archive, a JSON body with
the document at the documented location, and a JSON body where the document
is nested somewhere else. When nothing usable is found the raw bytes are kept
next to the destination as ``<name>.raw`` for inspection.
"""

import io
import json
import os
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from .config import get_logger
from .core.documents import available_formats, extract_content, find_document
from .exceptions import InvalidInputError, MaterializationError
from .formats import OutputFormat
from .models import ResultKind, ResultPayload, TaskResult


logger = get_logger("materializer")

SPLIT_PAGE_MARKER = "html_split_page"

PathLike = Union[str, os.PathLike]


def atomic_write(destination: Path, data: bytes) -> Path:
    """Write ``data`` to a temp file beside ``destination`` and rename it into place."""
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=str(destination.parent)
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, destination)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return destination


def diagnostic_path_for(destination: Path) -> Path:
    return destination.with_name(destination.name + ".raw")


def split_page_relative_path(entry_name: str) -> Optional[PurePosixPath]:
    """Path of a split-page archive entry relative to its export directory."""
    if not entry_name or not entry_name.strip():
        return None
    normalized = entry_name.replace("\\", "/")
    marker = normalized.lower().find(SPLIT_PAGE_MARKER)
    if marker < 0:
        return None
    relative = normalized[marker + len(SPLIT_PAGE_MARKER):].lstrip("/")
    if not relative:
        relative = normalized.rsplit("/", 1)[-1]
    if not relative.strip():
        return None
    return PurePosixPath(relative)


class ResultMaterializer:
    """Writes task results as files in a requested output format."""

    def materialize(
        self,
        result: Union[ResultPayload, TaskResult],
        output_format: Union[OutputFormat, str],
        destination: PathLike,
    ) -> Path:
        """Write ``result`` to ``destination`` as ``output_format``.

        Args:
            result: Downloaded payload or parsed task result
            output_format: Target format, or any alias accepted by
                :meth:`OutputFormat.parse`
            destination: Output file; a directory for ``HTML_SPLIT_PAGE``
                archives

        Returns:
            The path written

        Raises:
            MaterializationError: The result does not contain the format
            InvalidInputError: Unknown format or unsupported result type
        """
        fmt = output_format if isinstance(output_format, OutputFormat) else OutputFormat.parse(output_format)
        destination = Path(destination)

        if isinstance(result, ResultPayload):
            if result.is_archive:
                return self._materialize_archive(result.body, fmt, destination)
            return self._materialize_json_bytes(result.body, fmt, destination)

        if isinstance(result, TaskResult):
            return self._materialize_task_result(result, fmt, destination)

        raise InvalidInputError(
            f"Cannot materialize result of type {type(result).__name__}",
            {"type": type(result).__name__},
        )

    def write_chunks(self, result: TaskResult, destination: PathLike) -> Path:
        """Write a chunking result as pretty-printed JSON."""
        destination = Path(destination)
        if not isinstance(result, TaskResult) or result.kind is not ResultKind.CHUNKS:
            kind = result.kind.value if isinstance(result, TaskResult) else type(result).__name__
            raise MaterializationError(
                f"Expected a chunk result, got {kind}", details={"kind": kind}
            )
        text = json.dumps(result.data, indent=2, ensure_ascii=False)
        atomic_write(destination, text.encode("utf-8"))
        logger.info(
            "Wrote %d chunks to %s", len(result.data.get("chunks") or []), destination
        )
        return destination

    # Archive results

    def _materialize_archive(self, body: bytes, fmt: OutputFormat, destination: Path) -> Path:
        try:
            with zipfile.ZipFile(io.BytesIO(body)) as archive:
                if fmt.is_directory_export:
                    extracted = self._extract_split_pages(archive, destination)
                    if extracted:
                        logger.info("Extracted %d split pages to %s", extracted, destination)
                        return destination
                    data = None
                else:
                    data = self._find_archive_entry(archive, fmt)
        except zipfile.BadZipFile as e:
            raise self._failure(body, destination, f"Result archive is not a valid ZIP file: {e}")

        if data is None:
            raise self._failure(
                body, destination, f"Format {fmt.primary_token} not present in archive"
            )
        atomic_write(destination, data)
        logger.info("Wrote %s (%d bytes) from archive", destination, len(data))
        return destination

    def _find_archive_entry(self, archive: zipfile.ZipFile, fmt: OutputFormat) -> Optional[bytes]:
        for info in archive.infolist():
            if info.is_dir() or not fmt.matches_entry_name(info.filename):
                continue
            data = archive.read(info)
            if not fmt.is_self_describing or self._has_signature(data, fmt):
                logger.debug("Using archive entry %s for %s", info.filename, fmt.value)
                return data
        return None

    def _has_signature(self, data: bytes, fmt: OutputFormat) -> bool:
        try:
            parsed = json.loads(data)
        except (ValueError, UnicodeDecodeError, RecursionError):
            return False
        return isinstance(parsed, dict) and any(key in parsed for key in fmt.signature_fields)

    def _extract_split_pages(self, archive: zipfile.ZipFile, destination: Path) -> int:
        """Extract split pages into a staging directory, then swap it into place.

        An existing destination is replaced only when at least one page was extracted.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(
            tempfile.mkdtemp(prefix=f".{destination.name}.", dir=str(destination.parent))
        )
        try:
            root = staging.resolve()
            extracted = 0
            for info in archive.infolist():
                if info.is_dir():
                    continue
                relative = split_page_relative_path(info.filename)
                if relative is None:
                    continue
                target = (root / relative).resolve()
                if target != root and root not in target.parents:
                    logger.warning("Skipping archive entry outside export directory: %s", info.filename)
                    continue
                atomic_write(target, archive.read(info))
                extracted += 1

            if extracted:
                if destination.is_dir():
                    shutil.rmtree(destination)
                elif destination.exists():
                    destination.unlink()
                os.replace(staging, destination)
        finally:
            if staging.exists():
                shutil.rmtree(staging)
        return extracted

    # JSON results

    def _materialize_json_bytes(self, body: bytes, fmt: OutputFormat, destination: Path) -> Path:
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise self._failure(body, destination, f"Result body is not valid JSON: {e}")
        except RecursionError:
            raise self._failure(
                body, destination, "No document found in result (JSON nested too deeply)"
            )
        return self._write_document(data, fmt, destination, body)

    def _materialize_task_result(self, result: TaskResult, fmt: OutputFormat, destination: Path) -> Path:
        raw = json.dumps(result.data, ensure_ascii=False).encode("utf-8")
        if result.kind is ResultKind.DOCUMENT:
            return self._write_document(result.data, fmt, destination, raw)
        if result.kind is ResultKind.PRESIGNED:
            raise self._failure(
                raw, destination, "Result was delivered to a presigned target; no inline content"
            )
        if result.kind is ResultKind.CHUNKS:
            raise self._failure(
                raw, destination, "Result is a chunk response; use write_chunks instead"
            )
        raise ValueError(f"Unhandled result kind: {result.kind}")

    def _write_document(self, data, fmt: OutputFormat, destination: Path, raw: bytes) -> Path:
        document = find_document(data)
        if document is None:
            raise self._failure(raw, destination, "No document found in result")

        content = extract_content(document, fmt)
        if content is None:
            raise self._failure(
                raw,
                destination,
                f"Document has no {fmt.primary_token} content "
                f"(available: {available_formats(document)})",
            )
        atomic_write(destination, content.encode("utf-8"))
        logger.info("Wrote %s (%d chars)", destination, len(content))
        return destination

    def _failure(self, raw: bytes, destination: Path, reason: str) -> MaterializationError:
        """Persist ``raw`` beside ``destination`` and build the error to raise."""
        diagnostic = diagnostic_path_for(destination)
        atomic_write(diagnostic, raw)
        logger.error("%s; raw payload saved to %s", reason, diagnostic)
        return MaterializationError(
            f"{reason}; raw payload saved to {diagnostic.name}",
            diagnostic_path=diagnostic,
            details={"destination": str(destination)},
        )
