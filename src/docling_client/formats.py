"""
Output formats a finished task can be materialized as.
"""

from enum import Enum
from typing import Optional, Tuple

from .exceptions import InvalidInputError


class OutputFormat(Enum):
    """
    Supported on-disk representations of a converted document.

    Each member carries the aliases accepted by :meth:`parse`, the value the
    service expects in ``to_formats``, the file extension used for generated
    names, the archive entry suffixes that identify it inside a ZIP result,
    the document field holding its inline content, and the top-level fields
    that identify it when the content is self-describing JSON.

    Example:
        >>> OutputFormat.parse("md")
        <OutputFormat.MARKDOWN: 'markdown'>
        >>> OutputFormat.from_nullable(None)
        <OutputFormat.MARKDOWN: 'markdown'>
    """

    DOCLING_JSON = (
        ("docling", "docling-json", "json", "docling_document"),
        "json",
        ".docling.json",
        (".docling.json", ".json"),
        "json_content",
        ("schema_name", "body"),
    )
    MARKDOWN = (("markdown", "md"), "md", ".md", (".md",), "md_content", ())
    HTML = (("html",), "html", ".html", (".html", ".htm"), "html_content", ())
    HTML_SPLIT_PAGE = (
        ("html_split_page", "html-split", "htmlsplit"),
        "html_split_page",
        ".html_split",
        (),
        "html_content",
        (),
    )
    TEXT = (("text", "txt", "plain"), "text", ".txt", (".txt",), "text_content", ())
    DOCTAGS = (
        ("doctags", "tags", "doc-tags"),
        "doctags",
        ".doctags",
        (".doctags",),
        "doctags_content",
        (),
    )

    def __new__(cls, aliases, *args):
        obj = object.__new__(cls)
        obj._value_ = aliases[0].lower()
        return obj

    def __init__(
        self,
        aliases: Tuple[str, ...],
        wire_value: str,
        file_extension: str,
        archive_suffixes: Tuple[str, ...],
        content_key: str,
        signature_fields: Tuple[str, ...],
    ):
        self.aliases = tuple(alias.lower() for alias in aliases)
        self.wire_value = wire_value
        self.file_extension = file_extension
        self.archive_suffixes = tuple(suffix.lower() for suffix in archive_suffixes)
        self.content_key = content_key
        self.signature_fields = signature_fields

    @property
    def primary_token(self) -> str:
        return self.aliases[0]

    @property
    def is_directory_export(self) -> bool:
        """Whether the archive form is a multi-file directory, not one entry."""
        return self is OutputFormat.HTML_SPLIT_PAGE

    @property
    def is_self_describing(self) -> bool:
        return bool(self.signature_fields)

    def matches_entry_name(self, name: str) -> bool:
        lower = name.lower()
        return any(lower.endswith(suffix) for suffix in self.archive_suffixes)

    @classmethod
    def parse(cls, raw: Optional[str]) -> "OutputFormat":
        normalized = raw.strip().lower() if raw is not None else None
        for member in cls:
            if normalized in member.aliases:
                return member
        raise InvalidInputError(
            f"Unsupported output type '{raw}'. Supported: {cls.supported_values()}",
            {"output_type": raw},
        )

    @classmethod
    def from_nullable(
        cls, raw: Optional[str], default: Optional["OutputFormat"] = None
    ) -> "OutputFormat":
        if raw is None or not raw.strip():
            return default or cls.MARKDOWN
        return cls.parse(raw)

    @classmethod
    def supported_values(cls) -> str:
        return ", ".join(member.primary_token for member in cls)


# Document fields that carry converted content, in lookup order
CONTENT_KEYS = tuple(dict.fromkeys(member.content_key for member in OutputFormat))
