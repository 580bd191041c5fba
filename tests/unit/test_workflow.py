import json

import pytest

from docling_client import DoclingClient
from docling_client.exceptions import InvalidInputError, MaterializationError
from docling_client.formats import OutputFormat
from docling_client.models import ResultKind, TaskResult
from docling_client.workflow import (
    chunk_sources_to_file,
    convert_file_to_files,
    convert_sources_to_files,
    output_filename,
    safe_name,
)


@pytest.fixture
def workflow_client(fast_settings, quick_retry, fake_api_factory):
    def factory(**kwargs):
        api = fake_api_factory(default_status="success", **kwargs)
        return DoclingClient(settings=fast_settings, retry_policy=quick_retry, api=api), api

    return factory


class TestNaming:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://example.com/doc.pdf", "https-example-com-doc-pdf"),
            ("Report Final.DOCX", "report-final-docx"),
            ("--weird__name--", "weird-name"),
            ("", "unnamed"),
            ("???", "unnamed"),
            (None, "unnamed"),
        ],
    )
    def test_safe_name(self, raw, expected):
        assert safe_name(raw) == expected

    def test_output_filename(self):
        name = output_filename("https://example.com/doc.pdf", OutputFormat.MARKDOWN)
        assert name == "https-example-com-doc-pdf-markdown.md"
        assert output_filename("a.pdf", OutputFormat.DOCLING_JSON) == "a-pdf-docling.docling.json"


class TestConvertSources:
    def test_one_task_per_url_and_format(self, workflow_client, tmp_path):
        client, api = workflow_client()

        completions = convert_sources_to_files(
            client,
            ["https://example.com/a.pdf", "https://example.com/b.pdf"],
            tmp_path,
            ["md", "html", "md"],
        )

        assert [c.label for c in completions] == ["url-async-convert"] * 4
        assert len(api.submissions) == 4
        assert [c.destination.name for c in completions] == [
            "https-example-com-a-pdf-markdown.md",
            "https-example-com-a-pdf-html.html",
            "https-example-com-b-pdf-markdown.md",
            "https-example-com-b-pdf-html.html",
        ]
        assert (tmp_path / "https-example-com-a-pdf-html.html").read_text(
            encoding="utf-8"
        ) == "<h1>Paper</h1>"

    def test_markdown_by_default(self, workflow_client, tmp_path):
        client, _ = workflow_client()
        completions = convert_sources_to_files(client, "https://example.com/a.pdf", tmp_path / "out")
        assert completions[0].destination == tmp_path / "out" / "https-example-com-a-pdf-markdown.md"
        assert completions[0].destination.is_file()

    def test_no_urls(self, workflow_client, tmp_path):
        client, api = workflow_client()
        with pytest.raises(InvalidInputError):
            convert_sources_to_files(client, ["", "  "], tmp_path)
        assert api.submissions == []

    def test_missing_format_content_stops(self, workflow_client, tmp_path):
        client, _ = workflow_client()
        with pytest.raises(MaterializationError):
            convert_sources_to_files(client, "https://example.com/a.pdf", tmp_path, ["doctags"])
        assert (tmp_path / "https-example-com-a-pdf-doctags.doctags.raw").is_file()


class TestConvertFile:
    def test_uploads_once_per_format(self, workflow_client, tmp_path):
        client, api = workflow_client()
        source = tmp_path / "paper.pdf"
        source.write_bytes(b"%PDF")

        completions = convert_file_to_files(client, source, tmp_path / "out", ["text"])

        assert completions[0].label == "file-async-convert"
        assert completions[0].destination.name == "paper-pdf-text.txt"
        assert completions[0].destination.read_text(encoding="utf-8") == "Paper Body text"
        assert api.submissions[0][1]["filename"] == "paper.pdf"

    def test_missing_file(self, workflow_client, tmp_path):
        client, _ = workflow_client()
        with pytest.raises(InvalidInputError):
            convert_file_to_files(client, tmp_path / "missing.pdf", tmp_path)


class TestChunkSources:
    def test_writes_chunk_json(self, workflow_client, tmp_path):
        chunks = TaskResult(
            ResultKind.CHUNKS, {"chunks": [{"text": "one"}, {"text": "two"}], "documents": []}
        )
        client, api = workflow_client(result=chunks)
        destination = tmp_path / "chunks.json"

        completion = chunk_sources_to_file(
            client, ["https://example.com/a.pdf"], destination, include_converted_doc=True
        )

        assert completion.label == "url-async-chunk"
        assert completion.destination == destination
        written = json.loads(destination.read_text(encoding="utf-8"))
        assert [c["text"] for c in written["chunks"]] == ["one", "two"]
        assert api.submissions[0][1]["include_converted_doc"] is True

    def test_document_result_rejected(self, workflow_client, tmp_path):
        client, _ = workflow_client()
        with pytest.raises(MaterializationError):
            chunk_sources_to_file(client, "https://example.com/a.pdf", tmp_path / "chunks.json")
