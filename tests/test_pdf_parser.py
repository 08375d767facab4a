from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from narrate_parse import PdfParser
from narrate_parse.core import pdf_parser
from narrate_parse.core.pdf_parser import clean_page_text


@pytest.fixture
def page_texts(monkeypatch: pytest.MonkeyPatch):
    """Replace pdfplumber extraction with fixed page text."""
    pages: list[str] = []
    monkeypatch.setattr(pdf_parser, "extract_page_texts", lambda payload: list(pages))
    return pages


def test_numbered_sections_become_chapters(pdf_bytes: bytes, page_texts: list[str]) -> None:
    page_texts.append("1. Introduction\n\nSome content.\n\n2. Methods\n\nMore content.")
    result = PdfParser().parse(pdf_bytes)

    assert result.success, result
    doc = result.data
    assert doc.source_format == "pdf"
    assert [c.title for c in doc.chapters] == ["1. Introduction", "2. Methods"]
    assert [s.text for s in doc.chapters[0].paragraphs[0].sentences] == ["Some content."]
    assert doc.metadata.title == "Field Report"
    assert doc.metadata.author == "Ann Analyst"


def test_pages_are_joined_and_page_numbers_dropped(
    pdf_factory: Callable[..., bytes], page_texts: list[str]
) -> None:
    page_texts.extend(["Chapter 1\n\nFirst page text here.\n1", "Second page text here.\nPage 2 of 2"])
    data = pdf_factory(pages=2)
    doc = PdfParser().parse(data).data

    sentences = [s.text for s in doc.narratable_sentences()]
    assert sentences == ["First page text here.", "Second page text here."]
    text = "Chapter 1\n\nFirst page text here.\n\nSecond page text here."
    assert doc.processing_metrics.source_length == len(text)
    for sentence in doc.narratable_sentences():
        assert text[sentence.position :].startswith(sentence.text)


def test_title_falls_back_to_file_stem(
    tmp_path: Path, pdf_factory: Callable[..., bytes], page_texts: list[str]
) -> None:
    page_texts.append("Plain text without headings.")
    path = tmp_path / "quarterly-notes.pdf"
    path.write_bytes(pdf_factory())

    doc = PdfParser().parse(path).data

    assert doc.metadata.title == "quarterly-notes"
    assert [c.title for c in doc.chapters] == ["quarterly-notes"]


def test_missing_header_fails() -> None:
    result = PdfParser().parse(b"plain bytes that are not a pdf")
    assert result.error.code == "PDF_FORMAT_ERROR"


def test_pdf_without_text_fails(pdf_bytes: bytes, page_texts: list[str]) -> None:
    page_texts.append("   \n")
    result = PdfParser().parse(pdf_bytes)

    assert result.error.code == "PDF_FORMAT_ERROR"
    assert "scanned" in result.error.message


def test_extraction_failure_is_a_format_error(
    pdf_bytes: bytes, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(payload):
        raise ValueError("bad content stream")

    monkeypatch.setattr(pdf_parser, "extract_page_texts", broken)
    result = PdfParser().parse(pdf_bytes)

    assert result.error.code == "PDF_FORMAT_ERROR"
    assert "bad content stream" in result.error.message


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Text line\n12\nMore text", "Text line\nMore text"),
        ("Page 3\nBody", "Body"),
        ("Body\npage 4 of 10", "Body"),
        ("Line one   \r\nLine two", "Line one\nLine two"),
        ("Keep 12 inline", "Keep 12 inline"),
    ],
)
def test_clean_page_text(raw: str, expected: str) -> None:
    assert clean_page_text(raw) == expected


def test_pipes_in_prose_are_narrated(pdf_bytes: bytes, page_texts: list[str]) -> None:
    page_texts.append("Chapter 1\n\nAnswer yes | no | maybe.\nThen pick one | two | three.")
    doc = PdfParser().parse(pdf_bytes).data

    paragraphs = doc.chapters[0].paragraphs
    assert [p.type for p in paragraphs] == ["text"]
    assert [s.text for s in doc.narratable_sentences()] == [
        "Answer yes | no | maybe.",
        "Then pick one | two | three.",
    ]
