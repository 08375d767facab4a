from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Callable

import pytest
from ebooklib import epub

from narrate_parse import EpubParser, ParserOptions
from narrate_parse.core.epub_validation import validate_book, validate_epub_metadata


def test_short_documents_merge_into_neighbours(sample_epub: Path) -> None:
    result = EpubParser().parse(sample_epub)

    assert result.success, result
    doc = result.data
    assert doc.source_format == "epub"
    assert [c.title for c in doc.chapters] == ["Chapter One", "Chapter Two"]
    assert "Short bit." in [s.text for s in doc.chapters[1].paragraphs[-1].sentences]


def test_full_sensitivity_keeps_every_document(sample_epub: Path) -> None:
    parser = EpubParser(ParserOptions(chapter_sensitivity=1.0))
    doc = parser.parse(sample_epub).data

    assert [c.title for c in doc.chapters] == ["Chapter One", "Chapter Two", "Interlude"]


def test_merge_threshold_from_config(sample_epub: Path) -> None:
    options = ParserOptions(config={"short_chapter_words": 5000})
    doc = EpubParser(options).parse(sample_epub).data

    # Every document is short at this threshold, so all merge into one chapter
    assert [c.title for c in doc.chapters] == ["Chapter One"]


def test_repeated_title_heading_is_not_narrated(sample_epub: Path) -> None:
    doc = EpubParser().parse(sample_epub).data
    first = doc.chapters[0]

    assert first.paragraphs[0].type == "text"
    assert first.paragraphs[0].sentences[0].text.startswith("This is sentence number 1")
    assert first.word_count == 144 + 7


def test_offsets_are_ordered(sample_epub: Path) -> None:
    doc = EpubParser().parse(sample_epub).data

    for current, following in zip(doc.chapters, doc.chapters[1:]):
        assert current.end_offset <= following.start_offset
    positions = [s.position for s in doc.narratable_sentences()]
    assert positions == sorted(positions)
    assert doc.processing_metrics.source_length == doc.chapters[-1].end_offset


def test_metadata_assets_and_toc(sample_epub: Path) -> None:
    doc = EpubParser().parse(sample_epub).data

    assert doc.metadata.title == "Test Book"
    assert doc.metadata.author == "Jane Writer"
    assert doc.metadata.language == "en"
    assert doc.metadata.identifier == "urn:uuid:1234"

    assert [a.href for a in doc.assets.images] == ["images/cover.jpg"]
    assert doc.assets.images[0].size == 4
    assert doc.assets.audio == doc.assets.video == doc.assets.fonts == []

    assert [e.title for e in doc.table_of_contents] == ["Chapter One", "Chapter Two", "Interlude"]
    assert doc.warnings == []


def test_media_extraction_can_be_disabled(sample_epub: Path) -> None:
    doc = EpubParser(ParserOptions(extract_media=False)).parse(sample_epub).data
    assert doc.assets.total == 0


def test_bytes_input_matches_path_input(sample_epub: Path) -> None:
    parser = EpubParser()
    from_path = parser.parse(sample_epub).data
    from_bytes = parser.parse(sample_epub.read_bytes()).data

    assert from_bytes.chapters == from_path.chapters
    assert from_bytes.processing_metrics.source_size_bytes == sample_epub.stat().st_size


def test_stream_yields_chapters(sample_epub: Path) -> None:
    chunks = list(EpubParser().create_stream(str(sample_epub)))

    assert [c.type for c in chunks] == ["metadata", "chapter", "chapter", "progress"]
    assert chunks[-1].progress == 100.0


def zip_bytes(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


CONTAINER_XML = (
    '<?xml version="1.0"?>'
    '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
    '<rootfiles><rootfile full-path="content.opf" media-type="application/oebps-package+xml"/>'
    "</rootfiles></container>"
)

BROKEN_PACKAGE = zip_bytes(
    {
        "mimetype": "application/epub+zip",
        "META-INF/container.xml": CONTAINER_XML,
        "content.opf": "<package><metadata><<broken",
    }
)


@pytest.mark.parametrize(
    "data",
    [
        b"this is not a zip archive",
        zip_bytes({"mimetype": "application/epub+zip"}),
        BROKEN_PACKAGE,
    ],
)
def test_corrupt_archives_fail(data: bytes) -> None:
    result = EpubParser().parse(data)

    assert result.success is False
    assert result.error.code == "EPUB_FORMAT_ERROR"


def test_missing_file_fails(tmp_path: Path) -> None:
    result = EpubParser().parse(tmp_path / "nope.epub")
    assert result.error.code == "INVALID_INPUT"


def test_validate_reports_flags(sample_epub: Path) -> None:
    result = EpubParser().validate(sample_epub)

    assert result.is_valid is True
    assert result.metadata.spine_item_count == 4
    assert result.metadata.has_navigation is True
    assert result.metadata.title == "Test Book"
    assert result.metadata.file_size == sample_epub.stat().st_size


def test_validate_corrupt_archive() -> None:
    result = EpubParser().validate(b"garbage bytes")

    assert result.is_valid is False
    assert [e.code for e in result.errors] == ["EPUB_FORMAT_ERROR"]
    assert result.score == 0.0


def test_validate_book_in_memory() -> None:
    book = epub.EpubBook()
    book.set_identifier("id-1")
    result = validate_book(book)

    codes = [issue.code for issue in result.issues]
    assert result.is_valid is False
    assert "MISSING_TITLE" in codes
    assert "NO_SPINE_ITEMS" in codes
    assert result.metadata.spine_item_count == 0


def test_overlong_title_warns_or_fails_in_strict_mode(
    epub_builder: Callable[..., Path],
) -> None:
    body = "<p>" + "Plenty of words make up this chapter body. " * 20 + "</p>"
    path = epub_builder([("Only", body)], title="T" * 300)

    lenient = EpubParser().parse(path)
    assert lenient.success is True
    assert "INVALID_TITLE_LENGTH" in [w.code for w in lenient.data.warnings]

    strict = EpubParser(ParserOptions(strict_mode=True)).parse(path)
    assert strict.success is False
    assert strict.error.code == "INVALID_TITLE_LENGTH"


@pytest.mark.parametrize(
    ("title", "codes"),
    [
        ("T" * 255, []),
        ("T" * 256, ["INVALID_TITLE_LENGTH"]),
        ("", ["MISSING_TITLE"]),
        (None, ["MISSING_TITLE"]),
    ],
)
def test_title_length_boundaries(title: str | None, codes: list[str]) -> None:
    issues = validate_epub_metadata(title, "id", "en")
    assert [i.code for i in issues] == codes


def test_missing_identifier_and_language() -> None:
    issues = validate_epub_metadata("Book", "", None)
    assert [(i.code, i.severity) for i in issues] == [
        ("MISSING_IDENTIFIER", "error"),
        ("MISSING_LANGUAGE", "error"),
    ]


def test_language_code_format() -> None:
    assert validate_epub_metadata("Book", "id", "en-US") == []
    assert [i.code for i in validate_epub_metadata("Book", "id", "English")] == [
        "INVALID_LANGUAGE_CODE"
    ]


def test_validate_unreadable_package_document() -> None:
    result = EpubParser().validate(BROKEN_PACKAGE)

    assert result.is_valid is False
    assert [(e.code, e.severity) for e in result.errors] == [("EPUB_FORMAT_ERROR", "critical")]
    assert result.metadata.file_size == len(BROKEN_PACKAGE)


def test_parse_is_idempotent(sample_epub: Path) -> None:
    parser = EpubParser()
    first = parser.parse(sample_epub).data
    second = parser.parse(sample_epub).data

    assert len(first.chapters) == len(second.chapters)
    assert first.total_word_count == second.total_word_count
    assert [a.id for a in first.assets.all_assets()] == [a.id for a in second.assets.all_assets()]
    assert first.chapters == second.chapters
