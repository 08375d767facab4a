from __future__ import annotations

import psutil
import pytest

from narrate_parse import MarkdownParser, ParserOptions, validate_structure
from narrate_parse.core import statistics
from narrate_parse.core.statistics import (
    ParseTimer,
    calculate_confidence,
    chapter_duration,
    compute_totals,
    sample_memory_usage,
    validate_chapters,
)
from narrate_parse.models.document import Chapter
from narrate_parse.text.paragraphs import build_paragraphs

NATURAL_TEXT = (
    "This is a sentence with exactly ten words in it. "
    "Another sentence here also has nine words in it."
)


def make_chapter(text: str, title: str = "T", chapter_id: str = "chapter_001") -> Chapter:
    paragraphs = build_paragraphs(text, base_offset=0, id_prefix=chapter_id)
    words = sum(p.word_count for p in paragraphs)
    return Chapter(
        id=chapter_id,
        title=title,
        paragraphs=paragraphs,
        word_count=words,
        estimated_duration=chapter_duration(words),
    )


def test_confidence_without_sentences_is_base() -> None:
    assert calculate_confidence([]) == 0.7
    assert calculate_confidence([], warning_count=3) == 0.64
    assert calculate_confidence([], error_count=20) == 0.0


def test_confidence_for_natural_prose() -> None:
    assert calculate_confidence([make_chapter(NATURAL_TEXT)]) == 1.0


def test_confidence_without_punctuation() -> None:
    chapter = make_chapter("a few words without any ending\n\nmore words trailing off")
    assert calculate_confidence([chapter]) == 0.7


def test_chapter_duration() -> None:
    assert chapter_duration(200) == 60.0
    assert chapter_duration(5, 200) == 1.5
    assert chapter_duration(100, 0) == 0.0


def test_compute_totals() -> None:
    chapters = [
        make_chapter(NATURAL_TEXT),
        make_chapter("One more sentence.\n\nAnd another.", chapter_id="chapter_002"),
    ]
    totals = compute_totals(chapters)

    assert totals.chapters == 2
    assert totals.paragraphs == 3
    assert totals.sentences == 4
    assert totals.words == 19 + 5
    assert totals.duration == pytest.approx(sum(c.estimated_duration for c in chapters))


def test_no_chapters_is_an_error() -> None:
    result = validate_chapters([])

    assert result.is_valid is False
    assert [e.code for e in result.errors] == ["NO_CHAPTERS"]


def test_empty_chapter_is_flagged() -> None:
    empty = Chapter(id="chapter_001", title="Empty")
    result = validate_chapters([empty])

    assert [e.code for e in result.errors] == ["NO_PARAGRAPHS"]
    assert [w.code for w in result.warnings] == ["EMPTY_CHAPTER"]
    assert result.warnings[0].location.chapter == 0
    assert result.warnings[0].fix


def test_sentence_length_limits() -> None:
    chapter = make_chapter("Ok. " + "word " * 30 + "end.")

    lenient = validate_chapters([chapter], max_sentence_length=50)
    assert [w.code for w in lenient.warnings] == ["SHORT_SENTENCE", "LONG_SENTENCE"]
    assert lenient.is_valid is True

    strict = validate_chapters([chapter], max_sentence_length=50, strict=True)
    assert [e.code for e in strict.errors] == ["SHORT_SENTENCE", "LONG_SENTENCE"]
    assert strict.is_valid is False


def test_validate_structure_uses_config() -> None:
    doc = MarkdownParser().parse("# T\n\nShort one here. Another short one.").data

    assert validate_structure(doc).is_valid is True
    result = validate_structure(doc, config={"min_sentence_length": 40})
    assert [w.code for w in result.warnings] == ["SHORT_SENTENCE", "SHORT_SENTENCE"]

    strict = validate_structure(doc, ParserOptions(strict_mode=True), {"min_sentence_length": 40})
    assert strict.is_valid is False


def test_memory_sampling() -> None:
    assert sample_memory_usage() > 0


def test_memory_sampling_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def denied():
        raise psutil.AccessDenied()

    monkeypatch.setattr(statistics.psutil, "Process", denied)
    assert sample_memory_usage() is None


def test_timer_metrics() -> None:
    metrics = ParseTimer().metrics(120, 2048, ["one problem"])

    assert metrics.source_length == 120
    assert metrics.source_size_bytes == 2048
    assert metrics.parse_end_time >= metrics.parse_start_time
    assert metrics.parse_duration_ms >= 0
    assert metrics.processing_errors == ["one problem"]
