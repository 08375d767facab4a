"""Totals, timing, confidence scoring and structural validation."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

import psutil
from pydantic import BaseModel

from narrate_parse.config import ConfigLookup, ConfigResolver, ParserOptions
from narrate_parse.models.document import Chapter, DocumentStructure, ProcessingMetrics
from narrate_parse.models.validation import (
    IssueLocation,
    ValidationIssue,
    ValidationResult,
)
from narrate_parse.text.utils import ends_with_terminal_punctuation

log = logging.getLogger(__name__)

DEFAULT_WORDS_PER_MINUTE = 200

# Confidence heuristic weights
CONFIDENCE_BASE = 0.7
NATURAL_SENTENCE_WORDS = (8, 25)
SENTENCE_LENGTH_BOOST = 0.1
PUNCTUATION_RATIO = 0.8
PUNCTUATION_BOOST = 0.1
MULTI_SENTENCE_RATIO = 0.5
MULTI_SENTENCE_BOOST = 0.1
WARNING_PENALTY = 0.02
ERROR_PENALTY = 0.05

BYTES_PER_MB = 1024 * 1024


class ParseStatistics(BaseModel):
    """Diagnostic snapshot of the most recent parse on a parser instance."""

    source_format: str
    chapters: int = 0
    paragraphs: int = 0
    sentences: int = 0
    words: int = 0
    duration_ms: float = 0.0
    throughput_mb_per_s: float = 0.0
    confidence: float = 0.0
    warnings: int = 0
    processing_errors: int = 0
    succeeded: bool = False


@dataclass
class DocumentTotals:
    """Counts summed over the chapter tree."""

    chapters: int = 0
    paragraphs: int = 0
    sentences: int = 0
    words: int = 0
    duration: float = 0.0  # Seconds


def chapter_duration(word_count: int, words_per_minute: float = DEFAULT_WORDS_PER_MINUTE) -> float:
    """Narration time in seconds for a chapter."""
    if words_per_minute <= 0:
        return 0.0
    return word_count * 60 / words_per_minute


def compute_totals(chapters: list[Chapter]) -> DocumentTotals:
    """Sum counts and durations over the chapter tree."""
    totals = DocumentTotals(chapters=len(chapters))
    for chapter in chapters:
        totals.paragraphs += len(chapter.paragraphs)
        totals.sentences += chapter.sentence_count
        totals.words += chapter.word_count
        totals.duration += chapter.estimated_duration
    return totals


def sample_memory_usage() -> int | None:
    """Resident memory of this process in bytes, or None if unavailable."""
    try:
        return psutil.Process().memory_info().rss
    except psutil.Error as e:
        log.debug(f"Memory sampling unavailable: {e}")
        return None


@dataclass
class ParseTimer:
    """Measure wall-clock timing around one parse call."""

    started_at: datetime = field(default_factory=datetime.now)
    _start: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def metrics(
        self,
        source_length: int,
        source_size_bytes: int,
        processing_errors: list[str],
    ) -> ProcessingMetrics:
        elapsed = time.perf_counter() - self._start
        throughput = (source_size_bytes / BYTES_PER_MB) / elapsed if elapsed > 0 else 0.0
        return ProcessingMetrics(
            parse_start_time=self.started_at,
            parse_end_time=datetime.now(),
            parse_duration_ms=elapsed * 1000,
            source_length=source_length,
            source_size_bytes=source_size_bytes,
            throughput_mb_per_s=throughput,
            memory_usage_bytes=sample_memory_usage(),
            processing_errors=list(processing_errors),
        )


def calculate_confidence(
    chapters: list[Chapter],
    warning_count: int = 0,
    error_count: int = 0,
    base: float = CONFIDENCE_BASE,
) -> float:
    """Estimate how reliable the detected structure is, in [0, 1].

    Starts at base and is boosted for natural sentence lengths, adequate
    terminal punctuation and multi-sentence paragraphs, then penalized
    per warning and error. With no sentences no boosts apply.
    """
    sentences = [
        s
        for chapter in chapters
        for p in chapter.paragraphs
        if p.include_in_audio
        for s in p.sentences
    ]
    score = base

    if sentences:
        average = sum(s.word_count for s in sentences) / len(sentences)
        low, high = NATURAL_SENTENCE_WORDS
        if low <= average <= high:
            score += SENTENCE_LENGTH_BOOST

        punctuated = sum(1 for s in sentences if ends_with_terminal_punctuation(s.text))
        if punctuated / len(sentences) >= PUNCTUATION_RATIO:
            score += PUNCTUATION_BOOST

        text_paragraphs = [
            p
            for chapter in chapters
            for p in chapter.paragraphs
            if p.type == "text" and p.include_in_audio
        ]
        if text_paragraphs:
            multi = sum(1 for p in text_paragraphs if len(p.sentences) > 1)
            if multi / len(text_paragraphs) >= MULTI_SENTENCE_RATIO:
                score += MULTI_SENTENCE_BOOST

    score -= WARNING_PENALTY * warning_count
    score -= ERROR_PENALTY * error_count
    return round(min(max(score, 0.0), 1.0), 4)


# =============================================================================
# Structural validation
# =============================================================================


def validate_chapters(
    chapters: list[Chapter],
    *,
    min_sentence_length: int = 5,
    max_sentence_length: int = 500,
    strict: bool = False,
) -> ValidationResult:
    """Check a chapter tree for structural problems.

    NO_CHAPTERS and NO_PARAGRAPHS are errors; everything else is a warning
    unless strict is set, in which case warnings are raised to errors.
    """
    result = ValidationResult()
    warning_severity = "error" if strict else "warning"

    def add(code: str, message: str, location: IssueLocation | None = None, fix: str | None = None):
        result.add(
            ValidationIssue(
                code=code,
                message=message,
                severity=warning_severity,
                fix=fix,
                location=location,
            )
        )

    if not chapters:
        result.add(
            ValidationIssue(
                code="NO_CHAPTERS",
                message="Document contains no chapters",
                severity="error",
            )
        )
    elif not any(chapter.paragraphs for chapter in chapters):
        result.add(
            ValidationIssue(
                code="NO_PARAGRAPHS",
                message="Document contains no paragraphs",
                severity="error",
            )
        )

    for ci, chapter in enumerate(chapters):
        if not chapter.title.strip():
            add("EMPTY_CHAPTER_TITLE", f"Chapter {ci + 1} has no title", IssueLocation(chapter=ci))
        if not chapter.paragraphs:
            add(
                "EMPTY_CHAPTER",
                f"Chapter '{chapter.title}' has no content",
                IssueLocation(chapter=ci),
                fix="Check the chapter heading level or merge it with its neighbour",
            )

        for pi, paragraph in enumerate(chapter.paragraphs):
            if not paragraph.raw_text.strip():
                add(
                    "EMPTY_PARAGRAPH",
                    f"Paragraph {pi + 1} of chapter {ci + 1} is empty",
                    IssueLocation(chapter=ci, paragraph=pi),
                )

            for si, sentence in enumerate(paragraph.sentences):
                length = len(sentence.text.strip())
                location = IssueLocation(chapter=ci, paragraph=pi, sentence=si)
                if length < min_sentence_length:
                    add(
                        "SHORT_SENTENCE",
                        f"Sentence is shorter than {min_sentence_length} characters",
                        location,
                    )
                elif length > max_sentence_length:
                    add(
                        "LONG_SENTENCE",
                        f"Sentence is longer than {max_sentence_length} characters",
                        location,
                        fix="Check for missing punctuation",
                    )

    total = sum(c.sentence_count for c in chapters) or 1
    result.score = round(
        max(0.0, 1.0 - (len(result.errors) * 0.1 + len(result.warnings) / total)), 4
    )
    return result


def validate_structure(
    structure: DocumentStructure,
    options: ParserOptions | None = None,
    config: ConfigLookup | None = None,
) -> ValidationResult:
    """Validate a parsed structure.

    Args:
        structure: Structure returned in ParseSuccess.data
        options: Parser options; strict_mode escalates warnings to errors
        config: Lookup with get(key, default) for sentence length limits
    """
    options = options or ParserOptions()
    resolver = ConfigResolver(options, config)
    return validate_chapters(
        structure.chapters,
        min_sentence_length=resolver.get_int("min_sentence_length"),
        max_sentence_length=resolver.get_int("max_sentence_length"),
        strict=options.strict_mode,
    )
