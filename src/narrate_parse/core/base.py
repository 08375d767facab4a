"""Shared parse pipeline for all document formats."""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Iterator, Union

from narrate_parse.config import ConfigLookup, ConfigResolver, ParserOptions
from narrate_parse.core.statistics import (
    BYTES_PER_MB,
    ParseStatistics,
    ParseTimer,
    calculate_confidence,
    chapter_duration,
    compute_totals,
    validate_chapters,
    validate_structure,
)
from narrate_parse.core.stream import DocumentStream
from narrate_parse.errors import (
    InvalidInputError,
    InvalidInputTypeError,
    MarkdownFormatError,
    normalize_error,
)
from narrate_parse.models.document import (
    Chapter,
    DocumentStructure,
    EmbeddedAssets,
    Metadata,
    SourceFormat,
    TOCEntry,
)
from narrate_parse.models.result import ParseResult
from narrate_parse.models.stream import DocumentChunk, ParseState
from narrate_parse.models.validation import ValidationIssue, ValidationResult
from narrate_parse.text.paragraphs import ParagraphSettings, build_paragraphs
from narrate_parse.text.utils import normalize_line_endings

log = logging.getLogger(__name__)

SourceInput = Union[str, Path, bytes, bytearray]


@dataclass
class SourcePayload:
    """Validated input, loaded just enough for the format parser."""

    text: str | None = None  # Decoded text (Markdown)
    data: bytes | None = None  # In-memory binary payload
    path: Path | None = None  # File on disk
    size: int = 0  # Bytes

    @property
    def name(self) -> str | None:
        return self.path.stem if self.path else None


@dataclass
class ChapterDraft:
    """A detected chapter before paragraph segmentation."""

    title: str
    level: int
    start: int
    end: int
    body: str
    body_offset: int  # Absolute offset of body within the normalized text


@dataclass
class ParseContext:
    """Per-call state shared by the pipeline steps."""

    options: ParserOptions
    config: ConfigResolver
    logger: logging.Logger
    warnings: list[ValidationIssue] = field(default_factory=list)
    processing_errors: list[str] = field(default_factory=list)
    source_length: int = 0
    pipe_tables: bool = True

    def absorb(self, code: str, message: str) -> None:
        """Record a non-fatal failure as a warning and a processing error."""
        self.processing_errors.append(message)
        self.warnings.append(ValidationIssue(code=code, message=message, severity="warning"))

    @property
    def paragraph_settings(self) -> ParagraphSettings:
        return ParagraphSettings(
            words_per_second=self.config.get_float("sentence_words_per_second"),
            preserve_markup=self.options.preserve_html,
            include_code_blocks=self.config.get_bool("include_code_blocks"),
            include_tables=self.config.get_bool("include_tables"),
            pipe_tables=self.pipe_tables,
        )


def _check_type(source: Any) -> None:
    if source is None or not isinstance(source, (str, Path, bytes, bytearray)):
        raise InvalidInputTypeError(
            f"Unsupported input type: {type(source).__name__}. "
            "Expected str, pathlib.Path, bytes or bytearray."
        )


def _check_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise InvalidInputError(
            f"Input is {size / BYTES_PER_MB:.1f}MB, "
            f"exceeding the {max_bytes / BYTES_PER_MB:.0f}MB limit"
        )


def _resolve_path(path: Path, max_bytes: int) -> SourcePayload:
    if not path.is_file():
        raise InvalidInputError(f"File not found: {path}")
    size = path.stat().st_size
    if size == 0:
        raise InvalidInputError(f"File is empty: {path}")
    _check_size(size, max_bytes)
    return SourcePayload(path=path, size=size)


def load_binary_source(source: SourceInput, max_bytes: int) -> SourcePayload:
    """Validate a path or byte buffer for a binary format (EPUB, PDF).

    A str is taken as a file path.

    Raises:
        InvalidInputTypeError: For None or unsupported types
        InvalidInputError: For empty, missing or oversize input
    """
    _check_type(source)
    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise InvalidInputError("Input is empty")
        _check_size(len(source), max_bytes)
        return SourcePayload(data=bytes(source), size=len(source))

    if isinstance(source, str) and not source.strip():
        raise InvalidInputError("Input is empty")
    return _resolve_path(Path(source), max_bytes)


def load_text_source(source: SourceInput, max_bytes: int) -> SourcePayload:
    """Validate and decode Markdown input.

    A str is the content itself; a Path is read as UTF-8; bytes are decoded
    as UTF-8. Line endings are normalized to LF.

    Raises:
        InvalidInputTypeError: For None or unsupported types
        InvalidInputError: For empty, missing or oversize input
        MarkdownFormatError: For bytes that are not valid UTF-8
    """
    _check_type(source)
    path = None
    if isinstance(source, Path):
        payload = _resolve_path(source, max_bytes)
        path = payload.path
        raw: str | bytes | bytearray = source.read_bytes()
    else:
        raw = source

    if isinstance(raw, (bytes, bytearray)):
        _check_size(len(raw), max_bytes)
        try:
            text = bytes(raw).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MarkdownFormatError(f"Input is not valid UTF-8: {e}") from e
        size = len(raw)
    else:
        text = raw
        size = len(text.encode("utf-8"))
        _check_size(size, max_bytes)

    if not text.strip():
        raise InvalidInputError("Input is empty")
    return SourcePayload(text=normalize_line_endings(text), path=path, size=size)


class DocumentParser(ABC):
    """Base class for format parsers.

    Subclasses provide loading, opening, metadata and chapter detection;
    this class runs the shared pipeline and turns every failure into a
    ParseFailure.
    """

    source_format: ClassVar[SourceFormat]
    # Whether pipe-delimited lines in the text form Markdown tables
    pipe_tables: ClassVar[bool] = True

    def __init__(
        self,
        options: ParserOptions | None = None,
        *,
        logger: logging.Logger | None = None,
        config: ConfigLookup | None = None,
    ):
        self.options = options or ParserOptions()
        self.log = logger or logging.getLogger(type(self).__module__)
        self.config_lookup = config
        self.config = ConfigResolver(self.options, config)
        self.last_statistics: ParseStatistics | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def parse(self, source: SourceInput) -> ParseResult:
        """Parse a document. Never raises; failures come back as ParseFailure."""
        return self.create_stream(source).result()

    def create_stream(self, source: SourceInput) -> DocumentStream:
        """Create a lazy stream of chunks for the document."""
        return DocumentStream(lambda stream: self._produce(source, stream))

    def validate(self, source: SourceInput) -> ValidationResult:
        """Parse the document and validate the resulting structure."""
        result = self.parse(source)
        if not result.success:
            validation = ValidationResult()
            validation.add(
                ValidationIssue(
                    code=result.error.code,
                    message=result.error.message,
                    severity="critical",
                )
            )
            validation.score = 0.0
            return validation
        return validate_structure(result.data, self.options, self.config_lookup)

    @property
    def max_bytes(self) -> int:
        return int(self.config.get_float("max_file_size_mb") * BYTES_PER_MB)

    # -------------------------------------------------------------------------
    # Format hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _load(self, source: SourceInput) -> SourcePayload:
        """Validate the input and load it into a payload."""

    @abstractmethod
    def _open(self, payload: SourcePayload, ctx: ParseContext) -> AbstractContextManager:
        """Open the payload; the context manager yields a format document."""

    @abstractmethod
    def _extract_metadata(self, document: Any, ctx: ParseContext) -> Metadata:
        """Extract metadata, absorbing failures into ctx."""

    @abstractmethod
    def _detect_chapters(
        self, document: Any, metadata: Metadata, ctx: ParseContext
    ) -> list[ChapterDraft]:
        """Detect chapters and set ctx.source_length."""

    def _extract_assets(self, document: Any, ctx: ParseContext) -> EmbeddedAssets:
        return EmbeddedAssets()

    def _table_of_contents(self, document: Any, chapters: list[Chapter]) -> list[TOCEntry]:
        return [
            TOCEntry(id=c.id, title=c.title, href=f"#{c.id}", level=c.level)
            for c in chapters
        ]

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _build_chapter(self, draft: ChapterDraft, index: int, ctx: ParseContext) -> Chapter:
        chapter_id = f"chapter_{index + 1:03d}"
        paragraphs = build_paragraphs(
            draft.body,
            base_offset=draft.body_offset,
            id_prefix=chapter_id,
            settings=ctx.paragraph_settings,
        )
        word_count = sum(p.word_count for p in paragraphs)
        chapter = Chapter(
            id=chapter_id,
            title=draft.title,
            level=draft.level,
            paragraphs=paragraphs,
            position=index,
            word_count=word_count,
            estimated_duration=chapter_duration(
                word_count, self.config.get_float("words_per_minute")
            ),
            start_offset=draft.start,
            end_offset=draft.end,
        )
        if self.options.verbose:
            self.log.debug(
                f"{chapter_id} '{chapter.title}': {len(paragraphs)} paragraphs, "
                f"{chapter.sentence_count} sentences, {word_count} words, "
                f"offsets {draft.start}-{draft.end}"
            )
        return chapter

    def _assemble(
        self,
        metadata: Metadata,
        chapters: list[Chapter],
        toc: list[TOCEntry],
        assets: EmbeddedAssets,
        ctx: ParseContext,
        timer: ParseTimer,
        payload: SourcePayload,
    ) -> DocumentStructure:
        totals = compute_totals(chapters)
        validation = validate_chapters(
            chapters,
            min_sentence_length=self.config.get_int("min_sentence_length"),
            max_sentence_length=self.config.get_int("max_sentence_length"),
            strict=self.options.strict_mode,
        )
        issues = [*ctx.warnings, *validation.errors, *validation.warnings]
        error_count = sum(1 for issue in issues if issue.is_error)
        confidence = calculate_confidence(
            chapters,
            warning_count=len(issues) - error_count,
            error_count=error_count,
            base=self.config.get_float("confidence_base"),
        )

        return DocumentStructure(
            metadata=metadata,
            chapters=chapters,
            table_of_contents=toc,
            assets=assets,
            total_chapters=totals.chapters,
            total_paragraphs=totals.paragraphs,
            total_sentences=totals.sentences,
            total_word_count=totals.words,
            estimated_total_duration=totals.duration,
            confidence=confidence,
            processing_metrics=timer.metrics(
                ctx.source_length, payload.size, ctx.processing_errors
            ),
            warnings=issues,
            source_format=self.source_format,
        )

    def _produce(self, source: SourceInput, stream: DocumentStream) -> Iterator[DocumentChunk]:
        """Run the pipeline, yielding chunks as each phase completes."""
        timer = ParseTimer()
        ctx = ParseContext(
            self.options, self.config, self.log, pipe_tables=self.pipe_tables
        )
        chapters: list[Chapter] = []

        try:
            stream.set_state(ParseState.VALIDATING)
            payload = self._load(source)
            self.log.info(f"Parsing {self.source_format} document ({payload.size} bytes)")

            with self._open(payload, ctx) as document:
                stream.set_state(ParseState.EXTRACTING_METADATA)
                metadata = self._extract_metadata(document, ctx)
                yield DocumentChunk(id="metadata", type="metadata", metadata=metadata)

                stream.set_state(ParseState.DETECTING_CHAPTERS)
                drafts = self._detect_chapters(document, metadata, ctx)
                self.log.info(f"Detected {len(drafts)} chapters")

                stream.set_state(ParseState.SEGMENTING_SENTENCES)
                for index, draft in enumerate(drafts):
                    chapter = self._build_chapter(draft, index, ctx)
                    chapters.append(chapter)
                    yield DocumentChunk(
                        id=chapter.id,
                        type="chapter",
                        position=index,
                        progress=round((index + 1) / len(drafts) * 95, 2),
                        chapter=chapter,
                    )

                assets = self._extract_assets(document, ctx)
                toc = self._table_of_contents(document, chapters)

            stream.set_state(ParseState.AGGREGATING_STATISTICS)
            structure = self._assemble(metadata, chapters, toc, assets, ctx, timer, payload)
            stream.structure = structure
            self.last_statistics = ParseStatistics(
                source_format=self.source_format,
                chapters=structure.total_chapters,
                paragraphs=structure.total_paragraphs,
                sentences=structure.total_sentences,
                words=structure.total_word_count,
                duration_ms=structure.processing_metrics.parse_duration_ms,
                throughput_mb_per_s=structure.processing_metrics.throughput_mb_per_s,
                confidence=structure.confidence,
                warnings=len(structure.warnings),
                processing_errors=len(ctx.processing_errors),
                succeeded=True,
            )
            stream.set_state(ParseState.SUCCESS)
            self.log.info(
                f"Parsed {structure.total_chapters} chapters, "
                f"{structure.total_word_count} words, "
                f"confidence={structure.confidence:.2f}"
            )
        except Exception as e:
            error = normalize_error(e)
            self.log.error(f"Parse failed [{error.code}]: {error.message}")
            stream.error = error
            stream.set_state(ParseState.FAILED)
            self.last_statistics = ParseStatistics(
                source_format=self.source_format,
                chapters=len(chapters),
                duration_ms=timer.elapsed_ms(),
                processing_errors=len(ctx.processing_errors),
                succeeded=False,
            )
            yield DocumentChunk(
                id="error",
                type="error",
                position=len(chapters),
                error=error,
            )
            return

        yield DocumentChunk(
            id="complete",
            type="progress",
            position=len(chapters),
            progress=100.0,
        )
