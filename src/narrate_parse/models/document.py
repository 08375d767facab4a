"""Data models for the normalized document structure."""

from datetime import datetime
from typing import Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field

from narrate_parse.models.validation import ValidationIssue

ParagraphType = Literal["text", "heading", "list", "table", "quote", "code"]
SourceFormat = Literal["markdown", "epub", "pdf"]


class Sentence(BaseModel):
    """Smallest narratable unit."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    position: int  # Character offset of the sentence start
    word_count: int = 0
    estimated_duration: int = 0  # Seconds
    has_formatting: bool = False


class Paragraph(BaseModel):
    """Typed block of sentences inside a chapter."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ParagraphType = "text"
    sentences: list[Sentence] = Field(default_factory=list)
    position: int = 0
    raw_text: str = ""
    word_count: int = 0
    include_in_audio: bool = True
    confidence: float = 1.0


class Chapter(BaseModel):
    """Chapter content and statistics."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    level: int = 1
    paragraphs: list[Paragraph] = Field(default_factory=list)
    position: int = 0
    word_count: int = 0
    estimated_duration: float = 0.0  # Seconds
    start_offset: int = 0
    end_offset: int = 0

    @property
    def sentence_count(self) -> int:
        return sum(len(p.sentences) for p in self.paragraphs)


class Metadata(BaseModel):
    """Document-level metadata with every field set."""

    model_config = ConfigDict(frozen=True)

    title: str
    author: str
    language: str
    publisher: str
    identifier: str
    date: str
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class Asset(BaseModel):
    """Embedded resource from an EPUB manifest."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str  # Opaque key, preserved verbatim
    media_type: str
    size: int = 0
    type: str = "other"
    properties: list[str] = Field(default_factory=list)


class EmbeddedAssets(BaseModel):
    """Manifest resources grouped into six disjoint buckets."""

    model_config = ConfigDict(frozen=True)

    images: list[Asset] = Field(default_factory=list)
    audio: list[Asset] = Field(default_factory=list)
    video: list[Asset] = Field(default_factory=list)
    fonts: list[Asset] = Field(default_factory=list)
    styles: list[Asset] = Field(default_factory=list)
    other: list[Asset] = Field(default_factory=list)

    def all_assets(self) -> list[Asset]:
        return [
            *self.images,
            *self.audio,
            *self.video,
            *self.fonts,
            *self.styles,
            *self.other,
        ]

    @property
    def total(self) -> int:
        return len(self.all_assets())


class TOCEntry(BaseModel):
    """Single entry in the flattened table of contents."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    href: str = ""
    level: int = 0


class ProcessingMetrics(BaseModel):
    """Timing and diagnostics gathered around one parse call."""

    model_config = ConfigDict(frozen=True)

    parse_start_time: datetime
    parse_end_time: datetime
    parse_duration_ms: float
    source_length: int  # Characters of normalized text the offsets refer to
    source_size_bytes: int = 0
    throughput_mb_per_s: float = 0.0
    memory_usage_bytes: int | None = None
    processing_errors: list[str] = Field(default_factory=list)


class DocumentStructure(BaseModel):
    """Complete parsed document (unified for Markdown/EPUB/PDF)."""

    model_config = ConfigDict(frozen=True)

    metadata: Metadata
    chapters: list[Chapter]
    table_of_contents: list[TOCEntry] = Field(default_factory=list)
    assets: EmbeddedAssets = Field(default_factory=EmbeddedAssets)
    total_chapters: int = 0
    total_paragraphs: int = 0
    total_sentences: int = 0
    total_word_count: int = 0
    estimated_total_duration: float = 0.0  # Seconds
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    processing_metrics: ProcessingMetrics
    warnings: list[ValidationIssue] = Field(default_factory=list)
    source_format: SourceFormat = "markdown"

    def narratable_sentences(self) -> Iterator[Sentence]:
        """Yield sentences of paragraphs flagged for narration, in order."""
        for chapter in self.chapters:
            for paragraph in chapter.paragraphs:
                if paragraph.include_in_audio:
                    yield from paragraph.sentences
