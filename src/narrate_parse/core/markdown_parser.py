"""Markdown parsing."""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from narrate_parse.core.base import (
    ChapterDraft,
    DocumentParser,
    ParseContext,
    SourceInput,
    SourcePayload,
    load_text_source,
)
from narrate_parse.core.chapter_detector import FALLBACK_CHAPTER_TITLE, detect_markdown_chapters
from narrate_parse.core.metadata import (
    DEFAULT_TITLE,
    extract_markdown_metadata,
    extract_safely,
    split_front_matter,
)
from narrate_parse.models.document import Metadata


@dataclass
class MarkdownDocument:
    """Markdown source split into front matter and body."""

    content: str  # Full text including front matter
    body: str  # Text the chapter offsets refer to


class MarkdownParser(DocumentParser):
    """Parse Markdown text into chapters, paragraphs and sentences.

    Chapters start at ATX headings up to config ``chapter_max_level``
    (default 2). YAML front matter supplies metadata and is excluded from
    chapter bodies.
    """

    source_format = "markdown"

    def _load(self, source: SourceInput) -> SourcePayload:
        return load_text_source(source, self.max_bytes)

    @contextmanager
    def _open(self, payload: SourcePayload, ctx: ParseContext) -> Iterator[MarkdownDocument]:
        content = payload.text or ""
        _, body = split_front_matter(content)
        yield MarkdownDocument(content=content, body=body)

    def _extract_metadata(self, document: MarkdownDocument, ctx: ParseContext) -> Metadata:
        metadata, error = extract_safely(
            extract_markdown_metadata, document.content, logger=self.log
        )
        if error:
            ctx.absorb("METADATA_EXTRACTION_FAILED", error)
        return metadata

    def _detect_chapters(
        self, document: MarkdownDocument, metadata: Metadata, ctx: ParseContext
    ) -> list[ChapterDraft]:
        text = document.body
        ctx.source_length = len(text)
        spans = detect_markdown_chapters(
            text,
            max_level=self.config.get_int("chapter_max_level"),
            fallback_title=_fallback_title(metadata),
        )
        return [
            ChapterDraft(
                title=span.title,
                level=span.level,
                start=span.start,
                end=span.end,
                body=text[span.body_start : span.end],
                body_offset=span.body_start,
            )
            for span in spans
        ]


def _fallback_title(metadata: Metadata) -> str:
    """Title for text outside any chapter heading."""
    if metadata.title and metadata.title != DEFAULT_TITLE:
        return metadata.title
    return FALLBACK_CHAPTER_TITLE
