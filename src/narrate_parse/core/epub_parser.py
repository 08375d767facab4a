"""EPUB parsing using ebooklib."""

import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import ebooklib
from ebooklib import epub

from narrate_parse.core.assets import extract_assets
from narrate_parse.core.base import (
    ChapterDraft,
    DocumentParser,
    ParseContext,
    SourceInput,
    SourcePayload,
    load_binary_source,
)
from narrate_parse.core.chapter_detector import SpineDocument, group_spine_documents
from narrate_parse.core.content_processor import ContentProcessor
from narrate_parse.core.epub_validation import read_book, validate_book, validate_epub_file
from narrate_parse.core.metadata import extract_epub_metadata, extract_safely
from narrate_parse.errors import DocumentParseError, EpubFormatError, ErrorCode
from narrate_parse.models.document import Chapter, EmbeddedAssets, Metadata, TOCEntry
from narrate_parse.models.validation import ValidationIssue, ValidationResult
from narrate_parse.text.paragraphs import split_blocks
from narrate_parse.text.utils import strip_markup

CHAPTER_SEPARATOR = "\n\n"


@dataclass
class EpubDocument:
    """An opened EPUB book."""

    book: epub.EpubBook
    path: Path
    file_size: int


@contextmanager
def spooled_path(payload: SourcePayload) -> Iterator[Path]:
    """Yield a file path for the payload, writing bytes to a temp file.

    ebooklib only reads from the filesystem; the temp file is removed on exit.
    """
    if payload.path is not None:
        yield payload.path
        return

    with tempfile.NamedTemporaryFile(suffix=".epub", delete=False) as tmp:
        tmp.write(payload.data or b"")
        tmp_path = Path(tmp.name)
    try:
        yield tmp_path
    finally:
        tmp_path.unlink(missing_ok=True)


def flatten_toc(toc_items: list, level: int = 0) -> list[TOCEntry]:
    """Flatten ebooklib's nested TOC into entries with levels."""
    entries = []

    for item in toc_items:
        if isinstance(item, tuple):
            # Section with children: (Section, [children])
            section, children = item
            href = getattr(section, "href", None) or ""
            entries.append(
                TOCEntry(
                    id=href.split("#")[0] or f"toc_{len(entries) + 1:03d}",
                    title=section.title or "Untitled",
                    href=href,
                    level=level,
                )
            )
            entries.extend(flatten_toc(children, level + 1))
        else:
            href = getattr(item, "href", None) or ""
            entries.append(
                TOCEntry(
                    id=href.split("#")[0] or f"toc_{len(entries) + 1:03d}",
                    title=getattr(item, "title", None) or "Untitled",
                    href=href,
                    level=level,
                )
            )

    return entries


def build_toc_title_map(toc_items: list) -> dict[str, str]:
    """Map document file names to their first TOC title."""
    title_map: dict[str, str] = {}
    for entry in flatten_toc(toc_items):
        file_ref = entry.href.split("#")[0]
        if file_ref and entry.title and file_ref not in title_map:
            title_map[file_ref] = entry.title
    return title_map


def _is_navigation(item) -> bool:
    return isinstance(item, epub.EpubNav) or "nav" in (getattr(item, "properties", None) or [])


def _title_heading_end(text: str, title: str) -> int:
    """Offset past a leading heading that repeats the chapter title, else 0."""
    blocks = split_blocks(text)
    if not blocks or blocks[0].type != "heading":
        return 0
    heading = strip_markup(blocks[0].text.lstrip().lstrip("#"))
    if heading.casefold() != strip_markup(title).casefold():
        return 0
    return min(blocks[0].start + len(blocks[0].text) + 1, len(text))


class EpubParser(DocumentParser):
    """Parse EPUB files into chapters, paragraphs and sentences.

    Each linear spine document becomes a chapter; short documents are
    merged according to options.chapter_sensitivity.
    """

    source_format = "epub"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.processor = ContentProcessor()

    def _load(self, source: SourceInput) -> SourcePayload:
        return load_binary_source(source, self.max_bytes)

    @contextmanager
    def _open(self, payload: SourcePayload, ctx: ParseContext) -> Iterator[EpubDocument]:
        with spooled_path(payload) as path:
            book = read_book(path)
            self._prevalidate(book, payload.size, ctx)
            yield EpubDocument(book=book, path=path, file_size=payload.size)

    def _prevalidate(self, book: epub.EpubBook, file_size: int, ctx: ParseContext) -> None:
        """Record pre-validation findings; in strict mode the first error aborts."""
        result = validate_book(book, file_size)
        if result.metadata.spine_item_count == 0:
            raise EpubFormatError("EPUB spine is empty")

        for issue in result.issues:
            ctx.warnings.append(issue)
            if self.options.strict_mode and issue.is_error:
                code = (
                    issue.code
                    if issue.code in ErrorCode.__members__
                    else ErrorCode.EPUB_FORMAT_ERROR
                )
                raise DocumentParseError(issue.message, code)

        if result.issues:
            self.log.warning(
                f"EPUB pre-validation found {len(result.errors)} errors, "
                f"{len(result.warnings)} warnings"
            )

    def _extract_metadata(self, document: EpubDocument, ctx: ParseContext) -> Metadata:
        metadata, error = extract_safely(extract_epub_metadata, document.book, logger=self.log)
        if error:
            ctx.absorb("METADATA_EXTRACTION_FAILED", error)
        return metadata

    def _spine_documents(self, book: epub.EpubBook) -> list[SpineDocument]:
        """Convert linear spine documents to Markdown, in reading order."""
        toc_titles = build_toc_title_map(book.toc)
        documents = []

        for idref, linear in book.spine:
            if str(linear).lower() == "no":
                continue
            item = book.get_item_with_id(idref)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue
            if _is_navigation(item):
                self.log.debug(f"Skipping navigation document: {item.get_name()}")
                continue

            content = item.get_content()
            file_name = item.get_name()
            toc_title = toc_titles.get(file_name)

            # Try TOC title first, then extract from content, then use file name
            title = toc_title or self.processor.extract_title(content) or Path(file_name).stem
            documents.append(
                SpineDocument(
                    name=file_name,
                    title=title,
                    text=self.processor.process(content),
                    word_count=self.processor.count_words(content),
                    toc_title=toc_title,
                )
            )

        return documents

    def _detect_chapters(
        self, document: EpubDocument, metadata: Metadata, ctx: ParseContext
    ) -> list[ChapterDraft]:
        documents = self._spine_documents(document.book)
        groups = group_spine_documents(
            documents,
            self.options.chapter_sensitivity,
            base_threshold=self.config.get_int("short_chapter_words"),
        )

        drafts: list[ChapterDraft] = []
        offset = 0
        for group in groups:
            text = CHAPTER_SEPARATOR.join(doc.text for doc in group.documents)
            title = group.title
            body_start = _title_heading_end(text, title)
            drafts.append(
                ChapterDraft(
                    title=title,
                    level=1,
                    start=offset,
                    end=offset + len(text),
                    body=text[body_start:],
                    body_offset=offset + body_start,
                )
            )
            offset += len(text) + len(CHAPTER_SEPARATOR)

        ctx.source_length = drafts[-1].end if drafts else 0
        return drafts

    def _extract_assets(self, document: EpubDocument, ctx: ParseContext) -> EmbeddedAssets:
        assets, error = extract_assets(
            document.book, extract_media=self.options.extract_media, logger=self.log
        )
        if error:
            ctx.absorb("ASSET_EXTRACTION_FAILED", error)
        return assets

    def _table_of_contents(self, document: EpubDocument, chapters: list[Chapter]) -> list[TOCEntry]:
        toc = flatten_toc(document.book.toc)
        return toc or super()._table_of_contents(document, chapters)

    def validate(self, source: SourceInput) -> ValidationResult:
        """Pre-validate an EPUB without parsing its content.

        Flags and preview metadata are returned even when the book is invalid.
        """
        try:
            payload = self._load(source)
        except DocumentParseError as e:
            result = ValidationResult(score=0.0)
            result.add(ValidationIssue(code=e.code.value, message=e.message, severity="critical"))
            return result

        with spooled_path(payload) as path:
            return validate_epub_file(path)
