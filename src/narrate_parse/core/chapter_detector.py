"""Chapter boundary detection for Markdown, PDF text and EPUB spines."""

import logging
import re
from dataclasses import dataclass, field

from narrate_parse.text.paragraphs import is_list_item, is_table_row
from narrate_parse.text.utils import strip_markup

log = logging.getLogger(__name__)

FALLBACK_CHAPTER_TITLE = "Untitled Chapter"
MAX_HEADING_LENGTH = 100
BASE_MERGE_THRESHOLD = 500

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_MARKDOWN_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})\s+(.+?)\s*#*\s*$")


@dataclass
class ChapterSpan:
    """A detected chapter as offsets into the source text."""

    title: str
    level: int
    start: int  # Offset of the heading line (or 0 for the first chapter)
    end: int
    body_start: int  # Offset just past the heading line


@dataclass
class _Heading:
    title: str
    level: int
    start: int
    end: int  # Offset just past the line, newline included


def _iter_lines(text: str):
    """Yield (index, start, end, line) with end past the newline."""
    offset = 0
    for index, line in enumerate(text.split("\n")):
        end = min(offset + len(line) + 1, len(text))
        yield index, offset, end, line
        offset += len(line) + 1


def _spans_from_headings(
    text: str, headings: list[_Heading], fallback_title: str
) -> list[ChapterSpan]:
    """Turn chapter headings into spans covering the whole text."""
    if not headings:
        return [ChapterSpan(fallback_title, 1, 0, len(text), 0)]

    spans: list[ChapterSpan] = []
    first_start = headings[0].start
    if text[:first_start].strip():
        spans.append(ChapterSpan(fallback_title, 1, 0, first_start, 0))

    for i, heading in enumerate(headings):
        start = heading.start if spans else 0
        end = headings[i + 1].start if i + 1 < len(headings) else len(text)
        spans.append(
            ChapterSpan(
                title=heading.title or fallback_title,
                level=heading.level,
                start=start,
                end=end,
                body_start=heading.end,
            )
        )
    return spans


# =============================================================================
# Markdown
# =============================================================================


def find_markdown_headings(text: str) -> list[tuple[int, str, int]]:
    """List (level, title, offset) of every ATX heading outside fenced code."""
    headings = []
    fence: str | None = None

    for _, start, _, line in _iter_lines(text):
        fence_match = _FENCE_RE.match(line)
        if fence is not None:
            if fence_match and fence_match.group(1)[0] == fence[0]:
                fence = None
            continue
        if fence_match:
            fence = fence_match.group(1)
            continue

        match = _MARKDOWN_HEADING_RE.match(line)
        if match:
            headings.append((len(match.group(1)), strip_markup(match.group(2)), start))
    return headings


def detect_markdown_chapters(
    text: str,
    max_level: int = 2,
    fallback_title: str = FALLBACK_CHAPTER_TITLE,
) -> list[ChapterSpan]:
    """Partition Markdown into chapters at headings of level <= max_level.

    Non-blank text before the first chapter heading becomes its own
    chapter with the fallback title; blank preamble joins the first chapter.
    """
    headings: list[_Heading] = []
    for level, title, start in find_markdown_headings(text):
        if level > max_level:
            continue
        line_end = text.find("\n", start)
        end = len(text) if line_end == -1 else line_end + 1
        headings.append(_Heading(title, level, start, end))

    log.debug(f"Markdown chapter headings found: {len(headings)}")
    return _spans_from_headings(text, headings, fallback_title)


# =============================================================================
# PDF text
# =============================================================================

# Heading patterns for extracted PDF text, most specific first
PDF_HEADING_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^(#{1,6})\s+\S"), "markdown"),
    (re.compile(r"^(?:chapter|CHAPTER|Chapter)\s+(\d+|[IVXLC]+|\w+)\b"), "chapter"),
    (re.compile(r"^(?:part|PART|Part)\s+(\d+|[IVXLC]+|\w+)\b"), "part"),
    (re.compile(r"^(?:section|SECTION|Section)\s+(\d+(?:\.\d+)*)\b"), "section"),
    (re.compile(r"^(\d+)\.\s+\S"), "numbered"),
]


def match_pdf_heading(line: str) -> tuple[str, int] | None:
    """Match a line against the heading patterns.

    Returns:
        (pattern_type, level) or None if the line is not a heading
    """
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADING_LENGTH:
        return None
    if is_table_row(stripped):
        return None

    for pattern, pattern_type in PDF_HEADING_PATTERNS:
        match = pattern.match(stripped)
        if not match:
            continue
        if pattern_type == "markdown":
            return pattern_type, len(match.group(1))
        if pattern_type == "section":
            return pattern_type, 2
        return pattern_type, 1
    return None


def detect_pdf_chapters(
    text: str, fallback_title: str = FALLBACK_CHAPTER_TITLE
) -> list[ChapterSpan]:
    """Partition extracted PDF text into chapters.

    A boundary is a short heading-like line preceded by a blank line (or
    at the start of the text). A numbered line directly followed by
    another list item is treated as a list, not a heading.
    """
    lines = list(_iter_lines(text))
    headings: list[_Heading] = []
    previous_blank = True

    for i, (_, start, end, line) in enumerate(lines):
        if not line.strip():
            previous_blank = True
            continue

        result = match_pdf_heading(line) if previous_blank else None
        previous_blank = False
        if result is None:
            continue

        pattern_type, level = result
        if pattern_type == "numbered":
            next_line = lines[i + 1][3] if i + 1 < len(lines) else ""
            if is_list_item(next_line):
                continue

        title = line.strip()
        if pattern_type == "markdown":
            title = title.lstrip("#").strip()
        headings.append(_Heading(title, level, start, end))

    log.debug(f"PDF chapter headings found: {len(headings)}")
    return _spans_from_headings(text, headings, fallback_title)


# =============================================================================
# EPUB spine
# =============================================================================


@dataclass
class SpineDocument:
    """One linear spine document converted to Markdown."""

    name: str
    title: str
    text: str
    word_count: int
    toc_title: str | None = None


@dataclass
class ChapterGroup:
    """Spine documents that make up one chapter."""

    documents: list[SpineDocument] = field(default_factory=list)

    @property
    def title(self) -> str:
        for doc in self.documents:
            if doc.toc_title:
                return doc.toc_title
        return self.documents[0].title if self.documents else FALLBACK_CHAPTER_TITLE

    @property
    def word_count(self) -> int:
        return sum(doc.word_count for doc in self.documents)


def merge_threshold(sensitivity: float, base: int = BASE_MERGE_THRESHOLD) -> int:
    """Word count below which a spine document is merged into the next one."""
    return round(base * (1 - sensitivity))


def group_spine_documents(
    documents: list[SpineDocument],
    sensitivity: float = 0.8,
    base_threshold: int = BASE_MERGE_THRESHOLD,
) -> list[ChapterGroup]:
    """Group spine documents into chapters.

    Empty documents are dropped. A document shorter than the merge
    threshold is carried into the following chapter; trailing short
    documents join the last chapter.
    """
    threshold = merge_threshold(sensitivity, base_threshold)
    groups: list[ChapterGroup] = []
    pending = ChapterGroup()

    for doc in documents:
        if doc.word_count == 0:
            log.debug(f"Skipping empty spine document: {doc.name}")
            continue
        pending.documents.append(doc)
        if doc.word_count >= threshold:
            groups.append(pending)
            pending = ChapterGroup()

    if pending.documents:
        if groups:
            groups[-1].documents.extend(pending.documents)
        else:
            groups.append(pending)

    log.debug(
        f"Grouped {len(documents)} spine documents into {len(groups)} chapters "
        f"(threshold={threshold} words)"
    )
    return groups
