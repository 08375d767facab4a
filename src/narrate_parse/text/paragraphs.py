"""Split chapter bodies into typed blocks and build Paragraph records."""

import re
from dataclasses import dataclass

from narrate_parse.models.document import ParagraphType, Paragraph, Sentence
from narrate_parse.text.sentences import segment_sentences
from narrate_parse.text.utils import ends_with_terminal_punctuation

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:\s+|$)")
_QUOTE_RE = re.compile(r"^ {0,3}>\s?")
_CLOSING_HASHES_RE = re.compile(r"\s+#+\s*$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_TABLE_SEPARATOR_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")
_ALIGNED_FIELDS_RE = re.compile(r" {2,}|\t")


@dataclass
class Block:
    """A run of non-blank lines, or one fenced code block."""

    text: str
    start: int  # Offset of the first character within the split text
    type: ParagraphType = "text"
    fenced: bool = False


@dataclass
class ParagraphSettings:
    """Per-parse knobs for paragraph building."""

    words_per_second: float = 4
    preserve_markup: bool = False
    include_code_blocks: bool = False
    include_tables: bool = False
    pipe_tables: bool = True  # Off for PDF text


def is_list_item(line: str) -> bool:
    """Check if a line starts with -, *, + or an N. list marker."""
    return bool(_LIST_ITEM_RE.match(line))


def is_table_row(line: str) -> bool:
    """Check if a line has at least three fields separated by runs of two
    or more spaces or a tab."""
    fields = [f for f in _ALIGNED_FIELDS_RE.split(line.strip()) if f.strip()]
    return len(fields) >= 3


def is_pipe_row(line: str) -> bool:
    """Check if a line is a Markdown pipe table row like ``| a | b |``."""
    return line.strip().count("|") >= 2


def classify_block(text: str, pipe_tables: bool = True) -> ParagraphType:
    """Classify a block of lines by its Markdown shape.

    Args:
        text: Block text
        pipe_tables: Treat pipe-delimited rows as a table. Off for text
            extracted from PDFs, where pipes are ordinary punctuation.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return "text"

    if _FENCE_RE.match(lines[0]):
        return "code"
    if len(lines) == 1 and _HEADING_RE.match(lines[0]):
        return "heading"
    if all(line.startswith(("    ", "\t")) for line in lines):
        return "code"
    if all(_QUOTE_RE.match(line) for line in lines):
        return "quote"
    if is_list_item(lines[0]):
        return "list"
    if len(lines) >= 2 and all(is_table_row(line) for line in lines):
        return "table"
    if pipe_tables and len(lines) >= 2:
        if all(is_pipe_row(line) for line in lines):
            return "table"
        if any(_TABLE_SEPARATOR_RE.match(line) for line in lines):
            return "table"
    return "text"


def split_blocks(text: str, pipe_tables: bool = True) -> list[Block]:
    """Split text into blocks separated by blank lines.

    Fenced code is kept whole even when it contains blank lines, and a
    heading line always forms its own block.
    """
    blocks: list[Block] = []
    current: list[str] = []
    current_start = 0
    offset = 0
    fence: str | None = None
    fence_start = 0

    def flush() -> None:
        if current:
            block_text = "\n".join(current)
            blocks.append(
                Block(block_text, current_start, classify_block(block_text, pipe_tables))
            )
            current.clear()

    for line in text.split("\n"):
        line_start = offset
        offset += len(line) + 1

        if fence is not None:
            current.append(line)
            match = _FENCE_RE.match(line)
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
                blocks.append(Block("\n".join(current), fence_start, "code", fenced=True))
                current.clear()
                fence = None
            continue

        match = _FENCE_RE.match(line)
        if match:
            flush()
            fence = match.group(1)
            fence_start = line_start
            current.append(line)
            continue

        if not line.strip():
            flush()
            continue

        if _HEADING_RE.match(line):
            flush()
            blocks.append(Block(line, line_start, "heading"))
            continue

        if not current:
            current_start = line_start
        current.append(line)

    # Unclosed fence runs to the end of the text
    if fence is not None:
        blocks.append(Block("\n".join(current), fence_start, "code", fenced=True))
    else:
        flush()

    return blocks


def _strip_marker(line: str, block_type: ParagraphType) -> int:
    """Length of the structural prefix to skip before segmenting a line."""
    if block_type == "heading":
        match = _HEADING_RE.match(line)
    elif block_type == "quote":
        match = _QUOTE_RE.match(line)
    elif block_type == "list":
        match = _LIST_ITEM_RE.match(line)
    else:
        match = None
    return match.end() if match else 0


def _segment_lines(
    block: Block,
    base_offset: int,
    settings: ParagraphSettings,
    id_prefix: str,
) -> list[Sentence]:
    """Segment each line of a heading/list/quote block after its marker.

    Continuation lines are joined with a space before segmenting, so a
    sentence may run across lines. Positions are mapped back through the
    joined text to the offsets of the original characters.
    """
    sentences: list[Sentence] = []
    offset = 0
    pending: list[tuple[int, str]] = []

    def segment_pending() -> None:
        if not pending:
            return
        source_offsets: list[int] = []
        for start, part in pending:
            source_offsets.extend(range(start, start + len(part)))
            # The joining space stands in for the line break after the part
            source_offsets.append(start + len(part))
        joined = " ".join(part for _, part in pending)
        for sentence in segment_sentences(
            joined,
            words_per_second=settings.words_per_second,
            preserve_markup=settings.preserve_markup,
            id_prefix=id_prefix,
        ):
            sentences.append(
                sentence.model_copy(
                    update={
                        "id": f"{id_prefix}_{len(sentences) + 1:03d}",
                        "position": base_offset + source_offsets[sentence.position],
                    }
                )
            )
        pending.clear()

    for line in block.text.split("\n"):
        marker = _strip_marker(line, block.type)
        content = line[marker:]
        if block.type == "heading":
            content = _CLOSING_HASHES_RE.sub("", content)
        # A new list item starts a new run; continuation lines join the current one
        if block.type == "list" and marker:
            segment_pending()
        if content.strip():
            pending.append((offset + marker, content))
        offset += len(line) + 1
    segment_pending()
    return sentences


def _code_body(block: Block) -> tuple[str, int]:
    """Text inside a fenced block and its offset within the block."""
    if not block.fenced:
        return block.text, 0
    lines = block.text.split("\n")
    body_lines = lines[1:]
    if body_lines and _FENCE_RE.match(body_lines[-1]):
        body_lines = body_lines[:-1]
    return "\n".join(body_lines), len(lines[0]) + 1


def _paragraph_confidence(block: Block, sentences: list[Sentence]) -> float:
    """How sure the block classification and segmentation are."""
    if block.type in ("heading", "quote") or block.fenced:
        return 1.0
    if block.type == "table":
        return 0.9 if "|" in block.text else 0.7
    if block.type in ("list", "code"):
        return 0.9
    if sentences and all(ends_with_terminal_punctuation(s.text) for s in sentences):
        return 1.0
    return 0.8


def build_paragraph(
    block: Block,
    *,
    paragraph_id: str,
    position: int,
    base_offset: int,
    settings: ParagraphSettings | None = None,
) -> Paragraph:
    """Build a Paragraph from a block.

    Code and table blocks are kept for structure but not narrated unless
    enabled in settings; those paragraphs carry no sentences and zero words.

    Args:
        block: Block produced by split_blocks
        paragraph_id: Id for the paragraph; sentence ids derive from it
        position: Index of the paragraph within its chapter
        base_offset: Absolute offset of the text the block was split from
        settings: Narration settings
    """
    settings = settings or ParagraphSettings()
    block_offset = base_offset + block.start
    id_prefix = f"{paragraph_id}_s"

    include_in_audio = True
    if block.type == "code":
        include_in_audio = settings.include_code_blocks
    elif block.type == "table":
        include_in_audio = settings.include_tables

    sentences: list[Sentence] = []
    if include_in_audio:
        if block.type in ("heading", "list", "quote"):
            sentences = _segment_lines(block, block_offset, settings, id_prefix)
        elif block.type == "code":
            body, body_offset = _code_body(block)
            sentences = segment_sentences(
                body,
                base_offset=block_offset + body_offset,
                words_per_second=settings.words_per_second,
                preserve_markup=True,
                id_prefix=id_prefix,
            )
        else:
            sentences = segment_sentences(
                block.text,
                base_offset=block_offset,
                words_per_second=settings.words_per_second,
                preserve_markup=settings.preserve_markup,
                id_prefix=id_prefix,
            )

    return Paragraph(
        id=paragraph_id,
        type=block.type,
        sentences=sentences,
        position=position,
        raw_text=block.text,
        word_count=sum(s.word_count for s in sentences),
        include_in_audio=include_in_audio,
        confidence=_paragraph_confidence(block, sentences),
    )


def build_paragraphs(
    text: str,
    *,
    base_offset: int,
    id_prefix: str,
    settings: ParagraphSettings | None = None,
) -> list[Paragraph]:
    """Split text into blocks and build a Paragraph for each."""
    settings = settings or ParagraphSettings()
    return [
        build_paragraph(
            block,
            paragraph_id=f"{id_prefix}_p{index:03d}",
            position=index - 1,
            base_offset=base_offset,
            settings=settings,
        )
        for index, block in enumerate(split_blocks(text, settings.pipe_tables), start=1)
    ]
