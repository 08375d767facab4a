"""Text segmentation helpers."""

from narrate_parse.text.paragraphs import (
    Block,
    ParagraphSettings,
    build_paragraph,
    build_paragraphs,
    classify_block,
    is_list_item,
    is_pipe_row,
    is_table_row,
    split_blocks,
)
from narrate_parse.text.sentences import (
    ABBREVIATIONS,
    add_residual_sentence,
    segment_sentences,
)
from narrate_parse.text.utils import (
    count_words,
    has_inline_markup,
    is_terminal_punctuation,
    normalize_line_endings,
    strip_markup,
    tokenize_words,
)

__all__ = [
    "Block",
    "ParagraphSettings",
    "build_paragraph",
    "build_paragraphs",
    "classify_block",
    "is_list_item",
    "is_pipe_row",
    "is_table_row",
    "split_blocks",
    "ABBREVIATIONS",
    "add_residual_sentence",
    "segment_sentences",
    "count_words",
    "has_inline_markup",
    "is_terminal_punctuation",
    "normalize_line_endings",
    "strip_markup",
    "tokenize_words",
]
