"""Split text blocks into Sentence records."""

import re

from narrate_parse.models.document import Sentence
from narrate_parse.text.utils import (
    count_words,
    estimate_duration,
    has_inline_markup,
    strip_markup,
)

# Words that end in a period without ending the sentence
ABBREVIATIONS: frozenset[str] = frozenset(
    {
        # Honorifics and titles
        "Mr", "Mrs", "Ms", "Dr", "Prof", "Sr", "Jr", "St", "Rev",
        "Gen", "Col", "Capt", "Lt", "Sgt", "Hon", "Gov", "Pres",
        # Common abbreviations
        "etc", "vs", "e.g", "i.e", "cf", "al", "No", "Mt", "Ave", "Rd", "Blvd",
        "Etc", "Vs", "E.g", "I.e", "Cf",
    }
)

# Ellipsis characters form one terminal mark with the surrounding periods
_SENTENCE_MARKS = frozenset(".!?…")
# Closing characters that belong to the sentence they follow
_CLOSERS = frozenset("\"')]}’”»*_")
# Opening characters ignored when looking up the word before a period
_OPENERS = "\"'([{‘“«*_"

_LEADING_TERMINAL_RE = re.compile(r"^[.!?…]+\s*")


def _word_before(text: str, index: int) -> str:
    """Return the token that ends right before text[index]."""
    start = index
    while start > 0 and not text[start - 1].isspace():
        start -= 1
    return text[start:index].lstrip(_OPENERS)


def _is_false_boundary(text: str, mark_start: int, mark: str, after: int) -> bool:
    """Check if a terminal mark does not actually end a sentence."""
    if mark == ".":
        if _word_before(text, mark_start) in ABBREVIATIONS:
            return True
    elif "…" in mark or mark.startswith("..."):
        # Ellipsis followed by a lowercase continuation is a pause
        rest = text[after:].lstrip()
        if rest and rest[0].islower():
            return True
    return False


def _make_sentence(
    raw: str,
    position: int,
    index: int,
    *,
    words_per_second: float,
    preserve_markup: bool,
    id_prefix: str,
    leading_space: bool = False,
) -> Sentence | None:
    body = raw.strip()
    plain = strip_markup(body)
    if not plain:
        return None

    text = body if preserve_markup else plain
    if leading_space:
        text = " " + text
    word_count = count_words(plain)

    return Sentence(
        id=f"{id_prefix}_{index:03d}",
        text=text,
        position=position + (len(raw) - len(raw.lstrip())),
        word_count=word_count,
        estimated_duration=estimate_duration(word_count, words_per_second),
        has_formatting=has_inline_markup(body),
    )


def add_residual_sentence(
    sentences: list[Sentence],
    text: str,
    start: int,
    *,
    base_offset: int = 0,
    words_per_second: float = 4,
    preserve_markup: bool = False,
    id_prefix: str = "sentence",
) -> list[Sentence]:
    """Append the text remaining after the last terminal mark as one sentence.

    A stray terminal mark at the start of the residual is dropped with the
    whitespace after it. Otherwise a single leading space is kept when the
    residual does not start the text, so sentences concatenate back safely.

    Args:
        sentences: List to append to (modified in place)
        text: Full text block
        start: Offset of the residual within text; negative clamps to 0

    Returns:
        The same sentences list
    """
    if text is None:
        raise TypeError("text must be a string, not None")

    original_start = start
    start = max(start, 0)
    if start >= len(text):
        return sentences

    residual = text[start:]
    if not residual.strip():
        return sentences

    actual_start = start
    leading_space = False
    match = _LEADING_TERMINAL_RE.match(residual)
    if match:
        residual = residual[match.end() :]
        actual_start += match.end()
    elif not residual.startswith(" ") and actual_start != 0 and original_start >= 0:
        leading_space = True

    sentence = _make_sentence(
        residual,
        base_offset + actual_start,
        len(sentences) + 1,
        words_per_second=words_per_second,
        preserve_markup=preserve_markup,
        id_prefix=id_prefix,
        leading_space=leading_space,
    )
    if sentence is not None:
        sentences.append(sentence)
    return sentences


def segment_sentences(
    text: str,
    start: int = 0,
    *,
    base_offset: int = 0,
    words_per_second: float = 4,
    preserve_markup: bool = False,
    id_prefix: str = "sentence",
) -> list[Sentence]:
    """Split text into sentences.

    A sentence ends at a run of terminal punctuation (optionally followed
    by closing quotes or brackets) that is followed by whitespace or the
    end of the text. Abbreviations such as "Dr." and an ellipsis followed
    by a lowercase word do not end a sentence.

    Args:
        text: Text block to segment
        start: Offset to begin scanning from; negative clamps to 0
        base_offset: Added to every sentence position (absolute offsets)
        words_per_second: Narration rate for estimated_duration
        preserve_markup: Keep inline markup in sentence text
        id_prefix: Prefix for generated sentence ids

    Returns:
        Sentences in text order

    Raises:
        TypeError: If text is None
    """
    if text is None:
        raise TypeError("text must be a string, not None")

    start = max(start, 0)
    length = len(text)
    if start >= length:
        return []

    sentences: list[Sentence] = []
    segment_start = start
    i = start

    while i < length:
        if text[i] not in _SENTENCE_MARKS:
            i += 1
            continue

        mark_start = i
        while i < length and text[i] in _SENTENCE_MARKS:
            i += 1
        mark = text[mark_start:i]

        end = i
        while end < length and text[end] in _CLOSERS:
            end += 1

        # "3.14", "example.com" and similar are not boundaries
        if end < length and not text[end].isspace():
            i = end
            continue
        if _is_false_boundary(text, mark_start, mark, end):
            i = end
            continue

        sentence = _make_sentence(
            text[segment_start:end],
            base_offset + segment_start,
            len(sentences) + 1,
            words_per_second=words_per_second,
            preserve_markup=preserve_markup,
            id_prefix=id_prefix,
        )
        if sentence is not None:
            sentences.append(sentence)

        while end < length and text[end].isspace():
            end += 1
        segment_start = i = end

    if segment_start < length:
        add_residual_sentence(
            sentences,
            text,
            segment_start,
            base_offset=base_offset,
            words_per_second=words_per_second,
            preserve_markup=preserve_markup,
            id_prefix=id_prefix,
        )

    return sentences
