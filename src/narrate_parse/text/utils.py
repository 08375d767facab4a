"""Markup stripping, word counting and punctuation helpers."""

import html
import math
import re

TERMINAL_PUNCTUATION = frozenset(".!?")

# Blocks whose content is never narrated
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HTML_TAG_RE = re.compile(r"<[^<>]*>")

_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MD_BOLD_RE = re.compile(r"(\*\*|__)(.+?)\1")
_MD_STAR_EMPHASIS_RE = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?!\*)")
_MD_UNDERSCORE_EMPHASIS_RE = re.compile(r"(?<!\w)_(?!\s)([^_\n]+?)(?<!\s)_(?!\w)")
_MD_STRIKE_RE = re.compile(r"~~(.+?)~~")
_MD_CODE_RE = re.compile(r"`+([^`]*)`+")

_WHITESPACE_RE = re.compile(r"\s+")

# Markers that count as inline formatting in a raw slice
_FORMATTING_PATTERNS = (
    _HTML_TAG_RE,
    re.compile(r"\*\*.*?\*\*"),
    re.compile(r"__.+?__"),
    re.compile(r"`[^`]+`"),
    _MD_LINK_RE,
    _MD_STAR_EMPHASIS_RE,
)


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_markup(text: str) -> str:
    """Remove HTML and inline Markdown markup, leaving plain text.

    Script/style blocks and comments are dropped entirely, remaining tags
    are removed, entities decoded, and whitespace collapsed to single spaces.
    """
    if not text:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", text)
    text = _HTML_COMMENT_RE.sub(" ", text)
    text = _HTML_TAG_RE.sub("", text)
    text = html.unescape(text)

    text = _MD_IMAGE_RE.sub("", text)
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _MD_CODE_RE.sub(r"\1", text)
    text = _MD_BOLD_RE.sub(r"\2", text)
    text = _MD_STRIKE_RE.sub(r"\1", text)
    text = _MD_STAR_EMPHASIS_RE.sub(r"\1", text)
    text = _MD_UNDERSCORE_EMPHASIS_RE.sub(r"\1", text)

    return _WHITESPACE_RE.sub(" ", text).strip()


def has_inline_markup(text: str) -> bool:
    """Check if HTML tags or Markdown inline markers are present."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in _FORMATTING_PATTERNS)


def tokenize_words(text: str | None) -> list[str]:
    """Split text into word tokens.

    Tokens are whitespace-separated, except that a leading ``$`` becomes
    its own token ("$100" -> "$", "100") and a URL splits into protocol
    and remainder ("https://example.com" -> "https", "example.com").
    """
    if not text:
        return []

    words: list[str] = []
    for token in text.split():
        if token.startswith("$") and len(token) > 1:
            words.extend(["$", token[1:]])
            continue
        if "://" in token:
            protocol, _, rest = token.partition("://")
            if protocol and rest:
                words.extend([protocol, rest])
                continue
        words.append(token)
    return words


def count_words(text: str | None) -> int:
    """Count words using tokenize_words rules."""
    return len(tokenize_words(text))


def is_terminal_punctuation(ch: str) -> bool:
    return ch in TERMINAL_PUNCTUATION


def ends_with_terminal_punctuation(text: str) -> bool:
    """Check if text ends in . ! or ? (ignoring closing quotes and brackets)."""
    stripped = text.rstrip().rstrip("\"')]}’”»*_`")
    return bool(stripped) and (
        is_terminal_punctuation(stripped[-1]) or stripped.endswith("…")
    )


def estimate_duration(word_count: int, words_per_second: float) -> int:
    """Whole seconds needed to narrate word_count words."""
    if word_count <= 0 or words_per_second <= 0:
        return 0
    return math.ceil(word_count / words_per_second)
