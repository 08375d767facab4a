"""Normalize per-format metadata into the common Metadata record."""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Mapping

import yaml
from ebooklib import epub

from narrate_parse.models.document import Metadata

log = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Document"
DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_LANGUAGE = "en"
DEFAULT_PUBLISHER = "Unknown Publisher"
DEFAULT_IDENTIFIER = "unknown"
DEFAULT_DATE = "unknown"

# Dublin Core fields mapped onto Metadata; other DC fields become custom metadata
_DC_FIELDS = {
    "title": "title",
    "creator": "author",
    "language": "language",
    "publisher": "publisher",
    "identifier": "identifier",
    "date": "date",
}
_DC_CUSTOM_FIELDS = (
    "contributor",
    "subject",
    "description",
    "rights",
    "source",
    "type",
    "format",
    "relation",
    "coverage",
)

# Front matter keys accepted for each Metadata field, in priority order
_FRONT_MATTER_KEYS = {
    "title": ("title",),
    "author": ("author", "authors", "creator"),
    "language": ("language", "lang"),
    "publisher": ("publisher",),
    "identifier": ("identifier", "isbn", "id"),
    "date": ("date", "published"),
}

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?\n)?(?:---|\.\.\.)[ \t]*(?:\n|\Z)", re.DOTALL)
_FIRST_H1_RE = re.compile(r"^ {0,3}#\s+(.+?)\s*#*\s*$", re.MULTILINE)


def fallback_metadata() -> Metadata:
    """Metadata with every field set to its fallback value."""
    return Metadata(
        title=DEFAULT_TITLE,
        author=DEFAULT_AUTHOR,
        language=DEFAULT_LANGUAGE,
        publisher=DEFAULT_PUBLISHER,
        identifier=DEFAULT_IDENTIFIER,
        date=DEFAULT_DATE,
    )


def coerce_custom_value(value: Any) -> str:
    """Coerce a metadata value to a string.

    Strings are kept, numbers and booleans stringified. Mappings, sequences,
    callables, dates and None become an empty string.
    """
    if isinstance(value, str):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _field_value(value: Any) -> str:
    """Coerce a value for one of the named Metadata fields."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(v for v in (coerce_custom_value(i).strip() for i in value) if v)
    return coerce_custom_value(value).strip()


def build_metadata(
    fields: Mapping[str, Any], custom: Mapping[str, Any] | None = None
) -> Metadata:
    """Build Metadata, filling every missing or blank field with its fallback."""
    values = {name: _field_value(fields.get(name)) for name in _FRONT_MATTER_KEYS}
    return Metadata(
        title=values["title"] or DEFAULT_TITLE,
        author=values["author"] or DEFAULT_AUTHOR,
        language=values["language"] or DEFAULT_LANGUAGE,
        publisher=values["publisher"] or DEFAULT_PUBLISHER,
        identifier=values["identifier"] or DEFAULT_IDENTIFIER,
        date=values["date"] or DEFAULT_DATE,
        custom_metadata={
            str(k): coerce_custom_value(v) for k, v in (custom or {}).items()
        },
    )


def extract_safely(
    extractor: Callable[..., Metadata],
    *args: Any,
    logger: logging.Logger = log,
) -> tuple[Metadata, str | None]:
    """Run a metadata extractor, absorbing any failure.

    Returns:
        (metadata, error message or None); fallback metadata on failure
    """
    try:
        return extractor(*args), None
    except Exception as e:
        message = f"Metadata extraction failed: {e}"
        logger.warning(message)
        return fallback_metadata(), message


# =============================================================================
# Markdown
# =============================================================================


def split_front_matter(content: str) -> tuple[str | None, str]:
    """Separate a leading YAML front matter block from the body.

    Returns:
        (raw front matter or None, body text)
    """
    match = _FRONT_MATTER_RE.match(content)
    if not match:
        return None, content
    return match.group(1) or "", content[match.end() :]


def extract_markdown_metadata(content: str) -> Metadata:
    """Extract metadata from YAML front matter and the first # heading.

    Raises:
        yaml.YAMLError: If the front matter is not valid YAML
        ValueError: If the front matter is not a mapping
    """
    raw, body = split_front_matter(content)
    data: dict[str, Any] = {}
    if raw:
        loaded = yaml.safe_load(raw)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError("Front matter must be a mapping")
        data = loaded or {}

    fields: dict[str, Any] = {}
    used_keys: set[str] = set()
    for name, keys in _FRONT_MATTER_KEYS.items():
        for key in keys:
            if data.get(key) not in (None, ""):
                fields[name] = data[key]
                used_keys.add(key)
                break

    if not _field_value(fields.get("title")):
        heading = _FIRST_H1_RE.search(body)
        if heading:
            fields["title"] = heading.group(1)

    custom = {k: v for k, v in data.items() if k not in used_keys}
    return build_metadata(fields, custom)


# =============================================================================
# EPUB
# =============================================================================


_DC_NAMESPACE = epub.NAMESPACES["DC"]


def _dc_entries(book, name: str) -> list:
    return book.metadata.get(_DC_NAMESPACE, {}).get(name, [])


def _dc_values(book, name: str) -> list[str]:
    return [str(value) for value, _ in _dc_entries(book, name) if value]


def _meta_entries(book):
    """Yield (key, content) for every non Dublin Core metadata entry.

    ebooklib files <meta> elements under their property or prefix namespace,
    so the key is taken from the element's name/property attribute.
    """
    for namespace, entries in book.metadata.items():
        if namespace == _DC_NAMESPACE:
            continue
        for name, values in entries.items():
            for value, attrs in values:
                attrs = attrs or {}
                key = attrs.get("name") or attrs.get("property") or name
                if key:
                    yield str(key), attrs.get("content", value)


def extract_epub_metadata(book) -> Metadata:
    """Extract Dublin Core and OPF meta fields from an ebooklib EpubBook."""
    fields: dict[str, Any] = {}
    for dc_name, field_name in _DC_FIELDS.items():
        values = _dc_values(book, dc_name)
        if not values:
            continue
        # Several creators are joined; other fields take the first value
        fields[field_name] = values if dc_name == "creator" else values[0]

    custom: dict[str, Any] = {}
    for dc_name in _DC_CUSTOM_FIELDS:
        values = _dc_values(book, dc_name)
        if values:
            custom[dc_name] = ", ".join(values)

    for key, content in _meta_entries(book):
        if key not in custom:
            custom[key] = content if content is not None else ""

    return build_metadata(fields, custom)


def read_epub_fields(book) -> dict[str, str | None]:
    """First title/identifier/language values, for pre-validation."""
    result: dict[str, str | None] = {}
    for name in ("title", "identifier", "language"):
        values = _dc_entries(book, name)
        result[name] = str(values[0][0]) if values and values[0][0] is not None else None
    return result


# =============================================================================
# PDF
# =============================================================================

_PDF_FIELDS = {
    "/Title": "title",
    "/Author": "author",
    "/Producer": "publisher",
    "/CreationDate": "date",
    "/Lang": "language",
}


def extract_pdf_metadata(
    info: Mapping[str, Any] | None, fallback_title: str | None = None
) -> Metadata:
    """Map a PDF document information dictionary onto Metadata.

    Args:
        info: pypdf DocumentInformation (or any mapping of /Key -> value)
        fallback_title: Used when /Title is missing, typically the file stem
    """
    info = info or {}
    fields: dict[str, Any] = {}
    custom: dict[str, Any] = {}

    for key, value in info.items():
        key = str(key)
        text = str(value) if value is not None else None
        if key in _PDF_FIELDS:
            fields[_PDF_FIELDS[key]] = text
        else:
            custom[key.lstrip("/")] = text

    if not _field_value(fields.get("title")) and fallback_title:
        fields["title"] = fallback_title
    return build_metadata(fields, custom)
