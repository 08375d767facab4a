"""Classify EPUB manifest resources into asset buckets."""

import logging
import re
from dataclasses import dataclass, field

from narrate_parse.models.document import Asset, EmbeddedAssets

log = logging.getLogger(__name__)

# Asset type -> EmbeddedAssets field; anything else lands in "other"
ASSET_BUCKETS: dict[str, str] = {
    "image": "images",
    "audio": "audio",
    "video": "video",
    "font": "fonts",
    "style": "styles",
}

_FONT_MEDIA_TYPES = ("font/", "application/font", "application/x-font")
_STYLE_MEDIA_TYPES = ("text/css", "application/x-dtbncx+xml")
_DOCUMENT_MEDIA_TYPES = ("application/xhtml+xml", "text/html")


@dataclass
class ManifestEntry:
    """A manifest item as read from the package document."""

    id: str
    href: str
    media_type: str | None
    size: int = 0
    properties: list[str] = field(default_factory=list)


def determine_asset_type(media_type: str) -> str:
    """Map a media type to image/audio/video/font/style/document/other."""
    media_type = media_type.lower().strip()

    if media_type.startswith("image/"):
        return "image"
    if media_type.startswith("audio/"):
        return "audio"
    if media_type.startswith("video/"):
        return "video"
    if (
        media_type.startswith(_FONT_MEDIA_TYPES)
        or "woff" in media_type
        or media_type == "application/vnd.ms-opentype"
    ):
        return "font"
    if media_type in _STYLE_MEDIA_TYPES:
        return "style"
    if media_type in _DOCUMENT_MEDIA_TYPES:
        return "document"
    return "other"


def asset_id_from_href(href: str) -> str:
    """Derive a stable asset id from an href (dots and slashes become dashes)."""
    return re.sub(r"[./]", "-", href)


def classify_assets(entries: list[ManifestEntry]) -> EmbeddedAssets:
    """Sort manifest entries into the six asset buckets.

    Entries without a media type are skipped. Hrefs are kept verbatim.
    """
    buckets: dict[str, list[Asset]] = {
        "images": [],
        "audio": [],
        "video": [],
        "fonts": [],
        "styles": [],
        "other": [],
    }

    for entry in entries:
        if not entry.media_type:
            log.debug(f"Skipping manifest entry without media type: {entry.href!r}")
            continue

        asset_type = determine_asset_type(entry.media_type)
        bucket = ASSET_BUCKETS.get(asset_type, "other")
        buckets[bucket].append(
            Asset(
                id=asset_id_from_href(entry.href),
                href=entry.href,
                media_type=entry.media_type,
                size=entry.size,
                type=asset_type,
                properties=list(entry.properties),
            )
        )

    return EmbeddedAssets(**buckets)


def read_manifest(book) -> list[ManifestEntry]:
    """Read manifest entries from an ebooklib EpubBook."""
    entries = []
    for item in book.get_items():
        properties = getattr(item, "properties", None) or []
        entries.append(
            ManifestEntry(
                id=item.get_id() or "",
                href=item.get_name(),
                media_type=item.media_type,
                size=len(item.get_content() or b""),
                properties=list(properties),
            )
        )
    return entries


def extract_assets(
    book, extract_media: bool = True, logger: logging.Logger = log
) -> tuple[EmbeddedAssets, str | None]:
    """Extract and classify the manifest of an EPUB.

    Failures never abort the parse: they yield empty assets plus a message
    for the caller to record as a processing error.

    Returns:
        (assets, error message or None)
    """
    if not extract_media:
        return EmbeddedAssets(), None

    try:
        entries = read_manifest(book)
    except Exception as e:
        message = f"Asset extraction failed: {e}"
        logger.warning(message)
        return EmbeddedAssets(), message

    assets = classify_assets(entries)
    logger.debug(f"Classified {assets.total} of {len(entries)} manifest entries")
    return assets, None
