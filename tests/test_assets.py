from __future__ import annotations

import pytest

from narrate_parse.core.assets import (
    ManifestEntry,
    asset_id_from_href,
    classify_assets,
    determine_asset_type,
    extract_assets,
)


@pytest.mark.parametrize(
    ("media_type", "expected"),
    [
        ("image/png", "image"),
        ("IMAGE/JPEG", "image"),
        ("audio/mpeg", "audio"),
        ("video/mp4", "video"),
        ("font/woff2", "font"),
        ("application/font-woff", "font"),
        ("application/x-font-ttf", "font"),
        ("application/vnd.ms-opentype", "font"),
        ("text/css", "style"),
        ("application/x-dtbncx+xml", "style"),
        ("application/xhtml+xml", "document"),
        ("application/octet-stream", "other"),
    ],
)
def test_determine_asset_type(media_type: str, expected: str) -> None:
    assert determine_asset_type(media_type) == expected


def test_single_image_lands_only_in_images() -> None:
    assets = classify_assets(
        [ManifestEntry(id="img1", href="images/cover.jpg", media_type="image/jpeg", size=4)]
    )

    assert len(assets.images) == 1
    image = assets.images[0]
    assert image.href == "images/cover.jpg"
    assert image.type == "image"
    assert image.size == 4
    assert assets.audio == assets.video == assets.fonts == assets.styles == assets.other == []
    assert assets.total == 1


def test_entries_without_media_type_are_skipped() -> None:
    assets = classify_assets(
        [
            ManifestEntry(id="a", href="mystery", media_type=None),
            ManifestEntry(id="b", href="style.css", media_type="text/css"),
        ]
    )
    assert [a.href for a in assets.all_assets()] == ["style.css"]


def test_documents_go_to_other() -> None:
    assets = classify_assets(
        [ManifestEntry(id="c1", href="text/ch1.xhtml", media_type="application/xhtml+xml")]
    )
    assert [a.type for a in assets.other] == ["document"]


def test_unusual_hrefs_are_kept_verbatim() -> None:
    entries = [
        ManifestEntry(id="x", href="images/my cover.png", media_type="image/png"),
        ManifestEntry(id="y", href="images/café.png", media_type="image/png"),
    ]
    first = classify_assets(entries)
    second = classify_assets(entries)

    assert [a.href for a in first.images] == ["images/my cover.png", "images/café.png"]
    assert [a.id for a in first.images] == [a.id for a in second.images]
    assert asset_id_from_href("images/cover.jpg") == "images-cover-jpg"


class FakeItem:
    def __init__(self, name: str, media_type: str | None, content: bytes = b"") -> None:
        self.file_name = name
        self.media_type = media_type
        self.content = content

    def get_id(self) -> str:
        return self.file_name

    def get_name(self) -> str:
        return self.file_name

    def get_content(self) -> bytes:
        return self.content


class FakeBook:
    def __init__(self, items: list[FakeItem]) -> None:
        self.items = items

    def get_items(self) -> list[FakeItem]:
        return self.items


class BrokenBook:
    def get_items(self) -> list[FakeItem]:
        raise RuntimeError("manifest unreadable")


def test_extract_assets_reads_manifest() -> None:
    book = FakeBook(
        [
            FakeItem("fonts/serif.otf", "font/otf", b"123456"),
            FakeItem("audio/intro.mp3", "audio/mpeg"),
        ]
    )
    assets, error = extract_assets(book)

    assert error is None
    assert [a.size for a in assets.fonts] == [6]
    assert [a.href for a in assets.audio] == ["audio/intro.mp3"]


def test_extract_assets_disabled() -> None:
    assets, error = extract_assets(FakeBook([FakeItem("a.png", "image/png")]), extract_media=False)

    assert error is None
    assert assets.total == 0


def test_extract_assets_failure_is_absorbed() -> None:
    assets, error = extract_assets(BrokenBook())

    assert assets.total == 0
    assert error is not None and "manifest unreadable" in error
