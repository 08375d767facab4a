from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pypdf
import pytest
from ebooklib import epub

LONG_PARAGRAPH = " ".join(
    f"This is sentence number {i} of a long and steady chapter body." for i in range(1, 13)
)


def build_epub(
    path: Path,
    chapters: list[tuple[str, str]],
    *,
    title: str | None = "Test Book",
    identifier: str = "urn:uuid:1234",
    language: str = "en",
    author: str = "Jane Writer",
    with_image: bool = True,
) -> Path:
    """Write an EPUB with one XHTML document per (title, body html) pair."""
    book = epub.EpubBook()
    book.set_identifier(identifier)
    if title is not None:
        book.set_title(title)
    book.set_language(language)
    book.add_author(author)

    documents = []
    for index, (chapter_title, body) in enumerate(chapters, start=1):
        doc = epub.EpubHtml(
            title=chapter_title, file_name=f"chap_{index:02d}.xhtml", lang=language
        )
        doc.content = f"<h1>{chapter_title}</h1>{body}"
        book.add_item(doc)
        documents.append(doc)

    if with_image:
        book.add_item(
            epub.EpubImage(
                uid="cover-image",
                file_name="images/cover.jpg",
                media_type="image/jpeg",
                content=b"\xff\xd8\xff\xe0",
            )
        )

    book.toc = [
        epub.Link(doc.file_name, doc.title, f"link_{index}")
        for index, doc in enumerate(documents, start=1)
    ]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *documents]

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def epub_builder(tmp_path: Path) -> Callable[..., Path]:
    def _build(chapters: list[tuple[str, str]], name: str = "book.epub", **kwargs) -> Path:
        return build_epub(tmp_path / name, chapters, **kwargs)

    return _build


@pytest.fixture
def sample_epub(epub_builder: Callable[..., Path]) -> Path:
    return epub_builder(
        [
            ("Chapter One", f"<p>{LONG_PARAGRAPH}</p><p>A second paragraph. It has two sentences.</p>"),
            ("Chapter Two", f"<p>{LONG_PARAGRAPH}</p>"),
            ("Interlude", "<p>Short bit.</p>"),
        ]
    )


def make_pdf_bytes(metadata: dict[str, str] | None = None, pages: int = 1) -> bytes:
    """A structurally valid PDF with blank pages; page text is patched in tests."""
    writer = pypdf.PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    if metadata:
        writer.add_metadata(metadata)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf_bytes({"/Title": "Field Report", "/Author": "Ann Analyst"})


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return make_pdf_bytes
