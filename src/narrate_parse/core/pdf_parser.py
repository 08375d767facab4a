"""PDF parsing with pdfplumber text extraction and pypdf metadata."""

import io
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

# Suppress warnings about malformed PDF object references from PDF libraries
logging.getLogger("pdfminer").setLevel(logging.ERROR)
logging.getLogger("pypdf").setLevel(logging.ERROR)

import pdfplumber
import pypdf
from pypdf.errors import EmptyFileError, FileNotDecryptedError, PdfReadError

from narrate_parse.core.base import (
    ChapterDraft,
    DocumentParser,
    ParseContext,
    SourceInput,
    SourcePayload,
    load_binary_source,
)
from narrate_parse.core.chapter_detector import FALLBACK_CHAPTER_TITLE, detect_pdf_chapters
from narrate_parse.core.metadata import DEFAULT_TITLE, extract_pdf_metadata, extract_safely
from narrate_parse.errors import PdfFormatError
from narrate_parse.models.document import Metadata

log = logging.getLogger(__name__)

PDF_HEADER = b"%PDF-"
HEADER_SEARCH_BYTES = 1024
PAGE_SEPARATOR = "\n\n"


@dataclass
class PdfDocument:
    """An opened PDF: document info plus extracted page text."""

    info: dict[str, Any]
    page_count: int
    pages: list[str] = field(default_factory=list)
    name: str | None = None

    @property
    def text(self) -> str:
        return PAGE_SEPARATOR.join(self.pages)


def _source(payload: SourcePayload) -> str | io.BytesIO:
    if payload.data is not None:
        return io.BytesIO(payload.data)
    return str(payload.path)


def check_header(payload: SourcePayload) -> None:
    """Require the %PDF- marker within the first 1024 bytes.

    Raises:
        PdfFormatError: If the marker is missing
    """
    if payload.data is not None:
        head = payload.data[:HEADER_SEARCH_BYTES]
    else:
        with open(payload.path, "rb") as f:
            head = f.read(HEADER_SEARCH_BYTES)
    if PDF_HEADER not in head:
        raise PdfFormatError("Missing %PDF- header; file is not a PDF")


def read_document_info(payload: SourcePayload) -> tuple[dict[str, Any], int]:
    """Read the document information dictionary and page count with pypdf.

    Raises:
        PdfFormatError: If the PDF is encrypted, empty or corrupted
    """
    try:
        reader = pypdf.PdfReader(_source(payload))
        if reader.is_encrypted:
            raise PdfFormatError("PDF is encrypted. Please decrypt first.")
        document_info = reader.metadata or {}
        info = {str(key): document_info[key] for key in document_info}
        page_count = len(reader.pages)
    except FileNotDecryptedError as e:
        raise PdfFormatError("PDF is encrypted. Please decrypt first.") from e
    except EmptyFileError as e:
        raise PdfFormatError("PDF file is empty.") from e
    except PdfReadError as e:
        raise PdfFormatError(f"PDF appears corrupted: {e}") from e

    if page_count == 0:
        raise PdfFormatError("PDF has no pages.")
    return info, page_count


def _is_page_number(text: str) -> bool:
    """Check if text is likely a page number."""
    text = text.strip()
    # Pure digits
    if text.isdigit():
        return True
    # "Page X" and "X of Y" formats
    if re.match(r"^page\s+\d+(\s+of\s+\d+)?$", text.lower()):
        return True
    return False


def clean_page_text(text: str) -> str:
    """Drop page-number lines and trailing whitespace from extracted text."""
    lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
    return "\n".join(line for line in lines if not _is_page_number(line) or not line.strip()).strip()


def extract_page_texts(payload: SourcePayload) -> list[str]:
    """Extract the text of every page with pdfplumber."""
    texts = []
    with pdfplumber.open(_source(payload)) as pdf:
        for page in pdf.pages:
            texts.append(page.extract_text() or "")
    log.debug(f"pdfplumber extracted text from {len(texts)} pages")
    return texts


class PdfParser(DocumentParser):
    """Parse text-based PDFs into chapters, paragraphs and sentences.

    Scanned (image-only) PDFs are not supported: a PDF without
    extractable text fails with PDF_FORMAT_ERROR.
    """

    source_format = "pdf"
    pipe_tables = False

    def _load(self, source: SourceInput) -> SourcePayload:
        return load_binary_source(source, self.max_bytes)

    @contextmanager
    def _open(self, payload: SourcePayload, ctx: ParseContext) -> Iterator[PdfDocument]:
        check_header(payload)
        info, page_count = read_document_info(payload)

        try:
            raw_pages = extract_page_texts(payload)
        except Exception as e:
            raise PdfFormatError(f"Text extraction failed: {e}") from e

        pages = [clean_page_text(text) for text in raw_pages]
        if not any(page.strip() for page in pages):
            raise PdfFormatError(
                "PDF has no extractable text. It may be scanned or image-based."
            )

        self.log.info(f"Extracted text from {page_count} pages")
        yield PdfDocument(info=info, page_count=page_count, pages=pages, name=payload.name)

    def _extract_metadata(self, document: PdfDocument, ctx: ParseContext) -> Metadata:
        metadata, error = extract_safely(
            extract_pdf_metadata, document.info, document.name, logger=self.log
        )
        if error:
            ctx.absorb("METADATA_EXTRACTION_FAILED", error)
        return metadata

    def _detect_chapters(
        self, document: PdfDocument, metadata: Metadata, ctx: ParseContext
    ) -> list[ChapterDraft]:
        text = document.text
        ctx.source_length = len(text)
        fallback = metadata.title if metadata.title != DEFAULT_TITLE else FALLBACK_CHAPTER_TITLE
        spans = detect_pdf_chapters(text, fallback_title=fallback)
        return [
            ChapterDraft(
                title=span.title,
                level=span.level,
                start=span.start,
                end=span.end,
                body=text[span.body_start : span.end],
                body_offset=span.body_start,
            )
            for span in spans
        ]
