"""Parse Markdown, EPUB and PDF documents into narration-ready structure."""

from narrate_parse.config import ParserOptions
from narrate_parse.core.epub_parser import EpubParser
from narrate_parse.core.markdown_parser import MarkdownParser
from narrate_parse.core.parser_factory import ParserFactory
from narrate_parse.core.pdf_parser import PdfParser
from narrate_parse.core.statistics import validate_structure
from narrate_parse.core.stream import DocumentStream
from narrate_parse.errors import DocumentParseError, ErrorCode, normalize_error

__version__ = "0.1.0"

__all__ = [
    "ParserOptions",
    "MarkdownParser",
    "EpubParser",
    "PdfParser",
    "ParserFactory",
    "DocumentStream",
    "validate_structure",
    "DocumentParseError",
    "ErrorCode",
    "normalize_error",
]
