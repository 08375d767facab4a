"""Error taxonomy and normalization to the public error record."""

from enum import Enum

from narrate_parse.models.result import ParseError


class ErrorCode(str, Enum):
    """Stable error codes reported in ParseFailure and validation issues."""

    INVALID_INPUT_TYPE = "INVALID_INPUT_TYPE"
    INVALID_INPUT = "INVALID_INPUT"
    MARKDOWN_FORMAT_ERROR = "MARKDOWN_FORMAT_ERROR"
    EPUB_FORMAT_ERROR = "EPUB_FORMAT_ERROR"
    PDF_FORMAT_ERROR = "PDF_FORMAT_ERROR"
    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    MISSING_LANGUAGE = "MISSING_LANGUAGE"
    MISSING_TITLE = "MISSING_TITLE"
    INVALID_TITLE_LENGTH = "INVALID_TITLE_LENGTH"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class DocumentParseError(Exception):
    """Base exception raised inside the parsers."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str = ErrorCode.UNKNOWN_ERROR,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class InvalidInputError(DocumentParseError):
    """Empty, missing or oversize input."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_INPUT)


class InvalidInputTypeError(DocumentParseError):
    """Input of an unsupported Python type (including None)."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_INPUT_TYPE)


class MarkdownFormatError(DocumentParseError):
    """Markdown that cannot be decoded or structured."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.MARKDOWN_FORMAT_ERROR)


class EpubFormatError(DocumentParseError):
    """Corrupt archive or missing mandatory EPUB files."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.EPUB_FORMAT_ERROR)


class PdfFormatError(DocumentParseError):
    """Bad header, encrypted or text-less PDF."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PDF_FORMAT_ERROR)


def normalize_error(exc: BaseException) -> ParseError:
    """Convert any exception into the public ParseError record.

    Args:
        exc: Exception raised while parsing

    Returns:
        ParseError with a known code, or UNKNOWN_ERROR carrying the
        original message
    """
    if isinstance(exc, DocumentParseError):
        return ParseError(
            code=exc.code.value,
            message=exc.message,
            recoverable=exc.recoverable,
        )
    message = str(exc) or exc.__class__.__name__
    return ParseError(code=ErrorCode.UNKNOWN_ERROR.value, message=message)
