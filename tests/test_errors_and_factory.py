from __future__ import annotations

import logging

import pytest

from narrate_parse import (
    DocumentParseError,
    EpubParser,
    ErrorCode,
    MarkdownParser,
    ParserFactory,
    ParserOptions,
    PdfParser,
    normalize_error,
)
from narrate_parse.config import DEFAULTS, ConfigResolver
from narrate_parse.errors import EpubFormatError, InvalidInputError


def test_normalize_known_error() -> None:
    error = normalize_error(EpubFormatError("Missing META-INF/container.xml"))

    assert error.code == "EPUB_FORMAT_ERROR"
    assert error.message == "Missing META-INF/container.xml"
    assert error.recoverable is False


def test_normalize_unknown_error_keeps_message() -> None:
    assert normalize_error(ValueError("boom")).model_dump() == {
        "code": "UNKNOWN_ERROR",
        "message": "boom",
        "recoverable": False,
    }
    assert normalize_error(RuntimeError()).message == "RuntimeError"


def test_document_parse_error() -> None:
    error = DocumentParseError("bad header", "PDF_FORMAT_ERROR", recoverable=True)

    assert error.code is ErrorCode.PDF_FORMAT_ERROR
    assert str(error) == "[PDF_FORMAT_ERROR] bad header"
    assert error.to_dict() == {
        "error_type": "DocumentParseError",
        "code": "PDF_FORMAT_ERROR",
        "message": "bad header",
        "recoverable": True,
    }
    assert InvalidInputError("empty").code is ErrorCode.INVALID_INPUT


def test_unknown_error_code_is_rejected() -> None:
    with pytest.raises(ValueError):
        DocumentParseError("message", "NOT_A_CODE")


@pytest.mark.parametrize(
    ("name", "parser_type"),
    [
        ("markdown", MarkdownParser),
        ("md", MarkdownParser),
        (".MD", MarkdownParser),
        ("epub", EpubParser),
        (" PDF ", PdfParser),
    ],
)
def test_factory_creates_parser(name: str, parser_type: type) -> None:
    assert isinstance(ParserFactory.create(name), parser_type)


def test_factory_passes_options_logger_and_config() -> None:
    options = ParserOptions(strict_mode=True)
    logger = logging.getLogger("tests.factory")
    parser = ParserFactory.create("markdown", options, logger=logger, config={"words_per_minute": 120})

    assert parser.options is options
    assert parser.log is logger
    assert parser.config.get("words_per_minute") == 120


def test_factory_rejects_unknown_format() -> None:
    with pytest.raises(ValueError, match="Unsupported format: docx"):
        ParserFactory.create("docx")
    assert ParserFactory.is_supported("md")
    assert not ParserFactory.is_supported("docx")


def test_config_precedence() -> None:
    options = ParserOptions(config={"words_per_minute": 150})

    assert ConfigResolver(ParserOptions()).get("words_per_minute") == DEFAULTS["words_per_minute"]
    assert ConfigResolver(ParserOptions(), {"words_per_minute": 180}).get("words_per_minute") == 180
    assert ConfigResolver(options, {"words_per_minute": 180}).get("words_per_minute") == 150
    assert ConfigResolver(ParserOptions(), {}).get("missing", "fallback") == "fallback"


def test_config_typed_getters() -> None:
    resolver = ConfigResolver(
        ParserOptions(config={"chapter_max_level": "3", "include_tables": 1, "confidence_base": "0.5"})
    )

    assert resolver.get_int("chapter_max_level") == 3
    assert resolver.get_bool("include_tables") is True
    assert resolver.get_float("confidence_base") == 0.5
    assert resolver.get_bool("include_code_blocks") is False


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("false", False),
        ("False", False),
        (" off ", False),
        ("0", False),
        ("no", False),
        ("true", True),
        ("YES", True),
        ("1", True),
        (0, False),
        (True, True),
    ],
)
def test_config_bool_strings(value: object, expected: bool) -> None:
    resolver = ConfigResolver(ParserOptions(), {"include_tables": value})
    assert resolver.get_bool("include_tables") is expected
