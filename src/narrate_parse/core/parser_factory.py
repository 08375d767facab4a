"""Factory for creating document parsers by format name."""

import logging

from narrate_parse.config import ConfigLookup, ParserOptions
from narrate_parse.core.base import DocumentParser


class ParserFactory:
    """Create the parser for an explicitly chosen format."""

    SUPPORTED_FORMATS = ("markdown", "epub", "pdf")

    # Accepted aliases for format names
    ALIASES = {
        "md": "markdown",
        "markdown": "markdown",
        "epub": "epub",
        "pdf": "pdf",
    }

    @classmethod
    def create(
        cls,
        format_name: str,
        options: ParserOptions | None = None,
        *,
        logger: logging.Logger | None = None,
        config: ConfigLookup | None = None,
    ) -> DocumentParser:
        """Create a parser for the given format.

        The format is never guessed from the input; the caller names it.

        Args:
            format_name: "markdown" (or "md"), "epub" or "pdf"
            options: Parser options shared by all formats
            logger: Logger used instead of the module logger
            config: Lookup with get(key, default) for tuning values

        Returns:
            DocumentParser instance for the format

        Raises:
            ValueError: If the format is not supported
        """
        normalized = cls.ALIASES.get(format_name.lower().strip().lstrip("."))

        if normalized == "markdown":
            from narrate_parse.core.markdown_parser import MarkdownParser

            return MarkdownParser(options, logger=logger, config=config)
        elif normalized == "epub":
            from narrate_parse.core.epub_parser import EpubParser

            return EpubParser(options, logger=logger, config=config)
        elif normalized == "pdf":
            from narrate_parse.core.pdf_parser import PdfParser

            return PdfParser(options, logger=logger, config=config)

        supported = ", ".join(cls.SUPPORTED_FORMATS)
        raise ValueError(f"Unsupported format: {format_name}. Supported formats: {supported}")

    @classmethod
    def is_supported(cls, format_name: str) -> bool:
        """Check if a format name is supported."""
        return format_name.lower().strip().lstrip(".") in cls.ALIASES
