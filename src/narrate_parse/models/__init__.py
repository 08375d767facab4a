"""Data models."""

from narrate_parse.models.document import (
    Asset,
    Chapter,
    DocumentStructure,
    EmbeddedAssets,
    Metadata,
    Paragraph,
    ProcessingMetrics,
    Sentence,
    TOCEntry,
)
from narrate_parse.models.result import (
    ParseError,
    ParseFailure,
    ParseResult,
    ParseSuccess,
)
from narrate_parse.models.stream import DocumentChunk, ParseState
from narrate_parse.models.validation import (
    EpubValidationMetadata,
    IssueLocation,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Document models
    "Sentence",
    "Paragraph",
    "Chapter",
    "Metadata",
    "Asset",
    "EmbeddedAssets",
    "TOCEntry",
    "ProcessingMetrics",
    "DocumentStructure",
    # Result models
    "ParseError",
    "ParseSuccess",
    "ParseFailure",
    "ParseResult",
    # Streaming models
    "DocumentChunk",
    "ParseState",
    # Validation models
    "IssueLocation",
    "ValidationIssue",
    "EpubValidationMetadata",
    "ValidationResult",
]
