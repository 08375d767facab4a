"""Structural pre-validation of EPUB containers."""

import logging
import re
import zipfile
from pathlib import Path

import ebooklib
from ebooklib import epub

from narrate_parse.core.metadata import read_epub_fields
from narrate_parse.errors import EpubFormatError, ErrorCode
from narrate_parse.models.validation import (
    EpubValidationMetadata,
    ValidationIssue,
    ValidationResult,
)

log = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
CONTAINER_PATH = "META-INF/container.xml"
LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


def validate_epub_metadata(
    title: str | None,
    identifier: str | None,
    language: str | None,
) -> list[ValidationIssue]:
    """Check the mandatory Dublin Core fields of an EPUB."""
    issues: list[ValidationIssue] = []

    title = (title or "").strip()
    if not title:
        issues.append(
            ValidationIssue(
                code=ErrorCode.MISSING_TITLE.value,
                message="EPUB has no dc:title",
                severity="critical",
                fix="Add a <dc:title> element to the package metadata",
            )
        )
    elif len(title) > MAX_TITLE_LENGTH:
        issues.append(
            ValidationIssue(
                code=ErrorCode.INVALID_TITLE_LENGTH.value,
                message=f"Title is {len(title)} characters (maximum {MAX_TITLE_LENGTH})",
                severity="error",
                fix="Shorten the title",
            )
        )

    if not (identifier or "").strip():
        issues.append(
            ValidationIssue(
                code=ErrorCode.MISSING_IDENTIFIER.value,
                message="EPUB has no dc:identifier",
                severity="error",
                fix="Add a <dc:identifier> element, e.g. an ISBN or UUID",
            )
        )

    language = (language or "").strip()
    if not language:
        issues.append(
            ValidationIssue(
                code=ErrorCode.MISSING_LANGUAGE.value,
                message="EPUB has no dc:language",
                severity="error",
                fix="Add a <dc:language> element, e.g. 'en'",
            )
        )
    elif not LANGUAGE_CODE_RE.match(language):
        issues.append(
            ValidationIssue(
                code="INVALID_LANGUAGE_CODE",
                message=f"Language code '{language}' is not a valid BCP 47 tag",
                severity="warning",
            )
        )

    return issues


def check_container(path: Path) -> None:
    """Verify the file is a zip archive with META-INF/container.xml.

    Raises:
        EpubFormatError: If the archive is corrupt or the container is missing
    """
    try:
        with zipfile.ZipFile(path) as archive:
            if CONTAINER_PATH not in archive.namelist():
                raise EpubFormatError(f"Missing {CONTAINER_PATH}")
    except zipfile.BadZipFile as e:
        raise EpubFormatError(f"Not a valid EPUB archive: {e}") from e


def read_book(path: Path) -> epub.EpubBook:
    """Check the container and read an EPUB with ebooklib.

    A damaged package document surfaces from ebooklib as AttributeError,
    ValueError or KeyError rather than EpubException; any failure while
    reading is raised as EpubFormatError.

    Raises:
        EpubFormatError: If the archive or its package document is unreadable
    """
    try:
        check_container(path)
        return epub.read_epub(str(path))
    except EpubFormatError:
        raise
    except Exception as e:
        log.debug(f"ebooklib failed to read {path.name}: {type(e).__name__}: {e}")
        raise EpubFormatError(f"Could not read EPUB: {e}") from e


def has_navigation(book: epub.EpubBook) -> bool:
    """Check for an EPUB 3 nav document or an NCX table of contents."""
    for item in book.get_items():
        if isinstance(item, epub.EpubNav) or "nav" in (getattr(item, "properties", None) or []):
            return True
        if item.get_type() == ebooklib.ITEM_NAVIGATION:
            return True
    return bool(book.toc)


def validate_book(book: epub.EpubBook, file_size: int = 0) -> ValidationResult:
    """Validate an already loaded EPUB and collect preview metadata."""
    fields = read_epub_fields(book)
    spine_count = len(book.spine)
    manifest_count = len(list(book.get_items()))
    navigation = has_navigation(book)

    result = ValidationResult(
        metadata=EpubValidationMetadata(
            file_size=file_size,
            spine_item_count=spine_count,
            manifest_item_count=manifest_count,
            has_navigation=navigation,
            has_metadata=any(fields.values()),
            title=fields["title"],
            language=fields["language"],
        )
    )

    for issue in validate_epub_metadata(
        fields["title"], fields["identifier"], fields["language"]
    ):
        result.add(issue)

    if spine_count == 0:
        result.add(
            ValidationIssue(
                code="NO_SPINE_ITEMS",
                message="EPUB spine is empty",
                severity="critical",
            )
        )
    if not navigation:
        result.add(
            ValidationIssue(
                code="MISSING_NAVIGATION",
                message="EPUB has no navigation document or NCX",
                severity="warning",
            )
        )

    issue_count = len(result.errors) + len(result.warnings)
    result.score = max(0.0, 1.0 - 0.25 * len(result.errors) - 0.05 * len(result.warnings))
    log.debug(f"EPUB validation: {issue_count} issues, valid={result.is_valid}")
    return result


def validate_epub_file(path: Path) -> ValidationResult:
    """Open and validate an EPUB file.

    Unreadable archives yield an invalid result with a critical
    EPUB_FORMAT_ERROR issue rather than an exception.
    """
    file_size = path.stat().st_size if path.exists() else 0
    try:
        book = read_book(path)
    except EpubFormatError as e:
        result = ValidationResult(metadata=EpubValidationMetadata(file_size=file_size))
        result.add(
            ValidationIssue(
                code=ErrorCode.EPUB_FORMAT_ERROR.value,
                message=e.message,
                severity="critical",
            )
        )
        result.score = 0.0
        return result

    return validate_book(book, file_size)
