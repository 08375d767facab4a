"""Data models for validation reports."""

from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["critical", "error", "warning"]


class IssueLocation(BaseModel):
    """Where in the structure an issue was found."""

    chapter: int | None = None
    paragraph: int | None = None
    sentence: int | None = None


class ValidationIssue(BaseModel):
    """A single validation finding."""

    code: str
    message: str
    severity: Severity = "warning"
    fix: str | None = None
    location: IssueLocation | None = None

    @property
    def is_error(self) -> bool:
        return self.severity in ("critical", "error")


class EpubValidationMetadata(BaseModel):
    """Facts collected while pre-validating an EPUB."""

    file_size: int = 0
    spine_item_count: int = 0
    manifest_item_count: int = 0
    has_navigation: bool = False
    has_metadata: bool = False
    title: str | None = None
    language: str | None = None


class ValidationResult(BaseModel):
    """Outcome of a validation pass."""

    is_valid: bool = True
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    metadata: EpubValidationMetadata = Field(default_factory=EpubValidationMetadata)
    score: float = 1.0

    def add(self, issue: ValidationIssue) -> None:
        """Record an issue in the matching list."""
        if issue.is_error:
            self.errors.append(issue)
            self.is_valid = False
        else:
            self.warnings.append(issue)

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings]
