"""Data models for streamed parsing."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel

from narrate_parse.models.document import Chapter, Metadata
from narrate_parse.models.result import ParseError

ChunkType = Literal["metadata", "chapter", "progress", "error"]


class ParseState(str, Enum):
    """Lifecycle of a single parse."""

    PENDING = "pending"
    VALIDATING = "validating"
    EXTRACTING_METADATA = "extracting_metadata"
    DETECTING_CHAPTERS = "detecting_chapters"
    SEGMENTING_SENTENCES = "segmenting_sentences"
    AGGREGATING_STATISTICS = "aggregating_statistics"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ParseState.SUCCESS, ParseState.FAILED)


class DocumentChunk(BaseModel):
    """One unit of streamed output."""

    id: str
    type: ChunkType
    position: int = 0
    progress: float = 0.0  # Percent, 0-100
    metadata: Metadata | None = None
    chapter: Chapter | None = None
    error: ParseError | None = None
