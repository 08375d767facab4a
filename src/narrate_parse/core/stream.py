"""Pull-based stream of parse chunks."""

import logging
from typing import Callable, Iterator

from narrate_parse.models.document import DocumentStructure
from narrate_parse.models.result import ParseError, ParseFailure, ParseResult, ParseSuccess
from narrate_parse.models.stream import DocumentChunk, ParseState

log = logging.getLogger(__name__)


class DocumentStream:
    """Lazy, finite, forward-only sequence of DocumentChunks.

    Nothing is parsed until the first chunk is requested. Once exhausted
    (or closed) the stream yields nothing more; create a new stream from
    the parser to start over. Abandoning iteration and calling close()
    (or letting the stream be garbage collected) releases open files.
    """

    def __init__(self, producer: Callable[["DocumentStream"], Iterator[DocumentChunk]]):
        self._producer = producer
        self._chunks: Iterator[DocumentChunk] | None = None
        self._done = False
        self.state = ParseState.PENDING
        self.structure: DocumentStructure | None = None
        self.error: ParseError | None = None

    def __iter__(self) -> "DocumentStream":
        return self

    def __next__(self) -> DocumentChunk:
        if self._done:
            raise StopIteration
        if self._chunks is None:
            self._chunks = self._producer(self)
        try:
            return next(self._chunks)
        except StopIteration:
            self._done = True
            raise

    def __enter__(self) -> "DocumentStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Stop producing chunks and release resources held by the producer."""
        if self._chunks is not None and hasattr(self._chunks, "close"):
            self._chunks.close()
        self._done = True
        if not self.state.is_terminal:
            log.debug(f"Stream closed in state {self.state.value}")

    @property
    def exhausted(self) -> bool:
        return self._done

    def set_state(self, state: ParseState) -> None:
        log.debug(f"Parse state: {self.state.value} -> {state.value}")
        self.state = state

    def drain(self) -> None:
        """Consume every remaining chunk."""
        for _ in self:
            pass

    def get_structure(self) -> DocumentStructure | None:
        """Return the assembled structure, draining the stream if needed.

        Returns None if the parse failed; see error for the reason.
        """
        self.drain()
        return self.structure

    def result(self) -> ParseResult:
        """Drain the stream and wrap the outcome as a ParseResult."""
        self.drain()
        if self.structure is not None:
            return ParseSuccess(data=self.structure)
        return ParseFailure(
            error=self.error
            or ParseError(code="UNKNOWN_ERROR", message="Stream closed before completion")
        )
