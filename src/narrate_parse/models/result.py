"""Tagged parse result returned across the public boundary."""

from typing import Literal, Union

from pydantic import BaseModel

from narrate_parse.models.document import DocumentStructure


class ParseError(BaseModel):
    """Normalized failure record."""

    code: str
    message: str
    recoverable: bool = False


class ParseSuccess(BaseModel):
    """Successful parse carrying the structure."""

    success: Literal[True] = True
    data: DocumentStructure


class ParseFailure(BaseModel):
    """Failed parse carrying the normalized error."""

    success: Literal[False] = False
    error: ParseError


ParseResult = Union[ParseSuccess, ParseFailure]
