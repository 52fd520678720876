from typing import Optional

from pydantic import BaseModel


class CdmParseWarning(BaseModel):
    """A non-fatal anomaly recorded while parsing in lenient mode."""
    kind: str
    message: str
    line_number: Optional[int] = None
    offset: Optional[int] = None
    segment_tag: Optional[str] = None


class X12Error(Exception):
    """
    Base class for every error raised while parsing, building or generating X12.

    line_number is the 1-based ordinal of the offending segment in the source
    text and offset its character offset, when the error comes from parsing.
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        offset: Optional[int] = None,
        segment_tag: Optional[str] = None,
    ):
        self.message = message
        self.line_number = line_number
        self.offset = offset
        self.segment_tag = segment_tag
        super().__init__(self._describe())

    def _describe(self) -> str:
        context = []
        if self.segment_tag:
            context.append(f"segment '{self.segment_tag}'")
        if self.line_number is not None:
            context.append(f"line {self.line_number}")
        if self.offset is not None:
            context.append(f"offset {self.offset}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    def to_warning(self) -> CdmParseWarning:
        return CdmParseWarning(
            kind=type(self).__name__,
            message=self.message,
            line_number=self.line_number,
            offset=self.offset,
            segment_tag=self.segment_tag,
        )


class StructuralError(X12Error):
    """Unmatched container open/close, or a segment outside any container."""


class DelimiterDetectionError(X12Error):
    """The ISA segment is too short or malformed to read the delimiters from."""


class ElementCountError(X12Error):
    """A known segment carries fewer or more elements than its definition allows."""


class TrailerMismatchError(X12Error):
    """A trailer's count or control number disagrees with its container."""


class IncompleteContainerError(X12Error):
    """A container was used before its header was set."""


class NotationShapeError(X12Error):
    """Generic notation input does not have the expected shape."""
