# Canonical Data Model (CDM) for an X12 interchange.
# Interchange (ISA/IEA) -> functional groups (GS/GE) -> transactions (ST/SE) -> segments -> elements.
# Every node renders itself back to EDI; trailer counts are kept in sync by the add_* operations.
import logging
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field

from edi_errors import CdmParseWarning, IncompleteContainerError, StructuralError
from edi_notation import NotationFunctionalGroup, NotationInterchange, NotationSegment, NotationTransaction
from edi_options import OptionsOverride, SerializationOptions, merge_options
from segment_definitions import BUILTIN_SEGMENTS, HEADER_TAGS, TRAILER_TAGS, ControlSegment, is_valid_tag

logger = logging.getLogger(__name__)


class CdmElement(BaseModel):
    """Represents a single data element, optionally composed of sub-elements."""
    value: str = ""
    sub_elements: List[str] = Field(default_factory=list)

    @classmethod
    def from_string(cls, raw: str, sub_element_delimiter: Optional[str] = None) -> "CdmElement":
        if sub_element_delimiter:
            parts = raw.split(sub_element_delimiter)
            if len(parts) > 1:
                return cls(value=raw, sub_elements=parts)
        return cls(value=raw)

    @property
    def is_composite(self) -> bool:
        return bool(self.sub_elements)

    def get_sub_element(self, position: int) -> Optional[str]:
        """Retrieves a sub-element by its position (1-based index)."""
        if 1 <= position <= len(self.sub_elements):
            return self.sub_elements[position - 1]
        return None

    def to_string(self, options: OptionsOverride = None) -> str:
        if not self.sub_elements:
            return self.value
        return merge_options(None, options).sub_element_delimiter.join(self.sub_elements)


class CdmSegment(BaseModel):
    """Represents a single EDI segment. line_number and offset are only set for parsed segments."""
    tag: str = Field(min_length=1)
    elements: List[CdmElement] = Field(default_factory=list)
    line_number: Optional[int] = None
    offset: Optional[int] = None

    def get_element(self, position: int) -> Optional[str]:
        """Retrieves the value of an element by its position (1-based index)."""
        if 1 <= position <= len(self.elements):
            return self.elements[position - 1].value
        return None

    def value_of(self, position: int, default: Optional[str] = None) -> Optional[str]:
        value = self.get_element(position)
        return default if value is None else value

    def set_elements(self, values: List[str], sub_element_delimiter: Optional[str] = None) -> None:
        """
        Replaces all elements of this segment.

        ISA values are padded to their fixed widths and never split into
        sub-elements, since ISA16 is the sub-element delimiter itself.
        """
        self.elements = [self._make_element(value, position, sub_element_delimiter)
                         for position, value in enumerate(values, start=1)]

    def add_element(self, value: str, sub_element_delimiter: Optional[str] = None) -> CdmElement:
        element = self._make_element(value, len(self.elements) + 1, sub_element_delimiter)
        self.elements.append(element)
        return element

    def replace_element(self, value: str, position: int, sub_element_delimiter: Optional[str] = None) -> CdmElement:
        self._check_position(position, len(self.elements))
        element = self._make_element(value, position, sub_element_delimiter)
        self.elements[position - 1] = element
        return element

    def insert_element(self, value: str, position: int, sub_element_delimiter: Optional[str] = None) -> CdmElement:
        self._check_position(position, len(self.elements) + 1)
        element = self._make_element(value, position, sub_element_delimiter)
        self.elements.insert(position - 1, element)
        return element

    def remove_element(self, position: int) -> CdmElement:
        self._check_position(position, len(self.elements))
        return self.elements.pop(position - 1)

    def to_string(self, options: OptionsOverride = None) -> str:
        return self._render(merge_options(None, options))

    def _render(self, options: SerializationOptions) -> str:
        parts = [self.tag]
        parts.extend(element.to_string(options) for element in self.elements)
        return options.element_delimiter.join(parts) + options.segment_terminator

    def _make_element(self, value: str, position: int, sub_element_delimiter: Optional[str]) -> CdmElement:
        if self.tag == ControlSegment.ISA.value:
            return CdmElement(value=BUILTIN_SEGMENTS.get("ISA").pad(position, value))
        return CdmElement.from_string(value, sub_element_delimiter)

    def _check_position(self, position: int, upper: int) -> None:
        if not 1 <= position <= upper:
            raise IndexError(f"Element position {position} is out of range for segment '{self.tag}' (1..{upper}).")


class CdmContainer(BaseModel):
    """
    Shared behaviour of the three enveloping levels.

    A container renders as its header, its own loose segments, its children in
    order and its trailer. Element 1 of the trailer always holds the count
    returned by trailer_count(); add operations keep it in sync.
    """
    header_tag: ClassVar[str] = ""
    trailer_tag: ClassVar[str] = ""
    control_number_position: ClassVar[int] = 0

    header: Optional[CdmSegment] = None
    trailer: Optional[CdmSegment] = None
    segments: List[CdmSegment] = Field(default_factory=list)
    options: SerializationOptions = Field(default_factory=SerializationOptions)

    def _children(self) -> List["CdmContainer"]:
        return []

    def trailer_count(self) -> int:
        return len(self._children())

    def set_header(self, elements: List[str]) -> CdmSegment:
        """Sets the header from a list of element values and rebuilds the matching trailer."""
        self.header = CdmSegment(tag=self.header_tag)
        self.header.set_elements(elements, self.options.sub_element_delimiter)
        self.rebuild_trailer()
        return self.header

    def add_segment(self, tag: str, elements: List[str]) -> CdmSegment:
        self._require_header()
        if not is_valid_tag(tag):
            raise StructuralError(f"Invalid segment tag '{tag}'.", segment_tag=tag)
        if tag in HEADER_TAGS or tag in TRAILER_TAGS:
            raise StructuralError(f"Control segment '{tag}' cannot be added as a body segment.", segment_tag=tag)
        segment = CdmSegment(tag=tag)
        segment.set_elements(elements, self.options.sub_element_delimiter)
        self.segments.append(segment)
        self._sync_trailer_count()
        return segment

    def to_string(self, options: OptionsOverride = None) -> str:
        return self._render(merge_options(self.options, options))

    def _render(self, options: SerializationOptions) -> str:
        self._require_header()
        if self.trailer is None:
            raise IncompleteContainerError(f"'{self.header_tag}' container has no '{self.trailer_tag}' trailer.",
                                           segment_tag=self.header_tag)
        pieces = [self.header._render(options)]
        pieces.extend(segment._render(options) for segment in self.segments)
        pieces.extend(child._render(options) for child in self._children())
        pieces.append(self.trailer._render(options))
        separator = options.end_of_line if options.format else ""
        return separator.join(pieces)

    def _require_header(self) -> None:
        if self.header is None:
            raise IncompleteContainerError(f"'{self.header_tag}' header must be set first.", segment_tag=self.header_tag)

    def rebuild_trailer(self) -> None:
        self.trailer = CdmSegment(tag=self.trailer_tag)
        control_number = self.header.value_of(self.control_number_position, "")
        self.trailer.set_elements([str(self.trailer_count()), control_number])
        logger.debug(f"Rebuilt {self.trailer_tag} trailer: count={self.trailer_count()}, control number={control_number}")

    def _sync_trailer_count(self) -> None:
        # Leniently parsed trailers may be short (e.g. a bare "SE").
        if self.trailer is None or len(self.trailer.elements) < 2:
            self.rebuild_trailer()
            return
        self.trailer.replace_element(str(self.trailer_count()), 1)

    def _notation_values(self, segment: CdmSegment) -> List[str]:
        return [element.to_string(self.options) for element in segment.elements]

    def _notation_segments(self) -> List[NotationSegment]:
        notation_segments = []
        for segment in self.segments:
            if segment.tag in HEADER_TAGS or segment.tag in TRAILER_TAGS:
                logger.warning(f"Control segment '{segment.tag}' (line {segment.line_number}) kept loose in "
                               f"'{self.header_tag}' has no place in notation; segment skipped.")
                continue
            notation_segments.append(NotationSegment(tag=segment.tag, elements=self._notation_values(segment)))
        return notation_segments


class CdmTransaction(CdmContainer):
    header_tag: ClassVar[str] = ControlSegment.ST.value
    trailer_tag: ClassVar[str] = ControlSegment.SE.value
    control_number_position: ClassVar[int] = 2

    def trailer_count(self) -> int:
        # SE01 counts every segment of the set, ST and SE included.
        return len(self.segments) + 2

    def get_segment(self, tag: str) -> Optional[CdmSegment]:
        return next((segment for segment in self.segments if segment.tag == tag), None)

    def get_segments(self, tag: str) -> List[CdmSegment]:
        return [segment for segment in self.segments if segment.tag == tag]

    def to_json(self) -> NotationTransaction:
        self._require_header()
        return NotationTransaction(header=self._notation_values(self.header), segments=self._notation_segments())


class CdmFunctionalGroup(CdmContainer):
    header_tag: ClassVar[str] = ControlSegment.GS.value
    trailer_tag: ClassVar[str] = ControlSegment.GE.value
    control_number_position: ClassVar[int] = 6

    transactions: List[CdmTransaction] = Field(default_factory=list)

    def _children(self) -> List[CdmContainer]:
        return self.transactions

    def add_transaction(self) -> CdmTransaction:
        """Adds an empty transaction set; call set_header on it before adding segments."""
        self._require_header()
        transaction = CdmTransaction(options=self.options)
        self.transactions.append(transaction)
        self._sync_trailer_count()
        return transaction

    def to_json(self) -> NotationFunctionalGroup:
        self._require_header()
        group = NotationFunctionalGroup(header=self._notation_values(self.header), segments=self._notation_segments())
        group.transactions.extend(transaction.to_json() for transaction in self.transactions)
        return group


class CdmInterchange(CdmContainer):
    header_tag: ClassVar[str] = ControlSegment.ISA.value
    trailer_tag: ClassVar[str] = ControlSegment.IEA.value
    control_number_position: ClassVar[int] = 13

    functional_groups: List[CdmFunctionalGroup] = Field(default_factory=list)
    warnings: List[CdmParseWarning] = Field(default_factory=list)

    def _children(self) -> List[CdmContainer]:
        return self.functional_groups

    def add_functional_group(self) -> CdmFunctionalGroup:
        """Adds an empty functional group; call set_header on it before adding transactions."""
        self._require_header()
        group = CdmFunctionalGroup(options=self.options)
        self.functional_groups.append(group)
        self._sync_trailer_count()
        return group

    def to_string(self, options: OptionsOverride = None) -> str:
        effective = merge_options(self.options, options)
        return self._render(effective) + effective.final_line_break

    def to_json(self) -> NotationInterchange:
        self._require_header()
        interchange = NotationInterchange(options=self.options, header=self._notation_values(self.header),
                                          segments=self._notation_segments())
        interchange.functional_groups.extend(group.to_json() for group in self.functional_groups)
        return interchange


class CdmDocument(BaseModel):
    """Every interchange found in one EDI text, in source order."""
    interchanges: List[CdmInterchange] = Field(default_factory=list)
    options: SerializationOptions = Field(default_factory=SerializationOptions)
    warnings: List[CdmParseWarning] = Field(default_factory=list)

    def to_string(self, options: OptionsOverride = None) -> str:
        """
        Each interchange keeps its own delimiters unless the override replaces
        them, and is followed by its own end of line when formatted. Only the
        last interchange writes its final line break.
        """
        pieces = []
        for index, interchange in enumerate(self.interchanges):
            effective = merge_options(interchange.options, options)
            piece = interchange._render(effective)
            if index == len(self.interchanges) - 1:
                piece += effective.final_line_break
            elif effective.format:
                piece += effective.end_of_line
            pieces.append(piece)
        return "".join(pieces)

    def to_json(self) -> List[NotationInterchange]:
        return [interchange.to_json() for interchange in self.interchanges]
