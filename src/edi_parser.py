import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from cdm import CdmContainer, CdmDocument, CdmElement, CdmFunctionalGroup, CdmInterchange, CdmSegment, CdmTransaction
from edi_errors import (
    CdmParseWarning,
    DelimiterDetectionError,
    ElementCountError,
    StructuralError,
    TrailerMismatchError,
    X12Error,
)
from edi_options import SerializationOptions
from segment_definitions import BUILTIN_SEGMENTS, ControlSegment, SegmentDefinitionTable, is_valid_tag

logger = logging.getLogger(__name__)

# Positions are fixed in the X12 standard: the ISA segment is 106 characters long
# including its terminator, with ISA16 (the sub-element delimiter) at offset 104.
ISA_LENGTH = 106
ISA_ELEMENT_COUNT = 16
SUB_ELEMENT_OFFSET = 104
TERMINATOR_OFFSET = 105
LINE_BREAKS = "\r\n"


def detect_delimiters(edi_string: str) -> SerializationOptions:
    """
    Reads the delimiter set and line-ending style from the leading ISA segment.

    Args:
        edi_string: EDI text starting with an ISA segment.

    Returns:
        SerializationOptions that reproduce the source formatting.

    Raises:
        DelimiterDetectionError: If the ISA segment is missing, too short or malformed.
    """
    if not edi_string.startswith(ControlSegment.ISA.value):
        raise DelimiterDetectionError("Document does not start with an ISA segment.", offset=0)
    if len(edi_string) < ISA_LENGTH:
        raise DelimiterDetectionError(
            f"ISA segment is too short: expected {ISA_LENGTH} characters, found {len(edi_string)}.",
            offset=0, segment_tag="ISA")

    element_delimiter = edi_string[3]
    sub_element_delimiter = edi_string[SUB_ELEMENT_OFFSET]
    segment_terminator = edi_string[TERMINATOR_OFFSET]

    isa_parts = edi_string[:TERMINATOR_OFFSET].split(element_delimiter)
    if len(isa_parts) != ISA_ELEMENT_COUNT + 1 or len(isa_parts[-1]) != 1:
        raise DelimiterDetectionError(
            f"ISA segment is malformed: expected {ISA_ELEMENT_COUNT} elements separated by '{element_delimiter}', "
            f"found {len(isa_parts) - 1}.", offset=0, segment_tag="ISA")

    # ISA11 is the repetition separator from version 00402 on; older versions put a code letter there.
    repetition = isa_parts[11]
    repetition_separator = repetition if len(repetition) == 1 and not repetition.isalnum() else None
    if repetition_separator in (element_delimiter, sub_element_delimiter, segment_terminator):
        repetition_separator = None

    following = edi_string[ISA_LENGTH:ISA_LENGTH + 2]
    if following.startswith("\r\n"):
        end_of_line = "\r\n"
    elif following[:1] in ("\n", "\r"):
        end_of_line = following[:1]
    else:
        end_of_line = ""

    try:
        options = SerializationOptions(
            element_delimiter=element_delimiter,
            sub_element_delimiter=sub_element_delimiter,
            segment_terminator=segment_terminator,
            repetition_separator=repetition_separator,
            end_of_line=end_of_line,
            format=end_of_line != "",
        )
    except ValidationError as e:
        raise DelimiterDetectionError(f"ISA segment declares an unusable delimiter set: {e.errors()[0]['msg']}",
                                      offset=0, segment_tag="ISA") from e

    logger.debug(f"Delimiters detected: Element='{element_delimiter}', Segment='{segment_terminator!r}', "
                 f"Component='{sub_element_delimiter}', Repetition='{repetition_separator}', EOL={end_of_line!r}")
    return options


class EdiParser:
    """
    Turns X12 text into CdmInterchange trees.

    In strict mode the first structural, element-count or (when enabled)
    trailer problem raises. In lenient mode every such problem is recorded as a
    CdmParseWarning and parsing continues:
      - orphan trailers and segments outside any interchange are skipped;
      - a missing trailer is synthesized from the container's current content;
      - ST outside a functional group is kept as a segment of the interchange;
      - element-count and trailer mismatches are kept as-is;
      - line breaks that differ from the one after the ISA segment are
        normalized to it.

    One line break after the last segment is kept as the final_line_break
    option of the last interchange.
    """

    def __init__(
        self,
        edi_string: str,
        strict: bool = True,
        segment_definitions: Optional[SegmentDefinitionTable] = None,
        validate_trailers: bool = False,
    ):
        self.strict = strict
        self.segment_definitions = segment_definitions or BUILTIN_SEGMENTS
        self.validate_trailers = validate_trailers
        self.warnings: List[CdmParseWarning] = []

        self._interchange: Optional[CdmInterchange] = None
        self._group: Optional[CdmFunctionalGroup] = None
        self._transaction: Optional[CdmTransaction] = None
        self._pending_warnings: List[CdmParseWarning] = []
        self._options_by_line: Dict[int, SerializationOptions] = {}

        text, self._base_offset = self._skip_leading_whitespace(edi_string)

        # 1. Detect delimiters ONCE from the leading ISA segment.
        self.options = detect_delimiters(text)

        # 2. Segmentize the string using the DETECTED delimiters.
        self.all_segments: List[CdmSegment] = self._segmentize(text)
        self._tokenizer_warnings = list(self.warnings)
        logger.debug(f"Parser initialized with {len(self.all_segments)} segments.")

    @property
    def element_delimiter(self) -> str:
        return self.options.element_delimiter

    @property
    def segment_terminator(self) -> str:
        return self.options.segment_terminator

    @property
    def component_separator(self) -> str:
        return self.options.sub_element_delimiter

    # --- Tokenization ---

    def _skip_leading_whitespace(self, edi_string: str):
        stripped = edi_string.lstrip()
        skipped = len(edi_string) - len(stripped)
        if skipped and not self.strict:
            self._report(StructuralError(f"Skipped {skipped} whitespace characters before the ISA segment.", offset=0))
            return stripped, skipped
        return edi_string, 0

    def _segmentize(self, text: str) -> List[CdmSegment]:
        segments: List[CdmSegment] = []
        options = self.options
        cursor = 0

        while cursor < len(text):
            start = cursor
            while start < len(text) and text[start] in LINE_BREAKS and text[start] != options.segment_terminator:
                start += 1
            if not text[start:].strip():
                self._record_final_line_break(text[cursor:], segments, cursor)
                break
            if segments:
                self._check_line_break(text[cursor:start], options, segments[-1], cursor)

            # Every interchange carries its own delimiters.
            if segments and text.startswith(ControlSegment.ISA.value, start):
                try:
                    options = detect_delimiters(text[start:])
                except DelimiterDetectionError as e:
                    self._report(DelimiterDetectionError(e.message, line_number=len(segments) + 1,
                                                         offset=self._base_offset + start, segment_tag="ISA"))
            if not segments:
                self._options_by_line[1] = options
            elif text.startswith(ControlSegment.ISA.value, start):
                self._options_by_line[len(segments) + 1] = options

            end = text.find(options.segment_terminator, start)
            if end == -1:
                self._report(StructuralError("Trailing data is not closed by the segment terminator.",
                                             line_number=len(segments) + 1, offset=self._base_offset + start))
                end = len(text)
            cursor = end + 1

            body = text[start:end]
            if not body:
                self._report(StructuralError("Empty segment.", line_number=len(segments) + 1,
                                             offset=self._base_offset + start))
                continue

            segment = self._tokenize_segment(body, options, len(segments) + 1, self._base_offset + start)
            if segment is not None:
                segments.append(segment)
        return segments

    def _check_line_break(self, line_break: str, options: SerializationOptions, previous: CdmSegment, cursor: int) -> None:
        # Every segment of an interchange, its IEA included, must be followed by the break seen after its ISA.
        if line_break == options.end_of_line:
            return
        self._report(StructuralError(
            f"Line break {line_break!r} after segment '{previous.tag}' differs from the {options.end_of_line!r} "
            f"that follows the ISA segment; it will be written as {options.end_of_line!r}.",
            line_number=previous.line_number, offset=self._base_offset + cursor, segment_tag=previous.tag))

    def _record_final_line_break(self, remainder: str, segments: List[CdmSegment], cursor: int) -> None:
        """Keeps a single line break after the last segment on the options of the last interchange."""
        if not remainder:
            return
        last_isa_line = max(self._options_by_line, default=None)
        if last_isa_line is not None:
            owner = self._options_by_line[last_isa_line]
            try:
                self._options_by_line[last_isa_line] = SerializationOptions.model_validate(
                    {**owner.model_dump(), "final_line_break": remainder})
                logger.debug(f"Final line break after the last segment: {remainder!r}")
                return
            except ValidationError:
                pass

        previous = segments[-1] if segments else None
        self._report(StructuralError(
            f"Unexpected trailing whitespace {remainder!r} after the last segment; it will not be written.",
            line_number=previous.line_number if previous else None, offset=self._base_offset + cursor,
            segment_tag=previous.tag if previous else None))

    def _tokenize_segment(self, body: str, options: SerializationOptions, line_number: int, offset: int) -> Optional[CdmSegment]:
        parts = body.split(options.element_delimiter)
        tag = parts[0]
        if not is_valid_tag(tag):
            self._report(StructuralError(f"Invalid segment tag in '{body}'.", line_number=line_number, offset=offset))
            return None

        # ISA16 is the sub-element delimiter itself, so ISA elements are never split.
        sub_element_delimiter = None if tag == ControlSegment.ISA.value else options.sub_element_delimiter
        elements = [CdmElement.from_string(value, sub_element_delimiter) for value in parts[1:]]
        return CdmSegment(tag=tag, elements=elements, line_number=line_number, offset=offset)

    # --- Structural assembly ---

    def parse(self) -> CdmInterchange:
        """Parses the text and returns its first interchange."""
        document = self.parse_all()
        if len(document.interchanges) > 1:
            logger.info(f"Document holds {len(document.interchanges)} interchanges; returning the first.")
        return document.interchanges[0]

    def parse_all(self) -> CdmDocument:
        """Parses the text into a CdmDocument holding every interchange it contains."""
        self.warnings = list(self._tokenizer_warnings)
        self._pending_warnings = list(self._tokenizer_warnings)
        self._interchange = self._group = self._transaction = None
        document = CdmDocument(options=self.options)

        handlers = {
            ControlSegment.ISA.value: lambda s: self._open_interchange(s, document),
            ControlSegment.GS.value: self._open_group,
            ControlSegment.ST.value: self._open_transaction,
            ControlSegment.SE.value: self._close_transaction,
            ControlSegment.GE.value: self._close_group,
            ControlSegment.IEA.value: self._close_interchange,
        }

        for segment in self.all_segments:
            logger.debug(f"[SEGMENT {segment.line_number}/{len(self.all_segments)}] Processing '{segment.tag}'")
            self._check_element_count(segment)
            handlers.get(segment.tag, self._add_body_segment)(segment)

        self._force_close_interchange("the end of the document", None)

        if not document.interchanges:
            raise StructuralError("No ISA/IEA interchange found in the document.")
        if self._pending_warnings:
            document.interchanges[-1].warnings.extend(self._pending_warnings)
            self._pending_warnings = []
        document.warnings = list(self.warnings)

        if document.warnings:
            logger.warning("--- EDI PARSE SUMMARY: WARNINGS FOUND ---")
            logger.warning(f"Total Warnings: {len(document.warnings)}")
            for warning in document.warnings:
                logger.warning(f"  - {warning.kind} (line {warning.line_number}): {warning.message}")
            logger.warning("--- END OF SUMMARY ---")
        else:
            logger.info(f"--- EDI PARSE SUMMARY: SUCCESS ({len(document.interchanges)} interchange(s), "
                        f"{len(self.all_segments)} segments) ---")
        return document

    def _open_interchange(self, segment: CdmSegment, document: CdmDocument) -> None:
        self._force_close_interchange("the next ISA", segment)
        options = self._options_by_line.get(segment.line_number, self.options)
        self._interchange = CdmInterchange(header=segment, options=options)
        self._interchange.warnings.extend(self._pending_warnings)
        self._pending_warnings = []
        document.interchanges.append(self._interchange)
        logger.debug(f"Opened interchange {segment.get_element(13)} at line {segment.line_number}.")

    def _open_group(self, segment: CdmSegment) -> None:
        if self._interchange is None:
            self._report(StructuralError("GS found outside an interchange; segment skipped.", **self._context(segment)))
            return
        self._force_close_group("the next GS", segment)
        self._group = CdmFunctionalGroup(header=segment, options=self._interchange.options)
        self._interchange.functional_groups.append(self._group)

    def _open_transaction(self, segment: CdmSegment) -> None:
        if self._group is None:
            self._report(StructuralError("ST found outside a functional group.", **self._context(segment)))
            if self._interchange is not None:
                self._interchange.segments.append(segment)
            return
        self._force_close_transaction("the next ST", segment)
        self._transaction = CdmTransaction(header=segment, options=self._group.options)
        self._group.transactions.append(self._transaction)

    def _close_transaction(self, segment: CdmSegment) -> None:
        if self._transaction is None:
            self._report(StructuralError("SE found without an open transaction set; segment skipped.",
                                         **self._context(segment)))
            return
        self._transaction.trailer = segment
        self._check_trailer(self._transaction, segment)
        self._transaction = None

    def _close_group(self, segment: CdmSegment) -> None:
        if self._group is None:
            self._report(StructuralError("GE found without an open functional group; segment skipped.",
                                         **self._context(segment)))
            return
        self._force_close_transaction("GE", segment)
        self._group.trailer = segment
        self._check_trailer(self._group, segment)
        self._group = None

    def _close_interchange(self, segment: CdmSegment) -> None:
        if self._interchange is None:
            self._report(StructuralError("IEA found without an open interchange; segment skipped.",
                                         **self._context(segment)))
            return
        self._force_close_group("IEA", segment)
        self._interchange.trailer = segment
        self._check_trailer(self._interchange, segment)
        self._interchange = None

    def _add_body_segment(self, segment: CdmSegment) -> None:
        container: Optional[CdmContainer] = self._transaction or self._group or self._interchange
        if container is None:
            self._report(StructuralError(f"Segment '{segment.tag}' found outside an interchange; segment skipped.",
                                         **self._context(segment)))
            return
        if container is not self._transaction and container._children():
            self._report(StructuralError(
                f"Segment '{segment.tag}' follows a nested container inside '{container.header_tag}' "
                f"and will be written before it.", **self._context(segment)))
        container.segments.append(segment)

    # --- Repairs for missing trailers ---

    def _force_close_transaction(self, reason: str, segment: Optional[CdmSegment]) -> None:
        if self._transaction is None:
            return
        control_number = self._transaction.header.get_element(2)
        self._report(StructuralError(f"Transaction set {control_number} has no SE trailer before {reason}.",
                                     **self._context(segment)))
        self._transaction.rebuild_trailer()
        self._transaction = None

    def _force_close_group(self, reason: str, segment: Optional[CdmSegment]) -> None:
        self._force_close_transaction(reason, segment)
        if self._group is None:
            return
        control_number = self._group.header.get_element(6)
        self._report(StructuralError(f"Functional group {control_number} has no GE trailer before {reason}.",
                                     **self._context(segment)))
        self._group.rebuild_trailer()
        self._group = None

    def _force_close_interchange(self, reason: str, segment: Optional[CdmSegment]) -> None:
        self._force_close_group(reason, segment)
        if self._interchange is None:
            return
        control_number = self._interchange.header.get_element(13)
        self._report(StructuralError(f"Interchange {control_number} has no IEA trailer before {reason}.",
                                     **self._context(segment)))
        self._interchange.rebuild_trailer()
        self._interchange = None

    # --- Checks ---

    def _check_element_count(self, segment: CdmSegment) -> None:
        definition = self.segment_definitions.get(segment.tag)
        if definition is None or definition.accepts_count(len(segment.elements)):
            return
        expected = (f"{definition.min_elements}" if definition.max_elements == definition.min_elements
                    else f"{definition.min_elements}..{definition.max_elements if definition.max_elements is not None else 'n'}")
        self._report(ElementCountError(
            f"Segment '{segment.tag}' ({definition.name}) has {len(segment.elements)} elements, expected {expected}.",
            **self._context(segment)))

    def _check_trailer(self, container: CdmContainer, trailer: CdmSegment) -> None:
        if not self.validate_trailers:
            return
        count = trailer.get_element(1)
        expected_count = container.trailer_count()
        if count is None or not count.strip().isdigit() or int(count) != expected_count:
            self._report(TrailerMismatchError(
                f"'{trailer.tag}' count is {count!r} but the container holds {expected_count}.",
                **self._context(trailer)))

        control_number = (trailer.get_element(2) or "").strip()
        expected_control_number = (container.header.get_element(container.control_number_position) or "").strip()
        if control_number != expected_control_number:
            self._report(TrailerMismatchError(
                f"'{trailer.tag}' control number {control_number!r} does not match "
                f"'{container.header_tag}' control number {expected_control_number!r}.",
                **self._context(trailer)))

    # --- Error routing ---

    def _context(self, segment: Optional[CdmSegment]) -> Dict[str, Any]:
        if segment is None:
            return {}
        return {"line_number": segment.line_number, "offset": segment.offset, "segment_tag": segment.tag}

    def _report(self, error: X12Error) -> None:
        if self.strict:
            logger.error(f"Strict parse failed: {error}")
            raise error
        warning = error.to_warning()
        logger.warning(f"[LENIENT] {error}")
        self.warnings.append(warning)
        if self._interchange is not None:
            self._interchange.warnings.append(warning)
        else:
            self._pending_warnings.append(warning)


def parse(
    edi_string: str,
    strict: bool = True,
    segment_definitions: Optional[SegmentDefinitionTable] = None,
    validate_trailers: bool = False,
) -> CdmInterchange:
    """Parses EDI text and returns its first interchange."""
    return EdiParser(edi_string, strict=strict, segment_definitions=segment_definitions,
                     validate_trailers=validate_trailers).parse()


def parse_document(
    edi_string: str,
    strict: bool = True,
    segment_definitions: Optional[SegmentDefinitionTable] = None,
    validate_trailers: bool = False,
) -> CdmDocument:
    """Parses EDI text holding one or more interchanges."""
    return EdiParser(edi_string, strict=strict, segment_definitions=segment_definitions,
                     validate_trailers=validate_trailers).parse_all()
