import json
import logging
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from cdm import CdmContainer, CdmInterchange
from edi_errors import NotationShapeError, X12Error
from edi_notation import NotationInterchange, NotationSegment
from edi_options import SerializationOptions
from segment_definitions import HEADER_TAGS, TRAILER_TAGS

logger = logging.getLogger(__name__)

NotationInput = Union[NotationInterchange, Mapping[str, Any]]


def to_notation(interchange: CdmInterchange) -> NotationInterchange:
    """Mirrors a typed tree as generic notation. Composite elements are flattened to delimited strings."""
    return interchange.to_json()


def validate_notation(notation: NotationInput) -> NotationInterchange:
    """Checks the shape of notation input (a model or a JSON-decoded dict) before anything is built from it."""
    if isinstance(notation, NotationInterchange):
        return notation
    if not isinstance(notation, Mapping):
        raise NotationShapeError(f"Notation must be an object, got {type(notation).__name__}.")
    try:
        return NotationInterchange.model_validate(dict(notation))
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "<root>"
        raise NotationShapeError(f"Invalid notation at '{location}': {first['msg']} ({e.error_count()} error(s)).") from e


def from_notation(notation: NotationInput, options: Optional[SerializationOptions] = None) -> CdmInterchange:
    """
    Rebuilds a typed tree from generic notation.

    The tree is built with the same set_header/add_* calls used to build one by
    hand, so every trailer is recomputed from the ordered input instead of being
    trusted from the notation.

    Args:
        notation: A NotationInterchange or a dict of the same shape.
        options: Delimiter set for the rebuilt tree; defaults to the notation's own.

    Returns:
        The rebuilt CdmInterchange.

    Raises:
        NotationShapeError: If the notation does not have the expected shape.
    """
    notation = validate_notation(notation)
    # Composite values were flattened with the notation's delimiter, so split them with it too.
    interchange = CdmInterchange(options=notation.options)

    try:
        interchange.set_header(notation.header)
        _add_segments(interchange, notation.segments)
        for notation_group in notation.functional_groups:
            group = interchange.add_functional_group()
            group.set_header(notation_group.header)
            _add_segments(group, notation_group.segments)
            for notation_transaction in notation_group.transactions:
                transaction = group.add_transaction()
                transaction.set_header(notation_transaction.header)
                _add_segments(transaction, notation_transaction.segments)
    except X12Error as e:
        raise NotationShapeError(f"Notation cannot be rebuilt into a tree: {e.message}",
                                 segment_tag=e.segment_tag) from e

    if options is not None:
        _apply_options(interchange, options)

    logger.debug(f"Rebuilt interchange with {len(interchange.functional_groups)} functional group(s) from notation.")
    return interchange


def _add_segments(container: CdmContainer, segments: List[NotationSegment]) -> None:
    for segment in segments:
        if segment.tag in HEADER_TAGS or segment.tag in TRAILER_TAGS:
            raise NotationShapeError(f"Control segment '{segment.tag}' cannot appear in a segment list.",
                                     segment_tag=segment.tag)
        container.add_segment(segment.tag, segment.elements)


def _apply_options(interchange: CdmInterchange, options: SerializationOptions) -> None:
    interchange.options = options
    for group in interchange.functional_groups:
        group.options = options
        for transaction in group.transactions:
            transaction.options = options


def notation_to_json(notation: NotationInterchange, indent: Optional[int] = None) -> str:
    return notation.model_dump_json(indent=indent)


def notation_from_json(json_text: str) -> NotationInterchange:
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise NotationShapeError(f"Notation is not valid JSON: {e.msg}", offset=e.pos) from e
    return validate_notation(data)
