import logging
from typing import Any, Dict, Mapping, Sequence, Union

from cdm import CdmDocument, CdmInterchange
from edi_errors import NotationShapeError
from edi_notation import NotationInterchange
from edi_options import OptionsOverride, SerializationOptions
from notation_converter import from_notation

logger = logging.getLogger(__name__)

GeneratorSource = Union[CdmInterchange, CdmDocument, NotationInterchange, Mapping[str, Any], Sequence[Any]]


def _explicit_fields(options: OptionsOverride) -> Dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, SerializationOptions):
        return options.model_dump(exclude_unset=True)
    return dict(options)


class EdiGenerator:
    """
    Writes EDI text from a CdmInterchange, a CdmDocument or generic notation.

    Generation is plain text assembly: trailer counts are written exactly as
    they are stored, so an inconsistent hand-built tree is emitted as-is.
    Options given here override the source's own delimiters; options given to
    to_string() override both.
    """

    def __init__(self, source: GeneratorSource, options: OptionsOverride = None):
        self.source = self._to_tree(source)
        self.options = _explicit_fields(options)

    @classmethod
    def _to_tree(cls, source: GeneratorSource) -> Union[CdmInterchange, CdmDocument]:
        if isinstance(source, (CdmInterchange, CdmDocument)):
            return source
        if isinstance(source, (NotationInterchange, Mapping)):
            return from_notation(source)
        if isinstance(source, Sequence) and not isinstance(source, (str, bytes)):
            interchanges = []
            for item in source:
                tree = cls._to_tree(item)
                if not isinstance(tree, CdmInterchange):
                    raise NotationShapeError("A list of interchanges cannot contain nested documents.")
                interchanges.append(tree)
            if not interchanges:
                raise NotationShapeError("Cannot generate EDI from an empty list of interchanges.")
            return CdmDocument(interchanges=interchanges, options=interchanges[0].options)
        raise NotationShapeError(f"Cannot generate EDI from {type(source).__name__}.")

    def to_string(self, options: OptionsOverride = None) -> str:
        override = {**self.options, **_explicit_fields(options)}
        edi = self.source.to_string(override or None)
        logger.info(f"Generated {len(edi)} characters of EDI from {type(self.source).__name__}.")
        return edi


def generate(source: GeneratorSource, options: OptionsOverride = None) -> str:
    """Generates EDI text from a tree or generic notation in one call."""
    return EdiGenerator(source).to_string(options)
