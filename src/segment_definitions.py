import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator

# Unknown tags are accepted as long as they look like a tag.
TAG_PATTERN = re.compile(r"[A-Za-z0-9]+")


def is_valid_tag(tag: str) -> bool:
    return bool(TAG_PATTERN.fullmatch(tag))


class ControlSegment(str, Enum):
    """Envelope segments that open or close a container."""
    ISA = "ISA"
    IEA = "IEA"
    GS = "GS"
    GE = "GE"
    ST = "ST"
    SE = "SE"


HEADER_TAGS = {ControlSegment.ISA.value, ControlSegment.GS.value, ControlSegment.ST.value}
TRAILER_TAGS = {ControlSegment.IEA.value, ControlSegment.GE.value, ControlSegment.SE.value}


class SegmentDefinition(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    min_elements: int = Field(validation_alias=AliasChoices("min_elements", "minElements"), default=0)
    max_elements: Optional[int] = Field(validation_alias=AliasChoices("max_elements", "maxElements"), default=None)
    # Fixed element widths (ISA only); values set programmatically are padded to them.
    widths: Optional[List[int]] = None
    zero_padded: List[int] = Field(validation_alias=AliasChoices("zero_padded", "zeroPadded"), default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SegmentDefinition":
        if self.max_elements is not None and self.max_elements < self.min_elements:
            raise ValueError(f"Segment '{self.id}': maxElements is lower than minElements.")
        return self

    def accepts_count(self, count: int) -> bool:
        if count < self.min_elements:
            return False
        return self.max_elements is None or count <= self.max_elements

    def pad(self, position: int, value: str) -> str:
        """Pads a value to the fixed width of the element at a 1-based position, if any."""
        if not self.widths or not 1 <= position <= len(self.widths):
            return value
        width = self.widths[position - 1]
        if position in self.zero_padded:
            return value.zfill(width)
        return value.ljust(width)


class SegmentDefinitionTable(BaseModel):
    name: str
    description: Optional[str] = None
    segmentDefinitions: Dict[str, SegmentDefinition] = Field(default_factory=dict)

    def get(self, tag: str) -> Optional[SegmentDefinition]:
        return self.segmentDefinitions.get(tag)

    def merged_with(self, other: "SegmentDefinitionTable") -> "SegmentDefinitionTable":
        """Returns a new table where the other table's definitions win on conflicts."""
        merged = {**self.segmentDefinitions, **other.segmentDefinitions}
        return SegmentDefinitionTable(name=f"{self.name}+{other.name}", description=self.description, segmentDefinitions=merged)


ISA_WIDTHS = [2, 10, 2, 10, 2, 15, 2, 15, 6, 4, 1, 5, 9, 1, 1, 1]

BUILTIN_SEGMENTS = SegmentDefinitionTable(
    name="x12-envelope",
    description="Envelope and acknowledgment segments every X12 version shares.",
    segmentDefinitions={
        "ISA": SegmentDefinition(id="ISA", name="Interchange Control Header", min_elements=16, max_elements=16,
                                 widths=ISA_WIDTHS, zero_padded=[13]),
        "IEA": SegmentDefinition(id="IEA", name="Interchange Control Trailer", min_elements=2, max_elements=2),
        "GS": SegmentDefinition(id="GS", name="Functional Group Header", min_elements=8, max_elements=8),
        "GE": SegmentDefinition(id="GE", name="Functional Group Trailer", min_elements=2, max_elements=2),
        "ST": SegmentDefinition(id="ST", name="Transaction Set Header", min_elements=2, max_elements=3),
        "SE": SegmentDefinition(id="SE", name="Transaction Set Trailer", min_elements=2, max_elements=2),
        "TA1": SegmentDefinition(id="TA1", name="Interchange Acknowledgment", min_elements=5, max_elements=5),
    },
)
