# Delimiter-free mirror of the X12 tree, safe to move through JSON.
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from edi_options import SerializationOptions


class NotationSegment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tag: str = Field(min_length=1)
    elements: List[str] = Field(default_factory=list)


class NotationTransaction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    header: List[str]
    segments: List[NotationSegment] = Field(default_factory=list)

    def add_segment(self, tag: str, elements: List[str]) -> NotationSegment:
        segment = NotationSegment(tag=tag, elements=elements)
        self.segments.append(segment)
        return segment


class NotationFunctionalGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    header: List[str]
    segments: List[NotationSegment] = Field(default_factory=list)
    transactions: List[NotationTransaction] = Field(default_factory=list)

    def add_transaction(self, header: List[str]) -> NotationTransaction:
        transaction = NotationTransaction(header=header)
        self.transactions.append(transaction)
        return transaction


class NotationInterchange(BaseModel):
    """
    Generic notation for one interchange.

    Trailers are not stored: they are recomputed from the headers and the
    number of children when the notation is turned back into a tree.
    """
    model_config = ConfigDict(extra="forbid")

    options: SerializationOptions = Field(default_factory=SerializationOptions)
    header: List[str]
    segments: List[NotationSegment] = Field(default_factory=list)
    functional_groups: List[NotationFunctionalGroup] = Field(default_factory=list)

    def add_functional_group(self, header: List[str]) -> NotationFunctionalGroup:
        group = NotationFunctionalGroup(header=header)
        self.functional_groups.append(group)
        return group
