from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# Static defaults used whenever a tree or a call does not supply its own delimiters.
DEFAULT_OPTIONS: Dict[str, Any] = {
    "element_delimiter": "*",
    "sub_element_delimiter": ">",
    "segment_terminator": "~",
    "repetition_separator": "^",
    "end_of_line": "\n",
    "format": False,
    "final_line_break": "",
}

VALID_END_OF_LINE = ("", "\n", "\r\n", "\r")


class SerializationOptions(BaseModel):
    """Delimiter set and formatting flags used to write a tree back to EDI."""
    model_config = ConfigDict(frozen=True)

    element_delimiter: str = DEFAULT_OPTIONS["element_delimiter"]
    sub_element_delimiter: str = DEFAULT_OPTIONS["sub_element_delimiter"]
    segment_terminator: str = DEFAULT_OPTIONS["segment_terminator"]
    repetition_separator: Optional[str] = DEFAULT_OPTIONS["repetition_separator"]
    end_of_line: str = DEFAULT_OPTIONS["end_of_line"]
    format: bool = DEFAULT_OPTIONS["format"]
    # Written once after the last segment, whatever format says.
    final_line_break: str = DEFAULT_OPTIONS["final_line_break"]

    @field_validator("element_delimiter", "sub_element_delimiter", "segment_terminator", "repetition_separator")
    @classmethod
    def _single_character(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if len(value) != 1:
            raise ValueError(f"Delimiter must be a single character, got {value!r}.")
        if value.isalnum():
            raise ValueError(f"Delimiter must not be alphanumeric, got {value!r}.")
        return value

    @field_validator("end_of_line", "final_line_break")
    @classmethod
    def _known_end_of_line(cls, value: str) -> str:
        if value not in VALID_END_OF_LINE:
            raise ValueError(f"Unsupported end of line {value!r}.")
        return value

    @model_validator(mode="after")
    def _distinct_delimiters(self) -> "SerializationOptions":
        delimiters = [self.element_delimiter, self.sub_element_delimiter, self.segment_terminator]
        if self.repetition_separator is not None:
            delimiters.append(self.repetition_separator)
        if len(set(delimiters)) != len(delimiters):
            raise ValueError(f"Delimiters must be distinct, got {delimiters!r}.")
        for line_break in (self.end_of_line, self.final_line_break):
            overlapping = [d for d in delimiters if d in line_break]
            if overlapping:
                raise ValueError(f"Line break {line_break!r} overlaps delimiters {overlapping!r}.")
        return self


OptionsOverride = Union[SerializationOptions, Mapping[str, Any], None]


def default_serialization_options() -> SerializationOptions:
    return SerializationOptions()


def merge_options(defaults: Optional[SerializationOptions], override: OptionsOverride = None) -> SerializationOptions:
    """
    Computes the effective options for one call.

    Only the fields the override explicitly sets replace the defaults; neither
    argument is modified and the result is validated as a whole.

    Args:
        defaults: The options owned by the tree (or None for the static defaults).
        override: A SerializationOptions instance or a mapping of field names.

    Returns:
        A new SerializationOptions instance.
    """
    base = defaults if defaults is not None else default_serialization_options()
    if override is None:
        return base
    if isinstance(override, SerializationOptions):
        changes = override.model_dump(exclude_unset=True)
    else:
        unknown = set(override) - set(SerializationOptions.model_fields)
        if unknown:
            raise ValueError(f"Unknown serialization options: {sorted(unknown)}.")
        changes = dict(override)
    if not changes:
        return base
    return SerializationOptions.model_validate({**base.model_dump(), **changes})
