"""Destination field types, their default values and their descriptions."""

import copy
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    COLOR = "color"
    FORMATTED_TEXT = "formattedText"
    IMAGE = "image"
    FILE = "file"
    LINK = "link"
    ENUM = "enum"
    COLLECTION_REFERENCE = "collectionReference"
    MULTI_COLLECTION_REFERENCE = "multiCollectionReference"
    # Internal only, never offered in a type picker
    OBJECT = "object"
    ARRAY = "array"


PUBLIC_FIELD_TYPES: tuple[FieldType, ...] = tuple(
    t for t in FieldType if t not in (FieldType.OBJECT, FieldType.ARRAY)
)

# Value used for null input and for every failed conversion
DEFAULT_VALUES: Mapping[FieldType, Any] = MappingProxyType({
    FieldType.STRING: "",
    FieldType.NUMBER: 0,
    FieldType.BOOLEAN: False,
    FieldType.DATE: None,
    FieldType.COLOR: "#000000",
    FieldType.FORMATTED_TEXT: "",
    FieldType.IMAGE: None,
    FieldType.FILE: None,
    FieldType.LINK: "",
    FieldType.ENUM: "",
    FieldType.COLLECTION_REFERENCE: None,
    FieldType.MULTI_COLLECTION_REFERENCE: [],
    FieldType.OBJECT: {},
    FieldType.ARRAY: [],
})

# Shown as picker tooltips and read by the consistency validator
TYPE_DESCRIPTIONS: Mapping[FieldType, str] = MappingProxyType({
    FieldType.STRING: "Plain text without formatting. Suited to names, titles and short descriptions.",
    FieldType.NUMBER: "Integer or decimal numeric values.",
    FieldType.BOOLEAN: "True/false values for flags, states and conditions.",
    FieldType.DATE: "Dates and times, stored as ISO-8601 strings.",
    FieldType.COLOR: "Colors in hexadecimal (#RGB, #RRGGBB) or rgb(r, g, b) notation.",
    FieldType.FORMATTED_TEXT: "HTML-formatted rich text.",
    FieldType.IMAGE: "Image URLs.",
    FieldType.FILE: "Links to files such as PDFs, documents and spreadsheets.",
    FieldType.LINK: "URLs and external links.",
    FieldType.ENUM: "One option out of a predefined list, such as a category or status.",
    FieldType.COLLECTION_REFERENCE: "Reference to a single item in another collection (1:1).",
    FieldType.MULTI_COLLECTION_REFERENCE: "References to several items in another collection (1:N).",
    FieldType.OBJECT: "Structured JSON object.",
    FieldType.ARRAY: "JSON list of values.",
})


def default_for(field_type: FieldType, defaults: Mapping[FieldType, Any] = DEFAULT_VALUES) -> Any:
    """Return a fresh copy of the default so callers cannot mutate the table."""
    return copy.deepcopy(defaults.get(field_type))


def parse_field_type(value: FieldType | str) -> FieldType | None:
    """Resolve a FieldType from its member or string value, None if unknown."""
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(value)
    except (TypeError, ValueError):
        return None


def field_type_options() -> list[dict]:
    """Picker entries for the public field types, with their tooltip text."""
    return [
        {"type": t.value, "description": TYPE_DESCRIPTIONS[t]}
        for t in PUBLIC_FIELD_TYPES
    ]
