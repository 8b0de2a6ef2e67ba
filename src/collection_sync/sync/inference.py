"""Guess a destination field type from a column's name and source type.

Rules are evaluated in order and the first match wins. Name rules come before
source-type rules: a ``text`` column called ``website_url`` is a link even
though its storage type says nothing about it.
"""

from dataclasses import dataclass
from typing import Callable

from collection_sync.sync.field_types import FieldType
from collection_sync.sync.models import ColumnDescriptor


@dataclass(frozen=True)
class InferenceRule:
    """One ordered inference rule.

    ``applies`` receives the lower-cased column name and source type.
    """

    name: str
    field_type: FieldType
    applies: Callable[[str, str], bool]

    def matches(self, column: ColumnDescriptor) -> bool:
        return self.applies(column.name.lower(), (column.source_type or "").lower())


def _name_contains(*tokens: str, suffixes: tuple[str, ...] = ()) -> Callable[[str, str], bool]:
    def check(name: str, _source_type: str) -> bool:
        return any(t in name for t in tokens) or any(name.endswith(s) for s in suffixes)

    return check


def _type_contains(*tokens: str) -> Callable[[str, str], bool]:
    def check(_name: str, source_type: str) -> bool:
        return any(t in source_type for t in tokens)

    return check


NAME_RULES: tuple[InferenceRule, ...] = (
    InferenceRule(
        "color-name", FieldType.COLOR,
        _name_contains("color", "cor", suffixes=("rgb", "hex")),
    ),
    InferenceRule(
        "link-name", FieldType.LINK,
        _name_contains("url", "link", "website", "site"),
    ),
    InferenceRule(
        "image-name", FieldType.IMAGE,
        _name_contains("image", "imagem", "photo", "foto", "picture", suffixes=("img",)),
    ),
    InferenceRule(
        "file-name", FieldType.FILE,
        _name_contains("file", "arquivo", "document", "documento", suffixes=("pdf", "doc")),
    ),
    InferenceRule(
        "formatted-text-name", FieldType.FORMATTED_TEXT,
        _name_contains("html", "formatted", "rich_text", "rich_content", "texto_formatado"),
    ),
    InferenceRule(
        "reference-name", FieldType.COLLECTION_REFERENCE,
        _name_contains("reference", "referencia", "ref_", suffixes=("_ref", "_id")),
    ),
    InferenceRule(
        "multi-reference-name", FieldType.MULTI_COLLECTION_REFERENCE,
        _name_contains("references", "refs", "ids"),
    ),
)

SOURCE_TYPE_RULES: tuple[InferenceRule, ...] = (
    InferenceRule(
        "numeric-type", FieldType.NUMBER,
        _type_contains("int", "float", "decimal", "numeric", "real", "double"),
    ),
    InferenceRule("boolean-type", FieldType.BOOLEAN, _type_contains("bool")),
    InferenceRule(
        "temporal-type", FieldType.DATE,
        _type_contains("date", "time", "timestamp"),
    ),
    InferenceRule("enum-type", FieldType.ENUM, _type_contains("enum")),
)

RULES: tuple[InferenceRule, ...] = NAME_RULES + SOURCE_TYPE_RULES


def matching_rule(
    column: ColumnDescriptor, rules: tuple[InferenceRule, ...] = RULES
) -> InferenceRule | None:
    """Return the first rule that matches the column, if any."""
    for rule in rules:
        if rule.matches(column):
            return rule
    return None


def infer_type(column: ColumnDescriptor, rules: tuple[InferenceRule, ...] = RULES) -> FieldType:
    """Infer the destination type of a column. Never raises; defaults to string."""
    try:
        rule = matching_rule(column, rules)
    except (AttributeError, TypeError):
        return FieldType.STRING
    return rule.field_type if rule else FieldType.STRING
