"""Build and validate the mapping from source columns to destination fields."""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace

from collection_sync.sync.dispatcher import dispatch
from collection_sync.sync.errors import MappingValidationError
from collection_sync.sync.field_types import FieldType, parse_field_type
from collection_sync.sync.inference import infer_type
from collection_sync.sync.models import ColumnDescriptor, FieldMapping

logger = logging.getLogger(__name__)

PRIMARY_KEY_TYPES = frozenset({
    FieldType.STRING,
    FieldType.NUMBER,
    FieldType.COLLECTION_REFERENCE,
})

# Destination types that make sense for each source type. Types not listed
# here are only expected to map to string.
TYPE_COMPATIBILITY: dict[str, frozenset[FieldType]] = {
    "text": frozenset({FieldType.STRING, FieldType.FORMATTED_TEXT, FieldType.LINK, FieldType.COLOR,
                       FieldType.ENUM, FieldType.IMAGE, FieldType.FILE}),
    "varchar": frozenset({FieldType.STRING, FieldType.FORMATTED_TEXT, FieldType.LINK, FieldType.COLOR,
                          FieldType.ENUM, FieldType.IMAGE, FieldType.FILE}),
    "character": frozenset({FieldType.STRING, FieldType.FORMATTED_TEXT, FieldType.LINK, FieldType.COLOR,
                            FieldType.ENUM, FieldType.IMAGE, FieldType.FILE}),
    "char": frozenset({FieldType.STRING, FieldType.ENUM}),
    "int": frozenset({FieldType.NUMBER, FieldType.BOOLEAN, FieldType.COLLECTION_REFERENCE}),
    "smallint": frozenset({FieldType.NUMBER, FieldType.BOOLEAN}),
    "int2": frozenset({FieldType.NUMBER, FieldType.BOOLEAN}),
    "int4": frozenset({FieldType.NUMBER, FieldType.BOOLEAN, FieldType.COLLECTION_REFERENCE}),
    "int8": frozenset({FieldType.NUMBER, FieldType.BOOLEAN, FieldType.COLLECTION_REFERENCE}),
    "integer": frozenset({FieldType.NUMBER, FieldType.BOOLEAN, FieldType.COLLECTION_REFERENCE}),
    "bigint": frozenset({FieldType.NUMBER, FieldType.BOOLEAN, FieldType.COLLECTION_REFERENCE}),
    "float": frozenset({FieldType.NUMBER}),
    "float4": frozenset({FieldType.NUMBER}),
    "float8": frozenset({FieldType.NUMBER}),
    "real": frozenset({FieldType.NUMBER}),
    "double": frozenset({FieldType.NUMBER}),
    "decimal": frozenset({FieldType.NUMBER}),
    "numeric": frozenset({FieldType.NUMBER}),
    "bool": frozenset({FieldType.BOOLEAN}),
    "boolean": frozenset({FieldType.BOOLEAN}),
    "date": frozenset({FieldType.DATE}),
    "timestamp": frozenset({FieldType.DATE}),
    "timestamptz": frozenset({FieldType.DATE}),
    "datetime": frozenset({FieldType.DATE}),
    "json": frozenset({FieldType.OBJECT, FieldType.ARRAY, FieldType.MULTI_COLLECTION_REFERENCE}),
    "jsonb": frozenset({FieldType.OBJECT, FieldType.ARRAY, FieldType.MULTI_COLLECTION_REFERENCE}),
    "_text": frozenset({FieldType.ARRAY, FieldType.MULTI_COLLECTION_REFERENCE}),
    "_int4": frozenset({FieldType.ARRAY, FieldType.MULTI_COLLECTION_REFERENCE}),
    "_int8": frozenset({FieldType.ARRAY, FieldType.MULTI_COLLECTION_REFERENCE}),
    "uuid": frozenset({FieldType.STRING, FieldType.COLLECTION_REFERENCE}),
}


@dataclass
class MappingReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def build_mapping(
    columns: list[ColumnDescriptor],
    explicit: list[FieldMapping] | None = None,
) -> list[FieldMapping]:
    """Return ``explicit`` as-is when given, otherwise one inferred mapping per column."""
    if explicit:
        return [replace(m) for m in explicit]

    return [
        FieldMapping(
            source_field=column.name,
            target_field=column.name,
            type=infer_type(column),
            is_primary_key=False,
        )
        for column in columns
    ]


def with_primary_key(mappings: list[FieldMapping], source_field: str) -> list[FieldMapping]:
    """Copy of ``mappings`` with only ``source_field`` marked as primary key."""
    return [replace(m, is_primary_key=m.source_field == source_field) for m in mappings]


def primary_key_mapping(mappings: list[FieldMapping]) -> FieldMapping | None:
    for mapping in mappings:
        if mapping.is_primary_key:
            return mapping
    return None


def _base_source_type(source_type: str) -> str:
    base = source_type.lower().strip()
    if base.endswith("[]"):
        return "_" + base[:-2]
    # "varchar(255)", "timestamp with time zone"
    return base.split("(")[0].split(" ")[0]


def is_type_compatible(source_type: str, field_type: FieldType) -> bool:
    compatible = TYPE_COMPATIBILITY.get(_base_source_type(source_type))
    if compatible is None:
        return field_type == FieldType.STRING
    return field_type in compatible


def validate_mapping(
    mappings: list[FieldMapping],
    columns: list[ColumnDescriptor] | None = None,
    sample_rows: list[dict] | None = None,
) -> MappingReport:
    """Collect the errors that block a sync pass and the warnings that do not."""
    report = MappingReport()

    if not mappings:
        report.errors.append("No field mappings defined")
        return report

    target_counts = Counter(m.target_field for m in mappings)
    for name, count in target_counts.items():
        if name and count > 1:
            report.errors.append(f"Duplicate destination field name '{name}'")

    columns_by_name = {c.name: c for c in columns} if columns is not None else None

    for mapping in mappings:
        field_type = parse_field_type(mapping.type)
        if field_type is None:
            report.errors.append(f"Unknown field type '{mapping.type}' for '{mapping.source_field}'")
            continue

        if not mapping.target_field:
            report.errors.append(f"Destination field name missing for '{mapping.source_field}'")

        if columns_by_name is not None:
            column = columns_by_name.get(mapping.source_field)
            if column is None:
                report.errors.append(f"Column '{mapping.source_field}' not found in table")
                continue
            if not is_type_compatible(column.source_type, field_type):
                report.warnings.append(
                    f"Type '{field_type.value}' may not suit source type "
                    f"'{column.source_type}' of '{mapping.source_field}'"
                )

        for index, row in enumerate(sample_rows or []):
            result = dispatch(row.get(mapping.source_field), field_type)
            if not result.success:
                report.warnings.append(
                    f"Incompatible value for '{mapping.source_field}' in record {index + 1}: {result.error}"
                )

    keys = [m for m in mappings if m.is_primary_key]
    if not keys:
        report.errors.append("No primary key defined")
    elif len(keys) > 1:
        report.errors.append(
            "More than one primary key defined: " + ", ".join(m.source_field for m in keys)
        )
    for key in keys:
        if parse_field_type(key.type) not in PRIMARY_KEY_TYPES:
            report.errors.append(
                f"Primary key '{key.source_field}' must be of type string, number or collectionReference"
            )

    return report


def ensure_valid_mapping(
    mappings: list[FieldMapping],
    columns: list[ColumnDescriptor] | None = None,
) -> MappingReport:
    """Validate and raise MappingValidationError on any error."""
    report = validate_mapping(mappings, columns)
    for warning in report.warnings:
        logger.warning("Mapping warning: %s", warning)
    if not report.is_valid:
        raise MappingValidationError(report.errors)
    return report
