"""Check that transformer output matches each field type's described semantics.

This is a test-time harness: it never changes what the sync path does. The
descriptions come from ``TYPE_DESCRIPTIONS``, the same table the type picker
shows, so the two cannot drift apart.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable

from collection_sync.sync.dispatcher import TransformationDispatcher, default_dispatcher
from collection_sync.sync.field_types import TYPE_DESCRIPTIONS, FieldType
from collection_sync.sync.transformers import HEX_COLOR_RE, RGB_COLOR_RE, TransformationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsistencyResult:
    valid: bool
    details: dict


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def _is_color(value: Any) -> bool:
    return isinstance(value, str) and bool(HEX_COLOR_RE.fullmatch(value) or RGB_COLOR_RE.fullmatch(value))


def _is_asset(value: Any) -> bool:
    return value is None or (isinstance(value, dict) and isinstance(value.get("url"), str))


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


SHAPE_CHECKS: dict[FieldType, Callable[[Any], bool]] = {
    FieldType.STRING: lambda v: isinstance(v, str),
    FieldType.NUMBER: _is_number,
    FieldType.BOOLEAN: lambda v: isinstance(v, bool),
    FieldType.DATE: _is_iso_date,
    FieldType.COLOR: _is_color,
    FieldType.FORMATTED_TEXT: lambda v: isinstance(v, str),
    FieldType.IMAGE: _is_asset,
    FieldType.FILE: _is_asset,
    FieldType.LINK: lambda v: isinstance(v, str),
    FieldType.ENUM: lambda v: isinstance(v, str),
    FieldType.COLLECTION_REFERENCE: lambda v: v is None or isinstance(v, str),
    FieldType.MULTI_COLLECTION_REFERENCE: lambda v: isinstance(v, list) and all(isinstance(i, str) for i in v),
    FieldType.OBJECT: lambda v: isinstance(v, (dict, list)),
    FieldType.ARRAY: lambda v: isinstance(v, list),
}

# Valid, invalid, boundary and null inputs per type
REPRESENTATIVE_SAMPLES: dict[FieldType, list[Any]] = {
    FieldType.STRING: ["Hello", 123, True, None, datetime(2023, 1, 1, tzinfo=timezone.utc), {"a": 1}, ""],
    FieldType.NUMBER: [
        "123", "123.45", 123, 123.45, "abc", "", "  ", True, False,
        float("nan"), "Infinity", "1_000", None,
    ],
    FieldType.BOOLEAN: ["true", "false", True, False, 0, 1, "sim", "não", "maybe", [], None],
    FieldType.DATE: [
        "2023-01-01", "2023-01-01T12:00:00Z", datetime(2023, 1, 1, 12, 0), date(2023, 1, 1),
        1672531200000, "invalid", "", None,
    ],
    FieldType.COLOR: ["#fff", "#ff0000", "rgb(255, 0, 0)", "vermelho", "red", "invalid", 123, None],
    FieldType.FORMATTED_TEXT: ["<b>Bold text</b>", "Plain text", "line 1\n\nline 2", "", 123, None],
    FieldType.IMAGE: ["https://example.com/image.jpg", {"url": "https://example.com/a.png"}, "/image.jpg", 123, None],
    FieldType.FILE: ["https://example.com/file.pdf", {"url": "https://example.com/b.pdf"}, "/file.pdf", 123, None],
    FieldType.LINK: ["https://example.com", "example.com", "not a link", {"href": "https://x.org"}, 123, "", None],
    FieldType.ENUM: ["option1", 123, False, None],
    FieldType.COLLECTION_REFERENCE: ["ref123", 123, {"id": 7}, {"_id": "abc"}, None],
    FieldType.MULTI_COLLECTION_REFERENCE: [["ref1", "ref2"], [{"id": 1}, {"id": 2}], '["a", "b"]', "ref1", 123, None],
    FieldType.OBJECT: [{"key": "value"}, '{"key": "value"}', "not json", 123, None],
    FieldType.ARRAY: [[1, 2, 3], "[1, 2, 3]", "x", 123, None],
}


def _dump(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def describe_expected_behavior(field_type: FieldType, value: Any) -> str:
    description = TYPE_DESCRIPTIONS.get(field_type, "Unknown type")
    if value is None:
        return f"Null input becomes the default for {field_type.value} ({description})"
    return f"Value is converted as described: {description}"


def describe_actual_behavior(value: Any, result: TransformationResult) -> str:
    if not result.success:
        return f"Conversion failed: {result.error}. Default used: {_dump(result.value)}"
    if value is None:
        return f"Null input became {_dump(result.value)}"
    return f"{_dump(value)} converted to {_dump(result.value)}"


def is_consistent_with_description(
    field_type: FieldType,
    result: TransformationResult,
    dispatcher: TransformationDispatcher = default_dispatcher,
) -> bool:
    """A failed result must carry exactly the default; a successful one the right shape."""
    if not result.success:
        return bool(result.error) and result.value == dispatcher.defaults[field_type]
    check = SHAPE_CHECKS.get(field_type)
    return check is not None and check(result.value)


def validate(
    field_type: FieldType,
    value: Any,
    dispatcher: TransformationDispatcher = default_dispatcher,
) -> ConsistencyResult:
    result = dispatcher.dispatch(value, field_type)
    consistent = is_consistent_with_description(field_type, result, dispatcher)
    return ConsistencyResult(
        valid=consistent,
        details={
            "type": field_type.value,
            "description": TYPE_DESCRIPTIONS.get(field_type, "Unknown type"),
            "input": value,
            "transformed_value": result.value,
            "expected_behavior": describe_expected_behavior(field_type, value),
            "actual_behavior": describe_actual_behavior(value, result),
            "is_consistent": consistent,
            "error": result.error,
        },
    )


def validate_all(
    samples: dict[FieldType, list[Any]] = REPRESENTATIVE_SAMPLES,
    dispatcher: TransformationDispatcher = default_dispatcher,
) -> tuple[bool, list[ConsistencyResult]]:
    """Run every sample through ``validate``. Returns (all_valid, results)."""
    results = [
        validate(field_type, value, dispatcher)
        for field_type, values in samples.items()
        for value in values
    ]
    all_valid = all(r.valid for r in results)
    if not all_valid:
        failing = sorted({r.details["type"] for r in results if not r.valid})
        logger.warning("Inconsistent transformations for types: %s", ", ".join(failing))
    return all_valid, results


def generate_report(
    samples: dict[FieldType, list[Any]] = REPRESENTATIVE_SAMPLES,
    dispatcher: TransformationDispatcher = default_dispatcher,
) -> tuple[bool, str]:
    """Markdown report of ``validate_all``, grouped by field type."""
    all_valid, results = validate_all(samples, dispatcher)
    lines = [
        "# Transformation consistency report",
        "",
        f"Overall: {'all checks passed' if all_valid else 'some checks failed'}",
        "",
    ]

    by_type: dict[str, list[ConsistencyResult]] = {}
    for result in results:
        by_type.setdefault(result.details["type"], []).append(result)

    for type_name, type_results in by_type.items():
        failed = [r for r in type_results if not r.valid]
        lines.append(f"## {type_name}: {'FAIL' if failed else 'OK'}")
        lines.append("")
        lines.append(f"Description: {type_results[0].details['description']}")
        lines.append("")
        for r in failed:
            lines.append(f"- Input: `{_dump(r.details['input'])}`")
            lines.append(f"  - Expected: {r.details['expected_behavior']}")
            lines.append(f"  - Actual: {r.details['actual_behavior']}")
        if failed:
            lines.append("")

    return all_valid, "\n".join(lines)
