"""Route a (value, field type) pair to its transformer."""

from typing import Any, Mapping

from collection_sync.sync.field_types import DEFAULT_VALUES, FieldType, parse_field_type
from collection_sync.sync.transformers import TRANSFORMERS, TransformationResult


class TransformationDispatcher:
    """Dispatches values to transformers using one defaults table.

    Tests can pass their own ``defaults`` mapping; it must have an entry for
    every FieldType.
    """

    def __init__(self, defaults: Mapping[FieldType, Any] = DEFAULT_VALUES) -> None:
        self._defaults = defaults

    @property
    def defaults(self) -> Mapping[FieldType, Any]:
        return self._defaults

    def dispatch(self, value: Any, field_type: FieldType | str) -> TransformationResult:
        resolved = parse_field_type(field_type)
        if resolved is None:
            return TransformationResult(False, None, f"unknown field type: {field_type}")
        return TRANSFORMERS[resolved](value, self._defaults)


default_dispatcher = TransformationDispatcher()


def dispatch(value: Any, field_type: FieldType | str) -> TransformationResult:
    """Transform ``value`` into ``field_type`` using the standard defaults."""
    return default_dispatcher.dispatch(value, field_type)
