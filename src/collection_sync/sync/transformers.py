"""Convert loosely typed source values into destination field values.

Every transformer returns a TransformationResult. ``value`` is always set: on
null input it is the type's default with ``success=True``, on failure it is
the type's default with ``success=False`` and a message in ``error``.
Exceptions never escape a transformer.
"""

import functools
import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from email.utils import parsedate_to_datetime
from html import escape
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

from collection_sync.sync.field_types import DEFAULT_VALUES, FieldType, default_for

logger = logging.getLogger(__name__)

TRUTHY_STRINGS = frozenset({"true", "yes", "y", "1", "sim", "s", "verdadeiro"})
FALSY_STRINGS = frozenset({"false", "no", "n", "0", "não", "nao", "falso"})

NAMED_COLORS: Mapping[str, str] = {
    "preto": "#000000",
    "branco": "#FFFFFF",
    "vermelho": "#FF0000",
    "verde": "#00FF00",
    "azul": "#0000FF",
    "amarelo": "#FFFF00",
    "roxo": "#800080",
    "rosa": "#FFC0CB",
    "laranja": "#FFA500",
    "cinza": "#808080",
    "black": "#000000",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "green": "#00FF00",
    "blue": "#0000FF",
    "yellow": "#FFFF00",
    "purple": "#800080",
    "pink": "#FFC0CB",
    "orange": "#FFA500",
    "gray": "#808080",
}

HEX_COLOR_RE = re.compile(r"^#([0-9A-F]{3}){1,2}\Z", re.IGNORECASE)
RGB_COLOR_RE = re.compile(r"^rgb\(\s*[0-9]+\s*,\s*[0-9]+\s*,\s*[0-9]+\s*\)\Z", re.IGNORECASE)
_URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
# Decimal notation only: no "1_000", no non-ASCII digits, no "inf" or "nan"
_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class TransformationResult:
    success: bool
    value: Any
    error: str | None = None


Transformer = Callable[..., TransformationResult]


def _ok(value: Any) -> TransformationResult:
    return TransformationResult(True, value)


def _fail(field_type: FieldType, defaults: Mapping, message: str) -> TransformationResult:
    return TransformationResult(False, default_for(field_type, defaults), message)


def transformer(field_type: FieldType) -> Callable[[Transformer], Transformer]:
    """Wrap a transform function with the shared null and exception handling."""

    def decorate(func: Transformer) -> Transformer:
        @functools.wraps(func)
        def wrapper(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
            if value is None:
                return _ok(default_for(field_type, defaults))
            try:
                return func(value, defaults)
            except Exception as exc:
                logger.debug("Conversion to %s raised %r", field_type.value, exc)
                return _fail(
                    field_type, defaults,
                    f"Error converting to {field_type.value}: {exc}",
                )

        wrapper.field_type = field_type
        return wrapper

    return decorate


# -- helpers --


def is_valid_url(candidate: str) -> bool:
    """True for absolute URLs with a scheme and a network location."""
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    parsed = urlparse(candidate)
    if not parsed.scheme or not _URL_SCHEME_RE.match(parsed.scheme) or not parsed.netloc:
        return False
    try:
        parsed.port
    except ValueError:
        return False
    return bool(parsed.hostname)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_nan(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_nan()
    return isinstance(value, float) and math.isnan(value)


def _is_finite(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    return not isinstance(value, float) or math.isfinite(value)


def _finite_or_fail(number: float, original: Any, defaults: Mapping) -> TransformationResult:
    if math.isfinite(number):
        return _ok(number)
    return _fail(FieldType.NUMBER, defaults, f"Value {original} is out of range for a number")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _epoch_millis(value: date) -> int:
    return int(_to_datetime(value).timestamp() * 1000)


def _parse_date_string(text: str) -> datetime | None:
    candidate = text.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(candidate))
    except ValueError:
        pass
    try:
        return _as_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def _to_text(value: Any) -> str:
    """Text form of a scalar or container, using JSON spelling for bools and containers."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def _reference_id(item: Any) -> str:
    if isinstance(item, dict):
        if "id" in item:
            return _to_text(item["id"])
        if "_id" in item:
            return _to_text(item["_id"])
    return _to_text(item)


def _looks_like_json_array(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("[") and stripped.endswith("]")


# -- transformers --


@transformer(FieldType.STRING)
def transform_string(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, (datetime, date)):
        return _ok(value.isoformat())
    if isinstance(value, bytes):
        return _ok(value.decode("utf-8", errors="replace"))
    return _ok(_to_text(value))


@transformer(FieldType.NUMBER)
def transform_number(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, bool):
        return _ok(1 if value else 0)

    if _is_number(value):
        if _is_nan(value):
            return _fail(FieldType.NUMBER, defaults, "Value is NaN")
        if not _is_finite(value):
            return _fail(FieldType.NUMBER, defaults, f"Value {value} is not a finite number")
        if isinstance(value, Decimal):
            number = _finite_or_fail(float(value), value, defaults)
            if number.success and value == value.to_integral_value():
                return _ok(int(value))
            return number
        return _ok(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return _fail(FieldType.NUMBER, defaults, "Empty string cannot be converted to a number")
        if not _NUMBER_RE.fullmatch(text):
            return _fail(FieldType.NUMBER, defaults, f'String "{value}" is not a valid number')
        if _INTEGER_RE.fullmatch(text):
            return _ok(int(text))
        return _finite_or_fail(float(text), value, defaults)

    if isinstance(value, (datetime, date)):
        return _ok(_epoch_millis(value))

    return _fail(
        FieldType.NUMBER, defaults,
        f"Type {type(value).__name__} cannot be converted to a number",
    )


@transformer(FieldType.BOOLEAN)
def transform_boolean(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, bool):
        return _ok(value)

    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUTHY_STRINGS:
            return _ok(True)
        if lowered in FALSY_STRINGS:
            return _ok(False)
        return _fail(FieldType.BOOLEAN, defaults, f'String "{value}" cannot be converted to a boolean')

    if _is_number(value):
        return _ok(value != 0)

    return _fail(
        FieldType.BOOLEAN, defaults,
        f"Type {type(value).__name__} cannot be converted to a boolean",
    )


@transformer(FieldType.DATE)
def transform_date(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, (datetime, date)):
        return _ok(_to_datetime(value).isoformat())

    if isinstance(value, str):
        if not value.strip():
            return _fail(FieldType.DATE, defaults, "Empty string cannot be converted to a date")
        parsed = _parse_date_string(value)
        if parsed is None:
            return _fail(FieldType.DATE, defaults, f"Could not convert to a date: {value}")
        return _ok(parsed.isoformat())

    if _is_number(value):
        if _is_nan(value):
            return _fail(FieldType.DATE, defaults, "Invalid numeric timestamp")
        try:
            parsed = datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return _fail(FieldType.DATE, defaults, f"Invalid numeric timestamp: {value}")
        return _ok(parsed.isoformat())

    return _fail(
        FieldType.DATE, defaults,
        f"Type {type(value).__name__} cannot be converted to a date",
    )


@transformer(FieldType.COLOR)
def transform_color(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if not isinstance(value, str):
        return transform_color(str(value), defaults)

    if HEX_COLOR_RE.fullmatch(value) or RGB_COLOR_RE.fullmatch(value):
        return _ok(value)

    named = NAMED_COLORS.get(value.strip().lower())
    if named:
        return _ok(named)

    return _fail(FieldType.COLOR, defaults, f"Unrecognised color format: {value}")


@transformer(FieldType.FORMATTED_TEXT)
def transform_formatted_text(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if not isinstance(value, str):
        as_string = transform_string(value, defaults)
        if not as_string.success:
            return _fail(FieldType.FORMATTED_TEXT, defaults, as_string.error or "")
        return transform_formatted_text(as_string.value, defaults)

    if not value.strip():
        return _ok("")

    # Already HTML
    if value.strip().startswith("<") and ">" in value:
        return _ok(value)

    html = "".join(
        f"<p>{escape(line, quote=False)}</p>" if line.strip() else "<br/>"
        for line in value.split("\n")
    )
    return _ok(html)


def _transform_asset(field_type: FieldType, value: Any, defaults: Mapping) -> TransformationResult:
    if isinstance(value, dict) and "url" in value:
        return _ok(value)

    if isinstance(value, str):
        if is_valid_url(value):
            return _ok({"url": value})
        return _fail(field_type, defaults, f"String is not a valid URL: {value}")

    return _fail(
        field_type, defaults,
        f"Unsupported value type for {field_type.value}: {type(value).__name__}",
    )


@transformer(FieldType.IMAGE)
def transform_image(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    return _transform_asset(FieldType.IMAGE, value, defaults)


@transformer(FieldType.FILE)
def transform_file(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    return _transform_asset(FieldType.FILE, value, defaults)


@transformer(FieldType.LINK)
def transform_link(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, dict):
        if "url" in value:
            return _ok(str(value["url"]))
        if "href" in value:
            return _ok(str(value["href"]))

    if isinstance(value, str):
        if not value.strip():
            return _ok("")
        candidate = value if "://" in value else f"https://{value}"
        if is_valid_url(candidate):
            return _ok(candidate)
        # Links may hold free text
        return _ok(value)

    return _ok(_to_text(value))


@transformer(FieldType.ENUM)
def transform_enum(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    return _ok(value if isinstance(value, str) else _to_text(value))


@transformer(FieldType.COLLECTION_REFERENCE)
def transform_collection_reference(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    return _ok(_reference_id(value))


@transformer(FieldType.MULTI_COLLECTION_REFERENCE)
def transform_multi_collection_reference(
    value: Any, defaults: Mapping = DEFAULT_VALUES
) -> TransformationResult:
    if isinstance(value, (list, tuple)):
        return _ok([_reference_id(item) for item in value])

    if isinstance(value, str) and _looks_like_json_array(value):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return transform_multi_collection_reference(parsed, defaults)

    return _ok([_reference_id(value)])


@transformer(FieldType.OBJECT)
def transform_object(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, (dict, list)):
        return _ok(value)
    if isinstance(value, tuple):
        return _ok(list(value))

    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return _ok({"value": value})
        if isinstance(parsed, (dict, list)):
            return _ok(parsed)
        return _ok({"value": parsed})

    return _ok({"value": value})


@transformer(FieldType.ARRAY)
def transform_array(value: Any, defaults: Mapping = DEFAULT_VALUES) -> TransformationResult:
    if isinstance(value, list):
        return _ok(value)
    if isinstance(value, tuple):
        return _ok(list(value))

    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return _ok([value])
        return _ok(parsed if isinstance(parsed, list) else [parsed])

    return _ok([value])


TRANSFORMERS: Mapping[FieldType, Transformer] = {
    FieldType.STRING: transform_string,
    FieldType.NUMBER: transform_number,
    FieldType.BOOLEAN: transform_boolean,
    FieldType.DATE: transform_date,
    FieldType.COLOR: transform_color,
    FieldType.FORMATTED_TEXT: transform_formatted_text,
    FieldType.IMAGE: transform_image,
    FieldType.FILE: transform_file,
    FieldType.LINK: transform_link,
    FieldType.ENUM: transform_enum,
    FieldType.COLLECTION_REFERENCE: transform_collection_reference,
    FieldType.MULTI_COLLECTION_REFERENCE: transform_multi_collection_reference,
    FieldType.OBJECT: transform_object,
    FieldType.ARRAY: transform_array,
}
