"""Tests for the per-type value transformers."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from collection_sync.sync.field_types import DEFAULT_VALUES, FieldType
from collection_sync.sync.transformers import (
    TRANSFORMERS,
    is_valid_url,
    transform_array,
    transform_boolean,
    transform_collection_reference,
    transform_color,
    transform_date,
    transform_enum,
    transform_file,
    transform_formatted_text,
    transform_image,
    transform_link,
    transform_multi_collection_reference,
    transform_number,
    transform_object,
    transform_string,
    transformer,
)


def test_every_field_type_has_a_transformer():
    assert set(TRANSFORMERS) == set(FieldType)


@pytest.mark.parametrize("field_type", list(FieldType))
def test_null_gives_default(field_type):
    result = TRANSFORMERS[field_type](None)
    assert result.success
    assert result.value == DEFAULT_VALUES[field_type]
    assert result.error is None


def test_mutable_defaults_are_copies():
    first = transform_multi_collection_reference(None)
    first.value.append("x")
    assert transform_multi_collection_reference(None).value == []
    assert DEFAULT_VALUES[FieldType.MULTI_COLLECTION_REFERENCE] == []


def test_injected_defaults():
    defaults = dict(DEFAULT_VALUES)
    defaults[FieldType.NUMBER] = -1
    assert transform_number(None, defaults).value == -1
    assert transform_number("abc", defaults).value == -1


def test_exception_becomes_failure():
    @transformer(FieldType.NUMBER)
    def explode(value, defaults=DEFAULT_VALUES):
        raise RuntimeError("boom")

    result = explode(5)
    assert not result.success
    assert result.value == 0
    assert "boom" in result.error
    assert explode.field_type == FieldType.NUMBER


class TestString:
    def test_scalars(self):
        assert transform_string("Hello").value == "Hello"
        assert transform_string(123).value == "123"
        assert transform_string(True).value == "true"
        assert transform_string(False).value == "false"

    def test_datetime_is_iso(self):
        value = datetime(2023, 1, 1, tzinfo=timezone.utc)
        assert transform_string(value).value == "2023-01-01T00:00:00+00:00"

    def test_structures_are_json(self):
        assert transform_string({"a": 1}).value == '{"a": 1}'
        assert transform_string([1, 2]).value == "[1, 2]"


class TestNumber:
    def test_numeric_strings(self):
        assert transform_number("123").value == 123
        assert transform_number("123.45").value == 123.45
        assert transform_number(" 7 ").value == 7

    def test_numbers_pass_through(self):
        assert transform_number(42).value == 42
        assert transform_number(1.5).value == 1.5

    def test_decimal(self):
        assert transform_number(Decimal("3")).value == 3
        assert transform_number(Decimal("2.50")).value == 2.5

    def test_bool_is_zero_or_one(self):
        assert transform_number(True).value == 1
        assert transform_number(False).value == 0

    @pytest.mark.parametrize("value", ["abc", "", "   ", "nan", float("nan"), [1], {"a": 1}])
    def test_failures(self, value):
        result = transform_number(value)
        assert not result.success
        assert result.value == 0
        assert result.error

    @pytest.mark.parametrize(
        "value",
        [float("inf"), float("-inf"), Decimal("Infinity"), Decimal("-Infinity"), Decimal("1e400")],
    )
    def test_non_finite_numbers_fail(self, value):
        result = transform_number(value)
        assert not result.success
        assert result.value == 0
        assert "finite" in result.error or "range" in result.error

    @pytest.mark.parametrize("value", ["inf", "Infinity", "-infinity", "+Infinity", "1e999", "-1e400"])
    def test_non_finite_strings_fail(self, value):
        result = transform_number(value)
        assert not result.success
        assert result.value == 0

    @pytest.mark.parametrize("value", ["1_000", "\u0661\u0662\u0663", "0x1F", "1,5", "1e", ".", "--1"])
    def test_non_decimal_syntax_fails(self, value):
        result = transform_number(value)
        assert not result.success
        assert result.value == 0

    @pytest.mark.parametrize(
        "text, expected",
        [(" 1e3 ", 1000.0), (".5", 0.5), ("+7", 7), ("-12", -12), ("5.", 5.0), ("2.5E-1", 0.25)],
    )
    def test_decimal_notation(self, text, expected):
        result = transform_number(text)
        assert result.success
        assert result.value == expected

    def test_date_becomes_epoch_millis(self):
        assert transform_number(date(2023, 1, 1)).value == 1672531200000


class TestBoolean:
    @pytest.mark.parametrize("value", ["true", "TRUE", "yes", "1", "sim", "s", "verdadeiro", True, 1, 2.5])
    def test_truthy(self, value):
        result = transform_boolean(value)
        assert result.success
        assert result.value is True

    @pytest.mark.parametrize("value", ["false", "no", "0", "não", "nao", "falso", False, 0])
    def test_falsy(self, value):
        result = transform_boolean(value)
        assert result.success
        assert result.value is False

    @pytest.mark.parametrize("value", ["maybe", "", [], {}])
    def test_failures(self, value):
        result = transform_boolean(value)
        assert not result.success
        assert result.value is False


class TestDate:
    def test_iso_date(self):
        assert transform_date("2023-01-01").value == "2023-01-01T00:00:00+00:00"

    def test_iso_with_z(self):
        assert transform_date("2023-01-01T12:00:00Z").value == "2023-01-01T12:00:00+00:00"

    def test_rfc_2822(self):
        assert transform_date("Mon, 02 Jan 2023 10:00:00 +0000").value == "2023-01-02T10:00:00+00:00"

    def test_naive_datetime_is_utc(self):
        assert transform_date(datetime(2023, 1, 1, 12, 0)).value == "2023-01-01T12:00:00+00:00"

    def test_date_object(self):
        assert transform_date(date(2023, 1, 1)).value == "2023-01-01T00:00:00+00:00"

    def test_epoch_millis(self):
        assert transform_date(1672531200000).value == "2023-01-01T00:00:00+00:00"

    @pytest.mark.parametrize("value", ["invalid", "", "   ", [], 1e30])
    def test_failures(self, value):
        result = transform_date(value)
        assert not result.success
        assert result.value is None
        assert result.error


class TestColor:
    @pytest.mark.parametrize("value", ["#FF0000", "#fff", "#a1b2c3", "rgb(255, 0, 0)"])
    def test_valid_formats_kept(self, value):
        assert transform_color(value).value == value

    def test_named_colors(self):
        assert transform_color("red").value == "#FF0000"
        assert transform_color("Vermelho").value == "#FF0000"
        assert transform_color("cinza").value == "#808080"

    @pytest.mark.parametrize("value", ["notacolor", "#12", 123])
    def test_failures(self, value):
        result = transform_color(value)
        assert not result.success
        assert result.value == "#000000"

    @pytest.mark.parametrize("value", ["#FF0000\n", "rgb(1, 2, 3)\n"])
    def test_trailing_newline_rejected(self, value):
        result = transform_color(value)
        assert not result.success
        assert result.value == "#000000"
        assert result.error


class TestFormattedText:
    def test_plain_text_wrapped(self):
        assert transform_formatted_text("Plain text").value == "<p>Plain text</p>"

    def test_blank_lines_become_breaks(self):
        assert transform_formatted_text("line 1\n\nline 2").value == "<p>line 1</p><br/><p>line 2</p>"

    def test_html_passes_through(self):
        assert transform_formatted_text("<b>Bold</b>").value == "<b>Bold</b>"

    def test_plain_text_is_escaped(self):
        assert transform_formatted_text("a < b & c").value == "<p>a &lt; b &amp; c</p>"

    def test_empty(self):
        assert transform_formatted_text("").value == ""

    def test_non_string(self):
        assert transform_formatted_text(123).value == "<p>123</p>"


class TestAssets:
    @pytest.mark.parametrize("func", [transform_image, transform_file])
    def test_url_is_wrapped(self, func):
        assert func("https://example.com/a.jpg").value == {"url": "https://example.com/a.jpg"}

    @pytest.mark.parametrize("func", [transform_image, transform_file])
    def test_dict_with_url_passes_through(self, func):
        value = {"url": "https://example.com/a.pdf", "alt": "A"}
        assert func(value).value == value

    @pytest.mark.parametrize("func", [transform_image, transform_file])
    @pytest.mark.parametrize("value", ["/image.jpg", "not a url", 123, ["https://example.com/a.jpg"]])
    def test_failures(self, func, value):
        result = func(value)
        assert not result.success
        assert result.value is None


class TestLink:
    def test_scheme_added(self):
        assert transform_link("example.com").value == "https://example.com"

    def test_full_url_kept(self):
        assert transform_link("http://example.com/x?y=1").value == "http://example.com/x?y=1"

    def test_free_text_kept(self):
        assert transform_link("not a link").value == "not a link"

    def test_dict_forms(self):
        assert transform_link({"url": "https://a.org"}).value == "https://a.org"
        assert transform_link({"href": "https://b.org"}).value == "https://b.org"

    def test_other_values_stringified(self):
        assert transform_link(123).value == "123"
        assert transform_link(True).value == "true"


def test_enum():
    assert transform_enum("draft").value == "draft"
    assert transform_enum(3).value == "3"
    assert transform_enum(False).value == "false"
    assert transform_enum({"a": 1}).value == '{"a": 1}'


class TestReferences:
    def test_single(self):
        assert transform_collection_reference("ref123").value == "ref123"
        assert transform_collection_reference(123).value == "123"
        assert transform_collection_reference({"id": 7}).value == "7"
        assert transform_collection_reference({"_id": "abc"}).value == "abc"
        assert transform_collection_reference(True).value == "true"
        assert transform_collection_reference({"id": {"k": 1}}).value == '{"k": 1}'

    def test_multi_from_dicts(self):
        assert transform_multi_collection_reference([{"id": 1}, {"id": 2}]).value == ["1", "2"]

    def test_multi_from_json_string(self):
        assert transform_multi_collection_reference('["a", "b"]').value == ["a", "b"]

    def test_multi_from_scalar(self):
        assert transform_multi_collection_reference("ref1").value == ["ref1"]


class TestStructures:
    def test_object(self):
        assert transform_object({"k": "v"}).value == {"k": "v"}
        assert transform_object('{"k": "v"}').value == {"k": "v"}
        assert transform_object("not json").value == {"value": "not json"}
        assert transform_object(5).value == {"value": 5}

    def test_array(self):
        assert transform_array([1, 2]).value == [1, 2]
        assert transform_array((1, 2)).value == [1, 2]
        assert transform_array("[1, 2, 3]").value == [1, 2, 3]
        assert transform_array("x").value == ["x"]
        assert transform_array(5).value == [5]


@pytest.mark.parametrize(
    "candidate, expected",
    [
        ("https://example.com", True),
        ("ftp://files.example.com/a.pdf", True),
        ("https://example.com:8080/x", True),
        ("example.com", False),
        ("/relative/path", False),
        ("https://exa mple.com", False),
        ("https://example.com:99999", False),
        ("", False),
    ],
)
def test_is_valid_url(candidate, expected):
    assert is_valid_url(candidate) is expected
