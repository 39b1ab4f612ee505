"""
Tests for the Value record.

These tests verify:
1. Type tags are inferred or declared once and content is coerced
2. Unconvertible content is rejected at construction
3. Typed accessors return sentinels instead of raising
4. Equality considers content only
5. Binary metadata (checksum, encoder) is derived, not stored
"""

import gc
import math
import pytest
from datetime import date, datetime, time

from structlog.testing import capture_logs

from odml.errors import ValueConversionError
from odml.property import Property
from odml.value import Value, ValueType


# =============================================================================
# TYPE TAGS
# =============================================================================

class TestValueType:
    """Test type tag lookup, inference and coercion."""

    def test_from_tag_ignores_case_and_blanks(self):
        assert ValueType.from_tag(" Float ") is ValueType.FLOAT
        assert ValueType.from_tag("PERSON") is ValueType.PERSON

    def test_from_tag_accepts_member(self):
        assert ValueType.from_tag(ValueType.DATE) is ValueType.DATE

    def test_unknown_tag_rejected(self):
        with pytest.raises(ValueConversionError, match="unknown odML type"):
            ValueType.from_tag("quaternion")

    @pytest.mark.parametrize("content, expected", [
        ("electrode", ValueType.TEXT),
        (42, ValueType.INT),
        (2.5, ValueType.FLOAT),
        (True, ValueType.BOOLEAN),
        (date(2024, 3, 1), ValueType.DATE),
        (time(12, 30), ValueType.TIME),
        (datetime(2024, 3, 1, 12, 30), ValueType.DATETIME),
        (b"\x00\x01", ValueType.BINARY),
    ])
    def test_infer(self, content, expected):
        assert ValueType.infer(content) is expected

    def test_infer_empty_content_is_undeclared(self):
        assert ValueType.infer(None) is None
        assert ValueType.infer("   ") is None

    def test_coerce_int_from_text(self):
        assert ValueType.INT.coerce(" 17 ") == 17

    def test_coerce_int_rejects_fraction(self):
        with pytest.raises(ValueConversionError):
            ValueType.INT.coerce(1.5)

    def test_coerce_int_rejects_boolean(self):
        with pytest.raises(ValueConversionError):
            ValueType.INT.coerce(True)

    def test_coerce_boolean_literals(self):
        assert ValueType.BOOLEAN.coerce("Yes") is True
        assert ValueType.BOOLEAN.coerce("0") is False
        with pytest.raises(ValueConversionError):
            ValueType.BOOLEAN.coerce("maybe")

    def test_coerce_date_from_iso_text(self):
        assert ValueType.DATE.coerce("2024-03-01") == date(2024, 3, 1)

    def test_coerce_date_from_datetime(self):
        assert ValueType.DATE.coerce(datetime(2024, 3, 1, 8, 0)) == date(2024, 3, 1)

    def test_coerce_time_rejects_garbage(self):
        with pytest.raises(ValueConversionError, match="ISO 8601"):
            ValueType.TIME.coerce("noon")


# =============================================================================
# CONSTRUCTION
# =============================================================================

class TestValueConstruction:
    """Test that the type is fixed and content coerced at construction."""

    def test_declared_type_coerces_content(self):
        value = Value("42", type="int")
        assert value.content == 42
        assert value.type is ValueType.INT

    def test_inferred_type(self):
        value = Value(3.3, unit="mV")
        assert value.type is ValueType.FLOAT
        assert value.type_tag == "float"
        assert value.unit == "mV"

    def test_unconvertible_content_rejected(self):
        with pytest.raises(ValueConversionError):
            Value("abc", type="int")

    def test_blank_content_keeps_declared_type(self):
        value = Value("", type="int")
        assert value.type is ValueType.INT
        assert value.content == ""
        assert value.is_empty()

    def test_blank_content_without_type_is_undeclared(self):
        value = Value("")
        assert value.type is None
        assert value.type_tag == ""

    def test_content_setter_coerces(self):
        value = Value(1)
        value.content = "5"
        assert value.content == 5

    def test_content_setter_rejects_unconvertible(self):
        value = Value(1)
        with pytest.raises(ValueConversionError):
            value.content = "five"
        assert value.content == 1


# =============================================================================
# TYPE CHANGES
# =============================================================================

class TestValueTypeChange:
    """Test that changing the type re-coerces or leaves the value alone."""

    def test_type_change_recoerces(self):
        value = Value("5")
        value.type = "int"
        assert value.type is ValueType.INT
        assert value.content == 5

    def test_failed_type_change_is_logged_and_ignored(self):
        value = Value("abc")
        with capture_logs() as logs:
            value.type = "int"
        assert value.type is ValueType.TEXT
        assert value.content == "abc"
        assert any(log["event"] == "Value type not changed" for log in logs)

    def test_clearing_type(self):
        value = Value("abc")
        value.type = None
        assert value.type is None


# =============================================================================
# ACCESSORS AND EQUALITY
# =============================================================================

class TestValueAccessors:
    """Test typed accessors and content-only equality."""

    def test_as_number(self):
        assert Value("3.25").as_number() == 3.25
        assert Value(4).as_number() == 4.0

    def test_as_number_failure_returns_nan(self):
        with capture_logs() as logs:
            result = Value("not a number").as_number()
        assert math.isnan(result)
        assert logs[0]["log_level"] == "error"

    def test_as_number_out_of_float_range_returns_nan(self):
        assert math.isnan(Value(10**400).as_number())

    def test_coerce_float_rejects_huge_int(self):
        with pytest.raises(ValueConversionError, match="out of float range"):
            ValueType.FLOAT.coerce(10**400)

    def test_as_text_of_date(self):
        assert Value(date(2024, 3, 1)).as_text() == "2024-03-01"

    def test_as_date_and_time(self):
        value = Value(datetime(2024, 3, 1, 9, 15))
        assert value.as_date() == date(2024, 3, 1)
        assert value.as_time() == time(9, 15)

    def test_as_date_failure_returns_none(self):
        assert Value("yesterday").as_date() is None

    def test_equality_ignores_side_fields(self):
        assert Value(1, unit="mV", definition="a") == Value(1, unit="s", reference="r")
        assert Value(1) != Value(2)

    def test_is_empty(self):
        assert Value(None).is_empty()
        assert Value("   ").is_empty()
        assert not Value(0).is_empty()
        assert not Value("x").is_empty()


# =============================================================================
# BINARY METADATA
# =============================================================================

class TestBinaryValues:
    """Test derived checksum and encoder."""

    def test_checksum_of_binary(self):
        value = Value(b"hello", type="binary", filename="hello.bin")
        assert value.checksum == "crc32$3610a686"
        assert value.encoder == "base64"
        assert value.filename == "hello.bin"

    def test_non_binary_has_no_checksum(self):
        value = Value("hello")
        assert value.checksum is None
        assert value.encoder == ""


# =============================================================================
# OWNERSHIP
# =============================================================================

class TestValueOwnership:
    """Test the weak link from a value to its property."""

    def test_associated_property(self):
        prop = Property("voltage", 1.5)
        value = prop.get_whole_value(0)
        assert value.associated_property is prop

    def test_link_does_not_keep_property_alive(self):
        prop = Property("voltage", 1.5)
        value = prop.get_whole_value(0)
        del prop
        gc.collect()
        assert value.associated_property is None

    def test_copy_is_detached(self):
        prop = Property("voltage", 1.5, unit="V", uncertainty=0.1)
        duplicate = prop.get_whole_value(0).copy()
        assert duplicate.associated_property is None
        assert duplicate == prop.get_whole_value(0)
        assert duplicate.unit == "V"
        assert duplicate.uncertainty == 0.1
