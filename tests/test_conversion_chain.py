"""Unit tests for the value conversion chain.

Tests cover:
- Registration order and first-match selection
- Generic fallback coercion between scalar types
- Explicit failure triggers of the fallback
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

import pytest

from quickmap.core.exceptions import ConversionFailure
from quickmap.mapping.conversion import ConversionChain, FunctionConverter, coerce


class Color(Enum):
    RED = "red"
    BLUE = "blue"


class Priority(Enum):
    LOW = 1
    HIGH = 2


class Money:
    def __init__(self, cents):
        self.cents = cents


class Wallet:
    owner: str


class AnyToStr:
    def __init__(self, label):
        self.label = label

    def can_convert(self, source_type, target_type):
        return target_type is str

    def convert(self, value, target_type):
        return f"{self.label}:{value}"


class TestRegistration:
    def test_first_applicable_converter_wins(self):
        chain = ConversionChain()
        chain.register(AnyToStr("first"))
        chain.register(AnyToStr("second"))

        assert chain.convert(5, int, str) == "first:5"

    def test_non_applicable_converter_is_skipped(self):
        chain = ConversionChain()
        chain.register(FunctionConverter(int, float, lambda v: -1.0))
        chain.register(AnyToStr("any"))

        assert chain.convert(5, int, str) == "any:5"

    def test_registration_preserves_order_and_bumps_version(self):
        chain = ConversionChain()
        first = AnyToStr("a")
        second = AnyToStr("b")
        chain.register(first)
        chain.register(second)

        assert chain.converters == (first, second)
        assert chain.version == 2
        assert len(chain) == 2

    def test_register_rejects_objects_without_protocol(self):
        chain = ConversionChain()
        with pytest.raises(TypeError, match="can_convert"):
            chain.register(object())

    def test_fallback_used_when_nothing_registered(self):
        chain = ConversionChain()
        assert chain.convert(42, int, str) == "42"

    def test_resolve_binds_converter_for_pair(self):
        chain = ConversionChain()
        chain.register(FunctionConverter(Money, int, lambda m: m.cents))
        convert = chain.resolve(Money, int)

        assert convert(Money(250)) == 250

    def test_converter_errors_propagate_unwrapped(self):
        def explode(value):
            raise RuntimeError("boom")

        chain = ConversionChain()
        chain.register(FunctionConverter(int, str, explode))
        with pytest.raises(RuntimeError, match="boom"):
            chain.convert(1, int, str)


class TestGenericCoercion:
    def test_int_to_string(self):
        assert coerce(42, str) == "42"

    def test_string_to_int(self):
        assert coerce(" -17 ", int) == -17

    def test_integral_float_to_int(self):
        assert coerce(3.0, int) == 3

    def test_int_to_float(self):
        assert coerce(2, float) == 2.0

    def test_string_to_float(self):
        assert coerce("1.5e2", float) == 150.0

    def test_string_to_decimal(self):
        assert coerce("10.25", Decimal) == Decimal("10.25")

    def test_float_to_decimal_uses_shortest_repr(self):
        assert coerce(0.1, Decimal) == Decimal("0.1")

    def test_bool_strings(self):
        assert coerce("Yes", bool) is True
        assert coerce("off", bool) is False

    def test_int_to_bool(self):
        assert coerce(1, bool) is True

    def test_iso_strings_to_dates(self):
        assert coerce("2024-01-15", date) == date(2024, 1, 15)
        assert coerce("2024-01-15T10:30:00Z", datetime).hour == 10

    def test_datetime_to_date_truncates(self):
        assert coerce(datetime(2024, 1, 15, 23, 59), date) == date(2024, 1, 15)

    def test_date_to_datetime_at_midnight(self):
        assert coerce(date(2024, 1, 15), datetime) == datetime(2024, 1, 15)

    def test_dates_to_string_are_iso(self):
        assert coerce(date(2024, 1, 15), str) == "2024-01-15"

    def test_uuid_round_trip_through_text(self):
        value = "12345678-1234-5678-1234-567812345678"
        assert coerce(value, UUID) == UUID(value)
        assert coerce(UUID(value), str) == value

    def test_enum_by_value_and_name(self):
        assert coerce("red", Color) is Color.RED
        assert coerce("BLUE", Color) is Color.BLUE
        assert coerce(2, Priority) is Priority.HIGH
        assert coerce(Color.RED, str) == "red"

    def test_subclass_instance_passes_through(self):
        assert coerce(True, int) == 1


class TestCoercionFailures:
    @pytest.mark.parametrize(
        "value,target",
        [
            (3.7, int),
            (float("nan"), int),
            (float("inf"), float),
            ("1,000", int),
            ("1,5", float),
            ("nan", float),
            ("1e999", float),
            (10 ** 400, float),
            ("١٢", int),
            ("9" * 5000, int),
            (Decimal("2.5"), int),
            ("maybe", bool),
            (2, bool),
            ("2024-13-45", date),
            ("not-a-uuid", UUID),
            ("green", Color),
        ],
    )
    def test_rejected_inputs_raise_conversion_failure(self, value, target):
        with pytest.raises(ConversionFailure):
            coerce(value, target)

    def test_incompatible_types_name_both_types(self):
        with pytest.raises(ConversionFailure) as info:
            coerce(Money(1), int, source_type=Money)

        err = info.value
        assert err.source_type is Money
        assert err.target_type is int
        assert "Money" in str(err)
        assert "int" in str(err)

    def test_shape_to_shape_is_not_coerced(self):
        with pytest.raises(ConversionFailure, match="no converter registered"):
            coerce(Money(1), Wallet)

    def test_conversion_failure_is_a_type_error(self):
        with pytest.raises(TypeError):
            coerce(object(), str)
