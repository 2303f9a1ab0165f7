"""Tests for built-in template helpers."""

from datetime import UTC, date, datetime

import pendulum
import pytest

from stache import BUILTIN_HELPERS, FunctionRegistry, register_builtin_helpers
from stache._helpers import (
    AbsFunction,
    AddDaysFunction,
    AddFunction,
    CapitalizeFunction,
    DefaultFunction,
    DivideFunction,
    FirstFunction,
    FormatDateFunction,
    IsEmptyFunction,
    IsNotEmptyFunction,
    JoinFunction,
    LastFunction,
    LengthFunction,
    LowercaseFunction,
    MultiplyFunction,
    NowFunction,
    RoundFunction,
    SubtractFunction,
    TextFunction,
    TrimFunction,
    TruncateFunction,
    UppercaseFunction,
)


class TestRegistration:
    def test_all_builtins_registered(self) -> None:
        registry = FunctionRegistry()
        register_builtin_helpers(registry)
        expected = {
            "uppercase", "lowercase", "capitalize", "truncate", "trim", "text",
            "formatDate", "now", "addDays",
            "add", "subtract", "multiply", "divide", "round", "abs",
            "length", "join", "first", "last",
            "default", "isEmpty", "isNotEmpty",
        }  # fmt: skip
        assert set(registry.sync_names()) == expected
        assert set(BUILTIN_HELPERS) == expected
        assert all(registry.is_builtin(name) for name in expected)


class TestStringHelpers:
    def test_uppercase(self) -> None:
        func = UppercaseFunction()
        assert func("hello") == "HELLO"
        assert func(None) == ""
        assert func() == ""
        assert func(12) == "12"

    def test_lowercase(self) -> None:
        assert LowercaseFunction()("HeLLo") == "hello"

    def test_capitalize(self) -> None:
        func = CapitalizeFunction()
        assert func("hELLO wORLD") == "Hello world"
        assert func("") == ""
        assert func(None) == ""

    def test_truncate(self) -> None:
        func = TruncateFunction()
        assert func("Hello, world", 5) == "Hello..."
        assert func("Hello", 5) == "Hello"
        assert func("Hello", 10) == "Hello"
        assert func("Hello", 0) == ""
        assert func("Hello", -3) == ""
        assert func("Hello, world", 5, "~") == "Hello~"

    def test_truncate_without_integer_length_returns_text(self) -> None:
        func = TruncateFunction()
        assert func("Hello") == "Hello"
        assert func("Hello", "3") == "Hello"
        assert func("Hello", True) == "Hello"

    def test_trim(self) -> None:
        assert TrimFunction()("  padded \n") == "padded"

    def test_text_concatenates(self) -> None:
        func = TextFunction()
        assert func("a", 1, None, "b") == "a1b"
        assert func() == ""


class TestDateHelpers:
    def test_format_datetime(self) -> None:
        func = FormatDateFunction()
        moment = datetime(2024, 3, 9, 14, 5, tzinfo=UTC)
        assert func(moment) == "2024-03-09"
        assert func(moment, "DD/MM/YYYY HH:mm") == "09/03/2024 14:05"

    def test_format_date(self) -> None:
        assert FormatDateFunction()(date(2024, 1, 2), "MMM D, YYYY") == "Jan 2, 2024"

    def test_format_iso_string(self) -> None:
        assert FormatDateFunction()("2024-06-15T10:30:00") == "2024-06-15"

    def test_format_pendulum_value(self) -> None:
        func = FormatDateFunction()
        assert func(pendulum.datetime(2023, 12, 31), "YYYY") == "2023"

    @pytest.mark.parametrize("value", [None, "", "not a date", 12, ["2024-01-01"]])
    def test_unparseable_input_gives_empty_string(self, value: object) -> None:
        assert FormatDateFunction()(value) == ""

    def test_empty_pattern_uses_default(self) -> None:
        assert FormatDateFunction()(date(2024, 1, 2), "") == "2024-01-02"

    def test_now_is_current(self) -> None:
        before = pendulum.now()
        result = NowFunction()()
        after = pendulum.now()
        assert before <= result <= after

    def test_add_days_to_datetime(self) -> None:
        result = AddDaysFunction()(datetime(2024, 2, 28, tzinfo=UTC), 2)
        assert isinstance(result, pendulum.DateTime)
        assert result.format("YYYY-MM-DD") == "2024-03-01"

    def test_add_days_to_date(self) -> None:
        result = AddDaysFunction()(date(2024, 12, 31), 1)
        assert result == pendulum.date(2025, 1, 1)

    def test_add_negative_days_to_string(self) -> None:
        result = AddDaysFunction()("2024-01-10", -9)
        assert result is not None
        assert result.format("YYYY-MM-DD") == "2024-01-01"

    def test_add_days_unparseable_gives_none(self) -> None:
        assert AddDaysFunction()("garbage", 1) is None
        assert AddDaysFunction()(None, 1) is None


class TestMathHelpers:
    def test_arithmetic(self) -> None:
        assert AddFunction()(2, 3) == 5
        assert SubtractFunction()(2, 3.5) == -1.5
        assert MultiplyFunction()(4, 2.5) == 10.0
        assert DivideFunction()(7, 2) == 3.5

    def test_division_by_zero_is_zero(self) -> None:
        assert DivideFunction()(5, 0) == 0
        assert DivideFunction()(5, 0.0) == 0

    @pytest.mark.parametrize("func", [AddFunction(), SubtractFunction(), MultiplyFunction(), DivideFunction()])
    @pytest.mark.parametrize(("a", "b"), [("1", 2), (1, None), (True, 1), (None, None)])
    def test_non_numeric_operands_give_zero(self, func: AddFunction, a: object, b: object) -> None:
        assert func(a, b) == 0

    def test_missing_operands_give_zero(self) -> None:
        assert AddFunction()(1) == 0
        assert AddFunction()() == 0

    @pytest.mark.parametrize(
        ("value", "digits", "expected"),
        [
            (2.5, 0, 3),
            (-2.5, 0, -3),
            (3.4, 0, 3),
            (7, 0, 7),
            (2.675, 2, 2.68),
            (-1.005, 2, -1.01),
            (1234.5, -2, 1200),
        ],
    )
    def test_round_half_away_from_zero(self, value: float, digits: int, expected: float) -> None:
        assert RoundFunction()(value, digits) == expected

    def test_round_without_digits_returns_int(self) -> None:
        result = RoundFunction()(2.5)
        assert result == 3
        assert isinstance(result, int)

    def test_round_non_numeric(self) -> None:
        assert RoundFunction()("2.5") == 0
        assert RoundFunction()(float("inf")) == float("inf")

    def test_abs(self) -> None:
        assert AbsFunction()(-4) == 4
        assert AbsFunction()(-1.5) == 1.5
        assert AbsFunction()("x") == 0


class TestCollectionHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("abc", 3), ([1, 2], 2), ((1,), 1), ({"a": 1}, 1), ({1, 2, 3}, 3), (None, 0), (5, 0)],
    )
    def test_length(self, value: object, expected: int) -> None:
        assert LengthFunction()(value) == expected

    def test_join(self) -> None:
        func = JoinFunction()
        assert func(["a", "b", "c"]) == "a,b,c"
        assert func(["a", None, 1], " | ") == "a |  | 1"
        assert func(("x",), None) == "x"
        assert func("abc", "-") == "abc"
        assert func(None) == ""

    def test_first_and_last(self) -> None:
        assert FirstFunction()([1, 2, 3]) == 1
        assert LastFunction()([1, 2, 3]) == 3
        assert FirstFunction()("xyz") == "x"
        assert LastFunction()("xyz") == "z"
        assert FirstFunction()([]) is None
        assert LastFunction()("") is None
        assert FirstFunction()(None) is None


class TestUtilityHelpers:
    @pytest.mark.parametrize("value", [None, "", [], {}, (), set()])
    def test_empty_values(self, value: object) -> None:
        assert IsEmptyFunction()(value) is True
        assert IsNotEmptyFunction()(value) is False
        assert DefaultFunction()(value, "fallback") == "fallback"

    @pytest.mark.parametrize("value", [0, False, "x", [None], {"a": 1}])
    def test_non_empty_values(self, value: object) -> None:
        assert IsEmptyFunction()(value) is False
        assert IsNotEmptyFunction()(value) is True
        assert DefaultFunction()(value, "fallback") == value

    def test_is_empty_without_argument(self) -> None:
        assert IsEmptyFunction()() is True
