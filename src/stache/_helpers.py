"""Built-in template helper implementations.

This module provides the helpers every engine registers at construction.
Each helper is implemented as a frozen dataclass with a __call__ method for
clean testability.

Note: Parameters are typed as `object` because templates may pass values of
any type at runtime, and may omit trailing arguments. Each helper validates
its input types and returns a safe default value for invalid inputs; math
helpers return 0 rather than raising.
"""

import math
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType

import pendulum

from ._context import is_empty, stringify
from ._registry import FunctionRegistry, HelperFunction

DEFAULT_DATE_PATTERN = "YYYY-MM-DD"


def _number(value: object) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


def _integer(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _to_pendulum(value: object) -> pendulum.DateTime | pendulum.Date | None:
    """Coerce a date-like value to a pendulum value, or None."""
    if isinstance(value, datetime):
        return pendulum.instance(value)
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = pendulum.parse(value.strip())
    except ValueError:
        return None
    if isinstance(parsed, pendulum.DateTime | pendulum.Date):
        return parsed
    return None


def _items(value: object) -> list[object] | None:
    if isinstance(value, str | bytes) or not isinstance(value, Sequence | Set):
        return None
    return list(value)


# =============================================================================
# String Helpers
# =============================================================================


@dataclass(frozen=True, slots=True)
class UppercaseFunction:
    """Convert text to uppercase.

    Template usage: {{@uppercase(name)}}
    """

    def __call__(self, value: object = None) -> str:
        return stringify(value).upper()


@dataclass(frozen=True, slots=True)
class LowercaseFunction:
    """Convert text to lowercase.

    Template usage: {{@lowercase(name)}}
    """

    def __call__(self, value: object = None) -> str:
        return stringify(value).lower()


@dataclass(frozen=True, slots=True)
class CapitalizeFunction:
    """Uppercase the first character and lowercase the rest.

    Template usage: {{@capitalize(name)}}
    """

    def __call__(self, value: object = None) -> str:
        text = stringify(value)
        if not text:
            return ""
        return text[0].upper() + text[1:].lower()


@dataclass(frozen=True, slots=True)
class TruncateFunction:
    """Shorten text to a maximum length, appending a suffix when cut.

    Template usage: {{@truncate(description, 20)}}
    """

    def __call__(
        self,
        value: object = None,
        length: object = None,
        suffix: object = "...",
    ) -> str:
        """Truncate text.

        Args:
            value: Text to truncate.
            length: Maximum number of characters kept before the suffix.
            suffix: Appended only when the text was cut.

        Returns:
            The text unchanged when ``length`` is not an integer or the text
            already fits, an empty string for a non-positive length, and the
            cut text plus suffix otherwise.
        """
        text = stringify(value)
        limit = _integer(length)
        if limit is None:
            return text
        if limit <= 0:
            return ""
        if len(text) <= limit:
            return text
        return text[:limit] + stringify(suffix)


@dataclass(frozen=True, slots=True)
class TrimFunction:
    """Remove leading and trailing whitespace.

    Template usage: {{@trim(input)}}
    """

    def __call__(self, value: object = None) -> str:
        return stringify(value).strip()


@dataclass(frozen=True, slots=True)
class TextFunction:
    """Concatenate the text of every argument.

    Template usage: {{@text(first, ' ', last)}}
    """

    def __call__(self, *parts: object) -> str:
        return "".join(stringify(part) for part in parts)


# =============================================================================
# Date Helpers
# =============================================================================


@dataclass(frozen=True, slots=True)
class FormatDateFunction:
    """Format a date with a pendulum format pattern.

    Template usage: {{@formatDate(created, 'MMM D, YYYY')}}

    Accepts datetime and date values (including pendulum's) and ISO 8601
    strings.
    """

    def __call__(self, value: object = None, pattern: object = DEFAULT_DATE_PATTERN) -> str:
        moment = _to_pendulum(value)
        if moment is None:
            return ""
        fmt = pattern if isinstance(pattern, str) and pattern else DEFAULT_DATE_PATTERN
        return moment.format(fmt)


@dataclass(frozen=True, slots=True)
class NowFunction:
    """Get the current local date and time.

    Template usage: {{@formatDate(@now(), 'YYYY')}}
    """

    def __call__(self) -> pendulum.DateTime:
        return pendulum.now()


@dataclass(frozen=True, slots=True)
class AddDaysFunction:
    """Shift a date by a number of days.

    Template usage: {{@formatDate(@addDays(due, 7))}}
    """

    def __call__(
        self, value: object = None, days: object = 0
    ) -> pendulum.DateTime | pendulum.Date | None:
        moment = _to_pendulum(value)
        if moment is None:
            return None
        return moment.add(days=_integer(days) or 0)


# =============================================================================
# Math Helpers
# =============================================================================


@dataclass(frozen=True, slots=True)
class AddFunction:
    """Add two numbers.

    Template usage: {{@add(a, b)}}
    """

    def __call__(self, a: object = None, b: object = None) -> int | float:
        x, y = _number(a), _number(b)
        if x is None or y is None:
            return 0
        return x + y


@dataclass(frozen=True, slots=True)
class SubtractFunction:
    """Subtract the second number from the first.

    Template usage: {{@subtract(a, b)}}
    """

    def __call__(self, a: object = None, b: object = None) -> int | float:
        x, y = _number(a), _number(b)
        if x is None or y is None:
            return 0
        return x - y


@dataclass(frozen=True, slots=True)
class MultiplyFunction:
    """Multiply two numbers.

    Template usage: {{@multiply(price, quantity)}}
    """

    def __call__(self, a: object = None, b: object = None) -> int | float:
        x, y = _number(a), _number(b)
        if x is None or y is None:
            return 0
        return x * y


@dataclass(frozen=True, slots=True)
class DivideFunction:
    """Divide the first number by the second.

    Template usage: {{@divide(total, count)}}

    Division by zero yields 0.
    """

    def __call__(self, a: object = None, b: object = None) -> int | float:
        x, y = _number(a), _number(b)
        if x is None or y is None or y == 0:
            return 0
        return x / y


@dataclass(frozen=True, slots=True)
class RoundFunction:
    """Round a number, halves away from zero.

    Template usage: {{@round(score, 2)}}
    """

    def __call__(self, value: object = None, digits: object = 0) -> int | float:
        number = _number(value)
        if number is None:
            return 0
        if not math.isfinite(number):
            return number
        places = _integer(digits) or 0
        try:
            rounded = Decimal(str(number)).quantize(
                Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
            )
        except InvalidOperation:
            return number
        if places <= 0:
            return int(rounded)
        return float(rounded)


@dataclass(frozen=True, slots=True)
class AbsFunction:
    """Get the absolute value of a number.

    Template usage: {{@abs(delta)}}
    """

    def __call__(self, value: object = None) -> int | float:
        number = _number(value)
        if number is None:
            return 0
        return abs(number)


# =============================================================================
# Collection Helpers
# =============================================================================


@dataclass(frozen=True, slots=True)
class LengthFunction:
    """Get the length of a string, sequence, set or mapping.

    Template usage: {{@length(items)}}
    """

    def __call__(self, value: object = None) -> int:
        if isinstance(value, str | Sequence | Set | Mapping):
            return len(value)
        return 0


@dataclass(frozen=True, slots=True)
class JoinFunction:
    """Join a sequence's items into text.

    Template usage: {{@join(tags, ', ')}}

    A non-sequence value is returned as its text.
    """

    def __call__(self, value: object = None, separator: object = ",") -> str:
        items = _items(value)
        if items is None:
            return stringify(value)
        sep = "," if separator is None else stringify(separator)
        return sep.join(stringify(item) for item in items)


@dataclass(frozen=True, slots=True)
class FirstFunction:
    """Get the first element of a sequence or character of a string.

    Template usage: {{@first(items)}}
    """

    def __call__(self, value: object = None) -> object:
        if isinstance(value, str | Sequence) and len(value) > 0:
            return value[0]
        return None


@dataclass(frozen=True, slots=True)
class LastFunction:
    """Get the last element of a sequence or character of a string.

    Template usage: {{@last(items)}}
    """

    def __call__(self, value: object = None) -> object:
        if isinstance(value, str | Sequence) and len(value) > 0:
            return value[-1]
        return None


# =============================================================================
# Utility Helpers
# =============================================================================


@dataclass(frozen=True, slots=True)
class DefaultFunction:
    """Substitute a fallback for an empty value.

    Template usage: {{@default(nickname, 'anonymous')}}
    """

    def __call__(self, value: object = None, fallback: object = None) -> object:
        return fallback if is_empty(value) else value


@dataclass(frozen=True, slots=True)
class IsEmptyFunction:
    """Check whether a value is None or has zero length.

    Template usage: {{@isEmpty(items)}}
    """

    def __call__(self, value: object = None) -> bool:
        return is_empty(value)


@dataclass(frozen=True, slots=True)
class IsNotEmptyFunction:
    """Check whether a value is present and non-empty.

    Template usage: {{@isNotEmpty(items)}}
    """

    def __call__(self, value: object = None) -> bool:
        return not is_empty(value)


BUILTIN_HELPERS: Mapping[str, HelperFunction] = MappingProxyType(
    {
        "uppercase": UppercaseFunction(),
        "lowercase": LowercaseFunction(),
        "capitalize": CapitalizeFunction(),
        "truncate": TruncateFunction(),
        "trim": TrimFunction(),
        "text": TextFunction(),
        "formatDate": FormatDateFunction(),
        "now": NowFunction(),
        "addDays": AddDaysFunction(),
        "add": AddFunction(),
        "subtract": SubtractFunction(),
        "multiply": MultiplyFunction(),
        "divide": DivideFunction(),
        "round": RoundFunction(),
        "abs": AbsFunction(),
        "length": LengthFunction(),
        "join": JoinFunction(),
        "first": FirstFunction(),
        "last": LastFunction(),
        "default": DefaultFunction(),
        "isEmpty": IsEmptyFunction(),
        "isNotEmpty": IsNotEmptyFunction(),
    }
)
"""Built-in helpers by template-facing name."""


def register_builtin_helpers(registry: FunctionRegistry) -> None:
    """Register every built-in helper with ``registry``."""
    for name, fn in BUILTIN_HELPERS.items():
        registry.register_builtin(name, fn)
