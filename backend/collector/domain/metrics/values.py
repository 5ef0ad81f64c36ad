"""Parsing and canonical formatting of raw metric values.

The text and JSON ingestion paths both go through these helpers so that a
value written through one encoding reads back identically through the other.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal

from ..storage.base import INT64_MAX, INT64_MIN
from .types import BadValueError

__all__ = [
    "format_counter",
    "format_gauge",
    "parse_counter_delta",
    "parse_gauge_value",
]

_FLOAT_PATTERN = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")

# Shortest-digit %g switches to exponent notation at 1e+06 and below 1e-04.
_EXPONENT_THRESHOLD = 6
_MIN_FIXED_EXPONENT = -4


def parse_gauge_value(raw: str) -> float:
    """Parse a decimal float literal; NaN and infinities are rejected."""

    if not _FLOAT_PATTERN.fullmatch(raw):
        raise BadValueError({"value": raw})
    value = float(raw)
    if math.isnan(value) or math.isinf(value):
        raise BadValueError({"value": raw})
    return value


def parse_counter_delta(raw: str) -> int:
    """Parse a signed 64-bit decimal integer."""

    if not _INT_PATTERN.fullmatch(raw):
        raise BadValueError({"value": raw})
    delta = int(raw)
    if not INT64_MIN <= delta <= INT64_MAX:
        raise BadValueError({"value": raw})
    return delta


def format_counter(value: int) -> str:
    return str(value)


def format_gauge(value: float) -> str:
    """Render the shortest round-trip digits of ``value`` in %g style."""

    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"cannot format non-finite gauge value {value!r}")
    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(digit) for digit in digit_tuple)
    count = len(digits)
    point = count + exponent
    prefix = "-" if sign else ""

    exp10 = point - 1
    if exp10 < _MIN_FIXED_EXPONENT or exp10 >= _EXPONENT_THRESHOLD:
        mantissa = digits[0]
        if count > 1:
            mantissa += "." + digits[1:]
        exp_sign = "+" if exp10 >= 0 else "-"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"

    if point > 0:
        integer_part = digits[:point].ljust(point, "0")
    else:
        integer_part = "0"
    fraction_len = max(count - point, 0)
    if not fraction_len:
        return prefix + integer_part
    fraction = "".join(
        digits[index] if 0 <= index < count else "0"
        for index in range(point, point + fraction_len)
    )
    return f"{prefix}{integer_part}.{fraction}"
