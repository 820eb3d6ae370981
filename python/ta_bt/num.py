"""Numeric values used throughout the engine.

Every series is bound to one numeric family through a factory. Two families
are provided:
- ``DoubleNumFactory``: plain Python floats (fast, default)
- ``DecimalNumFactory``: ``decimal.Decimal`` with a fixed precision

Arithmetic uses the normal Python operators. NaN is the "not a number"
sentinel for indeterminate results (e.g. 0/0 during the warm-up period);
comparison helpers treat NaN as unordered instead of raising.
"""

from __future__ import annotations

import decimal
from decimal import Decimal
from typing import Union

Num = Union[float, Decimal]


class NumFactory:
    """Creates numbers of one family."""

    name = "abstract"

    def num_of(self, value) -> Num:
        raise NotImplementedError

    def zero(self) -> Num:
        return self.num_of(0)

    def one(self) -> Num:
        return self.num_of(1)

    def nan(self) -> Num:
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash((type(self), tuple(sorted(self.__dict__.items()))))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DoubleNumFactory(NumFactory):
    name = "double"

    def num_of(self, value) -> float:
        return float(value)

    def nan(self) -> float:
        return float("nan")


class DecimalNumFactory(NumFactory):
    """Decimal numbers rounded to ``precision`` significant digits on creation."""

    name = "decimal"

    def __init__(self, precision: int = 32):
        if precision <= 0:
            raise ValueError("precision must be positive")
        self.precision = int(precision)

    @property
    def context(self) -> decimal.Context:
        return decimal.Context(prec=self.precision)

    def num_of(self, value) -> Decimal:
        if isinstance(value, Decimal):
            return self.context.plus(value)
        if isinstance(value, float) and value != value:
            return Decimal("NaN")
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        return self.context.create_decimal(str(value))

    def nan(self) -> Decimal:
        return Decimal("NaN")

    def __repr__(self) -> str:
        return f"DecimalNumFactory(precision={self.precision})"


DEFAULT_FACTORY = DoubleNumFactory()


def factory_for(name: str, precision: int = 32) -> NumFactory:
    """Resolve a factory from its configuration name ('double' or 'decimal')."""
    key = str(name).strip().lower()
    if key == "double":
        return DoubleNumFactory()
    if key == "decimal":
        return DecimalNumFactory(precision)
    raise ValueError(f"Unknown numeric family: {name!r}")


def is_nan(x) -> bool:
    # NaN is the only value not equal to itself (float and Decimal alike)
    return x != x


def is_zero(x) -> bool:
    return not is_nan(x) and x == 0


def is_negative(x) -> bool:
    return not is_nan(x) and x < 0


def is_positive(x) -> bool:
    return not is_nan(x) and x > 0


def is_greater_than(a, b) -> bool:
    if is_nan(a) or is_nan(b):
        return False
    return a > b


def is_greater_than_or_equal(a, b) -> bool:
    if is_nan(a) or is_nan(b):
        return False
    return a >= b


def is_less_than(a, b) -> bool:
    if is_nan(a) or is_nan(b):
        return False
    return a < b


def is_less_than_or_equal(a, b) -> bool:
    if is_nan(a) or is_nan(b):
        return False
    return a <= b


def nan_like(x) -> Num:
    """NaN of the same family as ``x``."""
    if isinstance(x, Decimal):
        return Decimal("NaN")
    return float("nan")


def num_like(value, like) -> Num:
    """Convert ``value`` to the numeric family of ``like``.

    Decimal and float do not mix under arithmetic, so constants (fees,
    percentages, counts) are converted before being combined with prices.
    """
    if isinstance(like, Decimal):
        if isinstance(value, Decimal):
            return value
        if isinstance(value, float) and value != value:
            return Decimal("NaN")
        return Decimal(str(value))
    return float(value)


def safe_div(a, b) -> Num:
    """a / b, or NaN when b is zero or either side is NaN."""
    if is_nan(a) or is_nan(b) or b == 0:
        return nan_like(a)
    return a / b
