"""Indicator computation engine.

An indicator is a pure function ``index -> value`` over a bar series, possibly
defined from other indicators and from its own earlier values. Each cached
indicator owns a private memo keyed by index, so a forward sweep costs one
evaluation per (indicator, index) pair.

Caveat: the memo is not synchronized. Share an indicator instance between
threads only with external locking, or build one instance per thread.
Cycles in an indicator graph are not detected.
"""

from __future__ import annotations

import logging
import operator
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import pandas as pd

from .num import Num, is_greater_than, is_less_than, is_nan, num_like, safe_div
from .series import BarSeries

logger = logging.getLogger(__name__)

# Gap (in bars) above which recursive indicators fill their memo iteratively.
RECURSION_THRESHOLD = 100


class Indicator(ABC):
    """Base indicator: a value per index of ``series``."""

    def __init__(self, series: BarSeries):
        if series is None:
            raise ValueError("Series cannot be None")
        self.series = series

    @abstractmethod
    def get_value(self, index: int) -> Any:
        ...

    @property
    def unstable_bars(self) -> int:
        """Leading indices whose values are defined but not yet meaningful."""
        return 0

    def num_of(self, value) -> Num:
        return self.series.num_of(value)

    def __getitem__(self, index: int) -> Any:
        return self.get_value(index)

    def to_pandas(self) -> pd.Series:
        """Values over the whole series window, indexed by bar end time."""
        s = self.series
        idx = [s.get_bar(i).end_time for i in range(s.begin_index, s.end_index + 1)]
        vals = [self.get_value(i) for i in range(s.begin_index, s.end_index + 1)]
        return pd.Series(vals, index=pd.Index(idx, name="Date"), name=repr(self))

    # ---------- composition ----------

    def _operand(self, other) -> "Indicator":
        if isinstance(other, Indicator):
            return other
        return ConstantIndicator(self.series, other)

    def __add__(self, other):
        return BinaryOperationIndicator(operator.add, self, self._operand(other), "+")

    def __radd__(self, other):
        return BinaryOperationIndicator(operator.add, self._operand(other), self, "+")

    def __sub__(self, other):
        return BinaryOperationIndicator(operator.sub, self, self._operand(other), "-")

    def __rsub__(self, other):
        return BinaryOperationIndicator(operator.sub, self._operand(other), self, "-")

    def __mul__(self, other):
        return BinaryOperationIndicator(operator.mul, self, self._operand(other), "*")

    def __rmul__(self, other):
        return BinaryOperationIndicator(operator.mul, self._operand(other), self, "*")

    def __truediv__(self, other):
        return BinaryOperationIndicator(safe_div, self, self._operand(other), "/")

    def __rtruediv__(self, other):
        return BinaryOperationIndicator(safe_div, self._operand(other), self, "/")

    def __neg__(self):
        return self * -1

    def __repr__(self) -> str:
        return type(self).__name__


class CachedIndicator(Indicator):
    """Memoizing indicator.

    Subclasses implement :meth:`calculate`; :meth:`get_value` returns the
    memoized result and only calls ``calculate`` on a miss.

    The value at the series' last index is kept apart, tagged with the
    series modification counter, because the last bar may still be replaced.
    Indices dropped by a maximum bar count are served from the first
    available index.
    """

    def __init__(self, series: BarSeries):
        super().__init__(series)
        self._cache: Dict[int, Any] = {}
        self._highest_result_index = -1
        self._first_available = series.removed_bars_count
        self._last_bar_index = -1
        self._last_bar_modification = -1
        self._last_bar_value: Any = None

    @abstractmethod
    def calculate(self, index: int) -> Any:
        ...

    @property
    def highest_result_index(self) -> int:
        return self._highest_result_index

    def get_value(self, index: int) -> Any:
        series = self.series
        removed = series.removed_bars_count
        if removed > self._first_available:
            self._evict_below(removed)
        if index < removed:
            index = removed

        if index == series.end_index:
            modification = series.modification_count
            if index == self._last_bar_index and modification == self._last_bar_modification:
                return self._last_bar_value
            value = self.calculate(index)
            self._last_bar_index = index
            self._last_bar_modification = modification
            self._last_bar_value = value
            self._record(index)
            return value

        try:
            return self._cache[index]
        except KeyError:
            pass
        value = self.calculate(index)
        self._cache[index] = value
        self._record(index)
        return value

    def _record(self, index: int) -> None:
        if index > self._highest_result_index:
            self._highest_result_index = index

    def _evict_below(self, first_index: int) -> None:
        self._cache = {i: v for i, v in self._cache.items() if i >= first_index}
        self._first_available = first_index

    def invalidate(self) -> None:
        """Drop every memoized value."""
        self._cache.clear()
        self._highest_result_index = -1
        self._last_bar_index = -1
        self._last_bar_value = None


class RecursiveCachedIndicator(CachedIndicator):
    """Cached indicator whose value at ``i`` depends on its value at ``i - 1``.

    A request far beyond the highest memoized index is served by filling the
    memo in increasing index order first, which keeps the call depth bounded
    regardless of the series length.
    """

    def get_value(self, index: int) -> Any:
        series = self.series
        if not series.is_empty() and index <= series.end_index:
            start = max(self._highest_result_index + 1, series.begin_index, series.removed_bars_count)
            if index - start > RECURSION_THRESHOLD:
                logger.debug("%r: filling memo from %d up to %d", self, start, index)
                for i in range(start, index):
                    super().get_value(i)
        return super().get_value(index)


# ---------------------------------------------------------------------------
# Formula catalogue
# ---------------------------------------------------------------------------


class PriceIndicator(Indicator):
    """One field of the bar at each index (open/high/low/close/volume)."""

    FIELDS = ("open", "high", "low", "close", "volume")

    def __init__(self, series: BarSeries, field: str = "close"):
        super().__init__(series)
        if field not in self.FIELDS:
            raise ValueError(f"Unknown bar field {field!r}; expected one of {self.FIELDS}")
        self.field = field

    def get_value(self, index: int) -> Num:
        return getattr(self.series.get_bar(index), self.field)

    def __repr__(self) -> str:
        return f"Price({self.field})"


class ClosePriceIndicator(PriceIndicator):
    def __init__(self, series: BarSeries):
        super().__init__(series, "close")


class HighPriceIndicator(PriceIndicator):
    def __init__(self, series: BarSeries):
        super().__init__(series, "high")


class LowPriceIndicator(PriceIndicator):
    def __init__(self, series: BarSeries):
        super().__init__(series, "low")


class ConstantIndicator(Indicator):
    def __init__(self, series: BarSeries, value):
        super().__init__(series)
        self.value = series.num_of(value)

    def get_value(self, index: int) -> Num:
        return self.value

    def __repr__(self) -> str:
        return f"Constant({self.value})"


class BinaryOperationIndicator(CachedIndicator):
    """``op(left[i], right[i])``; division yields NaN on a zero divisor."""

    def __init__(self, op: Callable[[Any, Any], Any], left: Indicator, right: Indicator, symbol: str = "?"):
        ensure_same_series(left, right)
        super().__init__(left.series)
        self.op = op
        self.left = left
        self.right = right
        self.symbol = symbol

    def calculate(self, index: int) -> Num:
        a = self.left.get_value(index)
        b = self.right.get_value(index)
        if is_nan(a) or is_nan(b):
            return a if is_nan(a) else b
        return self.op(a, b)

    @property
    def unstable_bars(self) -> int:
        return max(self.left.unstable_bars, self.right.unstable_bars)

    def __repr__(self) -> str:
        return f"({self.left!r} {self.symbol} {self.right!r})"


class PreviousValueIndicator(CachedIndicator):
    """Value of ``indicator`` ``n`` bars ago, clamped to the series begin."""

    def __init__(self, indicator: Indicator, n: int = 1):
        if n < 1:
            raise ValueError("n must be at least 1")
        super().__init__(indicator.series)
        self.indicator = indicator
        self.n = int(n)

    def calculate(self, index: int) -> Num:
        return self.indicator.get_value(max(self.series.begin_index, index - self.n))

    @property
    def unstable_bars(self) -> int:
        return self.indicator.unstable_bars + self.n


class SMAIndicator(CachedIndicator):
    """Simple moving average.

    Uses a partial window over the first ``bar_count - 1`` indices, which are
    reported as unstable.
    """

    def __init__(self, indicator: Indicator, bar_count: int):
        if bar_count <= 0:
            raise ValueError("bar_count must be positive")
        super().__init__(indicator.series)
        self.indicator = indicator
        self.bar_count = int(bar_count)

    def calculate(self, index: int) -> Num:
        start = max(self.series.begin_index, index - self.bar_count + 1)
        total = self.indicator.get_value(start)
        for i in range(start + 1, index + 1):
            total = total + self.indicator.get_value(i)
        return total / num_like(index - start + 1, total)

    @property
    def unstable_bars(self) -> int:
        return self.indicator.unstable_bars + self.bar_count - 1

    def __repr__(self) -> str:
        return f"SMA({self.indicator!r}, {self.bar_count})"


class EMAIndicator(RecursiveCachedIndicator):
    """Exponential moving average, recursive form seeded with the first value."""

    def __init__(self, indicator: Indicator, bar_count: int):
        if bar_count <= 0:
            raise ValueError("bar_count must be positive")
        super().__init__(indicator.series)
        self.indicator = indicator
        self.bar_count = int(bar_count)

    def calculate(self, index: int) -> Num:
        first = max(self.series.begin_index, self.series.removed_bars_count)
        value = self.indicator.get_value(index)
        if index <= first:
            return value
        prev = self.get_value(index - 1)
        multiplier = num_like(2.0 / (self.bar_count + 1), value)
        return prev + (value - prev) * multiplier

    @property
    def unstable_bars(self) -> int:
        return self.indicator.unstable_bars + self.bar_count

    def __repr__(self) -> str:
        return f"EMA({self.indicator!r}, {self.bar_count})"


class _WindowExtremeIndicator(CachedIndicator):
    _better: Callable[[Any, Any], bool] = staticmethod(is_greater_than)

    def __init__(self, indicator: Indicator, bar_count: int):
        if bar_count <= 0:
            raise ValueError("bar_count must be positive")
        super().__init__(indicator.series)
        self.indicator = indicator
        self.bar_count = int(bar_count)

    def calculate(self, index: int) -> Num:
        start = max(self.series.begin_index, index - self.bar_count + 1)
        best = self.indicator.get_value(start)
        for i in range(start + 1, index + 1):
            v = self.indicator.get_value(i)
            if is_nan(best) or self._better(v, best):
                best = v
        return best

    @property
    def unstable_bars(self) -> int:
        return self.indicator.unstable_bars + self.bar_count - 1


class HighestValueIndicator(_WindowExtremeIndicator):
    _better = staticmethod(is_greater_than)


class LowestValueIndicator(_WindowExtremeIndicator):
    _better = staticmethod(is_less_than)


class WilliamsRIndicator(CachedIndicator):
    """Williams %R in [-100, 0]; NaN when the window's high equals its low."""

    def __init__(self, series: BarSeries, bar_count: int = 14):
        super().__init__(series)
        self.close = ClosePriceIndicator(series)
        self.highest = HighestValueIndicator(HighPriceIndicator(series), bar_count)
        self.lowest = LowestValueIndicator(LowPriceIndicator(series), bar_count)
        self.bar_count = int(bar_count)

    def calculate(self, index: int) -> Num:
        hh = self.highest.get_value(index)
        ll = self.lowest.get_value(index)
        c = self.close.get_value(index)
        ratio = safe_div(hh - c, hh - ll)
        return ratio * num_like(-100, ratio)

    @property
    def unstable_bars(self) -> int:
        return self.bar_count - 1


class CrossIndicator(CachedIndicator):
    """True at ``index`` when ``up`` crosses below ``low``.

    ``up`` must be strictly under ``low`` at ``index`` and strictly above it
    at the nearest earlier index where the two differ.
    """

    def __init__(self, up: Indicator, low: Indicator):
        ensure_same_series(up, low)
        super().__init__(up.series)
        self.up = up
        self.low = low

    def calculate(self, index: int) -> bool:
        first = self.series.begin_index
        i = index
        if i <= first or not is_less_than(self.up.get_value(i), self.low.get_value(i)):
            return False
        i -= 1
        if is_greater_than(self.up.get_value(i), self.low.get_value(i)):
            return True
        while i > first and self.up.get_value(i) == self.low.get_value(i):
            i -= 1
        return i > first and is_greater_than(self.up.get_value(i), self.low.get_value(i))

    @property
    def unstable_bars(self) -> int:
        return max(self.up.unstable_bars, self.low.unstable_bars)

    def __repr__(self) -> str:
        return f"Cross({self.up!r}, {self.low!r})"


def as_indicator(series: BarSeries, value) -> Indicator:
    """Wrap a plain number as a constant indicator."""
    if isinstance(value, Indicator):
        return value
    return ConstantIndicator(series, value)


def ensure_same_series(*indicators: Optional[Indicator]) -> None:
    series = {id(ind.series) for ind in indicators if ind is not None}
    if len(series) > 1:
        raise ValueError("Indicators must be built on the same series")
