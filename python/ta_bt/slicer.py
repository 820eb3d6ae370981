"""Walk-forward slicing of a bar series.

A slicer cuts a series into an ordered list of sub-series views (slices).
Unless a regular slicer keeps several periods per slice, slices do not
overlap and slice ``k + 1`` starts after slice ``k`` ends. When the
underlying series grows, the slices are recomputed on the next access, so the
last slice can extend and new slices can appear.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .series import BarSeries

logger = logging.getLogger(__name__)

Period = Union[pd.DateOffset, pd.Timedelta, timedelta]


class Slicer:
    """Slices given as explicit inclusive ``(begin, end)`` index ranges.

    Without ranges the whole series is a single slice.
    """

    def __init__(self, series: BarSeries, ranges: Optional[Sequence[Tuple[int, int]]] = None):
        if series is None:
            raise ValueError("Series cannot be None")
        self.series = series
        self._whole = ranges is None
        self._fixed_ranges = [(int(b), int(e)) for b, e in (ranges or ())]
        prev_end = None
        for b, e in self._fixed_ranges:
            if e < b:
                raise ValueError(f"Slice end {e} is before its begin {b}")
            if prev_end is not None and b <= prev_end:
                raise ValueError("Slices must be ordered and must not overlap")
            prev_end = e
        self._slices: List[BarSeries] = []
        self._known_end: Optional[int] = None

    def _compute_ranges(self) -> List[Tuple[int, int]]:
        if self._whole:
            if self.series.is_empty():
                return []
            return [(self.series.begin_index, self.series.end_index)]
        return [(b, e) for b, e in self._fixed_ranges if e <= self.series.end_index]

    def _refresh(self) -> None:
        if self._known_end == self.series.end_index:
            return
        ranges = self._compute_ranges()
        self._slices = [self.series.get_sub_series(b, e) for b, e in ranges]
        self._known_end = self.series.end_index
        logger.debug("%s: %d slice(s) up to index %d", self.name, len(self._slices), self._known_end)

    @property
    def slices(self) -> List[BarSeries]:
        self._refresh()
        return list(self._slices)

    def slice(self, position: int) -> BarSeries:
        self._refresh()
        return self._slices[position]

    @property
    def slice_count(self) -> int:
        self._refresh()
        return len(self._slices)

    def __len__(self) -> int:
        return self.slice_count

    def __iter__(self) -> Iterator[BarSeries]:
        return iter(self.slices)

    @property
    def average_bars_per_slice(self) -> float:
        slices = self.slices
        if not slices:
            return 0.0
        return sum(s.bar_count for s in slices) / len(slices)

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.name}(series={self.series.name!r}, slices={self.slice_count})"


class RegularSlicer(Slicer):
    """One slice per ``period`` of calendar time.

    Periods are consecutive half-open intervals ``[start, start + period)``
    starting at ``period_begin`` (the first bar's end time by default; an
    earlier value is moved up to it). Bars are assigned by end time; bars
    before ``period_begin`` are skipped and periods without bars produce no
    slice.

    With ``periods_per_slice > 1`` each slice also keeps the previous
    ``periods_per_slice - 1`` periods (growing training windows); slices
    then overlap and only the end of each slice is period-aligned.
    """

    def __init__(
        self,
        series: BarSeries,
        period: Period,
        period_begin: Optional[datetime] = None,
        periods_per_slice: int = 1,
    ):
        if period is None:
            raise ValueError("Period cannot be None")
        if periods_per_slice < 1:
            raise ValueError("Periods per slice must be at least 1")
        super().__init__(series)
        self.period = period
        self.period_begin = period_begin
        self.periods_per_slice = int(periods_per_slice)

    def apply_for_series(self, series: BarSeries, period_begin: Optional[datetime] = None) -> "RegularSlicer":
        """Same slicing parameters on another series."""
        begin = self.period_begin if period_begin is None else period_begin
        return RegularSlicer(series, self.period, begin, self.periods_per_slice)

    def _first_period_start(self):
        first = self.series.get_bar(self.series.begin_index).end_time
        if self.period_begin is None or pd.Timestamp(self.period_begin) < pd.Timestamp(first):
            return pd.Timestamp(first)
        return pd.Timestamp(self.period_begin)

    def _compute_ranges(self) -> List[Tuple[int, int]]:
        series = self.series
        if series.is_empty():
            return []

        start = self._first_period_start()
        stop = start + self.period
        if stop <= start:
            raise ValueError(f"Period {self.period!r} must be positive")

        index = series.begin_index
        while index <= series.end_index and pd.Timestamp(series.get_bar(index).end_time) < start:
            index += 1
        if index > series.end_index:
            return []

        begins = [index]
        ends: List[int] = []
        for i in range(index, series.end_index + 1):
            t = pd.Timestamp(series.get_bar(i).end_time)
            if t < stop:
                continue
            # Bar outside the current period: close the slice, skip empty periods.
            ends.append(i - 1)
            while t >= stop:
                start = stop
                stop = start + self.period
            begins.append(i)
        ends.append(series.end_index)

        p = self.periods_per_slice
        return [(begins[max(k - p + 1, 0)], ends[k]) for k in range(len(ends))]

    @property
    def name(self) -> str:
        return f"RegularSlicer(period={self.period})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, RegularSlicer):
            return NotImplemented
        return (
            self.period == other.period
            and self.period_begin == other.period_begin
            and self.periods_per_slice == other.periods_per_slice
        )

    def __hash__(self) -> int:
        return hash((str(self.period), self.period_begin, self.periods_per_slice))
