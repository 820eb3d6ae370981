"""Bar series and sub-series views.

Indices are absolute: bar ``i`` of a series keeps index ``i`` in every view
taken from it. A view shares the bar storage of its parent and only narrows
the ``[begin_index, end_index]`` window.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence

from .num import DEFAULT_FACTORY, Num, NumFactory
from .types import Bar, IllegalStateError

logger = logging.getLogger(__name__)


class BarSeries:
    """Ordered, index-addressable sequence of bars.

    Invariant: ``end_index >= begin_index - 1``; the series is empty when
    ``end_index == begin_index - 1``.
    """

    def __init__(
        self,
        bars: Optional[Sequence[Bar]] = None,
        name: str = "",
        num_factory: NumFactory = DEFAULT_FACTORY,
    ):
        self.name = name
        self.num_factory = num_factory

        # storage[k] holds bar index (offset + k)
        self._bars: List[Bar] = []
        self._offset = 0
        self._begin = 0
        self._end = -1
        self._parent: Optional[BarSeries] = None

        self._maximum_bar_count: Optional[int] = None
        self._modification_count = 0

        for bar in bars or ():
            self.add_bar(bar)

    @classmethod
    def _view(cls, parent: "BarSeries", begin: int, end: int) -> "BarSeries":
        view = cls.__new__(cls)
        view.name = parent.name
        view.num_factory = parent.num_factory
        view._bars = parent._bars
        view._offset = parent._offset
        view._begin = begin
        view._end = end
        view._parent = parent
        view._maximum_bar_count = None
        view._modification_count = 0
        return view

    # ---------- window ----------

    @property
    def begin_index(self) -> int:
        return self._begin

    @property
    def end_index(self) -> int:
        return self._end

    @property
    def bar_count(self) -> int:
        return self._end - self._begin + 1

    def __len__(self) -> int:
        return self.bar_count

    def is_empty(self) -> bool:
        return self.bar_count <= 0

    @property
    def is_view(self) -> bool:
        return self._parent is not None

    @property
    def removed_bars_count(self) -> int:
        """Number of leading bars dropped because of the maximum bar count."""
        return self._offset

    @property
    def modification_count(self) -> int:
        """Bumped whenever the last bar is replaced in place."""
        if self._parent is not None:
            return self._parent.modification_count
        return self._modification_count

    # ---------- access ----------

    def get_bar(self, index: int) -> Bar:
        if self.is_empty():
            raise IndexError(f"Series {self.name!r} is empty")
        if index < self._offset:
            # Dropped by the maximum bar count: serve the first available bar.
            logger.debug("Bar %d already removed from %r, using bar %d", index, self.name, self._offset)
            index = self._offset
        if index < self._begin or index > self._end:
            raise IndexError(f"Index {index} outside [{self._begin}, {self._end}] of series {self.name!r}")
        return self._bars[index - self._offset]

    def __getitem__(self, index: int) -> Bar:
        return self.get_bar(index)

    def __iter__(self) -> Iterator[Bar]:
        for i in range(self._begin, self._end + 1):
            yield self._bars[i - self._offset]

    @property
    def first_bar(self) -> Bar:
        return self.get_bar(self._begin)

    @property
    def last_bar(self) -> Bar:
        return self.get_bar(self._end)

    def num_of(self, value) -> Num:
        return self.num_factory.num_of(value)

    def get_sub_series(self, begin: int, end: int) -> "BarSeries":
        """View of ``[begin, end]`` sharing this series' bar storage."""
        if begin < self._begin:
            raise ValueError(f"Sub-series begin {begin} is before series begin {self._begin}")
        if end > self._end:
            raise ValueError(f"Sub-series end {end} is after series end {self._end}")
        if end < begin - 1:
            raise ValueError(f"Sub-series end {end} must be >= begin - 1 ({begin - 1})")
        return BarSeries._view(self, begin, end)

    # ---------- growth ----------

    def add_bar(self, bar: Bar, replace: bool = False) -> None:
        """Append ``bar`` (or replace the last bar when ``replace`` is set)."""
        if bar is None:
            raise ValueError("Bar cannot be None")
        if self.is_view:
            raise IllegalStateError("Cannot add bars to a sub-series view")

        if replace:
            if self.is_empty():
                raise IllegalStateError("Cannot replace the last bar of an empty series")
            self._bars[-1] = bar
            self._modification_count += 1
            return

        if not self.is_empty() and bar.end_time <= self.last_bar.end_time:
            raise ValueError(
                f"Cannot add a bar ending at {bar.end_time}: must be after {self.last_bar.end_time}"
            )
        self._bars.append(bar)
        self._end += 1
        self._trim()

    @property
    def maximum_bar_count(self) -> Optional[int]:
        return self._maximum_bar_count

    def set_maximum_bar_count(self, maximum_bar_count: int) -> None:
        if self.is_view:
            raise IllegalStateError("Cannot set a maximum bar count on a sub-series view")
        if maximum_bar_count <= 0:
            raise ValueError("Maximum bar count must be strictly positive")
        self._maximum_bar_count = int(maximum_bar_count)
        self._trim()

    def _trim(self) -> None:
        if self._maximum_bar_count is None:
            return
        excess = len(self._bars) - self._maximum_bar_count
        if excess <= 0:
            return
        # Rebind instead of deleting in place so existing views keep their storage.
        self._bars = self._bars[excess:]
        self._offset += excess
        self._begin = self._offset
        logger.debug("Series %r dropped %d bar(s), now starts at %d", self.name, excess, self._begin)

    def __repr__(self) -> str:
        return f"BarSeries(name={self.name!r}, begin={self._begin}, end={self._end})"
