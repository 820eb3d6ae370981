# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

import pytest

from ta_bt.num import DEFAULT_FACTORY, NumFactory
from ta_bt.rules import fixed_rule
from ta_bt.series import BarSeries
from ta_bt.strategy import Strategy
from ta_bt.types import Bar


def _bar(end: datetime, o, h, l, c, v, factory: NumFactory) -> Bar:
    num = factory.num_of
    return Bar(
        begin_time=end - timedelta(days=1),
        end_time=end,
        open=num(o),
        high=num(h),
        low=num(l),
        close=num(c),
        volume=num(v),
    )


def build_series(
    closes: Sequence[float],
    dates: Optional[Sequence[datetime]] = None,
    factory: NumFactory = DEFAULT_FACTORY,
    highs: Optional[Sequence[float]] = None,
    lows: Optional[Sequence[float]] = None,
    name: str = "test",
) -> BarSeries:
    if dates is None:
        start = datetime(2020, 1, 1)
        dates = [start + timedelta(days=i) for i in range(len(closes))]
    assert len(dates) == len(closes)
    highs = highs if highs is not None else closes
    lows = lows if lows is not None else closes
    bars = [
        _bar(d, c, h, l, c, 100, factory)
        for d, c, h, l in zip(dates, closes, highs, lows)
    ]
    return BarSeries(bars, name=name, num_factory=factory)


@pytest.fixture
def series_factory():
    """``series_factory(closes, dates=None, factory=..., highs=None, lows=None)``"""
    return build_series


@pytest.fixture
def mock_strategy():
    """Strategy entering exactly at ``entries`` and exiting exactly at ``exits``."""

    def make(entries: Sequence[int], exits: Sequence[int], unstable_bars: int = 0) -> Strategy:
        return Strategy(fixed_rule(*entries), fixed_rule(*exits), unstable_bars=unstable_bars, name="mock")

    return make


@pytest.fixture
def yearly_dates():
    """Eleven bars over 2000-2003 (3, 3, 4 and 1 per year)."""
    years = [2000, 2000, 2000, 2001, 2001, 2001, 2002, 2002, 2002, 2002, 2003]
    months = [1, 2, 3, 1, 2, 3, 1, 2, 3, 4, 1]
    return [datetime(y, m, 1) for y, m in zip(years, months)]
