from __future__ import annotations

from datetime import datetime, timedelta

import pandas as pd
import pytest

from ta_bt.slicer import RegularSlicer, Slicer
from ta_bt.types import Bar


def _ranges(slicer):
    return [(s.begin_index, s.end_index) for s in slicer.slices]


def test_split_by_year(series_factory, yearly_dates):
    s = series_factory(list(range(1, 12)), yearly_dates)
    slicer = RegularSlicer(s, pd.DateOffset(years=1))
    assert _ranges(slicer) == [(0, 2), (3, 5), (6, 9), (10, 10)]
    assert slicer.average_bars_per_slice == pytest.approx(11 / 4)


def test_split_by_year_one_bar_per_year(series_factory):
    dates = [datetime(y, 1, 1) for y in range(2000, 2005)]
    slicer = RegularSlicer(series_factory([1, 2, 3, 4, 5], dates), pd.DateOffset(years=1))
    assert _ranges(slicer) == [(i, i) for i in range(5)]


def test_split_by_year_forcing_july(series_factory):
    dates = [
        datetime(2000, 1, 1), datetime(2000, 2, 1), datetime(2000, 3, 1),
        datetime(2001, 1, 1), datetime(2001, 2, 1), datetime(2001, 12, 12),
        datetime(2002, 1, 1), datetime(2002, 2, 1), datetime(2002, 3, 1), datetime(2002, 5, 1),
        datetime(2003, 3, 1),
    ]
    s = series_factory(list(range(11)), dates)
    slicer = RegularSlicer(s, pd.DateOffset(years=1), datetime(2000, 7, 1))
    assert _ranges(slicer) == [(3, 4), (5, 9), (10, 10)]


def test_period_begin_before_series_start_is_moved_up(series_factory):
    dates = [
        datetime(2000, 7, 1), datetime(2000, 8, 1), datetime(2000, 9, 15),
        datetime(2001, 1, 1), datetime(2001, 1, 3), datetime(2001, 12, 31),
        datetime(2002, 1, 1), datetime(2002, 1, 2), datetime(2002, 1, 3), datetime(2002, 5, 5),
        datetime(2003, 3, 3),
    ]
    s = series_factory(list(range(11)), dates)
    expected = [(0, 4), (5, 9), (10, 10)]
    assert _ranges(RegularSlicer(s, pd.DateOffset(years=1))) == expected
    assert _ranges(RegularSlicer(s, pd.DateOffset(years=1), datetime(2000, 1, 1))) == expected


def test_empty_periods_produce_no_slice(series_factory):
    years = [2000, 2000, 2000, 2001, 2001, 2001, 2002, 2002, 2002, 2002, 2005, 2005]
    dates = [datetime(y, 1, 1) + timedelta(days=i) for i, y in enumerate(years)]
    slicer = RegularSlicer(series_factory(list(range(12)), dates), pd.DateOffset(years=1))
    assert _ranges(slicer) == [(0, 2), (3, 5), (6, 9), (10, 11)]


def test_split_by_hour(series_factory):
    t0 = datetime(2020, 1, 1, 10, 0)
    minutes = [0, 1, 2, 10, 15, 25, 30, 61, 65, 75, 125]
    s = series_factory(list(range(11)), [t0 + timedelta(minutes=m) for m in minutes])
    slicer = RegularSlicer(s, pd.Timedelta(hours=1))
    assert _ranges(slicer) == [(0, 6), (7, 9), (10, 10)]


def test_slices_share_storage(series_factory, yearly_dates):
    s = series_factory(list(range(1, 12)), yearly_dates)
    sub = RegularSlicer(s, pd.DateOffset(years=1)).slice(1)
    assert sub.get_bar(3) is s.get_bar(3)


def test_slicer_follows_series_growth(series_factory, yearly_dates):
    s = series_factory(list(range(1, 12)), yearly_dates)
    slicer = RegularSlicer(s, pd.DateOffset(years=1))
    assert slicer.slice_count == 4

    end = datetime(2004, 2, 1)
    s.add_bar(Bar(end - timedelta(days=1), end, 1.0, 1.0, 1.0, 1.0, 0.0))
    assert slicer.slice_count == 5
    assert _ranges(slicer)[-1] == (11, 11)


def test_periods_per_slice_keeps_previous_periods(series_factory):
    dates = [datetime(y, 1, 1) for y in range(2000, 2005)]
    slicer = RegularSlicer(series_factory([1, 2, 3, 4, 5], dates), pd.DateOffset(years=1), periods_per_slice=3)
    assert _ranges(slicer) == [(0, 0), (0, 1), (0, 2), (1, 3), (2, 4)]
    with pytest.raises(ValueError):
        RegularSlicer(slicer.series, pd.DateOffset(years=1), periods_per_slice=0)


def test_apply_for_series(series_factory, yearly_dates):
    dates = [datetime(y, 1, 1) for y in range(2000, 2005)]
    slicer = RegularSlicer(series_factory([1, 2, 3, 4, 5], dates), pd.DateOffset(years=1))
    assert slicer.apply_for_series(slicer.series) == slicer

    other = slicer.apply_for_series(series_factory(list(range(1, 12)), yearly_dates))
    assert _ranges(other) == [(0, 2), (3, 5), (6, 9), (10, 10)]


def test_explicit_ranges(series_factory):
    s = series_factory(list(range(10)))
    slicer = Slicer(s, [(0, 3), (4, 6), (7, 9)])
    assert _ranges(slicer) == [(0, 3), (4, 6), (7, 9)]
    assert _ranges(Slicer(s)) == [(0, 9)]
    with pytest.raises(ValueError):
        Slicer(s, [(0, 3), (3, 6)])


def test_period_is_required(series_factory):
    with pytest.raises(ValueError):
        RegularSlicer(series_factory([1, 2]), None)
