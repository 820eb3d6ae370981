from __future__ import annotations

from datetime import datetime, timedelta

import pandas as pd
import pytest

from ta_bt.criteria import GrossReturnCriterion, ProfitLossCriterion
from ta_bt.rules import PredicateRule, fixed_rule
from ta_bt.runner import BacktestRunner, SliceRunner
from ta_bt.slicer import RegularSlicer, Slicer
from ta_bt.strategy import Strategy
from ta_bt.types import Bar, IllegalStateError, TradeType

DATES = [
    datetime(2013, 4, 1), datetime(2013, 7, 1), datetime(2013, 10, 1), datetime(2013, 12, 1),
    datetime(2014, 6, 1),
    datetime(2015, 1, 1), datetime(2015, 4, 1), datetime(2015, 7, 1), datetime(2015, 10, 1),
]


def _pairs(positions):
    return [(p.entry.index, p.exit.index) for p in positions]


@pytest.fixture
def series(series_factory):
    return series_factory([1, 2, 3, 4, 5, 6, 7, 8, 9], DATES)


@pytest.fixture
def strategy(mock_strategy):
    return mock_strategy([2, 3, 6], [4, 7, 8])


def test_run_on_whole_series(series_factory, strategy):
    s = series_factory([20, 40, 60, 10, 30, 50, 0, 20, 40])
    runner = SliceRunner(s, strategy)
    all_positions = runner.run()
    assert len(all_positions) == 2
    assert runner.run(0) == all_positions


def test_run_on_single_slice(series, strategy):
    runner = SliceRunner(RegularSlicer(series, pd.DateOffset(years=100)), strategy)
    positions = runner.run(0)
    assert _pairs(positions) == [(2, 4), (6, 7)]
    assert all(p.entry.type is TradeType.BUY for p in positions)


def test_open_entry_left_in_slice_is_closed_in_next(series, mock_strategy):
    slicer = RegularSlicer(series, pd.DateOffset(years=1))
    runner = SliceRunner(slicer, mock_strategy([2, 3, 6], [4, 7, 8]))
    assert _pairs(runner.run(0)) == [(2, 4)]
    assert runner.run(1) == []
    assert _pairs(runner.run(2)) == [(6, 7)]


def test_sell_starting_type(series, mock_strategy):
    slicer = RegularSlicer(series, pd.DateOffset(years=1))
    runner = SliceRunner(slicer, mock_strategy([1], [3]), starting_type=TradeType.SELL)
    positions = runner.run(0)
    assert _pairs(positions) == [(1, 3)]
    assert positions[0].entry.type is TradeType.SELL
    assert positions[0].exit.type is TradeType.BUY


def test_every_slice_in_order(series_factory, mock_strategy):
    years = [2000, 2000, 2001, 2001, 2002, 2002, 2002, 2003, 2004, 2005]
    dates = [datetime(y, 1, 1) + timedelta(days=i) for i, y in enumerate(years)]
    s = series_factory(list(range(1, 11)), dates)
    strategy = mock_strategy([0, 3, 5, 7], [2, 4, 6, 9])
    runner = SliceRunner(RegularSlicer(s, pd.DateOffset(years=1)), strategy)

    assert _pairs(runner.run(0)) == [(0, 2)]
    assert _pairs(runner.run(1)) == [(3, 4)]
    assert _pairs(runner.run(2)) == [(5, 6)]
    assert _pairs(runner.run(3)) == [(7, 9)]
    assert runner.run(4) == []
    assert runner.run(5) == []


def test_round_trip_gross_return(series_factory, mock_strategy):
    s = series_factory([3, 5, 7, 9])
    runner = SliceRunner(s, mock_strategy([0, 2], [1, 3]))
    positions = runner.run(0)
    assert _pairs(positions) == [(0, 1), (2, 3)]
    gross = GrossReturnCriterion().calculate(s, runner.trading_record)
    assert gross == pytest.approx(45 / 21)


def test_no_trade_identity_values(series_factory, mock_strategy):
    s = series_factory(list(range(1, 11)))
    runner = SliceRunner(s, mock_strategy([], []))
    assert runner.run(0) == []
    assert GrossReturnCriterion().calculate(s, runner.trading_record) == 1.0
    assert ProfitLossCriterion().calculate(s, runner.trading_record) == 0.0


def test_resume_point_past_slice_end_gives_empty_result(series_factory, mock_strategy):
    s = series_factory(list(range(1, 10)))
    slicer = Slicer(s, [(0, 2), (3, 4), (5, 8)])
    runner = SliceRunner(slicer, mock_strategy([1, 3, 6], [5, 7]))
    assert _pairs(runner.run(0)) == [(1, 5)]
    # exit at 5 is past the end of slice 1: nothing left to scan there
    assert runner.run(1) == []
    assert _pairs(runner.run(2)) == [(6, 7)]


# --- cross-slice continuation ---------------------------------------------


def _three_year_series(series_factory):
    dates = [datetime(2000, m, 1) for m in (1, 4, 7)]
    dates += [datetime(2001, m, 1) for m in (1, 4, 7)]
    dates += [datetime(2002, m, 1) for m in (1, 4, 7)]
    return series_factory(list(range(1, 10)), dates)


def test_continuation_closes_in_slice_two_when_requested_in_order(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    slicer = RegularSlicer(s, pd.DateOffset(years=1))
    runner = SliceRunner(slicer, mock_strategy([1], [7]), lookahead=0)

    assert runner.run(0) == []
    assert runner.run(1) == []
    positions = runner.run(2)
    assert _pairs(positions) == [(1, 7)]


def test_continuation_stays_open_when_only_first_slices_requested(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    runner = SliceRunner(RegularSlicer(s, pd.DateOffset(years=1)), mock_strategy([1], [7]), lookahead=0)
    assert runner.run(0) == []
    assert runner.run(1) == []
    assert runner.trading_record.position_count == 0
    assert runner.trading_record.current_position.is_opened
    assert runner.scanned_to == 5


def test_continuation_follows_series_growth(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    # start with the first two years only
    grown = series_factory([1, 2, 3, 4, 5, 6], [s.get_bar(i).end_time for i in range(6)])
    runner = SliceRunner(RegularSlicer(grown, pd.DateOffset(years=1)), mock_strategy([1], [7]))

    assert runner.run(0) == []
    assert runner.run(1) == []
    assert runner.trading_record.current_position.is_opened

    for i in range(6, 9):
        b = s.get_bar(i)
        grown.add_bar(Bar(b.begin_time, b.end_time, b.open, b.high, b.low, b.close, b.volume))
    assert _pairs(runner.run(2)) == [(1, 7)]


def test_continuation_scans_known_slices_by_default(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    runner = SliceRunner(RegularSlicer(s, pd.DateOffset(years=1)), mock_strategy([1], [7]))
    assert _pairs(runner.run(0)) == [(1, 7)]
    assert runner.run(1) == []
    assert runner.run(2) == []


# --- growth of resolved slices ---------------------------------------------


def test_bars_added_to_a_resolved_slice_are_scanned_by_the_next_call(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    grown = series_factory([1, 2, 3, 4], [s.get_bar(i).end_time for i in range(4)])
    strategy = mock_strategy([4], [6])
    runner = SliceRunner(RegularSlicer(grown, pd.DateOffset(years=1)), strategy)
    assert runner.run(0) == []
    assert runner.run(1) == []

    for i in range(4, 7):
        grown.add_bar(s.get_bar(i))
    assert _pairs(runner.run(2)) == [(4, 6)]
    assert runner.run(1) == []
    assert _pairs(runner.run()) == _pairs(BacktestRunner(grown).run(strategy).positions)


def test_rerequested_last_slice_scans_its_new_tail(series_factory, mock_strategy):
    s = _three_year_series(series_factory)
    grown = series_factory([1, 2, 3, 4], [s.get_bar(i).end_time for i in range(4)])
    runner = SliceRunner(RegularSlicer(grown, pd.DateOffset(years=1)), mock_strategy([4], [6]))
    runner.run(0)
    runner.run(1)

    for i in range(4, 7):
        grown.add_bar(s.get_bar(i))
    assert _pairs(runner.run(1)) == [(4, 6)]
    assert runner.run(2) == []
    assert runner.run(0) == []


def test_whole_series_slice_grows_with_the_series(series_factory, mock_strategy):
    s = series_factory([1, 2, 3, 4, 5])
    grown = series_factory([1, 2, 3], [s.get_bar(i).end_time for i in range(3)])
    runner = SliceRunner(grown, mock_strategy([3], [4]))
    assert runner.run() == []

    grown.add_bar(s.get_bar(3))
    grown.add_bar(s.get_bar(4))
    assert runner.slicer.slice_count == 1
    assert _pairs(runner.run()) == [(3, 4)]
    assert _pairs(runner.run(0)) == [(3, 4)]


# --- slices trade like the whole series -------------------------------------

CUTS = [
    [(0, 11)],
    [(0, 0), (1, 11)],
    [(0, 3), (4, 7), (8, 11)],
    [(0, 1), (2, 2), (3, 6), (7, 10), (11, 11)],
    [(i, i) for i in range(12)],
]

SIGNALS = [
    ([0, 3, 5, 9], [2, 4, 8, 11]),
    ([1, 2, 6, 7, 10], [3, 6, 7, 11]),
    ([2, 5], [1, 3, 9]),
    ([0, 4], []),
]


@pytest.mark.parametrize("lookahead", [None, 0, 1])
@pytest.mark.parametrize("ranges", CUTS)
@pytest.mark.parametrize("entries, exits", SIGNALS)
def test_slices_trade_like_the_whole_series(series_factory, mock_strategy, entries, exits, ranges, lookahead):
    s = series_factory(list(range(1, 13)))
    strategy = mock_strategy(entries, exits)
    expected = BacktestRunner(s).run(strategy)

    runner = SliceRunner(Slicer(s, ranges), strategy, lookahead=lookahead)
    assert _pairs(runner.run()) == _pairs(expected.positions)
    assert runner.trading_record.current_position.is_opened == expected.current_position.is_opened


@pytest.mark.parametrize("lookahead", [None, 0, 1])
def test_walk_forward_keeps_up_with_a_growing_series(series_factory, mock_strategy, lookahead):
    years = [2000] * 3 + [2001] * 3 + [2002] * 3 + [2003] * 3
    dates = [datetime(y, 1, 1) + timedelta(days=30 * (i % 3)) for i, y in enumerate(years)]
    full = series_factory(list(range(1, 13)), dates)
    strategy = mock_strategy([1, 2, 4, 8, 10], [2, 5, 6, 9, 11])

    grown = series_factory([1], dates[:1])
    runner = SliceRunner(RegularSlicer(grown, pd.DateOffset(years=1)), strategy, lookahead=lookahead)
    runner.run()
    for i in range(1, 12):
        grown.add_bar(full.get_bar(i))
        runner.run()

    assert _pairs(runner.run()) == _pairs(BacktestRunner(full).run(strategy).positions)
    assert runner.scanned_to == 11


# --- contract -----------------------------------------------------------------


def test_slices_must_be_requested_in_order(series, strategy):
    runner = SliceRunner(RegularSlicer(series, pd.DateOffset(years=1)), strategy)
    with pytest.raises(IllegalStateError):
        runner.run(1)
    first = runner.run(0)
    assert runner.run(0) == first
    with pytest.raises(ValueError):
        runner.run(-1)


def test_unknown_slice_is_rejected(series, strategy):
    runner = SliceRunner(Slicer(series), strategy)
    runner.run(0)
    with pytest.raises(ValueError):
        runner.run(1)


def test_arguments_cannot_be_none(series, strategy):
    with pytest.raises(ValueError):
        SliceRunner(series, None)
    with pytest.raises(ValueError):
        SliceRunner(None, strategy)
    with pytest.raises(ValueError):
        SliceRunner(series, strategy, starting_type=None)


def test_indices_are_scanned_once_left_to_right(series_factory):
    years = [2000, 2000, 2001, 2001, 2002, 2002, 2002, 2003, 2004, 2005]
    dates = [datetime(y, 1, 1) + timedelta(days=i) for i, y in enumerate(years)]
    s = series_factory(list(range(1, 11)), dates)
    seen = []

    def recording(indexes):
        wanted = set(indexes)

        def check(index, record):
            seen.append(index)
            return index in wanted

        return PredicateRule(check)

    strategy = Strategy(recording([0, 3, 5, 7]), recording([2, 4, 6, 9]))
    runner = SliceRunner(RegularSlicer(s, pd.DateOffset(years=1)), strategy)
    runner.run()
    assert seen == sorted(set(seen))
    assert seen == list(range(10))
    orders = runner.trading_record.orders
    assert [o.index for o in orders] == sorted(o.index for o in orders)


def test_orders_are_filled_at_close(series, strategy):
    positions = SliceRunner(series, strategy, amount=2).run(0)
    assert positions[0].entry.price_per_asset == 3.0
    assert positions[0].entry.amount == 2.0
    assert positions[0].exit.price_per_asset == 5.0


# --- whole-range runner ---------------------------------------------------------


def test_backtest_runner_follows_exit_past_end(series, mock_strategy):
    runner = BacktestRunner(series)
    record = runner.run(mock_strategy([1], [5]), end=3)
    assert _pairs(record.positions) == [(1, 5)]


def test_backtest_runner_range(series, strategy):
    record = BacktestRunner(series).run(strategy, start=5)
    assert _pairs(record.positions) == [(6, 7)]
    assert record.is_closed


def test_backtest_runner_keeps_position_open_at_series_end(series, mock_strategy):
    record = BacktestRunner(series).run(mock_strategy([7], []))
    assert record.position_count == 0
    assert record.current_position.is_opened


def test_unstable_bars_are_absolute(series, mock_strategy):
    record = BacktestRunner(series).run(mock_strategy([1, 3], [5], unstable_bars=2))
    assert _pairs(record.positions) == [(3, 5)]
