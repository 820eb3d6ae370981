"""Backtest run loops.

- ``BacktestRunner``: one strategy over an index range, returns a trading record
- ``SliceRunner``: walk-forward over the slices of a slicer, one result per slice

Orders are filled at the close of the bar where the rule fires. Indices are
scanned left to right in a single pass.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from .cost_model import CostModel, ZeroCostModel
from .num import Num, num_like
from .position import Position
from .series import BarSeries
from .slicer import Slicer
from .strategy import Strategy
from .trading_record import TradingRecord
from .types import IllegalStateError, TradeType

logger = logging.getLogger(__name__)


class BacktestRunner:
    """Runs strategies over a whole series (or an index range of it)."""

    def __init__(
        self,
        series: BarSeries,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
    ):
        if series is None:
            raise ValueError("Series cannot be None")
        self.series = series
        self.transaction_cost_model = transaction_cost_model if transaction_cost_model is not None else ZeroCostModel()
        self.holding_cost_model = holding_cost_model if holding_cost_model is not None else ZeroCostModel()

    def run(
        self,
        strategy: Strategy,
        starting_type: TradeType = TradeType.BUY,
        amount: Num = 1,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> TradingRecord:
        """Trade ``strategy`` over ``[start, end]``.

        A position still open at ``end`` is followed (exit rule only) up to
        the end of the series.
        """
        if strategy is None:
            raise ValueError("Strategy cannot be None")
        series = self.series
        start = series.begin_index if start is None else max(start, series.begin_index)
        end = series.end_index if end is None else min(end, series.end_index)

        record = TradingRecord(starting_type, self.transaction_cost_model, self.holding_cost_model, name=strategy.name)
        logger.info("Running %s on %r from %d to %d", strategy.name, series.name, start, end)

        for i in range(start, end + 1):
            if strategy.should_operate(i, record):
                _fill(series, record, i, amount)

        if not record.is_closed:
            # Keep looking for the exit past the requested range.
            for i in range(end + 1, series.end_index + 1):
                if strategy.should_exit(i, record):
                    _fill(series, record, i, amount)
                    break

        logger.info("Finished %s: %d position(s), open=%s", strategy.name, record.position_count, not record.is_closed)
        return record


class SliceRunner:
    """Walk-forward runner.

    ``run(k)`` returns the positions closed during that call: the ones
    entered in slice ``k``, plus a position carried over from an earlier
    slice that closes now. A position still open at the end of its slice is
    followed (exit rule only) through the slices the slicer knows about;
    when it closes there, it belongs to slice ``k``'s result. When it does
    not, it stays open in the runner and is continued by the next call.
    ``lookahead`` caps how many following slices are searched for that exit
    (all known ones by default; 0 leaves the position to the next call).

    Every index is scanned once, left to right: each call resumes after the
    highest index scanned so far. Bars appended to the series after a slice
    was resolved are scanned by the next call. Re-requesting the last
    resolved slice scans its new tail and extends its result; earlier
    results never change.

    Slices must be requested in order: ``run(k)`` needs ``run(k - 1)``.
    """

    def __init__(
        self,
        slicer: Union[Slicer, BarSeries],
        strategy: Strategy,
        starting_type: TradeType = TradeType.BUY,
        amount: Num = 1,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
        lookahead: Optional[int] = None,
    ):
        if slicer is None or strategy is None or starting_type is None:
            raise ValueError("Arguments cannot be None")
        if isinstance(slicer, BarSeries):
            slicer = Slicer(slicer)
        self.slicer = slicer
        self.strategy = strategy
        self.starting_type = TradeType.parse(starting_type)
        self.amount = amount
        self.lookahead = lookahead
        self.trading_record = TradingRecord(
            self.starting_type, transaction_cost_model, holding_cost_model, name=strategy.name
        )
        self._results: List[List[Position]] = []
        self._scanned_to = -1


    @property
    def series(self) -> BarSeries:
        return self.slicer.series

    @property
    def results(self) -> List[List[Position]]:
        return [list(r) for r in self._results]

    @property
    def scanned_to(self) -> int:
        """Highest index scanned so far (-1 before the first call)."""
        return self._scanned_to

    def run(self, slice_index: Optional[int] = None) -> List[Position]:
        """Positions of slice ``slice_index``, or of every slice when omitted."""
        if slice_index is None:
            return self._run_all()
        if slice_index < 0:
            raise ValueError(f"Slice index must be >= 0, got {slice_index}")
        resolved = len(self._results)
        if slice_index > resolved:
            raise IllegalStateError(f"Slice {slice_index} requested before slice {resolved} was resolved")

        slices = self.slicer.slices
        if slice_index < resolved:
            if slice_index == resolved - 1 and slices[slice_index].end_index > self._scanned_to:
                self._results[slice_index].extend(self._extend(slice_index, slices))
            return list(self._results[slice_index])

        if slice_index >= len(slices):
            raise ValueError(f"Slice {slice_index} does not exist ({len(slices)} slice(s) known)")
        result = self._resolve(slice_index, slices)
        self._results.append(result)
        return list(result)

    def _run_all(self) -> List[Position]:
        logger.info("Walk-forward %s over %d slice(s)", self.strategy.name, self.slicer.slice_count)
        # the last resolved slice first, in case it has grown
        for k in range(max(len(self._results) - 1, 0), self.slicer.slice_count):
            self.run(k)
        positions = [p for r in self._results for p in r]
        logger.info("Walk-forward %s finished: %d position(s)", self.strategy.name, len(positions))
        return positions

    def _resolve(self, k: int, slices: List[BarSeries]) -> List[Position]:
        record = self.trading_record
        sub = slices[k]
        closed_before = record.position_count

        if k > 0:
            # bars appended to the previous slice after it was resolved
            prev = slices[k - 1]
            self._scan(k - 1, self._scanned_to + 1, min(prev.end_index, sub.begin_index - 1))
        if record.current_position.is_opened:
            # carried position: follow it over the bars between the slices
            self._scan_exits(self._scanned_to + 1, sub.begin_index - 1)

        begin = max(sub.begin_index, self._scanned_to + 1)
        if begin > sub.end_index:
            logger.debug("Slice %d [%d, %d]: nothing to scan from %d", k, sub.begin_index, sub.end_index, begin)
        self._scan(k, begin, sub.end_index)
        self._follow(k, slices)
        return record.positions[closed_before:]

    def _extend(self, k: int, slices: List[BarSeries]) -> List[Position]:
        record = self.trading_record
        closed_before = record.position_count
        sub = slices[k]
        logger.debug("Slice %d grew to index %d", k, sub.end_index)
        self._scan(k, max(sub.begin_index, self._scanned_to + 1), sub.end_index)
        self._follow(k, slices)
        return record.positions[closed_before:]

    def _scan(self, k: int, first: int, last: int) -> None:
        if first > last:
            return
        logger.debug("Slice %d: scanning [%d, %d]", k, first, last)
        record = self.trading_record
        for i in range(first, last + 1):
            if self.strategy.should_operate(i, record):
                _fill(self.series, record, i, self.amount)
            self._mark_scanned(i)

    def _follow(self, k: int, slices: List[BarSeries]) -> None:
        record = self.trading_record
        if not record.current_position.is_opened:
            return
        following = slices[k + 1:] if self.lookahead is None else slices[k + 1:k + 1 + self.lookahead]
        for nxt in following:
            if self._scan_exits(max(nxt.begin_index, self._scanned_to + 1), nxt.end_index):
                return
        logger.debug(
            "Slice %d: position entered at %d still open after index %d",
            k, record.current_position.entry.index, self._scanned_to,
        )

    def _scan_exits(self, first: int, last: int) -> bool:
        """Exit-only scan of ``[first, last]``; True when the position closed."""
        record = self.trading_record
        for i in range(first, last + 1):
            self._mark_scanned(i)
            if self.strategy.should_exit(i, record):
                _fill(self.series, record, i, self.amount)
                return True
        return False

    def _mark_scanned(self, index: int) -> None:
        if index > self._scanned_to:
            self._scanned_to = index


def _fill(series: BarSeries, record: TradingRecord, index: int, amount: Num) -> None:
    price = series.get_bar(index).close
    record.operate(index, price, num_like(amount, price))
