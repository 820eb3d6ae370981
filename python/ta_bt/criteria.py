"""Analysis criteria: score a position or a whole trading record."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .metrics import cash_flow, max_drawdown
from .num import Num, is_greater_than, is_less_than
from .position import Position
from .runner import BacktestRunner
from .series import BarSeries
from .strategy import Strategy
from .trading_record import TradingRecord
from .types import TradeType

logger = logging.getLogger(__name__)


class AnalysisCriterion:
    """Scores trading results; ``better_than`` says which of two scores wins."""

    def calculate_position(self, series: BarSeries, position: Position) -> Num:
        raise NotImplementedError

    def calculate(self, series: BarSeries, record: TradingRecord) -> Num:
        raise NotImplementedError

    def better_than(self, a: Num, b: Num) -> bool:
        return is_greater_than(a, b)

    def choose_best(
        self,
        runner: BacktestRunner,
        strategies: Iterable[Strategy],
        starting_type: TradeType = TradeType.BUY,
        amount: Num = 1,
    ) -> Optional[Strategy]:
        """Run each strategy on ``runner`` and keep the best by this criterion."""
        best: Optional[Strategy] = None
        best_value = None
        for strategy in strategies:
            value = self.calculate(runner.series, runner.run(strategy, starting_type, amount))
            logger.debug("%s: %s = %s", strategy.name, self, value)
            if best is None or self.better_than(value, best_value):
                best, best_value = strategy, value
        return best

    def __str__(self) -> str:
        return type(self).__name__


class GrossReturnCriterion(AnalysisCriterion):
    """Product of the positions' gross returns (1 when nothing was traded)."""

    def calculate_position(self, series: BarSeries, position: Position) -> Num:
        if not position.is_closed:
            return series.num_factory.one()
        return position.gross_return_in(series)

    def calculate(self, series: BarSeries, record: TradingRecord) -> Num:
        total = series.num_factory.one()
        for p in record.positions:
            total = total * self.calculate_position(series, p)
        return total


class ProfitLossCriterion(AnalysisCriterion):
    """Sum of the positions' net profits (0 when nothing was traded)."""

    def calculate_position(self, series: BarSeries, position: Position) -> Num:
        if not position.is_closed:
            return series.num_factory.zero()
        return position.profit

    def calculate(self, series: BarSeries, record: TradingRecord) -> Num:
        total = series.num_factory.zero()
        for p in record.positions:
            total = total + self.calculate_position(series, p)
        return total


class NumberOfPositionsCriterion(AnalysisCriterion):
    """Number of closed positions; fewer is better."""

    def calculate_position(self, series: BarSeries, position: Position) -> Num:
        return series.num_factory.one()

    def calculate(self, series: BarSeries, record: TradingRecord) -> Num:
        return series.num_of(record.position_count)

    def better_than(self, a: Num, b: Num) -> bool:
        return is_less_than(a, b)


class MaximumDrawdownCriterion(AnalysisCriterion):
    """Largest peak-to-trough fall of the cash-flow curve; lower is better."""

    def calculate_position(self, series: BarSeries, position: Position) -> Num:
        if position.entry is None or not position.is_closed:
            return series.num_factory.zero()
        record = TradingRecord(position.starting_type, position.transaction_cost_model, position.holding_cost_model)
        record.operate(position.entry.index, position.entry.price_per_asset, position.entry.amount)
        record.operate(position.exit.index, position.exit.price_per_asset, position.exit.amount)
        return self.calculate(series, record)

    def calculate(self, series: BarSeries, record: TradingRecord) -> Num:
        if not record.positions:
            return series.num_factory.zero()
        return series.num_of(max_drawdown(cash_flow(series, record)))

    def better_than(self, a: Num, b: Num) -> bool:
        return is_less_than(a, b)
