"""Backtest entry points returning in-memory pandas results.

Nothing here writes files; callers decide what to persist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import pandas as pd

from .config import BacktestConfig, CostConfig, WalkForwardConfig
from .cost_model import from_config
from .criteria import GrossReturnCriterion, MaximumDrawdownCriterion, NumberOfPositionsCriterion, ProfitLossCriterion
from .data_provider import OhlcvFrame, series_from_frame
from .metrics import cagr, cash_flow
from .position import Position
from .registry import StrategyRegistry
from .runner import BacktestRunner, SliceRunner
from .series import BarSeries
from .slicer import RegularSlicer
from .strategies import register_default_strategies
from .trading_record import TradingRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestResult:
    series: BarSeries
    record: TradingRecord
    positions: pd.DataFrame
    equity: pd.Series
    summary: Dict[str, float]


@dataclass(frozen=True)
class WalkForwardResult:
    series: BarSeries
    slices: pd.DataFrame  # one row per slice
    positions: pd.DataFrame


def positions_frame(positions: Iterable[Position], series: Optional[BarSeries] = None) -> pd.DataFrame:
    """One row per closed position."""
    rows = []
    for p in positions:
        if not p.is_closed:
            continue
        row = {
            "entry_index": p.entry.index,
            "exit_index": p.exit.index,
            "type": p.starting_type.value,
            "amount": float(p.entry.amount),
            "entry_price": float(p.entry.price_per_asset),
            "exit_price": float(p.exit.price_per_asset),
            "cost": float(p.position_cost()),
            "profit": float(p.profit),
            "gross_return": float(p.gross_return),
        }
        if series is not None:
            row["entry_time"] = series.get_bar(p.entry.index).end_time
            row["exit_time"] = series.get_bar(p.exit.index).end_time
        rows.append(row)
    columns = [
        "entry_index", "exit_index", "type", "amount", "entry_price", "exit_price",
        "cost", "profit", "gross_return",
    ]
    if series is not None:
        columns += ["entry_time", "exit_time"]
    return pd.DataFrame(rows, columns=columns)


def summarize(series: BarSeries, record: TradingRecord) -> Dict[str, float]:
    equity = cash_flow(series, record)
    return {
        "positions": float(NumberOfPositionsCriterion().calculate(series, record)),
        "gross_return": float(GrossReturnCriterion().calculate(series, record)),
        "profit_loss": float(ProfitLossCriterion().calculate(series, record)),
        "max_drawdown": float(MaximumDrawdownCriterion().calculate(series, record)),
        "cagr": cagr(equity),
    }


def _default_registry(registry: Optional[StrategyRegistry]) -> StrategyRegistry:
    if registry is not None:
        return registry
    return register_default_strategies(StrategyRegistry())


def run_backtest(
    frame: OhlcvFrame,
    strategy_name: str,
    params: Optional[dict] = None,
    bt_cfg: BacktestConfig = BacktestConfig(),
    cost_cfg: CostConfig = CostConfig(),
    registry: Optional[StrategyRegistry] = None,
) -> BacktestResult:
    """Whole-series backtest of a registered strategy."""
    series = series_from_frame(frame, num_factory=bt_cfg.num_factory())
    strategy = _default_registry(registry).build(strategy_name, series, **(params or {}))
    transaction, holding = from_config(cost_cfg)

    record = BacktestRunner(series, transaction, holding).run(strategy, bt_cfg.trade_type, bt_cfg.amount)
    return BacktestResult(
        series=series,
        record=record,
        positions=positions_frame(record.positions, series),
        equity=cash_flow(series, record),
        summary=summarize(series, record),
    )


def run_walk_forward(
    frame: OhlcvFrame,
    strategy_name: str,
    params: Optional[dict] = None,
    wf_cfg: WalkForwardConfig = WalkForwardConfig(),
    bt_cfg: BacktestConfig = BacktestConfig(),
    cost_cfg: CostConfig = CostConfig(),
    registry: Optional[StrategyRegistry] = None,
) -> WalkForwardResult:
    """Walk-forward run of a registered strategy, one row per calendar slice."""
    series = series_from_frame(frame, num_factory=bt_cfg.num_factory())
    strategy = _default_registry(registry).build(strategy_name, series, **(params or {}))
    transaction, holding = from_config(cost_cfg)

    slicer = RegularSlicer(series, wf_cfg.offset(), wf_cfg.begin_timestamp())
    runner = SliceRunner(slicer, strategy, bt_cfg.trade_type, bt_cfg.amount, transaction, holding)
    runner.run()

    criterion = GrossReturnCriterion()
    rows = []
    all_positions = []
    for k, (sub, positions) in enumerate(zip(slicer.slices, runner.results)):
        gross = series.num_factory.one()
        for p in positions:
            gross = gross * criterion.calculate_position(series, p)
        rows.append({
            "slice": k,
            "begin_index": sub.begin_index,
            "end_index": sub.end_index,
            "begin_time": sub.first_bar.end_time,
            "end_time": sub.last_bar.end_time,
            "positions": len(positions),
            "gross_return": float(gross),
        })
        all_positions.extend(positions)
    logger.info("Walk-forward %s: %d slice(s), %d position(s)", strategy.name, len(rows), len(all_positions))
    return WalkForwardResult(
        series=series,
        slices=pd.DataFrame(rows),
        positions=positions_frame(all_positions, series),
    )
