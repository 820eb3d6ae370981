"""Very small random-search optimizer.

Samples strategy parameters from a hand-picked grid, backtests each sample on
a training window and ranks the samples by an analysis criterion.
For anything serious, replace this with a mature library.
"""

from __future__ import annotations

import functools
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .config import BacktestConfig, CostConfig
from .cost_model import from_config
from .criteria import AnalysisCriterion, GrossReturnCriterion
from .data_provider import OhlcvFrame, series_from_frame
from .metrics import cagr, cash_flow, max_drawdown
from .num import Num
from .registry import StrategyRegistry
from .runner import BacktestRunner

logger = logging.getLogger(__name__)

SMA_STACK_GRID: Dict[str, Sequence] = {
    "SmaWeek": [3, 5, 7],
    "SmaFast": [15, 20, 25],
    "SmaSlow": [40, 60],
    "StopLossPct": [0.0, 3.0, 5.0, 8.0],
    "StopGainPct": [0.0, 10.0, 20.0],
    "MinHoldDays": [1, 3, 5],
}


@dataclass(frozen=True)
class OptResult:
    score: Num
    cagr: float
    max_dd: float
    positions: int
    params: dict


def random_search(
    frame: OhlcvFrame,
    strategy_name: str,
    registry: StrategyRegistry,
    grid: Dict[str, Sequence] = SMA_STACK_GRID,
    train_start: Optional[str] = None,
    train_end: Optional[str] = None,
    n_evals: int = 50,
    seed: int = 7,
    criterion: Optional[AnalysisCriterion] = None,
    bt_cfg: BacktestConfig = BacktestConfig(),
    cost_cfg: CostConfig = CostConfig(),
) -> List[OptResult]:
    """Random search over ``grid``; returns results best-first."""
    rng = random.Random(seed)
    criterion = criterion or GrossReturnCriterion()

    # Slice frame to training window (by index)
    df_train = frame.df.loc[train_start:train_end].copy()
    series = series_from_frame(OhlcvFrame(df=df_train, symbol=frame.symbol), num_factory=bt_cfg.num_factory())
    transaction, holding = from_config(cost_cfg)
    runner = BacktestRunner(series, transaction, holding)

    results: List[OptResult] = []
    seen = set()
    for _ in range(int(n_evals)):
        params = {k: rng.choice(list(v)) for k, v in grid.items()}
        key = tuple(sorted(params.items()))
        if key in seen:
            continue
        seen.add(key)
        try:
            strategy = registry.build(strategy_name, series, **params)
        except ValueError as e:
            logger.debug("Skipping invalid parameters %s: %s", params, e)
            continue

        record = runner.run(strategy, bt_cfg.trade_type, bt_cfg.amount)
        eq = cash_flow(series, record)
        results.append(
            OptResult(
                score=criterion.calculate(series, record),
                cagr=cagr(eq),
                max_dd=max_drawdown(eq),
                positions=record.position_count,
                params=params,
            )
        )

    def compare(a: OptResult, b: OptResult) -> int:
        if criterion.better_than(a.score, b.score):
            return -1
        if criterion.better_than(b.score, a.score):
            return 1
        return 0

    # sort best-first
    results.sort(key=functools.cmp_to_key(compare))
    logger.info("Random search on %s: %d evaluation(s), best=%s", strategy_name, len(results),
                results[0].params if results else None)
    return results


def results_frame(results: Sequence[OptResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        d = dict(r.params)
        d.update({"score": float(r.score), "cagr": r.cagr, "max_dd": r.max_dd, "positions": r.positions})
        rows.append(d)
    return pd.DataFrame(rows)
