"""Built-in strategies.

- ``sma_cross``: long when the fast SMA crosses above the slow SMA, out on the
  cross back down
- ``sma_stack``: long while SMA(week) > SMA(fast) > SMA(slow) with the close
  above SMA(week); out on the week/fast cross down (after a minimum hold) or
  on the stops
"""

from __future__ import annotations

from typing import Optional

from .config import SmaCrossConfig, SmaStackConfig
from .indicators import ClosePriceIndicator, SMAIndicator
from .registry import StrategyRegistry
from .rules import crossed_down, crossed_up, over, stop_gain, stop_loss, wait_for
from .series import BarSeries
from .strategy import Strategy
from .types import TradeType


def build_sma_cross(series: BarSeries, cfg: Optional[SmaCrossConfig] = None, **params) -> Strategy:
    cfg = cfg or (SmaCrossConfig.from_params_dict(params) if params else SmaCrossConfig())
    if cfg.fast >= cfg.slow:
        raise ValueError(f"fast window ({cfg.fast}) must be shorter than slow window ({cfg.slow})")
    close = ClosePriceIndicator(series)
    fast = SMAIndicator(close, cfg.fast)
    slow = SMAIndicator(close, cfg.slow)
    return Strategy(
        crossed_up(fast, slow),
        crossed_down(fast, slow),
        unstable_bars=slow.unstable_bars,
        name=f"sma_cross({cfg.fast},{cfg.slow})",
    )


def build_sma_stack(series: BarSeries, cfg: Optional[SmaStackConfig] = None, **params) -> Strategy:
    cfg = cfg or (SmaStackConfig.from_params_dict(params) if params else SmaStackConfig())
    if not cfg.sma_week < cfg.sma_fast < cfg.sma_slow:
        raise ValueError("SMA windows must satisfy week < fast < slow")
    close = ClosePriceIndicator(series)
    week = SMAIndicator(close, cfg.sma_week)
    fast = SMAIndicator(close, cfg.sma_fast)
    slow = SMAIndicator(close, cfg.sma_slow)

    entry = over(week, fast) & over(fast, slow) & over(close, week)

    exit_rule = crossed_down(week, fast)
    if cfg.min_hold_bars > 0:
        exit_rule = exit_rule & wait_for(TradeType.BUY, cfg.min_hold_bars)
    if cfg.stop_loss_pct > 0:
        exit_rule = exit_rule | stop_loss(close, cfg.stop_loss_pct)
    if cfg.stop_gain_pct > 0:
        exit_rule = exit_rule | stop_gain(close, cfg.stop_gain_pct)

    return Strategy(
        entry,
        exit_rule,
        unstable_bars=slow.unstable_bars,
        name=f"sma_stack({cfg.sma_week},{cfg.sma_fast},{cfg.sma_slow})",
    )


def register_default_strategies(registry: StrategyRegistry) -> StrategyRegistry:
    registry.register("sma_cross", build_sma_cross)
    registry.register("sma_stack", build_sma_stack)
    return registry
