"""Configuration objects.

Style rules:
- keep signatures stable (no alias chaos)
- prefer explicit field names
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .num import NumFactory, factory_for
from .types import TradeType


def _from_mapping(cls, mapping: dict, d: dict):
    kwargs = {}
    for k, v in (d or {}).items():
        if k in mapping:
            kwargs[mapping[k]] = v
    return cls(**kwargs)


@dataclass(frozen=True)
class CostConfig:
    """Transaction and holding costs."""

    # Commission on every order, as a fraction of the traded value
    commission_rate: float = 0.0

    # Short borrow cost (annual) -> per bar while short
    short_borrow_annual_rate: float = 0.0

    # Day-count convention for converting the annual borrow rate to a per-bar rate.
    # For stock-borrow interest on daily bars, calendar-day /365 is a reasonable default.
    short_borrow_day_count: int = 365

    @classmethod
    def from_params_dict(cls, d: dict) -> "CostConfig":
        mapping = {
            "CommissionRate": "commission_rate",
            "ShortBorrowAnnualRate": "short_borrow_annual_rate",
            "ShortBorrowDayCount": "short_borrow_day_count",
        }
        return _from_mapping(cls, mapping, d)


@dataclass(frozen=True)
class BacktestConfig:
    """Backtest run configuration.

    Notes:
    - orders are filled at the close of the bar where the rule fires
    - ``numeric`` selects the number family of the loaded series
      ("double" or "decimal")
    """

    symbol: str = ""
    starting_type: str = "BUY"
    amount: float = 1.0
    numeric: str = "double"
    decimal_precision: int = 32

    @property
    def trade_type(self) -> TradeType:
        return TradeType.parse(self.starting_type)

    def num_factory(self) -> NumFactory:
        return factory_for(self.numeric, self.decimal_precision)


@dataclass(frozen=True)
class WalkForwardConfig:
    """Length of the walk-forward slices (calendar offset) and optional first period start."""

    years: int = 1
    months: int = 0
    days: int = 0
    period_begin: Optional[str] = None

    def offset(self) -> pd.DateOffset:
        if self.years <= 0 and self.months <= 0 and self.days <= 0:
            raise ValueError("Walk-forward period must be positive")
        return pd.DateOffset(years=self.years, months=self.months, days=self.days)

    def begin_timestamp(self) -> Optional[pd.Timestamp]:
        if self.period_begin is None:
            return None
        return pd.Timestamp(self.period_begin)


@dataclass(frozen=True)
class SmaCrossConfig:
    """Plain fast/slow SMA crossover."""

    fast: int = 10
    slow: int = 30

    @classmethod
    def from_params_dict(cls, d: dict) -> "SmaCrossConfig":
        """Keys are PascalCase (e.g., SmaFast). Unknown keys are ignored."""
        mapping = {
            "SmaFast": "fast",
            "SmaSlow": "slow",
        }
        return _from_mapping(cls, mapping, d)


@dataclass(frozen=True)
class SmaStackConfig:
    """Stacked SMA trend-following parameters (long side)."""

    sma_week: int = 5
    sma_fast: int = 20
    sma_slow: int = 40

    # stops, as percentages of the entry price (0 disables)
    stop_loss_pct: float = 5.0
    stop_gain_pct: float = 0.0

    # anti-whipsaw: bars to hold before the trend exit may fire
    min_hold_bars: int = 3

    @classmethod
    def from_params_dict(cls, d: dict) -> "SmaStackConfig":
        """Create SmaStackConfig from an optimizer ParamsJson dict.

        Keys are typically PascalCase (e.g., SmaWeek). Unknown keys are ignored.
        """
        mapping = {
            "SmaWeek": "sma_week",
            "SmaFast": "sma_fast",
            "SmaSlow": "sma_slow",
            "StopLossPct": "stop_loss_pct",
            "StopGainPct": "stop_gain_pct",
            "MinHoldDays": "min_hold_bars",
        }
        return _from_mapping(cls, mapping, d)
