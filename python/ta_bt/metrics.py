"""Performance metrics."""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from .position import Position
from .series import BarSeries
from .trading_record import TradingRecord


def _ratio(is_long: bool, entry_price: float, price: float) -> float:
    if is_long:
        return price / entry_price
    return 2.0 - price / entry_price


def cash_flow(series: BarSeries, record: TradingRecord, final_index: Optional[int] = None) -> pd.Series:
    """Equity curve (starts at 1.0) of a trading record, indexed by bar end time.

    Each position compounds the value it entered with; closes in between are
    valued net of the average holding cost per bar. An open position is
    marked at the close of ``final_index`` when one is given.
    """
    begin, end = series.begin_index, series.end_index
    n = end - begin + 1
    if n <= 0:
        return pd.Series([], dtype=float, name="CashFlow")

    values = np.full(n, np.nan)
    values[0] = 1.0
    filled = 0  # values[: filled + 1] are set

    def fill_to(k: int) -> None:
        nonlocal filled
        if k > filled:
            values[filled + 1: k + 1] = values[filled]
            filled = k

    def accrue(position: Position, last_index: int) -> None:
        nonlocal filled
        entry = position.entry
        if entry.index < begin or entry.index > end:
            return
        stop = min(last_index, end)
        if position.exit is not None:
            stop = min(stop, position.exit.index)
        fill_to(entry.index - begin)
        base = values[entry.index - begin]
        # Position is not valid if the net balance at the entry is not positive
        if not base > 0:
            return

        is_long = entry.is_buy
        periods = stop - entry.index
        holding = float(position.holding_cost(stop))
        avg_cost = holding / periods if periods > 0 else 0.0
        adjust = -avg_cost if is_long else avg_cost
        entry_price = float(entry.net_price)

        for i in range(entry.index + 1, stop):
            price = float(series.get_bar(i).close) + adjust
            values[i - begin] = base * _ratio(is_long, entry_price, price)
        if position.exit is not None and position.exit.index == stop:
            exit_price = float(position.exit.net_price)
        else:
            exit_price = float(series.get_bar(stop).close)
        if stop > entry.index:
            values[stop - begin] = base * _ratio(is_long, entry_price, exit_price + adjust)
        filled = max(filled, stop - begin)

    for p in record.positions:
        accrue(p, p.exit.index)
    current = record.current_position
    if final_index is not None and current.is_opened:
        accrue(current, final_index)
    fill_to(n - 1)

    idx = pd.Index([series.get_bar(i).end_time for i in range(begin, end + 1)], name="Date")
    return pd.Series(values, index=idx, name="CashFlow")


def max_drawdown(equity: pd.Series) -> float:
    """Maximum drawdown (as positive fraction)."""
    x = equity.astype(float).to_numpy()
    if len(x) == 0:
        return float("nan")
    peak = np.maximum.accumulate(x)
    dd = 1.0 - (x / np.maximum(peak, np.finfo(float).tiny))
    return float(np.nanmax(dd))


def cagr(equity: pd.Series) -> float:
    """CAGR from first to last point using calendar days."""
    if len(equity) < 2:
        return float("nan")
    start = pd.Timestamp(equity.index[0])
    end = pd.Timestamp(equity.index[-1])
    days = (end.date() - start.date()).days
    if days <= 0:
        return float("nan")
    total = float(equity.iloc[-1] / equity.iloc[0])
    return total ** (365.0 / days) - 1.0
