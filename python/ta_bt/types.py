"""Shared types.

The guiding principle is to keep the runtime objects small and explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .num import Num


class IllegalStateError(RuntimeError):
    """An operation was attempted in a state that does not allow it.

    Signals a caller or logic defect (operating a closed position, exiting
    before the entry, asking for the profit of an open position, ...).
    """


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    def complement(self) -> "TradeType":
        return TradeType.SELL if self is TradeType.BUY else TradeType.BUY

    @classmethod
    def parse(cls, value) -> "TradeType":
        if isinstance(value, TradeType):
            return value
        if value is None:
            raise ValueError("Trade type cannot be None")
        return cls(str(value).strip().upper())


@dataclass(frozen=True)
class Bar:
    """OHLCV bar covering ``[begin_time, end_time)``.

    All prices must come from the numeric factory of the series holding the
    bar. OHLC ordering (high >= max(open, close) ...) is assumed, not checked.
    """

    begin_time: datetime
    end_time: datetime
    open: Num
    high: Num
    low: Num
    close: Num
    volume: Num
    trade_count: int = 0

    def __post_init__(self):
        if self.end_time <= self.begin_time:
            raise ValueError(f"Bar end_time {self.end_time} must be after begin_time {self.begin_time}")

    @property
    def time_period(self) -> timedelta:
        return self.end_time - self.begin_time

    def in_period(self, ts: datetime) -> bool:
        return self.begin_time <= ts < self.end_time

    def is_bullish(self) -> bool:
        return self.close > self.open

    def is_bearish(self) -> bool:
        return self.close < self.open
