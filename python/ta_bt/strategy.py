"""Strategy: an entry rule and an exit rule."""

from __future__ import annotations

from typing import Optional

from .rules import Rule
from .trading_record import TradingRecord


class Strategy:
    """Pair of rules plus the number of leading bars during which it must not trade.

    ``unstable_bars`` is an absolute index threshold: indices below it are
    unstable regardless of the slice being scanned.
    """

    def __init__(self, entry_rule: Rule, exit_rule: Rule, unstable_bars: int = 0, name: str = ""):
        if entry_rule is None or exit_rule is None:
            raise ValueError("Rules cannot be None")
        if unstable_bars < 0:
            raise ValueError("Unstable bars must be >= 0")
        self.entry_rule = entry_rule
        self.exit_rule = exit_rule
        self.unstable_bars = int(unstable_bars)
        self.name = name or f"Strategy({entry_rule}, {exit_rule})"

    def is_unstable_at(self, index: int) -> bool:
        return index < self.unstable_bars

    def should_enter(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        return not self.is_unstable_at(index) and self.entry_rule.is_satisfied(index, trading_record)

    def should_exit(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        return not self.is_unstable_at(index) and self.exit_rule.is_satisfied(index, trading_record)

    def should_operate(self, index: int, trading_record: TradingRecord) -> bool:
        """Entry rule while no position is open, exit rule while one is."""
        position = trading_record.current_position
        if position.is_new:
            return self.should_enter(index, trading_record)
        if position.is_opened:
            return self.should_exit(index, trading_record)
        return False

    def and_(self, other: "Strategy", name: str = "", unstable_bars: Optional[int] = None) -> "Strategy":
        bars = max(self.unstable_bars, other.unstable_bars) if unstable_bars is None else unstable_bars
        return Strategy(
            self.entry_rule & other.entry_rule,
            self.exit_rule & other.exit_rule,
            bars,
            name or f"and({self.name},{other.name})",
        )

    def or_(self, other: "Strategy", name: str = "", unstable_bars: Optional[int] = None) -> "Strategy":
        bars = max(self.unstable_bars, other.unstable_bars) if unstable_bars is None else unstable_bars
        return Strategy(
            self.entry_rule | other.entry_rule,
            self.exit_rule | other.exit_rule,
            bars,
            name or f"or({self.name},{other.name})",
        )

    def opposite(self) -> "Strategy":
        """Entry and exit rules swapped."""
        return Strategy(self.exit_rule, self.entry_rule, self.unstable_bars, f"opposite({self.name})")

    def __repr__(self) -> str:
        return f"Strategy(name={self.name!r}, unstable_bars={self.unstable_bars})"
