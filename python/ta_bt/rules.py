"""Trading rules.

A rule answers "is the condition met at this index?", optionally looking at
the trading record. The set of rule variants is closed:

- ``PredicateRule``: a leaf wrapping a function ``(index, record) -> bool``
- ``AndRule`` / ``OrRule``: binary, short-circuit left to right
- ``NotRule``: negation

Leaves are built by the factory functions at the bottom of this module
(``over``, ``crossed_up``, ``stop_loss``, ...). Compose with ``&``, ``|``
and ``~`` (or ``and_``, ``or_``, ``negation``).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

from .indicators import CrossIndicator, Indicator, as_indicator
from .num import Num, is_greater_than, is_greater_than_or_equal, is_less_than, is_less_than_or_equal, num_like
from .trading_record import TradingRecord
from .types import TradeType

logger = logging.getLogger(__name__)

Predicate = Callable[[int, Optional[TradingRecord]], bool]


class Rule(ABC):
    name: str = ""

    @abstractmethod
    def is_satisfied(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        ...

    def _trace(self, index: int, satisfied: bool) -> bool:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s#is_satisfied(%d): %s", self, index, satisfied)
        return satisfied

    def and_(self, other: "Rule") -> "Rule":
        return AndRule(self, other)

    def or_(self, other: "Rule") -> "Rule":
        return OrRule(self, other)

    def negation(self) -> "Rule":
        return NotRule(self)

    def __and__(self, other: "Rule") -> "Rule":
        return AndRule(self, other)

    def __or__(self, other: "Rule") -> "Rule":
        return OrRule(self, other)

    def __invert__(self) -> "Rule":
        return NotRule(self)

    def __str__(self) -> str:
        return self.name or type(self).__name__


class PredicateRule(Rule):
    """Leaf rule around a plain function."""

    def __init__(self, predicate: Predicate, name: str = ""):
        if predicate is None:
            raise ValueError("Predicate cannot be None")
        self.predicate = predicate
        self.name = name or getattr(predicate, "__name__", "Predicate")

    def is_satisfied(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        return self._trace(index, bool(self.predicate(index, trading_record)))


class AndRule(Rule):
    def __init__(self, left: Rule, right: Rule):
        if left is None or right is None:
            raise ValueError("Rules cannot be None")
        self.left = left
        self.right = right
        self.name = f"({left} AND {right})"

    def is_satisfied(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        satisfied = self.left.is_satisfied(index, trading_record) and self.right.is_satisfied(index, trading_record)
        return self._trace(index, satisfied)


class OrRule(Rule):
    def __init__(self, left: Rule, right: Rule):
        if left is None or right is None:
            raise ValueError("Rules cannot be None")
        self.left = left
        self.right = right
        self.name = f"({left} OR {right})"

    def is_satisfied(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        satisfied = self.left.is_satisfied(index, trading_record) or self.right.is_satisfied(index, trading_record)
        return self._trace(index, satisfied)


class NotRule(Rule):
    def __init__(self, rule: Rule):
        if rule is None:
            raise ValueError("Rule cannot be None")
        self.rule = rule
        self.name = f"NOT {rule}"

    def is_satisfied(self, index: int, trading_record: Optional[TradingRecord] = None) -> bool:
        return self._trace(index, not self.rule.is_satisfied(index, trading_record))


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

Operand = Union[Indicator, int, float, Num]


def boolean_rule(value: bool) -> Rule:
    value = bool(value)
    return PredicateRule(lambda index, record: value, name=f"Boolean({value})")


def fixed_rule(*indexes: int) -> Rule:
    """Satisfied exactly at the given indices."""
    wanted = frozenset(int(i) for i in indexes)
    return PredicateRule(lambda index, record: index in wanted, name=f"Fixed{sorted(wanted)}")


def over(first: Indicator, second: Operand) -> Rule:
    """``first[i] > second[i]`` (``second`` may be a number)."""
    second = as_indicator(first.series, second)
    return PredicateRule(
        lambda index, record: is_greater_than(first.get_value(index), second.get_value(index)),
        name=f"Over({first!r}, {second!r})",
    )


def under(first: Indicator, second: Operand) -> Rule:
    """``first[i] < second[i]`` (``second`` may be a number)."""
    second = as_indicator(first.series, second)
    return PredicateRule(
        lambda index, record: is_less_than(first.get_value(index), second.get_value(index)),
        name=f"Under({first!r}, {second!r})",
    )


def crossed_up(first: Indicator, second: Operand) -> Rule:
    """``first`` crosses above ``second`` at the index."""
    second = as_indicator(first.series, second)
    cross = CrossIndicator(second, first)
    return PredicateRule(lambda index, record: cross.get_value(index), name=f"CrossedUp({first!r}, {second!r})")


def crossed_down(first: Indicator, second: Operand) -> Rule:
    """``first`` crosses below ``second`` at the index."""
    second = as_indicator(first.series, second)
    cross = CrossIndicator(first, second)
    return PredicateRule(lambda index, record: cross.get_value(index), name=f"CrossedDown({first!r}, {second!r})")


def stop_loss(price: Indicator, loss_percentage: float) -> Rule:
    """Open position lost ``loss_percentage`` percent of its entry net price."""

    def check(index: int, record: Optional[TradingRecord]) -> bool:
        if record is None or not record.current_position.is_opened:
            return False
        entry = record.current_position.entry
        entry_price = entry.net_price
        current = price.get_value(index)
        hundred = num_like(100, entry_price)
        pct = num_like(loss_percentage, entry_price)
        if entry.is_buy:
            return is_less_than_or_equal(current, entry_price * (hundred - pct) / hundred)
        return is_greater_than_or_equal(current, entry_price * (hundred + pct) / hundred)

    return PredicateRule(check, name=f"StopLoss({loss_percentage}%)")


def stop_gain(price: Indicator, gain_percentage: float) -> Rule:
    """Open position gained ``gain_percentage`` percent over its entry net price."""

    def check(index: int, record: Optional[TradingRecord]) -> bool:
        if record is None or not record.current_position.is_opened:
            return False
        entry = record.current_position.entry
        entry_price = entry.net_price
        current = price.get_value(index)
        hundred = num_like(100, entry_price)
        pct = num_like(gain_percentage, entry_price)
        if entry.is_buy:
            return is_greater_than_or_equal(current, entry_price * (hundred + pct) / hundred)
        return is_less_than_or_equal(current, entry_price * (hundred - pct) / hundred)

    return PredicateRule(check, name=f"StopGain({gain_percentage}%)")


def wait_for(trade_type: TradeType, bar_count: int) -> Rule:
    """At least ``bar_count`` bars elapsed since the last order of ``trade_type``."""
    trade_type = TradeType.parse(trade_type)

    def check(index: int, record: Optional[TradingRecord]) -> bool:
        if record is None:
            return False
        last = record.last_order(trade_type)
        return last is not None and index - last.index >= bar_count

    return PredicateRule(check, name=f"WaitFor({trade_type.value}, {bar_count})")
