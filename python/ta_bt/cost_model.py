"""Cost models for simulated trades.

Two kinds of cost are charged to a position:
- transaction cost: applied on every order (entry and exit)
- holding cost: accrued per elapsed bar while the position is open
  (short borrow interest)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from .config import CostConfig
from .num import Num, num_like
from .types import IllegalStateError, TradeType

if TYPE_CHECKING:
    from .position import Position


class CostModel:
    """Interface of a cost model.

    Implementations return zero for a zero amount and are non-decreasing in
    the traded amount and in the holding duration.
    """

    def calculate(self, price: Num, amount: Num) -> Num:
        """Cost of a single order."""
        raise NotImplementedError

    def calculate_position(self, position: "Position", final_index: Optional[int] = None) -> Num:
        """Cost of a whole position, up to ``final_index`` when it is still open.

        Raises ``IllegalStateError`` for a position that has no entry yet.
        """
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash((type(self), tuple(sorted(self.__dict__.items()))))


def _entry_of(position: "Position"):
    if position.entry is None:
        raise IllegalStateError("Cost of a position without entry is undefined")
    return position.entry


class ZeroCostModel(CostModel):
    def calculate(self, price: Num, amount: Num) -> Num:
        return num_like(0, price)

    def calculate_position(self, position: "Position", final_index: Optional[int] = None) -> Num:
        entry = _entry_of(position)
        return num_like(0, entry.price_per_asset)

    def __repr__(self) -> str:
        return "ZeroCostModel()"


class LinearTransactionCostModel(CostModel):
    """``fee_per_trade`` (a fraction) of the traded value, on each order."""

    def __init__(self, fee_per_trade: float):
        if fee_per_trade < 0:
            raise ValueError("fee_per_trade cannot be negative")
        self.fee_per_trade = fee_per_trade

    def calculate(self, price: Num, amount: Num) -> Num:
        return num_like(self.fee_per_trade, price) * price * amount

    def calculate_position(self, position: "Position", final_index: Optional[int] = None) -> Num:
        entry = _entry_of(position)
        total = self.calculate(entry.price_per_asset, entry.amount)
        if position.exit is not None:
            total = total + self.calculate(position.exit.price_per_asset, position.exit.amount)
        return total

    def __repr__(self) -> str:
        return f"LinearTransactionCostModel(fee_per_trade={self.fee_per_trade})"


class LinearBorrowingCostModel(CostModel):
    """Borrow interest on shorts: ``entry value x elapsed bars x fee_per_period``.

    Long positions and single orders cost nothing under this model.
    """

    def __init__(self, fee_per_period: float):
        if fee_per_period < 0:
            raise ValueError("fee_per_period cannot be negative")
        self.fee_per_period = fee_per_period

    def calculate(self, price: Num, amount: Num) -> Num:
        return num_like(0, price)

    def calculate_position(self, position: "Position", final_index: Optional[int] = None) -> Num:
        entry = _entry_of(position)
        if position.is_closed:
            end_index = position.exit.index
        elif final_index is not None:
            end_index = final_index
        else:
            raise IllegalStateError("Holding cost of an open position needs a final index")

        zero = num_like(0, entry.price_per_asset)
        if entry.type is not TradeType.SELL:
            return zero
        periods = max(0, end_index - entry.index)
        return entry.value * num_like(periods, entry.value) * num_like(self.fee_per_period, entry.value)

    def __repr__(self) -> str:
        return f"LinearBorrowingCostModel(fee_per_period={self.fee_per_period})"


def short_borrow_period_rate(cfg: CostConfig) -> float:
    """Per-bar borrow rate from an annual rate.

    Default uses calendar-day convention (annual/365) via
    ``CostConfig.short_borrow_day_count``.
    """
    day_count = float(cfg.short_borrow_day_count)
    if day_count <= 0:
        day_count = 365.0
    return float(cfg.short_borrow_annual_rate) / day_count


def from_config(cfg: CostConfig) -> Tuple[CostModel, CostModel]:
    """(transaction, holding) cost models described by ``cfg``."""
    if cfg.commission_rate > 0:
        transaction: CostModel = LinearTransactionCostModel(cfg.commission_rate)
    else:
        transaction = ZeroCostModel()
    rate = short_borrow_period_rate(cfg)
    holding: CostModel = LinearBorrowingCostModel(rate) if rate > 0 else ZeroCostModel()
    return transaction, holding
