"""Orders and the position state machine.

A position moves ``NEW -> OPENED -> CLOSED``: the first ``operate`` call
creates the entry order (of the position's starting type), the second the
exit order (the complementary type). A closed position cannot be operated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .cost_model import CostModel, ZeroCostModel
from .num import Num, is_nan, is_negative, is_positive, is_zero, num_like
from .types import IllegalStateError, TradeType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Order:
    """An executed buy or sell of ``amount`` assets at ``price_per_asset``.

    ``cost`` is the transaction cost charged by the position's cost model.
    """

    index: int
    type: TradeType
    price_per_asset: Num
    amount: Num
    cost: Num

    @classmethod
    def create(
        cls,
        index: int,
        type: TradeType,
        price_per_asset: Num,
        amount: Num,
        cost_model: Optional[CostModel] = None,
    ) -> "Order":
        if amount is None or is_zero(amount):
            raise ValueError("Order amount must be non-zero")
        if price_per_asset is None:
            raise ValueError("Order price cannot be None")
        model = cost_model if cost_model is not None else ZeroCostModel()
        cost = model.calculate(price_per_asset, amount)
        return cls(index=index, type=TradeType.parse(type), price_per_asset=price_per_asset, amount=amount, cost=cost)

    @classmethod
    def buy_at(cls, index: int, price: Num, amount: Num = 1, cost_model: Optional[CostModel] = None) -> "Order":
        return cls.create(index, TradeType.BUY, price, num_like(amount, price), cost_model)

    @classmethod
    def sell_at(cls, index: int, price: Num, amount: Num = 1, cost_model: Optional[CostModel] = None) -> "Order":
        return cls.create(index, TradeType.SELL, price, num_like(amount, price), cost_model)

    @property
    def is_buy(self) -> bool:
        return self.type is TradeType.BUY

    @property
    def is_sell(self) -> bool:
        return self.type is TradeType.SELL

    @property
    def value(self) -> Num:
        return self.price_per_asset * self.amount

    @property
    def net_price(self) -> Num:
        """Price per asset including the transaction cost (paid on buys, deducted on sells)."""
        per_asset = self.cost / self.amount
        if self.is_buy:
            return self.price_per_asset + per_asset
        return self.price_per_asset - per_asset

    def price_at(self, series) -> Num:
        """Order price, or the close of its bar when the order was placed without a price."""
        if is_nan(self.price_per_asset):
            return series.get_bar(self.index).close
        return self.price_per_asset


class Position:
    """Pair of entry/exit orders with their cost models."""

    def __init__(
        self,
        starting_type: TradeType = TradeType.BUY,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
    ):
        self.starting_type = TradeType.parse(starting_type)
        self.transaction_cost_model = transaction_cost_model if transaction_cost_model is not None else ZeroCostModel()
        self.holding_cost_model = holding_cost_model if holding_cost_model is not None else ZeroCostModel()
        self.entry: Optional[Order] = None
        self.exit: Optional[Order] = None

    @classmethod
    def from_orders(
        cls,
        entry: Order,
        exit: Order,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
    ) -> "Position":
        if entry.type is exit.type:
            raise ValueError("Entry and exit orders must have different types")
        if exit.index < entry.index:
            raise IllegalStateError("Exit index is before entry index")
        p = cls(entry.type, transaction_cost_model, holding_cost_model)
        p.entry = entry
        p.exit = exit
        return p

    # ---------- state ----------

    @property
    def is_new(self) -> bool:
        return self.entry is None and self.exit is None

    @property
    def is_opened(self) -> bool:
        return self.entry is not None and self.exit is None

    @property
    def is_closed(self) -> bool:
        return self.entry is not None and self.exit is not None

    def operate(self, index: int, price: Optional[Num] = None, amount: Optional[Num] = None) -> Order:
        """Record the next order of this position.

        ``price`` defaults to NaN (resolved against the series later);
        ``amount`` defaults to one unit.
        """
        if self.is_closed:
            raise IllegalStateError(f"Cannot operate a closed position (exit at {self.exit.index})")
        if price is None:
            price = float("nan")
        if amount is None:
            amount = num_like(1, price)

        if self.is_new:
            order = Order.create(index, self.starting_type, price, amount, self.transaction_cost_model)
            self.entry = order
        else:
            if index < self.entry.index:
                raise IllegalStateError(f"Exit index {index} is before entry index {self.entry.index}")
            order = Order.create(index, self.starting_type.complement(), price, amount, self.transaction_cost_model)
            self.exit = order
        logger.debug("%s %s at index=%d price=%s amount=%s", "Entered" if order is self.entry else "Exited",
                     order.type.value, index, price, amount)
        return order

    # ---------- profit / return ----------

    def _require_closed(self, what: str) -> None:
        if not self.is_closed:
            raise IllegalStateError(f"{what} is only defined for a closed position")

    @property
    def profit(self) -> Num:
        """Net profit: gross profit minus transaction and holding costs."""
        self._require_closed("Profit")
        return self.get_gross_profit(self.exit.price_per_asset) - self.position_cost()

    def get_profit(self, final_index: int, final_price: Num) -> Num:
        """Mark-to-market net profit at ``final_index`` valued at ``final_price``."""
        return self.get_gross_profit(final_price) - self.position_cost(final_index)

    @property
    def gross_profit(self) -> Num:
        self._require_closed("Gross profit")
        return self.get_gross_profit(self.exit.price_per_asset)

    def get_gross_profit(self, final_price: Num) -> Num:
        if self.entry is None:
            raise IllegalStateError("Position has no entry")
        if self.is_opened:
            gross = self.entry.amount * final_price - self.entry.value
        else:
            gross = self.exit.value - self.entry.value
        # Profits of a long are losses of a short
        if self.entry.is_sell:
            gross = -gross
        return gross

    @property
    def gross_return(self) -> Num:
        self._require_closed("Gross return")
        return self.get_gross_return(self.entry.price_per_asset, self.exit.price_per_asset)

    def get_gross_return(self, entry_price: Num, exit_price: Num) -> Num:
        """Exit/entry ratio for longs, ``2 - exit/entry`` for shorts."""
        ratio = exit_price / entry_price
        if self.entry.is_buy:
            return ratio
        one = num_like(1, ratio)
        return -(ratio - one) + one

    def gross_return_in(self, series) -> Num:
        """Gross return using bar closes for orders placed without a price."""
        self._require_closed("Gross return")
        return self.get_gross_return(self.entry.price_at(series), self.exit.price_at(series))

    def has_profit(self) -> bool:
        return is_positive(self.profit)

    def has_loss(self) -> bool:
        return is_negative(self.profit)

    # ---------- costs ----------

    def holding_cost(self, final_index: Optional[int] = None) -> Num:
        """Holding cost accrued so far; ``final_index`` is required while opened."""
        return self.holding_cost_model.calculate_position(self, final_index)

    def position_cost(self, final_index: Optional[int] = None) -> Num:
        """Transaction plus holding cost, up to ``final_index`` while opened."""
        transaction = self.transaction_cost_model.calculate_position(self, final_index)
        return transaction + self.holding_cost(final_index)

    # ---------- misc ----------

    def __eq__(self, other) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return self.entry == other.entry and self.exit == other.exit

    def __hash__(self) -> int:
        return hash((self.entry, self.exit))

    def __repr__(self) -> str:
        def fmt(o: Optional[Order]) -> str:
            return "-" if o is None else f"{o.type.value}@{o.index}({o.price_per_asset})"

        return f"Position(entry={fmt(self.entry)}, exit={fmt(self.exit)})"
