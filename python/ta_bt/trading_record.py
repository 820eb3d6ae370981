"""Trading record: closed positions plus the position currently being traded."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .cost_model import CostModel, ZeroCostModel
from .num import Num
from .position import Order, Position
from .types import IllegalStateError, TradeType

logger = logging.getLogger(__name__)


class TradingRecord:
    """Append-only history of orders and closed positions.

    At most one position is current at any time. When it closes it is moved
    to ``positions`` and a fresh ``NEW`` position of ``starting_type`` takes
    its place, so entries are ordered by non-decreasing index.
    """

    def __init__(
        self,
        starting_type: TradeType = TradeType.BUY,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
        name: str = "",
    ):
        if starting_type is None:
            raise ValueError("Starting type cannot be None")
        self.starting_type = TradeType.parse(starting_type)
        self.transaction_cost_model = transaction_cost_model if transaction_cost_model is not None else ZeroCostModel()
        self.holding_cost_model = holding_cost_model if holding_cost_model is not None else ZeroCostModel()
        self.name = name

        self.positions: List[Position] = []
        self._orders: List[Order] = []
        self._entries: List[Order] = []
        self._exits: List[Order] = []
        self._current = self._new_position(self.starting_type)

    @classmethod
    def from_orders(
        cls,
        orders: Iterable[Order],
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
    ) -> "TradingRecord":
        """Replay ``orders``; an entry of the other type reverses the position direction."""
        orders = list(orders)
        if not orders:
            raise ValueError("At least one order is required")
        record = cls(orders[0].type, transaction_cost_model, holding_cost_model)
        for o in orders:
            if record._current.is_new and o.type is not record._current.starting_type:
                record._current = record._new_position(o.type)
            record.operate(o.index, o.price_per_asset, o.amount)
        return record

    def _new_position(self, starting_type: TradeType) -> Position:
        return Position(starting_type, self.transaction_cost_model, self.holding_cost_model)

    # ---------- operations ----------

    @property
    def current_position(self) -> Position:
        return self._current

    def operate(self, index: int, price: Optional[Num] = None, amount: Optional[Num] = None) -> Order:
        """Enter if the current position is new, otherwise exit it."""
        current = self._current
        if current.is_closed:
            raise IllegalStateError("Current position should not be closed")
        is_entry = current.is_new
        if is_entry and self._exits and index < self._exits[-1].index:
            raise IllegalStateError(f"Entry index {index} is before the last exit index {self._exits[-1].index}")

        order = current.operate(index, price, amount)
        self._orders.append(order)
        (self._entries if is_entry else self._exits).append(order)

        if current.is_closed:
            self.positions.append(current)
            self._current = self._new_position(self.starting_type)
        return order

    def enter(self, index: int, price: Optional[Num] = None, amount: Optional[Num] = None) -> bool:
        if self._current.is_new:
            self.operate(index, price, amount)
            return True
        return False

    def exit(self, index: int, price: Optional[Num] = None, amount: Optional[Num] = None) -> bool:
        if self._current.is_opened:
            self.operate(index, price, amount)
            return True
        return False

    # ---------- queries ----------

    @property
    def is_closed(self) -> bool:
        """True when no position is open."""
        return not self._current.is_opened

    @property
    def position_count(self) -> int:
        return len(self.positions)

    @property
    def orders(self) -> List[Order]:
        return list(self._orders)

    @property
    def last_position(self) -> Optional[Position]:
        return self.positions[-1] if self.positions else None

    def last_order(self, order_type: Optional[TradeType] = None) -> Optional[Order]:
        if order_type is None:
            return self._orders[-1] if self._orders else None
        order_type = TradeType.parse(order_type)
        for o in reversed(self._orders):
            if o.type is order_type:
                return o
        return None

    @property
    def last_entry(self) -> Optional[Order]:
        return self._entries[-1] if self._entries else None

    @property
    def last_exit(self) -> Optional[Order]:
        return self._exits[-1] if self._exits else None

    def __repr__(self) -> str:
        return (
            f"TradingRecord(name={self.name!r}, positions={len(self.positions)}, "
            f"open={self._current.is_opened})"
        )
