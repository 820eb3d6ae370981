from __future__ import annotations

import pytest

from ta_bt.cost_model import LinearBorrowingCostModel, LinearTransactionCostModel, ZeroCostModel
from ta_bt.position import Order, Position
from ta_bt.types import IllegalStateError, TradeType


def test_lifecycle_new_opened_closed():
    p = Position()
    assert p.is_new
    entry = p.operate(0, 100.0, 1.0)
    assert p.is_opened
    assert entry.type is TradeType.BUY
    exit_ = p.operate(3, 110.0, 1.0)
    assert p.is_closed
    assert exit_.type is TradeType.SELL
    with pytest.raises(IllegalStateError):
        p.operate(4, 120.0, 1.0)


def test_exit_before_entry_is_rejected():
    p = Position()
    p.operate(5, 10.0, 1.0)
    with pytest.raises(IllegalStateError):
        p.operate(4, 11.0, 1.0)


def test_profit_requires_closed_position():
    p = Position()
    with pytest.raises(IllegalStateError):
        _ = p.profit
    p.operate(0, 10.0, 1.0)
    with pytest.raises(IllegalStateError):
        _ = p.profit


def test_long_profit_and_return():
    p = Position(TradeType.BUY)
    p.operate(0, 10.0, 2.0)
    p.operate(1, 15.0, 2.0)
    assert p.gross_profit == pytest.approx(10.0)
    assert p.profit == pytest.approx(10.0)
    assert p.gross_return == pytest.approx(1.5)
    assert p.has_profit()
    assert not p.has_loss()


def test_short_profit_and_return():
    p = Position(TradeType.SELL)
    p.operate(0, 10.0, 1.0)
    p.operate(1, 8.0, 1.0)
    assert p.entry.type is TradeType.SELL
    assert p.exit.type is TradeType.BUY
    assert p.profit == pytest.approx(2.0)
    assert p.gross_return == pytest.approx(1.2)


def test_transaction_costs_reduce_profit():
    model = LinearTransactionCostModel(0.01)
    p = Position(TradeType.BUY, model)
    p.operate(0, 100.0, 1.0)
    p.operate(1, 110.0, 1.0)
    assert p.entry.cost == pytest.approx(1.0)
    assert p.entry.net_price == pytest.approx(101.0)
    assert p.exit.net_price == pytest.approx(108.9)
    assert p.position_cost() == pytest.approx(2.1)
    assert p.profit == pytest.approx(10.0 - 2.1)


def test_short_holding_cost_accrues_while_open():
    borrow = LinearBorrowingCostModel(0.01)
    p = Position(TradeType.SELL, ZeroCostModel(), borrow)
    p.operate(0, 100.0, 1.0)
    assert p.holding_cost(0) == pytest.approx(0.0)
    assert p.holding_cost(5) == pytest.approx(5.0)
    with pytest.raises(IllegalStateError):
        p.holding_cost()
    p.operate(10, 90.0, 1.0)
    assert p.holding_cost() == pytest.approx(10.0)
    assert p.profit == pytest.approx(10.0 - 10.0)


def test_long_positions_have_no_borrowing_cost():
    p = Position(TradeType.BUY, ZeroCostModel(), LinearBorrowingCostModel(0.01))
    p.operate(0, 100.0, 1.0)
    p.operate(10, 100.0, 1.0)
    assert p.holding_cost() == 0.0


def test_mark_to_market_profit_of_open_position():
    p = Position(TradeType.BUY, LinearTransactionCostModel(0.01))
    p.operate(0, 100.0, 1.0)
    # entry cost only while the position is open
    assert p.get_profit(3, 120.0) == pytest.approx(20.0 - 1.0)


def test_order_rejects_zero_amount():
    with pytest.raises(ValueError):
        Order.create(0, TradeType.BUY, 10.0, 0.0)


def test_position_from_orders():
    p = Position.from_orders(Order.sell_at(1, 10.0), Order.buy_at(4, 9.0))
    assert p.starting_type is TradeType.SELL
    assert p.profit == pytest.approx(1.0)
    with pytest.raises(ValueError):
        Position.from_orders(Order.buy_at(1, 10.0), Order.buy_at(2, 10.0))
