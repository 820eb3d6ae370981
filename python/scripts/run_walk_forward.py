from __future__ import annotations

import argparse
import json
import logging

import pandas as pd

from ta_bt.backtest import run_backtest, run_walk_forward
from ta_bt.config import BacktestConfig, CostConfig, WalkForwardConfig
from ta_bt.data_provider import CsvProvider
from ta_bt.registry import StrategyRegistry
from ta_bt.strategies import register_default_strategies


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--csv", type=str, required=True, help="Simple OHLCV CSV path (Date,Open,High,Low,Close,Volume).")
    p.add_argument("--symbol", type=str, default="005930.KS")
    p.add_argument("--strategy", type=str, default="sma_stack")
    p.add_argument("--params_json", type=str, default=None, help='Strategy params, e.g. \'{"SmaWeek": 5}\'.')
    p.add_argument("--start_type", type=str, default="BUY", help='"BUY" (long) or "SELL" (short).')
    p.add_argument("--amount", type=float, default=1.0)
    p.add_argument("--numeric", type=str, default="double", help='"double" or "decimal".')
    p.add_argument("--commission_rate", type=float, default=0.0)
    p.add_argument("--short_borrow_annual_rate", type=float, default=0.0)
    p.add_argument("--years", type=int, default=1, help="Walk-forward slice length in years.")
    p.add_argument("--months", type=int, default=0, help="Walk-forward slice length in months (added to years).")
    p.add_argument("--period_begin", type=str, default=None, help="Force the first slice start (YYYY-MM-DD).")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    registry = register_default_strategies(StrategyRegistry())
    params = json.loads(args.params_json) if args.params_json else {}

    frame = CsvProvider().fetch(args.csv, args.symbol)
    bt_cfg = BacktestConfig(symbol=args.symbol, starting_type=args.start_type, amount=args.amount, numeric=args.numeric)
    cost_cfg = CostConfig(
        commission_rate=args.commission_rate,
        short_borrow_annual_rate=args.short_borrow_annual_rate,
    )
    wf_cfg = WalkForwardConfig(years=args.years, months=args.months, period_begin=args.period_begin)

    full = run_backtest(frame, args.strategy, params, bt_cfg, cost_cfg, registry)
    wf = run_walk_forward(frame, args.strategy, params, wf_cfg, bt_cfg, cost_cfg, registry)

    with pd.option_context("display.width", 160, "display.max_columns", 20):
        print("== whole series ==")
        print(full.positions.to_string(index=False))
        for k, v in full.summary.items():
            print(f"{k:>14}: {v:.6g}")
        print()
        print("== walk-forward slices ==")
        print(wf.slices.to_string(index=False))


if __name__ == "__main__":
    main()
