"""Data providers (CSV / DataFrame) and a standardized OHLCV schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .num import DEFAULT_FACTORY, NumFactory
from .series import BarSeries
from .types import Bar

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]
PRICE_COLUMNS = REQUIRED_COLUMNS[:4]

# lower-cased source header -> standard column
_COLUMN_ALIASES = {
    "open": "Open",
    "high": "High",
    "low": "Low",
    "close": "Close",
    "volume": "Volume",
    "vol": "Volume",
    "adj close": "AdjClose",
    "adj_close": "AdjClose",
    "adjclose": "AdjClose",
}

DATETIME_ALIASES = ("Date", "Datetime", "datetime", "date", "timestamp", "Timestamp", "Time", "time")


@dataclass(frozen=True)
class OhlcvFrame:
    """Standard OHLCV dataframe wrapper."""

    df: pd.DataFrame  # columns: Open, High, Low, Close, Volume; index: bar end time
    symbol: str


def _standardize_ohlcv_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename to the standard schema, keep only OHLCV as floats, sort by time.

    An adjusted close is used as Close only when there is no raw close.
    """
    renamed = {}
    for col in df.columns:
        std = _COLUMN_ALIASES.get(str(col).strip().lower())
        if std is not None and std not in renamed.values():
            renamed[col] = std
    out = df.rename(columns=renamed)

    if "Close" not in out.columns and "AdjClose" in out.columns:
        out = out.rename(columns={"AdjClose": "Close"})
    if "Volume" not in out.columns and set(PRICE_COLUMNS) <= set(out.columns):
        out = out.assign(Volume=0.0)

    missing = [c for c in REQUIRED_COLUMNS if c not in out.columns]
    if missing:
        raise ValueError(f"Missing required OHLCV columns: {missing}")

    out = out[REQUIRED_COLUMNS].astype(float)
    # a bar time seen twice keeps its last row
    return out[~out.index.duplicated(keep="last")].sort_index()


def _find_datetime_column(columns, preferred: Optional[str]) -> str:
    candidates = ((preferred,) if preferred else ()) + DATETIME_ALIASES
    for cand in candidates:
        if cand in columns:
            return cand
    raise ValueError(f"CSV must contain a datetime column; tried {list(candidates)}")


class CsvProvider:
    """Load OHLCV bars from a CSV file (one row per bar, stamped at its end time)."""

    def fetch(self, csv_path: str | Path, symbol: str, datetime_col: Optional[str] = "Date") -> OhlcvFrame:
        path = Path(csv_path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        raw = pd.read_csv(path)
        time_col = _find_datetime_column(raw.columns, datetime_col)
        raw = raw.set_index(pd.DatetimeIndex(pd.to_datetime(raw.pop(time_col)), name="Date"))

        df = _standardize_ohlcv_columns(raw)
        logger.info("Loaded %d bar(s) for %s from %s", len(df), symbol, path)
        return OhlcvFrame(df=df, symbol=symbol)


def _infer_bar_duration(index: pd.DatetimeIndex) -> pd.Timedelta:
    if len(index) < 2:
        return pd.Timedelta(days=1)
    diffs = pd.Series(index[1:] - index[:-1])
    step = diffs[diffs > pd.Timedelta(0)].min()
    return step if pd.notna(step) else pd.Timedelta(days=1)


def series_from_frame(
    frame: OhlcvFrame | pd.DataFrame,
    num_factory: NumFactory = DEFAULT_FACTORY,
    bar_duration: Optional[pd.Timedelta] = None,
    name: Optional[str] = None,
) -> BarSeries:
    """Build a ``BarSeries`` from a standard OHLCV frame.

    The frame index is taken as each bar's end time; ``bar_duration`` (the
    smallest spacing between rows by default) gives the begin time. Rows
    with non-finite prices are dropped.
    """
    if isinstance(frame, OhlcvFrame):
        df, symbol = frame.df, frame.symbol
    else:
        df, symbol = _standardize_ohlcv_columns(frame), ""
    df = df.copy()
    df.index = pd.DatetimeIndex(pd.to_datetime(df.index))

    finite = np.isfinite(df[PRICE_COLUMNS].to_numpy()).all(axis=1)
    if not finite.all():
        logger.warning("Dropping %d row(s) with non-finite prices for %s", int((~finite).sum()), symbol or name)
        df = df[finite].copy()
    df["Volume"] = df["Volume"].fillna(0.0)

    duration = pd.Timedelta(bar_duration) if bar_duration is not None else _infer_bar_duration(df.index)
    series = BarSeries(name=name or symbol, num_factory=num_factory)
    num = num_factory.num_of
    for ts, row in df.iterrows():
        end = ts.to_pydatetime()
        series.add_bar(
            Bar(
                begin_time=end - duration.to_pytimedelta(),
                end_time=end,
                open=num(row["Open"]),
                high=num(row["High"]),
                low=num(row["Low"]),
                close=num(row["Close"]),
                volume=num(row["Volume"]),
            )
        )
    return series
