"""
Backtest entry point: validate input, prepare indicators, drive the position
manager bar by bar, finalize at the end of the series.
"""

from __future__ import annotations
import keyword
import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from trade_sim.backtesting.events import BacktestListener
from trade_sim.backtesting.position_manager import BacktestOptions, PositionManager
from trade_sim.core.errors import InvalidInputError, InvalidStrategyError
from trade_sim.core.types import Bar, Trade
from trade_sim.strategies.base import Strategy

logger = logging.getLogger("trade_sim.backtest")

BAR_COLUMNS = ("time", "open", "high", "low", "close", "volume")
PRICE_COLUMNS = ("open", "high", "low", "close")


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Sequence of Bar (or other dataclass bars) to an OHLCV DataFrame."""
    rows = []
    for i, bar in enumerate(bars):
        if not is_dataclass(bar) or isinstance(bar, type):
            raise InvalidInputError(f"Bar {i} is {type(bar).__name__}, expected a Bar")
        rows.append(asdict(bar))
    return pd.DataFrame(rows, columns=None if rows else list(BAR_COLUMNS))


def normalize_series(input_series: Union[pd.DataFrame, Sequence[Bar]]) -> pd.DataFrame:
    """
    Check an input series and return it as a DataFrame with float prices and a
    fresh RangeIndex. Raises InvalidInputError on anything malformed.
    """
    if isinstance(input_series, pd.DataFrame):
        df = input_series
    elif isinstance(input_series, (list, tuple)):
        df = bars_to_frame(input_series)
    else:
        raise InvalidInputError(
            f"Expected input series to be a DataFrame or a sequence of Bar, got {type(input_series).__name__}"
        )

    if df.empty:
        raise InvalidInputError("Expected input series to contain at least 1 bar")
    missing = [c for c in BAR_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidInputError(f"Input series is missing columns: {missing}")
    bad = bad_column_names(df)
    if bad:
        raise InvalidInputError(
            f"Column names must be unique identifiers not starting with '_', got {bad}"
        )

    df = df.reset_index(drop=True).copy()
    try:
        for col in PRICE_COLUMNS + ("volume",):
            df[col] = df[col].astype(float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Non-numeric OHLCV data: {e}") from e
    if df[list(PRICE_COLUMNS)].isna().any().any():
        raise InvalidInputError("Input series has missing open/high/low/close values")
    if len(df) > 1 and not (df["time"].is_monotonic_increasing and df["time"].is_unique):
        raise InvalidInputError("Bar times must be strictly increasing")
    return df


def bad_column_names(df: pd.DataFrame) -> List[Any]:
    """
    Columns that cannot become bar attributes. itertuples() silently renames
    these to positional names (_6, _7, ...), so they are rejected up front.
    """
    seen = set()
    bad = []
    for col in df.columns:
        if (
            not isinstance(col, str)
            or not col.isidentifier()
            or keyword.iskeyword(col)
            or col.startswith("_")
            or col in seen
        ):
            bad.append(col)
        seen.add(col)
    return bad


def _validate_strategy(strategy: Any) -> Strategy:
    if not isinstance(strategy, Strategy):
        raise InvalidStrategyError(
            f"Expected strategy to be a Strategy defining the rules to backtest, got {type(strategy).__name__}"
        )
    if not callable(strategy.entry_rule):
        raise InvalidStrategyError("Strategy must define a callable entry_rule")
    lookback = strategy.lookback_period
    if isinstance(lookback, bool) or not isinstance(lookback, int) or lookback < 1:
        raise InvalidStrategyError(f"lookback_period must be an integer >= 1, got {lookback!r}")
    return strategy


def iter_bars(df: pd.DataFrame) -> Iterable[Any]:
    """Rows as namedtuples: base fields plus any indicator columns as attributes."""
    return df.itertuples(index=False, name="Bar")


def backtest(
    strategy: Strategy,
    input_series: Union[pd.DataFrame, Sequence[Bar]],
    options: Union[BacktestOptions, Mapping[str, Any], None] = None,
    listeners: Optional[Iterable[BacktestListener]] = None,
) -> List[Trade]:
    """
    Backtest a strategy against a bar series and return closed trades in exit order.
    Strategy callback exceptions propagate unchanged; nothing partial is returned.
    """
    strategy = _validate_strategy(strategy)
    options = BacktestOptions.coerce(options)
    df = normalize_series(input_series)

    lookback_period = strategy.lookback_period
    if len(df) < lookback_period:
        raise InvalidInputError(
            f"Input has {len(df)} bars, fewer than the lookback period of {lookback_period}"
        )

    parameters = strategy.resolved_parameters()
    if strategy.prep_indicators is not None:
        prepared = strategy.prep_indicators(df, parameters)
        if not isinstance(prepared, pd.DataFrame) or len(prepared) != len(df):
            raise InvalidStrategyError("prep_indicators must return a DataFrame with one row per input bar")
        bad = bad_column_names(prepared)
        if bad:
            raise InvalidStrategyError(
                f"prep_indicators added columns that cannot be bar attributes: {bad}. "
                "Use unique identifiers not starting with '_'"
            )
        df = prepared.reset_index(drop=True)

    logger.info("Backtest start: %d bars, lookback=%d", len(df), lookback_period)
    manager = PositionManager(strategy, options, listeners)
    last_bar = None
    for bar in iter_bars(df):
        manager.add_bar(bar)
        last_bar = bar
    trades = manager.complete(last_bar)
    logger.info("Backtest end: %d trades", len(trades))
    return list(trades)
