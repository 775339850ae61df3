"""
EMA crossover trend strategy with ATR-sized stop, optional ATR trailing stop and target.
Signals are taken on a closed bar; the position manager fills on the next bar's open.
"""

from __future__ import annotations
from typing import Any, Optional

import numpy as np
import pandas as pd

from trade_sim.core.types import TradeDirection
from trade_sim.strategies.base import EntryRuleArgs, OpenPositionArgs, Strategy

DEFAULT_PARAMETERS = {
    "ema_fast": 9,
    "ema_slow": 21,
    "atr_len": 14,
    "atr_stop_mult": 2.0,
    "atr_tp_mult": 0.0,
    "trailing_stop_atr_mult": 0.0,
    "allow_short": False,
}


def compute_indicators(df: pd.DataFrame, parameters: dict) -> pd.DataFrame:
    """Add ema_fast, ema_slow and atr columns. No lookahead."""
    df = df.copy()
    df["ema_fast"] = df["close"].ewm(span=parameters["ema_fast"], adjust=False).mean()
    df["ema_slow"] = df["close"].ewm(span=parameters["ema_slow"], adjust=False).mean()
    high_low = df["high"] - df["low"]
    high_close = (df["high"] - df["close"].shift()).abs()
    low_close = (df["low"] - df["close"].shift()).abs()
    tr = pd.concat([high_low, high_close, low_close], axis=1).max(axis=1)
    df["atr"] = tr.rolling(parameters["atr_len"]).mean()
    return df


def _cross(lookback: pd.DataFrame) -> Optional[TradeDirection]:
    """Direction of an EMA cross between the last two bars of the window, if any."""
    prev, last = lookback.iloc[-2], lookback.iloc[-1]
    if np.isnan(last["atr"]) or last["atr"] <= 0:
        return None
    if prev["ema_fast"] <= prev["ema_slow"] and last["ema_fast"] > last["ema_slow"]:
        return TradeDirection.LONG
    if prev["ema_fast"] >= prev["ema_slow"] and last["ema_fast"] < last["ema_slow"]:
        return TradeDirection.SHORT
    return None


def entry_rule(enter, args: EntryRuleArgs) -> None:
    direction = _cross(args.lookback)
    if direction is None:
        return
    if direction == TradeDirection.SHORT and not args.parameters["allow_short"]:
        return
    enter(direction)


def exit_rule(exit_position, args: OpenPositionArgs) -> None:
    """Exit on the opposite cross."""
    bar = args.bar
    if args.position.direction == TradeDirection.LONG and bar.ema_fast < bar.ema_slow:
        exit_position()
    elif args.position.direction == TradeDirection.SHORT and bar.ema_fast > bar.ema_slow:
        exit_position()


def _atr(args: OpenPositionArgs) -> float:
    atr = float(args.bar.atr)
    if np.isnan(atr):
        # Warm-up bar: fall back to the last known ATR in the window.
        atr = float(args.lookback["atr"].dropna().iloc[-1]) if args.lookback["atr"].notna().any() else 0.0
    return atr


def stop_loss(args: OpenPositionArgs) -> float:
    return _atr(args) * args.parameters["atr_stop_mult"]


def trailing_stop_loss(args: OpenPositionArgs) -> float:
    return _atr(args) * args.parameters["trailing_stop_atr_mult"]


def profit_target(args: OpenPositionArgs) -> float:
    return _atr(args) * args.parameters["atr_tp_mult"]


def ema_atr_trend_strategy(parameters: Optional[dict[str, Any]] = None) -> Strategy:
    """
    Build the strategy. Multipliers set to 0 leave the matching slot empty
    (no trailing stop, no profit target, no fixed stop).
    """
    params = dict(DEFAULT_PARAMETERS)
    params.update(parameters or {})
    return Strategy(
        entry_rule=entry_rule,
        exit_rule=exit_rule,
        stop_loss=stop_loss if params["atr_stop_mult"] > 0 else None,
        trailing_stop_loss=trailing_stop_loss if params["trailing_stop_atr_mult"] > 0 else None,
        profit_target=profit_target if params["atr_tp_mult"] > 0 else None,
        prep_indicators=compute_indicators,
        lookback_period=2,
        parameters=params,
    )
