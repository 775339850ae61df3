"""
Trade finalizer and per-bar position arithmetic.

Profit, growth and risk follow the position direction: for a short position a
falling price is profit and growth is entry / exit.
"""

from __future__ import annotations
import copy
from datetime import datetime
from typing import Any, Optional

from trade_sim.core.types import Position, TimeValue, Trade, TradeDirection


def compute_profit(direction: TradeDirection, entry_price: float, price: float) -> float:
    if direction == TradeDirection.LONG:
        return price - entry_price
    return entry_price - price


def compute_growth(direction: TradeDirection, entry_price: float, price: float) -> float:
    if direction == TradeDirection.LONG:
        return price / entry_price
    return entry_price / price


def unit_risk(direction: TradeDirection, price: float, stop_price: float) -> float:
    """Distance from price to stop, positive while the stop is on the losing side."""
    if direction == TradeDirection.LONG:
        return price - stop_price
    return stop_price - price


def rmultiple(position: Position, profit: float) -> Optional[float]:
    """Profit as a multiple of the initial unit risk; None when no risk was established."""
    if not position.initial_unit_risk:
        return None
    return profit / position.initial_unit_risk


def finalize_position(
    position: Position,
    exit_time: datetime,
    exit_price: float,
    exit_reason: str,
) -> Trade:
    """Close a position and produce an immutable trade. Does not modify the position."""
    profit = compute_profit(position.direction, position.entry_price, exit_price)
    return Trade(
        direction=position.direction,
        entry_time=position.entry_time,
        entry_price=position.entry_price,
        exit_time=exit_time,
        exit_price=exit_price,
        profit=profit,
        profit_pct=profit / position.entry_price * 100,
        growth=compute_growth(position.direction, position.entry_price, exit_price),
        holding_period=position.holding_period,
        exit_reason=str(getattr(exit_reason, "value", exit_reason)),
        risk_pct=position.initial_risk_pct,
        rmultiple=rmultiple(position, profit),
        stop_price=position.initial_stop_price,
        profit_target=position.profit_target,
        max_price_recorded=position.max_price_recorded,
        stop_price_series=tuple(position.stop_price_series) if position.stop_price_series is not None else None,
        risk_series=tuple(position.risk_series) if position.risk_series is not None else None,
    )


def update_position(position: Position, bar: Any) -> None:
    """Mark an open position to the bar's close and count the bar as held."""
    close = bar.close
    position.profit = compute_profit(position.direction, position.entry_price, close)
    position.profit_pct = position.profit / position.entry_price * 100
    position.growth = compute_growth(position.direction, position.entry_price, close)
    if position.cur_stop_price is not None:
        position.cur_risk_pct = unit_risk(position.direction, close, position.cur_stop_price) / close * 100
        position.cur_rmultiple = rmultiple(position, position.profit)
    position.holding_period += 1


def record_point(series: Optional[list], time: datetime, value: float) -> list:
    """Append to a recorded series, creating it on first use."""
    if series is None:
        series = []
    series.append(TimeValue(time=time, value=value))
    return series


class PositionView:
    """Read-only view of a position handed to strategy callbacks."""

    __slots__ = ("_position",)

    def __init__(self, position: Position):
        object.__setattr__(self, "_position", position)

    def __getattr__(self, name: str) -> Any:
        value = getattr(self._position, name)
        if isinstance(value, list):
            return tuple(value)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Position is read-only to strategies (tried to set {name!r})")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Position is read-only to strategies (tried to delete {name!r})")

    def __repr__(self) -> str:
        return f"PositionView({self._position!r})"


def snapshot(position: Position) -> Position:
    """Detached copy of a position for listeners."""
    return copy.deepcopy(position)
