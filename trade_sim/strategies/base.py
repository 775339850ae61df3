"""
Strategy contract: a bundle of optional decision callbacks.

The position manager checks each slot for presence (``is not None``) at the
point it would be used, so a strategy only fills in the rules it needs.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pandas as pd

from trade_sim.core.types import TradeDirection

# enter(direction=TradeDirection.LONG, entry_price=None)
EnterPositionFn = Callable[..., None]
# exit()
ExitPositionFn = Callable[[], None]


@dataclass(frozen=True)
class EntryRuleArgs:
    """Arguments passed to entry_rule while no position is open."""
    bar: Any
    lookback: pd.DataFrame
    parameters: Any


@dataclass(frozen=True)
class OpenPositionArgs:
    """Arguments passed to stop_loss, trailing_stop_loss, profit_target and exit_rule."""
    entry_price: float
    position: Any  # PositionView, read-only
    bar: Any
    lookback: pd.DataFrame
    parameters: Any


@dataclass
class Strategy:
    """
    entry_rule(enter, EntryRuleArgs) is required; everything else is optional.
    stop_loss / trailing_stop_loss / profit_target return a positive price distance.
    prep_indicators(input_series, parameters) returns the series decorated with indicator columns.
    """
    entry_rule: Callable[[EnterPositionFn, EntryRuleArgs], None]
    exit_rule: Optional[Callable[[ExitPositionFn, OpenPositionArgs], None]] = None
    stop_loss: Optional[Callable[[OpenPositionArgs], float]] = None
    trailing_stop_loss: Optional[Callable[[OpenPositionArgs], float]] = None
    profit_target: Optional[Callable[[OpenPositionArgs], float]] = None
    prep_indicators: Optional[Callable[[pd.DataFrame, Any], pd.DataFrame]] = None
    lookback_period: int = 1
    parameters: Any = None

    def resolved_parameters(self) -> Any:
        return self.parameters if self.parameters is not None else {}


def resolve_direction(direction: Optional[TradeDirection]) -> TradeDirection:
    """Default to LONG; accept the plain strings "long" / "short"."""
    if direction is None:
        return TradeDirection.LONG
    return TradeDirection(direction)
