"""
Core data types for bars, open positions, and closed trades.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class TradeDirection(str, Enum):
    LONG = "long"
    SHORT = "short"


class ExitReason(str, Enum):
    STOP_LOSS = "stop-loss"
    PROFIT_TARGET = "profit-target"
    EXIT_RULE = "exit-rule"
    FINALIZE = "finalize"


@dataclass
class Bar:
    """OHLCV candle."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class TimeValue:
    """One point of a recorded per-bar series (stop price or risk)."""
    time: datetime
    value: float


@dataclass
class Position:
    """Open position state. Mutated only by the position manager."""
    direction: TradeDirection
    entry_time: datetime
    entry_price: float
    max_price_recorded: float
    initial_stop_price: Optional[float] = None
    cur_stop_price: Optional[float] = None
    profit_target: Optional[float] = None
    initial_unit_risk: Optional[float] = None
    initial_risk_pct: Optional[float] = None
    cur_risk_pct: Optional[float] = None
    cur_rmultiple: Optional[float] = None
    profit: float = 0.0
    profit_pct: float = 0.0
    growth: float = 1.0
    holding_period: int = 0
    stop_price_series: Optional[List[TimeValue]] = None
    risk_series: Optional[List[TimeValue]] = None

    @property
    def is_long(self) -> bool:
        return self.direction == TradeDirection.LONG


@dataclass(frozen=True)
class Trade:
    """Closed trade for analytics."""
    direction: TradeDirection
    entry_time: datetime
    entry_price: float
    exit_time: datetime
    exit_price: float
    profit: float
    profit_pct: float
    growth: float
    holding_period: int
    exit_reason: str  # ExitReason value
    risk_pct: Optional[float] = None
    rmultiple: Optional[float] = None
    stop_price: Optional[float] = None
    profit_target: Optional[float] = None
    max_price_recorded: Optional[float] = None
    stop_price_series: Optional[Tuple[TimeValue, ...]] = None
    risk_series: Optional[Tuple[TimeValue, ...]] = None
