"""Core: config, types, errors, logging."""

from trade_sim.core.config import load_config, Config
from trade_sim.core.errors import (
    BacktestError,
    InvalidInputError,
    InvalidStrategyError,
    PositionStateError,
)
from trade_sim.core.types import Bar, ExitReason, Position, TimeValue, Trade, TradeDirection
from trade_sim.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "BacktestError",
    "InvalidInputError",
    "InvalidStrategyError",
    "PositionStateError",
    "Bar",
    "ExitReason",
    "Position",
    "TimeValue",
    "Trade",
    "TradeDirection",
    "setup_logging",
]
