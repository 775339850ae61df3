"""Backtesting: bar-by-bar position state machine with stops, targets and exit rules."""

from trade_sim.backtesting.engine import backtest
from trade_sim.backtesting.events import BacktestListener, LoggingListener, PositionEvent
from trade_sim.backtesting.position_manager import BacktestOptions, PositionManager, PositionStatus
from trade_sim.backtesting.trades import finalize_position

__all__ = [
    "backtest",
    "BacktestListener",
    "LoggingListener",
    "PositionEvent",
    "BacktestOptions",
    "PositionManager",
    "PositionStatus",
    "finalize_position",
]
