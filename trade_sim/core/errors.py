"""Exceptions raised by trade_sim itself. Strategy callback errors are never wrapped."""


class BacktestError(Exception):
    """Base class for backtest and analysis failures."""


class InvalidInputError(BacktestError, ValueError):
    """Input series, starting capital or configuration is malformed."""


class InvalidStrategyError(BacktestError, TypeError):
    """Strategy object is missing or does not define the required rules."""


class PositionStateError(BacktestError):
    """enter/exit called in a state where that action is not allowed."""
