"""Analytics: equity curve, drawdown, expectancy, system quality, profit factor."""

from trade_sim.analytics.metrics import (
    AnalysisReport,
    analyze,
    compute_drawdown,
    compute_equity_curve,
    max_drawdown,
    profit_factor,
    rmultiple_stats,
)

__all__ = [
    "AnalysisReport",
    "analyze",
    "compute_drawdown",
    "compute_equity_curve",
    "max_drawdown",
    "profit_factor",
    "rmultiple_stats",
]
