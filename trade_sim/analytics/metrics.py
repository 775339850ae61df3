"""
Performance analysis of a trade list: equity curve, drawdown, profit factor,
R-multiple expectancy and system quality, return on account.

Capital compounds by each trade's growth in trade order. Drawdown is measured
from the running peak of that curve, with the peak starting at the starting
capital.
"""

from __future__ import annotations
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from trade_sim.core.errors import InvalidInputError
from trade_sim.core.types import Trade

logger = logging.getLogger("trade_sim.analytics")


@dataclass(frozen=True)
class AnalysisReport:
    """Aggregate performance statistics. Optional fields are None when their population is empty."""
    starting_capital: float
    final_capital: float
    profit: float
    profit_pct: float
    growth: float
    max_drawdown: float
    max_drawdown_pct: float
    bar_count: int
    total_trades: int
    proportion_profitable: float
    percent_profitable: float
    profit_factor: Optional[float] = None
    expectancy: Optional[float] = None
    rmultiple_std_dev: Optional[float] = None
    system_quality: Optional[float] = None
    return_on_account: Optional[float] = None
    average_profit_per_trade: Optional[float] = None
    average_winning_trade: Optional[float] = None
    average_losing_trade: Optional[float] = None
    expected_value: Optional[float] = None
    max_risk_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_capital(starting_capital: float) -> None:
    if not starting_capital > 0:
        raise InvalidInputError(f"starting_capital must be > 0, got {starting_capital}")


def _equity(starting_capital: float, trades: Sequence[Trade]) -> np.ndarray:
    # multiply.accumulate keeps the left-to-right compounding order.
    return np.multiply.accumulate(np.array([starting_capital] + [t.growth for t in trades], dtype=float))


def compute_equity_curve(starting_capital: float, trades: Sequence[Trade]) -> List[float]:
    """Capital before the first trade and after each trade."""
    _check_capital(starting_capital)
    return _equity(starting_capital, trades).tolist()


def compute_drawdown(starting_capital: float, trades: Sequence[Trade]) -> List[float]:
    """Drawdown (<= 0) from the running peak at each point of the equity curve."""
    _check_capital(starting_capital)
    equity = _equity(starting_capital, trades)
    return (equity - np.maximum.accumulate(equity)).tolist()


def max_drawdown(equity: Sequence[float]) -> tuple[float, float]:
    """Most negative (drawdown, drawdown %) over an equity curve. (0, 0) if it never dips."""
    arr = np.asarray(equity, dtype=float)
    if arr.size == 0:
        return 0.0, 0.0
    peak = np.maximum.accumulate(arr)
    dd = arr - peak
    dd_pct = dd / peak * 100
    return float(min(dd.min(), 0.0)), float(min(dd_pct.min(), 0.0))


def profit_factor(profits: Sequence[float]) -> Optional[float]:
    """Gross profit / |gross loss|. None if there are no losses."""
    wins = sum(p for p in profits if p > 0)
    losses = sum(p for p in profits if p < 0)
    if losses == 0:
        return None
    return wins / abs(losses)


def rmultiple_stats(rmultiples: Sequence[float]) -> tuple[Optional[float], Optional[float], Optional[float]]:
    """(expectancy, sample std dev, system quality) of R-multiples."""
    if not rmultiples:
        return None, None, None
    arr = np.asarray(rmultiples, dtype=float)
    expectancy = float(arr.mean())
    if arr.size < 2:
        return expectancy, None, None
    std_dev = float(arr.std(ddof=1))
    system_quality = expectancy / std_dev if std_dev != 0 else None
    return expectancy, std_dev, system_quality


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def analyze(starting_capital: float, trades: Sequence[Trade]) -> AnalysisReport:
    """Compute the analysis report for trades taken in order from starting_capital."""
    _check_capital(starting_capital)
    trades = list(trades)
    equity = _equity(starting_capital, trades)
    final_capital = float(equity[-1])
    profit = final_capital - starting_capital
    profit_pct = profit / starting_capital * 100
    dd, dd_pct = max_drawdown(equity)

    profits = [t.profit for t in trades]
    winners = [p for p in profits if p > 0]
    losers = [p for p in profits if p < 0]
    total_trades = len(trades)
    proportion_profitable = len(winners) / total_trades if total_trades else 0.0

    expectancy, std_dev, system_quality = rmultiple_stats(
        [t.rmultiple for t in trades if t.rmultiple is not None]
    )
    risk_pcts = [t.risk_pct for t in trades if t.risk_pct is not None]

    average_winning = _mean(winners)
    average_losing = _mean(losers)
    expected_value = None
    if total_trades:
        expected_value = (
            proportion_profitable * (average_winning or 0.0)
            + (1 - proportion_profitable) * (average_losing or 0.0)
        )

    report = AnalysisReport(
        starting_capital=starting_capital,
        final_capital=final_capital,
        profit=profit,
        profit_pct=profit_pct,
        growth=final_capital / starting_capital,
        max_drawdown=dd,
        max_drawdown_pct=dd_pct,
        bar_count=sum(t.holding_period for t in trades),
        total_trades=total_trades,
        proportion_profitable=proportion_profitable,
        percent_profitable=proportion_profitable * 100,
        profit_factor=profit_factor(profits),
        expectancy=expectancy,
        rmultiple_std_dev=std_dev,
        system_quality=system_quality,
        return_on_account=profit_pct / abs(dd_pct) if dd_pct != 0 else None,
        average_profit_per_trade=_mean(profits),
        average_winning_trade=average_winning,
        average_losing_trade=average_losing,
        expected_value=expected_value,
        max_risk_pct=max(risk_pcts) if risk_pcts else None,
    )
    logger.debug("Analyzed %d trades: profit=%.4f max_dd_pct=%.4f", total_trades, profit, dd_pct)
    return report
