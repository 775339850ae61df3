#!/usr/bin/env python3
"""
Backtest CLI
Usage:
  python main.py backtest --data bars.csv [--config config.yaml]
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from trade_sim.analytics.metrics import analyze
from trade_sim.backtesting.engine import backtest
from trade_sim.backtesting.events import LoggingListener
from trade_sim.core.config import load_config
from trade_sim.core.errors import BacktestError
from trade_sim.core.logger import setup_logging
from trade_sim.strategies.ema_atr_trend import ema_atr_trend_strategy


def load_bars_csv(path: Path) -> pd.DataFrame:
    """Read OHLCV CSV with a parseable 'time' column."""
    return pd.read_csv(path, parse_dates=["time"])


def _fmt(value) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def run_backtest(config_path: Path | None, data_path: Path | None) -> int:
    """Run the EMA/ATR trend strategy over a CSV of bars and print the analysis."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file, config.trade_log_level)
    logger = logging.getLogger("trade_sim")
    data_path = data_path or config.data_path
    if data_path is None:
        logger.error("No bar data given. Pass --data or set DATA_PATH / backtest.data_path")
        return 1
    if not Path(data_path).exists():
        logger.error("Bar data not found: %s", data_path)
        return 1

    df = load_bars_csv(Path(data_path))
    strategy = ema_atr_trend_strategy(config.strategy_parameters())
    try:
        trades = backtest(strategy, df, config.backtest_options(), listeners=[LoggingListener()])
    except BacktestError as e:
        logger.error("Backtest failed: %s", e)
        return 1
    a = analyze(config.starting_capital, trades)

    print("\n--- Backtest Results ---")
    print(f"Total trades: {a.total_trades} ({a.percent_profitable:.1f}% profitable, {a.bar_count} bars held)")
    print(f"Capital: {a.starting_capital:.2f} -> {a.final_capital:.2f} ({a.profit_pct:.2f}%)")
    print(f"Max drawdown: {a.max_drawdown:.2f} ({a.max_drawdown_pct:.2f}%)")
    print(f"Profit factor: {_fmt(a.profit_factor)}")
    print(f"Expectancy: {_fmt(a.expectancy)} R (std dev {_fmt(a.rmultiple_std_dev)})")
    print(f"System quality: {_fmt(a.system_quality)}")
    print(f"Return on account: {_fmt(a.return_on_account)}")
    print(f"Expected value: {_fmt(a.expected_value)} per trade")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Strategy backtest CLI")
    parser.add_argument("mode", choices=["backtest"], help="Run backtest")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--data", type=Path, default=None, help="CSV with time,open,high,low,close,volume")
    args = parser.parse_args()
    return run_backtest(args.config, args.data)


if __name__ == "__main__":
    sys.exit(main())
