"""
Logging setup. Console + optional file, shared format for all trade_sim loggers.
The per-trade stream written by LoggingListener has its own level so a long
backtest can keep run-level INFO without one line per entry and exit.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional

TRADE_LOGGER = "trade_sim.backtest.trades"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
    trade_level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the "trade_sim" logger: console and optional file.
    trade_level sets the entry/exit logger separately; None inherits level.
    Calling it again replaces the handlers installed by the previous call.
    """
    root = logging.getLogger("trade_sim")
    root.setLevel(_level(level))
    root.handlers.clear()
    logging.getLogger(TRADE_LOGGER).setLevel(_level(trade_level) if trade_level else logging.NOTSET)

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    return root
