"""
Load configuration from config.yaml and .env. Environment variables override the file.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from trade_sim.core.errors import InvalidInputError


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidInputError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    backtest = data.get("backtest", {})
    strategy = data.get("strategy", {})
    logging_cfg = data.get("logging", {})

    return Config(
        # Backtest
        starting_capital=env_float("STARTING_CAPITAL", backtest.get("starting_capital", 10000.0)),
        record_stop_price=env_bool("RECORD_STOP_PRICE", backtest.get("record_stop_price", False)),
        record_risk=env_bool("RECORD_RISK", backtest.get("record_risk", False)),
        defer_exit=env_bool("DEFER_EXIT", backtest.get("defer_exit", False)),
        data_path=env("DATA_PATH", backtest.get("data_path") or "") or None,
        # Strategy
        ema_fast=env_int("EMA_FAST", strategy.get("ema_fast", 9)),
        ema_slow=env_int("EMA_SLOW", strategy.get("ema_slow", 21)),
        atr_len=env_int("ATR_LEN", strategy.get("atr_len", 14)),
        atr_stop_mult=env_float("ATR_STOP_MULT", strategy.get("atr_stop_mult", 2.0)),
        atr_tp_mult=env_float("ATR_TP_MULT", strategy.get("atr_tp_mult", 0.0)),  # 0 = off
        trailing_stop_atr_mult=env_float("TRAILING_STOP_ATR_MULT", strategy.get("trailing_stop_atr_mult", 0.0)),  # 0 = off
        allow_short=env_bool("ALLOW_SHORT", strategy.get("allow_short", False)),
        # Logging
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        trade_log_level=env("TRADE_LOG_LEVEL", logging_cfg.get("trade_level") or "") or None,
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file"),
    )


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "starting_capital", "record_stop_price", "record_risk", "defer_exit", "data_path",
        "ema_fast", "ema_slow", "atr_len", "atr_stop_mult", "atr_tp_mult",
        "trailing_stop_atr_mult", "allow_short",
        "log_level", "trade_log_level", "log_dir", "log_file",
    )

    def __init__(
        self,
        starting_capital: float = 10000.0,
        record_stop_price: bool = False,
        record_risk: bool = False,
        defer_exit: bool = False,
        data_path: Optional[str] = None,
        ema_fast: int = 9,
        ema_slow: int = 21,
        atr_len: int = 14,
        atr_stop_mult: float = 2.0,
        atr_tp_mult: float = 0.0,
        trailing_stop_atr_mult: float = 0.0,
        allow_short: bool = False,
        log_level: str = "INFO",
        trade_log_level: Optional[str] = None,
        log_dir: Path = None,
        log_file: Optional[str] = None,
    ):
        if starting_capital <= 0:
            raise InvalidInputError(f"starting_capital must be > 0, got {starting_capital}")
        if ema_fast <= 0 or ema_slow <= ema_fast:
            raise InvalidInputError(f"Need 0 < ema_fast < ema_slow, got {ema_fast} / {ema_slow}")
        self.starting_capital = float(starting_capital)
        self.record_stop_price = bool(record_stop_price)
        self.record_risk = bool(record_risk)
        self.defer_exit = bool(defer_exit)
        self.data_path = Path(data_path) if data_path else None
        self.ema_fast = ema_fast
        self.ema_slow = ema_slow
        self.atr_len = atr_len
        self.atr_stop_mult = atr_stop_mult
        self.atr_tp_mult = atr_tp_mult
        self.trailing_stop_atr_mult = trailing_stop_atr_mult
        self.allow_short = bool(allow_short)
        self.log_level = log_level
        self.trade_log_level = trade_log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file

    def __setattr__(self, name: str, value: Any) -> None:
        # Each slot may be assigned once, in __init__.
        if hasattr(self, name):
            raise AttributeError(f"Config is read-only, cannot set {name!r}")
        object.__setattr__(self, name, value)

    def backtest_options(self) -> dict:
        """Options bag accepted by backtest()."""
        return {
            "record_stop_price": self.record_stop_price,
            "record_risk": self.record_risk,
            "defer_exit": self.defer_exit,
        }

    def strategy_parameters(self) -> dict:
        """Parameters for the EMA/ATR trend strategy."""
        return {
            "ema_fast": self.ema_fast,
            "ema_slow": self.ema_slow,
            "atr_len": self.atr_len,
            "atr_stop_mult": self.atr_stop_mult,
            "atr_tp_mult": self.atr_tp_mult,
            "trailing_stop_atr_mult": self.trailing_stop_atr_mult,
            "allow_short": self.allow_short,
        }
