"""Strategies: callback contract and implementations."""

from trade_sim.strategies.base import EntryRuleArgs, OpenPositionArgs, Strategy
from trade_sim.strategies.ema_atr_trend import ema_atr_trend_strategy

__all__ = ["EntryRuleArgs", "OpenPositionArgs", "Strategy", "ema_atr_trend_strategy"]
