"""
Notification side channel for the position manager.

Listeners are called synchronously at the moment of each transition. Delivery
is isolated from the simulation: a listener that raises is logged and skipped.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from trade_sim.core.logger import TRADE_LOGGER
from trade_sim.core.types import Position, Trade

logger = logging.getLogger("trade_sim.backtest.events")


@dataclass(frozen=True)
class PositionEvent:
    """Position entered or exited. position is a detached snapshot."""
    price: float
    bar: Any
    position: Position
    reason: str


class BacktestListener:
    """Observer base class. Override the hooks you need."""

    def on_enter_position(self, event: PositionEvent) -> None:
        pass

    def on_exit_position(self, event: PositionEvent) -> None:
        pass

    def on_complete(self, trades: List[Trade]) -> None:
        pass


class LoggingListener(BacktestListener):
    """Logs entries and exits at INFO, the run summary at INFO."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger(TRADE_LOGGER)

    def on_enter_position(self, event: PositionEvent) -> None:
        self.log.info(
            "Enter %s @ %.4f | time=%s stop=%s target=%s",
            event.position.direction.value, event.price, event.bar.time,
            _fmt(event.position.cur_stop_price), _fmt(event.position.profit_target),
        )

    def on_exit_position(self, event: PositionEvent) -> None:
        self.log.info(
            "Exit %s @ %.4f | time=%s reason=%s held=%d bars",
            event.position.direction.value, event.price, event.bar.time,
            event.reason, event.position.holding_period,
        )

    def on_complete(self, trades: List[Trade]) -> None:
        self.log.info("Backtest complete: %d trades", len(trades))


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.4f}"


class ListenerSet:
    """Fan-out to registered listeners with per-listener error isolation."""

    def __init__(self, listeners: Optional[Iterable[BacktestListener]] = None):
        self._listeners: List[BacktestListener] = list(listeners or [])

    def notify(self, hook: str, *args: Any) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(*args)
            except Exception as e:
                logger.exception("Listener %r failed in %s: %s", listener, hook, e)
