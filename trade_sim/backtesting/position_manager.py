"""
Position state machine: walks bars one at a time, asks the strategy when to
enter and exit, applies stop-loss, trailing stop and profit target, and emits
closed trades.

Status cycle per trade: NONE -> ENTER -> POSITION -> (EXIT) -> NONE.
While in a position each bar is checked in a fixed order, first match wins:

1. update the favourable extreme (high for long, low for short)
2. stop-loss breached intrabar -> close at the stop price
3. re-evaluate the trailing stop (tightens only)
4. profit target breached intrabar -> close at the target
5. mark to close, holding_period += 1
6. exit_rule -> close at this bar's close
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Union

from trade_sim.backtesting.events import BacktestListener, ListenerSet, PositionEvent
from trade_sim.backtesting.lookback import LookbackWindow
from trade_sim.backtesting.trades import (
    PositionView,
    finalize_position,
    record_point,
    snapshot,
    update_position,
)
from trade_sim.core.errors import InvalidInputError, InvalidStrategyError, PositionStateError
from trade_sim.core.types import ExitReason, Position, Trade, TradeDirection
from trade_sim.strategies.base import EntryRuleArgs, OpenPositionArgs, Strategy, resolve_direction

logger = logging.getLogger("trade_sim.backtest")


class PositionStatus(str, Enum):
    NONE = "none"
    ENTER = "enter"
    POSITION = "position"
    EXIT = "exit"


def _option_flag(key: str, value: Any) -> bool:
    """Bool option value; strings read like env flags ("true"/"1"/"yes", "false"/"0"/"no")."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no", ""):
            return False
    raise InvalidInputError(f"Backtest option {key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class BacktestOptions:
    """
    record_stop_price: keep the stop price of every in-position bar on the trade.
    record_risk: same for the current risk percent.
    defer_exit: exit() from exit_rule closes at the next bar's open instead of this bar's close.
    """
    record_stop_price: bool = False
    record_risk: bool = False
    defer_exit: bool = False

    @classmethod
    def coerce(cls, options: Union["BacktestOptions", Mapping[str, Any], None]) -> "BacktestOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, Mapping):
            unknown = set(options) - {"record_stop_price", "record_risk", "defer_exit"}
            if unknown:
                raise InvalidInputError(f"Unknown backtest options: {sorted(unknown)}")
            return cls(**{k: _option_flag(k, v) for k, v in options.items()})
        raise InvalidInputError(f"Expected BacktestOptions or a mapping, got {type(options).__name__}")


class PositionManager:
    """
    Holds at most one open position. Feed bars with add_bar(), then call
    complete() with the last bar to force-close anything still open.
    """

    def __init__(
        self,
        strategy: Strategy,
        options: Union[BacktestOptions, Mapping[str, Any], None] = None,
        listeners: Optional[Iterable[BacktestListener]] = None,
    ):
        self.strategy = strategy
        self.options = BacktestOptions.coerce(options)
        self.lookback_period = strategy.lookback_period
        self.lookback = LookbackWindow(self.lookback_period)
        self.parameters = strategy.resolved_parameters()
        self.listeners = listeners if isinstance(listeners, ListenerSet) else ListenerSet(listeners)

        self.status = PositionStatus.NONE
        self.direction = TradeDirection.LONG
        self.conditional_entry_price: Optional[float] = None
        self.open_position: Optional[Position] = None
        self.completed_trades: List[Trade] = []

    def add_bar(self, bar: Any) -> None:
        """Push a bar into the lookback window and advance the state machine one step."""
        self.lookback.push(bar)
        if not self.lookback.is_full():
            return  # Rules only run once the lookback period is satisfied.

        if self.status == PositionStatus.NONE:
            self.strategy.entry_rule(
                self._enter_position,
                EntryRuleArgs(bar=bar, lookback=self.lookback.snapshot(), parameters=self.parameters),
            )
        elif self.status == PositionStatus.ENTER:
            self._open(bar)
        elif self.status == PositionStatus.POSITION:
            self._manage(bar)
        elif self.status == PositionStatus.EXIT:
            self._require_open_position()
            self._close_position(bar, bar.open, ExitReason.EXIT_RULE)
        else:
            raise PositionStateError(f"Unexpected status {self.status!r}")

    def complete(self, last_bar: Any) -> List[Trade]:
        """Close any open position at the last bar's close and notify listeners."""
        if self.open_position is not None:
            self._close_position(last_bar, last_bar.close, ExitReason.FINALIZE)
        self.listeners.notify("on_complete", list(self.completed_trades))
        return self.completed_trades

    # ------------------------------------------------------------------
    # Actions handed to the strategy
    # ------------------------------------------------------------------

    def _enter_position(self, direction: Optional[TradeDirection] = None, entry_price: Optional[float] = None) -> None:
        if self.status != PositionStatus.NONE:
            raise PositionStateError(
                f"Can only enter a position when not already in one (status={self.status.value})"
            )
        try:
            self.direction = resolve_direction(direction)
        except ValueError as e:
            raise InvalidStrategyError(f"Invalid trade direction {direction!r}") from e
        self.conditional_entry_price = entry_price
        self.status = PositionStatus.ENTER  # Filled on the next bar.
        logger.debug("Entry signalled: %s conditional_price=%s", self.direction.value, entry_price)

    def _exit_position(self) -> None:
        if self.status != PositionStatus.POSITION:
            raise PositionStateError(
                f"Can only exit a position when in one (status={self.status.value})"
            )
        if self.options.defer_exit:
            self.status = PositionStatus.EXIT  # Closed at the next bar's open.
            return
        bar = self.lookback.last
        self._close_position(bar, bar.close, ExitReason.EXIT_RULE)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _require_open_position(self) -> Position:
        if self.open_position is None:
            raise PositionStateError(f"Expected an open position in status {self.status.value}")
        return self.open_position

    def _position_args(self, position: Position, bar: Any) -> OpenPositionArgs:
        return OpenPositionArgs(
            entry_price=position.entry_price,
            position=PositionView(position),
            bar=bar,
            lookback=self.lookback.snapshot(),
            parameters=self.parameters,
        )

    def _open(self, bar: Any) -> None:
        if self.open_position is not None:
            raise PositionStateError("Expected no open position before entry")

        is_long = self.direction == TradeDirection.LONG
        if self.conditional_entry_price is not None:
            # Conditional entry waits until the price is breached intrabar.
            if is_long and bar.high < self.conditional_entry_price:
                return
            if not is_long and bar.low > self.conditional_entry_price:
                return

        entry_price = bar.open
        position = Position(
            direction=self.direction,
            entry_time=bar.time,
            entry_price=entry_price,
            max_price_recorded=entry_price,
        )
        self.open_position = position
        args = self._position_args(position, bar)
        strategy = self.strategy

        if strategy.stop_loss is not None:
            distance = strategy.stop_loss(args)
            position.initial_stop_price = entry_price - distance if is_long else entry_price + distance

        if strategy.trailing_stop_loss is not None:
            distance = strategy.trailing_stop_loss(args)
            trailing_price = (
                position.max_price_recorded - distance if is_long else position.max_price_recorded + distance
            )
            if position.initial_stop_price is None:
                position.initial_stop_price = trailing_price
            elif is_long:
                position.initial_stop_price = max(position.initial_stop_price, trailing_price)
            else:
                position.initial_stop_price = min(position.initial_stop_price, trailing_price)

        position.cur_stop_price = position.initial_stop_price

        if strategy.profit_target is not None:
            distance = strategy.profit_target(args)
            position.profit_target = entry_price + distance if is_long else entry_price - distance

        if position.cur_stop_price is not None:
            position.initial_unit_risk = abs(entry_price - position.cur_stop_price)
            position.initial_risk_pct = position.initial_unit_risk / entry_price * 100
            position.cur_risk_pct = position.initial_risk_pct
            position.cur_rmultiple = 0.0
            if self.options.record_stop_price:
                position.stop_price_series = record_point(None, bar.time, position.cur_stop_price)
            if self.options.record_risk:
                position.risk_series = record_point(None, bar.time, position.cur_risk_pct)

        self.conditional_entry_price = None
        self.status = PositionStatus.POSITION
        logger.debug(
            "Entered %s @ %s stop=%s target=%s", position.direction.value, entry_price,
            position.cur_stop_price, position.profit_target,
        )
        self.listeners.notify(
            "on_enter_position",
            PositionEvent(price=entry_price, bar=bar, position=snapshot(position), reason="enter"),
        )

    def _manage(self, bar: Any) -> None:
        position = self._require_open_position()
        is_long = position.is_long

        if is_long:
            position.max_price_recorded = max(position.max_price_recorded, bar.high)
        else:
            position.max_price_recorded = min(position.max_price_recorded, bar.low)

        stop = position.cur_stop_price
        if stop is not None and (bar.low <= stop if is_long else bar.high >= stop):
            self._close_position(bar, stop, ExitReason.STOP_LOSS)
            return

        if self.strategy.trailing_stop_loss is not None:
            distance = self.strategy.trailing_stop_loss(self._position_args(position, bar))
            candidate = (
                position.max_price_recorded - distance if is_long else position.max_price_recorded + distance
            )
            if stop is None or (candidate > stop if is_long else candidate < stop):
                position.cur_stop_price = candidate

        if self.options.record_stop_price and position.cur_stop_price is not None:
            position.stop_price_series = record_point(position.stop_price_series, bar.time, position.cur_stop_price)

        target = position.profit_target
        if target is not None and (bar.high >= target if is_long else bar.low <= target):
            self._close_position(bar, target, ExitReason.PROFIT_TARGET)
            return

        update_position(position, bar)
        if self.options.record_risk and position.cur_risk_pct is not None:
            position.risk_series = record_point(position.risk_series, bar.time, position.cur_risk_pct)

        if self.strategy.exit_rule is not None:
            self.strategy.exit_rule(self._exit_position, self._position_args(position, bar))

    def _close_position(self, bar: Any, exit_price: float, exit_reason: ExitReason) -> None:
        position = self._require_open_position()
        trade = finalize_position(position, bar.time, exit_price, exit_reason)
        self.completed_trades.append(trade)
        self.open_position = None
        self.status = PositionStatus.NONE
        logger.debug("Exited %s @ %s reason=%s", position.direction.value, exit_price, trade.exit_reason)
        self.listeners.notify(
            "on_exit_position",
            PositionEvent(price=exit_price, bar=bar, position=snapshot(position), reason=trade.exit_reason),
        )
