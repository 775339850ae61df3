"""Long positions: stop-loss, trailing stop, profit target, risk and R-multiple tracking."""

from math import inf

import pytest

from trade_sim.backtesting.engine import backtest
from trade_sim.backtesting.events import BacktestListener
from trade_sim.core.types import TradeDirection
from trade_sim.strategies.base import Strategy

from tests.helpers import day, make_bars


def long_entry(enter, args):
    enter(TradeDirection.LONG)


def long_once(enter, args):
    if args.bar.time == day(0):
        enter(TradeDirection.LONG)


def stop_20pct(args):
    return args.entry_price * 20 / 100


def trailing_20pct_of_close(args):
    return args.bar.close * 20 / 100


def rounded(series):
    return [(p.time, round(p.value, 2)) for p in series]


def test_going_long_makes_a_profit_when_price_rises():
    trades = backtest(Strategy(entry_rule=long_entry), make_bars([1, {"open": 3, "close": 4}, 5]))
    assert trades[0].profit == pytest.approx(5 - 3)


def test_going_long_makes_a_loss_when_price_drops():
    trades = backtest(Strategy(entry_rule=long_entry), make_bars([10, {"open": 6, "close": 5}, 4]))
    assert trades[0].profit == pytest.approx(4 - 6)


def test_can_exit_long_via_stop_loss():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 90, 70, 70]))
    assert len(trades) == 1
    trade = trades[0]
    assert trade.stop_price == pytest.approx(80)
    assert trade.exit_reason == "stop-loss"
    assert trade.exit_time == day(3)


def test_stop_loss_exits_long_based_on_intrabar_low():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    bars = make_bars([100, 100, 90, {"open": 90, "high": 100, "low": 30, "close": 70}, 70])
    trades = backtest(strategy, bars)
    assert trades[0].exit_price == pytest.approx(80)


def test_stop_loss_is_not_triggered_without_significant_loss():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 90, 85, 82]))
    assert len(trades) == 1
    assert trades[0].exit_reason == "finalize"
    assert trades[0].exit_time == day(4)


def test_can_exit_long_via_profit_target():
    strategy = Strategy(entry_rule=long_entry, profit_target=lambda args: args.entry_price * 10 / 100)
    trades = backtest(strategy, make_bars([100, 100, 105, {"open": 106, "high": 120, "low": 104, "close": 107}, 120]))
    assert len(trades) == 1
    trade = trades[0]
    assert trade.profit_target == pytest.approx(110)
    assert trade.exit_reason == "profit-target"
    assert trade.exit_price == pytest.approx(110)
    assert trade.exit_time == day(3)


def test_long_exit_is_not_triggered_unless_target_is_reached():
    strategy = Strategy(entry_rule=long_entry, profit_target=lambda args: args.entry_price * 30 / 100)
    trades = backtest(strategy, make_bars([100, 100, 110, 120, 125]))
    assert trades[0].exit_reason == "finalize"
    assert trades[0].exit_time == day(4)


def test_stop_loss_takes_precedence_over_profit_target_on_same_bar():
    strategy = Strategy(entry_rule=long_once, stop_loss=lambda args: 10.0, profit_target=lambda args: 10.0)
    trades = backtest(strategy, make_bars([100, 100, {"open": 100, "high": 120, "low": 80, "close": 100}, 100]))
    assert trades[0].exit_reason == "stop-loss"
    assert trades[0].exit_price == pytest.approx(90)


def test_can_exit_long_via_trailing_stop_loss():
    strategy = Strategy(entry_rule=long_entry, trailing_stop_loss=trailing_20pct_of_close)
    trades = backtest(strategy, make_bars([100, 100, 90, 70, 70]))
    assert len(trades) == 1
    assert trades[0].exit_reason == "stop-loss"
    assert trades[0].exit_time == day(3)


def test_can_exit_long_via_rising_trailing_stop_loss():
    strategy = Strategy(entry_rule=long_entry, trailing_stop_loss=trailing_20pct_of_close)
    trades = backtest(strategy, make_bars([100, 100, 200, 150, 150]))
    assert len(trades) == 1
    trade = trades[0]
    assert trade.exit_reason == "stop-loss"
    assert trade.exit_time == day(3)
    # Highest high 200, distance 20% of that bar's close.
    assert trade.exit_price == pytest.approx(160)


def test_trailing_stop_loss_exits_long_based_on_intrabar_low():
    strategy = Strategy(entry_rule=long_entry, trailing_stop_loss=trailing_20pct_of_close)
    bars = make_bars([100, 100, 90, {"open": 90, "high": 100, "low": 30, "close": 70}, 70])
    trades = backtest(strategy, bars)
    assert trades[0].exit_price == pytest.approx(82)


def test_trailing_stop_loss_is_not_triggered_without_significant_loss():
    strategy = Strategy(entry_rule=long_entry, trailing_stop_loss=trailing_20pct_of_close)
    trades = backtest(strategy, make_bars([100, 100, 90, 85, 84]))
    assert trades[0].exit_reason == "finalize"
    assert trades[0].exit_time == day(4)


def test_trailing_stop_with_fixed_stop_loss():
    def trailing(args):
        # Only trail once the close is 10% above entry.
        if args.bar.close >= args.entry_price * 1.1:
            return args.bar.close * 2 / 100
        return inf

    strategy = Strategy(
        entry_rule=long_entry,
        stop_loss=lambda args: args.entry_price * 1.5 / 100,
        trailing_stop_loss=trailing,
    )
    trades = backtest(strategy, make_bars([100, 100, 98, 110, 120, 140, 130]))
    assert len(trades) == 2

    first, second = trades
    assert first.exit_reason == "stop-loss"
    assert first.exit_price == pytest.approx(98.5)
    assert first.exit_time == day(2)

    assert second.entry_price == pytest.approx(120)
    assert second.stop_price == pytest.approx(118.2)
    assert second.exit_reason == "stop-loss"
    assert second.exit_price == pytest.approx(137.2)
    assert second.exit_time == day(6)


def test_initial_stop_is_tighter_of_fixed_and_trailing():
    strategy = Strategy(
        entry_rule=long_once,
        stop_loss=lambda args: 20.0,
        trailing_stop_loss=lambda args: 5.0,
    )
    trades = backtest(strategy, make_bars([100, 100, 101]))
    assert trades[0].stop_price == pytest.approx(95)
    assert trades[0].risk_pct == pytest.approx(5)


def test_trailing_stop_never_loosens():
    def trailing(args):
        return 10.0 if args.bar.close > 102 else 30.0

    strategy = Strategy(entry_rule=long_once, trailing_stop_loss=trailing)
    trades = backtest(strategy, make_bars([100, 100, 110, 101, 115, 112]), {"record_stop_price": True})
    trade = trades[0]
    assert trade.exit_reason == "finalize"
    assert [p.value for p in trade.stop_price_series] == pytest.approx([70, 100, 100, 105, 105])
    values = [p.value for p in trade.stop_price_series]
    assert all(b >= a for a, b in zip(values, values[1:]))


def test_fixed_stop_is_recorded_every_bar():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 90, 85, 82]), {"record_stop_price": True})
    series = trades[0].stop_price_series
    assert [p.time for p in series] == [day(1), day(2), day(3), day(4)]
    assert [p.value for p in series] == pytest.approx([80, 80, 80, 80])


def test_series_not_recorded_by_default():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trade = backtest(strategy, make_bars([100, 100, 90]))[0]
    assert trade.stop_price_series is None
    assert trade.risk_series is None


def test_can_place_intrabar_conditional_long_order():
    def entry(enter, args):
        if args.bar.time == day(0):
            enter(TradeDirection.LONG, entry_price=6)

    bars = make_bars([1, {"close": 3, "high": 4}, {"open": 5, "high": 7, "low": 4, "close": 6}, 6])
    trades = backtest(Strategy(entry_rule=entry), bars)
    assert len(trades) == 1
    assert trades[0].entry_time == day(2)
    assert trades[0].entry_price == pytest.approx(5)


def test_conditional_long_order_not_executed_if_price_not_reached():
    def entry(enter, args):
        enter(TradeDirection.LONG, entry_price=6)

    bars = make_bars([1, {"close": 3, "high": 4}, {"close": 5, "high": 5.5}, 4])
    assert backtest(Strategy(entry_rule=entry), bars) == []


def test_computes_risk_from_initial_stop():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 110]))
    assert trades[0].risk_pct == pytest.approx(20)


def test_computes_rmultiple_from_initial_risk_and_profit():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 120]))
    assert trades[0].rmultiple == pytest.approx(1)


def test_computes_rmultiple_from_initial_risk_and_loss():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 70]))
    assert trades[0].exit_reason == "stop-loss"
    assert trades[0].rmultiple == pytest.approx(-1)


def test_rmultiple_undefined_without_stop():
    trades = backtest(Strategy(entry_rule=long_entry), make_bars([100, 100, 120]))
    assert trades[0].rmultiple is None
    assert trades[0].risk_pct is None


def test_current_risk_rises_as_profit_increases():
    strategy = Strategy(entry_rule=long_entry, stop_loss=stop_20pct)
    trades = backtest(strategy, make_bars([100, 100, 150, 140, 200, 190, 250]), {"record_risk": True})
    assert rounded(trades[0].risk_series) == [
        (day(1), 20),
        (day(2), 46.67),
        (day(3), 42.86),
        (day(4), 60),
        (day(5), 57.89),
        (day(6), 68),
    ]


def test_current_risk_remains_low_with_trailing_stop():
    strategy = Strategy(entry_rule=long_entry, trailing_stop_loss=trailing_20pct_of_close)
    trades = backtest(strategy, make_bars([100, 100, 150, 140, 200, 190, 250]), {"record_risk": True})
    assert rounded(trades[0].risk_series) == [
        (day(1), 20),
        (day(2), 20),
        (day(3), 12.86),
        (day(4), 20),
        (day(5), 14.74),
        (day(6), 20),
    ]


def test_max_price_recorded_tracks_highest_high():
    trades = backtest(Strategy(entry_rule=long_once), make_bars([100, 100, {"close": 105, "high": 112}, 104]))
    assert trades[0].max_price_recorded == pytest.approx(112)
    assert trades[0].holding_period == 2


def test_position_is_read_only_to_callbacks():
    def stop(args):
        args.position.entry_price = 1.0
        return 1.0

    with pytest.raises(AttributeError):
        backtest(Strategy(entry_rule=long_entry, stop_loss=stop), make_bars([100, 100, 100]))


class ExitSnapshot(BacktestListener):
    def __init__(self):
        self.positions = []

    def on_exit_position(self, event):
        self.positions.append(event.position)


@pytest.mark.parametrize("direction", [TradeDirection.LONG, TradeDirection.SHORT])
def test_running_profit_matches_finalized_profit_on_exit_rule(direction):
    def entry(enter, args):
        if args.bar.time == day(0):
            enter(direction)

    def exit_rule(exit_position, args):
        if args.position.holding_period == 2:
            exit_position()

    listener = ExitSnapshot()
    strategy = Strategy(entry_rule=entry, exit_rule=exit_rule, stop_loss=lambda args: 50.0)
    trades = backtest(strategy, make_bars([100, 100, 104, 97, 120]), listeners=[listener])
    assert len(trades) == 1
    trade = trades[0]
    snapshot = listener.positions[0]
    assert trade.exit_price == pytest.approx(97)
    assert snapshot.profit == pytest.approx(trade.profit)
    assert snapshot.growth == pytest.approx(trade.growth)
    assert snapshot.cur_rmultiple == pytest.approx(trade.rmultiple)
