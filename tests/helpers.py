"""Bar builders shared by the backtest tests."""

from datetime import datetime, timedelta

from trade_sim.core.types import Bar

START = datetime(2018, 10, 20)


def day(i):
    return START + timedelta(days=i)


def make_bars(rows):
    """rows: closes, or dicts with close and optional open/high/low."""
    bars = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            row = {"close": row}
        close = float(row["close"])
        bars.append(Bar(
            time=day(i),
            open=float(row.get("open", close)),
            high=float(row.get("high", close)),
            low=float(row.get("low", close)),
            close=close,
            volume=1.0,
        ))
    return bars
