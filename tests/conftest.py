import math
import sys
from pathlib import Path

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from gridsim.candles import CandleBar, CandleSeries  # noqa: E402
from gridsim.strategy import RunParameters  # noqa: E402

# 2023-01-01 00:00:00 UTC
T0 = 1672531200000
MINUTE = 60_000


def make_bar(i, open_, high, low, close):
    start = T0 + i * MINUTE
    return CandleBar(start_time=start, open=open_, high=high, low=low, close=close,
                     volume=1.0, end_time=start + MINUTE - 1, quote_volume=close)


def make_params(start_price=100, floor_price=80, interval=10, total_asset=200,
                principal=100, duration=1, **kwargs):
    return RunParameters(start_price=start_price, floor_price=floor_price,
                         total_asset=total_asset, principal=principal,
                         duration=duration, interval=interval, **kwargs)


@pytest.fixture()
def bounce_candles():
    """Buys at 100, sells at 105, then dips to 94"""
    return CandleSeries([
        make_bar(0, 101, 101, 99, 100),
        make_bar(1, 100, 106, 100, 105),
        make_bar(2, 104, 104, 94, 99),
    ])


@pytest.fixture()
def oscillating_candles():
    bars = []
    prev = 101.0
    for i in range(300):
        close = round(100 + 12 * math.sin(i / 7) - i * 0.02, 2)
        high = max(prev, close) + 1.5
        low = min(prev, close) - 1.5
        bars.append(make_bar(i, prev, high, low, close))
        prev = close
    return CandleSeries(bars)
