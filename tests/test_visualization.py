import pytest

from gridsim.optimizer import SweepRunner
from gridsim.visualization import TradingVisualizer

from conftest import make_params


def test_fills_frame_lists_buys_and_sells(oscillating_candles):
    result = SweepRunner(oscillating_candles, make_params(interval=None)).run(interval=4)[0]
    fills = TradingVisualizer(oscillating_candles, result).fills_frame()

    sold = [p for p in result.transaction if p.sell is not None]
    assert (fills['action'] == 'BUY').sum() == len(result.transaction)
    assert (fills['action'] == 'SELL').sum() == len(sold)
    assert fills['timestamp'].is_monotonic_increasing
    assert fills.loc[fills['action'] == 'SELL', 'profit'].sum() == pytest.approx(sum(p.profit for p in sold))


def test_trading_view_has_price_fills_and_profit(oscillating_candles):
    result = SweepRunner(oscillating_candles, make_params(interval=None)).run(interval=4)[0]
    visualizer = TradingVisualizer(oscillating_candles, result)
    fig = visualizer.create_trading_view()

    assert [trace.name for trace in fig.data] == ['Price', 'BUY', 'SELL', 'Realized Profit']
    assert len(fig.data[0].x) == len(oscillating_candles)
    assert '<html>' in visualizer.to_html()
