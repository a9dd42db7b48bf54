import pytest

from gridsim.backtester import PerformanceSummarizer, SummaryConfig, summarize
from gridsim.candles import CandleSeries
from gridsim.exceptions import DivisionUndefined, InvalidConfiguration
from gridsim.strategy import Fill, Position, simulate

from conftest import make_bar, make_params


def make_position(index, profit, sold=True, buy_price=100, bar_open=101):
    bar = make_bar(index, bar_open, bar_open + 20, buy_price - 1, buy_price)
    sell = Fill.at(buy_price + 10, make_bar(index + 1, 100, 120, 99, 110)) if sold else None
    return Position(index=index, amount=100, rate=1.0, profit=profit,
                    buy=Fill.at(buy_price, bar), sell=sell)


def test_summary_splits_completed_and_open_profit():
    positions = [
        make_position(0, 10.0),
        make_position(1, 10.0),
        make_position(2, -3.5, sold=False),
    ]
    summary = summarize(positions, make_params(principal=1000, duration=2))

    assert summary.count == 3
    assert summary.completed_count == 2
    assert summary.uncompleted_count == 1
    assert summary.count_per_day == 1
    assert summary.completed_per_day == 1
    assert summary.completed_profit == 142.0
    assert summary.uncompleted_profit == -24.85
    assert summary.total_profit == 117.15
    assert summary.average_profit == 58.58
    # 117.15 / 7.1 / 1000 * 100
    assert summary.total_profit_rate == 1.65
    # 1.65 is stored just below the tie
    assert summary.average_profit_rate == 0.82
    # (3000 + 117.15) / 2000
    assert summary.risk_rate == 1.56
    assert not summary.liquidated


def test_fee_count_uses_buy_bar_open():
    positions = [
        make_position(0, 1.0, buy_price=100, bar_open=99),
        make_position(1, 1.0, buy_price=100, bar_open=100),
        make_position(2, 1.0, buy_price=100, bar_open=101),
    ]
    assert summarize(positions, make_params()).fee_count == 1


def test_conversion_and_multiplier_are_configurable():
    positions = [make_position(0, 10.0)]
    summary = PerformanceSummarizer(SummaryConfig(conversion_rate=1, asset_multiplier=2)).summarize(
        positions, make_params(principal=100))

    assert summary.total_profit == 10.0
    assert summary.total_profit_rate == 10.0
    # (2 * 100 + 10) / (1 * 100)
    assert summary.risk_rate == 2.1


def test_deep_loss_reports_liquidation_without_stopping():
    positions = [make_position(0, -20.0, sold=False)]
    summary = summarize(positions, make_params(principal=50))

    # (150 - 142) / 100
    assert summary.risk_rate == 0.08
    assert summary.liquidated


def test_empty_run_summarizes_to_zero():
    summary = summarize([], make_params(principal=100, duration=3))
    assert summary.count == 0
    assert summary.total_profit == 0
    assert summary.risk_rate == 1.5


def test_zero_duration_is_invalid():
    with pytest.raises(InvalidConfiguration) as exc_info:
        summarize([make_position(0, 1.0)], make_params(duration=0))
    assert isinstance(exc_info.value, DivisionUndefined)


def test_non_positive_principal_is_invalid():
    with pytest.raises(InvalidConfiguration):
        summarize([], make_params(principal=0))


def test_invalid_summary_config_is_rejected():
    with pytest.raises(InvalidConfiguration):
        PerformanceSummarizer(SummaryConfig(asset_multiplier=1))


def test_summary_config_reads_simulation_section():
    config = SummaryConfig.from_config({'simulation': {'conversion_rate': 6.5}})
    assert config.conversion_rate == 6.5
    assert config.asset_multiplier == 3


def test_summary_of_simulated_run(bounce_candles):
    params = make_params(progress=0.5, principal=100)
    summary = summarize(simulate(bounce_candles, params), params)

    assert summary.completed_profit == 35.5
    assert summary.uncompleted_profit == -7.1
    assert summary.total_profit == 28.4
    assert summary.total_profit_rate == 4.0
    assert summary.to_dict()['countPerday'] == 2


def test_single_bar_series_summary():
    candles = CandleSeries([make_bar(0, 100, 105, 95, 102)])
    params = make_params(start_price=100, floor_price=90, interval=5, principal=100)
    summary = summarize(simulate(candles, params), params)

    assert summary.uncompleted_count == 1
    assert summary.uncompleted_profit == round(2.0 * 7.1, 2)
