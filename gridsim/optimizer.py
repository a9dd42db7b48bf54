import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import pandas as pd

from .backtester import PerformanceSummarizer, Summary, SummaryConfig
from .candles import CandleSeries
from .exceptions import EmptyGrid, InvalidConfiguration
from .strategy import GridSimulator, Position, RunParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryOnlyRunResult:
    interval: float
    position_count: int
    position_amount: int
    summary: Summary

    def to_dict(self) -> Dict:
        return {
            'interval': self.interval,
            'positionCount': self.position_count,
            'positionAmount': self.position_amount,
            'summary': self.summary.to_dict()
        }


@dataclass(frozen=True)
class DetailedRunResult(SummaryOnlyRunResult):
    transaction: List[Position] = field(default_factory=list)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['transaction'] = [position.to_dict() for position in self.transaction]
        return data


@dataclass(frozen=True)
class SkippedRunResult:
    """A swept interval whose sizing was invalid"""
    interval: float
    error: str

    def to_dict(self) -> Dict:
        return {'interval': self.interval, 'error': self.error}


RunResult = Union[DetailedRunResult, SummaryOnlyRunResult, SkippedRunResult]


def interval_range(start_interval: float, end_interval: float, step: float = 1) -> List[float]:
    """Inclusive list of swept intervals, computed without accumulating step error"""
    if step <= 0:
        raise InvalidConfiguration(f"Interval step must be positive, got {step}")
    if start_interval <= 0 or start_interval > end_interval:
        raise InvalidConfiguration(
            f"Invalid interval range {start_interval} ~ {end_interval}")
    count = math.floor((end_interval - start_interval) / step + 1e-9) + 1
    return [start_interval + i * step for i in range(count)]


def evaluate_interval(candles: CandleSeries, params: RunParameters,
                      summary_config: SummaryConfig, detailed: bool = False) -> SummaryOnlyRunResult:
    """Run one grid simulation and summarize it"""
    simulator = GridSimulator(params)
    positions = simulator.simulate(candles)
    summary = PerformanceSummarizer(summary_config).summarize(positions, params)
    if detailed:
        return DetailedRunResult(
            interval=params.interval,
            position_count=simulator.position_count,
            position_amount=simulator.position_amount,
            summary=summary,
            transaction=positions
        )
    return SummaryOnlyRunResult(
        interval=params.interval,
        position_count=simulator.position_count,
        position_amount=simulator.position_amount,
        summary=summary
    )


def _evaluate_point(candles: CandleSeries, params: RunParameters,
                    summary_config: SummaryConfig) -> RunResult:
    try:
        params.position_amount
    except EmptyGrid as e:
        return SkippedRunResult(interval=params.interval, error=str(e))
    return evaluate_interval(candles, params, summary_config)


class SweepRunner:
    def __init__(self, candles: CandleSeries, base_params: RunParameters,
                 summary_config: SummaryConfig = SummaryConfig()):
        candles.require_bars()
        base_params.validate_run()
        self.candles = candles
        self.base_params = base_params
        self.summary_config = summary_config

    def run(self, interval: Optional[float] = None,
            start_interval: Optional[float] = None,
            end_interval: Optional[float] = None,
            step: float = 1,
            num_workers: int = 1,
            abort_on_error: bool = False) -> List[RunResult]:
        """
        Backtest one interval, or every interval of a closed range

        Args:
            interval: Single interval; its result keeps the full transaction list
            start_interval: First interval of the range
            end_interval: Last interval of the range, inclusive
            step: Distance between swept intervals
            num_workers: Processes used for a range sweep
            abort_on_error: Raise on the first invalid range point instead of skipping it

        Returns:
            list: One result per interval, in interval order
        """
        if interval:
            params = self.base_params.with_interval(interval)
            logger.info("Simulating interval %s", interval)
            return [evaluate_interval(self.candles, params, self.summary_config, detailed=True)]

        if start_interval is None or end_interval is None:
            raise InvalidConfiguration(
                "Missing interval (or both start_interval and end_interval)")

        intervals = interval_range(start_interval, end_interval, step)
        logger.info("Sweeping %d intervals from %s to %s", len(intervals), start_interval, end_interval)
        points = [self.base_params.with_interval(value) for value in intervals]

        if num_workers > 1 and len(points) > 1:
            with ProcessPoolExecutor(max_workers=num_workers) as executor:
                futures = [executor.submit(_evaluate_point, self.candles, params, self.summary_config)
                           for params in points]
                results = [future.result() for future in futures]
        else:
            results = [_evaluate_point(self.candles, params, self.summary_config) for params in points]

        for result in results:
            if isinstance(result, SkippedRunResult):
                if abort_on_error:
                    raise InvalidConfiguration(result.error, interval=result.interval)
                logger.warning("Skipping interval %s: %s", result.interval, result.error)
        return results


@dataclass
class SweepReport:
    params: Dict
    summaries: List[RunResult]

    def to_dict(self) -> Dict:
        return {
            'params': self.params,
            'summaries': [result.to_dict() for result in self.summaries]
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per interval, for comparing variants side by side"""
        rows = []
        for result in self.summaries:
            row = {'interval': result.interval}
            if isinstance(result, SkippedRunResult):
                row['error'] = result.error
            else:
                row['position_count'] = result.position_count
                row['position_amount'] = result.position_amount
                row.update(vars(result.summary))
            rows.append(row)
        return pd.DataFrame(rows).set_index('interval') if rows else pd.DataFrame()


def build_report(candles: CandleSeries, base_params: RunParameters, start: str, end: str,
                 results: List[RunResult], interval: Optional[float] = None,
                 start_interval: Optional[float] = None,
                 end_interval: Optional[float] = None) -> SweepReport:
    """Echo the run inputs and derived anchors next to the results"""
    params = {
        'start': start,
        'end': end,
        'duration': base_params.duration,
        'principal': base_params.principal,
        'totalAsset': base_params.total_asset,
        'startPrice': base_params.start_price,
        'closePrice': candles.last.close,
        'floorPrice': base_params.floor_price,
        'deficit': base_params.deficit,
        'interval': interval if interval else f"{start_interval} ~ {end_interval}",
        'progress': base_params.progress,
        'strict': base_params.strict
    }
    return SweepReport(params=params, summaries=results)


def run_sweep(candles: CandleSeries, base_params: RunParameters,
              summary_config: SummaryConfig = SummaryConfig(), **kwargs) -> List[RunResult]:
    return SweepRunner(candles, base_params, summary_config).run(**kwargs)
