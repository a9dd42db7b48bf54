import logging
import math
from dataclasses import dataclass
from typing import Dict, List

from .exceptions import DivisionUndefined, InvalidConfiguration
from .strategy import Position, RunParameters
from .utils import round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryConfig:
    # Quote currency to report currency
    conversion_rate: float = 7.1
    # Total asset = principal * asset_multiplier (principal plus borrowed capital)
    asset_multiplier: float = 3

    @classmethod
    def from_config(cls, config: Dict) -> 'SummaryConfig':
        simulation = config.get('simulation', {})
        return cls(
            conversion_rate=float(simulation.get('conversion_rate', cls.conversion_rate)),
            asset_multiplier=float(simulation.get('asset_multiplier', cls.asset_multiplier))
        )


@dataclass(frozen=True)
class Summary:
    count: int
    completed_count: int
    uncompleted_count: int
    count_per_day: int
    completed_per_day: int
    fee_count: int
    completed_profit: float
    uncompleted_profit: float
    total_profit: float
    average_profit: float
    total_profit_rate: float
    average_profit_rate: float
    risk_rate: float

    @property
    def liquidated(self) -> bool:
        """Whether the borrowed capital would no longer be covered"""
        return self.risk_rate < 1

    def to_dict(self) -> Dict:
        return {
            'count': self.count,
            'completedCount': self.completed_count,
            'uncompletedCount': self.uncompleted_count,
            'countPerday': self.count_per_day,
            'completedPerday': self.completed_per_day,
            'feeCount': self.fee_count,
            'totalProfit': self.total_profit,
            'completedProfit': self.completed_profit,
            'uncompletedProfit': self.uncompleted_profit,
            'averageProfit': self.average_profit,
            'totalProfitRate': self.total_profit_rate,
            'averageProfitRate': self.average_profit_rate,
            'riskRate': self.risk_rate
        }


class PerformanceSummarizer:
    def __init__(self, config: SummaryConfig = SummaryConfig()):
        if config.conversion_rate <= 0:
            raise InvalidConfiguration(f"Conversion rate must be positive, got {config.conversion_rate}")
        if config.asset_multiplier <= 1:
            raise InvalidConfiguration(
                f"Asset multiplier must include borrowed capital, got {config.asset_multiplier}")
        self.config = config

    def summarize(self, positions: List[Position], params: RunParameters) -> Summary:
        """Reduce the fills of one run into aggregate statistics

        Args:
            positions: Fills in creation order
            params: Parameters the fills were produced with

        Returns:
            Summary: Profits in report currency, rates in percent
        """
        duration = params.duration
        principal = params.principal
        if duration <= 0:
            raise DivisionUndefined(f"Duration must be at least one day, got {duration}",
                                    interval=params.interval)
        if principal <= 0:
            raise InvalidConfiguration(f"Principal must be positive, got {principal}",
                                       interval=params.interval)

        conversion_rate = self.config.conversion_rate
        multiplier = self.config.asset_multiplier

        completed = [p for p in positions if p.completed]
        uncompleted = [p for p in positions if not p.completed]

        completed_profit = round2(sum(p.profit for p in completed) * conversion_rate)
        uncompleted_profit = round2(sum(p.profit for p in uncompleted) * conversion_rate)
        total_profit = round2(completed_profit + uncompleted_profit)

        # Share of the borrowed capital still covered; below 1 means liquidation
        risk_rate = round2((multiplier * principal + total_profit) / ((multiplier - 1) * principal))
        total_profit_rate = round2(total_profit / conversion_rate / principal * 100)

        summary = Summary(
            count=len(positions),
            completed_count=len(completed),
            uncompleted_count=len(uncompleted),
            count_per_day=math.floor(len(positions) / duration),
            completed_per_day=math.floor(len(completed) / duration),
            fee_count=sum(1 for p in positions if p.paid_fee),
            completed_profit=completed_profit,
            uncompleted_profit=uncompleted_profit,
            total_profit=total_profit,
            average_profit=round2(total_profit / duration),
            total_profit_rate=total_profit_rate,
            average_profit_rate=round2(total_profit_rate / duration),
            risk_rate=risk_rate
        )
        if summary.liquidated:
            logger.warning("Interval %s: risk rate %.2f is below 1", params.interval, risk_rate)
        return summary


def summarize(positions: List[Position], params: RunParameters,
              config: SummaryConfig = SummaryConfig()) -> Summary:
    return PerformanceSummarizer(config).summarize(positions, params)
