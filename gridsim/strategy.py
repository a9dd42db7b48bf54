import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .candles import CandleBar, CandleSeries
from .exceptions import DivisionUndefined, EmptyGrid, InvalidConfiguration
from .utils import format_timestamp, round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunParameters:
    """Configuration of one backtest run.

    Sizing (deficit, position count and amount) is derived from the
    anchor prices, the capital and the interval, so a sweep only needs
    to swap the interval via with_interval().
    """
    start_price: float
    floor_price: float
    total_asset: float
    principal: float
    duration: int
    interval: Optional[float] = None
    progress: float = 1.0
    strict: bool = True
    utc_offset_hours: float = 0

    @classmethod
    def derive(cls, candles: CandleSeries, principal: float, floor_price: float,
               duration: int, interval: Optional[float] = None,
               asset_multiplier: float = 3, **kwargs) -> 'RunParameters':
        # Entry anchor sits just below the first open so no run starts in profit
        start_price = math.floor(candles.first.open - 1)
        return cls(
            start_price=start_price,
            floor_price=floor_price,
            total_asset=math.floor(principal * asset_multiplier),
            principal=principal,
            duration=duration,
            interval=interval,
            **kwargs
        )

    def with_interval(self, interval: float) -> 'RunParameters':
        return replace(self, interval=interval)

    @property
    def deficit(self) -> float:
        return self.start_price - self.floor_price

    @property
    def position_count(self) -> int:
        if self.interval is None or self.interval <= 0:
            raise InvalidConfiguration(f"Interval must be positive, got {self.interval}",
                                       interval=self.interval)
        return math.floor(self.deficit / self.interval)

    @property
    def position_amount(self) -> int:
        count = self.position_count
        if count <= 0:
            raise EmptyGrid(
                f"Interval {self.interval} leaves no grid level: deficit {self.deficit} "
                f"supports {count} positions",
                interval=self.interval
            )
        return math.floor(self.total_asset / count)

    def validate_run(self) -> None:
        """Check the fields shared by every interval of a run"""
        if not 0 < self.progress <= 1:
            raise InvalidConfiguration(f"Progress must be in (0, 1], got {self.progress}",
                                       interval=self.interval)
        if self.duration <= 0:
            raise DivisionUndefined(f"Duration must be at least one day, got {self.duration}",
                                    interval=self.interval)
        if self.principal <= 0:
            raise InvalidConfiguration(f"Principal must be positive, got {self.principal}",
                                       interval=self.interval)

    def validate(self) -> None:
        if not 0 < self.progress <= 1:
            raise InvalidConfiguration(f"Progress must be in (0, 1], got {self.progress}",
                                       interval=self.interval)
        # Raises for a non-positive interval or position count
        self.position_amount


@dataclass(frozen=True)
class Fill:
    price: float
    timestamp: int
    time: str
    kline: CandleBar

    @classmethod
    def at(cls, price: float, bar: CandleBar, utc_offset_hours: float = 0) -> 'Fill':
        return cls(
            price=price,
            timestamp=bar.start_time,
            time=format_timestamp(bar.start_time, utc_offset_hours),
            kline=bar
        )

    def to_dict(self) -> Dict:
        return {
            'price': self.price,
            'timestamp': self.timestamp,
            'time': self.time,
            'kline': self.kline.snapshot()
        }


@dataclass(frozen=True)
class Position:
    """One grid level: its buy fill and, once closed, its sell fill"""
    index: int
    amount: float
    rate: float
    profit: float
    buy: Fill
    sell: Optional[Fill] = None

    @property
    def completed(self) -> bool:
        return self.sell is not None

    @property
    def paid_fee(self) -> bool:
        # Filled above the bar's open: the order crossed the spread
        return self.buy.kline.open < self.buy.price

    def to_dict(self) -> Dict:
        data = {
            'meta': {
                'amount': self.amount,
                'rate': self.rate,
                'profit': self.profit
            },
            'buy': self.buy.to_dict()
        }
        if self.sell is not None:
            data['sell'] = self.sell.to_dict()
        return data


@dataclass(frozen=True)
class GridState:
    open_positions: Tuple[Position, ...]
    next_buy_price: float
    # Price of the last scheduled buy level, kept when a sell moves next_buy_price
    next_buy_price_backup: float
    opened: int = 0

    @classmethod
    def initial(cls, params: RunParameters) -> 'GridState':
        return cls(
            open_positions=(),
            next_buy_price=params.start_price,
            next_buy_price_backup=params.start_price
        )


class GridSimulator:
    def __init__(self, params: RunParameters):
        params.validate()
        self.params = params
        self.interval = params.interval
        self.position_count = params.position_count
        self.position_amount = params.position_amount

    def buy(self, state: GridState, bar: CandleBar) -> GridState:
        """Open every grid level the bar's low crosses, up to the position count"""
        params = self.params
        open_positions = list(state.open_positions)
        next_buy_price = state.next_buy_price
        backup = state.next_buy_price_backup
        opened = state.opened

        while bar.low < next_buy_price and len(open_positions) < self.position_count:
            # Opened inside the pending band: fill at the scheduled level
            if backup <= bar.open <= next_buy_price:
                next_buy_price = backup
            rate = round2(self.position_amount / next_buy_price)
            open_positions.append(Position(
                index=opened,
                amount=self.position_amount,
                rate=rate,
                profit=round2(rate * (bar.close - next_buy_price)),
                buy=Fill.at(next_buy_price, bar, params.utc_offset_hours)
            ))
            opened += 1
            next_buy_price -= self.interval
            backup = next_buy_price

        return GridState(tuple(open_positions), next_buy_price, backup, opened)

    def sell(self, state: GridState, bar: CandleBar) -> Tuple[GridState, List[Position]]:
        """Close or mark every position bought before this bar"""
        params = self.params
        next_buy_price = state.next_buy_price
        still_open = []
        closed = []
        for position in state.open_positions:
            if position.buy.timestamp == bar.start_time:
                still_open.append(position)
                continue

            sell_price = position.buy.price + self.interval * params.progress
            if bar.high > sell_price:
                closed.append(replace(
                    position,
                    profit=round2(position.rate * self.interval * params.progress),
                    sell=Fill.at(sell_price, bar, params.utc_offset_hours)
                ))
                if params.strict:
                    next_buy_price = position.buy.price
                else:
                    next_buy_price = sell_price - self.interval
            else:
                still_open.append(replace(
                    position,
                    profit=round2(position.rate * (bar.close - position.buy.price))
                ))

        return replace(state, open_positions=tuple(still_open), next_buy_price=next_buy_price), closed

    def step(self, state: GridState, bar: CandleBar) -> Tuple[GridState, List[Position]]:
        """Advance the grid by one bar.

        Returns the new state and the positions closed on this bar. All buys
        of a bar happen before any sell check, and a position never sells
        on the bar it was bought on.
        """
        return self.sell(self.buy(state, bar), bar)

    def simulate(self, candles: CandleSeries) -> List[Position]:
        candles.require_bars()
        state = GridState.initial(self.params)
        closed: List[Position] = []
        for bar in candles:
            state, closed_now = self.step(state, bar)
            closed.extend(closed_now)

        positions = sorted(closed + list(state.open_positions), key=lambda p: p.index)
        logger.debug("Interval %s: %d positions, %d still open",
                     self.interval, len(positions), len(state.open_positions))
        return positions


def simulate(candles: CandleSeries, params: RunParameters) -> List[Position]:
    return GridSimulator(params).simulate(candles)
