from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Iterator, List, Sequence, Union

import pandas as pd

from .exceptions import InvalidConfiguration

# Column order of the vendor kline archives
KLINE_COLUMNS = [
    'start_time', 'open', 'high', 'low', 'close',
    'volume', 'end_time', 'quote_volume'
]


@dataclass(frozen=True)
class CandleBar:
    start_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    end_time: int = 0
    quote_volume: float = 0.0

    @classmethod
    def from_row(cls, row: Sequence) -> 'CandleBar':
        start_time, open_, high, low, close = row[:5]
        rest = list(row[5:8]) + [0] * (3 - len(row[5:8]))
        volume, end_time, quote_volume = rest
        return cls(
            start_time=int(start_time),
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(volume),
            end_time=int(end_time),
            quote_volume=float(quote_volume)
        )

    def to_row(self) -> List:
        return [getattr(self, column) for column in KLINE_COLUMNS]

    def snapshot(self) -> Dict:
        """The part of the bar recorded alongside a fill"""
        return {
            'startTime': self.start_time,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close
        }


class CandleSeries:
    """Ordered, time-ascending sequence of one-minute bars.

    Ordering is assumed, not verified; the series is read-only once built.
    """

    def __init__(self, bars: Iterable[CandleBar]):
        self._bars = tuple(bars)

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence]) -> 'CandleSeries':
        return cls(CandleBar.from_row(row) for row in rows if len(row) >= 5)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> 'CandleSeries':
        df = df.reset_index(drop=True)
        for column in KLINE_COLUMNS[5:]:
            if column not in df.columns:
                df[column] = 0
        return cls.from_rows(df[KLINE_COLUMNS].itertuples(index=False, name=None))

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(bar) for bar in self._bars], columns=KLINE_COLUMNS)
        df['timestamp'] = pd.to_datetime(df['start_time'], unit='ms')
        return df.set_index('timestamp')

    def to_rows(self) -> List[List]:
        return [bar.to_row() for bar in self._bars]

    def require_bars(self) -> None:
        if not self._bars:
            raise InvalidConfiguration("Candle series is empty")

    @property
    def first(self) -> CandleBar:
        self.require_bars()
        return self._bars[0]

    @property
    def last(self) -> CandleBar:
        self.require_bars()
        return self._bars[-1]

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[CandleBar]:
        return iter(self._bars)

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return CandleSeries(self._bars[index])
        return self._bars[index]

    def __add__(self, other: 'CandleSeries') -> 'CandleSeries':
        return CandleSeries(self._bars + tuple(other))

    def __eq__(self, other) -> bool:
        return isinstance(other, CandleSeries) and self._bars == other._bars

    def __repr__(self) -> str:
        return f"CandleSeries({len(self._bars)} bars)"
