from typing import Optional


class BacktestError(Exception):
    """Base class for every error raised by the grid backtester"""


class InvalidConfiguration(BacktestError, ValueError):
    def __init__(self, message: str, interval: Optional[float] = None):
        super().__init__(message)
        self.interval = interval


class DivisionUndefined(InvalidConfiguration):
    """Per-day figures requested over a window of zero or negative length"""


class DataUnavailable(BacktestError):
    def __init__(self, message: str, date: Optional[str] = None):
        super().__init__(message)
        self.date = date


class ComputationError(BacktestError):
    pass


class EmptyGrid(InvalidConfiguration):
    """The interval is wider than the deficit, so no grid level fits"""
