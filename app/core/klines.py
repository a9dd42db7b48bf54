import io
import logging
import os
import zipfile
from datetime import date, datetime, timedelta
from typing import List, Optional

import pandas as pd
import requests

from gridsim.candles import KLINE_COLUMNS, CandleSeries
from gridsim.exceptions import DataUnavailable, InvalidConfiguration

logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'

_store = None


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def date_range(start: str, end: str) -> List[str]:
    """Every calendar day from start to end, inclusive"""
    first, last = parse_date(start), parse_date(end)
    if first > last:
        raise InvalidConfiguration(f"Start date {start} is after end date {end}")
    return [(first + timedelta(days=i)).strftime(DATE_FORMAT)
            for i in range((last - first).days + 1)]


def duration_days(start: str, end: str) -> int:
    return (parse_date(end) - parse_date(start)).days + 1


class KlineStore:
    """Daily kline archives of one pair, cached on disk per day"""

    def __init__(self, base_url: str, symbol: str, resolution: str = '1m',
                 cache_dir: Optional[str] = None, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.symbol = symbol.upper()
        self.resolution = resolution
        self.cache_dir = cache_dir
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict) -> 'KlineStore':
        klines = config['klines']
        return cls(
            base_url=klines['base_url'],
            symbol=klines['symbol'],
            resolution=klines.get('resolution', '1m'),
            cache_dir=klines.get('cache_dir'),
            timeout=klines.get('timeout', 30)
        )

    def archive_name(self, day: str) -> str:
        return f"{self.symbol}-{self.resolution}-{day}"

    def archive_url(self, day: str) -> str:
        return (f"{self.base_url}/data/spot/daily/klines/{self.symbol}/{self.resolution}/"
                f"{self.archive_name(day)}.zip")

    def cache_path(self, day: str) -> Optional[str]:
        if not self.cache_dir:
            return None
        return os.path.join(self.cache_dir, self.symbol, self.resolution, f"{day}.csv")

    @staticmethod
    def parse_csv(data: bytes) -> pd.DataFrame:
        df = pd.read_csv(io.BytesIO(data), header=None, float_precision='round_trip')
        # Drop a header row and blank trailing lines
        df = df[pd.to_numeric(df[0], errors='coerce').notna()].iloc[:, :len(KLINE_COLUMNS)]
        if df.empty:
            return pd.DataFrame(columns=KLINE_COLUMNS)
        df.columns = KLINE_COLUMNS
        df = df.apply(pd.to_numeric)
        for column in ('start_time', 'end_time'):
            df[column] = df[column].astype('int64')
            # Archives from 2025 onwards are stamped in microseconds
            micros = df[column] > 10 ** 14
            df.loc[micros, column] = df.loc[micros, column] // 1000
        return df.reset_index(drop=True)

    def download_day(self, day: str) -> pd.DataFrame:
        url = self.archive_url(day)
        logger.info("Downloading %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code == 404:
                raise DataUnavailable(f"No kline data published for {day}", date=day)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DataUnavailable(f"Error downloading klines for {day}: {e}", date=day) from e

        try:
            with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
                member = f"{self.archive_name(day)}.csv"
                if member not in archive.namelist():
                    raise DataUnavailable(f"Archive for {day} has no {member}", date=day)
                data = archive.read(member)
        except zipfile.BadZipFile as e:
            raise DataUnavailable(f"Corrupt kline archive for {day}", date=day) from e

        try:
            df = self.parse_csv(data)
        except pd.errors.EmptyDataError as e:
            raise DataUnavailable(f"Kline archive for {day} is empty", date=day) from e
        if df.empty:
            raise DataUnavailable(f"Kline archive for {day} has no rows", date=day)
        return df

    def fetch_day(self, day: str) -> pd.DataFrame:
        path = self.cache_path(day)
        if path and os.path.exists(path):
            logger.debug("Cache hit for %s", day)
            return pd.read_csv(path, float_precision='round_trip')

        df = self.download_day(day)
        if path:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            # Only a complete file may become a cache hit
            tmp_path = path + '.tmp'
            df.to_csv(tmp_path, index=False)
            os.replace(tmp_path, path)
        return df

    def get_candles(self, start: str, end: str) -> CandleSeries:
        """Stitch the days from start to end into one series.

        Raises DataUnavailable if any day is missing; a shortened series is
        never returned.
        """
        days = date_range(start, end)
        frames = [self.fetch_day(day) for day in days]
        df = pd.concat(frames, ignore_index=True).sort_values('start_time', kind='stable')
        candles = CandleSeries.from_dataframe(df)
        logger.info("Loaded %d candles for %s from %s to %s", len(candles), self.symbol, start, end)
        return candles


def init_klines(app):
    global _store
    with app.app_context():
        logger.info("Initializing kline store...")
        _store = KlineStore.from_config(app.config)
        app.extensions['klines'] = _store


def get_klines_store():
    if _store is None:
        raise RuntimeError("Kline store not initialized. Call init_klines first.")
    return _store
