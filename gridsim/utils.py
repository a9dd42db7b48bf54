from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
_CENTS = Decimal('0.01')


def round2(value: float) -> float:
    """Round to 2 decimals, half away from zero on the exact float value.

    Matches the quantization reference outputs were produced with, which
    differs from round() on exact ties such as 1.125.
    """
    return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def format_timestamp(timestamp: int, utc_offset_hours: float = 0) -> str:
    tz = timezone(timedelta(hours=utc_offset_hours))
    return datetime.fromtimestamp(timestamp / 1000, tz=tz).strftime(TIME_FORMAT)
