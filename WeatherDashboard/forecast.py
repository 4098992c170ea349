"""Forecast aggregation and pagination - pure functions for testability."""
import math
from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional, Sequence, TypeVar
from weather_data import ForecastDay, ForecastSample

PAGE_SIZE = 5

T = TypeVar("T")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[float]) -> int:
    return round_half_up(sum(values) / len(values))


def local_date(timestamp: int, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of a UNIX timestamp in ``tz`` (process local time when None)."""
    return datetime.fromtimestamp(timestamp, tz).date()


def aggregate_forecast(samples: Sequence[ForecastSample], tz: Optional[tzinfo] = None) -> List[ForecastDay]:
    """
    Bucket 3-hourly samples by calendar day and summarize each day.

    Min/max are true extrema of the day's temperatures, everything else is a
    rounded arithmetic mean. The icon and description come from the sample at
    index ``count // 2`` of the day, which is the temporal midpoint and not
    necessarily local noon. Partial days at either end are kept as they are.

    Args:
        samples: Raw forecast samples in any order
        tz: Timezone used to find each sample's calendar day

    Returns:
        One ForecastDay per distinct day, oldest first
    """
    days: Dict[date, List[ForecastSample]] = {}
    for sample in sorted(samples, key=lambda s: s.timestamp):
        days.setdefault(local_date(sample.timestamp, tz), []).append(sample)

    forecast = []
    for day, entries in days.items():
        temps = [s.temp for s in entries]
        midpoint = entries[len(entries) // 2]
        forecast.append(ForecastDay(
            date=day,
            temp_min=round_half_up(min(temps)),
            temp_max=round_half_up(max(temps)),
            avg_temp=_mean(temps),
            feels_like=_mean([s.feels_like for s in entries]),
            icon=midpoint.icon,
            description=midpoint.description,
            avg_humidity=_mean([s.humidity for s in entries]),
            avg_wind_speed=_mean([s.wind_speed for s in entries]),
            avg_pressure=_mean([s.pressure for s in entries]),
            avg_clouds=_mean([s.clouds for s in entries]),
        ))
    return forecast


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


def clamp_page(page: int, total: int, page_size: int = PAGE_SIZE) -> int:
    """Clamp a page index into ``[0, page_count - 1]``; 0 when there are no pages."""
    last = page_count(total, page_size) - 1
    return max(0, min(page, last))


def page_slice(items: Sequence[T], page: int, page_size: int = PAGE_SIZE) -> List[T]:
    start = page * page_size
    return list(items[start:start + page_size])
