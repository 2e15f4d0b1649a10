from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, Optional, TypeVar, Union

T = TypeVar("T")


class DateRangePreset(str, Enum):
    this_month = "this-month"
    last_month = "last-month"
    last_3_months = "last-3-months"
    last_6_months = "last-6-months"
    this_year = "this-year"
    custom = "custom"


@dataclass(frozen=True)
class Period:
    slug: str
    start: datetime
    end: datetime


def _month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)


def _from_month_index(index: int) -> tuple[int, int]:
    return index // 12, index % 12 + 1


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def _month_end(year: int, month: int) -> datetime:
    next_year, next_month = _from_month_index(_month_index(year, month) + 1)
    last_day = date(next_year, next_month, 1) - date.resolution
    return datetime.combine(last_day, time.max)


def _shift(now: datetime, months: int) -> tuple[int, int]:
    return _from_month_index(_month_index(now.year, now.month) + months)


def month_range(
    months_ago: int = 0, *, now: Optional[datetime] = None
) -> tuple[datetime, datetime]:
    now = now or datetime.now()
    year, month = _shift(now, -months_ago)
    return _month_start(year, month), _month_end(year, month)


def as_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def filter_by_range(
    transactions: Iterable[T], start: datetime, end: datetime
) -> list[T]:
    return [t for t in transactions if start <= as_datetime(t.date) <= end]


def filter_by_month(
    transactions: Iterable[T], months_ago: int = 0, *, now: Optional[datetime] = None
) -> list[T]:
    start, end = month_range(months_ago, now=now)
    return filter_by_range(transactions, start, end)


def preset_range(
    preset: Union[DateRangePreset, str], *, now: Optional[datetime] = None
) -> tuple[datetime, datetime]:
    preset = DateRangePreset(preset)
    now = now or datetime.now()
    this_start, this_end = month_range(0, now=now)

    if preset == DateRangePreset.last_month:
        return month_range(1, now=now)
    if preset == DateRangePreset.last_3_months:
        return month_range(2, now=now)[0], this_end
    if preset == DateRangePreset.last_6_months:
        return month_range(5, now=now)[0], this_end
    if preset == DateRangePreset.this_year:
        return _month_start(now.year, 1), _month_end(now.year, 12)
    # custom without explicit bounds behaves like this month
    return this_start, this_end


def resolve_range(
    preset: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> Period:
    slug = preset or DateRangePreset.this_month.value
    if slug == DateRangePreset.custom.value:
        if not start or not end:
            raise ValueError("Custom range requires start and end dates")
        start_at = as_datetime(date.fromisoformat(start))
        end_at = datetime.combine(date.fromisoformat(end), time.max)
        return Period(slug, start_at, end_at)
    range_start, range_end = preset_range(slug, now=now)
    return Period(DateRangePreset(slug).value, range_start, range_end)


def trailing_months(count: int, *, now: Optional[datetime] = None) -> list[tuple[int, int]]:
    """(year, month) keys for the last ``count`` months, oldest first."""
    now = now or datetime.now()
    return [_shift(now, -offset) for offset in range(count - 1, -1, -1)]
