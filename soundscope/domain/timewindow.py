from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Mapping, Optional, TypeVar, Union

from .entities import TimeDimension, TimeWindow
from .normalization import parse_timestamp

T = TypeVar("T")

# Streaming service launch year, used as the start of the all-time window.
EPOCH_YEAR = 2000

_MONTHS_BACK = {
    TimeDimension.MONTH: 1,
    TimeDimension.THREE_MONTHS: 3,
    TimeDimension.SIX_MONTHS: 6,
}


def as_dimension(value: Union[str, TimeDimension]) -> TimeDimension:
    if isinstance(value, TimeDimension):
        return value
    try:
        return TimeDimension(value)
    except ValueError:
        raise ValueError(f"Unknown time dimension: {value!r}") from None


def _subtract_months(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _subtract_years(moment: datetime, years: int) -> datetime:
    year = moment.year - years
    day = min(moment.day, calendar.monthrange(year, moment.month)[1])
    return moment.replace(year=year, day=day)


def resolve_window(dimension: Union[str, TimeDimension], now: Optional[datetime] = None) -> TimeWindow:
    """Map a time dimension to a ``[start, end]`` interval ending at ``now``.

    Months and years are subtracted on the calendar fields, clamping the day
    when the target month is shorter. ``now`` is used exactly as given.
    """
    dimension = as_dimension(dimension)
    end = now if now is not None else datetime.now(timezone.utc)

    if dimension is TimeDimension.WEEK:
        start = end - timedelta(days=7)
    elif dimension in _MONTHS_BACK:
        start = _subtract_months(end, _MONTHS_BACK[dimension])
    elif dimension is TimeDimension.YEAR:
        start = _subtract_years(end, 1)
    else:
        # 2000 is a leap year, so every month/day of ``end`` exists in it.
        start = end.replace(year=EPOCH_YEAR)

    return TimeWindow(start=start, end=end)


def trailing_days(days: int, now: Optional[datetime] = None) -> TimeWindow:
    end = now if now is not None else datetime.now(timezone.utc)
    return TimeWindow(start=end - timedelta(days=days), end=end)


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def record_timestamp(record: Any, prefer_added: bool = False) -> Optional[datetime]:
    """Return ``played_at`` if present, else ``added_at``, as an aware datetime.

    With ``prefer_added`` ``added_at`` is read first.
    """
    fields = ('added_at', 'played_at') if prefer_added else ('played_at', 'added_at')
    if isinstance(record, Mapping):
        raw = record.get(fields[0]) or record.get(fields[1])
    else:
        raw = getattr(record, fields[0], None) or getattr(record, fields[1], None)
        if raw is None:
            raw = getattr(record, 'timestamp', None)
    return parse_timestamp(raw)


def in_window(record: Any, window: TimeWindow, prefer_added: bool = False) -> bool:
    moment = record_timestamp(record, prefer_added)
    if moment is None:
        return False
    return _utc(window.start) <= moment <= _utc(window.end)


def filter_by_window(records: Optional[Iterable[T]],
                     dimension: Union[str, TimeDimension],
                     now: Optional[datetime] = None,
                     prefer_added: bool = False) -> List[T]:
    """Keep records whose timestamp lies inside the window, boundaries included.

    Records without a readable timestamp are dropped.
    """
    if not records:
        return []
    window = resolve_window(dimension, now)
    return [record for record in records if in_window(record, window, prefer_added)]
