"""
Availability Service

Free-window calculation for schedulable resources:
- weekly working hours are expanded onto a concrete date in the account's timezone
- the resource's active assigned jobs are subtracted
- what is left is returned as local, timezone-aware intervals

Intervals are dicts {"start": datetime, "end": datetime}. Stored timestamps
are naive UTC, so everything is converted to aware datetimes first.
"""

import logging
from datetime import datetime, date, timedelta
from typing import Dict, Iterable, List, Tuple

import pytz

logger = logging.getLogger(__name__)

Interval = Dict[str, datetime]


def day_of_week(value) -> int:
    """Day index with 0=Sunday .. 6=Saturday (Python's weekday() starts on Monday)."""
    return (value.weekday() + 1) % 7


def get_timezone(name: str):
    """Resolve a timezone name, falling back to UTC for unknown names."""
    try:
        return pytz.timezone(name or 'UTC')
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return pytz.UTC


def utc_to_local(value: datetime, tz) -> datetime:
    """Naive UTC -> aware local time."""
    if value.tzinfo is None:
        value = pytz.UTC.localize(value)
    return value.astimezone(tz)


def local_to_utc(value: datetime, tz) -> datetime:
    """Naive local wall time -> naive UTC."""
    if value.tzinfo is None:
        value = tz.localize(value)
    return value.astimezone(pytz.UTC).replace(tzinfo=None)


def local_day_bounds(target_date: date, tz) -> Tuple[datetime, datetime]:
    """UTC (naive) start and end of a local calendar day. DST days are 23 or 25 hours long."""
    start = local_to_utc(datetime.combine(target_date, datetime.min.time()), tz)
    end = local_to_utc(datetime.combine(target_date + timedelta(days=1), datetime.min.time()), tz)
    return start, end


def merge_intervals(intervals: List[Interval]) -> List[Interval]:
    """Join overlapping or touching intervals. Returns a new sorted list."""
    if not intervals:
        return []

    ordered = sorted(({'start': i['start'], 'end': i['end']} for i in intervals),
                     key=lambda i: i['start'])
    merged = [ordered[0]]

    for current in ordered[1:]:
        last = merged[-1]
        if current['start'] <= last['end']:
            if current['end'] > last['end']:
                last['end'] = current['end']
        else:
            merged.append(current)

    return merged


def subtract_interval(interval: Interval, block: Interval) -> List[Interval]:
    """
    Remove block from interval.

    Returns zero, one or two intervals.
    """
    if block['end'] <= interval['start'] or block['start'] >= interval['end']:
        return [interval]

    pieces = []
    if block['start'] > interval['start']:
        pieces.append({'start': interval['start'], 'end': block['start']})
    if block['end'] < interval['end']:
        pieces.append({'start': block['end'], 'end': interval['end']})
    return pieces


def working_intervals_for_date(working_hours: Iterable, target_date: date, tz) -> List[Interval]:
    """Expand the rows for target_date's weekday into aware local intervals."""
    dow = day_of_week(target_date)
    intervals = []

    for row in working_hours:
        if row.day_of_week != dow or not row.is_available:
            continue
        start = tz.localize(datetime.combine(target_date, row.start_time))
        end = tz.localize(datetime.combine(target_date, row.end_time))
        if end > start:
            intervals.append({'start': start, 'end': end})

    return merge_intervals(intervals)


def compute_free_windows(
    working_hours: Iterable,
    busy: Iterable[Tuple[datetime, datetime]],
    target_date: date,
    tz,
    min_minutes: int = 0
) -> List[Interval]:
    """
    Free windows for one local day.

    Args:
        working_hours: WorkingHours rows of the resource
        busy: (start, end) pairs in naive UTC
        target_date: local calendar date
        tz: pytz timezone of the account
        min_minutes: drop windows shorter than this

    Returns:
        aware local intervals sorted by start
    """
    free = working_intervals_for_date(working_hours, target_date, tz)
    blocks = merge_intervals([
        {'start': utc_to_local(start, tz), 'end': utc_to_local(end, tz)}
        for start, end in busy
    ])

    for block in blocks:
        next_free = []
        for interval in free:
            next_free.extend(subtract_interval(interval, block))
        free = next_free

    minimum = timedelta(minutes=min_minutes or 0)
    return [i for i in free if i['end'] - i['start'] >= minimum and i['end'] > i['start']]
