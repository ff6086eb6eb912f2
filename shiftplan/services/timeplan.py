"""Date-key and HH:MM arithmetic, bucket keys and cross-midnight helpers.

Nothing here raises on malformed input: parsers return None and the callers
treat the affected range as non-matching.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterator, Optional, Tuple

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

DEFAULT_BUCKET_MINUTES = 60
MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timezone-aware UTC copy of ``value``; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_date_key(value) -> bool:
    return isinstance(value, str) and bool(DATE_KEY_PATTERN.match(value)) and parse_date_key(value) is not None


def is_valid_time(value) -> bool:
    return parse_time_to_minutes(value) is not None


def parse_date_key(date_key: str) -> Optional[date]:
    """Parse ``YYYY-MM-DD``; None for anything else (including impossible dates)."""
    if not isinstance(date_key, str) or not DATE_KEY_PATTERN.match(date_key):
        return None
    try:
        return datetime.strptime(date_key, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_time_to_minutes(value) -> Optional[int]:
    """
    Parse ``HH:MM`` into minutes since midnight.

    ``24:00`` is accepted and maps to 1440 (end of day). Returns None for
    strings that do not match ``^\\d{2}:\\d{2}$`` or are out of range.
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        return None
    hours, minutes = int(value[:2]), int(value[3:])
    if minutes > 59:
        return None
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23:
        return None
    return hours * 60 + minutes


def combine_date_and_time(date_key: str, time: str) -> Optional[datetime]:
    """Absolute instant for ``time`` on ``date_key`` (``24:00`` is the next midnight)."""
    day = parse_date_key(date_key)
    minutes = parse_time_to_minutes(time)
    if day is None or minutes is None:
        return None
    return datetime(day.year, day.month, day.day) + timedelta(minutes=minutes)


def add_minutes(instant: datetime, minutes: int) -> datetime:
    return instant + timedelta(minutes=minutes)


def elapsed_hours(start: datetime, end: datetime) -> float:
    """Hours from ``start`` to ``end``, never negative."""
    return max(0.0, (end - start).total_seconds() / 3600.0)


def start_of_day(instant: datetime) -> datetime:
    return datetime(instant.year, instant.month, instant.day)


def start_of_next_day(instant: datetime) -> datetime:
    return start_of_day(instant) + timedelta(days=1)


def format_date_key(instant: datetime | date) -> str:
    return instant.strftime("%Y-%m-%d")


def format_time(instant: datetime, date_key: str | None = None) -> str:
    """
    ``HH:MM`` of ``instant``.

    When ``date_key`` is given and ``instant`` is the midnight that ends that
    day, ``24:00`` is returned so the time still sorts after the day's other times.
    """
    if date_key is not None:
        day = parse_date_key(date_key)
        if day is not None and instant == datetime(day.year, day.month, day.day) + timedelta(days=1):
            return "24:00"
    return instant.strftime("%H:%M")


def normalize_bucket_minutes(value) -> int:
    """Bucket size in whole minutes; anything non-finite or below one minute becomes 60."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_BUCKET_MINUTES
    if not math.isfinite(value):
        return DEFAULT_BUCKET_MINUTES
    minutes = int(math.floor(value))
    return minutes if minutes > 0 else DEFAULT_BUCKET_MINUTES


def floor_to_bucket(instant: datetime, bucket_minutes: int) -> datetime:
    """Floor ``instant`` to the bucket grid anchored at its own midnight."""
    midnight = start_of_day(instant)
    elapsed = int((instant - midnight).total_seconds() // 60)
    return midnight + timedelta(minutes=elapsed - elapsed % bucket_minutes)


def slot_key(instant: datetime) -> str:
    """Bucket key of ``instant``: ``YYYY-MM-DDTHH:MM``."""
    return instant.strftime("%Y-%m-%dT%H:%M")


def parse_slot_key(key: str) -> Tuple[str, str]:
    """Split a slot key into ``(date_key, HH:MM)``."""
    date_key, _, time = key.partition("T")
    return date_key, time


def iter_bucket_starts(start: datetime, end: datetime, bucket_minutes: int) -> Iterator[datetime]:
    """Yield the start of every bucket that overlaps ``[start, end)``.

    The grid restarts at each midnight, so a bucket size that does not divide
    a day yields a shorter last bucket before midnight.
    """
    cursor = floor_to_bucket(start, bucket_minutes)
    step = timedelta(minutes=bucket_minutes)
    while cursor < end:
        yield cursor
        cursor = min(cursor + step, start_of_next_day(cursor))


def ranges_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def split_range_by_day(start: datetime, end: datetime) -> Dict[str, float]:
    """Hours of ``[start, end)`` credited to each calendar date it touches."""
    hours_by_day: Dict[str, float] = {}
    cursor = start
    while cursor < end:
        segment_end = min(start_of_next_day(cursor), end)
        key = format_date_key(cursor)
        hours_by_day[key] = hours_by_day.get(key, 0.0) + elapsed_hours(cursor, segment_end)
        cursor = segment_end
    return hours_by_day
