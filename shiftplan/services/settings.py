"""Schedule settings: closing-time resolution and shift range inference."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from shiftplan.domain.types import DailySetting, EngineInput, EngineShift, ScheduleSettings

from .timeplan import add_minutes, combine_date_and_time

DEFAULT_CLOSING_TIME = "22:00"
DEFAULT_CLOSING_OFFSET_MINUTES = 0
DEFAULT_OPENING_TIME = "08:00"
MAX_CLOSING_OFFSET_MINUTES = 240
DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class ShiftTimeRange:
    start: datetime
    end: datetime
    date_key: str


def _offset_or_none(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return int(math.floor(value))


def _non_blank(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def resolve_closing_time(settings: ScheduleSettings, day_index: int) -> Tuple[str, int]:
    """
    Resolve the closing time and offset used to infer a missing shift end.

    Closing time: the day's own closing time (unless the day inherits),
    then the settings default, then ``DEFAULT_CLOSING_TIME``.
    Offset: the day's offset, then the default offset, then 0. A day that
    inherits its closing time still contributes its own offset.

    Args:
        settings: Schedule settings of the unit
        day_index: Position of the date within the evaluated week

    Returns:
        Tuple of (closing time "HH:MM", offset in minutes)
    """
    daily: DailySetting | None = settings.daily_settings.get(day_index)

    closing_time = None
    if daily is not None and not daily.closing_time_inherit:
        closing_time = _non_blank(daily.closing_time)
    if closing_time is None:
        closing_time = _non_blank(settings.default_closing_time) or DEFAULT_CLOSING_TIME

    offset = _offset_or_none(daily.closing_offset_minutes) if daily is not None else None
    if offset is None:
        offset = _offset_or_none(settings.default_closing_offset_minutes)
    if offset is None:
        offset = DEFAULT_CLOSING_OFFSET_MINUTES

    return closing_time, offset


def clamp_closing_offset(value) -> int:
    resolved = _offset_or_none(value)
    if resolved is None:
        resolved = DEFAULT_CLOSING_OFFSET_MINUTES
    return min(MAX_CLOSING_OFFSET_MINUTES, max(0, resolved))


def normalize_schedule_settings(settings: ScheduleSettings) -> ScheduleSettings:
    """
    Fill in all seven day entries.

    Days without a usable closing time are marked as inheriting the default;
    offsets are floored and clamped to [0, MAX_CLOSING_OFFSET_MINUTES].
    """
    normalized: Dict[int, DailySetting] = {}
    for day_index in range(DAYS_PER_WEEK):
        raw = settings.daily_settings.get(day_index)
        raw_closing = _non_blank(raw.closing_time) if raw is not None else None
        inherit = True if raw_closing is None else bool(raw.closing_time_inherit)
        normalized[day_index] = DailySetting(
            closing_time=raw_closing or DEFAULT_CLOSING_TIME,
            closing_offset_minutes=clamp_closing_offset(raw.closing_offset_minutes if raw else None),
            closing_time_inherit=inherit,
            opening_time=(raw.opening_time if raw and raw.opening_time else DEFAULT_OPENING_TIME),
            is_open=raw.is_open if raw is not None else True,
        )
    return ScheduleSettings(
        default_closing_time=settings.default_closing_time,
        default_closing_offset_minutes=settings.default_closing_offset_minutes,
        daily_settings=normalized,
    )


def resolve_shift_range(
    shift: EngineShift,
    settings: ScheduleSettings,
    day_index: int,
) -> Optional[ShiftTimeRange]:
    """
    Absolute [start, end) of a shift.

    A missing end is inferred from the closing time plus offset. An end at or
    before the start moves to the next day. Returns None when the start is
    missing or any time string is malformed.
    """
    if not shift.start_time:
        return None
    start = combine_date_and_time(shift.date_key, shift.start_time)
    if start is None:
        return None

    if shift.end_time:
        end = combine_date_and_time(shift.date_key, shift.end_time)
    else:
        closing_time, offset = resolve_closing_time(settings, day_index)
        end = combine_date_and_time(shift.date_key, closing_time)
        if end is not None and offset:
            end = add_minutes(end, offset)
    if end is None:
        return None

    if end <= start:
        end = end + timedelta(days=1)
    return ShiftTimeRange(start=start, end=end, date_key=shift.date_key)


def day_index_map(week_days: Iterable[str]) -> Dict[str, int]:
    return {day: index for index, day in enumerate(week_days)}


def iter_shift_ranges(
    engine_input: EngineInput,
    shifts: List[EngineShift] | None = None,
) -> Iterator[Tuple[EngineShift, ShiftTimeRange]]:
    """Yield (shift, range) for working shifts inside the week whose range resolves."""
    day_indexes = day_index_map(engine_input.week_days)
    for shift in engine_input.shifts if shifts is None else shifts:
        if shift.is_day_off:
            continue
        day_index = day_indexes.get(shift.date_key)
        if day_index is None:
            continue
        time_range = resolve_shift_range(shift, engine_input.schedule_settings, day_index)
        if time_range is not None:
            yield shift, time_range
