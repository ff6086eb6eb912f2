"""Tests for closing-time resolution and shift range inference."""

from datetime import datetime

from shiftplan.domain.types import DailySetting, EngineShift, ScheduleSettings
from shiftplan.services.settings import (
    DEFAULT_CLOSING_TIME,
    MAX_CLOSING_OFFSET_MINUTES,
    clamp_closing_offset,
    iter_shift_ranges,
    normalize_schedule_settings,
    resolve_closing_time,
    resolve_shift_range,
)


def test_resolve_closing_time_fallback_chain():
    settings = ScheduleSettings(
        default_closing_time="21:00",
        default_closing_offset_minutes=30,
        daily_settings={
            0: DailySetting(closing_time="23:00", closing_offset_minutes=15),
            1: DailySetting(closing_time="23:00", closing_time_inherit=True, closing_offset_minutes=45),
            2: DailySetting(closing_time="  "),
        },
    )
    assert resolve_closing_time(settings, 0) == ("23:00", 15)
    # inheriting day keeps its own offset
    assert resolve_closing_time(settings, 1) == ("21:00", 45)
    assert resolve_closing_time(settings, 2) == ("21:00", 30)
    assert resolve_closing_time(settings, 5) == ("21:00", 30)


def test_resolve_closing_time_hardcoded_default():
    assert resolve_closing_time(ScheduleSettings(), 3) == (DEFAULT_CLOSING_TIME, 0)


def test_clamp_closing_offset():
    assert clamp_closing_offset(-10) == 0
    assert clamp_closing_offset(90.7) == 90
    assert clamp_closing_offset(10_000) == MAX_CLOSING_OFFSET_MINUTES
    assert clamp_closing_offset("abc") == 0


def test_normalize_schedule_settings_fills_week():
    normalized = normalize_schedule_settings(
        ScheduleSettings(daily_settings={4: DailySetting(closing_time="23:30", closing_offset_minutes=500)})
    )
    assert sorted(normalized.daily_settings) == list(range(7))
    assert normalized.daily_settings[4].closing_time == "23:30"
    assert not normalized.daily_settings[4].closing_time_inherit
    assert normalized.daily_settings[4].closing_offset_minutes == MAX_CLOSING_OFFSET_MINUTES
    assert normalized.daily_settings[0].closing_time_inherit
    assert normalized.daily_settings[0].opening_time == "08:00"


def test_missing_end_uses_closing_time_plus_offset():
    shift = EngineShift(id="s1", user_id="u1", date_key="2025-01-06", start_time="17:00")
    settings = ScheduleSettings(default_closing_time="21:00", default_closing_offset_minutes=60)
    time_range = resolve_shift_range(shift, settings, 0)
    assert time_range.start == datetime(2025, 1, 6, 17)
    assert time_range.end == datetime(2025, 1, 6, 22)


def test_end_before_start_moves_to_next_day():
    shift = EngineShift(id="s1", user_id="u1", date_key="2025-01-06", start_time="22:00", end_time="02:00")
    time_range = resolve_shift_range(shift, ScheduleSettings(), 0)
    assert time_range.end == datetime(2025, 1, 7, 2)


def test_inferred_end_after_midnight():
    shift = EngineShift(id="s1", user_id="u1", date_key="2025-01-06", start_time="23:30")
    settings = ScheduleSettings(default_closing_time="23:00", default_closing_offset_minutes=120)
    assert resolve_shift_range(shift, settings, 0).end == datetime(2025, 1, 7, 1)


def test_unresolvable_ranges_fail_closed():
    settings = ScheduleSettings()
    assert resolve_shift_range(EngineShift(id="a", user_id="u1", date_key="2025-01-06"), settings, 0) is None
    bad_start = EngineShift(id="b", user_id="u1", date_key="2025-01-06", start_time="8am", end_time="12:00")
    assert resolve_shift_range(bad_start, settings, 0) is None
    bad_end = EngineShift(id="c", user_id="u1", date_key="2025-01-06", start_time="08:00", end_time="99:00")
    assert resolve_shift_range(bad_end, settings, 0) is None


def test_iter_shift_ranges_skips_day_off_and_other_weeks(make_input, shift):
    engine_input = make_input(
        [
            shift("s1", "u1", "2025-01-06", "08:00", "12:00"),
            shift("off", "u2", "2025-01-06", day_off=True),
            shift("s2", "u1", "2025-01-20", "08:00", "12:00"),
            shift("s3", "u2", "2025-01-07", None, None),
        ]
    )
    assert [s.id for s, _ in iter_shift_ranges(engine_input)] == ["s1"]
