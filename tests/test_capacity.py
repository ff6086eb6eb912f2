"""Tests for capacity aggregation."""

from dataclasses import replace

from shiftplan.domain.types import Ruleset
from shiftplan.services.capacity import UNKNOWN_POSITION_ID, assigned_count, compute_capacity


def test_every_overlapped_bucket_counts(make_input, shift):
    engine_input = make_input([shift("s1", "u1", "2025-01-06", "08:30", "10:15")])
    capacity = compute_capacity(engine_input)
    assert sorted(capacity) == ["2025-01-06T08:00", "2025-01-06T09:00", "2025-01-06T10:00"]
    assert capacity["2025-01-06T09:00"] == {"p1": 1}


def test_counts_are_summed_regardless_of_order(make_input, shift):
    shifts = [
        shift("s1", "u1", "2025-01-06", "08:00", "10:00"),
        shift("s2", "u2", "2025-01-06", "09:00", "11:00"),
        shift("s3", "u2", "2025-01-06", "09:00", "10:00", position="p2"),
    ]
    forward = compute_capacity(make_input(shifts))
    backward = compute_capacity(make_input(list(reversed(shifts))))
    assert forward == backward
    assert forward["2025-01-06T09:00"] == {"p1": 2, "p2": 1}
    assert assigned_count(forward, "2025-01-06T12:00", "p1") == 0


def test_cross_midnight_shift_counts_on_both_days(make_input, shift):
    capacity = compute_capacity(make_input([shift("s1", "u1", "2025-01-06", "22:00", "02:00")]))
    assert "2025-01-06T23:00" in capacity
    assert "2025-01-07T01:00" in capacity
    assert "2025-01-07T02:00" not in capacity


def test_inferred_end_from_closing_time(make_input, shift):
    # closing 21:00 + 60 minutes
    capacity = compute_capacity(make_input([shift("s1", "u1", "2025-01-06", "20:00")]))
    assert sorted(capacity) == ["2025-01-06T20:00", "2025-01-06T21:00"]


def test_day_off_and_unresolvable_shifts_ignored(make_input, shift):
    engine_input = make_input(
        [
            shift("off", "u1", "2025-01-06", "08:00", "12:00", day_off=True),
            shift("bad", "u2", "2025-01-06", "8:00", "12:00"),
        ]
    )
    assert compute_capacity(engine_input) == {}


def test_unassigned_position_policy(make_input, shift):
    engine_input = make_input([shift("s1", "u1", "2025-01-06", "08:00", "09:00", position=None)])
    assert compute_capacity(engine_input) == {"2025-01-06T08:00": {UNKNOWN_POSITION_ID: 1}}
    assert compute_capacity(engine_input, count_unassigned=False) == {}


def test_bucket_size_from_ruleset(make_input, shift):
    engine_input = make_input(
        [shift("s1", "u1", "2025-01-06", "08:00", "09:00")],
        ruleset=Ruleset(bucket_minutes=15),
    )
    assert len(compute_capacity(engine_input)) == 4
    zero = replace(engine_input, ruleset=Ruleset(bucket_minutes=0))
    assert len(compute_capacity(zero)) == 1
