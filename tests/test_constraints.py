"""Tests for constraint evaluators."""

from shiftplan.domain.types import MaxHoursPerDayRule, MinCoverageRule, MinRestHoursRule, Ruleset
from shiftplan.services.capacity import compute_capacity
from shiftplan.services.constraints import (
    MAX_HOURS_PER_DAY_ID,
    MIN_COVERAGE_BY_POSITION_ID,
    MIN_REST_HOURS_BETWEEN_SHIFTS_ID,
    daily_hours_by_user,
    evaluate_max_hours_per_day,
    evaluate_min_coverage_by_position,
    evaluate_min_rest_hours_between_shifts,
)


def _coverage_rule(**kwargs):
    values = dict(
        position_id="p1",
        date_keys=["2025-01-06"],
        start_time="08:00",
        end_time="10:00",
        min_count=1,
    )
    values.update(kwargs)
    return MinCoverageRule(**values)


def test_coverage_violation_shape_without_shifts(make_input):
    engine_input = make_input(ruleset=Ruleset(bucket_minutes=60, min_coverage_by_position=[_coverage_rule()]))
    violations = evaluate_min_coverage_by_position(
        compute_capacity(engine_input), engine_input.ruleset.min_coverage_by_position, 60
    )
    assert len(violations) == 1
    violation = violations[0]
    assert violation.constraint_id == MIN_COVERAGE_BY_POSITION_ID
    assert violation.severity == "high"
    assert violation.affected.position_id == "p1"
    assert violation.affected.date_keys == ["2025-01-06"]
    assert violation.affected.slots == ["2025-01-06T08:00", "2025-01-06T09:00"]


def test_coverage_lists_only_missing_slots(make_input, shift):
    rule = _coverage_rule(end_time="11:00", severity="low")
    engine_input = make_input([shift("s1", "u1", "2025-01-06", "09:00", "10:00")])
    violations = evaluate_min_coverage_by_position(compute_capacity(engine_input), [rule], 60)
    assert violations[0].affected.slots == ["2025-01-06T08:00", "2025-01-06T10:00"]
    assert violations[0].severity == "low"


def test_coverage_satisfied_and_absent_rules(make_input, shift):
    engine_input = make_input([shift("s1", "u1", "2025-01-06", "08:00", "10:00")])
    capacity = compute_capacity(engine_input)
    assert evaluate_min_coverage_by_position(capacity, [_coverage_rule()], 60) == []
    assert evaluate_min_coverage_by_position(capacity, [], 60) == []
    assert evaluate_min_coverage_by_position(capacity, None, 60) == []


def test_coverage_malformed_rule_is_skipped(make_input):
    capacity = compute_capacity(make_input())
    rules = [_coverage_rule(start_time="8:00"), _coverage_rule(date_keys=["not-a-date"])]
    assert evaluate_min_coverage_by_position(capacity, rules, 60) == []


def test_coverage_range_across_midnight(make_input):
    rule = _coverage_rule(start_time="23:00", end_time="01:00")
    violations = evaluate_min_coverage_by_position(compute_capacity(make_input()), [rule], 60)
    assert violations[0].affected.slots == ["2025-01-06T23:00", "2025-01-07T00:00"]


def test_rest_violation_references_both_shifts(make_input, shift):
    engine_input = make_input(
        [
            shift("late", "u1", "2025-01-06", "14:00", "23:00"),
            shift("early", "u1", "2025-01-07", "06:00", "12:00"),
        ]
    )
    violations = evaluate_min_rest_hours_between_shifts(
        engine_input, engine_input.shifts, MinRestHoursRule(min_rest_hours=11)
    )
    assert len(violations) == 1
    assert violations[0].constraint_id == MIN_REST_HOURS_BETWEEN_SHIFTS_ID
    assert violations[0].affected.user_ids == ["u1"]
    assert violations[0].affected.shift_ids == ["late", "early"]
    assert violations[0].affected.date_keys == ["2025-01-06", "2025-01-07"]


def test_rest_cross_midnight_next_shift_starts_on_its_own_day(make_input, shift):
    engine_input = make_input(
        [
            shift("b", "u1", "2025-01-07", "22:00", "02:00"),
            shift("a", "u1", "2025-01-06", "20:00", "23:00"),
        ]
    )
    # 23 hours between 2025-01-06 23:00 and 2025-01-07 22:00
    assert evaluate_min_rest_hours_between_shifts(engine_input, engine_input.shifts, MinRestHoursRule(11)) == []
    violations = evaluate_min_rest_hours_between_shifts(engine_input, engine_input.shifts, MinRestHoursRule(24))
    assert [v.affected.shift_ids for v in violations] == [["a", "b"]]


def test_rest_rule_absent(make_input, shift):
    engine_input = make_input([shift("s1", "u1", "2025-01-06", "08:00", "12:00")])
    assert evaluate_min_rest_hours_between_shifts(engine_input, engine_input.shifts, None) == []


def test_rest_ignores_day_off(make_input, shift):
    engine_input = make_input(
        [
            shift("a", "u1", "2025-01-06", "14:00", "23:00"),
            shift("off", "u1", "2025-01-07", "06:00", "12:00", day_off=True),
        ]
    )
    assert evaluate_min_rest_hours_between_shifts(engine_input, engine_input.shifts, MinRestHoursRule(11)) == []


def test_max_hours_splits_cross_midnight_shift(make_input, shift):
    engine_input = make_input(
        [
            shift("a", "u1", "2025-01-06", "14:00", "20:00"),
            shift("b", "u1", "2025-01-06", "22:00", "02:00"),
        ]
    )
    hours = daily_hours_by_user(engine_input, engine_input.shifts)
    assert hours == {"u1": {"2025-01-06": 8.0, "2025-01-07": 2.0}}

    violations = evaluate_max_hours_per_day(engine_input, engine_input.shifts, MaxHoursPerDayRule(7))
    assert len(violations) == 1
    assert violations[0].constraint_id == MAX_HOURS_PER_DAY_ID
    assert violations[0].severity == "medium"
    assert violations[0].affected.user_ids == ["u1"]
    assert violations[0].affected.date_keys == ["2025-01-06"]


def test_max_hours_at_limit_is_allowed(make_input, shift):
    engine_input = make_input([shift("a", "u1", "2025-01-06", "08:00", "16:00")])
    assert evaluate_max_hours_per_day(engine_input, engine_input.shifts, MaxHoursPerDayRule(8)) == []
    assert evaluate_max_hours_per_day(engine_input, engine_input.shifts, None) == []


def test_max_hours_one_violation_per_user_and_date(make_input, shift):
    engine_input = make_input(
        [
            shift("a", "u2", "2025-01-07", "06:00", "18:00"),
            shift("b", "u1", "2025-01-06", "06:00", "18:00"),
            shift("c", "u1", "2025-01-07", "06:00", "18:00"),
        ]
    )
    violations = evaluate_max_hours_per_day(
        engine_input, engine_input.shifts, MaxHoursPerDayRule(10, severity="high")
    )
    assert [(v.affected.user_ids[0], v.affected.date_keys[0]) for v in violations] == [
        ("u1", "2025-01-06"),
        ("u1", "2025-01-07"),
        ("u2", "2025-01-07"),
    ]
    assert {v.severity for v in violations} == {"high"}
