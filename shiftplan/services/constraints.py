"""Constraint evaluators: coverage, rest time between shifts, daily hours.

Every evaluator is a pure function returning a fresh list of violations and an
empty list when its rule is absent. Malformed rule data is skipped, never raised.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional

from shiftplan.domain.types import (
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    Affected,
    CapacityMap,
    ConstraintViolation,
    EngineInput,
    EngineShift,
    MaxHoursPerDayRule,
    MinCoverageRule,
    MinRestHoursRule,
)

from .capacity import assigned_count
from .settings import iter_shift_ranges
from .timeplan import (
    combine_date_and_time,
    elapsed_hours,
    format_date_key,
    iter_bucket_starts,
    normalize_bucket_minutes,
    slot_key,
    split_range_by_day,
)

MIN_COVERAGE_BY_POSITION_ID = "MIN_COVERAGE_BY_POSITION"
MIN_REST_HOURS_BETWEEN_SHIFTS_ID = "MIN_REST_HOURS_BETWEEN_SHIFTS"
MAX_HOURS_PER_DAY_ID = "MAX_HOURS_PER_DAY"


def _shift_sort_key(shift: EngineShift):
    return (shift.user_id, shift.date_key, shift.start_time or "", shift.id)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def missing_coverage_slots(
    capacity_map: CapacityMap,
    rule: MinCoverageRule,
    bucket_minutes: int,
) -> List[str]:
    """Slot keys inside the rule's ranges where the position is below ``min_count``."""
    missing: List[str] = []
    for date_key in rule.date_keys or []:
        range_start = combine_date_and_time(date_key, rule.start_time)
        range_end = combine_date_and_time(date_key, rule.end_time)
        if range_start is None or range_end is None:
            continue
        if range_end <= range_start:
            range_end += timedelta(days=1)
        for bucket_start in iter_bucket_starts(range_start, range_end, bucket_minutes):
            key = slot_key(bucket_start)
            if assigned_count(capacity_map, key, rule.position_id) < rule.min_count:
                missing.append(key)
    return missing


def evaluate_min_coverage_by_position(
    capacity_map: CapacityMap,
    rules: Optional[List[MinCoverageRule]],
    bucket_minutes,
) -> List[ConstraintViolation]:
    """
    One violation per rule listing every under-covered slot.

    Args:
        capacity_map: Output of compute_capacity for the same input
        rules: Coverage rules (None or empty means nothing to check)
        bucket_minutes: Bucket size used to walk each rule's time range

    Returns:
        Violations in rule order
    """
    if not rules:
        return []

    bucket = normalize_bucket_minutes(bucket_minutes)
    violations: List[ConstraintViolation] = []
    for rule in rules:
        if not rule.position_id or not _is_number(rule.min_count):
            continue
        missing = missing_coverage_slots(capacity_map, rule, bucket)
        if not missing:
            continue
        violations.append(
            ConstraintViolation(
                constraint_id=MIN_COVERAGE_BY_POSITION_ID,
                severity=rule.severity or SEVERITY_HIGH,
                message=f"Minimum coverage not met for position {rule.position_id}.",
                affected=Affected(
                    user_ids=[],
                    shift_ids=[],
                    slots=missing,
                    position_id=rule.position_id,
                    date_keys=list(rule.date_keys or []),
                ),
            )
        )
    return violations


def evaluate_min_rest_hours_between_shifts(
    engine_input: EngineInput,
    shifts: List[EngineShift],
    rule: Optional[MinRestHoursRule],
) -> List[ConstraintViolation]:
    """
    Flag consecutive shifts of a user with too little rest in between.

    Shifts are ordered by (user, date, start, id) before ranges are resolved,
    then each user's ranges are ordered by absolute start.
    """
    if rule is None or not _is_number(rule.min_rest_hours):
        return []

    ranges_by_user: Dict[str, list] = defaultdict(list)
    ordered = sorted(shifts, key=_shift_sort_key)
    for shift, time_range in iter_shift_ranges(engine_input, ordered):
        ranges_by_user[shift.user_id].append((shift.id, time_range))

    violations: List[ConstraintViolation] = []
    for user_id in sorted(ranges_by_user):
        # stable sort keeps the (date, start, id) order for equal starts
        user_ranges = sorted(ranges_by_user[user_id], key=lambda item: item[1].start)
        for (current_id, current), (next_id, following) in zip(user_ranges, user_ranges[1:]):
            rest_hours = elapsed_hours(current.end, following.start)
            if rest_hours >= rule.min_rest_hours:
                continue
            violations.append(
                ConstraintViolation(
                    constraint_id=MIN_REST_HOURS_BETWEEN_SHIFTS_ID,
                    severity=rule.severity or SEVERITY_HIGH,
                    message=f"Rest time between shifts is below {rule.min_rest_hours:g} hours.",
                    affected=Affected(
                        user_ids=[user_id],
                        shift_ids=[current_id, next_id],
                        slots=[],
                        date_keys=[format_date_key(current.start), format_date_key(following.start)],
                    ),
                )
            )
    return violations


def daily_hours_by_user(
    engine_input: EngineInput,
    shifts: List[EngineShift],
) -> Dict[str, Dict[str, float]]:
    """Worked hours per user per calendar date; cross-midnight shifts are split."""
    hours: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for shift, time_range in iter_shift_ranges(engine_input, sorted(shifts, key=_shift_sort_key)):
        for date_key, day_hours in split_range_by_day(time_range.start, time_range.end).items():
            hours[shift.user_id][date_key] += day_hours
    return {user_id: dict(per_day) for user_id, per_day in hours.items()}


def evaluate_max_hours_per_day(
    engine_input: EngineInput,
    shifts: List[EngineShift],
    rule: Optional[MaxHoursPerDayRule],
) -> List[ConstraintViolation]:
    """One violation per user and date whose worked hours exceed the daily maximum."""
    if rule is None or not _is_number(rule.max_hours_per_day):
        return []

    violations: List[ConstraintViolation] = []
    hours = daily_hours_by_user(engine_input, shifts)
    for user_id in sorted(hours):
        for date_key in sorted(hours[user_id]):
            if hours[user_id][date_key] <= rule.max_hours_per_day:
                continue
            violations.append(
                ConstraintViolation(
                    constraint_id=MAX_HOURS_PER_DAY_ID,
                    severity=rule.severity or SEVERITY_MEDIUM,
                    message=f"Daily working time exceeds {rule.max_hours_per_day:g} hours.",
                    affected=Affected(
                        user_ids=[user_id],
                        shift_ids=[],
                        slots=[],
                        date_keys=[date_key],
                    ),
                )
            )
    return violations
