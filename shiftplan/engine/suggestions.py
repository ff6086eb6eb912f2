"""Remediation suggestions for coverage violations.

For the first missing slot of every coverage violation, the generator first
looks for an existing same-day shift of the position that can be moved onto
the slot, and otherwise for a free staff member to add a one-bucket shift for.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from shiftplan.domain.types import (
    ADD_SHIFT_SUGGESTION,
    SEVERITY_RANK,
    SHIFT_MOVE_SUGGESTION,
    CapacityMap,
    ConstraintViolation,
    CreateShiftAction,
    EngineInput,
    EngineShift,
    EngineUser,
    MoveShiftAction,
    Suggestion,
)
from shiftplan.services.constraints import MIN_COVERAGE_BY_POSITION_ID
from shiftplan.services.settings import ShiftTimeRange, day_index_map, resolve_shift_range
from shiftplan.services.timeplan import (
    add_minutes,
    combine_date_and_time,
    elapsed_hours,
    format_time,
    normalize_bucket_minutes,
    parse_slot_key,
    ranges_overlap,
    split_range_by_day,
    start_of_next_day,
)

MOVE_EXPLANATION = "The shift window can be adjusted to cover the missing time slot."
MOVE_EXPECTED_IMPACT = "Fills the missing coverage by changing the shift's time window."
ADD_EXPLANATION = "The selected staff member is free and breaks no rest or daily hour rule."
ADD_EXPECTED_IMPACT = "Creates a new shift for the missing coverage."

SUGGESTION_TYPE_RANK = {
    SHIFT_MOVE_SUGGESTION: 2,
    ADD_SHIFT_SUGGESTION: 1,
}


def compute_suggestion_key(suggestion: Suggestion) -> str:
    """Deduplication key derived from the suggestion's first action."""
    if not suggestion.actions:
        return ""
    action = suggestion.actions[0]
    if isinstance(action, MoveShiftAction):
        return f"move:{action.shift_id}:{action.date_key}:{action.new_start_time}-{action.new_end_time}"
    return (
        f"add:{action.user_id}:{action.date_key}:"
        f"{action.start_time}-{action.end_time}:{action.position_id or ''}"
    )


class _ScheduleView:
    """Resolved shift ranges of one input, used for the availability checks."""

    def __init__(self, engine_input: EngineInput):
        self.input = engine_input
        self.day_indexes = day_index_map(engine_input.week_days)
        self.ranges: Dict[str, ShiftTimeRange] = {}
        for shift in engine_input.shifts:
            time_range = self.range_of(shift)
            if time_range is not None:
                self.ranges[shift.id] = time_range

    def range_of(self, shift: EngineShift) -> Optional[ShiftTimeRange]:
        if shift.is_day_off:
            return None
        day_index = self.day_indexes.get(shift.date_key)
        if day_index is None:
            return None
        return resolve_shift_range(shift, self.input.schedule_settings, day_index)

    def user_ranges(self, user_id: str, ignore_shift_id: str | None = None) -> List[Tuple[str, ShiftTimeRange]]:
        return [
            (shift.id, self.ranges[shift.id])
            for shift in self.input.shifts
            if shift.user_id == user_id and shift.id != ignore_shift_id and shift.id in self.ranges
        ]

    def is_user_free(self, user_id: str, start: datetime, end: datetime, ignore_shift_id: str | None = None) -> bool:
        return not any(
            ranges_overlap(r.start, r.end, start, end) for _, r in self.user_ranges(user_id, ignore_shift_id)
        )

    def has_day_off(self, user_id: str, date_key: str) -> bool:
        return any(s.user_id == user_id and s.date_key == date_key and s.is_day_off for s in self.input.shifts)

    def would_exceed_max_hours(
        self,
        user_id: str,
        date_key: str,
        proposed: EngineShift,
        ignore_shift_id: str | None = None,
    ) -> bool:
        rule = self.input.ruleset.max_hours_per_day
        if rule is None:
            return False
        proposed_range = self.range_of(proposed)
        if proposed_range is None:
            return False
        existing = sum(
            split_range_by_day(r.start, r.end).get(date_key, 0.0)
            for _, r in self.user_ranges(user_id, ignore_shift_id)
        )
        added = split_range_by_day(proposed_range.start, proposed_range.end).get(date_key, 0.0)
        return existing + added > rule.max_hours_per_day

    def would_break_min_rest(
        self,
        user_id: str,
        proposed: EngineShift,
        ignore_shift_id: str | None = None,
    ) -> bool:
        rule = self.input.ruleset.min_rest_hours_between_shifts
        if rule is None:
            return False
        proposed_range = self.range_of(proposed)
        if proposed_range is None:
            return False
        ranges = [r for _, r in self.user_ranges(user_id, ignore_shift_id)] + [proposed_range]
        ranges.sort(key=lambda r: r.start)
        return any(
            elapsed_hours(current.end, following.start) < rule.min_rest_hours
            for current, following in zip(ranges, ranges[1:])
        )


def _first_missing_slot(violation: ConstraintViolation, bucket_minutes: int):
    if not violation.affected.position_id or not violation.affected.slots:
        return None
    date_key, time = parse_slot_key(violation.affected.slots[0])
    slot_start = combine_date_and_time(date_key, time)
    if slot_start is None:
        return None
    slot_end = min(add_minutes(slot_start, bucket_minutes), start_of_next_day(slot_start))
    return date_key, slot_start, slot_end


def build_move_suggestion(
    violation: ConstraintViolation,
    view: _ScheduleView,
    bucket_minutes: int,
) -> Optional[Suggestion]:
    """Move the first eligible same-day shift of the position onto the missing slot."""
    slot = _first_missing_slot(violation, bucket_minutes)
    if slot is None:
        return None
    date_key, slot_start, slot_end = slot
    position_id = violation.affected.position_id
    new_start = format_time(slot_start)
    new_end = format_time(slot_end, date_key)

    for shift in view.input.shifts:
        if shift.is_day_off or shift.position_id != position_id or shift.date_key != date_key:
            continue
        current = view.ranges.get(shift.id)
        if current is None or ranges_overlap(current.start, current.end, slot_start, slot_end):
            continue
        if not view.is_user_free(shift.user_id, slot_start, slot_end, ignore_shift_id=shift.id):
            continue
        proposed = EngineShift(
            id=shift.id,
            user_id=shift.user_id,
            date_key=date_key,
            start_time=new_start,
            end_time=new_end,
            position_id=shift.position_id,
            unit_id=shift.unit_id,
        )
        if view.would_exceed_max_hours(shift.user_id, date_key, proposed, ignore_shift_id=shift.id):
            continue
        if view.would_break_min_rest(shift.user_id, proposed, ignore_shift_id=shift.id):
            continue
        return Suggestion(
            type=SHIFT_MOVE_SUGGESTION,
            expected_impact=MOVE_EXPECTED_IMPACT,
            explanation=MOVE_EXPLANATION,
            actions=[
                MoveShiftAction(
                    shift_id=shift.id,
                    user_id=shift.user_id,
                    date_key=date_key,
                    new_start_time=new_start,
                    new_end_time=new_end,
                    position_id=position_id,
                )
            ],
        )
    return None


def _user_eligible(user: EngineUser, engine_input: EngineInput, position_id: str) -> bool:
    if not user.is_active:
        return False
    if user.unit_ids is not None and engine_input.unit_id not in user.unit_ids:
        return False
    if user.position_ids and position_id not in user.position_ids:
        return False
    return True


def build_add_shift_suggestion(
    violation: ConstraintViolation,
    view: _ScheduleView,
    bucket_minutes: int,
) -> Optional[Suggestion]:
    """Add a one-bucket shift for the first eligible, free staff member."""
    slot = _first_missing_slot(violation, bucket_minutes)
    if slot is None:
        return None
    date_key, slot_start, slot_end = slot
    position_id = violation.affected.position_id
    start_time = format_time(slot_start)
    end_time = format_time(slot_end, date_key)

    for user in view.input.users:
        if not _user_eligible(user, view.input, position_id):
            continue
        if view.has_day_off(user.id, date_key):
            continue
        if not view.is_user_free(user.id, slot_start, slot_end):
            continue
        proposed = EngineShift(
            id=f"suggested-{user.id}-{violation.affected.slots[0]}",
            user_id=user.id,
            date_key=date_key,
            start_time=start_time,
            end_time=end_time,
            position_id=position_id,
        )
        if view.would_exceed_max_hours(user.id, date_key, proposed):
            continue
        if view.would_break_min_rest(user.id, proposed):
            continue
        return Suggestion(
            type=ADD_SHIFT_SUGGESTION,
            expected_impact=ADD_EXPECTED_IMPACT,
            explanation=ADD_EXPLANATION,
            actions=[
                CreateShiftAction(
                    user_id=user.id,
                    date_key=date_key,
                    start_time=start_time,
                    end_time=end_time,
                    position_id=position_id,
                )
            ],
        )
    return None


def generate_suggestions(
    engine_input: EngineInput,
    capacity_map: CapacityMap,
    violations: List[ConstraintViolation],
) -> List[Suggestion]:
    """
    Derive move/add suggestions from coverage violations.

    Candidates are ranked by violation severity (high first), then move before
    add, then slot key; candidates sharing a suggestion key are kept once.

    Args:
        engine_input: Scenario-adjusted snapshot
        capacity_map: Capacity of the same snapshot
        violations: Violations of the same snapshot

    Returns:
        Ranked, de-duplicated suggestions
    """
    coverage_violations = [v for v in violations if v.constraint_id == MIN_COVERAGE_BY_POSITION_ID]
    if not coverage_violations:
        return []

    bucket_minutes = normalize_bucket_minutes(engine_input.ruleset.bucket_minutes)
    view = _ScheduleView(engine_input)

    candidates: List[Tuple[Suggestion, ConstraintViolation, str]] = []
    for violation in coverage_violations:
        slot = violation.affected.slots[0] if violation.affected.slots else ""
        suggestion = build_move_suggestion(violation, view, bucket_minutes)
        if suggestion is None:
            suggestion = build_add_shift_suggestion(violation, view, bucket_minutes)
        if suggestion is not None:
            candidates.append((suggestion, violation, slot))

    candidates.sort(
        key=lambda item: (
            -SEVERITY_RANK.get(item[1].severity, 0),
            -SUGGESTION_TYPE_RANK.get(item[0].type, 0),
            item[2],
        )
    )

    suggestions: List[Suggestion] = []
    seen = set()
    for suggestion, _, _ in candidates:
        key = compute_suggestion_key(suggestion)
        if key in seen:
            continue
        seen.add(key)
        suggestions.append(suggestion)
    return suggestions
