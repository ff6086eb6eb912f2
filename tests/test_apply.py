"""Tests for the suggestion applier."""

import pytest

from shiftplan.assistant.apply import (
    APPLY_FAILED,
    DUPLICATE_SHIFT,
    INVALID_TIME_FORMAT,
    INVALID_TIME_RANGE,
    MISSING_FIELDS,
    SHIFT_NOT_FOUND,
    STATUS_APPLIED,
    STATUS_FAILED,
    STATUS_NOOP,
    UNSUPPORTED_ACTION,
    USER_MISMATCH,
    ApplyEffect,
    ScheduleState,
    StrictnessMode,
    apply_suggestion,
    build_action_preview,
    build_generated_shift_id,
)
from shiftplan.domain.types import (
    ADD_SHIFT_SUGGESTION,
    SHIFT_MOVE_SUGGESTION,
    CreateShiftAction,
    EngineShift,
    MoveShiftAction,
    Suggestion,
)
from shiftplan.exceptions import SuggestionApplyError


def _suggestion(*actions, suggestion_type=ADD_SHIFT_SUGGESTION):
    return Suggestion(type=suggestion_type, expected_impact="impact", explanation="why", actions=list(actions))


def _create(user_id="u1", date_key="2025-01-06", start="08:00", end="09:00", position="p1"):
    return CreateShiftAction(user_id, date_key, start, end, position)


@pytest.fixture
def state(shift):
    return ScheduleState(shifts=[shift("s1", "u1", "2025-01-06", "12:00", "14:00")], unit_id="unit-a")


def test_create_adds_generated_shift(state):
    result = apply_suggestion("sug-1", _suggestion(_create()), state)
    assert result.status == STATUS_APPLIED
    assert result.errors == []
    assert result.effects == [
        ApplyEffect("createShift", "gen:sug-1:0", "u1", "2025-01-06", "08:00", "09:00", "p1")
    ]
    created = result.next_schedule_state.shifts[-1]
    assert created.id == build_generated_shift_id("sug-1", 0)
    assert created.unit_id == "unit-a"
    # the input state is untouched
    assert len(state.shifts) == 1


def test_move_updates_shift_times(state):
    move = MoveShiftAction("s1", "u1", "2025-01-06", "08:00", "10:00", "p1")
    result = apply_suggestion("sug-2", _suggestion(move, suggestion_type=SHIFT_MOVE_SUGGESTION), state)
    assert result.status == STATUS_APPLIED
    moved = result.next_schedule_state.shifts[0]
    assert (moved.id, moved.start_time, moved.end_time) == ("s1", "08:00", "10:00")
    assert result.effects[0].start_time == "08:00"


def test_already_applied_suggestion_is_noop(state):
    result = apply_suggestion("sug-1", _suggestion(_create()), state, applied_suggestion_ids=["sug-1"])
    assert result.status == STATUS_NOOP
    assert result.next_schedule_state is state
    assert result.effects == []


def test_identical_create_is_skipped(state):
    duplicate = _create(start="12:00", end="14:00")
    result = apply_suggestion("sug-1", _suggestion(duplicate), state)
    assert result.status == STATUS_NOOP
    assert result.next_schedule_state.shifts == state.shifts

    mixed = apply_suggestion("sug-1", _suggestion(duplicate, _create()), state)
    assert mixed.status == STATUS_APPLIED
    assert [e.shift_id for e in mixed.effects] == ["gen:sug-1:1"]


def test_generated_id_collision_is_duplicate_shift(state):
    taken = ScheduleState(
        shifts=[*state.shifts, EngineShift(id="gen:sug-1:0", user_id="u2", date_key="2025-01-07")],
        unit_id="unit-a",
    )
    result = apply_suggestion("sug-1", _suggestion(_create()), taken)
    assert result.status == STATUS_FAILED
    assert result.errors[0].code == DUPLICATE_SHIFT


def test_failure_is_all_or_nothing(state):
    missing = MoveShiftAction("nope", "u1", "2025-01-06", "08:00", "09:00")
    result = apply_suggestion("sug-3", _suggestion(_create(), missing), state)
    assert result.status == STATUS_FAILED
    assert result.next_schedule_state is state
    assert result.effects == []
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.code == SHIFT_NOT_FOUND
    assert error.action_index == 1
    assert error.action_type == "moveShift"


@pytest.mark.parametrize(
    "action,code",
    [
        (_create(user_id=""), MISSING_FIELDS),
        (_create(start="8:00"), INVALID_TIME_FORMAT),
        (_create(start="10:00", end="09:00"), INVALID_TIME_RANGE),
        (_create(start="22:00", end="02:00"), INVALID_TIME_RANGE),
        ({"type": "swapShift", "from": "s1"}, UNSUPPORTED_ACTION),
    ],
)
def test_strict_mode_reports_validation_errors(state, action, code):
    result = apply_suggestion("sug-4", _suggestion(action), state)
    assert result.status == STATUS_FAILED
    assert result.errors[0].code == code
    assert result.errors[0].preview


def test_end_of_day_create_is_accepted(state):
    result = apply_suggestion("sug-5", _suggestion(_create(start="23:00", end="24:00")), state)
    assert result.status == STATUS_APPLIED


def test_user_mismatch_only_in_strict_mode(state):
    move = MoveShiftAction("s1", "u2", "2025-01-06", "08:00", "09:00", "p1")
    strict = apply_suggestion("sug-6", _suggestion(move), state)
    assert strict.errors[0].code == USER_MISMATCH

    tolerant = apply_suggestion("sug-6", _suggestion(move), state, mode=StrictnessMode.TOLERANT)
    assert tolerant.status == STATUS_APPLIED


def test_tolerant_mode_raises(state):
    with pytest.raises(SuggestionApplyError) as exc_info:
        apply_suggestion(
            "sug-7", _suggestion(_create(start="10:00", end="09:00")), state, mode=StrictnessMode.TOLERANT
        )
    assert exc_info.value.code == INVALID_TIME_RANGE
    assert exc_info.value.error.action_index == 0


def test_action_preview():
    assert build_action_preview(_create()) == (
        '{"dateKey": "2025-01-06", "endTime": "09:00", "positionId": "p1", '
        '"startTime": "08:00", "type": "createShift", "userId": "u1"}'
    )
    assert build_action_preview({"type": "x", "note": "a|b;c"}) == '{"note": "a b c", "type": "x"}'
    long_preview = build_action_preview({"type": "x", "note": "y" * 500})
    assert len(long_preview) == 201
    assert long_preview.endswith("…")


def test_unexpected_error_is_captured_or_raised(state, monkeypatch):
    def broken_id(suggestion_id, action_index):
        raise RuntimeError("boom")

    monkeypatch.setattr("shiftplan.assistant.apply.build_generated_shift_id", broken_id)

    result = apply_suggestion("sug-8", _suggestion(_create()), state)
    assert result.status == STATUS_FAILED
    assert result.next_schedule_state is state
    assert result.effects == []
    assert result.errors[0].code == APPLY_FAILED
    assert result.errors[0].message == "boom"
    assert result.errors[0].action_type == "createShift"

    with pytest.raises(RuntimeError, match="boom"):
        apply_suggestion("sug-8", _suggestion(_create()), state, mode=StrictnessMode.TOLERANT)
