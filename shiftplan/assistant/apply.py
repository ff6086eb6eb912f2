"""Suggestion applier: validates and applies one suggestion to a draft schedule, all or nothing."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Optional

from shiftplan.domain.types import CreateShiftAction, EngineShift, MoveShiftAction, Suggestion
from shiftplan.exceptions import SuggestionApplyError
from shiftplan.io.snapshot import action_to_dict
from shiftplan.logger import get_logger
from shiftplan.services.timeplan import parse_time_to_minutes

log = get_logger("assistant.apply")

STATUS_APPLIED = "applied"
STATUS_NOOP = "noop"
STATUS_FAILED = "failed"

MISSING_FIELDS = "missing_fields"
INVALID_FIELDS = "invalid_fields"
INVALID_TIME_FORMAT = "invalid_time_format"
INVALID_TIME_RANGE = "invalid_time_range"
DUPLICATE_SHIFT = "duplicate_shift"
SHIFT_NOT_FOUND = "shift_not_found"
USER_MISMATCH = "user_mismatch"
UNSUPPORTED_ACTION = "unsupported_action"
APPLY_FAILED = "apply_failed"

PREVIEW_LIMIT = 200

_PREVIEW_SEPARATORS = re.compile(r"[|;\n\r]")
_WHITESPACE = re.compile(r"\s+")

CREATE_REQUIRED = ("user_id", "date_key", "start_time", "end_time")
MOVE_REQUIRED = ("shift_id", "user_id", "date_key", "new_start_time", "new_end_time")


class StrictnessMode(enum.Enum):
    """
    STRICT captures every problem as a structured ApplyError and never raises;
    it also enforces that a moved shift still belongs to the action's user.
    TOLERANT raises on the first problem so programming errors surface early.
    """

    STRICT = "strict"
    TOLERANT = "tolerant"


@dataclass(frozen=True)
class ScheduleState:
    shifts: List[EngineShift] = field(default_factory=list)
    unit_id: Optional[str] = None


@dataclass(frozen=True)
class ApplyEffect:
    """One committed mutation; start/end are the new times for moves."""

    type: str
    shift_id: str
    user_id: str
    date_key: str
    start_time: str
    end_time: str
    position_id: Optional[str] = None


@dataclass(frozen=True)
class ApplyError:
    code: str
    message: str
    action_index: Optional[int] = None
    action_type: Optional[str] = None
    preview: Optional[str] = None


@dataclass(frozen=True)
class ApplySuggestionResult:
    status: str
    next_schedule_state: ScheduleState
    effects: List[ApplyEffect] = field(default_factory=list)
    errors: List[ApplyError] = field(default_factory=list)


class _ActionRejected(Exception):
    """Internal signal carrying the structured error of the failing action."""

    def __init__(self, error: ApplyError):
        super().__init__(error.message)
        self.error = error


def build_action_preview(action: Any) -> str:
    """Sorted-key JSON of an action with separators blanked, capped at PREVIEW_LIMIT characters."""
    try:
        raw = action if isinstance(action, dict) else action_to_dict(action)
        serialized = json.dumps(raw, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError):
        return "[unserializable-action]"
    sanitized = _WHITESPACE.sub(" ", _PREVIEW_SEPARATORS.sub(" ", serialized)).strip()
    if len(sanitized) > PREVIEW_LIMIT:
        return sanitized[:PREVIEW_LIMIT] + "…"
    return sanitized


def build_generated_shift_id(suggestion_id: str, action_index: int) -> str:
    return f"gen:{suggestion_id}:{action_index}"


def _action_type(action: Any) -> Optional[str]:
    if isinstance(action, dict):
        return action.get("type")
    return getattr(action, "type", None)


def _check_fields(action: Any, required, action_type: str, index: int, preview: str) -> None:
    missing, invalid = [], []
    for name in required:
        value = getattr(action, name, None)
        if value is None or value == "":
            missing.append(name)
        elif not isinstance(value, str):
            invalid.append(name)
    position_id = getattr(action, "position_id", None)
    if position_id is not None and not isinstance(position_id, str):
        invalid.append("position_id")
    if missing or invalid:
        raise _ActionRejected(
            ApplyError(
                code=MISSING_FIELDS if missing else INVALID_FIELDS,
                message=(
                    f"Invalid {action_type} action; "
                    f"missing={','.join(missing)} invalid={','.join(invalid)}"
                ),
                action_index=index,
                action_type=action_type,
                preview=preview,
            )
        )


def _check_time_range(start: str, end: str, action_type: str, index: int, preview: str) -> None:
    """HH:MM format first, then ``start < end`` compared as strings."""
    if parse_time_to_minutes(start) is None or parse_time_to_minutes(end) is None:
        raise _ActionRejected(
            ApplyError(
                code=INVALID_TIME_FORMAT,
                message=f"{action_type} action has an invalid time format.",
                action_index=index,
                action_type=action_type,
                preview=preview,
            )
        )
    if not start < end:
        raise _ActionRejected(
            ApplyError(
                code=INVALID_TIME_RANGE,
                message=f"{action_type} action has an invalid time range.",
                action_index=index,
                action_type=action_type,
                preview=preview,
            )
        )


def _is_duplicate_create(shifts: List[EngineShift], action: CreateShiftAction, unit_id: Optional[str]) -> bool:
    for shift in shifts:
        if (
            shift.user_id == action.user_id
            and shift.date_key == action.date_key
            and (shift.start_time or "") == action.start_time
            and (shift.end_time or "") == action.end_time
            and (shift.position_id or "") == (action.position_id or "")
            and not (unit_id and shift.unit_id and shift.unit_id != unit_id)
        ):
            return True
    return False


def _apply_create(
    working: List[EngineShift],
    action: CreateShiftAction,
    suggestion_id: str,
    index: int,
    unit_id: Optional[str],
    preview: str,
) -> Optional[ApplyEffect]:
    _check_fields(action, CREATE_REQUIRED, action.type, index, preview)
    _check_time_range(action.start_time, action.end_time, action.type, index, preview)

    if _is_duplicate_create(working, action, unit_id):
        return None

    shift_id = build_generated_shift_id(suggestion_id, index)
    if any(shift.id == shift_id for shift in working):
        raise _ActionRejected(
            ApplyError(
                code=DUPLICATE_SHIFT,
                message=f"Shift {shift_id} already exists.",
                action_index=index,
                action_type=action.type,
                preview=preview,
            )
        )

    working.append(
        EngineShift(
            id=shift_id,
            user_id=action.user_id,
            date_key=action.date_key,
            start_time=action.start_time,
            end_time=action.end_time,
            position_id=action.position_id,
            unit_id=unit_id,
        )
    )
    return ApplyEffect(
        type=action.type,
        shift_id=shift_id,
        user_id=action.user_id,
        date_key=action.date_key,
        start_time=action.start_time,
        end_time=action.end_time,
        position_id=action.position_id,
    )


def _apply_move(
    working: List[EngineShift],
    action: MoveShiftAction,
    index: int,
    check_owner: bool,
    preview: str,
) -> ApplyEffect:
    _check_fields(action, MOVE_REQUIRED, action.type, index, preview)
    _check_time_range(action.new_start_time, action.new_end_time, action.type, index, preview)

    target_index = next((i for i, shift in enumerate(working) if shift.id == action.shift_id), None)
    if target_index is None:
        raise _ActionRejected(
            ApplyError(
                code=SHIFT_NOT_FOUND,
                message=f"Shift {action.shift_id} not found.",
                action_index=index,
                action_type=action.type,
                preview=preview,
            )
        )

    target = working[target_index]
    if check_owner and target.user_id != action.user_id:
        raise _ActionRejected(
            ApplyError(
                code=USER_MISMATCH,
                message=f"Shift {action.shift_id} belongs to a different user.",
                action_index=index,
                action_type=action.type,
                preview=preview,
            )
        )

    working[target_index] = replace(
        target,
        date_key=action.date_key,
        start_time=action.new_start_time,
        end_time=action.new_end_time,
        position_id=action.position_id or target.position_id,
    )
    return ApplyEffect(
        type=action.type,
        shift_id=action.shift_id,
        user_id=action.user_id,
        date_key=action.date_key,
        start_time=action.new_start_time,
        end_time=action.new_end_time,
        position_id=action.position_id,
    )


def apply_suggestion(
    suggestion_id: str,
    suggestion: Suggestion,
    schedule_state: ScheduleState,
    applied_suggestion_ids: Iterable[str] = (),
    mode: StrictnessMode = StrictnessMode.STRICT,
) -> ApplySuggestionResult:
    """
    Apply every action of a suggestion to a copy of the schedule.

    Actions run in order. The first failing action aborts the whole suggestion:
    the original schedule is returned with no effects and one error. A
    createShift identical to an existing shift is skipped without an effect;
    a suggestion whose actions were all skipped reports ``noop``.

    Args:
        suggestion_id: Stable id of the suggestion (used for generated shift ids)
        suggestion: Suggestion to apply
        schedule_state: Draft schedule (never modified)
        applied_suggestion_ids: Ids already applied to this schedule
        mode: STRICT captures errors, TOLERANT raises them

    Returns:
        ApplySuggestionResult with status applied, noop or failed

    Raises:
        SuggestionApplyError: In TOLERANT mode, for the first validation problem
    """
    if suggestion_id in set(applied_suggestion_ids or ()):
        log.debug("Suggestion %s already applied, nothing to do", suggestion_id)
        return ApplySuggestionResult(status=STATUS_NOOP, next_schedule_state=schedule_state)

    strict = mode is StrictnessMode.STRICT
    working = list(schedule_state.shifts)
    effects: List[ApplyEffect] = []
    error: Optional[ApplyError] = None

    for index, action in enumerate(suggestion.actions):
        action_type = _action_type(action)
        preview = build_action_preview(action)
        try:
            if isinstance(action, CreateShiftAction):
                effect = _apply_create(working, action, suggestion_id, index, schedule_state.unit_id, preview)
            elif isinstance(action, MoveShiftAction):
                effect = _apply_move(working, action, index, strict, preview)
            else:
                raise _ActionRejected(
                    ApplyError(
                        code=UNSUPPORTED_ACTION,
                        message=f"Unsupported action type: {action_type}",
                        action_index=index,
                        action_type=action_type,
                        preview=preview,
                    )
                )
        except _ActionRejected as rejected:
            if not strict:
                raise SuggestionApplyError(rejected.error) from None
            error = rejected.error
            break
        except Exception as exc:
            if not strict:
                raise
            error = ApplyError(
                code=APPLY_FAILED,
                message=str(exc) or "Unknown apply error.",
                action_index=index,
                action_type=action_type,
                preview=preview,
            )
            break
        if effect is not None:
            effects.append(effect)

    if error is not None:
        log.warning(
            "Suggestion %s failed at action %s: %s (%s)",
            suggestion_id,
            error.action_index,
            error.message,
            error.code,
        )
        return ApplySuggestionResult(
            status=STATUS_FAILED,
            next_schedule_state=schedule_state,
            errors=[error],
        )

    if not effects:
        return ApplySuggestionResult(status=STATUS_NOOP, next_schedule_state=schedule_state)

    log.info("Applied suggestion %s: %d effect(s)", suggestion_id, len(effects))
    return ApplySuggestionResult(
        status=STATUS_APPLIED,
        next_schedule_state=replace(schedule_state, shifts=working),
        effects=effects,
    )
