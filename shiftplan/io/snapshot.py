"""Read and write engine snapshots (camelCase JSON/YAML documents)."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from shiftplan.domain.types import (
    EVENT,
    LAST_MINUTE,
    PEAK,
    SICKNESS,
    Affected,
    AssistantResponse,
    AssistantSession,
    AssistantSuggestion,
    ConstraintViolation,
    CoverageOverride,
    CoveragePayload,
    CreateShiftAction,
    DailySetting,
    DecisionRecord,
    EngineInput,
    EnginePosition,
    EngineResult,
    EngineShift,
    EngineUser,
    Explanation,
    LastMinutePayload,
    MaxHoursPerDayRule,
    MinCoverageRule,
    MinRestHoursRule,
    MoveShiftAction,
    Ruleset,
    Scenario,
    ScenarioEffects,
    ScenarioPatch,
    ScheduleSettings,
    SicknessPayload,
    Suggestion,
    TimeRange,
)
from shiftplan.exceptions import SnapshotFormatError
from shiftplan.services.timeplan import to_utc

TRUE_VALUES = {"1", "true", "yes", "y"}
FALSE_VALUES = {"0", "false", "no", "n"}


def _require(data: Dict[str, Any], key: str, what: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise SnapshotFormatError(f"{what} is missing required field '{key}'")
    return value


def parse_flag(value: Any, default: bool) -> bool:
    """Boolean field: real booleans, 0/1 and yes/no style strings. Missing means ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
    raise SnapshotFormatError(f"Expected a boolean, got {value!r}")


def _optional_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    return list(value)


# ---------------------------------------------------------------- input side


def shift_from_dict(data: Dict[str, Any]) -> EngineShift:
    return EngineShift(
        id=str(_require(data, "id", "shift")),
        user_id=str(_require(data, "userId", "shift")),
        date_key=str(_require(data, "dateKey", "shift")),
        start_time=data.get("startTime") or None,
        end_time=data.get("endTime") or None,
        position_id=data.get("positionId") or None,
        unit_id=data.get("unitId") or None,
        is_day_off=parse_flag(data.get("isDayOff"), False),
    )


def shift_to_dict(shift: EngineShift) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": shift.id,
        "userId": shift.user_id,
        "dateKey": shift.date_key,
    }
    for key, value in (
        ("startTime", shift.start_time),
        ("endTime", shift.end_time),
        ("positionId", shift.position_id),
        ("unitId", shift.unit_id),
    ):
        if value is not None:
            data[key] = value
    if shift.is_day_off:
        data["isDayOff"] = True
    return data


def schedule_settings_from_dict(data: Optional[Dict[str, Any]]) -> ScheduleSettings:
    data = data or {}
    daily: Dict[int, DailySetting] = {}
    for raw_index, raw in (data.get("dailySettings") or {}).items():
        try:
            day_index = int(raw_index)
        except (TypeError, ValueError) as e:
            raise SnapshotFormatError(f"dailySettings key {raw_index!r} is not a day index") from e
        raw = raw or {}
        daily[day_index] = DailySetting(
            closing_time=raw.get("closingTime"),
            closing_offset_minutes=raw.get("closingOffsetMinutes"),
            closing_time_inherit=parse_flag(raw.get("closingTimeInherit"), False),
            opening_time=raw.get("openingTime"),
            is_open=parse_flag(raw.get("isOpen"), True),
        )
    return ScheduleSettings(
        default_closing_time=data.get("defaultClosingTime"),
        default_closing_offset_minutes=data.get("defaultClosingOffsetMinutes"),
        daily_settings=daily,
    )


def schedule_settings_to_dict(settings: ScheduleSettings) -> Dict[str, Any]:
    return {
        "defaultClosingTime": settings.default_closing_time,
        "defaultClosingOffsetMinutes": settings.default_closing_offset_minutes,
        "dailySettings": {
            str(index): {
                "closingTime": day.closing_time,
                "closingOffsetMinutes": day.closing_offset_minutes,
                "closingTimeInherit": day.closing_time_inherit,
                "openingTime": day.opening_time,
                "isOpen": day.is_open,
            }
            for index, day in sorted(settings.daily_settings.items())
        },
    }


def coverage_rule_from_dict(data: Dict[str, Any]) -> MinCoverageRule:
    return MinCoverageRule(
        position_id=str(_require(data, "positionId", "minCoverageByPosition rule")),
        date_keys=list(data.get("dateKeys") or []),
        start_time=str(_require(data, "startTime", "minCoverageByPosition rule")),
        end_time=str(_require(data, "endTime", "minCoverageByPosition rule")),
        min_count=int(data.get("minCount", 1)),
        severity=data.get("severity"),
    )


def coverage_rule_to_dict(rule: MinCoverageRule) -> Dict[str, Any]:
    data = {
        "positionId": rule.position_id,
        "dateKeys": list(rule.date_keys),
        "startTime": rule.start_time,
        "endTime": rule.end_time,
        "minCount": rule.min_count,
    }
    if rule.severity:
        data["severity"] = rule.severity
    return data


def ruleset_from_dict(data: Optional[Dict[str, Any]]) -> Ruleset:
    data = data or {}
    rest = data.get("minRestHoursBetweenShifts")
    max_hours = data.get("maxHoursPerDay")
    return Ruleset(
        bucket_minutes=data.get("bucketMinutes"),
        min_coverage_by_position=[
            coverage_rule_from_dict(rule) for rule in data.get("minCoverageByPosition") or []
        ],
        min_rest_hours_between_shifts=(
            MinRestHoursRule(
                min_rest_hours=float(_require(rest, "minRestHours", "minRestHoursBetweenShifts")),
                severity=rest.get("severity"),
            )
            if rest
            else None
        ),
        max_hours_per_day=(
            MaxHoursPerDayRule(
                max_hours_per_day=float(_require(max_hours, "maxHoursPerDay", "maxHoursPerDay")),
                severity=max_hours.get("severity"),
            )
            if max_hours
            else None
        ),
    )


def ruleset_to_dict(ruleset: Ruleset) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "bucketMinutes": ruleset.bucket_minutes,
        "minCoverageByPosition": [coverage_rule_to_dict(r) for r in ruleset.min_coverage_by_position],
    }
    if ruleset.min_rest_hours_between_shifts:
        rule = ruleset.min_rest_hours_between_shifts
        data["minRestHoursBetweenShifts"] = {"minRestHours": rule.min_rest_hours, "severity": rule.severity}
    if ruleset.max_hours_per_day:
        rule = ruleset.max_hours_per_day
        data["maxHoursPerDay"] = {"maxHoursPerDay": rule.max_hours_per_day, "severity": rule.severity}
    return data


def user_from_dict(data: Dict[str, Any]) -> EngineUser:
    return EngineUser(
        id=str(_require(data, "id", "user")),
        display_name=data.get("displayName", ""),
        position_ids=list(data.get("positionIds") or []),
        unit_ids=_optional_list(data.get("unitIds")),
        is_active=parse_flag(data.get("isActive"), True),
    )


def payload_from_dict(scenario_type: str, data: Optional[Dict[str, Any]]) -> Any:
    """Build the typed payload for ``scenario_type``.

    Payload contents are not validated here; malformed values are dropped when
    the scenario is applied. Unknown scenario types keep their raw payload.
    """
    data = data or {}
    if scenario_type == SICKNESS:
        return SicknessPayload(
            user_id=data.get("userId", ""),
            date_keys=_optional_list(data.get("dateKeys")),
            reason=data.get("reason"),
        )
    if scenario_type in (EVENT, PEAK):
        raw_range = data.get("timeRange")
        time_range = None
        if isinstance(raw_range, dict):
            time_range = TimeRange(
                start_time=raw_range.get("startTime", ""),
                end_time=raw_range.get("endTime", ""),
            )
        return CoveragePayload(
            time_range=time_range,
            min_coverage_overrides=[
                CoverageOverride(position_id=item.get("positionId", ""), min_count=item.get("minCount", 0))
                for item in data.get("minCoverageOverrides") or []
                if isinstance(item, dict)
            ],
            date_keys=_optional_list(data.get("dateKeys")),
            label=data.get("label"),
        )
    if scenario_type == LAST_MINUTE:
        return LastMinutePayload(
            timestamp=data.get("timestamp", ""),
            description=data.get("description", ""),
            patches=[
                ScenarioPatch(op=item.get("op", ""), path=item.get("path", ""), value=item.get("value"))
                for item in data.get("patches") or []
                if isinstance(item, dict)
            ],
        )
    return dict(data)


def payload_to_dict(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, SicknessPayload):
        data: Dict[str, Any] = {"userId": payload.user_id}
        if payload.date_keys is not None:
            data["dateKeys"] = list(payload.date_keys)
        if payload.reason:
            data["reason"] = payload.reason
        return data
    if isinstance(payload, CoveragePayload):
        data = {
            "minCoverageOverrides": [
                {"positionId": item.position_id, "minCount": item.min_count}
                for item in payload.min_coverage_overrides
            ],
        }
        if payload.time_range is not None:
            data["timeRange"] = {
                "startTime": payload.time_range.start_time,
                "endTime": payload.time_range.end_time,
            }
        if payload.date_keys is not None:
            data["dateKeys"] = list(payload.date_keys)
        if payload.label:
            data["label"] = payload.label
        return data
    if isinstance(payload, LastMinutePayload):
        return {
            "timestamp": payload.timestamp,
            "description": payload.description,
            "patches": [{"op": p.op, "path": p.path, "value": p.value} for p in payload.patches],
        }
    return dict(payload or {})


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    scenario_type = str(_require(data, "type", "scenario"))
    return Scenario(
        id=str(_require(data, "id", "scenario")),
        unit_id=str(data.get("unitId", "")),
        week_start_date=str(data.get("weekStartDate", "")),
        type=scenario_type,
        payload=payload_from_dict(scenario_type, data.get("payload")),
        date_keys=_optional_list(data.get("dateKeys")),
        inherit_mode=data.get("inheritMode"),
    )


def scenario_to_dict(scenario: Scenario) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": scenario.id,
        "unitId": scenario.unit_id,
        "weekStartDate": scenario.week_start_date,
        "type": scenario.type,
        "payload": payload_to_dict(scenario.payload),
    }
    if scenario.date_keys is not None:
        data["dateKeys"] = list(scenario.date_keys)
    if scenario.inherit_mode:
        data["inheritMode"] = scenario.inherit_mode
    return data


def engine_input_from_dict(data: Dict[str, Any]) -> EngineInput:
    """
    Build an EngineInput from a camelCase snapshot document.

    Raises:
        SnapshotFormatError: If required top-level or per-shift fields are missing
    """
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot must be a mapping")
    week_days = data.get("weekDays")
    if not isinstance(week_days, list) or not week_days:
        raise SnapshotFormatError("Snapshot is missing 'weekDays'")
    try:
        return EngineInput(
            week_days=[str(day) for day in week_days],
            shifts=[shift_from_dict(item) for item in data.get("shifts") or []],
            schedule_settings=schedule_settings_from_dict(data.get("scheduleSettings")),
            ruleset=ruleset_from_dict(data.get("ruleset")),
            unit_id=str(data.get("unitId", "")),
            week_start=str(data.get("weekStart") or week_days[0]),
            users=[user_from_dict(item) for item in data.get("users") or []],
            positions=[
                EnginePosition(id=str(_require(item, "id", "position")), name=item.get("name", ""))
                for item in data.get("positions") or []
            ],
            scenarios=[scenario_from_dict(item) for item in data.get("scenarios") or []],
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise SnapshotFormatError(f"Malformed snapshot: {e}") from e


def engine_input_to_dict(engine_input: EngineInput) -> Dict[str, Any]:
    return {
        "unitId": engine_input.unit_id,
        "weekStart": engine_input.week_start,
        "weekDays": list(engine_input.week_days),
        "shifts": [shift_to_dict(s) for s in engine_input.shifts],
        "scheduleSettings": schedule_settings_to_dict(engine_input.schedule_settings),
        "ruleset": ruleset_to_dict(engine_input.ruleset),
        "users": [
            {
                "id": u.id,
                "displayName": u.display_name,
                "positionIds": list(u.position_ids),
                "unitIds": u.unit_ids,
                "isActive": u.is_active,
            }
            for u in engine_input.users
        ],
        "positions": [{"id": p.id, "name": p.name} for p in engine_input.positions],
        "scenarios": [scenario_to_dict(s) for s in engine_input.scenarios],
    }


def read_document(path: str | Path) -> Dict[str, Any]:
    """Read a JSON or YAML document, chosen by file suffix."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise SnapshotFormatError(f"Could not parse {p}: {e}") from e
    return data or {}


def load_engine_input(path: str | Path) -> EngineInput:
    return engine_input_from_dict(read_document(path))


# ---------------------------------------------------------------- output side


def action_to_dict(action: Any) -> Dict[str, Any]:
    if isinstance(action, CreateShiftAction):
        data = {
            "type": action.type,
            "userId": action.user_id,
            "dateKey": action.date_key,
            "startTime": action.start_time,
            "endTime": action.end_time,
        }
    elif isinstance(action, MoveShiftAction):
        data = {
            "type": action.type,
            "shiftId": action.shift_id,
            "userId": action.user_id,
            "dateKey": action.date_key,
            "newStartTime": action.new_start_time,
            "newEndTime": action.new_end_time,
        }
    elif is_dataclass(action):
        return asdict(action)
    else:
        return dict(action)
    if action.position_id is not None:
        data["positionId"] = action.position_id
    return data


def suggestion_to_dict(suggestion: Suggestion) -> Dict[str, Any]:
    return {
        "type": suggestion.type,
        "expectedImpact": suggestion.expected_impact,
        "explanation": suggestion.explanation,
        "actions": [action_to_dict(a) for a in suggestion.actions],
    }


def affected_to_dict(affected: Affected) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "userIds": list(affected.user_ids),
        "shiftIds": list(affected.shift_ids),
        "slots": list(affected.slots),
        "dateKeys": list(affected.date_keys),
    }
    if affected.position_id is not None:
        data["positionId"] = affected.position_id
    return data


def violation_to_dict(violation: ConstraintViolation) -> Dict[str, Any]:
    return {
        "constraintId": violation.constraint_id,
        "severity": violation.severity,
        "message": violation.message,
        "affected": affected_to_dict(violation.affected),
    }


def scenario_effects_to_dict(effects: ScenarioEffects) -> Dict[str, Any]:
    return {
        "removedShiftsCount": effects.removed_shifts_count,
        "addedRulesCount": effects.added_rules_count,
        "overriddenRulesCount": effects.overridden_rules_count,
        "ruleDiff": {
            "before": [coverage_rule_to_dict(r) for r in effects.rule_diff.before],
            "after": [coverage_rule_to_dict(r) for r in effects.rule_diff.after],
        },
        "uiSummary": {
            "hasRuleOverrides": effects.ui_summary["has_rule_overrides"],
            "hasRuleAdds": effects.ui_summary["has_rule_adds"],
            "hasShiftRemovals": effects.ui_summary["has_shift_removals"],
        },
    }


def result_to_dict(result: EngineResult) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "capacityMap": {slot: dict(counts) for slot, counts in sorted(result.capacity_map.items())},
        "violations": [violation_to_dict(v) for v in result.violations],
        "suggestions": [suggestion_to_dict(s) for s in result.suggestions],
        "explanation": {"trace": list(result.trace)},
    }
    if result.scenario_effects is not None:
        data["scenarioEffects"] = scenario_effects_to_dict(result.scenario_effects)
    return data


def explanation_to_dict(explanation: Explanation) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": explanation.id,
        "kind": explanation.kind,
        "severity": explanation.severity,
        "title": explanation.title,
        "details": explanation.details,
        "affected": affected_to_dict(explanation.affected),
    }
    for key, value in (
        ("relatedConstraintId", explanation.related_constraint_id),
        ("relatedSuggestionId", explanation.related_suggestion_id),
        ("why", explanation.why),
        ("whyNow", explanation.why_now),
        ("whatIfAccepted", explanation.what_if_accepted),
        ("meta", explanation.meta),
    ):
        if value is not None:
            data[key] = value
    return data


def assistant_suggestion_to_dict(suggestion: AssistantSuggestion) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": suggestion.id,
        "type": suggestion.type,
        "severity": suggestion.severity,
        "explanation": suggestion.explanation,
        "expectedImpact": suggestion.expected_impact,
        "actions": [action_to_dict(a) for a in suggestion.actions],
        "meta": dict(suggestion.meta),
    }
    if suggestion.decision_state is not None:
        data["decisionState"] = suggestion.decision_state
    return data


def response_to_dict(response: AssistantResponse) -> Dict[str, Any]:
    return {
        "suggestions": [assistant_suggestion_to_dict(s) for s in response.suggestions],
        "explanations": [explanation_to_dict(e) for e in response.explanations],
    }


def decision_to_dict(decision: DecisionRecord) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "suggestionId": decision.suggestion_id,
        "decision": decision.decision,
        "timestamp": decision.timestamp.isoformat(),
        "sessionId": decision.session_id,
    }
    if decision.reason is not None:
        data["reason"] = decision.reason
    if decision.source is not None:
        data["source"] = decision.source
    return data


def _parse_timestamp(value: Any) -> datetime:
    """ISO-8601 text as an aware UTC datetime; an offset-less value is read as UTC."""
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def decision_from_dict(data: Dict[str, Any]) -> DecisionRecord:
    try:
        timestamp = _parse_timestamp(_require(data, "timestamp", "decision"))
    except ValueError as e:
        raise SnapshotFormatError(f"Decision timestamp is not ISO-8601: {data.get('timestamp')!r}") from e
    return DecisionRecord(
        suggestion_id=str(_require(data, "suggestionId", "decision")),
        decision=str(_require(data, "decision", "decision")),
        timestamp=timestamp,
        session_id=str(data.get("sessionId", "")),
        reason=data.get("reason"),
        source=data.get("source"),
    )


def session_to_dict(session: AssistantSession) -> Dict[str, Any]:
    return {
        "sessionId": session.session_id,
        "createdAt": session.created_at.isoformat(),
        "updatedAt": session.updated_at.isoformat(),
        "decisions": [decision_to_dict(d) for d in session.decisions],
        "contextKey": session.context_key,
        "schemaVersion": session.schema_version,
        "expiresAt": session.expires_at.isoformat() if session.expires_at else None,
    }


def session_from_dict(data: Dict[str, Any]) -> AssistantSession:
    try:
        expires_at = data.get("expiresAt")
        return AssistantSession(
            session_id=str(_require(data, "sessionId", "session")),
            created_at=_parse_timestamp(_require(data, "createdAt", "session")),
            updated_at=_parse_timestamp(_require(data, "updatedAt", "session")),
            decisions=[decision_from_dict(d) for d in data.get("decisions") or []],
            context_key=data.get("contextKey"),
            schema_version=int(data.get("schemaVersion", 1)),
            expires_at=_parse_timestamp(expires_at) if expires_at else None,
        )
    except ValueError as e:
        raise SnapshotFormatError(f"Malformed session: {e}") from e
