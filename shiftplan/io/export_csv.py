"""CSV export utilities for evaluation results and draft schedules."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from shiftplan.domain.types import CapacityMap, ConstraintViolation, EngineResult, EngineShift
from shiftplan.logger import get_logger
from shiftplan.services.timeplan import parse_slot_key

log = get_logger("io")

CAPACITY_COLUMNS = ["slot", "dateKey", "time", "positionId", "count"]
VIOLATION_COLUMNS = ["constraintId", "severity", "message", "positionId", "userIds", "shiftIds", "dateKeys", "slots"]
SHIFT_COLUMNS = ["id", "userId", "dateKey", "startTime", "endTime", "positionId", "isDayOff"]


def capacity_frame(capacity_map: CapacityMap) -> pd.DataFrame:
    """One row per (slot, position), sorted by slot then position."""
    rows = []
    for slot, positions in capacity_map.items():
        date_key, time = parse_slot_key(slot)
        for position_id, count in positions.items():
            rows.append(
                {"slot": slot, "dateKey": date_key, "time": time, "positionId": position_id, "count": count}
            )
    df = pd.DataFrame(rows, columns=CAPACITY_COLUMNS)
    return df.sort_values(["slot", "positionId"]).reset_index(drop=True)


def violations_frame(violations: List[ConstraintViolation]) -> pd.DataFrame:
    rows = [
        {
            "constraintId": v.constraint_id,
            "severity": v.severity,
            "message": v.message,
            "positionId": v.affected.position_id or "",
            "userIds": ";".join(v.affected.user_ids),
            "shiftIds": ";".join(v.affected.shift_ids),
            "dateKeys": ";".join(v.affected.date_keys),
            "slots": ";".join(v.affected.slots),
        }
        for v in violations
    ]
    return pd.DataFrame(rows, columns=VIOLATION_COLUMNS)


def shifts_frame(shifts: List[EngineShift]) -> pd.DataFrame:
    rows = [
        {
            "id": s.id,
            "userId": s.user_id,
            "dateKey": s.date_key,
            "startTime": s.start_time or "",
            "endTime": s.end_time or "",
            "positionId": s.position_id or "",
            "isDayOff": "true" if s.is_day_off else "false",
        }
        for s in shifts
    ]
    return pd.DataFrame(rows, columns=SHIFT_COLUMNS)


def export_capacity_csv(path: str | Path, capacity_map: CapacityMap) -> int:
    """
    Export a capacity map to CSV.

    Returns:
        Number of rows written
    """
    df = capacity_frame(capacity_map)
    df.to_csv(path, index=False)
    log.info("Exported %d capacity rows to %s", len(df), path)
    return len(df)


def export_violations_csv(path: str | Path, violations: List[ConstraintViolation]) -> int:
    """Export violations to CSV (list fields joined with ``;``). Returns number of rows."""
    df = violations_frame(violations)
    df.to_csv(path, index=False)
    log.info("Exported %d violations to %s", len(df), path)
    return len(df)


def write_shifts_csv(path: str | Path, shifts: List[EngineShift]) -> None:
    """Write shifts in the column layout read_shifts_csv accepts."""
    shifts_frame(shifts).to_csv(path, index=False)
    log.info("Wrote %d shifts to %s", len(shifts), path)


def summarize_result(result: EngineResult) -> str:
    """Plain-text summary of one evaluation for the console."""
    lines = [
        f"Slots: {len(result.capacity_map)}",
        f"Violations: {len(result.violations)}",
    ]
    if result.violations:
        by_constraint = violations_frame(result.violations).groupby("constraintId").size()
        for constraint_id, count in by_constraint.items():
            lines.append(f"  {constraint_id}: {count}")
    lines.append(f"Suggestions: {len(result.suggestions)}")
    for index, suggestion in enumerate(result.suggestions):
        lines.append(f"  [{index}] {suggestion.type}: {suggestion.explanation}")
    effects = result.scenario_effects
    if effects is not None and (effects.removed_shifts_count or effects.added_rules_count):
        lines.append(
            f"Scenarios: {effects.removed_shifts_count} shift(s) removed, "
            f"{effects.added_rules_count} rule(s) added, "
            f"{effects.overridden_rules_count} rule(s) overridden"
        )
    return "\n".join(lines)
