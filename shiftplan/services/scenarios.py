"""What-if scenarios applied to a copy of the engine input before evaluation."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import List, Optional, Tuple

from shiftplan.domain.types import (
    EVENT,
    INHERIT_ADD,
    INHERIT_IF_EMPTY,
    INHERIT_OVERRIDE,
    LAST_MINUTE,
    PEAK,
    SICKNESS,
    CoverageOverride,
    CoveragePayload,
    EngineInput,
    EngineShift,
    MinCoverageRule,
    RuleDiff,
    Scenario,
    ScenarioEffects,
    SicknessPayload,
)
from shiftplan.logger import get_logger

from .timeplan import is_valid_date_key, is_valid_time

log = get_logger("scenarios")


def resolve_scenario_date_keys(scenario: Scenario, payload_date_keys: Optional[List[str]]) -> List[str]:
    """Payload date keys (else the scenario's), malformed ones dropped, first occurrence kept."""
    source = payload_date_keys if payload_date_keys is not None else (scenario.date_keys or [])
    date_keys: List[str] = []
    for date_key in source:
        if is_valid_date_key(date_key) and date_key not in date_keys:
            date_keys.append(date_key)
    return date_keys


def _valid_overrides(overrides: List[CoverageOverride]) -> List[CoverageOverride]:
    valid = []
    for override in overrides or []:
        count = override.min_count
        if not override.position_id or not isinstance(override.position_id, str):
            continue
        if isinstance(count, bool) or not isinstance(count, (int, float)) or not math.isfinite(count):
            continue
        if count <= 0:
            continue
        valid.append(override)
    return valid


def remove_sick_shifts(shifts: List[EngineShift], scenario: Scenario) -> List[EngineShift]:
    payload = scenario.payload
    if not isinstance(payload, SicknessPayload) or not payload.user_id:
        return shifts
    date_keys = set(resolve_scenario_date_keys(scenario, payload.date_keys))
    if not date_keys:
        return shifts
    return [s for s in shifts if not (s.user_id == payload.user_id and s.date_key in date_keys)]


def build_coverage_rules(scenario: Scenario) -> List[MinCoverageRule]:
    """Turn an EVENT/PEAK payload into coverage rules; empty when anything required is malformed."""
    payload = scenario.payload
    if not isinstance(payload, CoveragePayload):
        return []
    date_keys = resolve_scenario_date_keys(scenario, payload.date_keys)
    time_range = payload.time_range
    if not date_keys or time_range is None:
        return []
    if not is_valid_time(time_range.start_time) or not is_valid_time(time_range.end_time):
        return []
    return [
        MinCoverageRule(
            position_id=override.position_id,
            date_keys=list(date_keys),
            start_time=time_range.start_time,
            end_time=time_range.end_time,
            min_count=int(math.floor(override.min_count)),
        )
        for override in _valid_overrides(payload.min_coverage_overrides)
    ]


def _rule_matches(rule: MinCoverageRule, date_key: str, scenario_rule: MinCoverageRule) -> bool:
    return (
        rule.position_id == scenario_rule.position_id
        and rule.start_time == scenario_rule.start_time
        and rule.end_time == scenario_rule.end_time
        and date_key in (rule.date_keys or [])
    )


def _should_inherit(existing: List[MinCoverageRule], scenario_rule: MinCoverageRule) -> bool:
    if not scenario_rule.date_keys:
        return False
    return all(
        not any(_rule_matches(rule, date_key, scenario_rule) for rule in existing)
        for date_key in scenario_rule.date_keys
    )


def apply_scenarios_with_effects(engine_input: EngineInput) -> Tuple[EngineInput, ScenarioEffects]:
    """
    Apply the input's scenarios in order and report what changed.

    SICKNESS removes the user's shifts on the scenario dates. EVENT and PEAK
    layer coverage rules onto the ruleset according to the scenario's inherit
    mode (ADD by default). LAST_MINUTE and unknown types change nothing.

    Returns:
        Tuple of (adjusted input, effects). The original input is returned
        unchanged when no scenario had an effect.
    """
    original_rules = list(engine_input.ruleset.min_coverage_by_position or [])
    if not engine_input.scenarios:
        return engine_input, ScenarioEffects(rule_diff=RuleDiff(before=original_rules, after=original_rules))

    shifts = list(engine_input.shifts)
    rules = list(original_rules)
    added = 0
    overridden = 0

    for scenario in engine_input.scenarios:
        if scenario.type == SICKNESS:
            shifts = remove_sick_shifts(shifts, scenario)
        elif scenario.type in (EVENT, PEAK):
            scenario_rules = build_coverage_rules(scenario)
            mode = scenario.inherit_mode or INHERIT_ADD
            if mode == INHERIT_ADD:
                rules.extend(scenario_rules)
                added += len(scenario_rules)
            elif mode == INHERIT_OVERRIDE:
                for scenario_rule in scenario_rules:
                    for date_key in scenario_rule.date_keys:
                        kept = [r for r in rules if not _rule_matches(r, date_key, scenario_rule)]
                        # a rule spanning several overridden dates is counted once per date
                        overridden += len(rules) - len(kept)
                        rules = kept
                    rules.append(scenario_rule)
                    added += 1
            elif mode == INHERIT_IF_EMPTY:
                for scenario_rule in scenario_rules:
                    if _should_inherit(rules, scenario_rule):
                        rules.append(scenario_rule)
                        added += 1
            else:
                log.warning("Scenario %s has unknown inherit mode %r, skipping", scenario.id, mode)
        elif scenario.type == LAST_MINUTE:
            log.debug("Scenario %s is LAST_MINUTE; stored only, not applied", scenario.id)
        else:
            log.warning("Unknown scenario type %r in scenario %s, skipping", scenario.type, scenario.id)

    removed = len(engine_input.shifts) - len(shifts)
    if removed == 0 and rules == original_rules:
        return engine_input, ScenarioEffects(
            overridden_rules_count=overridden,
            rule_diff=RuleDiff(before=original_rules, after=original_rules),
        )

    adjusted = replace(
        engine_input,
        shifts=shifts,
        ruleset=replace(engine_input.ruleset, min_coverage_by_position=rules),
    )
    effects = ScenarioEffects(
        removed_shifts_count=max(0, removed),
        added_rules_count=added,
        overridden_rules_count=overridden,
        rule_diff=RuleDiff(before=original_rules, after=rules),
    )
    log.debug(
        "Scenarios applied: %d shift(s) removed, %d rule(s) added, %d overridden",
        effects.removed_shifts_count,
        added,
        overridden,
    )
    return adjusted, effects


def apply_scenarios(engine_input: EngineInput) -> EngineInput:
    return apply_scenarios_with_effects(engine_input)[0]
