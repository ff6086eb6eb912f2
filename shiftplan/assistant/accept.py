"""Accept a suggestion against an input and report how the violations changed."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List

from shiftplan.domain.types import ConstraintViolation, EngineInput, EngineResult, Suggestion
from shiftplan.engine.orchestrator import run_engine

from .apply import STATUS_APPLIED, ApplyError, ScheduleState, StrictnessMode, apply_suggestion
from .ids import build_action_key, build_suggestion_id
from .pipeline import violation_affected_key

VERDICT_ACCEPTED = "accepted"
VERDICT_PARTIAL = "partially-accepted"
VERDICT_REJECTED = "rejected"


@dataclass(frozen=True)
class ViolationDelta:
    resolved: List[str] = field(default_factory=list)
    remaining: List[str] = field(default_factory=list)
    new: List[str] = field(default_factory=list)


@dataclass
class AcceptSuggestionResult:
    before: EngineResult
    after: EngineResult
    delta: ViolationDelta
    applied_action_keys: List[str]
    rejected_action_keys: List[str]
    errors: List[ApplyError]
    decision: str


def diff_violations(before: List[ConstraintViolation], after: List[ConstraintViolation]) -> ViolationDelta:
    """Compare violations by their affected key; each list is sorted."""
    before_keys = {violation_affected_key(v) for v in before}
    after_keys = {violation_affected_key(v) for v in after}
    return ViolationDelta(
        resolved=sorted(before_keys - after_keys),
        remaining=sorted(before_keys & after_keys),
        new=sorted(after_keys - before_keys),
    )


def accept_suggestion(engine_input: EngineInput, suggestion: Suggestion, config=None) -> AcceptSuggestionResult:
    """
    Evaluate, apply the suggestion atomically, evaluate again and diff.

    The verdict is ``accepted`` when actions were applied and at least one
    violation was resolved, ``partially-accepted`` when actions were applied
    without resolving anything, and ``rejected`` when nothing was applied.

    Args:
        engine_input: Snapshot to evaluate
        suggestion: Suggestion to accept
        config: Optional EngineConfig passed to both evaluations

    Returns:
        AcceptSuggestionResult
    """
    before = run_engine(engine_input, config)
    action_keys = [build_action_key(a) for a in suggestion.actions]
    outcome = apply_suggestion(
        build_suggestion_id(suggestion),
        suggestion,
        ScheduleState(shifts=list(engine_input.shifts), unit_id=engine_input.unit_id or None),
        mode=StrictnessMode.STRICT,
    )

    if outcome.status != STATUS_APPLIED:
        return AcceptSuggestionResult(
            before=before,
            after=before,
            delta=diff_violations(before.violations, before.violations),
            applied_action_keys=[],
            rejected_action_keys=action_keys,
            errors=list(outcome.errors),
            decision=VERDICT_REJECTED,
        )

    after = run_engine(replace(engine_input, shifts=outcome.next_schedule_state.shifts), config)
    delta = diff_violations(before.violations, after.violations)
    return AcceptSuggestionResult(
        before=before,
        after=after,
        delta=delta,
        applied_action_keys=action_keys,
        rejected_action_keys=[],
        errors=[],
        decision=VERDICT_ACCEPTED if delta.resolved else VERDICT_PARTIAL,
    )
