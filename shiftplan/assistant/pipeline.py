"""Suggestion pipeline: explanations for violations, suggestions and the evaluated week."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from shiftplan.domain.types import (
    SEVERITY_LOW,
    SEVERITY_RANK,
    Affected,
    ConstraintViolation,
    EngineInput,
    EngineResult,
    Explanation,
    Suggestion,
)
from shiftplan.services.timeplan import normalize_bucket_minutes

from .explainability import build_links, build_suggestion_rationale, suggestion_affected
from .ids import build_suggestion_id

KIND_VIOLATION = "violation"
KIND_SUGGESTION = "suggestion"
KIND_INFO = "info"

KIND_RANK = {
    KIND_VIOLATION: 0,
    KIND_SUGGESTION: 1,
    KIND_INFO: 2,
}


@dataclass
class PipelineOutput:
    suggestions: List[Suggestion]
    explanations: List[Explanation]
    suggestion_ids: List[str] = field(default_factory=list)  # parallel to suggestions
    violation_links: Dict[str, List[str]] = field(default_factory=dict)
    suggestion_links: Dict[str, List[str]] = field(default_factory=dict)


def _sorted_unique(values) -> List[str]:
    return sorted(set(values or []))


def violation_affected_key(violation: ConstraintViolation) -> str:
    """``position|users|shifts|dates|slots`` with each list comma-joined in its own order."""
    affected = violation.affected
    return "|".join(
        [
            affected.position_id or "",
            ",".join(affected.user_ids),
            ",".join(affected.shift_ids),
            ",".join(affected.date_keys),
            ",".join(affected.slots),
        ]
    )


def violation_explanation_id(violation: ConstraintViolation) -> str:
    return f"violation:{violation.constraint_id}:{violation_affected_key(violation)}"


def _violation_explanation(violation: ConstraintViolation, linked: List[str]) -> Explanation:
    affected = violation.affected
    return Explanation(
        id=violation_explanation_id(violation),
        kind=KIND_VIOLATION,
        severity=violation.severity,
        title=violation.constraint_id,
        details=violation.message,
        affected=Affected(
            user_ids=_sorted_unique(affected.user_ids),
            shift_ids=_sorted_unique(affected.shift_ids),
            slots=_sorted_unique(affected.slots),
            position_id=affected.position_id,
            date_keys=_sorted_unique(affected.date_keys),
        ),
        related_constraint_id=violation.constraint_id,
        meta={"linkedSuggestionIds": list(linked)},
    )


def _info_explanations(engine_input: EngineInput) -> List[Explanation]:
    bucket_minutes = normalize_bucket_minutes(engine_input.ruleset.bucket_minutes)
    days = len(engine_input.week_days)
    return [
        Explanation(
            id=f"info:bucketMinutes:{bucket_minutes}",
            kind=KIND_INFO,
            severity=SEVERITY_LOW,
            title="Bucket minutes normalized",
            details=f"Bucket minutes normalized to {bucket_minutes}.",
            meta={"bucketMinutes": bucket_minutes},
        ),
        Explanation(
            id=f"info:week:{engine_input.week_start}:{days}",
            kind=KIND_INFO,
            severity=SEVERITY_LOW,
            title="Week range",
            details=f"Week starts {engine_input.week_start} with {days} day(s).",
            meta={"weekStart": engine_input.week_start, "weekDays": list(engine_input.week_days)},
        ),
    ]


def sort_explanations(explanations: List[Explanation]) -> List[Explanation]:
    """Violations, then suggestions, then info; severity high first; then title and id."""
    return sorted(
        explanations,
        key=lambda e: (KIND_RANK.get(e.kind, 99), -SEVERITY_RANK.get(e.severity, 0), e.title, e.id),
    )


def run_suggestion_pipeline(engine_input: EngineInput, result: EngineResult) -> PipelineOutput:
    """
    Build the explanation set of one evaluation.

    Suggestions are ordered by their stable id, which is the same id the
    assistant response hands out, so links and responses never drift apart.

    Args:
        engine_input: The input the result was computed from
        result: Evaluation result (violations and suggestions are read)

    Returns:
        PipelineOutput with ordered suggestions, ordered explanations and the link tables
    """
    keyed = sorted(
        ((build_suggestion_id(s), s) for s in result.suggestions),
        key=lambda item: item[0],
    )
    violation_ids = [(violation_explanation_id(v), v.affected) for v in result.violations]
    violation_links, suggestion_links = build_links(keyed, violation_ids)

    violation_explanations = [
        _violation_explanation(v, violation_links.get(violation_explanation_id(v), []))
        for v in result.violations
    ]

    suggestion_explanations = []
    for suggestion_id, suggestion in keyed:
        rationale = build_suggestion_rationale(suggestion, violation_explanations)
        suggestion_explanations.append(
            Explanation(
                id=suggestion_id,
                kind=KIND_SUGGESTION,
                severity=SEVERITY_LOW,
                title=suggestion.type,
                details=suggestion.explanation,
                affected=suggestion_affected(suggestion),
                related_constraint_id=rationale.related_constraint_id,
                related_suggestion_id=suggestion_id,
                why=rationale.why,
                why_now=rationale.why_now,
                what_if_accepted=rationale.what_if_accepted,
                meta={"linkedViolationIds": list(suggestion_links.get(suggestion_id, []))},
            )
        )

    return PipelineOutput(
        suggestions=[s for _, s in keyed],
        explanations=sort_explanations(
            violation_explanations + suggestion_explanations + _info_explanations(engine_input)
        ),
        suggestion_ids=[sid for sid, _ in keyed],
        violation_links=violation_links,
        suggestion_links=suggestion_links,
    )
