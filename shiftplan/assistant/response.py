"""Assistant response builder: stable suggestion ids plus decision-aware explanations."""

from __future__ import annotations

from typing import Dict, List, Optional

from shiftplan.domain.types import (
    DECISION_ACCEPTED,
    SEVERITY_LOW,
    AssistantResponse,
    AssistantSession,
    AssistantSuggestion,
    DecisionRecord,
    EngineInput,
    EngineResult,
    Explanation,
    Suggestion,
)

from .explainability import suggestion_affected
from .ids import build_signature_meta
from .pipeline import KIND_INFO, run_suggestion_pipeline
from .session import format_decision_why_now, get_session_decisions

DECISION_PENDING = "pending"

TITLE_APPLIED = "Suggestion applied"
TITLE_DISMISSED = "Suggestion dismissed"


def decision_state_for(suggestion_id: str, decisions: Dict[str, DecisionRecord]) -> str:
    decision = decisions.get(suggestion_id)
    return decision.decision if decision is not None else DECISION_PENDING


def build_decision_explanation(
    suggestion_id: str,
    suggestion: Suggestion,
    decision: DecisionRecord,
) -> Explanation:
    """Info explanation recording that a suggestion was applied or dismissed."""
    accepted = decision.decision == DECISION_ACCEPTED
    prefix = "info:suggestion-applied" if accepted else "info:suggestion-dismissed"
    why_now = format_decision_why_now(decision)
    return Explanation(
        id=f"{prefix}:{suggestion_id}",
        kind=KIND_INFO,
        severity=SEVERITY_LOW,
        title=TITLE_APPLIED if accepted else TITLE_DISMISSED,
        details=suggestion.explanation,
        affected=suggestion_affected(suggestion),
        related_suggestion_id=suggestion_id,
        why=suggestion.explanation if accepted else None,
        why_now=why_now,
        what_if_accepted=suggestion.expected_impact if accepted else None,
        meta={
            "decision": decision.decision,
            "decisionSource": decision.source,
            "hasDecisionReason": why_now is not None,
            "decisionTimestamp": decision.timestamp.isoformat() if decision.timestamp else None,
        },
    )


def build_assistant_response(
    engine_input: EngineInput,
    result: EngineResult,
    session: Optional[AssistantSession] = None,
) -> AssistantResponse:
    """
    Build the assistant response for one evaluation.

    Without a session, every suggestion is returned without a decision state.
    With a session, each suggestion carries ``accepted``, ``rejected`` or
    ``pending``, accepted suggestions are withheld, and one info explanation
    per decided suggestion is appended after the pipeline explanations. The
    session is read, never modified.

    Args:
        engine_input: Input the result was computed from
        result: Evaluation result
        session: Optional caller-owned decision session

    Returns:
        AssistantResponse with suggestions ordered by id
    """
    pipeline = run_suggestion_pipeline(engine_input, result)
    decisions: Optional[Dict[str, DecisionRecord]] = None
    if session is not None:
        decisions = {d.suggestion_id: d for d in get_session_decisions(session)}

    suggestions: List[AssistantSuggestion] = []
    decision_explanations: List[Explanation] = []
    for suggestion_id, suggestion in zip(pipeline.suggestion_ids, pipeline.suggestions):
        state = None
        if decisions is not None:
            state = decision_state_for(suggestion_id, decisions)
            if suggestion_id in decisions:
                decision_explanations.append(
                    build_decision_explanation(suggestion_id, suggestion, decisions[suggestion_id])
                )
            if state == DECISION_ACCEPTED:
                continue
        suggestions.append(
            AssistantSuggestion(
                id=suggestion_id,
                type=suggestion.type,
                severity=SEVERITY_LOW,
                explanation=suggestion.explanation,
                expected_impact=suggestion.expected_impact,
                actions=list(suggestion.actions),
                decision_state=state,
                meta={
                    **build_signature_meta(suggestion),
                    "linkedViolationIds": list(pipeline.suggestion_links.get(suggestion_id, [])),
                },
            )
        )

    decision_explanations.sort(key=lambda e: e.id)
    return AssistantResponse(
        suggestions=sorted(suggestions, key=lambda s: s.id),
        explanations=pipeline.explanations + decision_explanations,
    )
