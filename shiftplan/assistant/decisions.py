"""Persisted accept/reject decisions: applied ledger, applier and decision log in one transaction."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shiftplan.domain.repositories import AppliedSuggestionRepository, DecisionRepository
from shiftplan.domain.types import DECISION_ACCEPTED, DECISION_REJECTED, DecisionRecord, Suggestion
from shiftplan.exceptions import DecisionConflictError
from shiftplan.logger import get_logger

from .apply import (
    STATUS_APPLIED,
    STATUS_FAILED,
    STATUS_NOOP,
    ApplyEffect,
    ApplyError,
    ScheduleState,
    StrictnessMode,
    apply_suggestion,
)
from .session import create_decision_record

log = get_logger("assistant.decisions")


@dataclass
class AcceptDecisionOutcome:
    status: str
    schedule_state: ScheduleState
    effects: List[ApplyEffect] = field(default_factory=list)
    errors: List[ApplyError] = field(default_factory=list)
    already_applied: bool = False
    decision: Optional[DecisionRecord] = None


def accept_suggestion_for_unit(
    db: Session,
    unit_id: str,
    week_start: str,
    suggestion_id: str,
    suggestion: Suggestion,
    schedule_state: ScheduleState,
    session_id: str,
    reason: str | None = None,
    now: datetime | None = None,
    mode: StrictnessMode = StrictnessMode.STRICT,
) -> AcceptDecisionOutcome:
    """
    Apply a suggestion to a unit's draft and record the acceptance.

    The ledger row and the decision are written in the same transaction; a
    failed apply writes nothing and is only logged. A suggestion already in
    the ledger is reported as ``noop`` with ``already_applied`` set.

    Args:
        db: SQLAlchemy session
        unit_id: Unit the draft belongs to
        week_start: Week start date key of the draft
        suggestion_id: Stable suggestion id
        suggestion: Suggestion to apply
        schedule_state: Current draft schedule
        session_id: Assistant session recording the decision
        reason: Optional free-text reason
        now: Decision timestamp (default: current UTC time)
        mode: Applier strictness

    Returns:
        AcceptDecisionOutcome with the next schedule state
    """
    applied_ids = AppliedSuggestionRepository.get_ids(db, unit_id, week_start)
    if suggestion_id in applied_ids:
        log.info("Suggestion %s already applied for unit %s", suggestion_id, unit_id)
        return AcceptDecisionOutcome(
            status=STATUS_NOOP,
            schedule_state=schedule_state,
            already_applied=True,
        )

    result = apply_suggestion(suggestion_id, suggestion, schedule_state, applied_ids, mode=mode)
    if result.status == STATUS_FAILED:
        log.warning(
            "Apply failed for unit %s suggestion %s: %s",
            unit_id,
            suggestion_id,
            "; ".join(f"{e.code}: {e.message}" for e in result.errors),
        )
        return AcceptDecisionOutcome(
            status=STATUS_FAILED,
            schedule_state=result.next_schedule_state,
            errors=list(result.errors),
        )

    decision = create_decision_record(
        suggestion_id, DECISION_ACCEPTED, session_id, timestamp=now, reason=reason
    )
    try:
        if result.status == STATUS_APPLIED:
            AppliedSuggestionRepository.mark_applied(
                db, unit_id, week_start, suggestion_id, len(result.effects), commit=False
            )
        DecisionRepository.add(db, unit_id, decision, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    return AcceptDecisionOutcome(
        status=result.status,
        schedule_state=result.next_schedule_state,
        effects=list(result.effects),
        decision=decision,
    )


def reject_suggestion_for_unit(
    db: Session,
    unit_id: str,
    week_start: str,
    suggestion_id: str,
    session_id: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> DecisionRecord:
    """
    Record a rejection.

    Raises:
        DecisionConflictError: If the suggestion is already in the applied ledger
    """
    if suggestion_id in AppliedSuggestionRepository.get_ids(db, unit_id, week_start):
        raise DecisionConflictError(
            f"Suggestion {suggestion_id} was already applied for unit {unit_id} and cannot be rejected"
        )
    decision = create_decision_record(
        suggestion_id, DECISION_REJECTED, session_id, timestamp=now, reason=reason
    )
    DecisionRepository.add(db, unit_id, decision)
    return decision
