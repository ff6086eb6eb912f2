"""Decision/session tracking for accept and reject decisions on suggestions."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from shiftplan.domain.types import (
    DECISION_ACCEPTED,
    DECISION_REJECTED,
    SOURCE_SYSTEM,
    SOURCE_USER,
    AssistantSession,
    CoveragePayload,
    DecisionRecord,
    EngineInput,
    LastMinutePayload,
    INHERIT_ADD,
    SicknessPayload,
)
from shiftplan.services.timeplan import to_utc, utc_now

MAX_DECISION_REASON_LENGTH = 280
SESSION_SCHEMA_VERSION = 1

_WHITESPACE = re.compile(r"\s+")

DECISION_RANK = {DECISION_ACCEPTED: 2, DECISION_REJECTED: 1}
SOURCE_RANK = {SOURCE_SYSTEM: 2, SOURCE_USER: 1}


def sanitize_decision_reason(reason) -> Optional[str]:
    """Trim, collapse whitespace and cap to MAX_DECISION_REASON_LENGTH (ending ``...``)."""
    if not isinstance(reason, str):
        return None
    collapsed = _WHITESPACE.sub(" ", reason.strip())
    if not collapsed:
        return None
    if len(collapsed) <= MAX_DECISION_REASON_LENGTH:
        return collapsed
    return collapsed[: MAX_DECISION_REASON_LENGTH - 3] + "..."


def create_decision_record(
    suggestion_id: str,
    decision: str,
    session_id: str,
    timestamp: datetime | None = None,
    reason: str | None = None,
    source: str | None = None,
) -> DecisionRecord:
    """
    Build a DecisionRecord with a sanitized reason.

    The source defaults to "user" when a reason is given and stays unset otherwise.

    Raises:
        ValueError: If ``decision`` or ``source`` is not a known value
    """
    if decision not in DECISION_RANK:
        raise ValueError(f"Unknown decision {decision!r}; expected 'accepted' or 'rejected'")
    if source is not None and source not in SOURCE_RANK:
        raise ValueError(f"Unknown decision source {source!r}; expected 'user' or 'system'")
    sanitized = sanitize_decision_reason(reason)
    return DecisionRecord(
        suggestion_id=suggestion_id,
        decision=decision,
        timestamp=to_utc(timestamp) or utc_now(),
        session_id=session_id,
        reason=sanitized,
        source=source or (SOURCE_USER if sanitized else None),
    )


def create_assistant_session(
    session_id: str,
    now: datetime | None = None,
    context_key: str | None = None,
    ttl: timedelta | None = None,
) -> AssistantSession:
    now = to_utc(now) or utc_now()
    return AssistantSession(
        session_id=session_id,
        created_at=now,
        updated_at=now,
        decisions=[],
        context_key=context_key,
        schema_version=SESSION_SCHEMA_VERSION,
        expires_at=now + ttl if ttl is not None else None,
    )


def apply_decision_to_session(
    session: AssistantSession,
    decision: DecisionRecord,
    now: datetime | None = None,
) -> AssistantSession:
    """Return a new session with ``decision`` appended to the log."""
    return replace(
        session,
        decisions=[*session.decisions, decision],
        updated_at=to_utc(now) or max(to_utc(session.updated_at), to_utc(decision.timestamp)),
    )


def _decision_sort_key(decision: DecisionRecord):
    timestamp = to_utc(decision.timestamp).timestamp() if decision.timestamp else float("-inf")
    return (
        decision.suggestion_id,
        -timestamp,
        -DECISION_RANK.get(decision.decision, 0),
        -SOURCE_RANK.get(decision.source, 0),
        decision.reason or "",
    )


def normalize_decisions(decisions: List[DecisionRecord]) -> List[DecisionRecord]:
    """
    Latest decision per suggestion id, ordered by suggestion id.

    Ties on timestamp prefer accepted over rejected, then system over user,
    then the smaller reason text, so the result never depends on log order.
    """
    latest: Dict[str, DecisionRecord] = {}
    for decision in sorted(decisions, key=_decision_sort_key):
        latest.setdefault(decision.suggestion_id, decision)
    return list(latest.values())


def get_session_decisions(session: AssistantSession) -> List[DecisionRecord]:
    return normalize_decisions(session.decisions)


def format_decision_why_now(decision: DecisionRecord) -> Optional[str]:
    """``User decision: accepted — reason``; None when the decision carries no reason."""
    reason = sanitize_decision_reason(decision.reason)
    if not reason:
        return None
    actor = "System" if decision.source == SOURCE_SYSTEM else "User"
    return f"{actor} decision: {decision.decision} — {reason}"


def _text(value) -> str:
    return "" if value is None else str(value)


def _join_sorted(values) -> str:
    return ",".join(sorted(_text(v) for v in values or []))


def _scenario_payload_key(scenario) -> str:
    payload = scenario.payload
    if isinstance(payload, SicknessPayload):
        return ":".join([_text(payload.user_id), _join_sorted(payload.date_keys), _text(payload.reason)])
    if isinstance(payload, CoveragePayload):
        time_range = payload.time_range
        overrides = sorted(payload.min_coverage_overrides or [], key=lambda o: _text(o.position_id))
        return ":".join(
            [
                _join_sorted(payload.date_keys),
                _text(time_range.start_time) if time_range else "",
                _text(time_range.end_time) if time_range else "",
                ",".join(f"{o.position_id}:{o.min_count}" for o in overrides),
            ]
        )
    if isinstance(payload, LastMinutePayload):
        patches = sorted(payload.patches or [], key=lambda p: (_text(p.path), _text(p.op)))
        return ":".join(
            [
                _text(payload.timestamp),
                _text(payload.description),
                ",".join(f"{_text(p.op)}:{_text(p.path)}" for p in patches),
            ]
        )
    return ""


def compute_context_key(engine_input: EngineInput) -> str:
    """
    Fingerprint of everything a session's decisions depend on.

    Shifts are not part of the key, so applying a suggestion keeps the
    session that recorded the decision valid.
    """
    settings = engine_input.schedule_settings
    daily = "|".join(
        ":".join(
            _text(v)
            for v in (
                index,
                day.is_open,
                day.opening_time,
                day.closing_time,
                day.closing_time_inherit,
                day.closing_offset_minutes,
            )
        )
        for index, day in sorted(settings.daily_settings.items())
    )
    scenarios = "|".join(
        ":".join(
            [
                _text(s.id),
                _text(s.type),
                _text(s.unit_id),
                _text(s.week_start_date),
                s.inherit_mode or INHERIT_ADD,
                _join_sorted(s.date_keys),
                _scenario_payload_key(s),
            ]
        )
        for s in sorted(engine_input.scenarios, key=lambda s: _text(s.id))
    )
    users = ",".join(sorted(f"{u.id}:{'1' if u.is_active else '0'}" for u in engine_input.users))
    bucket = engine_input.ruleset.bucket_minutes
    return "::".join(
        [
            f"unit:{engine_input.unit_id}",
            f"weekStart:{engine_input.week_start}",
            f"weekDays:{','.join(engine_input.week_days)}",
            f"positions:{_join_sorted(p.id for p in engine_input.positions)}",
            f"users:{users}",
            f"bucketMinutes:{bucket if bucket is not None else ''}",
            "scheduleSettings:"
            + "|".join(
                [
                    daily,
                    settings.default_closing_time or "",
                    str(settings.default_closing_offset_minutes if settings.default_closing_offset_minutes is not None else ""),
                ]
            ),
            f"scenarios:{scenarios}",
        ]
    )


def is_session_valid(session: AssistantSession, engine_input: EngineInput, now: datetime | None = None) -> bool:
    if session.schema_version != SESSION_SCHEMA_VERSION:
        return False
    if session.context_key != compute_context_key(engine_input):
        return False
    if session.expires_at is not None and (to_utc(now) or utc_now()) > to_utc(session.expires_at):
        return False
    return True


def normalize_or_reset_session(
    session: AssistantSession | None,
    engine_input: EngineInput,
    now: datetime | None = None,
) -> AssistantSession | None:
    """
    Return the session with its decisions normalized, or None when it is stale.

    A session is stale when its schema version, context key or expiry no
    longer matches; the caller then starts a new one.
    """
    if session is None or not is_session_valid(session, engine_input, now):
        return None
    return replace(session, decisions=normalize_decisions(session.decisions))
