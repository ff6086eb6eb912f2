"""Tests for assistant decision sessions."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from shiftplan.assistant.session import (
    apply_decision_to_session,
    compute_context_key,
    create_assistant_session,
    create_decision_record,
    format_decision_why_now,
    get_session_decisions,
    is_session_valid,
    normalize_decisions,
    normalize_or_reset_session,
    sanitize_decision_reason,
)
from shiftplan.domain.types import EngineUser, Ruleset, Scenario, SicknessPayload
from shiftplan.io.snapshot import scenario_from_dict, session_from_dict

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def _record(suggestion_id, decision, minutes=0, **kwargs):
    return create_decision_record(
        suggestion_id, decision, "sess-1", timestamp=NOW + timedelta(minutes=minutes), **kwargs
    )


def test_sanitize_decision_reason():
    assert sanitize_decision_reason("  too   many\n spaces ") == "too many spaces"
    assert sanitize_decision_reason("   ") is None
    assert sanitize_decision_reason(None) is None
    long_reason = sanitize_decision_reason("x" * 500)
    assert len(long_reason) == 280
    assert long_reason.endswith("...")


def test_create_decision_record_defaults():
    with_reason = _record("a", "accepted", reason="short staffed")
    assert with_reason.source == "user"
    assert _record("a", "rejected").source is None
    assert _record("a", "rejected", source="system").source == "system"
    with pytest.raises(ValueError):
        _record("a", "maybe")
    with pytest.raises(ValueError):
        _record("a", "accepted", source="robot")


def test_apply_decision_appends_without_mutating():
    session = create_assistant_session("sess-1", now=NOW)
    first = apply_decision_to_session(session, _record("a", "rejected", minutes=1))
    second = apply_decision_to_session(first, _record("a", "accepted", minutes=2))
    assert session.decisions == []
    assert len(first.decisions) == 1
    assert len(second.decisions) == 2
    assert second.updated_at == NOW + timedelta(minutes=2)


def test_latest_decision_wins_per_suggestion():
    decisions = [
        _record("b", "rejected", minutes=1),
        _record("a", "accepted", minutes=1),
        _record("a", "rejected", minutes=5),
    ]
    normalized = normalize_decisions(decisions)
    assert [(d.suggestion_id, d.decision) for d in normalized] == [("a", "rejected"), ("b", "rejected")]


def test_timestamp_ties_are_order_independent():
    accepted = _record("a", "accepted")
    rejected = _record("a", "rejected")
    assert normalize_decisions([accepted, rejected]) == normalize_decisions([rejected, accepted])
    assert normalize_decisions([rejected, accepted])[0].decision == "accepted"

    by_user = _record("a", "rejected", source="user")
    by_system = _record("a", "rejected", source="system")
    assert normalize_decisions([by_user, by_system])[0].source == "system"


def test_get_session_decisions():
    session = create_assistant_session("sess-1", now=NOW)
    session = apply_decision_to_session(session, _record("a", "rejected"))
    session = apply_decision_to_session(session, _record("a", "accepted", minutes=3))
    assert [d.decision for d in get_session_decisions(session)] == ["accepted"]


def test_format_decision_why_now():
    assert format_decision_why_now(_record("a", "accepted", reason="busy night")) == (
        "User decision: accepted — busy night"
    )
    assert format_decision_why_now(_record("a", "rejected", reason="no", source="system")) == (
        "System decision: rejected — no"
    )
    assert format_decision_why_now(_record("a", "rejected")) is None


def test_context_key_ignores_shifts(make_input, shift):
    engine_input = make_input()
    key = compute_context_key(engine_input)
    assert key.startswith("unit:unit-a::weekStart:2025-01-06::")
    assert "users:u1:1,u2:1" in key
    with_shift = replace(engine_input, shifts=[shift("s1", "u1", "2025-01-06", "08:00", "12:00")])
    assert compute_context_key(with_shift) == key


def test_context_key_tracks_rules_users_and_scenarios(make_input):
    engine_input = make_input()
    key = compute_context_key(engine_input)
    assert compute_context_key(replace(engine_input, ruleset=Ruleset(bucket_minutes=30))) != key
    inactive = [EngineUser(id="u1", is_active=False), EngineUser(id="u2")]
    assert compute_context_key(replace(engine_input, users=inactive)) != key
    sick = Scenario(
        id="sick",
        unit_id="unit-a",
        week_start_date="2025-01-06",
        type="SICKNESS",
        payload=SicknessPayload(user_id="u1", date_keys=["2025-01-06"]),
    )
    assert compute_context_key(replace(engine_input, scenarios=[sick])) != key


def test_session_validity(make_input):
    engine_input = make_input()
    session = create_assistant_session(
        "sess-1", now=NOW, context_key=compute_context_key(engine_input), ttl=timedelta(hours=1)
    )
    assert is_session_valid(session, engine_input, now=NOW)
    assert not is_session_valid(session, engine_input, now=NOW + timedelta(hours=2))
    assert not is_session_valid(replace(session, schema_version=2), engine_input, now=NOW)
    assert not is_session_valid(replace(session, context_key="other"), engine_input, now=NOW)


def test_normalize_or_reset_session(make_input):
    engine_input = make_input()
    session = create_assistant_session("sess-1", now=NOW, context_key=compute_context_key(engine_input))
    session = apply_decision_to_session(session, _record("a", "rejected"))
    session = apply_decision_to_session(session, _record("a", "accepted", minutes=1))
    normalized = normalize_or_reset_session(session, engine_input, now=NOW)
    assert [d.decision for d in normalized.decisions] == ["accepted"]
    assert normalize_or_reset_session(None, engine_input) is None
    assert normalize_or_reset_session(replace(session, context_key="x"), engine_input) is None


def _stored_session(engine_input, **extra):
    return session_from_dict(
        {
            "sessionId": "sess-1",
            "createdAt": "2025-01-06T11:00:00+02:00",
            "updatedAt": "2025-01-06T11:00:00+02:00",
            "decisions": [
                {"suggestionId": "a", "decision": "rejected", "timestamp": "2025-01-06T09:00:00+00:00", "sessionId": "sess-1"}
            ],
            "contextKey": compute_context_key(engine_input),
            **extra,
        }
    )


def test_stored_session_timestamps_are_utc(make_input):
    session = _stored_session(make_input())
    assert session.updated_at == NOW
    assert session.updated_at.tzinfo is not None


def test_stored_session_accepts_new_decisions(make_input):
    session = _stored_session(make_input())
    updated = apply_decision_to_session(session, create_decision_record("a", "accepted", "sess-1"))
    assert updated.updated_at > NOW
    assert [d.decision for d in get_session_decisions(updated)] == ["accepted"]

    naive = create_decision_record("b", "rejected", "sess-1", timestamp=datetime(2025, 1, 6, 10, 0))
    assert apply_decision_to_session(session, naive).updated_at == NOW + timedelta(hours=1)


def test_stored_session_expiry(make_input):
    engine_input = make_input()
    session = _stored_session(engine_input, expiresAt="2025-01-06T12:00:00+02:00")
    assert normalize_or_reset_session(session, engine_input) is None
    assert is_session_valid(session, engine_input, now=datetime(2025, 1, 6, 9, 30))
    assert not is_session_valid(session, engine_input, now=datetime(2025, 1, 6, 10, 30))


def test_context_key_tolerates_incomplete_scenarios(make_input):
    scenarios = [
        scenario_from_dict({"id": "sick", "type": "SICKNESS", "payload": {"userId": None, "dateKeys": [None]}}),
        scenario_from_dict(
            {
                "id": "event",
                "type": "EVENT",
                "payload": {
                    "timeRange": {"startTime": None, "endTime": "22:00"},
                    "minCoverageOverrides": [{"positionId": None, "minCount": 2}],
                },
            }
        ),
        scenario_from_dict(
            {
                "id": "late",
                "type": "LAST_MINUTE",
                "payload": {"timestamp": None, "description": None, "patches": [{"op": "replace", "path": None}]},
            }
        ),
    ]
    engine_input = replace(make_input(), scenarios=scenarios)
    key = compute_context_key(engine_input)
    assert "sick:SICKNESS::" in key
    assert compute_context_key(replace(engine_input, scenarios=list(reversed(scenarios)))) == key
