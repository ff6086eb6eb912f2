"""Tests for the scenario store, decision log and applied-suggestion ledger."""

from datetime import datetime, timezone

import pytest

from shiftplan.assistant.apply import STATUS_APPLIED, STATUS_FAILED, STATUS_NOOP, ScheduleState
from shiftplan.assistant.decisions import accept_suggestion_for_unit, reject_suggestion_for_unit
from shiftplan.domain.repositories import (
    AppliedSuggestionRepository,
    DecisionRepository,
    ScenarioRepository,
)
from shiftplan.domain.types import (
    ADD_SHIFT_SUGGESTION,
    CoverageOverride,
    CoveragePayload,
    CreateShiftAction,
    LastMinutePayload,
    MoveShiftAction,
    Scenario,
    ScenarioPatch,
    SicknessPayload,
    Suggestion,
    TimeRange,
)
from shiftplan.exceptions import DecisionConflictError

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
WEEK = "2025-01-06"


def _scenario(scenario_id, scenario_type, payload, week=WEEK, **kwargs):
    return Scenario(
        id=scenario_id,
        unit_id="unit-a",
        week_start_date=week,
        type=scenario_type,
        payload=payload,
        **kwargs,
    )


def _add_suggestion(start="08:00", end="09:00"):
    return Suggestion(
        type=ADD_SHIFT_SUGGESTION,
        expected_impact="impact",
        explanation="why",
        actions=[CreateShiftAction("u1", "2025-01-06", start, end, "p1")],
    )


class TestScenarioRepository:
    def test_roundtrip_keeps_payloads(self, db_session):
        event = _scenario(
            "a-event",
            "EVENT",
            CoveragePayload(
                time_range=TimeRange("18:00", "22:00"),
                min_coverage_overrides=[CoverageOverride("p1", 3)],
                date_keys=["2025-01-10"],
                label="Wine night",
            ),
            inherit_mode="OVERRIDE",
        )
        last_minute = _scenario(
            "b-late",
            "LAST_MINUTE",
            LastMinutePayload(
                timestamp="2025-01-06T07:00:00",
                description="u1 late",
                patches=[ScenarioPatch(op="replace", path="/shifts/s1/startTime", value="10:00")],
            ),
            date_keys=["2025-01-06"],
        )
        ScenarioRepository.upsert(db_session, event)
        ScenarioRepository.upsert(db_session, last_minute)
        ScenarioRepository.upsert(db_session, _scenario("c-other", "SICKNESS", SicknessPayload("u1"), week="2025-01-13"))

        stored = ScenarioRepository.list_for_week(db_session, "unit-a", WEEK)
        assert stored == [event, last_minute]
        assert ScenarioRepository.list_for_week(db_session, "unit-b", WEEK) == []

    def test_upsert_replaces_and_delete(self, db_session):
        ScenarioRepository.upsert(db_session, _scenario("s1", "SICKNESS", SicknessPayload("u1", ["2025-01-06"])))
        updated = _scenario("s1", "SICKNESS", SicknessPayload("u2", ["2025-01-07"], reason="flu"))
        ScenarioRepository.upsert(db_session, updated)

        assert ScenarioRepository.get_by_id(db_session, "s1") == updated
        assert ScenarioRepository.delete(db_session, "s1") is True
        assert ScenarioRepository.delete(db_session, "s1") is False
        assert ScenarioRepository.get_by_id(db_session, "s1") is None


class TestLedgerAndLog:
    def test_applied_ids_per_week(self, db_session):
        AppliedSuggestionRepository.mark_applied(db_session, "unit-a", WEEK, "sug-1", 1)
        AppliedSuggestionRepository.mark_applied(db_session, "unit-a", "2025-01-13", "sug-2", 1)
        assert AppliedSuggestionRepository.get_ids(db_session, "unit-a", WEEK) == {"sug-1"}
        assert AppliedSuggestionRepository.delete_by_week(db_session, "unit-a", WEEK) == 1
        assert AppliedSuggestionRepository.get_ids(db_session, "unit-a", WEEK) == set()

    def test_reject_is_logged(self, db_session):
        decision = reject_suggestion_for_unit(db_session, "unit-a", WEEK, "sug-1", "sess-1", reason=" no ", now=NOW)
        assert decision.reason == "no"
        assert DecisionRepository.get_by_session(db_session, "sess-1") == [decision]
        assert DecisionRepository.count_for_unit(db_session, "unit-a") == 1


class TestAcceptForUnit:
    def test_accept_writes_ledger_and_log(self, db_session, shift):
        state = ScheduleState(shifts=[shift("s1", "u2", "2025-01-06", "12:00", "14:00")], unit_id="unit-a")
        outcome = accept_suggestion_for_unit(
            db_session, "unit-a", WEEK, "sug-1", _add_suggestion(), state, "sess-1", reason="busy", now=NOW
        )
        assert outcome.status == STATUS_APPLIED
        assert len(outcome.schedule_state.shifts) == 2
        assert outcome.decision.decision == "accepted"
        assert AppliedSuggestionRepository.get_ids(db_session, "unit-a", WEEK) == {"sug-1"}
        assert [d.decision for d in DecisionRepository.get_by_session(db_session, "sess-1")] == ["accepted"]

        again = accept_suggestion_for_unit(
            db_session, "unit-a", WEEK, "sug-1", _add_suggestion(), outcome.schedule_state, "sess-1", now=NOW
        )
        assert again.status == STATUS_NOOP
        assert again.already_applied
        assert again.schedule_state is outcome.schedule_state
        assert DecisionRepository.count_for_unit(db_session, "unit-a") == 1

    def test_failed_apply_writes_nothing(self, db_session):
        bad = Suggestion(
            type="SHIFT_MOVE_SUGGESTION",
            expected_impact="impact",
            explanation="why",
            actions=[MoveShiftAction("missing", "u1", "2025-01-06", "08:00", "09:00")],
        )
        state = ScheduleState(unit_id="unit-a")
        outcome = accept_suggestion_for_unit(db_session, "unit-a", WEEK, "sug-9", bad, state, "sess-1", now=NOW)
        assert outcome.status == STATUS_FAILED
        assert outcome.errors[0].code == "shift_not_found"
        assert outcome.schedule_state is state
        assert AppliedSuggestionRepository.get_ids(db_session, "unit-a", WEEK) == set()
        assert DecisionRepository.count_for_unit(db_session, "unit-a") == 0

    def test_rejecting_applied_suggestion_conflicts(self, db_session):
        accept_suggestion_for_unit(
            db_session, "unit-a", WEEK, "sug-1", _add_suggestion(), ScheduleState(), "sess-1", now=NOW
        )
        with pytest.raises(DecisionConflictError):
            reject_suggestion_for_unit(db_session, "unit-a", WEEK, "sug-1", "sess-1", now=NOW)
