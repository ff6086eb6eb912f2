"""Repository classes for data access."""

from __future__ import annotations

import json
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from shiftplan.domain.types import DecisionRecord, Scenario
from shiftplan.io.snapshot import payload_from_dict, payload_to_dict
from shiftplan.services.timeplan import to_utc, utc_now

from .models import AppliedSuggestion, DecisionLogEntry, ScenarioRecord


def scenario_to_record(scenario: Scenario, record: ScenarioRecord | None = None) -> ScenarioRecord:
    """Copy a Scenario into a (new or existing) ScenarioRecord."""
    record = record or ScenarioRecord(scenario_id=scenario.id)
    record.unit_id = scenario.unit_id
    record.week_start_date = scenario.week_start_date
    record.scenario_type = scenario.type
    record.payload_json = json.dumps(payload_to_dict(scenario.payload), sort_keys=True)
    record.date_keys_json = json.dumps(list(scenario.date_keys)) if scenario.date_keys is not None else None
    record.inherit_mode = scenario.inherit_mode
    return record


def record_to_scenario(record: ScenarioRecord) -> Scenario:
    """Rebuild the Scenario stored in ``record``."""
    return Scenario(
        id=record.scenario_id,
        unit_id=record.unit_id,
        week_start_date=record.week_start_date,
        type=record.scenario_type,
        payload=payload_from_dict(record.scenario_type, json.loads(record.payload_json)),
        date_keys=json.loads(record.date_keys_json) if record.date_keys_json else None,
        inherit_mode=record.inherit_mode,
    )


class ScenarioRepository:
    """Repository for what-if scenarios, filtered by unit and week start."""

    @staticmethod
    def list_for_week(session: Session, unit_id: str, week_start_date: str) -> List[Scenario]:
        """Get a unit's scenarios for one week, oldest first (insertion order matters)."""
        records = (
            session.query(ScenarioRecord)
            .filter(ScenarioRecord.unit_id == unit_id)
            .filter(ScenarioRecord.week_start_date == week_start_date)
            .order_by(ScenarioRecord.created_at, ScenarioRecord.scenario_id)
            .all()
        )
        return [record_to_scenario(record) for record in records]

    @staticmethod
    def get_by_id(session: Session, scenario_id: str) -> Optional[Scenario]:
        """Get scenario by ID."""
        record = session.get(ScenarioRecord, scenario_id)
        return record_to_scenario(record) if record else None

    @staticmethod
    def upsert(session: Session, scenario: Scenario) -> Scenario:
        """Create or replace a scenario, keeping its original creation time."""
        record = session.get(ScenarioRecord, scenario.id)
        if record is None:
            record = scenario_to_record(scenario)
            session.add(record)
        else:
            scenario_to_record(scenario, record)
            record.updated_at = utc_now()
        session.commit()
        return scenario

    @staticmethod
    def delete(session: Session, scenario_id: str) -> bool:
        """Delete a scenario. Returns False when it did not exist."""
        count = (
            session.query(ScenarioRecord)
            .filter(ScenarioRecord.scenario_id == scenario_id)
            .delete(synchronize_session=False)
        )
        session.commit()
        return count > 0


class DecisionRepository:
    """Repository for the per-unit decision log."""

    @staticmethod
    def add(session: Session, unit_id: str, decision: DecisionRecord, commit: bool = True) -> DecisionLogEntry:
        """Append one decision to the log."""
        entry = DecisionLogEntry(
            unit_id=unit_id,
            session_id=decision.session_id,
            suggestion_id=decision.suggestion_id,
            decision=decision.decision,
            source=decision.source or "user",
            reason=decision.reason,
            decided_at=decision.timestamp,
        )
        session.add(entry)
        if commit:
            session.commit()
        else:
            session.flush()
        return entry

    @staticmethod
    def get_by_session(session: Session, session_id: str) -> List[DecisionRecord]:
        """Get a session's decisions in submission order."""
        entries = (
            session.query(DecisionLogEntry)
            .filter(DecisionLogEntry.session_id == session_id)
            .order_by(DecisionLogEntry.id)
            .all()
        )
        return [
            DecisionRecord(
                suggestion_id=entry.suggestion_id,
                decision=entry.decision,
                timestamp=to_utc(entry.decided_at),
                session_id=entry.session_id,
                reason=entry.reason,
                source=entry.source,
            )
            for entry in entries
        ]

    @staticmethod
    def count_for_unit(session: Session, unit_id: str) -> int:
        """Count logged decisions for a unit."""
        return session.query(DecisionLogEntry).filter(DecisionLogEntry.unit_id == unit_id).count()


class AppliedSuggestionRepository:
    """Repository for the ledger of applied suggestion ids."""

    @staticmethod
    def get_ids(session: Session, unit_id: str, week_start: str) -> Set[str]:
        """Get the applied suggestion ids for one unit/week."""
        rows = (
            session.query(AppliedSuggestion.suggestion_id)
            .filter(AppliedSuggestion.unit_id == unit_id)
            .filter(AppliedSuggestion.week_start == week_start)
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def mark_applied(
        session: Session,
        unit_id: str,
        week_start: str,
        suggestion_id: str,
        effects_count: int,
        commit: bool = True,
    ) -> AppliedSuggestion:
        """Record that a suggestion has been applied."""
        row = AppliedSuggestion(
            unit_id=unit_id,
            week_start=week_start,
            suggestion_id=suggestion_id,
            effects_count=effects_count,
        )
        session.add(row)
        if commit:
            session.commit()
        else:
            session.flush()
        return row

    @staticmethod
    def delete_by_week(session: Session, unit_id: str, week_start: str) -> int:
        """Forget all applied suggestions for a unit/week. Returns number of deleted rows."""
        count = (
            session.query(AppliedSuggestion)
            .filter(AppliedSuggestion.unit_id == unit_id)
            .filter(AppliedSuggestion.week_start == week_start)
            .delete(synchronize_session=False)
        )
        session.commit()
        return count
