"""SQLAlchemy models for the caller-side stores around the engine.

The engine itself never touches these tables. They back the scenario store,
the decision log and the ledger of applied suggestion ids.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase

from shiftplan.services.timeplan import utc_now


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ScenarioRecord(Base):
    """Stored what-if scenario. The payload is kept as JSON exactly as submitted."""
    
    __tablename__ = "scenarios"
    
    scenario_id = Column(String(100), primary_key=True, name="id")
    unit_id = Column(String(100), nullable=False, index=True)
    week_start_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    scenario_type = Column(String(20), nullable=False, name="type")  # SICKNESS, EVENT, PEAK, LAST_MINUTE
    payload_json = Column(Text, nullable=False)
    date_keys_json = Column(Text, nullable=True)
    inherit_mode = Column(String(20), nullable=True)  # ADD, OVERRIDE, INHERIT_IF_EMPTY
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    
    def __repr__(self) -> str:
        return f"<ScenarioRecord(id={self.scenario_id}, unit='{self.unit_id}', week={self.week_start_date}, type={self.scenario_type})>"


class DecisionLogEntry(Base):
    """One accept/reject decision on a suggestion, in submission order."""
    
    __tablename__ = "decision_log"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    unit_id = Column(String(100), nullable=False, index=True)
    session_id = Column(String(100), nullable=False, index=True)
    suggestion_id = Column(String(300), nullable=False, index=True)
    decision = Column(String(10), nullable=False)  # accepted, rejected
    source = Column(String(10), nullable=False, default="user")  # user, system
    reason = Column(Text, nullable=True)
    decided_at = Column(DateTime, nullable=False, default=utc_now)
    
    def __repr__(self) -> str:
        return f"<DecisionLogEntry(id={self.id}, suggestion={self.suggestion_id}, decision={self.decision})>"


class AppliedSuggestion(Base):
    """Ledger row marking a suggestion id as applied to a unit's draft for one week."""
    
    __tablename__ = "applied_suggestions"
    __table_args__ = (UniqueConstraint("unit_id", "week_start", "suggestion_id", name="uq_applied_suggestion"),)
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    unit_id = Column(String(100), nullable=False, index=True)
    week_start = Column(String(10), nullable=False)
    suggestion_id = Column(String(300), nullable=False)
    effects_count = Column(Integer, nullable=False, default=0)
    applied_at = Column(DateTime, nullable=False, default=utc_now)
    
    def __repr__(self) -> str:
        return f"<AppliedSuggestion(unit='{self.unit_id}', week={self.week_start}, suggestion={self.suggestion_id})>"
