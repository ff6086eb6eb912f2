"""Domain value types, ORM records and data access layer."""

from .models import AppliedSuggestion, Base, DecisionLogEntry, ScenarioRecord
from .repositories import (
    AppliedSuggestionRepository,
    DecisionRepository,
    ScenarioRepository,
)
from .types import (
    AssistantResponse,
    AssistantSession,
    AssistantSuggestion,
    ConstraintViolation,
    CreateShiftAction,
    DecisionRecord,
    EngineInput,
    EngineResult,
    EngineShift,
    Explanation,
    MoveShiftAction,
    Ruleset,
    Scenario,
    ScheduleSettings,
    Suggestion,
)

__all__ = [
    "AppliedSuggestion",
    "Base",
    "DecisionLogEntry",
    "ScenarioRecord",
    "AppliedSuggestionRepository",
    "DecisionRepository",
    "ScenarioRepository",
    "AssistantResponse",
    "AssistantSession",
    "AssistantSuggestion",
    "ConstraintViolation",
    "CreateShiftAction",
    "DecisionRecord",
    "EngineInput",
    "EngineResult",
    "EngineShift",
    "Explanation",
    "MoveShiftAction",
    "Ruleset",
    "Scenario",
    "ScheduleSettings",
    "Suggestion",
]
