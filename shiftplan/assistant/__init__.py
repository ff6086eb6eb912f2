"""Assistant layer: suggestion ids, explanations, decisions and applying suggestions."""

from .accept import accept_suggestion
from .apply import ScheduleState, StrictnessMode, apply_suggestion
from .ids import build_suggestion_id
from .response import build_assistant_response
from .session import (
    apply_decision_to_session,
    create_assistant_session,
    create_decision_record,
    get_session_decisions,
)

__all__ = [
    "accept_suggestion",
    "ScheduleState",
    "StrictnessMode",
    "apply_suggestion",
    "build_suggestion_id",
    "build_assistant_response",
    "apply_decision_to_session",
    "create_assistant_session",
    "create_decision_record",
    "get_session_decisions",
]
