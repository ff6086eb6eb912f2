"""Value types exchanged with the scheduling engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITIES = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH)

SEVERITY_RANK = {
    SEVERITY_HIGH: 3,
    SEVERITY_MEDIUM: 2,
    SEVERITY_LOW: 1,
}

ADD_SHIFT_SUGGESTION = "ADD_SHIFT_SUGGESTION"
SHIFT_MOVE_SUGGESTION = "SHIFT_MOVE_SUGGESTION"

# slot key ("YYYY-MM-DDTHH:MM") -> position id -> headcount
CapacityMap = Dict[str, Dict[str, int]]


@dataclass(frozen=True)
class EngineShift:
    """A single shift (or day-off marker) of one user on one date."""

    id: str
    user_id: str
    date_key: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    position_id: Optional[str] = None
    unit_id: Optional[str] = None
    is_day_off: bool = False


@dataclass(frozen=True)
class DailySetting:
    """Per-weekday opening/closing configuration (day index 0 = first day of the week)."""

    closing_time: Optional[str] = None
    closing_offset_minutes: Optional[int] = None
    closing_time_inherit: bool = False
    opening_time: Optional[str] = None
    is_open: bool = True


@dataclass(frozen=True)
class ScheduleSettings:
    default_closing_time: Optional[str] = None
    default_closing_offset_minutes: Optional[int] = None
    daily_settings: Dict[int, DailySetting] = field(default_factory=dict)


@dataclass(frozen=True)
class MinCoverageRule:
    position_id: str
    date_keys: List[str]
    start_time: str
    end_time: str
    min_count: int
    severity: Optional[str] = None


@dataclass(frozen=True)
class MinRestHoursRule:
    min_rest_hours: float
    severity: Optional[str] = None


@dataclass(frozen=True)
class MaxHoursPerDayRule:
    max_hours_per_day: float
    severity: Optional[str] = None


@dataclass(frozen=True)
class Ruleset:
    """Bucket size plus the optional rule instances. Absent rules are never violated."""

    bucket_minutes: Optional[int] = 60
    min_coverage_by_position: List[MinCoverageRule] = field(default_factory=list)
    min_rest_hours_between_shifts: Optional[MinRestHoursRule] = None
    max_hours_per_day: Optional[MaxHoursPerDayRule] = None


@dataclass(frozen=True)
class EngineUser:
    id: str
    display_name: str = ""
    position_ids: List[str] = field(default_factory=list)
    unit_ids: Optional[List[str]] = None
    is_active: bool = True


@dataclass(frozen=True)
class EnginePosition:
    id: str
    name: str = ""


# Scenario payloads, one shape per scenario type

SICKNESS = "SICKNESS"
EVENT = "EVENT"
PEAK = "PEAK"
LAST_MINUTE = "LAST_MINUTE"
SCENARIO_TYPES = (SICKNESS, EVENT, PEAK, LAST_MINUTE)

INHERIT_ADD = "ADD"
INHERIT_OVERRIDE = "OVERRIDE"
INHERIT_IF_EMPTY = "INHERIT_IF_EMPTY"


@dataclass(frozen=True)
class SicknessPayload:
    user_id: str
    date_keys: Optional[List[str]] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class TimeRange:
    start_time: str
    end_time: str


@dataclass(frozen=True)
class CoverageOverride:
    position_id: str
    min_count: int


@dataclass(frozen=True)
class CoveragePayload:
    """Payload of EVENT and PEAK scenarios."""

    time_range: Optional[TimeRange] = None
    min_coverage_overrides: List[CoverageOverride] = field(default_factory=list)
    date_keys: Optional[List[str]] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class ScenarioPatch:
    op: str
    path: str
    value: Any = None


@dataclass(frozen=True)
class LastMinutePayload:
    timestamp: str
    description: str = ""
    patches: List[ScenarioPatch] = field(default_factory=list)


ScenarioPayload = Union[SicknessPayload, CoveragePayload, LastMinutePayload]


@dataclass(frozen=True)
class Scenario:
    id: str
    unit_id: str
    week_start_date: str
    type: str
    payload: ScenarioPayload
    date_keys: Optional[List[str]] = None
    inherit_mode: Optional[str] = None


@dataclass(frozen=True)
class EngineInput:
    """Immutable snapshot for one evaluation pass."""

    week_days: List[str]
    shifts: List[EngineShift]
    schedule_settings: ScheduleSettings = field(default_factory=ScheduleSettings)
    ruleset: Ruleset = field(default_factory=Ruleset)
    unit_id: str = ""
    week_start: str = ""
    users: List[EngineUser] = field(default_factory=list)
    positions: List[EnginePosition] = field(default_factory=list)
    scenarios: List[Scenario] = field(default_factory=list)


@dataclass(frozen=True)
class Affected:
    user_ids: List[str] = field(default_factory=list)
    shift_ids: List[str] = field(default_factory=list)
    slots: List[str] = field(default_factory=list)
    position_id: Optional[str] = None
    date_keys: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConstraintViolation:
    constraint_id: str
    severity: str
    message: str
    affected: Affected = field(default_factory=Affected)


@dataclass(frozen=True)
class CreateShiftAction:
    user_id: str
    date_key: str
    start_time: str
    end_time: str
    position_id: Optional[str] = None
    type: str = field(default="createShift", init=False)


@dataclass(frozen=True)
class MoveShiftAction:
    shift_id: str
    user_id: str
    date_key: str
    new_start_time: str
    new_end_time: str
    position_id: Optional[str] = None
    type: str = field(default="moveShift", init=False)


SuggestionAction = Union[CreateShiftAction, MoveShiftAction]


@dataclass(frozen=True)
class Suggestion:
    type: str
    expected_impact: str
    explanation: str
    actions: List[SuggestionAction] = field(default_factory=list)


@dataclass(frozen=True)
class Explanation:
    id: str
    kind: str  # info | violation | suggestion
    severity: str
    title: str
    details: str
    affected: Affected = field(default_factory=Affected)
    related_constraint_id: Optional[str] = None
    related_suggestion_id: Optional[str] = None
    why: Optional[str] = None
    why_now: Optional[str] = None
    what_if_accepted: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RuleDiff:
    before: List[MinCoverageRule] = field(default_factory=list)
    after: List[MinCoverageRule] = field(default_factory=list)


@dataclass(frozen=True)
class ScenarioEffects:
    removed_shifts_count: int = 0
    added_rules_count: int = 0
    overridden_rules_count: int = 0
    rule_diff: RuleDiff = field(default_factory=RuleDiff)

    @property
    def ui_summary(self) -> Dict[str, bool]:
        return {
            "has_rule_overrides": self.overridden_rules_count > 0,
            "has_rule_adds": self.added_rules_count > 0,
            "has_shift_removals": self.removed_shifts_count > 0,
        }


@dataclass
class EngineResult:
    capacity_map: CapacityMap
    violations: List[ConstraintViolation]
    suggestions: List[Suggestion]
    scenario_effects: Optional[ScenarioEffects] = None
    trace: List[str] = field(default_factory=list)


DECISION_ACCEPTED = "accepted"
DECISION_REJECTED = "rejected"
SOURCE_USER = "user"
SOURCE_SYSTEM = "system"


@dataclass(frozen=True)
class DecisionRecord:
    suggestion_id: str
    decision: str  # accepted | rejected
    timestamp: datetime
    session_id: str
    reason: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class AssistantSession:
    """Caller-owned decision log. Never mutated; updates return a new session."""

    session_id: str
    created_at: datetime
    updated_at: datetime
    decisions: List[DecisionRecord] = field(default_factory=list)
    context_key: Optional[str] = None
    schema_version: int = 1
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class AssistantSuggestion:
    """A suggestion as handed to the UI: stable id plus optional decision state."""

    id: str
    type: str
    severity: str
    explanation: str
    expected_impact: str
    actions: List[SuggestionAction]
    decision_state: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssistantResponse:
    suggestions: List[AssistantSuggestion]
    explanations: List[Explanation]
