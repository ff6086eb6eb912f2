"""Human-readable rationale for suggestions and deterministic suggestion/violation links."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from shiftplan.domain.types import (
    ADD_SHIFT_SUGGESTION,
    Affected,
    CreateShiftAction,
    Explanation,
    MoveShiftAction,
    Suggestion,
)
from shiftplan.services.timeplan import parse_slot_key, parse_time_to_minutes

MAX_LINKED_VIOLATIONS = 5
MAX_WHY_NOW_LENGTH = 200

LINK_DATE_SCORE = 3
LINK_POSITION_SCORE = 2
LINK_TIME_SCORE = 1
LINK_MIN_SCORE = 3
MAX_LINKS_PER_ITEM = 3


@dataclass(frozen=True)
class SuggestionRationale:
    why: Optional[str]
    why_now: Optional[str]
    what_if_accepted: Optional[str]
    related_constraint_id: Optional[str]


def _sorted_unique(values) -> List[str]:
    return sorted({value for value in values if value})


def suggestion_affected(suggestion: Suggestion) -> Affected:
    """Users, shifts, dates and (first sorted) position touched by a suggestion's actions."""
    user_ids, shift_ids, date_keys, position_ids = [], [], [], []
    for action in suggestion.actions:
        if not isinstance(action, (CreateShiftAction, MoveShiftAction)):
            continue
        user_ids.append(action.user_id)
        date_keys.append(action.date_key)
        if isinstance(action, MoveShiftAction):
            shift_ids.append(action.shift_id)
        if action.position_id:
            position_ids.append(action.position_id)
    positions = _sorted_unique(position_ids)
    return Affected(
        user_ids=_sorted_unique(user_ids),
        shift_ids=_sorted_unique(shift_ids),
        slots=[],
        position_id=positions[0] if positions else None,
        date_keys=_sorted_unique(date_keys),
    )


def _action_windows(suggestion: Suggestion) -> List[Tuple[str, int, int]]:
    """(date key, start minute, end minute) per action; ends at or before the start wrap past midnight."""
    windows = []
    for action in suggestion.actions:
        if isinstance(action, MoveShiftAction):
            start, end = action.new_start_time, action.new_end_time
        elif isinstance(action, CreateShiftAction):
            start, end = action.start_time, action.end_time
        else:
            continue
        start_minutes = parse_time_to_minutes(start)
        end_minutes = parse_time_to_minutes(end)
        if start_minutes is None or end_minutes is None:
            continue
        if end_minutes <= start_minutes:
            end_minutes += 24 * 60
        windows.append((action.date_key, start_minutes, end_minutes))
    return windows


def _slots_overlap_windows(slots: Sequence[str], windows: List[Tuple[str, int, int]]) -> bool:
    for slot in slots:
        date_key, time = parse_slot_key(slot)
        minutes = parse_time_to_minutes(time)
        if minutes is None:
            continue
        for window_date, start, end in windows:
            if window_date == date_key and start <= minutes < end:
                return True
    return False


def _overlaps(left: Sequence[str], right: Sequence[str]) -> bool:
    return bool(left) and bool(right) and not set(left).isdisjoint(right)


def is_related(suggestion: Suggestion, affected: Affected, violation: Affected) -> bool:
    """True when a violation touches a suggestion's position, users, shifts, dates or time window."""
    if affected.position_id and affected.position_id == violation.position_id:
        return True
    if _overlaps(affected.user_ids, violation.user_ids) or _overlaps(affected.shift_ids, violation.shift_ids):
        return True
    if _overlaps(affected.date_keys, violation.date_keys):
        return True
    return _slots_overlap_windows(violation.slots, _action_windows(suggestion))


def truncate_why_now(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if len(value) <= MAX_WHY_NOW_LENGTH:
        return value
    return value[: MAX_WHY_NOW_LENGTH - 3] + "..."


def format_why_now(linked_constraint_ids: List[str]) -> Optional[str]:
    """
    ``Linked to violations: a, b, c, d, e... (+N more)`` for already sorted ids.

    At most MAX_LINKED_VIOLATIONS ids are listed; the whole text is capped at
    MAX_WHY_NOW_LENGTH characters ending in ``...``.
    """
    if not linked_constraint_ids:
        return None
    shown = linked_constraint_ids[:MAX_LINKED_VIOLATIONS]
    remaining = len(linked_constraint_ids) - len(shown)
    suffix = f"... (+{remaining} more)" if remaining > 0 else ""
    return truncate_why_now(f"Linked to violations: {', '.join(shown)}{suffix}")


def build_suggestion_rationale(
    suggestion: Suggestion,
    violation_explanations: List[Explanation],
) -> SuggestionRationale:
    """why / whyNow / whatIfAccepted for one suggestion against the run's violation explanations."""
    affected = suggestion_affected(suggestion)
    linked = sorted(
        violation.related_constraint_id or violation.title
        for violation in violation_explanations
        if is_related(suggestion, affected, violation.affected)
    )
    return SuggestionRationale(
        why=suggestion.explanation,
        why_now=format_why_now(linked),
        what_if_accepted=suggestion.expected_impact,
        related_constraint_id=linked[0] if linked else None,
    )


def link_score(suggestion: Suggestion, violation: Affected) -> int:
    """Date match +3, position match +2, time-window overlap +1."""
    affected = suggestion_affected(suggestion)
    score = 0
    if _overlaps(affected.date_keys, violation.date_keys):
        score += LINK_DATE_SCORE
    if affected.position_id and affected.position_id == violation.position_id:
        score += LINK_POSITION_SCORE
    if _slots_overlap_windows(violation.slots, _action_windows(suggestion)):
        score += LINK_TIME_SCORE
    return score


def build_links(
    suggestions: List[Tuple[str, Suggestion]],
    violations: List[Tuple[str, Affected]],
) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    """
    Link suggestions and violations.

    A pair qualifies with a score of at least LINK_MIN_SCORE, or when an
    add-shift suggestion shares a date with the violation. Each violation
    keeps its MAX_LINKS_PER_ITEM best suggestions, then each suggestion keeps
    its MAX_LINKS_PER_ITEM best violations; ties go to the smaller id.

    Args:
        suggestions: (suggestion id, suggestion) pairs
        violations: (violation id, affected) pairs

    Returns:
        Tuple of (violation id -> suggestion ids, suggestion id -> violation ids);
        every given id is present, possibly with an empty list
    """
    scores: Dict[Tuple[str, str], int] = {}
    for suggestion_id, suggestion in suggestions:
        dates = suggestion_affected(suggestion).date_keys
        for violation_id, affected in violations:
            score = link_score(suggestion, affected)
            date_match = _overlaps(dates, affected.date_keys)
            if score >= LINK_MIN_SCORE or (suggestion.type == ADD_SHIFT_SUGGESTION and date_match):
                scores[(violation_id, suggestion_id)] = score

    per_violation: Dict[str, List[str]] = {}
    for violation_id, _ in violations:
        candidates = [(-score, sid) for (vid, sid), score in scores.items() if vid == violation_id]
        per_violation[violation_id] = [sid for _, sid in sorted(candidates)[:MAX_LINKS_PER_ITEM]]

    per_suggestion: Dict[str, List[str]] = {}
    for suggestion_id, _ in suggestions:
        candidates = [
            (-scores[(vid, suggestion_id)], vid)
            for vid, kept in per_violation.items()
            if suggestion_id in kept
        ]
        per_suggestion[suggestion_id] = [vid for _, vid in sorted(candidates)[:MAX_LINKS_PER_ITEM]]

    violation_links = {
        vid: [sid for sid in kept if vid in per_suggestion.get(sid, [])]
        for vid, kept in per_violation.items()
    }
    return violation_links, per_suggestion
