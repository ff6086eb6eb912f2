"""Pure engine services: time math, settings, capacity, constraints and scenarios."""

from .capacity import compute_capacity
from .constraints import (
    evaluate_max_hours_per_day,
    evaluate_min_coverage_by_position,
    evaluate_min_rest_hours_between_shifts,
)
from .scenarios import apply_scenarios, apply_scenarios_with_effects
from .settings import normalize_schedule_settings, resolve_closing_time

__all__ = [
    "compute_capacity",
    "evaluate_max_hours_per_day",
    "evaluate_min_coverage_by_position",
    "evaluate_min_rest_hours_between_shifts",
    "apply_scenarios",
    "apply_scenarios_with_effects",
    "normalize_schedule_settings",
    "resolve_closing_time",
]
