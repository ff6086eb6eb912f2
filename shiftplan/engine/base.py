"""Base evaluator interface that all constraint evaluators implement."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Type

from shiftplan.domain.types import CapacityMap, ConstraintViolation, EngineInput
from shiftplan.services.constraints import (
    MAX_HOURS_PER_DAY_ID,
    MIN_COVERAGE_BY_POSITION_ID,
    MIN_REST_HOURS_BETWEEN_SHIFTS_ID,
    evaluate_max_hours_per_day,
    evaluate_min_coverage_by_position,
    evaluate_min_rest_hours_between_shifts,
)


class ConstraintEvaluator(ABC):
    """
    Abstract base class for constraint evaluators.

    Evaluators hold no state between calls, so one instance can be shared
    across evaluations and run in any order relative to the others.
    """

    constraint_id: str | None = None  # Override in subclasses (e.g., "MAX_HOURS_PER_DAY")

    @abstractmethod
    def evaluate(
        self,
        engine_input: EngineInput,
        capacity_map: CapacityMap,
    ) -> List[ConstraintViolation]:
        """
        Check this evaluator's rule against the (scenario-adjusted) input.

        Args:
            engine_input: Snapshot being evaluated
            capacity_map: Capacity computed from the same snapshot

        Returns:
            Violations found; empty when the rule is absent
        """
        pass

    def get_constraint_id(self) -> str:
        """Get the constraint id this evaluator reports."""
        return self.constraint_id or "UNKNOWN"


class MinCoverageEvaluator(ConstraintEvaluator):
    constraint_id = MIN_COVERAGE_BY_POSITION_ID

    def evaluate(self, engine_input, capacity_map):
        return evaluate_min_coverage_by_position(
            capacity_map,
            engine_input.ruleset.min_coverage_by_position,
            engine_input.ruleset.bucket_minutes,
        )


class MinRestEvaluator(ConstraintEvaluator):
    constraint_id = MIN_REST_HOURS_BETWEEN_SHIFTS_ID

    def evaluate(self, engine_input, capacity_map):
        return evaluate_min_rest_hours_between_shifts(
            engine_input,
            engine_input.shifts,
            engine_input.ruleset.min_rest_hours_between_shifts,
        )


class MaxHoursEvaluator(ConstraintEvaluator):
    constraint_id = MAX_HOURS_PER_DAY_ID

    def evaluate(self, engine_input, capacity_map):
        return evaluate_max_hours_per_day(
            engine_input,
            engine_input.shifts,
            engine_input.ruleset.max_hours_per_day,
        )


EVALUATOR_REGISTRY: Dict[str, Type[ConstraintEvaluator]] = {
    MIN_COVERAGE_BY_POSITION_ID: MinCoverageEvaluator,
    MIN_REST_HOURS_BETWEEN_SHIFTS_ID: MinRestEvaluator,
    MAX_HOURS_PER_DAY_ID: MaxHoursEvaluator,
}

DEFAULT_EVALUATOR_ORDER = [
    MIN_COVERAGE_BY_POSITION_ID,
    MIN_REST_HOURS_BETWEEN_SHIFTS_ID,
    MAX_HOURS_PER_DAY_ID,
]
