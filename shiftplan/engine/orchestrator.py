"""Orchestrator - runs scenarios, capacity, every configured evaluator and the suggestion generator."""

from __future__ import annotations

from typing import List

from shiftplan.domain.types import ConstraintViolation, EngineInput, EngineResult
from shiftplan.logger import get_logger
from shiftplan.services.capacity import compute_capacity
from shiftplan.services.scenarios import apply_scenarios_with_effects

from .base import DEFAULT_EVALUATOR_ORDER, EVALUATOR_REGISTRY, ConstraintEvaluator
from .suggestions import generate_suggestions

log = get_logger("engine")

TRACE_COMPUTE_CAPACITY = "computeCapacity"
TRACE_EVALUATE_CONSTRAINTS = "evaluateConstraints"
TRACE_GENERATE_SUGGESTIONS = "generateSuggestions"


class Orchestrator:
    """
    Orchestrator coordinates the evaluation pass for one input snapshot.

    Scenarios are applied to a copy of the input first; capacity, violations
    and suggestions are then computed from the adjusted copy. The orchestrator
    keeps no state between runs, so one instance may serve many evaluations.
    """

    def __init__(self, config=None, evaluator_order: List[str] | None = None):
        """
        Initialize orchestrator with evaluator execution order.

        Args:
            config: Optional EngineConfig (evaluator order, defaults, policies)
            evaluator_order: Order to run evaluators (default: config order, else
                MIN_COVERAGE_BY_POSITION, MIN_REST_HOURS_BETWEEN_SHIFTS, MAX_HOURS_PER_DAY)
        """
        self.config = config
        if evaluator_order is None and config is not None:
            evaluator_order = config.evaluator_order
        self.evaluator_order = list(evaluator_order or DEFAULT_EVALUATOR_ORDER)
        self.count_unassigned = config.count_unassigned_positions if config is not None else True
        self.suggestions_enabled = config.generate_suggestions if config is not None else True

        self.evaluators: List[ConstraintEvaluator] = []
        for constraint_id in self.evaluator_order:
            evaluator_cls = EVALUATOR_REGISTRY.get(constraint_id)
            if evaluator_cls is None:
                log.warning("Unknown evaluator %s in evaluator_order, skipping", constraint_id)
                continue
            self.evaluators.append(evaluator_cls())

    def evaluate_constraints(self, engine_input: EngineInput, capacity_map) -> List[ConstraintViolation]:
        """Run every evaluator in configured order and concatenate their violations."""
        violations: List[ConstraintViolation] = []
        for evaluator in self.evaluators:
            found = evaluator.evaluate(engine_input, capacity_map)
            log.debug("%s: %d violation(s)", evaluator.get_constraint_id(), len(found))
            violations.extend(found)
        return violations

    def run(self, engine_input: EngineInput) -> EngineResult:
        """
        Evaluate one snapshot.

        Args:
            engine_input: Snapshot to evaluate (never modified)

        Returns:
            EngineResult with capacity map, violations, suggestions,
            scenario effects and the executed pipeline steps
        """
        if self.config is not None:
            engine_input = self.config.apply_defaults(engine_input)

        trace: List[str] = []
        adjusted, effects = apply_scenarios_with_effects(engine_input)

        trace.append(TRACE_COMPUTE_CAPACITY)
        capacity_map = compute_capacity(adjusted, count_unassigned=self.count_unassigned)

        trace.append(TRACE_EVALUATE_CONSTRAINTS)
        violations = self.evaluate_constraints(adjusted, capacity_map)

        suggestions = []
        if self.suggestions_enabled:
            trace.append(TRACE_GENERATE_SUGGESTIONS)
            suggestions = generate_suggestions(adjusted, capacity_map, violations)

        log.debug(
            "Evaluated unit=%s week=%s: %d slot(s), %d violation(s), %d suggestion(s)",
            engine_input.unit_id or "-",
            engine_input.week_start or "-",
            len(capacity_map),
            len(violations),
            len(suggestions),
        )
        return EngineResult(
            capacity_map=capacity_map,
            violations=violations,
            suggestions=suggestions,
            scenario_effects=effects,
            trace=trace,
        )


def run_engine(engine_input: EngineInput, config=None) -> EngineResult:
    """
    Convenience function to evaluate a snapshot with a one-off orchestrator.

    Args:
        engine_input: Snapshot to evaluate
        config: Optional EngineConfig

    Returns:
        EngineResult
    """
    return Orchestrator(config).run(engine_input)
