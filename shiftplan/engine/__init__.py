"""Scheduling engine: evaluators, suggestion generator and orchestrator."""

from .base import (
    DEFAULT_EVALUATOR_ORDER,
    EVALUATOR_REGISTRY,
    ConstraintEvaluator,
    MaxHoursEvaluator,
    MinCoverageEvaluator,
    MinRestEvaluator,
)
from .orchestrator import Orchestrator, run_engine
from .suggestions import generate_suggestions

__all__ = [
    "DEFAULT_EVALUATOR_ORDER",
    "EVALUATOR_REGISTRY",
    "ConstraintEvaluator",
    "MinCoverageEvaluator",
    "MinRestEvaluator",
    "MaxHoursEvaluator",
    "Orchestrator",
    "run_engine",
    "generate_suggestions",
]
