"""Shift-scheduling constraint and suggestion engine.

Modules:
- domain: engine value types, ORM records and repositories
- services: time/slot math, closing-time settings, capacity, constraint evaluators, scenarios
- engine: evaluator registry, suggestion generator and the orchestrated evaluate pass
- assistant: suggestion identities, explainability, decision sessions, apply/accept helpers
- io: configuration, input snapshots and CSV import/export
- cli: command-line interface entrypoints
"""

__version__ = "0.1.0"

__all__ = [
    "domain",
    "services",
    "engine",
    "assistant",
    "io",
    "cli",
]
