"""Exception types raised by shiftplan."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shiftplan.assistant.apply import ApplyError


class ShiftplanError(Exception):
    """Base class for all shiftplan errors."""


class SuggestionApplyError(ShiftplanError):
    """Raised by the applier in tolerant mode for the first validation problem."""

    def __init__(self, error: "ApplyError"):
        self.error = error
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


class SnapshotFormatError(ShiftplanError):
    """Raised when an input snapshot or CSV file cannot be read into engine types."""


class ConfigError(ShiftplanError, ValueError):
    """Raised when the engine configuration is invalid."""


class DecisionConflictError(ShiftplanError):
    """Raised when a decision contradicts the applied-suggestion ledger."""


CLI_EXIT_CODES = {
    SnapshotFormatError: 2,
    ConfigError: 3,
    SuggestionApplyError: 4,
    DecisionConflictError: 5,
}


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the CLI process exit code (1 for anything unmapped)."""
    for error_type, code in CLI_EXIT_CODES.items():
        if isinstance(error, error_type):
            return code
    return 1
