"""Load and validate engine configuration (JSON or YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from shiftplan.domain.types import EngineInput, Ruleset, ScheduleSettings
from shiftplan.engine.base import DEFAULT_EVALUATOR_ORDER, EVALUATOR_REGISTRY
from shiftplan.exceptions import ConfigError, SnapshotFormatError
from shiftplan.io.snapshot import ruleset_from_dict, schedule_settings_from_dict
from shiftplan.services.timeplan import DEFAULT_BUCKET_MINUTES


@dataclass
class EngineConfig:
    """Settings handed to the orchestrator at construction time."""

    default_bucket_minutes: int = DEFAULT_BUCKET_MINUTES
    count_unassigned_positions: bool = True
    evaluator_order: List[str] = field(default_factory=lambda: list(DEFAULT_EVALUATOR_ORDER))
    generate_suggestions: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None
    db_url: str = "sqlite:///shiftplan.db"
    ruleset: Optional[Ruleset] = None
    schedule_settings: Optional[ScheduleSettings] = None

    def apply_defaults(self, engine_input: EngineInput) -> EngineInput:
        """
        Fill gaps in a snapshot from the configured defaults.

        The configured ruleset replaces an input ruleset that carries no rules,
        the configured settings replace empty input settings, and a missing
        bucket size falls back to ``default_bucket_minutes``.
        """
        ruleset = engine_input.ruleset
        settings = engine_input.schedule_settings
        has_rules = bool(
            ruleset.min_coverage_by_position
            or ruleset.min_rest_hours_between_shifts
            or ruleset.max_hours_per_day
        )
        if self.ruleset is not None and not has_rules:
            ruleset = replace(self.ruleset, bucket_minutes=ruleset.bucket_minutes or self.ruleset.bucket_minutes)
        if ruleset.bucket_minutes is None:
            ruleset = replace(ruleset, bucket_minutes=self.default_bucket_minutes)
        if self.schedule_settings is not None and settings == ScheduleSettings():
            settings = self.schedule_settings
        if ruleset is engine_input.ruleset and settings is engine_input.schedule_settings:
            return engine_input
        return replace(engine_input, ruleset=ruleset, schedule_settings=settings)


_SIMPLE_KEYS = {
    "default_bucket_minutes": "defaultBucketMinutes",
    "count_unassigned_positions": "countUnassignedPositions",
    "evaluator_order": "evaluatorOrder",
    "generate_suggestions": "generateSuggestions",
    "log_level": "logLevel",
    "log_file": "logFile",
    "db_url": "dbUrl",
}


def _pick(raw: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in raw:
        return raw[snake]
    return raw.get(camel, default)


def config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    """
    Build an EngineConfig from a mapping (snake_case or camelCase keys).

    Raises:
        ConfigError: If a value has the wrong type or names an unknown evaluator
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be a mapping")

    cfg = EngineConfig()
    for attr, camel in _SIMPLE_KEYS.items():
        value = _pick(raw, attr, camel)
        if value is not None:
            setattr(cfg, attr, value)

    if not isinstance(cfg.default_bucket_minutes, int) or cfg.default_bucket_minutes <= 0:
        raise ConfigError(f"default_bucket_minutes must be a positive integer, got {cfg.default_bucket_minutes!r}")
    if not isinstance(cfg.evaluator_order, list):
        raise ConfigError("evaluator_order must be a list of constraint ids")
    unknown = [name for name in cfg.evaluator_order if name not in EVALUATOR_REGISTRY]
    if unknown:
        raise ConfigError(f"Unknown evaluator(s) in evaluator_order: {', '.join(map(str, unknown))}")

    ruleset = _pick(raw, "ruleset", "ruleset")
    if ruleset is not None:
        try:
            cfg.ruleset = ruleset_from_dict(ruleset)
        except (TypeError, ValueError, AttributeError, SnapshotFormatError) as e:
            raise ConfigError(f"Invalid ruleset in configuration: {e}") from e
    settings = _pick(raw, "schedule_settings", "scheduleSettings")
    if settings is not None:
        try:
            cfg.schedule_settings = schedule_settings_from_dict(settings)
        except (TypeError, ValueError, AttributeError, SnapshotFormatError) as e:
            raise ConfigError(f"Invalid schedule settings in configuration: {e}") from e
    return cfg


def load_config(path: str | Path) -> EngineConfig:
    """
    Load configuration from a YAML (.yaml/.yml) or JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file cannot be parsed or fails validation
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            raw = yaml.safe_load(text) or {}
        else:
            raw = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse config {p}: {e}") from e
    return config_from_dict(raw)
