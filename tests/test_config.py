"""Tests for engine configuration loading."""

import json

import pytest

from shiftplan.domain.types import MaxHoursPerDayRule, Ruleset, ScheduleSettings
from shiftplan.exceptions import ConfigError
from shiftplan.io.config import EngineConfig, config_from_dict, load_config


def test_load_yaml_config(tmp_path):
    config_file = tmp_path / "engine.yaml"
    config_file.write_text(
        """
evaluatorOrder:
  - MAX_HOURS_PER_DAY
  - MIN_COVERAGE_BY_POSITION
generateSuggestions: false
countUnassignedPositions: false
logLevel: DEBUG
ruleset:
  bucketMinutes: 30
  minRestHoursBetweenShifts:
    minRestHours: 11
scheduleSettings:
  defaultClosingTime: "23:00"
"""
    )
    cfg = load_config(config_file)
    assert cfg.evaluator_order == ["MAX_HOURS_PER_DAY", "MIN_COVERAGE_BY_POSITION"]
    assert cfg.generate_suggestions is False
    assert cfg.count_unassigned_positions is False
    assert cfg.log_level == "DEBUG"
    assert cfg.ruleset.bucket_minutes == 30
    assert cfg.ruleset.min_rest_hours_between_shifts.min_rest_hours == 11.0
    assert cfg.schedule_settings.default_closing_time == "23:00"


def test_load_json_config_with_snake_case_keys(tmp_path):
    config_file = tmp_path / "engine.json"
    config_file.write_text(json.dumps({"default_bucket_minutes": 15, "db_url": "sqlite:///:memory:"}))
    cfg = load_config(config_file)
    assert cfg.default_bucket_minutes == 15
    assert cfg.db_url == "sqlite:///:memory:"
    assert cfg.ruleset is None


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_unparseable_config(tmp_path):
    config_file = tmp_path / "engine.json"
    config_file.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(config_file)


@pytest.mark.parametrize(
    "raw",
    [
        {"evaluatorOrder": ["MIN_COVERAGE_BY_POSITION", "NO_SUCH_RULE"]},
        {"evaluatorOrder": "MAX_HOURS_PER_DAY"},
        {"defaultBucketMinutes": 0},
        {"ruleset": {"minCoverageByPosition": [{"positionId": "p1"}]}},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_config_values(raw):
    with pytest.raises(ConfigError):
        config_from_dict(raw)


def test_apply_defaults_bucket_fallback(make_input):
    cfg = EngineConfig(default_bucket_minutes=15)
    engine_input = make_input(ruleset=Ruleset(bucket_minutes=None))
    assert cfg.apply_defaults(engine_input).ruleset.bucket_minutes == 15


def test_apply_defaults_fills_empty_input(make_input):
    cfg = EngineConfig(
        ruleset=Ruleset(bucket_minutes=30, max_hours_per_day=MaxHoursPerDayRule(8)),
        schedule_settings=ScheduleSettings(default_closing_time="23:00"),
    )
    filled = cfg.apply_defaults(make_input(ruleset=Ruleset(bucket_minutes=None), schedule_settings=ScheduleSettings()))
    assert filled.ruleset.bucket_minutes == 30
    assert filled.ruleset.max_hours_per_day == MaxHoursPerDayRule(8)
    assert filled.schedule_settings.default_closing_time == "23:00"

    # the input's own bucket size wins over the configured one
    assert cfg.apply_defaults(make_input()).ruleset.bucket_minutes == 60


def test_apply_defaults_keeps_input_rules(make_input):
    cfg = EngineConfig(
        ruleset=Ruleset(bucket_minutes=30, max_hours_per_day=MaxHoursPerDayRule(8)),
        schedule_settings=ScheduleSettings(default_closing_time="23:00"),
    )
    engine_input = make_input(ruleset=Ruleset(bucket_minutes=60, max_hours_per_day=MaxHoursPerDayRule(10)))
    assert cfg.apply_defaults(engine_input) is engine_input
