"""Pytest configuration and shared fixtures."""

from dataclasses import replace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shiftplan.domain.models import Base
from shiftplan.domain.types import (
    EngineInput,
    EnginePosition,
    EngineShift,
    EngineUser,
    Ruleset,
    ScheduleSettings,
)

WEEK_DAYS = [
    "2025-01-06",
    "2025-01-07",
    "2025-01-08",
    "2025-01-09",
    "2025-01-10",
    "2025-01-11",
    "2025-01-12",
]


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def week_days():
    return list(WEEK_DAYS)


@pytest.fixture
def make_input():
    """Build an EngineInput for the week of 2025-01-06 with two p1 staff members."""

    def _make(shifts=(), ruleset=None, **overrides):
        engine_input = EngineInput(
            week_days=list(WEEK_DAYS),
            shifts=list(shifts),
            schedule_settings=ScheduleSettings(
                default_closing_time="21:00",
                default_closing_offset_minutes=60,
            ),
            ruleset=ruleset or Ruleset(bucket_minutes=60),
            unit_id="unit-a",
            week_start=WEEK_DAYS[0],
            users=[
                EngineUser(id="u1", display_name="Anna", position_ids=["p1"]),
                EngineUser(id="u2", display_name="Bence", position_ids=["p1"]),
            ],
            positions=[EnginePosition(id="p1", name="Waiter")],
        )
        return replace(engine_input, **overrides) if overrides else engine_input

    return _make


@pytest.fixture
def shift():
    """Shift factory: shift("s1", "u1", "2025-01-06", "08:00", "12:00")."""

    def _shift(shift_id, user_id, date_key, start=None, end=None, position="p1", day_off=False):
        return EngineShift(
            id=shift_id,
            user_id=user_id,
            date_key=date_key,
            start_time=start,
            end_time=end,
            position_id=position,
            unit_id="unit-a",
            is_day_off=day_off,
        )

    return _shift


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
