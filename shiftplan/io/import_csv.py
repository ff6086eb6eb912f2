"""CSV import utilities to load shifts into engine types."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from shiftplan.domain.types import EngineShift
from shiftplan.exceptions import SnapshotFormatError
from shiftplan.logger import get_logger

from .snapshot import TRUE_VALUES

log = get_logger("io")

SHIFT_COLUMNS = ["id", "userId", "dateKey", "startTime", "endTime", "positionId", "isDayOff"]
REQUIRED_SHIFT_COLUMNS = ["id", "userId", "dateKey"]


def _clean(value) -> str | None:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def read_shifts_csv(csv_path: str | Path, unit_id: str | None = None) -> List[EngineShift]:
    """
    Read shifts from CSV.

    Columns: id, userId, dateKey, startTime, endTime, positionId, isDayOff.
    Only the first three are required; blank cells become None. Times are kept
    as text so ``08:00`` is not reinterpreted.

    Args:
        csv_path: Path to shifts CSV
        unit_id: Unit id stamped on every shift (optional)

    Returns:
        List of EngineShift in file order

    Raises:
        SnapshotFormatError: If a required column is missing or a row has no id/user/date
    """
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)

    # Normalize column names
    df.columns = df.columns.str.strip()
    missing = [c for c in REQUIRED_SHIFT_COLUMNS if c not in df.columns]
    if missing:
        raise SnapshotFormatError(f"{csv_path}: missing column(s) {', '.join(missing)}")

    for column in SHIFT_COLUMNS:
        if column not in df.columns:
            df[column] = ""

    shifts = []
    for row_number, row in enumerate(df.itertuples(index=False), start=2):
        shift_id, user_id, date_key = _clean(row.id), _clean(row.userId), _clean(row.dateKey)
        if not (shift_id and user_id and date_key):
            raise SnapshotFormatError(f"{csv_path}:{row_number}: id, userId and dateKey are required")
        shifts.append(
            EngineShift(
                id=shift_id,
                user_id=user_id,
                date_key=date_key,
                start_time=_clean(row.startTime),
                end_time=_clean(row.endTime),
                position_id=_clean(row.positionId),
                unit_id=unit_id,
                is_day_off=(_clean(row.isDayOff) or "").lower() in TRUE_VALUES,
            )
        )

    log.info("Imported %d shifts from %s", len(shifts), csv_path)
    return shifts
