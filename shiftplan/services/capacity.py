"""Capacity aggregation: slot -> position -> assigned headcount."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

from shiftplan.domain.types import CapacityMap, EngineInput, EngineShift

from .settings import iter_shift_ranges
from .timeplan import iter_bucket_starts, normalize_bucket_minutes, slot_key

UNKNOWN_POSITION_ID = "unknown"


def compute_capacity(
    engine_input: EngineInput,
    shifts: List[EngineShift] | None = None,
    count_unassigned: bool = True,
) -> CapacityMap:
    """
    Count, per bucket, how many working shifts of each position overlap it.

    Buckets are floored to the bucket grid; a shift counts toward every bucket
    it touches. Counts are summed, so shift order never changes the result.

    Args:
        engine_input: Snapshot providing week days, settings and bucket size
        shifts: Shifts to aggregate (default: engine_input.shifts)
        count_unassigned: Count shifts without a position under UNKNOWN_POSITION_ID;
            when False they are left out

    Returns:
        Capacity map keyed by slot key ("YYYY-MM-DDTHH:MM")
    """
    bucket_minutes = normalize_bucket_minutes(engine_input.ruleset.bucket_minutes)
    counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for shift, time_range in iter_shift_ranges(engine_input, shifts):
        position_id = shift.position_id or (UNKNOWN_POSITION_ID if count_unassigned else None)
        if position_id is None:
            continue
        for bucket_start in iter_bucket_starts(time_range.start, time_range.end, bucket_minutes):
            counts[slot_key(bucket_start)][position_id] += 1

    return {slot: dict(per_position) for slot, per_position in counts.items()}


def assigned_count(capacity_map: CapacityMap, slot: str, position_id: str) -> int:
    return capacity_map.get(slot, {}).get(position_id, 0)
