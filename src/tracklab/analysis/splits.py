"""
Best-effort splits: fastest elapsed time to cover a fixed distance anywhere in an activity.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from tracklab.models.activity import ActivityRecord

COMMON_SPLITS: List[Tuple[float, str]] = [
    (100.0, "100m"),
    (1000.0, "1km"),
    (1609.34, "1 mile"),
    (5000.0, "5km"),
    (10000.0, "10km"),
    (21097.5, "Half Marathon"),
    (42195.0, "Marathon"),
    (50000.0, "50km"),
    (100000.0, "100km"),
]


@dataclass(frozen=True)
class BestSplit:
    label: str
    distance_meters: float
    time_seconds: float
    start_index: int
    end_index: int

    @property
    def pace_min_per_km(self) -> float:
        return (self.time_seconds / 60) / (self.distance_meters / 1000)


def best_split(
    records: Sequence[ActivityRecord],
    target_meters: float,
) -> Optional[Tuple[float, int, int]]:
    """
    Minimum time to cover `target_meters`, with the start/end record indices.

    Cumulative distance is non-decreasing, so the end pointer never moves
    backwards as the start advances.

    Returns:
        (seconds, start_index, end_index), or None if the distance is never covered.
    """
    n = len(records)
    if n < 2 or target_meters <= 0:
        return None

    best: Optional[Tuple[float, int, int]] = None
    end = 1
    for start in range(n - 1):
        if records[-1].d - records[start].d < target_meters:
            break
        end = max(end, start + 1)
        while end < n and records[end].d - records[start].d < target_meters:
            end += 1
        if end >= n:
            break
        elapsed = records[end].t - records[start].t
        if elapsed > 0 and (best is None or elapsed < best[0]):
            best = (elapsed, start, end)
    return best


def calculate_best_splits(
    records: Sequence[ActivityRecord],
    total_distance_meters: Optional[float] = None,
) -> Dict[str, BestSplit]:
    """
    Best splits for every canonical distance not longer than the activity.

    Returns:
        Dict keyed by split label ("1km", "Half Marathon", ...), in ascending distance order.
    """
    if total_distance_meters is None:
        total_distance_meters = max(0.0, records[-1].d - records[0].d) if records else 0.0

    splits: Dict[str, BestSplit] = {}
    for distance, label in COMMON_SPLITS:
        if distance > total_distance_meters:
            continue
        found = best_split(records, distance)
        if found is not None:
            seconds, start, end = found
            splits[label] = BestSplit(label, distance, seconds, start, end)
    return splits
