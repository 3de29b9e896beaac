"""
X-axis values for records, and nearest-index lookup along an axis.

Axis types:
  time       elapsed seconds plus the activity offset (already in t once processed)
  distance   cumulative meters
  localTime  wall-clock epoch milliseconds (start time + shifted elapsed);
             falls back to shifted elapsed seconds when start time is unknown
"""
from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Sequence

from tracklab.models.activity import Activity, ActivityRecord

X_AXIS_TYPES = ("time", "distance", "localTime")


@dataclass(frozen=True)
class ActivityXValues:
    values: List[float]
    is_monotonic: bool


def calculate_x_value(record: ActivityRecord, activity: Activity, axis: str) -> float:
    if axis == "distance":
        return record.d
    shifted = record.t + activity.pending_offset
    if axis == "localTime" and activity.start_time is not None:
        return activity.start_time.timestamp() * 1000 + shifted * 1000
    if axis in X_AXIS_TYPES:
        return shifted
    raise ValueError(f"Unknown x-axis type: {axis!r}")


def activity_x_values(activity: Activity, axis: str) -> ActivityXValues:
    values = [calculate_x_value(record, activity, axis) for record in activity.records]
    is_monotonic = all(b >= a for a, b in zip(values, values[1:]))
    return ActivityXValues(values=values, is_monotonic=is_monotonic)


def find_nearest_index(sorted_values: Sequence[float], target: float) -> int:
    """Index of the value closest to `target` in an ascending sequence; -1 if empty."""
    if not sorted_values:
        return -1
    if target <= sorted_values[0]:
        return 0
    if target >= sorted_values[-1]:
        return len(sorted_values) - 1
    right = bisect_left(sorted_values, target)
    left = right - 1
    if abs(sorted_values[right] - target) < abs(sorted_values[left] - target):
        return right
    return left


def find_nearest_index_linear(values: Sequence[float], target: float) -> int:
    """Like find_nearest_index() but for unsorted values. O(n)."""
    best, best_diff = -1, float("inf")
    for i, value in enumerate(values):
        diff = abs(value - target)
        if diff < best_diff:
            best, best_diff = i, diff
    return best
