"""
Windowing: trim record timelines to a percentage range of a shared axis extent.

The extent is the min/max x-value over every activity in view, so one
window selects the same axis range across all of them. Bounds are inclusive.
"""
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from tracklab.analysis.xvalues import calculate_x_value
from tracklab.models.activity import Activity, ActivityRecord


@dataclass(frozen=True)
class AxisExtent:
    min: float
    max: float


def _clamp_percent(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(100.0, max(0.0, value))


def axis_extent(activities: Sequence[Activity], axis: str) -> Optional[AxisExtent]:
    """Min/max x-value over all records; None for no records or a zero-width extent."""
    xs = [
        calculate_x_value(record, activity, axis)
        for activity in activities
        for record in activity.records
    ]
    xs = [x for x in xs if math.isfinite(x)]
    if not xs:
        return None
    lo, hi = min(xs), max(xs)
    if lo == hi:
        return None
    return AxisExtent(lo, hi)


def is_percent_window_active(start_percent: float, end_percent: float) -> bool:
    return _clamp_percent(start_percent) > 0 or _clamp_percent(end_percent) < 100


def window_range(extent: AxisExtent, start_percent: float, end_percent: float) -> AxisExtent:
    """Convert a percent window to an absolute [lo, hi] axis range."""
    span = extent.max - extent.min
    xs = extent.min + span * _clamp_percent(start_percent) / 100
    xe = extent.min + span * _clamp_percent(end_percent) / 100
    return AxisExtent(min(xs, xe), max(xs, xe))


def filter_records_by_range(
    records: Sequence[ActivityRecord],
    activity: Activity,
    axis: str,
    value_range: AxisExtent,
) -> List[ActivityRecord]:
    return [
        record
        for record in records
        if value_range.min <= calculate_x_value(record, activity, axis) <= value_range.max
    ]


def window_activity(
    activity: Activity,
    axis: str,
    start_percent: float,
    end_percent: float,
    extent: Optional[AxisExtent] = None,
) -> Activity:
    """
    Trim one activity to a percent window.

    `extent` defaults to the activity's own extent. An inactive window or a
    missing extent returns the activity unchanged.
    """
    if not is_percent_window_active(start_percent, end_percent):
        return activity
    extent = extent or axis_extent([activity], axis)
    if extent is None:
        return activity
    value_range = window_range(extent, start_percent, end_percent)
    return replace(activity, records=filter_records_by_range(activity.records, activity, axis, value_range))


def window_activities(
    activities: Sequence[Activity],
    axis: str,
    start_percent: float,
    end_percent: float,
) -> List[Activity]:
    """Apply one percent window, measured against the shared extent, to every activity."""
    if not is_percent_window_active(start_percent, end_percent):
        return list(activities)
    extent = axis_extent(activities, axis)
    if extent is None:
        return list(activities)
    return [window_activity(a, axis, start_percent, end_percent, extent) for a in activities]
