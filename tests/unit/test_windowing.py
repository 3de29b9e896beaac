"""Tests for x-axis values and percent windowing."""
from datetime import datetime, timezone

import pytest

from tracklab.analysis.pipeline import process_activity
from tracklab.analysis.windowing import (
    AxisExtent,
    axis_extent,
    is_percent_window_active,
    window_activities,
    window_activity,
    window_range,
)
from tracklab.analysis.xvalues import (
    activity_x_values,
    calculate_x_value,
    find_nearest_index,
    find_nearest_index_linear,
)
from tracklab.models.activity import Activity, ActivityRecord


@pytest.fixture
def timeline():
    """Factory: activity with t = 0, 10, ... up to `end` seconds and d = 2 * t."""
    def build(activity_id="a", end=100, offset=0.0, start_time=None):
        records = [ActivityRecord(t=float(t), d=2.0 * t) for t in range(0, end + 1, 10)]
        return Activity(id=activity_id, name=activity_id, records=records, offset=offset, start_time=start_time)
    return build


class TestXValues:
    def test_time_includes_offset(self, timeline):
        activity = timeline(offset=30.0)
        assert calculate_x_value(activity.records[1], activity, "time") == 40.0

    def test_distance_ignores_offset(self, timeline):
        activity = timeline(offset=30.0)
        assert calculate_x_value(activity.records[1], activity, "distance") == 20.0

    def test_local_time(self, timeline):
        start = datetime(2025, 1, 15, 7, 30, tzinfo=timezone.utc)
        activity = timeline(start_time=start, offset=5.0)
        expected = start.timestamp() * 1000 + 15_000
        assert calculate_x_value(activity.records[1], activity, "localTime") == pytest.approx(expected)

    def test_local_time_without_start_time(self, timeline):
        activity = timeline()
        assert calculate_x_value(activity.records[2], activity, "localTime") == 20.0

    def test_unknown_axis(self, timeline):
        activity = timeline()
        with pytest.raises(ValueError):
            calculate_x_value(activity.records[0], activity, "heartbeat")

    def test_monotonic_flag(self, timeline):
        activity = timeline()
        assert activity_x_values(activity, "time").is_monotonic
        activity.records.reverse()
        assert not activity_x_values(activity, "time").is_monotonic


class TestNearestIndex:
    @pytest.mark.parametrize("target,expected", [(-5.0, 0), (0.0, 0), (4.0, 0), (6.0, 1), (15.0, 1), (99.0, 3)])
    def test_sorted(self, target, expected):
        assert find_nearest_index([0.0, 10.0, 20.0, 30.0], target) == expected

    def test_empty(self):
        assert find_nearest_index([], 1.0) == -1
        assert find_nearest_index_linear([], 1.0) == -1

    def test_linear_unsorted(self):
        assert find_nearest_index_linear([30.0, 5.0, 18.0], 16.0) == 2


class TestWindowing:
    def test_extent(self, timeline):
        assert axis_extent([timeline()], "time") == AxisExtent(0.0, 100.0)

    def test_extent_degenerate(self, timeline):
        assert axis_extent([timeline(end=0)], "time") is None
        assert axis_extent([], "time") is None

    def test_window_active(self):
        assert not is_percent_window_active(0, 100)
        assert not is_percent_window_active(-10, 250)
        assert is_percent_window_active(0, 99.5)

    def test_window_range_orders_and_clamps(self):
        assert window_range(AxisExtent(0.0, 200.0), 80, 10) == AxisExtent(20.0, 160.0)
        assert window_range(AxisExtent(0.0, 200.0), -5, 150) == AxisExtent(0.0, 200.0)

    def test_boundaries_inclusive(self, timeline):
        windowed = window_activity(timeline(), "time", 20, 50)
        assert [r.t for r in windowed.records] == [20.0, 30.0, 40.0, 50.0]

    def test_full_window_is_identity(self, timeline):
        activity = timeline()
        assert window_activity(activity, "time", 0, 100) is activity

    def test_distance_axis(self, timeline):
        windowed = window_activity(timeline(), "distance", 0, 10)
        assert [r.d for r in windowed.records] == [0.0, 20.0]

    def test_shared_extent_across_activities(self, timeline):
        short, long = timeline("short", end=100), timeline("long", end=200)
        trimmed = window_activities([short, long], "time", 50, 100)

        assert [r.t for r in trimmed[0].records] == [100.0]
        assert trimmed[1].records[0].t == 100.0
        assert trimmed[1].records[-1].t == 200.0

    def test_offset_moves_activity_into_window(self, timeline):
        shifted = timeline("shifted", offset=100.0)
        trimmed = window_activities([timeline(), shifted], "time", 75, 100)
        assert trimmed[0].records == []
        assert [r.t for r in trimmed[1].records] == [50.0, 60.0, 70.0, 80.0, 90.0, 100.0]

    def test_processed_activity_offset_counted_once(self, timeline):
        processed = process_activity(timeline(offset=30.0))

        assert calculate_x_value(processed.records[1], processed, "time") == 40.0
        assert axis_extent([processed], "time") == AxisExtent(30.0, 130.0)
        windowed = window_activity(processed, "time", 50, 100)
        assert [r.t for r in windowed.records] == [80.0, 90.0, 100.0, 110.0, 120.0, 130.0]
