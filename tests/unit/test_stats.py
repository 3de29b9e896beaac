"""Tests for activity statistics."""
import numpy as np
import pytest

from tracklab.analysis.derived import derive_pace
from tracklab.analysis.pipeline import process_activity_records
from tracklab.analysis.stats import (
    compute_activity_stats,
    compute_stats_from_records,
    distance_meters,
    duration_seconds,
    elevation_gain,
    elevation_loss,
    metric_stats,
    pace_stats,
)
from tracklab.models.activity import Activity, ActivityRecord


class TestMetricStats:
    def test_min_max_avg(self):
        stats = metric_stats([120.0, None, 140.0, 130.0])
        assert (stats.count, stats.min, stats.max, stats.avg) == (3, 120.0, 140.0, 130.0)

    def test_zero_is_a_value(self):
        assert metric_stats([0.0, 0.0]).count == 2

    def test_empty(self):
        stats = metric_stats([None, float("nan")])
        assert stats.count == 0
        assert stats.avg is None


class TestTotals:
    def test_duration_and_distance(self, hilly_records):
        assert duration_seconds(hilly_records) == 20.0
        assert distance_meters(hilly_records) == 200.0

    def test_single_record(self):
        records = [ActivityRecord(t=5.0, d=10.0)]
        assert duration_seconds(records) == 0.0
        assert distance_meters(records) == 0.0

    def test_elevation_gain_and_loss(self, hilly_records):
        assert elevation_gain(hilly_records) == pytest.approx(10.0)
        assert elevation_loss(hilly_records) == pytest.approx(5.0)

    def test_elevation_skips_missing_altitudes(self, make_records):
        records = make_records(t=[0.0, 1.0, 2.0], d=[0.0, 1.0, 2.0], alt=[100.0, None, 103.0])
        assert elevation_gain(records) == pytest.approx(3.0)
        assert elevation_loss(records) == 0.0

    def test_no_altitude_at_all(self, make_records):
        records = make_records(t=[0.0, 1.0], d=[0.0, 1.0])
        assert elevation_gain(records) is None
        assert elevation_loss(records) is None


class TestPaceStats:
    def test_average_is_total_time_over_distance(self, make_records):
        # 3:00 for 1 km then 7:00 for 500 m: a mean of the two rates would be 8.5
        records = make_records(t=[0.0, 180.0, 600.0], d=[0.0, 1000.0, 1500.0])
        stats = pace_stats(records)
        assert stats.avg == pytest.approx(10 / 1.5)
        assert stats.min == pytest.approx(3.0)
        assert stats.max == pytest.approx(14.0)

    def test_gps_pace_uses_percentiles(self, make_records):
        n = 21
        lats = [45.0 + i * 0.0001 for i in range(n)]
        lats[10] = lats[9] + 0.0006  # one spike, then back on track
        for i in range(11, n):
            lats[i] = lats[10] + (i - 10) * 0.0001
        records = make_records(t=[float(i) for i in range(n)], d=[float(i) for i in range(n)], lat=lats, lon=[7.0] * n)

        stats = pace_stats(records)
        raw_min = 1000 / (6 * 11.12 * 60)
        assert stats.count == n - 1
        assert stats.min > raw_min

    def test_gps_pace_percentiles_survive_processing(self, make_records):
        n = 30
        lats = [45.0 + i * 0.0001 for i in range(n)]
        lats[15] += 0.0008  # single-fix spike
        raw = make_records(t=[float(i) for i in range(n)], d=[i * 11.1 for i in range(n)], lat=lats, lon=[7.0] * n)
        processed = process_activity_records(raw)

        derivation = derive_pace(processed)
        assert derivation.is_gps_derived
        samples = [p for p in derivation.paces if p is not None]
        stats = pace_stats(processed)
        assert len(samples) > 10
        assert stats.min == pytest.approx(float(np.percentile(samples, 5)))
        assert stats.max == pytest.approx(float(np.percentile(samples, 95)))

    def test_no_pace(self):
        assert pace_stats([ActivityRecord(t=0.0, d=0.0)]).count == 0


class TestComputeStats:
    def test_metrics_and_extras(self, make_records):
        records = make_records(
            t=[0.0, 10.0], d=[0.0, 50.0], hr=[140.0, 150.0],
            extras=[{"stance_time_ms": 250.0}, {}],
        )
        stats = compute_stats_from_records(records)

        assert stats.metrics["hr"].avg == 145.0
        assert stats.metrics["pwr"].count == 0
        assert stats.metrics["stance_time_ms"].count == 1
        assert stats.metrics["pace"].avg == pytest.approx((10 / 60) / 0.05)

    def test_sparse_activity_never_raises(self):
        stats = compute_stats_from_records([])
        assert stats.duration_seconds == 0.0
        assert stats.elevation_gain_meters is None

    def test_activity_calories(self, hilly_records):
        activity = Activity(id="h", name="h.tcx", records=hilly_records, calories=420.0)
        stats = compute_activity_stats(activity)
        assert stats.calories == 420.0
        assert stats.elevation_gain_meters == pytest.approx(10.0)
