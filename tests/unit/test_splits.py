"""Tests for best-effort splits."""
import pytest

from tracklab.analysis.splits import COMMON_SPLITS, best_split, calculate_best_splits


class TestBestSplit:
    def test_finds_fastest_segment(self, make_records):
        # slow, fast, slow 100 m segments
        records = make_records(t=[0.0, 40.0, 55.0, 100.0], d=[0.0, 100.0, 200.0, 300.0])
        assert best_split(records, 100.0) == (15.0, 1, 2)

    def test_distance_not_covered(self, make_records):
        records = make_records(t=[0.0, 10.0], d=[0.0, 50.0])
        assert best_split(records, 100.0) is None

    def test_degenerate_inputs(self, make_records):
        assert best_split(make_records(t=[0.0], d=[0.0]), 100.0) is None
        assert best_split(make_records(t=[0.0, 1.0], d=[0.0, 10.0]), 0.0) is None


class TestCalculateBestSplits:
    def test_uniform_run(self, uniform_run):
        splits = calculate_best_splits(uniform_run.records)

        assert list(splits) == ["100m", "1km", "1 mile", "5km"]
        assert splits["1km"].time_seconds == pytest.approx(240.0)
        assert splits["1km"].pace_min_per_km == pytest.approx(4.0)
        assert splits["5km"].time_seconds == pytest.approx(1200.0)
        assert "10km" not in splits

    def test_total_distance_override(self, uniform_run):
        splits = calculate_best_splits(uniform_run.records, total_distance_meters=900.0)
        assert list(splits) == ["100m"]

    def test_empty(self):
        assert calculate_best_splits([]) == {}

    def test_canonical_distances_ascending(self):
        distances = [d for d, _ in COMMON_SPLITS]
        assert distances == sorted(distances)
        assert len(distances) == 9
