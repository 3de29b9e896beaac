"""Tests for power metrics."""
import pytest

from tracklab.analysis.power import best_time_power, has_power, normalized_power, power_metrics


def _ride(make_records, watts):
    return make_records(t=[float(i) for i in range(len(watts))], d=[float(i) for i in range(len(watts))], pwr=watts)


class TestNormalizedPower:
    def test_steady_power(self, make_records):
        assert normalized_power(_ride(make_records, [250.0] * 120)) == pytest.approx(250.0)

    def test_variable_power_weighted_above_average(self, make_records):
        np_value = normalized_power(_ride(make_records, [100.0] * 60 + [300.0] * 60))
        assert 200.0 < np_value < 300.0

    def test_needs_two_samples(self, make_records):
        assert normalized_power(_ride(make_records, [250.0])) is None

    def test_all_zero(self, make_records):
        assert normalized_power(_ride(make_records, [0.0] * 10)) is None


class TestBestTimePower:
    def test_steady(self, make_records):
        assert best_time_power(_ride(make_records, [180.0] * 900), 600) == pytest.approx(180.0)

    def test_picks_strongest_block(self, make_records):
        watts = [150.0] * 30 + [320.0] * 30 + [150.0] * 30
        assert best_time_power(_ride(make_records, watts), 20) == pytest.approx(320.0)

    def test_ignores_records_without_power(self, make_records):
        records = make_records(t=[0.0, 1.0, 2.0], d=[0.0, 1.0, 2.0], pwr=[None, 200.0, None])
        assert best_time_power(records, 60) is None


class TestPowerMetrics:
    def test_no_power(self, make_records):
        records = make_records(t=[0.0, 1.0], d=[0.0, 1.0])
        assert not has_power(records)
        assert power_metrics(records) == {}

    def test_keys(self, make_records):
        metrics = power_metrics(_ride(make_records, [200.0] * 120), windows_minutes=(1,))
        assert set(metrics) == {"normalized_power", "best_1min_power"}
        assert metrics["best_1min_power"] == pytest.approx(200.0)

    def test_window_longer_than_ride(self, make_records):
        metrics = power_metrics(_ride(make_records, [200.0] * 120))
        assert metrics["best_12min_power"] == pytest.approx(200.0)
        assert metrics["best_20min_power"] == pytest.approx(200.0)
