"""Tests for pace, grade and vertical speed derivation."""
import pytest

from tracklab.analysis.derived import (
    calculate_grade_and_vertical_speed,
    calculate_pace,
    derive_pace,
    format_pace,
    pace_from_deltas,
    pace_from_speed,
)
from tracklab.models.activity import ActivityRecord
from tracklab.models.settings import GpsPaceSmoothingSettings


class TestPaceConversions:
    def test_pace_from_speed(self):
        assert pace_from_speed(1000 / 300) == pytest.approx(5.0)

    @pytest.mark.parametrize("speed", [None, 0.0, -2.0])
    def test_pace_from_speed_needs_positive_speed(self, speed):
        assert pace_from_speed(speed) is None

    def test_pace_from_deltas(self):
        assert pace_from_deltas(300.0, 1000.0) == pytest.approx(5.0)

    @pytest.mark.parametrize("dt,dd", [(0.0, 10.0), (10.0, 0.0), (-1.0, 5.0)])
    def test_pace_from_deltas_rejects_non_positive(self, dt, dd):
        assert pace_from_deltas(dt, dd) is None


class TestDerivePace:
    def test_embedded_speed_preferred(self, make_records):
        records = make_records(t=[0.0, 1.0], d=[0.0, 100.0], speed=[4.0, 4.0])
        derivation = derive_pace(records)
        assert derivation.paces == [pytest.approx(4.1667, abs=1e-3)] * 2
        assert not derivation.is_gps_derived

    def test_delta_fallback_without_gps(self, make_records):
        records = make_records(t=[0.0, 60.0, 120.0], d=[0.0, 200.0, 400.0])
        assert derive_pace(records).paces == [None, pytest.approx(5.0), pytest.approx(5.0)]

    def test_gps_speed_used_between_fixes(self, make_records, route):
        records = make_records(
            t=[float(i) for i in range(4)],
            d=[0.0] * 4,
            lat=[p[0] for p in route[:4]],
            lon=[p[1] for p in route[:4]],
        )
        derivation = derive_pace(records, GpsPaceSmoothingSettings(enabled=False))
        assert derivation.gps_indices == [1, 2, 3]
        assert derivation.speeds[1] == pytest.approx(11.12, abs=0.05)
        assert derivation.paces[1] == pytest.approx(1.499, abs=0.01)

    def test_gps_smoothing_never_touches_sensor_values(self, make_records, route):
        records = make_records(
            t=[0.0, 1.0, 2.0, 3.0, 4.0],
            d=[0.0] * 5,
            lat=[route[0][0], route[1][0], route[2][0], route[4][0], route[5][0]],
            lon=[7.0] * 5,
            speed=[None, None, 5.0, None, None],
        )
        derivation = derive_pace(records, GpsPaceSmoothingSettings(enabled=True, window_points=5))

        assert derivation.gps_indices == [1, 3, 4]
        assert derivation.speeds[2] == 5.0
        assert derivation.paces[2] == pytest.approx(1000 / 300)
        # index 3 jumped two route steps, smoothing pulls it toward its GPS neighbours
        assert derivation.speeds[3] < 22.2
        assert derivation.speeds[1] > 11.2

    def test_calculate_pace_stores_gps_speed(self, make_records, route):
        records = make_records(t=[0.0, 1.0], d=[0.0, 11.1], lat=[route[0][0], route[1][0]], lon=[7.0, 7.0])
        result = calculate_pace(records, GpsPaceSmoothingSettings(enabled=False))
        assert result[0].speed is None
        assert result[1].speed == pytest.approx(11.12, abs=0.05)
        assert (result[0].speed_from_gps, result[1].speed_from_gps) == (False, True)
        assert records[1].speed is None

    def test_stored_gps_speed_is_not_taken_as_sensor_speed(self, make_records, route):
        records = make_records(
            t=[0.0, 1.0, 2.0],
            d=[0.0, 11.1, 22.2],
            lat=[p[0] for p in route[:3]],
            lon=[7.0] * 3,
            speed=[None, None, 4.0],
        )
        first_pass = calculate_pace(records, GpsPaceSmoothingSettings(enabled=False))
        second_pass = derive_pace(first_pass, GpsPaceSmoothingSettings(enabled=False))

        assert second_pass.gps_indices == [1]
        assert second_pass.is_gps_derived
        assert second_pass.speeds[2] == 4.0


class TestGradeAndVerticalSpeed:
    def test_grade_and_v_speed(self, hilly_records):
        result = calculate_grade_and_vertical_speed(hilly_records)
        assert result[0].grade is None and result[0].v_speed is None
        assert result[1].grade == pytest.approx(10.0)
        assert result[2].grade == pytest.approx(-5.0)
        assert result[1].v_speed == pytest.approx(3600.0)

    def test_no_grade_without_horizontal_movement(self, make_records):
        records = make_records(t=[0.0, 10.0], d=[50.0, 50.0], alt=[100.0, 101.0])
        result = calculate_grade_and_vertical_speed(records)
        assert result[1].grade is None
        assert result[1].v_speed == pytest.approx(360.0)

    def test_no_v_speed_without_elapsed_time(self, make_records):
        records = make_records(t=[5.0, 5.0], d=[0.0, 10.0], alt=[100.0, 101.0])
        result = calculate_grade_and_vertical_speed(records)
        assert result[1].v_speed is None
        assert result[1].grade == pytest.approx(10.0)

    def test_missing_altitude(self):
        records = [ActivityRecord(t=0.0, d=0.0, alt=100.0), ActivityRecord(t=1.0, d=5.0)]
        result = calculate_grade_and_vertical_speed(records)
        assert result[1].grade is None and result[1].v_speed is None


class TestFormatPace:
    def test_per_km(self):
        assert format_pace(5.0) == "5:00/km"
        assert format_pace(4.5) == "4:30/km"

    def test_per_mile(self):
        assert format_pace(5.0, "mi") == "8:02/mi"
