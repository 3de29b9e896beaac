"""
Derived metrics: pace, grade and vertical speed.

Pace (min/km) source preference, per record:
  1. embedded sensor speed > 0           pace = 1000 / (speed * 60)
  2. GPS fixes on this and previous point speed from gps_distance.filter_speed()
  3. cumulative deltas                   pace = (Δt / 60) / (Δd / 1000)

GPS-derived speeds are noisier than sensor speeds. With pace smoothing
enabled, speed and pace get an extra moving-average pass over the
GPS-derived indices only; sensor-sourced values are never touched. A speed
flagged speed_from_gps (written by an earlier pass) is not a sensor value and
is derived from the fixes again.

Grade (%) and vertical speed (m/h) are only set when the delta they divide
by is strictly positive. They're never defaulted to 0.
"""
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from tracklab.analysis.series import Series, moving_average
from tracklab.models.activity import ActivityRecord
from tracklab.models.settings import GpsPaceSmoothingSettings
from tracklab.parsers.gps_distance import GpsFix, filter_speed

_KM_PER_MILE = 1.60934


@dataclass(frozen=True)
class PaceDerivation:
    """Per-record speed (m/s) and pace (min/km), plus which indices came from GPS."""

    speeds: Series
    paces: Series
    gps_indices: List[int]

    @property
    def is_gps_derived(self) -> bool:
        return bool(self.gps_indices)


def pace_from_speed(speed_ms: Optional[float]) -> Optional[float]:
    """Convert m/s to min/km. Returns None if speed is missing, zero or negative."""
    if speed_ms is None or speed_ms <= 0:
        return None
    pace = 1000.0 / (speed_ms * 60.0)
    return pace if math.isfinite(pace) else None


def pace_from_deltas(dt: float, dd: float) -> Optional[float]:
    if dt <= 0 or dd <= 0:
        return None
    pace = (dt / 60.0) / (dd / 1000.0)
    return pace if math.isfinite(pace) and pace > 0 else None


def _fix(record: ActivityRecord) -> Optional[GpsFix]:
    if record.lat is None or record.lon is None:
        return None
    return GpsFix(record.lat, record.lon, record.t, record.alt)


def _smooth_at(values: Series, indices: Sequence[int], window_points: int) -> Series:
    smoothed = moving_average([values[i] for i in indices], window_points)
    result = list(values)
    for i, value in zip(indices, smoothed):
        result[i] = value
    return result


def derive_pace(
    records: Sequence[ActivityRecord],
    smoothing: GpsPaceSmoothingSettings = GpsPaceSmoothingSettings(),
) -> PaceDerivation:
    """Compute speed and pace for every record using the source preference order."""
    speeds: Series = []
    paces: Series = []
    gps_indices: List[int] = []

    for i, record in enumerate(records):
        if record.speed is not None and record.speed > 0 and not record.speed_from_gps:
            speeds.append(record.speed)
            paces.append(pace_from_speed(record.speed))
            continue

        if i == 0:
            speeds.append(record.speed)
            paces.append(None)
            continue

        prev = records[i - 1]
        prev_fix, fix = _fix(prev), _fix(record)
        gps_speed = filter_speed(prev_fix, fix) if prev_fix and fix else None
        if gps_speed is not None and gps_speed > 0:
            speeds.append(gps_speed)
            paces.append(pace_from_speed(gps_speed))
            gps_indices.append(i)
            continue

        speeds.append(record.speed)
        paces.append(pace_from_deltas(record.t - prev.t, record.d - prev.d))

    if gps_indices and smoothing.enabled:
        speeds = _smooth_at(speeds, gps_indices, smoothing.window_points)
        paces = _smooth_at(paces, gps_indices, smoothing.window_points)

    return PaceDerivation(speeds=speeds, paces=paces, gps_indices=gps_indices)


def calculate_pace(
    records: Sequence[ActivityRecord],
    smoothing: GpsPaceSmoothingSettings = GpsPaceSmoothingSettings(),
) -> List[ActivityRecord]:
    """
    Return new records with `pace` set. Records whose pace came from GPS
    fixes also get the GPS-derived `speed`, flagged with speed_from_gps.
    """
    derivation = derive_pace(records, smoothing)
    gps = set(derivation.gps_indices)
    result = []
    for i, record in enumerate(records):
        if i in gps:
            result.append(replace(record, pace=derivation.paces[i], speed=derivation.speeds[i], speed_from_gps=True))
        else:
            result.append(replace(record, pace=derivation.paces[i]))
    return result


def calculate_grade_and_vertical_speed(records: Sequence[ActivityRecord]) -> List[ActivityRecord]:
    """Return new records with grade (%) and v_speed (m/h) from consecutive deltas."""
    result: List[ActivityRecord] = []
    for i, record in enumerate(records):
        grade: Optional[float] = None
        v_speed: Optional[float] = None
        if i > 0:
            prev = records[i - 1]
            if record.alt is not None and prev.alt is not None:
                rise = record.alt - prev.alt
                run = record.d - prev.d
                if run > 0 and math.isfinite(rise):
                    value = rise / run * 100
                    grade = value if math.isfinite(value) else None
                hours = (record.t - prev.t) / 3600
                if hours > 0 and math.isfinite(rise):
                    value = rise / hours
                    v_speed = value if math.isfinite(value) else None
        result.append(replace(record, grade=grade, v_speed=v_speed))
    return result


def format_pace(pace_min_per_km: float, unit: str = "km") -> str:
    """
    Format a pace (min/km) as a human-readable string.

    Args:
        pace_min_per_km: pace in minutes per kilometer
        unit: "km" for per-kilometer (default), "mi" for per-mile

    Returns:
        Formatted string like "5:17/km" or "8:30/mi"
    """
    total_seconds = pace_min_per_km * 60
    if unit == "mi":
        total_seconds *= _KM_PER_MILE
    minutes = int(total_seconds) // 60
    seconds = int(total_seconds) % 60
    return f"{minutes}:{seconds:02d}/{unit}"
