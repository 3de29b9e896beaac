"""
Processing pipeline: raw record timeline → cleaned, enriched timeline.

Every stage is a free function (records, settings) -> new records. The
order in process_activity_records() is fixed:

  1. outlier handling on hr/pwr/cad/alt/speed/temp
  2. invalid-record removal
  3. GPS coordinate smoothing
  4. pace derivation (plus GPS-only pace smoothing)
  5. outlier handling on pace
  6. metric smoothing, pace included
  7. scaling, pace included
  8. grade and vertical speed
  9. time offset, floored at t = 0

Pace must exist before step 5/6, and grade/vertical speed must be computed
from the smoothed, scaled altitude, so reordering changes results.
"""
import logging
import math
from dataclasses import replace
from typing import Iterable, List, Sequence

from tracklab.analysis.derived import calculate_grade_and_vertical_speed, calculate_pace
from tracklab.analysis.series import handle_outliers, smooth, smooth_gps_points
from tracklab.models.activity import BASE_METRIC_FIELDS, Activity, ActivityRecord
from tracklab.models.settings import (
    GpsSmoothingSettings,
    OutlierSettings,
    ProcessingSettings,
    SmoothingSettings,
)

logger = logging.getLogger(__name__)

METRIC_FIELDS_WITH_PACE = BASE_METRIC_FIELDS + ("pace",)


def _field_values(records: Sequence[ActivityRecord], name: str) -> List:
    values = []
    for record in records:
        value = getattr(record, name)
        values.append(value if value is not None and math.isfinite(value) else None)
    return values


def _with_field_values(
    records: Sequence[ActivityRecord],
    name: str,
    values: Sequence,
) -> List[ActivityRecord]:
    return [
        record if getattr(record, name) == value else replace(record, **{name: value})
        for record, value in zip(records, values)
    ]


def apply_outlier_handling(
    records: Sequence[ActivityRecord],
    settings: OutlierSettings,
    fields: Iterable[str] = BASE_METRIC_FIELDS,
) -> List[ActivityRecord]:
    result = list(records)
    if settings.mode == "off" or not result:
        return result
    for name in fields:
        result = _with_field_values(result, name, handle_outliers(_field_values(result, name), settings))
    return result


def _is_valid(record: ActivityRecord) -> bool:
    if not isinstance(record.t, (int, float)) or not math.isfinite(record.t):
        return False
    if not isinstance(record.d, (int, float)) or not math.isfinite(record.d):
        return False
    if record.lat is not None and not (math.isfinite(record.lat) and -90 <= record.lat <= 90):
        return False
    if record.lon is not None and not (math.isfinite(record.lon) and -180 <= record.lon <= 180):
        return False
    return True


def remove_invalid_records(records: Sequence[ActivityRecord]) -> List[ActivityRecord]:
    """Drop records with non-finite t/d or out-of-range coordinates."""
    kept = [record for record in records if _is_valid(record)]
    if len(kept) != len(records):
        logger.debug("Removed %d invalid record(s)", len(records) - len(kept))
    return kept


def apply_gps_smoothing(
    records: Sequence[ActivityRecord],
    settings: GpsSmoothingSettings,
) -> List[ActivityRecord]:
    """Moving-average smoothing of coordinates, over records that have a fix only."""
    result = list(records)
    if not settings.enabled or not result:
        return result

    indices = [i for i, record in enumerate(result) if record.has_position]
    if not indices:
        return result
    smoothed = smooth_gps_points([(result[i].lat, result[i].lon) for i in indices], settings.window_points)
    for i, (lat, lon) in zip(indices, smoothed):
        result[i] = replace(result[i], lat=lat, lon=lon)
    return result


def apply_smoothing(
    records: Sequence[ActivityRecord],
    settings: SmoothingSettings,
    fields: Iterable[str] = METRIC_FIELDS_WITH_PACE,
) -> List[ActivityRecord]:
    result = list(records)
    if settings.mode == "off" or not result:
        return result
    for name in fields:
        result = _with_field_values(result, name, smooth(_field_values(result, name), settings))
    return result


def apply_scaling(
    records: Sequence[ActivityRecord],
    scale: float,
    fields: Iterable[str] = METRIC_FIELDS_WITH_PACE,
) -> List[ActivityRecord]:
    """Multiply metric fields by `scale`. t and d are never scaled."""
    if scale == 1 or not math.isfinite(scale):
        return list(records)
    fields = tuple(fields)
    result = []
    for record in records:
        changes = {
            name: getattr(record, name) * scale
            for name in fields
            if getattr(record, name) is not None
        }
        result.append(replace(record, **changes) if changes else record)
    return result


def apply_time_offset(records: Sequence[ActivityRecord], offset: float) -> List[ActivityRecord]:
    """Shift every t by `offset` seconds, never below 0."""
    if offset == 0 or not math.isfinite(offset):
        return list(records)
    return [replace(record, t=max(0.0, record.t + offset)) for record in records]


def process_activity_records(
    records: Sequence[ActivityRecord],
    settings: ProcessingSettings = ProcessingSettings(),
) -> List[ActivityRecord]:
    """Run the full pipeline over a raw record timeline and return new records."""
    if not records:
        return []

    processed = apply_outlier_handling(records, settings.outliers, BASE_METRIC_FIELDS)
    processed = remove_invalid_records(processed)
    processed = apply_gps_smoothing(processed, settings.gps_smoothing)
    processed = calculate_pace(processed, settings.gps_pace_smoothing)
    processed = apply_outlier_handling(processed, settings.outliers, ("pace",))
    processed = apply_smoothing(processed, settings.smoothing, METRIC_FIELDS_WITH_PACE)
    processed = apply_scaling(processed, settings.scale, METRIC_FIELDS_WITH_PACE)
    processed = calculate_grade_and_vertical_speed(processed)
    processed = apply_time_offset(processed, settings.offset)
    return processed


def process_activity(activity: Activity, settings: ProcessingSettings = ProcessingSettings()) -> Activity:
    """
    Process an activity's records with its own scale and offset.

    The activity's scale/offset override the ones in `settings`. The input
    activity is left untouched. The result is marked processed, so charting
    and windowing don't apply its scale and offset a second time.
    """
    run_settings = settings.model_copy(update={"scale": activity.scale, "offset": activity.offset})
    records = process_activity_records(activity.records, run_settings)
    return replace(activity, records=records, processed=True)
