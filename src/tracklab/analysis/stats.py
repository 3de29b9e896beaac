"""
Activity statistics computed from a processed record timeline.

Sparse data never raises: a missing channel yields count=0 and None for
min/max/avg, and elevation gain/loss is None when no altitude exists at all.

Pace is recomputed from the records instead of averaging per-record pace:
the average is total time over total distance (a mean of rates would be
biased), while min/max come from the per-sample series. For GPS-derived pace
with more than 10 samples, min/max are the 5th/95th percentiles so residual
GPS spikes don't define the extremes.
"""
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from tracklab.analysis.derived import derive_pace
from tracklab.models.activity import Activity, ActivityRecord

# Metrics reported for every activity, in display order (pace handled separately).
STAT_METRICS = ("hr", "alt", "pwr", "cad", "speed", "temp", "grade", "v_speed")

_PERCENTILE_MIN_SAMPLES = 10


@dataclass(frozen=True)
class MetricStats:
    count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None


@dataclass(frozen=True)
class ActivityStats:
    duration_seconds: float
    distance_meters: float
    elevation_gain_meters: Optional[float]
    elevation_loss_meters: Optional[float]
    calories: Optional[float] = None
    metrics: Dict[str, MetricStats] = field(default_factory=dict)


def metric_stats(values: Iterable[Optional[float]]) -> MetricStats:
    present = [v for v in values if v is not None and math.isfinite(v)]
    if not present:
        return MetricStats()
    return MetricStats(
        count=len(present),
        min=min(present),
        max=max(present),
        avg=sum(present) / len(present),
    )


def duration_seconds(records: Sequence[ActivityRecord]) -> float:
    if len(records) < 2:
        return 0.0
    return max(0.0, records[-1].t - records[0].t)


def distance_meters(records: Sequence[ActivityRecord]) -> float:
    if len(records) < 2:
        return 0.0
    return max(0.0, records[-1].d - records[0].d)


def _altitude_deltas(records: Sequence[ActivityRecord]) -> Optional[List[float]]:
    altitudes = [r.alt for r in records if r.alt is not None]
    if not altitudes:
        return None
    return [b - a for a, b in zip(altitudes, altitudes[1:])]


def elevation_gain(records: Sequence[ActivityRecord]) -> Optional[float]:
    deltas = _altitude_deltas(records)
    return None if deltas is None else sum(d for d in deltas if d > 0)


def elevation_loss(records: Sequence[ActivityRecord]) -> Optional[float]:
    deltas = _altitude_deltas(records)
    return None if deltas is None else sum(-d for d in deltas if d < 0)


def pace_stats(records: Sequence[ActivityRecord]) -> MetricStats:
    """Pace statistics in min/km (see module docstring for the method)."""
    derivation = derive_pace(records)
    samples = [p for p in derivation.paces if p is not None and math.isfinite(p) and p > 0]
    if not samples:
        return MetricStats()

    total_time = duration_seconds(records)
    total_distance = distance_meters(records)
    avg = (total_time / 60) / (total_distance / 1000) if total_time > 0 and total_distance > 0 else None

    if derivation.is_gps_derived and len(samples) > _PERCENTILE_MIN_SAMPLES:
        low, high = np.percentile(samples, [5, 95])
        return MetricStats(count=len(samples), min=float(low), max=float(high), avg=avg)
    return MetricStats(count=len(samples), min=min(samples), max=max(samples), avg=avg)


def _extra_field_names(records: Sequence[ActivityRecord]) -> List[str]:
    names: Dict[str, None] = {}
    for record in records:
        for name in record.extras:
            names.setdefault(name, None)
    return list(names)


def compute_stats_from_records(records: Sequence[ActivityRecord]) -> ActivityStats:
    metrics: Dict[str, MetricStats] = {
        name: metric_stats(getattr(r, name) for r in records) for name in STAT_METRICS
    }
    metrics["pace"] = pace_stats(records)
    for name in _extra_field_names(records):
        metrics.setdefault(name, metric_stats(r.extras.get(name) for r in records))

    return ActivityStats(
        duration_seconds=duration_seconds(records),
        distance_meters=distance_meters(records),
        elevation_gain_meters=elevation_gain(records),
        elevation_loss_meters=elevation_loss(records),
        metrics=metrics,
    )


def compute_activity_stats(activity: Activity) -> ActivityStats:
    """Record statistics plus the activity's reported calories."""
    return replace(compute_stats_from_records(activity.records), calories=activity.calories)
