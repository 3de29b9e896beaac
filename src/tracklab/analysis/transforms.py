"""
Series transform engine: chart series, cumulative accumulation, pivot zones.

Works on processed activities and produces display-ready data:

  build_transformed_chart_data()       [x, y] pairs for one metric
  build_pivot_zones()                  time-in-zone for one activity
  build_pivot_zones_for_activities()   time-in-zone on one shared bucket axis
  calculate_delta_data()               compare-minus-base series of two activities

Memoization is explicit: pass a TransformCache to reuse results. A cache
entry remembers the record list it was computed from and is ignored when
the activity's records have since been replaced, so a stale entry can never
be returned. Dropping or clearing a cache never changes results.
"""
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from tracklab.analysis.derived import pace_from_deltas
from tracklab.analysis.xvalues import calculate_x_value, find_nearest_index
from tracklab.models.activity import METRIC_TYPES, Activity, ActivityRecord
from tracklab.models.settings import CumulativeSettings, PivotZoneSettings, TransformSettings

ChartPoint = Tuple[float, Optional[float]]

_MIN_ZONE_COUNT = 5
_MS_TO_KMH = 3.6
_DELTA_MAX_X_DIFF = 1000.0


class TransformCache:
    """
    Bounded LRU cache owned by the caller.

    Each entry keeps the record lists it was computed from; a lookup only
    hits when the caller passes those very same list objects.
    """

    def __init__(self, max_entries: int = 256):
        self.max_entries = max(1, max_entries)
        self._entries: "OrderedDict[Hashable, Tuple[Tuple[Any, ...], Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable, sources: Sequence[Any]) -> Tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        pinned, value = entry
        if len(pinned) != len(sources) or any(a is not b for a, b in zip(pinned, sources)):
            return False, None
        self._entries.move_to_end(key)
        return True, value

    def put(self, key: Hashable, sources: Sequence[Any], value: Any) -> None:
        self._entries[key] = (tuple(sources), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


# ─── Metric values ───────────────────────────────────────────────────────────


def metric_value(records: Sequence[ActivityRecord], index: int, metric: str) -> Optional[float]:
    """
    A record's value for a metric, as charted.

    Pace falls back to consecutive Δt/Δd when the record has none stored.
    Speed is reported in km/h.
    """
    record = records[index]
    if metric == "pace":
        if record.pace is not None:
            return record.pace
        if index == 0:
            return None
        prev = records[index - 1]
        return pace_from_deltas(record.t - prev.t, record.d - prev.d)
    value = record.get(metric)
    if value is None or not math.isfinite(value):
        return None
    return value * _MS_TO_KMH if metric == "speed" else value


def count_records_with_metric(activity: Activity, metric: str) -> int:
    records = activity.records
    return sum(1 for i in range(len(records)) if metric_value(records, i, metric) is not None)


def activity_has_metric(activity: Activity, metric: str) -> bool:
    records = activity.records
    return any(metric_value(records, i, metric) is not None for i in range(len(records)))


def available_metrics(activities: Sequence[Activity]) -> List[str]:
    """Canonical metrics present in at least one activity, in canonical order."""
    return [m for m in METRIC_TYPES if any(activity_has_metric(a, m) for a in activities)]


# ─── Cumulative ──────────────────────────────────────────────────────────────


def apply_cumulative(values: Sequence[Optional[float]], settings: CumulativeSettings) -> List[Optional[float]]:
    """
    Running accumulation of a series.

    sum               running total; a gap carries the total forward
    positiveDeltaSum  adds only increases between consecutive valid values
    """
    if settings.mode == "off":
        return list(values)

    result: List[Optional[float]] = []
    total = 0.0
    prev: Optional[float] = None
    for v in values:
        if v is None:
            result.append(total)
            continue
        if settings.mode == "sum":
            total += v
        elif prev is not None and v > prev:
            total += v - prev
        prev = v
        result.append(total)
    return result


# ─── Chart data ──────────────────────────────────────────────────────────────


def build_transformed_chart_data(
    activity: Activity,
    metric: str,
    axis: str,
    settings: TransformSettings = TransformSettings(),
    cache: Optional[TransformCache] = None,
) -> List[ChartPoint]:
    """
    [x, y] pairs for one metric: cumulative mode applied, then activity scale.

    A processed activity already carries its scale and offset in the records,
    so neither is applied again.
    """
    key = (
        "chart", activity.id, metric, axis, activity.pending_offset, activity.pending_scale,
        activity.start_time, settings.cumulative.mode,
    )
    if cache is not None:
        hit, value = cache.get(key, [activity.records])
        if hit:
            return value

    records = activity.records
    xs = [calculate_x_value(record, activity, axis) for record in records]
    ys = apply_cumulative([metric_value(records, i, metric) for i in range(len(records))], settings.cumulative)
    scale = activity.pending_scale if math.isfinite(activity.pending_scale) else 1.0
    if scale != 1:
        ys = [None if y is None else y * scale for y in ys]
    result = list(zip(xs, ys))

    if cache is not None:
        cache.put(key, [activity.records], result)
    return result


# ─── Pivot zones ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PivotZoneResult:
    bin_centers: List[float]
    totals_seconds: List[float]


@dataclass(frozen=True)
class PivotZonesMultiResult:
    bucket_edges: List[float]
    bucket_labels: List[str]
    bin_centers: List[float]
    totals_seconds_by_activity_id: Dict[str, List[float]]


def _zone_count(settings: PivotZoneSettings) -> int:
    return max(_MIN_ZONE_COUNT, int(math.floor(settings.zone_count)))


def _segments(activity: Activity, metric: str) -> List[Tuple[float, float]]:
    """(value, seconds until next record) for every record with a value and positive dt."""
    records = activity.records
    segments = []
    for i in range(len(records) - 1):
        value = metric_value(records, i, metric)
        if value is None:
            continue
        dt = records[i + 1].t - records[i].t
        if math.isfinite(dt) and dt > 0:
            segments.append((value, dt))
    return segments


def quantile_edges(sorted_values: Sequence[float], zone_count: int) -> List[float]:
    """Linear-interpolated quantile edges, forced non-decreasing."""
    edges = [float(e) for e in np.quantile(sorted_values, np.linspace(0.0, 1.0, zone_count + 1))]
    for i in range(1, len(edges)):
        edges[i] = max(edges[i], edges[i - 1])
    return edges


def equal_range_edges(lo: float, hi: float, zone_count: int) -> List[float]:
    step = (hi - lo) / zone_count
    return [lo + step * i for i in range(zone_count + 1)]


def nice_step(raw_step: float) -> float:
    """Snap a bucket size up to 1, 2, 5 or 10 times a power of ten."""
    exponent = math.floor(math.log10(raw_step))
    base = 10.0 ** exponent
    fraction = raw_step / base
    for nice in (1.0, 2.0, 5.0):
        if fraction <= nice:
            return nice * base
    return 10.0 * base


def nice_edges(lo: float, hi: float, zone_count: int) -> List[float]:
    step = nice_step((hi - lo) / zone_count)
    start = math.floor(lo / step) * step
    count = max(1, math.ceil((hi - start) / step - 1e-9))
    return [start + step * i for i in range(count + 1)]


def zone_index(value: float, edges: Sequence[float]) -> int:
    """Bucket of `value`: [lo, hi) for inner buckets, [lo, hi] for the last one."""
    last = len(edges) - 2
    for i in range(last + 1):
        lo, hi = edges[i], edges[i + 1]
        if value >= lo and (value < hi or (i == last and value <= hi)):
            return i
    return last


def _totals(segments: Sequence[Tuple[float, float]], edges: Sequence[float]) -> List[float]:
    totals = [0.0] * (len(edges) - 1)
    for value, dt in segments:
        totals[zone_index(value, edges)] += dt
    return totals


def _centers(edges: Sequence[float]) -> List[float]:
    return [(a + b) / 2 for a, b in zip(edges, edges[1:])]


def _edges_for(values: List[float], settings: PivotZoneSettings, shared_axis: bool) -> Optional[List[float]]:
    values.sort()
    lo, hi = values[0], values[-1]
    if not (math.isfinite(lo) and math.isfinite(hi)) or lo == hi:
        return None
    count = _zone_count(settings)
    if settings.strategy == "quantiles":
        return quantile_edges(values, count)
    if shared_axis:
        return nice_edges(lo, hi, count)
    return equal_range_edges(lo, hi, count)


def build_pivot_zones(
    activity: Activity,
    metric: str,
    settings: PivotZoneSettings = PivotZoneSettings(),
) -> Optional[PivotZoneResult]:
    """
    Time spent per value bucket for one activity.

    Returns None when there are no timed samples or every value is identical.
    """
    segments = _segments(activity, metric)
    if not segments:
        return None
    edges = _edges_for([v for v, _ in segments], settings, shared_axis=False)
    if edges is None:
        return None
    return PivotZoneResult(bin_centers=_centers(edges), totals_seconds=_totals(segments, edges))


def _format_edge(value: float, step: float) -> str:
    decimals = max(0, -math.floor(math.log10(step))) if step > 0 else 0
    return f"{value:.{decimals}f}"


def bucket_labels(edges: Sequence[float]) -> List[str]:
    steps = [b - a for a, b in zip(edges, edges[1:]) if b > a]
    step = min(steps) if steps else 1.0
    return [f"{_format_edge(a, step)}-{_format_edge(b, step)}" for a, b in zip(edges, edges[1:])]


def build_pivot_zones_for_activities(
    activities: Sequence[Activity],
    metric: str,
    settings: PivotZoneSettings = PivotZoneSettings(),
    cache: Optional[TransformCache] = None,
) -> Optional[PivotZonesMultiResult]:
    """
    Time-in-bucket for several activities against one shared set of bucket edges.

    equalRange buckets are snapped to round sizes (1/2/5/10 x 10^k) so the
    axis reads naturally; quantile buckets come from the pooled values.
    """
    ordered = sorted(activities, key=lambda a: a.id)
    key = ("pivot", tuple(a.id for a in ordered), metric, settings.strategy, settings.zone_count)
    sources = [a.records for a in ordered]
    if cache is not None:
        hit, value = cache.get(key, sources)
        if hit:
            return value

    per_activity = {a.id: _segments(a, metric) for a in activities}
    per_activity = {aid: segs for aid, segs in per_activity.items() if segs}
    pooled = [v for segs in per_activity.values() for v, _ in segs]
    edges = _edges_for(pooled, settings, shared_axis=True) if pooled else None

    result: Optional[PivotZonesMultiResult] = None
    if edges is not None:
        result = PivotZonesMultiResult(
            bucket_edges=edges,
            bucket_labels=bucket_labels(edges),
            bin_centers=_centers(edges),
            totals_seconds_by_activity_id={aid: _totals(segs, edges) for aid, segs in per_activity.items()},
        )

    if cache is not None:
        cache.put(key, sources, result)
    return result


# ─── Delta series ────────────────────────────────────────────────────────────


def _nearest_value(xs: Sequence[float], lookup: Dict[float, float], target: float) -> Optional[float]:
    if target in lookup:
        return lookup[target]
    i = find_nearest_index(xs, target)
    if i < 0 or abs(xs[i] - target) >= _DELTA_MAX_X_DIFF:
        return None
    return lookup[xs[i]]


def calculate_delta_data(
    base: Sequence[ChartPoint],
    compare: Sequence[ChartPoint],
    mode: str = "delta-only",
) -> List[Tuple[float, float]]:
    """
    compare minus base at every x present in either series.

    Missing x-values are matched to the nearest x on that side (within 1000
    axis units). In "overlay" mode the delta is divided by 10 so it fits
    beside the original series.
    """
    base_map = {x: y for x, y in base if x is not None and y is not None}
    compare_map = {x: y for x, y in compare if x is not None and y is not None}
    base_xs, compare_xs = sorted(base_map), sorted(compare_map)
    divisor = 10.0 if mode == "overlay" else 1.0

    result = []
    for x in sorted(set(base_map) | set(compare_map)):
        b = _nearest_value(base_xs, base_map, x)
        c = _nearest_value(compare_xs, compare_map, x)
        if b is not None and c is not None:
            result.append((x, (c - b) / divisor))
    return result
