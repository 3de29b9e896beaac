"""
Series primitives shared by the processing pipeline and the transform engine.

All functions take a list of Optional[float] (None = gap) and return a new
list of the same length. Inputs are never modified.
"""
import math
from typing import List, Optional, Sequence, Tuple

from tracklab.models.settings import OutlierSettings, SmoothingSettings

Series = List[Optional[float]]


def _window_points(window_points: float) -> int:
    if not math.isfinite(window_points):
        return 1
    return max(1, int(math.floor(window_points)))


# ─── Outliers ────────────────────────────────────────────────────────────────


def handle_outliers(values: Sequence[Optional[float]], settings: OutlierSettings) -> Series:
    """
    Drop or clamp values whose percent change from the previous valid value
    exceeds settings.max_percent_change.

    Percent change is |delta| / max(|prev|, |current|, 1) * 100.
    A gap, or a dropped value, clears the comparison anchor. A clamped value
    becomes the new anchor.
    """
    result = list(values)
    if settings.mode == "off":
        return result

    max_percent = max(0.0, settings.max_percent_change)
    prev: Optional[float] = None
    for i, current in enumerate(result):
        if current is None:
            prev = None
            continue
        if prev is None:
            prev = current
            continue

        delta = current - prev
        denom = max(abs(prev), abs(current), 1.0)
        if abs(delta) / denom * 100 <= max_percent:
            prev = current
            continue

        if settings.mode == "drop":
            result[i] = None
            prev = None
        else:
            clamped = prev + math.copysign(max_percent / 100 * denom, delta)
            result[i] = clamped
            prev = clamped
    return result


# ─── Smoothing ───────────────────────────────────────────────────────────────


def moving_average(values: Sequence[Optional[float]], window_points: float) -> Series:
    """
    Centered moving average over `window_points` samples.

    Gaps are skipped inside the window; a position is None only when its
    whole window is empty.
    """
    w = _window_points(window_points)
    if w <= 1:
        return list(values)

    half = w // 2
    n = len(values)
    result: Series = []
    for i in range(n):
        window = [v for v in values[max(0, i - half):min(n, i + half + 1)] if v is not None]
        result.append(sum(window) / len(window) if window else None)
    return result


def exponential_moving_average(values: Sequence[Optional[float]], window_points: float) -> Series:
    """
    EMA with alpha = 2 / (window + 1).

    A gap repeats the last EMA value. The first valid value after a gap
    seeds a fresh average instead of blending with the stale one.
    """
    w = _window_points(window_points)
    if w <= 1:
        return list(values)

    alpha = 2.0 / (w + 1)
    result: Series = []
    ema: Optional[float] = None
    after_gap = True
    for v in values:
        if v is None:
            result.append(ema)
            after_gap = True
            continue
        ema = v if after_gap or ema is None else alpha * v + (1 - alpha) * ema
        after_gap = False
        result.append(ema)
    return result


def smooth(values: Sequence[Optional[float]], settings: SmoothingSettings) -> Series:
    if settings.mode == "movingAverage":
        return moving_average(values, settings.window_points)
    if settings.mode == "ema":
        return exponential_moving_average(values, settings.window_points)
    return list(values)


def smooth_gps_points(
    points: Sequence[Tuple[float, float]],
    window_points: float,
) -> List[Tuple[float, float]]:
    """Moving-average smoothing of (lat, lon) pairs, each axis independently."""
    if _window_points(window_points) <= 1:
        return list(points)
    lats = moving_average([p[0] for p in points], window_points)
    lons = moving_average([p[1] for p in points], window_points)
    return [
        (lat if lat is not None else p[0], lon if lon is not None else p[1])
        for p, lat, lon in zip(points, lats, lons)
    ]
