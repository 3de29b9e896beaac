"""
Power metrics: Normalized Power and best average power over a time window.

Both functions look only at records with a power sample and return None
when there are fewer than two of them.
"""
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tracklab.models.activity import ActivityRecord

_NP_WINDOW_SECONDS = 30.0


def _power_samples(records: Sequence[ActivityRecord]) -> List[Tuple[float, float]]:
    return [
        (record.t, record.pwr)
        for record in records
        if record.pwr is not None and math.isfinite(record.pwr)
    ]


def _forward_window_averages(samples: List[Tuple[float, float]], window_seconds: float) -> List[float]:
    """Average of every sample within [t_i, t_i + window] for each start sample i."""
    averages: List[float] = []
    end = 0
    running = 0.0
    for start, (t_start, _) in enumerate(samples):
        end = max(end, start)
        while end < len(samples) and samples[end][0] <= t_start + window_seconds:
            running += samples[end][1]
            end += 1
        count = end - start
        if count > 0:
            averages.append(running / count)
        running -= samples[start][1]
    return averages


def best_time_power(records: Sequence[ActivityRecord], window_seconds: float) -> Optional[float]:
    """Highest average power over any `window_seconds` span, in watts."""
    samples = _power_samples(records)
    if len(samples) < 2 or window_seconds <= 0:
        return None
    averages = _forward_window_averages(samples, window_seconds)
    return max(averages) if averages else None


def normalized_power(records: Sequence[ActivityRecord]) -> Optional[float]:
    """
    Normalized Power: 30 s rolling averages, raised to the 4th power,
    averaged, then 4th-rooted.
    """
    samples = _power_samples(records)
    if len(samples) < 2:
        return None
    averages = _forward_window_averages(samples, _NP_WINDOW_SECONDS)
    if not averages:
        return None
    mean_fourth = sum(avg ** 4 for avg in averages) / len(averages)
    np_value = mean_fourth ** 0.25
    return np_value if math.isfinite(np_value) and np_value > 0 else None


def has_power(records: Iterable[ActivityRecord]) -> bool:
    return any(record.pwr is not None for record in records)


def power_metrics(
    records: Sequence[ActivityRecord],
    windows_minutes: Iterable[int] = (12, 20),
) -> Dict[str, Optional[float]]:
    """
    Normalized power plus best N-minute power for each window.

    Returns:
        {} when the activity has no power at all, otherwise keys
        "normalized_power" and "best_<N>min_power".
    """
    if not has_power(records):
        return {}
    metrics: Dict[str, Optional[float]] = {"normalized_power": normalized_power(records)}
    for minutes in windows_minutes:
        metrics[f"best_{minutes}min_power"] = best_time_power(records, minutes * 60)
    return metrics
