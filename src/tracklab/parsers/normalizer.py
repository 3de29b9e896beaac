"""
Point normalizer: RawPoint list → ActivityRecord timeline.

Shared by all three format parsers. Responsibilities:

  elapsed time   explicit timestamps are measured from the reference time.
                 A point without a timestamp is extrapolated from the previous
                 point's timestamp plus the last known sampling interval
                 (1 s when only one earlier timestamp exists). Without any
                 nearby timestamp the point's index is used.

  distance       device-reported cumulative distance wins whenever present and
                 is rebased so the first reported value becomes 0. Otherwise
                 the filtered GPS delta to the previous fix is accumulated.

Both t and d are floored at 0.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from tracklab.models.activity import ActivityRecord, Lap, ParseResult, RawPoint
from tracklab.models.settings import GpsDistanceOptions
from tracklab.parsers.gps_distance import DEFAULT_GPS_DISTANCE_OPTIONS, GpsFix, filter_distance_delta

logger = logging.getLogger(__name__)


class MalformedInputError(Exception):
    """Raised when an activity file cannot be decoded or holds no usable track points."""


def _seconds_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds()


def _elapsed_time(index: int, points: Sequence[RawPoint], reference: Optional[datetime]) -> float:
    point = points[index]
    if point.time is not None and reference is not None:
        return _seconds_between(point.time, reference)

    if index > 0 and reference is not None:
        prev = points[index - 1]
        if prev.time is not None:
            interval = 1.0
            if index > 1 and points[index - 2].time is not None:
                interval = _seconds_between(prev.time, points[index - 2].time)
            return _seconds_between(prev.time, reference) + interval

    return float(index)


def points_to_records(
    points: Sequence[RawPoint],
    options: GpsDistanceOptions = DEFAULT_GPS_DISTANCE_OPTIONS,
) -> List[ActivityRecord]:
    """Convert decoded points into records with elapsed time and cumulative distance."""
    reference = next((p.time for p in points if p.time is not None), None)

    records: List[ActivityRecord] = []
    cumulative = 0.0
    start_distance: Optional[float] = None

    for i, point in enumerate(points):
        elapsed = _elapsed_time(i, points, reference)

        if point.distance is not None:
            if start_distance is None:
                start_distance = point.distance
            cumulative = point.distance - start_distance
        elif i > 0:
            prev = points[i - 1]
            if (
                prev.lat is not None and prev.lon is not None
                and point.lat is not None and point.lon is not None
            ):
                prev_t = records[-1].t if records else max(0.0, elapsed - 1)
                cumulative += filter_distance_delta(
                    GpsFix(prev.lat, prev.lon, prev_t, prev.alt),
                    GpsFix(point.lat, point.lon, elapsed, point.alt),
                    options,
                )

        records.append(ActivityRecord(
            t=max(0.0, elapsed),
            d=max(0.0, cumulative),
            lat=point.lat,
            lon=point.lon,
            alt=point.alt,
            hr=point.hr,
            cad=point.cad,
            pwr=point.pwr,
            speed=point.speed,
            temp=point.temp,
            extras=dict(point.extras),
        ))

    return records


def build_parse_result(
    points: Sequence[RawPoint],
    options: Optional[GpsDistanceOptions] = None,
    calories: Optional[float] = None,
    sport: Optional[str] = None,
    laps: Optional[List[Lap]] = None,
) -> ParseResult:
    """
    Normalize decoded points into a ParseResult.

    Raises:
        MalformedInputError: if `points` is empty
    """
    if not points:
        raise MalformedInputError("No valid track points found")

    records = points_to_records(points, options or DEFAULT_GPS_DISTANCE_OPTIONS)
    logger.debug("Normalized %d points (final distance %.1f m)", len(records), records[-1].d)
    return ParseResult(
        records=records,
        start_time=points[0].time,
        calories=calories,
        sport=sport,
        laps=list(laps or []),
    )
