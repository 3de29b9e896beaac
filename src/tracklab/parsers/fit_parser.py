"""
FIT parser: converts .fit binary files into a ParseResult.

Decoding is done by fitparse. One RawPoint is built per 'record' message;
'lap' and 'session' messages supply lap summaries, total calories and sport.

Field mapping from FIT record to RawPoint:
  FIT field                     → RawPoint field
  timestamp                     → time (records without one are skipped)
  position_lat / position_long  → lat / lon (degrees or semicircles, see below)
  enhanced_altitude / altitude  → alt (meters)
  heart_rate                    → hr (bpm)
  cadence                       → cad
  power                         → pwr (watts)
  enhanced_speed / speed        → speed (m/s, negative ignored)
  temperature                   → temp (Celsius)
  distance                      → distance (cumulative, device-reported)
  stance_time                   → extras["stance_time_ms"]
  vertical_oscillation          → extras["vertical_oscillation_mm"]
  step_length                   → extras["step_length_cm"] (mm / 10)
  other numeric fields          → extras[<field name>]

Positions arrive either already in degrees or as semicircles. A pair that is
valid as degrees is taken as-is; otherwise it's converted from semicircles.
(0, 0) means "no fix". Records without a usable position are skipped.
"""
import io
import logging
import math
from bisect import bisect_left, bisect_right
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import fitparse

from tracklab.models.activity import Lap, ParseResult, RawPoint
from tracklab.models.settings import GpsDistanceOptions
from tracklab.parsers.field_mappers import apply_field_mapping, get_field_mapper
from tracklab.parsers.normalizer import MalformedInputError, build_parse_result

logger = logging.getLogger(__name__)

# Semicircle → degree conversion constant
# FIT stores lat/lon as 32-bit signed integers where 2^31 semicircles = 180°
_SEMICIRCLE_TO_DEGREES = 180.0 / (2**31)

_MAPPER = get_field_mapper("fit")

# Handled explicitly below, never passed to the field mapper
_STRUCTURAL_FIELDS = frozenset({"timestamp", "position_lat", "position_long", "distance"})


def _is_valid_degrees(lat: float, lon: float) -> bool:
    return abs(lat) <= 90 and abs(lon) <= 180


def normalize_fit_position(raw_lat: Any, raw_lon: Any) -> Optional[Tuple[float, float]]:
    """
    Convert a FIT position pair to degrees.

    Returns:
        (lat, lon) in degrees, or None when the pair is missing, non-finite,
        (0, 0), or out of range even after semicircle conversion.
    """
    if raw_lat is None or raw_lon is None:
        return None
    try:
        lat, lon = float(raw_lat), float(raw_lon)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    if lat == 0 and lon == 0:
        return None

    if not _is_valid_degrees(lat, lon):
        lat *= _SEMICIRCLE_TO_DEGREES
        lon *= _SEMICIRCLE_TO_DEGREES
        if not _is_valid_degrees(lat, lon):
            return None
        if abs(lat) < 1e-9 and abs(lon) < 1e-9:
            return None
    return lat, lon


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _point_from_record(values: Dict[str, Any]) -> Optional[RawPoint]:
    timestamp = values.get("timestamp")
    if not isinstance(timestamp, datetime):
        return None
    position = normalize_fit_position(values.get("position_lat"), values.get("position_long"))
    if position is None:
        return None

    slots: Dict[str, float] = {}
    extras: Dict[str, float] = {}
    # enhanced_* fields carry more precision than their plain twins, so map them first
    names = sorted(values, key=lambda name: not name.startswith("enhanced_"))
    for name in names:
        if name in _STRUCTURAL_FIELDS or name.startswith("unknown_"):
            continue
        if name in ("speed", "enhanced_speed"):
            speed = _number(values[name])
            if speed is None or speed < 0:
                continue
        apply_field_mapping(_MAPPER, name, values[name], slots, extras)

    return RawPoint(
        lat=position[0],
        lon=position[1],
        alt=slots.get("alt"),
        time=timestamp,
        hr=slots.get("hr"),
        cad=slots.get("cad"),
        pwr=slots.get("pwr"),
        speed=slots.get("speed"),
        temp=slots.get("temp"),
        distance=_number(values.get("distance")),
        extras=extras,
    )


def _positive(value: Any) -> Optional[float]:
    number = _number(value)
    return number if number is not None and number > 0 else None


def _lap_index_range(
    record_times: List[datetime],
    start: datetime,
    total_seconds: Optional[float],
) -> Optional[Tuple[int, int]]:
    first = bisect_left(record_times, start)
    if first >= len(record_times):
        return None
    if total_seconds is None:
        return first, len(record_times) - 1
    end_time = start.timestamp() + total_seconds
    last = bisect_right([t.timestamp() for t in record_times], end_time) - 1
    return first, max(first, last)


def _build_laps(lap_messages: List[Dict[str, Any]], record_times: List[datetime]) -> List[Lap]:
    laps: List[Lap] = []
    for values in lap_messages:
        start = values.get("start_time") or values.get("timestamp")
        if not isinstance(start, datetime):
            continue
        total = _positive(values.get("total_elapsed_time"))
        index_range = _lap_index_range(record_times, start, total)
        if index_range is None:
            continue
        intensity = values.get("intensity")
        trigger = values.get("lap_trigger")
        laps.append(Lap(
            start_index=index_range[0],
            end_index=index_range[1],
            start_time=start,
            total_time_seconds=total,
            distance_meters=_positive(values.get("total_distance")),
            calories=_positive(values.get("total_calories")),
            avg_hr=_positive(values.get("avg_heart_rate")),
            max_hr=_positive(values.get("max_heart_rate")),
            avg_cadence=_positive(values.get("avg_cadence")),
            max_cadence=_positive(values.get("max_cadence")),
            avg_speed=_positive(values.get("enhanced_avg_speed") or values.get("avg_speed")),
            max_speed=_positive(values.get("enhanced_max_speed") or values.get("max_speed")),
            intensity=str(intensity).lower() if intensity is not None else None,
            trigger_method=str(trigger) if trigger is not None else None,
        ))
    return laps


def parse_fit(content: bytes, options: Optional[GpsDistanceOptions] = None) -> ParseResult:
    """
    Parse FIT bytes into a ParseResult.

    Args:
        content: raw .fit file bytes
        options: GPS distance filter thresholds used when records carry no distance

    Returns:
        ParseResult with records, start time, laps, and calories/sport when the
        file has a session summary.

    Raises:
        MalformedInputError: if the bytes can't be decoded or contain no
            timestamped, positioned record messages
    """
    try:
        fit = fitparse.FitFile(io.BytesIO(content))
        messages = [
            (message.name, message.get_values())
            for message in fit.get_messages(["record", "lap", "session"])
        ]
    except fitparse.FitParseError as exc:
        raise MalformedInputError(f"Failed to parse FIT file: {exc}") from exc

    points: List[RawPoint] = []
    lap_messages: List[Dict[str, Any]] = []
    session: Optional[Dict[str, Any]] = None
    skipped = 0

    for name, values in messages:
        if name == "record":
            point = _point_from_record(values)
            if point is None:
                skipped += 1
            else:
                points.append(point)
        elif name == "lap":
            lap_messages.append(values)
        elif name == "session" and session is None:
            session = values

    if not points:
        raise MalformedInputError("No valid records found in FIT file")
    if skipped:
        logger.debug("FIT: skipped %d record(s) without timestamp or position", skipped)

    laps = _build_laps(lap_messages, [p.time for p in points])

    calories: Optional[float] = None
    sport: Optional[str] = None
    if session is not None:
        calories = _positive(session.get("total_calories"))
        if session.get("sport") is not None:
            sport = str(session["sport"])
    if calories is None:
        lap_calories = [lap.calories for lap in laps if lap.calories is not None]
        calories = sum(lap_calories) if lap_calories else None

    return build_parse_result(points, options, calories=calories, sport=sport, laps=laps)
