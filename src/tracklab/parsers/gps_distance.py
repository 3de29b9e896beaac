"""
Great-circle distance between GPS fixes, with heuristics that reject GPS noise.

Two filters live here:

  filter_distance_delta()  used when accumulating cumulative distance.
                           A delta counts as 0 when it is below the minimum
                           move (jitter), implies a speed above max_speed_mps,
                           or jumps more than max_jump_meters_at_1s within 1 s.

  filter_speed()           used when deriving instantaneous speed for pace.
                           No minimum-move filter (slow movement is still
                           movement) and a much higher speed ceiling.
"""
import math
from dataclasses import dataclass
from typing import Optional

from tracklab.models.settings import GpsDistanceOptions

EARTH_RADIUS_METERS = 6371000.0

# Speed derivation rejects only physically implausible values.
_MAX_DERIVED_SPEED_MPS = 100.0
_MIN_RELIABLE_DT_SECONDS = 0.5

DEFAULT_GPS_DISTANCE_OPTIONS = GpsDistanceOptions()


@dataclass(frozen=True)
class GpsFix:
    lat: float
    lon: float
    t: float  # elapsed seconds
    alt: Optional[float] = None


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two lat/lon pairs in degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def segment_distance_meters(prev: GpsFix, nxt: GpsFix, options: GpsDistanceOptions) -> float:
    """Distance between two fixes; 3D when include_elevation is on and both altitudes exist."""
    flat = haversine_meters(prev.lat, prev.lon, nxt.lat, nxt.lon)
    if not options.include_elevation or prev.alt is None or nxt.alt is None:
        return flat
    return math.hypot(flat, nxt.alt - prev.alt)


def _elapsed(prev: GpsFix, nxt: GpsFix) -> float:
    dt = nxt.t - prev.t
    return max(0.0, dt) if math.isfinite(dt) else 0.0


def filter_distance_delta(
    prev: GpsFix,
    nxt: GpsFix,
    options: GpsDistanceOptions = DEFAULT_GPS_DISTANCE_OPTIONS,
) -> float:
    """
    Distance delta to accumulate between two consecutive fixes.

    Returns:
        The segment distance in meters, or 0.0 when the delta is rejected as noise.
    """
    dt = _elapsed(prev, nxt)
    dist = segment_distance_meters(prev, nxt, options)

    if dist < options.min_move_meters:
        return 0.0
    if dt > 0 and dist / dt > options.max_speed_mps:
        return 0.0
    if dt <= 1 and dist > options.max_jump_meters_at_1s:
        return 0.0
    return dist


def filter_speed(
    prev: GpsFix,
    nxt: GpsFix,
    options: GpsDistanceOptions = DEFAULT_GPS_DISTANCE_OPTIONS,
) -> Optional[float]:
    """
    Instantaneous speed (m/s) between two fixes for pace derivation.

    Returns None when no time elapsed, the implied speed exceeds 100 m/s,
    or the fixes jump further than max_jump_meters_at_1s in under half a second.
    """
    dt = _elapsed(prev, nxt)
    if dt <= 0:
        return None
    dist = segment_distance_meters(prev, nxt, options)
    speed = dist / dt
    if not math.isfinite(speed) or speed > _MAX_DERIVED_SPEED_MPS:
        return None
    if dt < _MIN_RELIABLE_DT_SECONDS and dist > options.max_jump_meters_at_1s:
        return None
    return speed
