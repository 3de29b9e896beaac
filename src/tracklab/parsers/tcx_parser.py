"""
TCX parser: converts Training Center XML (v2) files into a ParseResult.

Field mapping from TCX to RawPoint:
  TCX element                           → RawPoint field
  Position/LatitudeDegrees              → lat
  Position/LongitudeDegrees             → lon
  AltitudeMeters                        → alt
  Time                                  → time
  DistanceMeters                        → distance (cumulative, device-reported)
  HeartRateBpm/Value                    → hr
  Cadence                               → cad
  Extensions/TPX/Watts (PowerInWatts)   → pwr
  Extensions/TPX/Speed                  → speed (m/s, negative ignored)
  other numeric TPX/Extensions leaves   → extras[<field name>]

Trackpoints without a Position are skipped (indoor / paused samples).
Lap summaries come from the enclosing <Lap> elements; their record ranges
cover the trackpoints that survived the Position filter.
"""
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple, Union

from tracklab.models.activity import Lap, ParseResult, RawPoint
from tracklab.models.settings import GpsDistanceOptions
from tracklab.parsers.field_mappers import apply_field_mapping, get_field_mapper
from tracklab.parsers.normalizer import MalformedInputError, build_parse_result

logger = logging.getLogger(__name__)

_MAPPER = get_field_mapper("tcx")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (child for child in element if _local_name(child.tag) == name)


def _descendants(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (el for el in element.iter() if _local_name(el.tag) == name)


def _text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def _float(element: Optional[ET.Element]) -> Optional[float]:
    text = _text(element)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'."""
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _nested_value(element: ET.Element, name: str) -> Optional[float]:
    """Read <Name><Value>x</Value></Name>, the TCX heart-rate shape."""
    wrapper = _child(element, name)
    return _float(_child(wrapper, "Value")) if wrapper is not None else None


def _extension_leaves(extensions: ET.Element) -> List[Tuple[str, str]]:
    leaves: List[Tuple[str, str]] = []
    for element in extensions:
        if _local_name(element.tag).endswith("TPX"):
            for child in element:
                text = _text(child)
                if text is not None:
                    leaves.append((_local_name(child.tag), text))
            continue
        text = _text(element)
        if text is not None:
            leaves.append((_local_name(element.tag), text))
    return leaves


def _parse_trackpoint(trackpoint: ET.Element) -> Optional[RawPoint]:
    position = _child(trackpoint, "Position")
    if position is None:
        return None
    lat = _float(_child(position, "LatitudeDegrees"))
    lon = _float(_child(position, "LongitudeDegrees"))
    if lat is None or lon is None:
        return None

    slots: Dict[str, float] = {}
    extras: Dict[str, float] = {}
    hr = _nested_value(trackpoint, "HeartRateBpm")
    if hr is not None:
        slots["hr"] = hr
    cadence = _float(_child(trackpoint, "Cadence"))
    if cadence is not None:
        slots["cad"] = cadence

    extensions = _child(trackpoint, "Extensions")
    if extensions is not None:
        for name, text in _extension_leaves(extensions):
            if name == "Speed":
                try:
                    if float(text) < 0:
                        continue
                except ValueError:
                    continue
            apply_field_mapping(_MAPPER, name, text, slots, extras)

    return RawPoint(
        lat=lat,
        lon=lon,
        alt=_float(_child(trackpoint, "AltitudeMeters")),
        time=parse_timestamp(_text(_child(trackpoint, "Time"))),
        hr=slots.get("hr"),
        cad=slots.get("cad"),
        pwr=slots.get("pwr"),
        speed=slots.get("speed"),
        temp=slots.get("temp"),
        distance=_float(_child(trackpoint, "DistanceMeters")),
        extras=extras,
    )


def _positive(value: Optional[float]) -> Optional[float]:
    return value if value is not None and value > 0 else None


def _parse_lap(lap: ET.Element, start_index: int, end_index: int) -> Lap:
    intensity = _text(_child(lap, "Intensity"))
    avg_speed = None
    lap_extensions = _child(lap, "Extensions")
    if lap_extensions is not None:
        avg_speed = next((_float(el) for el in _descendants(lap_extensions, "AvgSpeed")), None)

    return Lap(
        start_index=start_index,
        end_index=end_index,
        start_time=parse_timestamp(lap.get("StartTime")),
        total_time_seconds=_float(_child(lap, "TotalTimeSeconds")),
        distance_meters=_float(_child(lap, "DistanceMeters")),
        calories=_positive(_float(_child(lap, "Calories"))),
        avg_hr=_nested_value(lap, "AverageHeartRateBpm"),
        max_hr=_nested_value(lap, "MaximumHeartRateBpm"),
        avg_cadence=_float(_child(lap, "Cadence")),
        avg_speed=avg_speed,
        max_speed=_float(_child(lap, "MaximumSpeed")),
        intensity=intensity.lower() if intensity else None,
        trigger_method=_text(_child(lap, "TriggerMethod")),
    )


def parse_tcx(
    content: Union[str, bytes],
    options: Optional[GpsDistanceOptions] = None,
) -> ParseResult:
    """
    Parse TCX text into a ParseResult with laps, sport and total calories.

    Raises:
        MalformedInputError: if the XML is invalid or holds no positioned trackpoints
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise MalformedInputError(f"Invalid TCX XML format: {exc}") from exc

    activity = next(_descendants(root, "Activity"), None)
    sport = activity.get("Sport") if activity is not None else None

    points: List[RawPoint] = []
    laps: List[Lap] = []
    seen_trackpoints = 0

    lap_elements = list(_descendants(root, "Lap"))
    if lap_elements:
        for lap in lap_elements:
            first = len(points)
            for trackpoint in _descendants(lap, "Trackpoint"):
                seen_trackpoints += 1
                point = _parse_trackpoint(trackpoint)
                if point is not None:
                    points.append(point)
            if len(points) > first:
                laps.append(_parse_lap(lap, first, len(points) - 1))
    else:
        for trackpoint in _descendants(root, "Trackpoint"):
            seen_trackpoints += 1
            point = _parse_trackpoint(trackpoint)
            if point is not None:
                points.append(point)

    if seen_trackpoints == 0:
        raise MalformedInputError("No track points found in TCX file")
    if not points:
        raise MalformedInputError("No valid track points found in TCX file")

    logger.debug("TCX: kept %d of %d trackpoints", len(points), seen_trackpoints)

    lap_calories = [lap.calories for lap in laps if lap.calories is not None]
    calories = sum(lap_calories) if lap_calories else None
    return build_parse_result(points, options, calories=calories, sport=sport, laps=laps)
