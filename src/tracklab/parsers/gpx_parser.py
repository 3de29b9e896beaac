"""
GPX parser: converts GPX 1.0/1.1 track files into a ParseResult.

XML decoding is done by gpxpy; this module only walks <trkpt> elements and
maps their extension blocks.

Field mapping from GPX to RawPoint:
  GPX element                                   → RawPoint field
  trkpt@lat / trkpt@lon                         → lat / lon (degrees)
  ele                                           → alt (meters)
  time                                          → time
  extensions/TrackPointExtension/hr             → hr
  extensions/TrackPointExtension/cad            → cad
  extensions/TrackPointExtension/atemp          → temp
  extensions/TrackPointExtension/distance       → distance (cumulative, preferred)
  extensions/distance                           → distance (fallback)
  extensions/power                              → pwr
  extensions/speed                              → speed (m/s, negative ignored)
  extensions/temperature                        → temp
  any other numeric leaf                        → extras[<field name>]

Only track points are read; route and waypoint elements are ignored.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union
from xml.etree.ElementTree import Element

import gpxpy
import gpxpy.gpx

from tracklab.models.activity import ParseResult, RawPoint
from tracklab.models.settings import GpsDistanceOptions
from tracklab.parsers.field_mappers import apply_field_mapping, get_field_mapper
from tracklab.parsers.normalizer import MalformedInputError, build_parse_result

logger = logging.getLogger(__name__)

_MAPPER = get_field_mapper("gpx")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _is_track_point_extension(element: Element) -> bool:
    return _local_name(element.tag).endswith("TrackPointExtension")


def _leaf_value(element: Element) -> Optional[str]:
    text = (element.text or "").strip()
    return text or None


def _to_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _extension_leaves(extensions: Iterable[Element]) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
    """Split extension leaves into (TrackPointExtension children, direct children)."""
    tpx: List[Tuple[str, str]] = []
    direct: List[Tuple[str, str]] = []
    for element in extensions:
        if _is_track_point_extension(element):
            for child in element:
                text = _leaf_value(child)
                if text is not None:
                    tpx.append((_local_name(child.tag), text))
            continue
        text = _leaf_value(element)
        if text is not None:
            direct.append((_local_name(element.tag), text))
    return tpx, direct


def _point_from_trkpt(trkpt: gpxpy.gpx.GPXTrackPoint) -> RawPoint:
    tpx, direct = _extension_leaves(trkpt.extensions)

    distance: Optional[float] = None
    slots: Dict[str, float] = {}
    extras: Dict[str, float] = {}

    # TrackPointExtension values take precedence over direct children
    for name, text in tpx + direct:
        if name.lower() == "distance":
            if distance is None:
                distance = _to_float(text)
            continue
        if name.lower() == "speed" and (_to_float(text) or 0.0) < 0:
            continue
        apply_field_mapping(_MAPPER, name, text, slots, extras)

    return RawPoint(
        lat=trkpt.latitude,
        lon=trkpt.longitude,
        alt=trkpt.elevation,
        time=trkpt.time,
        hr=slots.get("hr"),
        cad=slots.get("cad"),
        pwr=slots.get("pwr"),
        speed=slots.get("speed"),
        temp=slots.get("temp"),
        distance=distance,
        extras=extras,
    )


def parse_gpx(
    content: Union[str, bytes],
    options: Optional[GpsDistanceOptions] = None,
) -> ParseResult:
    """
    Parse GPX text into a ParseResult.

    Args:
        content: GPX document as text or UTF-8 bytes
        options: GPS distance filter thresholds used when points carry no distance

    Raises:
        MalformedInputError: if the bytes aren't UTF-8, the XML is invalid or it
            contains no track points
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedInputError(f"GPX content is not valid UTF-8: {exc}") from exc

    try:
        gpx = gpxpy.parse(content)
    except (gpxpy.gpx.GPXException, ValueError) as exc:
        raise MalformedInputError(f"Invalid GPX XML format: {exc}") from exc

    points = [
        _point_from_trkpt(trkpt)
        for track in gpx.tracks
        for segment in track.segments
        for trkpt in segment.points
    ]
    if not points:
        raise MalformedInputError("No track points found in GPX file")

    sport = next((track.type for track in gpx.tracks if track.type), None)
    logger.debug("GPX: %d track points in %d track(s)", len(points), len(gpx.tracks))
    return build_parse_result(points, options, sport=sport)
