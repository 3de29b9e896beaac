"""
Per-format field mappers: vendor field names → canonical record slots.

Lookup is by normalized name (lowercase, "_" and "-" stripped), so
"heart_rate", "HeartRate" and "heart-rate" all hit the same entry.

Each mapper returns one of:
  FieldMapping(unified_field="hr", ...)              a canonical slot
  FieldMapping(additional_field="satellites", ...)   a standardized extra name
  FieldMapping(additional_field=<original name>)     unrecognized, kept verbatim
  None                                               structural field (time,
                                                     position, distance) the
                                                     parser already handles

GarminFitFieldMapper wraps FitFieldMapper and only adds the run/bike
cadence variants, delegating everything else.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

_SEPARATORS = re.compile(r"[_\-]")


def normalize_field_name(name: str) -> str:
    return _SEPARATORS.sub("", name.lower())


@dataclass(frozen=True)
class FieldMapping:
    value: float
    unified_field: Optional[str] = None
    additional_field: Optional[str] = None


class FieldMapper:
    """
    Table-driven mapper. Subclasses only fill in the tables.

    slots:       normalized name → canonical record slot
    additional:  normalized name → (standardized extra name, multiplier)
    ignored:     normalized names the parser consumes itself
    """

    source_type: str = ""
    slots: Dict[str, str] = {}
    additional: Dict[str, Tuple[str, float]] = {}
    ignored: FrozenSet[str] = frozenset()

    def map_field(self, name: str, value: float) -> Optional[FieldMapping]:
        key = normalize_field_name(name)
        if key in self.ignored:
            return None
        slot = self.slots.get(key)
        if slot is not None:
            return FieldMapping(value=value, unified_field=slot)
        extra = self.additional.get(key)
        if extra is not None:
            extra_name, factor = extra
            return FieldMapping(value=value * factor, additional_field=extra_name)
        return FieldMapping(value=value, additional_field=name)


def _slots(**groups: Tuple[str, ...]) -> Dict[str, str]:
    return {alias: slot for slot, aliases in groups.items() for alias in aliases}


class GpxFieldMapper(FieldMapper):
    source_type = "gpx"
    slots = _slots(
        hr=("hr", "heartrate", "heartratebpm"),
        cad=("cad", "cadence", "runcadence", "runningcadence"),
        pwr=("power", "pwr", "watts", "powerwatts"),
        temp=("atemp", "temperature", "temp", "atempc"),
        speed=("speed", "velocity", "speedms"),
    )
    additional = {
        "sat": ("satellites", 1.0),
        "satellites": ("satellites", 1.0),
        "hdop": ("hdop", 1.0),
        "vdop": ("vdop", 1.0),
    }
    ignored = frozenset({
        "lat", "lon", "latitude", "longitude", "ele", "elevation",
        "time", "timestamp", "distance",
    })


class TcxFieldMapper(FieldMapper):
    source_type = "tcx"
    slots = _slots(
        hr=("heartrate", "heartratebpm", "hr", "bpm"),
        cad=("cadence", "cad", "runcadence", "runningcadence"),
        pwr=("power", "pwr", "watts", "powerwatts", "powerinwatts", "wattsavg"),
        temp=("temperature", "temp", "temperaturecelsius"),
        speed=("speed", "velocity", "speedms"),
    )
    ignored = frozenset({
        "latitudedegrees", "longitudedegrees", "latitude", "longitude",
        "altitudemeters", "altitude", "distancemeters", "distance",
        "time", "timestamp",
    })


class FitFieldMapper(FieldMapper):
    source_type = "fit"
    slots = _slots(
        hr=("heartrate", "hr", "heartratebpm"),
        cad=("cadence", "cad", "cyclingcadence"),
        pwr=("power", "pwr", "watts", "powerwatts"),
        alt=("altitude", "alt", "elevation", "enhancedaltitude"),
        speed=("speed", "velocity", "enhancedspeed"),
        temp=("temperature", "temp", "temperaturecelsius"),
    )
    additional = {
        "stancetime": ("stance_time_ms", 1.0),
        "verticaloscillation": ("vertical_oscillation_mm", 1.0),
        "steplength": ("step_length_cm", 0.1),  # FIT reports millimeters
        "groundcontacttimebalance": ("gct_balance", 1.0),
        "stancetimebalance": ("gct_balance", 1.0),
    }
    ignored = frozenset({
        "distance", "dist", "cumulativedistance", "timestamp", "time",
        "timecreated", "elapsedtime", "timertime", "positionlat", "positionlong",
    })


class GarminFitFieldMapper(FieldMapper):
    """FIT mapper plus the run/bike cadence names Garmin devices write."""

    source_type = "fit"
    _cadence_aliases = frozenset({
        "runcadence", "runningcadence", "bikecadence", "bikingcadence", "cyclingcadence",
    })

    def __init__(self, base: Optional[FieldMapper] = None):
        self.base = base or FitFieldMapper()

    def map_field(self, name: str, value: float) -> Optional[FieldMapping]:
        if normalize_field_name(name) in self._cadence_aliases:
            return FieldMapping(value=value, unified_field="cad")
        return self.base.map_field(name, value)


_MAPPERS: Dict[str, FieldMapper] = {
    "gpx": GpxFieldMapper(),
    "tcx": TcxFieldMapper(),
    "fit": GarminFitFieldMapper(),
}


def get_field_mapper(source_type: str) -> FieldMapper:
    """Mapper for a source type ("gpx", "tcx" or "fit"). FIT always gets the Garmin variant."""
    try:
        return _MAPPERS[source_type]
    except KeyError:
        raise ValueError(f"No field mapper for source type: {source_type!r}") from None


def _as_finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def apply_field_mapping(
    mapper: FieldMapper,
    name: str,
    raw_value: Any,
    slots: Dict[str, float],
    extras: Dict[str, float],
) -> None:
    """
    Map one vendor field and store it into `slots` or `extras`.

    Non-numeric and non-finite values are skipped. A slot already filled by an
    earlier field (e.g. enhanced_speed before speed) is not overwritten.
    """
    value = _as_finite_number(raw_value)
    if value is None:
        return
    mapping = mapper.map_field(name, value)
    if mapping is None:
        return
    if mapping.unified_field is not None:
        slots.setdefault(mapping.unified_field, mapping.value)
    elif mapping.additional_field is not None:
        extras.setdefault(mapping.additional_field, mapping.value)
