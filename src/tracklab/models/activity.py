"""
In-memory activity model shared by the parsers, the pipeline and the analysis modules.

Everything here is a plain dataclass with no I/O. Records are frozen: every
pipeline stage builds new records with dataclasses.replace() instead of
editing them, so any stage can be re-run from raw input.

Record field reference:
  field     unit            notes
  t         seconds         elapsed since the first record, >= 0
  d         meters          cumulative distance since the first record, >= 0
  lat/lon   degrees         absent when the sample has no GPS fix
  hr        bpm
  pwr       watts
  cad       rpm / spm       running and cycling cadence share one slot
  speed     m/s
  temp      Celsius
  alt       meters
  pace      min/km          derived
  grade     percent         derived
  v_speed   m/h             derived (vertical speed)
  extras    -               unrecognized numeric vendor fields by original name

speed_from_gps marks a speed derived from consecutive GPS fixes rather than
reported by a sensor. Pace derivation treats such a speed as GPS-sourced again
when it re-runs over processed records.

A field set to None means "not measured". Zero is a real measurement.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

# Metric slots processed by outlier handling, smoothing and scaling.
BASE_METRIC_FIELDS: Tuple[str, ...] = ("hr", "pwr", "cad", "alt", "speed", "temp")

# Every metric a chart or statistics consumer can ask for.
METRIC_TYPES: Tuple[str, ...] = (
    "hr", "alt", "pwr", "cad", "pace", "speed", "temp", "grade", "v_speed",
)

_RECORD_METRIC_FIELDS = frozenset(BASE_METRIC_FIELDS + ("pace", "grade", "v_speed", "lat", "lon"))


@dataclass(frozen=True)
class RawPoint:
    """
    One decoded sample before normalization.
    Produced by a format parser, consumed only by the normalizer.
    """

    lat: Optional[float] = None
    lon: Optional[float] = None
    alt: Optional[float] = None
    time: Optional[datetime] = None
    hr: Optional[float] = None
    cad: Optional[float] = None
    pwr: Optional[float] = None
    speed: Optional[float] = None
    temp: Optional[float] = None
    distance: Optional[float] = None  # device-reported cumulative distance
    extras: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ActivityRecord:
    """One canonical sample on the activity timeline."""

    t: float
    d: float
    lat: Optional[float] = None
    lon: Optional[float] = None
    hr: Optional[float] = None
    pwr: Optional[float] = None
    cad: Optional[float] = None
    speed: Optional[float] = None
    temp: Optional[float] = None
    alt: Optional[float] = None
    pace: Optional[float] = None
    grade: Optional[float] = None
    v_speed: Optional[float] = None
    extras: Dict[str, float] = field(default_factory=dict)
    speed_from_gps: bool = False

    def get(self, name: str) -> Optional[float]:
        """Return a metric by slot name, falling back to the extras bag."""
        if name in _RECORD_METRIC_FIELDS:
            return getattr(self, name)
        return self.extras.get(name)

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class Lap:
    """Summary of a contiguous run of records, as reported by the device."""

    start_index: int
    end_index: int
    start_time: Optional[datetime] = None
    total_time_seconds: Optional[float] = None
    distance_meters: Optional[float] = None
    calories: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_cadence: Optional[float] = None
    max_cadence: Optional[float] = None
    avg_speed: Optional[float] = None
    max_speed: Optional[float] = None
    intensity: Optional[str] = None        # "active" / "resting"
    trigger_method: Optional[str] = None   # "manual", "distance", ...


@dataclass(frozen=True)
class ParseResult:
    """Output of a parser/normalizer pair."""

    records: List[ActivityRecord]
    start_time: Optional[datetime] = None
    calories: Optional[float] = None
    sport: Optional[str] = None
    laps: List[Lap] = field(default_factory=list)


@dataclass
class Activity:
    """
    A named record timeline plus its display parameters.

    offset (seconds) and scale are supplied by the caller and applied by the
    processing pipeline; they are never derived from the data. Once the
    pipeline has run, `processed` is set and the records already carry both,
    so charting and windowing read pending_offset/pending_scale instead.
    """

    id: str
    name: str
    records: List[ActivityRecord]
    source_type: Optional[str] = None   # "gpx" / "tcx" / "fit"
    offset: float = 0.0
    scale: float = 1.0
    color: Optional[str] = None
    start_time: Optional[datetime] = None
    calories: Optional[float] = None
    sport: Optional[str] = None
    laps: List[Lap] = field(default_factory=list)
    processed: bool = False

    @property
    def pending_offset(self) -> float:
        """Offset still to add to record times; 0 once the records carry it."""
        return 0.0 if self.processed else self.offset

    @property
    def pending_scale(self) -> float:
        """Scale still to apply to record values; 1 once the records carry it."""
        return 1.0 if self.processed else self.scale
