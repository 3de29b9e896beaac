"""
Immutable settings objects passed by value into parse, process and transform calls.

These are pydantic models with frozen=True, so an invalid mode string fails
at construction time and a settings object can't change during a pipeline run.
Defaults here match the defaults in tracklab.config.Settings.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class GpsDistanceOptions(_Frozen):
    """Thresholds for rejecting noisy GPS distance deltas."""

    min_move_meters: float = Field(default=0.0, ge=0)
    max_speed_mps: float = Field(default=40.0, gt=0)
    max_jump_meters_at_1s: float = Field(default=250.0, gt=0)
    include_elevation: bool = False


class OutlierSettings(_Frozen):
    mode: Literal["off", "drop", "clamp"] = "off"
    max_percent_change: float = 200.0


class GpsSmoothingSettings(_Frozen):
    enabled: bool = False
    window_points: int = 5


class GpsPaceSmoothingSettings(_Frozen):
    enabled: bool = True
    window_points: int = 5


class SmoothingSettings(_Frozen):
    mode: Literal["off", "movingAverage", "ema"] = "off"
    window_points: int = 5


class CumulativeSettings(_Frozen):
    mode: Literal["off", "sum", "positiveDeltaSum"] = "off"


class PivotZoneSettings(_Frozen):
    zone_count: int = 5
    strategy: Literal["equalRange", "quantiles"] = "quantiles"


class ProcessingSettings(_Frozen):
    """Everything one processing pipeline run needs, including per-activity scale/offset."""

    outliers: OutlierSettings = OutlierSettings()
    gps_smoothing: GpsSmoothingSettings = GpsSmoothingSettings()
    gps_pace_smoothing: GpsPaceSmoothingSettings = GpsPaceSmoothingSettings()
    smoothing: SmoothingSettings = SmoothingSettings()
    scale: float = 1.0
    offset: float = 0.0


class TransformSettings(_Frozen):
    """Display-oriented transforms applied on top of processed records."""

    cumulative: CumulativeSettings = CumulativeSettings()
    pivot_zones: PivotZoneSettings = PivotZoneSettings()
