from typing import List, Literal, Optional

from pydantic_settings import BaseSettings

from tracklab.models.settings import (
    CumulativeSettings,
    GpsDistanceOptions,
    GpsPaceSmoothingSettings,
    GpsSmoothingSettings,
    OutlierSettings,
    PivotZoneSettings,
    ProcessingSettings,
    SmoothingSettings,
    TransformSettings,
)


class Settings(BaseSettings):
    log_level: str = "INFO"

    outlier_mode: Literal["off", "drop", "clamp"] = "off"
    outlier_max_percent_change: float = 200.0

    gps_min_move_meters: float = 0.0
    gps_max_speed_mps: float = 40.0
    gps_max_jump_meters_at_1s: float = 250.0
    gps_include_elevation: bool = False

    gps_smoothing_enabled: bool = False
    gps_smoothing_window_points: int = 5
    gps_pace_smoothing_enabled: bool = True
    gps_pace_smoothing_window_points: int = 5

    smoothing_mode: Literal["off", "movingAverage", "ema"] = "off"
    smoothing_window_points: int = 5

    cumulative_mode: Literal["off", "sum", "positiveDeltaSum"] = "off"
    pivot_zone_count: int = 5
    pivot_zone_strategy: Literal["equalRange", "quantiles"] = "quantiles"

    transform_cache_size: int = 256
    best_power_windows_minutes: List[int] = [12, 20]

    class Config:
        env_prefix = "TRACKLAB_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def gps_distance_options(self) -> GpsDistanceOptions:
        return GpsDistanceOptions(
            min_move_meters=self.gps_min_move_meters,
            max_speed_mps=self.gps_max_speed_mps,
            max_jump_meters_at_1s=self.gps_max_jump_meters_at_1s,
            include_elevation=self.gps_include_elevation,
        )

    def processing_settings(self, scale: float = 1.0, offset: float = 0.0) -> ProcessingSettings:
        return ProcessingSettings(
            outliers=OutlierSettings(
                mode=self.outlier_mode,
                max_percent_change=self.outlier_max_percent_change,
            ),
            gps_smoothing=GpsSmoothingSettings(
                enabled=self.gps_smoothing_enabled,
                window_points=self.gps_smoothing_window_points,
            ),
            gps_pace_smoothing=GpsPaceSmoothingSettings(
                enabled=self.gps_pace_smoothing_enabled,
                window_points=self.gps_pace_smoothing_window_points,
            ),
            smoothing=SmoothingSettings(
                mode=self.smoothing_mode,
                window_points=self.smoothing_window_points,
            ),
            scale=scale,
            offset=offset,
        )

    def transform_settings(self) -> TransformSettings:
        return TransformSettings(
            cumulative=CumulativeSettings(mode=self.cumulative_mode),
            pivot_zones=PivotZoneSettings(
                zone_count=self.pivot_zone_count,
                strategy=self.pivot_zone_strategy,
            ),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
