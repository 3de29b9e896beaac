"""
Command-line entry point: import activity files and print what the engine computes.

Usage:
    python -m tracklab summarize ride.fit run.gpx              # per-activity summary
    python -m tracklab summarize run.gpx --offset run.gpx=-30  # shift one activity by -30 s
    python -m tracklab summarize run.tcx --json                # machine-readable output
    python -m tracklab zones a.fit b.fit --metric hr           # shared time-in-zone table

Processing defaults come from TRACKLAB_* environment variables / .env
(see tracklab.config.Settings).
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from tracklab.analysis.derived import format_pace
from tracklab.analysis.pipeline import process_activity
from tracklab.analysis.power import power_metrics
from tracklab.analysis.splits import calculate_best_splits
from tracklab.analysis.stats import ActivityStats, compute_activity_stats
from tracklab.analysis.transforms import TransformCache, build_pivot_zones_for_activities
from tracklab.config import Settings, get_settings
from tracklab.models.activity import METRIC_TYPES, Activity
from tracklab.parsers.importer import BatchImportResult, import_activity_files

logger = logging.getLogger(__name__)


def _parse_offsets(pairs: Sequence[str]) -> Dict[str, float]:
    offsets: Dict[str, float] = {}
    for pair in pairs:
        name, sep, seconds = pair.rpartition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Expected FILE=SECONDS, got {pair!r}")
        try:
            offsets[name] = float(seconds)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Offset must be a number: {pair!r}") from None
    return offsets


def _load(paths: Sequence[Path], settings: Settings) -> BatchImportResult:
    files = []
    for path in paths:
        try:
            files.append((path.name, path.read_bytes()))
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
    return import_activity_files(files, settings.gps_distance_options())


def _process(activities: List[Activity], settings: Settings, offsets: Dict[str, float]) -> List[Activity]:
    processing = settings.processing_settings()
    return [
        process_activity(replace(a, offset=offsets.get(a.name, a.offset)), processing)
        for a in activities
    ]


def _summary(activity: Activity, stats: ActivityStats, settings: Settings) -> Dict[str, Any]:
    splits = calculate_best_splits(activity.records, stats.distance_meters)
    return {
        "id": activity.id,
        "name": activity.name,
        "source_type": activity.source_type,
        "sport": activity.sport,
        "start_time": activity.start_time.isoformat() if activity.start_time else None,
        "laps": len(activity.laps),
        "stats": asdict(stats),
        "best_splits": {label: split.time_seconds for label, split in splits.items()},
        "power": power_metrics(activity.records, settings.best_power_windows_minutes),
    }


def _print_summary(activity: Activity, summary: Dict[str, Any], stats: ActivityStats) -> None:
    print(f"{activity.name} ({activity.source_type}, {len(activity.records)} records)")
    print(f"  duration   {stats.duration_seconds / 60:.1f} min")
    print(f"  distance   {stats.distance_meters / 1000:.2f} km")
    if stats.elevation_gain_meters is not None:
        print(f"  elevation  +{stats.elevation_gain_meters:.0f} m / -{stats.elevation_loss_meters:.0f} m")
    if stats.calories is not None:
        print(f"  calories   {stats.calories:.0f}")
    pace = stats.metrics.get("pace")
    if pace is not None and pace.avg is not None:
        print(f"  avg pace   {format_pace(pace.avg)}")
    for name in METRIC_TYPES:
        metric = stats.metrics.get(name)
        if name == "pace" or metric is None or metric.count == 0:
            continue
        print(f"  {name:<10} min {metric.min:.1f}  avg {metric.avg:.1f}  max {metric.max:.1f}")
    for label, seconds in summary["best_splits"].items():
        print(f"  best {label:<14} {seconds / 60:.2f} min")
    for name, watts in summary["power"].items():
        if watts is not None:
            print(f"  {name:<20} {watts:.0f} W")


def _report_failures(result: BatchImportResult) -> None:
    for failure in result.failures:
        print(f"FAILED {failure.file_name}: {failure.error}", file=sys.stderr)


def _run_summarize(args: argparse.Namespace, settings: Settings) -> int:
    result = _load(args.files, settings)
    _report_failures(result)
    activities = _process(result.activities, settings, _parse_offsets(args.offset))

    summaries = []
    for activity in activities:
        stats = compute_activity_stats(activity)
        summary = _summary(activity, stats, settings)
        summaries.append(summary)
        if not args.json:
            _print_summary(activity, summary, stats)
    if args.json:
        print(json.dumps(summaries, indent=2, default=str))
    return 0 if activities else 1


def _run_zones(args: argparse.Namespace, settings: Settings) -> int:
    result = _load(args.files, settings)
    _report_failures(result)
    activities = _process(result.activities, settings, {})
    if not activities:
        return 1

    pivot = build_pivot_zones_for_activities(
        activities,
        args.metric,
        settings.transform_settings().pivot_zones,
        TransformCache(settings.transform_cache_size),
    )
    if pivot is None:
        print(f"No {args.metric} data to bin.")
        return 0

    names = {a.id: a.name for a in activities}
    header = ["bucket"] + [names[aid] for aid in pivot.totals_seconds_by_activity_id]
    print("\t".join(header))
    for i, label in enumerate(pivot.bucket_labels):
        row = [label] + [f"{totals[i] / 60:.1f}" for totals in pivot.totals_seconds_by_activity_id.values()]
        print("\t".join(row))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tracklab", description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)

    summarize = sub.add_parser("summarize", help="Print statistics for each activity file")
    summarize.add_argument("files", nargs="+", type=Path)
    summarize.add_argument(
        "--offset", action="append", default=[], metavar="FILE=SECONDS",
        help="Time offset for one file (repeatable)",
    )
    summarize.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    zones = sub.add_parser("zones", help="Print shared time-in-zone buckets across files")
    zones.add_argument("files", nargs="+", type=Path)
    zones.add_argument("--metric", default="hr", choices=METRIC_TYPES)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        if args.command == "zones":
            return _run_zones(args, settings)
        return _run_summarize(args, settings)
    except argparse.ArgumentTypeError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
