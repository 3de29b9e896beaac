"""
Activity import: detect the file format, dispatch to its parser, wrap the
result in an Activity.

Callers hand over bytes that are already read; nothing here touches the
filesystem. Batch import never raises for a single bad file: failures are
collected next to the successes.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from tracklab.models.activity import Activity, ParseResult
from tracklab.models.settings import GpsDistanceOptions
from tracklab.parsers.fit_parser import parse_fit
from tracklab.parsers.gpx_parser import parse_gpx
from tracklab.parsers.normalizer import MalformedInputError
from tracklab.parsers.tcx_parser import parse_tcx

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = ("gpx", "fit", "tcx")

_PARSERS: Dict[str, Callable[..., ParseResult]] = {
    "gpx": parse_gpx,
    "fit": parse_fit,
    "tcx": parse_tcx,
}


class UnsupportedFileTypeError(MalformedInputError):
    """Raised when a file's format can't be determined from its name or media type."""


@dataclass(frozen=True)
class ImportFailure:
    file_name: str
    error: str


@dataclass
class BatchImportResult:
    """Outcome of a multi-file import: parsed activities plus per-file failures."""

    activities: List[Activity] = field(default_factory=list)
    failures: List[ImportFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


def detect_file_type(file_name: str, media_type: Optional[str] = None) -> str:
    """
    Detect the activity format from a file name, then from a declared media type.

    Returns:
        "gpx", "fit", "tcx" or "unknown"
    """
    extension = file_name.lower().rsplit(".", 1)[-1] if "." in file_name else ""
    if extension in SUPPORTED_FILE_TYPES:
        return extension

    mime = (media_type or "").lower()
    if "gpx" in mime:
        return "gpx"
    if "tcx" in mime:
        return "tcx"
    if "fit" in mime or "octet-stream" in mime:
        return "fit"
    return "unknown"


def is_supported_file_type(file_name: str, media_type: Optional[str] = None) -> bool:
    return detect_file_type(file_name, media_type) in SUPPORTED_FILE_TYPES


def new_activity_id() -> str:
    return uuid.uuid4().hex


def import_activity_file(
    file_name: str,
    content: Union[str, bytes],
    options: Optional[GpsDistanceOptions] = None,
    media_type: Optional[str] = None,
    activity_id: Optional[str] = None,
) -> Activity:
    """
    Parse one file into an Activity holding raw (unprocessed) records.

    Args:
        file_name: original file name, used for format detection and as the activity name
        content: file contents; FIT must be bytes, GPX/TCX may be text or bytes
        options: GPS distance filter thresholds
        media_type: declared media type, consulted when the extension is not recognized
        activity_id: identifier to use; a random one is generated when omitted

    Raises:
        UnsupportedFileTypeError: if the format can't be detected
        MalformedInputError: if the parser rejects the content
    """
    file_type = detect_file_type(file_name, media_type)
    parser = _PARSERS.get(file_type)
    if parser is None:
        raise UnsupportedFileTypeError(f"Unsupported file type: {file_name}")
    if file_type == "fit" and isinstance(content, str):
        raise MalformedInputError(f"FIT content must be bytes: {file_name}")

    result = parser(content, options)
    logger.info("Imported %s (%s, %d records)", file_name, file_type, len(result.records))

    return Activity(
        id=activity_id or new_activity_id(),
        name=file_name,
        records=result.records,
        source_type=file_type,
        start_time=result.start_time,
        calories=result.calories,
        sport=result.sport,
        laps=list(result.laps),
    )


def import_activity_files(
    files: Iterable[Tuple[str, Union[str, bytes]]],
    options: Optional[GpsDistanceOptions] = None,
) -> BatchImportResult:
    """
    Import several (file_name, content) pairs independently.

    A file that fails to parse is recorded in `failures` and the rest continue.
    """
    result = BatchImportResult()
    for file_name, content in files:
        try:
            result.activities.append(import_activity_file(file_name, content, options))
        except MalformedInputError as exc:
            logger.warning("Failed to import %s: %s", file_name, exc)
            result.failures.append(ImportFailure(file_name=file_name, error=str(exc)))
    return result
