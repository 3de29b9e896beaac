"""Shared test fixtures."""
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from tracklab.models.activity import Activity, ActivityRecord

START = datetime(2025, 1, 15, 7, 30, tzinfo=timezone.utc)

# A short straight run north along a meridian: ~11.1 m per 0.0001° of latitude.
ROUTE = [(45.0 + i * 0.0001, 7.0) for i in range(11)]


def iso(seconds: float) -> str:
    return (START + timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_gpx(points, hr=None, with_time=True, track_type: str = "running") -> str:
    """Minimal GPX 1.1 document with a Garmin TrackPointExtension block per point."""
    trkpts = []
    for i, (lat, lon) in enumerate(points):
        time = f"<time>{iso(i)}</time>" if with_time else ""
        ext = ""
        if hr is not None:
            ext = (
                "<extensions><gpxtpx:TrackPointExtension>"
                f"<gpxtpx:hr>{hr[i]}</gpxtpx:hr><gpxtpx:cad>85</gpxtpx:cad>"
                "</gpxtpx:TrackPointExtension></extensions>"
            )
        trkpts.append(f'<trkpt lat="{lat}" lon="{lon}"><ele>{100 + i}</ele>{time}{ext}</trkpt>')
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1" '
        'xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">'
        f"<trk><name>Morning Run</name><type>{track_type}</type><trkseg>"
        + "".join(trkpts)
        + "</trkseg></trk></gpx>"
    )


def make_tcx(points, hr=None, distances=None) -> str:
    """Minimal TCX document with one lap covering every point."""
    trackpoints = []
    for i, (lat, lon) in enumerate(points):
        dist = f"<DistanceMeters>{distances[i]}</DistanceMeters>" if distances is not None else ""
        hr_el = f"<HeartRateBpm><Value>{hr[i]}</Value></HeartRateBpm>" if hr is not None else ""
        trackpoints.append(
            "<Trackpoint>"
            f"<Time>{iso(i)}</Time>"
            f"<Position><LatitudeDegrees>{lat}</LatitudeDegrees><LongitudeDegrees>{lon}</LongitudeDegrees></Position>"
            f"<AltitudeMeters>{100 + i}</AltitudeMeters>{dist}{hr_el}"
            "<Extensions><ns3:TPX><ns3:Speed>11.1</ns3:Speed><ns3:Watts>250</ns3:Watts></ns3:TPX></Extensions>"
            "</Trackpoint>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2" '
        'xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2">'
        '<Activities><Activity Sport="Running"><Id>2025-01-15T07:30:00Z</Id>'
        f'<Lap StartTime="{iso(0)}">'
        "<TotalTimeSeconds>10</TotalTimeSeconds><DistanceMeters>111.2</DistanceMeters>"
        "<Calories>12</Calories>"
        "<AverageHeartRateBpm><Value>150</Value></AverageHeartRateBpm>"
        "<MaximumHeartRateBpm><Value>160</Value></MaximumHeartRateBpm>"
        "<Intensity>Active</Intensity><TriggerMethod>Manual</TriggerMethod>"
        "<Track>" + "".join(trackpoints) + "</Track>"
        "<Extensions><ns3:LX><ns3:AvgSpeed>11.1</ns3:AvgSpeed></ns3:LX></Extensions>"
        "</Lap></Activity></Activities></TrainingCenterDatabase>"
    )


def records_from(**series) -> List[ActivityRecord]:
    """Build records from parallel lists: records_from(t=[...], d=[...], hr=[...])."""
    n = len(series["t"])
    return [ActivityRecord(**{k: v[i] for k, v in series.items()}) for i in range(n)]


@pytest.fixture
def uniform_run() -> Activity:
    """5 km in 20 minutes at a perfectly even pace, sampled at 1 Hz."""
    records = [ActivityRecord(t=float(t), d=t * 5000.0 / 1200.0) for t in range(1201)]
    return Activity(id="uniform", name="uniform.gpx", records=records, source_type="gpx")


@pytest.fixture
def hilly_records() -> List[ActivityRecord]:
    return records_from(t=[0.0, 10.0, 20.0], d=[0.0, 100.0, 200.0], alt=[100.0, 110.0, 105.0])


@pytest.fixture
def gpx_text():
    """Factory fixture: gpx_text(points, hr=None, with_time=True)."""
    return make_gpx


@pytest.fixture
def tcx_text():
    """Factory fixture: tcx_text(points, hr=None, distances=None)."""
    return make_tcx


@pytest.fixture
def make_records():
    """Factory fixture: make_records(t=[...], d=[...], hr=[...])."""
    return records_from


@pytest.fixture
def route():
    return list(ROUTE)
