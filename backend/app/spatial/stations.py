"""
stations.py — Static safety-station catalogue and nearest-station ranking.

The station list is reference data: loaded once at startup from JSON,
never mutated. Ranking is recomputed per request against the caller's
position and returns the K closest stations, nearest first.

JSON format (list of objects):

    [{"name": "Central Police Station", "latitude": 37.7986, "longitude": -122.4098}, ...]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from backend.app.spatial.distance import (
    Coordinate,
    Position,
    directions_link,
    format_distance,
    haversine,
)

logger = logging.getLogger(__name__)

BUNDLED_STATIONS_FILE = Path(__file__).resolve().parent.parent / "data" / "police_stations.json"
DEFAULT_NEAREST_COUNT = 2


@dataclass(frozen=True)
class Station:
    """A known safety station."""
    name: str
    coordinate: Coordinate

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


@dataclass(frozen=True)
class RankedStation:
    """A station annotated with its distance from a given position."""
    station: Station
    distance_km: float
    origin: Coordinate

    @property
    def name(self) -> str:
        return self.station.name

    @property
    def distance_label(self) -> str:
        return format_distance(self.distance_km)

    @property
    def directions_url(self) -> str:
        return directions_link(self.origin, self.station.coordinate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.station.name,
            "latitude": self.station.latitude,
            "longitude": self.station.longitude,
            "distance_km": self.distance_km,
            "distance_label": self.distance_label,
            "directions_url": self.directions_url,
        }


def nearest(
    position: Union[Position, Coordinate],
    stations: Sequence[Station],
    k: int = DEFAULT_NEAREST_COUNT,
) -> List[RankedStation]:
    """
    Rank stations by great-circle distance from ``position``.

    Returns ``min(k, len(stations))`` entries sorted by ascending distance.
    Python's sort is stable, so equal distances keep catalogue order.
    An empty catalogue or ``k <= 0`` yields an empty list.
    """
    if k <= 0 or not stations:
        return []

    origin = position.coordinate if isinstance(position, Position) else position
    ranked = [
        RankedStation(station=s, distance_km=haversine(origin, s.coordinate), origin=origin)
        for s in stations
    ]
    ranked.sort(key=lambda r: r.distance_km)
    return ranked[:k]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _parse_station(entry: Dict[str, Any], index: int) -> Station:
    try:
        name = str(entry["name"]).strip()
        coordinate = Coordinate(float(entry["latitude"]), float(entry["longitude"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid station entry #{index}: {exc}") from exc
    if not name:
        raise ValueError(f"Invalid station entry #{index}: empty name")
    return Station(name=name, coordinate=coordinate)


def parse_stations(entries: Sequence[Dict[str, Any]]) -> Tuple[Station, ...]:
    """Validate raw station dicts into an immutable tuple."""
    return tuple(_parse_station(e, i) for i, e in enumerate(entries))


def load_stations(path: Optional[Union[str, Path]] = None) -> Tuple[Station, ...]:
    """Load the station catalogue from JSON (bundled file by default)."""
    source = Path(path) if path else BUNDLED_STATIONS_FILE
    with source.open(encoding="utf-8") as fh:
        entries = json.load(fh)
    if not isinstance(entries, list):
        raise ValueError(f"Station file {source} must contain a JSON list")
    stations = parse_stations(entries)
    logger.info("Loaded %d stations from %s", len(stations), source.name)
    return stations
