"""
test_spatial.py — Haversine distance, map links and nearest-station ranking.

Run with:
    pytest tests/test_spatial.py -v
"""

from __future__ import annotations

import json
import math

import pytest

from backend.app.spatial.distance import (
    EARTH_RADIUS_KM,
    Coordinate,
    Position,
    directions_link,
    distance,
    format_distance,
    haversine,
    map_link,
)
from backend.app.spatial.stations import (
    BUNDLED_STATIONS_FILE,
    RankedStation,
    Station,
    load_stations,
    nearest,
    parse_stations,
)


SF = Coordinate(37.7749, -122.4194)
LA = Coordinate(34.0522, -118.2437)


def _station(name: str, lat: float, lon: float) -> Station:
    return Station(name=name, coordinate=Coordinate(lat, lon))


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Coordinates
# ═══════════════════════════════════════════════════════════════════════════

class TestCoordinate:

    def test_valid_bounds_accepted(self):
        Coordinate(90, 180)
        Coordinate(-90, -180)

    @pytest.mark.parametrize("lat,lon", [(90.1, 0), (-91, 0), (0, 180.5), (0, -181)])
    def test_out_of_range_rejected(self, lat, lon):
        with pytest.raises(ValueError):
            Coordinate(lat, lon)

    def test_is_immutable(self):
        with pytest.raises(Exception):
            SF.latitude = 1.0

    def test_position_exposes_coordinates(self):
        p = Position.at(37.7749, -122.4194)
        assert p.latitude == 37.7749
        assert p.longitude == -122.4194
        assert p.timestamp.tzinfo is not None


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Haversine
# ═══════════════════════════════════════════════════════════════════════════

class TestHaversine:

    @pytest.mark.parametrize("point", [
        Coordinate(0, 0), SF, Coordinate(-33.8688, 151.2093),
        Coordinate(90, 0), Coordinate(-90, 180),
    ])
    def test_coincident_points_are_exactly_zero(self, point):
        assert distance(point, point) == 0.0

    def test_symmetric(self):
        assert haversine(SF, LA) == haversine(LA, SF)

    def test_known_distance_sf_la(self):
        # ~559 km great-circle
        assert 550 < haversine(SF, LA) < 565

    def test_one_degree_latitude(self):
        d = haversine(Coordinate(0, 0), Coordinate(1, 0))
        assert abs(d - EARTH_RADIUS_KM * math.pi / 180) < 1e-6

    def test_antipodal_is_half_circumference(self):
        d = haversine(Coordinate(0, 0), Coordinate(0, 180))
        assert not math.isnan(d)
        assert abs(d - math.pi * EARTH_RADIUS_KM) < 1e-6

    def test_antipodal_off_equator(self):
        d = haversine(Coordinate(37.7749, -122.4194), Coordinate(-37.7749, 57.5806))
        assert not math.isnan(d)
        assert abs(d - math.pi * EARTH_RADIUS_KM) < 1e-3

    def test_uses_6371_km_radius(self):
        assert EARTH_RADIUS_KM == 6371.0


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Links & labels
# ═══════════════════════════════════════════════════════════════════════════

class TestLinks:

    def test_map_link_keeps_raw_coordinates(self):
        assert map_link(SF) == "https://www.google.com/maps?q=37.7749,-122.4194"

    def test_directions_link(self):
        url = directions_link(SF, LA)
        assert url == (
            "https://www.google.com/maps/dir/?api=1"
            "&origin=37.7749,-122.4194&destination=34.0522,-118.2437"
        )

    def test_format_distance_two_decimals(self):
        assert format_distance(3.7266) == "3.73 km"
        assert format_distance(0.0) == "0.00 km"


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Nearest-station ranking
# ═══════════════════════════════════════════════════════════════════════════

class TestNearest:

    STATIONS = (
        _station("Far", 38.5, -121.5),
        _station("Near", 37.7760, -122.4190),
        _station("Middle", 37.80, -122.41),
        _station("Farther", 34.0, -118.0),
    )

    def test_sorted_ascending(self):
        ranked = nearest(SF, self.STATIONS, k=4)
        distances = [r.distance_km for r in ranked]
        assert distances == sorted(distances)
        assert ranked[0].name == "Near"

    def test_length_is_min_k_n(self):
        assert len(nearest(SF, self.STATIONS, k=2)) == 2
        assert len(nearest(SF, self.STATIONS, k=10)) == 4

    def test_default_k_is_two(self):
        assert len(nearest(SF, self.STATIONS)) == 2

    def test_empty_catalogue(self):
        assert nearest(SF, [], k=3) == []

    def test_non_positive_k(self):
        assert nearest(SF, self.STATIONS, k=0) == []
        assert nearest(SF, self.STATIONS, k=-1) == []

    def test_ties_keep_catalogue_order(self):
        # Mirror points north and south of the origin are equidistant
        origin = Coordinate(0, 0)
        stations = [
            _station("North", 0.5, 0),
            _station("South", -0.5, 0),
            _station("North-again", 0.5, 0),
        ]
        ranked = nearest(origin, stations, k=3)
        assert ranked[0].distance_km == ranked[1].distance_km == ranked[2].distance_km
        assert [r.name for r in ranked] == ["North", "South", "North-again"]

    def test_does_not_mutate_input(self):
        stations = list(self.STATIONS)
        before = list(stations)
        nearest(SF, stations, k=4)
        assert stations == before

    def test_accepts_position(self):
        ranked = nearest(Position(coordinate=SF), self.STATIONS, k=1)
        assert ranked[0].name == "Near"

    def test_ranked_station_dict(self):
        r = nearest(SF, self.STATIONS, k=1)[0]
        d = r.to_dict()
        assert isinstance(r, RankedStation)
        assert d["name"] == "Near"
        assert d["distance_km"] >= 0
        assert d["distance_label"].endswith(" km")
        assert "origin=37.7749,-122.4194" in d["directions_url"]
        assert "destination=37.776,-122.419" in d["directions_url"]


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Loading
# ═══════════════════════════════════════════════════════════════════════════

class TestLoadStations:

    def test_bundled_catalogue_loads(self):
        stations = load_stations()
        assert BUNDLED_STATIONS_FILE.exists()
        assert len(stations) >= 2
        assert all(isinstance(s, Station) for s in stations)
        assert isinstance(stations, tuple)

    def test_custom_file(self, tmp_path):
        path = tmp_path / "stations.json"
        path.write_text(json.dumps([
            {"name": "A", "latitude": 1.0, "longitude": 2.0},
        ]))
        stations = load_stations(path)
        assert stations[0].name == "A"
        assert stations[0].coordinate == Coordinate(1.0, 2.0)

    def test_not_a_list_rejected(self, tmp_path):
        path = tmp_path / "stations.json"
        path.write_text(json.dumps({"name": "A"}))
        with pytest.raises(ValueError):
            load_stations(path)

    @pytest.mark.parametrize("entry", [
        {"latitude": 1.0, "longitude": 2.0},
        {"name": "X", "latitude": 100.0, "longitude": 2.0},
        {"name": "X", "latitude": "abc", "longitude": 2.0},
        {"name": "  ", "latitude": 1.0, "longitude": 2.0},
    ])
    def test_bad_entries_rejected(self, entry):
        with pytest.raises(ValueError):
            parse_stations([entry])
