"""
distance.py — Great-circle distance and map links for alert positions.

Provides:
    - Coordinate / Position value types
    - Haversine distance between two coordinates
    - Google Maps links (pin + directions) embedded in alerts and station cards
    - Human-readable distance labels

All distances are in **kilometers**. Coordinates are in **decimal degrees**.

Mathematical Foundation — Haversine Formula
============================================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

Where R = 6,371 km. ``a`` is clamped to [0, 1] because rounding can push it
a hair past 1 for antipodal points, which would make √(1 − a) undefined.
Coincident points give a = 0 and therefore exactly 0 km.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


EARTH_RADIUS_KM: float = 6_371.0

MAPS_PIN_URL = "https://www.google.com/maps?q={lat},{lon}"
MAPS_DIRECTIONS_URL = (
    "https://www.google.com/maps/dir/?api=1"
    "&origin={o_lat},{o_lon}&destination={d_lat},{d_lon}"
)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(
                f"Latitude must be in [-90, 90], got {self.latitude}"
            )
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(
                f"Longitude must be in [-180, 180], got {self.longitude}"
            )

    @property
    def lat_rad(self) -> float:
        return math.radians(self.latitude)

    @property
    def lon_rad(self) -> float:
        return math.radians(self.longitude)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Position:
    """A position fix: coordinate plus when it was acquired."""
    coordinate: Coordinate
    timestamp: datetime = field(default_factory=_utcnow)
    accuracy_m: Optional[float] = None

    @classmethod
    def at(
        cls,
        latitude: float,
        longitude: float,
        timestamp: Optional[datetime] = None,
        accuracy_m: Optional[float] = None,
    ) -> "Position":
        return cls(
            coordinate=Coordinate(latitude, longitude),
            timestamp=timestamp or _utcnow(),
            accuracy_m=accuracy_m,
        )

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp.isoformat(),
            "accuracy_m": self.accuracy_m,
        }


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def haversine(point1: Coordinate, point2: Coordinate) -> float:
    """
    Great-circle distance in kilometers between two coordinates.

    >>> haversine(Coordinate(0, 0), Coordinate(0, 0))
    0.0
    """
    d_lat = point2.lat_rad - point1.lat_rad
    d_lon = point2.lon_rad - point1.lon_rad

    a = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(point1.lat_rad)
        * math.cos(point2.lat_rad)
        * math.sin(d_lon / 2.0) ** 2
    )
    a = min(1.0, max(0.0, a))

    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


# The pipeline's name for the same operation
distance = haversine


# ---------------------------------------------------------------------------
# Links & labels
# ---------------------------------------------------------------------------

def map_link(point: Coordinate) -> str:
    """Pin link for a coordinate, exactly as sent in the alert text."""
    return MAPS_PIN_URL.format(lat=point.latitude, lon=point.longitude)


def directions_link(origin: Coordinate, destination: Coordinate) -> str:
    """Turn-by-turn directions link from the user to a station."""
    return MAPS_DIRECTIONS_URL.format(
        o_lat=origin.latitude, o_lon=origin.longitude,
        d_lat=destination.latitude, d_lon=destination.longitude,
    )


def format_distance(km: float) -> str:
    """
    Format a distance for display.

    >>> format_distance(0.45)
    '0.45 km'
    >>> format_distance(3.7266)
    '3.73 km'
    """
    return f"{km:.2f} km"
