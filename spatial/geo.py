# spatial/geo.py

"""Spherical geometry helpers and the player-centred local frame."""

import math
from dataclasses import dataclass
from typing import Any

EARTH_RADIUS_M = 6_371_000.0

# Local planar vector: +X = east, -Z = north, Y unused (always 0)
LocalVector = tuple[float, float, float]


@dataclass(frozen=True)
class Coordinate:
    """A WGS84-style geographic point in decimal degrees."""

    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        """Convert coordinate to dictionary representation."""
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Coordinate":
        """Create coordinate from dictionary representation.

        Accepts either ``latitude``/``longitude`` or the short ``lat``/``lon`` keys.

        Raises:
            ValueError: If either component is missing
        """
        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if lat is None or lon is None:
            raise ValueError("Coordinate dict must have 'latitude' and 'longitude' keys")
        return cls(latitude=float(lat), longitude=float(lon))


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points using the haversine formula.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in meters
    """
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def bearing_degrees(start: Coordinate, dest: Coordinate) -> float:
    """Initial great-circle bearing from ``start`` to ``dest``.

    Args:
        start: Origin coordinate
        dest: Destination coordinate

    Returns:
        Bearing in [0, 360), 0 = true north, clockwise. 0.0 when both points coincide.
    """
    if start == dest:
        return 0.0

    start_lat = math.radians(start.latitude)
    dest_lat = math.radians(dest.latitude)
    d_lon = math.radians(dest.longitude - start.longitude)

    y = math.sin(d_lon) * math.cos(dest_lat)
    x = math.cos(start_lat) * math.sin(dest_lat) - math.sin(start_lat) * math.cos(
        dest_lat
    ) * math.cos(d_lon)
    if x == 0.0 and y == 0.0:
        return 0.0

    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination_point(start: Coordinate, distance_m: float, bearing_deg: float) -> Coordinate:
    """Project a point ``distance_m`` meters away along ``bearing_deg``.

    Args:
        start: Starting coordinate
        distance_m: Distance to travel in meters
        bearing_deg: Initial bearing in degrees (0 = north)

    Returns:
        The destination coordinate on the spherical model
    """
    ratio = distance_m / EARTH_RADIUS_M
    bearing = math.radians(bearing_deg)
    lat1 = math.radians(start.latitude)
    lon1 = math.radians(start.longitude)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(ratio) + math.cos(lat1) * math.sin(ratio) * math.cos(bearing)
    )
    lon2 = lon1 + math.atan2(
        math.sin(bearing) * math.sin(ratio) * math.cos(lat1),
        math.cos(ratio) - math.sin(lat1) * math.sin(lat2),
    )

    # Normalize longitude to [-180, 180)
    longitude = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return Coordinate(latitude=math.degrees(lat2), longitude=longitude)


def geo_to_local(origin: Coordinate, target: Coordinate) -> LocalVector:
    """Convert ``target`` into the flat frame anchored at ``origin``.

    Bearing 0 maps to -Z and bearing 90 maps to +X. Rendering depends on this.

    Args:
        origin: Frame anchor
        target: Point to convert

    Returns:
        (x, 0.0, z) in meters
    """
    dist = distance_meters(origin, target)
    angle = math.radians(bearing_degrees(origin, target))
    return (math.sin(angle) * dist, 0.0, -math.cos(angle) * dist)


def angular_difference(a: float, b: float) -> float:
    """Smallest absolute difference between two headings, in [0, 180]."""
    return abs(((a - b + 540.0) % 360.0) - 180.0)


def normalize_heading(heading: float) -> float:
    """Wrap a heading into [0, 360)."""
    return heading % 360.0
