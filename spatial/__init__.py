# spatial/__init__.py

"""Spatial layer for fieldglow - geodesy, node placement and R-tree indexing."""

from .geo import (
    Coordinate,
    LocalVector,
    angular_difference,
    bearing_degrees,
    destination_point,
    distance_meters,
    geo_to_local,
    normalize_heading,
)
from .generator import generate_candidate
from .index import NodeIndex

__all__ = [
    "NodeIndex",
    "Coordinate",
    "LocalVector",
    "distance_meters",
    "bearing_degrees",
    "destination_point",
    "geo_to_local",
    "angular_difference",
    "normalize_heading",
    "generate_candidate",
]
