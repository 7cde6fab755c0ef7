"""
Geo Service -- FS-WORKSPACE-004
================================

Geographic utility functions for the field service workspace: great-circle
distance between a provider and a job site, and bounding boxes for the
operations map.

Uses the haversine formula for great-circle distance between two points
on Earth's surface. Accurate enough for dispatch estimates (error < 0.5%
for distances under 100 km).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

# Earth's mean radius in kilometres
EARTH_RADIUS_KM: float = 6371.0


@dataclass(frozen=True)
class MapPoint:
    """A labelled coordinate rendered on the operations map."""

    lat: float
    lng: float
    label: Optional[str] = None


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def _is_finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def haversine_distance(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
) -> Optional[float]:
    """Calculate the great-circle distance between two points using the
    haversine formula.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lon1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lon2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in kilometres, or ``None`` when any coordinate is missing
        or not finite.
    """
    if not all(_is_finite(value) for value in (lat1, lon1, lat2, lon2)):
        return None

    # Convert decimal degrees to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    # Haversine formula
    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def compute_bounds(points: Sequence[MapPoint]) -> Optional[Bounds]:
    """Bounding box of all points with finite coordinates, or ``None``."""
    valid = [point for point in points if _is_finite(point.lat) and _is_finite(point.lng)]
    if not valid:
        return None

    latitudes = [point.lat for point in valid]
    longitudes = [point.lng for point in valid]
    return Bounds(
        min_lat=min(latitudes),
        max_lat=max(latitudes),
        min_lng=min(longitudes),
        max_lng=max(longitudes),
    )
