"""
Routing Estimator -- FS-WORKSPACE-004
======================================

Estimates the drive from a provider's last known location to the job site.

No routing API is consulted: the estimate is the great-circle distance at
an assumed average urban speed, with a minimum duration so that very short
hops still show a realistic lead time.  When either end of the route has no
coordinates, a route preview previously stored on the order's metadata is
returned instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Final, Optional

from fieldops.core.formatting import format_datetime, round_half_up
from fieldops.services.geoService import haversine_distance
from fieldops.services.rowNormalizer import (
    ProviderRecord,
    ServiceLocation,
    parse_number,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Average driving speed assumption (km/h) for urban dispatch.
AVERAGE_URBAN_SPEED_KMH: Final[float] = 38.0

# Minimum drive estimate in minutes.
MIN_DRIVE_MINUTES: Final[int] = 5


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Waypoint:
    label: Optional[str]
    lat: Optional[float]
    lng: Optional[float]


@dataclass(frozen=True)
class RoutePreview:
    distance_km: Optional[float]
    estimated_duration_minutes: Optional[int]
    summary: Optional[str]
    departure_window: Optional[str]
    waypoints: list[Any] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def estimate_drive_minutes(distance_km: float) -> int:
    """Drive time in whole minutes, never below ``MIN_DRIVE_MINUTES``."""
    return max(MIN_DRIVE_MINUTES, round_half_up(distance_km / AVERAGE_URBAN_SPEED_KMH * 60))


def _stored_route_preview(metadata: dict[str, Any]) -> Optional[RoutePreview]:
    stored = metadata.get("routePreview")
    if not isinstance(stored, dict):
        return None
    waypoints = stored.get("waypoints")
    return RoutePreview(
        distance_km=parse_number(stored.get("distanceKm")),
        estimated_duration_minutes=parse_number(stored.get("estimatedDurationMinutes")),
        summary=stored.get("summary"),
        departure_window=stored.get("departureWindow"),
        waypoints=list(waypoints) if isinstance(waypoints, list) else [],
    )


def build_route_preview(
    provider: Optional[ProviderRecord],
    location: ServiceLocation,
    metadata: dict[str, Any],
) -> Optional[RoutePreview]:
    """Estimate the provider -> customer drive for an order.

    Args:
        provider: The resolved provider, if any.
        location: The job site.
        metadata: Order metadata, consulted for a stored ``routePreview``.

    Returns:
        A ``RoutePreview``, the stored preview when coordinates are
        missing, or ``None``.
    """
    provider_location = provider.location if provider else None
    if (
        provider_location is None
        or provider_location.lat is None
        or provider_location.lng is None
        or location.lat is None
        or location.lng is None
    ):
        return _stored_route_preview(metadata)

    distance_km = haversine_distance(
        provider_location.lat,
        provider_location.lng,
        location.lat,
        location.lng,
    )
    if distance_km is None or not math.isfinite(distance_km):
        return None

    minutes = estimate_drive_minutes(distance_km)
    departure_window = (
        format_datetime(provider_location.updated_at)
        if provider_location.updated_at
        else None
    )
    return RoutePreview(
        distance_km=round(distance_km, 1),
        estimated_duration_minutes=minutes,
        summary=f"{distance_km:.1f} km • ~{minutes} min drive",
        departure_window=departure_window,
        waypoints=[
            Waypoint(
                label=provider_location.label or provider.name or "Technician",
                lat=provider_location.lat,
                lng=provider_location.lng,
            ),
            Waypoint(
                label=location.label or "Customer site",
                lat=location.lat,
                lng=location.lng,
            ),
        ],
    )
