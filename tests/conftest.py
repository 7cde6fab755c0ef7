"""
Shared pytest fixtures for the field service workspace unit tests.

Provides a pinned reference time and row factories that mirror the flat,
camelCase rows returned by the field service repository, so the builder can
be exercised without a database.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest


# ---------------------------------------------------------------------------
# Reference time
# ---------------------------------------------------------------------------

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Pinned reference time for every build in the unit suite."""
    return NOW


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_order_row(now: datetime) -> Callable[..., dict[str, Any]]:
    """Factory for an order row joined with customer and provider columns.

    Defaults describe an en route job requested 30 minutes ago for customer
    user 1, assigned to provider 10 (owned by user 2).
    """

    def _factory(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": 100,
            "reference": "FS-100",
            "customerUserId": 1,
            "providerId": 10,
            "status": "en_route",
            "priority": "urgent",
            "serviceType": "Network repair",
            "summary": "Core switch outage",
            "requestedAt": now - timedelta(minutes=30),
            "scheduledFor": now + timedelta(hours=2),
            "etaMinutes": 18,
            "slaMinutes": 240,
            "distanceKm": None,
            "locationLat": 51.51,
            "locationLng": -0.12,
            "locationLabel": "Head office",
            "addressLine1": "1 Strand",
            "city": "London",
            "postalCode": "WC2N 5HR",
            "country": "GB",
            "metadata": {},
            "updatedAt": now - timedelta(minutes=20),
            "customerFirstName": "Avery",
            "customerLastName": "Stone",
            "customerEmail": "avery@example.com",
            "providerUserId": 2,
            "providerName": "Jordan Field",
            "providerEmail": "jordan@example.com",
            "providerPhone": "+44 20 7946 0000",
            "providerStatus": "active",
            "providerSpecialties": ["networking"],
            "providerRating": 4.8,
            "providerLastCheckInAt": now - timedelta(minutes=5),
            "providerLocationLat": 51.50,
            "providerLocationLng": -0.10,
            "providerLocationLabel": "Depot",
            "providerLocationUpdatedAt": now - timedelta(minutes=5),
            "providerMetadata": {},
        }
        row.update(overrides)
        return row

    return _factory


@pytest.fixture
def make_event_row(now: datetime) -> Callable[..., dict[str, Any]]:
    """Factory for an order event row."""

    def _factory(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": 1,
            "orderId": 100,
            "eventType": "dispatch_created",
            "status": None,
            "notes": "",
            "author": None,
            "occurredAt": now - timedelta(minutes=25),
            "metadata": {},
        }
        row.update(overrides)
        return row

    return _factory


@pytest.fixture
def make_provider_row(now: datetime) -> Callable[..., dict[str, Any]]:
    """Factory for a standalone provider row."""

    def _factory(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": 10,
            "userId": 2,
            "name": "Jordan Field",
            "email": "jordan@example.com",
            "phone": "+44 20 7946 0000",
            "status": "active",
            "specialties": ["networking", "fibre"],
            "rating": 4.8,
            "lastCheckInAt": now - timedelta(minutes=5),
            "locationLat": 51.50,
            "locationLng": -0.10,
            "locationLabel": "Depot",
            "locationUpdatedAt": now - timedelta(minutes=5),
            "metadata": {},
        }
        row.update(overrides)
        return row

    return _factory
