"""
Provider Registry -- FS-WORKSPACE-002
======================================

Deduplicates provider records coming from two sources into a single
identity-keyed map:

1. The standalone provider list (``field_service_providers`` rows).
2. Provider columns embedded in each order row by the repository join
   (``providerName``, ``providerEmail``, ...).

Identity is the numeric provider id.  The first standalone row seen for an
id wins.  When an order is resolved, its embedded columns take precedence
field by field and the standalone row fills in whatever the order row does
not carry.  A registry is built per workspace call and discarded afterwards.
"""

from __future__ import annotations

import logging
from collections import ChainMap
from typing import Any, Iterable, Mapping, Optional

from fieldops.services.rowNormalizer import (
    ProviderRecord,
    normalize_provider_row,
    parse_identifier,
    pick,
)

logger = logging.getLogger(__name__)


# Standalone provider column -> (camelCase, snake_case) keys of the same column on an order row
EMBEDDED_PROVIDER_COLUMNS: dict[str, tuple[str, str]] = {
    "userId": ("providerUserId", "provider_user_id"),
    "name": ("providerName", "provider_name"),
    "email": ("providerEmail", "provider_email"),
    "phone": ("providerPhone", "provider_phone"),
    "status": ("providerStatus", "provider_status"),
    "specialties": ("providerSpecialties", "provider_specialties"),
    "rating": ("providerRating", "provider_rating"),
    "lastCheckInAt": ("providerLastCheckInAt", "provider_last_check_in_at"),
    "locationLat": ("providerLocationLat", "provider_location_lat"),
    "locationLng": ("providerLocationLng", "provider_location_lng"),
    "locationLabel": ("providerLocationLabel", "provider_location_label"),
    "locationUpdatedAt": ("providerLocationUpdatedAt", "provider_location_updated_at"),
    "metadata": ("providerMetadata", "provider_metadata"),
}


def _embedded_columns(order_row: Any) -> dict[str, Any]:
    """Provider columns carried by an order row, keyed as on a standalone row."""
    columns: dict[str, Any] = {}
    for canonical, keys in EMBEDDED_PROVIDER_COLUMNS.items():
        value = pick(order_row, *keys)
        if value is not None:
            columns[canonical] = value
    return columns


def _row_columns(row: Any) -> Mapping[str, Any]:
    """A standalone row as a mapping; ``normalize_provider_row`` reads both key spellings."""
    if isinstance(row, Mapping):
        return row
    if hasattr(row, "_asdict"):
        return row._asdict()
    return vars(row)


class ProviderRegistry:
    """Identity-keyed provider map for a single workspace build.

    Usage::

        registry = ProviderRegistry.from_rows(provider_rows)
        provider = registry.resolve(order_row)
        roster = registry.providers()
    """

    def __init__(self) -> None:
        self._columns: dict[int, Mapping[str, Any]] = {}
        self._records: dict[int, ProviderRecord] = {}
        self._standalone_ids: list[int] = []

    @classmethod
    def from_rows(cls, rows: Optional[Iterable[Any]]) -> "ProviderRegistry":
        registry = cls()
        for row in rows or ():
            registry.register(row)
        return registry

    def register(self, row: Any) -> Optional[ProviderRecord]:
        """Add a standalone provider row.  The first row for an id wins."""
        provider_id = parse_identifier(pick(row, "id"))
        if provider_id is None:
            logger.debug("Skipping provider row without a numeric id")
            return None
        if provider_id in self._records:
            return self._records[provider_id]

        columns = _row_columns(row)
        record = normalize_provider_row(ChainMap({"id": provider_id}, columns))
        self._columns[provider_id] = columns
        self._records[provider_id] = record
        self._standalone_ids.append(provider_id)
        return record

    def get(self, provider_id: Optional[int]) -> Optional[ProviderRecord]:
        if provider_id is None:
            return None
        return self._records.get(provider_id)

    def resolve(self, order_row: Any) -> Optional[ProviderRecord]:
        """Resolve the provider assigned to ``order_row``.

        Returns ``None`` when the order has no parseable provider id, or
        when neither the order row nor the standalone list knows the id.
        """
        provider_id = parse_identifier(pick(order_row, "providerId", "provider_id"))
        if not provider_id:
            return None

        embedded = _embedded_columns(order_row)
        standalone = self._columns.get(provider_id)
        if not embedded and standalone is None:
            logger.debug("Provider %s referenced by an order is unknown", provider_id)
            return None
        if not embedded:
            return self._records[provider_id]

        record = normalize_provider_row(ChainMap(embedded, {"id": provider_id}, standalone or {}))
        if provider_id not in self._records:
            self._columns[provider_id] = embedded
            self._records[provider_id] = record
        return record

    def providers(self) -> list[ProviderRecord]:
        """All known providers in first-seen order."""
        return list(self._records.values())

    def standalone_providers(self) -> list[ProviderRecord]:
        """Providers that came from the standalone list, in input order."""
        return [self._records[provider_id] for provider_id in self._standalone_ids]
