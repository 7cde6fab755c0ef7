"""
Row Normalizer -- FS-WORKSPACE-001
===================================

Turns the loosely typed rows returned by the field service repository (or
posted by a caller) into canonical, typed records.

Rows arrive with either camelCase (``requestedAt``) or snake_case
(``requested_at``) keys.  JSON columns may be ``None``, JSON text, or an
already-decoded dict/list depending on the database driver.  Numeric columns
may be ``Decimal``, ``str`` or missing entirely.

Every coercion in this module is total: malformed input is replaced with a
documented default (``{}``, ``[]`` or ``None``) and nothing is raised.
Validation happens here, once; downstream stages trust the records.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY: str = "GB"
DEFAULT_PRIORITY: str = "standard"
DEFAULT_SERVICE_TYPE: str = "Field service request"
DEFAULT_STATUS: str = "pending"

_STATUS_SANITIZER = re.compile(r"[^a-z_]")


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Address:
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = DEFAULT_COUNTRY


@dataclass(frozen=True)
class ServiceLocation:
    """Job site of an order."""
    label: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    address: Address = field(default_factory=Address)


@dataclass(frozen=True)
class ProviderLocation:
    """Last known position reported by a provider."""
    label: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProviderRecord:
    id: int
    user_id: Optional[int]
    name: str
    email: Optional[str]
    phone: Optional[str]
    status: str
    rating: Optional[float]
    specialties: list[str]
    last_check_in_at: Optional[datetime]
    location: ProviderLocation
    metadata: dict[str, Any]
    avatar: Optional[str]


@dataclass(frozen=True)
class EventRecord:
    id: Optional[int]
    order_id: int
    type: str
    status: Optional[str]
    notes: str
    author: Optional[str]
    occurred_at: Optional[datetime]
    metadata: dict[str, Any]


@dataclass(frozen=True)
class OrderRecord:
    id: int
    reference: str
    customer_user_id: Optional[int]
    customer_first_name: Optional[str]
    customer_last_name: Optional[str]
    customer_email: Optional[str]
    provider_id: Optional[int]
    provider_user_id: Optional[int]
    status: str
    priority: str
    service_type: str
    summary: str
    requested_at: Optional[datetime]
    scheduled_for: Optional[datetime]
    updated_at: Optional[datetime]
    eta_minutes: Optional[float]
    sla_minutes: Optional[float]
    distance_km: Optional[float]
    location: ServiceLocation
    metadata: dict[str, Any]


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------

def pick(row: Any, *keys: str) -> Any:
    """Return the first non-``None`` value among ``keys``.

    Works on mappings and on attribute-style rows (ORM objects, named
    tuples).  Missing keys are treated as ``None``.
    """
    for key in keys:
        if isinstance(row, Mapping):
            value = row.get(key)
        else:
            value = getattr(row, key, None)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def safe_json_parse(value: Any, fallback: Any) -> Any:
    """Decode ``value`` if it is JSON text, returning ``fallback`` on failure.

    Text holding ``NaN`` or ``Infinity`` is not JSON and gives ``fallback``.
    Already-decoded dicts and lists are returned as-is.  A decoded value of a
    different container type than ``fallback`` is also replaced by
    ``fallback``.
    """
    if value is None or value == "" or value == b"":
        return fallback
    if isinstance(value, (dict, list)):
        decoded = value
    elif isinstance(value, (str, bytes, bytearray)):
        try:
            decoded = json.loads(value, parse_constant=_reject_constant)
        except (ValueError, TypeError):
            return fallback
    else:
        return fallback

    if isinstance(fallback, dict) and not isinstance(decoded, dict):
        return fallback
    if isinstance(fallback, list) and not isinstance(decoded, list):
        return fallback
    return decoded


def coerce_object(value: Any) -> dict[str, Any]:
    """Resolve a JSON-or-dict column to a dict (``{}`` when unusable)."""
    return safe_json_parse(value, {})


def parse_number(value: Any) -> Optional[float]:
    """Coerce ``value`` to a finite number or ``None``.

    Integers are kept as ``int``; everything else becomes ``float``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, ArithmeticError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_identifier(value: Any) -> Optional[int]:
    """Coerce a numeric identity (``7``, ``"7"``, ``7.0``) to ``int``."""
    number = parse_number(value)
    if number is None:
        return None
    if isinstance(number, float):
        if not number.is_integer():
            return None
        return int(number)
    return number


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware UTC-compatible ``datetime``.

    Accepts ``datetime`` objects (naive values are assumed to be UTC),
    ISO-8601 text (a trailing ``Z`` is allowed) and epoch milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float, Decimal)):
        try:
            return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    return None


def _clean_strings(values: Any) -> list[str]:
    cleaned = (str(entry).strip() for entry in values)
    return [entry for entry in cleaned if entry]


def normalize_string_list(value: Any) -> list[str]:
    """Coerce a tag-like column into a list of non-empty trimmed strings.

    Accepts a real list, JSON-array text, comma-separated text, or a mapping
    (whose values are used).
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return _clean_strings(value)
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        if trimmed.startswith("["):
            parsed = safe_json_parse(trimmed, None)
            if isinstance(parsed, list):
                return _clean_strings(parsed)
        return _clean_strings(trimmed.split(","))
    if isinstance(value, Mapping):
        return _clean_strings(value.values())
    return []


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def build_avatar_url(email: Optional[str]) -> Optional[str]:
    """Deterministic Gravatar identicon URL for an email address."""
    if not email:
        return None
    digest = hashlib.md5(str(email).strip().lower().encode("utf-8")).hexdigest()
    return f"https://www.gravatar.com/avatar/{digest}?d=identicon&s=160"


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------

def normalize_provider_row(row: Any) -> Optional[ProviderRecord]:
    """Normalize a standalone provider row.  Returns ``None`` without an id."""
    provider_id = parse_identifier(pick(row, "id"))
    if provider_id is None:
        return None

    metadata = coerce_object(pick(row, "metadata"))
    email = _optional_text(pick(row, "email"))
    specialties = pick(row, "specialties")
    if specialties is None:
        specialties = metadata.get("specialties")

    return ProviderRecord(
        id=provider_id,
        user_id=parse_identifier(pick(row, "userId", "user_id")) or None,
        name=str(pick(row, "name") or f"Provider {provider_id}"),
        email=email,
        phone=_optional_text(pick(row, "phone")),
        status=str(pick(row, "status") or "active"),
        rating=parse_number(pick(row, "rating")),
        specialties=normalize_string_list(specialties),
        last_check_in_at=parse_datetime(pick(row, "lastCheckInAt", "last_check_in_at")),
        location=ProviderLocation(
            label=_optional_text(
                pick(row, "locationLabel", "location_label") or metadata.get("locationLabel")
            ),
            lat=parse_number(pick(row, "locationLat", "location_lat")),
            lng=parse_number(pick(row, "locationLng", "location_lng")),
            updated_at=parse_datetime(pick(row, "locationUpdatedAt", "location_updated_at")),
        ),
        metadata=metadata,
        avatar=build_avatar_url(email),
    )


def normalize_event_row(row: Any) -> Optional[EventRecord]:
    """Normalize an event row.  Returns ``None`` without a usable order id."""
    order_id = parse_identifier(pick(row, "orderId", "order_id"))
    if order_id is None:
        logger.debug("Skipping field service event without order id: %r", pick(row, "id"))
        return None

    status = pick(row, "status")
    return EventRecord(
        id=parse_identifier(pick(row, "id")),
        order_id=order_id,
        type=str(pick(row, "eventType", "event_type", "type") or "").lower(),
        status=str(status).lower() if status else None,
        notes=str(pick(row, "notes") or ""),
        author=_optional_text(pick(row, "author")),
        occurred_at=parse_datetime(pick(row, "occurredAt", "occurred_at")),
        metadata=coerce_object(pick(row, "metadata")),
    )


def resolve_status(raw_status: Any, timeline: list[EventRecord]) -> str:
    """Order status key: the stored status, else the latest event's status."""
    status = str(raw_status or "").lower()
    if not status and timeline:
        status = timeline[-1].status or ""
    return _STATUS_SANITIZER.sub("_", status or DEFAULT_STATUS)


def normalize_order_row(
    row: Any,
    timeline: Optional[list[EventRecord]] = None,
) -> Optional[OrderRecord]:
    """Normalize an order row joined with its customer and provider columns.

    ``timeline`` is the order's chronologically sorted events; it supplies
    the status when the row has none and ETA/distance fallbacks from the
    most recent event's metadata.
    """
    order_id = parse_identifier(pick(row, "id", "orderId", "order_id"))
    if order_id is None:
        logger.debug("Skipping field service order row without a numeric id")
        return None

    timeline = timeline or []
    last_event = timeline[-1] if timeline else None
    last_event_metadata = last_event.metadata if last_event else {}
    metadata = coerce_object(pick(row, "metadata"))

    eta_minutes = parse_number(pick(row, "etaMinutes", "eta_minutes"))
    if eta_minutes is None:
        eta_minutes = parse_number(last_event_metadata.get("etaMinutes"))
    sla_minutes = parse_number(pick(row, "slaMinutes", "sla_minutes"))
    if sla_minutes is None:
        sla_minutes = parse_number(metadata.get("slaMinutes"))
    distance_km = parse_number(pick(row, "distanceKm", "distance_km"))
    if distance_km is None:
        distance_km = parse_number(last_event_metadata.get("distanceKm"))

    return OrderRecord(
        id=order_id,
        reference=str(pick(row, "reference") or f"FS-{order_id}"),
        customer_user_id=parse_identifier(pick(row, "customerUserId", "customer_user_id")) or None,
        customer_first_name=_optional_text(pick(row, "customerFirstName", "customer_first_name")),
        customer_last_name=_optional_text(pick(row, "customerLastName", "customer_last_name")),
        customer_email=_optional_text(pick(row, "customerEmail", "customer_email")),
        provider_id=parse_identifier(pick(row, "providerId", "provider_id")) or None,
        provider_user_id=parse_identifier(pick(row, "providerUserId", "provider_user_id")) or None,
        status=resolve_status(pick(row, "status"), timeline),
        priority=str(pick(row, "priority") or DEFAULT_PRIORITY),
        service_type=str(pick(row, "serviceType", "service_type") or DEFAULT_SERVICE_TYPE),
        summary=str(pick(row, "summary") or metadata.get("summary") or ""),
        requested_at=parse_datetime(pick(row, "requestedAt", "requested_at")),
        scheduled_for=parse_datetime(pick(row, "scheduledFor", "scheduled_for")),
        updated_at=parse_datetime(pick(row, "updatedAt", "updated_at")),
        eta_minutes=eta_minutes,
        sla_minutes=sla_minutes,
        distance_km=distance_km,
        location=ServiceLocation(
            label=_optional_text(
                pick(row, "locationLabel", "location_label") or metadata.get("locationLabel")
            ),
            lat=parse_number(pick(row, "locationLat", "location_lat")),
            lng=parse_number(pick(row, "locationLng", "location_lng")),
            address=Address(
                line1=_optional_text(pick(row, "addressLine1", "address_line_1", "address_line1")),
                line2=_optional_text(pick(row, "addressLine2", "address_line_2", "address_line2")),
                city=_optional_text(pick(row, "city")),
                region=_optional_text(pick(row, "region")),
                postal_code=_optional_text(pick(row, "postalCode", "postal_code")),
                country=str(pick(row, "country") or DEFAULT_COUNTRY),
            ),
        ),
        metadata=metadata,
    )
