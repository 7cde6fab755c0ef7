"""
Field Service Repository -- FS-WORKSPACE-011
=============================================

Async SQLAlchemy queries that feed the workspace builder.  Every query
returns flat, camelCase-keyed row dicts so the builder never sees ORM
objects and can be exercised with plain dicts in tests.

Orders are joined with the requesting customer (``users``) and the
assigned provider (``field_service_providers``) so each order row carries
the embedded provider columns the provider registry expects.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.models.fieldService import (
    FieldServiceEvent,
    FieldServiceOrder,
    FieldServiceProvider,
)
from fieldops.models.user import User
from fieldops.services.fieldServiceWorkspace import (
    FieldServiceWorkspaceResult,
    build_workspace,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Column projections
# ---------------------------------------------------------------------------

_ORDER_COLUMNS = (
    FieldServiceOrder.id.label("id"),
    FieldServiceOrder.reference.label("reference"),
    FieldServiceOrder.customer_user_id.label("customerUserId"),
    FieldServiceOrder.provider_id.label("providerId"),
    FieldServiceOrder.status.label("status"),
    FieldServiceOrder.priority.label("priority"),
    FieldServiceOrder.service_type.label("serviceType"),
    FieldServiceOrder.summary.label("summary"),
    FieldServiceOrder.requested_at.label("requestedAt"),
    FieldServiceOrder.scheduled_for.label("scheduledFor"),
    FieldServiceOrder.eta_minutes.label("etaMinutes"),
    FieldServiceOrder.sla_minutes.label("slaMinutes"),
    FieldServiceOrder.distance_km.label("distanceKm"),
    FieldServiceOrder.location_lat.label("locationLat"),
    FieldServiceOrder.location_lng.label("locationLng"),
    FieldServiceOrder.location_label.label("locationLabel"),
    FieldServiceOrder.address_line_1.label("addressLine1"),
    FieldServiceOrder.address_line_2.label("addressLine2"),
    FieldServiceOrder.city.label("city"),
    FieldServiceOrder.region.label("region"),
    FieldServiceOrder.postal_code.label("postalCode"),
    FieldServiceOrder.country.label("country"),
    FieldServiceOrder.metadata_json.label("metadata"),
    FieldServiceOrder.created_at.label("createdAt"),
    FieldServiceOrder.updated_at.label("updatedAt"),
    User.first_name.label("customerFirstName"),
    User.last_name.label("customerLastName"),
    User.email.label("customerEmail"),
    FieldServiceProvider.user_id.label("providerUserId"),
    FieldServiceProvider.name.label("providerName"),
    FieldServiceProvider.email.label("providerEmail"),
    FieldServiceProvider.phone.label("providerPhone"),
    FieldServiceProvider.status.label("providerStatus"),
    FieldServiceProvider.specialties.label("providerSpecialties"),
    FieldServiceProvider.rating.label("providerRating"),
    FieldServiceProvider.last_check_in_at.label("providerLastCheckInAt"),
    FieldServiceProvider.location_lat.label("providerLocationLat"),
    FieldServiceProvider.location_lng.label("providerLocationLng"),
    FieldServiceProvider.location_label.label("providerLocationLabel"),
    FieldServiceProvider.location_updated_at.label("providerLocationUpdatedAt"),
    FieldServiceProvider.metadata_json.label("providerMetadata"),
)

_EVENT_COLUMNS = (
    FieldServiceEvent.id.label("id"),
    FieldServiceEvent.order_id.label("orderId"),
    FieldServiceEvent.event_type.label("eventType"),
    FieldServiceEvent.status.label("status"),
    FieldServiceEvent.notes.label("notes"),
    FieldServiceEvent.author.label("author"),
    FieldServiceEvent.occurred_at.label("occurredAt"),
    FieldServiceEvent.metadata_json.label("metadata"),
)

_PROVIDER_COLUMNS = (
    FieldServiceProvider.id.label("id"),
    FieldServiceProvider.user_id.label("userId"),
    FieldServiceProvider.name.label("name"),
    FieldServiceProvider.email.label("email"),
    FieldServiceProvider.phone.label("phone"),
    FieldServiceProvider.status.label("status"),
    FieldServiceProvider.specialties.label("specialties"),
    FieldServiceProvider.rating.label("rating"),
    FieldServiceProvider.last_check_in_at.label("lastCheckInAt"),
    FieldServiceProvider.location_lat.label("locationLat"),
    FieldServiceProvider.location_lng.label("locationLng"),
    FieldServiceProvider.location_label.label("locationLabel"),
    FieldServiceProvider.location_updated_at.label("locationUpdatedAt"),
    FieldServiceProvider.metadata_json.label("metadata"),
)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_orders_for_user(db: AsyncSession, user_id: Optional[int]) -> list[dict[str, Any]]:
    """Orders the user requested or is the assigned provider for, newest first."""
    if not user_id:
        return []

    stmt = (
        select(*_ORDER_COLUMNS)
        .select_from(FieldServiceOrder)
        .outerjoin(User, User.id == FieldServiceOrder.customer_user_id)
        .outerjoin(FieldServiceProvider, FieldServiceProvider.id == FieldServiceOrder.provider_id)
        .where(
            or_(
                FieldServiceOrder.customer_user_id == user_id,
                FieldServiceProvider.user_id == user_id,
            )
        )
        .order_by(FieldServiceOrder.created_at.desc(), FieldServiceOrder.id.desc())
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def list_events_for_orders(
    db: AsyncSession,
    order_ids: Sequence[int],
) -> list[dict[str, Any]]:
    """Events for the given orders, oldest first."""
    ids = [order_id for order_id in order_ids if order_id is not None]
    if not ids:
        return []

    stmt = (
        select(*_EVENT_COLUMNS)
        .where(FieldServiceEvent.order_id.in_(ids))
        .order_by(FieldServiceEvent.occurred_at.asc(), FieldServiceEvent.id.asc())
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def list_providers_for_workspace(
    db: AsyncSession,
    provider_ids: Sequence[int],
    user_id: Optional[int],
) -> list[dict[str, Any]]:
    """Referenced providers plus the user's own provider profile, if any."""
    ids = [provider_id for provider_id in provider_ids if provider_id is not None]
    conditions = []
    if ids:
        conditions.append(FieldServiceProvider.id.in_(ids))
    if user_id:
        conditions.append(FieldServiceProvider.user_id == user_id)
    if not conditions:
        return []

    stmt = (
        select(*_PROVIDER_COLUMNS)
        .where(or_(*conditions))
        .order_by(FieldServiceProvider.id.asc())
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


# ---------------------------------------------------------------------------
# Workspace loader
# ---------------------------------------------------------------------------

async def load_workspace_for_user(
    db: AsyncSession,
    user_id: int,
    now: datetime,
) -> FieldServiceWorkspaceResult:
    """Query everything the user's workspace needs and build it at ``now``."""
    orders = await list_orders_for_user(db, user_id)
    order_ids = [row["id"] for row in orders]
    provider_ids = list(dict.fromkeys(row["providerId"] for row in orders if row["providerId"]))

    events = await list_events_for_orders(db, order_ids)
    providers = await list_providers_for_workspace(db, provider_ids, user_id)

    logger.debug(
        "Loaded %d orders, %d events, %d providers for user %s",
        len(orders),
        len(events),
        len(providers),
        user_id,
    )
    return build_workspace(
        now=now,
        user={"id": user_id},
        orders=orders,
        events=events,
        providers=providers,
    )
