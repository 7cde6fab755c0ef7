"""
Assignment Assembler -- FS-WORKSPACE-007
=========================================

Merges the per-order outputs of the earlier stages (normalized order,
resolved provider, event timeline, route preview, reminder schedule and
SLA assessment) into a single ``Assignment`` view record.

An assignment is the externally visible unit of the field service
workspace.  It is built fresh on every call and is only valid for the
``now`` it was built with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from fieldops.core.formatting import (
    UNKNOWN_TIME,
    format_datetime,
    humanize_relative_time,
)
from fieldops.services.eventTimeline import TimelineEvent, build_order_timeline
from fieldops.services.providerRegistry import ProviderRegistry
from fieldops.services.reminderScheduler import Reminder, build_reminder_schedule
from fieldops.services.routingEstimator import RoutePreview, build_route_preview
from fieldops.services.rowNormalizer import (
    EventRecord,
    OrderRecord,
    ProviderRecord,
    ServiceLocation,
    normalize_order_row,
    parse_datetime,
)
from fieldops.services.slaClassifier import (
    RiskLevel,
    SlaAssessment,
    assess_order,
    status_label,
)

PENDING_CONFIRMATION: str = "Pending confirmation"
OPERATIONS_DESK: str = "Operations desk"
SERVICE_REQUESTER: str = "Service requester"


# ---------------------------------------------------------------------------
# View records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderLocationView:
    label: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    updated_at: Optional[datetime]
    relative: Optional[str]


@dataclass(frozen=True)
class ProviderView:
    id: int
    user_id: Optional[int]
    name: str
    email: Optional[str]
    phone: Optional[str]
    status: str
    rating: Optional[float]
    specialties: list[str]
    avatar: Optional[str]
    location: ProviderLocationView
    last_check_in_at: Optional[datetime]
    last_check_in_relative: Optional[str]


@dataclass(frozen=True)
class CustomerContact:
    id: Optional[int]
    name: str
    email: Optional[str]


@dataclass(frozen=True)
class Preferences:
    tags: list[str]
    follow_up_channel: Optional[Any]


@dataclass(frozen=True)
class UpsellOffer:
    id: str
    title: str
    cta: str
    href: Optional[str]


@dataclass(frozen=True)
class AssignmentIncident:
    id: str
    event_id: Optional[int]
    occurred_at: Optional[datetime]
    timestamp: str
    relative_time: str
    severity: str
    notes: str
    status: str
    author: str


@dataclass(frozen=True)
class AssignmentMetrics:
    elapsed_minutes: Optional[int]
    resolution_minutes: Optional[int]
    on_time: Optional[bool]


@dataclass(frozen=True)
class Assignment:
    id: int
    reference: str
    customer_user_id: Optional[int]
    provider_id: Optional[int]
    provider_user_id: Optional[int]
    status: str
    status_label: str
    priority: str
    service_type: str
    summary: str
    requested_at: Optional[datetime]
    requested_at_label: str
    scheduled_for: Optional[datetime]
    scheduled_for_label: str
    eta_minutes: Optional[float]
    sla_minutes: Optional[float]
    distance_km: Optional[float]
    risk_level: str
    sla_breached: bool
    next_action: str
    last_update: Optional[datetime]
    last_update_label: str
    completed_at: Optional[datetime]
    metrics: AssignmentMetrics
    support_channel: Optional[Any]
    brief_url: Optional[Any]
    field_notes: Optional[Any]
    equipment: Optional[Any]
    attachments: list[Any]
    debrief_host: Optional[Any]
    debrief_at: Optional[Any]
    debrief_at_label: Optional[str]
    preferences: Preferences
    upsell_offers: list[UpsellOffer]
    reminders: list[Reminder]
    route_preview: Optional[RoutePreview]
    location: ServiceLocation
    customer: CustomerContact
    provider: Optional[ProviderView]
    timeline: list[TimelineEvent] = field(default_factory=list)
    incidents: list[AssignmentIncident] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status not in ("completed", "cancelled")


# ---------------------------------------------------------------------------
# Preference tags & upsell offers
# ---------------------------------------------------------------------------

def normalize_preference_tags(value: Any) -> list[str]:
    """Case-insensitive dedupe keeping first-seen casing and order.

    Accepts a list of tags or a comma-separated string.
    """
    if not value:
        return []
    entries = value if isinstance(value, (list, tuple)) else str(value).split(",")

    seen: set[str] = set()
    tags: list[str] = []
    for entry in entries:
        tag = str(entry if entry is not None else "").strip()
        if not tag:
            continue
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(tag)
    return tags


def normalize_upsell_offers(
    value: Any,
    preference_tags: Sequence[str],
    service_type: str,
) -> list[UpsellOffer]:
    """Stored offers verbatim, otherwise rule-based suggestions from tags."""
    if isinstance(value, list) and value:
        offers: list[UpsellOffer] = []
        for index, offer in enumerate(value):
            if isinstance(offer, str) and offer:
                offers.append(
                    UpsellOffer(id=f"offer-{index}", title=offer, cta="View details", href=None)
                )
            elif isinstance(offer, dict) and offer:
                offers.append(
                    UpsellOffer(
                        id=str(offer.get("id") or f"offer-{index}"),
                        title=str(offer.get("title") or service_type),
                        cta=str(offer.get("cta") or offer.get("action") or "Open"),
                        href=offer.get("href") or offer.get("url"),
                    )
                )
        return offers

    tag_keys = {tag.lower() for tag in preference_tags}
    recommendations: list[UpsellOffer] = []
    if "training" in tag_keys:
        recommendations.append(
            UpsellOffer(
                id="offer-training",
                title="Schedule onsite training follow-up",
                cta="Book session",
                href="/dashboard/learner/bookings",
            )
        )
    if "hardware" in tag_keys:
        recommendations.append(
            UpsellOffer(
                id="offer-hardware",
                title="Quote replacement hardware bundle",
                cta="View packages",
                href="/dashboard/learner/financial",
            )
        )
    if not recommendations:
        recommendations.append(
            UpsellOffer(
                id="offer-survey",
                title=f"{service_type} follow-up survey",
                cta="Send survey",
                href="/dashboard/learner/support",
            )
        )
    return recommendations


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def build_provider_view(provider: ProviderRecord, now: datetime) -> ProviderView:
    location = provider.location
    return ProviderView(
        id=provider.id,
        user_id=provider.user_id,
        name=provider.name,
        email=provider.email,
        phone=provider.phone,
        status=provider.status,
        rating=provider.rating,
        specialties=list(provider.specialties),
        avatar=provider.avatar,
        location=ProviderLocationView(
            label=location.label,
            lat=location.lat,
            lng=location.lng,
            updated_at=location.updated_at,
            relative=(
                humanize_relative_time(location.updated_at, now)
                if location.updated_at
                else None
            ),
        ),
        last_check_in_at=provider.last_check_in_at,
        last_check_in_relative=(
            humanize_relative_time(provider.last_check_in_at, now)
            if provider.last_check_in_at
            else None
        ),
    )


def build_customer_contact(order: OrderRecord) -> CustomerContact:
    full_name = f"{order.customer_first_name or ''} {order.customer_last_name or ''}".strip()
    return CustomerContact(
        id=order.customer_user_id,
        name=full_name or order.customer_email or SERVICE_REQUESTER,
        email=order.customer_email,
    )


def build_incidents(
    order: OrderRecord,
    timeline: Sequence[TimelineEvent],
    risk_level: str,
    provider: Optional[ProviderRecord],
) -> list[AssignmentIncident]:
    default_severity = "high" if risk_level == RiskLevel.CRITICAL.value else "medium"
    incidents: list[AssignmentIncident] = []
    for event in timeline:
        if not event.is_incident:
            continue
        incidents.append(
            AssignmentIncident(
                id=f"{order.id}-{event.id}",
                event_id=event.id,
                occurred_at=event.occurred_at,
                timestamp=event.timestamp,
                relative_time=event.relative_time,
                severity=str(event.severity or default_severity),
                notes=event.notes,
                status=event.status or "investigating",
                author=event.author or (provider.name if provider else None) or OPERATIONS_DESK,
            )
        )
    return incidents


def _rounded_distance(distance_km: Optional[float]) -> Optional[float]:
    if distance_km is None:
        return None
    return round(float(distance_km), 1)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def assemble_assignment(
    order_row: Any,
    events: list[EventRecord],
    registry: ProviderRegistry,
    now: datetime,
) -> Optional[Assignment]:
    """Build the assignment view for one order row.

    Args:
        order_row: Raw order row joined with customer and provider columns.
        events: The order's events, oldest first.
        registry: Provider registry for this build.
        now: Reference time for every relative calculation.

    Returns:
        The ``Assignment``, or ``None`` when the row has no numeric id.
    """
    order = normalize_order_row(order_row, events)
    if order is None:
        return None

    provider = registry.resolve(order_row)
    timeline = build_order_timeline(events, now)
    assessment: SlaAssessment = assess_order(order, timeline, now)
    metadata = order.metadata

    tags = normalize_preference_tags(metadata.get("preferenceTags"))
    debrief_at = metadata.get("debriefAt")
    debrief_at_parsed = parse_datetime(debrief_at)
    attachments = metadata.get("attachments")

    return Assignment(
        id=order.id,
        reference=order.reference,
        customer_user_id=order.customer_user_id,
        provider_id=order.provider_id,
        provider_user_id=order.provider_user_id or (provider.user_id if provider else None),
        status=order.status,
        status_label=status_label(order.status),
        priority=order.priority,
        service_type=order.service_type,
        summary=order.summary,
        requested_at=order.requested_at,
        requested_at_label=format_datetime(order.requested_at),
        scheduled_for=order.scheduled_for,
        scheduled_for_label=(
            format_datetime(order.scheduled_for) if order.scheduled_for else PENDING_CONFIRMATION
        ),
        eta_minutes=order.eta_minutes,
        sla_minutes=order.sla_minutes,
        distance_km=_rounded_distance(order.distance_km),
        risk_level=assessment.risk_level,
        sla_breached=assessment.sla_breached,
        next_action=assessment.next_action,
        last_update=assessment.last_update,
        last_update_label=(
            humanize_relative_time(assessment.last_update, now)
            if assessment.last_update
            else UNKNOWN_TIME
        ),
        completed_at=assessment.completed_at,
        metrics=AssignmentMetrics(
            elapsed_minutes=assessment.elapsed_minutes,
            resolution_minutes=assessment.resolution_minutes,
            on_time=assessment.on_time,
        ),
        support_channel=metadata.get("supportChannel"),
        brief_url=metadata.get("briefUrl"),
        field_notes=metadata.get("fieldNotes"),
        equipment=metadata.get("equipment"),
        attachments=list(attachments) if isinstance(attachments, list) else [],
        debrief_host=metadata.get("debriefHost") or metadata.get("owner"),
        debrief_at=debrief_at,
        debrief_at_label=format_datetime(debrief_at_parsed) if debrief_at_parsed else None,
        preferences=Preferences(
            tags=tags,
            follow_up_channel=metadata.get("followUpChannel") or metadata.get("supportChannel"),
        ),
        upsell_offers=normalize_upsell_offers(
            metadata.get("upsellOffers"), tags, order.service_type
        ),
        reminders=build_reminder_schedule(metadata, order.scheduled_for, now),
        route_preview=build_route_preview(provider, order.location, metadata),
        location=order.location,
        customer=build_customer_contact(order),
        provider=build_provider_view(provider, now) if provider else None,
        timeline=timeline,
        incidents=build_incidents(order, timeline, assessment.risk_level, provider),
    )
