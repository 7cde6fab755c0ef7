"""
Summary & Map Builder -- FS-WORKSPACE-009
==========================================

Scope-level roll-ups of a list of assignments:

- **Summary**: totals, averages, on-time rate and the four dashboard cards
  (active services, average ETA, on-time rate, incident queue).
- **Timeline**: every event of every assignment, newest first, capped.
- **Incidents**: every incident of every assignment, newest first.
- **Map**: customer and provider markers, provider -> customer paths,
  bounds and a center point.

Card tones follow these thresholds::

    active     primary if any active, else muted
    eta        success if average <= 25 min, else info
    onTime     success >= 90%, warning >= 70%, else critical (muted if none)
    incidents  critical if any high severity, warning if any, else success
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Final, Optional, Sequence

from fieldops.core.formatting import round_half_up
from fieldops.services.assignmentAssembler import OPERATIONS_DESK, Assignment
from fieldops.services.geoService import Bounds, MapPoint, compute_bounds

TIMELINE_LIMIT: Final[int] = 40
ETA_SUCCESS_THRESHOLD_MINUTES: Final[int] = 25
ON_TIME_SUCCESS_RATE: Final[int] = 90
ON_TIME_WARNING_RATE: Final[int] = 70

# Central London
DEFAULT_MAP_CENTER: Final[tuple[float, float]] = (51.509865, -0.118092)

EMPTY_VALUE: Final[str] = "—"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SummaryCard:
    key: str
    label: str
    value: str
    hint: str
    tone: str


@dataclass(frozen=True)
class SummaryTotals:
    total: int = 0
    active: int = 0
    completed: int = 0
    incidents: int = 0
    sla_breaches: int = 0


@dataclass(frozen=True)
class SummaryAverages:
    eta_minutes: Optional[int] = None
    resolution_minutes: Optional[int] = None


@dataclass(frozen=True)
class SummaryPerformance:
    on_time_rate: Optional[int] = None


@dataclass(frozen=True)
class WorkspaceSummary:
    totals: SummaryTotals
    averages: SummaryAverages
    performance: SummaryPerformance
    cards: list[SummaryCard]
    updated_at: datetime


@dataclass(frozen=True)
class WorkspaceTimelineEntry:
    id: str
    order_id: int
    order_reference: str
    service_type: str
    status: str
    label: str
    timestamp: str
    occurred_at: Optional[datetime]
    relative_time: str
    notes: str
    author: str
    is_incident: bool
    severity: Optional[str]
    metadata: dict[str, Any]


@dataclass(frozen=True)
class WorkspaceIncident:
    id: str
    order_id: int
    order_reference: str
    service_type: str
    severity: str
    occurred_at: Optional[datetime]
    timestamp: str
    relative_time: str
    notes: str
    status: str
    owner: str
    next_action: str


@dataclass(frozen=True)
class MapCenter:
    lat: float
    lng: float


@dataclass(frozen=True)
class MapAssignment:
    order_id: int
    reference: str
    status: str
    priority: str
    eta_minutes: Optional[float]
    risk_level: str
    customer: Optional[MapPoint]
    provider: Optional[MapPoint]
    path: list[list[float]] = field(default_factory=list)


@dataclass(frozen=True)
class WorkspaceMap:
    center: MapCenter
    bounds: Optional[Bounds]
    assignments: list[MapAssignment]


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def _empty_summary(now: datetime) -> WorkspaceSummary:
    return WorkspaceSummary(
        totals=SummaryTotals(),
        averages=SummaryAverages(),
        performance=SummaryPerformance(),
        cards=[
            SummaryCard("active", "Active services", "0", "All clear", "success"),
            SummaryCard("eta", "Average ETA", EMPTY_VALUE, "No live jobs", "muted"),
            SummaryCard("onTime", "On-time rate", EMPTY_VALUE, "No completions yet", "muted"),
            SummaryCard("incidents", "Incident queue", "0", "No incidents", "success"),
        ],
        updated_at=now,
    )


def _on_time_tone(rate: Optional[int]) -> str:
    if rate is None:
        return "muted"
    if rate >= ON_TIME_SUCCESS_RATE:
        return "success"
    if rate >= ON_TIME_WARNING_RATE:
        return "warning"
    return "critical"


def build_summary(assignments: Sequence[Assignment], now: datetime) -> WorkspaceSummary:
    """Totals, averages and cards for one scope."""
    if not assignments:
        return _empty_summary(now)

    active = completed = incidents = sla_breaches = on_time = 0
    eta_total = resolution_total = 0.0
    eta_count = resolution_count = 0
    critical_incidents = 0

    for assignment in assignments:
        if assignment.is_active:
            active += 1
        elif assignment.status == "completed":
            completed += 1
        incidents += len(assignment.incidents)
        critical_incidents += sum(
            1 for incident in assignment.incidents if incident.severity.lower() == "high"
        )
        if assignment.sla_breached:
            sla_breaches += 1
        if assignment.eta_minutes is not None:
            eta_total += assignment.eta_minutes
            eta_count += 1
        if assignment.metrics.resolution_minutes is not None:
            resolution_total += assignment.metrics.resolution_minutes
            resolution_count += 1
        if assignment.metrics.on_time:
            on_time += 1

    total = len(assignments)
    average_eta = round_half_up(eta_total / eta_count) if eta_count else None
    average_resolution = (
        round_half_up(resolution_total / resolution_count) if resolution_count else None
    )
    on_time_rate = round_half_up(on_time / completed * 100) if completed else None

    cards = [
        SummaryCard(
            key="active",
            label="Active services",
            value=str(active),
            hint=f"{total} total",
            tone="primary" if active > 0 else "muted",
        ),
        SummaryCard(
            key="eta",
            label="Average ETA",
            value=f"{average_eta} min" if average_eta is not None else EMPTY_VALUE,
            hint="Across en route jobs" if eta_count else "No active routes",
            tone=(
                "success"
                if average_eta is not None and average_eta <= ETA_SUCCESS_THRESHOLD_MINUTES
                else "info"
            ),
        ),
        SummaryCard(
            key="onTime",
            label="On-time rate",
            value=f"{on_time_rate}%" if on_time_rate is not None else EMPTY_VALUE,
            hint=f"{completed} completed" if completed else "Awaiting completions",
            tone=_on_time_tone(on_time_rate),
        ),
        SummaryCard(
            key="incidents",
            label="Incident queue",
            value=str(incidents),
            hint=f"{critical_incidents} critical" if critical_incidents else "Monitoring stability",
            tone="critical" if critical_incidents else ("warning" if incidents else "success"),
        ),
    ]

    return WorkspaceSummary(
        totals=SummaryTotals(
            total=total,
            active=active,
            completed=completed,
            incidents=incidents,
            sla_breaches=sla_breaches,
        ),
        averages=SummaryAverages(eta_minutes=average_eta, resolution_minutes=average_resolution),
        performance=SummaryPerformance(on_time_rate=on_time_rate),
        cards=cards,
        updated_at=now,
    )


# ---------------------------------------------------------------------------
# Timeline & incidents
# ---------------------------------------------------------------------------

def _newest_first_key(occurred_at: Optional[datetime]) -> datetime:
    return occurred_at or _EPOCH


def build_timeline(
    assignments: Sequence[Assignment],
    limit: int = TIMELINE_LIMIT,
) -> list[WorkspaceTimelineEntry]:
    """All events across the scope, newest first, capped at ``limit``."""
    entries: list[WorkspaceTimelineEntry] = []
    for assignment in assignments:
        provider_name = assignment.provider.name if assignment.provider else None
        for event in assignment.timeline:
            entries.append(
                WorkspaceTimelineEntry(
                    id=f"{assignment.id}-{event.id}",
                    order_id=assignment.id,
                    order_reference=assignment.reference,
                    service_type=assignment.service_type,
                    status=event.status or "update",
                    label=event.label,
                    timestamp=event.timestamp,
                    occurred_at=event.occurred_at,
                    relative_time=event.relative_time,
                    notes=event.notes,
                    author=event.author or provider_name or OPERATIONS_DESK,
                    is_incident=event.is_incident,
                    severity=event.severity,
                    metadata=event.metadata,
                )
            )
    entries.sort(key=lambda entry: _newest_first_key(entry.occurred_at), reverse=True)
    return entries[:limit]


def build_incidents(assignments: Sequence[Assignment]) -> list[WorkspaceIncident]:
    """All incidents across the scope, newest first."""
    incidents: list[WorkspaceIncident] = []
    for assignment in assignments:
        for incident in assignment.incidents:
            incidents.append(
                WorkspaceIncident(
                    id=incident.id,
                    order_id=assignment.id,
                    order_reference=assignment.reference,
                    service_type=assignment.service_type,
                    severity=incident.severity,
                    occurred_at=incident.occurred_at,
                    timestamp=incident.timestamp,
                    relative_time=incident.relative_time,
                    notes=incident.notes,
                    status=incident.status,
                    owner=incident.author,
                    next_action=assignment.next_action,
                )
            )
    incidents.sort(key=lambda incident: _newest_first_key(incident.occurred_at), reverse=True)
    return incidents


# ---------------------------------------------------------------------------
# Map
# ---------------------------------------------------------------------------

def _customer_point(assignment: Assignment) -> Optional[MapPoint]:
    location = assignment.location
    if location.lat is None or location.lng is None:
        return None
    return MapPoint(lat=location.lat, lng=location.lng, label=location.label or assignment.reference)


def _provider_point(assignment: Assignment) -> Optional[MapPoint]:
    provider = assignment.provider
    if provider is None or provider.location.lat is None or provider.location.lng is None:
        return None
    return MapPoint(lat=provider.location.lat, lng=provider.location.lng, label=provider.name)


def build_map(assignments: Sequence[Assignment]) -> WorkspaceMap:
    """Markers, provider -> customer paths, bounds and center."""
    points: list[MapPoint] = []
    items: list[MapAssignment] = []
    for assignment in assignments:
        customer = _customer_point(assignment)
        provider = _provider_point(assignment)
        if customer:
            points.append(customer)
        if provider:
            points.append(provider)

        path: list[list[float]] = []
        if customer and provider:
            path = [[provider.lng, provider.lat], [customer.lng, customer.lat]]

        items.append(
            MapAssignment(
                order_id=assignment.id,
                reference=assignment.reference,
                status=assignment.status,
                priority=assignment.priority,
                eta_minutes=assignment.eta_minutes,
                risk_level=assignment.risk_level,
                customer=customer,
                provider=provider,
                path=path,
            )
        )

    bounds = compute_bounds(points)
    if bounds is not None:
        center = MapCenter(
            lat=(bounds.min_lat + bounds.max_lat) / 2,
            lng=(bounds.min_lng + bounds.max_lng) / 2,
        )
    else:
        center = MapCenter(lat=DEFAULT_MAP_CENTER[0], lng=DEFAULT_MAP_CENTER[1])

    return WorkspaceMap(center=center, bounds=bounds, assignments=items)
