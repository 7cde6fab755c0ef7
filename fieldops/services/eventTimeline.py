"""
Event Timeline Builder -- FS-WORKSPACE-003
===========================================

Groups field service events by order, sorts each group chronologically and
projects every event into a display entry (label, absolute and relative
timestamps, severity, incident flag).

Sorting is stable: events sharing a timestamp keep their input order, and
events without a timestamp sort as if they happened at the Unix epoch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from fieldops.core.formatting import (
    format_datetime,
    humanize_key,
    humanize_relative_time,
)
from fieldops.services.rowNormalizer import EventRecord, normalize_event_row

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

EVENT_LABELS: dict[str, str] = {
    "dispatch_created": "Dispatch created",
    "technician_en_route": "Technician en route",
    "technician_on_site": "Technician on site",
    "incident_flagged": "Incident flagged",
    "change_control": "Change control executed",
    "quality_assurance": "Quality assurance",
    "provider_assigned": "Provider assigned",
    "customer_update": "Customer update",
    "job_completed": "Job completed",
}


@dataclass(frozen=True)
class TimelineEvent:
    """An order event projected for display."""
    id: Optional[int]
    order_id: int
    type: str
    status: Optional[str]
    notes: str
    author: Optional[str]
    occurred_at: Optional[datetime]
    metadata: dict[str, Any]
    label: str
    timestamp: str
    relative_time: str
    severity: Optional[str]
    is_incident: bool


def event_label(event_type: str) -> str:
    key = event_type or "update"
    return EVENT_LABELS.get(key) or humanize_key(key)


def event_severity(metadata: dict[str, Any]) -> Optional[str]:
    severity = metadata.get("severity")
    if severity is None:
        severity = metadata.get("riskLevel")
    return None if severity is None else str(severity)


def is_incident_event(event_type: str, metadata: dict[str, Any]) -> bool:
    """True when metadata flags it, the type names an incident, or severity is high."""
    if metadata.get("isIncident"):
        return True
    if "incident" in (event_type or ""):
        return True
    severity = event_severity(metadata)
    return (severity or "").lower() == "high"


def _sort_key(event: EventRecord) -> datetime:
    return event.occurred_at or _EPOCH


def group_events_by_order(rows: Optional[Iterable[Any]]) -> dict[int, list[EventRecord]]:
    """Normalize event rows and bucket them per order, oldest first."""
    grouped: dict[int, list[EventRecord]] = {}
    for row in rows or ():
        event = normalize_event_row(row)
        if event is None:
            continue
        grouped.setdefault(event.order_id, []).append(event)
    for events in grouped.values():
        events.sort(key=_sort_key)
    return grouped


def build_timeline_event(event: EventRecord, now: datetime) -> TimelineEvent:
    return TimelineEvent(
        id=event.id,
        order_id=event.order_id,
        type=event.type,
        status=event.status,
        notes=event.notes,
        author=event.author,
        occurred_at=event.occurred_at,
        metadata=event.metadata,
        label=event_label(event.type),
        timestamp=format_datetime(event.occurred_at),
        relative_time=humanize_relative_time(event.occurred_at, now),
        severity=event_severity(event.metadata),
        is_incident=is_incident_event(event.type, event.metadata),
    )


def build_order_timeline(events: list[EventRecord], now: datetime) -> list[TimelineEvent]:
    return [build_timeline_event(event, now) for event in events]
