"""
Risk & SLA Classifier -- FS-WORKSPACE-006
==========================================

Derives the SLA position and risk level of a field service order at a
given ``now``.  Nothing is persisted: the classification is recomputed on
every workspace build.

Risk precedence (first match wins)::

    1. any incident event with severity "high"      -> critical
    2. status completed / cancelled                 -> closed / cancelled
    3. elapsed >= SLA                               -> critical
       elapsed >= SLA_WARNING_RATIO * SLA           -> warning
       otherwise                                    -> metadata riskLevel
                                                       (default on_track)

An order is in SLA breach only while it is still open and the elapsed time
strictly exceeds its SLA.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final, Optional, Sequence

from fieldops.core.formatting import format_number, humanize_key, round_half_up
from fieldops.services.eventTimeline import TimelineEvent
from fieldops.services.rowNormalizer import OrderRecord


class RiskLevel(str, enum.Enum):
    ON_TRACK = "on_track"
    WARNING = "warning"
    CRITICAL = "critical"
    CLOSED = "closed"
    CANCELLED = "cancelled"


# Warn once this share of the SLA window has elapsed.
SLA_WARNING_RATIO: Final[float] = 0.75

STATUS_COMPLETED: Final[str] = "completed"
STATUS_CANCELLED: Final[str] = "cancelled"
TERMINAL_STATUSES: frozenset[str] = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

STATUS_LABELS: dict[str, str] = {
    "pending": "Pending",
    "pending_assignment": "Pending assignment",
    "scheduled": "Scheduled",
    "dispatched": "Dispatched",
    "accepted": "Accepted",
    "en_route": "En route",
    "on_site": "On site",
    "investigating": "Investigating",
    "awaiting_parts": "Awaiting parts",
    "paused": "Paused",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "closed": "Closed",
}

NEXT_ACTIONS: dict[str, str] = {
    "pending_assignment": "Assign a provider",
    "scheduled": "Confirm access instructions",
    "on_site": "Validate completion checklist",
    "investigating": "Coordinate incident response",
}

TERMINAL_NEXT_ACTION: Final[str] = "Review service report"
DEFAULT_NEXT_ACTION: Final[str] = "Monitor service progression"


@dataclass(frozen=True)
class SlaAssessment:
    """SLA/risk position of one order at ``now``."""
    elapsed_minutes: Optional[int]
    resolution_minutes: Optional[int]
    completed_at: Optional[datetime]
    last_update: Optional[datetime]
    on_time: Optional[bool]
    risk_level: str
    sla_breached: bool
    next_action: str


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status) or humanize_key(status)


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Whole minutes from ``start`` to ``end``, floored at zero."""
    if start is None or end is None:
        return None
    return max(0, round_half_up((end - start).total_seconds() / 60))


def next_action(status: str, eta_minutes: Optional[float]) -> str:
    if is_terminal(status):
        return TERMINAL_NEXT_ACTION
    if status == "en_route":
        if eta_minutes:
            return f"Technician arriving in {format_number(eta_minutes)} minutes"
        return "Monitor technician arrival"
    return NEXT_ACTIONS.get(status, DEFAULT_NEXT_ACTION)


def has_critical_incident(timeline: Sequence[TimelineEvent]) -> bool:
    return any(
        event.is_incident and (event.severity or "").lower() == "high"
        for event in timeline
    )


def classify_risk(
    status: str,
    sla_minutes: Optional[float],
    elapsed_minutes: Optional[int],
    timeline: Sequence[TimelineEvent],
    metadata: dict[str, Any],
) -> str:
    """Apply the risk precedence rules and return the risk level key."""
    if has_critical_incident(timeline):
        return RiskLevel.CRITICAL.value
    if status == STATUS_COMPLETED:
        return RiskLevel.CLOSED.value
    if status == STATUS_CANCELLED:
        return RiskLevel.CANCELLED.value

    inherited = str(metadata.get("riskLevel") or RiskLevel.ON_TRACK.value)
    if sla_minutes and elapsed_minutes is not None:
        if elapsed_minutes >= sla_minutes:
            return RiskLevel.CRITICAL.value
        if elapsed_minutes >= sla_minutes * SLA_WARNING_RATIO:
            if inherited == RiskLevel.CRITICAL.value:
                return inherited
            return RiskLevel.WARNING.value
    return inherited


def assess_order(
    order: OrderRecord,
    timeline: Sequence[TimelineEvent],
    now: datetime,
) -> SlaAssessment:
    """Compute elapsed/resolution minutes, on-time flag, risk and breach."""
    last_event = timeline[-1] if timeline else None
    last_update = (
        (last_event.occurred_at if last_event else None)
        or order.updated_at
        or order.requested_at
    )

    completion_event = next(
        (
            event
            for event in timeline
            if event.status == STATUS_COMPLETED or event.type == "job_completed"
        ),
        None,
    )
    completed_at = completion_event.occurred_at if completion_event else None
    if completed_at is None and order.status == STATUS_COMPLETED:
        completed_at = last_update

    elapsed_minutes = minutes_between(order.requested_at, now)
    resolution_minutes = minutes_between(order.requested_at, completed_at)

    on_time: Optional[bool] = None
    if completed_at is not None and order.sla_minutes:
        on_time = resolution_minutes is not None and resolution_minutes <= order.sla_minutes

    sla_breached = bool(
        not is_terminal(order.status)
        and order.sla_minutes
        and elapsed_minutes is not None
        and elapsed_minutes > order.sla_minutes
    )

    return SlaAssessment(
        elapsed_minutes=elapsed_minutes,
        resolution_minutes=resolution_minutes,
        completed_at=completed_at,
        last_update=last_update,
        on_time=on_time,
        risk_level=classify_risk(
            order.status,
            order.sla_minutes,
            elapsed_minutes,
            timeline,
            order.metadata,
        ),
        sla_breached=sla_breached,
        next_action=next_action(order.status, order.eta_minutes),
    )
