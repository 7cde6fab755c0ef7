"""
Field Service Workspace Builder -- FS-WORKSPACE-010
====================================================

Top-level entry point that turns raw order, event and provider rows into the
two field service workspaces of a user:

- **customer**: orders the user requested.
- **provider**: orders assigned to a provider profile the user owns.

Pipeline::

    rows -> normalize -> provider registry -> timelines
         -> assignments (route, reminders, SLA/risk)
         -> provider metrics -> per-scope summary, timeline, incidents, map
         -> search index

The builder is a pure function of its inputs: the same rows and ``now``
always produce the same workspace.  It never raises on malformed rows; bad
fields fall back to defaults and rows without an id are skipped.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from fieldops.core.formatting import to_iso
from fieldops.services.assignmentAssembler import Assignment, assemble_assignment
from fieldops.services.eventTimeline import group_events_by_order
from fieldops.services.providerMetrics import ProviderSummary, aggregate_provider_metrics
from fieldops.services.providerRegistry import ProviderRegistry
from fieldops.services.rowNormalizer import parse_datetime, parse_identifier, pick
from fieldops.services.workspaceSummary import (
    WorkspaceIncident,
    WorkspaceMap,
    WorkspaceSummary,
    WorkspaceTimelineEntry,
    build_incidents,
    build_map,
    build_summary,
    build_timeline,
)

logger = logging.getLogger(__name__)

SCOPE_CUSTOMER: str = "customer"
SCOPE_PROVIDER: str = "provider"

SEARCH_RESULT_TYPE: str = "Field service"
CUSTOMER_WORKSPACE_URL: str = "/dashboard/learner/field-services"
PROVIDER_WORKSPACE_URL: str = "/dashboard/instructor/field-services"


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Workspace:
    scope: str
    summary: WorkspaceSummary
    assignments: list[Assignment]
    timeline: list[WorkspaceTimelineEntry]
    incidents: list[WorkspaceIncident]
    providers: list[ProviderSummary]
    map: WorkspaceMap
    last_updated: datetime


@dataclass(frozen=True)
class SearchIndexEntry:
    id: str
    role: str
    type: str
    title: str
    url: str


@dataclass(frozen=True)
class FieldServiceWorkspaceResult:
    customer: Workspace
    provider: Workspace
    search_index: list[SearchIndexEntry]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resolve_now(now: Any) -> datetime:
    resolved = parse_datetime(now)
    if resolved is None:
        logger.warning("No usable reference time supplied, falling back to the clock")
        return datetime.now(timezone.utc)
    return resolved


def _create_workspace(
    scope: str,
    assignments: list[Assignment],
    provider_summaries: list[ProviderSummary],
    user_id: Optional[int],
    now: datetime,
) -> Workspace:
    referenced = {assignment.provider.id for assignment in assignments if assignment.provider}
    providers = [
        summary
        for summary in provider_summaries
        if summary.id in referenced
        or (scope == SCOPE_PROVIDER and user_id is not None and summary.user_id == user_id)
    ]
    return Workspace(
        scope=scope,
        summary=build_summary(assignments, now),
        assignments=assignments,
        timeline=build_timeline(assignments),
        incidents=build_incidents(assignments),
        providers=providers,
        map=build_map(assignments),
        last_updated=now,
    )


def _build_search_index(customer: Workspace, provider: Workspace) -> list[SearchIndexEntry]:
    entries = [
        SearchIndexEntry(
            id=f"search-field-service-{assignment.id}",
            role="learner",
            type=SEARCH_RESULT_TYPE,
            title=f"{assignment.service_type} · {assignment.status_label}",
            url=CUSTOMER_WORKSPACE_URL,
        )
        for assignment in customer.assignments
    ]
    entries.extend(
        SearchIndexEntry(
            id=f"search-field-service-provider-{assignment.id}",
            role="instructor",
            type=SEARCH_RESULT_TYPE,
            title=f"{assignment.reference} · {assignment.status_label}",
            url=PROVIDER_WORKSPACE_URL,
        )
        for assignment in provider.assignments
    )
    return entries


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_workspace(
    now: Any,
    user: Any,
    orders: Optional[Iterable[Any]] = None,
    events: Optional[Iterable[Any]] = None,
    providers: Optional[Iterable[Any]] = None,
) -> FieldServiceWorkspaceResult:
    """Build the customer and provider workspaces for ``user``.

    Args:
        now: Reference time for every relative computation.  Naive values
            are treated as UTC; ISO strings and epoch milliseconds are
            accepted.
        user: The requesting user, a mapping or an object with ``id``.
        orders: Order rows joined with customer and provider columns.
        events: Event rows for those orders, in any order.
        providers: Standalone provider rows.

    Returns:
        A ``FieldServiceWorkspaceResult`` with both scopes and the search
        index entries.
    """
    reference_time = _resolve_now(now)
    user_id = parse_identifier(pick(user, "id")) if user is not None else None
    if user_id is None:
        logger.warning("Building field service workspace without a user id")

    registry = ProviderRegistry.from_rows(providers)
    events_by_order = group_events_by_order(events)

    assignments: list[Assignment] = []
    for row in orders or ():
        order_id = parse_identifier(pick(row, "id", "orderId", "order_id"))
        assignment = assemble_assignment(
            row,
            events_by_order.get(order_id, []) if order_id is not None else [],
            registry,
            reference_time,
        )
        if assignment is not None:
            assignments.append(assignment)

    provider_summaries = aggregate_provider_metrics(assignments, registry, reference_time)

    customer_assignments = [
        assignment
        for assignment in assignments
        if user_id is not None and assignment.customer_user_id == user_id
    ]
    provider_assignments = [
        assignment
        for assignment in assignments
        if user_id is not None and assignment.provider_user_id == user_id
    ]

    customer = _create_workspace(
        SCOPE_CUSTOMER, customer_assignments, provider_summaries, user_id, reference_time
    )
    provider = _create_workspace(
        SCOPE_PROVIDER, provider_assignments, provider_summaries, user_id, reference_time
    )

    logger.info(
        "Built field service workspace for user %s: %d customer, %d provider assignments",
        user_id,
        len(customer_assignments),
        len(provider_assignments),
    )

    return FieldServiceWorkspaceResult(
        customer=customer,
        provider=provider,
        search_index=_build_search_index(customer, provider),
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def to_camel(name: str) -> str:
    """``sla_breached`` -> ``slaBreached``."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): _serialize(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    return value


def serialize_workspace(result: FieldServiceWorkspaceResult) -> dict[str, Any]:
    """JSON-compatible rendering with camelCase keys and ISO-8601 UTC times.

    Keys of user-supplied metadata dicts are passed through unchanged.
    """
    return _serialize(result)
