"""
Provider Metrics Aggregator -- FS-WORKSPACE-008
================================================

Rolls assignment outcomes up per provider: assignment counts, incident
count, rolling 30-day volume, average ETA, average resolution time and
on-time completion rate.

Providers that appear in the standalone provider list but have no
assignment in this build are reported with zero counts and null averages
so that a provider's own roster entry is always present.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timedelta
from typing import Optional, Sequence

from fieldops.core.formatting import round_half_up
from fieldops.services.assignmentAssembler import (
    Assignment,
    ProviderLocationView,
    ProviderView,
    build_provider_view,
)
from fieldops.services.providerRegistry import ProviderRegistry

ROLLING_WINDOW: timedelta = timedelta(days=30)


@dataclass(frozen=True)
class ProviderMetrics:
    total_assignments: int = 0
    active_assignments: int = 0
    completed_assignments: int = 0
    assignments_30d: int = 0
    incident_count: int = 0
    average_eta_minutes: Optional[int] = None
    average_resolution_minutes: Optional[int] = None
    on_time_rate: Optional[int] = None


@dataclass(frozen=True)
class ProviderSummary(ProviderView):
    metrics: ProviderMetrics


class _Tally:
    """Mutable accumulator for one provider."""

    def __init__(self) -> None:
        self.total = 0
        self.active = 0
        self.completed = 0
        self.on_time = 0
        self.incidents = 0
        self.last_30_days = 0
        self.eta_total = 0.0
        self.eta_count = 0
        self.resolution_total = 0.0
        self.resolution_count = 0

    def add(self, assignment: Assignment, window_start: datetime) -> None:
        self.total += 1
        if assignment.is_active:
            self.active += 1
        elif assignment.status == "completed":
            self.completed += 1
            if assignment.metrics.on_time:
                self.on_time += 1
        self.incidents += len(assignment.incidents)
        if assignment.eta_minutes is not None:
            self.eta_total += assignment.eta_minutes
            self.eta_count += 1
        if assignment.metrics.resolution_minutes is not None:
            self.resolution_total += assignment.metrics.resolution_minutes
            self.resolution_count += 1
        if assignment.requested_at is not None and assignment.requested_at >= window_start:
            self.last_30_days += 1

    def to_metrics(self) -> ProviderMetrics:
        return ProviderMetrics(
            total_assignments=self.total,
            active_assignments=self.active,
            completed_assignments=self.completed,
            assignments_30d=self.last_30_days,
            incident_count=self.incidents,
            average_eta_minutes=(
                round_half_up(self.eta_total / self.eta_count) if self.eta_count else None
            ),
            average_resolution_minutes=(
                round_half_up(self.resolution_total / self.resolution_count)
                if self.resolution_count
                else None
            ),
            on_time_rate=(
                round_half_up(self.on_time / self.completed * 100) if self.completed else None
            ),
        )


def _placeholder_view(provider_id: int) -> ProviderView:
    return ProviderView(
        id=provider_id,
        user_id=None,
        name=f"Provider {provider_id}",
        email=None,
        phone=None,
        status="active",
        rating=None,
        specialties=[],
        avatar=None,
        location=ProviderLocationView(label=None, lat=None, lng=None, updated_at=None, relative=None),
        last_check_in_at=None,
        last_check_in_relative=None,
    )


def _summary(view: ProviderView, metrics: ProviderMetrics) -> ProviderSummary:
    values = {f.name: getattr(view, f.name) for f in fields(ProviderView)}
    return ProviderSummary(**values, metrics=metrics)


def aggregate_provider_metrics(
    assignments: Sequence[Assignment],
    registry: ProviderRegistry,
    now: datetime,
) -> list[ProviderSummary]:
    """Per-provider summaries across every assignment of the build.

    Ordered by first reference from an assignment, followed by the
    unreferenced standalone providers in input order.
    """
    window_start = now - ROLLING_WINDOW
    tallies: dict[int, _Tally] = {}
    for assignment in assignments:
        if not assignment.provider_id:
            continue
        tallies.setdefault(assignment.provider_id, _Tally()).add(assignment, window_start)

    summaries: list[ProviderSummary] = []
    for provider_id, tally in tallies.items():
        provider = registry.get(provider_id)
        view = build_provider_view(provider, now) if provider else _placeholder_view(provider_id)
        summaries.append(_summary(view, tally.to_metrics()))

    for provider in registry.standalone_providers():
        if provider.id in tallies:
            continue
        summaries.append(_summary(build_provider_view(provider, now), ProviderMetrics()))

    return summaries
