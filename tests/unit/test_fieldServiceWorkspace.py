"""
Unit tests for the Field Service Workspace Builder -- FS-WORKSPACE-010.

Tests the end-to-end build: determinism, scope partitioning, provider
rosters, search index entries, reference-time handling, and serialization.
"""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from fieldops.services.fieldServiceWorkspace import (
    build_workspace,
    serialize_workspace,
    to_camel,
)


def _scenario(make_order_row, make_event_row, now):
    """One en route order 90 minutes into a 60 minute SLA."""
    orders = [
        make_order_row(
            requestedAt=now - timedelta(minutes=90),
            slaMinutes=60,
            status="en_route",
            locationLat=51.51,
            locationLng=-0.12,
            providerLocationLat=51.50,
            providerLocationLng=-0.10,
        )
    ]
    events = [
        make_event_row(id=1, eventType="dispatch_created", occurredAt=now - timedelta(minutes=80)),
        make_event_row(
            id=2,
            eventType="technician_en_route",
            status="en_route",
            occurredAt=now - timedelta(minutes=15),
        ),
    ]
    return orders, events


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestEndToEnd:
    """A single breached en route order, seen by its customer."""

    def test_customer_workspace(self, make_order_row, make_event_row, now):
        orders, events = _scenario(make_order_row, make_event_row, now)
        result = build_workspace(now, {"id": 1}, orders, events, [])

        (assignment,) = result.customer.assignments
        assert assignment.risk_level == "critical"
        assert assignment.sla_breached is True
        assert 1.7 <= assignment.route_preview.distance_km <= 1.9
        assert len(assignment.timeline) == 2
        assert result.customer.summary.cards[0].value == "1"
        assert result.provider.assignments == []

    def test_deterministic(self, make_order_row, make_event_row, make_provider_row, now):
        orders, events = _scenario(make_order_row, make_event_row, now)
        providers = [make_provider_row()]
        first = serialize_workspace(build_workspace(now, {"id": 1}, orders, events, providers))
        second = serialize_workspace(build_workspace(now, {"id": 1}, orders, events, providers))
        assert first == second
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    def test_completed_order_far_past_sla_is_closed(self, make_order_row, now):
        orders = [
            make_order_row(
                status="completed",
                requestedAt=now - timedelta(days=2),
                slaMinutes=60,
            )
        ]
        (assignment,) = build_workspace(now, {"id": 1}, orders, [], []).customer.assignments
        assert assignment.risk_level == "closed"
        assert assignment.sla_breached is False


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


class TestScopes:
    """Customer and provider partitions."""

    def test_provider_scope(self, make_order_row, now):
        result = build_workspace(now, {"id": 2}, [make_order_row()], [], [])
        assert result.customer.assignments == []
        assert [assignment.id for assignment in result.provider.assignments] == [100]
        assert result.provider.scope == "provider"

    def test_user_in_both_scopes(self, make_order_row, now):
        orders = [
            make_order_row(id=1, reference="FS-1", customerUserId=5),
            make_order_row(id=2, reference="FS-2", customerUserId=1, providerUserId=5),
        ]
        result = build_workspace(now, {"id": 5}, orders, [], [])
        assert [a.id for a in result.customer.assignments] == [1]
        assert [a.id for a in result.provider.assignments] == [2]

    def test_empty_scope_zero_state(self, now):
        result = build_workspace(now, {"id": 1}, [], [], [])
        summary = result.customer.summary
        assert summary.totals.total == 0
        assert [card.value for card in summary.cards] == ["0", "—", "—", "0"]
        assert result.search_index == []
        assert result.customer.map.bounds is None

    def test_user_object_with_id(self, make_order_row, now):
        result = build_workspace(now, SimpleNamespace(id=1), [make_order_row()], [], [])
        assert len(result.customer.assignments) == 1

    def test_missing_user_builds_empty_scopes(self, make_order_row, now):
        orders = [make_order_row(customerUserId=None)]
        result = build_workspace(now, None, orders, [], [])
        assert result.customer.assignments == []
        assert result.provider.assignments == []

    def test_missing_user_id_lists_no_unlinked_providers(self, make_provider_row, now):
        providers = [make_provider_row(id=5, userId=None)]
        result = build_workspace(now, {}, [], [], providers)
        assert result.provider.providers == []
        assert result.customer.providers == []

    def test_malformed_rows_do_not_raise(self, now):
        orders = [{"id": "abc"}, {"id": 9, "metadata": "{broken", "requestedAt": "yesterday"}]
        events = [{"orderId": None}, {"orderId": 9, "metadata": 42}]
        result = build_workspace(now, {"id": 1}, orders, events, [{"name": "no id"}])
        assert result.customer.assignments == []


class TestProviderRoster:
    """Providers listed per scope."""

    def test_customer_scope_lists_referenced_providers(self, make_order_row, make_provider_row, now):
        providers = [make_provider_row(), make_provider_row(id=30, userId=1, name="Own profile")]
        result = build_workspace(now, {"id": 1}, [make_order_row()], [], providers)
        assert [provider.id for provider in result.customer.providers] == [10]

    def test_provider_scope_includes_own_profile(self, make_provider_row, now):
        providers = [make_provider_row(id=30, userId=1, name="Own profile")]
        result = build_workspace(now, {"id": 1}, [], [], providers)
        assert [provider.id for provider in result.provider.providers] == [30]
        assert result.provider.providers[0].metrics.total_assignments == 0
        assert result.customer.providers == []


# ---------------------------------------------------------------------------
# Search index
# ---------------------------------------------------------------------------


class TestSearchIndex:
    """Search entries for both scopes."""

    def test_entries(self, make_order_row, now):
        orders = [
            make_order_row(id=1, reference="FS-1", customerUserId=5),
            make_order_row(id=2, reference="FS-2", customerUserId=1, providerUserId=5),
        ]
        entries = build_workspace(now, {"id": 5}, orders, [], []).search_index
        assert [(entry.id, entry.role, entry.title, entry.url) for entry in entries] == [
            (
                "search-field-service-1",
                "learner",
                "Network repair · En route",
                "/dashboard/learner/field-services",
            ),
            (
                "search-field-service-provider-2",
                "instructor",
                "FS-2 · En route",
                "/dashboard/instructor/field-services",
            ),
        ]
        assert {entry.type for entry in entries} == {"Field service"}


# ---------------------------------------------------------------------------
# Reference time
# ---------------------------------------------------------------------------


class TestReferenceTime:
    """``now`` accepts several shapes; the clock is only a fallback."""

    def test_naive_now_is_utc(self, make_order_row, now):
        naive = now.replace(tzinfo=None)
        result = build_workspace(naive, {"id": 1}, [make_order_row()], [], [])
        assert result.customer.last_updated == now

    def test_iso_string_now(self, make_order_row, now):
        result = build_workspace("2026-10-19T12:00:00Z", {"id": 1}, [make_order_row()], [], [])
        assert result.customer.last_updated == now

    def test_missing_now_falls_back_to_clock(self):
        before = datetime.now(timezone.utc)
        result = build_workspace(None, {"id": 1}, [], [], [])
        assert result.customer.last_updated >= before


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerializeWorkspace:
    """JSON rendering of the build result."""

    def test_camel_case_keys_and_iso_times(self, make_order_row, make_event_row, now):
        orders, events = _scenario(make_order_row, make_event_row, now)
        payload = serialize_workspace(build_workspace(now, {"id": 1}, orders, events, []))

        assert set(payload) == {"customer", "provider", "searchIndex"}
        customer = payload["customer"]
        assert customer["lastUpdated"] == "2026-10-19T12:00:00.000Z"
        assignment = customer["assignments"][0]
        assert assignment["riskLevel"] == "critical"
        assert assignment["slaBreached"] is True
        assert assignment["requestedAt"] == "2026-10-19T10:30:00.000Z"
        assert assignment["routePreview"]["waypoints"][0]["label"] == "Depot"
        assert customer["summary"]["totals"]["slaBreaches"] == 1
        assert customer["map"]["bounds"]["minLat"] == 51.50
        json.dumps(payload)

    def test_metadata_keys_untouched(self, make_order_row, now):
        orders = [make_order_row()]
        events = [
            {
                "id": 1,
                "orderId": 100,
                "eventType": "customer_update",
                "occurredAt": now,
                "metadata": {"custom_key": 1, "nested_value": {"inner_key": True}},
            }
        ]
        payload = serialize_workspace(build_workspace(now, {"id": 1}, orders, events, []))
        entry = payload["customer"]["timeline"][0]
        assert entry["metadata"] == {"custom_key": 1, "nested_value": {"inner_key": True}}

    def test_nan_metadata_text_yields_strict_json(self, make_order_row, make_event_row, now):
        events = [make_event_row(metadata='{"etaMinutes": NaN}')]
        payload = serialize_workspace(
            build_workspace(now, {"id": 1}, [make_order_row()], events, [])
        )
        assert payload["customer"]["timeline"][0]["metadata"] == {}
        json.dumps(payload, allow_nan=False)

    def test_to_camel(self):
        assert to_camel("sla_breached") == "slaBreached"
        assert to_camel("assignments_30d") == "assignments30d"
        assert to_camel("id") == "id"
