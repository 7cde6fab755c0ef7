"""
Unit tests for the Assignment Assembler -- FS-WORKSPACE-007.

Tests preference tag de-duplication, upsell offers, incident projection,
customer/provider projection, and metadata pass-through on the assembled
assignment view.
"""

from datetime import timedelta

from fieldops.services.assignmentAssembler import (
    OPERATIONS_DESK,
    assemble_assignment,
    normalize_preference_tags,
    normalize_upsell_offers,
)
from fieldops.services.eventTimeline import group_events_by_order
from fieldops.services.providerRegistry import ProviderRegistry


def _assemble(order_row, event_rows=(), provider_rows=(), now=None):
    events = group_events_by_order(event_rows).get(order_row.get("id"), [])
    registry = ProviderRegistry.from_rows(provider_rows)
    return assemble_assignment(order_row, events, registry, now)


# ---------------------------------------------------------------------------
# Preferences & offers
# ---------------------------------------------------------------------------


class TestPreferenceTags:
    """Case-insensitive de-duplication keeping first-seen casing."""

    def test_dedup(self):
        assert normalize_preference_tags(["Training", "training", "HARDWARE"]) == [
            "Training",
            "HARDWARE",
        ]

    def test_comma_separated(self):
        assert normalize_preference_tags("wifi, WiFi ,cabling") == ["wifi", "cabling"]

    def test_blank_entries_dropped(self):
        assert normalize_preference_tags(["", None, "  ", "onsite"]) == ["onsite"]

    def test_empty(self):
        assert normalize_preference_tags(None) == []


class TestUpsellOffers:
    """Stored offers or tag-driven recommendations."""

    def test_training_and_hardware_tags(self):
        offers = normalize_upsell_offers(None, ["Training", "HARDWARE"], "Network repair")
        assert [offer.id for offer in offers] == ["offer-training", "offer-hardware"]
        assert offers[0].href == "/dashboard/learner/bookings"
        assert offers[1].cta == "View packages"

    def test_survey_fallback(self):
        (offer,) = normalize_upsell_offers([], [], "Network repair")
        assert offer.id == "offer-survey"
        assert offer.title == "Network repair follow-up survey"
        assert offer.cta == "Send survey"

    def test_stored_string_offer(self):
        (offer,) = normalize_upsell_offers(["Extended warranty"], [], "Network repair")
        assert offer.id == "offer-0"
        assert offer.title == "Extended warranty"
        assert offer.cta == "View details"
        assert offer.href is None

    def test_stored_dict_offer(self):
        (offer,) = normalize_upsell_offers(
            [{"title": "Rack audit", "action": "Book", "url": "/audit"}], [], "Network repair"
        )
        assert offer.id == "offer-0"
        assert offer.cta == "Book"
        assert offer.href == "/audit"

    def test_stored_dict_defaults(self):
        (offer,) = normalize_upsell_offers([{"id": "x1"}], [], "Network repair")
        assert offer.title == "Network repair"
        assert offer.cta == "Open"


# ---------------------------------------------------------------------------
# Assembled view
# ---------------------------------------------------------------------------


class TestAssembleAssignment:
    """Full assignment view for one order row."""

    def test_core_fields(self, make_order_row, now):
        assignment = _assemble(make_order_row(), now=now)
        assert assignment.id == 100
        assert assignment.status_label == "En route"
        assert assignment.next_action == "Technician arriving in 18 minutes"
        assert assignment.requested_at_label == "19 Oct 2026, 11:30"
        assert assignment.scheduled_for_label == "19 Oct 2026, 14:00"
        assert assignment.last_update_label == "20m ago"
        assert assignment.risk_level == "on_track"
        assert assignment.metrics.elapsed_minutes == 30

    def test_pending_confirmation_label(self, make_order_row, now):
        assignment = _assemble(make_order_row(scheduledFor=None), now=now)
        assert assignment.scheduled_for_label == "Pending confirmation"
        assert assignment.reminders == []

    def test_unknown_last_update(self, make_order_row, now):
        assignment = _assemble(make_order_row(requestedAt=None, updatedAt=None), now=now)
        assert assignment.last_update_label == "Unknown"
        assert assignment.requested_at_label == "Not recorded"

    def test_missing_id(self, make_order_row, now):
        assert _assemble(make_order_row(id=None), now=now) is None

    def test_distance_rounded(self, make_order_row, now):
        assignment = _assemble(make_order_row(distanceKm="4.26"), now=now)
        assert assignment.distance_km == 4.3

    def test_customer_name_fallbacks(self, make_order_row, now):
        named = _assemble(make_order_row(), now=now)
        by_email = _assemble(
            make_order_row(customerFirstName=None, customerLastName=None), now=now
        )
        anonymous = _assemble(
            make_order_row(customerFirstName=None, customerLastName=None, customerEmail=None),
            now=now,
        )
        assert named.customer.name == "Avery Stone"
        assert by_email.customer.name == "avery@example.com"
        assert anonymous.customer.name == "Service requester"

    def test_provider_view(self, make_order_row, now):
        provider = _assemble(make_order_row(), now=now).provider
        assert provider.name == "Jordan Field"
        assert provider.location.relative == "5m ago"
        assert provider.last_check_in_relative == "5m ago"

    def test_provider_user_falls_back_to_provider_record(self, make_order_row, make_provider_row, now):
        row = make_order_row(providerUserId=None)
        assignment = _assemble(row, provider_rows=[make_provider_row(userId=7)], now=now)
        assert assignment.provider_user_id == 7

    def test_route_preview(self, make_order_row, now):
        preview = _assemble(make_order_row(), now=now).route_preview
        assert 1.7 <= preview.distance_km <= 1.9

    def test_metadata_pass_through(self, make_order_row, now):
        metadata = {
            "supportChannel": "#ops-london",
            "briefUrl": "https://example.com/brief",
            "fieldNotes": "Use loading bay",
            "equipment": ["ladder"],
            "attachments": ["photo.jpg"],
            "owner": "Sam Lead",
            "debriefAt": "2026-10-20T09:00:00Z",
            "preferenceTags": ["Training", "training", "HARDWARE"],
        }
        assignment = _assemble(make_order_row(metadata=metadata), now=now)
        assert assignment.support_channel == "#ops-london"
        assert assignment.brief_url == "https://example.com/brief"
        assert assignment.attachments == ["photo.jpg"]
        assert assignment.debrief_host == "Sam Lead"
        assert assignment.debrief_at_label == "20 Oct 2026, 09:00"
        assert assignment.preferences.tags == ["Training", "HARDWARE"]
        assert assignment.preferences.follow_up_channel == "#ops-london"
        assert [offer.id for offer in assignment.upsell_offers] == [
            "offer-training",
            "offer-hardware",
        ]

    def test_non_list_attachments(self, make_order_row, now):
        assignment = _assemble(make_order_row(metadata={"attachments": "photo.jpg"}), now=now)
        assert assignment.attachments == []


class TestIncidents:
    """Incident projection from the order timeline."""

    def test_high_incident(self, make_order_row, make_event_row, now):
        events = [
            make_event_row(id=1),
            make_event_row(
                id=2,
                eventType="customer_update",
                occurredAt=now - timedelta(minutes=10),
                metadata={"severity": "HIGH"},
            ),
        ]
        assignment = _assemble(make_order_row(), events, now=now)
        assert assignment.risk_level == "critical"
        (incident,) = assignment.incidents
        assert incident.id == "100-2"
        assert incident.severity == "HIGH"
        assert incident.status == "investigating"
        assert incident.author == "Jordan Field"

    def test_default_severity_follows_risk(self, make_order_row, make_event_row, now):
        events = [make_event_row(id=3, eventType="incident_flagged")]
        on_track = _assemble(make_order_row(), events, now=now)
        critical = _assemble(
            make_order_row(requestedAt=now - timedelta(minutes=300), slaMinutes=60),
            events,
            now=now,
        )
        assert on_track.incidents[0].severity == "medium"
        assert critical.incidents[0].severity == "high"

    def test_author_falls_back_to_operations_desk(self, make_order_row, make_event_row, now):
        events = [make_event_row(eventType="incident_flagged")]
        assignment = _assemble(make_order_row(providerId=None), events, now=now)
        assert assignment.provider is None
        assert assignment.incidents[0].author == OPERATIONS_DESK
