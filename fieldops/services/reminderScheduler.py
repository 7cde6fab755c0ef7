"""
Reminder Scheduler -- FS-WORKSPACE-005
=======================================

Derives the customer reminder schedule for a field service order.

Reminders stored on the order's metadata (``metadata.reminders``) are used
as-is.  Otherwise, when the order has a scheduled visit, three reminders are
synthesised around it::

    scheduled - 60 min   Pre-visit checklist
    scheduled            Technician arrival confirmation
    scheduled + 120 min  Post-visit satisfaction survey

Each reminder is marked ``sent`` when its send time is before ``now`` and
``scheduled`` otherwise.  Nothing is dispatched from here; delivery belongs
to the notification pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fieldops.core.formatting import format_datetime
from fieldops.services.rowNormalizer import parse_datetime, pick

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

PRE_VISIT_OFFSET: timedelta = timedelta(minutes=60)
FOLLOW_UP_OFFSET: timedelta = timedelta(minutes=120)

REMINDER_SENT: str = "sent"
REMINDER_SCHEDULED: str = "scheduled"


@dataclass(frozen=True)
class Reminder:
    id: str
    label: str
    send_at: datetime
    send_at_label: str
    status: str


def _default_reminders(scheduled_for: Optional[datetime]) -> list[dict[str, Any]]:
    if scheduled_for is None:
        return []
    return [
        {
            "id": "reminder-prep",
            "label": "Pre-visit checklist",
            "sendAt": scheduled_for - PRE_VISIT_OFFSET,
        },
        {
            "id": "reminder-arrival",
            "label": "Technician arrival confirmation",
            "sendAt": scheduled_for,
        },
        {
            "id": "reminder-followup",
            "label": "Post-visit satisfaction survey",
            "sendAt": scheduled_for + FOLLOW_UP_OFFSET,
        },
    ]


def build_reminder_schedule(
    metadata: dict[str, Any],
    scheduled_for: Optional[datetime],
    now: datetime,
) -> list[Reminder]:
    """Return the order's reminders, stored or synthesised, with status.

    Entries without a resolvable send time are dropped.
    """
    stored = metadata.get("reminders")
    entries = stored if isinstance(stored, list) and stored else _default_reminders(scheduled_for)

    reminders: list[Reminder] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            continue
        send_at = parse_datetime(pick(entry, "sendAt", "send_at"))
        if send_at is None:
            continue
        reminders.append(
            Reminder(
                id=str(entry.get("id") or f"reminder-{index}"),
                label=str(entry.get("label") or "Reminder"),
                send_at=send_at,
                send_at_label=format_datetime(send_at),
                status=REMINDER_SENT if send_at < now else REMINDER_SCHEDULED,
            )
        )
    return reminders
