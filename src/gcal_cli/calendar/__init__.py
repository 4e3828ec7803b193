"""Google Calendar API client.

Usage:
    from gcal_cli.calendar import CalendarClient, EventDraft

    client = CalendarClient(credentials=creds)

    # Upcoming events
    for event in client.list_upcoming():
        print(event.title, event.when)

    # Create an event
    draft = EventDraft(
        title="Team Meeting",
        start="2026-01-25T10:00:00-03:00",
        end="2026-01-25T11:00:00-03:00",
    )
    event = client.create_event(draft)
    print(event.html_link)
"""

from __future__ import annotations

from gcal_cli.calendar.client import CalendarClient, Event, EventDraft, EventSummary
from gcal_cli.calendar.exceptions import CalendarAPIError, CalendarError, EventValidationError

__all__ = [
    "CalendarClient",
    "Event",
    "EventDraft",
    "EventSummary",
    "CalendarError",
    "CalendarAPIError",
    "EventValidationError",
]
