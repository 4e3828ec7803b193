"""Google Calendar API client implementation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from google.auth import exceptions as auth_exceptions
from google.oauth2.credentials import Credentials as GoogleCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gcal_cli.calendar.exceptions import CalendarAPIError, EventValidationError
from gcal_cli.config import DEFAULT_TIME_ZONE

logger = logging.getLogger(__name__)

# Extended-format date followed by a time of day
_RFC3339_PREFIX = re.compile(r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}")


def _parse_rfc3339(value: str, flag: str) -> datetime:
    try:
        if not _RFC3339_PREFIX.match(value):
            raise ValueError("missing time component")
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise EventValidationError(
            f"Invalid {flag} value {value!r}: expected RFC3339 (e.g. 2025-09-08T10:00:00-03:00)"
        ) from e


@dataclass
class EventDraft:
    """A new event built from command-line input."""

    title: str
    start: str
    end: str
    description: str | None = None

    def validate(self) -> None:
        """Check required fields and the time range.

        Raises:
            EventValidationError: If a field is missing or the times are invalid.
        """
        missing = [
            flag
            for flag, value in (
                ("--title", self.title),
                ("--start", self.start),
                ("--end", self.end),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise EventValidationError(f"Missing required flags: {', '.join(missing)}")

        start_dt = _parse_rfc3339(self.start.strip(), "--start")
        end_dt = _parse_rfc3339(self.end.strip(), "--end")

        if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
            raise EventValidationError(
                "--start and --end must both include or both omit a UTC offset"
            )
        if end_dt <= start_dt:
            raise EventValidationError("--end must be after --start")

    def to_body(self, time_zone: str) -> dict[str, Any]:
        """Build the events.insert request body."""
        body: dict[str, Any] = {
            "summary": self.title.strip(),
            "start": {"dateTime": self.start.strip(), "timeZone": time_zone},
            "end": {"dateTime": self.end.strip(), "timeZone": time_zone},
        }
        if self.description:
            body["description"] = self.description
        return body


@dataclass
class EventSummary:
    """An upcoming event as shown by ``gcal list``."""

    title: str
    when: str
    all_day: bool = False


@dataclass
class Event:
    """Represents a Google Calendar event."""

    id: str
    summary: str
    start: str | None = None
    end: str | None = None
    description: str | None = None
    html_link: str | None = None


class CalendarClient:
    """Google Calendar API client.

    Usage:
        client = CalendarClient(credentials=creds)
        events = client.list_upcoming()
        event = client.create_event(EventDraft(title=..., start=..., end=...))

    Args:
        credentials: Authorized Google credentials.
        calendar_id: Calendar ID or "primary" for the main calendar.
        time_zone: IANA time zone attached to created events.
        service: Prebuilt Calendar API service (skips discovery).
    """

    def __init__(
        self,
        credentials: GoogleCredentials | None = None,
        calendar_id: str = "primary",
        time_zone: str = DEFAULT_TIME_ZONE,
        service: Any = None,
    ) -> None:
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        self._credentials = credentials
        self._service = service

    def _get_service(self) -> Any:
        """Get or create Calendar API service."""
        if self._service is None:
            try:
                self._service = build(
                    "calendar", "v3", credentials=self._credentials, cache_discovery=False
                )
            except (HttpError, auth_exceptions.GoogleAuthError, OSError) as e:
                raise CalendarAPIError(f"Unable to create Calendar client: {e}") from e
        return self._service

    def _execute(self, request: Any, action: str) -> dict[str, Any]:
        """Run an API request, wrapping client-library failures."""
        try:
            return request.execute()
        except HttpError as e:
            raise CalendarAPIError(f"Unable to {action}: {e}", status_code=e.resp.status) from e
        except (auth_exceptions.GoogleAuthError, OSError) as e:
            raise CalendarAPIError(f"Unable to {action}: {e}") from e

    def list_upcoming(
        self,
        max_results: int = 10,
        now: datetime | None = None,
    ) -> list[EventSummary]:
        """List upcoming events ordered by start time.

        Recurring events are expanded into single instances and cancelled
        events are excluded.

        Args:
            max_results: Maximum number of events to return.
            now: Lower bound for event start (defaults to the current instant).

        Returns:
            List of EventSummary objects.
        """
        service = self._get_service()
        time_min = self._format_datetime(now or datetime.now(timezone.utc))

        logger.info(f"Listing up to {max_results} events on {self.calendar_id} from {time_min}")
        request = service.events().list(
            calendarId=self.calendar_id,
            timeMin=time_min,
            maxResults=max_results,
            singleEvents=True,
            orderBy="startTime",
            showDeleted=False,
        )
        results = self._execute(request, "retrieve upcoming events")
        items = results.get("items", [])

        return [self._parse_summary(item) for item in items]

    def create_event(self, draft: EventDraft) -> Event:
        """Create a new event.

        The draft is validated before anything is sent. No idempotency key
        is used, so repeating a call creates a duplicate event.

        Args:
            draft: Event to create.

        Returns:
            Created Event, including its web link.
        """
        draft.validate()
        service = self._get_service()

        body = draft.to_body(self.time_zone)
        logger.info(f"Creating event {body['summary']!r} on {self.calendar_id}")
        request = service.events().insert(calendarId=self.calendar_id, body=body)
        result = self._execute(request, "create event")

        return self._parse_event(result)

    def _format_datetime(self, dt: datetime) -> str:
        """Format datetime for API."""
        return dt.isoformat() + "Z" if dt.tzinfo is None else dt.isoformat()

    def _parse_summary(self, data: dict) -> EventSummary:
        """Parse an upcoming event from API response."""
        start = data.get("start", {})
        date_time = start.get("dateTime")
        return EventSummary(
            title=data.get("summary") or "(no title)",
            when=date_time or start.get("date", ""),
            all_day=not date_time,
        )

    def _parse_event(self, data: dict) -> Event:
        """Parse event from API response."""
        start = data.get("start", {})
        end = data.get("end", {})
        return Event(
            id=data.get("id", ""),
            summary=data.get("summary", ""),
            start=start.get("dateTime") or start.get("date"),
            end=end.get("dateTime") or end.get("date"),
            description=data.get("description"),
            html_link=data.get("htmlLink"),
        )
