"""Google Calendar exceptions."""

from gcal_cli.exceptions import GcalError


class CalendarError(GcalError):
    """Base exception for Calendar errors."""

    pass


class EventValidationError(CalendarError):
    """Raised when event input is invalid. Raised before any API call."""

    pass


class CalendarAPIError(CalendarError):
    """Raised when the Calendar API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
