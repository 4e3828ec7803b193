"""Base exception for gcal-cli."""


class GcalError(Exception):
    """Base exception for all gcal-cli errors.

    Every error raised by the library derives from this class so the CLI
    can report it and exit non-zero in one place.
    """

    pass
