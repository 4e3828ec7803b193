"""gcal - list and create Google Calendar events from the command line."""

__version__ = "0.1.0"
