"""CLI for gcal - list and create Google Calendar events.

Usage:
    gcal list [--max-results N]                  # Show upcoming events
    gcal add --title T --start S --end E         # Create an event
             [--desc D] [--timezone TZ]
    gcal status                                  # Show credential/token status
    gcal logout                                  # Remove the cached token

Global options:
    --credentials PATH   OAuth client credentials (default: credentials.json)
    --token PATH         OAuth token cache (default: token.json)
    --calendar ID        Calendar ID (default: primary)
    -v, --verbose        Log progress to stderr
"""

from __future__ import annotations

import argparse
import logging
import sys

from gcal_cli.calendar import CalendarClient, EventDraft, EventSummary
from gcal_cli.config import Settings, get_credential_status, load_settings
from gcal_cli.exceptions import GcalError
from gcal_cli.google import GoogleOAuth, TokenStore, load_client_config
from gcal_cli.google.oauth import CodeProvider

logger = logging.getLogger(__name__)

LIST_SCOPES = ["calendar_readonly"]
ADD_SCOPES = ["calendar_events"]

NO_EVENTS_MESSAGE = "No upcoming events found."


def _calendar_client(
    settings: Settings,
    scopes: list[str],
    code_provider: CodeProvider | None = None,
    time_zone: str | None = None,
) -> CalendarClient:
    """Authorize with the given scopes and return a Calendar client."""
    config = load_client_config(settings.credentials_path, scopes)
    auth = GoogleOAuth(config, TokenStore(settings.token_path), code_provider=code_provider)
    credentials = auth.get_authorized_client()
    return CalendarClient(
        credentials=credentials,
        calendar_id=settings.calendar_id,
        time_zone=time_zone or settings.time_zone,
    )


def format_event(event: EventSummary) -> str:
    """Render one event line."""
    return f"• {event.title} ({event.when})"


def cmd_list(
    settings: Settings,
    max_results: int = 10,
    code_provider: CodeProvider | None = None,
) -> int:
    """Print upcoming events."""
    client = _calendar_client(settings, LIST_SCOPES, code_provider)
    events = client.list_upcoming(max_results=max_results)

    if not events:
        print(NO_EVENTS_MESSAGE)
        return 0

    for event in events:
        print(format_event(event))
    return 0


def cmd_add(
    settings: Settings,
    title: str,
    start: str,
    end: str,
    description: str | None = None,
    time_zone: str | None = None,
    code_provider: CodeProvider | None = None,
) -> int:
    """Create an event and print its link."""
    draft = EventDraft(title=title, start=start, end=end, description=description or None)
    # Reject bad input before touching credentials or the network
    draft.validate()

    client = _calendar_client(settings, ADD_SCOPES, code_provider, time_zone=time_zone)
    event = client.create_event(draft)

    print(f"Event created: {event.html_link}")
    return 0


def cmd_status(settings: Settings) -> int:
    """Show credential and token status."""
    status = get_credential_status(settings)

    cred_mark = "[x]" if status["credentials"] else "[ ]"
    token_mark = "[x]" if status["token"] else "[ ]"
    print(f"credentials.json : {cred_mark} {settings.credentials_path}")
    print(f"token.json       : {token_mark} {settings.token_path}")

    if not status["credentials"]:
        print("Download OAuth credentials from https://console.cloud.google.com/apis/credentials")
        return 1

    config = load_client_config(settings.credentials_path, LIST_SCOPES)
    info = GoogleOAuth(config, TokenStore(settings.token_path)).get_token_info()

    if info["status"] == "no_token":
        print("No token found - run 'gcal list' to authorize")
        return 0
    if info["status"] == "corrupt":
        print("Token file is corrupt - it will be replaced on next authorization")
        return 0

    print(f"Status           : {info['status']}")
    print(f"Scopes           : {', '.join(info.get('scopes', []))}")
    print(f"Expires in       : {info.get('expires_in', 'unknown')}")
    print(f"Refresh token    : {'yes' if info.get('has_refresh_token') else 'no'}")
    return 0


def cmd_logout(settings: Settings) -> int:
    """Remove the cached token."""
    if TokenStore(settings.token_path).delete():
        print(f"Removed {settings.token_path}")
    else:
        print("No token to remove")
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcal",
        description="List and create events in your Google Calendar",
    )
    parser.add_argument("--credentials", help="OAuth client credentials file")
    parser.add_argument("--token", help="OAuth token cache file")
    parser.add_argument("--calendar", help="Calendar ID (default: primary)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # list command
    list_parser = subparsers.add_parser("list", help="List upcoming events")
    list_parser.add_argument(
        "--max-results",
        type=_positive_int,
        default=10,
        help="Maximum number of events (default: 10)",
    )

    # add command
    add_parser = subparsers.add_parser("add", help="Add a new event")
    add_parser.add_argument("--title", default="", help="Event title")
    add_parser.add_argument(
        "--start", default="", help="Start time (format: 2025-09-08T10:00:00-03:00)"
    )
    add_parser.add_argument(
        "--end", default="", help="End time (format: 2025-09-08T11:00:00-03:00)"
    )
    add_parser.add_argument("--desc", default="", help="Event description")
    add_parser.add_argument(
        "--timezone", help="Time zone for the event (default: America/Sao_Paulo)"
    )

    subparsers.add_parser("status", help="Show credential and token status")
    subparsers.add_parser("logout", help="Remove the cached token")

    return parser


def main(argv: list[str] | None = None, code_provider: CodeProvider | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(
            credentials_path=args.credentials,
            token_path=args.token,
            calendar_id=args.calendar,
        )

        if args.command == "list":
            return cmd_list(settings, args.max_results, code_provider=code_provider)
        if args.command == "add":
            return cmd_add(
                settings,
                title=args.title,
                start=args.start,
                end=args.end,
                description=args.desc,
                time_zone=args.timezone,
                code_provider=code_provider,
            )
        if args.command == "status":
            return cmd_status(settings)
        if args.command == "logout":
            return cmd_logout(settings)
    except GcalError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
