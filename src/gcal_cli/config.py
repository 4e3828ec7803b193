"""Runtime configuration.

Settings are resolved in this order:
    1. Explicit values (command-line flags)
    2. Environment variables:
        GCAL_CREDENTIALS   - Google OAuth client credentials file
        GCAL_TOKEN         - OAuth token cache file
        GCAL_CALENDAR_ID   - Calendar to read and write ("primary")
        GCAL_TIMEZONE      - Time zone attached to created events
    3. A .env file in the working directory
    4. Defaults: credentials.json and token.json in the working directory
"""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CREDENTIALS = "credentials.json"
DEFAULT_TOKEN = "token.json"
DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIME_ZONE = "America/Sao_Paulo"
DEFAULT_ENV_FILE = ".env"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one run."""

    credentials_path: Path
    token_path: Path
    calendar_id: str = DEFAULT_CALENDAR_ID
    time_zone: str = DEFAULT_TIME_ZONE


def _load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Only set if not already in environment (env vars take precedence)
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


def load_settings(
    credentials_path: str | Path | None = None,
    token_path: str | Path | None = None,
    calendar_id: str | None = None,
    time_zone: str | None = None,
    env_file: str | Path | None = DEFAULT_ENV_FILE,
) -> Settings:
    """Resolve settings from arguments, environment and .env file.

    Args:
        credentials_path: Path to OAuth client credentials.
        token_path: Path to the token cache.
        calendar_id: Calendar ID.
        time_zone: IANA time zone name for created events.
        env_file: .env file to load first, or None to skip it.

    Returns:
        Settings with every value filled in.
    """
    if env_file:
        _load_env_file(Path(env_file))

    return Settings(
        credentials_path=Path(
            credentials_path or os.environ.get("GCAL_CREDENTIALS") or DEFAULT_CREDENTIALS
        ),
        token_path=Path(token_path or os.environ.get("GCAL_TOKEN") or DEFAULT_TOKEN),
        calendar_id=calendar_id or os.environ.get("GCAL_CALENDAR_ID") or DEFAULT_CALENDAR_ID,
        time_zone=time_zone or os.environ.get("GCAL_TIMEZONE") or DEFAULT_TIME_ZONE,
    )


def get_credential_status(settings: Settings) -> dict:
    """Get status of the configured credential files.

    Returns:
        Dictionary with credential status.
    """
    return {
        "credentials": settings.credentials_path.exists(),
        "token": settings.token_path.exists(),
    }
