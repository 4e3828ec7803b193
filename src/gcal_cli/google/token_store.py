"""Local OAuth token cache.

The token file holds a single JSON object using the same keys as the Go
``oauth2.Token`` type, plus the granted scopes:

    {
      "access_token": "...",
      "token_type": "Bearer",
      "refresh_token": "...",
      "expiry": "2025-09-08T13:00:00+00:00",
      "scopes": ["https://www.googleapis.com/auth/calendar.readonly"]
    }

The file is always written with owner-only permissions (0600) and fully
overwritten on every save.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gcal_cli.google.exceptions import CorruptTokenError, TokenError, TokenNotFoundError

logger = logging.getLogger(__name__)

TOKEN_FILE_MODE = 0o600

# Go writes RFC3339Nano, up to nine fractional digits
_FRACTION = re.compile(r"\.(\d+)")


def _parse_expiry(value: Any) -> datetime | None:
    """Parse a stored expiry (RFC3339 string or epoch seconds)."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"expiry out of range: {value!r}") from e
    if isinstance(value, str):
        value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"unsupported expiry value: {value!r}")


def as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


@dataclass
class OAuthToken:
    """An OAuth 2.0 access/refresh token pair."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expiry: datetime | None = None
    scopes: tuple[str, ...] = field(default_factory=tuple)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the access token has expired.

        A token without an expiry never expires. A naive expiry is
        interpreted as UTC.
        """
        if self.expiry is None:
            return False
        now = as_utc(now) if now else datetime.now(timezone.utc)
        return as_utc(self.expiry) <= now

    @property
    def is_refreshable(self) -> bool:
        return bool(self.refresh_token)

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "scopes": list(self.scopes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OAuthToken:
        """Build a token from its stored JSON form.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("missing access_token")

        scopes = data.get("scopes") or []
        if isinstance(scopes, str):
            scopes = scopes.split()
        if not isinstance(scopes, (list, tuple)) or not all(isinstance(s, str) for s in scopes):
            raise ValueError("scopes must be a list of strings")
        for key in ("refresh_token", "token_type"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ValueError(f"{key} must be a string")

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or "Bearer",
            expiry=_parse_expiry(data.get("expiry")),
            scopes=tuple(scopes),
        )

    @classmethod
    def from_authlib(
        cls, token: dict[str, Any], default_scopes: tuple[str, ...] = ()
    ) -> OAuthToken:
        """Convert an Authlib token dict to an OAuthToken.

        Args:
            token: Token as returned by ``OAuth2Session.fetch_token``.
            default_scopes: Scopes to record when the response omits them.
        """
        expires_at = token.get("expires_at")
        scope = token.get("scope") or ""
        scopes = tuple(scope.split()) if isinstance(scope, str) else tuple(scope)

        return cls(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token") or None,
            token_type=token.get("token_type") or "Bearer",
            expiry=datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None,
            scopes=scopes or tuple(default_scopes),
        )

    def to_authlib(self) -> dict[str, Any]:
        """Convert to the dict layout Authlib's OAuth2Session expects."""
        token: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "scope": " ".join(self.scopes),
        }
        if self.refresh_token:
            token["refresh_token"] = self.refresh_token
        if self.expiry:
            token["expires_at"] = int(as_utc(self.expiry).timestamp())
        return token


class TokenStore:
    """Reads and writes the OAuth token file.

    Example:
        >>> store = TokenStore("token.json")
        >>> store.save(OAuthToken(access_token="ya29..."))
        >>> store.load().access_token
        'ya29...'
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> OAuthToken:
        """Load the stored token.

        Returns:
            The stored OAuthToken.

        Raises:
            TokenNotFoundError: If the file is absent or unreadable.
            CorruptTokenError: If the file exists but does not hold a valid token.
        """
        try:
            with open(self.path) as f:
                raw = f.read()
        except FileNotFoundError:
            raise TokenNotFoundError(str(self.path)) from None
        except OSError as e:
            raise TokenNotFoundError(
                str(self.path), f"Unable to read token file {self.path}: {e}"
            ) from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            token = OAuthToken.from_dict(data)
        except (ValueError, TypeError) as e:
            raise CorruptTokenError(str(self.path), str(e)) from e

        logger.info(f"Loaded token from {self.path}")
        return token

    def save(self, token: OAuthToken) -> None:
        """Write the token, replacing any previous content.

        Raises:
            TokenError: If the file cannot be written.
        """
        payload = json.dumps(token.to_dict(), indent=2)
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, TOKEN_FILE_MODE)
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            # O_CREAT's mode only applies to new files
            os.chmod(self.path, TOKEN_FILE_MODE)
        except OSError as e:
            raise TokenError(f"Unable to save token to {self.path}: {e}") from e

        logger.info(f"Token saved to {self.path}")

    def delete(self) -> bool:
        """Remove the token file. Returns True if a file was removed.

        Raises:
            TokenError: If the file exists but cannot be removed.
        """
        if not self.path.exists():
            return False
        try:
            self.path.unlink()
        except OSError as e:
            raise TokenError(f"Unable to remove token {self.path}: {e}") from e
        logger.info(f"Token removed from {self.path}")
        return True
