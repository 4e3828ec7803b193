"""Google OAuth management using Authlib.

This module provides OAuth 2.0 authorization for the Calendar API with:
- Client configuration loaded from a Google console credentials file
- Token reuse from the local token cache, refreshing when expired
- Interactive authorization-code exchange when no usable token exists

The code is read through an injectable *code provider* so the interactive
step can be driven without a terminal.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error
from google.oauth2.credentials import Credentials as GoogleCredentials

from gcal_cli.google.exceptions import (
    AuthorizationError,
    CorruptTokenError,
    CredentialsNotFoundError,
    MalformedCredentialsError,
    TokenNotFoundError,
)
from gcal_cli.google.token_store import OAuthToken, TokenStore, as_utc

logger = logging.getLogger(__name__)


# Google Calendar OAuth scopes
SCOPES = {
    "calendar": "https://www.googleapis.com/auth/calendar",
    "calendar_readonly": "https://www.googleapis.com/auth/calendar.readonly",
    "calendar_events": "https://www.googleapis.com/auth/calendar.events",
    "calendar_events_readonly": "https://www.googleapis.com/auth/calendar.events.readonly",
}

# Broader scopes that also grant each narrower one
IMPLIED_SCOPES = {
    SCOPES["calendar_readonly"]: {SCOPES["calendar"], SCOPES["calendar_events"]},
    SCOPES["calendar_events"]: {SCOPES["calendar"]},
    SCOPES["calendar_events_readonly"]: {
        SCOPES["calendar"],
        SCOPES["calendar_readonly"],
        SCOPES["calendar_events"],
    },
}

DEFAULT_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_REDIRECT_URI = "http://localhost"

CodeProvider = Callable[[str], str]


def resolve_scopes(scopes: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Resolve scope names to full URLs."""
    resolved = []
    for scope in scopes:
        if scope.startswith("https://"):
            resolved.append(scope)
        elif scope in SCOPES:
            resolved.append(SCOPES[scope])
        else:
            raise ValueError(
                f"Unknown scope: {scope}. Use full URL or one of: {list(SCOPES.keys())}"
            )
    return tuple(resolved)


def missing_scopes(required: tuple[str, ...], granted: tuple[str, ...]) -> set[str]:
    """Return the required scopes not covered by the granted ones."""
    held = set(granted)
    return {
        scope
        for scope in required
        if scope not in held and not (IMPLIED_SCOPES.get(scope, set()) & held)
    }


@dataclass(frozen=True)
class ClientConfig:
    """OAuth client configuration for one process run."""

    client_id: str
    client_secret: str
    scopes: tuple[str, ...]
    redirect_uri: str = DEFAULT_REDIRECT_URI
    auth_uri: str = DEFAULT_AUTH_URI
    token_uri: str = DEFAULT_TOKEN_URI


def load_client_config(path: str | Path, scopes: list[str] | tuple[str, ...]) -> ClientConfig:
    """Load OAuth client credentials from a Google console JSON file.

    Args:
        path: Path to credentials.json.
        scopes: Scope names (e.g., ["calendar_readonly"]) or full URLs.

    Returns:
        Immutable ClientConfig bound to the requested scopes.

    Raises:
        CredentialsNotFoundError: If the file does not exist.
        MalformedCredentialsError: If the file cannot be parsed.
    """
    path = Path(path)
    resolved = resolve_scopes(scopes)

    try:
        with open(path) as f:
            creds = json.load(f)
    except FileNotFoundError:
        raise CredentialsNotFoundError(str(path)) from None
    except OSError as e:
        raise CredentialsNotFoundError(str(path)) from e
    except json.JSONDecodeError as e:
        raise MalformedCredentialsError(str(path), f"invalid JSON: {e}") from e

    # Handle both web and installed app credential formats
    if not isinstance(creds, dict):
        raise MalformedCredentialsError(str(path), "expected a JSON object")
    if "installed" in creds:
        app_creds = creds["installed"]
    elif "web" in creds:
        app_creds = creds["web"]
    else:
        raise MalformedCredentialsError(str(path), "expected 'installed' or 'web' key")

    try:
        client_id = app_creds["client_id"]
        client_secret = app_creds["client_secret"]
    except (KeyError, TypeError) as e:
        raise MalformedCredentialsError(str(path), f"missing field {e}") from e

    redirect_uris = app_creds.get("redirect_uris") or [DEFAULT_REDIRECT_URI]

    return ClientConfig(
        client_id=client_id,
        client_secret=client_secret,
        scopes=resolved,
        redirect_uri=redirect_uris[0],
        auth_uri=app_creds.get("auth_uri") or DEFAULT_AUTH_URI,
        token_uri=app_creds.get("token_uri") or DEFAULT_TOKEN_URI,
    )


def prompt_for_code(authorization_url: str) -> str:
    """Print the authorization URL and block until a code is pasted."""
    print("Visit this URL in your browser to authorize gcal, then paste the code here:")
    print(authorization_url)
    try:
        return input("Authorization code: ")
    except EOFError as e:
        raise AuthorizationError("Unable to read authorization code: no input") from e


class GoogleOAuth:
    """Google OAuth management using Authlib.

    Loads a cached token, refreshes it when it has expired, or runs the
    interactive authorization-code flow when no usable token exists.

    Example:
        >>> config = load_client_config("credentials.json", ["calendar_readonly"])
        >>> auth = GoogleOAuth(config, TokenStore("token.json"))
        >>> creds = auth.get_authorized_client()
    """

    # Fixed anti-forgery value sent with the authorization request
    STATE = "state-token"

    def __init__(
        self,
        config: ClientConfig,
        store: TokenStore,
        code_provider: CodeProvider | None = None,
    ):
        """Initialize Google OAuth.

        Args:
            config: OAuth client configuration with the required scopes.
            store: Token cache used to load and persist tokens.
            code_provider: Callable receiving the authorization URL and
                returning the pasted code. Defaults to a stdin prompt.
        """
        self.config = config
        self.store = store
        self.code_provider = code_provider or prompt_for_code

        self.session = OAuth2Session(
            client_id=config.client_id,
            client_secret=config.client_secret,
            scope=" ".join(config.scopes),
            redirect_uri=config.redirect_uri,
            update_token=self._save_token,
            token_endpoint=config.token_uri,
            token_endpoint_auth_method="client_secret_post",
        )

        self.token: OAuthToken | None = None
        self.last_refresh: datetime | None = None
        self.refresh_count = 0

    def _save_token(
        self,
        token: dict[str, Any],
        refresh_token: str | None = None,
        access_token: str | None = None,
    ) -> OAuthToken:
        """Save token to storage (Authlib callback)."""
        if access_token:
            token["access_token"] = access_token
        if refresh_token and not token.get("refresh_token"):
            token["refresh_token"] = refresh_token

        oauth_token = OAuthToken.from_authlib(token, default_scopes=self.config.scopes)
        self.store.save(oauth_token)
        self.token = oauth_token

        self.last_refresh = datetime.now()
        self.refresh_count += 1

        logger.info(f"Token saved with scopes: {set(oauth_token.scopes)}")
        return oauth_token

    def _load_usable_token(self) -> OAuthToken | None:
        """Load a stored token that can be used without user interaction."""
        try:
            token = self.store.load()
        except CorruptTokenError as e:
            logger.warning(f"{e}; re-authorizing")
            return None
        except TokenNotFoundError:
            logger.info("No existing token found")
            return None

        # Tokens written before scopes were recorded are trusted as-is
        if token.scopes:
            missing = missing_scopes(self.config.scopes, token.scopes)
            if missing:
                logger.warning(f"Token missing required scopes: {missing}")
                return None

        if token.is_expired() and not token.is_refreshable:
            logger.info("Token expired and has no refresh token")
            return None

        return token

    def is_authorized(self) -> bool:
        """Check if a stored token is usable without interactive authorization."""
        return self._load_usable_token() is not None

    def get_authorization_url(self) -> str:
        """Build the URL the user must visit to grant access."""
        authorization_url, _ = self.session.create_authorization_url(
            self.config.auth_uri,
            state=self.STATE,
            access_type="offline",
            prompt="consent",
        )
        return authorization_url

    def _extract_code(self, response: str) -> str:
        """Get the authorization code from a pasted code or redirect URL."""
        response = response.strip()
        if not response.startswith(("http://", "https://")):
            return response

        params = parse_qs(urlparse(response).query)
        if "error" in params:
            raise AuthorizationError(f"Authorization denied: {params['error'][0]}")
        state = params.get("state", [None])[0]
        if state is not None and state != self.STATE:
            raise AuthorizationError("Authorization state mismatch")
        return params.get("code", [""])[0]

    def authorize_interactively(self) -> OAuthToken:
        """Run the authorization-code flow and persist the resulting token.

        Returns:
            The newly issued token.

        Raises:
            AuthorizationError: If no code is supplied or the exchange fails.
        """
        url = self.get_authorization_url()
        logger.info(f"Starting interactive authorization for scopes: {list(self.config.scopes)}")

        code = self._extract_code(self.code_provider(url) or "")
        if not code:
            raise AuthorizationError("No authorization code provided")

        try:
            token = self.session.fetch_token(
                self.config.token_uri,
                grant_type="authorization_code",
                code=code,
            )
        except (OAuth2Error, requests.RequestException) as e:
            raise AuthorizationError(f"Unable to exchange authorization code: {e}") from e

        return self._save_token(dict(token))

    def _refresh(self, token: OAuthToken) -> OAuthToken:
        """Refresh an expired token; the update_token hook persists it."""
        logger.info("Token expired, refreshing...")
        self.session.token = token.to_authlib()
        try:
            self.session.refresh_token(
                self.config.token_uri,
                refresh_token=token.refresh_token,
            )
        except (OAuth2Error, requests.RequestException) as e:
            raise AuthorizationError(
                f"Failed to refresh token: {e}. Delete {self.store.path} to re-authorize."
            ) from e
        return self.token or token

    def get_authorized_client(self) -> GoogleCredentials:
        """Get Google Credentials for the Calendar API client library.

        Returns:
            Google Credentials bound to the client configuration. The
            credentials refresh themselves once the access token expires.

        Raises:
            AuthorizationError: If authorization or refresh fails.
            TokenError: If a new token cannot be saved.
        """
        token = self._load_usable_token()
        if token is None:
            token = self.authorize_interactively()
        elif token.is_expired():
            token = self._refresh(token)

        self.token = token
        self.session.token = token.to_authlib()

        # google-auth compares against naive UTC datetimes
        expiry = None
        if token.expiry:
            expiry = as_utc(token.expiry).astimezone(timezone.utc).replace(tzinfo=None)

        return GoogleCredentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=self.config.token_uri,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scopes=list(token.scopes or self.config.scopes),
            expiry=expiry,
        )

    def get_token_info(self) -> dict[str, Any]:
        """Get information about the stored token.

        Returns:
            Dictionary with token status, scopes, expiry, etc.
        """
        try:
            token = self.store.load()
        except CorruptTokenError:
            return {"status": "corrupt"}
        except TokenNotFoundError:
            return {"status": "no_token"}

        if token.expiry:
            expires_in = as_utc(token.expiry).timestamp() - datetime.now(timezone.utc).timestamp()
            expires_str = str(timedelta(seconds=int(max(0, expires_in))))
        else:
            expires_str = "unknown"

        return {
            "status": "expired" if token.is_expired() else "valid",
            "scopes": list(token.scopes),
            "expires_in": expires_str,
            "has_refresh_token": token.is_refreshable,
            "refresh_count": self.refresh_count,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }
