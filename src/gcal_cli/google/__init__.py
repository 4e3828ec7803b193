"""Google OAuth authentication and token storage."""

from gcal_cli.google.exceptions import (
    AuthorizationError,
    CorruptTokenError,
    CredentialsNotFoundError,
    GoogleAuthError,
    MalformedCredentialsError,
    TokenError,
    TokenNotFoundError,
)
from gcal_cli.google.oauth import ClientConfig, GoogleOAuth, load_client_config
from gcal_cli.google.token_store import OAuthToken, TokenStore

__all__ = [
    "GoogleOAuth",
    "ClientConfig",
    "load_client_config",
    "OAuthToken",
    "TokenStore",
    "GoogleAuthError",
    "CredentialsNotFoundError",
    "MalformedCredentialsError",
    "TokenError",
    "TokenNotFoundError",
    "CorruptTokenError",
    "AuthorizationError",
]
