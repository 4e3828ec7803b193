"""Google authentication exceptions."""

from gcal_cli.exceptions import GcalError


class GoogleAuthError(GcalError):
    """Base exception for Google authentication errors."""

    pass


class CredentialsNotFoundError(GoogleAuthError):
    """Raised when OAuth credentials file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Credentials file not found at {path}. "
            "Please download OAuth credentials from Google Cloud Console."
        )


class MalformedCredentialsError(GoogleAuthError):
    """Raised when the OAuth credentials file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to parse credentials file {path}: {reason}")


class TokenError(GoogleAuthError):
    """Raised when there's an issue with the OAuth token."""

    pass


class TokenNotFoundError(TokenError):
    """Raised when no stored token is available."""

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        super().__init__(message or f"No token found at {path}")


class CorruptTokenError(TokenNotFoundError):
    """Raised when the token file exists but cannot be decoded."""

    def __init__(self, path: str, reason: str):
        self.reason = reason
        super().__init__(path, f"Token file {path} is corrupt: {reason}")


class AuthorizationError(GoogleAuthError):
    """Raised when interactive authorization or token refresh fails."""

    pass
