"""Shared fixtures for gcal tests."""

import json

import pytest

READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
EVENTS_SCOPE = "https://www.googleapis.com/auth/calendar.events"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test in an empty directory with no GCAL_* variables."""
    for var in ("GCAL_CREDENTIALS", "GCAL_TOKEN", "GCAL_CALENDAR_ID", "GCAL_TIMEZONE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def mock_credentials(tmp_path):
    """Create a mock credentials file."""
    creds = {
        "installed": {
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-client-secret",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }
    creds_path = tmp_path / "credentials.json"
    with open(creds_path, "w") as f:
        json.dump(creds, f)
    return creds_path


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / "token.json"


@pytest.fixture
def mock_token(token_path):
    """Create a valid token file covering read and write scopes."""
    token = {
        "access_token": "test-access-token",
        "token_type": "Bearer",
        "refresh_token": "test-refresh-token",
        "expiry": "2099-01-01T00:00:00Z",
        "scopes": [READONLY_SCOPE, EVENTS_SCOPE],
    }
    with open(token_path, "w") as f:
        json.dump(token, f)
    return token_path
