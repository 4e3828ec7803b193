"""Tests for Google OAuth authorization."""

import json
import os
import stat
from unittest.mock import MagicMock, patch

import pytest
import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error
from google.oauth2.credentials import Credentials as GoogleCredentials

from gcal_cli.google import (
    AuthorizationError,
    ClientConfig,
    CredentialsNotFoundError,
    GoogleOAuth,
    MalformedCredentialsError,
    OAuthToken,
    TokenStore,
    load_client_config,
)
from gcal_cli.google.oauth import SCOPES, missing_scopes, resolve_scopes

READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
EVENTS_SCOPE = "https://www.googleapis.com/auth/calendar.events"

EXCHANGED_TOKEN = {
    "access_token": "exchanged-access-token",
    "refresh_token": "exchanged-refresh-token",
    "token_type": "Bearer",
    "expires_in": 3599,
    "expires_at": 4102444800,
    "scope": READONLY_SCOPE,
}


class TestScopes:
    """Test scope name resolution."""

    def test_scope_names_resolve(self):
        """Should resolve scope names to URLs."""
        assert resolve_scopes(["calendar_readonly", "calendar_events"]) == (
            READONLY_SCOPE,
            EVENTS_SCOPE,
        )

    def test_unknown_scope_raises(self):
        """Should raise error for unknown scope names."""
        with pytest.raises(ValueError, match="Unknown scope"):
            resolve_scopes(["unknown_scope"])

    def test_full_url_scopes_accepted(self):
        """Should accept full scope URLs."""
        assert resolve_scopes([READONLY_SCOPE]) == (READONLY_SCOPE,)

    def test_available_scopes(self):
        """Should have the calendar scopes defined."""
        assert "calendar" in SCOPES
        assert "calendar_readonly" in SCOPES
        assert "calendar_events" in SCOPES

    def test_write_scope_covers_read(self):
        """Should treat calendar.events and calendar as granting read access."""
        assert missing_scopes((READONLY_SCOPE,), (EVENTS_SCOPE,)) == set()
        assert missing_scopes((READONLY_SCOPE,), (SCOPES["calendar"],)) == set()
        assert missing_scopes((EVENTS_SCOPE,), (SCOPES["calendar"],)) == set()

    def test_read_scope_does_not_cover_write(self):
        """Should report write scopes a read-only grant lacks."""
        assert missing_scopes((EVENTS_SCOPE,), (READONLY_SCOPE,)) == {EVENTS_SCOPE}
        assert missing_scopes((READONLY_SCOPE,), ()) == {READONLY_SCOPE}


class TestClientConfig:
    """Test loading OAuth client credentials."""

    def test_credentials_not_found(self, tmp_path):
        """Should raise error when credentials file is missing."""
        with pytest.raises(CredentialsNotFoundError):
            load_client_config(tmp_path / "nonexistent.json", ["calendar_readonly"])

    def test_load_installed_credentials(self, mock_credentials):
        """Should load installed app credentials."""
        config = load_client_config(mock_credentials, ["calendar_readonly"])
        assert config.client_id == "test-client-id.apps.googleusercontent.com"
        assert config.client_secret == "test-client-secret"
        assert config.redirect_uri == "http://localhost"
        assert config.scopes == (READONLY_SCOPE,)

    def test_load_web_credentials(self, tmp_path):
        """Should load web app credentials."""
        creds = {
            "web": {
                "client_id": "web-client-id.apps.googleusercontent.com",
                "client_secret": "web-client-secret",
            }
        }
        creds_path = tmp_path / "web.json"
        creds_path.write_text(json.dumps(creds))

        config = load_client_config(creds_path, ["calendar_events"])
        assert config.client_id == "web-client-id.apps.googleusercontent.com"
        assert config.token_uri == "https://oauth2.googleapis.com/token"

    def test_invalid_json(self, tmp_path):
        """Should raise MalformedCredentialsError for invalid JSON."""
        creds_path = tmp_path / "bad.json"
        creds_path.write_text("not json")
        with pytest.raises(MalformedCredentialsError, match="invalid JSON"):
            load_client_config(creds_path, ["calendar_readonly"])

    def test_unknown_format(self, tmp_path):
        """Should reject files without an installed or web section."""
        creds_path = tmp_path / "other.json"
        creds_path.write_text(json.dumps({"type": "service_account"}))
        with pytest.raises(MalformedCredentialsError, match="'installed' or 'web'"):
            load_client_config(creds_path, ["calendar_readonly"])

    def test_missing_client_secret(self, tmp_path):
        """Should reject credentials without a client secret."""
        creds_path = tmp_path / "partial.json"
        creds_path.write_text(json.dumps({"installed": {"client_id": "id"}}))
        with pytest.raises(MalformedCredentialsError, match="client_secret"):
            load_client_config(creds_path, ["calendar_readonly"])

    def test_config_is_immutable(self, mock_credentials):
        """Should not allow changing the config after loading."""
        config = load_client_config(mock_credentials, ["calendar_readonly"])
        with pytest.raises(AttributeError):
            config.client_id = "other"


class TestGoogleOAuth:
    """Tests for the authorizer."""

    @pytest.fixture
    def config(self, mock_credentials):
        return load_client_config(mock_credentials, ["calendar_readonly"])

    @pytest.fixture
    def code_provider(self):
        return MagicMock(return_value="ABC123")

    def test_get_authorization_url(self, config, token_path):
        """Should generate authorization URL with scope and fixed state."""
        auth = GoogleOAuth(config, TokenStore(token_path))
        url = auth.get_authorization_url()
        assert url.startswith("https://accounts.google.com/o/oauth2/auth")
        assert "client_id=test-client-id.apps.googleusercontent.com" in url
        assert "scope=" in url
        assert "state=state-token" in url
        assert "access_type=offline" in url

    def test_valid_token_does_not_prompt(self, config, mock_token, code_provider):
        """Should use a stored valid token without interactive input."""
        auth = GoogleOAuth(config, TokenStore(mock_token), code_provider=code_provider)

        creds = auth.get_authorized_client()

        code_provider.assert_not_called()
        assert isinstance(creds, GoogleCredentials)
        assert creds.token == "test-access-token"
        assert creds.refresh_token == "test-refresh-token"
        assert creds.client_id == "test-client-id.apps.googleusercontent.com"

    def test_is_authorized(self, config, mock_token, token_path):
        """Should report authorization status from the stored token."""
        assert GoogleOAuth(config, TokenStore(mock_token)).is_authorized() is True
        missing = TokenStore(token_path.with_name("none.json"))
        assert GoogleOAuth(config, missing).is_authorized() is False

    def test_missing_token_runs_interactive_flow(self, config, token_path, code_provider):
        """Should exchange the pasted code and persist the token with 0600 permissions."""
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        exchange = patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED_TOKEN))
        with exchange as fetch:
            creds = auth.get_authorized_client()

        code_provider.assert_called_once()
        assert "accounts.google.com" in code_provider.call_args.args[0]
        fetch.assert_called_once()
        assert fetch.call_args.kwargs["code"] == "ABC123"
        assert fetch.call_args.kwargs["grant_type"] == "authorization_code"

        assert creds.token == "exchanged-access-token"
        assert stat.S_IMODE(os.stat(token_path).st_mode) == 0o600
        saved = json.loads(token_path.read_text())
        assert saved["access_token"] == "exchanged-access-token"
        assert saved["refresh_token"] == "exchanged-refresh-token"
        assert saved["scopes"] == [READONLY_SCOPE]

    def test_corrupt_token_runs_interactive_flow_once(self, config, token_path, code_provider):
        """Should re-authorize exactly once when the token file is corrupt."""
        token_path.write_text("{corrupt")
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED_TOKEN)):
            auth.get_authorized_client()

        code_provider.assert_called_once()
        assert TokenStore(token_path).load().access_token == "exchanged-access-token"

    def test_pasted_redirect_url(self, config, token_path):
        """Should extract the code from a pasted redirect URL."""
        provider = MagicMock(return_value="http://localhost/?state=state-token&code=XYZ789&scope=x")
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=provider)

        exchange = patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED_TOKEN))
        with exchange as fetch:
            auth.get_authorized_client()

        assert fetch.call_args.kwargs["code"] == "XYZ789"

    def test_redirect_url_state_mismatch(self, config, token_path):
        """Should reject a redirect URL carrying a different state."""
        provider = MagicMock(return_value="http://localhost/?state=forged&code=XYZ789")
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=provider)

        with patch.object(OAuth2Session, "fetch_token") as fetch, pytest.raises(
            AuthorizationError, match="state mismatch"
        ):
            auth.get_authorized_client()
        fetch.assert_not_called()

    def test_redirect_url_error(self, config, token_path):
        """Should report a denied consent screen."""
        provider = MagicMock(return_value="http://localhost/?error=access_denied&state=state-token")
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=provider)

        with pytest.raises(AuthorizationError, match="access_denied"):
            auth.get_authorized_client()

    def test_empty_code(self, config, token_path):
        """Should fail when no code is pasted."""
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=lambda url: "   ")
        with pytest.raises(AuthorizationError, match="No authorization code"):
            auth.get_authorized_client()
        assert not token_path.exists()

    def test_exchange_failure(self, config, token_path, code_provider):
        """Should raise AuthorizationError and save nothing when the exchange fails."""
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        error = OAuth2Error(error="invalid_grant", description="Bad Request")
        with patch.object(OAuth2Session, "fetch_token", side_effect=error), pytest.raises(
            AuthorizationError, match="invalid_grant"
        ):
            auth.get_authorized_client()

        code_provider.assert_called_once()
        assert not token_path.exists()

    def test_exchange_network_failure(self, config, token_path, code_provider):
        """Should wrap network errors during the exchange."""
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        with patch.object(
            OAuth2Session, "fetch_token", side_effect=requests.ConnectionError("offline")
        ), pytest.raises(AuthorizationError, match="offline"):
            auth.get_authorized_client()

    def test_scope_mismatch_reauthorizes(self, mock_credentials, token_path, code_provider):
        """Should re-authorize when the stored token lacks the required scope."""
        TokenStore(token_path).save(
            OAuthToken(access_token="read-only", refresh_token="r", scopes=(READONLY_SCOPE,))
        )
        config = load_client_config(mock_credentials, ["calendar_events"])
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        exchanged = dict(EXCHANGED_TOKEN, scope=EVENTS_SCOPE)
        with patch.object(OAuth2Session, "fetch_token", return_value=exchanged):
            creds = auth.get_authorized_client()

        code_provider.assert_called_once()
        assert creds.token == "exchanged-access-token"

    def test_write_token_serves_read_command(self, config, token_path, code_provider):
        """Should reuse a calendar.events token for read access without prompting."""
        TokenStore(token_path).save(
            OAuthToken(access_token="read-write", refresh_token="r", scopes=(EVENTS_SCOPE,))
        )
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        creds = auth.get_authorized_client()

        code_provider.assert_not_called()
        assert creds.token == "read-write"

    def test_expired_token_is_refreshed(self, config, token_path, code_provider):
        """Should refresh an expired token without prompting and persist the result."""
        TokenStore(token_path).save(
            OAuthToken.from_authlib(
                {"access_token": "stale", "refresh_token": "keep-me", "expires_at": 1000},
                default_scopes=(READONLY_SCOPE,),
            )
        )
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        def fake_refresh(url, refresh_token=None, **kwargs):
            # Authlib calls the update_token hook after a successful refresh
            return auth._save_token(
                {"access_token": "fresh", "expires_at": 4102444800, "scope": READONLY_SCOPE},
                refresh_token=refresh_token,
            )

        with patch.object(auth.session, "refresh_token", side_effect=fake_refresh) as refresh:
            creds = auth.get_authorized_client()

        code_provider.assert_not_called()
        assert refresh.call_args.kwargs["refresh_token"] == "keep-me"
        assert creds.token == "fresh"
        saved = TokenStore(token_path).load()
        assert saved.access_token == "fresh"
        assert saved.refresh_token == "keep-me"

    def test_refresh_failure(self, config, token_path, code_provider):
        """Should fail fast when the refresh is rejected."""
        TokenStore(token_path).save(
            OAuthToken.from_authlib(
                {"access_token": "stale", "refresh_token": "revoked", "expires_at": 1000},
                default_scopes=(READONLY_SCOPE,),
            )
        )
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        with patch.object(
            auth.session, "refresh_token", side_effect=OAuth2Error(error="invalid_grant")
        ), pytest.raises(AuthorizationError, match="Failed to refresh token"):
            auth.get_authorized_client()
        code_provider.assert_not_called()

    def test_expired_token_without_refresh_token(self, config, token_path, code_provider):
        """Should re-authorize when an expired token cannot be refreshed."""
        TokenStore(token_path).save(
            OAuthToken.from_authlib(
                {"access_token": "stale", "expires_at": 1000}, default_scopes=(READONLY_SCOPE,)
            )
        )
        auth = GoogleOAuth(config, TokenStore(token_path), code_provider=code_provider)

        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED_TOKEN)):
            auth.get_authorized_client()

        code_provider.assert_called_once()

    def test_get_token_info_no_token(self, config, token_path):
        """Should return no_token status when no token exists."""
        info = GoogleOAuth(config, TokenStore(token_path)).get_token_info()
        assert info["status"] == "no_token"

    def test_get_token_info_with_token(self, config, mock_token):
        """Should return token info when token exists."""
        info = GoogleOAuth(config, TokenStore(mock_token)).get_token_info()
        assert info["status"] == "valid"
        assert info["has_refresh_token"] is True
        assert len(info["scopes"]) == 2

    def test_explicit_config(self, token_path):
        """Should accept a config built in code."""
        config = ClientConfig(client_id="id", client_secret="secret", scopes=(READONLY_SCOPE,))
        auth = GoogleOAuth(config, TokenStore(token_path))
        assert "client_id=id" in auth.get_authorization_url()
