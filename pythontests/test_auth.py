"""
Test suite for Spotify sign-in: the /api/auth/{action} route, OAuth state
handling, token storage and session refresh.
"""

import time
from unittest.mock import MagicMock, Mock, patch

from spotipy.oauth2 import SpotifyOauthError

from auratune import auth
from auratune.config import AppConfig, SpotifyConfig

from conftest import SESSION_ID, USER_ID


def _oauth_manager(token_info=None):
    manager = MagicMock()
    manager.cache_handler.get_cached_token.return_value = token_info
    return manager


class TestSignIn:
    def test_signin_redirects_to_spotify(self, client):
        resp = client.get("/api/auth/signin", follow_redirects=False)

        assert resp.status_code == 302
        location = resp.headers["location"]
        assert "accounts.spotify.com/authorize" in location
        assert "client_id=test_client_id" in location
        assert "redirect_uri" in location
        assert "state=" in location
        assert "show_dialog=True" in location or "show_dialog=true" in location

    def test_signin_form_post_uses_see_other(self, client):
        resp = client.post("/api/auth/signin", follow_redirects=False)

        assert resp.status_code == 303
        assert "accounts.spotify.com/authorize" in resp.headers["location"]

    def test_signin_requests_required_scopes(self, client):
        location = client.get("/api/auth/signin", follow_redirects=False).headers["location"]

        for scope in ("user-top-read", "user-modify-playback-state", "playlist-modify-private"):
            assert scope in location

    def test_signin_requires_client_id(self, client):
        with patch.object(auth, "_cfg", AppConfig(spotify=SpotifyConfig(client_id="", client_secret=""))):
            resp = client.get("/api/auth/signin")

        assert resp.status_code == 500
        assert "AURATUNE_SPOTIFY_CLIENT_ID" in resp.json()["detail"]

    def test_each_signin_gets_unique_state(self, client):
        client.get("/api/auth/signin", follow_redirects=False)
        client.get("/api/auth/signin", follow_redirects=False)

        assert len(auth._oauth_states) == 2

    def test_expired_states_are_cleaned_up(self, client):
        auth._oauth_states["old_state_token"] = time.time() - 660  # 11 minutes ago

        client.get("/api/auth/signin", follow_redirects=False)

        assert "old_state_token" not in auth._oauth_states

    def test_unknown_action_is_404(self, client):
        resp = client.get("/api/auth/teleport")

        assert resp.status_code == 404


class TestCallback:
    def test_user_denial(self, client):
        resp = client.get("/api/auth/callback?error=access_denied&error_description=User%20denied")

        assert resp.status_code == 200
        assert "Connection Denied" in resp.text
        assert "User denied" in resp.text

    def test_missing_code(self, client):
        resp = client.get("/api/auth/callback")

        assert resp.status_code == 200
        assert "Connection Error" in resp.text
        assert "No authorization code" in resp.text

    def test_invalid_state(self, client):
        resp = client.get("/api/auth/callback?code=test_code&state=invalid_state")

        assert resp.status_code == 200
        assert "Security Error" in resp.text
        assert "Invalid OAuth state" in resp.text

    def test_missing_credentials(self, client):
        with patch.object(auth, "_cfg", AppConfig(spotify=SpotifyConfig(client_id="", client_secret=""))):
            resp = client.get("/api/auth/callback?code=test_code&state=s")

        assert resp.status_code == 500
        assert "AURATUNE_SPOTIFY_CLIENT_SECRET" in resp.json()["detail"]

    def test_successful_callback_creates_session(self, client):
        auth._oauth_states["good_state"] = time.time()
        manager = _oauth_manager(
            {"access_token": "new-access", "refresh_token": "new-refresh", "expires_at": int(time.time()) + 3600}
        )
        sp = Mock()
        sp.current_user.return_value = {
            "id": USER_ID,
            "display_name": "Test User",
            "email": "test@example.com",
            "images": [{"url": "https://img/avatar"}],
        }

        with patch.object(auth, "build_oauth_manager", return_value=manager), \
             patch.object(auth, "get_spotify_api", return_value=sp):
            resp = client.get("/api/auth/callback?code=the_code&state=good_state", follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == "/dashboard"
        assert "auratune_session" in resp.cookies
        assert "good_state" not in auth._oauth_states
        manager.get_access_token.assert_called_once_with("the_code", as_dict=False, check_cache=False)

        stored = auth._load_tokens(USER_ID)
        assert stored["access_token"] == "new-access"
        assert stored["refresh_token"] == "new-refresh"
        assert stored["image"] == "https://img/avatar"
        assert list(auth._sessions.values()) == [USER_ID]

    def test_state_cannot_be_reused(self, client):
        auth._oauth_states["once"] = time.time()
        manager = _oauth_manager({"access_token": "a", "refresh_token": "r", "expires_at": int(time.time()) + 3600})
        sp = Mock()
        sp.current_user.return_value = {"id": USER_ID}

        with patch.object(auth, "build_oauth_manager", return_value=manager), \
             patch.object(auth, "get_spotify_api", return_value=sp):
            client.get("/api/auth/callback?code=c&state=once", follow_redirects=False)
            second = client.get("/api/auth/callback?code=c&state=once", follow_redirects=False)

        assert "Security Error" in second.text

    def test_token_exchange_failure(self, client):
        auth._oauth_states["s"] = time.time()
        manager = _oauth_manager()
        manager.get_access_token.side_effect = SpotifyOauthError("invalid_grant", error="invalid_grant")

        with patch.object(auth, "build_oauth_manager", return_value=manager):
            resp = client.get("/api/auth/callback?code=bad&state=s")

        assert resp.status_code == 200
        assert "Failed to exchange authorization code" in resp.text

    def test_missing_refresh_token(self, client):
        auth._oauth_states["s"] = time.time()
        manager = _oauth_manager({"access_token": "only-access"})

        with patch.object(auth, "build_oauth_manager", return_value=manager):
            resp = client.get("/api/auth/callback?code=c&state=s")

        assert "missing required tokens" in resp.text


class TestSession:
    def test_no_cookie_means_no_user(self, client):
        assert client.get("/api/auth/session").json() == {"user": None}

    def test_session_never_exposes_token(self, signed_in_client):
        body = signed_in_client.get("/api/auth/session").json()

        assert body["user"]["user_id"] == USER_ID
        assert body["user"]["name"] == "Test User"
        assert body["error"] is None
        assert "access_token" not in body["user"]
        assert "access-abc" not in str(body)

    def test_signout_deletes_tokens_and_session(self, signed_in_client):
        resp = signed_in_client.post("/api/auth/signout", follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        assert SESSION_ID not in auth._sessions
        assert auth._load_tokens(USER_ID) is None


class TestTokenRefresh:
    def _request(self):
        return Mock(cookies={"auratune_session": SESSION_ID})

    def _store(self, **tokens):
        auth._save_tokens(USER_ID, tokens)
        auth._sessions[SESSION_ID] = USER_ID

    def test_valid_token_is_not_refreshed(self, stored_tokens):
        self._store(**stored_tokens)

        with patch.object(auth, "build_oauth_manager") as build:
            session = auth.get_session(self._request())

        assert session.access_token == "access-abc"
        assert session.error is None
        build.assert_not_called()

    def test_expired_token_is_refreshed_and_saved(self):
        self._store(access_token="old", refresh_token="refresh-1", expires_at=int(time.time()) - 10)
        manager = MagicMock()
        manager.refresh_access_token.return_value = {
            "access_token": "fresh",
            "expires_at": int(time.time()) + 3600,
        }

        with patch.object(auth, "build_oauth_manager", return_value=manager):
            session = auth.get_session(self._request())

        assert session.access_token == "fresh"
        assert session.is_usable
        manager.refresh_access_token.assert_called_once_with("refresh-1")
        stored = auth._load_tokens(USER_ID)
        assert stored["access_token"] == "fresh"
        assert stored["refresh_token"] == "refresh-1"

    def test_refresh_failure_keeps_old_token_and_flags_error(self):
        self._store(access_token="old", refresh_token="refresh-1", expires_at=int(time.time()) - 10)
        manager = MagicMock()
        manager.refresh_access_token.side_effect = SpotifyOauthError("revoked")

        with patch.object(auth, "build_oauth_manager", return_value=manager):
            session = auth.get_session(self._request())

        assert session.access_token == "old"
        assert session.error == "RefreshAccessTokenError"
        assert not session.is_usable

    def test_missing_refresh_token_flags_error(self):
        self._store(access_token="old", expires_at=int(time.time()) - 10)

        session = auth.get_session(self._request())

        assert session.error == "NoRefreshTokenError"

    def test_api_rejects_session_with_refresh_error(self, client):
        self._store(access_token="old", expires_at=int(time.time()) - 10)
        client.cookies.set("auratune_session", SESSION_ID)

        resp = client.post("/api/search", json={"query": "x"})

        assert resp.status_code == 401
        assert "sign in again" in resp.json()["detail"]
