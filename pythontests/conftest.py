"""
Shared fixtures: every test gets its own token directory, empty session and
OAuth state stores, an empty response cache and known Spotify credentials.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from auratune import auth
from auratune.api import app
from auratune.cache import spotify_cache
from auratune.config import AppConfig, SpotifyConfig


SESSION_ID = "test-session-id"
USER_ID = "user-123"


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    monkeypatch.setattr(auth, "_tokens_dir", tmp_path / "spotify_tokens")
    monkeypatch.setattr(
        auth,
        "_cfg",
        AppConfig(spotify=SpotifyConfig(client_id="test_client_id", client_secret="test_client_secret")),
    )
    auth._sessions.clear()
    auth._oauth_states.clear()
    spotify_cache.clear()
    app.state.limiter.reset()
    yield
    auth._sessions.clear()
    auth._oauth_states.clear()
    spotify_cache.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def stored_tokens() -> Dict[str, Any]:
    return {
        "access_token": "access-abc",
        "refresh_token": "refresh-xyz",
        "expires_at": int(time.time()) + 3600,
        "user_id": USER_ID,
        "display_name": "Test User",
        "email": "test@example.com",
        "image": None,
    }


@pytest.fixture
def signed_in_client(client, stored_tokens):
    """A TestClient carrying a session cookie for a user with valid tokens."""
    auth._save_tokens(USER_ID, stored_tokens)
    auth._sessions[SESSION_ID] = USER_ID
    client.cookies.set("auratune_session", SESSION_ID)
    return client


@pytest.fixture
def make_track():
    """Factory for Spotify track payloads as returned by the Web API."""

    def _make(
        track_id: str = "track-1",
        name: str = "Test Track",
        artists=("Test Artist",),
        duration_ms: int = 210000,
        images=("https://i.scdn.co/image/cover",),
    ) -> Dict[str, Any]:
        return {
            "id": track_id,
            "name": name,
            "uri": f"spotify:track:{track_id}",
            "duration_ms": duration_ms,
            "explicit": False,
            "artists": [{"name": a} for a in artists],
            "album": {
                "id": "album-1",
                "name": "Test Album",
                "images": [{"url": url, "height": 640, "width": 640} for url in images],
            },
        }

    return _make
