"""
Spotify sign-in for AuraTune.

The OAuth 2.0 authorization-code exchange and token refresh are handled by
spotipy's SpotifyOAuth. This module only wires it to HTTP:

- one dynamic route, /api/auth/{action}, serves signin, callback, signout
  and session for both GET and POST;
- tokens are stored per Spotify user under the config dir and never sent to
  the browser; the browser only holds an opaque session cookie;
- get_session() resolves the cookie and refreshes an expired access token.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests
from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .components import templates
from .config import get_default_config_dir, load_config
from .spotify_sdk import REQUEST_TIMEOUT_SECONDS, get_spotify_api

logger = logging.getLogger(__name__)


OAUTH_STATE_TTL_SECONDS = 600
REFRESH_ERROR = "RefreshAccessTokenError"
NO_REFRESH_TOKEN_ERROR = "NoRefreshTokenError"

_cfg = load_config()
_tokens_dir = get_default_config_dir() / "spotify_tokens"  # Directory for per-user tokens
_oauth_states: dict[str, float] = {}  # state -> timestamp (for expiry cleanup)
_sessions: dict[str, str] = {}  # session_id -> spotify user id


@dataclass
class AuthSession:
    user_id: str
    access_token: Optional[str]
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.access_token) and self.error is None

    def public_view(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("access_token")
        return data


class SignInRequired(Exception):
    """Raised by page dependencies when the visitor has no usable session."""


# --------------------------------------------------------------------------- #
# OAuth manager
# --------------------------------------------------------------------------- #
def build_oauth_manager(state: Optional[str] = None) -> SpotifyOAuth:
    """
    Build a SpotifyOAuth bound to the configured app credentials.

    An in-memory cache handler is used so spotipy never writes its own
    .cache file; tokens are persisted by this module instead.
    """
    return SpotifyOAuth(
        client_id=_cfg.spotify.client_id,
        client_secret=_cfg.spotify.client_secret,
        redirect_uri=_cfg.spotify.redirect_uri,
        scope=_cfg.spotify.scope,
        state=state,
        cache_handler=MemoryCacheHandler(),
        show_dialog=True,
        requests_timeout=REQUEST_TIMEOUT_SECONDS,
    )


def _ensure_credentials() -> None:
    if not _cfg.spotify.client_id or not _cfg.spotify.client_secret:
        logger.error("Spotify client ID/secret are not configured")
        raise HTTPException(
            status_code=500,
            detail=(
                "Spotify client ID/secret are not configured. "
                "Set AURATUNE_SPOTIFY_CLIENT_ID and AURATUNE_SPOTIFY_CLIENT_SECRET."
            ),
        )


def _exchange_code(oauth: SpotifyOAuth, code: str) -> Optional[dict]:
    oauth.get_access_token(code, as_dict=False, check_cache=False)
    return oauth.cache_handler.get_cached_token()


# --------------------------------------------------------------------------- #
# Token storage
# --------------------------------------------------------------------------- #
def _get_token_path(user_id: str) -> Path:
    """Get the token file path for a specific user."""
    _tokens_dir.mkdir(parents=True, exist_ok=True)
    safe_user_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in user_id)
    return _tokens_dir / f"{safe_user_id}.json"


def _load_tokens(user_id: str) -> Optional[dict]:
    token_path = _get_token_path(user_id)
    if not token_path.exists():
        return None
    try:
        with token_path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        logger.error(f"Could not read stored tokens for {user_id}: {exc}")
        return None


def _save_tokens(user_id: str, data: dict) -> None:
    token_path = _get_token_path(user_id)
    with token_path.open("w", encoding="utf-8") as f:
        json.dump(data, f)


def _delete_tokens(user_id: str) -> None:
    token_path = _get_token_path(user_id)
    try:
        token_path.unlink()
    except FileNotFoundError:
        pass


# --------------------------------------------------------------------------- #
# Sessions
# --------------------------------------------------------------------------- #
def _refresh_if_needed(user_id: str, tokens: dict) -> tuple[dict, Optional[str]]:
    """
    Return (tokens, error). A still-valid token is returned untouched; an
    expired one is refreshed through SpotifyOAuth. When refreshing fails the
    old tokens are kept and an error marker is returned so callers can ask
    the user to sign in again.
    """
    expires_at = tokens.get("expires_at")
    if expires_at is not None and not SpotifyOAuth.is_token_expired(tokens):
        return tokens, None

    refresh_token = tokens.get("refresh_token")
    if not refresh_token:
        logger.warning(f"Access token for {user_id} expired and no refresh token is stored")
        return tokens, NO_REFRESH_TOKEN_ERROR

    logger.info(f"Refreshing expired access token for {user_id}")
    try:
        refreshed = build_oauth_manager().refresh_access_token(refresh_token)
    except (SpotifyOauthError, requests.exceptions.RequestException) as exc:
        logger.error(f"Spotify token refresh failed for {user_id}: {exc}")
        return tokens, REFRESH_ERROR

    if not refreshed or not refreshed.get("access_token"):
        logger.error("Spotify token refresh response missing access_token")
        return tokens, REFRESH_ERROR

    tokens = dict(tokens)
    tokens["access_token"] = refreshed["access_token"]
    tokens["expires_at"] = refreshed.get("expires_at") or int(time.time()) + int(refreshed.get("expires_in", 3600))
    # Spotify usually keeps the old refresh token; take a new one if it sends one.
    tokens["refresh_token"] = refreshed.get("refresh_token") or refresh_token
    _save_tokens(user_id, tokens)
    logger.info(f"Access token refreshed successfully for {user_id}")
    return tokens, None


def get_session(request: Request) -> Optional[AuthSession]:
    """Resolve the session cookie to an AuthSession, or None when signed out."""
    session_id = request.cookies.get(_cfg.session_cookie)
    if not session_id or session_id not in _sessions:
        return None

    user_id = _sessions[session_id]
    tokens = _load_tokens(user_id)
    if not tokens:
        logger.warning(f"Session for {user_id} has no stored tokens")
        return None

    tokens, error = _refresh_if_needed(user_id, tokens)
    return AuthSession(
        user_id=user_id,
        access_token=tokens.get("access_token"),
        name=tokens.get("display_name"),
        email=tokens.get("email"),
        image=tokens.get("image"),
        error=error,
    )


def require_page_session(request: Request) -> AuthSession:
    """Dependency for protected pages; signed-out visitors are sent to the landing page."""
    session = get_session(request)
    if session is None or not session.is_usable:
        raise SignInRequired()
    return session


def require_api_session(request: Request) -> AuthSession:
    """Dependency for JSON endpoints: a usable session or 401."""
    session = get_session(request)
    if session is None:
        logger.warning("No valid session found in request")
        raise HTTPException(status_code=401, detail="No active session. Please sign in with Spotify.")
    if not session.is_usable:
        raise HTTPException(status_code=401, detail="Spotify session expired. Please sign in again.")
    return session


def require_access_token(request: Request) -> str:
    return require_api_session(request).access_token  # type: ignore[return-value]


# --------------------------------------------------------------------------- #
# Routes
# --------------------------------------------------------------------------- #
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _result_page(request: Request, title: str, message: str, detail: Optional[str] = None) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "pages/auth_result.html",
        {"title": title, "message": message, "detail": detail},
    )


def _signin(request: Request) -> Response:
    """Redirect the user to Spotify's authorize page."""
    logger.info("OAuth sign-in initiated")
    if not _cfg.spotify.client_id:
        logger.error("OAuth sign-in failed: AURATUNE_SPOTIFY_CLIENT_ID not set")
        raise HTTPException(
            status_code=500,
            detail="AURATUNE_SPOTIFY_CLIENT_ID is not set. Cannot start OAuth sign-in.",
        )

    now = time.time()
    for s in [s for s, t in _oauth_states.items() if now - t > OAUTH_STATE_TTL_SECONDS]:
        del _oauth_states[s]
    state = secrets.token_urlsafe(32)
    _oauth_states[state] = now

    try:
        url = build_oauth_manager(state=state).get_authorize_url()
    except SpotifyOauthError as exc:
        logger.error(f"Could not build Spotify authorize URL: {exc}")
        raise HTTPException(status_code=500, detail=f"Could not start OAuth sign-in: {exc}") from exc

    status = 302 if request.method == "GET" else 303
    return RedirectResponse(url, status_code=status)


def _callback(request: Request) -> Response:
    """
    Spotify redirects here after the user approves or denies access.
    """
    params = request.query_params
    error = params.get("error")
    code = params.get("code")
    state = params.get("state")

    if error:
        logger.warning(f"OAuth callback: user denied access - {params.get('error_description') or error}")
        return _result_page(
            request,
            "Connection Denied",
            "You chose not to connect your Spotify account.",
            params.get("error_description") or error,
        )

    if not code:
        logger.warning("OAuth callback: no authorization code received")
        return _result_page(request, "Connection Error", "No authorization code received. Please try again.")

    _ensure_credentials()

    if not state or state not in _oauth_states:
        logger.error("OAuth callback: invalid or expired state (CSRF protection)")
        return _result_page(request, "Security Error", "Invalid OAuth state. Please try signing in again.")
    del _oauth_states[state]

    logger.info("Exchanging authorization code for tokens")
    try:
        token_info = _exchange_code(build_oauth_manager(state=state), code)
    except (SpotifyOauthError, requests.exceptions.RequestException) as exc:
        logger.error(f"Spotify token exchange failed: {exc}")
        return _result_page(
            request,
            "Connection Error",
            "Failed to exchange authorization code for tokens.",
            str(exc),
        )

    if not token_info or not token_info.get("access_token") or not token_info.get("refresh_token"):
        logger.error("Spotify token response missing required tokens")
        return _result_page(request, "Connection Error", "Spotify response missing required tokens.")

    sp = get_spotify_api(token_info["access_token"])
    if sp is None:
        raise HTTPException(status_code=502, detail="Spotify returned an empty access token.")
    try:
        profile = sp.current_user() or {}
    except (SpotifyException, requests.exceptions.RequestException) as exc:
        logger.error(f"Failed to fetch Spotify profile: {exc}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch Spotify profile: {exc}") from exc

    user_id = profile.get("id")
    if not user_id:
        logger.error("Spotify profile response missing user id")
        raise HTTPException(status_code=502, detail="Spotify profile response missing user id.")

    images = profile.get("images") or []
    _save_tokens(
        user_id,
        {
            "access_token": token_info["access_token"],
            "refresh_token": token_info["refresh_token"],
            "expires_at": token_info.get("expires_at"),
            "scope": token_info.get("scope"),
            "token_type": token_info.get("token_type"),
            "user_id": user_id,
            "display_name": profile.get("display_name"),
            "email": profile.get("email"),
            "image": images[0].get("url") if images and isinstance(images[0], dict) else None,
        },
    )

    session_id = secrets.token_urlsafe(32)
    _sessions[session_id] = user_id
    logger.info(f"Created session for user: {user_id}")

    response = RedirectResponse("/dashboard", status_code=303)
    response.set_cookie(
        key=_cfg.session_cookie,
        value=session_id,
        httponly=True,
        samesite="lax",
        max_age=_cfg.session_max_age,
    )
    return response


def _signout(request: Request) -> Response:
    session_id = request.cookies.get(_cfg.session_cookie)
    if session_id and session_id in _sessions:
        user_id = _sessions.pop(session_id)
        _delete_tokens(user_id)
        logger.info(f"Signed out user: {user_id}")

    response = RedirectResponse("/", status_code=303)
    response.delete_cookie(_cfg.session_cookie)
    return response


def _session(request: Request) -> Response:
    session = get_session(request)
    if session is None:
        return JSONResponse({"user": None})
    view = session.public_view()
    return JSONResponse({"user": view, "error": view.pop("error")})


_ACTIONS: Dict[str, Callable[[Request], Response]] = {
    "signin": _signin,
    "callback": _callback,
    "signout": _signout,
    "session": _session,
}


@router.api_route("/{action}", methods=["GET", "POST"])
def auth_handler(action: str, request: Request) -> Response:
    """Single entry point for every sign-in related request."""
    handler = _ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown auth action: {action}")
    return handler(request)


__all__ = [
    "AuthSession",
    "SignInRequired",
    "build_oauth_manager",
    "get_session",
    "require_access_token",
    "require_api_session",
    "require_page_session",
    "router",
]
