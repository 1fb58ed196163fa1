"""
FastAPI application for AuraTune.

Serves the server-rendered pages (landing, dashboard, search, analytics), the playback
form posts used by the player bar and track rows, and a JSON API over the
same Spotify actions:

- POST /api/search                      {"query": "...", "limit": 20}
- GET  /api/tracks/{track_id}
- GET  /api/me/top/{item_type}          ?time_range=medium_term&limit=20
- POST /api/tracks/validate             {"suggestions": [{"track_name": ..., "artist_name": ...}]}
- POST /api/playlists                   {"name": ..., "description": ..., "public": false}
- POST /api/playlists/{id}/tracks       {"uris": [...]}
- GET  /api/playback/state | /api/playback/player
- POST /api/playback/{toggle,next,previous,play}
- PUT  /api/playback/{volume,shuffle,repeat,seek}

Every JSON action answers with {"isSuccess": ..., "message": ..., "data": ...};
failures use the status carried by the action result.
"""

import logging
from functools import partial
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from . import playback, track_actions
from .auth import (
    AuthSession,
    SignInRequired,
    get_session,
    require_access_token,
    require_api_session,
    require_page_session,
)
from .auth import router as auth_router
from .components import ErrorMessage, build_track_row, templates
from .models import ActionState, TrackRecord, TrackSuggestion

logger = logging.getLogger(__name__)

# Rate limiter to keep bursts of clicks from hitting Spotify's 429s
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="AuraTune",
    description="AuraTune – your Spotify listening, curated.",
    version="0.1.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,  # Required for cookies
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)

NAV_ITEMS = [
    {"href": "/dashboard", "label": "Home"},
    {"href": "/search", "label": "Search"},
    {"href": "/analytics", "label": "Analytics"},
]
TIME_RANGE_LABELS = {
    "short_term": "last 4 weeks",
    "medium_term": "last 6 months",
    "long_term": "all time",
}
ANALYTICS_LIMIT = 10
DEFAULT_NEXT_PATH = "/dashboard"


@app.exception_handler(SignInRequired)
def _redirect_to_landing(request: Request, exc: SignInRequired) -> RedirectResponse:
    logger.info(f"Unauthenticated request to {request.url.path}; redirecting to landing page")
    return RedirectResponse("/", status_code=303)


# --------------------------------------------------------------------------- #
# Request bodies
# --------------------------------------------------------------------------- #
class SearchRequest(BaseModel):
    query: str
    limit: int = 20


class SuggestionIn(BaseModel):
    track_name: str
    artist_name: str


class ValidateTracksRequest(BaseModel):
    suggestions: List[SuggestionIn]


class CreatePlaylistRequest(BaseModel):
    name: str
    description: Optional[str] = None
    public: bool = False


class AddTracksRequest(BaseModel):
    uris: List[str]


class PlayRequest(BaseModel):
    uri: str
    name: Optional[str] = None


class VolumeRequest(BaseModel):
    volume_percent: int


class ShuffleRequest(BaseModel):
    state: bool


class RepeatRequest(BaseModel):
    state: str


class SeekRequest(BaseModel):
    position_ms: int


def _action_response(state: ActionState) -> JSONResponse:
    status = 200 if state.is_success else state.http_status
    return JSONResponse(jsonable_encoder(state.to_dict()), status_code=status)


# --------------------------------------------------------------------------- #
# Pages
# --------------------------------------------------------------------------- #
def _render_page(request: Request, session: AuthSession, name: str, **context: Any) -> HTMLResponse:
    context.update(
        auth_session=session,
        nav_items=NAV_ITEMS,
        player=playback.get_player_state(session.access_token),
    )
    return templates.TemplateResponse(request, name, context)


def _track_rows(tracks: List[TrackRecord], access_token: str) -> list:
    # The callback only marks the rows as playable here; the rendered play form
    # posts to /playback/play, which starts the track from its URI.
    on_play = partial(playback.play_track, access_token)
    return [build_track_row(track, index, on_play=on_play) for index, track in enumerate(tracks)]


@app.get("/health", tags=["system"])
def health() -> dict:
    logger.debug("Health check endpoint called")
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse, tags=["pages"])
def index(request: Request) -> HTMLResponse:
    session = get_session(request)
    error = None
    if session is not None and not session.is_usable:
        error = ErrorMessage(
            "Your Spotify session has expired. Please sign in again.",
            title="Session expired",
        )
        session = None
    return templates.TemplateResponse(request, "pages/index.html", {"auth_session": session, "error": error})


@app.get("/dashboard", response_class=HTMLResponse, tags=["pages"])
def dashboard(request: Request, session: AuthSession = Depends(require_page_session)) -> HTMLResponse:
    result = track_actions.get_user_top_items(session.access_token, "tracks", "short_term", 10)
    error = None
    rows: list = []
    if result.is_success:
        rows = _track_rows(result.data or [], session.access_token)
    else:
        error = ErrorMessage(result.message, title="Could not load your top tracks")

    heading = f"Welcome back, {session.name}" if session.name else "Your top tracks"
    return _render_page(
        request,
        session,
        "pages/track_list.html",
        heading=heading,
        show_search=False,
        query=None,
        rows=rows,
        error=error,
        empty_message="No top tracks yet. Listen to some music on Spotify and check back.",
    )


@app.get("/search", response_class=HTMLResponse, tags=["pages"])
def search_page(
    request: Request,
    q: Optional[str] = None,
    session: AuthSession = Depends(require_page_session),
) -> HTMLResponse:
    rows: list = []
    error = None
    empty_message = "Search for a track to get started."
    if q and q.strip():
        result = track_actions.search_tracks(session.access_token, q.strip())
        if result.is_success:
            rows = _track_rows(result.data or [], session.access_token)
            empty_message = f"No tracks found for “{q.strip()}”."
        else:
            error = ErrorMessage(result.message, title="Search failed")

    return _render_page(
        request,
        session,
        "pages/track_list.html",
        heading="Search",
        show_search=True,
        query=q,
        rows=rows,
        error=error,
        empty_message=empty_message,
    )


@app.get("/analytics", response_class=HTMLResponse, tags=["pages"])
def analytics(
    request: Request,
    time_range: str = "short_term",
    session: AuthSession = Depends(require_page_session),
) -> HTMLResponse:
    """Top artists and top tracks for one time range, with a tab per range."""
    if time_range not in TIME_RANGE_LABELS:
        time_range = "short_term"
    token = session.access_token

    artists_result = track_actions.get_user_top_items(token, "artists", time_range, ANALYTICS_LIMIT)
    tracks_result = track_actions.get_user_top_items(token, "tracks", time_range, ANALYTICS_LIMIT)

    artists_error = None
    if not artists_result.is_success:
        artists_error = ErrorMessage(artists_result.message, title="Error loading artists")
    tracks_error = None
    rows: list = []
    if tracks_result.is_success:
        rows = _track_rows(tracks_result.data or [], token)
    else:
        tracks_error = ErrorMessage(tracks_result.message, title="Error loading tracks")

    return _render_page(
        request,
        session,
        "pages/analytics.html",
        time_range=time_range,
        time_range_labels=TIME_RANGE_LABELS,
        artists=artists_result.data or [],
        artists_error=artists_error,
        rows=rows,
        tracks_error=tracks_error,
    )


def _safe_next(next_path: Optional[str]) -> str:
    # Only same-site absolute paths; "//host" and backslashes would leave the site.
    if not next_path or not next_path.startswith("/") or next_path.startswith("//") or "\\" in next_path:
        return DEFAULT_NEXT_PATH
    return next_path


@app.post("/playback/{command}", tags=["pages"])
def playback_form(
    command: str,
    request: Request,
    uri: Optional[str] = None,
    next_path: Optional[str] = Query(None, alias="next"),
    session: AuthSession = Depends(require_page_session),
) -> RedirectResponse:
    """Run a player command from an HTML form and go back to the page it came from."""
    token = session.access_token
    if command == "toggle":
        result = playback.toggle_play_pause(token)
    elif command == "next":
        result = playback.next_track(token)
    elif command == "previous":
        result = playback.previous_track(token)
    elif command == "play":
        result = playback.play_track(token, TrackRecord(uri=uri))
    else:
        raise HTTPException(status_code=404, detail=f"Unknown playback command: {command}")

    if not result.is_success:
        logger.warning(f"Playback command {command!r} failed: {result.message}")
    return RedirectResponse(_safe_next(next_path), status_code=303)


# --------------------------------------------------------------------------- #
# JSON API: tracks, search, playlists
# --------------------------------------------------------------------------- #
@app.post("/api/search", tags=["spotify"])
@limiter.limit("30/minute")
def api_search(
    body: SearchRequest,
    request: Request,
    token: str = Depends(require_access_token),
) -> JSONResponse:
    logger.info(f"API search request: query={body.query!r}, limit={body.limit}")
    return _action_response(track_actions.search_tracks(token, body.query, body.limit))


@app.get("/api/tracks/{track_id}", tags=["spotify"])
def api_track_details(track_id: str, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(track_actions.get_track_details(token, track_id))


@app.get("/api/me/top/{item_type}", tags=["spotify"])
def api_top_items(
    item_type: str,
    time_range: str = "medium_term",
    limit: int = 20,
    token: str = Depends(require_access_token),
) -> JSONResponse:
    return _action_response(track_actions.get_user_top_items(token, item_type, time_range, limit))


@app.post("/api/tracks/validate", tags=["spotify"])
@limiter.limit("10/minute")
def api_validate_tracks(
    body: ValidateTracksRequest,
    request: Request,
    token: str = Depends(require_access_token),
) -> JSONResponse:
    logger.info(f"Validating {len(body.suggestions)} track suggestions")
    suggestions = [TrackSuggestion(s.track_name, s.artist_name) for s in body.suggestions]
    return _action_response(track_actions.validate_track_suggestions(token, suggestions))


@app.post("/api/playlists", tags=["spotify"])
@limiter.limit("5/minute")  # Max 5 playlist creations per minute per IP
def api_create_playlist(
    body: CreatePlaylistRequest,
    request: Request,
    session: AuthSession = Depends(require_api_session),
) -> JSONResponse:
    return _action_response(
        track_actions.create_playlist(
            session.access_token,
            session.user_id,
            body.name,
            description=body.description,
            public=body.public,
        )
    )


@app.post("/api/playlists/{playlist_id}/tracks", tags=["spotify"])
def api_add_tracks(
    playlist_id: str,
    body: AddTracksRequest,
    token: str = Depends(require_access_token),
) -> JSONResponse:
    return _action_response(track_actions.add_tracks_to_playlist(token, playlist_id, body.uris))


# --------------------------------------------------------------------------- #
# JSON API: playback
# --------------------------------------------------------------------------- #
@app.get("/api/playback/state", tags=["playback"])
def api_playback_state(token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.get_current_playback_state(token))


@app.get("/api/playback/player", tags=["playback"])
def api_player(token: str = Depends(require_access_token)) -> Dict[str, Any]:
    return jsonable_encoder(playback.get_player_state(token))


@app.post("/api/playback/toggle", tags=["playback"])
def api_toggle(token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.toggle_play_pause(token))


@app.post("/api/playback/next", tags=["playback"])
def api_next(token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.next_track(token))


@app.post("/api/playback/previous", tags=["playback"])
def api_previous(token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.previous_track(token))


@app.post("/api/playback/play", tags=["playback"])
def api_play(body: PlayRequest, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.play_track(token, TrackRecord(uri=body.uri, name=body.name)))


@app.put("/api/playback/volume", tags=["playback"])
def api_volume(body: VolumeRequest, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.set_volume(token, body.volume_percent))


@app.put("/api/playback/shuffle", tags=["playback"])
def api_shuffle(body: ShuffleRequest, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.toggle_shuffle(token, body.state))


@app.put("/api/playback/repeat", tags=["playback"])
def api_repeat(body: RepeatRequest, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.set_repeat_mode(token, body.state))


@app.put("/api/playback/seek", tags=["playback"])
def api_seek(body: SeekRequest, token: str = Depends(require_access_token)) -> JSONResponse:
    return _action_response(playback.seek_to_position(token, body.position_ms))
