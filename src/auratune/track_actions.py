"""
Track, search and playlist actions for AuraTune.

Each action:
- validates its inputs before touching the network,
- builds a fresh Spotify client from the caller's access token,
- returns an ActionState instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

import requests
from spotipy.exceptions import SpotifyException

from .cache import spotify_cache
from .errors import client_unavailable, handle_spotify_error
from .models import ActionState, TrackRecord, TrackSuggestion
from .spotify_sdk import get_spotify_api

logger = logging.getLogger(__name__)


TIME_RANGES = ("short_term", "medium_term", "long_term")
ITEM_TYPES = ("artists", "tracks")
MAX_PLAYLIST_NAME = 100
MAX_PLAYLIST_DESCRIPTION = 300
MAX_TRACKS_PER_REQUEST = 100

_SPOTIFY_FAILURES = (SpotifyException, requests.exceptions.RequestException)


def _check_limit(limit: int) -> Optional[ActionState]:
    if limit < 1 or limit > 50:
        return ActionState.fail("Limit must be between 1 and 50.")
    return None


def search_tracks(access_token: Optional[str], query: str, limit: int = 20) -> ActionState[List[TrackRecord]]:
    """
    Search the Spotify catalogue for tracks matching a free-text query.
    """
    if not query or not query.strip():
        return ActionState.fail("Search query cannot be empty.")
    invalid = _check_limit(limit)
    if invalid:
        return invalid

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    logger.info(f"Searching Spotify tracks: query={query!r}, limit={limit}")
    try:
        data = sp.search(q=query, limit=limit, type="track")
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "search_tracks")

    items = (data or {}).get("tracks", {}).get("items") or []
    if not items:
        return ActionState.ok("No tracks found for the given query.", [])
    tracks = [TrackRecord.from_api(item) for item in items if isinstance(item, dict)]
    logger.debug(f"Spotify search returned {len(tracks)} tracks")
    return ActionState.ok("Tracks searched successfully.", tracks)


def get_track_details(access_token: Optional[str], track_id: str) -> ActionState[TrackRecord]:
    """
    Fetch a single track by id. Successful lookups are cached for an hour.
    """
    if not track_id or not track_id.strip():
        return ActionState.fail("Track ID cannot be empty.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    cache_key = f"track:{track_id}"
    cached = spotify_cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Using cached track details for {track_id}")
        return ActionState.ok("Track details retrieved successfully.", cached)

    try:
        data = sp.track(track_id)
    except SpotifyException as exc:
        if exc.http_status == 404:
            logger.warning(f"Track not found on Spotify: {track_id}")
            return ActionState.fail(f'Track with ID "{track_id}" not found on Spotify.', http_status=404)
        return handle_spotify_error(exc, "get_track_details")
    except requests.exceptions.RequestException as exc:
        return handle_spotify_error(exc, "get_track_details")

    if not data:
        return ActionState.fail(f'Track with ID "{track_id}" not found on Spotify.', http_status=404)

    track = TrackRecord.from_api(data)
    spotify_cache.set(cache_key, track)
    return ActionState.ok("Track details retrieved successfully.", track)


def get_user_top_items(
    access_token: Optional[str],
    item_type: str,
    time_range: str = "medium_term",
    limit: int = 20,
) -> ActionState[List[Any]]:
    """
    Fetch the user's top artists or tracks for a time range.

    Tracks are returned as TrackRecord objects; artists as the raw Spotify
    artist objects.
    """
    if item_type not in ITEM_TYPES:
        return ActionState.fail("Invalid item type specified. Must be 'artists' or 'tracks'.")
    if time_range not in TIME_RANGES:
        return ActionState.fail(
            f"Invalid time range specified. Must be one of: {', '.join(TIME_RANGES)}."
        )
    invalid = _check_limit(limit)
    if invalid:
        return invalid

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    logger.info(f"Fetching top {item_type} ({time_range}, limit={limit})")
    try:
        if item_type == "artists":
            data = sp.current_user_top_artists(limit=limit, time_range=time_range)
        else:
            data = sp.current_user_top_tracks(limit=limit, time_range=time_range)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "get_user_top_items")

    items = (data or {}).get("items") or []
    if item_type == "artists":
        return ActionState.ok("Successfully retrieved top artists.", items)
    return ActionState.ok(
        "Successfully retrieved top tracks.",
        [TrackRecord.from_api(item) for item in items if isinstance(item, dict)],
    )


def _clean(value: str) -> str:
    return value.replace('"', "").replace("'", "").strip()


def validate_track_suggestions(
    access_token: Optional[str],
    suggestions: Sequence[TrackSuggestion],
) -> ActionState[List[TrackRecord]]:
    """
    Resolve (track name, artist name) suggestions to unique Spotify tracks.

    For each suggestion we first search by the track name alone and keep the
    first result whose artists contain the suggested artist; failing that we
    search "track artist" and take the top hit. Suggestions that can't be
    resolved, or whose lookup errors, are skipped.
    """
    if not suggestions:
        return ActionState.ok("No track suggestions provided to validate.", [])

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    validated: List[TrackRecord] = []
    found_ids: Set[str] = set()

    for suggestion in suggestions:
        if not suggestion.track_name or not suggestion.artist_name:
            logger.warning(f"Skipping suggestion with missing track or artist name: {suggestion}")
            continue

        track_name = _clean(suggestion.track_name)
        artist_name = _clean(suggestion.artist_name)
        try:
            match = _match_by_artist(sp.search(q=track_name, limit=5, type="track"), artist_name, found_ids)
            if match is None:
                data = sp.search(q=f"{track_name} {artist_name}", limit=1, type="track")
                items = [i for i in (data or {}).get("tracks", {}).get("items") or [] if isinstance(i, dict)]
                if items and items[0].get("id") and items[0]["id"] not in found_ids:
                    match = items[0]
        except _SPOTIFY_FAILURES as exc:
            logger.error(f"Error processing track {track_name!r} by {artist_name!r}: {exc}")
            continue

        if match is None:
            logger.info(f"Track suggestion not found on Spotify: {track_name} by {artist_name}")
            continue
        found_ids.add(match["id"])
        validated.append(TrackRecord.from_api(match))

    return ActionState.ok(
        f"Track validation completed. Found {len(validated)} unique valid tracks.",
        validated,
    )


def _match_by_artist(data: Optional[Dict[str, Any]], artist_name: str, seen: Set[str]) -> Optional[Dict[str, Any]]:
    wanted = artist_name.lower()
    for item in (data or {}).get("tracks", {}).get("items") or []:
        if not isinstance(item, dict):
            continue
        names = [(a.get("name") or "").lower() for a in item.get("artists") or [] if isinstance(a, dict)]
        if any(wanted in name for name in names):
            if item.get("id") and item["id"] not in seen:
                return item
    return None


def create_playlist(
    access_token: Optional[str],
    user_id: str,
    name: str,
    description: Optional[str] = None,
    public: bool = False,
) -> ActionState[Dict[str, Any]]:
    """
    Create a playlist in the user's account (private by default).
    """
    if not user_id:
        return ActionState.fail("Spotify User ID is required to create a playlist.")
    if not name or not name.strip():
        return ActionState.fail("Playlist name cannot be empty.")
    if len(name) > MAX_PLAYLIST_NAME:
        return ActionState.fail(f"Playlist name cannot exceed {MAX_PLAYLIST_NAME} characters.")
    if description and len(description) > MAX_PLAYLIST_DESCRIPTION:
        return ActionState.fail(f"Playlist description cannot exceed {MAX_PLAYLIST_DESCRIPTION} characters.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    logger.info(f"Creating playlist: name={name!r}, public={public}")
    try:
        data = sp.user_playlist_create(user_id, name, public=public, description=description or "")
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "create_playlist")

    if not data or not data.get("id"):
        logger.error(f"Unexpected playlist creation response: {data!r}")
        return ActionState.fail("Failed to create playlist on Spotify.", http_status=502)

    logger.info(f"Playlist created: {data.get('id')}")
    return ActionState.ok(
        f'Playlist "{name}" created successfully on Spotify.',
        {"id": data.get("id"), "url": (data.get("external_urls") or {}).get("spotify")},
    )


def add_tracks_to_playlist(
    access_token: Optional[str],
    playlist_id: str,
    uris: Sequence[str],
) -> ActionState[Dict[str, Any]]:
    """
    Add up to 100 track URIs to a playlist. Larger batches must be chunked
    by the caller.
    """
    if not playlist_id:
        return ActionState.fail("Playlist ID is required to add tracks.")
    if not uris:
        return ActionState.fail("At least one track URI is required to add tracks.")
    if len(uris) > MAX_TRACKS_PER_REQUEST:
        return ActionState.fail(
            f"Cannot add more than {MAX_TRACKS_PER_REQUEST} tracks at a time to a Spotify playlist."
        )

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    logger.info(f"Adding {len(uris)} tracks to playlist: {playlist_id}")
    try:
        data = sp.playlist_add_items(playlist_id, list(uris))
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "add_tracks_to_playlist")

    return ActionState.ok(
        "Tracks added to playlist successfully.",
        {"snapshot_id": (data or {}).get("snapshot_id")},
    )


__all__ = [
    "ITEM_TYPES",
    "TIME_RANGES",
    "add_tracks_to_playlist",
    "create_playlist",
    "get_track_details",
    "get_user_top_items",
    "search_tracks",
    "validate_track_suggestions",
]
