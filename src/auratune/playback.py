"""
Playback control actions for AuraTune.

These wrap the Spotify Connect endpoints (pause/resume, skip, volume, shuffle,
repeat, seek) and the "play this track" affordance used by the track rows.
Most control commands need an active device and a Premium account; the
resulting Spotify errors are surfaced as friendly failure messages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from .errors import client_unavailable, handle_spotify_error
from .formatting import join_artists
from .models import ActionState, PlayerState, PlayerTrackInfo, TrackRecord
from .spotify_sdk import get_spotify_api

logger = logging.getLogger(__name__)


REPEAT_STATES = ("track", "context", "off")
NO_DEVICE_MESSAGE = "Please open Spotify on one of your devices and start playing a track first."

_SPOTIFY_FAILURES = (SpotifyException, requests.exceptions.RequestException)


def _pick_device(sp: spotipy.Spotify, playback: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Choose the device to control: the active one if any, otherwise the first
    unrestricted device, otherwise the first device at all.
    """
    current = (playback or {}).get("device")
    if current and current.get("is_active") and current.get("id"):
        return current

    devices: List[Dict[str, Any]] = (sp.devices() or {}).get("devices") or []
    if not devices:
        return None
    for device in devices:
        if not device.get("is_restricted"):
            return device
    return devices[0]


def _activate(sp: spotipy.Spotify, device: Dict[str, Any]) -> str:
    device_id = device["id"]
    if not device.get("is_active"):
        logger.info(f"Transferring playback to device {device.get('name')!r}")
        sp.transfer_playback(device_id, force_play=False)
    return device_id


def get_current_playback_state(access_token: Optional[str]) -> ActionState[Optional[Dict[str, Any]]]:
    """
    Retrieve the raw playback state. Data is None when nothing is playing.
    """
    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        playback = sp.current_playback()
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "get_current_playback_state")

    if not playback:
        return ActionState.ok("No playback state active or nothing is playing.", None)
    return ActionState.ok("Playback state retrieved successfully.", playback)


def _player_track(item: Optional[Dict[str, Any]]) -> Optional[PlayerTrackInfo]:
    if not item:
        return None
    track = TrackRecord.from_api(item)
    return PlayerTrackInfo(
        id=track.id,
        uri=track.uri,
        name=track.name,
        artists=join_artists(track.artists),
        album_name=track.album.name if track.album else None,
        album_art_url=track.album_art_url,
        duration_ms=track.duration_ms,
    )


def get_player_state(access_token: Optional[str]) -> PlayerState:
    """
    Summarise the playback state for the player bar. Never fails: problems
    are reported through PlayerState.error.
    """
    result = get_current_playback_state(access_token)
    state = PlayerState.initial()
    if not result.is_success:
        state.error = result.message
        return state
    playback = result.data
    if not playback:
        return state

    device = playback.get("device") or {}
    state.track = _player_track(playback.get("item"))
    state.is_playing = bool(playback.get("is_playing"))
    state.progress_ms = playback.get("progress_ms")
    state.shuffle_state = bool(playback.get("shuffle_state"))
    if playback.get("repeat_state") in REPEAT_STATES:
        state.repeat_state = playback["repeat_state"]
    if device.get("volume_percent") is not None:
        state.volume_percent = int(device["volume_percent"])
    state.device_id = device.get("id")
    state.device_name = device.get("name")
    state.device_type = device.get("type")
    state.has_active_device = bool(device.get("is_active"))
    return state


def toggle_play_pause(access_token: Optional[str]) -> ActionState[Dict[str, bool]]:
    """
    Pause if something is playing, otherwise resume. When nothing is loaded
    the most recently played track is started instead.
    """
    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        playback = sp.current_playback()
        device = _pick_device(sp, playback)
        if not device or not device.get("id"):
            return ActionState.fail(NO_DEVICE_MESSAGE, http_status=409)
        device_id = _activate(sp, device)

        if playback and playback.get("is_playing"):
            sp.pause_playback(device_id=device_id)
            return ActionState.ok("Playback paused successfully.", {"isPlaying": False})

        if playback and playback.get("item"):
            sp.start_playback(device_id=device_id)
        else:
            recent = (sp.current_user_recently_played(limit=1) or {}).get("items") or []
            if not recent:
                return ActionState.fail(
                    "No track available to play. Please select a track in Spotify first.",
                    http_status=409,
                )
            sp.start_playback(device_id=device_id, uris=[recent[0]["track"]["uri"]])
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "toggle_play_pause")

    return ActionState.ok("Playback started successfully.", {"isPlaying": True})


def play_track(access_token: Optional[str], track: TrackRecord) -> ActionState[None]:
    """Start playing a specific track on the user's active (or first available) device."""
    if not track.uri:
        return ActionState.fail("This track cannot be played: it has no Spotify URI.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        device = _pick_device(sp, sp.current_playback())
        if not device or not device.get("id"):
            return ActionState.fail(NO_DEVICE_MESSAGE, http_status=409)
        device_id = _activate(sp, device)
        logger.info(f"Playing {track.uri} on device {device_id}")
        sp.start_playback(device_id=device_id, uris=[track.uri])
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "play_track")

    return ActionState.ok(f"Now playing {track.name or track.uri}.")


def _active_device_id(sp: spotipy.Spotify) -> Optional[str]:
    device = (sp.current_playback() or {}).get("device") or {}
    return device.get("id")


def next_track(access_token: Optional[str]) -> ActionState[None]:
    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        device_id = _active_device_id(sp)
        if not device_id:
            return ActionState.fail("No active device found. Please start playback first.", http_status=409)
        sp.next_track(device_id=device_id)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "next_track")
    return ActionState.ok("Skipped to next track.")


def previous_track(access_token: Optional[str]) -> ActionState[None]:
    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        device_id = _active_device_id(sp)
        if not device_id:
            return ActionState.fail("No active device found. Please start playback first.", http_status=409)
        sp.previous_track(device_id=device_id)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "previous_track")
    return ActionState.ok("Skipped to previous track.")


def set_volume(access_token: Optional[str], volume_percent: int) -> ActionState[None]:
    if volume_percent < 0 or volume_percent > 100:
        return ActionState.fail("Volume must be between 0 and 100.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        sp.volume(volume_percent)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "set_volume")
    return ActionState.ok(f"Volume set to {volume_percent}%.")


def toggle_shuffle(access_token: Optional[str], shuffle_state: bool) -> ActionState[None]:
    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        sp.shuffle(shuffle_state)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "toggle_shuffle")
    return ActionState.ok(f"Shuffle mode {'enabled' if shuffle_state else 'disabled'}.")


def set_repeat_mode(access_token: Optional[str], repeat_state: str) -> ActionState[None]:
    if repeat_state not in REPEAT_STATES:
        return ActionState.fail("Invalid repeat state. Must be 'track', 'context', or 'off'.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        sp.repeat(repeat_state)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "set_repeat_mode")
    return ActionState.ok(f"Repeat mode set to {repeat_state}.")


def seek_to_position(access_token: Optional[str], position_ms: int) -> ActionState[None]:
    if position_ms < 0:
        return ActionState.fail("Position must be a non-negative number.")

    sp = get_spotify_api(access_token)
    if sp is None:
        return client_unavailable()

    try:
        sp.seek_track(position_ms)
    except _SPOTIFY_FAILURES as exc:
        return handle_spotify_error(exc, "seek_to_position")
    return ActionState.ok(f"Seeked to position {position_ms}ms.")


__all__ = [
    "REPEAT_STATES",
    "get_current_playback_state",
    "get_player_state",
    "next_track",
    "play_track",
    "previous_track",
    "seek_to_position",
    "set_repeat_mode",
    "set_volume",
    "toggle_play_pause",
    "toggle_shuffle",
]
