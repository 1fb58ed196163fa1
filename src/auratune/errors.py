"""
Translation of Spotify client failures into user-facing messages.
"""

from __future__ import annotations

import logging

import requests
from spotipy.exceptions import SpotifyException

from .models import ActionState
from .spotify_sdk import REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


CLIENT_UNAVAILABLE_MESSAGE = "Failed to initialize Spotify API client."
TIMEOUT_MESSAGE = f"Spotify did not respond within {REQUEST_TIMEOUT_SECONDS} seconds."

_REASON_MESSAGES = {
    "NO_ACTIVE_DEVICE": "No active Spotify device found. Please start playback on a device.",
    "PREMIUM_REQUIRED": "This action requires a Spotify Premium account.",
}


def spotify_error_message(exc: BaseException, action_name: str) -> str:
    if isinstance(exc, SpotifyException):
        reason = getattr(exc, "reason", None)
        if reason in _REASON_MESSAGES:
            return _REASON_MESSAGES[reason]
        if exc.msg:
            return str(exc.msg)
    if isinstance(exc, requests.exceptions.Timeout):
        return TIMEOUT_MESSAGE
    return str(exc) or f"An unexpected error occurred in {action_name}."


def handle_spotify_error(exc: Exception, action_name: str) -> ActionState:
    """Log a failed Spotify call and turn it into a failed ActionState."""
    logger.error(f"Error in {action_name}: {exc}")
    status = 502
    if isinstance(exc, SpotifyException) and exc.http_status == 404:
        status = 404
    return ActionState.fail(spotify_error_message(exc, action_name), http_status=status)


def client_unavailable() -> ActionState:
    return ActionState.fail(CLIENT_UNAVAILABLE_MESSAGE, http_status=401)


__all__ = [
    "CLIENT_UNAVAILABLE_MESSAGE",
    "TIMEOUT_MESSAGE",
    "client_unavailable",
    "handle_spotify_error",
    "spotify_error_message",
]
