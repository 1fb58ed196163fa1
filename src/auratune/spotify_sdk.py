"""
Spotify client acquisition for AuraTune.

Every caller gets a brand-new `spotipy.Spotify` bound to the access token it
passes in. Nothing is kept at module level, so a refreshed token is always
the one used for the next request.
"""

from __future__ import annotations

import logging
from typing import Optional

import spotipy

logger = logging.getLogger(__name__)


REQUEST_TIMEOUT_SECONDS = 30
REQUEST_TIMEOUT_MS = REQUEST_TIMEOUT_SECONDS * 1000


def get_spotify_api(access_token: Optional[str]) -> Optional[spotipy.Spotify]:
    """
    Return a Spotify Web API client for the given user access token.

    Returns None (and logs a warning) when the token is missing or empty; no
    client is constructed in that case. Requests made through the returned
    client are abandoned after REQUEST_TIMEOUT_SECONDS and are not retried.
    """
    if not access_token:
        logger.warning("get_spotify_api called without an access token. Returning None.")
        return None

    logger.debug(f"Creating Spotify client (timeout={REQUEST_TIMEOUT_SECONDS}s)")
    return spotipy.Spotify(
        auth=access_token,
        requests_timeout=REQUEST_TIMEOUT_SECONDS,
        retries=0,
        status_retries=0,
    )


__all__ = ["REQUEST_TIMEOUT_MS", "REQUEST_TIMEOUT_SECONDS", "get_spotify_api"]
