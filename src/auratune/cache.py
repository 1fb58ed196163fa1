"""
Small in-memory TTL cache for Spotify responses.

Route handlers run in a thread pool, so access is guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
from time import time
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60  # 1 hour


class SpotifyCache:
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self._ttl = ttl_seconds
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            data, stored_at = entry
            if time() - stored_at > self._ttl:
                logger.debug(f"Cache entry expired: {key}")
                del self._entries[key]
                return None
            return data

    def set(self, key: str, data: Any) -> None:
        with self._lock:
            self._entries[key] = (data, time())

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


spotify_cache = SpotifyCache()

__all__ = ["DEFAULT_TTL_SECONDS", "SpotifyCache", "spotify_cache"]
