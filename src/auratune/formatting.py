"""Display helpers shared by the track row, player bar and CLI."""

from __future__ import annotations

from typing import Iterable, Optional

UNKNOWN_TRACK = "Unknown Track"
UNKNOWN_ARTIST = "Unknown Artist"
DURATION_PLACEHOLDER = "--:--"


def format_duration(ms: int) -> str:
    """Format a millisecond count as ``M:SS`` (minutes are not capped at 59)."""
    total_seconds = int(ms) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def display_duration(ms: Optional[int]) -> str:
    if ms is None:
        return DURATION_PLACEHOLDER
    return format_duration(ms)


def join_artists(names: Iterable[Optional[str]]) -> str:
    return ", ".join(name for name in names if name)


__all__ = [
    "DURATION_PLACEHOLDER",
    "UNKNOWN_ARTIST",
    "UNKNOWN_TRACK",
    "display_duration",
    "format_duration",
    "join_artists",
]
