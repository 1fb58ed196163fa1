"""
Presentational components for AuraTune pages.

A component is a small view model built from domain records plus a Jinja2
partial that renders it. Building the view model is where missing metadata
is resolved to its display fallback, so templates never branch on None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from fastapi.templating import Jinja2Templates

from .formatting import UNKNOWN_ARTIST, UNKNOWN_TRACK, display_duration, join_artists
from .models import TrackRecord

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

PlayCallback = Callable[[TrackRecord], object]


@dataclass
class PlayControl:
    """The play button of a track row; activating it hands the track to the callback."""

    track: TrackRecord
    callback: PlayCallback = field(repr=False)
    label: str = "Play"
    action_url: str = "/playback/play"

    def activate(self) -> object:
        return self.callback(self.track)


@dataclass
class TrackRow:
    index: int
    track: TrackRecord
    name: str
    artists: str
    duration: str
    album_art_url: Optional[str]
    album_art_alt: str
    play_control: Optional[PlayControl] = None

    @property
    def has_album_art(self) -> bool:
        return self.album_art_url is not None


def build_track_row(
    track: TrackRecord,
    index: int,
    on_play: Optional[PlayCallback] = None,
) -> TrackRow:
    name = track.name or UNKNOWN_TRACK
    album_name = track.album.name if track.album else None
    play_control = None
    if on_play is not None:
        play_control = PlayControl(track=track, callback=on_play, label=f"Play {name}")
    return TrackRow(
        index=index,
        track=track,
        name=name,
        artists=join_artists(track.artists) or UNKNOWN_ARTIST,
        duration=display_duration(track.duration_ms),
        album_art_url=track.album_art_url,
        album_art_alt=f"Album art for {album_name or name}",
        play_control=play_control,
    )


def render_track_row(row: TrackRow, *, next_path: str = "/") -> str:
    return templates.get_template("components/track_row.html").render(row=row, next_path=next_path)


@dataclass
class ErrorMessage:
    message: str
    title: str = "Error"


def render_error_message(error: ErrorMessage) -> str:
    return templates.get_template("components/error_message.html").render(error=error)


__all__ = [
    "ErrorMessage",
    "PlayControl",
    "TrackRow",
    "build_track_row",
    "render_error_message",
    "render_track_row",
    "templates",
]
