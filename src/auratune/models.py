"""
Data model for AuraTune.

Spotify payloads are parsed into plain dataclasses with explicit optional
fields. Display fallbacks ("Unknown Track" and friends) are applied when a
record is rendered, never here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

T = TypeVar("T")

RepeatState = Literal["track", "context", "off"]


@dataclass
class ImageDescriptor:
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass
class AlbumRecord:
    id: Optional[str] = None
    name: Optional[str] = None
    images: List[ImageDescriptor] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional["AlbumRecord"]:
        if not isinstance(data, dict):
            return None
        images = [
            ImageDescriptor(url=img["url"], height=img.get("height"), width=img.get("width"))
            for img in data.get("images") or []
            if isinstance(img, dict) and img.get("url")
        ]
        return cls(id=data.get("id"), name=data.get("name"), images=images)


@dataclass
class TrackRecord:
    id: Optional[str] = None
    name: Optional[str] = None
    artists: List[str] = field(default_factory=list)
    album: Optional[AlbumRecord] = None
    duration_ms: Optional[int] = None
    uri: Optional[str] = None
    explicit: Optional[bool] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TrackRecord":
        """Build a record from a Spotify track object; missing keys become None/empty."""
        artists = [
            a.get("name")
            for a in data.get("artists") or []
            if isinstance(a, dict) and a.get("name")
        ]
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            artists=artists,
            album=AlbumRecord.from_api(data.get("album")),
            duration_ms=data.get("duration_ms"),
            uri=data.get("uri"),
            explicit=data.get("explicit"),
        )

    @property
    def album_art_url(self) -> Optional[str]:
        if self.album and self.album.images:
            return self.album.images[0].url
        return None


@dataclass
class TrackSuggestion:
    """A (track, artist) pair to be resolved against the Spotify catalogue."""

    track_name: str
    artist_name: str


@dataclass
class ActionState(Generic[T]):
    """
    Uniform result of a Spotify action.

    ``data`` is only meaningful on success. ``http_status`` tells the HTTP
    layer which status to answer with on failure and is not serialised.
    """

    is_success: bool
    message: str
    data: Optional[T] = None
    http_status: int = 200

    @classmethod
    def ok(cls, message: str, data: Optional[T] = None) -> "ActionState[T]":
        return cls(is_success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, *, http_status: int = 400) -> "ActionState[T]":
        return cls(is_success=False, message=message, http_status=http_status)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"isSuccess": self.is_success, "message": self.message}
        if self.is_success:
            out["data"] = self.data
        return out


@dataclass
class PlayerTrackInfo:
    id: Optional[str]
    uri: Optional[str]
    name: Optional[str]
    artists: str
    album_name: Optional[str]
    album_art_url: Optional[str]
    duration_ms: Optional[int]


@dataclass
class PlayerState:
    track: Optional[PlayerTrackInfo] = None
    is_playing: bool = False
    progress_ms: Optional[int] = None
    volume_percent: int = 50
    shuffle_state: bool = False
    repeat_state: RepeatState = "off"
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    device_type: Optional[str] = None
    has_active_device: bool = False
    error: Optional[str] = None

    @classmethod
    def initial(cls) -> "PlayerState":
        return cls()


__all__ = [
    "ActionState",
    "AlbumRecord",
    "ImageDescriptor",
    "PlayerState",
    "PlayerTrackInfo",
    "RepeatState",
    "TrackRecord",
    "TrackSuggestion",
]
