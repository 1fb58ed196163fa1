"""
Configuration loading for AuraTune.

Settings come from environment variables (optionally a .env file). Spotify
credentials are only needed for the sign-in flow, so a missing client id or
secret is reported by the auth routes instead of failing at import time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from platformdirs import user_config_dir
from dotenv import load_dotenv
import os
import logging
from logging.handlers import RotatingFileHandler


APP_NAME = "auratune"
APP_AUTHOR = "AuraTune"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8000/api/auth/callback"
DEFAULT_SESSION_MAX_AGE = 86400 * 30  # 30 days

SPOTIFY_SCOPES: List[str] = [
    "user-read-private",
    "user-read-email",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-top-read",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "user-read-recently-played",
]


@dataclass
class SpotifyConfig:
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: List[str] = field(default_factory=lambda: list(SPOTIFY_SCOPES))

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)


@dataclass
class AppConfig:
    spotify: SpotifyConfig
    session_cookie: str = "auratune_session"
    session_max_age: int = DEFAULT_SESSION_MAX_AGE


def get_default_config_dir() -> Path:
    """
    Returns the platform-appropriate directory for persistent AuraTune state.
    """
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    """
    load_dotenv()

    client_id = os.getenv("AURATUNE_SPOTIFY_CLIENT_ID", "")
    client_secret = os.getenv("AURATUNE_SPOTIFY_CLIENT_SECRET", "")
    redirect_uri: Optional[str] = os.getenv("AURATUNE_SPOTIFY_REDIRECT_URI")

    spotify_cfg = SpotifyConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri or DEFAULT_REDIRECT_URI,
    )
    return AppConfig(
        spotify=spotify_cfg,
        session_max_age=max(60, _get_int("AURATUNE_SESSION_MAX_AGE", DEFAULT_SESSION_MAX_AGE)),
    )


def setup_logging() -> None:
    """
    Configure centralized logging for AuraTune using Python's built-in logging module.

    - Logs to <config dir>/logs/auratune.log
    - Uses RotatingFileHandler with 10MB max size and 5 backup files
    - Logs to both file and console
    - Default level: INFO (can be overridden via AURATUNE_LOG_LEVEL env var)
    """
    log_level_str = os.getenv("AURATUNE_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_dir = get_default_config_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_format = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    file_handler = RotatingFileHandler(
        str(log_dir / "auratune.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(console_handler)


# Initialize logging when module is imported (after get_default_config_dir is defined)
setup_logging()

__all__ = [
    "AppConfig",
    "SpotifyConfig",
    "SPOTIFY_SCOPES",
    "get_default_config_dir",
    "load_config",
    "setup_logging",
]
