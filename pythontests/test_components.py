"""
Tests for the track row and error banner components.
"""

from __future__ import annotations

from unittest.mock import Mock

from auratune.components import (
    ErrorMessage,
    build_track_row,
    render_error_message,
    render_track_row,
)
from auratune.models import TrackRecord


class TestTrackRow:
    def test_renders_name_artists_and_duration(self, make_track):
        track = TrackRecord.from_api(make_track(name="Song", artists=("A", "B"), duration_ms=61000))
        html = render_track_row(build_track_row(track, 0))

        assert "Song" in html
        assert "A, B" in html
        assert "1:01" in html
        assert 'data-testid="track-row"' in html

    def test_album_art_image_with_alt_text(self, make_track):
        track = TrackRecord.from_api(make_track(images=("https://img/1", "https://img/2")))
        html = render_track_row(build_track_row(track, 0))

        assert 'src="https://img/1"' in html
        assert 'alt="Album art for Test Album"' in html
        assert "track-art-fallback" not in html

    def test_fallback_glyph_without_album_art(self, make_track):
        track = TrackRecord.from_api(make_track(images=()))
        row = build_track_row(track, 0)
        html = render_track_row(row)

        assert not row.has_album_art
        assert 'data-testid="track-art-fallback"' in html
        assert "<img" not in html

    def test_missing_metadata_uses_fallbacks(self):
        row = build_track_row(TrackRecord(), 3)
        html = render_track_row(row)

        assert row.name == "Unknown Track"
        assert row.artists == "Unknown Artist"
        assert row.duration == "--:--"
        assert "Unknown Track" in html
        assert "Unknown Artist" in html
        assert "--:--" in html

    def test_no_play_button_without_callback(self, make_track):
        track = TrackRecord.from_api(make_track())
        row = build_track_row(track, 0)

        assert row.play_control is None
        assert 'data-testid="play-button"' not in render_track_row(row)

    def test_play_button_with_callback(self, make_track):
        track = TrackRecord.from_api(make_track(track_id="abc", name="Song"))
        row = build_track_row(track, 0, on_play=Mock())
        html = render_track_row(row, next_path="/search?q=song")

        assert 'data-testid="play-button"' in html
        assert 'aria-label="Play Song"' in html
        assert "uri=spotify%3Atrack%3Aabc" in html
        assert "next=/search%3Fq%3Dsong" in html

    def test_activating_play_control_invokes_callback_with_track(self, make_track):
        track = TrackRecord.from_api(make_track())
        on_play = Mock(return_value="played")
        row = build_track_row(track, 0, on_play=on_play)

        assert row.play_control.activate() == "played"
        on_play.assert_called_once_with(track)

    def test_metadata_is_escaped(self):
        track = TrackRecord(name="<script>alert(1)</script>", artists=["A & B"])
        html = render_track_row(build_track_row(track, 0))

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "A &amp; B" in html


class TestErrorMessage:
    def test_renders_alert_with_title_and_message(self):
        html = render_error_message(ErrorMessage("Something broke", title="Oops"))

        assert 'role="alert"' in html
        assert 'data-testid="error-message-component"' in html
        assert "Oops" in html
        assert "Something broke" in html

    def test_default_title(self):
        assert "Error" in render_error_message(ErrorMessage("x"))
