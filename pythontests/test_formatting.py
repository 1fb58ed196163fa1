from __future__ import annotations

import pytest

from auratune.formatting import DURATION_PLACEHOLDER, display_duration, format_duration, join_artists


@pytest.mark.parametrize(
    "ms, expected",
    [
        (0, "0:00"),
        (999, "0:00"),
        (1999, "0:01"),
        (59999, "0:59"),
        (60000, "1:00"),
        (61000, "1:01"),
        (210000, "3:30"),
        (3599999, "59:59"),
        (3600000, "60:00"),
        (3661000, "61:01"),
    ],
)
def test_format_duration(ms: int, expected: str) -> None:
    assert format_duration(ms) == expected


def test_display_duration_uses_placeholder_for_missing_value() -> None:
    assert display_duration(None) == DURATION_PLACEHOLDER == "--:--"
    assert display_duration(0) == "0:00"


def test_join_artists_skips_empty_names() -> None:
    assert join_artists(["A", None, "", "B"]) == "A, B"
    assert join_artists([]) == ""
