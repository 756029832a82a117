"""Tests for time formatting used in tool output."""

from datetime import datetime, timedelta

import pytest
from factories import NOW

from graph_organizer.time_service import TimeService


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=30), "less than a minute"),
        (timedelta(minutes=1), "1 minute"),
        (timedelta(hours=5), "5 hours"),
        (timedelta(days=1), "1 day"),
        (timedelta(days=12, hours=3), "12 days"),
    ],
)
def test_format_age_difference(delta, expected):
    assert TimeService.format_age_difference(NOW, NOW + delta) == expected


def test_naive_datetimes_are_utc():
    parsed = TimeService.parse(datetime(2025, 7, 20, 12, 0))

    assert parsed == NOW


def test_format_date_and_full():
    assert TimeService.format_date(NOW) == "July 20, 2025"
    assert TimeService.format_full("2025-07-20T12:00:00+00:00") == "Sunday, July 20, 2025 at 12:00 PM UTC"
