from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from app.services.schedule_time import combine_schedule, parse_schedule_date, parse_schedule_time

MONDAY = date(2030, 3, 4)
NOW = datetime(2030, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("today", date(2030, 3, 4)),
        ("Tomorrow", date(2030, 3, 5)),
        ("next monday", date(2030, 3, 11)),
        ("next friday", date(2030, 3, 8)),
        ("in 3 days", date(2030, 3, 7)),
        ("in 2 weeks", date(2030, 3, 18)),
        ("2030-12-25", date(2030, 12, 25)),
        ("march 10th", date(2030, 3, 10)),
        ("mar 1", date(2031, 3, 1)),
    ],
)
def test_parse_schedule_date(text, expected):
    assert parse_schedule_date(text, today=MONDAY) == expected


@pytest.mark.parametrize("text", [None, "", "someday", "next month", "2030-02-30", "smarch 3"])
def test_parse_schedule_date_rejects_unknown_input(text):
    assert parse_schedule_date(text, today=MONDAY) is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("3pm", time(15, 0)),
        ("3 PM", time(15, 0)),
        ("9:30am", time(9, 30)),
        ("12am", time(0, 0)),
        ("12pm", time(12, 0)),
        ("at 14:05", time(14, 5)),
        ("8", time(8, 0)),
    ],
)
def test_parse_schedule_time(text, expected):
    assert parse_schedule_time(text) == expected


@pytest.mark.parametrize("text", ["13pm", "25:00", "9:75", "whenever", "noon-ish"])
def test_parse_schedule_time_rejects_unknown_input(text):
    assert parse_schedule_time(text) is None


def test_combine_schedule_produces_aware_instant():
    scheduled = combine_schedule("tomorrow", "3pm", now=NOW)
    assert scheduled == datetime(2030, 3, 5, 15, 0, tzinfo=timezone.utc)
    assert scheduled.tzinfo is not None


def test_combine_schedule_rolls_past_times_forward_a_day():
    assert combine_schedule("today", "9am", now=NOW) == datetime(2030, 3, 5, 9, 0, tzinfo=timezone.utc)


def test_combine_schedule_returns_none_instead_of_guessing():
    assert combine_schedule("tomorrow", "whenever", now=NOW) is None
    assert combine_schedule("someday", "3pm", now=NOW) is None
    assert combine_schedule(None, "3pm", now=NOW) is None


def test_combine_schedule_rejects_dates_before_today():
    assert combine_schedule("2029-01-01", "3pm", now=NOW) is None
    assert combine_schedule("2030-03-03", "11pm", now=NOW) is None
    assert combine_schedule("2030-03-04", "3pm", now=NOW) == datetime(2030, 3, 4, 15, 0, tzinfo=timezone.utc)
