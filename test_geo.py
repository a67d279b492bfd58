"""
Tests for neighborhood matching and civil-date helpers.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import make_event
from tonight.geo import (
    event_date,
    filter_upcoming,
    haversine,
    lookup_neighborhood,
    parse_local_time,
    rank_by_proximity,
    resolve_neighborhood,
    today_string,
)


NY = ZoneInfo("America/New_York")
NOW = datetime(2026, 10, 18, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("name, expected", [
    ("East Village", "East Village"),
    ("les", "Lower East Side"),
    ("  Billyburg ", "Williamsburg"),
    ("bed stuy", "Bed-Stuy"),
    ("Narnia", None),
    (None, None),
])
def test_lookup_neighborhood(name, expected):
    assert lookup_neighborhood(name) == expected


def test_resolve_prefers_locality_then_nearest_within_radius():
    assert resolve_neighborhood("uws", 40.7061, -73.9212) == "Upper West Side"
    assert resolve_neighborhood(None, 40.7061, -73.9212) == "Bushwick"
    assert resolve_neighborhood("Brooklyn", 40.7061, -73.9212) == "Bushwick"
    assert resolve_neighborhood(None, 40.90, -73.50) is None
    assert resolve_neighborhood(None, None, None) is None


def test_haversine_is_roughly_right():
    # Union Square to Times Square is about 2.4 km
    assert 2.0 < haversine(40.7359, -73.9911, 40.7580, -73.9855) < 2.8
    assert haversine(40.7, -73.9, 40.7, -73.9) == 0


def test_today_string_uses_civil_timezone():
    assert today_string(NY, 0, NOW) == "2026-10-17"
    assert today_string(NY, 1, NOW) == "2026-10-18"
    assert today_string(timezone.utc, 0, NOW) == "2026-10-18"


def test_parse_local_time():
    assert parse_local_time("2026-10-17T21:00:00", NY) == datetime(2026, 10, 17, 21, 0, tzinfo=NY)
    assert parse_local_time("2026-10-18T01:00:00Z", NY) == datetime(2026, 10, 18, 1, 0, tzinfo=timezone.utc)
    assert parse_local_time("tonight at 9", NY) is None
    assert parse_local_time(None, NY) is None


def test_event_date_sources():
    assert event_date(make_event("a", date_local="2026-10-17"), NY) == "2026-10-17"
    # 01:00 UTC on the 18th is still the 17th in New York
    assert event_date(make_event("b", start_time_local="2026-10-18T01:00:00Z"), NY) == "2026-10-17"
    assert event_date(make_event("c", start_time_local="2026-10-17 doors 8pm"), NY) == "2026-10-17"
    assert event_date(make_event("d"), NY) is None


def test_filter_upcoming():
    events = [
        make_event("ended", start_time_local="2026-10-17T12:00:00", end_time_local="2026-10-17T14:00:00"),
        make_event("running", start_time_local="2026-10-17T12:00:00", end_time_local="2026-10-17T22:00:00"),
        make_event("recent", start_time_local="2026-10-17T19:00:00"),
        make_event("old-start", start_time_local="2026-10-17T17:30:00"),
        make_event("past-day", date_local="2026-10-16"),
        make_event("today", date_local="2026-10-17"),
        make_event("undated"),
    ]

    kept = filter_upcoming(events, NY, now=NOW)

    assert [e.id for e in kept] == ["running", "recent", "today", "undated"]


def test_rank_by_proximity_orders_by_day_then_distance():
    events = [
        make_event("tomorrow-here", date_local="2026-10-18", neighborhood="Bushwick"),
        make_event("today-near", date_local="2026-10-17", neighborhood="Bed-Stuy"),
        make_event("today-here", date_local="2026-10-17", neighborhood="Bushwick"),
        make_event("later-here", date_local="2026-10-25", neighborhood="Bushwick"),
        make_event("today-far", date_local="2026-10-17", neighborhood="Harlem"),
        make_event("unknown-hood", date_local="2026-10-17", neighborhood="Mars"),
    ]

    ranked = rank_by_proximity(events, "Bushwick", NY, now=NOW)

    assert [e.id for e in ranked] == ["today-here", "today-near", "tomorrow-here", "later-here"]


def test_rank_by_proximity_unknown_target_is_passthrough():
    events = [make_event("a", neighborhood="Harlem"), make_event("b")]

    assert rank_by_proximity(events, "Atlantis", NY, now=NOW) == events
    assert rank_by_proximity(events, None, NY, now=NOW) == events
