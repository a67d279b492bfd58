"""
Neighborhood table, civil-timezone date helpers and the default proximity ranker.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Event


NEIGHBORHOODS: Dict[str, dict] = {
    "East Village": {"lat": 40.7264, "lng": -73.9818, "aliases": ["east village", "ev", "e village"]},
    "West Village": {"lat": 40.7336, "lng": -73.9999, "aliases": ["west village", "wv", "the village"]},
    "Lower East Side": {"lat": 40.7150, "lng": -73.9843, "aliases": ["lower east side", "les", "chinatown"]},
    "Williamsburg": {"lat": 40.7081, "lng": -73.9571, "aliases": ["williamsburg", "wburg", "billyburg"]},
    "Bushwick": {"lat": 40.6944, "lng": -73.9213, "aliases": ["bushwick", "east williamsburg", "ridgewood"]},
    "Chelsea": {"lat": 40.7465, "lng": -74.0014, "aliases": ["chelsea", "meatpacking"]},
    "SoHo": {"lat": 40.7233, "lng": -73.9985, "aliases": ["soho", "nolita"]},
    "NoHo": {"lat": 40.7290, "lng": -73.9937, "aliases": ["noho"]},
    "Tribeca": {"lat": 40.7163, "lng": -74.0086, "aliases": ["tribeca"]},
    "Midtown": {"lat": 40.7549, "lng": -73.9840, "aliases": ["midtown", "times square", "murray hill"]},
    "Upper West Side": {"lat": 40.7870, "lng": -73.9754, "aliases": ["upper west side", "uws"]},
    "Upper East Side": {"lat": 40.7736, "lng": -73.9566, "aliases": ["upper east side", "ues"]},
    "Harlem": {"lat": 40.8116, "lng": -73.9465, "aliases": ["harlem"]},
    "Astoria": {"lat": 40.7723, "lng": -73.9301, "aliases": ["astoria"]},
    "Long Island City": {"lat": 40.7425, "lng": -73.9561, "aliases": ["long island city", "lic"]},
    "Greenpoint": {"lat": 40.7274, "lng": -73.9514, "aliases": ["greenpoint"]},
    "Park Slope": {"lat": 40.6710, "lng": -73.9814, "aliases": ["park slope", "south slope"]},
    "Downtown Brooklyn": {"lat": 40.6934, "lng": -73.9867, "aliases": ["downtown brooklyn"]},
    "DUMBO": {"lat": 40.7033, "lng": -73.9890, "aliases": ["dumbo"]},
    "Hell's Kitchen": {"lat": 40.7638, "lng": -73.9918, "aliases": ["hell's kitchen", "hells kitchen"]},
    "Greenwich Village": {"lat": 40.7308, "lng": -73.9973, "aliases": ["greenwich village", "greenwich"]},
    "Flatiron": {"lat": 40.7395, "lng": -73.9903, "aliases": ["flatiron", "gramercy", "union square"]},
    "Financial District": {"lat": 40.7075, "lng": -74.0089, "aliases": ["financial district", "fidi"]},
    "Crown Heights": {"lat": 40.6694, "lng": -73.9422, "aliases": ["crown heights"]},
    "Bed-Stuy": {"lat": 40.6872, "lng": -73.9418, "aliases": ["bed-stuy", "bed stuy", "bedford stuyvesant"]},
    "Fort Greene": {"lat": 40.6892, "lng": -73.9742, "aliases": ["fort greene", "clinton hill"]},
    "Prospect Heights": {"lat": 40.6775, "lng": -73.9692, "aliases": ["prospect heights"]},
    "Gowanus": {"lat": 40.6734, "lng": -73.9880, "aliases": ["gowanus"]},
}

MATCH_RADIUS_KM = 3.0
UNKNOWN_DISTANCE_KM = 4.0

_HAS_TIME = re.compile(r"T\d{2}:")
_LEADING_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    r = 6371
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    return r * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def lookup_neighborhood(name: Optional[str]) -> Optional[str]:
    """Canonical neighborhood name for a name or alias."""
    if not name:
        return None
    if name in NEIGHBORHOODS:
        return name
    lower = name.lower().strip()
    for canonical, data in NEIGHBORHOODS.items():
        if canonical.lower() == lower or lower in data["aliases"]:
            return canonical
    return None


def resolve_neighborhood(
    locality: Optional[str],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> Optional[str]:
    """Match a locality string, else the nearest neighborhood within 3 km."""
    match = lookup_neighborhood(locality)
    if match:
        return match
    if lat is None or lng is None or math.isnan(lat) or math.isnan(lng):
        return None

    nearest, nearest_dist = None, math.inf
    for name, data in NEIGHBORHOODS.items():
        dist = haversine(lat, lng, data["lat"], data["lng"])
        if dist < nearest_dist:
            nearest, nearest_dist = name, dist
    return nearest if nearest_dist < MATCH_RADIUS_KM else None


def today_string(tz: tzinfo, offset: int = 0, now: Optional[datetime] = None) -> str:
    """Civil date (YYYY-MM-DD) in ``tz``, shifted by whole calendar days."""
    now = now or datetime.now(timezone.utc)
    return (now.astimezone(tz).date() + timedelta(days=offset)).isoformat()


def parse_local_time(value: Optional[str], tz: tzinfo) -> Optional[datetime]:
    """Parse an ISO timestamp; naive values are taken as civil time in ``tz``."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def event_date(event: Event, tz: tzinfo) -> Optional[str]:
    """The civil date an event happens on, if it can be told."""
    if event.date_local:
        return event.date_local
    if not event.start_time_local:
        return None
    parsed = parse_local_time(event.start_time_local, tz)
    if parsed is not None:
        return parsed.astimezone(tz).date().isoformat()
    match = _LEADING_DATE.match(event.start_time_local)
    return match.group(1) if match else None


def filter_upcoming(events: Iterable[Event], tz: tzinfo, now: Optional[datetime] = None) -> List[Event]:
    """Drop events that have likely already ended.

    Kept: events whose end time is still ahead, events that started less than
    two hours ago or later, and untimed events dated today or later (or not
    dated at all).
    """
    now = now or datetime.now(timezone.utc)
    two_hours_ago = now - timedelta(hours=2)
    today = today_string(tz, 0, now)

    upcoming = []
    for event in events:
        if event.end_time_local and _HAS_TIME.search(event.end_time_local):
            end = parse_local_time(event.end_time_local, tz)
            if end is not None and end > now:
                upcoming.append(event)
                continue

        if event.start_time_local and _HAS_TIME.search(event.start_time_local):
            start = parse_local_time(event.start_time_local, tz)
            if start is not None:
                if start > two_hours_ago:
                    upcoming.append(event)
                continue

        date = event_date(event, tz)
        if date and date < today:
            continue
        upcoming.append(event)
    return upcoming


def _distance_to(target: dict, hood: Optional[str]) -> float:
    canonical = lookup_neighborhood(hood)
    if canonical is None:
        return UNKNOWN_DISTANCE_KM
    data = NEIGHBORHOODS[canonical]
    return haversine(target["lat"], target["lng"], data["lat"], data["lng"])


def rank_by_proximity(
    events: Sequence[Event],
    target: Optional[str],
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> List[Event]:
    """Nearby events first: today before tomorrow before later, then closest.

    Events further than 3 km (or with no known neighborhood) are dropped. An
    unknown target returns the input unchanged.
    """
    canonical = lookup_neighborhood(target)
    if canonical is None:
        return list(events)
    target_data = NEIGHBORHOODS[canonical]

    now = now or datetime.now(timezone.utc)
    today = today_string(tz, 0, now)
    tomorrow = today_string(tz, 1, now)

    scored = []
    for index, event in enumerate(events):
        dist = _distance_to(target_data, event.neighborhood)
        if dist > MATCH_RADIUS_KM:
            continue
        date = event_date(event, tz)
        if not date or date == today:
            tier = 0
        elif date == tomorrow:
            tier = 1
        else:
            tier = 2
        scored.append((tier, dist, index, event))

    scored.sort(key=lambda s: s[:3])
    return [s[3] for s in scored]
