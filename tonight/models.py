"""
Core data models for the event cache.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """A single listing produced by a source."""
    id: str
    source_name: str = ""
    source_weight: float = 0.0
    name: str
    venue_name: str = "TBA"
    venue_address: Optional[str] = None
    neighborhood: Optional[str] = None
    date_local: Optional[str] = None  # YYYY-MM-DD in the civil timezone
    start_time_local: Optional[str] = None
    end_time_local: Optional[str] = None
    time_window: Optional[str] = None
    is_free: bool = False
    price_display: Optional[str] = None
    category: str = "other"
    ticket_url: Optional[str] = None
    source_url: Optional[str] = None


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def failed(self) -> bool:
        return self in (FetchStatus.ERROR, FetchStatus.TIMEOUT)


class FetchResult(BaseModel):
    """Outcome of one source fetch inside a refresh cycle."""
    events: List[Event] = Field(default_factory=list)
    duration_ms: int = 0
    status: FetchStatus
    error: Optional[str] = None


class ProbeResult(BaseModel):
    """Outcome of one endpoint reachability probe."""
    http_status: Optional[int] = None
    duration_ms: int = 0
    error: Optional[str] = None


class HealthSample(BaseModel):
    timestamp: datetime
    count: int
    duration_ms: int
    status: FetchStatus


class SourceHealth(BaseModel):
    """Rolling health record for one source."""
    consecutive_zeros: int = 0
    last_count: int = 0
    last_status: Optional[FetchStatus] = None  # None until the first cycle
    last_error: Optional[str] = None
    last_http_status: Optional[int] = None
    last_duration_ms: Optional[int] = None
    last_scrape_at: Optional[datetime] = None
    total_scrapes: int = 0
    total_successes: int = 0
    history: List[HealthSample] = Field(default_factory=list)


class ScrapeStats(BaseModel):
    """Aggregate numbers for the last completed refresh cycle."""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[int] = None
    total_events: int = 0
    deduped_events: int = 0
    sources_ok: int = 0
    sources_failed: int = 0
    sources_empty: int = 0


class Failure(BaseModel):
    """A source that has been failing long enough to alert on."""
    label: str
    consecutive_zeros: int
    last_error: Optional[str] = None
    last_status: Optional[FetchStatus] = None


class CacheSnapshot(BaseModel):
    """One published version of the cache. Replaced, never mutated."""
    model_config = ConfigDict(frozen=True)

    events: Tuple[Event, ...] = ()
    refreshed_at: Optional[datetime] = None


_PARENTHETICAL = re.compile(r"\s*\(.*?\)\s*")
_AND_FRIENDS = re.compile(r"\s*&\s*(friends|more|guests)\b.*", re.IGNORECASE)
_FEATURING = re.compile(r"\b(ft\.?|feat\.?|featuring|w/|with)(?=\W|$).*", re.IGNORECASE)
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_event_name(name: Optional[str]) -> str:
    """Lower-case a listing name and strip billing noise for dedup."""
    text = (name or "").lower()
    text = _PARENTHETICAL.sub(" ", text)
    text = _AND_FRIENDS.sub("", text)
    text = _FEATURING.sub("", text)
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def make_event_id(name: Optional[str], venue: Optional[str], date: Optional[str]) -> str:
    """Stable identity from normalised name, venue and date."""
    raw = f"{normalize_event_name(name)}|{(venue or '').lower().strip()}|{(date or '').strip()}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:12]
