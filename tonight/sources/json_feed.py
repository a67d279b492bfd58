"""
Source variant for JSON APIs that list events.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors import SourceFetchError
from ..infra.http import HttpClient
from ..interfaces import Source
from ..models import Event
from .base import build_event


logger = logging.getLogger(__name__)

# Event attribute -> dotted path inside one feed item
DEFAULT_FIELDS = {
    "name": "name",
    "venue_name": "venue.name",
    "venue_address": "venue.address",
    "start_time_local": "start",
    "end_time_local": "end",
    "ticket_url": "url",
}


def dig(data: Any, path: Optional[str]) -> Any:
    """Follow a dotted path through nested dicts and lists."""
    if not path:
        return data
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class JsonFeedSource(Source):
    """Fetches a JSON document and maps each item onto an Event."""

    def __init__(
        self,
        *,
        label: str,
        url: str,
        items_path: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
        category: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        http: Optional[HttpClient] = None,
    ):
        self.label = label
        self.url = url
        self.items_path = items_path
        self.fields = {**DEFAULT_FIELDS, **(fields or {})}
        self.category = category
        self.headers = headers or {}
        self.http = http or HttpClient()

    @property
    def name(self) -> str:
        return self.label

    async def fetch(self) -> List[Event]:
        payload = await self.http.get_json(self.url, headers=self.headers)
        items = dig(payload, self.items_path)
        if not isinstance(items, list):
            raise SourceFetchError(self.label, f"no item list at '{self.items_path or '<root>'}'")
        return self.parse_items(items)

    def parse_items(self, items: List[Any]) -> List[Event]:
        events = []
        for item in items:
            attrs: Dict[str, Any] = {}
            for attr, path in self.fields.items():
                value = dig(item, path)
                if value is None:
                    continue
                attrs[attr] = bool(value) if attr == "is_free" else str(value)
            if not attrs.get("name"):
                continue
            if self.category and not attrs.get("category"):
                attrs["category"] = self.category
            events.append(build_event(self.label, **attrs))
        logger.debug(f"{self.label}: mapped {len(events)} of {len(items)} feed items")
        return events
