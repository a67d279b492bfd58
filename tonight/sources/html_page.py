"""
Source variant for HTML pages that embed schema.org Event data as JSON-LD.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from ..infra.http import HttpClient
from ..interfaces import Source
from ..models import Event
from .base import build_event


logger = logging.getLogger(__name__)


def _iter_nodes(data: Any) -> Iterator[Dict[str, Any]]:
    """Yield every JSON-LD object, flattening lists and @graph containers."""
    if isinstance(data, list):
        for item in data:
            yield from _iter_nodes(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_nodes(data["@graph"])
        else:
            yield data
            if isinstance(data.get("itemListElement"), list):
                for element in data["itemListElement"]:
                    yield from _iter_nodes(element.get("item", element) if isinstance(element, dict) else element)


def _is_event(node: Dict[str, Any]) -> bool:
    types = node.get("@type")
    if isinstance(types, str):
        types = [types]
    return any(isinstance(t, str) and t.endswith("Event") for t in types or [])


def _address(location: Dict[str, Any]) -> Optional[str]:
    address = location.get("address")
    if isinstance(address, dict):
        parts = [address.get("streetAddress"), address.get("addressLocality")]
        return ", ".join(p for p in parts if p) or None
    return address or None


def _offer(node: Dict[str, Any]) -> Dict[str, Any]:
    offers = node.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else {}


def extract_ld_events(html: str, source_name: str) -> List[Event]:
    """Parse JSON-LD script blocks and map schema.org Events."""
    soup = BeautifulSoup(html, "html.parser")
    events = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            logger.debug(f"{source_name}: skipping malformed JSON-LD block")
            continue

        for node in _iter_nodes(data):
            if not _is_event(node) or not node.get("name"):
                continue
            location = node.get("location")
            if isinstance(location, list):
                location = location[0] if location else {}
            location = location if isinstance(location, dict) else {}
            offer = _offer(node)
            price = offer.get("price")
            events.append(build_event(
                source_name,
                name=str(node["name"]).strip(),
                venue_name=location.get("name"),
                venue_address=_address(location),
                start_time_local=node.get("startDate"),
                end_time_local=node.get("endDate"),
                is_free=str(price).strip() in ("0", "0.0", "0.00"),
                price_display=f"${price}" if price not in (None, "", 0, "0") else None,
                ticket_url=offer.get("url") or node.get("url"),
                source_url=node.get("url"),
            ))
    return events


class HtmlPageSource(Source):
    """Fetches an HTML page and extracts embedded schema.org events."""

    def __init__(
        self,
        *,
        label: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        http: Optional[HttpClient] = None,
    ):
        self.label = label
        self.url = url
        self.headers = {"Accept": "text/html", **(headers or {})}
        self.http = http or HttpClient()

    @property
    def name(self) -> str:
        return self.label

    async def fetch(self) -> List[Event]:
        html = await self.http.get_text(self.url, headers=self.headers)
        events = extract_ld_events(html, self.label)
        logger.debug(f"{self.label}: extracted {len(events)} events from {self.url}")
        return events
