"""
Venue resolution: fills missing neighborhoods from venue coordinates.

Known venues come from a static table; anything geocoded at runtime is
learned, exported after each refresh and reloaded from a JSON side-file on
the next start.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import aiohttp

from .errors import PersistenceError
from .geo import resolve_neighborhood
from .infra.http import HttpClient
from .interfaces import Enricher
from .models import Event


logger = logging.getLogger(__name__)

Coords = Dict[str, float]

VENUE_MAP: Dict[str, Coords] = {
    # Bushwick / East Williamsburg
    "Nowadays": {"lat": 40.7061, "lng": -73.9212},
    "Elsewhere": {"lat": 40.7013, "lng": -73.9225},
    "House of Yes": {"lat": 40.7048, "lng": -73.9230},
    "Market Hotel": {"lat": 40.7058, "lng": -73.9216},
    "Bossa Nova Civic Club": {"lat": 40.7065, "lng": -73.9214},
    # Williamsburg
    "Baby's All Right": {"lat": 40.7095, "lng": -73.9591},
    "Brooklyn Steel": {"lat": 40.7115, "lng": -73.9505},
    "Brooklyn Bowl": {"lat": 40.7223, "lng": -73.9510},
    "Music Hall of Williamsburg": {"lat": 40.7111, "lng": -73.9607},
    "National Sawdust": {"lat": 40.7116, "lng": -73.9625},
    # Greenpoint
    "Good Room": {"lat": 40.7268, "lng": -73.9516},
    "Warsaw": {"lat": 40.7291, "lng": -73.9510},
    "Saint Vitus": {"lat": 40.7274, "lng": -73.9528},
    # West Village / Greenwich Village
    "Smalls Jazz Club": {"lat": 40.7346, "lng": -74.0027},
    "Village Vanguard": {"lat": 40.7360, "lng": -74.0010},
    "Comedy Cellar": {"lat": 40.7304, "lng": -74.0003},
    "Blue Note": {"lat": 40.7310, "lng": -74.0001},
    "Le Poisson Rouge": {"lat": 40.7296, "lng": -73.9993},
    # Lower East Side / East Village
    "Mercury Lounge": {"lat": 40.7219, "lng": -73.9866},
    "Rockwood Music Hall": {"lat": 40.7229, "lng": -73.9897},
    "Pianos": {"lat": 40.7207, "lng": -73.9881},
    "Webster Hall": {"lat": 40.7318, "lng": -73.9897},
    # Upper West Side
    "Beacon Theatre": {"lat": 40.7805, "lng": -73.9812},
    "Symphony Space": {"lat": 40.7849, "lng": -73.9791},
    "Lincoln Center": {"lat": 40.7725, "lng": -73.9835},
}

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
NYC_VIEWBOX = "-74.26,40.49,-73.70,40.92"
GEOCODE_SPACING_S = 1.1  # Nominatim allows one request per second

_STRIP = re.compile(r"['\-.]")
_SPACES = re.compile(r"\s+")


def normalize_venue_name(name: str) -> str:
    return _SPACES.sub(" ", _STRIP.sub("", name.lower())).strip()


class VenueResolver(Enricher):
    """Static + learned venue coordinates, with Nominatim as a fallback."""

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        *,
        geocode: bool = True,
        spacing: float = GEOCODE_SPACING_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http = http
        self.geocode_enabled = geocode and http is not None
        self.spacing = spacing
        self._sleep = sleep
        self._known: Dict[str, Coords] = {}
        for name, coords in VENUE_MAP.items():
            self._known.setdefault(normalize_venue_name(name), coords)
        self._static_keys = set(self._known)

    def lookup(self, name: Optional[str]) -> Optional[Coords]:
        if not name:
            return None
        return self._known.get(normalize_venue_name(name))

    def learn(self, name: Optional[str], lat: float, lng: float) -> None:
        if not name or math.isnan(lat) or math.isnan(lng):
            return
        self._known.setdefault(normalize_venue_name(name), {"lat": lat, "lng": lng})

    def export_learned(self) -> Dict[str, Coords]:
        return {key: dict(coords) for key, coords in self._known.items() if key not in self._static_keys}

    def import_learned(self, data: Dict[str, Coords]) -> None:
        """Seed learned venues. Malformed entries are skipped."""
        skipped = 0
        for key, coords in data.items():
            try:
                lat, lng = float(coords["lat"]), float(coords["lng"])
            except (TypeError, KeyError, ValueError):
                skipped += 1
                continue
            if math.isnan(lat) or math.isnan(lng):
                skipped += 1
                continue
            self._known.setdefault(key, {"lat": lat, "lng": lng})
        if skipped:
            logger.warning(f"Skipped {skipped} malformed learned venue entries")

    async def geocode(self, name: Optional[str], address: Optional[str]) -> Optional[Coords]:
        """Look a venue up on Nominatim. Returns None on any miss or failure."""
        if address:
            query = f"{address}, New York"
        elif name:
            query = f"{name}, New York, NY"
        else:
            return None

        params = {
            "q": query,
            "format": "json",
            "limit": "1",
            "countrycodes": "us",
            "viewbox": NYC_VIEWBOX,
            "bounded": "1",
        }
        try:
            data = await self.http.get_json(
                NOMINATIM_URL,
                params=params,
                headers={"User-Agent": "Tonight/1.0"},
                timeout=aiohttp.ClientTimeout(total=5),
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError covers non-JSON replies such as HTML rate-limit pages
            logger.debug(f"Geocoding '{query}' failed: {e}")
            return None
        if not isinstance(data, list) or not data:
            return None

        try:
            coords = {"lat": float(data[0]["lat"]), "lng": float(data[0]["lon"])}
        except (TypeError, KeyError, ValueError):
            logger.debug(f"Geocoding '{query}' returned no usable coordinates")
            return None
        self.learn(name, coords["lat"], coords["lng"])
        return coords

    async def enrich(self, events: List[Event]) -> None:
        """Fill ``neighborhood`` on events that lack one."""
        unresolved = [e for e in events if not e.neighborhood and (e.venue_name or e.venue_address)]
        if not unresolved:
            return

        logger.info(f"Geocoding {len(unresolved)} events with missing neighborhoods...")
        resolved = 0
        for event in unresolved:
            coords = self.lookup(event.venue_name)
            if coords is None and self.geocode_enabled:
                await self._sleep(self.spacing)
                coords = await self.geocode(event.venue_name, event.venue_address)
            if coords is None:
                continue
            event.neighborhood = resolve_neighborhood(None, coords["lat"], coords["lng"])
            if event.neighborhood:
                resolved += 1

        logger.info(f"Geocoding done: {resolved}/{len(unresolved)} resolved")


class LearnedVenueFile:
    """JSON side-file holding learned venue coordinates."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Dict[str, Coords]:
        try:
            with self.path.open() as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable venue file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring venue file {self.path}: expected an object")
            return {}
        return data

    def save(self, data: Dict[str, Coords]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True))
            tmp.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

    async def save_async(self, data: Dict[str, Coords]) -> None:
        await asyncio.to_thread(self.save, data)
