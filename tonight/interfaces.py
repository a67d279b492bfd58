"""
Collaborator interfaces for the event cache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from .models import Event, Failure, ScrapeStats


class Source(ABC):
    """A fetchable source of listings.

    Implementations fetch and extract in one call and either return the
    listings or raise. They never see the registry weight.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        pass

    @abstractmethod
    async def fetch(self) -> List[Event]:
        """Fetch the current listings."""
        pass


class Enricher(ABC):
    """Fills in missing attributes on merged events, learning as it goes."""

    @abstractmethod
    async def enrich(self, events: List[Event]) -> None:
        """Fill missing neighborhoods in place. One call per refresh cycle."""
        pass

    @abstractmethod
    def export_learned(self) -> Dict[str, Dict[str, float]]:
        """Return everything learned since startup, keyed by venue."""
        pass

    @abstractmethod
    def import_learned(self, data: Dict[str, Dict[str, float]]) -> None:
        """Seed previously learned state."""
        pass


class AlertSink(ABC):
    """Receives source health alerts."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def notify(self, failures: List[Failure], stats: ScrapeStats) -> None:
        """Deliver an alert about the given failing sources."""
        pass
