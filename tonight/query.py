"""
Read path: tonight's events near a neighborhood, served from the cache.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .geo import event_date, filter_upcoming, rank_by_proximity, today_string
from .models import Event
from .orchestrator import RefreshOrchestrator


logger = logging.getLogger(__name__)

Ranker = Callable[[Sequence[Event], Optional[str]], List[Event]]


class QueryService:
    """Answers ``get_events`` against the orchestrator's current snapshot."""

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        *,
        tz: Optional[ZoneInfo] = None,
        ranker: Optional[Ranker] = None,
        limit: int = 20,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.orchestrator = orchestrator
        self.tz = tz or ZoneInfo("America/New_York")
        self.limit = limit
        self._clock = clock
        self.ranker = ranker or self._rank_by_proximity

    def _rank_by_proximity(self, events: Sequence[Event], target: Optional[str]) -> List[Event]:
        return rank_by_proximity(events, target, self.tz, now=self._clock())

    async def get_events(self, target: Optional[str]) -> List[Event]:
        """Tonight's events ranked by proximity to ``target``, at most ``limit``."""
        if not self.orchestrator.state.snapshot.events:
            # Nothing cached yet, e.g. a request before the first scheduled scrape
            await self.orchestrator.refresh_cache()

        cached = self.orchestrator.state.snapshot.events
        now = self._clock()
        upcoming = filter_upcoming(cached, self.tz, now=now)
        ranked = self.ranker(upcoming, target)

        today = today_string(self.tz, 0, now)
        tonight = [e for e in ranked if event_date(e, self.tz) in (None, today)]

        logger.info(
            f"{len(tonight)} tonight events near {target} "
            f"({len(ranked)} total upcoming, cache: {len(cached)})"
        )
        return tonight[: self.limit]
