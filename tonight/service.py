"""
Wires settings, sources, collaborators and the refresh machinery together.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import Settings
from .endpoints import EndpointChecker
from .infra.http import HttpClient
from .infra.scheduler import DailyScheduler
from .interfaces import AlertSink, Enricher
from .models import Event
from .orchestrator import CacheState, RefreshOrchestrator
from .query import QueryService
from .registry import SourceRegistry
from .sinks import EmailAlertSink, TelegramAlertSink
from .venues import LearnedVenueFile, VenueResolver


logger = logging.getLogger(__name__)


class TonightService:
    """Public face of the event cache."""

    def __init__(
        self,
        settings: Settings,
        registry: Optional[SourceRegistry] = None,
        *,
        http: Optional[HttpClient] = None,
        enricher: Optional[Enricher] = None,
        alert_sinks: Optional[List[AlertSink]] = None,
    ):
        self.settings = settings
        self.http = http or HttpClient()
        self.registry = registry or SourceRegistry.from_config(settings.sources, http=self.http)

        self.venue_file = LearnedVenueFile(settings.venues_file)
        self.enricher = enricher or VenueResolver(self.http, geocode=settings.geocode)
        learned = self.venue_file.load()
        if learned:
            self.enricher.import_learned(learned)
            logger.info(f"Loaded {len(learned)} persisted venues")

        if alert_sinks is None:
            cooldown_s = settings.alert_cooldown_hours * 3600
            alert_sinks = [
                EmailAlertSink(self.http, settings.resend_api_key, settings.alert_email, cooldown_s=cooldown_s),
                TelegramAlertSink(settings.telegram_bot_token, settings.telegram_chat_id, cooldown_s=cooldown_s),
            ]

        self.orchestrator = RefreshOrchestrator(
            self.registry,
            EndpointChecker(self.http, timeout=settings.probe_timeout),
            enricher=self.enricher,
            venue_file=self.venue_file,
            alert_sinks=alert_sinks,
            state=CacheState(
                self.registry.labels,
                threshold=settings.health_warn_threshold,
                history_max=settings.history_max,
            ),
            fetch_timeout=settings.fetch_timeout,
        )
        self.query = QueryService(
            self.orchestrator,
            tz=settings.tz,
            limit=settings.result_limit,
        )
        self.scheduler = DailyScheduler(
            self.orchestrator.refresh_cache,
            hour=settings.scrape_hour,
            tz=settings.tz,
        )

    async def refresh_cache(self) -> List[Event]:
        return await self.orchestrator.refresh_cache()

    async def get_events(self, target: Optional[str]) -> List[Event]:
        return await self.query.get_events(target)

    def get_cache_status(self) -> Dict[str, Any]:
        return self.orchestrator.cache_status()

    def get_health_status(self) -> Dict[str, Any]:
        return self.orchestrator.health_status()

    def get_raw_cache(self) -> Dict[str, Any]:
        return self.orchestrator.raw_cache()

    def schedule_daily_scrape(self):
        return self.scheduler.schedule_daily_scrape()

    def clear_schedule(self) -> None:
        self.scheduler.clear_schedule()

    async def close(self) -> None:
        """Stop the schedule, let side effects finish and release the HTTP session."""
        self.clear_schedule()
        await self.orchestrator.drain()
        await self.http.close()
