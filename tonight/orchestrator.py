"""
Cache refresh orchestrator.

One refresh cycle fetches every registered source plus the endpoint probes
concurrently, merges the results in registry priority order, enriches and
publishes a new cache snapshot, then folds the outcome into the per-source
health records. Concurrent callers share a single in-flight cycle.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .endpoints import EndpointChecker
from .fetching import timed_fetch
from .health import HealthTracker
from .interfaces import AlertSink, Enricher
from .models import CacheSnapshot, Event, Failure, FetchResult, FetchStatus, ProbeResult, ScrapeStats
from .registry import SourceRegistry
from .venues import LearnedVenueFile


logger = logging.getLogger(__name__)


def merge_events(merge_order: Iterable[str], results: Mapping[str, FetchResult]) -> Tuple[List[Event], int]:
    """Deduplicate events across sources, first identity in merge order wins.

    Returns the merged list and the raw (pre-dedup) event count.
    """
    merged: List[Event] = []
    seen: Set[str] = set()
    total_raw = 0
    for label in merge_order:
        events = results[label].events
        total_raw += len(events)
        for event in events:
            if event.id not in seen:
                seen.add(event.id)
                merged.append(event)
    return merged, total_raw


class CacheState:
    """Process-wide cache state. Written only by the running refresh cycle."""

    def __init__(self, labels: Iterable[str], threshold: int = 3, history_max: int = 7):
        self.snapshot = CacheSnapshot()
        self.stats = ScrapeStats()
        self.health = HealthTracker(labels, threshold=threshold, history_max=history_max)

    def publish(self, events: List[Event], at: datetime) -> None:
        self.snapshot = CacheSnapshot(events=tuple(events), refreshed_at=at)


class RefreshOrchestrator:
    """Owns the cache state and runs refresh cycles against the registry."""

    def __init__(
        self,
        registry: SourceRegistry,
        endpoint_checker: EndpointChecker,
        *,
        enricher: Optional[Enricher] = None,
        venue_file: Optional[LearnedVenueFile] = None,
        alert_sinks: Iterable[AlertSink] = (),
        state: Optional[CacheState] = None,
        fetch_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.registry = registry
        self.endpoint_checker = endpoint_checker
        self.enricher = enricher
        self.venue_file = venue_file
        self.alert_sinks = list(alert_sinks)
        self.state = state or CacheState(registry.labels)
        self.fetch_timeout = fetch_timeout
        self._clock = clock
        self._inflight: Optional[asyncio.Future] = None
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Refresh
    async def refresh_cache(self) -> List[Event]:
        """Run a refresh cycle, or join the one already running."""
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._guarded_cycle())
        return await asyncio.shield(self._inflight)

    async def _guarded_cycle(self) -> List[Event]:
        try:
            return await self._run_cycle()
        except Exception:
            logger.exception("Refresh cycle failed, keeping previous cache")
            return list(self.state.snapshot.events)
        finally:
            self._inflight = None

    async def _fan_out(self) -> Tuple[Dict[str, ProbeResult], Dict[str, FetchResult]]:
        descriptors = list(self.registry)
        probes, *fetched = await asyncio.gather(
            self.endpoint_checker.check_all(self.registry.endpoints),
            *(
                timed_fetch(
                    self.registry.source(d.label),
                    d.weight,
                    timeout=d.timeout if d.timeout is not None else self.fetch_timeout,
                )
                for d in descriptors
            ),
            return_exceptions=True,
        )
        if isinstance(probes, BaseException):
            logger.error(f"Endpoint checks failed: {probes}")
            probes = {}

        results: Dict[str, FetchResult] = {}
        for d, result in zip(descriptors, fetched):
            if isinstance(result, BaseException):
                result = FetchResult(status=FetchStatus.ERROR, error=str(result) or "unknown")
            results[d.label] = result
        return probes, results

    async def _run_cycle(self) -> List[Event]:
        started = self._clock()
        logger.info(f"Refreshing event cache ({len(self.registry)} sources)...")

        probes, results = await self._fan_out()

        merged, total_raw = merge_events(self.registry.merge_order, results)
        for label in self.registry.merge_order:
            result = results[label]
            if result.status.failed:
                logger.error(f"{label} failed: {result.error}")

        if self.enricher is not None:
            try:
                await self.enricher.enrich(merged)
            except Exception as e:
                logger.error(f"Enrichment failed: {e}", exc_info=True)
            self._persist_learned()

        completed = self._clock()
        self.state.publish(merged, completed)

        stats = self._update_health(started, completed, probes, results, total_raw, len(merged))
        self.state.stats = stats

        failures = self.state.health.alertable()
        if failures and self.alert_sinks:
            self._spawn(self._send_alerts(failures, stats), "alerts")

        logger.info(
            f"Cache refreshed: {stats.deduped_events} deduped events ({stats.total_events} raw from "
            f"{stats.sources_ok} ok / {stats.sources_failed} failed / {stats.sources_empty} empty sources)"
        )
        return list(self.state.snapshot.events)

    def _update_health(
        self,
        started: datetime,
        completed: datetime,
        probes: Mapping[str, ProbeResult],
        results: Mapping[str, FetchResult],
        total_raw: int,
        deduped: int,
    ) -> ScrapeStats:
        health = self.state.health
        for label, probe in probes.items():
            health.record_probe(label, probe)

        counts = {status: 0 for status in FetchStatus}
        for label in self.registry.merge_order:
            result = results[label]
            health.record_fetch(label, result, completed)
            counts[result.status] += 1

        return ScrapeStats(
            started_at=started,
            completed_at=completed,
            total_duration_ms=int((completed - started).total_seconds() * 1000),
            total_events=total_raw,
            deduped_events=deduped,
            sources_ok=counts[FetchStatus.OK],
            sources_failed=counts[FetchStatus.ERROR] + counts[FetchStatus.TIMEOUT],
            sources_empty=counts[FetchStatus.EMPTY],
        )

    # ------------------------------------------------------------------ #
    # Side effects
    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"refresh-{name}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _persist_learned(self) -> None:
        if self.venue_file is None:
            return
        learned = self.enricher.export_learned()
        if learned:
            self._spawn(self._write_learned(learned), "persist")

    async def _write_learned(self, learned: Dict[str, Any]) -> None:
        try:
            await self.venue_file.save_async(learned)
            logger.info(f"Persisted {len(learned)} learned venues")
        except Exception as e:
            logger.error(f"Failed to persist venues: {e}")

    async def _send_alerts(self, failures: List[Failure], stats: ScrapeStats) -> None:
        for sink in self.alert_sinks:
            try:
                await sink.notify(failures, stats)
            except Exception as e:
                logger.error(f"[ALERT] {sink.name} failed: {e}")

    async def drain(self) -> None:
        """Wait for outstanding persistence and alert tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Read side
    def _age_minutes(self) -> Optional[int]:
        refreshed_at = self.state.snapshot.refreshed_at
        if refreshed_at is None:
            return None
        return round((self._clock() - refreshed_at).total_seconds() / 60)

    def cache_status(self) -> Dict[str, Any]:
        snapshot = self.state.snapshot
        return {
            "cache_size": len(snapshot.events),
            "cache_age_minutes": self._age_minutes(),
            "cache_fresh": len(snapshot.events) > 0,
            "sources": self.state.health.snapshot(),
        }

    def health_status(self) -> Dict[str, Any]:
        snapshot = self.state.snapshot
        stats = self.state.stats
        return {
            "status": self.state.health.overall_status(stats),
            "cache": {
                "size": len(snapshot.events),
                "age_minutes": self._age_minutes(),
                "fresh": len(snapshot.events) > 0,
                "last_refresh": snapshot.refreshed_at.isoformat() if snapshot.refreshed_at else None,
            },
            "scrape": stats.model_dump(mode="json"),
            "sources": self.state.health.report(),
        }

    def raw_cache(self) -> Dict[str, Any]:
        snapshot = self.state.snapshot
        return {"events": list(snapshot.events), "timestamp": snapshot.refreshed_at}
