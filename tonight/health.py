"""
Per-source rolling health statistics.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import Failure, FetchResult, HealthSample, ProbeResult, ScrapeStats, SourceHealth


logger = logging.getLogger(__name__)

HEALTH_WARN_THRESHOLD = 3
HISTORY_MAX = 7


class HealthTracker:
    """Holds one SourceHealth per registered source.

    Only the refresh cycle writes here; everybody else reads.
    """

    def __init__(
        self,
        labels: Iterable[str],
        threshold: int = HEALTH_WARN_THRESHOLD,
        history_max: int = HISTORY_MAX,
    ):
        self.threshold = threshold
        self.history_max = history_max
        self.sources: Dict[str, SourceHealth] = {label: SourceHealth() for label in labels}

    def __getitem__(self, label: str) -> SourceHealth:
        return self.sources[label]

    def record_probe(self, label: str, probe: ProbeResult) -> None:
        health = self.sources.get(label)
        if health is not None:
            health.last_http_status = probe.http_status

    def record_fetch(self, label: str, result: FetchResult, at: datetime) -> SourceHealth:
        """Fold one cycle's outcome into the source's record."""
        health = self.sources[label]
        count = len(result.events)

        health.last_count = count
        health.last_status = result.status
        health.last_error = result.error
        health.last_duration_ms = result.duration_ms
        health.last_scrape_at = at
        health.total_scrapes += 1
        if count > 0:
            health.total_successes += 1
            health.consecutive_zeros = 0
        else:
            health.consecutive_zeros += 1
            if health.consecutive_zeros >= self.threshold:
                logger.warning(
                    f"[HEALTH] {label} has returned 0 events for "
                    f"{health.consecutive_zeros} consecutive refreshes"
                )

        health.history.append(HealthSample(
            timestamp=at,
            count=count,
            duration_ms=result.duration_ms,
            status=result.status,
        ))
        if len(health.history) > self.history_max:
            del health.history[: len(health.history) - self.history_max]
        return health

    def alertable(self) -> List[Failure]:
        """Sources at or over the consecutive-zero threshold."""
        return [
            Failure(
                label=label,
                consecutive_zeros=h.consecutive_zeros,
                last_error=h.last_error,
                last_status=h.last_status,
            )
            for label, h in self.sources.items()
            if h.consecutive_zeros >= self.threshold
        ]

    def overall_status(self, stats: Optional[ScrapeStats] = None) -> str:
        """``critical`` when every source failed, ``degraded`` when any did."""
        failed = [bool(h.last_status and h.last_status.failed) for h in self.sources.values()]
        has_run = stats is not None and stats.started_at is not None
        if failed and all(failed) and has_run:
            return "critical"
        if any(failed):
            return "degraded"
        return "ok"

    def snapshot(self) -> Dict[str, dict]:
        """Deep copies of all records, safe to hand to callers."""
        return {label: h.model_dump(mode="json") for label, h in self.sources.items()}

    def report(self) -> Dict[str, dict]:
        """Per-source detail for the health endpoint."""
        report = {}
        for label, h in self.sources.items():
            rate = None
            if h.total_scrapes > 0:
                rate = f"{round(h.total_successes / h.total_scrapes * 100)}%"
            report[label] = {
                "status": h.last_status.value if h.last_status else None,
                "last_count": h.last_count,
                "consecutive_zeros": h.consecutive_zeros,
                "duration_ms": h.last_duration_ms,
                "http_status": h.last_http_status,
                "last_error": h.last_error,
                "last_scrape": h.last_scrape_at.isoformat() if h.last_scrape_at else None,
                "success_rate": rate,
                "history": [sample.model_dump(mode="json") for sample in h.history],
            }
        return report
