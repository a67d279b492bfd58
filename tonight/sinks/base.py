"""
Shared alert formatting and cooldown handling.
"""

from __future__ import annotations

import logging
import time
from abc import abstractmethod
from typing import Callable, List, Tuple

from ..interfaces import AlertSink
from ..models import Failure, ScrapeStats


logger = logging.getLogger(__name__)


def format_alert(failures: List[Failure], stats: ScrapeStats) -> Tuple[str, str]:
    """Return (subject, body) for a source health alert."""
    n = len(failures)
    subject = f"Tonight: {n} source{'s' if n > 1 else ''} failing"

    lines = []
    for f in failures:
        line = f"- {f.label}: {f.consecutive_zeros} consecutive zeros"
        if f.last_error:
            line += f" ({f.last_error})"
        if f.last_status:
            line += f" [{f.last_status.value}]"
        lines.append(line)

    completed = stats.completed_at.isoformat() if stats.completed_at else "n/a"
    body = "\n".join([
        f"{n} event source{' is' if n == 1 else 's are'} returning 0 events:",
        "",
        *lines,
        "",
        f"Cache: {stats.deduped_events} deduped events from {stats.sources_ok} healthy sources",
        f"Failed: {stats.sources_failed} | Empty: {stats.sources_empty}",
        f"Scrape duration: {stats.total_duration_ms}ms",
        f"Completed: {completed}",
    ])
    return subject, body


class CooldownAlertSink(AlertSink):
    """Alert sink that sends at most once per cooldown window.

    The refresh cycle re-notifies on every run while a source stays
    unhealthy; the cooldown keeps that from becoming one message per cycle.
    """

    def __init__(self, cooldown_s: float = 6 * 3600, clock: Callable[[], float] = time.monotonic):
        self.cooldown_s = cooldown_s
        self._clock = clock
        self._last_sent: float = float("-inf")

    @property
    def configured(self) -> bool:
        return True

    async def notify(self, failures: List[Failure], stats: ScrapeStats) -> None:
        if not failures:
            return
        if not self.configured:
            logger.warning(f"[ALERT] {self.name} not configured, skipping alert")
            return
        if self._clock() - self._last_sent < self.cooldown_s:
            logger.info(f"[ALERT] {self.name} cooldown active, skipping ({len(failures)} sources failing)")
            return

        subject, body = format_alert(failures, stats)
        await self.send(subject, body)
        self._last_sent = self._clock()
        logger.info(f"[ALERT] Health alert sent via {self.name}")

    @abstractmethod
    async def send(self, subject: str, body: str) -> None:
        """Deliver one message. Raises AlertDeliveryError on failure."""
        pass
