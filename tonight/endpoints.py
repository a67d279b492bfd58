"""
Endpoint health checker: cheap HEAD probes run alongside the full fetches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Mapping

from .infra.http import HttpClient
from .models import ProbeResult


logger = logging.getLogger(__name__)

PROBE_HEADERS = {"User-Agent": "Tonight/1.0 HealthCheck"}


class EndpointChecker:
    """Probes source endpoints concurrently. Results are advisory only."""

    def __init__(self, http: HttpClient, timeout: float = 10.0):
        self.http = http
        self.timeout = timeout

    async def probe(self, url: str) -> ProbeResult:
        start = time.monotonic()
        try:
            status = await self.http.head_status(url, timeout=self.timeout, headers=PROBE_HEADERS)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return ProbeResult(
                duration_ms=int((time.monotonic() - start) * 1000),
                error=str(e) or type(e).__name__,
            )
        return ProbeResult(http_status=status, duration_ms=int((time.monotonic() - start) * 1000))

    async def check_all(self, endpoints: Mapping[str, str]) -> Dict[str, ProbeResult]:
        """Probe every endpoint; one failing probe never affects another."""
        labels = list(endpoints)
        results = await asyncio.gather(
            *(self.probe(endpoints[label]) for label in labels),
            return_exceptions=True,
        )
        checked: Dict[str, ProbeResult] = {}
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                result = ProbeResult(error=str(result) or type(result).__name__)
            checked[label] = result
        failing = [label for label, r in checked.items() if r.http_status is None or r.http_status >= 400]
        if failing:
            logger.info(f"Endpoint probes: {len(failing)}/{len(checked)} unhealthy ({', '.join(failing)})")
        return checked
