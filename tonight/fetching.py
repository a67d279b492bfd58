"""
Timed fetch wrapper: runs one source and reports the outcome as data.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from .interfaces import Source
from .models import FetchResult, FetchStatus


logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def classify_failure(exc: BaseException) -> FetchStatus:
    """Timeouts and aborts are told apart from every other failure."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FetchStatus.TIMEOUT
    if "timeout" in str(exc).lower() or "timed out" in str(exc).lower():
        return FetchStatus.TIMEOUT
    return FetchStatus.ERROR


async def timed_fetch(source: Source, weight: float, timeout: Optional[float] = None) -> FetchResult:
    """Fetch one source, stamping the registry weight on what it returns.

    Never raises: failures come back as an empty result with status
    ``timeout`` or ``error`` and the exception message.
    """
    start = time.monotonic()
    try:
        if timeout is not None:
            events = await asyncio.wait_for(source.fetch(), timeout)
        else:
            events = await source.fetch()
        events = list(events or [])
    except asyncio.CancelledError:
        raise
    except Exception as e:
        status = classify_failure(e)
        message = str(e) or f"{type(e).__name__} after {_elapsed_ms(start)}ms"
        logger.debug(f"{source.name} fetch failed ({status.value}): {message}")
        return FetchResult(duration_ms=_elapsed_ms(start), status=status, error=message)

    for event in events:
        event.source_weight = weight
    status = FetchStatus.OK if events else FetchStatus.EMPTY
    return FetchResult(events=events, duration_ms=_elapsed_ms(start), status=status)
