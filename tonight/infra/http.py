"""
http.py – Async HTTP client built on *aiohttp* shared by sources, endpoint
          probes, the venue geocoder and the e-mail alert sink.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * per-instance default headers (user-agent lives in one place)
    * exponential back-off **with jitter** for 429 / 5xx / network errors
    * *Retry-After* support
    * single-shot HEAD probes that report the status instead of raising
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._external_session = session
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._own_session: Optional[aiohttp.ClientSession] = None
        self._default_headers: Dict[str, str] = {"User-Agent": DEFAULT_USER_AGENT}
        self._default_headers.update(default_headers or {})

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._own_session = aiohttp.ClientSession(timeout=timeout)
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: str | None) -> Optional[float]:
        """Return seconds given a Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        if header_val.isdigit():
            return float(header_val)
        try:
            retry_at = parsedate_to_datetime(header_val).timestamp()
        except (TypeError, ValueError):
            return None
        return max(0.0, retry_at - time.time())

    def _merge_headers(self, extra: Mapping[str, str] | None) -> Dict[str, str]:
        merged: Dict[str, str] = {**self._default_headers}
        if extra:
            merged.update(extra)
        return merged

    async def _request(
        self,
        method: str,
        url: str,
        *,
        retry_for_status: tuple[int, ...] = (429, 500, 502, 503, 504),
        **kwargs,
    ) -> aiohttp.ClientResponse:
        """Perform a request with retries; returns *aiohttp.ClientResponse*."""
        session = await self._ensure_session()
        kwargs["headers"] = self._merge_headers(kwargs.pop("headers", None))

        for attempt in range(1, self._max_retries + 1):
            try:
                resp = await session.request(method, url, **kwargs)
                if resp.status not in retry_for_status:
                    resp.raise_for_status()
                    return resp

                raise aiohttp.ClientResponseError(
                    resp.request_info,
                    resp.history,
                    status=resp.status,
                    message=f"retryable status {resp.status}",
                    headers=resp.headers,
                )
            except (aiohttp.ClientConnectionError, aiohttp.ClientResponseError) as e:
                retryable = not isinstance(e, aiohttp.ClientResponseError) or e.status in retry_for_status
                if attempt == self._max_retries or not retryable:
                    logger.error("HTTP %s %s failed after %d attempts: %s", method, url, attempt, e)
                    raise

                retry_after_hdr = (
                    e.headers.get("Retry-After")
                    if isinstance(e, aiohttp.ClientResponseError) and e.headers
                    else None
                )
                sleep_seconds = self._parse_retry_after(retry_after_hdr)
                if sleep_seconds is None:
                    exponential = min(self._base_delay * 2 ** (attempt - 1), self._max_delay)
                    sleep_seconds = exponential + random.uniform(0, self._base_delay)

                logger.warning(
                    "HTTP %s %s failed (attempt %d/%d – will retry in %.1fs): %s",
                    method,
                    url,
                    attempt,
                    self._max_retries,
                    sleep_seconds,
                    str(e).splitlines()[0],
                )
                await asyncio.sleep(sleep_seconds)

        raise RuntimeError("Unreachable retry loop")

    # ---------------------------------------------- #
    # Public helpers
    async def get_text(self, url: str, **kwargs) -> str:
        async with await self._request("GET", url, **kwargs) as resp:
            return await resp.text()

    async def get_json(self, url: str, **kwargs) -> Any:
        async with await self._request("GET", url, **kwargs) as resp:
            return await resp.json(content_type=None)

    async def post_json(self, url: str, data: Any, **kwargs) -> Any:
        kwargs["json"] = data
        async with await self._request("POST", url, **kwargs) as resp:
            return await resp.json(content_type=None)

    async def head_status(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Issue one HEAD request (redirects followed) and return its status.

        No retries and no raise on 4xx/5xx; network errors and timeouts
        propagate to the caller.
        """
        session = await self._ensure_session()
        async with session.head(
            url,
            headers=self._merge_headers(headers),
            allow_redirects=True,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            return resp.status
