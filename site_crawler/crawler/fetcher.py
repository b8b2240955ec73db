"""
Fetcher module: issues GET requests with optional retry/backoff and reports the
outcome as a value instead of raising.
"""
from __future__ import annotations

import asyncio
from typing import Sequence

from aiohttp import ClientError, ClientSession

from site_crawler.crawler.models import FetchResult
from site_crawler.logger import get_logger

log = get_logger("fetcher")

RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)


class Fetcher:
    """Thin wrapper over an aiohttp session; the session owns headers and timeout."""

    def __init__(
        self,
        session: ClientSession,
        retry_times: int = 0,
        retry_status: Sequence[int] = RETRY_STATUS,
        backoff_base: float = 1.0,
    ) -> None:
        self.session = session
        self.retry_times = retry_times
        self._retry_status = retry_status
        self._backoff_base = backoff_base

    async def fetch(self, url: str) -> FetchResult:
        """
        GET *url*.

        Returns a FetchResult with ``status`` and ``body`` when the server
        answered, or with ``error`` set when the request could not complete
        (connection, DNS, timeout).  Never raises for network problems.
        """
        attempts = 0
        while True:
            try:
                async with self.session.get(url) as resp:
                    retryable = resp.status in self._retry_status and attempts < self.retry_times
                    if not retryable:
                        if 200 <= resp.status < 300:
                            body = await resp.text(errors="replace")
                            return FetchResult(url, status=resp.status, body=body, reason=resp.reason)
                        return FetchResult(url, status=resp.status, reason=resp.reason)
                    detail = f"HTTP {resp.status}"
            except asyncio.TimeoutError:
                detail = "request timed out"
                if attempts >= self.retry_times:
                    return FetchResult(url, error=detail)
            except ClientError as exc:
                detail = f"{type(exc).__name__}: {exc}"
                if attempts >= self.retry_times:
                    return FetchResult(url, error=detail)
            attempts += 1
            log.debug("Retry %d/%d for %s after %s", attempts, self.retry_times, url, detail)
            await self._backoff(attempts)

    async def _backoff(self, attempt: int) -> None:
        # exponential backoff, cap at 60s
        await asyncio.sleep(min(self._backoff_base * 2**attempt, 60))
