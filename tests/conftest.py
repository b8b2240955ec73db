# File: tests/conftest.py
import asyncio
from collections.abc import AsyncIterator
from typing import Dict, List, Union

import pytest
from aiohttp import web

from site_crawler.config import CrawlerConfig
from site_crawler.crawler.models import FetchResult


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


class FakeFetcher:
    """
    In-memory site for scheduler tests.

    *pages* maps a URL to an HTML body or a ready FetchResult; unknown URLs
    answer 404.  Tracks how many fetches run at the same time.
    """

    def __init__(self, pages: Dict[str, Union[str, FetchResult]], delay: float = 0.0) -> None:
        self.pages = pages
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            page = self.pages.get(url)
            if page is None:
                return FetchResult(url, status=404, reason="Not Found")
            if isinstance(page, FetchResult):
                return page
            return FetchResult(url, status=200, body=page)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def make_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture()
def basic_config() -> CrawlerConfig:
    """
    Return a basic valid CrawlerConfig for scheduler tests.
    """
    return CrawlerConfig(
        seed_url="https://example.com/",
        max_depth=3,
        max_concurrency=10,
        timeout=2.0,
        user_agent="TestAgent/1.0",
    )


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture()
def serve():
    """Expose :func:`serve_app` to test modules."""
    return serve_app
