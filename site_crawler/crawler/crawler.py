# === FILE: site_crawler/crawler/crawler.py ===
"""
Recursive, bounded-concurrency crawl scheduler.

Every (url, depth) pair is processed by its own asyncio task.  A unit walks
through the states of :class:`~site_crawler.crawler.models.VisitState`; any
failed check ends it early in ``DONE``.  Fetch and link extraction run while
holding one permit of a shared semaphore, so no more than
``max_concurrency`` of them are ever in progress.  Children found on a page
are spawned as new tasks after the permit is released, and ``crawl`` returns
only once its whole subtree has finished.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

from site_crawler.config import CrawlerConfig
from site_crawler.crawler.link_extractor import extract_links
from site_crawler.crawler.models import (
    CrawlEvent,
    CrawlStats,
    EventHook,
    LinkExtractor,
    Outcome,
    PageFetcher,
    VisitState,
)
from site_crawler.crawler.robots import RobotsPolicy
from site_crawler.crawler.visited import VisitedSet
from site_crawler.errors import NonSuccessStatus, TransportFailure
from site_crawler.logger import get_logger
from site_crawler.utils import canonicalize_url, same_domain, url_path, validate_seed_url

__all__ = ("CrawlScheduler",)

log = get_logger("crawler")

_Visit = Tuple[Outcome, List[str]]


class CrawlScheduler:
    """Drives one crawl run: depth limit, dedup, robots policy, permit pool, fan-out."""

    def __init__(
        self,
        config: CrawlerConfig,
        policy: RobotsPolicy,
        visited: VisitedSet,
        fetcher: PageFetcher,
        extractor: LinkExtractor = extract_links,
        on_event: Optional[EventHook] = None,
    ) -> None:
        self.max_depth = config.max_depth
        self.max_concurrency = config.max_concurrency
        self.user_agent = config.user_agent
        self.policy = policy
        self.visited = visited
        self.fetcher = fetcher
        self.extractor = extractor
        self.stats = CrawlStats()
        self._on_event = on_event
        self._permits = asyncio.Semaphore(config.max_concurrency)
        self._in_flight = 0
        self._stopped = asyncio.Event()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    async def run(self, seed_url: str) -> None:
        """Validate *seed_url* (MalformedSeedURL on failure) and crawl from depth 0."""
        seed = validate_seed_url(seed_url)
        log.info("Crawl started: %s (max depth %d, concurrency %d)", seed, self.max_depth, self.max_concurrency)
        await self.crawl(seed, 0)
        log.info(
            "Crawl finished: %d fetched, %d denied by robots.txt, %d failed",
            self.stats.fetched,
            self.stats.policy_denied,
            self.stats.non_success_status + self.stats.transport_failure,
        )

    async def crawl(self, url: str, depth: int = 0) -> None:
        """Process one unit and wait for every child it spawns. Never raises for page errors."""
        try:
            outcome, children = await self._visit(url, depth)
        except Exception as exc:
            # a collaborator broke its contract; keep the failure local to this unit
            log.exception("Unexpected error while crawling %s: %s", url, exc)
            outcome, children = Outcome.UNEXPECTED_ERROR, []

        if children and not self._check_stop(url):
            tasks = [asyncio.create_task(self.crawl(child, depth + 1)) for child in children]
            self._emit(url, depth, VisitState.CHILDREN_SCHEDULED, detail=f"{len(tasks)} link(s)")
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for child, result in zip(children, results):
                if isinstance(result, BaseException):
                    log.error("Crawl of %s ended abnormally: %r", child, result)

        self.stats.record(outcome)
        self._emit(url, depth, VisitState.DONE, outcome)

    def stop(self) -> None:
        """Stop taking new permits and scheduling children; in-flight fetches finish."""
        if not self._stopped.is_set():
            log.info("Stop requested")
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    # ------------------------------------------------------------------ #
    # State machine                                                      #
    # ------------------------------------------------------------------ #

    async def _visit(self, url: str, depth: int) -> _Visit:
        self._emit(url, depth, VisitState.SUBMITTED)
        if self._check_stop(url):
            return Outcome.STOPPED, []

        if depth > self.max_depth:
            log.debug("Too deep (%d > %d): %s", depth, self.max_depth, url)
            return Outcome.TOO_DEEP, []
        self._emit(url, depth, VisitState.DEPTH_CHECKED)

        # policy is read-only, so checking it first keeps excluded URLs out of the visited set
        if not self.policy.is_allowed(self.user_agent, url_path(url)):
            log.info("Disallowed by robots.txt: %s", url)
            return Outcome.POLICY_DENIED, []
        self._emit(url, depth, VisitState.POLICY_CHECKED)

        if not self.visited.try_visit(canonicalize_url(url)):
            log.debug("Already visited: %s", url)
            return Outcome.ALREADY_VISITED, []
        self._emit(url, depth, VisitState.DEDUP_CHECKED)
        if self._check_stop(url):
            return Outcome.STOPPED, []

        async with self._permits:
            if self._check_stop(url):
                return Outcome.STOPPED, []
            self._emit(url, depth, VisitState.PERMIT_ACQUIRED)
            self._in_flight += 1
            self.stats.max_in_flight = max(self.stats.max_in_flight, self._in_flight)
            try:
                return await self._fetch_and_extract(url, depth)
            finally:
                self._in_flight -= 1

    async def _fetch_and_extract(self, url: str, depth: int) -> _Visit:
        self._emit(url, depth, VisitState.FETCHING)
        result = await self.fetcher.fetch(url)

        if result.error is not None:
            failure = TransportFailure(url, result.error)
            log.error("%s", failure)
            self._emit(url, depth, VisitState.FETCHING, Outcome.TRANSPORT_FAILURE, str(failure))
            return Outcome.TRANSPORT_FAILURE, []
        if not result.ok:
            status = NonSuccessStatus(url, result.status or 0, result.reason)
            log.warning("%s", status)
            self._emit(url, depth, VisitState.FETCHING, Outcome.NON_SUCCESS_STATUS, str(status))
            return Outcome.NON_SUCCESS_STATUS, []

        log.info("Fetched: %s", url)
        links = self.extractor(url, result.body)
        children = [link for link in links if same_domain(link, url)]
        self._emit(url, depth, VisitState.LINKS_EXTRACTED, detail=f"{len(children)}/{len(links)} same-domain")
        return Outcome.FETCHED, children

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _check_stop(self, url: str) -> bool:
        if self._stopped.is_set():
            log.debug("Crawl stopped, skipping %s", url)
            return True
        return False

    def _emit(
        self,
        url: str,
        depth: int,
        state: VisitState,
        outcome: Optional[Outcome] = None,
        detail: Optional[str] = None,
    ) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(CrawlEvent(url, depth, state, outcome, detail))
        except Exception:
            # a broken observer must not abort the traversal
            log.exception("Event hook failed on %s (%s)", url, state.value)
