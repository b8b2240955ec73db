# File: tests/test_crawler.py
# Test-suite for the SiteCrawler scheduler and the engine that wires it up
from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web

from site_crawler.config import CrawlerConfig
from site_crawler.crawler.crawler import CrawlScheduler
from site_crawler.crawler.models import CrawlEvent, CrawlReport, FetchResult, Outcome, VisitState
from site_crawler.crawler.robots import RobotsPolicy
from site_crawler.crawler.visited import VisitedSet
from site_crawler.engine import Engine, start_crawl
from site_crawler.errors import MalformedSeedURL

ROOT = "https://example.com/"

#: number of seconds a “slow” handler sleeps in the concurrency test
SLOW_SLEEP: float = 0.5
#: number of pages created by the stress fixture / test (root + pages 1…200)
STRESS_PAGES: int = 201


class CountingVisitedSet(VisitedSet):
    """VisitedSet that remembers how often each URL was successfully claimed."""

    def __init__(self) -> None:
        super().__init__()
        self.claims: Counter[str] = Counter()

    def try_visit(self, url: str) -> bool:
        claimed = super().try_visit(url)
        if claimed:
            self.claims[url] += 1
        return claimed


def links(*hrefs: str) -> str:
    return "".join(f'<a href="{h}">{h}</a>' for h in hrefs)


def make_scheduler(config, fetcher, robots: str = "", **kwargs) -> CrawlScheduler:
    visited = kwargs.pop("visited", None)
    if visited is None:
        visited = VisitedSet()
    return CrawlScheduler(config, RobotsPolicy.parse(robots), visited, fetcher, **kwargs)


# --------------------------------------------------------------------------- #
#                       Scheduler with an in-memory site                      #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_end_to_end_policy_and_domain_filter(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {
            ROOT: links("/a", "/admin/x", "https://other.com/y"),
            "https://example.com/a": "<p>leaf</p>",
        }
    )
    scheduler = make_scheduler(basic_config, fetcher, "User-agent: *\nDisallow: /admin")

    await scheduler.run(ROOT)

    assert scheduler.visited.snapshot() == {"https://example.com/", "https://example.com/a"}
    assert sorted(fetcher.calls) == ["https://example.com/", "https://example.com/a"]
    assert scheduler.stats.fetched == 2
    assert scheduler.stats.policy_denied == 1


@pytest.mark.asyncio()
async def test_robots_rules_match_encoded_paths(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {
            ROOT: links("/café", "/caf%C3%A9", "/menu"),
            "https://example.com/menu": links("/menu%20list", "/menu list"),
        }
    )
    scheduler = make_scheduler(basic_config, fetcher, "User-agent: *\nDisallow: /caf%C3%A9\n")

    await scheduler.run(ROOT)

    assert sorted(fetcher.calls) == [ROOT, "https://example.com/menu", "https://example.com/menu%20list"]
    assert scheduler.stats.policy_denied == 2
    assert scheduler.visited.snapshot() == {
        ROOT,
        "https://example.com/menu",
        "https://example.com/menu%20list",
    }


@pytest.mark.asyncio()
async def test_depth_beyond_maximum_does_nothing(basic_config, make_fetcher):
    fetcher = make_fetcher({ROOT: links("/a")})
    scheduler = make_scheduler(basic_config, fetcher)

    await scheduler.crawl(ROOT, basic_config.max_depth + 1)

    assert fetcher.calls == []
    assert len(scheduler.visited) == 0
    assert scheduler.stats.too_deep == 1


@pytest.mark.asyncio()
async def test_depth_limit_stops_children(basic_config, make_fetcher):
    config = basic_config.with_overrides(max_depth=1)
    fetcher = make_fetcher(
        {
            ROOT: links("/level1"),
            "https://example.com/level1": links("/level2"),
            "https://example.com/level2": links("/level3"),
        }
    )
    scheduler = make_scheduler(config, fetcher)

    await scheduler.run(ROOT)

    assert fetcher.calls == [ROOT, "https://example.com/level1"]
    assert scheduler.stats.too_deep == 1


@pytest.mark.asyncio()
async def test_duplicate_links_are_claimed_once(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {
            ROOT: links("/a", "/b", "/a#top", "/a"),
            "https://example.com/a": links("/c", "/"),
            "https://example.com/b": links("/c", "/a"),
            "https://example.com/c": links("/a", "/b"),
        },
        delay=0.01,
    )
    visited = CountingVisitedSet()
    scheduler = make_scheduler(basic_config, fetcher, visited=visited)

    await scheduler.run(ROOT)

    assert set(visited.claims.values()) == {1}
    assert set(visited.claims) == {ROOT, "https://example.com/a", "https://example.com/b", "https://example.com/c"}
    assert sorted(Counter(fetcher.calls).values()) == [1, 1, 1, 1]
    assert scheduler.stats.already_visited > 0


@pytest.mark.asyncio()
async def test_concurrency_limit_is_never_exceeded(basic_config, make_fetcher):
    limit = 3
    config = basic_config.with_overrides(max_concurrency=limit, max_depth=2)
    pages = {ROOT: links(*(f"/p{i}" for i in range(30)))}
    for i in range(30):
        pages[f"https://example.com/p{i}"] = links(f"/p{i}/child")
    fetcher = make_fetcher(pages, delay=0.01)
    scheduler = make_scheduler(config, fetcher)

    await scheduler.run(ROOT)

    assert fetcher.max_in_flight <= limit
    assert scheduler.stats.max_in_flight <= limit
    assert fetcher.max_in_flight == limit
    assert len(fetcher.calls) == 61


@pytest.mark.asyncio()
async def test_failures_do_not_stop_siblings(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {
            ROOT: links("/broken", "/missing", "/ok"),
            "https://example.com/broken": FetchResult("https://example.com/broken", error="connection reset"),
            "https://example.com/missing": FetchResult(
                "https://example.com/missing", status=500, reason="Internal Server Error"
            ),
            "https://example.com/ok": links("/ok2"),
            "https://example.com/ok2": "<p>done</p>",
        }
    )
    scheduler = make_scheduler(basic_config, fetcher)

    await scheduler.run(ROOT)

    assert "https://example.com/ok2" in fetcher.calls
    assert scheduler.stats.transport_failure == 1
    assert scheduler.stats.non_success_status == 1
    assert scheduler.stats.fetched == 3


@pytest.mark.asyncio()
async def test_subdomains_are_other_domains(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {ROOT: links("https://blog.example.com/post", "https://EXAMPLE.com/upper", "http://example.com/plain")}
    )
    scheduler = make_scheduler(basic_config, fetcher)

    await scheduler.run(ROOT)

    assert "https://blog.example.com/post" not in fetcher.calls
    assert "https://EXAMPLE.com/upper" in fetcher.calls
    assert "http://example.com/plain" in fetcher.calls


@pytest.mark.asyncio()
async def test_permit_released_when_extractor_fails(basic_config, make_fetcher):
    config = basic_config.with_overrides(max_concurrency=1)
    fetcher = make_fetcher(
        {
            ROOT: links("/boom", "/next"),
            "https://example.com/boom": "<p>boom</p>",
            "https://example.com/next": "<p>next</p>",
        }
    )

    def extractor(base_url: str, html: str):
        if base_url.endswith("/boom"):
            raise RuntimeError("parser exploded")
        return [f"https://example.com{h}" for h in ("/boom", "/next")] if base_url == ROOT else []

    scheduler = make_scheduler(config, fetcher, extractor=extractor)

    await asyncio.wait_for(scheduler.run(ROOT), timeout=5)

    assert "https://example.com/next" in fetcher.calls
    assert scheduler.stats.unexpected_error == 1
    assert scheduler.in_flight == 0


@pytest.mark.asyncio()
async def test_stop_lets_in_flight_fetch_finish(basic_config, make_fetcher):
    fetcher = make_fetcher({ROOT: links("/a", "/b")}, delay=0.05)
    scheduler: CrawlScheduler

    def on_event(event: CrawlEvent) -> None:
        if event.state is VisitState.FETCHING and event.outcome is None:
            scheduler.stop()

    scheduler = make_scheduler(basic_config, fetcher, on_event=on_event)

    await scheduler.run(ROOT)

    assert scheduler.stopped
    assert fetcher.calls == [ROOT]
    assert scheduler.stats.fetched == 1


@pytest.mark.asyncio()
async def test_events_follow_the_state_machine(basic_config, make_fetcher):
    fetcher = make_fetcher({ROOT: "<p>leaf</p>"})
    events: list[CrawlEvent] = []
    scheduler = make_scheduler(basic_config, fetcher, on_event=events.append)

    await scheduler.run(ROOT)

    assert [e.state for e in events] == [
        VisitState.SUBMITTED,
        VisitState.DEPTH_CHECKED,
        VisitState.POLICY_CHECKED,
        VisitState.DEDUP_CHECKED,
        VisitState.PERMIT_ACQUIRED,
        VisitState.FETCHING,
        VisitState.LINKS_EXTRACTED,
        VisitState.DONE,
    ]
    assert events[-1].outcome is Outcome.FETCHED


@pytest.mark.asyncio()
async def test_failing_event_hook_does_not_abort_crawl(basic_config, make_fetcher):
    fetcher = make_fetcher(
        {
            ROOT: links("/a", "/b"),
            "https://example.com/a": "<p>leaf</p>",
            "https://example.com/b": links("/c"),
            "https://example.com/c": "<p>leaf</p>",
        },
        delay=0.01,
    )

    def on_event(event: CrawlEvent) -> None:
        if event.state in (VisitState.DONE, VisitState.CHILDREN_SCHEDULED) and event.url.endswith("/a"):
            raise RuntimeError("hook")
        if event.state is VisitState.CHILDREN_SCHEDULED and event.url == ROOT:
            raise RuntimeError("hook")

    scheduler = make_scheduler(basic_config, fetcher, on_event=on_event)

    await asyncio.wait_for(scheduler.run(ROOT), timeout=5)

    assert sorted(fetcher.calls) == [
        ROOT,
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c",
    ]
    assert scheduler.stats.fetched == 4


@pytest.mark.asyncio()
async def test_malformed_seed_aborts_before_fetching(basic_config, make_fetcher):
    fetcher = make_fetcher({})
    scheduler = make_scheduler(basic_config, fetcher)

    with pytest.raises(MalformedSeedURL):
        await scheduler.run("ftp://example.com/")
    with pytest.raises(MalformedSeedURL):
        await scheduler.run("not a url")

    assert fetcher.calls == []


# --------------------------------------------------------------------------- #
#                         Engine against a live server                        #
# --------------------------------------------------------------------------- #


def live_config(base: str, **overrides) -> CrawlerConfig:
    data = dict(seed_url=base, max_depth=3, max_concurrency=10, timeout=2.0, user_agent="TestAgent/1.0")
    data.update(overrides)
    return CrawlerConfig(**data)


@pytest_asyncio.fixture
async def test_server_chain(unused_tcp_port: int, serve) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_root(_):
        return web.Response(text='<a href="/page1">Page1</a>', content_type="text/html")

    async def handle_page1(_):
        return web.Response(text='<a href="/page2">Page2</a><a href="/page1">Self</a>', content_type="text/html")

    async def handle_page2(_):
        return web.Response(text='<a href="/page3">Page3</a>', content_type="text/html")

    async def handle_page3(_):
        await asyncio.sleep(3)
        return web.Response(text="<h1>Page3 (slow)</h1>", content_type="text/html")

    app.router.add_get("/", handle_root)
    app.router.add_get("/page1", handle_page1)
    app.router.add_get("/page2", handle_page2)
    app.router.add_get("/page3", handle_page3)

    async for url in serve(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def test_server_block_page1(unused_tcp_port: int, serve) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_root(_):
        return web.Response(text='<a href="/page1">Page1</a><a href="/page2">Page2</a>', content_type="text/html")

    async def handle_page(_):
        return web.Response(text="<html><body>Page</body></html>", content_type="text/html")

    async def handle_robots(_):
        return web.Response(text="User-agent: TestAgent/1.0\nDisallow: /page1", content_type="text/plain")

    app.router.add_get("/", handle_root)
    app.router.add_get("/page1", handle_page)
    app.router.add_get("/page2", handle_page)
    app.router.add_get("/robots.txt", handle_robots)

    async for url in serve(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def test_server_large(unused_tcp_port: int, serve) -> AsyncIterator[str]:
    app = web.Application()
    body = "".join(f'<a href="/page{i}">Page{i}</a>' for i in range(1, STRESS_PAGES))

    async def handle_root(_):
        return web.Response(text=body, content_type="text/html")

    async def handle_page(_):
        return web.Response(text="<h1>Page</h1>", content_type="text/html")

    app.router.add_get("/", handle_root)
    for i in range(1, STRESS_PAGES):
        app.router.add_get(f"/page{i}", handle_page)

    async for url in serve(app, unused_tcp_port):
        yield url


@pytest.mark.asyncio()
async def test_basic_crawl_with_slow_page_timing_out(test_server_chain: str):
    report = await start_crawl(live_config(test_server_chain, timeout=1.0))

    base = test_server_chain
    assert report.visited == sorted([f"{base}/", f"{base}/page1", f"{base}/page2", f"{base}/page3"])
    assert report.stats.fetched == 3
    assert report.stats.transport_failure == 1
    assert report.stats.already_visited == 1


@pytest.mark.asyncio()
async def test_depth_limit_live(test_server_chain: str):
    report = await start_crawl(live_config(test_server_chain, max_depth=0))
    assert report.visited == [f"{test_server_chain}/"]
    assert report.stats.too_deep == 1


@pytest.mark.asyncio()
async def test_respect_robots(test_server_block_page1: str):
    report = await start_crawl(live_config(test_server_block_page1, max_depth=1))

    assert f"{test_server_block_page1}/page2" in report.visited
    assert f"{test_server_block_page1}/page1" not in report.visited
    assert report.stats.policy_denied == 1


@pytest.mark.asyncio()
async def test_other_agents_ignore_foreign_rules(test_server_block_page1: str):
    report = await start_crawl(live_config(test_server_block_page1, max_depth=1, user_agent="OtherAgent"))
    assert f"{test_server_block_page1}/page1" in report.visited


@pytest.mark.asyncio()
async def test_crawler_handles_404(unused_tcp_port: int, serve):
    app = web.Application()

    async def handle_root(_):
        return web.Response(text='<a href="/missing">Broken Link</a>', content_type="text/html")

    app.router.add_get("/", handle_root)

    async for base in serve(app, unused_tcp_port):
        report = await start_crawl(live_config(base, max_depth=1))

    assert report.stats.fetched == 1
    assert report.stats.non_success_status == 1


@pytest.mark.asyncio()
async def test_pages_fetched_concurrently(unused_tcp_port: int, serve):
    app = web.Application()

    async def slow(_):
        await asyncio.sleep(SLOW_SLEEP)
        return web.Response(text="<h1>Slow</h1>", content_type="text/html")

    async def root(_):
        return web.Response(text='<a href="/slow1">S1</a><a href="/slow2">S2</a>', content_type="text/html")

    app.router.add_get("/", root)
    app.router.add_get("/slow1", slow)
    app.router.add_get("/slow2", slow)

    async for base in serve(app, unused_tcp_port):
        start = time.perf_counter()
        parallel = await start_crawl(live_config(base, max_depth=1, max_concurrency=2, timeout=5.0))
        parallel_elapsed = time.perf_counter() - start

        start = time.perf_counter()
        serial = await start_crawl(live_config(base, max_depth=1, max_concurrency=1, timeout=5.0))
        serial_elapsed = time.perf_counter() - start

    assert parallel.stats.fetched == serial.stats.fetched == 3
    assert parallel_elapsed < SLOW_SLEEP * 1.8
    assert serial_elapsed >= SLOW_SLEEP * 2


@pytest.mark.asyncio()
@pytest.mark.slow()
async def test_stress_crawl(test_server_large: str):
    report = await asyncio.wait_for(
        start_crawl(live_config(test_server_large, max_depth=1, max_concurrency=20)), timeout=30
    )
    assert len(report.visited) == STRESS_PAGES
    assert report.stats.fetched == STRESS_PAGES
    assert report.stats.max_in_flight <= 20


@pytest.mark.asyncio()
async def test_start_crawl_requires_seed():
    with pytest.raises(MalformedSeedURL):
        await start_crawl(CrawlerConfig())


def test_engine_runs_synchronously(monkeypatch):
    async def fake_start_crawl(config):
        return CrawlReport(seed_url=str(config.seed_url), visited=[str(config.seed_url)])

    monkeypatch.setattr("site_crawler.engine.start_crawl", fake_start_crawl)
    report = Engine(CrawlerConfig(seed_url="https://example.com/")).start_crawl()
    assert report.visited == ["https://example.com/"]
