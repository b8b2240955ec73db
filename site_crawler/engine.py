# File: site_crawler/engine.py
"""site_crawler.engine: Слой оркестрации: сборка зависимостей и запуск обхода."""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from aiohttp import ClientSession, ClientTimeout

from site_crawler.config import CrawlerConfig, load_config
from site_crawler.crawler.crawler import CrawlScheduler
from site_crawler.crawler.fetcher import Fetcher
from site_crawler.crawler.models import CrawlReport, EventHook
from site_crawler.crawler.robots import RobotsPolicy, fetch_robots_document
from site_crawler.crawler.visited import VisitedSet
from site_crawler.errors import MalformedSeedURL
from site_crawler.logger import logger
from site_crawler.utils import validate_seed_url

__all__ = ["Engine", "build_session", "start_crawl"]


def build_session(config: CrawlerConfig) -> ClientSession:
    """HTTP-клиент с User-Agent и таймаутом на запрос из конфигурации."""
    return ClientSession(
        timeout=ClientTimeout(total=config.timeout),
        headers={"User-Agent": config.user_agent},
        raise_for_status=False,
    )


async def start_crawl(config: CrawlerConfig, *, on_event: Optional[EventHook] = None) -> CrawlReport:
    """
    Запускает полный обход от config.seed_url и возвращает сводку.

    Некорректный стартовый URL прерывает запуск до первого запроса
    (MalformedSeedURL). Ошибки отдельных страниц только логируются.
    """
    if config.seed_url is None:
        raise MalformedSeedURL("", "no seed URL configured")
    seed = validate_seed_url(str(config.seed_url))

    start = time.monotonic()
    async with build_session(config) as session:
        policy = RobotsPolicy.parse(await fetch_robots_document(session, seed))
        logger.debug("robots.txt agents: %s", policy.agents)
        visited = VisitedSet()
        scheduler = CrawlScheduler(
            config,
            policy,
            visited,
            Fetcher(session, retry_times=config.retry_times),
            on_event=on_event,
        )
        await scheduler.run(seed)
    duration = time.monotonic() - start

    logger.info("Завершено: %d URL за %.2f с", len(visited), duration)
    return CrawlReport(seed_url=seed, visited=sorted(visited.snapshot()), stats=scheduler.stats, duration=duration)


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и синхронный запуск обхода."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        """Загружает конфиг из YAML/JSON."""
        return load_config(path)

    def __init__(self, config: CrawlerConfig) -> None:
        self.config = config

    def start_crawl(self, crawl_timeout: Optional[float] = None) -> CrawlReport:
        """Запускает обход в новом event loop; crawl_timeout ограничивает весь обход."""
        logger.info("Starting crawl…")
        try:
            return asyncio.run(asyncio.wait_for(start_crawl(self.config), timeout=crawl_timeout))
        except asyncio.TimeoutError:
            logger.error("Crawl did not finish within %s seconds", crawl_timeout)
            raise
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise
