# File: site_crawler/web.py
"""site_crawler.web: HTTP-точка входа: POST /crawl запускает обход в фоне."""

from __future__ import annotations

import asyncio
import json
from typing import Set

from aiohttp import web
from pydantic import ValidationError

from site_crawler.config import CrawlerConfig
from site_crawler.engine import start_crawl
from site_crawler.errors import MalformedSeedURL
from site_crawler.logger import logger
from site_crawler.utils import validate_seed_url

__all__ = ["CONFIG_KEY", "TASKS_KEY", "create_app", "run_server"]

CONFIG_KEY = web.AppKey("config", CrawlerConfig)
TASKS_KEY = web.AppKey("crawl_tasks", set)


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


async def _run_crawl(config: CrawlerConfig) -> None:
    try:
        report = await start_crawl(config)
    except Exception:
        logger.exception("Background crawl of %s failed", config.seed_url)
        return
    logger.info("Background crawl of %s finished: %d URL(s)", report.seed_url, len(report.visited))


async def handle_crawl(request: web.Request) -> web.Response:
    """Принимает JSON {"url": ...}, сразу отвечает 202 и обходит сайт в фоне."""
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        return _bad_request("request body must be JSON")
    if not isinstance(payload, dict) or not isinstance(payload.get("url"), str):
        return _bad_request("field 'url' is required")
    try:
        seed = validate_seed_url(payload["url"])
        config = request.app[CONFIG_KEY].with_overrides(seed_url=seed)
    except (MalformedSeedURL, ValidationError) as exc:
        return _bad_request(str(exc))

    # отвечаем тем адресом, который реально будет обойдён (после нормализации pydantic)
    target = str(config.seed_url)
    tasks: Set[asyncio.Task] = request.app[TASKS_KEY]
    task = asyncio.create_task(_run_crawl(config))
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    logger.info("Crawl requested: %s", target)
    return web.json_response({"status": "started", "url": target}, status=202)


async def _cancel_crawls(app: web.Application) -> None:
    tasks = list(app[TASKS_KEY])
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def create_app(config: CrawlerConfig) -> web.Application:
    app = web.Application()
    app[CONFIG_KEY] = config
    app[TASKS_KEY] = set()
    app.router.add_post("/crawl", handle_crawl)
    app.on_cleanup.append(_cancel_crawls)
    return app


def run_server(config: CrawlerConfig, host: str = "127.0.0.1", port: int = 8080) -> None:
    web.run_app(create_app(config), host=host, port=port, print=None)
