"""site_crawler.errors: Иерархия ошибок краулера."""

from __future__ import annotations

from typing import Optional

__all__ = ["CrawlerError", "MalformedSeedURL", "TransportFailure", "NonSuccessStatus"]


class CrawlerError(Exception):
    """Базовый класс всех ошибок SiteCrawler."""


class MalformedSeedURL(CrawlerError, ValueError):
    """Стартовый URL не разбирается или не является http(s)-адресом с хостом."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Malformed seed URL {url!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TransportFailure(CrawlerError):
    """Запрос не завершился: сеть, DNS, таймаут."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        self.detail = detail
        super().__init__(f"Error fetching {url}: {detail}")


class NonSuccessStatus(CrawlerError):
    """Сервер ответил, но статус не 2xx."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        text = f"{status} {reason}" if reason else str(status)
        super().__init__(f"Failed to fetch {url}: {text}")
