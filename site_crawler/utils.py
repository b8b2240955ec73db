# File: site_crawler/utils.py
"""site_crawler.utils: Утилитарные функции для разбора, проверки и канонизации URL."""

from __future__ import annotations

from typing import Optional, Sequence
from urllib.parse import quote, urlparse, urlunparse

from site_crawler.errors import MalformedSeedURL
from site_crawler.logger import logger

__all__: Sequence[str] = (
    "canonicalize_url",
    "validate_seed_url",
    "extract_domain",
    "same_domain",
    "url_path",
)

_HTTP_SCHEMES = ("http", "https")
# символы пути, которые HTTP-клиент передаёт без кодирования; "%" сохраняет готовые escape-последовательности
_PATH_SAFE = "/%:@!$&'()*+,;=~"


def _encode_path(path: str) -> str:
    """Процент-кодирует путь так же, как он уходит в запрос (не-ASCII -> UTF-8 %XX)."""
    return quote(path, safe=_PATH_SAFE)


def canonicalize_url(url: str) -> str:
    """Ключ дедупликации: схема и хост в нижнем регистре, процент-кодированный путь (пустой -> "/"), query, без фрагмента."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    path = _encode_path(parsed.path) or "/"
    return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ""))


def validate_seed_url(url: str) -> str:
    """Проверяет стартовый URL; при ошибке бросает MalformedSeedURL."""
    candidate = (url or "").strip()
    if not candidate:
        raise MalformedSeedURL(url, "empty URL")
    try:
        parsed = urlparse(candidate)
        # .port raises ValueError on a non-numeric or out-of-range port
        host, _port = parsed.hostname, parsed.port
    except ValueError as exc:
        raise MalformedSeedURL(url, str(exc)) from exc
    if parsed.scheme.lower() not in _HTTP_SCHEMES:
        raise MalformedSeedURL(url, f"unsupported scheme {parsed.scheme!r}")
    if not host:
        raise MalformedSeedURL(url, "missing host")
    logger.debug("Seed URL accepted: %s", candidate)
    return candidate


def extract_domain(url: str) -> Optional[str]:
    """Возвращает доменную часть URL (без порта, в нижнем регистре) или None."""
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def same_domain(url: str, other: str) -> bool:
    """Точное совпадение доменов; поддомены считаются другими доменами."""
    domain = extract_domain(url)
    return domain is not None and domain == extract_domain(other)


def url_path(url: str) -> str:
    """Путь URL для проверки по robots.txt; пустой путь считается "/"."""
    return _encode_path(urlparse(url).path) or "/"
