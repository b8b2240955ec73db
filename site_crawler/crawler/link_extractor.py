"""
Link extraction for SiteCrawler.
"""
from __future__ import annotations

from typing import List
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

_SKIP_PREFIXES = ("mailto:", "javascript:", "tel:", "data:")


def extract_links(base_url: str, html: str) -> List[str]:
    """
    Return absolute HTTP(S) URLs of all ``<a href>`` targets in *html*.

    Relative references are resolved against *base_url* and fragments are
    dropped.  Hrefs that do not parse are skipped; malformed markup yields
    fewer links, never an error.
    Domain filtering is left to the caller.
    """
    soup = BeautifulSoup(html, "html.parser")
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.lower().startswith(_SKIP_PREFIXES):
            continue
        try:
            absolute = urldefrag(urljoin(base_url, raw)).url
            parsed = urlparse(absolute)
            # .port raises ValueError on a non-numeric or out-of-range port
            host, _port = parsed.hostname, parsed.port
        except ValueError:
            continue
        if parsed.scheme in ("http", "https") and host:
            links.append(absolute)
    return links
