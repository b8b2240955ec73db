# site_crawler/crawler/robots.py
"""
Parser and checker for robots.txt rules.

Rules are kept per user-agent token as two ordered prefix lists.  Matching is
a literal prefix test and ``Allow`` always wins over ``Disallow``; there is no
longest-match resolution and no ``*``/``$`` wildcard support inside paths.

Parsing is deliberately permissive: ``User-agent`` lines only ever add to the
set of agents that subsequent ``Allow``/``Disallow`` lines apply to.  A file
with two blocks therefore applies the second block's rules to the agents of
the first block as well.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse, urlunparse

from aiohttp import ClientError, ClientSession

from site_crawler.logger import get_logger

__all__ = ("RuleSet", "RobotsPolicy", "robots_url_for", "fetch_robots_document")

log = get_logger("robots")

_Directive = Tuple[str, str]


@dataclass(slots=True)
class RuleSet:
    """Allow/disallow path prefixes for one user-agent, in document order."""

    allowed: List[str] = field(default_factory=list)
    disallowed: List[str] = field(default_factory=list)


class RobotsPolicy:
    """Per-agent rule sets parsed from a robots.txt document; read-only after parsing."""

    WILDCARD = "*"
    _FIELD_NAMES = {"user-agent": "User-agent", "allow": "Allow", "disallow": "Disallow"}

    def __init__(self, rules: Dict[str, RuleSet], directives: List[_Directive]) -> None:
        self._rules = rules
        self._directives = directives

    @classmethod
    def parse(cls, text: str) -> RobotsPolicy:
        """Parse robots.txt content; malformed lines are skipped, never raised."""
        rules: Dict[str, RuleSet] = {}
        directives: List[_Directive] = []
        active: List[str] = []
        for key, val in _prepare_lines(text):
            if key == "user-agent":
                agent = val.lower()
                active.append(agent)
                rules.setdefault(agent, RuleSet())
                directives.append((key, agent))
            elif key in ("allow", "disallow"):
                if not active:
                    continue
                for agent in active:
                    target = rules[agent].allowed if key == "allow" else rules[agent].disallowed
                    target.append(val)
                directives.append((key, val))
        log.debug("Parsed robots.txt: %d agent(s), %d directive(s)", len(rules), len(directives))
        return cls(rules, directives)

    @classmethod
    def allow_all(cls) -> RobotsPolicy:
        return cls({}, [])

    @property
    def agents(self) -> List[str]:
        return list(self._rules)

    def rules_for(self, user_agent: str) -> Optional[RuleSet]:
        """Rule set for the exact (lower-cased) agent, else the ``*`` group, else None."""
        found = self._rules.get(user_agent.lower())
        if found is None:
            found = self._rules.get(self.WILDCARD)
        return found

    def is_allowed(self, user_agent: str, path: str) -> bool:
        """Return True if *user_agent* may fetch *path*; unknown agents fail open."""
        rules = self.rules_for(user_agent)
        if rules is None:
            return True
        if any(path.startswith(prefix) for prefix in rules.allowed):
            return True
        if any(path.startswith(prefix) for prefix in rules.disallowed):
            return False
        return True

    def to_text(self) -> str:
        """Serialize the applied directives back into robots.txt form."""
        lines = [f"{self._FIELD_NAMES[key]}: {val}" for key, val in self._directives]
        return "\n".join(lines) + ("\n" if lines else "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RobotsPolicy):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f"<RobotsPolicy agents={self.agents!r}>"


def _prepare_lines(text: str) -> List[_Directive]:
    """Strip comments and split each line into a (field, value) pair."""
    lines: List[_Directive] = []
    # only "\n" and "\r\n" end a line; other Unicode breaks stay inside the value
    for raw in text.split("\n"):
        raw = raw.removesuffix("\r")
        line = raw.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, val = (part.strip() for part in line.split(":", 1))
        lines.append((key.lower(), val))
    return lines


def robots_url_for(base_url: str) -> str:
    parsed = urlparse(base_url)
    return urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))


async def fetch_robots_document(session: ClientSession, base_url: str) -> str:
    """
    Download ``{scheme}://{host}/robots.txt``.

    Any non-2xx answer or transport error yields an empty document, which
    parses into a policy that permits everything.
    """
    robots_url = robots_url_for(base_url)
    try:
        async with session.get(robots_url) as resp:
            if 200 <= resp.status < 300:
                return await resp.text()
            log.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
    except (ClientError, asyncio.TimeoutError, UnicodeDecodeError) as exc:
        log.warning("Error loading robots.txt %s: %s", robots_url, exc)
    return ""
