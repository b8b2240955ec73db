"""
Data models for the SiteCrawler crawler.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence


@dataclass(slots=True)
class FetchResult:
    """Outcome of one GET: a status and body, or a transport error description."""

    url: str
    status: Optional[int] = None
    body: str = ""
    error: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status is not None and 200 <= self.status < 300


class PageFetcher(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...


LinkExtractor = Callable[[str, str], Sequence[str]]


class VisitState(str, enum.Enum):
    """Life cycle of one (url, depth) unit of traversal work."""

    SUBMITTED = "submitted"
    DEPTH_CHECKED = "depth_checked"
    POLICY_CHECKED = "policy_checked"
    DEDUP_CHECKED = "dedup_checked"
    PERMIT_ACQUIRED = "permit_acquired"
    FETCHING = "fetching"
    LINKS_EXTRACTED = "links_extracted"
    CHILDREN_SCHEDULED = "children_scheduled"
    DONE = "done"


class Outcome(str, enum.Enum):
    """Why a unit reached DONE."""

    FETCHED = "fetched"
    TOO_DEEP = "too_deep"
    ALREADY_VISITED = "already_visited"
    POLICY_DENIED = "policy_denied"
    NON_SUCCESS_STATUS = "non_success_status"
    TRANSPORT_FAILURE = "transport_failure"
    STOPPED = "stopped"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(slots=True, frozen=True)
class CrawlEvent:
    """Reported for every state transition of a unit."""

    url: str
    depth: int
    state: VisitState
    outcome: Optional[Outcome] = None
    detail: Optional[str] = None


EventHook = Callable[[CrawlEvent], None]


@dataclass(slots=True)
class CrawlStats:
    """Counters accumulated by the scheduler over one run."""

    fetched: int = 0
    too_deep: int = 0
    already_visited: int = 0
    policy_denied: int = 0
    non_success_status: int = 0
    transport_failure: int = 0
    stopped: int = 0
    unexpected_error: int = 0
    max_in_flight: int = 0

    def record(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


@dataclass(slots=True)
class CrawlReport:
    """Summary returned by the engine once the traversal is exhausted."""

    seed_url: str
    visited: List[str] = field(default_factory=list)
    stats: CrawlStats = field(default_factory=CrawlStats)
    duration: float = 0.0
