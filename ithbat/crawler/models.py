# ithbat/crawler/models.py
"""
Data models for the Ithbat crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional, Tuple

ProgressKind = Literal["discovered", "visiting", "found", "skipped", "error", "complete"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One hit returned by the search engine."""

    title: str
    link: str
    snippet: str
    domain: str


@dataclass(frozen=True, slots=True)
class CrawledPage:
    """A fetched and normalised page; owned by the session that produced it."""

    url: str
    title: str
    content: str
    links: Tuple[str, ...] = ()
    depth: int = 0
    source: str = ""
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.depth < 0:
            raise ValueError("depth must be >= 0")


@dataclass(frozen=True, slots=True)
class CrawlProgress:
    """Progress record yielded by :meth:`Crawler.events`."""

    kind: ProgressKind
    url: Optional[str] = None
    title: Optional[str] = None
    depth: Optional[int] = None
    page: Optional[CrawledPage] = None
    message: Optional[str] = None
