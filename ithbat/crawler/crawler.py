# ithbat/crawler/crawler.py
"""
Bounded breadth-first crawl over trusted reference sites.

A session runs ``IDLE → SEARCHING → EXPANDING → DONE`` (or ``ERROR`` when the
search call fails). Search results seed the frontier at depth 0; every fetched
page is emitted as soon as it arrives, so consumers can stream progress.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from enum import Enum
from typing import AsyncIterator, Deque, List, Optional, Protocol, Set, Tuple

from ithbat.config import TraversalProfile
from ithbat.crawler.link_extractor import filter_links
from ithbat.crawler.models import CrawledPage, CrawlProgress, SearchResult
from ithbat.errors import SearchFailure
from ithbat.logger import logger
from ithbat.parser.html_parser import ParsedPage
from ithbat.registry import REGISTRY, TrustedDomainRegistry
from ithbat.utils import normalize_url

__all__ = ("CrawlState", "Crawler", "SupportsSearch", "SupportsFetchPage")


class SupportsSearch(Protocol):
    async def search(self, query: str) -> List[SearchResult]: ...


class SupportsFetchPage(Protocol):
    async def fetch_page(self, url: str) -> Optional[ParsedPage]: ...


class CrawlState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    EXPANDING = "expanding"
    DONE = "done"
    ERROR = "error"


class Crawler:
    """One crawl session. Create a new instance per query."""

    def __init__(
        self,
        search: SupportsSearch,
        fetcher: SupportsFetchPage,
        profile: TraversalProfile,
        *,
        concurrency: int = 4,
        trusted_only: bool = True,
        registry: Optional[TrustedDomainRegistry] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.search = search
        self.fetcher = fetcher
        self.profile = profile
        self.concurrency = concurrency
        self.trusted_only = trusted_only
        self.registry = registry or REGISTRY
        self.cancel_event = cancel_event or asyncio.Event()

        self.state = CrawlState.IDLE
        self.visited: Set[str] = set()
        self.pages: List[CrawledPage] = []
        self.error: Optional[SearchFailure] = None
        self._seen: Set[str] = set()
        self._frontier: Deque[Tuple[str, int]] = deque()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dequeuing and starting fetches; in-flight fetches finish."""
        self.cancel_event.set()

    async def crawl(self, query: str) -> List[CrawledPage]:
        """Run the session to completion and return the pages in arrival order.

        Raises :class:`SearchFailure` if the search step failed.
        """
        async for _ in self.events(query):
            pass
        if self.error is not None:
            raise self.error
        return list(self.pages)

    async def events(self, query: str) -> AsyncIterator[CrawlProgress]:
        """Run the session, yielding progress as it happens."""
        if self.state is not CrawlState.IDLE:
            raise RuntimeError("a Crawler instance runs a single session")
        started = time.monotonic()

        self.state = CrawlState.SEARCHING
        try:
            results = await self.search.search(query)
        except SearchFailure as exc:
            self.state = CrawlState.ERROR
            self.error = exc
            logger.error("Search failed: %s", exc)
            yield CrawlProgress("error", message=str(exc))
            return

        for progress in self._seed(results):
            yield progress

        self.state = CrawlState.EXPANDING
        async for progress in self._expand():
            yield progress

        self.state = CrawlState.DONE
        elapsed = time.monotonic() - started
        logger.info(
            "Crawl finished: %d pages, %d visited in %.2f s%s",
            len(self.pages),
            len(self.visited),
            elapsed,
            " (cancelled)" if self.cancelled else "",
        )
        yield CrawlProgress(
            "complete",
            message="cancelled" if self.cancelled else f"{len(self.pages)} pages",
        )

    # ------------------------------------------------------------------ #

    def _seed(self, results: List[SearchResult]) -> List[CrawlProgress]:
        progress: List[CrawlProgress] = []
        seeded = 0
        for result in results:
            if seeded >= self.profile.sources:
                break
            url = normalize_url(result.link)
            if url in self._seen:
                continue
            if self.trusted_only and not self.registry.is_trusted(url):
                logger.debug("Skipping untrusted search result %s", url)
                progress.append(CrawlProgress("skipped", url=url, title=result.title, message="untrusted domain"))
                continue
            self._seen.add(url)
            self._frontier.append((url, 0))
            seeded += 1
            progress.append(CrawlProgress("discovered", url=url, title=result.title, depth=0))
        logger.info("Seeded %d of %d search results", seeded, len(results))
        return progress

    def _next_batch(self) -> List[Tuple[str, int]]:
        room = min(self.concurrency, self.profile.max_pages - len(self.pages))
        batch: List[Tuple[str, int]] = []
        while self._frontier and len(batch) < room and not self.cancelled:
            url, depth = self._frontier.popleft()
            if url in self.visited:
                continue
            self.visited.add(url)
            batch.append((url, depth))
        return batch

    async def _visit(self, url: str, depth: int) -> Tuple[str, int, Optional[ParsedPage]]:
        if self.cancelled:
            return url, depth, None
        return url, depth, await self.fetcher.fetch_page(url)

    async def _expand(self) -> AsyncIterator[CrawlProgress]:
        while self._frontier and len(self.pages) < self.profile.max_pages and not self.cancelled:
            batch = self._next_batch()
            if not batch:
                break
            for url, depth in batch:
                yield CrawlProgress("visiting", url=url, depth=depth)

            tasks = [asyncio.create_task(self._visit(url, depth)) for url, depth in batch]
            try:
                for fut in asyncio.as_completed(tasks):
                    url, depth, parsed = await fut
                    if parsed is None:
                        reason = "cancelled" if self.cancelled else "fetch failed"
                        yield CrawlProgress("skipped", url=url, depth=depth, message=reason)
                        continue
                    page = self._accept(parsed, depth)
                    yield CrawlProgress("found", url=page.url, title=page.title, depth=depth, page=page)
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()

    def _accept(self, parsed: ParsedPage, depth: int) -> CrawledPage:
        links = filter_links(parsed.links, trusted_only=self.trusted_only, registry=self.registry)
        page = CrawledPage(
            url=parsed.url,
            title=parsed.title or parsed.url,
            content=parsed.text,
            links=tuple(links),
            depth=depth,
            source=self.registry.source_label(parsed.url),
        )
        self.pages.append(page)
        if depth < self.profile.max_depth:
            added = 0
            for link in links:
                if link not in self._seen:
                    self._seen.add(link)
                    self._frontier.append((link, depth + 1))
                    added += 1
            logger.debug("Queued %d links from %s", added, parsed.url)
        return page
