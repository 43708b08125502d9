# File: tests/conftest.py
import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

import pytest
import pytest_asyncio
from aiohttp import web

from ithbat.config import IthbatConfig, TraversalProfile
from ithbat.crawler.models import SearchResult
from ithbat.errors import SearchFailure
from ithbat.parser.html_parser import ParsedPage
from ithbat.utils import extract_domain


class StubSearch:
    """Search adapter returning canned results (or failing)."""

    def __init__(self, links: Sequence[str] = (), *, fail: bool = False) -> None:
        self.results = [
            SearchResult(title=f"Result {i}", link=link, snippet="", domain=extract_domain(link))
            for i, link in enumerate(links)
        ]
        self.fail = fail
        self.queries: List[str] = []

    async def search(self, query: str) -> List[SearchResult]:
        self.queries.append(query)
        if self.fail:
            raise SearchFailure("search engine unreachable")
        return list(self.results)


class StubFetcher:
    """Fetcher serving pages from a dict; unknown URLs fail like a 404."""

    def __init__(
        self,
        pages: Dict[str, ParsedPage],
        *,
        delay: float = 0.0,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.pages = pages
        self.delay = delay
        self.delays = delays or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_page(self, url: str) -> Optional[ParsedPage]:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(url, self.delay)
            if delay:
                await asyncio.sleep(delay)
            return self.pages.get(url)
        finally:
            self.in_flight -= 1


def make_page(url: str, text: str = "", links: Iterable[str] = (), title: str = "") -> ParsedPage:
    return ParsedPage(url=url, title=title or url, links=list(links), text=text)


@pytest.fixture()
def config() -> IthbatConfig:
    """Fast configuration for tests: no rate limiting, no retries."""
    return IthbatConfig(rate_limit=1000.0, retry_times=0, fetch_timeout=2.0, api_timeout=2.0, search_timeout=2.0)


@pytest.fixture()
def profile() -> TraversalProfile:
    return TraversalProfile(name="test", max_depth=1, max_pages=10, sources=10)


@pytest_asyncio.fixture
async def serve_app(unused_tcp_port_factory):
    """Start aiohttp apps on free ports; returns their base URL. Cleaned up after the test."""
    runners: List[web.AppRunner] = []

    async def _start(app: web.Application) -> str:
        port = unused_tcp_port_factory()
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        runners.append(runner)
        return f"http://localhost:{port}"

    yield _start
    for runner in runners:
        await runner.cleanup()


def static(text: str = "", content_type: str = "text/html", status: int = 200):
    """aiohttp handler always returning the same response."""

    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text=text, content_type=content_type, status=status)

    return handler
