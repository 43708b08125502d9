# ithbat/crawler/search.py
"""
Search adapter: one query in, at most ten :class:`SearchResult` out.

The DuckDuckGo HTML endpoint is used because it needs no API key. A topical
hint is appended to every query to pull results towards reference sites; it
is a nudge, not a filter.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from aiohttp import ClientError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from ithbat.config import IthbatConfig
from ithbat.crawler.models import SearchResult
from ithbat.errors import SearchFailure
from ithbat.logger import logger
from ithbat.utils import extract_domain, is_http_url

__all__ = ["MAX_RESULTS", "SearchAdapter", "parse_results", "decode_redirect"]

MAX_RESULTS = 10


def decode_redirect(href: str) -> str:
    """Resolve ``//duckduckgo.com/l/?uddg=<target>`` links to the target URL."""
    absolute = urljoin("https://duckduckgo.com/", href)
    parsed = urlparse(absolute)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return absolute


def parse_results(html: str, limit: int = MAX_RESULTS) -> List[SearchResult]:
    """Extract results from a DuckDuckGo HTML result page."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[SearchResult] = []
    seen: set[str] = set()
    for block in soup.select(".result"):
        anchor = block.select_one("a.result__a[href]")
        if anchor is None:
            continue
        link = decode_redirect(str(anchor["href"]))
        if not is_http_url(link) or link in seen:
            continue
        # sponsored entries point back at duckduckgo itself
        if extract_domain(link).endswith("duckduckgo.com"):
            continue
        seen.add(link)
        snippet_tag = block.select_one(".result__snippet")
        results.append(
            SearchResult(
                title=anchor.get_text(" ", strip=True),
                link=link,
                snippet=snippet_tag.get_text(" ", strip=True) if snippet_tag else "",
                domain=extract_domain(link),
            )
        )
        if len(results) >= limit:
            break
    return results


class SearchAdapter:
    """Web search through the configured HTML endpoint."""

    def __init__(self, config: IthbatConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session

    def build_query(self, query: str) -> str:
        hint = self.config.search_hint.strip()
        return f"{query.strip()} {hint}" if hint else query.strip()

    async def search(self, query: str) -> List[SearchResult]:
        """
        Run *query* and return up to :data:`MAX_RESULTS` results.

        Raises :class:`SearchFailure` on transport errors, timeouts and
        non-2xx responses. An empty list means the engine answered with no hits.
        """
        full_query = self.build_query(query)
        endpoint = str(self.config.search_endpoint)
        logger.info("Searching: %s", full_query)

        own_session = self.session is None
        session = self.session or ClientSession(headers={"User-Agent": self.config.user_agent})
        try:
            async with session.post(
                endpoint,
                data={"q": full_query},
                headers={"User-Agent": self.config.user_agent},
                timeout=ClientTimeout(total=self.config.search_timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise SearchFailure(f"search engine returned HTTP {resp.status}")
                html = await resp.text(errors="replace")
        except asyncio.TimeoutError as exc:
            raise SearchFailure(f"search timed out after {self.config.search_timeout} s") from exc
        except ClientError as exc:
            raise SearchFailure(f"search request failed: {exc}") from exc
        finally:
            if own_session:
                await session.close()

        results = parse_results(html)
        logger.info("Search returned %d results", len(results))
        return results
