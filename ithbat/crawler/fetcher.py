# ithbat/crawler/fetcher.py
"""
Fetcher module: HTTP GETs with rate limiting, retry/backoff and per-call
timeouts, plus normalisation of the markup into plain text.

Failures (timeout, non-2xx, transport errors) never escape: they are logged
and turned into an empty result so one bad page cannot stop a crawl.
"""
from __future__ import annotations

import asyncio
import json
import random
import time
from typing import Any, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from ithbat.config import IthbatConfig
from ithbat.errors import FetchFailure
from ithbat.logger import logger
from ithbat.parser.html_parser import ParsedPage, parse_html
from ithbat.registry import REGISTRY, TrustedDomainRegistry

__all__ = ["BrowserRenderer", "PageFetcher"]

_HTML_TYPES = ("text/html", "application/xhtml+xml", "text/plain")


class BrowserRenderer:
    """Render a page in headless Chromium and return the final markup.

    Requires the optional ``browser`` extra (Playwright). The import is done on
    first use so that plain installs never need it.
    """

    def __init__(self, timeout: float, user_agent: Optional[str] = None) -> None:
        self.timeout = timeout
        self.user_agent = user_agent

    async def render(self, url: str) -> str:
        try:
            from playwright.async_api import async_playwright
        except ModuleNotFoundError as exc:
            raise FetchFailure(url, "playwright is not installed (pip install ithbat[browser])") from exc

        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=True, args=["--no-sandbox", "--disable-dev-shm-usage"]
            )
            try:
                page = await browser.new_page(user_agent=self.user_agent)
                page.set_default_timeout(self.timeout * 1000)
                await page.goto(url, wait_until="domcontentloaded")
                return await page.content()
            finally:
                await browser.close()


class PageFetcher:
    """Async page and API fetcher bound to one :class:`aiohttp.ClientSession`.

    Use as ``async with PageFetcher(config) as fetcher: ...``. A session passed
    in by the caller is used as-is and left open on exit.
    """

    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
    _BACKOFF_BASE: float = 0.5
    _BACKOFF_CAP: float = 60.0

    def __init__(
        self,
        config: IthbatConfig,
        *,
        session: Optional[ClientSession] = None,
        registry: Optional[TrustedDomainRegistry] = None,
        renderer: Optional[BrowserRenderer] = None,
    ) -> None:
        self.config = config
        self.registry = registry or REGISTRY
        self.session = session
        self._owns_session = session is None
        self.renderer = renderer
        if renderer is None and config.browser.enabled:
            self.renderer = BrowserRenderer(config.browser.timeout, config.user_agent)
        self._rate_lock = asyncio.Lock()
        self._last_request_ts = 0.0

    async def __aenter__(self) -> PageFetcher:
        if self.session is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.fetch_timeout),
                headers={"User-Agent": self.config.user_agent},
                raise_for_status=False,
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        if self._owns_session:
            self.session = None

    # ------------------------------------------------------------------ #
    # public API                                                          #
    # ------------------------------------------------------------------ #

    async def fetch(self, url: str) -> str:
        """Normalised visible text of *url*, or ``""`` on any failure."""
        page = await self.fetch_page(url)
        return page.text if page else ""

    async def fetch_page(self, url: str) -> Optional[ParsedPage]:
        """Title, normalised text and outbound links of *url*; None on failure."""
        try:
            html = await self._fetch_html(url)
        except FetchFailure as exc:
            logger.warning("Fetch failed %s: %s", exc.url, exc.reason)
            return None
        return parse_html(html, url, max_length=self.config.max_content_length)

    async def fetch_json(self, url: str) -> Optional[Any]:
        """Decoded JSON from a structured-data API, None on failure."""
        try:
            body = await self.fetch_raw(url, timeout=self.config.api_timeout, accept=None)
        except FetchFailure as exc:
            logger.warning("API fetch failed %s: %s", exc.url, exc.reason)
            return None
        try:
            return json.loads(body)
        except ValueError:
            logger.warning("API fetch failed %s: response is not JSON", url)
            return None

    async def fetch_raw(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        accept: Optional[Sequence[str]] = _HTML_TYPES,
    ) -> str:
        """Body of *url* as text. Raises :class:`FetchFailure`.

        Retryable statuses (429, 5xx) and transport errors are retried
        ``retry_times`` times with capped exponential backoff; a timeout ends
        the attempt immediately.
        """
        if self.session is None:
            raise RuntimeError("Session not initialized; use 'async with PageFetcher(...)'")

        call_timeout = ClientTimeout(total=timeout or self.config.fetch_timeout)
        attempts = 0
        while True:
            await self._wait_for_rate_limit()
            logger.debug("GET %s (attempt %d)", url, attempts + 1)
            try:
                async with self.session.get(url, timeout=call_timeout) as resp:
                    if resp.status in self._RETRY_STATUS:
                        raise ClientError(f"retryable status {resp.status}")
                    if not 200 <= resp.status < 300:
                        raise FetchFailure(url, f"HTTP {resp.status}")
                    mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    if accept is not None and mime and mime not in accept:
                        raise FetchFailure(url, f"unsupported content type {mime}")
                    return await resp.text(errors="replace")
            except asyncio.TimeoutError:
                raise FetchFailure(url, "timeout") from None
            except ClientError as exc:
                attempts += 1
                if attempts > self.config.retry_times:
                    raise FetchFailure(url, str(exc) or type(exc).__name__) from exc
                backoff = min(self._BACKOFF_CAP, self._BACKOFF_BASE * 2**attempts + random.random() * self._BACKOFF_BASE)
                logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.config.retry_times, url, backoff)
                await asyncio.sleep(backoff)

    # ------------------------------------------------------------------ #
    # internals                                                           #
    # ------------------------------------------------------------------ #

    def _needs_browser(self, url: str) -> bool:
        if self.renderer is None or not self.config.browser.enabled:
            return False
        entry = self.registry.lookup(url)
        return bool(entry and entry.requires_javascript)

    async def _fetch_html(self, url: str) -> str:
        if not self._needs_browser(url):
            return await self.fetch_raw(url)
        assert self.renderer is not None
        await self._wait_for_rate_limit()
        try:
            return await asyncio.wait_for(self.renderer.render(url), timeout=self.config.browser.timeout)
        except asyncio.TimeoutError:
            raise FetchFailure(url, "browser render timeout") from None
        except FetchFailure:
            raise
        except Exception as exc:  # playwright raises its own error hierarchy
            raise FetchFailure(url, f"browser render failed: {exc}") from exc

    async def _wait_for_rate_limit(self) -> None:
        interval = 1 / self.config.rate_limit
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()
