# File: ithbat/engine.py
"""ithbat.engine: wiring of fetcher, search, crawler, verifier and research pipeline."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from aiohttp import ClientSession, ClientTimeout

from ithbat.config import IthbatConfig, TraversalProfile, load_config
from ithbat.crawler.crawler import Crawler
from ithbat.crawler.fetcher import PageFetcher
from ithbat.crawler.models import CrawledPage
from ithbat.crawler.search import SearchAdapter
from ithbat.events import ResearchStepEvent
from ithbat.hadith import HadithClient, HadithResult
from ithbat.logger import logger
from ithbat.quran import QuranClient
from ithbat.research import ResearchPipeline
from ithbat.store import ConversationStore, JsonConversationStore
from ithbat.summarizer import Summarizer, build_summarizer
from ithbat.verification import VerificationResponse, Verifier

__all__ = ["Engine"]


class Engine:
    """Facade for the CLI and the HTTP server.

    Owns one :class:`aiohttp.ClientSession` shared by every component; use as
    ``async with Engine(config) as engine``. Collaborators can be injected for
    tests.
    """

    @staticmethod
    def load_config(path: Optional[str]) -> IthbatConfig:
        return load_config(path)

    def __init__(
        self,
        config: IthbatConfig,
        *,
        search: Optional[SearchAdapter] = None,
        fetcher: Optional[PageFetcher] = None,
        summarizer: Optional[Summarizer] = None,
        store: Optional[ConversationStore] = None,
    ) -> None:
        self.config = config
        self.session: Optional[ClientSession] = None
        self._search = search
        self._fetcher = fetcher
        self._summarizer = summarizer
        if store is None and config.store_dir is not None:
            store = JsonConversationStore(config.store_dir)
        self.store = store
        self._pipeline: Optional[ResearchPipeline] = None

    async def __aenter__(self) -> Engine:
        if self._search is None or self._fetcher is None or self._summarizer is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.fetch_timeout),
                headers={"User-Agent": self.config.user_agent},
            )
        if self._fetcher is None:
            self._fetcher = PageFetcher(self.config, session=self.session)
        if self._search is None:
            self._search = SearchAdapter(self.config, session=self.session)
        if self._summarizer is None:
            self._summarizer = build_summarizer(self.config, session=self.session)
        self._pipeline = ResearchPipeline(self._crawler_for, self._summarizer, store=self.store)
        logger.debug("Engine started")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._pipeline is not None:
            await self._pipeline.wait_archived()
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    # -- components ------------------------------------------------------------

    @property
    def fetcher(self) -> PageFetcher:
        if self._fetcher is None:
            raise RuntimeError("Engine not started; use 'async with Engine(...)'")
        return self._fetcher

    @property
    def pipeline(self) -> ResearchPipeline:
        if self._pipeline is None:
            raise RuntimeError("Engine not started; use 'async with Engine(...)'")
        return self._pipeline

    def _crawler_for(self, profile: TraversalProfile, cancel_event: Optional[asyncio.Event] = None) -> Crawler:
        assert self._search is not None
        return Crawler(
            self._search,
            self.fetcher,
            profile,
            concurrency=self.config.concurrency,
            trusted_only=self.config.trusted_only,
            cancel_event=cancel_event,
        )

    def crawler(self, profile: Optional[str] = None, cancel_event: Optional[asyncio.Event] = None) -> Crawler:
        return self._crawler_for(self.config.profile(profile), cancel_event)

    def verifier(self, profile: Optional[str] = None) -> Verifier:
        traversal = self.config.profile(profile)
        return Verifier(
            lambda: self._crawler_for(traversal),
            hadith=HadithClient(self.fetcher),
            quran=QuranClient(self.fetcher),
        )

    # -- operations --------------------------------------------------------------

    async def verify(
        self,
        query: str,
        claim_type: str = "general",
        original_claim: str = "",
        profile: Optional[str] = None,
    ) -> VerificationResponse:
        return await self.verifier(profile).verify(query, claim_type, original_claim)

    async def crawl(self, query: str, profile: Optional[str] = None) -> List[CrawledPage]:
        return await self.crawler(profile).crawl(query)

    def research(
        self,
        query: str,
        profile: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        session_id: Optional[str] = None,
        language: str = "en",
    ) -> AsyncIterator[ResearchStepEvent]:
        return self.pipeline.run(
            query,
            self.config.profile(profile),
            cancel_event=cancel_event,
            session_id=session_id,
            language=language,
        )

    async def hadith(self, collection: str, number: int) -> Optional[HadithResult]:
        return await HadithClient(self.fetcher).fetch(collection, number)
