# File: ithbat/research.py
"""ithbat.research: streamed question answering over the trusted corpus.

:meth:`ResearchPipeline.run` is an async generator of
:class:`~ithbat.events.ResearchStepEvent`. The step order is
``understanding → searching → synthesizing → response → done``; any failure
produces a single ``error`` event and ends the stream.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import AsyncIterator, Callable, List, Optional, Protocol, Sequence, Set

from ithbat.config import TraversalProfile
from ithbat.crawler.models import CrawledPage, CrawlProgress
from ithbat.detection import detect_evidence_types, is_personal_question
from ithbat.errors import IthbatError
from ithbat.events import CrawledLink, ResearchStepEvent, Source
from ithbat.logger import logger
from ithbat.registry import REGISTRY, TrustedDomainRegistry
from ithbat.scoring import RELEVANCE_RANK
from ithbat.store import ConversationStore
from ithbat.summarizer import Summarizer, split_chunks
from ithbat.utils import extract_domain
from ithbat.verification import MAX_RESULTS, rank_pages, validate_query

__all__: Sequence[str] = ("PERSONAL_NOTICE", "ResearchPipeline")

PERSONAL_NOTICE = (
    "This looks like a personal question. The evidence below is general "
    "information only; for a ruling on your own situation please consult a "
    "qualified local scholar.\n"
)


class SupportsEvents(Protocol):
    pages: List[CrawledPage]
    error: Optional[Exception]

    def events(self, query: str) -> AsyncIterator[CrawlProgress]: ...


CrawlerFactory = Callable[[TraversalProfile, asyncio.Event], SupportsEvents]


def _step(type_: str, step: str, content: Optional[str] = None) -> ResearchStepEvent:
    return ResearchStepEvent(type=type_, step=step, content=content)


class ResearchPipeline:
    """Drive one crawl per question and narrate it as a stream of events."""

    def __init__(
        self,
        crawler_factory: CrawlerFactory,
        summarizer: Summarizer,
        *,
        store: Optional[ConversationStore] = None,
        registry: Optional[TrustedDomainRegistry] = None,
    ) -> None:
        self.crawler_factory = crawler_factory
        self.summarizer = summarizer
        self.store = store
        self.registry = registry or REGISTRY
        self._archive_tasks: Set[asyncio.Task] = set()

    async def run(
        self,
        query: str,
        profile: TraversalProfile,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        session_id: Optional[str] = None,
        language: str = "en",
    ) -> AsyncIterator[ResearchStepEvent]:
        cancel = cancel_event or asyncio.Event()
        try:
            question = validate_query(query)

            yield _step("step_start", "understanding")
            if is_personal_question(question, language):
                yield _step("step_content", "understanding", PERSONAL_NOTICE)
            types = detect_evidence_types(question)
            yield _step("step_content", "understanding", f"Looking for evidence of type: {', '.join(types)}\n")
            yield _step("step_complete", "understanding")

            yield _step("step_start", "searching")
            yield _step("step_content", "searching", f'Searching for "{question}" ({profile.name} profile)...\n\n')
            crawler = self.crawler_factory(profile, cancel)
            sources: List[Source] = []
            async for progress in crawler.events(question):
                for event in self._narrate(progress, sources):
                    yield event
            if crawler.error is not None:
                raise crawler.error
            if cancel.is_set():
                logger.info("Research cancelled for %r", question)
                yield ResearchStepEvent(type="error", error="Research cancelled")
                return
            pages = list(crawler.pages)
            yield _step("step_content", "searching", f"\nSearch complete: {len(pages)} pages\n")
            yield _step("step_complete", "searching")

            yield _step("step_start", "synthesizing")
            ranked = rank_pages(pages, question, question)
            counts = {label: sum(1 for r in ranked if r.relevance == label) for label in RELEVANCE_RANK}
            yield _step(
                "step_content",
                "synthesizing",
                f"Ranked {len(ranked)} pages: {counts['high']} high, {counts['medium']} medium, {counts['low']} low\n",
            )
            yield _step("step_complete", "synthesizing")

            yield ResearchStepEvent(type="response_start")
            answer = await self.summarizer.summarize(question, ranked[:MAX_RESULTS])
            for chunk in split_chunks(answer):
                yield ResearchStepEvent(type="response_content", content=chunk)
            yield ResearchStepEvent(type="done")

            self._archive(session_id or uuid.uuid4().hex, question, answer, sources)
        except IthbatError as exc:
            logger.warning("Research failed: %s", exc)
            yield ResearchStepEvent(type="error", error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected research failure")
            yield ResearchStepEvent(type="error", error=f"Research failed: {exc}")

    def _narrate(self, progress: CrawlProgress, sources: List[Source]) -> List[ResearchStepEvent]:
        if progress.kind == "visiting" and progress.url:
            return [
                ResearchStepEvent(
                    type="crawl_link",
                    crawl_link=CrawledLink(url=progress.url, depth=progress.depth or 0, status="visiting"),
                ),
                _step("step_content", "searching", f"→ {progress.url}\n"),
            ]
        if progress.kind == "found" and progress.url:
            title = progress.title or "Page"
            source = Source(
                id=len(sources) + 1,
                title=title,
                url=progress.url,
                domain=extract_domain(progress.url),
                trusted=self.registry.is_trusted(progress.url),
            )
            sources.append(source)
            return [
                ResearchStepEvent(
                    type="crawl_link",
                    crawl_link=CrawledLink(url=progress.url, title=title, depth=progress.depth or 0, status="found"),
                ),
                _step("step_content", "searching", f"✓ Found: {title[:60]}\n"),
                ResearchStepEvent(type="source", source=source),
            ]
        if progress.kind == "skipped" and progress.url and progress.message != "untrusted domain":
            return [_step("step_content", "searching", f"✗ Failed: {progress.url}\n")]
        return []

    def _archive(self, session_id: str, query: str, answer: str, sources: Sequence[Source]) -> None:
        if self.store is None:
            return
        task = asyncio.create_task(self.store.append(session_id, query, answer, sources))
        self._archive_tasks.add(task)
        task.add_done_callback(self._archive_done)

    def _archive_done(self, task: asyncio.Task) -> None:
        self._archive_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Archiving conversation failed: %s", task.exception())

    async def wait_archived(self) -> None:
        """Wait for pending archive writes (used on shutdown and in tests)."""
        if self._archive_tasks:
            await asyncio.gather(*list(self._archive_tasks), return_exceptions=True)
