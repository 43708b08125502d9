# File: ithbat/verification.py
"""ithbat.verification: check one claim against the trusted corpus.

Flow: validate → type-specific search query → crawl → drop thin pages →
score against the claim, snippet against the query → stable sort → top 10.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from ithbat.crawler.models import CrawledPage
from ithbat.detection import CLAIM_KEYWORDS
from ithbat.errors import InputError
from ithbat.hadith import HadithClient, parse_hadith_reference, sunnah_url
from ithbat.logger import logger
from ithbat.quran import QuranClient, parse_quran_reference, quran_url
from ithbat.registry import REGISTRY, TrustedDomainRegistry
from ithbat.scoring import RELEVANCE_RANK, Relevance, extract_snippet, score

__all__: Sequence[str] = (
    "CLAIM_TYPES",
    "MIN_QUERY_LENGTH",
    "MIN_CONTENT_LENGTH",
    "MAX_RESULTS",
    "VerificationResult",
    "VerificationResponse",
    "build_search_query",
    "validate_query",
    "rank_pages",
    "Verifier",
)

CLAIM_TYPES = ("hadith", "quran", "scholar", "general")
MIN_QUERY_LENGTH = 3
MIN_CONTENT_LENGTH = 100
MAX_RESULTS = 10

_TYPE_SUFFIX: Dict[str, str] = {
    "hadith": "hadith",
    "quran": "quran",
    "scholar": "islamic ruling",
}


@dataclass(frozen=True, slots=True)
class VerificationResult:
    url: str
    title: str
    content: str
    source: str
    relevance: Relevance


@dataclass(slots=True)
class VerificationResponse:
    results: List[VerificationResult] = field(default_factory=list)
    query: str = ""
    total_found: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: ``{results, query, totalFound}``."""
        return {
            "results": [asdict(r) for r in self.results],
            "query": self.query,
            "totalFound": self.total_found,
        }


class SupportsCrawl(Protocol):
    async def crawl(self, query: str) -> List[CrawledPage]: ...


def validate_query(query: Any) -> str:
    if not isinstance(query, str) or len(query.strip()) < MIN_QUERY_LENGTH:
        raise InputError("Query too short")
    return query.strip()


def build_search_query(query: str, claim_type: str) -> str:
    """Append the claim type's suffix unless the query already names the type."""
    if claim_type not in CLAIM_TYPES:
        raise InputError(f"Unknown claim type {claim_type!r}; expected one of {', '.join(CLAIM_TYPES)}")
    if claim_type == "general" or CLAIM_KEYWORDS[claim_type].search(query):
        return query
    return f"{query} {_TYPE_SUFFIX[claim_type]}"


def rank_pages(
    pages: Sequence[CrawledPage],
    claim: str,
    query: str,
    *,
    min_content_length: int = MIN_CONTENT_LENGTH,
) -> List[VerificationResult]:
    """Score and stable-sort *pages*; thin pages (< *min_content_length*) are dropped."""
    results = [
        VerificationResult(
            url=page.url,
            title=page.title,
            content=extract_snippet(page.content, query),
            source=page.source,
            relevance=score(claim, page.content, page.title),
        )
        for page in pages
        if len(page.content) >= min_content_length
    ]
    # list.sort is stable: crawl order survives within a relevance band
    results.sort(key=lambda r: RELEVANCE_RANK[r.relevance])
    return results


class Verifier:
    """Verification orchestrator.

    *crawler_factory* returns a fresh crawl session per call; *hadith* and
    *quran* enable the structured lookup for claims of that type that cite a
    reference.
    """

    def __init__(
        self,
        crawler_factory: Callable[[], SupportsCrawl],
        *,
        hadith: Optional[HadithClient] = None,
        quran: Optional[QuranClient] = None,
        registry: Optional[TrustedDomainRegistry] = None,
    ) -> None:
        self.crawler_factory = crawler_factory
        self.hadith = hadith
        self.quran = quran
        self.registry = registry or REGISTRY

    async def verify(
        self,
        query: str,
        claim_type: str = "general",
        original_claim: str = "",
    ) -> VerificationResponse:
        """Return ranked evidence for *original_claim*, capped at :data:`MAX_RESULTS`.

        Raises :class:`InputError` for short queries and unknown claim types and
        lets :class:`SearchFailure` from the crawl propagate.
        """
        clean = validate_query(query)
        search_query = build_search_query(clean, claim_type)
        claim = original_claim.strip() or clean
        logger.info("Verifying %s claim: %s", claim_type, search_query)

        crawler = self.crawler_factory()
        lookup = self._structured_lookup(claim_type)
        if lookup is not None:
            pages, candidate = await asyncio.gather(crawler.crawl(search_query), lookup(claim + " " + clean))
        else:
            pages, candidate = await crawler.crawl(search_query), None

        ranked: List[VerificationResult] = []
        if candidate is not None:
            ranked.extend(rank_pages([candidate], claim, clean, min_content_length=1))
            pages = [p for p in pages if p.url != candidate.url]
        ranked.extend(rank_pages(pages, claim, clean))
        ranked.sort(key=lambda r: RELEVANCE_RANK[r.relevance])

        logger.info("Verification found %d results (%d pages crawled)", len(ranked), len(pages))
        return VerificationResponse(results=ranked[:MAX_RESULTS], query=search_query, total_found=len(ranked))

    def _structured_lookup(self, claim_type: str) -> Optional[Callable[[str], Awaitable[Optional[CrawledPage]]]]:
        if claim_type == "hadith" and self.hadith is not None:
            return self._hadith_candidate
        if claim_type == "quran" and self.quran is not None:
            return self._quran_candidate
        return None

    async def _hadith_candidate(self, text: str) -> Optional[CrawledPage]:
        assert self.hadith is not None
        reference = parse_hadith_reference(text)
        if reference is None:
            return None
        collection, number = reference
        result = await self.hadith.fetch(collection, number)
        if result is None:
            return None
        url = sunnah_url(collection, number)
        content = "\n\n".join(t for t in (result.english, result.arabic) if t)
        return CrawledPage(
            url=url,
            title=f"{collection.capitalize()} {number}",
            content=content,
            depth=0,
            source=self.registry.source_label(url),
        )

    async def _quran_candidate(self, text: str) -> Optional[CrawledPage]:
        assert self.quran is not None
        reference = parse_quran_reference(text)
        if reference is None:
            return None
        surah, ayah = reference
        verse = await self.quran.fetch(surah, ayah)
        if verse is None:
            return None
        url = quran_url(surah, ayah)
        title = f"{verse.surah_name} {surah}:{ayah}" if verse.surah_name else f"Quran {surah}:{ayah}"
        return CrawledPage(
            url=url,
            title=title,
            content="\n\n".join(t for t in (verse.translation, verse.arabic) if t),
            depth=0,
            source=self.registry.source_label(url),
        )
