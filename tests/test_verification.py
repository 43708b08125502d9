# File: tests/test_verification.py
from typing import List

import pytest
from conftest import StubFetcher, StubSearch, make_page

from ithbat.config import TraversalProfile
from ithbat.crawler.crawler import Crawler
from ithbat.crawler.models import CrawledPage
from ithbat.errors import InputError, SearchFailure
from ithbat.hadith import HadithResult
from ithbat.quran import QuranVerse
from ithbat.verification import (
    MAX_RESULTS,
    Verifier,
    build_search_query,
    rank_pages,
    validate_query,
)

FILLER = " Lorem ipsum dolor sit amet, consectetur adipiscing elit." * 3


class StubCrawl:
    def __init__(self, pages: List[CrawledPage], *, fail: bool = False) -> None:
        self.pages = pages
        self.fail = fail
        self.queries: List[str] = []

    async def crawl(self, query: str) -> List[CrawledPage]:
        self.queries.append(query)
        if self.fail:
            raise SearchFailure("search engine unreachable")
        return list(self.pages)


class StubHadith:
    def __init__(self, result=None) -> None:
        self.result = result
        self.calls = []

    async def fetch(self, collection, number):
        self.calls.append((collection, number))
        return self.result


class StubQuran:
    def __init__(self, verse=None) -> None:
        self.verse = verse
        self.calls = []

    async def fetch(self, surah, ayah):
        self.calls.append((surah, ayah))
        return self.verse


def _page(url: str, content: str, title: str = "") -> CrawledPage:
    return CrawledPage(url=url, title=title or url, content=content, source="Sunnah.com")


def test_build_search_query():
    assert build_search_query("is this halal", "quran") == "is this halal quran"
    assert build_search_query("surah baqarah ruling", "quran") == "surah baqarah ruling"
    assert build_search_query("music", "scholar") == "music islamic ruling"
    assert build_search_query("Bukhari on patience", "hadith") == "Bukhari on patience"
    assert build_search_query("anything at all", "general") == "anything at all"
    with pytest.raises(InputError):
        build_search_query("anything", "poetry")


@pytest.mark.parametrize("query", ["", "is", "  a  ", None, 42])
def test_validate_query_rejects(query):
    with pytest.raises(InputError):
        validate_query(query)


def test_rank_pages_drops_thin_and_keeps_order_within_band():
    pages = [
        _page("https://sunnah.com/1", "unrelated" + FILLER),
        _page("https://sunnah.com/2", "patience gratitude reward" + FILLER),
        _page("https://sunnah.com/3", "too short"),
        _page("https://sunnah.com/4", "patience gratitude reward again" + FILLER),
    ]
    ranked = rank_pages(pages, "patience gratitude reward", "patience")
    assert [r.url for r in ranked] == ["https://sunnah.com/2", "https://sunnah.com/4", "https://sunnah.com/1"]
    assert [r.relevance for r in ranked] == ["high", "high", "low"]


@pytest.mark.asyncio()
async def test_verify_ranks_high_first():
    claim = "seeking knowledge obligatory upon every muslim"
    crawl = StubCrawl([
        _page("https://islamqa.info/a", "Rulings on trade" + FILLER),
        _page("https://sunnah.com/ibnmajah:224", "Seeking knowledge is obligatory upon every muslim." + FILLER),
        _page("https://islamqa.info/b", "tiny"),
    ])
    response = await Verifier(lambda: crawl).verify("seeking knowledge", "hadith", claim)

    assert crawl.queries == ["seeking knowledge hadith"]
    assert response.query == "seeking knowledge hadith"
    assert response.total_found == 2
    assert response.results[0].url == "https://sunnah.com/ibnmajah:224"
    assert response.results[0].relevance == "high"
    assert sum(r.relevance == "high" for r in response.results) == 1

    wire = response.to_dict()
    assert set(wire) == {"results", "query", "totalFound"}
    assert set(wire["results"][0]) == {"url", "title", "content", "source", "relevance"}


@pytest.mark.asyncio()
async def test_verify_caps_results():
    pages = [_page(f"https://sunnah.com/{i}", "fasting" + FILLER) for i in range(15)]
    response = await Verifier(lambda: StubCrawl(pages)).verify("fasting rules")
    assert len(response.results) == MAX_RESULTS
    assert response.total_found == 15


@pytest.mark.asyncio()
async def test_verify_rejects_short_query_before_crawling():
    crawl = StubCrawl([])
    with pytest.raises(InputError):
        await Verifier(lambda: crawl).verify("is")
    assert crawl.queries == []


@pytest.mark.asyncio()
async def test_verify_propagates_search_failure():
    with pytest.raises(SearchFailure):
        await Verifier(lambda: StubCrawl([], fail=True)).verify("zakat on gold")


@pytest.mark.asyncio()
async def test_hadith_reference_adds_structured_candidate():
    hadith = StubHadith(HadithResult(english="Actions are by intentions", arabic="", collection="bukhari", number=1))
    crawl = StubCrawl([
        _page("https://sunnah.com/bukhari:1", "Actions are by intentions." + FILLER),
        _page("https://sunnah.com/bukhari:2", "Revelation" + FILLER),
    ])
    response = await Verifier(lambda: crawl, hadith=hadith).verify(
        "bukhari 1 intentions", "hadith", "actions are by intentions"
    )

    assert hadith.calls == [("bukhari", 1)]
    urls = [r.url for r in response.results]
    assert urls.count("https://sunnah.com/bukhari:1") == 1
    first = response.results[0]
    assert first.url == "https://sunnah.com/bukhari:1"
    assert first.content == "Actions are by intentions"
    assert first.title == "Bukhari 1"


@pytest.mark.asyncio()
async def test_hadith_lookup_only_for_hadith_claims():
    hadith = StubHadith()
    await Verifier(lambda: StubCrawl([]), hadith=hadith).verify("bukhari 1 intentions", "general")
    assert hadith.calls == []


@pytest.mark.asyncio()
async def test_verify_with_real_crawler():
    url = "https://sunnah.com/muslim:2564"
    fetcher = StubFetcher({url: make_page(url, "Allah does not look at your bodies but at your hearts." + FILLER)})
    profile = TraversalProfile(name="t", max_depth=0, max_pages=3)

    verifier = Verifier(lambda: Crawler(StubSearch([url, "https://example.com/x"]), fetcher, profile))
    response = await verifier.verify("allah looks at hearts", original_claim="Allah looks at your hearts")

    assert [r.url for r in response.results] == [url]
    assert response.results[0].source == "Sunnah.com"


@pytest.mark.asyncio()
async def test_quran_reference_adds_structured_candidate():
    verse = QuranVerse(
        surah=2,
        ayah=286,
        translation="Allah does not charge a soul except with that within its capacity.",
        surah_name="Al-Baqara",
    )
    quran = StubQuran(verse)
    crawl = StubCrawl([
        _page("https://quran.com/2/286", "Allah does not burden a soul beyond capacity." + FILLER),
        _page("https://quran.com/2/285", "The Messenger has believed" + FILLER),
    ])
    response = await Verifier(lambda: crawl, quran=quran).verify(
        "Quran 2:286 burden", "quran", "Allah does not burden a soul beyond its capacity"
    )

    assert quran.calls == [(2, 286)]
    assert [r.url for r in response.results].count("https://quran.com/2/286") == 1
    first = response.results[0]
    assert first.url == "https://quran.com/2/286"
    assert first.title == "Al-Baqara 2:286"
    assert first.content.startswith("Allah does not charge a soul")


@pytest.mark.asyncio()
async def test_quran_lookup_only_for_quran_claims():
    quran = StubQuran()
    await Verifier(lambda: StubCrawl([]), quran=quran).verify("Quran 2:255 kursi", "hadith")
    assert quran.calls == []


@pytest.mark.asyncio()
async def test_end_to_end_single_strong_match_ranks_first():
    claim = "patience rewarded without measure allah"
    urls = [
        "https://islamqa.info/en/answers/1",
        "https://sunnah.com/riyadussalihin:25",
        "https://islamweb.net/en/fatwa/3",
    ]
    fetcher = StubFetcher({
        urls[0]: make_page(urls[0], "On the virtues of patience in hardship." + FILLER),
        # four of the five claim tokens
        urls[1]: make_page(urls[1], "The patient are rewarded without measure, says Allah." + FILLER),
        urls[2]: make_page(urls[2], "Rulings on trade and contracts." + FILLER),
    })
    profile = TraversalProfile(name="t", max_depth=0, max_pages=3, sources=3)

    verifier = Verifier(lambda: Crawler(StubSearch(urls), fetcher, profile))
    response = await verifier.verify("patience rewarded", original_claim=claim)

    assert response.total_found >= 1
    assert [r.relevance for r in response.results].count("high") == 1
    assert response.results[0].url == urls[1]
    assert response.results[0].relevance == "high"
