# File: ithbat/hadith.py
"""ithbat.hadith: structured hadith lookup by collection and number.

Texts come from the public hadith-api editions on the jsDelivr CDN; English
and Arabic are fetched concurrently under the structured-API timeout.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

from ithbat.logger import logger

__all__: Sequence[str] = (
    "BASE_URL",
    "EDITION_MAP",
    "HadithResult",
    "HadithClient",
    "parse_hadith_reference",
    "sunnah_url",
)

BASE_URL = "https://cdn.jsdelivr.net/gh/fawazahmed0/hadith-api@1/editions"

EDITION_MAP: Dict[str, Tuple[str, str]] = {
    name: (f"eng-{name}", f"ara-{name}")
    for name in ("bukhari", "muslim", "abudawud", "tirmidhi", "nasai", "ibnmajah", "malik", "nawawi", "qudsi")
}

# sunnah.com uses different slugs for the two forty-hadith collections
_SUNNAH_SLUGS = {"nawawi": "nawawi40", "qudsi": "qudsi40"}

_ALIASES: Dict[str, str] = {
    "sahih al-bukhari": "bukhari",
    "sahih bukhari": "bukhari",
    "bukhari": "bukhari",
    "sahih muslim": "muslim",
    "muslim": "muslim",
    "sunan abu dawud": "abudawud",
    "abu dawud": "abudawud",
    "abu dawood": "abudawud",
    "abudawud": "abudawud",
    "jami at-tirmidhi": "tirmidhi",
    "tirmidhi": "tirmidhi",
    "sunan an-nasai": "nasai",
    "nasa'i": "nasai",
    "nasai": "nasai",
    "sunan ibn majah": "ibnmajah",
    "ibn majah": "ibnmajah",
    "ibnmajah": "ibnmajah",
    "muwatta malik": "malik",
    "malik": "malik",
    "40 nawawi": "nawawi",
    "nawawi 40": "nawawi",
    "nawawi40": "nawawi",
    "nawawi": "nawawi",
    "hadith qudsi": "qudsi",
    "qudsi40": "qudsi",
    "qudsi": "qudsi",
}

# longest alias first so "sahih al-bukhari" wins over "bukhari"
_ALIAS_RE = "|".join(re.escape(a) for a in sorted(_ALIASES, key=len, reverse=True))
_TEXT_REF_RE = re.compile(
    rf"\b({_ALIAS_RE})\b[\s,:]*(?:hadith\s*)?(?:no\.?\s*|number\s*|#\s*)?(\d{{1,5}})\b",
    re.IGNORECASE,
)
_URL_REF_RE = re.compile(r"sunnah\.com/([a-z0-9]+)[:/](\d{1,5})", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class HadithResult:
    english: str
    arabic: str
    collection: str
    number: int


class SupportsFetchJson(Protocol):
    async def fetch_json(self, url: str) -> Optional[Any]: ...


def parse_hadith_reference(text: str) -> Optional[Tuple[str, int]]:
    """Find ``(collection, number)`` in free text or a sunnah.com URL.

    >>> parse_hadith_reference("Sahih al-Bukhari 5063")
    ('bukhari', 5063)
    >>> parse_hadith_reference("https://sunnah.com/muslim:1")
    ('muslim', 1)
    """
    url_match = _URL_REF_RE.search(text)
    if url_match:
        slug = url_match.group(1).lower()
        collection = _ALIASES.get(slug, slug)
        if collection in EDITION_MAP:
            return collection, int(url_match.group(2))

    match = _TEXT_REF_RE.search(text)
    if match:
        collection = _ALIASES[match.group(1).lower()]
        return collection, int(match.group(2))
    return None


def sunnah_url(collection: str, number: int) -> str:
    return f"https://sunnah.com/{_SUNNAH_SLUGS.get(collection, collection)}:{number}"


class HadithClient:
    """Fetch hadith texts through any object providing ``fetch_json``."""

    def __init__(self, fetcher: SupportsFetchJson, base_url: str = BASE_URL) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    async def _edition_text(self, edition: str, number: int) -> str:
        data = await self.fetcher.fetch_json(f"{self.base_url}/{edition}/{number}.json")
        if not isinstance(data, dict):
            return ""
        hadiths = data.get("hadiths") or []
        if not hadiths or not isinstance(hadiths[0], dict):
            return ""
        return str(hadiths[0].get("text") or "")

    async def fetch(self, collection: str, number: int) -> Optional[HadithResult]:
        """Both language texts of one hadith; None for unknown collections or no text."""
        editions = EDITION_MAP.get(collection.lower())
        if editions is None:
            logger.debug("Unknown hadith collection %r", collection)
            return None
        english, arabic = await asyncio.gather(
            self._edition_text(editions[0], number),
            self._edition_text(editions[1], number),
        )
        if not english and not arabic:
            logger.info("No text for %s %d", collection, number)
            return None
        return HadithResult(english=english, arabic=arabic, collection=collection.lower(), number=number)
