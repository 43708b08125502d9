# File: ithbat/quran.py
"""ithbat.quran: structured Quran verse lookup by surah and ayah.

Verses come from the Al-Quran Cloud API; the Sahih International translation
and the Uthmani Arabic text are fetched concurrently.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from ithbat.hadith import SupportsFetchJson
from ithbat.logger import logger

__all__: Sequence[str] = (
    "API_BASE",
    "TRANSLATION_EDITION",
    "ARABIC_EDITION",
    "QuranVerse",
    "QuranClient",
    "parse_quran_reference",
    "quran_url",
)

API_BASE = "https://api.alquran.cloud/v1"
TRANSLATION_EDITION = "en.sahih"
ARABIC_EDITION = "quran-uthmani"

SURAH_COUNT = 114
# al-Baqarah, the longest surah
MAX_AYAH = 286

_URL_REF_RE = re.compile(r"quran\.com/(\d{1,3})[:/](\d{1,3})\b", re.IGNORECASE)
_COLON_REF_RE = re.compile(r"(?<![\d:])(\d{1,3}):(\d{1,3})(?![\d:])")
_WORDED_REF_RE = re.compile(
    r"\b(?:surah|sura|chapter)\s*(\d{1,3})[\s,]*(?:verse|ayah|aya|ayat)\s*(\d{1,3})\b",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class QuranVerse:
    surah: int
    ayah: int
    translation: str
    arabic: str = ""
    surah_name: str = ""
    surah_name_arabic: str = ""
    translation_source: str = ""


def _valid(surah: int, ayah: int) -> bool:
    return 1 <= surah <= SURAH_COUNT and 1 <= ayah <= MAX_AYAH


def parse_quran_reference(text: str) -> Optional[Tuple[int, int]]:
    """Find ``(surah, ayah)`` in free text or a quran.com URL.

    >>> parse_quran_reference("Ayat al-Kursi, Quran 2:255")
    (2, 255)
    >>> parse_quran_reference("surah 112 verse 1")
    (112, 1)
    """
    for pattern in (_URL_REF_RE, _WORDED_REF_RE, _COLON_REF_RE):
        for match in pattern.finditer(text):
            surah, ayah = int(match.group(1)), int(match.group(2))
            if _valid(surah, ayah):
                return surah, ayah
    return None


def quran_url(surah: int, ayah: int) -> str:
    return f"https://quran.com/{surah}/{ayah}"


class QuranClient:
    """Fetch verses through any object providing ``fetch_json``."""

    def __init__(self, fetcher: SupportsFetchJson, base_url: str = API_BASE) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    async def _edition(self, surah: int, ayah: int, edition: str) -> Dict[str, Any]:
        payload = await self.fetcher.fetch_json(f"{self.base_url}/ayah/{surah}:{ayah}/{edition}")
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            return {}
        return payload["data"]

    async def fetch(self, surah: int, ayah: int) -> Optional[QuranVerse]:
        """One verse; None when the reference is out of range or has no translation."""
        if not _valid(surah, ayah):
            logger.debug("Quran reference %d:%d out of range", surah, ayah)
            return None
        translation, arabic = await asyncio.gather(
            self._edition(surah, ayah, TRANSLATION_EDITION),
            self._edition(surah, ayah, ARABIC_EDITION),
        )
        text = str(translation.get("text") or "")
        if not text:
            logger.info("No translation for Quran %d:%d", surah, ayah)
            return None
        surah_info = translation.get("surah") or {}
        edition_info = translation.get("edition") or {}
        return QuranVerse(
            surah=surah,
            ayah=ayah,
            translation=text,
            arabic=str(arabic.get("text") or ""),
            surah_name=str(surah_info.get("englishName") or ""),
            surah_name_arabic=str(surah_info.get("name") or ""),
            translation_source=str(edition_info.get("englishName") or ""),
        )
