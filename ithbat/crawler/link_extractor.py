# ithbat/crawler/link_extractor.py
"""
Link filtering for the crawl frontier.

Pages come out of :func:`ithbat.parser.parse_html` with absolute, normalised
links; this module decides which of them may be followed.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ithbat.registry import REGISTRY, TrustedDomainRegistry
from ithbat.utils import is_http_url, normalize_url

__all__ = ["EXCLUDE_PATTERNS", "is_excluded", "filter_links"]

#: Site chrome that never carries evidence.
EXCLUDE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/search\b",
        r"[?&]q=",
        r"[?&]s=",
        r"/login\b",
        r"/register\b",
        r"/about\b",
        r"/contact\b",
        r"/privacy\b",
        r"/terms\b",
        r"^javascript:",
        r"^mailto:",
    )
)


def is_excluded(url: str) -> bool:
    return any(p.search(url) for p in EXCLUDE_PATTERNS)


def filter_links(
    links: Iterable[str],
    *,
    trusted_only: bool = True,
    registry: Optional[TrustedDomainRegistry] = None,
) -> List[str]:
    """
    Keep followable links: http(s), not noise, and (when *trusted_only*) on a
    registered domain. Output is normalised and free of duplicates.
    """
    reg = registry or REGISTRY
    seen: set[str] = set()
    kept: List[str] = []
    for raw in links:
        if not is_http_url(raw) or is_excluded(raw):
            continue
        if trusted_only and not reg.is_trusted(raw):
            continue
        url = normalize_url(raw)
        if url not in seen:
            seen.add(url)
            kept.append(url)
    return kept
