# === FILE: ithbat/parser/html_parser.py ===
"""HTML parsing utilities for Ithbat.

Turns fetched markup into what the crawler and the scorer need:

* title: ``<title>`` text, else the first ``<h1>``, else ``""``.
* links: absolute, normalised http(s) URLs from ``<a href="…">``, in
  document order without duplicates.
* text: visible text of the main content area with navigation chrome
  (script, style, nav, footer, header, aside …) removed, entities decoded and
  whitespace collapsed.

Parsing is synchronous and CPU bound; it never touches the network.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

from ithbat.utils import is_http_url, normalize_url

__all__: Sequence[str] = ("ParsedPage", "parse_html", "NOISE_TAGS")

#: Elements dropped before text extraction.
NOISE_TAGS: tuple[str, ...] = (
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "aside",
    "noscript",
    "template",
    "iframe",
    "svg",
)

_WS_RE = re.compile(r"\s+")


@dataclass(slots=True)
class ParsedPage:
    """Lightweight representation of an HTML page."""

    url: str
    title: str
    links: list[str]
    text: str


def _clean(soup: BeautifulSoup) -> None:
    for element in soup(list(NOISE_TAGS)):
        element.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()


def _main_text(soup: BeautifulSoup) -> str:
    # prefer the main content area when the page marks one
    for selector in ("main", "article"):
        node = soup.find(selector)
        if node is not None:
            text = _WS_RE.sub(" ", node.get_text(" ")).strip()
            if text:
                return text
    root = soup.body or soup
    return _WS_RE.sub(" ", root.get_text(" ")).strip()


def parse_html(html: str, base_url: str, max_length: int | None = None) -> ParsedPage:
    """Parse *html* fetched from *base_url*.

    Links are collected before the noise elements are removed so that related
    content linked from navigation blocks can still be followed.
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(" ", strip=True) if h1 else ""
    title = _WS_RE.sub(" ", title)[:500]

    seen: set[str] = set()
    links: list[str] = []
    for tag in soup.find_all("a", href=True):
        href = str(tag.get("href", "")).strip()
        if not href or href.startswith(("mailto:", "javascript:", "tel:", "#")):
            continue
        absolute = urljoin(base_url, href)
        if not is_http_url(absolute):
            continue
        normalized = normalize_url(absolute)
        if normalized not in seen:
            seen.add(normalized)
            links.append(normalized)

    _clean(soup)
    text = _main_text(soup)
    if max_length is not None:
        text = text[:max_length]

    return ParsedPage(url=base_url, title=title, links=links, text=text)
