# File: ithbat/utils.py
"""ithbat.utils: URL helpers, duplicate removal and slug generation."""

from __future__ import annotations

import posixpath
import re
from datetime import datetime
from typing import Optional, Sequence
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlparse, urlunparse

from ithbat.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "is_http_url",
    "extract_domain",
    "generate_slug",
    "append_timestamp",
)

_SLUG_STRIP_RE = re.compile(r"[^\w-]")
_SLUG_DASHES_RE = re.compile(r"-{2,}")
_SLUG_MAX_LEN = 80


def normalize_url(url: str) -> str:
    """Canonical form used for the visited set.

    Lower-cases scheme and host, resolves ``.``/``..`` path segments, sorts the
    query string and drops the fragment. Trailing slashes are preserved so
    ``/answers/1`` and ``/answers/1/`` stay distinct, as servers treat them.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    path = unquote(parsed.path or "/")
    norm = posixpath.normpath(path)
    if parsed.path.endswith("/") and not norm.endswith("/"):
        norm += "/"
    if not norm.startswith("/"):
        norm = "/" + norm
    norm = quote(norm, safe="/:@!$&'()*+,;=-._~")
    qs = parse_qsl(parsed.query, keep_blank_values=True)
    qs.sort()
    query = urlencode(qs, doseq=True)
    normalized = urlunparse((scheme, netloc, norm, "", query, ""))
    logger.debug("Normalized URL: %s -> %s", url, normalized)
    return normalized


def is_http_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_domain(url: str) -> str:
    """Host of *url* in lower case, without port and without a leading ``www.``.

    Bare domains (``"sunnah.com"``) are accepted and returned normalised.
    """
    candidate = url.strip().lower()
    if "://" not in candidate:
        candidate = "//" + candidate
    host: Optional[str] = urlparse(candidate).hostname
    if not host:
        return ""
    return host[4:] if host.startswith("www.") else host


def generate_slug(text: str) -> str:
    """URL-friendly slug for a query; Unicode letters and digits are kept."""
    slug = re.sub(r"\s+", "-", text.lower())
    slug = _SLUG_STRIP_RE.sub("", slug).replace("_", "")
    slug = _SLUG_DASHES_RE.sub("-", slug).strip("-")
    return slug[:_SLUG_MAX_LEN].rstrip("-")


def append_timestamp(slug: str, now: Optional[datetime] = None) -> str:
    """Make *slug* unique by appending an ``HHMMSS`` suffix."""
    moment = now or datetime.now()
    return f"{slug}-{moment:%H%M%S}"
