# File: ithbat/scoring.py
"""ithbat.scoring: lexical relevance and snippet selection.

Relevance is plain token overlap so that every ranking can be audited by hand:
no embeddings, no model calls, same inputs always give the same label.
"""

from __future__ import annotations

from typing import List, Literal, Sequence

__all__: Sequence[str] = (
    "Relevance",
    "RELEVANCE_RANK",
    "SNIPPET_WINDOW",
    "SNIPPET_STEP",
    "tokenize",
    "match_ratio",
    "score",
    "extract_snippet",
)

Relevance = Literal["high", "medium", "low"]

#: Sort key, lower is better.
RELEVANCE_RANK = {"high": 0, "medium": 1, "low": 2}

SNIPPET_WINDOW = 300
SNIPPET_STEP = 50
_MIN_TOKEN_LEN = 4


def tokenize(text: str) -> List[str]:
    """Lower-cased whitespace tokens longer than three characters."""
    return [word for word in text.lower().split() if len(word) >= _MIN_TOKEN_LEN]


def match_ratio(claim: str, content: str, title: str = "") -> float:
    """Fraction of *claim* tokens found as substrings of content and title."""
    tokens = tokenize(claim)
    if not tokens:
        return 0.0
    haystack = f"{content} {title}".lower()
    found = sum(1 for token in tokens if token in haystack)
    return found / len(tokens)


def score(claim: str, content: str, title: str = "") -> Relevance:
    """Label how well a page supports *claim*: above 0.5 high, above 0.25 medium."""
    ratio = match_ratio(claim, content, title)
    if ratio > 0.5:
        return "high"
    if ratio > 0.25:
        return "medium"
    return "low"


def extract_snippet(content: str, query: str) -> str:
    """
    Best 300-character window of *content* for *query*.

    Windows start every 50 characters, plus one window flush with the end of
    the content so the tail is always scanned. A window's score is the number
    of query tokens it contains. Only a strictly better window replaces the current
    best, so the earliest window wins ties. Ellipses mark truncation on either
    side.
    """
    tokens = tokenize(query)
    lowered = content.lower()
    last_start = max(len(content) - SNIPPET_WINDOW, 0)

    starts = list(range(0, last_start + 1, SNIPPET_STEP))
    if starts[-1] != last_start:
        # the final window must reach the end of the content
        starts.append(last_start)

    best_start, best_score = 0, -1
    for start in starts:
        window = lowered[start:start + SNIPPET_WINDOW]
        window_score = sum(1 for token in tokens if token in window)
        if window_score > best_score:
            best_start, best_score = start, window_score

    end = min(best_start + SNIPPET_WINDOW, len(content))
    snippet = content[best_start:end]
    if best_start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet += "..."
    return snippet
