"""Exception hierarchy shared by the retrieval and verification pipeline."""

from __future__ import annotations

__all__ = ["IthbatError", "InputError", "FetchFailure", "SearchFailure", "SummarizerFailure"]


class IthbatError(Exception):
    """Base class for all errors raised by Ithbat."""


class InputError(IthbatError, ValueError):
    """The request itself is invalid (missing or too-short query, unknown claim type)."""


class FetchFailure(IthbatError):
    """A single page or API fetch failed.

    Raised only inside :mod:`ithbat.crawler.fetcher` and recovered there as
    "skip this page"; callers of the fetcher never see it.
    """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SearchFailure(IthbatError):
    """The search engine call failed; fatal for the crawl session."""


class SummarizerFailure(IthbatError):
    """The summarizer backend could not produce an answer."""
