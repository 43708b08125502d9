# === FILE: ithbat/events.py ===
"""
Wire format of the research stream.

Each event travels as one Server-Sent-Events frame, ``data: <json>\\n\\n``.
Consumers parse frames independently and skip the ones that do not decode, so
a single malformed frame never ends a stream.
"""
from __future__ import annotations

from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ithbat.logger import logger

__all__ = [
    "EventType",
    "StepName",
    "Source",
    "CrawledLink",
    "ResearchStepEvent",
    "encode_sse",
    "parse_event",
    "iter_events",
    "read_event_stream",
]

EventType = Literal[
    "step_start",
    "step_content",
    "step_complete",
    "source",
    "crawl_link",
    "response_start",
    "response_content",
    "error",
    "done",
]
StepName = Literal["understanding", "searching", "synthesizing"]

_SSE_PREFIX = "data:"


class Source(BaseModel):
    """A page shown to the user as evidence."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    url: str
    domain: str
    trusted: bool = True


class CrawledLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: Optional[str] = None
    depth: int = Field(0, ge=0)
    status: Literal["visiting", "found"]


class ResearchStepEvent(BaseModel):
    """One unit of the research stream. ``done`` is last; ``error`` ends the stream."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: EventType
    step: Optional[StepName] = None
    content: Optional[str] = None
    source: Optional[Source] = None
    crawl_link: Optional[CrawledLink] = Field(None, alias="crawlLink")
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


def encode_sse(event: ResearchStepEvent) -> str:
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


def parse_event(line: str) -> Optional[ResearchStepEvent]:
    """Decode one ``data:`` line; None for blank, non-data or malformed lines."""
    line = line.strip()
    if not line.startswith(_SSE_PREFIX):
        return None
    payload = line[len(_SSE_PREFIX):].strip()
    if not payload:
        return None
    try:
        return ResearchStepEvent.model_validate_json(payload)
    except ValidationError as exc:
        logger.debug("Skipping malformed event %r: %s", payload[:80], exc.errors()[0]["msg"])
        return None


def iter_events(stream: Union[str, Iterable[str]]) -> Iterator[ResearchStepEvent]:
    """Events from an SSE body (one string) or from an iterable of lines."""
    lines = stream.splitlines() if isinstance(stream, str) else stream
    for line in lines:
        event = parse_event(line)
        if event is not None:
            yield event


async def read_event_stream(lines: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[ResearchStepEvent]:
    """Async counterpart of :func:`iter_events`, e.g. over ``response.content``."""
    async for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        event = parse_event(line)
        if event is not None:
            yield event
