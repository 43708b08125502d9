# File: tests/test_events.py
import json

import pytest

from ithbat.events import (
    CrawledLink,
    ResearchStepEvent,
    Source,
    encode_sse,
    iter_events,
    parse_event,
    read_event_stream,
)


def test_encode_uses_camel_case_and_drops_nulls():
    event = ResearchStepEvent(
        type="crawl_link",
        step="searching",
        crawl_link=CrawledLink(url="https://sunnah.com/bukhari:1", depth=1, status="found"),
    )
    frame = encode_sse(event)

    assert frame.startswith("data: ") and frame.endswith("\n\n")
    payload = json.loads(frame[len("data: "):])
    assert payload == {
        "type": "crawl_link",
        "step": "searching",
        "crawlLink": {"url": "https://sunnah.com/bukhari:1", "depth": 1, "status": "found"},
    }


def test_parse_round_trips_source_event():
    event = ResearchStepEvent(
        type="source",
        source=Source(id=1, title="IslamQA", url="https://islamqa.info/en/answers/1", domain="islamqa.info"),
    )
    assert parse_event(encode_sse(event)) == event


@pytest.mark.parametrize(
    "line",
    [
        "",
        ": keep-alive comment",
        "event: message",
        "data:",
        "data: {not json",
        'data: {"type": "unknown_type"}',
        'data: {"content": "no type"}',
    ],
)
def test_parse_event_skips_malformed(line):
    assert parse_event(line) is None


def test_iter_events_skips_bad_frames():
    body = (
        'data: {"type": "step_start", "step": "understanding"}\n\n'
        "data: garbage\n\n"
        'data: {"type": "response_content", "content": "Answer"}\n\n'
        'data: {"type": "done"}\n\n'
    )
    events = list(iter_events(body))
    assert [e.type for e in events] == ["step_start", "response_content", "done"]
    assert events[-1].is_terminal
    assert not events[0].is_terminal


@pytest.mark.asyncio()
async def test_read_event_stream_accepts_bytes():
    async def lines():
        yield b'data: {"type": "error", "error": "Search failed"}\n'
        yield b"\n"
        yield 'data: {"type": "done"}'

    events = [e async for e in read_event_stream(lines())]
    assert events[0].error == "Search failed"
    assert [e.type for e in events] == ["error", "done"]
