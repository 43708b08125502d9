# File: ithbat/store.py
"""ithbat.store: conversation archive.

:class:`JsonConversationStore` keeps one JSON document per chat under
``<root>/chats/<slug>.json`` and a ``<root>/sessions/<session_id>`` pointer to
the slug. File IO runs in a worker thread so the event loop never blocks.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, Field

from ithbat.events import Source
from ithbat.logger import logger
from ithbat.utils import append_timestamp, generate_slug

__all__: Sequence[str] = (
    "ConversationEntry",
    "ChatRecord",
    "ConversationStore",
    "JsonConversationStore",
)

_SAFE_KEY_RE = re.compile(r"^[\w-]{1,128}$")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationEntry(BaseModel):
    query: str
    response: str
    sources: List[Source] = Field(default_factory=list)
    is_follow_up: bool = False
    created_at: datetime = Field(default_factory=_now)


class ChatRecord(BaseModel):
    session_id: str
    slug: str
    conversations: List[ConversationEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ConversationStore(Protocol):
    async def append(
        self, session_id: str, query: str, response: str, sources: Sequence[Source] = ()
    ) -> ChatRecord: ...

    async def read_by_session(self, session_id: str) -> Optional[ChatRecord]: ...

    async def read_by_slug(self, slug: str) -> Optional[ChatRecord]: ...

    async def delete(self, slug: str) -> bool: ...


class JsonConversationStore:
    """File-backed :class:`ConversationStore`."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self._chats = self.root / "chats"
        self._sessions = self.root / "sessions"
        self._lock = asyncio.Lock()

    # -- paths ---------------------------------------------------------------

    def _chat_path(self, slug: str) -> Path:
        if not _SAFE_KEY_RE.match(slug):
            raise ValueError(f"Invalid slug {slug!r}")
        return self._chats / f"{slug}.json"

    def _session_path(self, session_id: str) -> Path:
        if not _SAFE_KEY_RE.match(session_id):
            raise ValueError(f"Invalid session id {session_id!r}")
        return self._sessions / session_id

    # -- sync helpers, run via asyncio.to_thread ------------------------------

    def _load(self, slug: str) -> Optional[ChatRecord]:
        path = self._chat_path(slug)
        if not path.is_file():
            return None
        return ChatRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def _save(self, record: ChatRecord) -> None:
        self._chats.mkdir(parents=True, exist_ok=True)
        self._sessions.mkdir(parents=True, exist_ok=True)
        tmp = self._chat_path(record.slug).with_suffix(".tmp")
        tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._chat_path(record.slug))
        self._session_path(record.session_id).write_text(record.slug, encoding="utf-8")

    def _slug_for_session(self, session_id: str) -> Optional[str]:
        path = self._session_path(session_id)
        return path.read_text(encoding="utf-8").strip() if path.is_file() else None

    def _unique_slug(self, query: str) -> str:
        slug = generate_slug(query) or "chat"
        if not self._chat_path(slug).exists():
            return slug
        stamped = candidate = append_timestamp(slug)
        counter = 2
        while self._chat_path(candidate).exists():
            candidate = f"{stamped}-{counter}"
            counter += 1
        return candidate

    def _append_sync(self, session_id: str, query: str, response: str, sources: Sequence[Source]) -> ChatRecord:
        slug = self._slug_for_session(session_id)
        record = self._load(slug) if slug else None
        entry = ConversationEntry(
            query=query, response=response, sources=list(sources), is_follow_up=record is not None
        )
        if record is None:
            record = ChatRecord(session_id=session_id, slug=self._unique_slug(query), conversations=[entry])
        else:
            record.conversations.append(entry)
            record.updated_at = _now()
        self._save(record)
        return record

    def _delete_sync(self, slug: str) -> bool:
        record = self._load(slug)
        if record is None:
            return False
        self._chat_path(slug).unlink()
        session = self._session_path(record.session_id)
        if session.is_file() and session.read_text(encoding="utf-8").strip() == slug:
            session.unlink()
        return True

    # -- public API ----------------------------------------------------------

    async def append(
        self, session_id: str, query: str, response: str, sources: Sequence[Source] = ()
    ) -> ChatRecord:
        """Add a conversation to the session's chat, creating the chat on first use."""
        async with self._lock:
            record = await asyncio.to_thread(self._append_sync, session_id, query, response, sources)
        logger.debug("Archived conversation %s (%d entries)", record.slug, len(record.conversations))
        return record

    async def read_by_session(self, session_id: str) -> Optional[ChatRecord]:
        if not _SAFE_KEY_RE.match(session_id):
            return None
        slug = await asyncio.to_thread(self._slug_for_session, session_id)
        return await self.read_by_slug(slug) if slug else None

    async def read_by_slug(self, slug: str) -> Optional[ChatRecord]:
        if not _SAFE_KEY_RE.match(slug):
            return None
        return await asyncio.to_thread(self._load, slug)

    async def delete(self, slug: str) -> bool:
        if not _SAFE_KEY_RE.match(slug):
            return False
        async with self._lock:
            return await asyncio.to_thread(self._delete_sync, slug)
