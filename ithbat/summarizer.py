# File: ithbat/summarizer.py
"""ithbat.summarizer: turn ranked evidence into an answer.

Two backends:

* :class:`EvidenceDigestSummarizer` works offline and only quotes the
  gathered evidence; it is the default.
* :class:`OpenRouterSummarizer` asks an OpenAI-compatible chat endpoint to
  answer strictly from the same evidence.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List, Optional, Protocol, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from ithbat.config import IthbatConfig, SummarizerConfig
from ithbat.errors import SummarizerFailure
from ithbat.logger import logger
from ithbat.verification import VerificationResult

__all__: Sequence[str] = (
    "Summarizer",
    "EvidenceDigestSummarizer",
    "OpenRouterSummarizer",
    "SYSTEM_PROMPT",
    "format_evidence",
    "build_summarizer",
    "split_chunks",
)

SYSTEM_PROMPT = (
    "You are Ithbat, an Islamic knowledge research assistant. Answer ONLY from the "
    "numbered evidence provided by the user. Cite every statement with its evidence "
    "number in square brackets, e.g. [2]. Quote Quran verses and hadith exactly as "
    "given. If the evidence does not answer the question, say so plainly. Never add "
    "hadith, verses or scholarly opinions that are not in the evidence, and never "
    "issue a personal fatwa; recommend consulting a qualified local scholar for "
    "personal rulings."
)

NO_EVIDENCE_MESSAGE = (
    "No evidence was found on the trusted sources for this question. "
    "Try rephrasing it or choosing a deeper research profile."
)


class Summarizer(Protocol):
    async def summarize(self, question: str, evidence: Sequence[VerificationResult]) -> str: ...


def format_evidence(evidence: Sequence[VerificationResult]) -> str:
    """Numbered evidence block shared by both backends."""
    blocks = []
    for idx, item in enumerate(evidence, start=1):
        blocks.append(f"[{idx}] {item.title} ({item.source}, {item.relevance} relevance)\n{item.url}\n{item.content}")
    return "\n\n".join(blocks)


class EvidenceDigestSummarizer:
    """Offline summary: the best excerpts, quoted and cited, without generated prose."""

    def __init__(self, max_items: int = 5) -> None:
        self.max_items = max_items

    async def summarize(self, question: str, evidence: Sequence[VerificationResult]) -> str:
        if not evidence:
            return NO_EVIDENCE_MESSAGE
        picked = [e for e in evidence if e.relevance != "low"][: self.max_items] or list(evidence[:1])
        parts = [f"Evidence gathered from trusted sources for: {question}"]
        for idx, item in enumerate(picked, start=1):
            parts.append(f"[{idx}] {item.source}: {item.title}\n> {item.content}\nSource: {item.url}")
        if len(evidence) > len(picked):
            parts.append(f"{len(evidence) - len(picked)} further source(s) were consulted.")
        return "\n\n".join(parts)


class OpenRouterSummarizer:
    """Chat-completions backend (OpenRouter or any compatible endpoint)."""

    def __init__(self, config: SummarizerConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self.api_key = (
            config.api_key.get_secret_value() if config.api_key else os.environ.get("OPENROUTER_API_KEY")
        )

    def _payload(self, question: str, evidence: Sequence[VerificationResult]) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "temperature": 0.3,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Question: {question}\n\nEvidence:\n{format_evidence(evidence)}"},
            ],
        }

    async def summarize(self, question: str, evidence: Sequence[VerificationResult]) -> str:
        if not evidence:
            return NO_EVIDENCE_MESSAGE
        if not self.api_key:
            raise SummarizerFailure("no API key configured for the openrouter summarizer")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "Ithbat - Islamic Knowledge Research",
        }
        own_session = self.session is None
        session = self.session or ClientSession()
        try:
            async with session.post(
                str(self.config.endpoint),
                json=self._payload(question, evidence),
                headers=headers,
                timeout=ClientTimeout(total=self.config.timeout),
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise SummarizerFailure(f"summarizer returned HTTP {resp.status}: {body[:200]}")
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise SummarizerFailure("summarizer request timed out") from exc
        except ClientError as exc:
            raise SummarizerFailure(f"summarizer request failed: {exc}") from exc
        finally:
            if own_session:
                await session.close()

        try:
            answer = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise SummarizerFailure("unexpected summarizer response shape") from exc
        logger.debug("Summarizer produced %d characters", len(answer or ""))
        return answer or NO_EVIDENCE_MESSAGE


def build_summarizer(config: IthbatConfig, session: Optional[ClientSession] = None) -> Summarizer:
    if config.summarizer.backend == "openrouter":
        return OpenRouterSummarizer(config.summarizer, session=session)
    return EvidenceDigestSummarizer()


def split_chunks(text: str) -> List[str]:
    """Paragraph chunks for ``response_content`` events."""
    return [p + "\n\n" for p in text.split("\n\n") if p.strip()]
