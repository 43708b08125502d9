# File: ithbat/registry.py
"""ithbat.registry: the fixed table of trusted reference sites.

The registry is plain, immutable data built once at import time and shared by
every crawl session without locking. Matching is suffix based, so
``x.sunnah.com`` is trusted because ``sunnah.com`` is registered, while
``notsunnah.com`` is not.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

from ithbat.utils import extract_domain

__all__: Sequence[str] = (
    "EVIDENCE_TYPES",
    "TrustedDomain",
    "TrustedDomainRegistry",
    "TRUSTED_DOMAINS",
    "REGISTRY",
)

EVIDENCE_TYPES: FrozenSet[str] = frozenset(
    {"quran", "tafsir", "hadith", "fatwa", "scholarly_opinion", "fiqh"}
)


@dataclass(frozen=True, slots=True)
class TrustedDomain:
    """A reference site and the kinds of evidence it can supply."""

    domain: str
    name: str
    evidence_types: FrozenSet[str]
    requires_javascript: bool = False

    def matches(self, host: str) -> bool:
        return host == self.domain or host.endswith("." + self.domain)


TRUSTED_DOMAINS: Tuple[TrustedDomain, ...] = (
    TrustedDomain("quran.com", "Quran.com", frozenset({"quran", "tafsir"}), requires_javascript=True),
    TrustedDomain("sunnah.com", "Sunnah.com", frozenset({"hadith"})),
    TrustedDomain("islamqa.info", "IslamQA", frozenset({"fatwa", "scholarly_opinion", "fiqh"})),
    TrustedDomain("islamqa.org", "IslamQA (Hanafi)", frozenset({"fatwa", "scholarly_opinion"})),
    TrustedDomain("islamweb.net", "IslamWeb", frozenset({"fatwa", "scholarly_opinion"})),
    TrustedDomain("seekersguidance.org", "SeekersGuidance", frozenset({"scholarly_opinion", "fiqh"})),
)


class TrustedDomainRegistry:
    """Lookup and filter operations over a fixed set of :class:`TrustedDomain`."""

    def __init__(self, domains: Iterable[TrustedDomain]) -> None:
        self._domains: Tuple[TrustedDomain, ...] = tuple(domains)
        unknown = {t for d in self._domains for t in d.evidence_types} - EVIDENCE_TYPES
        if unknown:
            raise ValueError(f"Unknown evidence types: {sorted(unknown)}")

    def __iter__(self):
        return iter(self._domains)

    def __len__(self) -> int:
        return len(self._domains)

    @property
    def domains(self) -> Tuple[str, ...]:
        return tuple(d.domain for d in self._domains)

    def lookup(self, domain_or_url: str) -> Optional[TrustedDomain]:
        """Registry entry covering *domain_or_url*, or None."""
        host = extract_domain(domain_or_url)
        if not host:
            return None
        for entry in self._domains:
            if entry.matches(host):
                return entry
        return None

    def is_trusted(self, domain_or_url: str) -> bool:
        return self.lookup(domain_or_url) is not None

    def domains_for(self, evidence_type: str) -> Tuple[str, ...]:
        """Domains able to supply *evidence_type*, in registry order."""
        if evidence_type not in EVIDENCE_TYPES:
            raise ValueError(f"Unknown evidence type: {evidence_type!r}")
        return tuple(d.domain for d in self._domains if evidence_type in d.evidence_types)

    def source_label(self, domain_or_url: str) -> str:
        """Human readable source name; the bare domain for unregistered sites."""
        entry = self.lookup(domain_or_url)
        return entry.name if entry else extract_domain(domain_or_url)


REGISTRY = TrustedDomainRegistry(TRUSTED_DOMAINS)
