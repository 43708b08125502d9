# File: ithbat/detection.py
"""ithbat.detection: regex heuristics over the user's question.

* :func:`is_personal_question` flags questions asking for a personal ruling,
  which the research stream answers with a "consult a scholar" notice.
* :func:`detect_evidence_types` maps vocabulary to claim types.

Both are pure functions over fixed tables.
"""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

__all__: Sequence[str] = (
    "CLAIM_KEYWORDS",
    "PERSONAL_PATTERNS",
    "is_personal_question",
    "detect_evidence_types",
)

CLAIM_KEYWORDS: Dict[str, re.Pattern[str]] = {
    "hadith": re.compile(r"bukhari|muslim|tirmidhi|hadith|prophet|messenger", re.IGNORECASE),
    "quran": re.compile(r"quran|surah|ayah|verse", re.IGNORECASE),
    "scholar": re.compile(r"fatwa|ruling|scholar|sheikh", re.IGNORECASE),
}


def _compile(*patterns: str, flags: int = 0) -> Tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


PERSONAL_PATTERNS: Dict[str, Tuple[re.Pattern[str], ...]] = {
    "en": _compile(
        r"\b(should i|can i|am i allowed|is it ok for me|is it permissible for me)\b",
        r"\b(i want to|i need to|i am|i'm|i have been|i did|i was)\b",
        r"\b(my (husband|wife|spouse|father|mother|brother|sister|son|daughter|family|situation|case|problem))\b",
        r"\b(what should i do|what do i do|help me|advise me|give me a fatwa)\b",
        r"\b(in my case|in my situation|for my|is it halal for me|is it haram for me)\b",
        r"\b(i committed|i broke|i missed|i forgot to|i accidentally)\b",
        flags=re.IGNORECASE,
    ),
    "ar": _compile(
        r"\b(هل يجوز لي|هل أستطيع|ماذا أفعل|ما حكم أن أ)",
        r"\b(أنا|زوجي|زوجتي|والدي|والدتي|عائلتي|حالتي|مشكلتي)\b",
        r"\b(أريد أن|أحتاج|ساعدوني|أفتوني|أعطوني فتوى)\b",
        r"\b(في حالتي|بالنسبة لي|نسيت أن|ارتكبت)\b",
    ),
    "ur": _compile(
        r"\b(کیا میں|مجھے|میری|میرا|میرے)\b",
        r"\b(مجھے بتائیں|مدد کریں|فتویٰ دیں)",
    ),
    "fr": _compile(
        r"\b(est-ce que je peux|dois-je|puis-je|est-il permis pour moi)\b",
        r"\b(mon mari|ma femme|ma famille|ma situation|mon cas)\b",
        r"\b(je veux|j'ai besoin|aidez-moi|donnez-moi une fatwa)\b",
        r"\b(j'ai oublié|j'ai commis|j'ai raté)\b",
        flags=re.IGNORECASE,
    ),
    "ja": _compile(
        r"私は|私の|自分の|自分が",
        r"してもいいですか|すべきですか|どうすれば",
    ),
    "zh": _compile(
        r"我可以|我应该|我能|我的|对我来说",
        r"帮我|给我|我犯了|我忘了",
    ),
}


def is_personal_question(query: str, language: str = "en") -> bool:
    """True when *query* reads like a request for a personal ruling.

    English patterns are checked for every language; users often type in
    English whatever their interface language is.
    """
    patterns = list(PERSONAL_PATTERNS.get(language, ()))
    if language != "en":
        patterns.extend(PERSONAL_PATTERNS["en"])
    return any(p.search(query) for p in patterns)


def detect_evidence_types(query: str) -> List[str]:
    """Claim types named by *query*'s vocabulary, in table order; ``["general"]`` if none."""
    found = [claim_type for claim_type, pattern in CLAIM_KEYWORDS.items() if pattern.search(query)]
    return found or ["general"]
