"""Premium-content classification.

Decides whether a piece of content (a topic or a section title) warrants the
backend designated for the highest technical rigor. The LLM-backed classifier
asks for a binary PREMIUM/STANDARD decision against a fixed rubric; when the
call itself fails it degrades to a keyword heuristic. An unclear answer is not
a failure and resolves to STANDARD.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from stormswarm.exceptions import BackendError

if TYPE_CHECKING:
    from stormswarm.llm.backend import Backend

logger = logging.getLogger(__name__)


class ContentCategory(StrEnum):
    PREMIUM = "PREMIUM"
    STANDARD = "STANDARD"


class Classifier(Protocol):
    async def classify(self, text: str) -> ContentCategory: ...


PREMIUM_KEYWORDS: tuple[str, ...] = (
    "mathematical",
    "algorithm",
    "technical",
    "advanced",
    "complex",
    "quantum",
    "cryptography",
    "verification",
    "optimization",
    "theory",
    "research",
    "engineering",
    "scientific",
    "analysis",
)

# An echoed template ("Decision: [PREMIUM or STANDARD]") is not a decision.
_DECISION_RE = re.compile(
    r"decision\s*:\s*[\*\[\s]*(premium|standard)\b(?!\s+or\b)",
    re.IGNORECASE,
)


def keyword_heuristic(
    text: str,
    keywords: Iterable[str] = PREMIUM_KEYWORDS,
) -> ContentCategory:
    """PREMIUM iff any keyword is a case-insensitive substring of *text*."""
    lowered = text.lower()
    if any(keyword.lower() in lowered for keyword in keywords):
        return ContentCategory.PREMIUM
    return ContentCategory.STANDARD


def parse_decision(text: str) -> ContentCategory:
    """Read the PREMIUM/STANDARD decision out of a classifier response."""
    matches = _DECISION_RE.findall(text)
    if matches:
        return ContentCategory(matches[-1].upper())
    lowered = text.lower()
    has_premium = "premium" in lowered
    has_standard = "standard" in lowered
    if has_premium and not has_standard:
        return ContentCategory.PREMIUM
    return ContentCategory.STANDARD


def build_rubric_prompt(content: str) -> str:
    return f"""Analyze this content and determine if it would benefit from premium technical \
expertise for maximum quality writing:

Content: "{content}"

Evaluate whether the content needs premium technical analysis in:
1. Mathematical concepts or proofs
2. Advanced algorithm or system design
3. Technical depth and precision
4. Cutting-edge specifications
5. Scientific or mathematical calculations
6. Security or cryptographic concepts
7. Advanced computing concepts (quantum, distributed systems, etc.)
8. Machine learning theory and implementation
9. Formal verification or system architecture
10. Complex optimization or research methodology

Respond with:
- PREMIUM: if the content would benefit from premium technical expertise
- STANDARD: if standard models are sufficient

Reasoning: [brief explanation]

Decision: [PREMIUM or STANDARD]"""


class KeywordClassifier:
    """Deterministic classifier built only on the keyword heuristic."""

    def __init__(self, keywords: Iterable[str] = PREMIUM_KEYWORDS) -> None:
        self.keywords = tuple(keywords)

    async def classify(self, text: str) -> ContentCategory:
        return keyword_heuristic(text, self.keywords)


class LLMContentClassifier:
    """Asks a backend for the decision; falls back to keywords if the call fails."""

    def __init__(
        self,
        backend: Backend,
        keywords: Iterable[str] = PREMIUM_KEYWORDS,
        temperature: float = 0.3,
        max_output_tokens: int = 500,
    ) -> None:
        self.backend = backend
        self.keywords = tuple(keywords)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    async def classify(self, text: str) -> ContentCategory:
        try:
            generation = await self.backend.generate_text(
                build_rubric_prompt(text),
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            )
        except BackendError as e:
            decision = keyword_heuristic(text, self.keywords)
            logger.warning(
                "Premium classifier unavailable (%s); keyword fallback for %r: %s",
                e,
                text[:80],
                decision,
            )
            return decision

        decision = parse_decision(generation.text)
        logger.info("Premium decision for %r: %s", text[:80], decision)
        return decision
