"""Deterministic stand-ins for model backends and the premium classifier."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Iterable
from typing import Any

from stormswarm.exceptions import BackendError
from stormswarm.llm.backend import BackendPool
from stormswarm.swarm.classifier import ContentCategory
from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.types import Generation, TokenUsage

OUTLINE_TEXT = """1. Introduction
   - Background
   - Scope
2. Architecture
   - Components
3. Conclusion
   - Summary"""

_SECTION_RE = re.compile(r"^Section: (.+)$", re.MULTILINE)


def scripted_response(prompt: str) -> str:
    """Answer each prompt template with something its handler can parse."""
    if "determine if it would benefit from premium" in prompt:
        return "Reasoning: general audience.\n\nDecision: STANDARD"
    if "Create a comprehensive article outline" in prompt:
        return OUTLINE_TEXT
    if "Review and enhance this outline" in prompt:
        return OUTLINE_TEXT + "\n\nNo structural changes were needed."
    if "flow of this article outline" in prompt:
        return "1. The progression is sound.\n2. Keep the conclusion short.\n\nOUTLINE:\n" + OUTLINE_TEXT
    if "Write a detailed section" in prompt:
        match = _SECTION_RE.search(prompt)
        title = match.group(1) if match else "Untitled"
        return f"Body text about {title} with a citation [1] and another [2]."
    if "Text to polish:\n" in prompt:
        return prompt.split("Text to polish:\n", 1)[1]
    if "Fact-check this article" in prompt:
        return "All claims check out."
    if "flow of this article about" in prompt:
        return "The logic holds."
    return "Key insight about the topic.\nWhat remains unsolved?"


class FakeBackend:
    """In-memory backend. Records every call; can fail or stall on chosen prompts."""

    def __init__(
        self,
        backend_id: BackendId | str,
        responder: Callable[[str], str] = scripted_response,
        fail_when: Callable[[str], bool] | None = None,
        delay: float | Callable[[str], float] = 0.0,
    ) -> None:
        self.backend_id = BackendId(backend_id)
        self.responder = responder
        self.fail_when = fail_when
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        system_prompt: str | None = None,
    ) -> Generation:
        self.calls.append(
            {
                "prompt": prompt,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
                "system_prompt": system_prompt,
            }
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay(prompt) if callable(self.delay) else self.delay
            await asyncio.sleep(delay)
            if self.fail_when is not None and self.fail_when(prompt):
                raise BackendError(self.backend_id, "simulated outage")
            text = self.responder(prompt)
        finally:
            self.in_flight -= 1
        return Generation(
            text=text,
            usage=TokenUsage(prompt=10, completion=20, total=30),
            model=f"fake-{self.backend_id}",
        )


class FakeClassifier:
    """PREMIUM for any text containing one of ``premium_terms``."""

    def __init__(self, premium_terms: Iterable[str] = ()) -> None:
        self.premium_terms = tuple(t.lower() for t in premium_terms)
        self.calls: list[str] = []

    async def classify(self, text: str) -> ContentCategory:
        self.calls.append(text)
        if any(term in text.lower() for term in self.premium_terms):
            return ContentCategory.PREMIUM
        return ContentCategory.STANDARD


def make_pool(*backends: FakeBackend) -> BackendPool:
    return BackendPool(backends)

