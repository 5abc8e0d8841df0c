"""Tests for premium-content classification."""

from __future__ import annotations

import pytest
from fakes import FakeBackend

from stormswarm.swarm.classifier import (
    PREMIUM_KEYWORDS,
    ContentCategory,
    KeywordClassifier,
    LLMContentClassifier,
    build_rubric_prompt,
    keyword_heuristic,
    parse_decision,
)

# ── Keyword heuristic ────────────────────────────────────────


def test_heuristic_matches_case_insensitive_substring():
    assert keyword_heuristic("Quantum Cryptography") is ContentCategory.PREMIUM
    assert keyword_heuristic("Algorithmic trading") is ContentCategory.PREMIUM


def test_heuristic_standard_without_keywords():
    assert keyword_heuristic("Gardening for beginners") is ContentCategory.STANDARD


def test_heuristic_is_pure():
    keywords = ("zebra",)
    results = {keyword_heuristic("Zebra crossings", keywords) for _ in range(20)}
    assert results == {ContentCategory.PREMIUM}
    assert keyword_heuristic("Quantum", keywords) is ContentCategory.STANDARD


# ── Decision parsing ─────────────────────────────────────────


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Reasoning: heavy math.\n\nDecision: PREMIUM", ContentCategory.PREMIUM),
        ("Decision: **STANDARD**", ContentCategory.STANDARD),
        ("decision:[premium]", ContentCategory.PREMIUM),
        ("This clearly needs PREMIUM expertise.", ContentCategory.PREMIUM),
        ("Not sure, could be premium or standard.", ContentCategory.STANDARD),
        ("I cannot decide.", ContentCategory.STANDARD),
    ],
)
def test_parse_decision(text, expected):
    assert parse_decision(text) is expected


def test_parse_decision_ignores_echoed_template():
    text = "Decision: [PREMIUM or STANDARD]\n\nDecision: STANDARD"
    assert parse_decision(text) is ContentCategory.STANDARD


def test_parse_decision_last_decision_wins():
    text = "Decision: STANDARD\n...on reflection...\nDecision: PREMIUM"
    assert parse_decision(text) is ContentCategory.PREMIUM


def test_rubric_prompt_embeds_content():
    prompt = build_rubric_prompt("Lattice-based signatures")
    assert 'Content: "Lattice-based signatures"' in prompt
    assert "10. Complex optimization" in prompt


# ── Classifiers ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_keyword_classifier():
    classifier = KeywordClassifier()
    assert await classifier.classify("Advanced topics") is ContentCategory.PREMIUM
    assert await classifier.classify("Cooking") is ContentCategory.STANDARD


@pytest.mark.asyncio
async def test_llm_classifier_uses_model_decision():
    backend = FakeBackend("claude", responder=lambda _: "Decision: PREMIUM")
    classifier = LLMContentClassifier(backend)

    assert await classifier.classify("Gardening") is ContentCategory.PREMIUM
    call = backend.calls[0]
    assert call["temperature"] == 0.3
    assert call["max_output_tokens"] == 500


@pytest.mark.asyncio
async def test_llm_classifier_ambiguous_answer_is_standard():
    backend = FakeBackend("claude", responder=lambda _: "Hard to say.")
    classifier = LLMContentClassifier(backend)
    # Ambiguity resolves to STANDARD even when keywords would say PREMIUM.
    assert await classifier.classify("quantum cryptography") is ContentCategory.STANDARD


@pytest.mark.asyncio
async def test_llm_classifier_falls_back_to_keywords_on_failure():
    backend = FakeBackend("claude", fail_when=lambda _: True)
    classifier = LLMContentClassifier(backend)

    assert await classifier.classify("quantum cryptography") is ContentCategory.PREMIUM
    assert await classifier.classify("Gardening") is ContentCategory.STANDARD
    assert "quantum" in PREMIUM_KEYWORDS
    assert "cryptography" in PREMIUM_KEYWORDS
