"""Static capability profiles for each LLM backend."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum, StrEnum

from stormswarm.exceptions import UnknownBackend


class BackendId(StrEnum):
    """Identifiers of the supported backends."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    KIMI = "kimi"


class QualityTier(IntEnum):
    """Ordered quality category: PREMIUM > EXCELLENT > SPECIALIZED."""

    SPECIALIZED = 1
    EXCELLENT = 2
    PREMIUM = 3


@dataclass(frozen=True)
class ModelProfile:
    """What a backend is good at. Shared by every agent bound to it."""

    id: BackendId
    display_name: str
    strengths: frozenset[str]
    preferred_task_types: tuple[str, ...]
    context_window_tokens: int
    quality_tier: QualityTier
    empirical_score: float = 0.0

    @property
    def has_massive_context(self) -> bool:
        return "massive_context" in self.strengths


_PROFILES: dict[BackendId, ModelProfile] = {
    BackendId.CLAUDE: ModelProfile(
        id=BackendId.CLAUDE,
        display_name="Claude Sonnet 4",
        strengths=frozenset(
            {
                "superior_reasoning",
                "code_generation",
                "mathematical_rigor",
                "creative_writing",
                "synthesis",
                "polish",
                "nuanced_understanding",
                "research_depth",
                "analytical_precision",
            }
        ),
        preferred_task_types=(
            "complex_reasoning",
            "creative_writing",
            "data_analysis",
            "synthesis",
            "fact_checking",
            "review",
            "optimization",
            "coordination",
        ),
        context_window_tokens=200_000,
        quality_tier=QualityTier.EXCELLENT,
        empirical_score=10.0,
    ),
    BackendId.GEMINI: ModelProfile(
        id=BackendId.GEMINI,
        display_name="Gemini 2.5 Pro",
        strengths=frozenset(
            {
                "massive_context",
                "multimodal_processing",
                "thinking_mode",
                "deep_analysis",
                "system_architecture",
                "complex_reasoning",
                "structured_thinking",
            }
        ),
        preferred_task_types=(
            "long_document_analysis",
            "system_design",
            "architecture_planning",
            "thinking_mode_tasks",
            "complex_reasoning",
            "multimodal_analysis",
        ),
        context_window_tokens=1_000_000,
        quality_tier=QualityTier.SPECIALIZED,
        empirical_score=8.5,
    ),
    BackendId.KIMI: ModelProfile(
        id=BackendId.KIMI,
        display_name="Kimi K2",
        strengths=frozenset(
            {
                "technical_depth",
                "mathematical_precision",
                "advanced_algorithm_design",
                "proof_generation",
                "coding_excellence",
                "research_methodology",
            }
        ),
        preferred_task_types=(
            "mathematical_proofs",
            "advanced_algorithms",
            "technical_analysis",
            "coding_challenges",
            "research_methodology",
            "precision_calculations",
        ),
        context_window_tokens=1_000_000,
        quality_tier=QualityTier.PREMIUM,
        empirical_score=9.5,
    ),
}


def get_profile(backend_id: BackendId | str) -> ModelProfile:
    """Return the profile of a backend, raising UnknownBackend if not registered."""
    try:
        key = BackendId(backend_id)
    except ValueError:
        raise UnknownBackend(str(backend_id)) from None
    profile = _PROFILES.get(key)
    if profile is None:
        raise UnknownBackend(str(backend_id))
    return profile


def list_profiles() -> list[ModelProfile]:
    """All profiles in registry order."""
    return list(_PROFILES.values())


def _candidates(candidates: Iterable[BackendId | str] | None) -> list[ModelProfile]:
    if candidates is None:
        return list_profiles()
    wanted = {BackendId(c) for c in candidates}
    return [p for p in _PROFILES.values() if p.id in wanted]


def largest_context_backend(
    candidates: Iterable[BackendId | str] | None = None,
) -> BackendId | None:
    """Backend with the largest context window. Ties go to registry order."""
    best: ModelProfile | None = None
    for profile in _candidates(candidates):
        if best is None or profile.context_window_tokens > best.context_window_tokens:
            best = profile
    return best.id if best else None


def premium_backend(candidates: Iterable[BackendId | str] | None = None) -> BackendId | None:
    """Backend with the highest quality tier, or None if no PREMIUM backend is a candidate."""
    for profile in _candidates(candidates):
        if profile.quality_tier is QualityTier.PREMIUM:
            return profile.id
    return None


def large_context_backends(
    candidates: Iterable[BackendId | str] | None = None,
) -> list[BackendId]:
    """Backends tagged with the ``massive_context`` strength."""
    return [p.id for p in _candidates(candidates) if p.has_massive_context]
