"""Task types, their typed payloads, and the result records handlers produce."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TaskType(StrEnum):
    """Closed set of task types the executor knows how to run."""

    GENERATE_PERSPECTIVE = "generate_perspective"
    RESEARCH_FACTS = "research_facts"
    LONG_DOCUMENT_ANALYSIS = "long_document_analysis"
    SYSTEM_DESIGN = "system_design"
    COMPLEX_REASONING = "complex_reasoning"
    PREMIUM_TECHNICAL_ANALYSIS = "premium_technical_analysis"
    MATHEMATICAL_ANALYSIS = "mathematical_analysis"
    GENERATE_OUTLINE = "generate_outline"
    REVIEW_OUTLINE = "review_outline"
    VERIFY_LOGIC = "verify_logic"
    WRITE_SECTION = "write_section"
    POLISH_ARTICLE = "polish_article"
    FACT_CHECK = "fact_check"
    FINAL_POLISH = "final_polish"
    LOGIC_VERIFICATION = "logic_verification"


# ── Results ──────────────────────────────────────────────────


@dataclass
class OutlineSection:
    title: str
    subsections: list[str] = field(default_factory=list)
    description: str = ""
    # Source material attached by the host; drives large-context routing.
    content: str = ""


@dataclass
class Outline:
    sections: list[OutlineSection] = field(default_factory=list)

    def to_text(self) -> str:
        """Render as a numbered outline (the format parse_outline reads back)."""
        lines: list[str] = []
        for i, section in enumerate(self.sections, 1):
            lines.append(f"{i}. {section.title}")
            for sub in section.subsections:
                lines.append(f"   - {sub}")
        return "\n".join(lines)

    def titles(self) -> list[str]:
        return [s.title for s in self.sections]


@dataclass
class PerspectiveResult:
    perspective: str
    content: str
    questions: list[str] = field(default_factory=list)


@dataclass
class FactsResult:
    topic: str
    facts: str
    depth: str
    focus: str = ""


@dataclass
class AnalysisResult:
    """Free-form analysis (document analysis, system design, reasoning, premium)."""

    kind: str
    content: str


@dataclass
class SectionDraft:
    title: str
    content: str
    word_count: int
    citations: list[int] = field(default_factory=list)


@dataclass
class ArticleResult:
    """Output of every article-level step in the polish chain."""

    content: str
    improvements: list[str] = field(default_factory=list)
    report: str = ""
    issues: list[str] = field(default_factory=list)


# ── Payloads ─────────────────────────────────────────────────


@dataclass(frozen=True)
class PerspectivePayload:
    topic: str
    perspective: str


@dataclass(frozen=True)
class FactsPayload:
    topic: str
    depth: str = "standard"
    focus: str = "general_facts"


@dataclass(frozen=True)
class TopicAnalysisPayload:
    """Shared by long document analysis, system design and complex reasoning."""

    topic: str
    depth: str = "standard"
    use_thinking_mode: bool = True


@dataclass(frozen=True)
class PremiumAnalysisPayload:
    topic: str
    depth: str = "standard"
    justification: str = "Premium technical expertise required"


@dataclass(frozen=True)
class MathematicalPayload:
    problem: str


@dataclass(frozen=True)
class OutlinePayload:
    topic: str
    research: tuple[Any, ...] = ()


@dataclass(frozen=True)
class OutlineReviewPayload:
    topic: str
    outline: Outline


@dataclass(frozen=True)
class Source:
    title: str
    content: str


@dataclass(frozen=True)
class SectionPayload:
    section: OutlineSection
    outline: Outline
    target_words: int
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class ArticlePayload:
    """Shared by polish, fact check, final polish and logic verification."""

    article: str
    options: tuple[str, ...] = ()
    topic: str = ""


Payload = (
    PerspectivePayload
    | FactsPayload
    | TopicAnalysisPayload
    | PremiumAnalysisPayload
    | MathematicalPayload
    | OutlinePayload
    | OutlineReviewPayload
    | SectionPayload
    | ArticlePayload
)

PAYLOAD_TYPES: dict[TaskType, type] = {
    TaskType.GENERATE_PERSPECTIVE: PerspectivePayload,
    TaskType.RESEARCH_FACTS: FactsPayload,
    TaskType.LONG_DOCUMENT_ANALYSIS: TopicAnalysisPayload,
    TaskType.SYSTEM_DESIGN: TopicAnalysisPayload,
    TaskType.COMPLEX_REASONING: TopicAnalysisPayload,
    TaskType.PREMIUM_TECHNICAL_ANALYSIS: PremiumAnalysisPayload,
    TaskType.MATHEMATICAL_ANALYSIS: MathematicalPayload,
    TaskType.GENERATE_OUTLINE: OutlinePayload,
    TaskType.REVIEW_OUTLINE: OutlineReviewPayload,
    TaskType.VERIFY_LOGIC: OutlineReviewPayload,
    TaskType.WRITE_SECTION: SectionPayload,
    TaskType.POLISH_ARTICLE: ArticlePayload,
    TaskType.FACT_CHECK: ArticlePayload,
    TaskType.FINAL_POLISH: ArticlePayload,
    TaskType.LOGIC_VERIFICATION: ArticlePayload,
}
