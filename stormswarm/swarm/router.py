"""Task router: decides which backend runs which task type."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from stormswarm.exceptions import NoAvailableBackend, UnknownTaskType
from stormswarm.swarm.classifier import Classifier, ContentCategory, KeywordClassifier
from stormswarm.swarm.payloads import OutlineSection, TaskType
from stormswarm.swarm.profiles import BackendId, largest_context_backend

logger = logging.getLogger(__name__)

ARCHITECTURE_PATTERN = re.compile(
    r"architecture|system\s+design|design\s+pattern|framework",
    re.IGNORECASE,
)

DEFAULT_LARGE_CONTEXT_THRESHOLD = 200_000


@dataclass(frozen=True)
class StaticRule:
    preferred: BackendId
    fallback: BackendId
    reason: str = ""


@dataclass(frozen=True)
class DynamicRule:
    """Route on section content. ``categories`` maps architecture/premium to a backend."""

    default: BackendId
    categories: dict[str, BackendId] = field(default_factory=dict)
    reason: str = ""


RoutingRule = StaticRule | DynamicRule


@dataclass(frozen=True)
class RoutingDecision:
    backend: BackendId
    # static | default | large_context | architecture | premium
    category: str


def _static(preferred: BackendId, fallback: BackendId, reason: str) -> StaticRule:
    return StaticRule(preferred=preferred, fallback=fallback, reason=reason)


_C, _G, _K = BackendId.CLAUDE, BackendId.GEMINI, BackendId.KIMI

ROUTING_TABLE: dict[TaskType, RoutingRule] = {
    # Research
    TaskType.GENERATE_PERSPECTIVE: _static(_C, _G, "Strong analytical perspective taking"),
    TaskType.RESEARCH_FACTS: _static(_C, _G, "Accurate, well-sourced fact finding"),
    TaskType.LONG_DOCUMENT_ANALYSIS: _static(_G, _C, "1M-token context window"),
    TaskType.SYSTEM_DESIGN: _static(_G, _C, "Excels at system architecture"),
    TaskType.COMPLEX_REASONING: _static(_G, _C, "Dedicated thinking mode"),
    TaskType.PREMIUM_TECHNICAL_ANALYSIS: _static(_K, _C, "Premium technical depth"),
    TaskType.MATHEMATICAL_ANALYSIS: _static(_K, _C, "Mathematical precision"),
    # Outline
    TaskType.GENERATE_OUTLINE: _static(_C, _G, "Excellent at structure"),
    TaskType.REVIEW_OUTLINE: _static(_C, _G, "Nuanced review"),
    TaskType.VERIFY_LOGIC: _static(_G, _C, "Thinking mode for logical verification"),
    # Writing
    TaskType.WRITE_SECTION: DynamicRule(
        default=_C,
        categories={"architecture": _G, "premium": _K},
        reason="Route on section size, subject and technical depth",
    ),
    # Polish
    TaskType.POLISH_ARTICLE: _static(_C, _G, "Best at polish"),
    TaskType.FACT_CHECK: _static(_C, _G, "Careful verification"),
    TaskType.FINAL_POLISH: _static(_C, _G, "Best at polish"),
    TaskType.LOGIC_VERIFICATION: _static(_G, _C, "Thinking mode for the final logic check"),
}


def get_rule(task_type: TaskType | str) -> RoutingRule:
    try:
        return ROUTING_TABLE[TaskType(task_type)]
    except (ValueError, KeyError):
        raise UnknownTaskType(str(task_type)) from None


def section_text(section: OutlineSection) -> str:
    """Title and description, the text architecture matching looks at."""
    return f"{section.title} {section.description}".strip()


class TaskRouter:
    """Maps a task type (and optionally section content) to a configured backend.

    Static rules always win: dynamic classification is consulted only for
    task types whose rule is a DynamicRule.
    """

    def __init__(
        self,
        available: Iterable[BackendId | str],
        classifier: Classifier | None = None,
        large_context_threshold: int = DEFAULT_LARGE_CONTEXT_THRESHOLD,
        table: dict[TaskType, RoutingRule] | None = None,
    ) -> None:
        self.available = frozenset(BackendId(b) for b in available)
        self.classifier: Classifier = classifier or KeywordClassifier()
        self.large_context_threshold = large_context_threshold
        self.table = table if table is not None else ROUTING_TABLE

    def is_available(self, backend: BackendId) -> bool:
        return backend in self.available

    def describe(self, task_type: TaskType | str) -> str:
        return get_rule(task_type).reason

    async def route(
        self,
        task_type: TaskType | str,
        section: OutlineSection | None = None,
    ) -> BackendId:
        decision = await self.decide(task_type, section)
        return decision.backend

    async def decide(
        self,
        task_type: TaskType | str,
        section: OutlineSection | None = None,
    ) -> RoutingDecision:
        """Like route(), but also reports the content category that drove the choice."""
        try:
            kind = TaskType(task_type)
            rule = self.table[kind]
        except (ValueError, KeyError):
            raise UnknownTaskType(str(task_type)) from None

        if isinstance(rule, StaticRule):
            return self._route_static(kind, rule)
        return await self._route_dynamic(kind, rule, section)

    def _route_static(self, kind: TaskType, rule: StaticRule) -> RoutingDecision:
        if self.is_available(rule.preferred):
            return RoutingDecision(rule.preferred, "static")
        if self.is_available(rule.fallback):
            logger.info(
                "%s: preferred backend %s unavailable, using fallback %s",
                kind,
                rule.preferred,
                rule.fallback,
            )
            return RoutingDecision(rule.fallback, "static")
        raise NoAvailableBackend(kind, [rule.preferred, rule.fallback])

    async def _route_dynamic(
        self,
        kind: TaskType,
        rule: DynamicRule,
        section: OutlineSection | None,
    ) -> RoutingDecision:
        chosen, category = await self.classify_section(rule, section)
        if self.is_available(chosen):
            logger.info("%s: %s content → %s", kind, category, chosen)
            return RoutingDecision(chosen, category)
        if self.is_available(rule.default):
            logger.info(
                "%s: %s backend %s unavailable, using default %s",
                kind,
                category,
                chosen,
                rule.default,
            )
            return RoutingDecision(rule.default, category)
        raise NoAvailableBackend(kind, [chosen, rule.default])

    async def classify_section(
        self,
        rule: DynamicRule,
        section: OutlineSection | None,
    ) -> tuple[BackendId, str]:
        """Return (backend, category) for a section under a dynamic rule."""
        if section is None:
            return rule.default, "default"

        if len(section.content) > self.large_context_threshold:
            largest = largest_context_backend(self.available)
            if largest is not None:
                return largest, "large_context"

        if ARCHITECTURE_PATTERN.search(section_text(section)):
            return rule.categories.get("architecture", rule.default), "architecture"

        if await self.classifier.classify(section.title) == ContentCategory.PREMIUM:
            return rule.categories.get("premium", rule.default), "premium"

        return rule.default, "default"
