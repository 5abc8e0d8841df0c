"""Task executor: runs one task on one agent through its routed backend."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any

from stormswarm.exceptions import BackendError, UnknownTaskType
from stormswarm.llm.backend import Backend, BackendPool
from stormswarm.swarm.payloads import (
    AnalysisResult,
    ArticlePayload,
    ArticleResult,
    FactsPayload,
    FactsResult,
    MathematicalPayload,
    Outline,
    OutlinePayload,
    OutlineReviewPayload,
    PerspectivePayload,
    PerspectiveResult,
    PremiumAnalysisPayload,
    SectionDraft,
    SectionPayload,
    TaskType,
    TopicAnalysisPayload,
)
from stormswarm.swarm.roles import get_role_prompt
from stormswarm.swarm.router import TaskRouter
from stormswarm.swarm.text import (
    aggregate_insights,
    count_words,
    extract_citations,
    extract_questions,
    identify_improvements,
    parse_fact_check_issues,
    parse_outline,
    split_marked,
)
from stormswarm.swarm.types import Agent, AgentStatus, Task, TaskStatus

logger = logging.getLogger(__name__)

ARTICLE_MARKER = "ARTICLE:"
OUTLINE_MARKER = "OUTLINE:"

DEPTH_PROMPTS: dict[str, str] = {
    "shallow": "Provide a brief overview of key facts about",
    "standard": "Research and provide comprehensive facts about",
    "deep": "Conduct deep research and provide detailed, verified facts about",
}

FOCUS_PROMPTS: dict[str, str] = {
    "general_facts": "Concentrate on the established core facts and statistics.",
    "technical_facts": "Concentrate on technical details, mechanisms and specifications.",
    "contextual_facts": "Concentrate on history, context and how the field got here.",
}

POLISH_INSTRUCTIONS: dict[str, str] = {
    "grammar": "Fix any grammatical errors",
    "clarity": "Improve clarity and readability",
    "flow": "Enhance the flow between sentences and paragraphs",
    "consistency": "Keep terminology and tone consistent throughout",
    "citations": "Ensure citations are properly formatted",
    "formatting": "Improve formatting and structure",
    "seo": "Optimize for search engines while maintaining quality",
    "perfection": "Make a final pass for precision and correctness",
    "voice": "Give the article a single confident voice",
    "impact": "Sharpen openings and conclusions for impact",
}

Handler = Callable[[Task, Agent, Backend], Awaitable[Any]]


def _outline_json(outline: Outline) -> str:
    return json.dumps(asdict(outline), indent=2)


def polish_instructions(options: tuple[str, ...]) -> str:
    return ", ".join(POLISH_INSTRUCTIONS.get(opt, opt) for opt in options)


class TaskExecutor:
    """Runs tasks against backends and keeps task and agent state in step.

    An agent holds at most one executing task at a time; concurrent tasks
    addressed to the same agent wait on that agent's lock.
    """

    def __init__(self, backends: BackendPool, router: TaskRouter) -> None:
        self.backends = backends
        self.router = router
        self._locks: dict[str, asyncio.Lock] = {}
        self._handlers: dict[TaskType, Handler] = {
            TaskType.GENERATE_PERSPECTIVE: self._generate_perspective,
            TaskType.RESEARCH_FACTS: self._research_facts,
            TaskType.LONG_DOCUMENT_ANALYSIS: self._long_document_analysis,
            TaskType.SYSTEM_DESIGN: self._system_design,
            TaskType.COMPLEX_REASONING: self._complex_reasoning,
            TaskType.PREMIUM_TECHNICAL_ANALYSIS: self._premium_technical_analysis,
            TaskType.MATHEMATICAL_ANALYSIS: self._mathematical_analysis,
            TaskType.GENERATE_OUTLINE: self._generate_outline,
            TaskType.REVIEW_OUTLINE: self._review_outline,
            TaskType.VERIFY_LOGIC: self._verify_logic,
            TaskType.WRITE_SECTION: self._write_section,
            TaskType.POLISH_ARTICLE: self._polish_article,
            TaskType.FACT_CHECK: self._fact_check,
            TaskType.FINAL_POLISH: self._final_polish,
            TaskType.LOGIC_VERIFICATION: self._logic_verification,
        }

    def handles(self, task_type: TaskType | str) -> bool:
        return task_type in self._handlers

    def _lock_for(self, agent: Agent) -> asyncio.Lock:
        lock = self._locks.get(agent.id)
        if lock is None:
            lock = self._locks[agent.id] = asyncio.Lock()
        return lock

    async def execute(self, task: Task, agent: Agent) -> Any:
        """Run *task* on *agent* and return its result.

        On failure the task is marked failed, the agent goes to error and the
        exception propagates. On cancellation the task is marked cancelled.
        """
        handler = self._handlers.get(task.type)
        if handler is None:
            raise UnknownTaskType(str(task.type))

        task.assign(agent.id)
        try:
            async with self._lock_for(agent):
                return await self._run(task, agent, handler)
        except asyncio.CancelledError:
            task.status = TaskStatus.CANCELLED
            task.completed_at = time.time()
            if agent.current_task_id == task.id:
                agent.status = AgentStatus.IDLE
                agent.current_task_id = None
            logger.debug("Task %s (%s) cancelled", task.id, task.type)
            raise

    async def _run(self, task: Task, agent: Agent, handler: Handler) -> Any:
        task.status = TaskStatus.EXECUTING
        agent.status = AgentStatus.WORKING
        agent.current_task_id = task.id
        started = time.time()
        try:
            if task.backend is None:
                section = task.payload.section if isinstance(task.payload, SectionPayload) else None
                task.backend = await self.router.route(task.type, section)
            backend = self.backends.get(task.backend)
            result = await handler(task, agent, backend)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = time.time()
            agent.status = AgentStatus.ERROR
            agent.current_task_id = None
            logger.error(
                "Task %s (%s) failed on %s after %.1fs: %s",
                task.id,
                task.type,
                agent.name,
                time.time() - started,
                e,
            )
            raise

        task.result = result
        task.status = TaskStatus.COMPLETED
        task.completed_at = time.time()
        agent.status = AgentStatus.IDLE
        agent.current_task_id = None
        agent.completed_task_count += 1
        logger.debug(
            "Task %s (%s) completed by %s on %s in %.1fs",
            task.id,
            task.type,
            agent.name,
            task.backend,
            task.completed_at - started,
        )
        return result

    async def _generate(
        self,
        task: Task,
        agent: Agent,
        backend: Backend,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        generation = await backend.generate_text(
            prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            system_prompt=get_role_prompt(agent.role) or None,
        )
        task.usage = task.usage + generation.usage
        return generation.text

    # ── Research ─────────────────────────────────────────────

    async def _generate_perspective(
        self, task: Task, agent: Agent, backend: Backend
    ) -> PerspectiveResult:
        p: PerspectivePayload = task.payload  # type: ignore[assignment]
        prompt = f"""As an expert in {p.perspective}, generate a unique perspective on "{p.topic}".

Your perspective should:
1. Reflect your specific expertise area
2. Identify unique angles others might miss
3. Suggest important questions to explore
4. Highlight potential challenges or opportunities

Provide a structured response with:
- Key insights from your perspective
- Important questions to investigate
- Unique angles to explore"""
        text = await self._generate(task, agent, backend, prompt, 0.8, 1000)
        return PerspectiveResult(
            perspective=p.perspective, content=text, questions=extract_questions(text)
        )

    async def _research_facts(self, task: Task, agent: Agent, backend: Backend) -> FactsResult:
        p: FactsPayload = task.payload  # type: ignore[assignment]
        lead = DEPTH_PROMPTS.get(p.depth, DEPTH_PROMPTS["standard"])
        focus = FOCUS_PROMPTS.get(p.focus, "")
        prompt = f"""{lead} "{p.topic}".
{focus}

Include:
1. Core facts and statistics
2. Recent developments
3. Key players or entities
4. Important dates and milestones
5. Verified sources for each fact

Focus on accuracy and verifiability."""
        text = await self._generate(task, agent, backend, prompt, 0.5, 2000)
        return FactsResult(topic=p.topic, facts=text, depth=p.depth, focus=p.focus)

    async def _long_document_analysis(
        self, task: Task, agent: Agent, backend: Backend
    ) -> AnalysisResult:
        p: TopicAnalysisPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Analyze the full body of literature and documentation on "{p.topic}".

Synthesize:
1. The main schools of thought and where they disagree
2. Long-running threads that connect older and newer work
3. Gaps that shorter summaries usually miss
4. The most important primary sources to cite"""
        text = await self._generate(task, agent, backend, prompt, 0.5, 3000)
        return AnalysisResult(kind=str(task.type), content=text)

    async def _system_design(self, task: Task, agent: Agent, backend: Backend) -> AnalysisResult:
        p: TopicAnalysisPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Design a comprehensive system architecture for: {p.topic}

Provide:
1. High-level system architecture
2. Component breakdown and responsibilities
3. Data flow and communication patterns
4. Technology stack recommendations
5. Scalability considerations
6. Security and reliability measures"""
        text = await self._generate(task, agent, backend, prompt, 0.6, 2500)
        return AnalysisResult(kind=str(task.type), content=text)

    async def _complex_reasoning(
        self, task: Task, agent: Agent, backend: Backend
    ) -> AnalysisResult:
        p: TopicAnalysisPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Analyze this complex problem step-by-step:

What are the hardest open problems in {p.topic}, and how should they be approached?

Break down the problem, consider multiple approaches, and provide a well-reasoned solution."""
        text = await self._generate(task, agent, backend, prompt, 0.7, 2000)
        return AnalysisResult(kind=str(task.type), content=text)

    async def _premium_technical_analysis(
        self, task: Task, agent: Agent, backend: Backend
    ) -> AnalysisResult:
        p: PremiumAnalysisPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Provide premium technical analysis for: {p.topic}

Justification for premium analysis: {p.justification}

Deliver:
1. Deep technical insights with mathematical rigor
2. Advanced algorithm analysis with complexity bounds
3. Cutting-edge research connections
4. Implementation considerations at scale
5. Performance optimization strategies
6. Future research directions"""
        text = await self._generate(task, agent, backend, prompt, 0.4, 3000)
        return AnalysisResult(kind=str(task.type), content=text)

    async def _mathematical_analysis(
        self, task: Task, agent: Agent, backend: Backend
    ) -> AnalysisResult:
        p: MathematicalPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Solve this mathematical problem with high precision:

{p.problem}

Provide:
1. Step-by-step derivation
2. Mathematical proofs where applicable
3. Verification of results
4. Alternative approaches if relevant"""
        text = await self._generate(task, agent, backend, prompt, 0.3, 3000)
        return AnalysisResult(kind=str(task.type), content=text)

    # ── Outline ──────────────────────────────────────────────

    async def _generate_outline(self, task: Task, agent: Agent, backend: Backend) -> Outline:
        p: OutlinePayload = task.payload  # type: ignore[assignment]
        prompt = f"""Create a comprehensive article outline for "{p.topic}" based on this research:

{aggregate_insights(p.research)}

Create an outline that:
1. Has 5-7 main sections
2. Each section has 2-4 subsections
3. Follows a logical progression
4. Covers all important aspects
5. Balances different perspectives

Format as a hierarchical structure: number each main section ("1. Title")
and list its subsections beneath it with "-"."""
        text = await self._generate(task, agent, backend, prompt, 0.6, 1500)
        outline = parse_outline(text)
        if not outline.sections:
            raise BackendError(task.backend or "", "malformed response: outline has no sections")
        return outline

    async def _review_outline(self, task: Task, agent: Agent, backend: Backend) -> Outline:
        p: OutlineReviewPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Review and enhance this outline for an article about "{p.topic}":

{_outline_json(p.outline)}

Improve the outline by:
1. Ensuring logical flow
2. Adding missing important topics
3. Balancing section lengths
4. Improving section titles for clarity
5. Suggesting better organization if needed

Briefly explain your changes first. Then write a line containing only
"{OUTLINE_MARKER}" followed by the enhanced outline as a numbered hierarchical
list ("1. Title", subsections with "-")."""
        text = await self._generate(task, agent, backend, prompt, 0.6, 1500)
        return self._outline_or_input(text, p.outline)

    async def _verify_logic(self, task: Task, agent: Agent, backend: Backend) -> Outline:
        p: OutlineReviewPayload = task.payload  # type: ignore[assignment]
        prompt = f"""Verify the logical structure and flow of this article outline:

Topic: {p.topic}
Outline: {_outline_json(p.outline)}

Check for:
1. Logical progression of ideas
2. Missing critical topics
3. Redundant sections
4. Better organization possibilities
5. Overall coherence

Provide specific recommendations first. Then write a line containing only
"{OUTLINE_MARKER}" followed by the corrected outline as a numbered hierarchical
list ("1. Title", subsections with "-")."""
        text = await self._generate(task, agent, backend, prompt, 0.5, 1500)
        return self._outline_or_input(text, p.outline)

    @staticmethod
    def _outline_or_input(text: str, fallback: Outline) -> Outline:
        _, marked = split_marked(text, OUTLINE_MARKER)
        outline = parse_outline(text if marked is None else marked)
        if not outline.sections:
            logger.info("Response contained no outline; keeping the input outline")
            return fallback
        return outline

    # ── Writing ──────────────────────────────────────────────

    async def _write_section(self, task: Task, agent: Agent, backend: Backend) -> SectionDraft:
        p: SectionPayload = task.payload  # type: ignore[assignment]
        sources = "\n".join(f"[{i}] {s.title}: {s.content}" for i, s in enumerate(p.sources, 1))
        subsections = "\n".join(f"- {sub}" for sub in p.section.subsections)
        prompt = f"""Write a detailed section for the following part of the article:

Section: {p.section.title}
{subsections}
Outline: {json.dumps(p.outline.titles())}

Aim for about {p.target_words} words.

Use these sources for citations:
{sources or "(none provided)"}

Include inline citations where appropriate using [1], [2], etc. format."""
        text = await self._generate(task, agent, backend, prompt, 0.7, p.target_words * 2)
        return SectionDraft(
            title=p.section.title,
            content=text,
            word_count=count_words(text),
            citations=extract_citations(text),
        )

    # ── Polish ───────────────────────────────────────────────

    def _polish_prompt(self, p: ArticlePayload) -> str:
        return f"""Polish the following text according to these requirements: {polish_instructions(p.options)}

Keep the content, structure and citations intact. Reply with the polished text only.

Text to polish:
{p.article}"""

    async def _polish(
        self, task: Task, agent: Agent, backend: Backend, prompt: str
    ) -> ArticleResult:
        p: ArticlePayload = task.payload  # type: ignore[assignment]
        text = await self._generate(task, agent, backend, prompt, 0.5, len(p.article) + 1000)
        _, marked = split_marked(text, ARTICLE_MARKER)
        content = marked if marked else text.strip()
        return ArticleResult(content=content, improvements=identify_improvements(p.article, content))

    async def _polish_article(
        self, task: Task, agent: Agent, backend: Backend
    ) -> ArticleResult:
        p: ArticlePayload = task.payload  # type: ignore[assignment]
        return await self._polish(task, agent, backend, self._polish_prompt(p))

    async def _final_polish(self, task: Task, agent: Agent, backend: Backend) -> ArticleResult:
        p: ArticlePayload = task.payload  # type: ignore[assignment]
        prompt = f"""This is the final editorial pass over an article about "{p.topic}".

{self._polish_prompt(p)}"""
        return await self._polish(task, agent, backend, prompt)

    async def _fact_check(self, task: Task, agent: Agent, backend: Backend) -> ArticleResult:
        p: ArticlePayload = task.payload  # type: ignore[assignment]
        prompt = f"""Fact-check this article for accuracy:

{p.article}

Identify:
1. Any factual errors or inaccuracies
2. Statements that need verification
3. Outdated information
4. Missing attributions or sources
5. Suggested corrections

Provide a detailed fact-checking report. If you correct the article, end with
a line containing only "{ARTICLE_MARKER}" followed by the full corrected article."""
        text = await self._generate(task, agent, backend, prompt, 0.3, 2000 + len(p.article))
        report, corrected = split_marked(text, ARTICLE_MARKER)
        return ArticleResult(
            content=corrected or p.article,
            report=report,
            issues=parse_fact_check_issues(report),
        )

    async def _logic_verification(
        self, task: Task, agent: Agent, backend: Backend
    ) -> ArticleResult:
        p: ArticlePayload = task.payload  # type: ignore[assignment]
        prompt = f"""Verify the logical structure and flow of this article about "{p.topic}":

{p.article}

Check for:
1. Logical progression of ideas
2. Unsupported leaps in reasoning
3. Contradictions between sections
4. Overall coherence

Provide specific findings. If changes are needed, end with a line containing
only "{ARTICLE_MARKER}" followed by the full revised article."""
        text = await self._generate(task, agent, backend, prompt, 0.5, 2000 + len(p.article))
        report, revised = split_marked(text, ARTICLE_MARKER)
        return ArticleResult(
            content=revised or p.article,
            report=report,
            improvements=identify_improvements(p.article, revised) if revised else [],
        )
