"""Swarm orchestrator: drives a topic through research, outline, writing and polish."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from stormswarm.config import PipelineConfig, Settings, SwarmConfig
from stormswarm.exceptions import (
    ConfigurationError,
    PhaseFailed,
    TaskFailure,
)
from stormswarm.llm.backend import BackendPool
from stormswarm.swarm.classifier import (
    Classifier,
    ContentCategory,
    KeywordClassifier,
    LLMContentClassifier,
)
from stormswarm.swarm.executor import TaskExecutor
from stormswarm.swarm.payloads import (
    AnalysisResult,
    ArticlePayload,
    ArticleResult,
    FactsPayload,
    FactsResult,
    Outline,
    OutlinePayload,
    OutlineReviewPayload,
    OutlineSection,
    PAYLOAD_TYPES,
    Payload,
    PerspectivePayload,
    PerspectiveResult,
    PremiumAnalysisPayload,
    SectionDraft,
    SectionPayload,
    Source,
    TaskType,
    TopicAnalysisPayload,
)
from stormswarm.swarm.pool import DEFAULT_ROSTER, AgentPool, AgentSpec
from stormswarm.swarm.profiles import (
    BackendId,
    get_profile,
    large_context_backends,
    premium_backend,
)
from stormswarm.swarm.roles import AgentRole
from stormswarm.swarm.router import TaskRouter
from stormswarm.swarm.text import combine_sections
from stormswarm.swarm.types import (
    Agent,
    AgentUtilization,
    PipelineResult,
    PipelineState,
    Swarm,
    SwarmMetrics,
    SwarmStatus,
    Task,
    TaskStatus,
    Topology,
)

logger = logging.getLogger(__name__)

PERSPECTIVES: tuple[str, ...] = (
    "Technical Implementation",
    "Business Impact",
    "Social Implications",
    "Future Trends",
    "Historical Context",
    "Ethical Considerations",
)

FACT_FOCUSES: tuple[str, ...] = ("general_facts", "technical_facts", "contextual_facts")

_TECHNICAL_LABEL = re.compile(r"technical", re.IGNORECASE)
_FORWARD_LABEL = re.compile(r"future|trend", re.IGNORECASE)

# Longest research excerpt passed to section writers as a citable source.
SOURCE_EXCERPT_CHARS = 1500


@dataclass(frozen=True)
class ChainStep:
    """One pass of a sequential chain.

    ``agent_backend`` picks whose agents may run the step: ``routed`` (the
    backend the router chose) or ``large_context``. An optional
    step is skipped when that backend has no agents; a required one falls
    back to the routed backend.
    """

    task_type: TaskType
    role: AgentRole
    agent_backend: str = "routed"
    options: tuple[str, ...] = ()
    optional: bool = False


OUTLINE_CHAIN: tuple[ChainStep, ...] = (
    ChainStep(TaskType.GENERATE_OUTLINE, AgentRole.ARCHITECT),
    ChainStep(TaskType.REVIEW_OUTLINE, AgentRole.REVIEWER),
    ChainStep(TaskType.VERIFY_LOGIC, AgentRole.SPECIALIST, "large_context", optional=True),
)

POLISH_CHAIN: tuple[ChainStep, ...] = (
    ChainStep(
        TaskType.POLISH_ARTICLE,
        AgentRole.REVIEWER,
        options=("grammar", "clarity", "flow", "consistency"),
    ),
    ChainStep(TaskType.FACT_CHECK, AgentRole.ANALYST),
    ChainStep(
        TaskType.FINAL_POLISH,
        AgentRole.COORDINATOR,
        options=("perfection", "voice", "impact"),
    ),
    ChainStep(
        TaskType.LOGIC_VERIFICATION, AgentRole.SPECIALIST, "large_context", optional=True
    ),
)


def section_role(section: OutlineSection, category: str) -> AgentRole:
    """Role best suited to write a section, given its routing category."""
    if category == "large_context":
        return AgentRole.RESEARCHER
    if category == "architecture":
        return AgentRole.ARCHITECT
    if category == "premium":
        return AgentRole.CODER
    title = section.title.lower()
    if "introduction" in title or "conclusion" in title:
        return AgentRole.REVIEWER
    if "technical" in title:
        return AgentRole.SPECIALIST
    if "analysis" in title:
        return AgentRole.ANALYST
    return AgentRole.RESEARCHER


def research_sources(results: Sequence[Any]) -> tuple[Source, ...]:
    """Citable excerpts of the research results, numbered in task order."""
    sources: list[Source] = []
    for item in results:
        if isinstance(item, PerspectiveResult):
            title, content = f"{item.perspective} perspective", item.content
        elif isinstance(item, FactsResult):
            title, content = f"Facts ({item.focus or item.depth})", item.facts
        elif isinstance(item, AnalysisResult):
            title, content = item.kind.replace("_", " ").capitalize(), item.content
        else:
            continue
        sources.append(Source(title=title, content=content[:SOURCE_EXCERPT_CHARS]))
    return tuple(sources)


@dataclass
class OrchestratorContext:
    """Owns every swarm and its agent pool, keyed by swarm id."""

    swarms: dict[str, Swarm] = field(default_factory=dict)
    pools: dict[str, AgentPool] = field(default_factory=dict)

    def add(self, swarm: Swarm, pool: AgentPool) -> None:
        self.swarms[swarm.id] = swarm
        self.pools[swarm.id] = pool

    def pool_for(self, swarm: Swarm) -> AgentPool:
        try:
            return self.pools[swarm.id]
        except KeyError:
            raise ConfigurationError(f"Swarm {swarm.id} is not registered") from None


class SwarmOrchestrator:
    """Runs the article pipeline over a swarm of backend-bound agents.

    Usage:
        backends = BackendPool.from_settings(settings)
        orchestrator = SwarmOrchestrator(backends, settings=settings)
        result = await orchestrator.run_pipeline(
            "quantum cryptography",
            PipelineConfig(research_depth="deep", article_length="medium"),
        )
        print(result.article)
    """

    def __init__(
        self,
        backends: BackendPool,
        classifier: Classifier | None = None,
        settings: Settings | None = None,
        context: OrchestratorContext | None = None,
        on_event: Callable[..., Any] | None = None,
        roster: Sequence[AgentSpec] = DEFAULT_ROSTER,
    ) -> None:
        self.backends = backends
        self.settings = settings or Settings()
        self.context = context or OrchestratorContext()
        self.roster = tuple(roster)
        self.classifier = classifier or self._default_classifier()
        self.router = TaskRouter(
            backends.available,
            classifier=self.classifier,
            large_context_threshold=self.settings.large_context_threshold,
        )
        self.executor = TaskExecutor(backends, self.router)
        self._on_event = on_event

    def _default_classifier(self) -> Classifier:
        backend_id = self.settings.classifier_backend
        if backend_id in self.backends:
            return LLMContentClassifier(self.backends.get(backend_id))
        logger.info("Classifier backend %s not configured; using keyword heuristic", backend_id)
        return KeywordClassifier()

    def _emit(self, kind: str, **payload: Any) -> None:
        if self._on_event is not None:
            self._on_event(kind, payload)

    # ── Swarm lifecycle ──────────────────────────────────────

    def create_swarm(self, topic: str, config: SwarmConfig | None = None) -> Swarm:
        """Build the roster for *topic* from the configured backends."""
        config = config or self.settings.swarm
        if not len(self.backends):
            raise ConfigurationError("No backends configured")

        swarm = Swarm(
            topic=topic,
            topology=Topology(config.topology),
            strategy=config.strategy,
            max_agents=config.max_agents,
        )
        pool = AgentPool.build(
            self.roster,
            available=self.backends.available,
            max_agents=config.max_agents,
        )
        swarm.agents = {agent.id: agent for agent in pool.agents}
        swarm.status = SwarmStatus.READY
        self.context.add(swarm, pool)
        logger.info(
            "Swarm %s ready: %d agents %s (topology=%s, strategy=%s)",
            swarm.id[:8],
            len(pool),
            pool.backend_counts(),
            swarm.topology,
            swarm.strategy,
        )
        return swarm

    def get_metrics(self, swarm: Swarm) -> SwarmMetrics:
        """Aggregate metrics; valid at any point, including after a failure."""
        pool = self.context.pools.get(swarm.id)
        agents = pool.agents if pool is not None else list(swarm.agents.values())
        tasks = list(swarm.tasks.values())
        end = swarm.finished_at or time.time()
        return SwarmMetrics(
            swarm_id=swarm.id,
            status=str(swarm.status),
            state=str(swarm.state),
            total_agents=len(agents),
            tasks_completed=sum(1 for t in tasks if t.status is TaskStatus.COMPLETED),
            tasks_failed=sum(1 for t in tasks if t.status is TaskStatus.FAILED),
            per_agent_utilization={
                agent.id: AgentUtilization(
                    name=agent.name,
                    tasks_completed=agent.completed_task_count,
                    backend=str(agent.backend),
                    role=str(agent.role),
                    strengths=sorted(get_profile(agent.backend).strengths),
                )
                for agent in agents
            },
            per_backend_agent_count=(
                pool.backend_counts() if pool is not None else {}
            ),
            elapsed_ms=int((end - swarm.created_at) * 1000),
            total_tokens=sum(t.usage.total for t in tasks),
        )

    # ── Pipeline ─────────────────────────────────────────────

    async def run_pipeline(
        self,
        topic: str,
        config: PipelineConfig | None = None,
        swarm: Swarm | None = None,
    ) -> PipelineResult:
        """Run research → outline → writing → polish for *topic*.

        A task failure ends the run in FAILED with no article. Any other error
        marks the swarm FAILED and is raised to the caller.
        """
        config = config or self.settings.pipeline
        swarm = swarm or self.create_swarm(topic, self.settings.swarm)
        pool = self.context.pool_for(swarm)
        swarm.status = SwarmStatus.RUNNING
        logger.info(
            "Pipeline %s: '%s' (depth=%s, length=%s, parallel=%s)",
            swarm.id[:8],
            topic[:80],
            config.research_depth,
            config.article_length,
            config.parallelization,
        )

        try:
            self._enter(swarm, PipelineState.RESEARCHING)
            research = await self._research(swarm, pool, config)

            self._enter(swarm, PipelineState.OUTLINING)
            outline: Outline = await self._run_chain(
                swarm, pool, config, OUTLINE_CHAIN, list(research)
            )

            self._enter(swarm, PipelineState.WRITING)
            drafts = await self._write(swarm, pool, config, outline, research_sources(research))

            self._enter(swarm, PipelineState.POLISHING)
            article: str = await self._run_chain(
                swarm, pool, config, POLISH_CHAIN, combine_sections(drafts)
            )
        except PhaseFailed as e:
            return self._fail(swarm, e.phase, e.cause)
        except TaskFailure as e:
            return self._fail(swarm, str(swarm.state), e)
        except BaseException:
            self._finish(swarm, PipelineState.FAILED, SwarmStatus.FAILED)
            raise

        self._finish(swarm, PipelineState.DONE, SwarmStatus.COMPLETED)
        metrics = self.get_metrics(swarm)
        logger.info(
            "Pipeline %s done: %d tasks, %d tokens, %.1fs",
            swarm.id[:8],
            metrics.tasks_completed,
            metrics.total_tokens,
            metrics.elapsed_ms / 1000,
        )
        return PipelineResult(
            swarm_id=swarm.id,
            state=PipelineState.DONE,
            article=article,
            metrics=metrics,
        )

    def _enter(self, swarm: Swarm, state: PipelineState) -> None:
        previous = swarm.state
        if previous is not PipelineState.INITIALIZING:
            self._emit("phase_end", swarm_id=swarm.id, phase=str(previous))
        swarm.state = state
        logger.info("Swarm %s: %s", swarm.id[:8], state)
        self._emit("phase_start", swarm_id=swarm.id, phase=str(state))

    def _finish(self, swarm: Swarm, state: PipelineState, status: SwarmStatus) -> None:
        if state is PipelineState.DONE:
            self._emit("phase_end", swarm_id=swarm.id, phase=str(swarm.state))
        swarm.state = state
        swarm.status = status
        swarm.finished_at = time.time()

    def _fail(self, swarm: Swarm, phase: str, cause: BaseException) -> PipelineResult:
        logger.error("Pipeline %s failed in %s: %s", swarm.id[:8], phase, cause)
        self._finish(swarm, PipelineState.FAILED, SwarmStatus.FAILED)
        return PipelineResult(
            swarm_id=swarm.id,
            state=PipelineState.FAILED,
            article=None,
            metrics=self.get_metrics(swarm),
            error=str(cause),
            failed_phase=phase,
        )

    # ── Task plumbing ────────────────────────────────────────

    async def _new_task(
        self,
        swarm: Swarm,
        task_type: TaskType,
        payload: Payload,
        agent: Agent,
        backend: BackendId | None = None,
    ) -> Task:
        task = Task(type=task_type, payload=payload)
        task.backend = backend or await self.router.route(task_type)
        task.assign(agent.id)
        swarm.tasks[task.id] = task
        logger.debug("Task %s (%s) → %s on %s", task.id[:8], task_type, agent.name, task.backend)
        return task

    def _agent(self, swarm: Swarm, task: Task) -> Agent:
        return swarm.agents[task.assigned_agent_id or ""]

    async def _fan_out(
        self,
        swarm: Swarm,
        tasks: list[Task],
        parallel: bool,
    ) -> list[Any]:
        """Execute *tasks* and return their results in creation order.

        The first failure cancels every unsettled task and fails the phase.
        """
        phase = str(swarm.state)
        if not parallel:
            results: list[Any] = []
            for task in tasks:
                try:
                    results.append(await self.executor.execute(task, self._agent(swarm, task)))
                except TaskFailure as e:
                    self._task_failed(swarm, task, e)
                    self._cancel_unsettled(tasks)
                    raise PhaseFailed(phase, task.id, e) from e
            return results

        runners = [
            asyncio.create_task(self.executor.execute(task, self._agent(swarm, task)))
            for task in tasks
        ]
        try:
            _, pending = await asyncio.wait(runners, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for runner in runners:
                runner.cancel()
            await asyncio.gather(*runners, return_exceptions=True)
            raise

        failed: tuple[Task, BaseException] | None = None
        for task, runner in zip(tasks, runners):
            if runner.done() and not runner.cancelled() and runner.exception() is not None:
                failed = failed or (task, runner.exception())  # type: ignore[assignment]

        if failed is None:
            return [runner.result() for runner in runners]

        for runner in pending:
            runner.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._cancel_unsettled(tasks)

        task, error = failed
        if not isinstance(error, TaskFailure):
            raise error
        self._task_failed(swarm, task, error)
        raise PhaseFailed(phase, task.id, error) from error

    def _task_failed(self, swarm: Swarm, task: Task, error: BaseException) -> None:
        self._emit(
            "task_failed",
            swarm_id=swarm.id,
            task_id=task.id,
            task_type=str(task.type),
            agent=self._agent(swarm, task).name,
            error=str(error),
        )

    @staticmethod
    def _cancel_unsettled(tasks: list[Task]) -> None:
        now = time.time()
        for task in tasks:
            if not task.settled:
                task.status = TaskStatus.CANCELLED
                task.completed_at = now

    # ── Research ─────────────────────────────────────────────

    async def _research(
        self, swarm: Swarm, pool: AgentPool, config: PipelineConfig
    ) -> list[Any]:
        topic = swarm.topic
        staffed = set(pool.backend_counts())
        premium = premium_backend(staffed)
        large = next(iter(large_context_backends(staffed)), None)
        tasks: list[Task] = []

        technical_n = forward_n = other_n = 0
        for label in PERSPECTIVES:
            if _TECHNICAL_LABEL.search(label):
                agent = pool.pick(premium, technical_n)
                technical_n += 1
            elif _FORWARD_LABEL.search(label):
                agent = pool.pick(large, forward_n)
                forward_n += 1
            else:
                agent = pool.pick(pool.default_backend, other_n)
                other_n += 1
            tasks.append(
                await self._new_task(
                    swarm,
                    TaskType.GENERATE_PERSPECTIVE,
                    PerspectivePayload(topic=topic, perspective=label),
                    agent,
                )
            )

        focus_agents = {
            "general_facts": pool.nth(pool.default_backend, 0),
            "technical_facts": pool.nth(premium, 0) or pool.nth(pool.default_backend, 1),
            "contextual_facts": pool.nth(large, 0) or pool.nth(pool.default_backend, 2),
        }
        for focus in FACT_FOCUSES:
            agent = focus_agents[focus]
            if agent is None:
                logger.debug("No agent for %s; skipping", focus)
                continue
            tasks.append(
                await self._new_task(
                    swarm,
                    TaskType.RESEARCH_FACTS,
                    FactsPayload(topic=topic, depth=config.research_depth, focus=focus),
                    agent,
                )
            )

        large_agents = pool.on_backend(large) if large is not None else []
        analysis = [
            (1, TaskType.LONG_DOCUMENT_ANALYSIS),
            (2, TaskType.SYSTEM_DESIGN),
        ]
        if config.research_depth == "deep":
            analysis.append((3, TaskType.COMPLEX_REASONING))
        for needed, task_type in analysis:
            if len(large_agents) >= needed:
                tasks.append(
                    await self._new_task(
                        swarm,
                        task_type,
                        TopicAnalysisPayload(topic=topic, depth=config.research_depth),
                        large_agents[needed - 1],
                    )
                )

        if premium is not None and (
            await self.classifier.classify(topic) == ContentCategory.PREMIUM
        ):
            tasks.append(
                await self._new_task(
                    swarm,
                    TaskType.PREMIUM_TECHNICAL_ANALYSIS,
                    PremiumAnalysisPayload(
                        topic=topic,
                        depth=config.research_depth,
                        justification="Topic classified as requiring premium technical depth",
                    ),
                    pool.on_backend(premium)[0],
                )
            )

        logger.info("Research: %d tasks across %d agents", len(tasks), len(pool))
        return await self._fan_out(swarm, tasks, config.parallelization)

    # ── Chains (outline, polish) ─────────────────────────────

    def _step_backend(
        self, step: ChainStep, pool: AgentPool, routed: BackendId
    ) -> BackendId | None:
        staffed = set(pool.backend_counts())
        if step.agent_backend == "large_context":
            chosen = next(iter(large_context_backends(staffed)), None)
        else:
            chosen = routed
        if chosen is None and not step.optional:
            return routed
        return chosen

    @staticmethod
    def _step_payload(step: ChainStep, topic: str, value: Any) -> Payload:
        payload_type = PAYLOAD_TYPES[step.task_type]
        if payload_type is OutlinePayload:
            return OutlinePayload(topic=topic, research=tuple(value))
        if payload_type is OutlineReviewPayload:
            return OutlineReviewPayload(topic=topic, outline=value)
        if payload_type is ArticlePayload:
            return ArticlePayload(article=value, options=step.options, topic=topic)
        raise ConfigurationError(f"{step.task_type} cannot be used as a chain step")

    async def _run_chain(
        self,
        swarm: Swarm,
        pool: AgentPool,
        config: PipelineConfig,
        steps: Sequence[ChainStep],
        value: Any,
    ) -> Any:
        """Run *steps* in order, each consuming the previous step's output."""
        for step in steps:
            routed = await self.router.route(step.task_type)
            agent_backend = self._step_backend(step, pool, routed)
            if agent_backend is None:
                logger.info("Skipping optional %s: no agent available", step.task_type)
                continue
            agent = pool.select(agent_backend, step.role)
            task = await self._new_task(
                swarm,
                step.task_type,
                self._step_payload(step, swarm.topic, value),
                agent,
                backend=routed,
            )
            (result,) = await self._fan_out(swarm, [task], parallel=False)
            value = result.content if isinstance(result, ArticleResult) else result
        return value

    # ── Writing ──────────────────────────────────────────────

    async def _write(
        self,
        swarm: Swarm,
        pool: AgentPool,
        config: PipelineConfig,
        outline: Outline,
        sources: tuple[Source, ...],
    ) -> list[SectionDraft]:
        target_words = config.section_words
        tasks: list[Task] = []
        for section in outline.sections:
            decision = await self.router.decide(TaskType.WRITE_SECTION, section)
            role = section_role(section, decision.category)
            agent = pool.select(decision.backend, role)
            tasks.append(
                await self._new_task(
                    swarm,
                    TaskType.WRITE_SECTION,
                    SectionPayload(
                        section=section,
                        outline=outline,
                        target_words=target_words,
                        sources=sources,
                    ),
                    agent,
                    backend=decision.backend,
                )
            )
        logger.info(
            "Writing: %d sections, %d words each", len(tasks), target_words
        )
        return await self._fan_out(swarm, tasks, config.parallelization)
