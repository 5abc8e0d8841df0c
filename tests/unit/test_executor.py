"""Tests for the task executor."""

from __future__ import annotations

import asyncio

import pytest
from fakes import OUTLINE_TEXT, FakeBackend, FakeClassifier, make_pool

from stormswarm.exceptions import BackendError, NoAvailableBackend, UnknownTaskType
from stormswarm.swarm.executor import TaskExecutor
from stormswarm.swarm.payloads import (
    ArticlePayload,
    FactsPayload,
    MathematicalPayload,
    Outline,
    OutlinePayload,
    OutlineReviewPayload,
    OutlineSection,
    PerspectivePayload,
    SectionPayload,
    Source,
    TaskType,
)
from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.roles import AgentRole
from stormswarm.swarm.router import TaskRouter
from stormswarm.swarm.types import Agent, AgentStatus, Task, TaskStatus

C, G, K = BackendId.CLAUDE, BackendId.GEMINI, BackendId.KIMI


def _executor(*backends: FakeBackend) -> TaskExecutor:
    pool = make_pool(*backends)
    return TaskExecutor(pool, TaskRouter(pool.available, classifier=FakeClassifier()))


def _agent(backend: BackendId = C, role: AgentRole = AgentRole.RESEARCHER) -> Agent:
    return Agent(id=f"agent-{backend}-{role}", name="Test Agent", role=role, backend=backend)


def _perspective(label: str = "Business Impact") -> Task:
    return Task(
        type=TaskType.GENERATE_PERSPECTIVE,
        payload=PerspectivePayload(topic="edge computing", perspective=label),
    )


# ── State transitions ────────────────────────────────────────


@pytest.mark.asyncio
async def test_successful_task_updates_task_and_agent():
    claude = FakeBackend(C)
    executor = _executor(claude)
    agent = _agent()
    task = _perspective()

    result = await executor.execute(task, agent)

    assert task.status is TaskStatus.COMPLETED
    assert task.result is result
    assert task.assigned_agent_id == agent.id
    assert task.backend is C
    assert task.completed_at is not None
    assert task.usage.total == 30
    assert agent.status is AgentStatus.IDLE
    assert agent.current_task_id is None
    assert agent.completed_task_count == 1
    assert result.perspective == "Business Impact"
    assert result.questions == ["What remains unsolved?"]


@pytest.mark.asyncio
async def test_failed_task_marks_agent_error_and_reraises():
    executor = _executor(FakeBackend(C, fail_when=lambda _: True))
    agent = _agent()
    task = _perspective()

    with pytest.raises(BackendError):
        await executor.execute(task, agent)

    assert task.status is TaskStatus.FAILED
    assert "simulated outage" in (task.error or "")
    assert agent.status is AgentStatus.ERROR
    assert agent.completed_task_count == 0


@pytest.mark.asyncio
async def test_unknown_task_type_changes_nothing():
    executor = _executor(FakeBackend(C))
    agent = _agent()
    task = Task(type="summon_demons", payload=FactsPayload(topic="x"))  # type: ignore[arg-type]

    with pytest.raises(UnknownTaskType):
        await executor.execute(task, agent)

    assert task.status is TaskStatus.CREATED
    assert task.assigned_agent_id is None
    assert agent.status is AgentStatus.IDLE


@pytest.mark.asyncio
async def test_unroutable_task_fails():
    executor = _executor(FakeBackend(K))
    task = _perspective()

    with pytest.raises(NoAvailableBackend):
        await executor.execute(task, _agent(K))
    assert task.status is TaskStatus.FAILED


@pytest.mark.asyncio
async def test_pre_routed_backend_is_respected():
    claude, gemini = FakeBackend(C), FakeBackend(G)
    executor = _executor(claude, gemini)
    task = _perspective()
    task.backend = G

    await executor.execute(task, _agent(C))

    assert len(gemini.calls) == 1
    assert claude.calls == []


@pytest.mark.asyncio
async def test_task_cannot_move_to_another_agent():
    executor = _executor(FakeBackend(C))
    task = _perspective()
    await executor.execute(task, _agent(role=AgentRole.RESEARCHER))

    with pytest.raises(ValueError, match="already assigned"):
        await executor.execute(task, _agent(role=AgentRole.REVIEWER))


@pytest.mark.asyncio
async def test_cancelled_task_is_marked_cancelled():
    executor = _executor(FakeBackend(C, delay=1.0))
    agent = _agent()
    task = _perspective()

    runner = asyncio.create_task(executor.execute(task, agent))
    await asyncio.sleep(0.01)
    assert task.status is TaskStatus.EXECUTING
    assert agent.status is AgentStatus.WORKING
    assert agent.current_task_id == task.id

    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert task.status is TaskStatus.CANCELLED
    assert agent.status is AgentStatus.IDLE
    assert agent.current_task_id is None
    assert agent.completed_task_count == 0


# ── Agent exclusivity ────────────────────────────────────────


@pytest.mark.asyncio
async def test_agent_runs_one_task_at_a_time():
    claude = FakeBackend(C, delay=0.01)
    executor = _executor(claude)
    agent = _agent()
    tasks = [_perspective(f"Label {i}") for i in range(5)]

    await asyncio.gather(*(executor.execute(t, agent) for t in tasks))

    assert claude.max_in_flight == 1
    assert agent.completed_task_count == 5
    assert all(t.status is TaskStatus.COMPLETED for t in tasks)


@pytest.mark.asyncio
async def test_different_agents_run_concurrently():
    claude = FakeBackend(C, delay=0.01)
    executor = _executor(claude)
    agents = [_agent(role=role) for role in (AgentRole.RESEARCHER, AgentRole.REVIEWER)]

    await asyncio.gather(*(executor.execute(_perspective(), a) for a in agents))

    assert claude.max_in_flight == 2
    assert [a.completed_task_count for a in agents] == [1, 1]


# ── Handlers ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_role_prompt_is_sent_as_system_prompt():
    claude = FakeBackend(C)
    await _executor(claude).execute(_perspective(), _agent(role=AgentRole.REVIEWER))
    assert "Quality Controller" in claude.calls[0]["system_prompt"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("task", "temperature", "max_tokens"),
    [
        (_perspective(), 0.8, 1000),
        (Task(type=TaskType.RESEARCH_FACTS, payload=FactsPayload(topic="t")), 0.5, 2000),
        (Task(type=TaskType.GENERATE_OUTLINE, payload=OutlinePayload(topic="t")), 0.6, 1500),
        (
            Task(type=TaskType.MATHEMATICAL_ANALYSIS, payload=MathematicalPayload(problem="2+2")),
            0.3,
            3000,
        ),
    ],
)
async def test_sampling_parameters(task, temperature, max_tokens):
    backends = [FakeBackend(b) for b in BackendId]
    await _executor(*backends).execute(task, _agent())
    (call,) = [c for b in backends for c in b.calls]
    assert call["temperature"] == temperature
    assert call["max_output_tokens"] == max_tokens
    assert 0.3 <= call["temperature"] <= 0.8


@pytest.mark.asyncio
async def test_research_facts_prompt_uses_depth_and_focus():
    claude = FakeBackend(C)
    task = Task(
        type=TaskType.RESEARCH_FACTS,
        payload=FactsPayload(topic="fusion", depth="shallow", focus="technical_facts"),
    )
    result = await _executor(claude).execute(task, _agent())

    prompt = claude.calls[0]["prompt"]
    assert prompt.startswith('Provide a brief overview of key facts about "fusion"')
    assert "technical details" in prompt
    assert result.focus == "technical_facts"
    assert result.depth == "shallow"


@pytest.mark.asyncio
async def test_generate_outline_parses_sections():
    task = Task(type=TaskType.GENERATE_OUTLINE, payload=OutlinePayload(topic="t"))
    outline = await _executor(FakeBackend(C)).execute(task, _agent())
    assert outline.titles() == ["Introduction", "Architecture", "Conclusion"]


@pytest.mark.asyncio
async def test_generate_outline_without_sections_is_malformed():
    backend = FakeBackend(C, responder=lambda _: "I would rather not.")
    task = Task(type=TaskType.GENERATE_OUTLINE, payload=OutlinePayload(topic="t"))
    with pytest.raises(BackendError, match="malformed"):
        await _executor(backend).execute(task, _agent())
    assert task.status is TaskStatus.FAILED


@pytest.mark.asyncio
async def test_review_outline_keeps_input_when_response_has_no_outline():
    original = Outline(sections=[OutlineSection(title="Only Section")])
    backend = FakeBackend(C, responder=lambda _: "Looks great as is.")
    task = Task(
        type=TaskType.REVIEW_OUTLINE,
        payload=OutlineReviewPayload(topic="t", outline=original),
    )
    assert await _executor(backend).execute(task, _agent()) is original


@pytest.mark.asyncio
async def test_verify_logic_reads_outline_after_marker():
    original = Outline(sections=[OutlineSection(title="Only Section")])
    backend = FakeBackend(
        G,
        responder=lambda _: (
            "1. The progression from background to architecture is sound.\n"
            "2. Add a section on security.\n\n"
            "OUTLINE:\n" + OUTLINE_TEXT
        ),
    )
    task = Task(
        type=TaskType.VERIFY_LOGIC,
        payload=OutlineReviewPayload(topic="t", outline=original),
    )
    outline = await _executor(FakeBackend(C), backend).execute(task, _agent(G))

    assert outline.titles() == ["Introduction", "Architecture", "Conclusion"]
    assert "OUTLINE:" in backend.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_review_outline_without_marker_parses_whole_response():
    original = Outline(sections=[OutlineSection(title="Only Section")])
    task = Task(
        type=TaskType.REVIEW_OUTLINE,
        payload=OutlineReviewPayload(topic="t", outline=original),
    )
    outline = await _executor(FakeBackend(C)).execute(task, _agent())
    assert outline.titles() == ["Introduction", "Architecture", "Conclusion"]


@pytest.mark.asyncio
async def test_generate_outline_ignores_decimal_subsections():
    backend = FakeBackend(
        C, responder=lambda _: "1. Introduction\n1.1 Background\n1.2 Scope\n2. Conclusion"
    )
    task = Task(type=TaskType.GENERATE_OUTLINE, payload=OutlinePayload(topic="t"))
    outline = await _executor(backend).execute(task, _agent())
    assert outline.titles() == ["Introduction", "Conclusion"]
    assert outline.sections[0].subsections == ["Background", "Scope"]


@pytest.mark.asyncio
async def test_write_section_builds_draft():
    claude = FakeBackend(C)
    outline = Outline(sections=[OutlineSection(title="Introduction", subsections=["Scope"])])
    task = Task(
        type=TaskType.WRITE_SECTION,
        payload=SectionPayload(
            section=outline.sections[0],
            outline=outline,
            target_words=300,
            sources=(Source("Paper", "Findings"),),
        ),
    )
    draft = await _executor(claude).execute(task, _agent())

    call = claude.calls[0]
    assert call["max_output_tokens"] == 600
    assert call["temperature"] == 0.7
    assert "[1] Paper: Findings" in call["prompt"]
    assert "- Scope" in call["prompt"]
    assert draft.title == "Introduction"
    assert draft.citations == [1, 2]
    assert draft.word_count == len(draft.content.split())


@pytest.mark.asyncio
async def test_polish_returns_article_and_sampling():
    claude = FakeBackend(C)
    article = "## Intro\n\nSome text."
    task = Task(
        type=TaskType.POLISH_ARTICLE,
        payload=ArticlePayload(article=article, options=("grammar", "flow")),
    )
    result = await _executor(claude).execute(task, _agent())

    call = claude.calls[0]
    assert "Fix any grammatical errors, Enhance the flow" in call["prompt"]
    assert call["temperature"] == 0.5
    assert call["max_output_tokens"] == len(article) + 1000
    assert result.content == article
    assert result.improvements == []


@pytest.mark.asyncio
async def test_fact_check_passes_article_through_without_marker():
    article = "The moon is made of rock."
    task = Task(type=TaskType.FACT_CHECK, payload=ArticlePayload(article=article))
    backend = FakeBackend(C, responder=lambda _: "Claim 1 is outdated.")
    result = await _executor(backend).execute(task, _agent())

    assert result.content == article
    assert result.report == "Claim 1 is outdated."
    assert result.issues == ["Claim 1 is outdated."]
    assert backend.calls[0]["temperature"] == 0.3
    assert backend.calls[0]["max_output_tokens"] == 2000 + len(article)


@pytest.mark.asyncio
async def test_fact_check_uses_corrected_article_after_marker():
    backend = FakeBackend(
        C, responder=lambda _: "One error fixed.\n\nARTICLE:\nThe moon is rock and dust."
    )
    task = Task(
        type=TaskType.FACT_CHECK,
        payload=ArticlePayload(article="The moon is cheese."),
    )
    result = await _executor(backend).execute(task, _agent())
    assert result.content == "The moon is rock and dust."
    assert result.report == "One error fixed."


@pytest.mark.asyncio
async def test_logic_verification_on_gemini():
    gemini = FakeBackend(G)
    task = Task(type=TaskType.LOGIC_VERIFICATION, payload=ArticlePayload(article="Body."))
    result = await _executor(FakeBackend(C), gemini).execute(task, _agent(G))
    assert task.backend is G
    assert len(gemini.calls) == 1
    assert result.content == "Body."


def test_every_task_type_has_a_handler():
    executor = _executor(FakeBackend(C))
    assert all(executor.handles(t) for t in TaskType)
    assert OUTLINE_TEXT.startswith("1. Introduction")
