"""Shared types for the swarm module."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from stormswarm.swarm.payloads import PAYLOAD_TYPES, Payload, TaskType
from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.roles import AgentRole


class AgentStatus(StrEnum):
    IDLE = "idle"
    WORKING = "working"
    ERROR = "error"


class TaskStatus(StrEnum):
    CREATED = "created"
    ASSIGNED = "assigned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SwarmStatus(StrEnum):
    INITIALIZING = "initializing"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Topology(StrEnum):
    """Accepted for compatibility; does not change routing or execution."""

    HIERARCHICAL = "hierarchical"
    MESH = "mesh"
    RING = "ring"
    STAR = "star"


class PipelineState(StrEnum):
    INITIALIZING = "INITIALIZING"
    RESEARCHING = "RESEARCHING"
    OUTLINING = "OUTLINING"
    WRITING = "WRITING"
    POLISHING = "POLISHING"
    DONE = "DONE"
    FAILED = "FAILED"


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt=self.prompt + other.prompt,
            completion=self.completion + other.completion,
            total=self.total + other.total,
        )


@dataclass
class Generation:
    """Result of a single generate_text call."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""


@dataclass
class Agent:
    """A logical worker bound to one backend and one role for the swarm's lifetime."""

    id: str
    name: str
    role: AgentRole
    backend: BackendId
    status: AgentStatus = AgentStatus.IDLE
    current_task_id: str | None = None
    completed_task_count: int = 0


@dataclass
class Task:
    """A unit of work in the swarm's task ledger."""

    type: TaskType
    payload: Payload
    id: str = field(default_factory=new_id)
    assigned_agent_id: str | None = None
    backend: BackendId | None = None
    status: TaskStatus = TaskStatus.CREATED
    result: Any = None
    error: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    created_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES.get(self.type)
        if expected is not None and not isinstance(self.payload, expected):
            msg = (
                f"Task type '{self.type}' expects {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )
            raise TypeError(msg)

    def assign(self, agent_id: str) -> None:
        """Bind the task to an agent. The binding never changes afterwards."""
        if self.assigned_agent_id is not None and self.assigned_agent_id != agent_id:
            msg = f"Task {self.id} is already assigned to agent {self.assigned_agent_id}"
            raise ValueError(msg)
        self.assigned_agent_id = agent_id
        if self.status is TaskStatus.CREATED:
            self.status = TaskStatus.ASSIGNED

    @property
    def settled(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


@dataclass
class Swarm:
    """The working set (agents, task ledger, metadata) for one orchestration run."""

    topic: str
    id: str = field(default_factory=new_id)
    topology: Topology = Topology.HIERARCHICAL
    strategy: str = "specialized"
    max_agents: int = 10
    agents: dict[str, Agent] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)
    status: SwarmStatus = SwarmStatus.INITIALIZING
    state: PipelineState = PipelineState.INITIALIZING
    created_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    def agents_on(self, backend: BackendId) -> list[Agent]:
        return [a for a in self.agents.values() if a.backend == backend]


@dataclass
class AgentUtilization:
    name: str
    tasks_completed: int
    backend: str
    role: str
    strengths: list[str]


@dataclass
class SwarmMetrics:
    """Aggregate view of a swarm, readable at any point including after failure."""

    swarm_id: str
    status: str
    state: str
    total_agents: int
    tasks_completed: int
    tasks_failed: int
    per_agent_utilization: dict[str, AgentUtilization]
    per_backend_agent_count: dict[str, int]
    elapsed_ms: int
    total_tokens: int = 0


@dataclass
class PipelineResult:
    """Outcome of a full pipeline run."""

    swarm_id: str
    state: PipelineState
    article: str | None
    metrics: SwarmMetrics
    error: str | None = None
    failed_phase: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE
