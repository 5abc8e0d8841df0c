"""Agent roster construction and agent selection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from stormswarm.exceptions import NoAvailableBackend
from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.roles import AgentRole
from stormswarm.swarm.types import Agent, new_id

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = BackendId.CLAUDE


@dataclass(frozen=True)
class AgentSpec:
    role: AgentRole
    backend: BackendId
    name: str


# 5 agents on claude, 3 on gemini, 2 on kimi.
DEFAULT_ROSTER: tuple[AgentSpec, ...] = (
    AgentSpec(AgentRole.RESEARCHER, BackendId.CLAUDE, "Lead Researcher"),
    AgentSpec(AgentRole.COORDINATOR, BackendId.CLAUDE, "Project Manager"),
    AgentSpec(AgentRole.REVIEWER, BackendId.CLAUDE, "Quality Controller"),
    AgentSpec(AgentRole.SPECIALIST, BackendId.CLAUDE, "Domain Expert"),
    AgentSpec(AgentRole.OPTIMIZER, BackendId.CLAUDE, "Performance Optimizer"),
    AgentSpec(AgentRole.RESEARCHER, BackendId.GEMINI, "Deep Context Researcher"),
    AgentSpec(AgentRole.ARCHITECT, BackendId.GEMINI, "System Designer"),
    AgentSpec(AgentRole.SPECIALIST, BackendId.GEMINI, "Thinking Mode Specialist"),
    AgentSpec(AgentRole.CODER, BackendId.KIMI, "Master Technical Expert"),
    AgentSpec(AgentRole.ANALYST, BackendId.KIMI, "Mathematical Specialist"),
)


class AgentPool:
    """A fixed, ordered roster of agents. Role and backend never change."""

    def __init__(self, agents: Iterable[Agent], default_backend: BackendId = DEFAULT_BACKEND):
        self.agents: list[Agent] = list(agents)
        self.default_backend = default_backend

    @classmethod
    def build(
        cls,
        roster: Iterable[AgentSpec] = DEFAULT_ROSTER,
        available: Iterable[BackendId] | None = None,
        max_agents: int | None = None,
        default_backend: BackendId = DEFAULT_BACKEND,
    ) -> AgentPool:
        """One agent per spec whose backend is configured, in roster order."""
        allowed = None if available is None else {BackendId(b) for b in available}
        agents: list[Agent] = []
        for spec in roster:
            if allowed is not None and spec.backend not in allowed:
                logger.debug("Skipping %s: backend %s not configured", spec.name, spec.backend)
                continue
            if max_agents is not None and len(agents) >= max_agents:
                break
            agents.append(Agent(id=new_id(), name=spec.name, role=spec.role, backend=spec.backend))
        return cls(agents, default_backend=default_backend)

    def on_backend(self, backend: BackendId) -> list[Agent]:
        return [a for a in self.agents if a.backend == backend]

    def round_robin(self, backend: BackendId | None, index: int) -> Agent | None:
        """The ``index``-th agent on *backend*, wrapping around; None if it has none."""
        if backend is None:
            return None
        agents = self.on_backend(backend)
        if not agents:
            return None
        return agents[index % len(agents)]

    def nth(self, backend: BackendId | None, index: int) -> Agent | None:
        """The ``index``-th agent on *backend* without wrapping."""
        if backend is None:
            return None
        agents = self.on_backend(backend)
        return agents[index] if index < len(agents) else None

    def pick(self, backend: BackendId | None, index: int) -> Agent:
        """Round robin over *backend*'s agents, then the default backend's, then everyone's."""
        for candidate in (backend, self.default_backend):
            agent = self.round_robin(candidate, index)
            if agent is not None:
                return agent
        if self.agents:
            return self.agents[index % len(self.agents)]
        raise NoAvailableBackend("agent", [str(backend), str(self.default_backend)])

    def select(self, backend: BackendId, role: AgentRole | str) -> Agent:
        """Pick an agent for (backend, role).

        Fallback order: exact (backend, role) match, then any agent on the
        backend, then the default backend's first agent.
        """
        for agent in self.agents:
            if agent.backend == backend and agent.role == role:
                return agent
        for agent in self.agents:
            if agent.backend == backend:
                logger.debug("No %s agent on %s, using %s", role, backend, agent.name)
                return agent
        for agent in self.agents:
            if agent.backend == self.default_backend:
                logger.debug(
                    "No agent on %s, using default backend agent %s",
                    backend,
                    agent.name,
                )
                return agent
        raise NoAvailableBackend(f"agent:{role}", [str(backend), str(self.default_backend)])

    def backend_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for agent in self.agents:
            counts[str(agent.backend)] = counts.get(str(agent.backend), 0) + 1
        return counts

    def __len__(self) -> int:
        return len(self.agents)
