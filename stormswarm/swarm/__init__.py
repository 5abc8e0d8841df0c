"""Multi-backend agent swarm for article generation."""

from __future__ import annotations

from stormswarm.swarm.payloads import Outline, OutlineSection, TaskType
from stormswarm.swarm.profiles import BackendId, ModelProfile, get_profile, list_profiles
from stormswarm.swarm.roles import AgentRole, get_role, list_roles
from stormswarm.swarm.types import (
    Agent,
    PipelineResult,
    PipelineState,
    Swarm,
    SwarmMetrics,
    Task,
    TaskStatus,
)

__all__ = [
    "Agent",
    "AgentRole",
    "BackendId",
    "ModelProfile",
    "Outline",
    "OutlineSection",
    "PipelineResult",
    "PipelineState",
    "Swarm",
    "SwarmMetrics",
    "Task",
    "TaskStatus",
    "TaskType",
    "get_profile",
    "get_role",
    "list_profiles",
    "list_roles",
]
