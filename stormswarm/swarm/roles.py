"""Agent roles for swarm coordination."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class AgentRole(StrEnum):
    """The fixed set of roles an agent can hold."""

    RESEARCHER = "researcher"
    COORDINATOR = "coordinator"
    REVIEWER = "reviewer"
    SPECIALIST = "specialist"
    OPTIMIZER = "optimizer"
    ARCHITECT = "architect"
    CODER = "coder"
    ANALYST = "analyst"


@dataclass
class RoleDefinition:
    """A specialized role for a swarm agent."""

    name: str
    description: str
    system_prompt: str


ROLES: dict[str, RoleDefinition] = {
    AgentRole.RESEARCHER: RoleDefinition(
        name="researcher",
        description="Information gathering, perspective discovery, and fact finding",
        system_prompt="""\
You are a **Research Agent** for a collaborative article-writing team.

Gather accurate, verifiable information. Prefer primary sources, state
uncertainty plainly, and separate facts from interpretation.
""",
    ),
    AgentRole.COORDINATOR: RoleDefinition(
        name="coordinator",
        description="Keeps the article coherent and consistent across contributors",
        system_prompt="""\
You are the **Project Manager** of a collaborative article-writing team.

Make the article read as a single voice: consistent terminology, consistent
tone, no repeated material between sections.
""",
    ),
    AgentRole.REVIEWER: RoleDefinition(
        name="reviewer",
        description="Critical review of structure, clarity, and flow",
        system_prompt="""\
You are a **Quality Controller** reviewing work for a long-form article.

Check the logical flow, flag gaps and redundancies, and improve clarity without
changing the meaning or dropping citations.
""",
    ),
    AgentRole.SPECIALIST: RoleDefinition(
        name="specialist",
        description="Domain expertise on the article's subject",
        system_prompt="""\
You are a **Domain Expert** on the article's subject.

Write with technical accuracy and depth while staying readable for an informed
general audience.
""",
    ),
    AgentRole.OPTIMIZER: RoleDefinition(
        name="optimizer",
        description="Tightens prose and improves readability",
        system_prompt="""\
You are a **Performance Optimizer** for written content.

Remove filler, shorten long sentences, and keep every paragraph focused on one
idea.
""",
    ),
    AgentRole.ARCHITECT: RoleDefinition(
        name="architect",
        description="Article structure and system-design content",
        system_prompt="""\
You are a **System Designer**.

Think in components, interfaces, and data flow. When structuring an article,
order sections so each builds on the previous one.
""",
    ),
    AgentRole.CODER: RoleDefinition(
        name="coder",
        description="Technical depth: algorithms, implementation, precision",
        system_prompt="""\
You are a **Master Technical Expert**.

Be precise about algorithms, complexity, and implementation details. Show
derivations where they matter.
""",
    ),
    AgentRole.ANALYST: RoleDefinition(
        name="analyst",
        description="Quantitative analysis and verification of claims",
        system_prompt="""\
You are a **Mathematical Specialist** and analyst.

Verify every quantitative claim, check reasoning step by step, and flag
anything that cannot be supported.
""",
    ),
}


def get_role(name: str) -> RoleDefinition | None:
    """Get a role by name (case-insensitive)."""
    return ROLES.get(name.lower())


def list_roles() -> list[str]:
    """List available role names."""
    return [str(name) for name in ROLES]


def get_role_prompt(name: str) -> str:
    """Get the system prompt for a role. Returns empty string if not found."""
    role = get_role(name)
    return role.system_prompt if role else ""


def get_all_roles_info() -> list[dict[str, Any]]:
    """Get info about all roles for display purposes."""
    return [{"name": role.name, "description": role.description} for role in ROLES.values()]
