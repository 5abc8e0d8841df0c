"""Unit tests for swarm agent roles."""

from __future__ import annotations

from stormswarm.swarm.roles import (
    ROLES,
    AgentRole,
    get_all_roles_info,
    get_role,
    get_role_prompt,
    list_roles,
)


class TestAgentRoles:
    """Tests for role definitions."""

    def test_every_role_defined(self) -> None:
        assert set(ROLES) == set(AgentRole)
        assert len(ROLES) == 8

    def test_all_roles_have_fields(self) -> None:
        for role in ROLES.values():
            assert role.name
            assert role.description
            assert role.system_prompt

    def test_get_role_existing(self) -> None:
        role = get_role("architect")
        assert role is not None
        assert role.name == "architect"

    def test_get_role_case_insensitive(self) -> None:
        role = get_role("Analyst")
        assert role is not None
        assert role.name == "analyst"

    def test_get_role_by_enum(self) -> None:
        role = get_role(AgentRole.CODER)
        assert role is not None
        assert role.name == "coder"

    def test_get_role_nonexistent(self) -> None:
        assert get_role("wizard") is None

    def test_list_roles(self) -> None:
        names = list_roles()
        for expected in ("researcher", "coordinator", "reviewer", "coder", "analyst"):
            assert expected in names

    def test_get_role_prompt(self) -> None:
        assert "Quality Controller" in get_role_prompt("reviewer")

    def test_get_role_prompt_missing(self) -> None:
        assert get_role_prompt("missing") == ""

    def test_get_all_roles_info(self) -> None:
        info = get_all_roles_info()
        assert len(info) == 8
        for item in info:
            assert "name" in item
            assert "description" in item
