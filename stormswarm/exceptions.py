"""Exception hierarchy for stormswarm."""

from __future__ import annotations


class StormSwarmError(Exception):
    """Base class for all stormswarm errors."""


class ConfigurationError(StormSwarmError):
    """Programming or configuration error. Fatal, never retried."""


class UnknownBackend(ConfigurationError):
    """A backend id has no registered profile or no configured adapter."""

    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__(f"Unknown backend: '{backend}'")


class UnknownTaskType(ConfigurationError):
    """A task type has no executor handler or routing rule."""

    def __init__(self, task_type: str) -> None:
        self.task_type = task_type
        super().__init__(f"Unknown task type: '{task_type}'")


class TaskFailure(StormSwarmError):
    """A single task failed. Fails the owning phase."""


class BackendError(TaskFailure):
    """A generation call failed (transport, auth, quota, timeout, malformed response)."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"[{backend}] {message}")


class NoAvailableBackend(TaskFailure):
    """The router found no configured adapter for a task."""

    def __init__(self, task_type: str, tried: list[str] | None = None) -> None:
        self.task_type = task_type
        self.tried = tried or []
        detail = f" (tried: {', '.join(self.tried)})" if self.tried else ""
        super().__init__(f"No available backend for task type '{task_type}'{detail}")


class PhaseFailed(StormSwarmError):
    """A pipeline phase aborted because one of its tasks failed."""

    def __init__(self, phase: str, task_id: str, cause: BaseException) -> None:
        self.phase = phase
        self.task_id = task_id
        self.cause = cause
        super().__init__(f"Phase {phase} failed on task {task_id}: {cause}")
