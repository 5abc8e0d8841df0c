"""stormswarm: routes article-writing work across Claude, Gemini and Kimi agents."""

from __future__ import annotations

from stormswarm.config import PipelineConfig, Settings, SwarmConfig, load_settings
from stormswarm.llm.backend import BackendPool, LiteLLMBackend
from stormswarm.swarm.orchestrator import OrchestratorContext, SwarmOrchestrator
from stormswarm.swarm.router import TaskRouter

__version__ = "0.1.0"

__all__ = [
    "BackendPool",
    "LiteLLMBackend",
    "OrchestratorContext",
    "PipelineConfig",
    "Settings",
    "SwarmConfig",
    "SwarmOrchestrator",
    "TaskRouter",
    "load_settings",
]
