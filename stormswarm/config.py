"""Run configuration dataclasses and the .stormswarm.yml loader."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.types import Topology

ResearchDepth = Literal["shallow", "standard", "deep"]
ArticleLength = Literal["short", "medium", "long", "comprehensive"]

CONFIG_FILENAME = ".stormswarm.yml"

RESEARCH_DEPTHS: tuple[str, ...] = ("shallow", "standard", "deep")

# Words per section for each article length profile.
LENGTH_PROFILES: dict[str, int] = {
    "short": 200,
    "medium": 400,
    "long": 600,
    "comprehensive": 1000,
}
DEFAULT_SECTION_WORDS = 400

# Backend definitions: LiteLLM model name and the env var holding its API key.
BACKEND_DEFS: list[dict[str, Any]] = [
    {
        "backend": BackendId.CLAUDE,
        "name": "Anthropic (Claude)",
        "model": "claude-sonnet-4-20250514",
        "env_var": "ANTHROPIC_API_KEY",
    },
    {
        "backend": BackendId.GEMINI,
        "name": "Google (Gemini)",
        "model": "gemini/gemini-2.5-pro",
        "env_var": "GEMINI_API_KEY",
    },
    {
        "backend": BackendId.KIMI,
        "name": "Moonshot (Kimi)",
        "model": "moonshot/kimi-k2-0711-preview",
        "env_var": "MOONSHOT_API_KEY",
    },
]


def section_word_target(article_length: str) -> int:
    """Target words for each section. Every section gets the same share."""
    return LENGTH_PROFILES.get(article_length, DEFAULT_SECTION_WORDS)


@dataclass
class BackendSettings:
    """How to reach one backend."""

    backend: BackendId
    model: str
    env_var: str | None = None
    enabled: bool = True

    def is_available(self) -> bool:
        """Enabled, and its API key is present (when one is required)."""
        if not self.enabled:
            return False
        return self.env_var is None or bool(os.environ.get(self.env_var))


def default_backend_settings() -> dict[BackendId, BackendSettings]:
    return {
        d["backend"]: BackendSettings(backend=d["backend"], model=d["model"], env_var=d["env_var"])
        for d in BACKEND_DEFS
    }


@dataclass
class SwarmConfig:
    """Arguments of create_swarm. Topology and strategy are informational."""

    topology: str = "hierarchical"
    max_agents: int = 10
    strategy: str = "specialized"

    def __post_init__(self) -> None:
        try:
            Topology(self.topology)
        except ValueError:
            allowed = ", ".join(t.value for t in Topology)
            msg = f"Unknown topology '{self.topology}'. Available: {allowed}"
            raise ValueError(msg) from None
        if self.max_agents < 1:
            msg = f"max_agents must be positive, got {self.max_agents}"
            raise ValueError(msg)


@dataclass
class PipelineConfig:
    """Arguments of run_pipeline."""

    research_depth: ResearchDepth = "deep"
    article_length: ArticleLength = "comprehensive"
    parallelization: bool = True

    def __post_init__(self) -> None:
        if self.research_depth not in RESEARCH_DEPTHS:
            msg = (
                f"Unknown research depth '{self.research_depth}'. "
                f"Available: {', '.join(RESEARCH_DEPTHS)}"
            )
            raise ValueError(msg)
        if self.article_length not in LENGTH_PROFILES:
            msg = (
                f"Unknown article length '{self.article_length}'. "
                f"Available: {', '.join(LENGTH_PROFILES)}"
            )
            raise ValueError(msg)

    @property
    def section_words(self) -> int:
        return section_word_target(self.article_length)


@dataclass
class Settings:
    """Everything the orchestrator needs beyond the per-run configs."""

    backends: dict[BackendId, BackendSettings] = field(default_factory=default_backend_settings)
    swarm: SwarmConfig = field(default_factory=SwarmConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    call_timeout_seconds: float = 300.0  # 0 = no timeout
    large_context_threshold: int = 200_000
    classifier_backend: BackendId = BackendId.CLAUDE

    def available_backends(self) -> list[BackendId]:
        return [b for b, s in self.backends.items() if s.is_available()]


def load_config(cwd: str) -> dict[str, Any] | None:
    """Load config from .stormswarm.yml if it exists, else return None."""
    import yaml

    config_path = Path(cwd) / CONFIG_FILENAME
    if not config_path.exists():
        return None
    with config_path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
    return data if isinstance(data, dict) else None


def _as_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def settings_from_dict(data: dict[str, Any] | None) -> Settings:
    """Build Settings from the parsed YAML mapping. Unknown keys are ignored.

    Example file::

        backends:
          kimi:
            enabled: false
          gemini:
            model: gemini/gemini-2.5-flash
        swarm:
          max_agents: 8
        pipeline:
          article_length: medium
        call_timeout_seconds: 120
    """
    settings = Settings()
    if not data:
        return settings

    for name, raw in (data.get("backends") or {}).items():
        backend = BackendId(name)
        current = settings.backends[backend]
        raw = raw or {}
        settings.backends[backend] = BackendSettings(
            backend=backend,
            model=str(raw.get("model", current.model)),
            env_var=raw.get("env_var", current.env_var),
            enabled=_as_bool(raw.get("enabled", current.enabled), f"backends.{name}.enabled"),
        )

    swarm = data.get("swarm") or {}
    settings.swarm = SwarmConfig(
        topology=str(swarm.get("topology", settings.swarm.topology)),
        max_agents=int(swarm.get("max_agents", settings.swarm.max_agents)),
        strategy=str(swarm.get("strategy", settings.swarm.strategy)),
    )

    pipeline = data.get("pipeline") or {}
    settings.pipeline = PipelineConfig(
        research_depth=pipeline.get("research_depth", settings.pipeline.research_depth),
        article_length=pipeline.get("article_length", settings.pipeline.article_length),
        parallelization=_as_bool(
            pipeline.get("parallelization", settings.pipeline.parallelization),
            "pipeline.parallelization",
        ),
    )

    if "call_timeout_seconds" in data:
        settings.call_timeout_seconds = float(data["call_timeout_seconds"])
    if "large_context_threshold" in data:
        settings.large_context_threshold = int(data["large_context_threshold"])
    if "classifier_backend" in data:
        settings.classifier_backend = BackendId(data["classifier_backend"])
    return settings


def load_settings(cwd: str) -> Settings:
    """Settings from ``<cwd>/.stormswarm.yml``, or defaults when the file is absent."""
    return settings_from_dict(load_config(cwd))
