"""Async runner behind the ``run`` command."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stormswarm.config import Settings
from stormswarm.exceptions import StormSwarmError
from stormswarm.llm.backend import BackendPool
from stormswarm.swarm.orchestrator import SwarmOrchestrator
from stormswarm.swarm.types import PipelineResult, SwarmMetrics

console = Console()

_PHASE_LABELS = {
    "RESEARCHING": "Researching perspectives and facts…",
    "OUTLINING": "Drafting and reviewing the outline…",
    "WRITING": "Writing sections…",
    "POLISHING": "Polishing and fact-checking…",
}


def _render_event(kind: str, payload: dict[str, Any]) -> None:
    if kind == "phase_start":
        phase = payload.get("phase", "")
        console.print(
            f"\n[bold blue]▶ {phase}[/bold blue] [dim]{_PHASE_LABELS.get(phase, '')}[/dim]"
        )
    elif kind == "task_failed":
        console.print(
            f"  [red]❌ {payload.get('task_type')} on {payload.get('agent')}: "
            f"{payload.get('error')}[/red]"
        )


def _agent_table(metrics: SwarmMetrics) -> Table:
    table = Table(title="Agent Utilization", show_lines=False)
    table.add_column("Agent", style="bold")
    table.add_column("Role")
    table.add_column("Backend")
    table.add_column("Tasks", justify="right")

    for usage in metrics.per_agent_utilization.values():
        table.add_row(usage.name, usage.role, usage.backend, str(usage.tasks_completed))
    return table


async def run_pipeline(topic: str, settings: Settings, output: Path | None = None) -> int:
    """Run the full pipeline and print the results. Returns the exit code."""
    backends = BackendPool.from_settings(settings)
    if not len(backends):
        console.print(
            "[red]No backends configured.[/red] Set ANTHROPIC_API_KEY, GEMINI_API_KEY "
            "or MOONSHOT_API_KEY (or a .env file) and try again."
        )
        return 1

    orchestrator = SwarmOrchestrator(backends, settings=settings, on_event=_render_event)
    started_at = time.time()

    try:
        result: PipelineResult = await orchestrator.run_pipeline(topic, settings.pipeline)
    except StormSwarmError as e:
        console.print(f"\n[red]Pipeline aborted: {e}[/red]")
        return 1

    elapsed = time.time() - started_at
    metrics = result.metrics
    console.print()
    console.print(_agent_table(metrics))

    if result.succeeded and result.article is not None:
        if output is not None:
            output.write_text(result.article, encoding="utf-8")
            destination = f"Saved to [bold]{output}[/bold]"
        else:
            console.print()
            console.print(result.article)
            destination = "Printed above"
    else:
        destination = f"Failed in {result.failed_phase}: {result.error}"

    status_color = "green" if result.succeeded else "red"
    info_line = "  ·  ".join(
        [
            f"Agents: [bold]{metrics.total_agents}[/bold]",
            f"Tasks: [bold]{metrics.tasks_completed}[/bold] done, "
            f"[bold]{metrics.tasks_failed}[/bold] failed",
            f"Tokens: [bold]{metrics.total_tokens:,}[/bold]",
            f"Time: [bold]{elapsed:.1f}s[/bold]",
        ]
    )
    console.print(
        Panel(
            f"[bold {status_color}]{result.state}[/bold {status_color}]\n\n"
            f"{destination}\n\n{info_line}",
            border_style=status_color,
            title="[bold]Swarm Complete[/bold]",
        )
    )

    return 0 if result.succeeded else 1
