"""Typer CLI for stormswarm."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from stormswarm.config import (
    LENGTH_PROFILES,
    RESEARCH_DEPTHS,
    PipelineConfig,
    Settings,
    load_settings,
)

console = Console()
app = typer.Typer(
    name="stormswarm",
    help="Research and write long-form articles with a swarm of Claude, Gemini and Kimi agents.",
    add_completion=False,
    no_args_is_help=True,
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


def _resolve_settings(
    cwd: str,
    length: str | None = None,
    depth: str | None = None,
    sequential: bool = False,
) -> Settings:
    """Merge .env, .stormswarm.yml and CLI flags (flags win)."""
    from dotenv import load_dotenv

    load_dotenv(Path(cwd) / ".env")
    load_dotenv()

    try:
        settings = load_settings(cwd)
        current = settings.pipeline
        settings.pipeline = PipelineConfig(
            research_depth=depth or current.research_depth,  # type: ignore[arg-type]
            article_length=length or current.article_length,  # type: ignore[arg-type]
            parallelization=current.parallelization and not sequential,
        )
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=2) from e
    return settings


@app.command()
def run(
    topic: str = typer.Argument(..., help="Article topic"),
    length: str | None = typer.Option(
        None,
        "--length",
        "-l",
        help=f"Article length: {', '.join(LENGTH_PROFILES)}",
    ),
    depth: str | None = typer.Option(
        None,
        "--depth",
        "-d",
        help=f"Research depth: {', '.join(RESEARCH_DEPTHS)}",
    ),
    sequential: bool = typer.Option(
        False, "--sequential", help="Run each phase's tasks one at a time"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the article to this file"
    ),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Directory holding .stormswarm.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show DEBUG logs"),
) -> None:
    """Research, outline, write and polish an article on TOPIC.

    Examples:
        stormswarm run "quantum cryptography"
        stormswarm run "edge computing" --length medium --depth standard
        stormswarm run "CRISPR ethics" -o crispr.md --sequential
    """
    _setup_logging(verbose)
    resolved_cwd = str(Path(cwd).resolve())
    settings = _resolve_settings(resolved_cwd, length=length, depth=depth, sequential=sequential)

    console.print(
        Panel(
            f"[bold cyan]stormswarm[/bold cyan]\n\n"
            f"[bold]{topic}[/bold]\n\n"
            f"[dim]depth={settings.pipeline.research_depth}  "
            f"length={settings.pipeline.article_length}  "
            f"parallel={settings.pipeline.parallelization}[/dim]\n"
            f"[dim]backends: {', '.join(settings.available_backends()) or 'none'}[/dim]",
            border_style="cyan",
        )
    )

    from stormswarm.cli.runners import run_pipeline as _run_pipeline

    exit_code = asyncio.run(_run_pipeline(topic, settings, output=output))
    raise typer.Exit(code=exit_code)


@app.command()
def backends(
    cwd: str = typer.Option(".", "--cwd", "-C", help="Directory holding .stormswarm.yml"),
) -> None:
    """List the model backends, their strengths and whether they are configured."""
    from stormswarm.swarm.profiles import get_profile

    settings = _resolve_settings(str(Path(cwd).resolve()))

    table = Table(title="Backends", show_lines=True)
    table.add_column("Backend", style="bold")
    table.add_column("Model")
    table.add_column("Context", justify="right")
    table.add_column("Tier", justify="center")
    table.add_column("Strengths")
    table.add_column("Status")

    for backend_id, backend_settings in settings.backends.items():
        profile = get_profile(backend_id)
        if backend_settings.is_available():
            status = "[green]✅ ready[/green]"
        elif not backend_settings.enabled:
            status = "[dim]disabled[/dim]"
        else:
            status = f"[yellow]set {backend_settings.env_var}[/yellow]"
        table.add_row(
            profile.display_name,
            backend_settings.model,
            f"{profile.context_window_tokens:,}",
            profile.quality_tier.name.lower(),
            ", ".join(sorted(profile.strengths)),
            status,
        )
    console.print(table)


@app.command()
def route(
    task_type: str = typer.Argument(..., help="Task type, e.g. research_facts or write_section"),
    title: str | None = typer.Option(
        None, "--title", "-t", help="Section title (for write_section)"
    ),
    description: str = typer.Option("", "--description", help="Section description"),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Directory holding .stormswarm.yml"),
    all_backends: bool = typer.Option(
        False, "--all", help="Route as if every backend were configured"
    ),
) -> None:
    """Show which backend a task type would be routed to.

    Section classification uses the keyword heuristic, so no model is called.
    """
    from stormswarm.exceptions import StormSwarmError
    from stormswarm.swarm.payloads import OutlineSection
    from stormswarm.swarm.profiles import BackendId
    from stormswarm.swarm.router import TaskRouter

    settings = _resolve_settings(str(Path(cwd).resolve()))
    available = list(BackendId) if all_backends else settings.available_backends()
    router = TaskRouter(available, large_context_threshold=settings.large_context_threshold)
    section = OutlineSection(title=title, description=description) if title else None

    try:
        decision = asyncio.run(router.decide(task_type, section))
        reason = router.describe(task_type)
    except StormSwarmError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[bold]{task_type}[/bold] → [cyan]{decision.backend}[/cyan] "
        f"[dim]({decision.category}; {reason})[/dim]"
    )


@app.command()
def roles() -> None:
    """List the agent roles and the default roster."""
    from stormswarm.swarm.pool import DEFAULT_ROSTER
    from stormswarm.swarm.roles import get_all_roles_info

    table = Table(title="Agent Roles", show_lines=True)
    table.add_column("Role", style="bold")
    table.add_column("Description")
    table.add_column("Default agents")

    for info in get_all_roles_info():
        agents = [
            f"{spec.name} ({spec.backend})" for spec in DEFAULT_ROSTER if spec.role == info["name"]
        ]
        table.add_row(info["name"], info["description"], "\n".join(agents) or "[dim]—[/dim]")
    console.print(table)
