"""beatgraph CLI - typer application entry point."""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from beatgraph.config import ProjectFile, ProjectFileError, load_project
from beatgraph.graph.errors import NodeNotFoundError
from beatgraph.observability import close_file_logging, configure_logging, get_logger
from beatgraph.visualization import render_dot, render_mermaid

if TYPE_CHECKING:
    from beatgraph.graph.dependency_graph import DependencyGraph
    from beatgraph.graph.validation_types import Finding

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="beatgraph",
    help="beatgraph: dependency analysis for story beats.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

SEVERITY_STYLES = {
    "error": "[red]✗ error[/red]",
    "warning": "[yellow]! warning[/yellow]",
    "info": "[dim]i info[/dim]",
}
VIZ_FORMATS = ("dot", "mermaid")

ProjectArg = Annotated[
    Path,
    typer.Argument(help="Project file (YAML or JSON) with beats and dependencies."),
]

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to logs/debug.jsonl next to the project file.",
        ),
    ] = False,
) -> None:
    """beatgraph: dependency analysis for story beats."""
    global _verbose, _log_enabled
    _verbose = verbose
    _log_enabled = log_to_file

    # File logging is configured later, once the project file is known
    configure_logging(verbosity=verbose)


def _load(project_file: Path) -> tuple[ProjectFile, DependencyGraph, list[Finding]]:
    """Load a project file and build its graph, exiting with 1 on failure."""
    if _log_enabled:
        configure_logging(
            verbosity=_verbose,
            log_to_file=True,
            log_dir=project_file.resolve().parent / "logs",
        )
        atexit.register(close_file_logging)

    try:
        project = load_project(project_file)
    except ProjectFileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    graph, rejected = project.build_graph()
    for finding in rejected:
        console.print(
            f"[yellow]Skipped dependency[/yellow] {' → '.join(finding.affected_beats)}: "
            f"{finding.message}"
        )
    return project, graph, rejected


def _require_beat(graph: DependencyGraph, beat_id: str) -> None:
    try:
        graph.require_beat(beat_id, context="command argument")
    except NodeNotFoundError as e:
        console.print(f"[red]Error:[/red] {e.to_feedback()}")
        raise typer.Exit(1) from e


def _findings_table(title: str, findings: list[Finding]) -> Table:
    table = Table(title=title)
    table.add_column("Severity", style="bold")
    table.add_column("Kind", style="cyan")
    table.add_column("Message")
    table.add_column("Beats", style="dim")
    for finding in findings:
        table.add_row(
            SEVERITY_STYLES.get(finding.severity, finding.severity),
            finding.kind,
            finding.message,
            ", ".join(finding.affected_beats),
        )
    return table


@app.command()
def version() -> None:
    """Show version information."""
    from beatgraph import __version__

    console.print(f"beatgraph v{__version__}")


@app.command()
def validate(project_file: ProjectArg) -> None:
    """Validate dependencies against the beat order recorded in the project."""
    project, graph, _ = _load(project_file)
    report = graph.validate(project.current_orders())

    if not report.findings:
        console.print(f"[green]✓[/green] {project.name}: no problems found")
        return

    console.print(_findings_table(f"Validation: {project.name}", report.findings))
    console.print(f"\n{report.summary}")
    if report.has_errors:
        raise typer.Exit(1)


@app.command()
def order(
    project_file: ProjectArg,
    suggest: Annotated[
        bool,
        typer.Option("--suggest", help="Show the suggested order (level, then current order)."),
    ] = False,
) -> None:
    """Show a prerequisite-respecting order of the beats."""
    _, graph, _ = _load(project_file)
    topo = graph.topological_order()

    if not topo.has_valid_order:
        console.print("[red]No valid order: the graph contains cycles.[/red]")
        for cycle in topo.cycles:
            console.print(f"  {' → '.join(cycle)}")
        raise typer.Exit(1)

    beat_ids = graph.suggest_optimal_order() if suggest else topo.order
    table = Table(title="Suggested order" if suggest else "Topological order")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Beat", style="cyan")
    table.add_column("Name")
    table.add_column("Level", justify="right")
    for position, beat_id in enumerate(beat_ids):
        beat = graph.get_beat(beat_id)
        table.add_row(
            str(position),
            beat_id,
            beat.name if beat else beat_id,
            str(topo.levels.get(beat_id, 0)),
        )
    console.print(table)


@app.command()
def impact(
    project_file: ProjectArg,
    beat_id: Annotated[str, typer.Argument(help="Beat to analyse.")],
) -> None:
    """Show what depends on a beat and how much of the story it affects."""
    _, graph, _ = _load(project_file)
    _require_beat(graph, beat_id)

    result = graph.analyze_impact(beat_id)
    console.print(f"[bold]Impact of {beat_id}[/bold]: {result.impact_score}%")
    console.print(f"  Directly affected: {', '.join(result.directly_affected) or '-'}")
    console.print(f"  Transitively affected: {', '.join(result.transitively_affected) or '-'}")
    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


@app.command()
def chains(project_file: ProjectArg) -> None:
    """List causality chains (linear runs of single-dependent beats)."""
    _, graph, _ = _load(project_file)
    found = graph.causality_chains()

    if not found:
        console.print("[dim]No causality chains.[/dim]")
        return

    table = Table(title="Causality chains")
    table.add_column("Chain", style="dim")
    table.add_column("Starts at", style="cyan")
    table.add_column("Beats")
    for chain in found:
        table.add_row(chain.id, chain.name, " → ".join(chain.beats))
    console.print(table)


@app.command()
def reorder(
    project_file: ProjectArg,
    beat_id: Annotated[str, typer.Argument(help="Beat to move.")],
    position: Annotated[int, typer.Argument(help="New position.")],
) -> None:
    """Check whether moving a beat to a new position respects its dependencies."""
    project, graph, _ = _load(project_file)
    _require_beat(graph, beat_id)

    check = graph.is_valid_reorder(beat_id, position, project.current_orders())
    if check.valid:
        console.print(f"[green]✓[/green] {beat_id} can move to position {position}")
        return

    console.print(f"[red]✗[/red] {beat_id} cannot move to position {position}:")
    for reason in check.errors:
        console.print(f"  - {reason}")
    raise typer.Exit(1)


@app.command()
def viz(
    project_file: ProjectArg,
    fmt: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: dot or mermaid."),
    ] = "dot",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to this file instead of stdout."),
    ] = None,
) -> None:
    """Render the dependency graph as DOT or Mermaid."""
    if fmt not in VIZ_FORMATS:
        console.print(f"[red]Error:[/red] Unknown format '{fmt}'. Use one of: dot, mermaid.")
        raise typer.Exit(1)

    _, graph, _ = _load(project_file)
    view = graph.visualization_data()
    rendered = render_dot(view) if fmt == "dot" else render_mermaid(view)

    if output is None:
        # Raw print: rich markup would mangle DOT/Mermaid brackets
        typer.echo(rendered)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered + "\n", encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote {fmt} to {output}")


@app.command()
def doctor(project_file: ProjectArg) -> None:
    """Check that a project loads cleanly and the graph is consistent."""
    console.print("[bold]beatgraph doctor[/bold]")
    console.print()

    project, graph, rejected = _load(project_file)
    all_ok = True

    console.print(
        f"[green]✓[/green] Loaded {project.name}: "
        f"{len(project.beats)} beats, {len(project.dependencies)} dependency rows"
    )

    if rejected:
        all_ok = False
        console.print(f"[yellow]![/yellow] {len(rejected)} dependency row(s) rejected (cycle)")
    else:
        console.print("[green]✓[/green] All dependency rows accepted")

    orphans = graph.validate(project.current_orders()).by_kind("orphan")
    if orphans:
        all_ok = False
        console.print(f"[yellow]![/yellow] {len(orphans)} dependency endpoint(s) missing")
    else:
        console.print("[green]✓[/green] All dependency endpoints exist")

    violations = graph.validate_invariants()
    if violations:
        all_ok = False
        console.print("[red]✗[/red] Invariant violations:")
        for v in violations:
            console.print(f"  - {v}")
    else:
        console.print("[green]✓[/green] Graph invariants hold")

    console.print()
    if all_ok:
        console.print("[green]All checks passed![/green]")
    else:
        console.print("[yellow]Some checks failed.[/yellow]")
        raise typer.Exit(1)
