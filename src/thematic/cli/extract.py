"""Theme extraction commands for the thematic CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from thematic.entities.core import ResearchPurpose
from thematic.entities.reports import ExtractionResponse, ExtractionStatus, ProgressEvent
from thematic.errors import ThematicError
from thematic.llm.local import DEFAULT_DIMENSIONS, HashingEmbedder
from thematic.orchestration import ExtractionOrchestrator, ExtractionRequest
from thematic.utils.helpers import serialize_json
from thematic.utils.logging import logging_context

from .common import console, fail, get_state, load_sources_file, render_panel, resolve_path

app = typer.Typer(
    add_completion=False,
    help="Extract themes from a collection of research sources.",
    no_args_is_help=True,
)


def _render_themes(response: ExtractionResponse) -> None:
    table = Table(title=f"Themes ({len(response.themes)})", box=None)
    table.add_column("#", justify="right")
    table.add_column("Label")
    table.add_column("Confidence", justify="right")
    table.add_column("Sources", justify="right")
    table.add_column("Keywords")
    for position, theme in enumerate(response.themes, start=1):
        table.add_row(
            str(position),
            theme.label,
            f"{theme.confidence:.2f}",
            str(len(theme.source_ids)),
            ", ".join(theme.keywords[:5]),
        )
    console.print(table)


def _run_command(
    ctx: typer.Context,
    sources_path: Path = typer.Argument(..., help="JSON file holding a list of sources or {'sources': [...]}."),
    purpose: ResearchPurpose = typer.Option(
        ResearchPurpose.QUALITATIVE_ANALYSIS,
        "--purpose",
        "-p",
        case_sensitive=False,
        help="Research purpose selecting thresholds and generation algorithm.",
    ),
    max_themes: Optional[int] = typer.Option(
        None, "--max-themes", min=1, help="Keep at most this many themes.", show_default=False
    ),
    min_confidence: Optional[float] = typer.Option(
        None,
        "--min-confidence",
        min=0.0,
        max=1.0,
        help="Drop themes below this confidence; defaults to the purpose setting.",
        show_default=False,
    ),
    output_path: Optional[Path] = typer.Option(
        None,
        "--output",
        "-O",
        help="Destination for the JSON response; defaults to the run directory under paths.output_dir.",
        show_default=False,
    ),
    dimensions: int = typer.Option(
        DEFAULT_DIMENSIONS, "--dimensions", min=2, help="Vector size for the offline hashing embedder."
    ),
) -> None:
    """Run the six-stage extraction over SOURCES_PATH and write the response as JSON."""

    state = get_state(ctx)
    resolved_sources = resolve_path(sources_path)
    records = load_sources_file(resolved_sources)
    try:
        request = ExtractionRequest.from_payload(
            {
                "purpose": purpose.value,
                "sources": records,
                "options": {"min_confidence": min_confidence, "max_themes": max_themes},
                "run_id": state.run_id,
            }
        )
    except ThematicError as exc:
        raise fail(exc.message)

    destination = (
        resolve_path(output_path, must_exist=False)
        if output_path is not None
        else state.settings.paths.output_dir / "runs" / state.run_id / "extraction.json"
    )

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting extraction", total=600.0)

        def on_progress(event: ProgressEvent) -> None:
            completed = (event.stage_number - 1) * 100.0 + event.percentage
            description = f"[{event.stage_number}/{event.total_stages}] {event.stage_name}"
            progress.update(task, completed=completed, description=description)

        with logging_context(run_id=state.run_id, step="cli"):
            with ExtractionOrchestrator.from_settings(
                state.settings, embed=HashingEmbedder(dimensions)
            ) as orchestrator:
                response = orchestrator.run(request, on_progress=on_progress)

    serialize_json(response.to_payload(), destination)

    if response.status is not ExtractionStatus.COMPLETE:
        error = response.error
        raise fail(error.message if error is not None else f"Extraction ended with status {response.status.value}")

    _render_themes(response)
    report = response.methodology_report
    if report is not None and report.degradation_notices:
        for notice in report.degradation_notices:
            console.print(
                f"[yellow]Degraded:[/yellow] {notice.requested} -> {notice.used} ({notice.reason})"
            )
    if response.diagnosis is not None:
        render_panel(
            "No themes extracted",
            {
                "diagnosis": response.diagnosis.kind.value,
                "message": response.diagnosis.message,
                "recommendations": response.diagnosis.recommendations,
            },
        )
    if state.verbose and report is not None:
        render_panel("Stage counts", report.stage_counts)
    console.print(f"[green]Extraction complete[/green] -> {destination}")


app.command("run")(_run_command)
