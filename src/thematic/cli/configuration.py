"""Configuration inspection commands for the thematic CLI."""

from __future__ import annotations

import typer
from rich.table import Table

from thematic.config.purposes import PurposeResolver
from thematic.entities.core import ResearchPurpose
from thematic.errors import ConfigurationError

from .common import console, fail, get_state, render_panel

app = typer.Typer(
    add_completion=False,
    help="Inspect and validate purpose configuration.",
    no_args_is_help=True,
)


def _purposes_command(ctx: typer.Context) -> None:
    """List every research purpose with its thresholds and generator."""

    state = get_state(ctx)
    resolver = PurposeResolver(state.settings.policies.purposes)
    table = Table(title="Research Purposes", box=None)
    table.add_column("Purpose", no_wrap=True)
    table.add_column("Generator", overflow="fold")
    table.add_column("Themes", justify="right")
    table.add_column("Min sources", justify="right")
    table.add_column("Min coherence", justify="right")
    table.add_column("Min confidence", justify="right")
    table.add_column("Validation", overflow="fold")
    for purpose, config in resolver:
        table.add_row(
            purpose.value,
            config.generator,
            f"{config.target_theme_count.minimum}-{config.target_theme_count.maximum}",
            str(config.min_sources),
            f"{config.min_coherence:.2f}",
            f"{config.min_confidence:.2f}",
            config.validation_level,
        )
    console.print(table)


def _show_command(
    ctx: typer.Context,
    purpose: str = typer.Argument(..., help="Purpose name, e.g. qualitative_analysis."),
) -> None:
    """Print the full configuration bundle for one purpose."""

    state = get_state(ctx)
    try:
        config = PurposeResolver(state.settings.policies.purposes).resolve(purpose)
    except ConfigurationError as exc:
        raise fail(exc.message)
    render_panel(f"Purpose: {config.purpose.value}", config.model_dump(mode="json"))


def _validate_command(ctx: typer.Context) -> None:
    """Check every purpose bundle and report the active policy version."""

    state = get_state(ctx)
    try:
        resolver = PurposeResolver(state.settings.policies.purposes)
    except ConfigurationError as exc:
        raise fail(exc.message)
    console.print(
        f"[green]Configuration valid[/green]: {len(resolver.purposes)} of {len(ResearchPurpose)} purposes, "
        f"policy version {state.settings.policy_version}"
    )


app.command("purposes")(_purposes_command)
app.command("show")(_show_command)
app.command("validate")(_validate_command)
