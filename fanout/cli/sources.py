"""Sources command: list registry providers matching a filter."""

from pathlib import Path
from typing import List, Optional

import typer

from fanout.cli.utils import display_warning, handle_errors, load_config
from fanout.models.source import SourceCategory, SourceFilter
from fanout.services.registry_service import SourceRegistry


@handle_errors
def sources_command(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to fanout config YAML"
    ),
    domain: List[str] = typer.Option([], "--domain", "-d", help="Domain tag"),
    category: List[SourceCategory] = typer.Option(
        [], "--category", help="Provider category"
    ),
    min_priority: Optional[int] = typer.Option(
        None, "--min-priority", min=1, max=10, help="Minimum provider priority"
    ),
    include_auth: bool = typer.Option(
        False, "--include-auth", help="Include providers that require credentials"
    ),
):
    """List providers that a search with these filters would select."""
    config = load_config(config_path)
    registry = (
        SourceRegistry.with_builtin(config.sources)
        if config.include_builtin_sources
        else SourceRegistry(config.sources)
    )
    bound = {binding.provider_id for binding in config.http_providers}

    selected = registry.select_sources(
        SourceFilter(
            domains=domain,
            categories=category,
            min_priority=min_priority,
            include_auth_required=include_auth,
        )
    )

    if not selected:
        display_warning("No providers match these filters")
        return

    typer.echo(f"{len(selected)} providers selected:")
    for source in selected:
        marker = "*" if source.id in bound else " "
        typer.echo(
            f" {marker} {source.id:<22} p={source.priority:<2} "
            f"{source.rate_limit:>4}/min  {source.category.value}"
        )
    typer.echo("(* = client configured)")
