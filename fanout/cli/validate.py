"""Validate command for configuration files."""

from pathlib import Path

import typer

from fanout.cli.utils import display_error, display_success, handle_errors
from fanout.services.config_manager import ConfigManager


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid!")
    typer.echo(
        f" - {len(config.sources)} custom sources, "
        f"{len(config.http_providers)} HTTP providers"
    )
