"""fanout CLI Package.

Usage:
    python -m fanout.cli search "graph neural networks" --domain computer_science
    python -m fanout.cli sources --domain medicine
    python -m fanout.cli validate config/fanout.yaml
    python -m fanout.cli health
    python -m fanout.cli serve --port 8000
"""

import typer

from fanout.cli.health import health_command, serve_command
from fanout.cli.search import search_command
from fanout.cli.sources import sources_command
from fanout.cli.validate import validate_command
from fanout.observability.logging import configure_logging

app = typer.Typer(help="fanout: concurrent search across many providers")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="JSON log output"),
):
    """Configure logging before any command runs."""
    configure_logging(level="DEBUG" if verbose else "WARNING", json_output=json_logs)


app.command(name="search")(search_command)
app.command(name="sources")(sources_command)
app.command(name="validate")(validate_command)
app.command(name="health")(health_command)
app.command(name="serve")(serve_command)

__all__ = [
    "app",
    "search_command",
    "sources_command",
    "validate_command",
    "health_command",
    "serve_command",
]
