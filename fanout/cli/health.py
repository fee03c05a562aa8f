"""Health commands: one-shot provider sweep and the status server."""

import asyncio
from pathlib import Path
from typing import Dict, Optional

import typer

from fanout.cli.utils import (
    build_orchestrator,
    display_error,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from fanout.orchestration.orchestrator import SearchOrchestrator


@handle_errors
def health_command(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to fanout config YAML"
    ),
):
    """Run a health check against every configured provider."""
    config = load_config(config_path)
    orchestrator = build_orchestrator(config)

    outcomes = asyncio.run(_sweep(orchestrator))
    if not outcomes:
        display_warning("No provider clients configured")
        return

    for provider_id, ok in sorted(outcomes.items()):
        health = orchestrator.health_monitor.get_health(provider_id)
        latency = f"{health.last_latency_ms:.0f}ms" if health and ok else "-"
        if ok:
            display_success(f"  OK    {provider_id:<22} {latency}")
        else:
            error = health.last_error if health else ""
            display_error(f"  FAIL  {provider_id:<22} {error}")

    stats = orchestrator.health_monitor.get_monitoring_stats()
    display_info(f"{stats.healthy_providers}/{stats.total_providers} providers healthy")

    if stats.total_providers and stats.healthy_providers == 0:
        raise typer.Exit(code=1)


async def _sweep(orchestrator: SearchOrchestrator) -> Dict[str, bool]:
    try:
        return await orchestrator.check_health()
    finally:
        await orchestrator.close()


@handle_errors
def serve_command(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to fanout config YAML"
    ),
    host: str = typer.Option("localhost", "--host", "-h", help="Server host"),
    port: int = typer.Option(8000, "--port", "-p", help="Server port"),
    sweep_interval: float = typer.Option(
        60.0, "--sweep-interval", help="Seconds between provider health sweeps"
    ),
):
    """Start the status server (health, provider status, metrics)."""
    from fanout.health.server import run_health_server

    config = load_config(config_path)
    orchestrator = build_orchestrator(config)

    display_info(f"Starting status server at http://{host}:{port}")
    run_health_server(
        orchestrator, host=host, port=port, sweep_interval_seconds=sweep_interval
    )
