"""Search command: run one fan-out round and print the aggregate."""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from fanout.cli.utils import (
    build_orchestrator,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from fanout.models.search import AggregateResult, SearchOptions, SearchRequest
from fanout.models.source import SourceFilter
from fanout.orchestration.orchestrator import SearchOrchestrator


@handle_errors
def search_command(
    query: str = typer.Argument(..., help="Search query"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to fanout config YAML"
    ),
    domain: List[str] = typer.Option(
        [], "--domain", "-d", help="Domain tag to select providers by (repeatable)"
    ),
    language: List[str] = typer.Option(
        [], "--language", "-l", help="Language code (repeatable)"
    ),
    provider: List[str] = typer.Option(
        [], "--provider", "-p", help="Restrict to provider id (repeatable)"
    ),
    min_priority: Optional[int] = typer.Option(
        None, "--min-priority", min=1, max=10, help="Minimum provider priority"
    ),
    include_auth: bool = typer.Option(
        False, "--include-auth", help="Include providers that require credentials"
    ),
    max_results: Optional[int] = typer.Option(
        None, "--max-results", "-n", min=1, help="Maximum results to return"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Round deadline in seconds"
    ),
    max_concurrent: Optional[int] = typer.Option(
        None, "--max-concurrent", min=1, help="Concurrent provider calls"
    ),
    expand: bool = typer.Option(
        False, "--expand", help="Also search synonym variants of the query"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the aggregate as JSON"),
):
    """Fan a query out to the selected providers."""
    config = load_config(config_path)
    orchestrator = build_orchestrator(config)

    request = SearchRequest(
        query=query,
        source_filter=SourceFilter(
            domains=domain,
            languages=language,
            provider_ids=provider or None,
            min_priority=min_priority,
            include_auth_required=include_auth,
        ),
        options=SearchOptions(
            max_results=max_results,
            timeout_seconds=timeout,
            max_concurrent=max_concurrent,
            expand_query=expand,
        ),
    )

    result = asyncio.run(_run(orchestrator, request))

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    _display_result(result)


async def _run(
    orchestrator: SearchOrchestrator, request: SearchRequest
) -> AggregateResult:
    try:
        return await orchestrator.search(request)
    finally:
        await orchestrator.close()


def _display_result(result: AggregateResult) -> None:
    display_info(
        f"{result.total_results} results from {result.successful_sources}/"
        f"{result.total_sources} providers in {result.search_duration_ms:.0f}ms"
    )

    for i, item in enumerate(result.results, start=1):
        typer.echo(f"{i:3d}. {item.title or item.url}")
        if item.url:
            typer.echo(f"     {item.url}")
        typer.echo(f"     [{item.source}] score={item.score:.2f}")

    if result.expanded_queries:
        typer.echo(f"Queries: {'; '.join(result.expanded_queries)}")

    if result.duplicates_removed:
        typer.echo(f"Duplicates removed: {result.duplicates_removed}")

    for error in result.errors:
        display_warning(f"  {error.provider_id}: {error.kind.value} - {error.message}")

    if result.sources_used:
        display_success(f"Sources used: {', '.join(result.sources_used)}")
