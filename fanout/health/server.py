"""FastAPI status server for a running orchestrator.

Provides HTTP endpoints for:
- /health - provider health summary (503 when no provider is healthy)
- /ready - readiness probe
- /live - liveness probe
- /providers - per-provider engine status
- /metrics - Prometheus metrics in text format

Usage:
    from fanout.health.server import run_health_server
    run_health_server(orchestrator, host="0.0.0.0", port=8000)
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from fanout.models.health import MonitoringStats
from fanout.observability.metrics import get_metrics_content_type, get_metrics_text
from fanout.orchestration.orchestrator import SearchOrchestrator

logger = structlog.get_logger()


class HealthStatus(str, Enum):
    """Overall health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def overall_status(stats: MonitoringStats) -> HealthStatus:
    """Healthy when every provider is up, unhealthy when none is."""
    if stats.total_providers == 0 or stats.unhealthy_providers == 0:
        return HealthStatus.HEALTHY
    if stats.healthy_providers == 0:
        return HealthStatus.UNHEALTHY
    return HealthStatus.DEGRADED


def create_health_app(
    orchestrator: SearchOrchestrator,
    sweep_interval_seconds: Optional[float] = None,
    title: str = "fanout status API",
    version: str = "1.0.0",
) -> FastAPI:
    """Create FastAPI application with health endpoints.

    Args:
        orchestrator: Orchestrator whose state is reported
        sweep_interval_seconds: If set, run periodic provider health
            sweeps while the server is up
        title: API title
        version: API version
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover
        logger.info("health_server_starting")
        if sweep_interval_seconds:
            orchestrator.start_health_monitoring(sweep_interval_seconds)
        yield
        await orchestrator.close()
        logger.info("health_server_stopping")

    app = FastAPI(
        title=title,
        version=version,
        description="Provider health and metrics for the fanout engine",
        lifespan=lifespan,
    )

    @app.get("/health", response_model=None, summary="Provider health summary")
    async def health_check() -> Response:
        stats = orchestrator.health_monitor.get_monitoring_stats()
        overall = overall_status(stats)

        status_code = (
            status.HTTP_200_OK
            if overall != HealthStatus.UNHEALTHY
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        content = {"status": overall.value, **stats.model_dump()}
        return JSONResponse(content=content, status_code=status_code)

    @app.get("/ready", response_model=None, summary="Readiness probe")
    async def readiness_probe() -> Response:
        ready = bool(orchestrator.health_monitor.healthy_ids())
        return JSONResponse(
            content={"ready": ready},
            status_code=(
                status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
            ),
        )

    @app.get("/live", response_model=None, summary="Liveness probe")
    async def liveness_probe() -> Dict[str, Any]:
        return {"alive": True}

    @app.get("/providers", response_model=None, summary="Per-provider status")
    async def providers() -> Dict[str, Any]:
        return orchestrator.get_engine_status()

    @app.get(
        "/metrics",
        response_class=PlainTextResponse,
        summary="Prometheus metrics",
    )
    async def prometheus_metrics() -> Response:
        return Response(
            content=get_metrics_text(),
            media_type=get_metrics_content_type(),
        )

    return app


def run_health_server(  # pragma: no cover
    orchestrator: SearchOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8000,
    sweep_interval_seconds: Optional[float] = 60.0,
    log_level: str = "info",
) -> None:
    """Run the status server (blocking)."""
    import uvicorn

    app = create_health_app(orchestrator, sweep_interval_seconds)
    logger.info("health_server_starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
