"""HTTP status endpoints for a running orchestrator.

Usage:
    from fanout.health import create_health_app

    app = create_health_app(orchestrator)
    uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from fanout.health.server import (
    HealthStatus,
    create_health_app,
    overall_status,
    run_health_server,
)

__all__ = [
    "HealthStatus",
    "create_health_app",
    "overall_status",
    "run_health_server",
]
