"""Data models for provider health tracking."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthConfig(BaseModel):
    """Health monitor configuration"""

    failover_threshold: int = Field(
        3, ge=1, description="Consecutive failures before a provider is unhealthy"
    )
    latency_smoothing: float = Field(
        0.1, gt=0.0, le=1.0, description="EMA smoothing factor for latency"
    )
    # None keeps unhealthy providers skipped until a sweep or manual reset
    probe_interval_seconds: Optional[float] = Field(default=None, gt=0.0)
    check_timeout_seconds: float = Field(10.0, gt=0.0)
    check_query: str = "health check"


class ProviderHealth(BaseModel):
    """Mutable health record for one provider"""

    provider_id: str
    is_healthy: bool = True
    consecutive_failures: int = 0
    total_requests: int = 0
    error_count: int = 0
    success_rate: float = 1.0
    average_latency_ms: float = 0.0
    last_latency_ms: Optional[float] = None
    last_error: Optional[str] = None
    last_checked_at: datetime = Field(default_factory=datetime.utcnow)
    unhealthy_since: Optional[float] = None
    last_probe_at: Optional[float] = None
    probe_in_flight: bool = False


class MonitoringStats(BaseModel):
    """Aggregate view across all monitored providers"""

    total_providers: int = 0
    healthy_providers: int = 0
    unhealthy_providers: int = 0
    average_latency_ms: float = 0.0
    overall_success_rate: float = 1.0
