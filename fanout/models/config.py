"""Configuration models.

Defines the operational knobs consumed by the orchestration core, the
HTTP provider endpoint definitions, and the top-level YAML document.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from fanout.models.cache import CacheConfig
from fanout.models.health import HealthConfig
from fanout.models.source import ProviderDescriptor


class FanoutSettings(BaseModel):
    """Concurrency and timeout settings for fan-out rounds"""

    # Worker pool settings
    max_concurrent: int = Field(default=50, ge=1, le=1000)

    # Timeout settings
    round_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    task_timeout_seconds: float = Field(default=10.0, gt=0.0, le=600.0)

    # Result settings
    default_max_results: Optional[int] = Field(default=None, ge=1)

    health: HealthConfig = Field(default_factory=HealthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("task_timeout_seconds")
    @classmethod
    def task_within_round(cls, v: float, info) -> float:
        round_timeout = info.data.get("round_timeout_seconds")
        if round_timeout is not None and v > round_timeout:
            raise ValueError("task_timeout_seconds cannot exceed round_timeout_seconds")
        return v


class HttpProviderConfig(BaseModel):
    """A JSON search endpoint bound to a registry provider id.

    `url` and `params` values may contain `{query}` and `{max_results}`
    placeholders. Header values may reference environment variables with
    `${VAR}` syntax (substituted at load time).
    """

    provider_id: str = Field(..., min_length=1)
    url: str = Field(..., pattern=r"^https?://")
    method: Literal["GET", "POST"] = "GET"
    params: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    results_path: Optional[str] = Field(
        default=None, description="Dotted path to the result list, e.g. 'items'"
    )
    field_map: Dict[str, str] = Field(
        default_factory=dict, description="SearchItem field -> response key"
    )


class FanoutConfig(BaseModel):
    """Top-level configuration document"""

    settings: FanoutSettings = Field(default_factory=FanoutSettings)
    include_builtin_sources: bool = True
    sources: List[ProviderDescriptor] = Field(default_factory=list)
    http_providers: List[HttpProviderConfig] = Field(default_factory=list)

    @field_validator("http_providers")
    @classmethod
    def unique_provider_bindings(
        cls, v: List[HttpProviderConfig]
    ) -> List[HttpProviderConfig]:
        seen = set()
        for binding in v:
            if binding.provider_id in seen:
                raise ValueError(
                    f"Duplicate http provider binding: {binding.provider_id}"
                )
            seen.add(binding.provider_id)
        return v
