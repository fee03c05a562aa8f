"""Shared fixtures for fanout tests."""

from typing import Any, Dict, List

import pytest
import structlog

from fanout.models.source import ProviderDescriptor, SourceCategory


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any configure_logging() a test ran, so later tests log to a live stream."""
    yield
    structlog.reset_defaults()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Clock that only moves when a test advances it."""
    return FakeClock()


def make_descriptor(provider_id: str, **overrides: Any) -> ProviderDescriptor:
    fields: Dict[str, Any] = {
        "id": provider_id,
        "name": provider_id.replace("_", " ").title(),
        "category": SourceCategory.WEB_SEARCH,
        "priority": 5,
        "rate_limit": 60,
        "domains": ["all"],
        "languages": [],
        "max_results": 50,
    }
    fields.update(overrides)
    return ProviderDescriptor(**fields)


@pytest.fixture
def descriptor_factory():
    """Factory building ProviderDescriptors with sensible defaults."""
    return make_descriptor


def make_items(provider_id: str, count: int, score: float = 0.5) -> List[Dict[str, Any]]:
    return [
        {
            "title": f"{provider_id} result {i}",
            "url": f"https://{provider_id}.example.com/{i}",
            "snippet": f"snippet {i}",
            "score": score,
        }
        for i in range(count)
    ]


@pytest.fixture
def items_factory():
    """Factory building raw result dicts for a provider."""
    return make_items
