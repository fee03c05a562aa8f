"""Unit tests for fan-out data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from fanout.models.cache import CacheEntry, CacheStats
from fanout.models.config import FanoutConfig, FanoutSettings, HttpProviderConfig
from fanout.models.rate_limit import RateWindow
from fanout.models.search import (
    AggregateResult,
    ErrorKind,
    ProviderError,
    ProviderResult,
    SearchItem,
    SearchOptions,
    SearchRequest,
)
from fanout.models.source import ProviderDescriptor, SourceCategory, SourceFilter


class TestProviderDescriptor:
    """Tests for ProviderDescriptor."""

    def test_tags_are_lowercased_tuples(self):
        """Test domains and languages are normalized to lowercase tuples."""
        d = ProviderDescriptor(
            id="x", name="X", domains=["Medicine", " Biology "], languages="EN"
        )
        assert d.domains == ("medicine", "biology")
        assert d.languages == ("en",)

    def test_descriptor_is_frozen(self):
        """Test descriptors cannot be mutated."""
        d = ProviderDescriptor(id="x", name="X")
        with pytest.raises(ValidationError):
            d.priority = 9

    def test_priority_bounds(self):
        """Test priority must be within 1-10."""
        with pytest.raises(ValidationError):
            ProviderDescriptor(id="x", name="X", priority=11)

    def test_all_domain_matches_anything(self):
        """Test the catch-all domain tag."""
        d = ProviderDescriptor(id="x", name="X", domains=["all"])
        assert d.supports_domain("astronomy")

    def test_empty_languages_is_agnostic(self):
        """Test providers without languages accept any language."""
        d = ProviderDescriptor(id="x", name="X")
        assert d.supports_any_language(["ja"])


class TestSearchItem:
    """Tests for SearchItem."""

    def test_lenient_published_at(self):
        """Test ISO dates parse and garbage becomes None."""
        assert SearchItem(published_at="2024-05-01T10:00:00Z").published_at == datetime.fromisoformat(
            "2024-05-01T10:00:00+00:00"
        )
        assert SearchItem(published_at="last tuesday").published_at is None

    def test_optional_fields_default(self):
        """Test optional fields may be absent."""
        item = SearchItem(title="t")
        assert item.content is None
        assert item.score == 0.0


class TestResultModels:
    """Tests for ProviderResult and AggregateResult."""

    def test_failure_factory(self):
        """Test ProviderResult.failure builds an error result."""
        d = ProviderDescriptor(id="pubmed", name="PubMed")
        result = ProviderResult.failure(d, ErrorKind.UNHEALTHY, "down")
        assert not result.success
        assert result.error.kind == ErrorKind.UNHEALTHY
        assert result.provider_name == "PubMed"
        assert result.item_count == 0

    def test_counts_as_failure(self):
        """Test only timeouts and upstream errors count against health."""
        assert ErrorKind.TIMEOUT.counts_as_failure
        assert ErrorKind.UPSTREAM.counts_as_failure
        assert not ErrorKind.UNHEALTHY.counts_as_failure
        assert not ErrorKind.RATE_LIMITED.counts_as_failure
        assert not ErrorKind.CANCELLED.counts_as_failure

    def test_errors_by_kind(self):
        """Test filtering aggregate errors by kind."""
        result = AggregateResult(
            errors=[
                ProviderError(provider_id="a", kind=ErrorKind.TIMEOUT, message="t"),
                ProviderError(provider_id="b", kind=ErrorKind.UPSTREAM, message="u"),
            ]
        )
        assert [e.provider_id for e in result.errors_by_kind(ErrorKind.TIMEOUT)] == ["a"]

    def test_request_requires_query(self):
        """Test empty queries are rejected."""
        with pytest.raises(ValidationError):
            SearchRequest(query="")

    def test_filter_canonical_ignores_order_and_case(self):
        """Test equivalent filters share one canonical form."""
        a = SourceFilter(
            domains=["Medical", "all"],
            languages=["EN"],
            categories=[SourceCategory.WEB_SEARCH, SourceCategory.PREPRINT_SERVERS],
            provider_ids=["b", "a"],
        )
        b = SourceFilter(
            domains=["all", "medical", " medical "],
            languages=["en"],
            categories=[SourceCategory.PREPRINT_SERVERS, SourceCategory.WEB_SEARCH],
            provider_ids=["a", "b", "a"],
        )
        assert a.canonical() == b.canonical()
        assert a.canonical()["provider_ids"] == ["a", "b"]
        assert SourceFilter().canonical()["provider_ids"] is None

    def test_fingerprint_options_track_expansion(self):
        """Test an expanded request is keyed apart from a plain one."""
        plain = SearchRequest(query="q")
        expanded = SearchRequest(query="q", options=SearchOptions(expand_query=True))
        assert plain.fingerprint_options() != expanded.fingerprint_options()


class TestSupportModels:
    """Tests for windows, cache entries and config models."""

    def test_rate_window_remaining(self):
        """Test remaining never goes negative."""
        window = RateWindow(provider_id="a", limit=2, request_count=3)
        assert window.remaining == 0

    def test_cache_entry_expires_at_boundary(self):
        """Test an entry is expired exactly at expires_at."""
        entry = CacheEntry(
            fingerprint="f", result=AggregateResult(), created_at=100.0, ttl_seconds=10
        )
        assert not entry.is_expired(109.9)
        assert entry.is_expired(110.0)

    def test_cache_hit_rate(self):
        """Test hit rate computation."""
        assert CacheStats().hit_rate == 0.0
        assert CacheStats(hits=3, misses=1).hit_rate == 0.75

    def test_task_timeout_cannot_exceed_round(self):
        """Test settings reject a task timeout above the round timeout."""
        with pytest.raises(ValidationError):
            FanoutSettings(round_timeout_seconds=5, task_timeout_seconds=10)

    def test_http_provider_url_scheme(self):
        """Test HTTP provider URLs must be http(s)."""
        with pytest.raises(ValidationError):
            HttpProviderConfig(provider_id="x", url="ftp://example.com")

    def test_duplicate_http_bindings_rejected(self):
        """Test two endpoints cannot bind the same provider id."""
        binding = {"provider_id": "x", "url": "https://example.com"}
        with pytest.raises(ValidationError):
            FanoutConfig(http_providers=[binding, binding])
