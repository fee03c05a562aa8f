"""Unit tests for Aggregator merge, dedup and ranking."""

import pytest

from fanout.models.source import ProviderDescriptor
from fanout.models.search import (
    ErrorKind,
    ProviderResult,
    SearchItem,
    SearchOptions,
    SearchRequest,
)
from fanout.services.aggregator import Aggregator, deduplicate, merge_provider_results
from fanout.utils.exceptions import AggregationError


def _ok(provider_id, items, latency=100.0):
    return ProviderResult(
        provider_id=provider_id,
        items=[SearchItem(source=provider_id, **i) for i in items],
        latency_ms=latency,
    )


@pytest.fixture
def aggregator():
    return Aggregator(clock=lambda: 10.0)


class TestDeduplicate:
    """Tests for the dedup helper."""

    def test_first_occurrence_wins(self):
        """Test duplicates by normalized url+title keep the first."""
        items = [
            SearchItem(title="A", url="https://x/1", source="p1"),
            SearchItem(title="a ", url="https://X/1/", source="p2"),
            SearchItem(title="B", url="https://x/2", source="p2"),
        ]
        unique, removed = deduplicate(items)
        assert [i.source for i in unique] == ["p1", "p2"]
        assert removed == 1

    def test_idempotent(self):
        """Test dedup(dedup(x)) == dedup(x)."""
        items = [SearchItem(title="A", url="u"), SearchItem(title="A", url="u")]
        once, _ = deduplicate(items)
        twice, removed = deduplicate(once)
        assert twice == once
        assert removed == 0

    def test_same_url_different_title_kept(self):
        """Test the key uses both url and title."""
        items = [SearchItem(title="A", url="u"), SearchItem(title="B", url="u")]
        assert len(deduplicate(items)[0]) == 2


class TestMergeProviderResults:
    """Tests for folding one provider's per-query results."""

    def test_single_result_unchanged(self):
        result = _ok("p", [{"title": "A", "url": "https://x/1"}])
        assert merge_provider_results([result]) is result

    def test_successes_concatenated_in_query_order(self, descriptor_factory):
        """Test items from every answered query are kept, failures dropped."""
        merged = merge_provider_results(
            [
                _ok("p", [{"title": "A", "url": "https://x/1"}], latency=40.0),
                ProviderResult.failure(descriptor_factory("p"), ErrorKind.TIMEOUT, "slow"),
                _ok("p", [{"title": "B", "url": "https://x/2"}], latency=90.0),
            ]
        )

        assert merged.success
        assert [i.title for i in merged.items] == ["A", "B"]
        assert merged.latency_ms == 90.0

    def test_all_failed_reports_first(self, descriptor_factory):
        provider = descriptor_factory("p")
        merged = merge_provider_results(
            [
                ProviderResult.failure(provider, ErrorKind.UPSTREAM, "HTTP 500"),
                ProviderResult.failure(provider, ErrorKind.TIMEOUT, "slow"),
            ]
        )

        assert not merged.success
        assert merged.error.kind == ErrorKind.UPSTREAM


class TestAggregate:
    """Tests for the aggregate result."""

    def test_merge_rank_and_counts(self, aggregator):
        """Test items are ranked by score with stable ties."""
        results = [
            _ok("arxiv", [{"title": "a1", "url": "u1", "score": 0.5}], latency=200),
            _ok(
                "github",
                [
                    {"title": "g1", "url": "u2", "score": 0.9},
                    {"title": "g2", "url": "u3", "score": 0.5},
                ],
                latency=50,
            ),
            ProviderResult.failure(
                _descriptor("pubmed"), ErrorKind.UNHEALTHY, "marked unhealthy"
            ),
        ]

        agg = aggregator.aggregate(results, started_at=9.5)

        assert [i.title for i in agg.results] == ["g1", "a1", "g2"]
        assert agg.sources_attempted == ["arxiv", "github", "pubmed"]
        assert agg.sources_used == ["arxiv", "github"]
        assert agg.failed_providers == ["pubmed"]
        assert agg.errors[0].kind == ErrorKind.UNHEALTHY
        assert agg.total_results_raw == 3
        assert agg.slowest_provider == "arxiv"
        assert agg.fastest_provider == "github"
        assert agg.average_response_time_ms == pytest.approx(250 / 3)
        assert agg.search_duration_ms == pytest.approx(500.0)
        assert agg.success

    def test_duplicates_across_providers(self, aggregator):
        """Test duplicates from different providers are removed."""
        results = [
            _ok("a", [{"title": "Same", "url": "https://x.org/p"}]),
            _ok("b", [{"title": "same", "url": "https://x.org/p/"}]),
        ]
        agg = aggregator.aggregate(results, started_at=10.0)
        assert agg.total_results == 1
        assert agg.duplicates_removed == 1
        assert agg.results[0].source == "a"

    def test_truncates_to_max_results(self, aggregator):
        """Test request max_results caps the output."""
        results = [_ok("a", [{"title": f"t{i}", "url": f"u{i}"} for i in range(5)])]
        request = SearchRequest(query="q", options=SearchOptions(max_results=2))
        agg = aggregator.aggregate(results, 10.0, request, fingerprint="fp")
        assert agg.total_results == 2
        assert agg.total_results_raw == 5
        assert agg.request_id == request.id
        assert agg.fingerprint == "fp"

    def test_custom_scorer(self):
        """Test a pluggable scorer controls ranking."""
        aggregator = Aggregator(scorer=lambda item: len(item.title))
        results = [_ok("a", [{"title": "x", "url": "1"}, {"title": "xxx", "url": "2"}])]
        agg = aggregator.aggregate(results, started_at=0.0)
        assert agg.results[0].title == "xxx"

    def test_scorer_failure_raises(self):
        """Test scorer errors surface as AggregationError."""

        def broken(item):
            raise KeyError("score")

        results = [_ok("a", [{"title": "x", "url": "1"}])]
        with pytest.raises(AggregationError):
            Aggregator(scorer=broken).aggregate(results, started_at=0.0)

    def test_all_failed(self, aggregator):
        """Test an aggregate with no successes is still well formed."""
        results = [
            ProviderResult.failure(_descriptor("a"), ErrorKind.TIMEOUT, "slow", 30.0)
        ]
        agg = aggregator.aggregate(results, started_at=10.0)
        assert agg.results == []
        assert agg.successful_sources == 0
        assert agg.fastest_provider is None
        assert agg.average_score == 0.0


def _descriptor(provider_id):
    return ProviderDescriptor(id=provider_id, name=provider_id)
