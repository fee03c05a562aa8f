"""Unit tests for response normalization and dedup keys."""

import pytest

from fanout.models.search import ResponseShape, SearchItem
from fanout.utils.normalize import (
    coerce_item,
    dedup_key,
    normalize_response,
    normalize_title,
    normalize_url,
)


class TestNormalizeResponse:
    """Tests for response shape recognition."""

    @pytest.mark.parametrize(
        "raw,shape",
        [
            ([{"title": "a", "url": "https://a"}], ResponseShape.ARRAY),
            ({"results": [{"title": "a"}]}, ResponseShape.RESULTS),
            ({"data": [{"title": "a"}]}, ResponseShape.DATA),
        ],
    )
    def test_recognized_shapes(self, raw, shape):
        """Test each supported shape yields items."""
        items, detected = normalize_response(raw, "p")
        assert detected == shape
        assert len(items) == 1
        assert items[0].source == "p"

    @pytest.mark.parametrize("raw", [None, "text", 42, {"items": []}, {"results": "x"}])
    def test_unrecognized_shape_is_empty(self, raw):
        """Test unknown shapes are a zero-result success."""
        items, shape = normalize_response(raw, "p")
        assert items == []
        assert shape == ResponseShape.UNRECOGNIZED

    def test_results_preferred_over_data(self):
        """Test 'results' wins when both keys are present."""
        items, shape = normalize_response(
            {"results": [{"title": "r"}], "data": [{"title": "d"}]}, "p"
        )
        assert shape == ResponseShape.RESULTS
        assert items[0].title == "r"

    def test_uncoercible_elements_dropped(self):
        """Test non-mapping and empty elements are skipped."""
        items, _ = normalize_response(
            ["string", 3, {}, {"snippet": "no title"}, {"name": "ok"}], "p"
        )
        assert [i.title for i in items] == ["ok"]


class TestCoerceItem:
    """Tests for field aliasing."""

    def test_aliases(self):
        """Test alternative raw keys map onto SearchItem fields."""
        item = coerce_item(
            {
                "name": "Title",
                "link": "https://x.org",
                "description": "desc",
                "publishedAt": "2024-01-02",
                "score": "0.7",
                "stars": 5,
            },
            "github",
        )
        assert item.title == "Title"
        assert item.url == "https://x.org"
        assert item.snippet == "desc"
        assert item.score == pytest.approx(0.7)
        assert item.published_at.year == 2024
        assert item.metadata == {"stars": 5}

    def test_bad_score_defaults_to_zero(self):
        """Test non-numeric scores fall back to zero."""
        assert coerce_item({"title": "t", "score": "high"}, "p").score == 0.0

    def test_search_item_passthrough(self):
        """Test SearchItems are accepted and tagged with the provider."""
        item = coerce_item(SearchItem(title="t"), "p")
        assert item.source == "p"


class TestDedupKeys:
    """Tests for URL and title normalization."""

    def test_url_normalization(self):
        """Test scheme/host case, fragments and trailing slashes."""
        assert normalize_url(" HTTPS://Example.COM/Path/#frag ") == "https://example.com/Path"
        assert normalize_url("https://example.com/a?q=1") == "https://example.com/a?q=1"
        assert normalize_url("") == ""

    def test_title_normalization(self):
        """Test casefold and whitespace collapse."""
        assert normalize_title("  Deep   LEARNING\n") == "deep learning"

    def test_equivalent_items_share_key(self):
        """Test formatting-only differences produce the same key."""
        a = SearchItem(title="Graph Nets", url="https://x.org/paper/")
        b = SearchItem(title="graph  nets", url="https://X.org/paper#abs")
        assert dedup_key(a) == dedup_key(b)
