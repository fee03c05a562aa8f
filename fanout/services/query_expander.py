"""Synonym-based query expansion.

An expander turns one query into a short list of alternative phrasings
that are all sent to every selected provider. The original query always
comes first. Any callable with the signature `(query) -> List[str]` can
be passed to the orchestrator instead of SynonymExpander.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional

import structlog

logger = structlog.get_logger()

QueryExpander = Callable[[str], List[str]]

# Upper bound on queries sent to one provider per round, original included
MAX_QUERIES_PER_PROVIDER = 3

DEFAULT_SYNONYMS: Dict[str, List[str]] = {
    "ai": ["artificial intelligence"],
    "artificial intelligence": ["ai", "machine intelligence"],
    "ml": ["machine learning"],
    "machine learning": ["ml", "statistical learning"],
    "dl": ["deep learning"],
    "deep learning": ["neural networks", "dl"],
    "llm": ["large language model"],
    "nlp": ["natural language processing"],
    "research": ["study", "analysis"],
    "development": ["progress", "advances"],
    "technology": ["technique", "method"],
}


class SynonymExpander:
    """Replace known terms with their synonyms, one substitution per variant."""

    def __init__(
        self,
        synonyms: Optional[Dict[str, Iterable[str]]] = None,
        max_queries: int = MAX_QUERIES_PER_PROVIDER,
    ):
        """Initialize expander.

        Args:
            synonyms: Term -> synonyms table (defaults to DEFAULT_SYNONYMS)
            max_queries: Cap on returned queries, original included
        """
        if max_queries < 1:
            raise ValueError("max_queries must be >= 1")
        self.max_queries = max_queries
        self._synonyms: Dict[str, List[str]] = {}
        if synonyms is None:
            synonyms = DEFAULT_SYNONYMS
        for term, alternatives in synonyms.items():
            self.add_synonyms(term, alternatives)

    def add_synonyms(self, term: str, synonyms: Iterable[str]) -> None:
        key = term.strip().lower()
        existing = self._synonyms.setdefault(key, [])
        for synonym in synonyms:
            if synonym not in existing:
                existing.append(synonym)

    def __call__(self, query: str) -> List[str]:
        queries = [query]
        # Longest terms first so "machine learning" wins over "ml"-style overlaps
        for term in sorted(self._synonyms, key=len, reverse=True):
            pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
            if not pattern.search(query):
                continue
            for synonym in self._synonyms[term]:
                variant = pattern.sub(synonym, query)
                if variant.lower() not in {q.lower() for q in queries}:
                    queries.append(variant)
                if len(queries) >= self.max_queries:
                    return queries
        return queries


def expand_query(
    query: str, expander: QueryExpander, limit: int = MAX_QUERIES_PER_PROVIDER
) -> List[str]:
    """Run an expander and clean its output.

    The original query is forced to the front, blanks and case-insensitive
    duplicates are dropped, and the list is capped at `limit`.
    """
    queries = [query]
    seen = {query.strip().lower()}
    for candidate in expander(query):
        key = candidate.strip().lower()
        if key and key not in seen:
            seen.add(key)
            queries.append(candidate.strip())
    if len(queries) > 1:
        logger.debug("query_expanded", query=query, variants=len(queries) - 1)
    return queries[:limit]
