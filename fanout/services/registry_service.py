"""Source registry: static provider catalog and selection.

Pure data plus filter/query functions. Holds no mutable state after
construction, so a single registry is shared by every fan-out round.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional

import structlog

from fanout.models.source import ProviderDescriptor, SourceCategory, SourceFilter
from fanout.services.catalog import builtin_descriptors

logger = structlog.get_logger()

HIGH_PRIORITY_THRESHOLD = 8


def _selection_order(source: ProviderDescriptor):
    # Descending priority, ascending id for deterministic ties
    return (-source.priority, source.id)


class SourceRegistry:
    """Catalog of provider descriptors with filter-based selection.

    With an empty filter essentially every active provider is selected,
    which is why the downstream concurrency and rate controls exist.
    """

    def __init__(self, sources: Iterable[ProviderDescriptor]):
        """Initialize registry.

        Args:
            sources: Provider descriptors. Ids must be unique.

        Raises:
            ValueError: If two descriptors share an id.
        """
        self._sources: Dict[str, ProviderDescriptor] = {}
        for source in sources:
            if source.id in self._sources:
                raise ValueError(f"Duplicate provider id: {source.id}")
            self._sources[source.id] = source

        logger.info(
            "source_registry_initialized",
            total=len(self._sources),
            active=len(self.active_sources()),
        )

    @classmethod
    def with_builtin(
        cls, extra: Optional[Iterable[ProviderDescriptor]] = None
    ) -> "SourceRegistry":
        """Registry over the built-in catalog, optionally overridden by `extra`.

        Extra descriptors replace built-in ones with the same id.
        """
        merged: Dict[str, ProviderDescriptor] = {
            s.id: s for s in builtin_descriptors()
        }
        for source in extra or []:
            merged[source.id] = source
        return cls(merged.values())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._sources

    def get(self, provider_id: str) -> Optional[ProviderDescriptor]:
        return self._sources.get(provider_id)

    def all(self) -> List[ProviderDescriptor]:
        return sorted(self._sources.values(), key=_selection_order)

    def active_sources(self) -> List[ProviderDescriptor]:
        return [s for s in self.all() if s.is_active]

    def by_category(self, category: SourceCategory) -> List[ProviderDescriptor]:
        return [s for s in self.active_sources() if s.category == category]

    def by_domain(self, domain: str) -> List[ProviderDescriptor]:
        """Active providers tagged with `domain` or with the catch-all tag."""
        return [s for s in self.active_sources() if s.supports_domain(domain)]

    def high_priority(
        self, min_priority: int = HIGH_PRIORITY_THRESHOLD
    ) -> List[ProviderDescriptor]:
        return [s for s in self.active_sources() if s.priority >= min_priority]

    def select_sources(
        self, source_filter: Optional[SourceFilter] = None
    ) -> List[ProviderDescriptor]:
        """Select providers for one fan-out round.

        Filters (all optional, combined with AND):
        1. active flag
        2. explicit provider id allow-list
        3. domain tags (any requested domain, or provider tagged "all")
        4. category
        5. minimum priority
        6. auth requirement (excluded unless explicitly allowed)
        7. languages (providers without languages always pass)

        Args:
            source_filter: Selection criteria. None selects every active
                provider that does not require auth.

        Returns:
            Matching descriptors sorted by descending priority, ties by id.
        """
        criteria = source_filter or SourceFilter()
        selected: List[ProviderDescriptor] = []

        allowed_ids = (
            set(criteria.provider_ids) if criteria.provider_ids is not None else None
        )
        categories = set(criteria.categories)

        for source in self._sources.values():
            if criteria.active_only and not source.is_active:
                continue
            if allowed_ids is not None and source.id not in allowed_ids:
                continue
            if criteria.domains and not any(
                source.supports_domain(d) for d in criteria.domains
            ):
                continue
            if categories and source.category not in categories:
                continue
            if (
                criteria.min_priority is not None
                and source.priority < criteria.min_priority
            ):
                continue
            if source.requires_auth and not criteria.include_auth_required:
                continue
            if criteria.languages and not source.supports_any_language(
                criteria.languages
            ):
                continue
            selected.append(source)

        selected.sort(key=_selection_order)

        logger.debug(
            "sources_selected",
            selected=len(selected),
            total=len(self._sources),
        )
        return selected

    def summary(self) -> Dict[str, int]:
        """Count of active providers per category."""
        counts = Counter(s.category.value for s in self.active_sources())
        return dict(sorted(counts.items()))
