"""Provider descriptor models for the source registry."""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceCategory(str, Enum):
    """Broad provider categories used for filtering and reporting."""

    ACADEMIC_JOURNALS = "academic_journals"
    ACADEMIC_DATABASES = "academic_databases"
    PREPRINT_SERVERS = "preprint_servers"
    INTERNATIONAL_NEWS = "international_news"
    TECH_NEWS = "tech_news"
    FINANCIAL_NEWS = "financial_news"
    OFFICIAL_DOCS = "official_docs"
    DEVELOPER_GUIDES = "developer_guides"
    TECHNICAL_BLOGS = "technical_blogs"
    Q_AND_A_PLATFORMS = "q_and_a_platforms"
    DISCUSSION_FORUMS = "discussion_forums"
    PROFESSIONAL_NETWORKS = "professional_networks"
    GOVERNMENT_SITES = "government_sites"
    COMPANY_DATABASES = "company_databases"
    ENCYCLOPEDIAS = "encyclopedias"
    KNOWLEDGE_BASES = "knowledge_bases"
    WEB_SEARCH = "web_search"
    MULTIMEDIA = "multimedia"


ALL_DOMAINS = "all"


class ProviderDescriptor(BaseModel):
    """Static description of one external search provider.

    Created once at process start and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1)
    category: SourceCategory = SourceCategory.WEB_SEARCH
    priority: int = Field(5, ge=1, le=10, description="Higher is preferred")
    rate_limit: int = Field(
        60, ge=1, description="Maximum requests per one-minute window"
    )
    reliability: float = Field(0.8, ge=0.0, le=1.0)
    requires_auth: bool = False
    domains: Tuple[str, ...] = Field(default_factory=tuple)
    languages: Tuple[str, ...] = Field(default_factory=tuple)
    max_results: int = Field(50, ge=1, le=1000)
    is_active: bool = True

    @field_validator("domains", "languages", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(str(tag).strip().lower() for tag in v if str(tag).strip())

    def supports_domain(self, domain: str) -> bool:
        domain = domain.strip().lower()
        return domain in self.domains or ALL_DOMAINS in self.domains

    def supports_any_language(self, languages: List[str]) -> bool:
        """Providers without declared languages are language agnostic."""
        if not self.languages:
            return True
        wanted = {lang.strip().lower() for lang in languages}
        return any(lang in wanted for lang in self.languages)


class SourceFilter(BaseModel):
    """Criteria for selecting providers for one fan-out round"""

    domains: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    categories: List[SourceCategory] = Field(default_factory=list)
    provider_ids: Optional[List[str]] = Field(
        default=None, description="Explicit allow-list of provider ids"
    )
    min_priority: Optional[int] = Field(default=None, ge=1, le=10)
    include_auth_required: bool = False
    active_only: bool = True

    def canonical(self) -> Dict[str, Any]:
        """Order-independent form; two filters selecting alike compare equal."""

        def tags(values: List[str]) -> List[str]:
            return sorted({v.strip().lower() for v in values if v.strip()})

        return {
            "domains": tags(self.domains),
            "languages": tags(self.languages),
            "categories": sorted({c.value for c in self.categories}),
            "provider_ids": (
                sorted(set(self.provider_ids))
                if self.provider_ids is not None
                else None
            ),
            "min_priority": self.min_priority,
            "include_auth_required": self.include_auth_required,
            "active_only": self.active_only,
        }
