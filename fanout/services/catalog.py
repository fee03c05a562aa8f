"""Built-in provider catalog.

Static descriptors for the providers fanout knows about out of the box.
Rate limits are requests per minute. Entries without a bound provider
client are never dispatched; they exist so that filters and reports can
reason about the full pool.
"""

from typing import Any, Dict, List

from fanout.models.source import ProviderDescriptor, SourceCategory

BUILTIN_SOURCES: List[Dict[str, Any]] = [
    # Academic journals
    {
        "id": "pubmed",
        "name": "PubMed Medical Database",
        "category": SourceCategory.ACADEMIC_JOURNALS,
        "priority": 9,
        "rate_limit": 180,
        "reliability": 0.95,
        "domains": ["medical", "biology", "health"],
        "languages": ["en"],
        "max_results": 200,
    },
    {
        "id": "ieee_xplore",
        "name": "IEEE Xplore Digital Library",
        "category": SourceCategory.ACADEMIC_JOURNALS,
        "priority": 9,
        "rate_limit": 120,
        "reliability": 0.95,
        "domains": ["engineering", "technology", "computer_science"],
        "languages": ["en"],
        "requires_auth": True,
        "max_results": 200,
    },
    {
        "id": "acm_digital_library",
        "name": "ACM Digital Library",
        "category": SourceCategory.ACADEMIC_JOURNALS,
        "priority": 9,
        "rate_limit": 120,
        "reliability": 0.95,
        "domains": ["computer_science", "technology"],
        "languages": ["en"],
        "requires_auth": True,
        "max_results": 200,
    },
    {
        "id": "springer_link",
        "name": "SpringerLink",
        "category": SourceCategory.ACADEMIC_JOURNALS,
        "priority": 8,
        "rate_limit": 180,
        "reliability": 0.9,
        "domains": ["science", "technology", "medicine"],
        "languages": ["en", "de", "fr"],
        "requires_auth": True,
        "max_results": 150,
    },
    {
        "id": "plos_journals",
        "name": "PLOS Journals",
        "category": SourceCategory.ACADEMIC_JOURNALS,
        "priority": 7,
        "rate_limit": 180,
        "reliability": 0.85,
        "domains": ["science", "medicine", "biology"],
        "languages": ["en"],
        "max_results": 100,
    },
    # Academic databases
    {
        "id": "google_scholar",
        "name": "Google Scholar",
        "category": SourceCategory.ACADEMIC_DATABASES,
        "priority": 9,
        "rate_limit": 300,
        "reliability": 0.9,
        "domains": ["all"],
        "languages": ["en", "zh", "es", "fr", "de"],
        "max_results": 200,
    },
    {
        "id": "semantic_scholar",
        "name": "Semantic Scholar",
        "category": SourceCategory.ACADEMIC_DATABASES,
        "priority": 8,
        "rate_limit": 100,
        "reliability": 0.85,
        "domains": ["computer_science", "medicine", "neuroscience"],
        "languages": ["en"],
        "max_results": 150,
    },
    {
        "id": "crossref",
        "name": "Crossref Metadata Search",
        "category": SourceCategory.ACADEMIC_DATABASES,
        "priority": 7,
        "rate_limit": 300,
        "reliability": 0.85,
        "domains": ["all"],
        "languages": ["en"],
        "max_results": 100,
    },
    {
        "id": "dblp",
        "name": "dblp Computer Science Bibliography",
        "category": SourceCategory.ACADEMIC_DATABASES,
        "priority": 7,
        "rate_limit": 120,
        "reliability": 0.85,
        "domains": ["computer_science"],
        "languages": ["en"],
        "max_results": 100,
    },
    {
        "id": "scopus",
        "name": "Scopus",
        "category": SourceCategory.ACADEMIC_DATABASES,
        "priority": 9,
        "rate_limit": 120,
        "reliability": 0.95,
        "domains": ["science", "technology", "medicine", "social_sciences"],
        "languages": ["en"],
        "requires_auth": True,
        "max_results": 200,
    },
    # Preprint servers
    {
        "id": "arxiv",
        "name": "arXiv Preprint Server",
        "category": SourceCategory.PREPRINT_SERVERS,
        "priority": 9,
        "rate_limit": 20,
        "reliability": 0.9,
        "domains": ["physics", "mathematics", "computer_science", "biology"],
        "languages": ["en"],
        "max_results": 200,
    },
    {
        "id": "biorxiv",
        "name": "bioRxiv Preprint Server",
        "category": SourceCategory.PREPRINT_SERVERS,
        "priority": 8,
        "rate_limit": 240,
        "reliability": 0.85,
        "domains": ["biology", "medicine", "life_sciences"],
        "languages": ["en"],
        "max_results": 150,
    },
    {
        "id": "medrxiv",
        "name": "medRxiv Preprint Server",
        "category": SourceCategory.PREPRINT_SERVERS,
        "priority": 8,
        "rate_limit": 240,
        "reliability": 0.85,
        "domains": ["medicine", "health", "clinical_research"],
        "languages": ["en"],
        "max_results": 150,
    },
    # News
    {
        "id": "newsapi",
        "name": "NewsAPI Headlines",
        "category": SourceCategory.INTERNATIONAL_NEWS,
        "priority": 7,
        "rate_limit": 60,
        "reliability": 0.8,
        "domains": ["news", "business", "technology"],
        "languages": ["en", "de", "fr", "es"],
        "requires_auth": True,
        "max_results": 100,
    },
    {
        "id": "techcrunch",
        "name": "TechCrunch",
        "category": SourceCategory.TECH_NEWS,
        "priority": 6,
        "rate_limit": 50,
        "reliability": 0.8,
        "domains": ["technology", "startups", "news"],
        "languages": ["en"],
        "max_results": 50,
    },
    {
        "id": "hacker_news",
        "name": "Hacker News (Algolia)",
        "category": SourceCategory.TECH_NEWS,
        "priority": 7,
        "rate_limit": 600,
        "reliability": 0.9,
        "domains": ["technology", "computer_science", "startups"],
        "languages": ["en"],
        "max_results": 50,
    },
    {
        "id": "alpha_vantage_news",
        "name": "Alpha Vantage News & Sentiment",
        "category": SourceCategory.FINANCIAL_NEWS,
        "priority": 6,
        "rate_limit": 5,
        "reliability": 0.8,
        "domains": ["finance", "business"],
        "languages": ["en"],
        "requires_auth": True,
        "max_results": 50,
    },
    # Technical
    {
        "id": "github",
        "name": "GitHub",
        "category": SourceCategory.DEVELOPER_GUIDES,
        "priority": 7,
        "rate_limit": 30,
        "reliability": 0.9,
        "domains": ["technology", "computer_science", "software"],
        "languages": [],
        "max_results": 100,
    },
    {
        "id": "stackexchange",
        "name": "Stack Exchange",
        "category": SourceCategory.Q_AND_A_PLATFORMS,
        "priority": 7,
        "rate_limit": 30,
        "reliability": 0.9,
        "domains": ["technology", "computer_science", "software", "science"],
        "languages": ["en"],
        "max_results": 100,
    },
    {
        "id": "devto",
        "name": "DEV Community",
        "category": SourceCategory.TECHNICAL_BLOGS,
        "priority": 5,
        "rate_limit": 30,
        "reliability": 0.75,
        "domains": ["technology", "software"],
        "languages": ["en"],
        "max_results": 50,
    },
    {
        "id": "mdn",
        "name": "MDN Web Docs",
        "category": SourceCategory.OFFICIAL_DOCS,
        "priority": 6,
        "rate_limit": 60,
        "reliability": 0.9,
        "domains": ["technology", "software", "web"],
        "languages": ["en", "zh", "fr", "es", "ja"],
        "max_results": 50,
    },
    # Social
    {
        "id": "reddit",
        "name": "Reddit",
        "category": SourceCategory.DISCUSSION_FORUMS,
        "priority": 5,
        "rate_limit": 60,
        "reliability": 0.75,
        "domains": ["all"],
        "languages": [],
        "max_results": 100,
    },
    {
        "id": "linkedin",
        "name": "LinkedIn",
        "category": SourceCategory.PROFESSIONAL_NETWORKS,
        "priority": 5,
        "rate_limit": 20,
        "reliability": 0.7,
        "domains": ["business", "careers"],
        "languages": ["en"],
        "requires_auth": True,
        "max_results": 50,
    },
    # Government & business
    {
        "id": "data_gov",
        "name": "Data.gov",
        "category": SourceCategory.GOVERNMENT_SITES,
        "priority": 6,
        "rate_limit": 60,
        "reliability": 0.85,
        "domains": ["government", "statistics", "policy"],
        "languages": ["en"],
        "max_results": 50,
    },
    {
        "id": "sec_edgar",
        "name": "SEC EDGAR Full-Text Search",
        "category": SourceCategory.COMPANY_DATABASES,
        "priority": 6,
        "rate_limit": 600,
        "reliability": 0.9,
        "domains": ["finance", "business", "regulation"],
        "languages": ["en"],
        "max_results": 100,
    },
    # Knowledge bases
    {
        "id": "wikipedia",
        "name": "Wikipedia",
        "category": SourceCategory.ENCYCLOPEDIAS,
        "priority": 8,
        "rate_limit": 200,
        "reliability": 0.9,
        "domains": ["all"],
        "languages": ["en", "zh", "de", "fr", "es", "ja", "ru"],
        "max_results": 50,
    },
    {
        "id": "wikidata",
        "name": "Wikidata",
        "category": SourceCategory.KNOWLEDGE_BASES,
        "priority": 6,
        "rate_limit": 200,
        "reliability": 0.85,
        "domains": ["all"],
        "languages": [],
        "max_results": 50,
    },
    # General web
    {
        "id": "google_web",
        "name": "Google Custom Search",
        "category": SourceCategory.WEB_SEARCH,
        "priority": 8,
        "rate_limit": 100,
        "reliability": 0.9,
        "domains": ["all"],
        "languages": ["en", "zh", "es", "fr", "de", "ja"],
        "requires_auth": True,
        "max_results": 10,
    },
    {
        "id": "duckduckgo",
        "name": "DuckDuckGo",
        "category": SourceCategory.WEB_SEARCH,
        "priority": 8,
        "rate_limit": 60,
        "reliability": 0.85,
        "domains": ["all"],
        "languages": [],
        "max_results": 30,
    },
    {
        "id": "searxng",
        "name": "SearXNG Metasearch",
        "category": SourceCategory.WEB_SEARCH,
        "priority": 7,
        "rate_limit": 120,
        "reliability": 0.8,
        "domains": ["all"],
        "languages": [],
        "max_results": 50,
    },
    {
        "id": "youtube",
        "name": "YouTube Data API",
        "category": SourceCategory.MULTIMEDIA,
        "priority": 5,
        "rate_limit": 100,
        "reliability": 0.85,
        "domains": ["all"],
        "languages": [],
        "requires_auth": True,
        "max_results": 50,
    },
]


def builtin_descriptors() -> List[ProviderDescriptor]:
    """Build validated descriptors for the built-in catalog."""
    return [ProviderDescriptor(**entry) for entry in BUILTIN_SOURCES]
