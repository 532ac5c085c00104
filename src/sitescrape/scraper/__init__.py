"""sitescrape scraping engine."""

from .address import extract_domain, require_domain
from .cache import ScrapeCache, normalize_key
from .content import (
    build_page,
    deduplicate,
    extract_links,
    extract_text,
    normalize_urls,
    score_text,
)
from .crawler import CrawlFallback, FallbackStrategy
from .http import Fetcher, validate_url
from .models import (
    CacheEntry,
    KeywordScore,
    PageContent,
    SitemapDocument,
    SitemapEntry,
    SitemapIndex,
    SitemapReference,
    SitemapSource,
    UrlSet,
)
from .pipeline import (
    Pipeline,
    PipelineState,
    PipelineStateMachine,
    ScrapeReport,
    ScrapeStatistics,
)
from .robots import RobotsRules, parse_robots
from .sitemap import SitemapLocator, parse_sitemap

__all__ = [
    # Address
    "extract_domain",
    "require_domain",
    # HTTP
    "Fetcher",
    "validate_url",
    # Robots and sitemaps
    "RobotsRules",
    "parse_robots",
    "SitemapLocator",
    "parse_sitemap",
    # Content
    "build_page",
    "deduplicate",
    "extract_links",
    "extract_text",
    "normalize_urls",
    "score_text",
    # Cache
    "ScrapeCache",
    "normalize_key",
    # Fallback
    "CrawlFallback",
    "FallbackStrategy",
    # Pipeline
    "Pipeline",
    "PipelineState",
    "PipelineStateMachine",
    "ScrapeReport",
    "ScrapeStatistics",
    # Models
    "CacheEntry",
    "KeywordScore",
    "PageContent",
    "SitemapDocument",
    "SitemapEntry",
    "SitemapIndex",
    "SitemapReference",
    "SitemapSource",
    "UrlSet",
]
