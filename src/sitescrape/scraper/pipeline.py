"""Sitemap-driven scraping pipeline."""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sitescrape.config import Settings
from sitescrape.errors import (
    FetchError,
    FetchErrorKind,
    InvalidTransitionError,
    LocatorError,
    ScrapeError,
    ValidationError,
)

from .address import extract_domain
from .cache import ScrapeCache, normalize_key
from .content import build_page, deduplicate
from .crawler import CrawlFallback, FallbackStrategy
from .http import Fetcher
from .models import PageContent, SitemapDocument, SitemapIndex, SitemapReference, SitemapSource
from .robots import RobotsRules
from .sitemap import SitemapLocator, parse_sitemap

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    PARSING = "parsing"
    SCRAPING = "scraping"
    COMPLETE = "complete"


TRANSITIONS: dict[PipelineState, PipelineState] = {
    PipelineState.IDLE: PipelineState.DISCOVERING,
    PipelineState.DISCOVERING: PipelineState.PARSING,
    PipelineState.PARSING: PipelineState.SCRAPING,
    PipelineState.SCRAPING: PipelineState.COMPLETE,
    PipelineState.COMPLETE: PipelineState.IDLE,
}


class PipelineStateMachine:
    """One-directional run state: idle, discovering, parsing, scraping, complete, idle."""

    def __init__(self) -> None:
        self._state = PipelineState.IDLE
        self._lock = threading.Lock()
        self.history: list[PipelineState] = [PipelineState.IDLE]

    @property
    def state(self) -> PipelineState:
        return self._state

    def can_transition(self, target: PipelineState) -> bool:
        return TRANSITIONS[self._state] is target

    def transition(self, target: PipelineState) -> None:
        """
        Move to the next state.

        Raises:
            InvalidTransitionError: If target is not the successor of the current state
        """
        with self._lock:
            if not self.can_transition(target):
                raise InvalidTransitionError(
                    f"Invalid pipeline transition: {self._state.value} -> {target.value}",
                )
            logger.debug(f"Pipeline state: {self._state.value} -> {target.value}")
            self._state = target
            self.history.append(target)

    def reset(self) -> None:
        """Force the machine back to idle, e.g. after cancellation or an error."""
        with self._lock:
            if self._state is not PipelineState.IDLE:
                logger.debug(f"Pipeline state reset: {self._state.value} -> idle")
                self._state = PipelineState.IDLE
                self.history.append(PipelineState.IDLE)


@dataclass
class ScrapeStatistics:
    """Counters for one run. Page outcomes update totals atomically."""

    total_sitemaps: int = 0
    total_pages: int = 0
    successful_scrapes: int = 0
    failed_scrapes: int = 0
    keyword_matches: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_sitemap(self) -> None:
        with self._lock:
            self.total_sitemaps += 1

    def record_success(self, page: PageContent) -> None:
        with self._lock:
            self.total_pages += 1
            self.successful_scrapes += 1
            self.keyword_matches += len(page.matched_keywords)

    def record_failure(self) -> None:
        with self._lock:
            self.total_pages += 1
            self.failed_scrapes += 1

    def as_dict(self) -> dict[str, int]:
        with self._lock:
            return {
                "total_sitemaps": self.total_sitemaps,
                "total_pages": self.total_pages,
                "successful_scrapes": self.successful_scrapes,
                "failed_scrapes": self.failed_scrapes,
                "keyword_matches": self.keyword_matches,
            }


@dataclass
class ScrapeReport:
    domain: str | None
    sitemaps_found: int
    pages_scraped: int
    pages_failed: int
    results: list[PageContent]
    keyword_matches: int
    used_fallback: bool
    truncated: bool = False
    statistics: dict[str, int] = field(default_factory=dict)
    sitemaps: list[SitemapReference] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "sitemaps_found": self.sitemaps_found,
            "pages_scraped": self.pages_scraped,
            "pages_failed": self.pages_failed,
            "keyword_matches": self.keyword_matches,
            "used_fallback": self.used_fallback,
            "truncated": self.truncated,
            "statistics": self.statistics,
            "sitemaps": [{"url": ref.url, "source": ref.source.value} for ref in self.sitemaps],
            "results": [page.to_dict() for page in self.results],
        }


class Pipeline:
    """Drives discovery, sitemap parsing and page scraping for one address.

    A pipeline can be reused for several runs, one at a time. ``cancel``
    may be called from another thread; the run stops before its next page
    fetch and returns a truncated report.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: Fetcher | None = None,
        fallback: FallbackStrategy | None = None,
        cache: ScrapeCache | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Pipeline configuration; defaults apply when omitted
            fetcher: HTTP fetcher; one is built from the settings when omitted
            fallback: Non-sitemap discovery; a same-domain crawl when omitted
            cache: Result cache; one is built from the settings when omitted
        """
        self.settings = settings or Settings()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(self.settings.fetch, delay=self.settings.sitemap.delay)
        self.cache = cache or ScrapeCache(enabled=self.settings.cache.enabled)
        self.locator = SitemapLocator(
            self.fetcher,
            user_agent=self.settings.fetch.user_agent.split("/", 1)[0],
        )
        self.fallback: FallbackStrategy | None = None
        if self.settings.fallback.enabled:
            self.fallback = fallback or CrawlFallback(
                max_pages=self.settings.sitemap.max_pages_per_site,
                max_depth=self.settings.fallback.max_depth,
            )
        self.state_machine = PipelineStateMachine()
        self._cancel = threading.Event()
        self._robots: RobotsRules | None = None

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    @property
    def state(self) -> PipelineState:
        return self.state_machine.state

    def cancel(self) -> None:
        """Ask the current run to stop before its next page fetch."""
        logger.info("Cancellation requested")
        self._cancel.set()

    def run(self, address: str, keywords: Iterable[str] | None = None) -> ScrapeReport:
        """
        Discover, parse and scrape the site named in an address.

        Args:
            address: Free-form text containing a domain
            keywords: Keywords to score pages against; configured ones when omitted

        Returns:
            The run report. Degradation shows up as failed pages, the
            fallback flag or the truncated flag.

        Raises:
            ValidationError: No domain in the address and the fallback is disabled
            LocatorError: Domain unreachable and the fallback is disabled
            InvalidTransitionError: A run is already in progress
        """
        terms = list(keywords) if keywords is not None else list(self.settings.scoring.keywords)
        stats = ScrapeStatistics()
        self._robots = None

        self.state_machine.transition(PipelineState.DISCOVERING)
        self._cancel.clear()
        try:
            domain = extract_domain(address)
            references = self._discover(domain)

            self.state_machine.transition(PipelineState.PARSING)
            sitemaps: list[SitemapReference] = []
            page_urls = self._expand(references, stats, sitemaps) if references else []

            used_fallback = False
            crawled: dict[str, PageContent] = {}
            if not page_urls and self.fallback is not None and not self._cancel.is_set():
                logger.info(f"No sitemap pages for {domain or address!r}, using fallback")
                used_fallback = True

                def load_page(url: str) -> PageContent:
                    page = self._load_page(url, terms)
                    crawled[normalize_key(url)] = page
                    return page

                page_urls = self.fallback.discover(domain, address, load_page)

            self.state_machine.transition(PipelineState.SCRAPING)
            results, truncated = self._scrape(page_urls, terms, stats, crawled)

            if truncated:
                self.state_machine.reset()
            else:
                self.state_machine.transition(PipelineState.COMPLETE)

            counts = stats.as_dict()
            report = ScrapeReport(
                domain=domain,
                sitemaps_found=counts["total_sitemaps"],
                sitemaps=sitemaps,
                pages_scraped=counts["successful_scrapes"],
                pages_failed=counts["failed_scrapes"],
                results=results,
                keyword_matches=counts["keyword_matches"],
                used_fallback=used_fallback,
                truncated=truncated,
                statistics=counts,
            )
            logger.info(
                f"Run complete for {domain}: {report.pages_scraped} scraped, "
                f"{report.pages_failed} failed, fallback={used_fallback}, truncated={truncated}",
            )

            if not truncated:
                self.state_machine.transition(PipelineState.IDLE)
            return report
        except BaseException:
            self.state_machine.reset()
            raise
        finally:
            self.cache.clear()

    def _discover(self, domain: str | None) -> list[SitemapReference]:
        if domain is None:
            if self.fallback is None:
                raise ValidationError("No domain found in address")
            logger.warning("No domain found in address")
            return []

        if not self.settings.sitemap.enabled:
            logger.info("Sitemap discovery disabled")
            return []

        try:
            references = list(self.locator.locate(domain))
        except LocatorError as e:
            if self.fallback is None:
                raise
            logger.warning(f"Sitemap discovery failed: {e}")
            return []
        finally:
            self._robots = self.locator.robots

        logger.info(f"Discovered {len(references)} sitemap(s) for {domain}")
        return references

    def _expand(
        self,
        references: list[SitemapReference],
        stats: ScrapeStatistics,
        parsed: list[SitemapReference],
    ) -> list[str]:
        """Breadth-first expansion of sitemap references into page URLs.

        Successfully parsed references are appended to ``parsed``.
        """
        max_depth = self.settings.sitemap.max_index_depth
        max_pages = self.settings.sitemap.max_pages_per_site
        visited: set[str] = set()
        page_urls: list[str] = []
        level = references
        depth = 0

        while level and not self._cancel.is_set():
            batch: dict[str, SitemapReference] = {}
            for reference in level:
                key = normalize_key(reference.url)
                if key not in visited:
                    visited.add(key)
                    batch[reference.url] = reference

            next_level: list[SitemapReference] = []
            for url, result in self.fetcher.fetch_all(list(batch), fetch=self._load_sitemap, cancel=self._cancel):
                if isinstance(result, ScrapeError):
                    logger.warning(f"Skipping sitemap {url}: {result}")
                    continue
                stats.record_sitemap()
                parsed.append(batch[url])
                if isinstance(result, SitemapIndex):
                    if depth >= max_depth:
                        logger.warning(f"Sitemap index depth limit ({max_depth}) reached at {url}")
                        continue
                    next_level.extend(
                        SitemapReference(entry.loc, SitemapSource.INDEX) for entry in result.entries
                    )
                else:
                    page_urls.extend(entry.loc for entry in result.entries)

            if len(page_urls) >= max_pages:
                break
            level = next_level
            depth += 1

        return page_urls

    def _load_sitemap(self, url: str) -> SitemapDocument:
        return self.cache.get_or_fetch(url, lambda: parse_sitemap(self.fetcher.fetch(url)))

    def _allowed(self, url: str) -> bool:
        if not self.settings.sitemap.respect_robots or self._robots is None:
            return True
        return self._robots.is_allowed(url)

    def _load_page(self, url: str, keywords: list[str]) -> PageContent:
        if not self._allowed(url):
            raise FetchError(url, FetchErrorKind.OTHER, "disallowed by robots.txt")
        weights = self.settings.scoring.weights
        return self.cache.get_or_fetch(
            url,
            lambda: build_page(url, self.fetcher.fetch_text(url), keywords, weights),
        )

    def _scrape(
        self,
        page_urls: list[str],
        keywords: list[str],
        stats: ScrapeStatistics,
        preloaded: dict[str, PageContent] | None = None,
    ) -> tuple[list[PageContent], bool]:
        preloaded = preloaded or {}
        urls = [url for url in deduplicate(page_urls) if self._allowed(url)]
        urls = urls[: self.settings.sitemap.max_pages_per_site]
        results: list[PageContent] = []

        for url in urls:
            if self._cancel.is_set():
                logger.warning(f"Run cancelled after {stats.total_pages} of {len(urls)} page(s)")
                return results, True
            page = preloaded.get(normalize_key(url))
            if page is None:
                try:
                    page = self._load_page(url, keywords)
                except ScrapeError as e:
                    logger.warning(f"Failed to scrape {url}: {e}")
                    stats.record_failure()
                    continue
            stats.record_success(page)
            results.append(page)

        if not urls and self._cancel.is_set():
            logger.warning("Run cancelled before scraping")
            return results, True
        return results, False
