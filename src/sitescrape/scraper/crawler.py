"""HTML crawler for websites without usable sitemaps."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from sitescrape.errors import ScrapeError

from .content import deduplicate, extract_links
from .models import PageContent

logger = logging.getLogger(__name__)

PageLoader = Callable[[str], PageContent]


class FallbackStrategy(Protocol):
    """Non-sitemap discovery of page URLs."""

    def discover(
        self,
        domain: str | None,
        address: str,
        load_page: PageLoader,
    ) -> list[str]:
        """Return page URLs to scrape, in priority order."""
        ...


class CrawlFallback:
    """Breadth-first crawl of one domain, starting at its home page."""

    def __init__(
        self,
        max_pages: int = 50,
        max_depth: int = 1,
        scheme: str = "https",
    ) -> None:
        """Initialize the crawler.

        Args:
            max_pages: Maximum number of URLs to return
            max_depth: Maximum link depth from the home page
            scheme: Scheme of the start URL
        """
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.scheme = scheme

    def discover(
        self,
        domain: str | None,
        address: str,
        load_page: PageLoader,
    ) -> list[str]:
        """
        BFS crawl of the website.

        Args:
            domain: The site hostname, None when the address had none
            address: The original address text
            load_page: Fetches and scores one page (cached by the caller)

        Returns:
            Unique same-domain URLs in discovery order
        """
        if domain is None:
            logger.info(f"No domain to crawl for address: {address!r}")
            return []

        start_url = f"{self.scheme}://{domain}/"
        discovered: list[str] = []
        visited: set[str] = set()
        current = [start_url]

        for depth in range(self.max_depth + 1):
            next_urls: list[str] = []

            for url in deduplicate(current):
                if len(discovered) >= self.max_pages:
                    break
                if url in visited:
                    continue

                visited.add(url)
                discovered.append(url)
                if depth == self.max_depth:
                    continue

                logger.debug(f"Crawling (depth={depth}): {url}")
                try:
                    page = load_page(url)
                except ScrapeError as e:
                    if url == start_url:
                        logger.warning(f"Home page unreachable, nothing to crawl: {e}")
                        return []
                    logger.debug(f"Crawl fetch failed for {url}: {e}")
                    continue

                next_urls.extend(
                    link for link in extract_links(page.raw_html, url) if link not in visited
                )

            if not next_urls or len(discovered) >= self.max_pages:
                break
            current = next_urls

        logger.info(f"Crawl complete: {len(discovered)} pages discovered")
        return discovered
