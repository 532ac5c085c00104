"""Sitemap discovery and parsing."""

from __future__ import annotations

import gzip
import logging
import xml.etree.ElementTree as ET
import zlib
from collections.abc import Iterator
from datetime import datetime

from sitescrape.errors import FetchError, LocatorError, ParseError

from .http import Fetcher
from .models import SitemapDocument, SitemapEntry, SitemapIndex, SitemapReference, SitemapSource, UrlSet
from .robots import RobotsRules, parse_robots

logger = logging.getLogger(__name__)

SITEMAP_PATTERNS = [
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemaps.xml",
    "/sitemap/sitemap.xml",
    "/wp-sitemap.xml",
]

GZIP_MAGIC = b"\x1f\x8b"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_lastmod(value: str | None) -> datetime | None:
    """Parse a W3C datetime such as ``2025-01-01`` or ``2025-01-01T10:00:00Z``."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Ignoring unparsable lastmod: {value!r}")
        return None


def _entries(root: ET.Element, item_tag: str) -> tuple[SitemapEntry, ...]:
    entries = []
    for item in root.iterfind(f"{{*}}{item_tag}"):
        loc = item.find("{*}loc")
        if loc is None or not loc.text or not loc.text.strip():
            continue
        lastmod = item.find("{*}lastmod")
        entries.append(
            SitemapEntry(
                loc=loc.text.strip(),
                lastmod=parse_lastmod(lastmod.text if lastmod is not None else None),
            ),
        )
    return tuple(entries)


def parse_sitemap(xml_content: str | bytes) -> SitemapDocument:
    """
    Parse sitemap XML into a url set or a sitemap index.

    Args:
        xml_content: Sitemap XML, optionally gzip-compressed bytes

    Returns:
        UrlSet or SitemapIndex with entries in document order. Empty input
        or an unrecognized root element gives an empty UrlSet.

    Raises:
        ParseError: If the XML is malformed or the gzip stream is corrupt
    """
    if isinstance(xml_content, bytes) and xml_content.startswith(GZIP_MAGIC):
        try:
            xml_content = gzip.decompress(xml_content)
        except (OSError, EOFError, zlib.error) as e:
            raise ParseError(f"Corrupt gzip sitemap: {e}") from e

    xml_content = xml_content.lstrip()
    if not xml_content:
        return UrlSet()

    try:
        root = ET.fromstring(xml_content)
    except ET.ParseError as e:
        logger.error(f"Failed to parse XML: {e}")
        raise ParseError(f"Malformed sitemap XML: {e}") from e

    tag = _local_name(root.tag)
    if tag == "sitemapindex":
        return SitemapIndex(_entries(root, "sitemap"))
    if tag == "urlset":
        return UrlSet(_entries(root, "url"))

    logger.debug(f"Unrecognized sitemap root element <{tag}>")
    return UrlSet()


class SitemapLocator:
    """Discovers sitemap URLs from robots.txt and well-known paths."""

    def __init__(self, fetcher: Fetcher, scheme: str = "https", user_agent: str = "*") -> None:
        self.fetcher = fetcher
        self.scheme = scheme
        self.user_agent = user_agent
        self.robots: RobotsRules | None = None

    def base_url(self, domain: str) -> str:
        return f"{self.scheme}://{domain}"

    def fetch_robots(self, domain: str) -> RobotsRules | None:
        """Fetch and parse robots.txt for a domain.

        Args:
            domain: The site hostname

        Returns:
            Parsed rules, or None when robots.txt could not be retrieved
        """
        return self._fetch_robots(domain)[0]

    def _fetch_robots(self, domain: str) -> tuple[RobotsRules | None, bool]:
        # Second item: whether the host answered at all.
        robots_url = f"{self.base_url(domain)}/robots.txt"
        try:
            content = self.fetcher.fetch_text(robots_url)
        except FetchError as e:
            logger.info(f"No robots.txt for {domain}: {e}")
            return None, e.status_code is not None

        return parse_robots(content, self.base_url(domain), self.user_agent), True

    def locate(self, domain: str, robots: RobotsRules | None = None) -> Iterator[SitemapReference]:
        """
        Discover candidate sitemap URLs for a domain.

        robots.txt declarations come first, in file order, followed by the
        well-known paths that answer an existence check. The robots.txt
        rules used are kept on ``self.robots``.

        Args:
            domain: The site hostname
            robots: Already parsed robots.txt rules; fetched when omitted

        Yields:
            Sitemap references, deduplicated by URL

        Raises:
            LocatorError: If nothing was found and the domain never answered
        """
        reachable = robots is not None
        if robots is None:
            robots, reachable = self._fetch_robots(domain)
        self.robots = robots

        seen: set[str] = set()
        if robots is not None:
            for url in robots.sitemaps:
                if url not in seen:
                    seen.add(url)
                    logger.info(f"Found sitemap in robots.txt: {url}")
                    yield SitemapReference(url, SitemapSource.ROBOTS)

        base = self.base_url(domain)
        for pattern in SITEMAP_PATTERNS:
            sitemap_url = f"{base}{pattern}"
            if sitemap_url in seen:
                continue
            logger.debug(f"Checking for sitemap: {sitemap_url}")
            try:
                found = self.fetcher.exists(sitemap_url)
            except FetchError as e:
                logger.debug(f"Probe failed for {sitemap_url}: {e}")
                continue
            reachable = True
            if found:
                seen.add(sitemap_url)
                logger.info(f"Found sitemap: {sitemap_url}")
                yield SitemapReference(sitemap_url, SitemapSource.WELL_KNOWN_PATH)

        if not seen:
            if not reachable:
                raise LocatorError(f"Domain unreachable and no sitemap found: {domain}")
            logger.warning(f"No sitemap found for {domain}")
