"""Data models shared by the scraper components."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

SUMMARY_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SitemapSource(str, enum.Enum):
    """Where a sitemap reference was discovered."""

    ROBOTS = "robots"
    WELL_KNOWN_PATH = "well_known_path"
    INDEX = "index"


@dataclass(frozen=True)
class SitemapReference:
    url: str
    source: SitemapSource
    discovered_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class SitemapEntry:
    loc: str
    lastmod: datetime | None = None


@dataclass(frozen=True)
class UrlSet:
    """A ``<urlset>`` document: entries point at pages."""

    entries: tuple[SitemapEntry, ...] = ()


@dataclass(frozen=True)
class SitemapIndex:
    """A ``<sitemapindex>`` document: entries point at other sitemaps."""

    entries: tuple[SitemapEntry, ...] = ()


SitemapDocument = Union[UrlSet, SitemapIndex]


@dataclass(frozen=True)
class KeywordScore:
    matched: frozenset[str]
    score: int


@dataclass(frozen=True)
class PageContent:
    """A scraped page with its extracted text and keyword score."""

    url: str
    raw_html: str
    extracted_text: str
    matched_keywords: frozenset[str] = frozenset()
    score: int = 0

    @property
    def summary(self) -> str:
        """Extracted text truncated for display."""
        return self.extracted_text[:SUMMARY_LENGTH]

    def to_dict(self) -> dict[str, object]:
        return {
            "url": self.url,
            "summary": self.summary,
            "matched_keywords": sorted(self.matched_keywords),
            "score": self.score,
        }


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: SitemapDocument | PageContent
    fetched_at: datetime = field(default_factory=utcnow)
