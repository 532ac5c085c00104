"""HTML text extraction, keyword scoring and link handling."""

from __future__ import annotations

import urllib.parse
from collections.abc import Mapping
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

from .models import KeywordScore, PageContent

if TYPE_CHECKING:
    from collections.abc import Sequence

NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]


def extract_text(html: str) -> str:
    """
    Extract visible text from an HTML document.

    Script and style subtrees are removed and whitespace runs collapsed
    to single spaces.

    Args:
        html: The HTML content

    Returns:
        Normalized text, empty for pages without content
    """
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(NON_CONTENT_TAGS):
        if not element.decomposed:
            element.decompose()

    root = soup.body or soup
    return " ".join(root.get_text(" ").split())


def score_text(
    text: str,
    keywords: Sequence[str],
    weights: Mapping[str, int] | None = None,
) -> KeywordScore:
    """
    Match keywords against text, case-insensitively.

    Args:
        text: Extracted page text
        keywords: Keywords in priority order
        weights: Optional per-keyword weights; unlisted keywords weigh 1

    Returns:
        The matched keywords and the score. Without weights the score is
        the number of distinct matched keywords.
    """
    haystack = text.casefold()
    weights = weights or {}
    matched: set[str] = set()
    seen: set[str] = set()
    score = 0

    for keyword in keywords:
        needle = keyword.casefold().strip()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        if needle in haystack:
            matched.add(keyword)
            score += max(weights.get(keyword, 1), 0)

    return KeywordScore(matched=frozenset(matched), score=score)


def build_page(
    url: str,
    html: str,
    keywords: Sequence[str],
    weights: Mapping[str, int] | None = None,
) -> PageContent:
    """Extract and score one fetched page."""
    text = extract_text(html)
    result = score_text(text, keywords, weights)
    return PageContent(
        url=url,
        raw_html=html,
        extracted_text=text,
        matched_keywords=result.matched,
        score=result.score,
    )


def normalize_urls(urls: Sequence[str], base_url: str) -> list[str]:
    """
    Convert relative URLs to absolute URLs.

    Fragments are dropped; non-HTTP links (mailto:, javascript:, tel:) are
    filtered out.

    Args:
        urls: List of URLs (may be relative or absolute)
        base_url: The base URL to resolve relative URLs against

    Returns:
        List of absolute URLs
    """
    normalized = []

    for url in urls:
        if not url:
            continue

        url = url.strip()
        if not url or url.startswith("#"):
            continue

        try:
            absolute, _ = urllib.parse.urldefrag(urllib.parse.urljoin(base_url, url))
            scheme = urllib.parse.urlparse(absolute).scheme
        except ValueError:
            continue
        if scheme in ("http", "https"):
            normalized.append(absolute)

    return normalized


def extract_links(html: str, base_url: str) -> list[str]:
    """
    Extract all same-domain <a href> links from HTML.

    Args:
        html: The HTML content
        base_url: The base URL to resolve relative links

    Returns:
        List of absolute URLs on the same host as base_url
    """
    soup = BeautifulSoup(html, "html.parser")

    hrefs: list[str] = []
    for link in soup.find_all("a", href=True):
        href = link.get("href")
        if href and isinstance(href, str):
            hrefs.append(href)

    domain = urllib.parse.urlparse(base_url).netloc.lower()
    return [
        url
        for url in normalize_urls(hrefs, base_url)
        if urllib.parse.urlparse(url).netloc.lower() == domain
    ]


def deduplicate(urls: Sequence[str]) -> list[str]:
    """
    Remove duplicate URLs while preserving order.

    Args:
        urls: List of URLs (may contain duplicates)

    Returns:
        List of unique URLs in original order
    """
    seen: set[str] = set()
    result = []

    for url in urls:
        key = url.rstrip("/")
        if key not in seen:
            seen.add(key)
            result.append(url)

    return result
