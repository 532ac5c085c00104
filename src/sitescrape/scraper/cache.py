"""Run-scoped result cache with request coalescing."""

from __future__ import annotations

import logging
import threading
import urllib.parse
from collections.abc import Callable
from concurrent.futures import Future
from typing import TypeVar, Union

from sitescrape.errors import CacheError

from .models import CacheEntry, PageContent, SitemapIndex, UrlSet

logger = logging.getLogger(__name__)

V = TypeVar("V", bound=Union[UrlSet, SitemapIndex, PageContent])

CACHEABLE_TYPES = (UrlSet, SitemapIndex, PageContent)


def normalize_key(url: str) -> str:
    """Normalize a URL into a cache key.

    Scheme and host are lower-cased, the fragment is dropped and an empty
    path becomes ``/``. Unparsable URLs are used as given.
    """
    try:
        parts = urllib.parse.urlsplit(url.strip())
    except ValueError:
        return url.strip()
    return urllib.parse.urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""),
    )


class ScrapeCache:
    """Memo table for sitemap documents and page contents.

    At most one load per key is in flight: concurrent ``get_or_fetch``
    callers for the same key wait for the first caller's result. Failed
    loads are not stored. There is no expiry; ``clear`` empties the table.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: dict[str, CacheEntry] = {}
        self._pending: dict[str, Future] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> CacheEntry | None:
        if not self.enabled:
            return None
        with self._lock:
            return self._entries.get(normalize_key(key))

    def set(self, key: str, value: UrlSet | SitemapIndex | PageContent) -> None:
        """
        Store a value.

        Raises:
            CacheError: If the value is not a cacheable result type
        """
        if not isinstance(value, CACHEABLE_TYPES):
            raise CacheError(f"Refusing to cache {type(value).__name__} for {key}")
        if not self.enabled:
            return
        normalized = normalize_key(key)
        with self._lock:
            self._entries[normalized] = CacheEntry(key=normalized, value=value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cache cleared")

    def get_or_fetch(self, key: str, loader: Callable[[], V]) -> V:
        """
        Return the cached value for a key, loading it once if missing.

        Args:
            key: URL the value belongs to
            loader: Produces the value; called at most once per key at a time

        Returns:
            The cached or freshly loaded value

        Raises:
            Whatever the loader raises, to every caller waiting on the key
        """
        if not self.enabled:
            return loader()

        normalized = normalize_key(key)
        with self._lock:
            entry = self._entries.get(normalized)
            if entry is not None:
                logger.debug(f"Cache hit: {normalized}")
                return entry.value  # type: ignore[return-value]
            pending = self._pending.get(normalized)
            owner = pending is None
            if owner:
                pending = self._pending[normalized] = Future()

        if not owner:
            logger.debug(f"Waiting for in-flight load: {normalized}")
            return pending.result()

        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                del self._pending[normalized]
            pending.set_exception(e)
            raise

        try:
            self.set(normalized, value)
        except CacheError as e:
            logger.warning(f"Cache write failed, treating as miss: {e}")
        with self._lock:
            del self._pending[normalized]
        pending.set_result(value)
        return value
