"""Exception hierarchy for the scraping pipeline."""

from __future__ import annotations

import enum


class ScrapeError(Exception):
    """Base class for all scraping errors."""


class ValidationError(ScrapeError):
    """Input address does not contain a usable domain."""


class LocatorError(ScrapeError):
    """No sitemap candidate was found and the domain is unreachable."""


class ParseError(ScrapeError):
    """Sitemap content could not be parsed."""


class CacheError(ScrapeError):
    """A cache operation failed. Callers treat this as a cache miss."""


class InvalidTransitionError(ScrapeError):
    """Pipeline state change that the state machine does not allow."""


class FetchErrorKind(str, enum.Enum):
    """Classification of fetch failures."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    NOT_FOUND = "not_found"
    OTHER = "other"
    CANCELLED = "cancelled"

    @property
    def transient(self) -> bool:
        """Whether a request failing this way is worth retrying."""
        return self in (FetchErrorKind.TIMEOUT, FetchErrorKind.CONNECTION_REFUSED)


class FetchError(ScrapeError):
    """A request failed after the retry policy was exhausted."""

    def __init__(
        self,
        url: str,
        kind: FetchErrorKind,
        message: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.kind = kind
        self.status_code = status_code
        detail = message or kind.value
        super().__init__(f"{kind.value} fetching {url}: {detail}")
