"""Rate-limited HTTP fetching."""

from __future__ import annotations

import enum
import ipaddress
import logging
import threading
import time
import urllib.parse
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

import httpx

from sitescrape.config import FetchSettings
from sitescrape.errors import FetchError, FetchErrorKind, ScrapeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY = 0.2  # seconds between requests to one origin

BLOCKED_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::"})


def _is_private_ip(hostname: str) -> bool:
    """Check if hostname is a private or reserved IP address.

    Args:
        hostname: The hostname or IP to check

    Returns:
        True if the IP is private/reserved, False otherwise
    """
    try:
        ip = ipaddress.ip_address(hostname)
        return ip.is_private or ip.is_reserved or ip.is_loopback
    except ValueError:
        # Not an IP address (probably a domain name)
        return False


def validate_url(url: str) -> bool:
    """
    Validate URL for security (SSRF prevention).

    Args:
        url: The URL to validate

    Returns:
        True if URL is valid, False otherwise
    """
    try:
        parsed = urllib.parse.urlparse(url)
        httpx.URL(url)
    except (ValueError, httpx.InvalidURL) as e:
        logger.warning(f"Failed to parse URL: {e}")
        return False

    if parsed.scheme not in ("http", "https"):
        logger.warning(f"URL scheme not allowed: {parsed.scheme}")
        return False

    hostname = parsed.hostname or ""
    if not hostname and parsed.netloc:
        # Bare IPv6 netloc such as http://::1/admin
        hostname = parsed.netloc.lstrip("[").rstrip("]")
    if not hostname:
        logger.warning(f"URL has no host: {url}")
        return False

    is_ipv6 = False
    try:
        is_ipv6 = ipaddress.ip_address(hostname).version == 6
    except ValueError:
        pass

    if (
        hostname in BLOCKED_HOSTS
        or hostname.endswith(".local")
        or is_ipv6
        or _is_private_ip(hostname)
    ):
        logger.warning(f"Blocked localhost or private URL: {url}")
        return False

    return True


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL, lower-cased; empty if unparsable."""
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}".lower()


class RequestState(enum.Enum):
    """States of a single request under the retry policy."""

    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def classify_error(exc: httpx.HTTPError) -> FetchErrorKind:
    """Map an httpx exception to a fetch error kind."""
    if isinstance(exc, httpx.TimeoutException):
        return FetchErrorKind.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        return FetchErrorKind.CONNECTION_REFUSED
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 404:
        return FetchErrorKind.NOT_FOUND
    return FetchErrorKind.OTHER


class _OriginPacer:
    """Serializes requests to one origin and spaces them by a minimum delay."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.lock = threading.Lock()
        self._last_request: float | None = None

    def wait(self) -> None:
        """Sleep until the origin may be contacted again. Caller holds ``lock``."""
        if self._last_request is not None and self.delay > 0:
            wait_time = self.delay - (time.monotonic() - self._last_request)
            if wait_time > 0:
                time.sleep(wait_time)
        self._last_request = time.monotonic()


class Fetcher:
    """HTTP client with per-origin pacing, timeouts and retries.

    Requests to one origin are strictly serialized and spaced at least
    ``delay`` seconds apart; requests to distinct origins may overlap when
    issued through ``fetch_all``.
    """

    def __init__(
        self,
        settings: FetchSettings | None = None,
        delay: float = DEFAULT_DELAY,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            settings: Timeout, retry and concurrency settings
            delay: Minimum delay in seconds between requests to one origin
            client: Optional preconfigured client; the fetcher does not close it
        """
        self.settings = settings or FetchSettings()
        self.delay = delay
        self._owns_client = client is None
        self._client = client or httpx.Client(
            headers={"User-Agent": self.settings.user_agent},
            timeout=httpx.Timeout(self.settings.timeout),
            follow_redirects=True,
        )
        self._pacers: dict[str, _OriginPacer] = {}
        self._pacers_lock = threading.Lock()

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def _pacer(self, url: str) -> _OriginPacer:
        origin = origin_of(url)
        with self._pacers_lock:
            pacer = self._pacers.get(origin)
            if pacer is None:
                pacer = self._pacers[origin] = _OriginPacer(self.delay)
            return pacer

    def _send(self, method: str, url: str) -> httpx.Response:
        pacer = self._pacer(url)
        with pacer.lock:
            pacer.wait()
            logger.debug(f"{method} {url}")
            return self._client.request(method, url, timeout=self.settings.timeout)

    def request(
        self,
        method: str,
        url: str,
        max_attempts: int | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """
        Issue a paced request, retrying transient failures.

        Args:
            method: HTTP method
            url: The URL to request
            max_attempts: Total attempts; defaults to the configured retry count
            raise_for_status: Treat 4xx/5xx responses as failures

        Returns:
            The response

        Raises:
            FetchError: When the URL is rejected or every attempt failed
        """
        if not validate_url(url):
            raise FetchError(url, FetchErrorKind.OTHER, "URL rejected by validation")

        attempts = max_attempts or self.settings.retry_attempts
        attempt = 1
        state = RequestState.ATTEMPTING
        # Attempting(n) -> Succeeded | Retrying(n + 1) | Failed
        while True:
            try:
                response = self._send(method, url)
                if raise_for_status:
                    response.raise_for_status()
            except httpx.InvalidURL as e:
                raise FetchError(url, FetchErrorKind.OTHER, str(e)) from e
            except httpx.HTTPError as e:
                kind = classify_error(e)
                if kind.transient and attempt < attempts:
                    state = RequestState.RETRYING
                    logger.warning(
                        f"{kind.value} on attempt {attempt}/{attempts} for {url}. Retrying: {e}",
                    )
                    attempt += 1
                    continue

                state = RequestState.FAILED
                status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                logger.warning(f"{url}: {state.value} after {attempt} attempt(s): {e}")
                raise FetchError(url, kind, str(e), status_code=status) from e

            state = RequestState.SUCCEEDED
            logger.debug(f"{url}: {state.value} with {response.status_code} on attempt {attempt}")
            return response

    def fetch(self, url: str) -> bytes:
        """
        Fetch a URL body.

        Args:
            url: The URL to fetch

        Returns:
            Response body bytes

        Raises:
            FetchError: When the request ultimately failed
        """
        return self.request("GET", url).content

    def fetch_text(self, url: str) -> str:
        """Fetch a URL and decode the body using the response charset."""
        response = self.request("GET", url)
        encoding = response.charset_encoding or "utf-8"
        try:
            return response.content.decode(encoding, errors="replace")
        except LookupError:
            return response.content.decode("utf-8", errors="replace")

    def exists(self, url: str) -> bool:
        """
        Check whether a URL answers with a success status.

        Uses a single HEAD request, falling back to GET when the server
        does not allow HEAD.

        Returns:
            True on a 2xx response, False on any other HTTP status

        Raises:
            FetchError: When no HTTP response was received at all
        """
        response = self.request("HEAD", url, max_attempts=1, raise_for_status=False)
        if response.status_code == 405:
            response = self.request("GET", url, max_attempts=1, raise_for_status=False)
        return response.is_success

    def fetch_all(
        self,
        urls: Iterable[str],
        fetch: Callable[[str], T] | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[tuple[str, T | ScrapeError]]:
        """
        Fetch many URLs, overlapping distinct origins.

        One worker per origin handles that origin's URLs in submission
        order. Failures are yielded in place of results so one failing URL
        never stops the batch.

        Args:
            urls: URLs in submission order
            fetch: Per-URL operation; defaults to ``self.fetch``
            cancel: Event that stops outstanding work when set

        Yields:
            (url, result or error) pairs in submission order
        """
        operation = fetch or self.fetch
        ordered = list(urls)
        if not ordered:
            return

        futures: list[Future] = [Future() for _ in ordered]
        by_origin: dict[str, list[int]] = {}
        for index, url in enumerate(ordered):
            by_origin.setdefault(origin_of(url), []).append(index)

        stop = threading.Event()

        def stopped() -> bool:
            return stop.is_set() or (cancel is not None and cancel.is_set())

        def work(indexes: list[int]) -> None:
            for index in indexes:
                url = ordered[index]
                if stopped():
                    futures[index].set_result(
                        FetchError(url, FetchErrorKind.CANCELLED, "batch cancelled"),
                    )
                    continue
                try:
                    futures[index].set_result(operation(url))
                except ScrapeError as e:
                    futures[index].set_result(e)
                except Exception as e:
                    futures[index].set_exception(e)

        workers = min(self.settings.max_concurrency, len(by_origin))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch") as pool:
            try:
                for indexes in by_origin.values():
                    pool.submit(work, indexes)
                for url, future in zip(ordered, futures):
                    if cancel is not None and cancel.is_set():
                        break
                    yield url, future.result()
            finally:
                stop.set()
