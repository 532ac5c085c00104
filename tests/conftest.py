"""Shared fixtures: an in-memory website served through httpx.MockTransport."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from typing import Union

import httpx
import pytest

from sitescrape.config import FetchSettings
from sitescrape.scraper.http import Fetcher

Route = Union[str, bytes, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeSite:
    """Routes requests by absolute URL; unknown URLs answer 404."""

    def __init__(self, default: Route | None = None) -> None:
        self.routes: dict[str, Route] = {}
        self.default = default
        self.requests: list[tuple[str, str, float]] = []
        self._lock = threading.Lock()

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def calls(self, url: str, method: str | None = None) -> int:
        return sum(
            1
            for request_method, request_url, _ in self.requests
            if request_url == url and (method is None or request_method == method)
        )

    def urls(self, method: str = "GET") -> list[str]:
        return [url for request_method, url, _ in self.requests if request_method == method]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.requests.append((request.method, url, time.monotonic()))

        route = self.routes.get(url, self.default)
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, str):
            return httpx.Response(200, text=route, headers={"Content-Type": "text/html; charset=utf-8"})
        if isinstance(route, bytes):
            return httpx.Response(200, content=route)
        return route(request)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def make_fetcher() -> Iterator[Callable[..., Fetcher]]:
    """Build fetchers bound to a FakeSite, closing their clients afterwards."""
    clients: list[httpx.Client] = []

    def factory(fake: FakeSite, delay: float = 0.0, **settings: object) -> Fetcher:
        client = httpx.Client(transport=httpx.MockTransport(fake), follow_redirects=True)
        clients.append(client)
        return Fetcher(FetchSettings(**settings), delay=delay, client=client)

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def fetcher(site: FakeSite, make_fetcher: Callable[..., Fetcher]) -> Fetcher:
    return make_fetcher(site)
