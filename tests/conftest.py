# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Module for test configurations shared by every test directory."""

import os
import random
from io import BytesIO
from logging import LogRecord
from typing import Any, Callable
from urllib.parse import urlsplit, urlunsplit

import aiodogstatsd
import httpx
import pytest
from PIL import Image as PILImage
from pytest_mock import MockerFixture

# Settings are loaded lazily, so this takes effect before the first access.
os.environ.setdefault("FAVICON_ENV", "testing")

from favicon_resolver.icons.downloader import AsyncIconDownloader  # noqa: E402

FilterCaplogFixture = Callable[[list[LogRecord], str], list[LogRecord]]
PngFactory = Callable[..., bytes]


@pytest.fixture(scope="session", name="filter_caplog")
def fixture_filter_caplog() -> FilterCaplogFixture:
    """Return a function that will filter pytest captured log records for a given logger
    name
    """

    def filter_caplog(records: list[LogRecord], logger_name: str) -> list[LogRecord]:
        """Filter pytest captured log records for a given logger name"""
        return [record for record in records if record.name == logger_name]

    return filter_caplog


@pytest.fixture(scope="session", name="make_png")
def fixture_make_png() -> PngFactory:
    """Return a function that renders a PNG of random noise. The noise keeps small images
    above the minimum icon payload size.
    """

    def make_png(width: int = 32, height: int = 32, seed: int = 0) -> bytes:
        noise = random.Random(seed).randbytes(width * height * 3)
        buffer = BytesIO()
        PILImage.frombytes("RGB", (width, height), noise).save(buffer, format="PNG")
        return buffer.getvalue()

    return make_png


@pytest.fixture(scope="session", name="ico_bytes")
def fixture_ico_bytes() -> bytes:
    """Return an ICO container embedding 16x16, 32x32 and 48x48 images."""
    buffer = BytesIO()
    PILImage.new("RGBA", (48, 48), "blue").save(
        buffer, format="ICO", sizes=[(16, 16), (32, 32), (48, 48)]
    )
    return buffer.getvalue()


@pytest.fixture(scope="session", name="oversized_png")
def fixture_oversized_png() -> bytes:
    """Return a small PNG payload declaring 9000x9000 pixels."""
    buffer = BytesIO()
    PILImage.new("1", (9000, 9000)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="session", name="svg_bytes")
def fixture_svg_bytes() -> bytes:
    """Return SVG markup without explicit dimensions."""
    return (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 16 16">'
        b'<circle cx="8" cy="8" r="8" stroke-width="2"/></svg>'
    )


def canonical_url(url: str) -> str:
    """Give an empty path the root path, so that `https://a.com` matches `https://a.com/`."""
    parts = urlsplit(url)
    return urlunsplit(parts._replace(path=parts.path or "/"))


class MockWeb:
    """Serve canned responses to an `AsyncIconDownloader` through `httpx.MockTransport`.

    `routes` maps URLs to `(status, headers, body)` tuples or to an exception that is
    raised for the request. Unknown URLs fail with a connection error. Every request is
    recorded in `requests` as `(method, url)`, with URLs in canonical form.
    """

    def __init__(self, routes: dict[str, tuple[int, dict[str, str], bytes] | Exception]) -> None:
        self.routes = {canonical_url(url): route for url, route in routes.items()}
        self.requests: list[tuple[str, str]] = []
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self.handle))
        self.downloader = AsyncIconDownloader(session=self.client)

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = canonical_url(str(request.url))
        self.requests.append((request.method, url))
        route = self.routes.get(url)
        if route is None:
            raise httpx.ConnectError(f"No route to {url}", request=request)
        if isinstance(route, Exception):
            raise route
        status, headers, body = route
        return httpx.Response(status, headers=headers, content=body)

    def requested_urls(self, method: str = "GET") -> list[str]:
        """Return the URLs requested with `method`, in order."""
        return [url for requested_method, url in self.requests if requested_method == method]

    def was_requested(self, url: str, method: str = "GET") -> bool:
        """Return whether `url` was requested with `method`."""
        return canonical_url(url) in self.requested_urls(method)


@pytest.fixture(name="mock_web")
def fixture_mock_web() -> Callable[..., MockWeb]:
    """Return a factory for MockWeb instances."""

    def _create(routes: dict[str, tuple[int, dict[str, str], bytes] | Exception]) -> MockWeb:
        return MockWeb(routes)

    return _create


@pytest.fixture(name="metrics_client_mock")
def fixture_metrics_client_mock(mocker: MockerFixture) -> Any:
    """Return a StatsD client mock."""
    return mocker.MagicMock(spec=aiodogstatsd.Client)
