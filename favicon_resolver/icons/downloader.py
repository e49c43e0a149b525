# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Async downloader for pages, manifests and icons"""

import logging
from typing import Optional

import httpx

from favicon_resolver.configs import settings
from favicon_resolver.icons.constants import ICON_REQUEST_HEADERS, REQUEST_HEADERS
from favicon_resolver.icons.models import ResolvedIcon
from favicon_resolver.icons.utils import decode_data_uri, media_type
from favicon_resolver.utils.http_client import create_http_client

logger = logging.getLogger(__name__)

# Errors raised by httpx for unreachable hosts, bad URLs, timeouts and redirect loops
FETCH_ERRORS: tuple[type[Exception], ...] = (httpx.HTTPError, httpx.InvalidURL)


class AsyncIconDownloader:
    """Fetch pages, manifests and icons using a shared async HTTP client."""

    session: httpx.AsyncClient

    def __init__(self, session: Optional[httpx.AsyncClient] = None) -> None:
        self.session = session or create_http_client(
            request_timeout=float(settings.icon.fetch_timeout_sec),
            connect_timeout=float(settings.icon.connect_timeout_sec),
        )

    async def fetch(
        self, url: str, headers: Optional[dict[str, str]] = None, method: str = "GET"
    ) -> httpx.Response:
        """Issue a request following redirects. Transport failures propagate."""
        return await self.session.request(
            method, url, headers=headers or REQUEST_HEADERS, follow_redirects=True
        )

    async def requests_get(
        self, url: str, headers: Optional[dict[str, str]] = None
    ) -> Optional[httpx.Response]:
        """Fetch URL and return the response if it succeeded, None otherwise."""
        try:
            response = await self.fetch(url, headers=headers)
        except FETCH_ERRORS as e:
            logger.debug(f"Failed to fetch URL {url}: {e}")
            return None

        if not response.is_success:
            logger.debug(f"Fetching {url} returned HTTP {response.status_code}")
            return None
        return response

    async def head(self, url: str) -> bool:
        """Check that a resource exists without downloading its body."""
        try:
            response = await self.fetch(url, headers=ICON_REQUEST_HEADERS, method="HEAD")
        except FETCH_ERRORS as e:
            logger.debug(f"HEAD request to {url} failed: {e}")
            return False
        return response.is_success

    async def download_icon(self, url: str) -> Optional[ResolvedIcon]:
        """Download an icon. `data:` URIs are decoded in place of a network fetch."""
        if url.lower().startswith("data:"):
            try:
                content, content_type = decode_data_uri(url)
            except ValueError as e:
                logger.debug(f"Malformed data URI icon: {e}")
                return None
            return ResolvedIcon(url=url, content=content, content_type=content_type)

        response = await self.requests_get(url, headers=ICON_REQUEST_HEADERS)
        if response is None:
            return None

        return ResolvedIcon(
            url=url,
            content=response.content,
            content_type=media_type(response.headers.get("Content-Type")),
        )

    async def close(self) -> None:
        """Close HTTP session and release resources."""
        await self.session.aclose()
