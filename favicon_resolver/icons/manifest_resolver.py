# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Web app manifest resolver"""

import logging
from typing import Any

from favicon_resolver.icons.constants import MANIFEST_REQUEST_HEADERS
from favicon_resolver.icons.downloader import AsyncIconDownloader
from favicon_resolver.icons.models import CandidateRole, IconReference
from favicon_resolver.icons.utils import parse_declared_size, resolve_reference

logger = logging.getLogger(__name__)


class ManifestResolver:
    """Fetch a web app manifest and turn its `icons` array into icon references."""

    def __init__(self, downloader: AsyncIconDownloader) -> None:
        self.downloader = downloader

    async def resolve(self, manifest_url: str) -> list[IconReference]:
        """Return the manifest's icon references. Failures yield an empty list."""
        response = await self.downloader.requests_get(
            manifest_url, headers=MANIFEST_REQUEST_HEADERS
        )
        if response is None:
            return []

        try:
            manifest = response.json()
        except ValueError:
            logger.debug(f"Failed to parse manifest JSON from {manifest_url}")
            return []

        if not isinstance(manifest, dict):
            logger.debug(f"Manifest at {manifest_url} is not a JSON object")
            return []

        icons = manifest.get("icons")
        if not isinstance(icons, list):
            return []

        # Relative `src` values are relative to the manifest, not the page.
        base_url = str(response.url) if response.url else manifest_url
        return [
            reference
            for entry in icons
            if (reference := self._to_reference(entry, base_url)) is not None
        ]

    @staticmethod
    def _to_reference(entry: Any, base_url: str) -> IconReference | None:
        if not isinstance(entry, dict) or not isinstance(entry.get("src"), str):
            return None

        purpose = entry.get("purpose")
        if isinstance(purpose, str) and purpose.split() == ["monochrome"]:
            return None

        url = resolve_reference(entry["src"], base_url)
        if url is None:
            return None

        declared_type = entry.get("type")
        return IconReference(
            url=url,
            role=CandidateRole.MANIFEST_ICON,
            declared_size=parse_declared_size(entry.get("sizes")),
            declared_type=(
                declared_type.strip().lower() if isinstance(declared_type, str) else None
            ),
        )
