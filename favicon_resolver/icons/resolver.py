# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Discover, rank, fetch and normalize the best icon for a target.

Resolution runs these stages in order and stops at the first usable icon:

1. Page discovery: `<link>`/`<meta>` references in the page markup, plus the icons of
   the web app manifest it links to.
2. The conventional `/favicon.ico` at the page origin.
3. Third-party icon lookup services.
4. A monogram placeholder, when enabled.

Site-authored metadata is trusted over convention, and convention over third-party
inference.
"""

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote, urljoin

from favicon_resolver.configs import settings
from favicon_resolver.exceptions import (
    CandidateRejectedError,
    ExhaustionError,
    UpstreamDependencyError,
)
from favicon_resolver.icons.constants import (
    DEFAULT_FAVICON_PATH,
    HTML_CONTENT_TYPES,
    ICO_CONTENT_TYPES,
    ICON_REQUEST_HEADERS,
    REQUEST_HEADERS,
    SVG_CONTENT_TYPES,
)
from favicon_resolver.icons.downloader import FETCH_ERRORS, AsyncIconDownloader
from favicon_resolver.icons.manifest_resolver import ManifestResolver
from favicon_resolver.icons.markup_scanner import scan_markup
from favicon_resolver.icons.models import (
    CandidateDescriptor,
    DiscoveryResult,
    IconReference,
    NormalizedIcon,
    ResolutionTarget,
    ResolvedIcon,
)
from favicon_resolver.icons.normalizer import ImageNormalizer
from favicon_resolver.icons.placeholder import render_placeholder
from favicon_resolver.icons.scoring import CandidateScorer, ScoringPolicy
from favicon_resolver.icons.utils import get_base_url, media_type, normalize_target
from favicon_resolver.utils.metrics import get_metrics_client

logger = logging.getLogger(__name__)


class IconResolver:
    """Resolve the best icon for a domain or URL. One instance serves many requests;
    all per-request state is local to `resolve`.
    """

    def __init__(
        self,
        downloader: AsyncIconDownloader,
        scorer: Optional[CandidateScorer] = None,
        normalizer: Optional[ImageNormalizer] = None,
        manifest_resolver: Optional[ManifestResolver] = None,
        metrics_client: Optional[Any] = None,
        max_candidates: Optional[int] = None,
        min_icon_bytes: Optional[int] = None,
        max_icon_bytes: Optional[int] = None,
        placeholder_enabled: Optional[bool] = None,
        retry_plain_http: Optional[bool] = None,
        on_decode_failure: Optional[str] = None,
        lookup_services: Optional[list[str]] = None,
    ) -> None:
        self.downloader = downloader
        self.scorer = scorer or CandidateScorer(ScoringPolicy.from_settings())
        self.normalizer = normalizer or ImageNormalizer()
        self.manifest_resolver = manifest_resolver or ManifestResolver(downloader)
        self.metrics_client = metrics_client or get_metrics_client()
        self.max_candidates: int = max_candidates or settings.icon.max_candidates
        self.min_icon_bytes: int = (
            settings.icon.min_icon_bytes if min_icon_bytes is None else min_icon_bytes
        )
        self.max_icon_bytes: int = max_icon_bytes or settings.icon.max_icon_bytes
        self.placeholder_enabled: bool = (
            settings.icon.placeholder_enabled
            if placeholder_enabled is None
            else placeholder_enabled
        )
        self.retry_plain_http: bool = (
            settings.icon.retry_plain_http if retry_plain_http is None else retry_plain_http
        )
        self.on_decode_failure: str = on_decode_failure or settings.icon.on_decode_failure
        self.lookup_services: list[str] = list(
            settings.icon.lookup_services if lookup_services is None else lookup_services
        )

    async def resolve(self, target: str | ResolutionTarget) -> NormalizedIcon:
        """Resolve and normalize the best icon for a target.

        Raises:
            InputError: if the target can't be normalized.
            ExhaustionError: if every source failed and placeholders are disabled.
            UpstreamDependencyError: if, in addition, no lookup service was reachable.
        """
        if isinstance(target, str):
            target = normalize_target(target)

        with self.metrics_client.timeit("resolver.duration"):
            discovery = await self.discover(target)
            ranked = self.rank(discovery.candidates)

            result = await self.resolve_candidates(ranked)
            if result is not None:
                return self._resolved(result, "page")

            result = await self.resolve_default_favicon(discovery.page_url)
            if result is not None:
                return self._resolved(result, "default")

            result, reachable = await self.resolve_lookup_services(target.host)
            if result is not None:
                return self._resolved(result, "lookup")

            if self.placeholder_enabled:
                self.metrics_client.increment("resolver.placeholder")
                logger.info(f"No icon found for {target.host}, serving placeholder")
                placeholder = render_placeholder(target.host)
                normalized = await asyncio.to_thread(
                    self.normalizer.normalize, placeholder.content, placeholder.content_type
                )
                return normalized.model_copy(update={"placeholder": True})

            if self.lookup_services and not reachable:
                self.metrics_client.increment("resolver.upstream_failure")
                raise UpstreamDependencyError(
                    f"No icon lookup service reachable for {target.host}"
                )

            self.metrics_client.increment("resolver.exhausted")
            raise ExhaustionError(f"No usable icon found for {target.host}")

    async def discover(self, target: ResolutionTarget) -> DiscoveryResult:
        """Collect and score icon references from the target page and its manifest."""
        references, page_url = await self.discover_page(target.url)

        if not references and not target.explicit_scheme and self.retry_plain_http:
            plain_url = "http://" + target.url.removeprefix("https://")
            plain_references, plain_page_url = await self.discover_page(plain_url)
            if plain_references:
                references, page_url = plain_references, plain_page_url

        return DiscoveryResult(candidates=self.scorer.describe(references), page_url=page_url)

    async def discover_page(self, page_url: str) -> tuple[list[IconReference], str]:
        """Scan one page. Returns its references and its final URL after redirects."""
        response = await self.downloader.requests_get(page_url, headers=REQUEST_HEADERS)
        if response is None:
            return [], page_url

        final_url = str(response.url)
        content_type = media_type(response.headers.get("Content-Type"))
        if content_type and content_type not in HTML_CONTENT_TYPES:
            logger.debug(f"Page {final_url} is {content_type!r}, not HTML")
            return [], final_url

        scan = await asyncio.to_thread(scan_markup, response.content, final_url)
        references = list(scan.references)
        if scan.manifest_url:
            references.extend(await self.manifest_resolver.resolve(scan.manifest_url))

        logger.debug(f"Discovered {len(references)} icon references on {final_url}")
        return references, final_url

    def rank(self, candidates: list[CandidateDescriptor]) -> list[CandidateDescriptor]:
        """Order candidates best first."""
        return self.scorer.rank(candidates)

    async def resolve_candidates(
        self, ranked: list[CandidateDescriptor]
    ) -> Optional[NormalizedIcon]:
        """Fetch ranked candidates one at a time and normalize the first usable one."""
        for candidate in ranked[: self.max_candidates]:
            icon = await self.downloader.download_icon(candidate.url)
            if icon is None or not self.is_acceptable(icon):
                self.metrics_client.increment("resolver.candidate.rejected")
                logger.debug(f"Rejected icon candidate {candidate.url}")
                continue

            normalized = await self.normalize(icon)
            if normalized is not None:
                return normalized

        return None

    async def resolve_default_favicon(self, page_url: str) -> Optional[NormalizedIcon]:
        """Try the conventional `/favicon.ico` at the page origin."""
        favicon_url = urljoin(get_base_url(page_url), DEFAULT_FAVICON_PATH)
        if not await self.downloader.head(favicon_url):
            return None

        icon = await self.downloader.download_icon(favicon_url)
        if icon is None or not self.is_acceptable(icon):
            logger.debug(f"Rejected default favicon {favicon_url}")
            return None
        return await self.normalize(icon)

    async def resolve_lookup_services(self, host: str) -> tuple[Optional[NormalizedIcon], bool]:
        """Query third-party lookup services.

        Returns the best normalized result, if any, and whether at least one service
        answered at all.
        """
        reachable = False
        fetched: dict[str, ResolvedIcon] = {}
        for template in self.lookup_services:
            url = template.format(domain=quote(host, safe=""))
            try:
                response = await self.downloader.fetch(url, headers=ICON_REQUEST_HEADERS)
            except FETCH_ERRORS as e:
                logger.info(f"Icon lookup service {url} unreachable: {e}")
                continue

            reachable = True
            icon = ResolvedIcon(
                url=url,
                content=response.content,
                content_type=media_type(response.headers.get("Content-Type")),
            )
            if response.is_success and self.is_acceptable(icon):
                fetched[url] = icon

        references = [IconReference(url=url) for url in fetched]
        for candidate in self.rank(self.scorer.describe_fallback(references)):
            normalized = await self.normalize(fetched[candidate.url])
            if normalized is not None:
                return normalized, reachable

        return None, reachable

    async def normalize(self, icon: ResolvedIcon) -> Optional[NormalizedIcon]:
        """Normalize an accepted icon in a worker thread. A decode failure either rejects
        the candidate or serves the original bytes, depending on `on_decode_failure`.
        """
        try:
            return await asyncio.to_thread(
                self.normalizer.normalize, icon.content, icon.content_type, icon.url
            )
        except CandidateRejectedError as e:
            self.metrics_client.increment("resolver.candidate.undecodable")
            logger.info(f"Could not normalize icon from {icon.url}: {e}")
            if self.on_decode_failure == "original":
                return NormalizedIcon(
                    content=icon.content, content_type=icon.content_type, source_url=icon.url
                )
            return None

    def is_acceptable(self, icon: ResolvedIcon) -> bool:
        """Check the content type and payload size of a fetched icon."""
        content_type = icon.content_type
        if not (
            content_type.startswith("image/")
            or content_type in SVG_CONTENT_TYPES
            or content_type in ICO_CONTENT_TYPES
        ):
            return False

        size = len(icon.content)
        return self.min_icon_bytes < size <= self.max_icon_bytes

    def _resolved(self, icon: NormalizedIcon, stage: str) -> NormalizedIcon:
        self.metrics_client.increment("resolver.resolved", tags={"stage": stage})
        logger.info(
            "Resolved icon",
            extra={
                "stage": stage,
                "source_url": icon.source_url,
                "content_type": icon.content_type,
            },
        )
        return icon
