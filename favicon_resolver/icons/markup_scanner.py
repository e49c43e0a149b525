# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Tolerant HTML scanner that extracts icon references from page markup"""

import logging
from typing import Any, Callable, Mapping, Optional

from bs4 import BeautifulSoup, SoupStrainer

from favicon_resolver.icons.constants import (
    APPLE_TOUCH_REL_MARKER,
    BASE_TAG,
    ICON_REL_MARKER,
    LINK_TAG,
    MANIFEST_REL,
    MASK_ICON_REL,
    META_TAG,
    SOCIAL_PREVIEW_PROPERTY,
)
from favicon_resolver.icons.models import CandidateRole, IconReference, MarkupScanResult
from favicon_resolver.icons.utils import parse_declared_size, resolve_reference

logger = logging.getLogger(__name__)

PARSER: str = "html.parser"

ElementVisitor = Callable[[Mapping[str, Any]], None]


def attribute_text(attrs: Mapping[str, Any], name: str) -> str:
    """Return an attribute as a single string. Multi-valued attributes (e.g. `rel`) are
    joined with spaces.
    """
    value = attrs.get(name)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


class MarkupScanner:
    """Dispatch the attributes of matching elements to subscribed visitors.

    Only the subscribed element names are materialized, the rest of the document is
    skipped by the strainer. Visitors are called in document order.
    """

    def __init__(self, parser: str = PARSER) -> None:
        self.parser = parser
        self._visitors: dict[str, list[ElementVisitor]] = {}

    def subscribe(self, tag_name: str, visitor: ElementVisitor) -> None:
        """Register a visitor for every element named `tag_name`."""
        self._visitors.setdefault(tag_name.lower(), []).append(visitor)

    def feed(self, markup: str | bytes) -> None:
        """Parse the markup and invoke visitors. Malformed markup is never an error."""
        if not self._visitors or not markup:
            return

        names = list(self._visitors)
        try:
            soup = BeautifulSoup(markup, self.parser, parse_only=SoupStrainer(names))
            elements = soup.find_all(names)
        except Exception as e:
            logger.warning(f"Error scanning markup: {e}")
            return

        for element in elements:
            for visitor in self._visitors.get(element.name, []):
                visitor(element.attrs)


class IconReferenceCollector:
    """Collect icon references, following the rules for `link`, `meta` and `base`."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url
        self.references: list[IconReference] = []
        self.manifest_url: Optional[str] = None
        self._base_overridden = False

    def register(self, scanner: MarkupScanner) -> None:
        """Subscribe this collector's visitors to a scanner."""
        scanner.subscribe(BASE_TAG, self.visit_base)
        scanner.subscribe(LINK_TAG, self.visit_link)
        scanner.subscribe(META_TAG, self.visit_meta)

    def visit_base(self, attrs: Mapping[str, Any]) -> None:
        """Only the first `<base href>` counts."""
        if self._base_overridden:
            return
        resolved = resolve_reference(attribute_text(attrs, "href"), self.base_url)
        if resolved and not resolved.startswith("data:"):
            self.base_url = resolved
            self._base_overridden = True

    def visit_link(self, attrs: Mapping[str, Any]) -> None:
        """Handle icon and manifest links."""
        rel = attribute_text(attrs, "rel").strip().lower()
        if not rel:
            return

        if rel == MANIFEST_REL:
            if self.manifest_url is None:
                manifest_url = resolve_reference(attribute_text(attrs, "href"), self.base_url)
                if manifest_url and not manifest_url.startswith("data:"):
                    self.manifest_url = manifest_url
            return

        if ICON_REL_MARKER not in rel or MASK_ICON_REL in rel.split():
            return

        url = resolve_reference(attribute_text(attrs, "href"), self.base_url)
        if url is None:
            return

        role = (
            CandidateRole.APPLE_TOUCH_ICON if APPLE_TOUCH_REL_MARKER in rel else CandidateRole.ICON
        )
        self.references.append(
            IconReference(
                url=url,
                role=role,
                declared_size=parse_declared_size(attribute_text(attrs, "sizes")),
                declared_type=attribute_text(attrs, "type").strip().lower() or None,
            )
        )

    def visit_meta(self, attrs: Mapping[str, Any]) -> None:
        """Handle the social preview image."""
        if attribute_text(attrs, "property").strip().lower() != SOCIAL_PREVIEW_PROPERTY:
            return

        url = resolve_reference(attribute_text(attrs, "content"), self.base_url)
        if url is None:
            return
        self.references.append(IconReference(url=url, role=CandidateRole.SOCIAL_PREVIEW))

    def result(self) -> MarkupScanResult:
        """Return what has been collected so far."""
        return MarkupScanResult(references=list(self.references), manifest_url=self.manifest_url)


def scan_markup(markup: str | bytes, base_url: str) -> MarkupScanResult:
    """Extract icon references and the manifest URL from an HTML document.

    `base_url` should be the final URL of the page, after redirects.
    """
    scanner = MarkupScanner()
    collector = IconReferenceCollector(base_url)
    collector.register(scanner)
    scanner.feed(markup)
    return collector.result()
