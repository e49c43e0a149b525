# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Monogram placeholder served when every icon source fails"""

from html import escape

from favicon_resolver.icons.constants import (
    PLACEHOLDER_BACKGROUND,
    PLACEHOLDER_FALLBACK_LETTER,
    PLACEHOLDER_FOREGROUND,
    SVG_CONTENT_TYPE,
)
from favicon_resolver.icons.models import ResolvedIcon

PLACEHOLDER_TEMPLATE: str = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<rect width="100%" height="100%" fill="{background}"/>'
    '<text x="50%" y="50%" font-family="sans-serif" font-size="48" text-anchor="middle" '
    'dominant-baseline="middle" fill="{foreground}">{letter}</text>'
    "</svg>"
)


def monogram_letter(host: str) -> str:
    """Pick the first alphanumeric character of the host, skipping a leading `www.`."""
    host = host.lower().removeprefix("www.")
    for char in host:
        if char.isalnum():
            return char.upper()
    return PLACEHOLDER_FALLBACK_LETTER


def render_placeholder(host: str) -> ResolvedIcon:
    """Render a single-letter monogram as SVG markup."""
    markup = PLACEHOLDER_TEMPLATE.format(
        background=PLACEHOLDER_BACKGROUND,
        foreground=PLACEHOLDER_FOREGROUND,
        letter=escape(monogram_letter(host)),
    )
    return ResolvedIcon(
        url=f"placeholder:{host}",
        content=markup.encode("utf-8"),
        content_type=SVG_CONTENT_TYPE,
    )
