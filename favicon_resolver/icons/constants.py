# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Constants for icon discovery and normalization"""

# Element names the markup scanner subscribes to
LINK_TAG: str = "link"
META_TAG: str = "meta"
BASE_TAG: str = "base"

MANIFEST_REL: str = "manifest"
ICON_REL_MARKER: str = "icon"
APPLE_TOUCH_REL_MARKER: str = "apple-touch-icon"
# Monochrome masks for pinned tabs, never a usable icon
MASK_ICON_REL: str = "mask-icon"
SOCIAL_PREVIEW_PROPERTY: str = "og:image"

# Declared `sizes` sentinels
ANY_SIZE: str = "any"
UNKNOWN_SIZE: str = "unknown"

# Schemes a discovered reference can never be fetched from
UNFETCHABLE_SCHEMES: tuple[str, ...] = ("javascript:", "mailto:", "about:", "blob:")

# Constants for favicon URL validation
MANIFEST_JSON_BASE64_MARKER: str = "/application/manifest+json;base64,"

DEFAULT_FAVICON_PATH: str = "/favicon.ico"

# Content types
PNG_CONTENT_TYPE: str = "image/png"
SVG_CONTENT_TYPE: str = "image/svg+xml"

SVG_CONTENT_TYPES: frozenset[str] = frozenset({"image/svg+xml", "application/svg+xml"})

ICO_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "image/x-icon",
        "image/vnd.microsoft.icon",
        "image/ico",
        "image/icon",
        "image/x-ico",
        "application/ico",
        "application/x-ico",
        "application/vnd.microsoft.icon",
    }
)

# Pillow format names keyed by the content types that carry them
RASTER_CONTENT_TYPES: dict[str, str] = {
    "image/png": "PNG",
    "image/apng": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/x-ms-bmp": "BMP",
}

HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml+xml")

# Raster extensions that earn the generic fallback bonus
RASTER_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".gif", ".webp", ".bmp")

# HTTP request configuration
REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/114.0"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-GB,en-US;q=0.9,en;q=0.8",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-User": "?1",
}

ICON_REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": REQUEST_HEADERS["User-Agent"],
    "Accept": "image/avif,image/webp,image/svg+xml,image/*,*/*;q=0.8",
    "Sec-Fetch-Dest": "image",
    "Sec-Fetch-Mode": "no-cors",
}

MANIFEST_REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": REQUEST_HEADERS["User-Agent"],
    "Accept": "application/manifest+json,application/json;q=0.9,*/*;q=0.8",
}

# Placeholder monogram rendering
PLACEHOLDER_BACKGROUND: str = "#cccccc"
PLACEHOLDER_FOREGROUND: str = "#000000"
PLACEHOLDER_FALLBACK_LETTER: str = "?"
