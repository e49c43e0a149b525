# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""URL and header helpers for icon discovery"""

import base64
import binascii
import re
from typing import Optional
from urllib.parse import unquote_to_bytes, urljoin, urlparse

from favicon_resolver.exceptions import InputError
from favicon_resolver.icons.constants import (
    ANY_SIZE,
    MANIFEST_JSON_BASE64_MARKER,
    UNFETCHABLE_SCHEMES,
    UNKNOWN_SIZE,
)
from favicon_resolver.icons.models import ResolutionTarget

SIZE_PATTERN = re.compile(r"^(\d+)[xX×](\d+)$")
# Proxies may collapse the double slash of a path-encoded URL into one.
SCHEME_PATTERN = re.compile(r"^(https?):/+", re.IGNORECASE)


def get_base_url(url: str) -> str:
    """Extract base URL (e.g., "https://example.com" from "https://example.com/path")."""
    parsed_url = urlparse(url)
    return f"{parsed_url.scheme}://{parsed_url.netloc}"


def normalize_target(raw: Optional[str]) -> ResolutionTarget:
    """Turn a bare domain, full URL or path-encoded domain into an absolute URL.

    Targets without a scheme are assumed to be served over HTTPS.

    Raises:
        InputError: if the target is empty or has no host.
    """
    target = (raw or "").strip()
    # Path-encoded targets arrive with the leading slash(es) of the route.
    target = target.lstrip("/")
    if not target:
        raise InputError("Missing target")

    scheme = SCHEME_PATTERN.match(target)
    explicit_scheme = scheme is not None
    if scheme is not None:
        target = f"{scheme.group(1)}://{target[scheme.end():]}"
    else:
        if "://" in target:
            raise InputError(f"Unsupported scheme in target: {target}")
        target = f"https://{target}"

    try:
        parsed = urlparse(target)
        host = parsed.hostname
    except ValueError as e:
        raise InputError(f"Unparseable target: {target}") from e

    if not host:
        raise InputError(f"Target has no host: {target}")

    return ResolutionTarget(url=target, host=host, explicit_scheme=explicit_scheme)


def is_problematic_favicon_url(favicon_url: str) -> bool:
    """Check if favicon URL uses a scheme that can't be fetched or is a base64 manifest."""
    if not favicon_url:
        return False

    favicon_lower = favicon_url.lower()

    if favicon_lower.startswith(UNFETCHABLE_SCHEMES):
        return True

    # Only image payloads are usable out of data URIs
    if favicon_lower.startswith("data:") and not favicon_lower.startswith("data:image/"):
        return True

    return MANIFEST_JSON_BASE64_MARKER in favicon_lower


def resolve_reference(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve a discovered reference against the document it came from.

    Returns the absolute URL, or None when the reference is empty, unfetchable or does
    not resolve to an http(s) or image data URL.
    """
    if not href:
        return None

    href = href.strip()
    if not href or is_problematic_favicon_url(href):
        return None

    if href.lower().startswith("data:"):
        return href

    try:
        resolved = urljoin(base_url, href)
        parsed = urlparse(resolved)
        host = parsed.hostname
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https") or not host:
        return None

    return resolved


def parse_declared_size(raw: Optional[str]) -> Optional[str]:
    """Normalize a `sizes` attribute to 'WxH', 'any' or None.

    Space separated lists keep their widest entry.
    """
    if not raw or not isinstance(raw, str):
        return None

    best: Optional[tuple[int, int]] = None
    for token in raw.split():
        token = token.strip().lower()
        if token == ANY_SIZE:
            return ANY_SIZE
        if token == UNKNOWN_SIZE:
            continue
        match = SIZE_PATTERN.match(token)
        if match:
            width, height = int(match.group(1)), int(match.group(2))
            if best is None or width > best[0]:
                best = (width, height)

    return f"{best[0]}x{best[1]}" if best else None


def declared_width(declared_size: Optional[str]) -> int:
    """Return the numeric width of a 'WxH' declared size, or 0."""
    if not declared_size:
        return 0
    match = SIZE_PATTERN.match(declared_size)
    return int(match.group(1)) if match else 0


def media_type(content_type: Optional[str]) -> str:
    """Lower-case a Content-Type header and drop its parameters."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def url_path(url: str) -> str:
    """Return the lower-cased path of a URL, or an empty string for data URIs."""
    if url.lower().startswith("data:"):
        return ""
    try:
        return urlparse(url).path.lower()
    except ValueError:
        return ""


def url_host(url: str) -> str:
    """Return the lower-cased host of a URL, or an empty string."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def decode_data_uri(url: str) -> tuple[bytes, str]:
    """Decode a `data:` URI into its payload and media type.

    Raises:
        ValueError: if the URI is malformed.
    """
    if not url.lower().startswith("data:") or "," not in url:
        raise ValueError("Not a data URI")

    header, payload = url[5:].split(",", 1)
    parameters = header.split(";")
    content_type = media_type(parameters[0]) or "text/plain"

    if any(param.strip().lower() == "base64" for param in parameters[1:]):
        try:
            return base64.b64decode(unquote_to_bytes(payload), validate=False), content_type
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e

    return unquote_to_bytes(payload), content_type
