# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Decode, resize and re-encode icons into a uniform output format"""

import logging
import re
from io import BytesIO
from typing import Optional

from PIL import Image as PILImage

from favicon_resolver.configs import settings
from favicon_resolver.exceptions import ImageDecodeError, UnsupportedImageError
from favicon_resolver.icons.constants import (
    ICO_CONTENT_TYPES,
    PNG_CONTENT_TYPE,
    RASTER_CONTENT_TYPES,
    SVG_CONTENT_TYPE,
    SVG_CONTENT_TYPES,
)
from favicon_resolver.icons.models import NormalizedIcon, RasterImage
from favicon_resolver.icons.utils import media_type

logger = logging.getLogger(__name__)

# Favicons labelled as ICO are frequently bare PNG or BMP files.
ICO_FORMATS: tuple[str, ...] = ("ICO", "PNG", "BMP")

# Errors Pillow raises for truncated, corrupt or oversized payloads
PILLOW_ERRORS: tuple[type[Exception], ...] = (
    OSError,
    ValueError,
    EOFError,
    SyntaxError,
    PILImage.DecompressionBombError,
)

SVG_ROOT_PATTERN = re.compile(rb"<svg\b[^>]*>", re.IGNORECASE)
SVG_WIDTH_PATTERN = re.compile(rb"\swidth\s*=", re.IGNORECASE)
SVG_HEIGHT_PATTERN = re.compile(rb"\sheight\s*=", re.IGNORECASE)


class ImageNormalizer:
    """Turn a fetched icon into a square PNG of `target_size`, or sized SVG markup."""

    def __init__(
        self,
        target_size: Optional[int] = None,
        unsupported_type_policy: Optional[str] = None,
        max_decoded_pixels: Optional[int] = None,
    ) -> None:
        self.target_size: int = target_size or settings.icon.target_size
        self.max_decoded_pixels: int = max_decoded_pixels or settings.icon.max_decoded_pixels
        self.unsupported_type_policy: str = (
            unsupported_type_policy or settings.icon.unsupported_type_policy
        )

    def normalize(
        self, content: bytes, content_type: str, source_url: Optional[str] = None
    ) -> NormalizedIcon:
        """Normalize an icon payload, dispatching on its authoritative content type.

        Raises:
            ImageDecodeError: if the payload can't be decoded, resized or encoded.
            UnsupportedImageError: for unknown types when the policy is `reject`.
        """
        content_type = media_type(content_type)

        if content_type in SVG_CONTENT_TYPES:
            return NormalizedIcon(
                content=self.inject_svg_dimensions(content),
                content_type=SVG_CONTENT_TYPE,
                source_url=source_url,
            )

        if content_type not in RASTER_CONTENT_TYPES and content_type not in ICO_CONTENT_TYPES:
            if self.unsupported_type_policy == "reject":
                raise UnsupportedImageError(f"Unsupported content type: {content_type!r}")
            logger.info(f"Passing through unsupported content type {content_type!r}")
            return NormalizedIcon(
                content=content, content_type=content_type, source_url=source_url
            )

        raster = self.decode(content, content_type)
        resized = self.resize(raster)
        return NormalizedIcon(
            content=self.encode_png(resized),
            content_type=PNG_CONTENT_TYPE,
            source_url=source_url,
            width=resized.width,
            height=resized.height,
        )

    def decode(self, content: bytes, content_type: str) -> RasterImage:
        """Decode a raster or ICO payload into an RGBA raster."""
        content_type = media_type(content_type)
        if content_type in ICO_CONTENT_TYPES:
            return self.decode_ico(content)

        pillow_format = RASTER_CONTENT_TYPES.get(content_type)
        if pillow_format is None:
            raise UnsupportedImageError(f"No decoder for content type: {content_type!r}")

        try:
            with PILImage.open(BytesIO(content), formats=[pillow_format]) as image:
                self.check_dimensions(image)
                # JPEG decodes at a reduced scale; a no-op for other formats.
                image.draft(None, (self.target_size, self.target_size))
                return self._to_raster(image)
        except PILLOW_ERRORS as e:
            raise ImageDecodeError(f"Failed to decode {pillow_format} image: {e}") from e

    def decode_ico(self, content: bytes) -> RasterImage:
        """Decode an ICO container, keeping the embedded image with the greatest width."""
        try:
            with PILImage.open(BytesIO(content), formats=list(ICO_FORMATS)) as image:
                if image.format != "ICO":
                    self.check_dimensions(image)
                    return self._to_raster(image)

                sizes = image.ico.sizes()
                if not sizes:
                    raise ImageDecodeError("ICO container holds no images")
                largest = max(sizes, key=lambda size: (size[0], size[1]))
                logger.debug(f"Selected {largest[0]}x{largest[1]} of ICO sizes {sorted(sizes)}")
                with image.ico.getimage(largest) as frame:
                    self.check_dimensions(frame)
                    return self._to_raster(frame)
        except PILLOW_ERRORS as e:
            raise ImageDecodeError(f"Failed to decode ICO image: {e}") from e

    def check_dimensions(self, image: PILImage.Image) -> None:
        """Reject images whose declared dimensions exceed `max_decoded_pixels`.

        Must run before the pixel data is loaded.
        """
        width, height = image.size
        if width * height > self.max_decoded_pixels:
            raise ImageDecodeError(
                f"Image of {width}x{height} exceeds {self.max_decoded_pixels} decoded pixels"
            )

    def resize(self, raster: RasterImage) -> RasterImage:
        """Stretch the raster to the target square."""
        size = (self.target_size, self.target_size)
        if (raster.width, raster.height) == size:
            return raster
        try:
            image = PILImage.frombytes("RGBA", (raster.width, raster.height), raster.pixels)
            resized = image.resize(size, PILImage.Resampling.LANCZOS)
        except PILLOW_ERRORS as e:
            raise ImageDecodeError(f"Failed to resize image: {e}") from e
        return RasterImage(pixels=resized.tobytes(), width=resized.width, height=resized.height)

    @staticmethod
    def encode_png(raster: RasterImage) -> bytes:
        """Serialize the raster as PNG."""
        buffer = BytesIO()
        try:
            image = PILImage.frombytes("RGBA", (raster.width, raster.height), raster.pixels)
            image.save(buffer, format="PNG", optimize=True)
        except PILLOW_ERRORS as e:
            raise ImageDecodeError(f"Failed to encode PNG: {e}") from e
        return buffer.getvalue()

    def inject_svg_dimensions(self, content: bytes) -> bytes:
        """Add explicit `width`/`height` to the root `<svg>` element where missing."""
        match = SVG_ROOT_PATTERN.search(content)
        if match is None:
            raise ImageDecodeError("No <svg> root element found")

        root = match.group(0)
        injected = b""
        if not SVG_WIDTH_PATTERN.search(root):
            injected += b' width="%d"' % self.target_size
        if not SVG_HEIGHT_PATTERN.search(root):
            injected += b' height="%d"' % self.target_size
        if not injected:
            return content

        insert_at = match.start() + len(b"<svg")
        return content[:insert_at] + injected + content[insert_at:]

    @staticmethod
    def _to_raster(image: PILImage.Image) -> RasterImage:
        image.load()
        rgba = image.convert("RGBA")
        return RasterImage(pixels=rgba.tobytes(), width=rgba.width, height=rgba.height)
