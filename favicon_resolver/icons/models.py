# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Data models for icon discovery, resolution and normalization"""

from enum import Enum, unique
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


@unique
class CandidateRole(str, Enum):
    """Semantic origin of a discovered icon reference."""

    ICON = "icon"
    APPLE_TOUCH_ICON = "apple-touch-icon"
    MANIFEST_ICON = "manifest-icon"
    SOCIAL_PREVIEW = "social-preview"
    UNKNOWN = "unknown"


class IconReference(BaseModel):
    """An icon reference as emitted by a discovery stage, before scoring."""

    model_config = ConfigDict(frozen=True)

    url: str
    role: CandidateRole = CandidateRole.UNKNOWN
    declared_size: Optional[str] = Field(
        default=None, description="Either 'WxH', the 'any' sentinel, or None when unknown."
    )
    declared_type: Optional[str] = None


class CandidateDescriptor(IconReference):
    """A scored icon reference. `order` is the discovery index used to break score ties."""

    score: int
    order: int = 0


class MarkupScanResult(BaseModel):
    """Icon references and the manifest link found in one HTML document."""

    references: list[IconReference] = Field(default_factory=list)
    manifest_url: Optional[str] = None


class ResolvedIcon(BaseModel):
    """Payload of a fetched candidate. `content_type` comes from the response, never from
    the declared type.
    """

    url: str
    content: bytes
    content_type: str


class RasterImage(BaseModel):
    """RGBA pixel buffer shared by the decoders, the resizer and the PNG encoder."""

    pixels: bytes
    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @model_validator(mode="after")
    def check_buffer_length(self) -> "RasterImage":
        """Ensure the buffer addresses exactly width * height RGBA pixels."""
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise ValueError(
                f"RGBA buffer of {len(self.pixels)} bytes does not match "
                f"{self.width}x{self.height} (expected {expected})"
            )
        return self


class NormalizedIcon(BaseModel):
    """Final response payload."""

    content: bytes
    content_type: str
    source_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    placeholder: bool = False


class ResolutionTarget(BaseModel):
    """A normalized caller-supplied target."""

    url: str
    host: str
    explicit_scheme: bool = False


class DiscoveryResult(BaseModel):
    """Scored candidates discovered for a target, in discovery order."""

    candidates: list[CandidateDescriptor] = Field(default_factory=list)
    # Final URL of the page after redirects, or the target URL when it was unreachable.
    page_url: str
