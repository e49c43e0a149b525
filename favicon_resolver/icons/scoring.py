# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Candidate scoring and ranking.

Two rule sets share one weight table:

- The primary rules score references discovered in page markup and manifests from
  their declared attributes (role, `sizes`, `type`).
- The fallback rules score third-party lookup results from the href alone, since
  those carry no declared attributes worth trusting.

Higher scores rank first; equal scores keep discovery order.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from favicon_resolver.configs import settings
from favicon_resolver.icons.constants import (
    ANY_SIZE,
    APPLE_TOUCH_REL_MARKER,
    RASTER_EXTENSIONS,
    SVG_CONTENT_TYPES,
    UNKNOWN_SIZE,
)
from favicon_resolver.icons.models import CandidateDescriptor, CandidateRole, IconReference
from favicon_resolver.icons.utils import declared_width, url_host, url_path

HIGH_PRIORITY_ROLES: frozenset[CandidateRole] = frozenset(
    {CandidateRole.APPLE_TOUCH_ICON, CandidateRole.MANIFEST_ICON}
)


class ScoringPolicy(BaseModel):
    """Weights for every scoring signal."""

    model_config = ConfigDict(frozen=True)

    vector: int = 1000
    high_priority_role: int = 650
    icon_role: int = 100
    any_size: int = 500
    social_preview: int = 50
    data_uri: int = -1000
    svg_extension: int = 1000
    png_extension: int = 500
    ico_extension: int = 200
    raster_extension: int = 100
    apple_touch_href: int = 50
    high_reputation_host: int = 30
    low_reputation_host: int = -20
    high_reputation_hosts: frozenset[str] = frozenset()
    low_reputation_hosts: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls) -> "ScoringPolicy":
        """Build the policy from the `scoring` and `icon` settings."""
        weights = {key.lower(): value for key, value in settings.scoring.items()}
        return cls(
            **weights,
            high_reputation_hosts=frozenset(
                host.lower() for host in settings.icon.high_reputation_hosts
            ),
            low_reputation_hosts=frozenset(
                host.lower() for host in settings.icon.low_reputation_hosts
            ),
        )


class CandidateScorer:
    """Score and rank icon candidates according to a ScoringPolicy."""

    def __init__(self, policy: Optional[ScoringPolicy] = None) -> None:
        self.policy = policy or ScoringPolicy()

    def score(
        self,
        url: str,
        role: CandidateRole,
        declared_size: Optional[str] = None,
        declared_type: Optional[str] = None,
    ) -> int:
        """Score a markup or manifest reference from its declared attributes."""
        policy = self.policy
        score = 0

        if url_path(url).endswith(".svg") or (declared_type or "").lower() in SVG_CONTENT_TYPES:
            score += policy.vector

        if role in HIGH_PRIORITY_ROLES:
            score += policy.high_priority_role
        elif role == CandidateRole.ICON:
            score += policy.icon_role

        if declared_size == ANY_SIZE:
            score += policy.any_size
        else:
            score += declared_width(declared_size)

        # Applied last so a social preview can never outrank a genuine icon.
        if role == CandidateRole.SOCIAL_PREVIEW:
            score = policy.social_preview

        return score

    def score_fallback(self, url: str, declared_size: Optional[str] = None) -> int:
        """Score a third-party lookup result from its href."""
        policy = self.policy
        if url.lower().startswith("data:"):
            return policy.data_uri

        score = 0
        path = url_path(url)
        if path.endswith(".svg"):
            score += policy.svg_extension
        elif path.endswith(".png"):
            score += policy.png_extension
        elif path.endswith(".ico"):
            score += policy.ico_extension
        elif path.endswith(RASTER_EXTENSIONS):
            score += policy.raster_extension

        if APPLE_TOUCH_REL_MARKER in url.lower():
            score += policy.apple_touch_href

        host = url_host(url)
        if host in policy.high_reputation_hosts:
            score += policy.high_reputation_host
        elif host in policy.low_reputation_hosts:
            score += policy.low_reputation_host

        if declared_size and declared_size != UNKNOWN_SIZE:
            score += declared_width(declared_size)

        return score

    def describe(self, references: Iterable[IconReference]) -> list[CandidateDescriptor]:
        """Score discovered references once, keeping their discovery order."""
        return [
            CandidateDescriptor(
                url=reference.url,
                role=reference.role,
                declared_size=reference.declared_size,
                declared_type=reference.declared_type,
                score=self.score(
                    reference.url,
                    reference.role,
                    reference.declared_size,
                    reference.declared_type,
                ),
                order=order,
            )
            for order, reference in enumerate(references)
        ]

    def describe_fallback(self, references: Iterable[IconReference]) -> list[CandidateDescriptor]:
        """Score third-party lookup references with the fallback rule set."""
        return [
            CandidateDescriptor(
                url=reference.url,
                role=reference.role,
                declared_size=reference.declared_size,
                declared_type=reference.declared_type,
                score=self.score_fallback(reference.url, reference.declared_size),
                order=order,
            )
            for order, reference in enumerate(references)
        ]

    @staticmethod
    def rank(candidates: Iterable[CandidateDescriptor]) -> list[CandidateDescriptor]:
        """Sort by score, highest first. `sorted` is stable, so ties keep discovery order."""
        return sorted(candidates, key=lambda candidate: (-candidate.score, candidate.order))
