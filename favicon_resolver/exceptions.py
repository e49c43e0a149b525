# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""favicon-resolver specific exceptions."""


class InputError(ValueError):
    """Raised for a missing or unparseable resolution target."""


class CandidateRejectedError(Exception):
    """Raised when a fetched candidate is unusable. The resolver moves on to the next one."""

    pass


class ImageDecodeError(CandidateRejectedError):
    """Raised when an image payload can't be decoded, resized or encoded."""

    pass


class UnsupportedImageError(CandidateRejectedError):
    """Raised for content types no decoder handles when pass-through is disabled."""

    pass


class ExhaustionError(Exception):
    """Raised when every candidate and every fallback source was rejected."""

    pass


class UpstreamDependencyError(Exception):
    """Raised when the third-party lookup services are unreachable and no placeholder
    can be served.
    """

    pass
