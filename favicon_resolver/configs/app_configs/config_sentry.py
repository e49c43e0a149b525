# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Sentry Configuration"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.types import Event, Hint

from favicon_resolver.configs import settings
from favicon_resolver.utils.version import fetch_app_version_from_file

logger = logging.getLogger(__name__)

REDACTED_TEXT = "[REDACTED]"

# Frame variables that carry the caller-supplied target.
SENSITIVE_FRAME_VARS: frozenset[str] = frozenset({"url", "target", "target_url", "page_url"})


def configure_sentry() -> None:  # pragma: no cover
    """Configure and initialize Sentry integration."""
    if settings.sentry.mode == "disabled":
        return
    # This is the SHA-1 hash of the HEAD of the current branch stored in version.json file.
    version_sha = fetch_app_version_from_file().commit
    sentry_sdk.init(
        dsn=settings.sentry.dsn,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        release=version_sha,
        debug="debug" == settings.sentry.mode,
        before_send=strip_sensitive_data,
        environment=settings.sentry.env,
        traces_sample_rate=settings.sentry.traces_sample_rate,
    )


def strip_sensitive_data(event: Event, hint: Hint) -> Event | None:
    """Filter the requested target out of Sentry events."""
    #  See: https://docs.sentry.io/platforms/python/configuration/filtering/
    request = event.get("request", {})
    if request.get("query_string"):
        request["query_string"] = REDACTED_TEXT
    if request.get("url"):
        request["url"] = REDACTED_TEXT

    for exception in event.get("exception", {}).get("values", []):
        for frame in (exception.get("stacktrace") or {}).get("frames", []):
            frame_vars = frame.get("vars") or {}
            for key in SENSITIVE_FRAME_VARS.intersection(frame_vars):
                frame_vars[key] = REDACTED_TEXT

    return event
