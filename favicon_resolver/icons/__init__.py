# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Initialize the icon resolver"""

import logging
from timeit import default_timer as timer

from favicon_resolver.icons.downloader import AsyncIconDownloader
from favicon_resolver.icons.resolver import IconResolver

logger = logging.getLogger(__name__)

resolver: IconResolver | None = None


async def init_resolver() -> None:
    """Initialize the icon resolver and its shared HTTP client.

    This should only be called once at the startup of application.
    """
    global resolver
    start = timer()

    resolver = IconResolver(downloader=AsyncIconDownloader())

    logger.info(
        "Icon resolver initialization completed",
        extra={"elapsed": timer() - start},
    )


async def shutdown_resolver() -> None:
    """Close the resolver's HTTP client."""
    global resolver
    if resolver is not None:
        await resolver.downloader.close()
        resolver = None


def get_resolver() -> IconResolver:
    """Return the icon resolver"""
    if resolver is None:
        raise ValueError("Icon resolver has not been initialized.")
    return resolver
