# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Favicon resolver V1 API"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from starlette import status
from starlette.responses import Response

from favicon_resolver.configs import settings
from favicon_resolver.exceptions import ExhaustionError, InputError, UpstreamDependencyError
from favicon_resolver.icons import get_resolver
from favicon_resolver.icons.resolver import IconResolver
from favicon_resolver.icons.utils import normalize_target

logger = logging.getLogger(__name__)
router = APIRouter()

CACHE_MAX_AGE_SEC: int = settings.runtime.cache_max_age_sec
RESOLUTION_TIMEOUT_SEC: float = settings.runtime.resolution_timeout_sec
TARGET_CHARACTER_MAX: int = settings.web.api.v1.target_character_max

ICON_RESPONSES: dict[int | str, dict] = {
    status.HTTP_200_OK: {
        "content": {"image/png": {}, "image/svg+xml": {}},
        "description": "The normalized icon.",
    },
    status.HTTP_400_BAD_REQUEST: {"description": "Missing or unparseable target."},
    status.HTTP_404_NOT_FOUND: {"description": "No icon could be resolved."},
    status.HTTP_502_BAD_GATEWAY: {"description": "Icon lookup services are unreachable."},
}


@router.get(
    "/icon",
    tags=["icon"],
    summary="Resolve the icon of a domain or URL",
    response_class=Response,
    responses=ICON_RESPONSES,
)
async def icon(
    url: Annotated[str | None, Query(max_length=TARGET_CHARACTER_MAX)] = None,
    resolver: IconResolver = Depends(get_resolver),
) -> Response:
    """Resolve the best icon for the `url` query parameter, a bare domain or a full URL."""
    return await serve_icon(url, resolver)


@router.get(
    "/icon/{target:path}",
    tags=["icon"],
    summary="Resolve the icon of a path-encoded domain",
    response_class=Response,
    responses=ICON_RESPONSES,
)
async def icon_by_path(
    target: Annotated[str, Path(max_length=TARGET_CHARACTER_MAX)],
    resolver: IconResolver = Depends(get_resolver),
) -> Response:
    """Resolve the best icon for a domain given in the path, e.g. `/icon/example.com`."""
    return await serve_icon(target, resolver)


async def serve_icon(raw_target: str | None, resolver: IconResolver) -> Response:
    """Map resolution outcomes to HTTP responses."""
    try:
        target = normalize_target(raw_target)
    except InputError as e:
        logger.info(f"HTTP 400: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        icon = await asyncio.wait_for(resolver.resolve(target), timeout=RESOLUTION_TIMEOUT_SEC)
    except ExhaustionError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UpstreamDependencyError as e:
        logger.warning(f"HTTP 502: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except asyncio.TimeoutError:
        logger.warning(f"Icon resolution for {target.host} timed out")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No icon resolved for {target.host} in time",
        )

    return Response(
        content=icon.content,
        media_type=icon.content_type,
        headers={"Cache-Control": f"public, max-age={CACHE_MAX_AGE_SEC}"},
    )
