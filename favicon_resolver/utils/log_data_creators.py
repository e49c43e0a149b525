# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""A utility module for log data creation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_serializer
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import Message


class RequestSummaryLogDataModel(BaseModel):
    """Log metadata for the Request Summary."""

    errno: int
    time: datetime
    path: str
    method: str
    agent: Optional[str] = None
    lang: Optional[str] = None
    querystring: dict[str, Any]
    code: int
    content_type: Optional[str] = None
    rid: Optional[str] = None

    @field_serializer("time")
    def serialize_time(self, time: datetime) -> str:
        """Serialize the datetime type to an iso-formatted string."""
        return time.isoformat()


def create_request_summary_log_data(
    request: Request, message: Message, dt: datetime
) -> RequestSummaryLogDataModel:
    """Create log data for API endpoints."""
    response_headers = Headers(scope=message)
    return RequestSummaryLogDataModel(
        errno=0,
        time=dt,
        agent=request.headers.get("User-Agent"),
        path=request.url.path,
        method=request.method,
        lang=request.headers.get("Accept-Language"),
        querystring=dict(request.query_params),
        code=message["status"],
        content_type=response_headers.get("Content-Type"),
        # Provided by the asgi-correlation-id middleware.
        rid=response_headers.get("X-Request-ID"),
    )
