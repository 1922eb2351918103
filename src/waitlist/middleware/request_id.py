"""Correlation ids for requests, echoed in X-Request-Id.

The same id ends up as the correlation id of SSE connections and referral
credits opened by the request, so a single id ties the join, the credit and
the pushed events together in the logs.
"""

import re
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-Id"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    """Keep a well-formed client id, otherwise mint a UUID."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        # route handlers read the header for correlation ids, so normalise it in place
        request.scope["headers"] = [
            (k, v) for k, v in request.scope["headers"] if k != REQUEST_ID_HEADER.lower().encode()
        ] + [(REQUEST_ID_HEADER.lower().encode(), request_id.encode())]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
