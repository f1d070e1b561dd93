# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID, client, timing, structured logging
# ─────────────────────────────────────────────────────────────────────────────
# Binds request_id and client into structlog contextvars so guard events
# (rate_limit_exceeded, origin_rejected, ...) carry them without passing
# them around. A caller-supplied X-Request-ID is kept only when it is a
# short token; anything else is replaced.
# ─────────────────────────────────────────────────────────────────────────────


import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from projectdesk.security.origin import client_address

logger = structlog.get_logger()

_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(header: str | None) -> str:
    if header and _REQUEST_ID.match(header):
        return header
    return str(uuid.uuid4())[:8]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID + client in log context, completion log, timing headers.

    Health probes are served but not logged.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get("x-request-id"))
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(
            request_id=request_id, client=client_address(request.headers)
        )
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "client")

        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        if not request.url.path.startswith("/health"):
            # Only server failures log at error level
            log = logger.error if response.status_code >= 500 else logger.info
            log(
                "request_completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        return response
