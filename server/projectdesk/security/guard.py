# ─────────────────────────────────────────────────────────────────────────────
# Request Guard — rate limit → origin check → handler + error normalization
# ─────────────────────────────────────────────────────────────────────────────
# Wraps a route body. Rejections (429, 403) are decided before the handler
# runs; anything the handler raises is caught here and returned as JSON.
# Nothing escapes guard(): callers always receive a Response.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from opentelemetry import trace
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from projectdesk.security.errors import classify_error
from projectdesk.security.origin import check_origin, client_address
from projectdesk.security.rate_window import RateWindowStore

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

Handler = Callable[[Request], Awaitable[Response]]


@dataclass(frozen=True)
class GuardConfig:
    """Per-route guard options.

    Read-only routes pass ``require_origin_check=False``. Routes that must
    validate a browser Origin but also serve non-browser callers set
    ``allow_missing_origin=True``.
    """

    require_origin_check: bool = True
    rate_limit_key: str | None = None
    allow_missing_origin: bool = False


class RequestGuard:
    """Gatekeeper for sensitive routes.

    Stored in app.state during lifespan, injected via Depends().
    """

    def __init__(self, store: RateWindowStore, *, production: bool, development: bool) -> None:
        self._store = store
        self._production = production
        self._allow_localhost = development and not production

    @property
    def store(self) -> RateWindowStore:
        return self._store

    async def guard(
        self, request: Request, handler: Handler, config: GuardConfig | None = None
    ) -> Response:
        config = config or GuardConfig()
        with tracer.start_as_current_span("request_guard") as span:
            span.set_attribute("rate_limit_key", config.rate_limit_key or "")
            response = await self._guard(request, handler, config, span)
            span.set_attribute("status_code", response.status_code)
            return response

    async def _guard(
        self, request: Request, handler: Handler, config: GuardConfig, span: trace.Span
    ) -> Response:
        client = client_address(request.headers)
        key = f"{client}:{config.rate_limit_key}" if config.rate_limit_key else client

        decision = self._store.hit(key)
        if not decision.allowed:
            span.set_attribute("outcome", "rate_limited")
            logger.warning(
                "rate_limit_exceeded",
                key=key,
                count=decision.count,
                retry_after=decision.retry_after,
            )
            return rate_limited_response(decision.retry_after)

        if config.require_origin_check and not check_origin(
            request.headers,
            strict=not config.allow_missing_origin,
            allow_localhost=self._allow_localhost,
        ):
            span.set_attribute("outcome", "origin_rejected")
            logger.warning(
                "origin_rejected",
                origin=request.headers.get("origin"),
                host=request.headers.get("host"),
                method=request.method,
                path=request.url.path,
            )
            return JSONResponse(status_code=403, content={"error": "Invalid request origin"})

        try:
            response = await handler(request)
        except Exception as exc:
            classified = classify_error(exc, production=self._production)
            span.set_attribute("outcome", "handler_error")
            span.record_exception(exc)
            logger.error(
                "guarded_handler_failed",
                kind=classified.kind.value,
                status=classified.status_code,
                error=str(exc),
                error_type=type(exc).__name__,
                path=request.url.path,
                exc_info=exc,
            )
            return JSONResponse(status_code=classified.status_code, content=classified.to_body())

        span.set_attribute("outcome", "ok")
        return response


def rate_limited_response(retry_after: int) -> JSONResponse:
    """429 with Retry-After header — tells client exactly when to retry."""
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded", "retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )
