# ─────────────────────────────────────────────────────────────────────────────
# HTTP Rate Limiter — coarse per-IP ceiling (slowapi)
# ─────────────────────────────────────────────────────────────────────────────
# Sits in front of every route as a DoS ceiling. The request guard's
# per-operation rate windows are a separate, finer budget.
# Built per app (not module-level) so tests get isolated counters.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from projectdesk.config import Settings
from projectdesk.security.guard import rate_limited_response

logger = structlog.get_logger(__name__)

_WINDOW_SECONDS: dict[str, int] = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}


def build_limiter(settings: Settings) -> Limiter:
    """Limiter keyed by client IP with settings.http_rate_limit on every route."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.http_rate_limit],
        enabled=settings.http_rate_limit_enabled,
    )


def parse_retry_after(rate_limit: str) -> int:
    """Extract window duration in seconds from a slowapi limit string."""
    try:
        _, window = rate_limit.strip().split("/")
        return _WINDOW_SECONDS.get(window.strip().rstrip("s"), 60)
    except (ValueError, AttributeError):
        return 60


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the same 429 shape the request guard uses.

    Must stay sync: SlowAPIMiddleware calls the registered handler without
    awaiting it.
    """
    retry_after = parse_retry_after(request.app.state.settings.http_rate_limit)
    logger.warning(
        "http_rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail),
    )
    return rate_limited_response(retry_after)
