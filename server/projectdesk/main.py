# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn projectdesk.main:create_app --factory --host 0.0.0.0 --port 8080

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from projectdesk.auth import StaticTokenSessionResolver
from projectdesk.config import Settings, get_settings
from projectdesk.exceptions import register_exception_handlers
from projectdesk.logging_config import configure_logging
from projectdesk.middleware import RequestContextMiddleware
from projectdesk.rate_limit import build_limiter, rate_limit_exceeded_handler
from projectdesk.repositories.projects import InMemoryProjectRepository
from projectdesk.routes import health, projects
from projectdesk.security.guard import RequestGuard
from projectdesk.security.rate_window import InMemoryRateWindowStore
from projectdesk.services.projects import ProjectsService

logger = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider


def _configure_otel(exporter_type: str) -> "TracerProvider | None":
    """Configure OpenTelemetry tracing (console exporter only)."""
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    if exporter_type != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return None

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)
    return provider


def build_request_guard(settings: Settings) -> RequestGuard:
    """RequestGuard with a fresh in-memory rate window store."""
    store = InMemoryRateWindowStore(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
        sweep_probability=settings.rate_limit_sweep_probability,
    )
    return RequestGuard(
        store,
        production=settings.is_production,
        development=settings.is_development,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire guard, session resolver and projects service into app.state."""
    settings: Settings = app.state.settings

    otel_provider = None
    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        otel_provider = _configure_otel(otel_exporter)

    app.state.request_guard = build_request_guard(settings)
    app.state.session_resolver = StaticTokenSessionResolver(settings.session_tokens)
    app.state.projects_service = ProjectsService(InMemoryProjectRepository())

    if not settings.session_tokens:
        logger.warning(
            "no_session_tokens_configured",
            hint="Set SESSION_TOKENS; every request will be 401",
        )
    logger.info(
        "projectdesk_started",
        environment=settings.environment,
        rate_limit_max_requests=settings.rate_limit_max_requests,
        rate_limit_window_ms=settings.rate_limit_window_ms,
    )

    yield

    if otel_provider is not None:
        otel_provider.shutdown()


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Invoked by: uvicorn projectdesk.main:create_app --factory"""
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="projectdesk",
        description="Project management API behind a rate-limiting, origin-checking request guard",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.state.limiter = build_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Middleware order (Starlette applies in reverse): CORS → SlowAPI → RequestContext
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(settings.allowed_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(projects.router, tags=["projects"])

    return app
